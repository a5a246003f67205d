"""
Integration tests for the customer inquiry endpoints
"""
from unittest.mock import Mock, patch

import pytest

from directory_api.db.models import Business, BusinessAnalytics, CustomerInquiry
from directory_api.tests.conftest import make_business

INQUIRY_PAYLOAD = {
    "customerName": "Jane Customer",
    "customerEmail": "jane@example.com",
    "customerPhone": "+250788000000",
    "subject": "Quote request",
    "message": "Could you quote for a two-storey house?",
    "inquiryType": "quote",
}


@pytest.fixture(autouse=True)
def dispatcher():
    mock_dispatcher = Mock()
    with patch(
        "directory_api.api.customer_inquiries.get_notification_dispatcher",
        return_value=mock_dispatcher
    ):
        yield mock_dispatcher


def _submit(client, business_id, **overrides):
    payload = dict(INQUIRY_PAYLOAD)
    payload.update(overrides)
    return client.post(f"/api/v1/inquiries/{business_id}", json=payload)


class TestSubmitInquiry:

    def test_submit_creates_new_inquiry(self, test_client, test_db, test_business, dispatcher):
        response = _submit(test_client, test_business.id)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        inquiry_id = body["data"]["inquiryId"]

        inquiry = test_db.get(CustomerInquiry, inquiry_id)
        assert inquiry.status == "new"
        assert inquiry.inquiry_type == "quote"
        dispatcher.notify_inquiry_received.assert_called_once_with(inquiry_id)

    def test_submit_counts_one_contact(self, test_client, test_db, test_business):
        _submit(test_client, test_business.id)

        test_db.expire_all()
        business = test_db.get(Business, test_business.id)
        assert business.total_inquiries == 1
        assert business.contact_count == 1
        assert business.monthly_contacts == 1

        row = test_db.query(BusinessAnalytics).filter(BusinessAnalytics.business_id == test_business.id).one()
        assert row.contact_clicks == 1

    def test_submit_to_pending_business_is_404(self, test_client, test_db, other_user):
        pending = make_business(test_db, other_user, name="Pending Plumbing", status="pending")

        response = _submit(test_client, pending.id)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_validation_failure(self, test_client, test_business):
        response = _submit(test_client, test_business.id, message="short", customerEmail="nope")

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        fields = {detail["field"] for detail in error["details"]}
        assert {"message", "customerEmail"} <= fields

    def test_analytics_failure_does_not_fail_submission(self, test_client, test_business):
        with patch("directory_api.api.customer_inquiries.get_analytics_aggregator") as mock_factory:
            mock_factory.return_value.record_event.side_effect = RuntimeError("analytics down")
            response = _submit(test_client, test_business.id)

        assert response.status_code == 201


class TestOwnerInbox:

    def test_list_with_stats_and_pagination(self, test_client, test_business, auth_headers):
        for _ in range(3):
            _submit(test_client, test_business.id)
        _submit(test_client, test_business.id, inquiryType="complaint")

        response = test_client.get(
            f"/api/v1/inquiries/business/{test_business.id}",
            params={"inquiryType": "quote", "limit": 2, "page": 1},
            headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["inquiries"]) == 2
        assert data["pagination"]["totalItems"] == 3
        assert data["pagination"]["totalPages"] == 2
        assert data["pagination"]["hasNext"] is True
        assert data["stats"]["totalInquiries"] == 4
        assert data["stats"]["newInquiries"] == 4

    def test_non_owner_forbidden(self, test_client, test_business, other_headers):
        response = test_client.get(f"/api/v1/inquiries/business/{test_business.id}", headers=other_headers)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    def test_admin_allowed(self, test_client, test_business, admin_headers):
        response = test_client.get(f"/api/v1/inquiries/business/{test_business.id}", headers=admin_headers)
        assert response.status_code == 200

    def test_requires_token(self, test_client, test_business):
        response = test_client.get(f"/api/v1/inquiries/business/{test_business.id}")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_REQUIRED"


class TestInquiryLifecycleEndpoints:

    def _create(self, client, business_id):
        return _submit(client, business_id).json()["data"]["inquiryId"]

    def test_fetch_marks_read(self, test_client, test_business, auth_headers):
        inquiry_id = self._create(test_client, test_business.id)

        first = test_client.get(f"/api/v1/inquiries/{inquiry_id}", headers=auth_headers)
        second = test_client.get(f"/api/v1/inquiries/{inquiry_id}", headers=auth_headers)

        assert first.json()["data"]["inquiry"]["status"] == "read"
        assert second.json()["data"]["inquiry"]["status"] == "read"

    def test_fetch_by_non_owner_does_not_mark_read(self, test_client, test_db, test_business, other_headers):
        inquiry_id = self._create(test_client, test_business.id)

        response = test_client.get(f"/api/v1/inquiries/{inquiry_id}", headers=other_headers)

        assert response.status_code == 403
        assert test_db.get(CustomerInquiry, inquiry_id).status == "new"

    def test_respond(self, test_client, test_db, test_business, auth_headers, dispatcher):
        inquiry_id = self._create(test_client, test_business.id)

        response = test_client.put(
            f"/api/v1/inquiries/{inquiry_id}/respond",
            json={"responseMessage": "Thanks, we will call you today."},
            headers=auth_headers
        )

        assert response.status_code == 200
        inquiry = response.json()["data"]["inquiry"]
        assert inquiry["status"] == "responded"
        assert inquiry["responseMessage"] == "Thanks, we will call you today."
        assert inquiry["respondedAt"] is not None
        dispatcher.notify_inquiry_responded.assert_called_once_with(inquiry_id)

        test_db.expire_all()
        assert float(test_db.get(Business, test_business.id).response_rate) == 100.0

    def test_respond_too_short(self, test_client, test_business, auth_headers):
        inquiry_id = self._create(test_client, test_business.id)

        response = test_client.put(
            f"/api/v1/inquiries/{inquiry_id}/respond",
            json={"responseMessage": "ok"},
            headers=auth_headers
        )

        assert response.status_code == 400

    def test_status_and_priority_update(self, test_client, test_business, auth_headers):
        inquiry_id = self._create(test_client, test_business.id)

        response = test_client.put(
            f"/api/v1/inquiries/{inquiry_id}/status",
            json={"status": "closed", "priority": "high"},
            headers=auth_headers
        )

        assert response.status_code == 200
        inquiry = response.json()["data"]["inquiry"]
        assert inquiry["status"] == "closed"
        assert inquiry["priority"] == "high"

    def test_invalid_status(self, test_client, test_business, auth_headers):
        inquiry_id = self._create(test_client, test_business.id)

        response = test_client.put(
            f"/api/v1/inquiries/{inquiry_id}/status",
            json={"status": "archived"},
            headers=auth_headers
        )

        assert response.status_code == 400

    def test_unknown_inquiry(self, test_client, auth_headers, test_business):
        response = test_client.get("/api/v1/inquiries/does-not-exist", headers=auth_headers)
        assert response.status_code == 404
