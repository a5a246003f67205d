"""
Integration tests for the analytics endpoints
"""
from datetime import timedelta

from directory_api.db.models import Business, BusinessAnalytics
from directory_api.services.analytics_aggregator import utc_today


class TestRecordEventEndpoint:

    def test_records_event_without_auth(self, test_client, test_db, test_business):
        for _ in range(3):
            response = test_client.post(
                f"/api/v1/analytics/{test_business.id}/event",
                json={"eventType": "page_view"}
            )
            assert response.status_code == 200
            assert response.json()["success"] is True

        row = test_db.query(BusinessAnalytics).filter(BusinessAnalytics.business_id == test_business.id).one()
        assert row.page_views == 3
        assert row.date == utc_today()

        test_db.expire_all()
        assert test_db.get(Business, test_business.id).view_count == 3

    def test_unknown_event_type(self, test_client, test_business):
        response = test_client.post(
            f"/api/v1/analytics/{test_business.id}/event",
            json={"eventType": "mouse_hover"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unknown_business(self, test_client):
        response = test_client.post("/api/v1/analytics/missing/event", json={"eventType": "page_view"})
        assert response.status_code == 404


class TestReportingEndpoints:

    def _seed(self, db, business_id):
        today = utc_today()
        db.add(BusinessAnalytics(business_id=business_id, date=today, page_views=20, contact_clicks=2))
        db.add(BusinessAnalytics(business_id=business_id, date=today - timedelta(days=10), page_views=10))
        db.commit()

    def test_overview(self, test_client, test_db, test_business, auth_headers):
        self._seed(test_db, test_business.id)

        response = test_client.get(f"/api/v1/analytics/{test_business.id}/overview", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["weeklyStats"]["totalPageViews"] == 20
        assert data["monthlyStats"]["totalPageViews"] == 30
        assert data["monthlyStats"]["avgDailyViews"] == 1.0
        assert data["growthStats"]["monthlyViewsGrowth"] == 100.0
        assert len(data["dailyData"]) == 30
        assert data["summary"]["conversionRate"] == 6.67

    def test_detailed_defaults_to_last_thirty_days(self, test_client, test_db, test_business, auth_headers):
        self._seed(test_db, test_business.id)

        response = test_client.get(f"/api/v1/analytics/{test_business.id}/detailed", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data["analyticsData"]) == 2
        assert data["totals"]["totalPageViews"] == 30
        assert data["averages"]["avgDailyViews"] == 15.0
        assert data["period"]["endDate"] == utc_today().isoformat()

    def test_detailed_explicit_range(self, test_client, test_db, test_business, auth_headers):
        self._seed(test_db, test_business.id)
        today = utc_today()

        response = test_client.get(
            f"/api/v1/analytics/{test_business.id}/detailed",
            params={"startDate": today.isoformat(), "endDate": today.isoformat()},
            headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["totals"]["totalPageViews"] == 20

    def test_detailed_reversed_range(self, test_client, test_business, auth_headers):
        today = utc_today()
        response = test_client.get(
            f"/api/v1/analytics/{test_business.id}/detailed",
            params={"startDate": today.isoformat(), "endDate": (today - timedelta(days=1)).isoformat()},
            headers=auth_headers
        )
        assert response.status_code == 400

    def test_performance(self, test_client, test_db, test_business, auth_headers):
        self._seed(test_db, test_business.id)

        response = test_client.get(f"/api/v1/analytics/{test_business.id}/performance", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["activeDays"] == 2
        assert data["peakDailyViews"] == 20
        assert data["avgDailyViews"] == 15.0

    def test_reports_are_owner_only(self, test_client, test_business, other_headers):
        for view in ("overview", "detailed", "performance"):
            response = test_client.get(f"/api/v1/analytics/{test_business.id}/{view}", headers=other_headers)
            assert response.status_code == 403
