"""
Tests for the error envelope and the database error classification
"""
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError, OperationalError

from directory_api.core.app_factory import AppConfig, create_app
from directory_api.core.exceptions import (
    AppError,
    ConflictError,
    NotFoundError,
    classify_integrity_error,
    error_body,
)


class _PgError(Exception):
    def __init__(self, pgcode):
        super().__init__("constraint violated")
        self.pgcode = pgcode


def _integrity(orig) -> IntegrityError:
    return IntegrityError("INSERT INTO businesses ...", {}, orig)


class TestClassifyIntegrityError:

    @pytest.mark.parametrize("pgcode,status,code", [
        ("23505", 409, "DUPLICATE_ENTRY"),
        ("23503", 400, "INVALID_REFERENCE"),
        ("23502", 400, "MISSING_REQUIRED_FIELD"),
        ("23514", 400, "CONSTRAINT_VIOLATION"),
    ])
    def test_postgres_codes(self, pgcode, status, code):
        mapped = classify_integrity_error(_integrity(_PgError(pgcode)))
        assert (mapped.status_code, mapped.code) == (status, code)

    def test_sqlite_messages(self):
        mapped = classify_integrity_error(_integrity(Exception("UNIQUE constraint failed: businesses.slug")))
        assert mapped.status_code == 409

        mapped = classify_integrity_error(_integrity(Exception("FOREIGN KEY constraint failed")))
        assert mapped.code == "INVALID_REFERENCE"


class TestErrorBody:

    def test_envelope_shape(self):
        body = error_body("NOT_FOUND", "Business not found")

        assert body["success"] is False
        assert body["error"] == {"code": "NOT_FOUND", "message": "Business not found"}
        assert "timestamp" in body

    def test_stack_only_when_requested(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError as e:
            hidden = error_body("INTERNAL_ERROR", "x", exc=e)
            shown = error_body("INTERNAL_ERROR", "x", exc=e, include_stack=True)

        assert "stack" not in hidden["error"]
        assert "RuntimeError: boom" in shown["error"]["stack"]

    def test_subclass_defaults(self):
        assert NotFoundError("x").status_code == 404
        assert ConflictError("x").code == "DUPLICATE_ENTRY"
        assert AppError("x", status_code=418, code="TEAPOT").status_code == 418


class TestExceptionHandlers:

    def test_unknown_route(self, test_client):
        response = test_client.get("/api/v1/nothing-here")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "NOT_FOUND"

    def test_unhandled_error_is_generic_500(self, app, test_business):
        client = TestClient(app, raise_server_exceptions=False)
        with patch("directory_api.api.businesses.get_business_directory_service") as factory:
            factory.return_value.find_by_slug.side_effect = RuntimeError("secret internals")
            response = client.get("/api/v1/businesses/construction/kigali-construction-ltd")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_ERROR"
        assert error["message"] == "Something went wrong. Please try again later."
        assert "stack" not in error
        assert "secret internals" not in response.text

    def test_database_error(self, test_client, test_business):
        with patch("directory_api.api.businesses.get_business_directory_service") as factory:
            factory.return_value.find_by_slug.side_effect = OperationalError("SELECT", {}, Exception("db gone"))
            response = test_client.get("/api/v1/businesses/construction/kigali-construction-ltd")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "DATABASE_ERROR"

    def test_integrity_error_maps_to_conflict(self, test_client, test_business):
        with patch("directory_api.api.businesses.get_business_directory_service") as factory:
            factory.return_value.find_by_slug.side_effect = _integrity(_PgError("23505"))
            response = test_client.get("/api/v1/businesses/construction/kigali-construction-ltd")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_ENTRY"

    def test_development_includes_stack(self, gateway, tmp_path):
        app = create_app(AppConfig(environment="development", uploads_dir=str(tmp_path)), gateway=gateway)
        client = TestClient(app)

        response = client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert "stack" in response.json()["error"]

    def test_development_unhandled_error_keeps_envelope(self, gateway, tmp_path):
        app = create_app(AppConfig(environment="development", uploads_dir=str(tmp_path)), gateway=gateway)
        client = TestClient(app, raise_server_exceptions=False)

        with patch("directory_api.api.businesses.get_business_directory_service") as factory:
            factory.return_value.find_by_slug.side_effect = RuntimeError("boom")
            response = client.get("/api/v1/businesses/construction/missing")

        assert response.status_code == 500
        assert response.headers["content-type"].startswith("application/json")
        error = response.json()["error"]
        assert error["code"] == "INTERNAL_ERROR"
        assert "RuntimeError: boom" in error["stack"]


class TestHealthEndpoints:

    def test_root(self, test_client):
        response = test_client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "operational"

    def test_health(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["database"] == "healthy"
        assert "inquiries" in body["routers"]
