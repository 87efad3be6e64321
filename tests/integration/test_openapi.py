"""
Integration tests for OpenAPI documentation.

Verifies OpenAPI schema is correctly generated for all endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from src.api.main import app


@pytest.fixture
def client() -> TestClient:
    """Create test client for the application (lifespan not started)."""
    return TestClient(app)


@pytest.fixture
def schema(client: TestClient) -> dict:
    return client.get("/openapi.json").json()


class TestOpenAPISchema:
    """Tests for OpenAPI schema generation."""

    def test_openapi_schema_accessible(self, client: TestClient) -> None:
        response = client.get("/openapi.json")
        assert response.status_code == 200
        assert "paths" in response.json()

    def test_title_and_version(self, schema: dict) -> None:
        assert schema["info"]["title"] == "claimverify"
        assert schema["info"]["version"] == "0.1.0"

    @pytest.mark.parametrize(
        ("path", "method"),
        [
            ("/v1/claims", "post"),
            ("/v1/claims/{claim_id}", "get"),
            ("/v1/claims/{claim_id}/domain-choice", "post"),
            ("/v1/claims/{claim_id}/profile", "post"),
            ("/v1/claims/{claim_id}/otp", "post"),
            ("/v1/claims/{claim_id}/otp/verify", "post"),
            ("/v1/claims/{claim_id}/cancel", "post"),
            ("/v1/claims/tracking/{tracking_number}", "get"),
            ("/v1/admin/claims", "get"),
            ("/v1/admin/claims/expire-stale", "post"),
        ],
    )
    def test_endpoint_documented(self, schema: dict, path: str, method: str) -> None:
        assert method in schema["paths"][path]

    def test_verify_documents_failure_codes(self, schema: dict) -> None:
        responses = schema["paths"]["/v1/claims/{claim_id}/otp/verify"]["post"]["responses"]
        for code in ("400", "404", "409", "410", "423"):
            assert code in responses

    def test_verify_request_schema(self, schema: dict) -> None:
        props = schema["components"]["schemas"]["VerifyOtpRequest"]["properties"]
        assert props["code"]["pattern"] == r"^\d{6}$"

    def test_tags(self, schema: dict) -> None:
        assert {tag["name"] for tag in schema["tags"]} == {"v1", "admin"}

    def test_admin_endpoints_tagged(self, schema: dict) -> None:
        assert schema["paths"]["/v1/admin/claims"]["get"]["tags"] == ["admin"]

    def test_docs_endpoint_accessible(self, client: TestClient) -> None:
        response = client.get("/docs")
        assert response.status_code == 200
