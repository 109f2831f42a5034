"""
Tests for health probes: liveness only, never any AWS work
"""

from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, Mock

from cloud_cost.config.settings import Settings
from cloud_cost.main import create_app
from cloud_cost.middleware.authentication import HeaderPresenceAuthorizer


def make_client():
    service = Mock()
    service.accounts = [Mock(), Mock(), Mock()]
    service.authorizer = HeaderPresenceAuthorizer("x-amzn-iam-arn")
    service.cache = None
    service.handle_report_request = AsyncMock()
    app = create_app(Settings(), service)
    return TestClient(app), service


class TestHealthProbes:
    def test_health(self):
        client, service = make_client()
        with client:
            response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["accounts"] == 3
        assert body["auth_mode"] == "header-presence"
        service.handle_report_request.assert_not_called()

    def test_health_needs_no_trust_header(self):
        client, _ = make_client()
        with client:
            assert client.get("/health/").status_code == 200

    def test_liveness(self):
        client, service = make_client()
        with client:
            body = client.get("/health/liveness").json()

        assert set(body) == {"status", "timestamp"}
        assert body["status"] == "alive"
        service.handle_report_request.assert_not_called()

    def test_readiness(self):
        client, _ = make_client()
        with client:
            assert client.get("/health/readiness").json()["status"] == "ready"

    def test_root(self):
        client, _ = make_client()
        with client:
            assert client.get("/").json()["report"] == "/report/aws"
