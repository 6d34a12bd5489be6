"""Integration tests for the limits API and HTTP throttling."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from ratekit.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from ratekit.core import rate_limit as rate_limit_module
from ratekit.core.app_factory import create_app
from ratekit.core.config import settings


@pytest.fixture
def client() -> TestClient:
    return TestClient(create_app())


@pytest.fixture
def fixed_window(monkeypatch: pytest.MonkeyPatch):
    """Configure a small fixed-window policy for the duration of a test."""

    def _configure(max_requests: int = 2, time_window_ms: int = 60000, include_headers: bool = True) -> None:
        monkeypatch.setattr(settings.rate_limit, "enabled", True)
        monkeypatch.setattr(settings.rate_limit, "strategy", "fixed_window")
        monkeypatch.setattr(settings.rate_limit, "max_requests", max_requests)
        monkeypatch.setattr(settings.rate_limit, "time_window_ms", time_window_ms)
        monkeypatch.setattr(settings.rate_limit, "include_headers", include_headers)

    return _configure


class TestHealth:
    def test_health_is_never_throttled(self, client: TestClient, fixed_window) -> None:
        fixed_window(max_requests=1)

        for _ in range(5):
            response = client.get("/health")
            assert response.status_code == 200
            assert response.json() == {"status": "ok"}


class TestThrottling:
    """Per-client throttling of protected routes."""

    def test_blocks_after_max_requests(self, client: TestClient, fixed_window) -> None:
        fixed_window(max_requests=2)

        assert client.get("/v1/limits/policy").status_code == 200
        assert client.get("/v1/limits/policy").status_code == 200

        blocked = client.get("/v1/limits/policy")
        assert blocked.status_code == 429
        body = blocked.json()
        assert body["error"]["code"] == "rate_limit_exceeded"
        assert "Rate limit exceeded" in body["error"]["message"]
        assert "request_id" in body["error"]
        assert blocked.headers["X-RateLimit-Limit"] == "2"
        assert blocked.headers["X-RateLimit-Remaining"] == "0"
        assert int(blocked.headers["Retry-After"]) >= 1

    def test_headers_can_be_disabled(self, client: TestClient, fixed_window) -> None:
        fixed_window(max_requests=1, include_headers=False)

        client.get("/v1/limits/policy")
        blocked = client.get("/v1/limits/policy")

        assert blocked.status_code == 429
        assert "Retry-After" not in blocked.headers
        assert "X-RateLimit-Limit" not in blocked.headers

    def test_isolated_by_client_id(self, client: TestClient, fixed_window) -> None:
        fixed_window(max_requests=1)

        assert client.get("/v1/limits/policy", headers={"X-Client-ID": "alice"}).status_code == 200
        assert client.get("/v1/limits/policy", headers={"X-Client-ID": "alice"}).status_code == 429

        assert client.get("/v1/limits/policy", headers={"X-Client-ID": "bob"}).status_code == 200
        # Without a client id the caller is keyed by IP, a separate budget.
        assert client.get("/v1/limits/policy").status_code == 200

    def test_disabled_never_blocks(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings.rate_limit, "enabled", False)
        monkeypatch.setattr(settings.rate_limit, "max_requests", 1)

        for _ in range(5):
            assert client.get("/v1/limits/policy").status_code == 200

    def test_uses_injected_limiter(self, client: TestClient, fixed_window, monkeypatch: pytest.MonkeyPatch) -> None:
        fixed_window(max_requests=1)
        now = {"ms": 0.0}
        limiter = FixedWindowRateLimiter(max_requests=1, time_window_ms=1000, clock=lambda: now["ms"])
        monkeypatch.setattr(rate_limit_module, "get_rate_limiter", lambda: limiter)

        assert client.get("/v1/limits/policy").status_code == 200
        assert client.get("/v1/limits/policy").status_code == 429

        now["ms"] = 1000.0
        assert client.get("/v1/limits/policy").status_code == 200

    def test_token_bucket_strategy(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings.rate_limit, "enabled", True)
        monkeypatch.setattr(settings.rate_limit, "strategy", "token_bucket")
        monkeypatch.setattr(settings.rate_limit, "capacity", 2.0)
        monkeypatch.setattr(settings.rate_limit, "refill_rate", 0.001)

        first = client.get("/v1/limits/policy")
        assert first.status_code == 200
        assert first.json()["strategy"] == "token_bucket"
        assert first.json()["capacity"] == 2.0
        assert first.json()["max_requests"] is None

        assert client.get("/v1/limits/policy").status_code == 200

        blocked = client.get("/v1/limits/policy")
        assert blocked.status_code == 429
        assert blocked.headers["X-RateLimit-Limit"] == "2"


class TestCheckEndpoint:
    """POST /v1/limits/check reports decisions without failing the request."""

    def test_allows_then_denies(self, client: TestClient, fixed_window) -> None:
        fixed_window(max_requests=5)

        decisions = [
            client.post("/v1/limits/check", json={"identifier": "user123"}).json()
            for _ in range(6)
        ]

        assert [d["allowed"] for d in decisions] == [True] * 5 + [False]
        assert decisions[0]["remaining"] == 4
        assert decisions[0]["strategy"] == "fixed_window"
        assert decisions[0]["retry_after_seconds"] is None
        assert decisions[-1]["identifier"] == "user123"
        assert decisions[-1]["remaining"] == 0
        assert decisions[-1]["retry_after_seconds"] > 0

    def test_denial_is_not_an_http_error(self, client: TestClient, fixed_window) -> None:
        fixed_window(max_requests=1)

        client.post("/v1/limits/check", json={"identifier": "u"})
        response = client.post("/v1/limits/check", json={"identifier": "u"})

        assert response.status_code == 200
        assert response.json()["allowed"] is False

    def test_identifiers_are_independent(self, client: TestClient, fixed_window) -> None:
        fixed_window(max_requests=1)

        assert client.post("/v1/limits/check", json={"identifier": "A"}).json()["allowed"] is True
        assert client.post("/v1/limits/check", json={"identifier": "A"}).json()["allowed"] is False
        assert client.post("/v1/limits/check", json={"identifier": "B"}).json()["allowed"] is True

    def test_checks_do_not_consume_http_budget(self, client: TestClient, fixed_window) -> None:
        fixed_window(max_requests=1)

        client.post("/v1/limits/check", json={"identifier": "abc"})

        response = client.get("/v1/limits/policy", headers={"X-Client-ID": "abc"})
        assert response.status_code == 200

    def test_fractional_cost_rejected_for_fixed_window(self, client: TestClient, fixed_window) -> None:
        fixed_window(max_requests=5)

        response = client.post("/v1/limits/check", json={"identifier": "u", "cost": 1.5})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_cost"

    def test_non_positive_cost_is_unprocessable(self, client: TestClient, fixed_window) -> None:
        fixed_window()

        response = client.post("/v1/limits/check", json={"identifier": "u", "cost": 0})

        assert response.status_code == 422

    def test_non_finite_cost_rejected(self, client: TestClient, fixed_window) -> None:
        fixed_window()

        response = client.post(
            "/v1/limits/check",
            content='{"identifier": "u", "cost": 1e999}',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_cost"
        assert response.json()["error"]["details"]["actual_value"] == "inf"

    def test_non_finite_cost_rejected_for_token_bucket(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings.rate_limit, "strategy", "token_bucket")

        response = client.post(
            "/v1/limits/check",
            content='{"identifier": "u", "cost": 1e999}',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_tokens_requested"

    def test_token_bucket_cost(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(settings.rate_limit, "strategy", "token_bucket")
        monkeypatch.setattr(settings.rate_limit, "capacity", 10.0)
        monkeypatch.setattr(settings.rate_limit, "refill_rate", 0.001)

        exact = client.post("/v1/limits/check", json={"identifier": "u", "cost": 10})
        assert exact.json()["allowed"] is True
        assert exact.json()["remaining"] == 0
        assert exact.json()["limit"] == 10.0

        denied = client.post("/v1/limits/check", json={"identifier": "u", "cost": 1})
        assert denied.json()["allowed"] is False
        assert denied.json()["retry_after_seconds"] > 0


class TestPolicyEndpoint:
    def test_reports_fixed_window_policy(self, client: TestClient, fixed_window) -> None:
        fixed_window(max_requests=3, time_window_ms=1500)

        body = client.get("/v1/limits/policy").json()

        assert body == {
            "enabled": True,
            "strategy": "fixed_window",
            "max_requests": 3,
            "time_window_ms": 1500,
            "capacity": None,
            "refill_rate": None,
        }

    def test_openapi_documents_throttling(self, client: TestClient) -> None:
        schema = client.get("/openapi.json").json()

        operation = schema["paths"]["/v1/limits/policy"]["get"]
        assert "429" in operation["responses"]
        assert "200" in operation["responses"]
        assert any(p["name"] == "X-Client-ID" for p in operation["parameters"])
        assert {t["name"] for t in schema["tags"]} >= {"Limits", "Health"}
