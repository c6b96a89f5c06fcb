"""Tests for logging middleware."""

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from acpwebhook.api.middleware.logging import LoggingMiddleware


@pytest.fixture
def app_with_logging_middleware():
    """Create FastAPI app with logging middleware."""
    app = FastAPI()
    app.add_middleware(LoggingMiddleware)

    @app.post("/mutate")
    async def mutate_endpoint():
        return {"allowed": True}

    @app.get("/health")
    async def health_endpoint():
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready_endpoint():
        return {"ready": True}

    @app.get("/error")
    async def error_endpoint():
        raise HTTPException(status_code=500, detail="Test error")

    @app.get("/exception")
    async def exception_endpoint():
        raise ValueError("Unexpected error")

    @app.post("/invalid")
    async def invalid_endpoint():
        raise HTTPException(status_code=400, detail="Bad review")

    @app.get("/metrics")
    async def metrics_endpoint():
        return {}

    return app


def messages(caplog, event):
    return [r.message for r in caplog.records if event in r.message]


@pytest.mark.unit
class TestLoggingMiddlewareRequestLogging:
    """Test request logging."""

    def test_logs_request_start(self, app_with_logging_middleware, caplog):
        client = TestClient(app_with_logging_middleware)

        with caplog.at_level("DEBUG"):
            response = client.post("/mutate", json={})

        assert response.status_code == 200

        started = messages(caplog, "request_started")
        assert len(started) == 1
        assert "POST" in started[0]
        assert "/mutate" in started[0]
        assert "testclient" in started[0]

    def test_logs_request_completion(self, app_with_logging_middleware, caplog):
        client = TestClient(app_with_logging_middleware)

        with caplog.at_level("INFO"):
            client.post("/mutate", json={})

        completed = messages(caplog, "request_completed")
        assert len(completed) == 1
        assert "200" in completed[0]
        assert "duration_seconds" in completed[0]

    def test_start_is_debug_only(self, app_with_logging_middleware, caplog):
        client = TestClient(app_with_logging_middleware)

        with caplog.at_level("INFO"):
            client.post("/mutate", json={})

        assert messages(caplog, "request_started") == []

    def test_logs_request_id(self, app_with_logging_middleware, caplog):
        client = TestClient(app_with_logging_middleware)

        with caplog.at_level("INFO"):
            client.post("/mutate", json={}, headers={"X-Request-ID": "log-test-123"})

        assert any("log-test-123" in msg for msg in messages(caplog, "request_completed"))

    @pytest.mark.parametrize("path", ["/health", "/ready", "/metrics"])
    def test_skips_health_checks(self, app_with_logging_middleware, caplog, path):
        client = TestClient(app_with_logging_middleware)

        with caplog.at_level("DEBUG"):
            response = client.get(path)

        assert response.status_code == 200
        assert "X-Process-Time" not in response.headers
        assert messages(caplog, "request_") == []


@pytest.mark.unit
class TestLoggingMiddlewareTimingHeader:
    """Test X-Process-Time header."""

    def test_adds_timing_header(self, app_with_logging_middleware):
        client = TestClient(app_with_logging_middleware)

        response = client.post("/mutate", json={})

        assert float(response.headers["X-Process-Time"]) >= 0

    def test_timing_header_on_error_responses(self, app_with_logging_middleware):
        client = TestClient(app_with_logging_middleware)

        response = client.get("/error")

        assert response.status_code == 500
        assert "X-Process-Time" in response.headers


@pytest.mark.unit
class TestLoggingMiddlewareErrorLogging:
    """Test error logging.

    HTTPException is handled by FastAPI, so the middleware sees a normal
    response. Unexpected exceptions are logged and re-raised.
    """

    def test_http_exception_is_a_completed_request(self, app_with_logging_middleware, caplog):
        client = TestClient(app_with_logging_middleware)

        with caplog.at_level("INFO"):
            response = client.get("/error")

        assert response.status_code == 500
        assert any("500" in msg for msg in messages(caplog, "request_completed"))

    def test_logs_unexpected_exceptions(self, app_with_logging_middleware, caplog):
        client = TestClient(app_with_logging_middleware, raise_server_exceptions=False)

        with caplog.at_level("ERROR"):
            response = client.get("/exception")

        assert response.status_code == 500
        failed = messages(caplog, "request_failed")
        assert len(failed) == 1
        assert "ValueError" in failed[0]
        assert "Unexpected error" in failed[0]

    def test_client_errors_are_warnings(self, app_with_logging_middleware, caplog):
        client = TestClient(app_with_logging_middleware)

        with caplog.at_level("INFO"):
            response = client.post("/invalid", json={})

        assert response.status_code == 400
        completed = [r for r in caplog.records if "request_completed" in r.message]
        assert len(completed) == 1
        assert completed[0].levelname == "WARNING"

    def test_success_is_info(self, app_with_logging_middleware, caplog):
        client = TestClient(app_with_logging_middleware)

        with caplog.at_level("INFO"):
            client.post("/mutate", json={})

        completed = [r for r in caplog.records if "request_completed" in r.message]
        assert completed[0].levelname == "INFO"


@pytest.mark.unit
class TestLoggingMiddlewareRequestId:
    """Test X-Request-ID propagation."""

    def test_echoes_request_id(self, app_with_logging_middleware):
        client = TestClient(app_with_logging_middleware)

        response = client.post("/mutate", json={}, headers={"X-Request-ID": "abc-123"})

        assert response.headers["X-Request-ID"] == "abc-123"

    def test_generates_request_id(self, app_with_logging_middleware, caplog):
        client = TestClient(app_with_logging_middleware)

        with caplog.at_level("INFO"):
            response = client.post("/mutate", json={})

        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 32
        assert request_id in messages(caplog, "request_completed")[0]

    def test_request_ids_differ(self, app_with_logging_middleware):
        client = TestClient(app_with_logging_middleware)

        first = client.post("/mutate", json={}).headers["X-Request-ID"]
        second = client.post("/mutate", json={}).headers["X-Request-ID"]

        assert first != second

    def test_health_checks_get_no_request_id(self, app_with_logging_middleware):
        client = TestClient(app_with_logging_middleware)

        assert "X-Request-ID" not in client.get("/health").headers
