import logging

import pytest
from fastapi.testclient import TestClient

from src.app import create_app


@pytest.fixture
def client():
    """Create a new test client for each test"""
    return TestClient(create_app())


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """Setup logging to capture logs in tests"""
    caplog.set_level(logging.INFO)


def request_records(caplog):
    return [r for r in caplog.records if r.getMessage() == "Request completed"]


def test_request_logging_with_correlation_id(client, caplog):
    """API requests are logged with the caller's correlation ID"""
    correlation_id = "test-correlation-id"
    response = client.get("/api/v1/health", headers={"X-Request-ID": correlation_id})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == correlation_id

    record = next(r for r in request_records(caplog) if r.request_id == correlation_id)
    assert record.method == "GET"
    assert record.path == "/api/v1/health"
    assert record.status_code == 200
    assert record.duration_ms >= 0


def test_correlation_id_generated_when_missing(client, caplog):
    response = client.get("/api/v1/transfer/alice")

    generated = response.headers["X-Request-ID"]
    assert len(generated) == 36
    assert any(r.request_id == generated for r in request_records(caplog))


def test_error_responses_are_logged(client, caplog):
    response = client.post("/api/v1/transfer/alice/cancel", headers={"X-Request-ID": "conflict-id"})

    assert response.status_code == 409
    record = next(r for r in request_records(caplog) if r.request_id == "conflict-id")
    assert record.status_code == 409
