from fastapi.testclient import TestClient

from src.app import create_app
from src.infra.config.settings import settings

client = TestClient(create_app())


def test_health_check_contract():
    """Contract test for health check endpoint
    Verifies the response schema and format matches the API contract
    """
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()

    # Schema validation
    assert isinstance(data, dict)
    for field in ("status", "service", "version", "services", "activeTransfers", "timestamp"):
        assert field in data

    # Value validation
    assert data["status"] in ["healthy", "degraded"]
    assert data["service"] == settings.APP_NAME
    assert data["activeTransfers"] == 0
    assert data["services"]["websocket"] == "0 clients connected"
