from datetime import datetime
from typing import Dict

from fastapi import APIRouter, Request, status

from src.infra.config.redis import get_redis
from src.infra.config.settings import settings

router = APIRouter()


async def check_redis_health() -> Dict[str, str]:
    """Check Redis connection health."""
    try:
        redis_client = await get_redis()
        await redis_client.ping()
        return {"status": "healthy", "message": "Connected"}
    except Exception as e:
        return {"status": "unhealthy", "message": f"Connection failed: {str(e)}"}


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(request: Request):
    """
    Service health with active transfer and WebSocket counts.
    Redis is only checked when transfer rate limiting is enabled.
    """
    services = {"api_gateway": "healthy"}

    registry = getattr(request.app.state, "transfer_registry", None)
    active_transfers = registry.active_count if registry else 0

    ws_clients = 0
    if hasattr(request.app.state, "ws_manager"):
        ws_clients = request.app.state.ws_manager.get_connection_count()
    services["websocket"] = f"{ws_clients} clients connected"

    if settings.TRANSFER_RATE_LIMIT_ENABLED:
        services["redis"] = (await check_redis_health())["status"]

    overall_status = "degraded" if "unhealthy" in services.values() else "healthy"

    config = {"intentService": settings.INTENT_SERVICE_URL}
    if registry:
        config.update({
            "pollIntervalSeconds": registry.config.poll_interval_seconds,
            "maxFundingWaitSeconds": registry.config.max_funding_wait_seconds,
            "maxAutoRetries": registry.config.max_auto_retries
        })

    return {
        "status": overall_status,
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "services": services,
        "activeTransfers": active_transfers,
        "config": config,
        "timestamp": datetime.utcnow().isoformat() + "Z"
    }
