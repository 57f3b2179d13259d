import json
from datetime import datetime
from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.infra.config.settings import settings
from src.core.logger.logger import logger
from src.api.router import health, transfer, websocket
from src.api.middleware.logging.request_logging import RequestLoggingMiddleware
from src.core.exceptions.handler import ServiceError, GlobalErrorHandler
from src.core.service.transfer.balance_probe import BalanceProbe
from src.core.service.transfer.intent_gateway import IntentGateway
from src.core.service.transfer.orchestrator import OrchestratorConfig
from src.core.service.transfer.session_registry import TransferSessionRegistry
from src.core.service.websocket.manager import ConnectionManager


def create_app(
    gateway: Optional[IntentGateway] = None,
    probe: Optional[BalanceProbe] = None,
    orchestrator_config: Optional[OrchestratorConfig] = None,
) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="""
Natural-language token transfers with insufficient-funds recovery.

## Flow
- **Submit**: `POST /api/v1/transfer` with a message such as "Send 100 TON to Samir"
- **Funding**: when the wallet balance is short the attempt waits, polling the balance
- **Retry**: once funds arrive the original request is resubmitted automatically
- **Events**: subscribe to `/ws/transfers/{userId}` for every state change
        """,
        version=settings.APP_VERSION,
        docs_url="/",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
        max_age=600,  # 10 minutes
    )

    # Request logging middleware (should be first to catch all requests)
    app.add_middleware(RequestLoggingMiddleware)

    # Add centralized error handlers
    app.add_exception_handler(ServiceError, GlobalErrorHandler.service_error_handler)
    app.add_exception_handler(StarletteHTTPException, GlobalErrorHandler.http_exception_handler)
    app.add_exception_handler(RequestValidationError, GlobalErrorHandler.validation_error_handler)
    app.add_exception_handler(Exception, GlobalErrorHandler.general_exception_handler)

    # Include routers
    app.include_router(health.router, prefix="/api/v1")
    app.include_router(transfer.router, prefix="/api/v1")
    app.include_router(websocket.router)  # /ws/transfers/{user_id}

    # Transfer services
    app.state.ws_manager = ConnectionManager()
    app.state.balance_probe = probe or BalanceProbe()
    app.state.transfer_registry = TransferSessionRegistry(
        gateway or IntentGateway(),
        app.state.balance_probe,
        config=orchestrator_config,
        listeners=[app.state.ws_manager.publish],
    )

    if settings.TRANSFER_RATE_LIMIT_ENABLED:
        from src.core.service.transfer.rate_limiter import TransferRateLimiter
        app.state.transfer_rate_limiter = TransferRateLimiter()

    if settings.TRANSFER_ACTIVITY_LOGGING_ENABLED:
        from src.core.service.transfer.activity_recorder import TransferActivityRecorder
        app.state.transfer_registry.add_listener(TransferActivityRecorder())

    @app.on_event("startup")
    async def startup_event():
        logger.info(json.dumps({
            "message": "Starting transfer service",
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "intent_service": settings.INTENT_SERVICE_URL
        }))

        if settings.TRANSFER_ACTIVITY_LOGGING_ENABLED:
            try:
                from src.infra.database import get_database_manager
                await get_database_manager().connect()
            except Exception as e:
                logger.error(f"Failed to initialize activity database on startup: {str(e)}")

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.transfer_registry.shutdown()

        if settings.TRANSFER_RATE_LIMIT_ENABLED:
            from src.infra.config.redis import close_redis
            await close_redis()

        if settings.TRANSFER_ACTIVITY_LOGGING_ENABLED:
            from src.infra.database import get_database_manager
            await get_database_manager().close()

        logger.info(json.dumps({
            "message": "Shutting down transfer service",
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION
        }))

    return app
