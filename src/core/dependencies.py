"""
FastAPI dependency injection functions.
Services live on app.state and are resolved per request through FastAPI's native DI system.
"""

from typing import Optional
from fastapi import Depends, Request

from src.api.controller.transfer.transfer_controller import TransferController
from src.core.service.transfer.balance_probe import BalanceProbe
from src.core.service.transfer.rate_limiter import TransferRateLimiter
from src.core.service.transfer.session_registry import TransferSessionRegistry


def get_transfer_registry(request: Request) -> TransferSessionRegistry:
    """Get the per-user orchestrator registry."""
    return request.app.state.transfer_registry


def get_balance_probe(request: Request) -> BalanceProbe:
    """Get the balance probe shared with the orchestrators."""
    return request.app.state.balance_probe


def get_transfer_rate_limiter(request: Request) -> Optional[TransferRateLimiter]:
    """Get the Redis rate limiter, or None when rate limiting is disabled."""
    return getattr(request.app.state, "transfer_rate_limiter", None)


def get_transfer_controller(
    registry: TransferSessionRegistry = Depends(get_transfer_registry),
    probe: BalanceProbe = Depends(get_balance_probe),
    rate_limiter: Optional[TransferRateLimiter] = Depends(get_transfer_rate_limiter)
) -> TransferController:
    """Get transfer controller with registry, probe and rate limiter dependencies."""
    return TransferController(registry, probe, rate_limiter)
