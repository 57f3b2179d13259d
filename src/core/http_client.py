"""
Outbound HTTP client settings for the intent and balance backends.

Clients never retry on their own; retry policy lives in the transfer
orchestrator. No module-level client either: callers either inject one
or open a short-lived client per request with ``create_temp_client``.
"""

from typing import Any, Dict, Optional

import httpx

from src.infra.config.settings import get_settings

settings = get_settings()

CONNECT_TIMEOUT = 5.0


class HTTPClientConfig:
    """Builds httpx.AsyncClient keyword arguments per backend service"""

    @staticmethod
    def read_timeout(service: str) -> float:
        if service == "intent":
            return settings.HTTP_INTENT_TIMEOUT
        if service == "balance":
            return settings.HTTP_BALANCE_TIMEOUT
        return settings.HTTP_DEFAULT_TIMEOUT

    @classmethod
    def timeout(cls, service: str, override: Optional[float] = None) -> httpx.Timeout:
        read = override or cls.read_timeout(service)
        return httpx.Timeout(read, connect=min(CONNECT_TIMEOUT, read))

    @staticmethod
    def headers() -> Dict[str, str]:
        return {
            "User-Agent": f"{settings.APP_NAME}/{settings.APP_VERSION}",
            "Accept": "application/json",
        }

    @classmethod
    def client_kwargs(cls, service: str = "default", timeout: Optional[float] = None) -> Dict[str, Any]:
        return {
            "base_url": settings.INTENT_SERVICE_URL,
            "timeout": cls.timeout(service, timeout),
            "limits": httpx.Limits(
                max_connections=settings.HTTP_MAX_CONNECTIONS,
                max_keepalive_connections=settings.HTTP_MAX_KEEPALIVE_CONNECTIONS
            ),
            "headers": cls.headers(),
            "follow_redirects": False,
        }


def create_temp_client(service: str = "default", **overrides) -> httpx.AsyncClient:
    """
    Open a client for one request; use it as ``async with``.

    Args:
        service: "intent", "balance" or "default", selects the read timeout
        **overrides: Extra httpx.AsyncClient arguments
    """
    kwargs = HTTPClientConfig.client_kwargs(service)
    kwargs.update(overrides)
    return httpx.AsyncClient(**kwargs)
