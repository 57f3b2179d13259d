"""
Shared JSON-over-HTTP plumbing for the intent and balance backends.
"""

from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from src.core.exceptions.base import TransportError
from src.core.http_client import create_temp_client
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class BackendClient:
    """POSTs JSON to the backend and returns the decoded object body.

    Anything that prevents a well-formed JSON object from coming back is a
    TransportError. Status codes below 500 that carry a JSON object are
    returned as-is, since the backend reports business failures that way.
    """

    service = "default"

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        # Injected clients are owned by the caller and never closed here
        self._client = client
        self.logger = logger

    async def _post_json(self, path: str, body: Dict[str, Any], log_context: Dict[str, Any]) -> Dict[str, Any]:
        if self._client is not None:
            return await self._send(self._client, path, body, log_context)

        async with create_temp_client(self.service) as client:
            return await self._send(client, path, body, log_context)

    async def _send(
        self,
        client: httpx.AsyncClient,
        path: str,
        body: Dict[str, Any],
        log_context: Dict[str, Any],
    ) -> Dict[str, Any]:
        start_time = datetime.utcnow()

        try:
            response = await client.post(path, json=body)
        except httpx.TimeoutException:
            self.logger.error(
                f"{self.service} backend timeout",
                extra={**log_context, "path": path}
            )
            raise TransportError(
                TransportError.TIMEOUT,
                f"Request to {self.service} backend timed out",
                service=self.service,
            )
        except httpx.RequestError as e:
            self.logger.error(
                f"{self.service} backend connection error",
                extra={**log_context, "path": path, "error": str(e)}
            )
            raise TransportError(
                TransportError.CONNECTION,
                f"Failed to connect to {self.service} backend: {str(e)}",
                service=self.service,
            )

        duration = (datetime.utcnow() - start_time).total_seconds()
        self.logger.debug(
            f"{self.service} backend response received",
            extra={**log_context, "status_code": response.status_code, "duration_seconds": duration}
        )

        if response.status_code >= 500:
            self.logger.error(
                f"{self.service} backend returned error status",
                extra={
                    **log_context,
                    "status_code": response.status_code,
                    "response_text": response.text[:500]  # First 500 chars
                }
            )
            raise TransportError(
                TransportError.HTTP_STATUS,
                f"{self.service} backend error: HTTP {response.status_code}",
                service=self.service,
                http_status=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError:
            self.logger.error(
                f"Non-JSON response from {self.service} backend",
                extra={
                    **log_context,
                    "status_code": response.status_code,
                    "content_type": response.headers.get("content-type", ""),
                    "response_preview": response.text[:200]
                }
            )
            raise TransportError(
                TransportError.INVALID_PAYLOAD,
                f"Failed to parse {self.service} backend response",
                service=self.service,
                http_status=response.status_code,
            )

        if not isinstance(payload, dict):
            raise TransportError(
                TransportError.INVALID_PAYLOAD,
                f"{self.service} backend returned {type(payload).__name__}, expected an object",
                service=self.service,
                http_status=response.status_code,
            )

        return payload
