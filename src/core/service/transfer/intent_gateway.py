"""
Client for the intent processing endpoint.
"""

from typing import Optional

import httpx

from src.core.service.transfer.backend_client import BackendClient
from src.core.service.transfer.models import IntentOutcome, TransferRequest
from src.core.service.transfer.normalizer import normalize_intent_response
from src.infra.config.settings import get_settings

settings = get_settings()


class IntentGateway(BackendClient):
    """Sends a natural-language transfer request and normalizes the answer"""

    service = "intent"

    def __init__(self, client: Optional[httpx.AsyncClient] = None, path: Optional[str] = None):
        super().__init__(client)
        self.path = path or settings.INTENT_PROCESS_PATH

    async def process(self, request: TransferRequest) -> IntentOutcome:
        """
        Submit a transfer request to the intent endpoint.

        Args:
            request: Message and user identifier

        Returns:
            The normalized IntentOutcome. Business-level failures, including
            insufficient funds, are returned, not raised.

        Raises:
            TransportError: On timeout, connection failure, HTTP 5xx or a
                body that is not a JSON object
        """
        log_context = {"user_id": request.userId}
        self.logger.info(
            "Sending transfer intent",
            extra={**log_context, "path": self.path, "message_length": len(request.message)}
        )

        payload = await self._post_json(
            self.path,
            {"message": request.message, "userId": request.userId},
            log_context,
        )
        outcome = normalize_intent_response(payload)

        self.logger.info(
            "Intent outcome received",
            extra={**log_context, "outcome": outcome.kind}
        )
        return outcome
