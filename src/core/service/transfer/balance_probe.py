"""
Client for the balance-check endpoint.
"""

from decimal import Decimal
from typing import Optional

import httpx

from src.core.service.transfer.backend_client import BackendClient
from src.core.service.transfer.normalizer import to_decimal
from src.infra.config.settings import get_settings

settings = get_settings()


class BalanceProbe(BackendClient):
    """Reads a wallet's balance for one token"""

    service = "balance"

    def __init__(self, client: Optional[httpx.AsyncClient] = None, path: Optional[str] = None):
        super().__init__(client)
        self.path = path or settings.BALANCE_CHECK_PATH

    async def check(self, address: str, token: str) -> Decimal:
        """
        Get the current balance of ``address`` in ``token``.

        An unknown address or token, ``success: false`` and a missing or
        non-numeric balance all read as zero, which is a meaningful answer
        for a funding wait. Numeric strings are not numbers here.

        Raises:
            TransportError: If the endpoint cannot be reached
        """
        log_context = {"address": address, "token": token}
        payload = await self._post_json(self.path, {"address": address, "token": token}, log_context)

        if payload.get("success") is not True:
            self.logger.warning(
                "Balance check unsuccessful, treating as zero",
                extra={**log_context, "error": payload.get("error")}
            )
            return Decimal(0)

        data = payload.get("data")
        raw_balance = data.get("balance") if isinstance(data, dict) else None
        balance = to_decimal(raw_balance) if isinstance(raw_balance, (int, float)) else None
        if balance is None:
            self.logger.warning("Balance missing or non-numeric, treating as zero", extra=log_context)
            return Decimal(0)

        if balance < 0:
            self.logger.warning(
                "Negative balance reported, clamping to zero",
                extra={**log_context, "balance": str(balance)}
            )
            return Decimal(0)

        return balance
