"""Transfer controller: HTTP-facing operations on per-user orchestrators."""

from typing import Optional

from src.core.exceptions.base import RateLimitExceededError
from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.service.transfer.balance_probe import BalanceProbe
from src.core.service.transfer.models import BalanceCheckResponse, TransferRequest, TransferStatus
from src.core.service.transfer.rate_limiter import TransferRateLimiter
from src.core.service.transfer.session_registry import TransferSessionRegistry
from src.core.service.transfer.token_resolver import resolve_token
from src.core.logger.logger import logger


class TransferController:
    """Controller for transfer operations."""

    def __init__(
        self,
        registry: TransferSessionRegistry,
        probe: BalanceProbe,
        rate_limiter: Optional[TransferRateLimiter] = None
    ):
        self.registry = registry
        self.probe = probe
        self.rate_limiter = rate_limiter

    async def submit(self, request: TransferRequest) -> TransferStatus:
        """
        Start a transfer attempt in the background.

        Args:
            request: Natural-language transfer request

        Returns:
            TransferStatus right after the attempt was claimed

        Raises:
            RateLimitExceededError: If the user's daily cap is used up
            AlreadyInProgressError: If the user already has a live attempt
        """
        logger.info("Transfer submission received", extra={"user_id": request.userId})

        if self.rate_limiter:
            rate_limit_check = await self.rate_limiter.check_rate_limit(request.userId)
            if not rate_limit_check["allowed"]:
                raise RateLimitExceededError(rate_limit_check["rate_limit_info"])

        status = self.registry.start(request)

        if self.rate_limiter:
            await self.rate_limiter.increment_count(request.userId)

        return status

    def get_status(self, user_id: str) -> TransferStatus:
        return self.registry.status(user_id)

    def cancel(self, user_id: str) -> TransferStatus:
        logger.info("Transfer cancel requested", extra={"user_id": user_id})
        return self.registry.cancel(user_id)

    def acknowledge_funding(self, user_id: str) -> TransferStatus:
        logger.info("Funds-received notification", extra={"user_id": user_id})
        return self.registry.acknowledge_funding(user_id)

    async def check_balance(self, address: str, token: Optional[str] = None) -> BalanceCheckResponse:
        """
        Check a wallet balance once.

        Raises:
            ServiceError: If the address is blank
            TransportError: If the balance backend could not be reached
        """
        if not address or not address.strip():
            raise ServiceError(
                code=ServiceErrorCode.MISSING_FIELD,
                message="Missing required parameter: address",
                status_code=400
            )

        config = self.registry.config
        symbol = resolve_token(token, "", tokens=config.supported_tokens, native_token=config.native_token)
        balance = await self.probe.check(address.strip(), symbol)
        return BalanceCheckResponse(address=address.strip(), token=symbol, balance=balance)
