"""Polls a wallet balance until a funding requirement is met."""

import asyncio
import time
from typing import AsyncIterator, Callable, Optional

from src.core.exceptions.base import FundingTimeoutError, TransportError
from src.core.logger.logger import get_logger
from src.core.service.transfer.balance_probe import BalanceProbe
from src.core.service.transfer.models import BalanceSample, FundingContext

logger = get_logger(__name__)


class FundingWaiter:
    """
    Produces balance samples for a FundingContext.

    Each call to ``watch`` starts a fresh polling sequence. The sequence ends
    right after the first sample that satisfies the context, ends silently
    once ``cancel_event`` is set, and raises FundingTimeoutError when
    ``max_wait`` seconds pass without sufficient funds.
    """

    def __init__(
        self,
        probe: BalanceProbe,
        poll_interval: float,
        max_wait: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if max_wait <= 0:
            raise ValueError("max_wait must be positive")
        self.probe = probe
        self.poll_interval = poll_interval
        self.max_wait = max_wait
        self._clock = clock

    async def watch(
        self,
        context: FundingContext,
        cancel_event: Optional[asyncio.Event] = None,
        wake_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[BalanceSample]:
        """
        Yield one BalanceSample per successful probe.

        Args:
            context: Address, token and required amount to watch
            cancel_event: Set by the owner to stop polling
            wake_event: Set by the owner to skip the current delay

        Raises:
            FundingTimeoutError: If the maximum wait elapses first
        """
        cancel_event = cancel_event or asyncio.Event()
        wake_event = wake_event or asyncio.Event()
        started = self._clock()
        log_context = {
            "wallet_address": context.walletAddress,
            "token": context.token,
            "required_amount": str(context.requiredAmount),
        }
        logger.info("Waiting for funding", extra=log_context)

        while not cancel_event.is_set():
            elapsed = self._clock() - started
            if elapsed >= self.max_wait:
                logger.warning("Funding wait timed out", extra={**log_context, "waited_seconds": elapsed})
                raise FundingTimeoutError(elapsed, self.max_wait)

            try:
                amount = await self.probe.check(context.walletAddress, context.token)
            except TransportError as e:
                # Best-effort: keep polling
                logger.warning(
                    "Balance probe failed, retrying next interval",
                    extra={**log_context, "reason": e.reason, "error": e.message}
                )
            else:
                if cancel_event.is_set():
                    break
                sample = BalanceSample(token=context.token, amount=amount)
                yield sample
                if context.is_satisfied_by(sample):
                    logger.info("Funding requirement met", extra={**log_context, "balance": str(amount)})
                    return

            remaining = self.max_wait - (self._clock() - started)
            await self._pause(cancel_event, wake_event, max(0.0, min(self.poll_interval, remaining)))

        logger.info("Funding wait cancelled", extra=log_context)

    @staticmethod
    async def _pause(cancel_event: asyncio.Event, wake_event: asyncio.Event, timeout: float) -> None:
        """Sleep for ``timeout`` unless cancelled or woken earlier."""
        waiters = [
            asyncio.ensure_future(cancel_event.wait()),
            asyncio.ensure_future(wake_event.wait()),
        ]
        try:
            await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                waiter.cancel()
        wake_event.clear()
