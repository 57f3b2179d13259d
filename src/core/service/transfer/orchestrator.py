"""
Transfer orchestration state machine.

One TransferOrchestrator belongs to one user. It drives a transfer attempt
from submission through an optional funding wait and bounded automatic
retries to a terminal state, and reports every transition to its listeners:

    idle -> submitting -> succeeded
                       -> failed
                       -> awaiting_funding -> retrying -> submitting ...
                                           -> cancelled
                                           -> failed (funding timeout)
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from src.core.exceptions.base import (
    AlreadyInProgressError,
    FundingTimeoutError,
    InvalidStateError,
    TransportError,
)
from src.core.logger.logger import get_logger
from src.core.service.transfer.balance_probe import BalanceProbe
from src.core.service.transfer.funding_waiter import FundingWaiter
from src.core.service.transfer.intent_gateway import IntentGateway
from src.core.service.transfer.models import (
    BalanceSample,
    BusinessErrorOutcome,
    ExecutedOutcome,
    FailureKind,
    FundingContext,
    InsufficientFundsOutcome,
    IntentOutcome,
    OrchestrationEvent,
    OrchestrationEventType,
    OrchestrationState,
    TransferFailure,
    TransferRequest,
    TransferStatus,
    utc_timestamp,
)
from src.core.service.transfer.token_resolver import resolve_token
from src.infra.config.settings import Settings, get_settings

logger = get_logger(__name__)

EventListener = Callable[[OrchestrationEvent], Awaitable[None]]

State = OrchestrationState

ALLOWED_TRANSITIONS: Dict[OrchestrationState, frozenset] = {
    State.IDLE: frozenset({State.SUBMITTING, State.FAILED, State.CANCELLED}),
    State.SUBMITTING: frozenset({State.SUCCEEDED, State.AWAITING_FUNDING, State.FAILED, State.CANCELLED}),
    State.AWAITING_FUNDING: frozenset({State.RETRYING, State.CANCELLED, State.FAILED}),
    State.RETRYING: frozenset({State.SUBMITTING, State.FAILED, State.CANCELLED}),
}


class OrchestratorConfig(BaseModel):
    """Tunables for funding wait and automatic retry"""
    poll_interval_seconds: float = Field(5.0, gt=0)
    max_funding_wait_seconds: float = Field(900.0, gt=0)
    max_auto_retries: int = Field(3, ge=1)
    retry_delay_seconds: float = Field(0.5, ge=0)
    supported_tokens: List[str] = Field(default_factory=lambda: ["TON", "DUCK", "USDT", "WTON", "SEI", "USDC"])
    native_token: str = "TON"

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "OrchestratorConfig":
        settings = settings or get_settings()
        return cls(
            poll_interval_seconds=settings.FUNDING_POLL_INTERVAL_SECONDS,
            max_funding_wait_seconds=settings.FUNDING_MAX_WAIT_SECONDS,
            max_auto_retries=settings.TRANSFER_MAX_AUTO_RETRIES,
            retry_delay_seconds=settings.TRANSFER_RETRY_DELAY_SECONDS,
            supported_tokens=settings.SUPPORTED_TOKENS,
            native_token=settings.NATIVE_TOKEN_SYMBOL,
        )


class TransferOrchestrator:
    """State machine for one user's transfer attempts."""

    def __init__(
        self,
        user_id: str,
        gateway: IntentGateway,
        probe: BalanceProbe,
        config: Optional[OrchestratorConfig] = None,
        listeners: Optional[Iterable[EventListener]] = None,
    ):
        self.user_id = user_id
        self.gateway = gateway
        self.config = config or OrchestratorConfig.from_settings()
        self.waiter = FundingWaiter(
            probe,
            poll_interval=self.config.poll_interval_seconds,
            max_wait=self.config.max_funding_wait_seconds,
        )
        self._listeners: List[EventListener] = list(listeners or [])

        self._state = State.IDLE
        self._in_progress = False
        self._attempt_id: Optional[str] = None
        self._request: Optional[TransferRequest] = None
        self._funding_context: Optional[FundingContext] = None
        self._outcome: Optional[IntentOutcome] = None
        self._failure: Optional[TransferFailure] = None
        self._last_balance: Optional[BalanceSample] = None
        self._retry_count = 0
        self._updated_at = utc_timestamp()
        self._cancel_event = asyncio.Event()
        self._wake_event = asyncio.Event()

    @property
    def state(self) -> OrchestrationState:
        return self._state

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def attempt_id(self) -> Optional[str]:
        return self._attempt_id

    @property
    def funding_context(self) -> Optional[FundingContext]:
        return self._funding_context

    @property
    def retry_count(self) -> int:
        return self._retry_count

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def snapshot(self) -> TransferStatus:
        return TransferStatus(
            userId=self.user_id,
            attemptId=self._attempt_id,
            state=self._state,
            inProgress=self._in_progress,
            retryCount=self._retry_count,
            message=self._request.message if self._request else None,
            fundingContext=self._funding_context,
            outcome=self._outcome,
            failure=self._failure,
            lastBalance=self._last_balance,
            updatedAt=self._updated_at,
        )

    # ------------------------------------------------------------------
    # Entry points

    async def submit(self, request: TransferRequest) -> OrchestrationState:
        """
        Run one transfer attempt to a terminal state.

        Raises:
            AlreadyInProgressError: If an attempt is already in flight
        """
        attempt_id = self._claim(request)
        return await self._run(request, attempt_id)

    def start(self, request: TransferRequest) -> "asyncio.Task[OrchestrationState]":
        """Claim the user synchronously and run the attempt as a background task."""
        attempt_id = self._claim(request)
        task = asyncio.create_task(
            self._run(request, attempt_id),
            name=f"transfer-{self.user_id}-{attempt_id}",
        )
        task.add_done_callback(lambda _: self._release_abandoned(attempt_id))
        return task

    def cancel(self) -> None:
        """User cancels while funds are awaited."""
        if self._state != State.AWAITING_FUNDING:
            raise InvalidStateError("cancel", self._state.value)
        logger.info("Transfer cancellation requested", extra=self._log_context())
        self._cancel_event.set()

    def acknowledge_funding(self) -> None:
        """User reports funds were sent; re-check the balance now."""
        if self._state != State.AWAITING_FUNDING:
            raise InvalidStateError("acknowledge funding", self._state.value)
        logger.info("Funding acknowledged by user", extra=self._log_context())
        self._wake_event.set()

    # ------------------------------------------------------------------
    # Attempt lifecycle

    def _claim(self, request: TransferRequest) -> str:
        if self._in_progress:
            raise AlreadyInProgressError(self.user_id, self._attempt_id)
        if request.userId != self.user_id:
            raise ValueError(f"Request for user {request.userId} sent to orchestrator of {self.user_id}")

        self._in_progress = True
        self._attempt_id = uuid4().hex
        self._request = request
        self._state = State.IDLE
        self._funding_context = None
        self._outcome = None
        self._failure = None
        self._last_balance = None
        self._retry_count = 0
        self._cancel_event = asyncio.Event()
        self._wake_event = asyncio.Event()
        return self._attempt_id

    async def _run(self, request: TransferRequest, attempt_id: str) -> OrchestrationState:
        try:
            return await self._drive(request)
        except asyncio.CancelledError:
            if self._owns_live_attempt(attempt_id):
                self._funding_context = None
                await self._transition(State.CANCELLED)
            raise
        except Exception as e:
            logger.error(
                "Unexpected error during transfer",
                extra={**self._log_context(), "error": str(e)},
                exc_info=True
            )
            if self._owns_live_attempt(attempt_id):
                self._funding_context = None
                await self._fail(FailureKind.INTERNAL_ERROR, f"Unexpected error: {type(e).__name__}")
            raise
        finally:
            if self._attempt_id == attempt_id:
                self._funding_context = None
                self._in_progress = False

    def _owns_live_attempt(self, attempt_id: str) -> bool:
        return self._attempt_id == attempt_id and not self._state.is_terminal

    def _release_abandoned(self, attempt_id: str) -> None:
        # A task cancelled before its first step never enters _run
        if self._attempt_id != attempt_id or not self._in_progress:
            return
        logger.warning("Transfer task ended before running", extra=self._log_context())
        self._funding_context = None
        self._in_progress = False
        if not self._state.is_terminal:
            self._state = State.CANCELLED
            self._updated_at = utc_timestamp()

    async def _drive(self, request: TransferRequest) -> OrchestrationState:
        await self._transition(State.SUBMITTING)

        while True:
            try:
                outcome = await self.gateway.process(request)
            except TransportError as e:
                return await self._fail(
                    FailureKind.TRANSPORT_ERROR,
                    e.message,
                    reason=e.reason,
                    retryable=True,
                )

            self._outcome = outcome

            if isinstance(outcome, ExecutedOutcome):
                return await self._transition(State.SUCCEEDED, outcome=outcome)

            if isinstance(outcome, BusinessErrorOutcome):
                return await self._fail(FailureKind.BUSINESS_ERROR, outcome.message, outcome=outcome)

            if self._retry_count >= self.config.max_auto_retries:
                return await self._fail(
                    FailureKind.RETRY_LIMIT_EXCEEDED,
                    f"Funds still insufficient after {self._retry_count} automatic retries",
                    outcome=outcome,
                )

            ended = await self._await_funding(request, outcome)
            if ended is not None:
                return ended

            self._retry_count += 1
            await self._transition(State.RETRYING)
            if self.config.retry_delay_seconds:
                await asyncio.sleep(self.config.retry_delay_seconds)
            await self._transition(State.SUBMITTING)

    async def _await_funding(
        self, request: TransferRequest, outcome: InsufficientFundsOutcome
    ) -> Optional[OrchestrationState]:
        """Wait for funds; None means sufficient balance was observed, otherwise the terminal state."""
        token = resolve_token(
            outcome.token,
            request.message,
            tokens=self.config.supported_tokens,
            native_token=self.config.native_token,
        )
        context = FundingContext.from_outcome(outcome, token)
        self._funding_context = context
        await self._transition(State.AWAITING_FUNDING, outcome=outcome, fundingContext=context)

        funded = False
        try:
            async for sample in self.waiter.watch(context, self._cancel_event, self._wake_event):
                self._last_balance = sample
                await self._emit(
                    OrchestrationEventType.BALANCE_OBSERVED,
                    fundingContext=context,
                    balanceSample=sample,
                )
                funded = context.is_satisfied_by(sample)
        except FundingTimeoutError as e:
            self._funding_context = None
            if self._cancel_event.is_set():
                return await self._transition(State.CANCELLED)
            return await self._fail(FailureKind.FUNDING_TIMEOUT, e.message, outcome=outcome, retryable=True)

        self._funding_context = None
        # An accepted cancel wins over a sufficient sample seen in the same step
        if funded and not self._cancel_event.is_set():
            return None

        return await self._transition(State.CANCELLED)

    # ------------------------------------------------------------------
    # Transitions and events

    async def _fail(
        self,
        kind: FailureKind,
        message: str,
        outcome: Optional[IntentOutcome] = None,
        reason: Optional[str] = None,
        retryable: bool = False,
    ) -> OrchestrationState:
        self._failure = TransferFailure(kind=kind, message=message, reason=reason, retryable=retryable)
        return await self._transition(State.FAILED, outcome=outcome, failure=self._failure)

    async def _transition(self, new_state: OrchestrationState, **payload: Any) -> OrchestrationState:
        previous = self._state
        if new_state not in ALLOWED_TRANSITIONS.get(previous, frozenset()):
            raise RuntimeError(f"Illegal transfer transition {previous.value} -> {new_state.value}")

        self._state = new_state
        self._updated_at = utc_timestamp()
        if new_state.is_terminal:
            self._in_progress = False

        logger.info(
            "Transfer state changed",
            extra={
                **self._log_context(),
                "from_state": previous.value,
                "to_state": new_state.value,
                "retry_count": self._retry_count,
            }
        )
        await self._emit(OrchestrationEventType.STATE_CHANGED, previousState=previous, **payload)
        return new_state

    async def _emit(self, event_type: OrchestrationEventType, **payload: Any) -> None:
        event = OrchestrationEvent(
            eventType=event_type,
            userId=self.user_id,
            attemptId=self._attempt_id,
            state=self._state,
            retryCount=self._retry_count,
            **payload,
        )
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception as e:
                logger.error(
                    "Orchestration event listener failed",
                    extra={**self._log_context(), "event_type": event_type.value, "error": str(e)}
                )

    def _log_context(self) -> Dict[str, Any]:
        return {"user_id": self.user_id, "attempt_id": self._attempt_id, "state": self._state.value}
