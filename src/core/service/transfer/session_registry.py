"""Per-user transfer orchestrators and their background attempt tasks."""

import asyncio
from typing import Dict, Iterable, List, Optional, Set

from src.core.exceptions.base import InvalidStateError
from src.core.logger.logger import get_logger
from src.core.service.transfer.balance_probe import BalanceProbe
from src.core.service.transfer.intent_gateway import IntentGateway
from src.core.service.transfer.models import OrchestrationState, TransferRequest, TransferStatus
from src.core.service.transfer.orchestrator import EventListener, OrchestratorConfig, TransferOrchestrator
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class TransferSessionRegistry:
    """
    Holds one TransferOrchestrator per user.

    The orchestrator's own in-progress flag is the per-user guard; the
    registry only makes sure every user always talks to the same instance
    and keeps references to running attempt tasks. Once more than
    ``max_tracked_users`` users are held, the least recently used
    orchestrators without a live attempt are dropped and read as idle again.
    """

    def __init__(
        self,
        gateway: IntentGateway,
        probe: BalanceProbe,
        config: Optional[OrchestratorConfig] = None,
        listeners: Optional[Iterable[EventListener]] = None,
        max_tracked_users: Optional[int] = None,
    ):
        self.gateway = gateway
        self.probe = probe
        self.config = config or OrchestratorConfig.from_settings()
        self.max_tracked_users = max_tracked_users or settings.TRANSFER_MAX_TRACKED_USERS
        self._listeners: List[EventListener] = list(listeners or [])
        self._orchestrators: Dict[str, TransferOrchestrator] = {}
        self._tasks: Set[asyncio.Task] = set()

    def add_listener(self, listener: EventListener) -> None:
        """Attach a listener to current and future orchestrators."""
        self._listeners.append(listener)
        for orchestrator in self._orchestrators.values():
            orchestrator.add_listener(listener)

    def get(self, user_id: str) -> Optional[TransferOrchestrator]:
        return self._orchestrators.get(user_id)

    def get_or_create(self, user_id: str) -> TransferOrchestrator:
        orchestrator = self._orchestrators.pop(user_id, None)
        if orchestrator is None:
            self._evict_finished()
            orchestrator = TransferOrchestrator(
                user_id,
                self.gateway,
                self.probe,
                config=self.config,
                listeners=self._listeners,
            )
        # Most recently used last
        self._orchestrators[user_id] = orchestrator
        return orchestrator

    def start(self, request: TransferRequest) -> TransferStatus:
        """
        Start a background attempt for the request's user.

        Raises:
            AlreadyInProgressError: If the user already has a live attempt
        """
        orchestrator = self.get_or_create(request.userId)
        task = orchestrator.start(request)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        logger.info(
            "Transfer attempt started",
            extra={"user_id": request.userId, "attempt_id": orchestrator.attempt_id}
        )
        return orchestrator.snapshot()

    def cancel(self, user_id: str) -> TransferStatus:
        orchestrator = self._require(user_id, "cancel")
        orchestrator.cancel()
        return orchestrator.snapshot()

    def acknowledge_funding(self, user_id: str) -> TransferStatus:
        orchestrator = self._require(user_id, "acknowledge funding")
        orchestrator.acknowledge_funding()
        return orchestrator.snapshot()

    def status(self, user_id: str) -> TransferStatus:
        orchestrator = self._orchestrators.get(user_id)
        if orchestrator is None:
            return TransferStatus(userId=user_id)
        return orchestrator.snapshot()

    @property
    def active_count(self) -> int:
        return sum(1 for o in self._orchestrators.values() if o.in_progress)

    async def shutdown(self) -> None:
        """Cancel every running attempt and wait for them to settle."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Transfer registry shut down", extra={"cancelled_attempts": len(tasks)})

    def _evict_finished(self) -> None:
        excess = len(self._orchestrators) - self.max_tracked_users + 1
        if excess <= 0:
            return
        idle = [user_id for user_id, o in self._orchestrators.items() if not o.in_progress][:excess]
        for user_id in idle:
            del self._orchestrators[user_id]
        if idle:
            logger.info(
                "Evicted finished transfer sessions",
                extra={"evicted": len(idle), "tracked": len(self._orchestrators)}
            )

    def _require(self, user_id: str, action: str) -> TransferOrchestrator:
        orchestrator = self._orchestrators.get(user_id)
        if orchestrator is None:
            raise InvalidStateError(action, OrchestrationState.IDLE.value)
        return orchestrator

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Transfer attempt task crashed",
                extra={"task": task.get_name(), "error": str(error), "error_type": type(error).__name__}
            )
