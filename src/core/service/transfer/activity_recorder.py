"""Persists the terminal state of every transfer attempt."""

from typing import Optional

from src.core.logger.logger import get_logger
from src.core.service.transfer.models import (
    ExecutedOutcome,
    InsufficientFundsOutcome,
    OrchestrationEvent,
    OrchestrationEventType,
)
from src.infra.database import DatabaseManager, get_database_manager
from src.infra.repository.transfer_activity_repository import TransferActivityRepository

logger = get_logger(__name__)


class TransferActivityRecorder:
    """Orchestrator listener writing one transfer_activities row per finished attempt."""

    def __init__(self, db_manager: Optional[DatabaseManager] = None):
        self.db_manager = db_manager or get_database_manager()

    async def __call__(self, event: OrchestrationEvent) -> None:
        if event.eventType != OrchestrationEventType.STATE_CHANGED or not event.state.is_terminal:
            return

        token = amount = tx_hash = None
        outcome = event.outcome
        if isinstance(outcome, ExecutedOutcome):
            token, tx_hash = outcome.token, outcome.txHash
            if outcome.amountIn is not None:
                amount = str(outcome.amountIn)
        elif isinstance(outcome, InsufficientFundsOutcome):
            token, amount = outcome.token, str(outcome.requiredAmount)

        try:
            async with self.db_manager.session() as session:
                await TransferActivityRepository(session).log_activity(
                    user_id=event.userId,
                    attempt_id=event.attemptId or "",
                    final_state=event.state.value,
                    retry_count=event.retryCount,
                    failure_kind=event.failure.kind.value if event.failure else None,
                    token=token,
                    amount=amount,
                    tx_hash=tx_hash,
                )
        except Exception as e:
            logger.error(
                "Failed to record transfer activity",
                extra={"user_id": event.userId, "attempt_id": event.attemptId, "error": str(e)}
            )
