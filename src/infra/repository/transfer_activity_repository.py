"""
Transfer activity repository using SQLAlchemy ORM
"""

from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.infra.models import TransferActivityModel
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class TransferActivityRepository:
    """Repository for finished transfer attempts"""
    
    def __init__(self, session: AsyncSession):
        self.session = session
    
    async def log_activity(
        self,
        user_id: str,
        attempt_id: str,
        final_state: str,
        retry_count: int = 0,
        failure_kind: Optional[str] = None,
        token: Optional[str] = None,
        amount: Optional[str] = None,
        tx_hash: Optional[str] = None
    ) -> bool:
        """
        Log the terminal state of one transfer attempt
        
        Args:
            user_id: User that submitted the transfer
            attempt_id: Attempt identifier issued by the orchestrator
            final_state: succeeded, failed or cancelled
            retry_count: Automatic retries performed
            failure_kind: Failure category for failed attempts
            token: Token symbol involved
            amount: Transfer or required amount (as string)
            tx_hash: Transaction hash of an executed transfer
            
        Returns:
            True if successful, False otherwise
        """
        try:
            activity = TransferActivityModel(
                user_id=user_id,
                attempt_id=attempt_id,
                final_state=final_state,
                failure_kind=failure_kind,
                token=token,
                amount=amount,
                tx_hash=tx_hash,
                retry_count=retry_count,
                success=final_state == "succeeded"
            )
            
            self.session.add(activity)
            await self.session.commit()
            
            logger.info(
                "Transfer activity logged",
                extra={
                    "user_id": user_id,
                    "attempt_id": attempt_id,
                    "final_state": final_state,
                    "failure_kind": failure_kind
                }
            )
            return True
            
        except Exception as e:
            await self.session.rollback()
            logger.error(
                "Failed to log transfer activity",
                extra={
                    "user_id": user_id,
                    "attempt_id": attempt_id,
                    "error": str(e)
                }
            )
            return False
    
    async def list_for_user(self, user_id: str, limit: int = 20) -> List[TransferActivityModel]:
        """Most recent finished attempts of a user, newest first"""
        result = await self.session.execute(
            select(TransferActivityModel)
            .where(TransferActivityModel.user_id == user_id)
            .order_by(TransferActivityModel.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
