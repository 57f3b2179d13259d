"""Models for transfer orchestration."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, validator


def utc_timestamp() -> str:
    return datetime.utcnow().isoformat() + "Z"


class OrchestrationState(str, Enum):
    """Lifecycle of a single transfer attempt"""
    IDLE = "idle"
    SUBMITTING = "submitting"
    AWAITING_FUNDING = "awaiting_funding"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({
    OrchestrationState.SUCCEEDED,
    OrchestrationState.FAILED,
    OrchestrationState.CANCELLED,
})


class TransferRequest(BaseModel):
    """Natural-language transfer request as submitted by the user"""
    message: str = Field(..., min_length=1, max_length=4000, description="Transfer instruction, e.g. 'Send 100 TON to Samir'")
    userId: str = Field(..., min_length=1, max_length=255, description="Identifier of the requesting user")

    @validator('message', 'userId')
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('Value cannot be blank')
        return v.strip()

    class Config:
        frozen = True


class ExecutedOutcome(BaseModel):
    """The intent backend executed the transfer"""
    kind: Literal["executed"] = "executed"
    txHash: str
    amountIn: Optional[Decimal] = None
    amountOut: Optional[Decimal] = None
    token: Optional[str] = None
    route: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict, description="Raw data block for the presentation layer")


class InsufficientFundsOutcome(BaseModel):
    """The intent was valid but the wallet balance does not cover it"""
    kind: Literal["insufficient_funds"] = "insufficient_funds"
    walletAddress: str
    token: Optional[str] = None
    currentBalance: Decimal = Field(..., ge=0)
    requiredAmount: Decimal = Field(..., ge=0)
    shortfall: Decimal = Field(..., gt=0)
    fundingInstructions: Optional[Any] = None

    @classmethod
    def from_amounts(
        cls,
        wallet_address: str,
        current_balance: Decimal,
        required_amount: Decimal,
        token: Optional[str] = None,
        funding_instructions: Optional[Any] = None,
    ) -> "InsufficientFundsOutcome":
        """Build the outcome with shortfall derived from the two amounts."""
        return cls(
            walletAddress=wallet_address,
            token=token,
            currentBalance=current_balance,
            requiredAmount=required_amount,
            shortfall=required_amount - current_balance,
            fundingInstructions=funding_instructions,
        )


class BusinessErrorOutcome(BaseModel):
    """The backend answered, but reported a non-transport failure"""
    kind: Literal["business_error"] = "business_error"
    message: str


IntentOutcome = Annotated[
    Union[ExecutedOutcome, InsufficientFundsOutcome, BusinessErrorOutcome],
    Field(discriminator="kind"),
]


class BalanceSample(BaseModel):
    """One observed balance while waiting for funds"""
    token: str
    amount: Decimal = Field(..., ge=0)
    observedAt: datetime = Field(default_factory=datetime.utcnow)


class FundingContext(BaseModel):
    """Everything needed to wait for and verify incoming funds"""
    walletAddress: str
    token: str
    currentBalance: Decimal
    requiredAmount: Decimal
    shortfall: Decimal
    fundingInstructions: Optional[Any] = None
    createdAt: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def from_outcome(cls, outcome: InsufficientFundsOutcome, token: str) -> "FundingContext":
        return cls(
            walletAddress=outcome.walletAddress,
            token=token,
            currentBalance=outcome.currentBalance,
            requiredAmount=outcome.requiredAmount,
            shortfall=outcome.shortfall,
            fundingInstructions=outcome.fundingInstructions,
        )

    def is_satisfied_by(self, sample: BalanceSample) -> bool:
        return sample.token.upper() == self.token.upper() and sample.amount >= self.requiredAmount


class FailureKind(str, Enum):
    TRANSPORT_ERROR = "transport_error"
    BUSINESS_ERROR = "business_error"
    FUNDING_TIMEOUT = "funding_timeout"
    RETRY_LIMIT_EXCEEDED = "retry_limit_exceeded"
    INTERNAL_ERROR = "internal_error"


class TransferFailure(BaseModel):
    """Why an attempt ended in the failed state"""
    kind: FailureKind
    message: str
    reason: Optional[str] = None  # transport sub-kind
    retryable: bool = False


class OrchestrationEventType(str, Enum):
    STATE_CHANGED = "state_changed"
    BALANCE_OBSERVED = "balance_observed"


class OrchestrationEvent(BaseModel):
    """Pushed to the presentation layer on every transition and balance sample"""
    eventType: OrchestrationEventType
    userId: str
    attemptId: str
    state: OrchestrationState
    previousState: Optional[OrchestrationState] = None
    outcome: Optional[IntentOutcome] = None
    fundingContext: Optional[FundingContext] = None
    balanceSample: Optional[BalanceSample] = None
    failure: Optional[TransferFailure] = None
    retryCount: int = 0
    timestamp: str = Field(default_factory=utc_timestamp)


class TransferStatus(BaseModel):
    """Read-only snapshot of a user's orchestrator"""
    userId: str
    attemptId: Optional[str] = None
    state: OrchestrationState = OrchestrationState.IDLE
    inProgress: bool = False
    retryCount: int = 0
    message: Optional[str] = None
    fundingContext: Optional[FundingContext] = None
    outcome: Optional[IntentOutcome] = None
    failure: Optional[TransferFailure] = None
    lastBalance: Optional[BalanceSample] = None
    updatedAt: str = Field(default_factory=utc_timestamp)


class BalanceCheckResponse(BaseModel):
    """Response model for a one-off balance check"""
    success: bool = True
    address: str
    token: str
    balance: Decimal
