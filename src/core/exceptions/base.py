"""Domain errors for transfer orchestration.

Business outcomes (insufficient funds, rejected transfers) are values, not
exceptions. Only the conditions below are raised.
"""

from typing import Any, Dict, Optional

from src.core.exceptions.handler import ServiceError, ServiceErrorCode


class TransportError(ServiceError):
    """A request to the intent or balance backend did not complete.

    ``reason`` is one of ``timeout``, ``connection``, ``http_status`` or
    ``invalid_payload``.
    """

    TIMEOUT = "timeout"
    CONNECTION = "connection"
    HTTP_STATUS = "http_status"
    INVALID_PAYLOAD = "invalid_payload"

    def __init__(
        self,
        reason: str,
        message: str,
        service: str,
        http_status: Optional[int] = None,
    ):
        details: Dict[str, Any] = {"reason": reason, "service": service}
        if http_status is not None:
            details["http_status"] = http_status
        super().__init__(
            code=ServiceErrorCode.TRANSPORT_ERROR,
            message=message,
            status_code=502,
            details=details,
        )
        self.reason = reason
        self.service = service
        self.http_status = http_status


class AlreadyInProgressError(ServiceError):
    def __init__(self, user_id: str, attempt_id: Optional[str] = None):
        super().__init__(
            code=ServiceErrorCode.ALREADY_IN_PROGRESS,
            message="A transfer is already in progress for this user",
            status_code=409,
            details={"userId": user_id, "attemptId": attempt_id},
        )
        self.user_id = user_id


class InvalidStateError(ServiceError):
    """An external event arrived in a state that does not accept it."""

    def __init__(self, action: str, state: str):
        super().__init__(
            code=ServiceErrorCode.INVALID_STATE,
            message=f"Cannot {action} while transfer is {state}",
            status_code=409,
            details={"action": action, "state": state},
        )


class FundingTimeoutError(ServiceError):
    def __init__(self, waited_seconds: float, max_wait_seconds: float):
        super().__init__(
            code=ServiceErrorCode.FUNDING_TIMEOUT,
            message=f"Funding not received within {max_wait_seconds:g} seconds",
            status_code=504,
            details={"waitedSeconds": round(waited_seconds, 2), "maxWaitSeconds": max_wait_seconds},
        )
        self.waited_seconds = waited_seconds


class RateLimitExceededError(ServiceError):
    def __init__(self, rate_limit_info: Dict[str, Any]):
        super().__init__(
            code=ServiceErrorCode.RATE_LIMIT_EXCEEDED,
            message="Daily transfer limit reached. Try again tomorrow.",
            status_code=429,
            details={"rate_limit_info": rate_limit_info},
        )
