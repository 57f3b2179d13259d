"""
Normalization of intent backend responses.

The backend answers a transfer intent in one of two interchangeable JSON
shapes:

    success shape   {"success": bool, "data": {"status"?: "insufficient_funds", ...}}
    transfer shape  {"type": "transfer", "data": {"status": "executed" | "insufficient_funds", ...}}

Both are mapped here onto a single IntentOutcome so that orchestration logic
never looks at the raw payload. A payload that is missing the fields its
shape requires becomes a BusinessErrorOutcome carrying a diagnostic message.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from src.core.logger.logger import get_logger
from src.core.service.transfer.models import (
    BusinessErrorOutcome,
    ExecutedOutcome,
    InsufficientFundsOutcome,
    IntentOutcome,
)

logger = get_logger(__name__)

STATUS_INSUFFICIENT_FUNDS = "insufficient_funds"
STATUS_EXECUTED = "executed"
TRANSFER_TYPE = "transfer"


class MalformedResponseError(ValueError):
    """Response received, but missing required fields for its declared shape"""


def to_decimal(value: Any) -> Optional[Decimal]:
    """Parse a JSON number (or numeric string) without float artifacts."""
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str, Decimal)):
        return None
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _first_present(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _error_message(payload: Dict[str, Any], data: Dict[str, Any], default: str) -> str:
    message = _first_present(
        data.get("error"),
        payload.get("error"),
        data.get("message"),
        payload.get("message"),
    )
    return str(message) if message is not None else default


def _insufficient_funds(data: Dict[str, Any]) -> InsufficientFundsOutcome:
    details = _as_dict(data.get("transferDetails"))

    wallet_address = _first_present(data.get("walletAddress"), details.get("from"))
    if not isinstance(wallet_address, str):
        raise MalformedResponseError("insufficient_funds response is missing walletAddress")

    raw_required = _first_present(data.get("requiredAmount"), details.get("amount"))
    required_amount = to_decimal(raw_required)
    if required_amount is None:
        raise MalformedResponseError("insufficient_funds response is missing a numeric requiredAmount")

    raw_current = data.get("currentBalance")
    current_balance = Decimal(0) if raw_current is None else to_decimal(raw_current)
    if current_balance is None:
        raise MalformedResponseError("insufficient_funds response has a non-numeric currentBalance")

    if current_balance < 0 or required_amount < 0:
        raise MalformedResponseError("insufficient_funds response has negative amounts")

    shortfall = required_amount - current_balance
    if shortfall <= 0:
        raise MalformedResponseError(
            f"insufficient_funds reported but balance {current_balance} covers {required_amount}"
        )

    reported_shortfall = to_decimal(data.get("shortfall"))
    if reported_shortfall is not None and reported_shortfall != shortfall:
        logger.warning(
            "Upstream shortfall disagrees with balances, using computed value",
            extra={"reported_shortfall": str(reported_shortfall), "computed_shortfall": str(shortfall)}
        )

    token = _first_present(data.get("token"), details.get("token"))

    return InsufficientFundsOutcome.from_amounts(
        wallet_address=wallet_address,
        current_balance=current_balance,
        required_amount=required_amount,
        token=str(token) if token is not None else None,
        funding_instructions=data.get("fundingInstructions"),
    )


def _executed(data: Dict[str, Any]) -> ExecutedOutcome:
    details = _as_dict(data.get("transferDetails"))
    execution = _as_dict(data.get("executionResult"))

    tx_hash = _first_present(
        data.get("transactionHash"),
        data.get("txHash"),
        execution.get("transactionHash"),
    )
    if tx_hash is None:
        raise MalformedResponseError("executed response is missing transactionHash")

    amount_in = to_decimal(_first_present(details.get("amount"), data.get("amountIn")))
    amount_out = to_decimal(data.get("amountOut"))
    if amount_out is None:
        amount_out = amount_in

    route = data.get("route")
    if isinstance(route, (list, tuple)):
        route = " -> ".join(str(hop) for hop in route)
    if not route and details.get("from") and details.get("to"):
        route = f"{details['from']} -> {details['to']}"

    token = _first_present(details.get("token"), data.get("token"))

    return ExecutedOutcome(
        txHash=str(tx_hash),
        amountIn=amount_in,
        amountOut=amount_out,
        token=str(token) if token is not None else None,
        route=str(route) if route else None,
        details=data,
    )


def _route(payload: Any) -> IntentOutcome:
    if not isinstance(payload, dict):
        raise MalformedResponseError("expected a JSON object")

    data = payload.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedResponseError("'data' must be an object")

    is_transfer_shape = payload.get("type") == TRANSFER_TYPE
    if not is_transfer_shape and "success" not in payload:
        raise MalformedResponseError("response has neither 'success' nor type 'transfer'")

    status = data.get("status")

    # Same business fact, either shape
    if status == STATUS_INSUFFICIENT_FUNDS:
        return _insufficient_funds(data)

    if is_transfer_shape:
        if status == STATUS_EXECUTED or data.get("success") is True:
            return _executed(data)
        return BusinessErrorOutcome(message=_error_message(payload, data, "Transfer failed"))

    if payload.get("success") is True:
        if data.get("success") is True or status == STATUS_EXECUTED:
            return _executed(data)
        return BusinessErrorOutcome(message=_error_message(payload, data, "Unexpected response from server"))

    return BusinessErrorOutcome(message=_error_message(payload, data, "Transfer failed"))


def normalize_intent_response(payload: Any) -> IntentOutcome:
    """
    Map a raw intent backend payload onto an IntentOutcome.

    Args:
        payload: Decoded JSON body of the intent endpoint

    Returns:
        ExecutedOutcome, InsufficientFundsOutcome or BusinessErrorOutcome
    """
    try:
        return _route(payload)
    except MalformedResponseError as e:
        logger.warning("Malformed intent response", extra={"reason": str(e)})
        return BusinessErrorOutcome(message=f"Malformed response: {e}")
