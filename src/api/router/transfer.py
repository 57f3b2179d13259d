"""Transfer router: submit, inspect, cancel and fund transfer attempts."""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status

from src.api.controller.transfer.transfer_controller import TransferController
from src.core.dependencies import get_transfer_controller
from src.core.service.transfer.models import BalanceCheckResponse, TransferRequest, TransferStatus

router = APIRouter(
    prefix="/transfer",
    tags=["transfer"],
    responses={
        400: {"description": "Bad Request"},
        409: {"description": "Conflict with the current transfer state"},
        429: {"description": "Too Many Requests"},
        502: {"description": "Intent or balance backend unavailable"}
    }
)


@router.post(
    "",
    response_model=TransferStatus,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a transfer",
    description="Start a natural-language transfer; progress is pushed on /ws/transfers/{userId}"
)
async def submit_transfer(
    request: TransferRequest,
    controller: TransferController = Depends(get_transfer_controller)
) -> TransferStatus:
    """
    Submit a transfer such as "Send 100 TON to Samir".

    The attempt runs in the background. If the wallet lacks funds the
    attempt waits for them and retries automatically.
    """
    return await controller.submit(request)


@router.get(
    "/balance",
    response_model=BalanceCheckResponse,
    summary="Check wallet balance"
)
async def check_balance(
    address: str = Query(..., description="Wallet address"),
    token: Optional[str] = Query(None, description="Token symbol, native token when omitted"),
    controller: TransferController = Depends(get_transfer_controller)
) -> BalanceCheckResponse:
    return await controller.check_balance(address, token)


@router.get(
    "/{user_id}",
    response_model=TransferStatus,
    summary="Get transfer status"
)
async def get_transfer_status(
    user_id: str,
    controller: TransferController = Depends(get_transfer_controller)
) -> TransferStatus:
    return controller.get_status(user_id)


@router.post(
    "/{user_id}/cancel",
    response_model=TransferStatus,
    summary="Cancel while awaiting funds"
)
async def cancel_transfer(
    user_id: str,
    controller: TransferController = Depends(get_transfer_controller)
) -> TransferStatus:
    return controller.cancel(user_id)


@router.post(
    "/{user_id}/funds-received",
    response_model=TransferStatus,
    summary="Report that funds were sent",
    description="Triggers an immediate balance check instead of waiting for the next poll"
)
async def funds_received(
    user_id: str,
    controller: TransferController = Depends(get_transfer_controller)
) -> TransferStatus:
    return controller.acknowledge_funding(user_id)
