"""Integration tests for the intent gateway and balance probe HTTP clients."""

import json
from decimal import Decimal

import httpx
import pytest

from src.core.exceptions.base import TransportError
from src.core.service.transfer.balance_probe import BalanceProbe
from src.core.service.transfer.intent_gateway import IntentGateway
from src.core.service.transfer.models import (
    BusinessErrorOutcome,
    ExecutedOutcome,
    InsufficientFundsOutcome,
    TransferRequest,
)

BASE_URL = "http://intent.test"


def mock_client(handler):
    return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
class TestIntentGateway:
    """Posting transfer intents and mapping the answers."""

    @pytest.fixture
    def request_model(self):
        return TransferRequest(message="Send 100 TON to Samir", userId="user-1")

    async def test_posts_message_and_user(self, request_model):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "type": "transfer",
                "data": {"status": "executed", "transactionHash": "0x1"},
            })

        async with mock_client(handler) as client:
            outcome = await IntentGateway(client).process(request_model)

        assert seen["path"] == "/api/enhanced-intent/process"
        assert seen["body"] == {"message": "Send 100 TON to Samir", "userId": "user-1"}
        assert isinstance(outcome, ExecutedOutcome)

    async def test_client_error_body_is_business_outcome(self, request_model):
        def handler(request):
            return httpx.Response(400, json={
                "success": False,
                "data": {
                    "status": "insufficient_funds",
                    "walletAddress": "EQWallet",
                    "currentBalance": 0.68894,
                    "requiredAmount": 100,
                },
            })

        async with mock_client(handler) as client:
            outcome = await IntentGateway(client).process(request_model)

        assert isinstance(outcome, InsufficientFundsOutcome)
        assert outcome.shortfall == Decimal("99.31106")

    async def test_malformed_object_is_business_error(self, request_model):
        async with mock_client(lambda request: httpx.Response(200, json={"hello": "world"})) as client:
            outcome = await IntentGateway(client).process(request_model)

        assert isinstance(outcome, BusinessErrorOutcome)

    async def test_server_error_raises_transport_error(self, request_model):
        async with mock_client(lambda request: httpx.Response(503, text="unavailable")) as client:
            with pytest.raises(TransportError) as exc_info:
                await IntentGateway(client).process(request_model)

        assert exc_info.value.reason == TransportError.HTTP_STATUS
        assert exc_info.value.http_status == 503
        assert exc_info.value.status_code == 502

    async def test_non_json_body_raises_transport_error(self, request_model):
        async with mock_client(lambda request: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(TransportError) as exc_info:
                await IntentGateway(client).process(request_model)

        assert exc_info.value.reason == TransportError.INVALID_PAYLOAD

    async def test_json_array_raises_transport_error(self, request_model):
        async with mock_client(lambda request: httpx.Response(200, json=[1, 2])) as client:
            with pytest.raises(TransportError) as exc_info:
                await IntentGateway(client).process(request_model)

        assert exc_info.value.reason == TransportError.INVALID_PAYLOAD

    async def test_timeout_raises_transport_error(self, request_model):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(TransportError) as exc_info:
                await IntentGateway(client).process(request_model)

        assert exc_info.value.reason == TransportError.TIMEOUT

    async def test_connection_failure_raises_transport_error(self, request_model):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with mock_client(handler) as client:
            with pytest.raises(TransportError) as exc_info:
                await IntentGateway(client).process(request_model)

        assert exc_info.value.reason == TransportError.CONNECTION
        assert exc_info.value.service == "intent"


@pytest.mark.asyncio
class TestBalanceProbe:

    async def test_returns_decimal_balance(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "data": {"balance": 0.68894}})

        async with mock_client(handler) as client:
            balance = await BalanceProbe(client).check("EQWallet", "TON")

        assert balance == Decimal("0.68894")
        assert seen["path"] == "/api/wallet/balance"
        assert seen["body"] == {"address": "EQWallet", "token": "TON"}

    @pytest.mark.parametrize("body", [
        {"success": False, "error": "Unknown token"},
        {"success": True, "data": {}},
        {"success": True, "data": {"balance": "n/a"}},
        {"success": True, "data": {"balance": "120"}},
        {"success": True, "data": {"balance": -4}},
    ])
    async def test_unusable_answers_read_as_zero(self, body):
        async with mock_client(lambda request: httpx.Response(200, json=body)) as client:
            balance = await BalanceProbe(client).check("EQWallet", "DUCK")

        assert balance == Decimal(0)

    async def test_server_error_raises_transport_error(self):
        async with mock_client(lambda request: httpx.Response(500, json={"error": "down"})) as client:
            with pytest.raises(TransportError) as exc_info:
                await BalanceProbe(client).check("EQWallet", "TON")

        assert exc_info.value.service == "balance"
