"""Shared fakes and fixtures for transfer tests."""

import asyncio
from decimal import Decimal

import pytest

from src.core.service.transfer.models import (
    BusinessErrorOutcome,
    ExecutedOutcome,
    InsufficientFundsOutcome,
)
from src.core.service.transfer.orchestrator import OrchestratorConfig

WALLET = "EQD4FPq-PRDieyQKkizFTRtSDyucUIqrj0v_zXJmqaDp6_0t"


class FakeIntentGateway:
    """Replays scripted outcomes; the last one repeats forever."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    async def process(self, request):
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeBalanceProbe:
    """Replays scripted balances; the last one repeats forever."""

    def __init__(self, *balances):
        self.balances = list(balances)
        self.calls = []

    async def check(self, address, token):
        self.calls.append((address, token))
        balance = self.balances.pop(0) if len(self.balances) > 1 else self.balances[0]
        if isinstance(balance, Exception):
            raise balance
        return Decimal(str(balance))


@pytest.fixture
def gateway_factory():
    return FakeIntentGateway


@pytest.fixture
def probe_factory():
    return FakeBalanceProbe


@pytest.fixture
def fast_config():
    """Orchestrator config with short delays for tests"""
    return OrchestratorConfig(
        poll_interval_seconds=0.01,
        max_funding_wait_seconds=5,
        max_auto_retries=3,
        retry_delay_seconds=0,
    )


@pytest.fixture
def executed():
    return ExecutedOutcome(
        txHash="0xabc123",
        amountIn=Decimal("100"),
        amountOut=Decimal("100"),
        token="TON",
        route=f"{WALLET} -> EQSamir",
    )


@pytest.fixture
def insufficient():
    return InsufficientFundsOutcome.from_amounts(
        wallet_address=WALLET,
        current_balance=Decimal("0.68894"),
        required_amount=Decimal("100"),
        token="TON",
    )


@pytest.fixture
def business_error():
    return BusinessErrorOutcome(message="Recipient not found")


@pytest.fixture
def wait_for_state():
    """Poll an orchestrator until it reaches ``state``"""

    async def _wait(orchestrator, state, timeout=2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while orchestrator.state != state:
            if loop.time() > deadline:
                raise AssertionError(f"state is {orchestrator.state.value}, expected {state.value}")
            await asyncio.sleep(0.005)

    return _wait
