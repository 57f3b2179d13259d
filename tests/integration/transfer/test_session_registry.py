"""Integration tests for the per-user orchestrator registry."""

import asyncio

import pytest

from src.core.exceptions.base import AlreadyInProgressError, InvalidStateError
from src.core.service.transfer.models import OrchestrationState as State, TransferRequest
from src.core.service.transfer.session_registry import TransferSessionRegistry


def transfer_request(user_id):
    return TransferRequest(message="Send 100 TON to Samir", userId=user_id)


@pytest.mark.asyncio
class TestTransferSessionRegistry:

    async def test_unknown_user_is_idle(self, gateway_factory, probe_factory, fast_config, executed):
        registry = TransferSessionRegistry(gateway_factory(executed), probe_factory(0), fast_config)

        status = registry.status("nobody")

        assert status.state == State.IDLE
        assert status.inProgress is False
        assert status.attemptId is None

    async def test_start_returns_claimed_status(self, gateway_factory, probe_factory, fast_config, executed):
        registry = TransferSessionRegistry(gateway_factory(executed), probe_factory(0), fast_config)

        status = registry.start(transfer_request("alice"))

        assert status.inProgress is True
        assert status.attemptId is not None
        assert registry.active_count == 1
        await registry.shutdown()

    async def test_same_orchestrator_per_user(self, gateway_factory, probe_factory, fast_config, executed):
        registry = TransferSessionRegistry(gateway_factory(executed), probe_factory(0), fast_config)

        assert registry.get_or_create("alice") is registry.get_or_create("alice")
        assert registry.get_or_create("alice") is not registry.get_or_create("bob")

    async def test_users_are_independent(
        self, gateway_factory, probe_factory, fast_config, insufficient, wait_for_state
    ):
        registry = TransferSessionRegistry(gateway_factory(insufficient), probe_factory(1), fast_config)

        registry.start(transfer_request("alice"))
        registry.start(transfer_request("bob"))
        with pytest.raises(AlreadyInProgressError):
            registry.start(transfer_request("alice"))

        await wait_for_state(registry.get("alice"), State.AWAITING_FUNDING)
        registry.cancel("alice")
        await wait_for_state(registry.get("alice"), State.CANCELLED)

        assert registry.status("bob").inProgress is True
        assert registry.active_count == 1
        await registry.shutdown()

    async def test_acknowledge_funding_completes_attempt(
        self, gateway_factory, probe_factory, executed, insufficient, wait_for_state
    ):
        from src.core.service.transfer.orchestrator import OrchestratorConfig

        config = OrchestratorConfig(poll_interval_seconds=30, max_funding_wait_seconds=60, retry_delay_seconds=0)
        registry = TransferSessionRegistry(gateway_factory(insufficient, executed), probe_factory(1, 100), config)

        registry.start(transfer_request("alice"))
        await wait_for_state(registry.get("alice"), State.AWAITING_FUNDING)
        status = registry.acknowledge_funding("alice")

        assert status.state == State.AWAITING_FUNDING
        await wait_for_state(registry.get("alice"), State.SUCCEEDED)

    async def test_cancel_unknown_user_is_invalid_state(self, gateway_factory, probe_factory, fast_config, executed):
        registry = TransferSessionRegistry(gateway_factory(executed), probe_factory(0), fast_config)

        with pytest.raises(InvalidStateError) as exc_info:
            registry.cancel("nobody")

        assert exc_info.value.status_code == 409

    async def test_listeners_receive_events(self, gateway_factory, probe_factory, fast_config, executed, wait_for_state):
        received = []

        async def listener(event):
            received.append(event.state)

        registry = TransferSessionRegistry(gateway_factory(executed), probe_factory(0), fast_config, [listener])
        registry.start(transfer_request("alice"))
        await wait_for_state(registry.get("alice"), State.SUCCEEDED)

        assert received == [State.SUBMITTING, State.SUCCEEDED]

    async def test_shutdown_cancels_running_attempts(
        self, gateway_factory, probe_factory, fast_config, insufficient, wait_for_state
    ):
        registry = TransferSessionRegistry(gateway_factory(insufficient), probe_factory(1), fast_config)
        registry.start(transfer_request("alice"))
        await wait_for_state(registry.get("alice"), State.AWAITING_FUNDING)

        await registry.shutdown()
        await asyncio.sleep(0)

        assert registry.status("alice").state == State.CANCELLED
        assert registry.active_count == 0

    async def test_finished_sessions_evicted_beyond_limit(
        self, gateway_factory, probe_factory, fast_config, insufficient
    ):
        registry = TransferSessionRegistry(
            gateway_factory(insufficient), probe_factory(1), fast_config, max_tracked_users=2
        )
        registry.start(transfer_request("alice"))
        registry.get_or_create("bob")

        registry.get_or_create("carol")

        assert registry.get("alice") is not None
        assert registry.get("bob") is None
        assert registry.status("bob").state == State.IDLE
        assert registry.get("carol") is not None
        await registry.shutdown()

    async def test_live_attempts_never_evicted(self, gateway_factory, probe_factory, fast_config, insufficient):
        registry = TransferSessionRegistry(
            gateway_factory(insufficient), probe_factory(1), fast_config, max_tracked_users=1
        )
        registry.start(transfer_request("alice"))

        registry.get_or_create("bob")

        assert registry.get("alice") is not None
        assert registry.active_count == 1
        await registry.shutdown()
