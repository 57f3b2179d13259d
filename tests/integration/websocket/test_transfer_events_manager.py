"""Tests for per-user WebSocket event fan-out."""

import pytest
from unittest.mock import AsyncMock

from src.core.service.transfer.models import OrchestrationEvent, OrchestrationEventType, OrchestrationState
from src.core.service.websocket.manager import ConnectionManager


@pytest.mark.asyncio
class TestConnectionManager:

    async def test_connect_sends_subscription_ack(self):
        manager = ConnectionManager()
        websocket = AsyncMock()

        await manager.connect(websocket, "alice")

        websocket.accept.assert_awaited_once()
        websocket.send_json.assert_awaited_once_with({"message": "Subscribed to transfer events", "userId": "alice"})
        assert manager.get_connection_count("alice") == 1

    async def test_publish_only_reaches_event_user(self):
        manager = ConnectionManager()
        alice, bob = AsyncMock(), AsyncMock()
        await manager.connect(alice, "alice")
        await manager.connect(bob, "bob")
        alice.send_json.reset_mock()
        bob.send_json.reset_mock()

        await manager.publish(OrchestrationEvent(
            eventType=OrchestrationEventType.STATE_CHANGED,
            userId="alice",
            attemptId="a1",
            state=OrchestrationState.SUBMITTING,
            previousState=OrchestrationState.IDLE,
        ))

        payload = alice.send_json.call_args.args[0]
        assert payload["state"] == "submitting"
        assert payload["previousState"] == "idle"
        assert payload["eventType"] == "state_changed"
        bob.send_json.assert_not_awaited()

    async def test_failed_send_drops_connection(self):
        manager = ConnectionManager()
        websocket = AsyncMock()
        await manager.connect(websocket, "alice")
        websocket.send_json.side_effect = RuntimeError("closed")

        await manager.send_to_user("alice", {"ping": True})

        assert manager.get_connection_count("alice") == 0
        assert manager.get_connection_count() == 0
