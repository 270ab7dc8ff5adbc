"""Unit tests for the Redis pub/sub service, with the client mocked out."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from epitrello.services.redis_service import RedisService


class FakePubSub:
    """Hands out queued messages, then stops the listener."""

    def __init__(self, service: RedisService, messages: list[dict]):
        self.service = service
        self.messages = list(messages)

    async def get_message(self, ignore_subscribe_messages: bool, timeout: float):
        if self.messages:
            return self.messages.pop(0)
        self.service._running = False
        return None


class TestRedisService:
    """Tests for RedisService."""

    def test_not_connected_by_default(self):
        service = RedisService("redis://localhost:6379/0")

        assert service.is_connected is False
        with pytest.raises(RuntimeError):
            service.client

    @pytest.mark.asyncio
    async def test_publish_encodes_json(self):
        service = RedisService()
        service._redis = MagicMock()
        service._redis.publish = AsyncMock(return_value=2)

        assert await service.publish("ws:broadcast", {"room_id": "board:1"}) == 2
        service._redis.publish.assert_awaited_once_with("ws:broadcast", json.dumps({"room_id": "board:1"}))

    @pytest.mark.asyncio
    async def test_listen_loop_routes_to_handlers(self):
        service = RedisService()
        handler = AsyncMock()
        other = AsyncMock()
        await service.subscribe("ws:broadcast", handler)
        await service.subscribe("ws:user", other)
        service._pubsub = FakePubSub(
            service,
            [{"type": "message", "channel": "ws:broadcast", "data": json.dumps({"room_id": "board:1"})}],
        )
        service._running = True

        await service._listen_loop()

        handler.assert_awaited_once_with({"room_id": "board:1"})
        other.assert_not_called()

    @pytest.mark.asyncio
    async def test_handler_error_does_not_stop_listener(self):
        service = RedisService()
        failing = AsyncMock(side_effect=ValueError("boom"))
        await service.subscribe("ws:user", failing)
        service._pubsub = FakePubSub(
            service,
            [
                {"type": "message", "channel": "ws:user", "data": json.dumps({"n": 1})},
                {"type": "message", "channel": "ws:user", "data": json.dumps({"n": 2})},
            ],
        )
        service._running = True

        await service._listen_loop()

        assert failing.await_count == 2

    @pytest.mark.asyncio
    async def test_health_check_disconnected(self):
        assert await RedisService().health_check() == {"status": "disconnected"}
