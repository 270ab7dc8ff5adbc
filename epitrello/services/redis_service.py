"""Redis service for cross-worker pub/sub.

Board and user broadcasts are published to Redis so every Uvicorn worker
delivers them to its own WebSocket connections. When Redis is not
connected the realtime layer falls back to local delivery.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import redis.asyncio as aioredis
from redis.asyncio.client import PubSub

from ..config import settings

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict], Awaitable[None]]


class RedisService:
    """
    Async Redis pub/sub client.

    Handlers registered with `subscribe` are invoked by a background
    listener task started with `start_listening`.
    """

    def __init__(self, url: Optional[str] = None) -> None:
        """Initialize the Redis service (not connected yet)."""
        self._url = url or settings.redis_url
        self._redis: Optional[aioredis.Redis] = None
        self._pubsub: Optional[PubSub] = None
        self._listener_task: Optional[asyncio.Task] = None
        self._handlers: dict[str, list[MessageHandler]] = {}
        self._running = False

    async def connect(self) -> None:
        """Initialize Redis connection with connection pooling."""
        self._redis = aioredis.from_url(
            self._url,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
            retry_on_timeout=settings.redis_retry_on_timeout,
            decode_responses=True,
        )
        try:
            await self._redis.ping()
        except Exception:
            await self._redis.aclose()
            self._redis = None
            raise
        logger.info("Redis connected successfully")

    async def disconnect(self) -> None:
        """Close Redis connection and cleanup resources."""
        self._running = False
        if self._listener_task:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None
        if self._pubsub:
            await self._pubsub.aclose()
            self._pubsub = None
        if self._redis:
            await self._redis.aclose()
            self._redis = None
        logger.info("Redis disconnected")

    @property
    def client(self) -> aioredis.Redis:
        """Get Redis client instance."""
        if self._redis is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._redis

    @property
    def is_connected(self) -> bool:
        return self._redis is not None

    async def subscribe(self, channel: str, handler: MessageHandler) -> None:
        """
        Subscribe to a channel with a message handler.

        Args:
            channel: The channel name to subscribe to
            handler: Async function called with each decoded message
        """
        if channel not in self._handlers:
            self._handlers[channel] = []
            if self._pubsub:
                await self._pubsub.subscribe(channel)
        self._handlers[channel].append(handler)
        logger.debug(f"Subscribed to channel: {channel}")

    async def publish(self, channel: str, message: dict) -> int:
        """
        Publish a message to a channel.

        Returns:
            Number of subscribers that received the message
        """
        return await self.client.publish(channel, json.dumps(message))

    async def start_listening(self) -> None:
        """Start the pub/sub listener background task."""
        if self._running and self._listener_task is not None:
            logger.debug("Pub/sub listener already running")
            return

        self._pubsub = self.client.pubsub()
        self._running = True

        for channel in self._handlers.keys():
            await self._pubsub.subscribe(channel)

        self._listener_task = asyncio.create_task(self._listen_loop())
        logger.info("Redis pub/sub listener started")

    async def _listen_loop(self) -> None:
        """Background task to receive and route pub/sub messages."""
        while self._running:
            try:
                if self._pubsub is None:
                    break
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )
                if message and message["type"] == "message":
                    channel = message["channel"]
                    data = json.loads(message["data"])

                    for handler in self._handlers.get(channel, []):
                        try:
                            await handler(data)
                        except Exception as e:
                            logger.error(f"Handler error on {channel}: {e}")
            except asyncio.CancelledError:
                break
            except Exception as e:
                if self._running:
                    logger.error(f"Pub/sub listener error: {e}")
                    await asyncio.sleep(1)
                else:
                    break

    async def health_check(self) -> dict[str, Any]:
        """
        Get Redis health status.

        Returns:
            Dictionary with connection status and client count
        """
        if not self.is_connected:
            return {"status": "disconnected"}
        try:
            info = await self.client.info("clients")
        except Exception as e:
            return {"status": "error", "error": str(e)}
        return {
            "status": "healthy",
            "connected_clients": info.get("connected_clients", 0),
        }


# Global singleton instance
redis_service = RedisService()
