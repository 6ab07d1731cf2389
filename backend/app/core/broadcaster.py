"""Redis pub/sub broadcaster for journey progress snapshots."""

import asyncio
import logging

import orjson
import redis.asyncio as aioredis

from app.config import settings

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "journey:progress:"
STATE_KEY_PREFIX = "journey:state:"


class Broadcaster:
    """Publishes snapshots to Redis and fans them out to WebSocket subscribers."""

    def __init__(self) -> None:
        self._redis: aioredis.Redis | None = None
        # journey_id -> subscriber queues
        self._subscribers: dict[str, set[asyncio.Queue]] = {}
        # Latest payload per journey when Redis is unavailable
        self._last: dict[str, bytes] = {}

    async def connect(self) -> None:
        self._redis = aioredis.from_url(settings.redis_url, decode_responses=False)

    async def close(self) -> None:
        if self._redis:
            await self._redis.aclose()

    async def publish(self, journey_id: str, snapshot: dict) -> None:
        """Publish a snapshot to Redis and fan out to the journey's subscribers."""
        payload = orjson.dumps({"type": "update", "journey_id": journey_id, "snapshot": snapshot})
        self._last[journey_id] = payload

        if self._redis:
            try:
                await self._redis.set(STATE_KEY_PREFIX + journey_id, payload)
                await self._redis.publish(CHANNEL_PREFIX + journey_id, payload)
            except Exception:
                logger.exception("Failed to publish journey %s to Redis", journey_id)

        dead = set()
        queues = self._subscribers.get(journey_id, set())
        for q in queues:
            try:
                q.put_nowait(payload)
            except asyncio.QueueFull:
                dead.add(q)
        queues -= dead

    async def get_current_state(self, journey_id: str) -> bytes | None:
        """Latest snapshot payload for a journey."""
        if self._redis:
            try:
                data = await self._redis.get(STATE_KEY_PREFIX + journey_id)
                if data:
                    return data
            except Exception:
                logger.exception("Failed to get journey %s state from Redis", journey_id)
        return self._last.get(journey_id)

    def subscribe(self, journey_id: str) -> asyncio.Queue:
        q: asyncio.Queue = asyncio.Queue(maxsize=10)
        self._subscribers.setdefault(journey_id, set()).add(q)
        return q

    def unsubscribe(self, journey_id: str, q: asyncio.Queue) -> None:
        queues = self._subscribers.get(journey_id)
        if queues is None:
            return
        queues.discard(q)
        if not queues:
            del self._subscribers[journey_id]

    def forget(self, journey_id: str) -> None:
        self._last.pop(journey_id, None)
