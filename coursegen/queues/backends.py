"""Storage for queued and failed envelopes."""

import asyncio
import logging
from typing import Any, Optional, Protocol

from coursegen.models.job import JobEnvelope
from coursegen.utils.errors import QueueError

logger = logging.getLogger(__name__)


class QueueBackend(Protocol):
    """FIFO list of waiting envelopes plus a retained list of failed ones."""

    async def push(self, envelope: JobEnvelope) -> None:
        ...

    async def pop(self, timeout: float) -> Optional[JobEnvelope]:
        """Oldest waiting envelope, or None if none arrived within the timeout."""
        ...

    async def ack(self, envelope: JobEnvelope) -> None:
        """Forget a popped envelope once it has succeeded or failed for good."""
        ...

    async def recover(self) -> int:
        """Return popped but unacknowledged envelopes to the waiting list."""
        ...

    async def add_failed(self, envelope: JobEnvelope) -> None:
        ...

    async def list_failed(self) -> list[JobEnvelope]:
        ...

    async def size(self) -> int:
        ...

    async def close(self) -> None:
        ...


class InMemoryQueueBackend:
    """Process-local backend; contents are lost on restart."""

    def __init__(self) -> None:
        self._waiting: asyncio.Queue = asyncio.Queue()
        self._failed: list[JobEnvelope] = []

    async def push(self, envelope: JobEnvelope) -> None:
        self._waiting.put_nowait(envelope)

    async def pop(self, timeout: float) -> Optional[JobEnvelope]:
        try:
            return await asyncio.wait_for(self._waiting.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def ack(self, envelope: JobEnvelope) -> None:
        return None

    async def recover(self) -> int:
        return 0

    async def add_failed(self, envelope: JobEnvelope) -> None:
        self._failed.append(envelope)

    async def list_failed(self) -> list[JobEnvelope]:
        return list(self._failed)

    async def size(self) -> int:
        return self._waiting.qsize()

    async def close(self) -> None:
        return None


class RedisQueueBackend:
    """Backend storing JSON envelopes in Redis lists.

    Waiting items live in ``coursegen:queue:{name}:waiting``. ``pop`` moves
    an item atomically onto ``coursegen:queue:{name}:processing`` (BLMOVE)
    where it stays until ``ack``; ``recover`` puts leftovers from a crashed
    consumer back at the head of the waiting list. Exhausted items are kept
    in ``coursegen:queue:{name}:failed``.

    One consumer process per queue name is assumed.
    """

    def __init__(self, redis_client: Any, name: str) -> None:
        self.redis = redis_client
        self.name = name
        self.waiting_key = f"coursegen:queue:{name}:waiting"
        self.processing_key = f"coursegen:queue:{name}:processing"
        self.failed_key = f"coursegen:queue:{name}:failed"
        # envelope id -> the exact string held in the processing list
        self._inflight: dict[str, str] = {}

    async def push(self, envelope: JobEnvelope) -> None:
        try:
            await self.redis.rpush(self.waiting_key, envelope.model_dump_json())
        except Exception as e:
            raise QueueError(f"Failed to enqueue onto {self.name}: {e}")

    async def pop(self, timeout: float) -> Optional[JobEnvelope]:
        # Blocking timeouts are whole seconds; 0 would block forever.
        raw = await self.redis.blmove(
            self.waiting_key, self.processing_key, max(int(timeout), 1), "LEFT", "RIGHT"
        )
        if raw is None:
            return None
        envelope = JobEnvelope.model_validate_json(raw)
        self._inflight[envelope.id] = raw
        return envelope

    async def ack(self, envelope: JobEnvelope) -> None:
        raw = self._inflight.pop(envelope.id, None)
        if raw is not None:
            await self.redis.lrem(self.processing_key, 1, raw)

    async def recover(self) -> int:
        moved = 0
        while await self.redis.lmove(self.processing_key, self.waiting_key, "RIGHT", "LEFT") is not None:
            moved += 1
        if moved:
            logger.warning(f"Requeued {moved} unfinished item(s) on {self.name}")
        return moved

    async def add_failed(self, envelope: JobEnvelope) -> None:
        await self.redis.rpush(self.failed_key, envelope.model_dump_json())

    async def list_failed(self) -> list[JobEnvelope]:
        raw_items = await self.redis.lrange(self.failed_key, 0, -1)
        return [JobEnvelope.model_validate_json(raw) for raw in raw_items]

    async def size(self) -> int:
        return await self.redis.llen(self.waiting_key)

    async def close(self) -> None:
        # The client is shared by every queue and closed by the runtime.
        return None


def create_redis_client(redis_url: str) -> Any:
    """Create an asyncio Redis client for the given URL."""
    import redis.asyncio as redis

    return redis.from_url(redis_url, decode_responses=True)
