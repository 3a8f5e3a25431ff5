"""Live fan-out of progress snapshots to per-job subscribers."""

import asyncio
import logging
from collections import defaultdict
from typing import Optional

from coursegen.models.progress import JobProgress

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """A live stream of snapshots for one job.

    Iterate with ``async for``; iteration ends once the subscription is
    closed and its buffer drained. Only snapshots published after the
    subscription was created are delivered.
    """

    def __init__(self, job_id: str, buffer_size: int = 100) -> None:
        self.job_id = job_id
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(buffer_size, 1))
        self.dropped = 0

    def deliver(self, snapshot: JobProgress) -> None:
        if self.closed:
            return
        self._put(snapshot)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._put(_CLOSED)

    def _put(self, item: object) -> None:
        # Drop the oldest pending snapshot rather than block the publisher.
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(item)

    async def get(self, timeout: Optional[float] = None) -> Optional[JobProgress]:
        """Next snapshot, or None once closed (or on timeout)."""
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
        if item is _CLOSED:
            return None
        return item

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> JobProgress:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class ProgressBroadcaster:
    """Publish channel keyed by job id.

    ``publish`` never awaits, so snapshots published for one job reach every
    subscriber of that job in publish order.
    """

    def __init__(self, buffer_size: int = 100) -> None:
        self.buffer_size = buffer_size
        self._subscribers: dict[str, set[Subscription]] = defaultdict(set)

    def subscribe(self, job_id: str) -> Subscription:
        subscription = Subscription(job_id, self.buffer_size)
        self._subscribers[job_id].add(subscription)
        logger.debug(f"Subscribed to job {job_id}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscribers = self._subscribers.get(subscription.job_id)
        if subscribers is not None:
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.job_id]
        subscription.close()
        logger.debug(f"Unsubscribed from job {subscription.job_id}")

    def publish(self, job_id: str, snapshot: JobProgress) -> int:
        """
        Push a full snapshot to everyone subscribed to the job.

        Returns:
            Number of subscribers the snapshot was delivered to
        """
        delivered = 0
        for subscription in list(self._subscribers.get(job_id, ())):
            if subscription.closed:
                self.unsubscribe(subscription)
                continue
            try:
                subscription.deliver(snapshot)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping subscriber of job {job_id}: {e}")
                self.unsubscribe(subscription)
        return delivered

    def subscriber_count(self, job_id: str) -> int:
        return len(self._subscribers.get(job_id, ()))

    def close(self) -> None:
        """End every open subscription."""
        for subscribers in list(self._subscribers.values()):
            for subscription in list(subscribers):
                self.unsubscribe(subscription)
