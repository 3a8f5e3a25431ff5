"""Named job queue with a single consumption loop and per-queue retries."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel

from coursegen.models.job import JobEnvelope
from coursegen.models.progress import utcnow
from coursegen.queues.backends import InMemoryQueueBackend, QueueBackend
from coursegen.queues.policy import RetryPolicy
from coursegen.utils.errors import QueueError, SubJobFailedError

logger = logging.getLogger(__name__)

Handler = Callable[[JobEnvelope], Awaitable[Any]]


class JobHandle:
    """Reference to an enqueued item.

    ``wait()`` resolves with the handler's return value once the item
    completes, or raises SubJobFailedError once it exhausts its attempts.
    """

    def __init__(self, queue: str, envelope: JobEnvelope, future: asyncio.Future) -> None:
        self.queue = queue
        self.id = envelope.id
        self.job_id = envelope.job_id
        self._future = future

    def done(self) -> bool:
        return self._future.done()

    async def wait(self, timeout: Optional[float] = None) -> Any:
        return await asyncio.wait_for(asyncio.shield(self._future), timeout)


class JobQueue:
    """FIFO queue for one job family.

    One registered handler processes one item at a time. A failed attempt is
    retried after an exponential backoff until the policy's attempt budget is
    spent; the item is then moved to the failed list and kept there.
    """

    def __init__(
        self,
        name: str,
        policy: RetryPolicy,
        backend: Optional[QueueBackend] = None,
        poll_interval: float = 1.0,
    ) -> None:
        self.name = name
        self.policy = policy
        self.backend = backend or InMemoryQueueBackend()
        self.poll_interval = poll_interval
        self._handler: Optional[Handler] = None
        self._task: Optional[asyncio.Task] = None
        self._waiters: dict[str, asyncio.Future] = {}

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def consume(self, handler: Handler) -> None:
        """
        Register the queue's handler.

        Raises:
            QueueError: If a handler is already registered
        """
        if self._handler is not None:
            raise QueueError(f"Queue {self.name} already has a handler")
        self._handler = handler

    async def enqueue(
        self, payload: Union[BaseModel, dict[str, Any]], run_offset: int = 0
    ) -> JobHandle:
        """
        Append a payload to the queue.

        Args:
            payload: Validated payload model or plain dict
            run_offset: Attempts already recorded for this job id by earlier runs

        Returns:
            Handle for awaiting the item's completion
        """
        data = payload.model_dump(mode="json") if isinstance(payload, BaseModel) else dict(payload)
        envelope = JobEnvelope(
            queue=self.name,
            payload=data,
            run_offset=run_offset,
            max_attempts=self.policy.max_attempts,
            backoff_seconds=self.policy.backoff_seconds,
        )
        future = asyncio.get_running_loop().create_future()
        self._waiters[envelope.id] = future
        try:
            await self.backend.push(envelope)
        except Exception:
            self._waiters.pop(envelope.id, None)
            raise

        logger.debug(f"Enqueued {envelope.id} on {self.name} (job {envelope.job_id})")
        return JobHandle(self.name, envelope, future)

    async def failed_jobs(self) -> list[JobEnvelope]:
        """Items that exhausted their attempts, oldest first."""
        return await self.backend.list_failed()

    async def size(self) -> int:
        return await self.backend.size()

    def start(self) -> None:
        """Start the consumption loop."""
        if self._handler is None:
            raise QueueError(f"Queue {self.name} has no handler")
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name=f"queue:{self.name}")
        logger.info(f"Queue {self.name} started")

    async def shutdown(self) -> None:
        """Stop the loop; pending waiters are cancelled."""
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None

        for future in self._waiters.values():
            if not future.done():
                future.cancel()
        self._waiters.clear()
        await self.backend.close()
        logger.info(f"Queue {self.name} stopped")

    async def _run(self) -> None:
        try:
            await self.backend.recover()
        except Exception as e:
            logger.error(f"Queue {self.name} failed to requeue unfinished items: {e}")

        while True:
            try:
                envelope = await self.backend.pop(self.poll_interval)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Queue {self.name} failed to fetch next item: {e}")
                await asyncio.sleep(self.poll_interval)
                continue

            if envelope is None:
                continue
            await self.process(envelope)
            try:
                await self.backend.ack(envelope)
            except Exception as e:
                logger.error(f"Queue {self.name} failed to acknowledge {envelope.id}: {e}")

    async def process(self, envelope: JobEnvelope) -> None:
        """Run the handler on one item until it succeeds or runs out of attempts."""
        assert self._handler is not None

        while True:
            envelope.attempts_made += 1
            try:
                result = await self._handler(envelope)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                envelope.failed_reason = str(e) or type(e).__name__
                if self.policy.should_retry(envelope.attempts_made):
                    delay = self.policy.delay_after(envelope.attempts_made)
                    logger.warning(
                        f"{self.name} job {envelope.job_id} attempt "
                        f"{envelope.attempts_made}/{self.policy.max_attempts} failed: {e}. "
                        f"Retrying in {delay}s..."
                    )
                    await asyncio.sleep(delay)
                    continue

                envelope.finished_at = utcnow()
                logger.error(
                    f"{self.name} job {envelope.job_id} failed after "
                    f"{envelope.attempts_made} attempts: {e}"
                )
                await self.backend.add_failed(envelope)
                self._settle(
                    envelope,
                    error=SubJobFailedError(
                        self.name, envelope.job_id or envelope.id, envelope.failed_reason
                    ),
                )
                return

            logger.info(f"{self.name} job {envelope.job_id} completed")
            self._settle(envelope, result=result)
            return

    def _settle(
        self,
        envelope: JobEnvelope,
        result: Any = None,
        error: Optional[Exception] = None,
    ) -> None:
        future = self._waiters.pop(envelope.id, None)
        if future is None or future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)
