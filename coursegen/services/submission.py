"""Job submission: create the job id, seed progress, enqueue."""

import logging
from typing import Any, Mapping, Optional, Union
from uuid import uuid4

from pydantic import BaseModel

from coursegen.models.job import JobFamily, PAYLOAD_MODELS
from coursegen.models.progress import INITIAL_STEP, JobProgress, ProgressUpdate
from coursegen.progress.fanout import ProgressBroadcaster
from coursegen.progress.store import ProgressStore
from coursegen.queues.queue import JobHandle, JobQueue
from coursegen.utils.errors import ProgressStoreError, QueueError

logger = logging.getLogger(__name__)

Payload = Union[BaseModel, Mapping[str, Any]]


class JobSubmitter:
    """Entry point for starting jobs, from the API or from other jobs."""

    def __init__(
        self,
        queues: Mapping[JobFamily, JobQueue],
        store: ProgressStore,
        broadcaster: ProgressBroadcaster,
    ) -> None:
        self.queues = queues
        self.store = store
        self.broadcaster = broadcaster

    async def submit(
        self,
        family: Union[JobFamily, str],
        payload: Payload,
        user_id: Optional[str] = None,
    ) -> str:
        """
        Start a job and return its id without waiting for it.

        Args:
            family: Job family (queue) to submit to
            payload: Payload fields; ``job_id`` is generated when absent
            user_id: Owner of the job

        Returns:
            The job id

        Raises:
            pydantic.ValidationError: If the payload is invalid for the family
            ProgressStoreError: If the initial progress record cannot be written
            QueueError: If the job cannot be enqueued
        """
        handle = await self.dispatch(family, payload, user_id)
        return handle.job_id

    async def dispatch(
        self,
        family: Union[JobFamily, str],
        payload: Payload,
        user_id: Optional[str] = None,
    ) -> JobHandle:
        """Like ``submit`` but returns the queue handle, for awaiting sub-jobs."""
        family = JobFamily(family)
        data = payload.model_dump() if isinstance(payload, BaseModel) else dict(payload)
        data["job_id"] = data.get("job_id") or str(uuid4())
        if user_id is not None:
            data["user_id"] = user_id
        model = PAYLOAD_MODELS[family].model_validate(data)
        job_id = data["job_id"]

        seed: dict[str, Any] = dict(status="pending", progress=0, current_step=INITIAL_STEP)
        if data.get("user_id"):
            seed["user_id"] = data["user_id"]
        run_offset = 0
        try:
            existing = await self.store.get_progress(job_id)
            if existing is not None and existing.is_terminal:
                # A finished job id starts a new run numbered above the stored attempt
                run_offset = existing.attempt
                seed.update(attempt=existing.attempt + 1, sub_step=None, error=None, result=None)
                logger.info(f"Reopening {existing.status} job {job_id} as attempt {existing.attempt + 1}")
            snapshot = await self.store.upsert_progress(job_id, ProgressUpdate(**seed))
        except ProgressStoreError:
            raise
        except Exception as e:
            raise ProgressStoreError(f"Failed to seed progress for {job_id}: {e}")
        self.broadcaster.publish(job_id, snapshot)

        queue = self.queues.get(family)
        if queue is None:
            raise QueueError(f"No queue configured for {family.value} jobs")
        handle = await queue.enqueue(model, run_offset=run_offset)

        logger.info(f"Submitted {family.value} job {job_id}")
        return handle

    async def get_progress(self, job_id: str) -> Optional[JobProgress]:
        return await self.store.get_progress(job_id)
