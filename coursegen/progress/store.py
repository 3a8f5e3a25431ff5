"""Progress store contract and the in-process implementation."""

import asyncio
import logging
from datetime import datetime
from typing import Optional, Protocol

from coursegen.models.progress import JobProgress, ProgressUpdate, utcnow

logger = logging.getLogger(__name__)


class ProgressStore(Protocol):
    """Durable JobProgress records keyed by job id."""

    async def upsert_progress(self, job_id: str, update: ProgressUpdate) -> JobProgress:
        """Update the record if it exists, else insert it. Returns the stored record."""
        ...

    async def get_progress(self, job_id: str) -> Optional[JobProgress]:
        ...


def accepts_update(existing: JobProgress, update: ProgressUpdate) -> bool:
    """
    Whether an update may be applied to an existing record.

    Completed and failed records are final. The only write accepted on them
    is one opening a newer queue attempt of the same job.
    """
    if not existing.is_terminal:
        return True
    return update.attempt is not None and update.attempt > existing.attempt


def merge_progress(
    job_id: str,
    existing: Optional[JobProgress],
    update: ProgressUpdate,
    now: Optional[datetime] = None,
) -> JobProgress:
    """
    Apply a partial update onto a record.

    Top-level fields are replaced; ``details`` is merged one level deep.
    ``created_at`` is kept from the existing record and ``updated_at`` is
    always refreshed.

    Args:
        job_id: Job the record belongs to
        existing: Stored record, or None when inserting
        update: Partial update to apply
        now: Write timestamp (defaults to the current time)

    Returns:
        The merged record
    """
    now = now or utcnow()
    changes = update.changes()
    new_details = changes.pop("details", None) or {}

    if existing is None:
        data = {"job_id": job_id, "created_at": now}
        details: dict = {}
    else:
        data = existing.model_dump()
        details = dict(existing.details)

    details.update(new_details)
    data.update(changes)
    data["details"] = details
    data["updated_at"] = now
    return JobProgress.model_validate(data)


class InMemoryProgressStore:
    """Process-local progress store guarded by an asyncio lock."""

    def __init__(self) -> None:
        self._records: dict[str, JobProgress] = {}
        self._lock = asyncio.Lock()

    async def upsert_progress(self, job_id: str, update: ProgressUpdate) -> JobProgress:
        async with self._lock:
            existing = self._records.get(job_id)
            if existing is not None and not accepts_update(existing, update):
                logger.debug(f"Ignoring update for finished job {job_id}")
                return existing.model_copy(deep=True)

            record = merge_progress(job_id, existing, update)
            self._records[job_id] = record
            return record.model_copy(deep=True)

    async def get_progress(self, job_id: str) -> Optional[JobProgress]:
        record = self._records.get(job_id)
        return record.model_copy(deep=True) if record else None

    def __len__(self) -> int:
        return len(self._records)
