"""Progress store backed by a Supabase table."""

import logging
from typing import Any, Optional

from coursegen.models.progress import JobProgress, ProgressUpdate
from coursegen.progress.store import accepts_update, merge_progress
from coursegen.utils.errors import ProgressStoreError

logger = logging.getLogger(__name__)

PROGRESS_TABLE = "job_progress"
UNIQUE_VIOLATION = "23505"


def is_duplicate_key_error(exc: Exception) -> bool:
    """Whether an insert failed on the job_id unique constraint."""
    if getattr(exc, "code", None) == UNIQUE_VIOLATION:
        return True
    return "duplicate key" in str(exc).lower()


class SupabaseProgressStore:
    """Service for JobProgress persistence in Supabase.

    The table holds one row per ``job_id`` (unique). Writes read the current
    row, merge in Python and then insert or update. An insert that loses a
    race against a concurrent writer hits the unique constraint and is
    retried as an update of the row that won.
    """

    def __init__(self, supabase_client: Any, table: str = PROGRESS_TABLE) -> None:
        """
        Initialize the SupabaseProgressStore.

        Args:
            supabase_client: Supabase client instance
            table: Name of the progress table
        """
        self.supabase = supabase_client
        self.table = table

    async def get_progress(self, job_id: str) -> Optional[JobProgress]:
        """
        Retrieve the progress record for a job.

        Raises:
            ProgressStoreError: If the query fails
        """
        try:
            result = self.supabase.table(self.table).select("*").eq("job_id", job_id).execute()
        except Exception as e:
            raise ProgressStoreError(f"Failed to get progress for {job_id}: {e}")

        if not result.data:
            return None
        return JobProgress.model_validate(result.data[0])

    async def upsert_progress(self, job_id: str, update: ProgressUpdate) -> JobProgress:
        """
        Update the record for a job, inserting it when absent.

        Raises:
            ProgressStoreError: If the write fails for any reason other than
                a lost insert race
        """
        existing = await self.get_progress(job_id)
        if existing is not None:
            return await self._update(job_id, existing, update)

        record = merge_progress(job_id, None, update)
        try:
            result = self.supabase.table(self.table).insert(self._to_row(record)).execute()
        except Exception as e:
            if not is_duplicate_key_error(e):
                raise ProgressStoreError(f"Failed to insert progress for {job_id}: {e}")

            logger.info(f"Progress row for {job_id} created concurrently, retrying as update")
            existing = await self.get_progress(job_id)
            if existing is None:
                raise ProgressStoreError(f"Progress row for {job_id} vanished after conflict")
            return await self._update(job_id, existing, update)

        if not result.data:
            raise ProgressStoreError(f"Failed to insert progress for {job_id}")
        return record

    async def _update(
        self, job_id: str, existing: JobProgress, update: ProgressUpdate
    ) -> JobProgress:
        """Merge an update onto the stored row and write it back."""
        if not accepts_update(existing, update):
            logger.debug(f"Ignoring update for finished job {job_id}")
            return existing

        record = merge_progress(job_id, existing, update)
        row = self._to_row(record)
        row.pop("created_at", None)
        try:
            result = (
                self.supabase.table(self.table)
                .update(row)
                .eq("job_id", job_id)
                .execute()
            )
        except Exception as e:
            raise ProgressStoreError(f"Failed to update progress for {job_id}: {e}")

        if not result.data:
            raise ProgressStoreError(f"No progress row updated for {job_id}")
        return record

    @staticmethod
    def _to_row(record: JobProgress) -> dict[str, Any]:
        return record.model_dump(mode="json")

