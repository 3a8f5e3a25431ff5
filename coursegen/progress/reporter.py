"""Single entry point for recording job progress."""

import logging
from typing import Any, Optional

from coursegen.models.progress import JobProgress, ProgressUpdate, utcnow
from coursegen.progress.fanout import ProgressBroadcaster
from coursegen.progress.store import ProgressStore

logger = logging.getLogger(__name__)


class ProgressReporter:
    """Writes progress to the store, then publishes the stored snapshot.

    Reporting is best-effort: a failed store write is logged and the job
    carries on. Subscribers of such a job may see a stale percentage until
    the next successful write. Updates the store ignores are not published.
    """

    def __init__(self, store: ProgressStore, broadcaster: ProgressBroadcaster) -> None:
        self.store = store
        self.broadcaster = broadcaster

    async def report(self, job_id: str, **changes: Any) -> Optional[JobProgress]:
        """
        Record a partial update for a job.

        Args:
            job_id: Job to update
            **changes: ProgressUpdate fields (status, progress, current_step,
                sub_step, details, error, result, attempt, user_id)

        Returns:
            The full stored snapshot, or None if the write failed
        """
        started = utcnow()
        try:
            update = ProgressUpdate(**changes)
            snapshot = await self.store.upsert_progress(job_id, update)
        except Exception as e:
            logger.error(f"Failed to record progress for job {job_id}: {e}")
            return None

        # Every applied write refreshes updated_at; an older stamp means the
        # store kept a finished record unchanged.
        if snapshot.updated_at < started:
            logger.debug(f"Ignored update for finished job {job_id}")
            return snapshot

        try:
            self.broadcaster.publish(job_id, snapshot)
        except Exception as e:
            logger.warning(f"Failed to publish progress for job {job_id}: {e}")
        return snapshot
