"""Per-family retry policies."""

from typing import Any

from pydantic import BaseModel, Field

from coursegen.models.job import JobFamily
from coursegen.utils.retry import backoff_delay


class RetryPolicy(BaseModel):
    """Attempt budget and exponential backoff for one queue."""

    max_attempts: int = Field(default=1, ge=1)
    backoff_seconds: float = Field(default=0.0, ge=0)

    model_config = {"frozen": True}

    def should_retry(self, attempts_made: int) -> bool:
        return attempts_made < self.max_attempts

    def delay_after(self, attempts_made: int) -> float:
        """Seconds to wait before the attempt following ``attempts_made``."""
        return backoff_delay(self.backoff_seconds, max(attempts_made - 1, 0))


# Course jobs compose many sub-calls, so they get one extra attempt.
DEFAULT_POLICIES: dict[JobFamily, RetryPolicy] = {
    JobFamily.COURSE: RetryPolicy(max_attempts=3, backoff_seconds=1.0),
    JobFamily.TOPIC: RetryPolicy(max_attempts=2, backoff_seconds=2.0),
    JobFamily.SUBTOPIC: RetryPolicy(max_attempts=2, backoff_seconds=2.0),
    JobFamily.IMAGE: RetryPolicy(max_attempts=2, backoff_seconds=2.0),
}


def policies_from_settings(settings: Any) -> dict[JobFamily, RetryPolicy]:
    """Build the policy table from application settings."""
    sub_job = RetryPolicy(
        max_attempts=settings.subjob_max_attempts,
        backoff_seconds=settings.subjob_backoff_seconds,
    )
    return {
        JobFamily.COURSE: RetryPolicy(
            max_attempts=settings.course_max_attempts,
            backoff_seconds=settings.course_backoff_seconds,
        ),
        JobFamily.TOPIC: sub_job,
        JobFamily.SUBTOPIC: sub_job,
        JobFamily.IMAGE: sub_job,
    }
