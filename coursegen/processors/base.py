"""Shared processor machinery: typed stage results and progress tracking."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Generic, Optional, TypeVar, Union

from pydantic import BaseModel

from coursegen.models.job import JobEnvelope
from coursegen.processors import steps
from coursegen.progress.reporter import ProgressReporter
from coursegen.utils.errors import JobFailedError

logger = logging.getLogger(__name__)

T = TypeVar("T")
P = TypeVar("P", bound=BaseModel)


@dataclass(frozen=True)
class StageOk(Generic[T]):
    value: T


@dataclass(frozen=True)
class StageErr:
    kind: str
    message: str

    @classmethod
    def from_exception(cls, exc: Exception) -> "StageErr":
        return cls(kind=type(exc).__name__, message=str(exc) or type(exc).__name__)


StageResult = Union[StageOk[T], StageErr]


async def attempt(operation: Awaitable[T]) -> StageResult[T]:
    """Await an external call, turning a raised error into a StageErr."""
    try:
        return StageOk(await operation)
    except Exception as e:
        return StageErr.from_exception(e)


class StageTracker:
    """Progress reporting bound to one job attempt."""

    def __init__(
        self,
        reporter: ProgressReporter,
        job_id: str,
        attempt: int,
        user_id: Optional[str] = None,
    ) -> None:
        self.reporter = reporter
        self.job_id = job_id
        self.attempt = attempt
        self.user_id = user_id

    async def init(self, **details: Any) -> None:
        """Open the attempt: clears any error or result from a previous one."""
        changes: dict[str, Any] = dict(
            status="processing",
            progress=0,
            current_step=steps.INITIALIZING,
            sub_step=None,
            error=None,
            result=None,
            attempt=self.attempt,
            details=details,
        )
        if self.user_id:
            changes["user_id"] = self.user_id
        await self.reporter.report(self.job_id, **changes)

    async def step(
        self,
        progress: float,
        current_step: str,
        sub_step: Optional[str] = None,
        **details: Any,
    ) -> None:
        await self.reporter.report(
            self.job_id,
            status="processing",
            progress=progress,
            current_step=current_step,
            sub_step=sub_step,
            details=details,
        )

    async def complete(self, result: Any, current_step: str, **details: Any) -> None:
        await self.reporter.report(
            self.job_id,
            status="completed",
            progress=100,
            current_step=current_step,
            sub_step=None,
            result=result,
            details=details,
        )

    async def fail(self, error: str) -> None:
        # details are left untouched so accumulated counters survive
        await self.reporter.report(self.job_id, status="failed", error=error)


class BaseProcessor(Generic[P]):
    """Queue handler running one job family's stages.

    Subclasses implement ``run``, which returns a StageResult and reports
    its own completion. A StageErr is reported as a failure here and raised
    as JobFailedError so the queue's retry policy can act.
    """

    payload_model: type[P]
    name: str = "job"

    def __init__(self, reporter: ProgressReporter) -> None:
        self.reporter = reporter

    async def __call__(self, envelope: JobEnvelope) -> Any:
        payload = self.payload_model.model_validate(envelope.payload)
        attempt_number = envelope.run_offset + envelope.attempts_made
        tracker = StageTracker(
            self.reporter,
            payload.job_id,
            attempt=attempt_number,
            user_id=getattr(payload, "user_id", None),
        )
        logger.info(
            f"Processing {self.name} job {payload.job_id} (attempt {attempt_number})"
        )

        try:
            outcome = await self.run(payload, tracker)
        except Exception as e:
            logger.exception(f"Unexpected error in {self.name} job {payload.job_id}")
            outcome = StageErr.from_exception(e)

        if isinstance(outcome, StageErr):
            logger.error(f"{self.name} job {payload.job_id} failed: {outcome.kind}: {outcome.message}")
            await tracker.fail(outcome.message)
            raise JobFailedError(payload.job_id, outcome.kind, outcome.message)

        return outcome.value

    async def run(self, payload: P, tracker: StageTracker) -> StageResult[Any]:
        raise NotImplementedError
