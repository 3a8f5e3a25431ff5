"""Job progress Pydantic models."""

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

JobStatus = Literal["pending", "processing", "completed", "failed"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})

INITIAL_STEP = "Initializing"


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class JobProgress(BaseModel):
    """Durable, pollable status record for one job.

    Serialized with camelCase keys (``jobId``, ``currentStep``) for clients;
    constructed with either snake_case or camelCase names.
    """

    job_id: str = Field(min_length=1)
    user_id: Optional[str] = None
    status: JobStatus = "pending"
    progress: float = Field(default=0, ge=0, le=100)
    current_step: str = INITIAL_STEP
    sub_step: Optional[str] = None
    details: dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    result: Any = None
    attempt: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        # Rows read back without an offset are UTC
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class ProgressUpdate(BaseModel):
    """Partial update applied to a JobProgress record.

    Only fields explicitly set are applied; ``details`` is merged one level
    deep into the stored map.
    """

    user_id: Optional[str] = None
    status: Optional[JobStatus] = None
    progress: Optional[float] = Field(default=None, ge=0, le=100)
    current_step: Optional[str] = None
    sub_step: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    result: Any = None
    attempt: Optional[int] = Field(default=None, ge=0)

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    def changes(self) -> dict[str, Any]:
        """Fields the caller set, keyed by snake_case name."""
        return self.model_dump(exclude_unset=True)
