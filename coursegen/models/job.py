"""Queue payload and envelope Pydantic models."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from coursegen.models.course import CourseParams, GenerationMode
from coursegen.models.progress import utcnow

ImageSize = Literal["thumbnail", "banner"]


class JobFamily(str, Enum):
    """Job families, one queue each."""

    COURSE = "course"
    TOPIC = "topic"
    SUBTOPIC = "subtopic"
    IMAGE = "image"


class CourseGenerationPayload(BaseModel):
    """Generate a whole course from user parameters."""

    job_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    course: CourseParams


class TopicGenerationPayload(BaseModel):
    """Generate the content of one topic of an existing course."""

    job_id: str = Field(min_length=1)
    course_id: str = Field(min_length=1)
    topic_id: str = Field(min_length=1)
    mode: GenerationMode = "partial"
    user_id: Optional[str] = None


class SubtopicGenerationPayload(BaseModel):
    """Generate the content and images of one subtopic."""

    job_id: str = Field(min_length=1)
    course_id: str = Field(min_length=1)
    topic_id: str = Field(min_length=1)
    subtopic_id: str = Field(min_length=1)
    user_id: Optional[str] = None


class ImageGenerationPayload(BaseModel):
    """Generate and store one image."""

    job_id: str = Field(min_length=1)
    prompt: str = Field(min_length=1)
    size: ImageSize
    course_id: str = Field(min_length=1)
    user_id: Optional[str] = None


PAYLOAD_MODELS: dict[JobFamily, type[BaseModel]] = {
    JobFamily.COURSE: CourseGenerationPayload,
    JobFamily.TOPIC: TopicGenerationPayload,
    JobFamily.SUBTOPIC: SubtopicGenerationPayload,
    JobFamily.IMAGE: ImageGenerationPayload,
}


class JobEnvelope(BaseModel):
    """A queued unit of work plus the queue's own bookkeeping."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    queue: str
    payload: dict[str, Any]
    attempts_made: int = 0
    run_offset: int = 0
    max_attempts: int = 1
    backoff_seconds: float = 0.0
    enqueued_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    failed_reason: Optional[str] = None

    @property
    def job_id(self) -> Optional[str]:
        return self.payload.get("job_id")
