"""Course content Pydantic models."""

from datetime import datetime
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from coursegen.models.progress import utcnow

CourseType = Literal["image_theory", "video_theory"]
Accessibility = Literal["free", "paid", "limited"]
GenerationMode = Literal["partial", "full"]
UnitStatus = Literal["incomplete", "complete"]


def new_unit_id() -> str:
    return uuid4().hex[:12]


class CourseParams(BaseModel):
    """Parameters a user supplies when requesting a course."""

    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    type: CourseType = "image_theory"
    accessibility: Accessibility = "free"
    num_topics: int = Field(default=5, ge=1, le=20)
    subtopics: list[str] = Field(default_factory=list)
    generation_mode: GenerationMode = "partial"

    @field_validator("title", "description")
    @classmethod
    def not_whitespace(cls, v: str) -> str:
        """Validate that field is not only whitespace."""
        if not v.strip():
            raise ValueError("field cannot be only whitespace")
        return v


class Subtopic(BaseModel):
    """A section inside a topic."""

    id: str = Field(default_factory=new_unit_id)
    title: str = Field(min_length=1)
    content: str = ""
    order: int = 0
    status: UnitStatus = "incomplete"
    thumbnail: Optional[str] = None
    banner: Optional[str] = None

    @property
    def is_realized(self) -> bool:
        return bool(self.content and self.thumbnail and self.banner)


class Topic(BaseModel):
    """A chapter of a course."""

    id: str = Field(default_factory=new_unit_id)
    title: str = Field(min_length=1)
    content: str = ""
    order: int = 0
    status: UnitStatus = "incomplete"
    thumbnail: Optional[str] = None
    banner: Optional[str] = None
    subtopics: list[Subtopic] = Field(default_factory=list)

    def get_subtopic(self, subtopic_id: str) -> Optional[Subtopic]:
        for subtopic in self.subtopics:
            if subtopic.id == subtopic_id:
                return subtopic
        return None


class Course(BaseModel):
    """A generated course and its topics."""

    course_id: str = Field(default_factory=lambda: f"course-{uuid4().hex[:12]}")
    user_id: Optional[str] = None
    job_id: Optional[str] = None
    title: str = Field(min_length=1)
    description: str = ""
    type: CourseType = "image_theory"
    accessibility: Accessibility = "free"
    thumbnail: Optional[str] = None
    banner: Optional[str] = None
    topics: list[Topic] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        for topic in self.topics:
            if topic.id == topic_id:
                return topic
        return None
