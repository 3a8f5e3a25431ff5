"""Pydantic models for jobs, progress and course content."""

from coursegen.models.course import Course, CourseParams, Subtopic, Topic
from coursegen.models.job import (
    CourseGenerationPayload,
    ImageGenerationPayload,
    JobEnvelope,
    JobFamily,
    PAYLOAD_MODELS,
    SubtopicGenerationPayload,
    TopicGenerationPayload,
)
from coursegen.models.progress import JobProgress, ProgressUpdate, TERMINAL_STATUSES

__all__ = [
    "Course",
    "CourseParams",
    "Topic",
    "Subtopic",
    "JobFamily",
    "CourseGenerationPayload",
    "TopicGenerationPayload",
    "SubtopicGenerationPayload",
    "ImageGenerationPayload",
    "PAYLOAD_MODELS",
    "JobEnvelope",
    "JobProgress",
    "ProgressUpdate",
    "TERMINAL_STATUSES",
]
