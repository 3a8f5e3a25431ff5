"""Queue handlers, one per job family."""

from coursegen.processors.base import (
    BaseProcessor,
    StageErr,
    StageOk,
    StageResult,
    StageTracker,
    attempt,
)
from coursegen.processors.course import CourseProcessor
from coursegen.processors.image import ImageProcessor
from coursegen.processors.subtopic import SubtopicProcessor
from coursegen.processors.topic import TopicProcessor

__all__ = [
    "BaseProcessor",
    "StageOk",
    "StageErr",
    "StageResult",
    "StageTracker",
    "attempt",
    "CourseProcessor",
    "TopicProcessor",
    "SubtopicProcessor",
    "ImageProcessor",
]
