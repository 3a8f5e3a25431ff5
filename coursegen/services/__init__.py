"""Service layer for course generation."""

from coursegen.services.courses import (
    CourseRepository,
    InMemoryCourseRepository,
    SupabaseCourseRepository,
)
from coursegen.services.generation import AgentTextGenerator, ContentGenerator, TextGenerator
from coursegen.services.images import ImageGenerator, ImageService, create_image_service
from coursegen.services.submission import JobSubmitter

__all__ = [
    "CourseRepository",
    "InMemoryCourseRepository",
    "SupabaseCourseRepository",
    "TextGenerator",
    "AgentTextGenerator",
    "ContentGenerator",
    "ImageGenerator",
    "ImageService",
    "create_image_service",
    "JobSubmitter",
]
