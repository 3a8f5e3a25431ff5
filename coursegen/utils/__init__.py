"""Utility modules for the course generation service."""

from coursegen.utils.errors import (
    ContentParseError,
    CourseGenError,
    DatabaseError,
    GenerationError,
    ImageServiceError,
    JobFailedError,
    NotFoundError,
    ProgressStoreError,
    QueueError,
    SubJobFailedError,
)
from coursegen.utils.lenient_json import parse_lenient_json
from coursegen.utils.retry import backoff_delay, with_retry

__all__ = [
    "CourseGenError",
    "GenerationError",
    "ContentParseError",
    "ImageServiceError",
    "JobFailedError",
    "NotFoundError",
    "DatabaseError",
    "ProgressStoreError",
    "QueueError",
    "SubJobFailedError",
    "parse_lenient_json",
    "backoff_delay",
    "with_retry",
]
