"""Custom exception classes for the course generation service."""


class CourseGenError(Exception):
    """Base exception for all application errors."""

    pass


class GenerationError(CourseGenError):
    """An external generation call failed."""

    pass


class ContentParseError(GenerationError):
    """Generated text could not be repaired into JSON."""

    pass


class ImageServiceError(GenerationError):
    """Image generation or storage failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        if status_code is not None:
            message = f"Image service error {status_code}: {message}"
        super().__init__(message)


class NotFoundError(CourseGenError):
    """A course, topic or subtopic does not exist."""

    pass


class DatabaseError(CourseGenError):
    """Persistence of course content failed."""

    pass


class ProgressStoreError(CourseGenError):
    """The progress store could not read or write a record."""

    pass


class QueueError(CourseGenError):
    """Errors from the job queues."""

    pass


class JobFailedError(CourseGenError):
    """A processor stage failed; raised to let the queue retry the job."""

    def __init__(self, job_id: str, kind: str, message: str) -> None:
        self.job_id = job_id
        self.kind = kind
        super().__init__(message)


class SubJobFailedError(QueueError):
    """A sub-job exhausted its attempts."""

    def __init__(self, queue: str, job_id: str, reason: str) -> None:
        self.queue = queue
        self.job_id = job_id
        self.reason = reason
        super().__init__(f"{queue} job {job_id} failed: {reason}")
