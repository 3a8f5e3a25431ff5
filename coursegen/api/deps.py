"""FastAPI dependencies for the course generation API."""

from fastapi import Request

from coursegen.runtime import JobRuntime
from coursegen.services.submission import JobSubmitter


def get_runtime(request: Request) -> JobRuntime:
    """Dependency for the running job system."""
    return request.app.state.runtime


def get_submitter(request: Request) -> JobSubmitter:
    """Dependency for job submission."""
    return get_runtime(request).submitter
