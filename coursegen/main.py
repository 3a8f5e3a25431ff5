"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError

from coursegen.api.routes import (
    course_gen_exception_handler,
    generic_exception_handler,
    http_exception_handler,
    router,
    validation_exception_handler,
)
from coursegen.config import Settings, get_settings
from coursegen.runtime import JobRuntime, create_runtime
from coursegen.utils.errors import CourseGenError

logger = logging.getLogger(__name__)


def create_app(
    runtime: Optional[JobRuntime] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        runtime: Pre-built job runtime (built from settings when omitted)
        settings: Application settings (cached settings when omitted)

    Returns:
        FastAPI app whose lifespan starts and stops the job runtime
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        job_runtime = runtime or create_runtime(settings)
        app.state.runtime = job_runtime
        job_runtime.start()
        try:
            yield
        finally:
            await job_runtime.shutdown()

    app = FastAPI(title="Course Generation API", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(CourseGenError, course_gen_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(router)

    # Locally stored images, served under public_images_base_url
    app.mount(
        "/images",
        StaticFiles(directory=settings.images_dir, check_dir=False),
        name="images",
    )
    return app


# The runtime is built on startup, not at import
app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
