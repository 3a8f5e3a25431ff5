"""Construction and lifecycle of the job system."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from coursegen.agents import create_writer_agent
from coursegen.config import Settings
from coursegen.models.job import JobFamily
from coursegen.processors import CourseProcessor, ImageProcessor, SubtopicProcessor, TopicProcessor
from coursegen.progress import (
    InMemoryProgressStore,
    ProgressBroadcaster,
    ProgressReporter,
    ProgressStore,
    SupabaseProgressStore,
)
from coursegen.queues import (
    DEFAULT_POLICIES,
    InMemoryQueueBackend,
    JobQueue,
    RedisQueueBackend,
    RetryPolicy,
    create_redis_client,
    policies_from_settings,
)
from coursegen.services.courses import (
    CourseRepository,
    InMemoryCourseRepository,
    SupabaseCourseRepository,
)
from coursegen.services.generation import AgentTextGenerator, ContentGenerator, TextGenerator
from coursegen.services.images import ImageGenerator, create_image_service
from coursegen.services.submission import JobSubmitter

logger = logging.getLogger(__name__)


@dataclass
class JobRuntime:
    """Every component of the job system, wired together."""

    store: ProgressStore
    broadcaster: ProgressBroadcaster
    reporter: ProgressReporter
    queues: dict[JobFamily, JobQueue]
    submitter: JobSubmitter
    courses: CourseRepository
    redis: Optional[Any] = None
    started: bool = field(default=False, init=False)

    def start(self) -> None:
        """Start one consumption loop per queue."""
        for queue in self.queues.values():
            queue.start()
        self.started = True
        logger.info("Job runtime started")

    async def shutdown(self) -> None:
        for queue in self.queues.values():
            await queue.shutdown()
        self.broadcaster.close()
        if self.redis is not None:
            await self.redis.aclose()
        self.started = False
        logger.info("Job runtime stopped")


def build_runtime(
    store: ProgressStore,
    courses: CourseRepository,
    text: TextGenerator,
    images: ImageGenerator,
    policies: Optional[dict[JobFamily, RetryPolicy]] = None,
    backends: Optional[dict[JobFamily, Any]] = None,
    buffer_size: int = 100,
    poll_interval: float = 1.0,
    redis: Optional[Any] = None,
) -> JobRuntime:
    """
    Wire queues, processors and the submitter around the given collaborators.

    Args:
        store: Progress store
        courses: Course repository
        text: Text generator used for all written content
        images: Image generator used by image, topic and subtopic jobs
        policies: Retry policy per family (defaults to DEFAULT_POLICIES)
        backends: Queue backend per family (in-memory when missing)
        buffer_size: Per-subscriber snapshot buffer
        poll_interval: Seconds a queue loop waits for new items per poll
        redis: Redis client owned by the runtime, closed on shutdown

    Returns:
        A JobRuntime ready to ``start()``
    """
    policies = policies or DEFAULT_POLICIES
    backends = backends or {}

    broadcaster = ProgressBroadcaster(buffer_size=buffer_size)
    reporter = ProgressReporter(store, broadcaster)
    queues = {
        family: JobQueue(
            family.value,
            policies.get(family, DEFAULT_POLICIES[family]),
            backend=backends.get(family) or InMemoryQueueBackend(),
            poll_interval=poll_interval,
        )
        for family in JobFamily
    }
    submitter = JobSubmitter(queues, store, broadcaster)
    content = ContentGenerator(text)

    queues[JobFamily.COURSE].consume(
        CourseProcessor(reporter, content, courses, dispatch=submitter.dispatch)
    )
    queues[JobFamily.TOPIC].consume(TopicProcessor(reporter, content, courses, images))
    queues[JobFamily.SUBTOPIC].consume(SubtopicProcessor(reporter, content, courses, images))
    queues[JobFamily.IMAGE].consume(ImageProcessor(reporter, images))

    return JobRuntime(
        store=store,
        broadcaster=broadcaster,
        reporter=reporter,
        queues=queues,
        submitter=submitter,
        courses=courses,
        redis=redis,
    )


def create_runtime(settings: Settings) -> JobRuntime:
    """Build the runtime from application settings."""
    supabase_client = None
    if settings.progress_store == "supabase" or settings.course_repository == "supabase":
        from supabase import create_client

        supabase_client = create_client(settings.supabase_url, settings.supabase_key)

    store: ProgressStore
    if settings.progress_store == "supabase":
        store = SupabaseProgressStore(supabase_client)
    else:
        store = InMemoryProgressStore()

    courses: CourseRepository
    if settings.course_repository == "supabase":
        courses = SupabaseCourseRepository(supabase_client)
    else:
        courses = InMemoryCourseRepository()

    redis = None
    backends: dict[JobFamily, Any] = {}
    if settings.queue_backend == "redis":
        redis = create_redis_client(settings.redis_url)
        backends = {family: RedisQueueBackend(redis, family.value) for family in JobFamily}

    images = create_image_service(supabase_client, settings)

    return build_runtime(
        store=store,
        courses=courses,
        text=AgentTextGenerator(create_writer_agent(settings.text_model)),
        images=images,
        policies=policies_from_settings(settings),
        backends=backends,
        buffer_size=settings.subscriber_buffer_size,
        poll_interval=settings.queue_poll_interval,
        redis=redis,
    )
