"""Course generation processor."""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from coursegen.models.course import Course, Topic
from coursegen.models.job import CourseGenerationPayload, JobFamily
from coursegen.processors import steps
from coursegen.processors.base import (
    BaseProcessor,
    StageErr,
    StageOk,
    StageResult,
    StageTracker,
    attempt,
)
from coursegen.progress.reporter import ProgressReporter
from coursegen.queues.queue import JobHandle
from coursegen.services.courses import CourseRepository
from coursegen.services.generation import ContentGenerator

logger = logging.getLogger(__name__)

Dispatch = Callable[[JobFamily, dict[str, Any]], Awaitable[JobHandle]]


@dataclass
class CourseBuild:
    """State shared by the stages of one course job attempt."""

    payload: CourseGenerationPayload
    tracker: StageTracker
    course: Optional[Course] = None
    is_new: bool = True
    images_completed: int = 0
    topics_completed: int = 0


class CourseProcessor(BaseProcessor[CourseGenerationPayload]):
    """Builds a course: description, course images, then one topic at a time.

    In partial mode only the first topic is fully written and illustrated;
    the others keep their titles and subtopic titles and are left incomplete
    for topic jobs. In full mode every topic is written and illustrated before
    the job completes. Each realized unit is saved as soon as it exists, so a retried job
    resumes from the course it created earlier instead of starting over.
    Image sub-jobs are awaited one after another.
    """

    payload_model = CourseGenerationPayload
    name = "course"

    def __init__(
        self,
        reporter: ProgressReporter,
        content: ContentGenerator,
        courses: CourseRepository,
        dispatch: Dispatch,
    ) -> None:
        super().__init__(reporter)
        self.content = content
        self.courses = courses
        self.dispatch = dispatch

    async def run(
        self, payload: CourseGenerationPayload, tracker: StageTracker
    ) -> StageResult[dict[str, Any]]:
        params = payload.course
        await tracker.init(
            topicsCompleted=0,
            totalTopics=params.num_topics,
            imagesCompleted=0,
            totalImages=steps.course_image_total(params.num_topics, params.generation_mode),
            courseName=params.title,
        )

        build = CourseBuild(payload=payload, tracker=tracker)
        for stage in (
            self._load_course,
            self._describe,
            self._course_images,
            self._topics,
            self._persist,
        ):
            outcome = await stage(build)
            if isinstance(outcome, StageErr):
                return outcome

        assert build.course is not None
        result = build.course.model_dump(mode="json")
        await tracker.complete(
            result,
            steps.COURSE_COMPLETED,
            topicsCompleted=build.topics_completed,
            imagesCompleted=build.images_completed,
        )
        return StageOk(result)

    async def _load_course(self, build: CourseBuild) -> StageResult[None]:
        found = await attempt(self.courses.find_by_job(build.payload.job_id))
        if isinstance(found, StageErr):
            return found

        if found.value is not None:
            logger.info(f"Resuming course {found.value.course_id} for job {build.payload.job_id}")
            build.course = found.value
            build.is_new = False
        else:
            params = build.payload.course
            build.course = Course(
                user_id=build.payload.user_id,
                job_id=build.payload.job_id,
                title=params.title,
                description=params.description,
                type=params.type,
                accessibility=params.accessibility,
            )

        course = build.course
        build.images_completed = sum(
            1 for url in (course.thumbnail, course.banner) if url
        )
        for topic in course.topics:
            build.images_completed += sum(1 for url in (topic.thumbnail, topic.banner) if url)
        return StageOk(None)

    async def _describe(self, build: CourseBuild) -> StageResult[None]:
        if not build.is_new:
            return StageOk(None)

        label, progress = steps.COURSE_DESCRIPTION
        await build.tracker.step(progress, label)
        expanded = await attempt(self.content.expand_description(build.payload.course.description))
        if isinstance(expanded, StageErr):
            return expanded

        build.course.description = expanded.value
        return await self._save(build)

    async def _course_images(self, build: CourseBuild) -> StageResult[None]:
        course = build.course
        prompt: Optional[str] = None

        for size, (label, progress) in (
            ("thumbnail", steps.COURSE_THUMBNAIL),
            ("banner", steps.COURSE_BANNER),
        ):
            if getattr(course, size):
                continue

            await build.tracker.step(progress, label, currentImage=f"course {size}")
            if prompt is None:
                generated = await attempt(self.content.image_prompt(course.title, course.title))
                if isinstance(generated, StageErr):
                    return generated
                prompt = generated.value

            url = await self._image(build, prompt, size)
            if isinstance(url, StageErr):
                return url
            setattr(course, size, url.value)

            saved = await self._save(build)
            if isinstance(saved, StageErr):
                return saved
            build.images_completed += 1
            await build.tracker.step(progress, label, imagesCompleted=build.images_completed)

        return StageOk(None)

    async def _topics(self, build: CourseBuild) -> StageResult[None]:
        params = build.payload.course
        course = build.course
        total = params.num_topics

        for index in range(total):
            progress = steps.spread(steps.COURSE_TOPICS_START, steps.COURSE_TOPICS_END, index, total)
            label = f"Generating topic {index + 1} of {total}"

            if index < len(course.topics):
                topic = course.topics[index]
            else:
                await build.tracker.step(progress, label, sub_step="Outlining topic")
                outline = await attempt(self.content.topic_outline(params, index))
                if isinstance(outline, StageErr):
                    return outline
                topic = outline.value
                course.topics.append(topic)
                saved = await self._save(build)
                if isinstance(saved, StageErr):
                    return saved

            realize = index == 0 or params.generation_mode == "full"
            if realize and topic.status != "complete":
                realized = await self._realize_topic(build, topic, progress, label)
                if isinstance(realized, StageErr):
                    return realized

            build.topics_completed = index + 1
            await build.tracker.step(
                progress,
                label,
                topicsCompleted=build.topics_completed,
                currentTopic=topic.title,
            )

        return StageOk(None)

    async def _realize_topic(
        self, build: CourseBuild, topic: Topic, progress: float, label: str
    ) -> StageResult[None]:
        course = build.course

        if not topic.content:
            await build.tracker.step(progress, label, sub_step="Writing topic overview", currentTopic=topic.title)
            written = await attempt(self.content.section_content(topic.title))
            if isinstance(written, StageErr):
                return written
            topic.content = written.value

        total_subtopics = len(topic.subtopics)
        for done, subtopic in enumerate(topic.subtopics):
            if not subtopic.content:
                await build.tracker.step(
                    progress,
                    label,
                    sub_step="Writing subtopic",
                    currentSubtopic=subtopic.title,
                    subtopicsCompleted=done,
                    totalSubtopics=total_subtopics,
                )
                written = await attempt(self.content.section_content(topic.title, subtopic.title))
                if isinstance(written, StageErr):
                    return written
                subtopic.content = written.value
            subtopic.status = "complete"

        saved = await self._save(build)
        if isinstance(saved, StageErr):
            return saved

        prompt: Optional[str] = None
        for size in ("thumbnail", "banner"):
            if getattr(topic, size):
                continue

            await build.tracker.step(
                progress, label, sub_step=f"Generating topic {size}", currentImage=f"{topic.title} {size}"
            )
            if prompt is None:
                generated = await attempt(self.content.image_prompt(topic.title, course.title))
                if isinstance(generated, StageErr):
                    return generated
                prompt = generated.value

            url = await self._image(build, prompt, size)
            if isinstance(url, StageErr):
                return url
            setattr(topic, size, url.value)
            saved = await self._save(build)
            if isinstance(saved, StageErr):
                return saved
            build.images_completed += 1
            await build.tracker.step(progress, label, imagesCompleted=build.images_completed)

        topic.status = "complete"
        return await self._save(build)

    async def _persist(self, build: CourseBuild) -> StageResult[None]:
        label, progress = steps.COURSE_SAVING
        await build.tracker.step(progress, label)
        return await self._save(build)

    async def _image(self, build: CourseBuild, prompt: str, size: str) -> StageResult[str]:
        """Enqueue an image job and wait for its URL."""
        handle = await attempt(
            self.dispatch(
                JobFamily.IMAGE,
                {
                    "prompt": prompt,
                    "size": size,
                    "course_id": build.course.course_id,
                    "user_id": build.payload.user_id,
                },
            )
        )
        if isinstance(handle, StageErr):
            return handle
        return await attempt(handle.value.wait())

    async def _save(self, build: CourseBuild) -> StageResult[None]:
        saved = await attempt(self.courses.save_course(build.course))
        if isinstance(saved, StageErr):
            return saved
        return StageOk(None)
