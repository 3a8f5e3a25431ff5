"""Topic generation processor."""

import logging
from typing import Any, Optional

from coursegen.models.course import Course, Topic
from coursegen.models.job import TopicGenerationPayload
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
from coursegen.services.courses import CourseRepository, load_topic
from coursegen.services.generation import ContentGenerator
from coursegen.services.images import ImageGenerator

logger = logging.getLogger(__name__)


class TopicProcessor(BaseProcessor[TopicGenerationPayload]):
    """Writes a topic overview and images; in full mode also its subtopics."""

    payload_model = TopicGenerationPayload
    name = "topic"

    def __init__(
        self,
        reporter: ProgressReporter,
        content: ContentGenerator,
        courses: CourseRepository,
        images: ImageGenerator,
    ) -> None:
        super().__init__(reporter)
        self.content = content
        self.courses = courses
        self.images = images

    async def run(
        self, payload: TopicGenerationPayload, tracker: StageTracker
    ) -> StageResult[dict[str, Any]]:
        await tracker.init()

        loaded = await attempt(load_topic(self.courses, payload.course_id, payload.topic_id))
        if isinstance(loaded, StageErr):
            return loaded
        course, topic = loaded.value
        await tracker.step(0, steps.INITIALIZING, currentTopic=topic.title, courseName=course.title)

        overview = await self._overview(course, topic, tracker)
        if isinstance(overview, StageErr):
            return overview

        images = await self._images(course, topic, tracker)
        if isinstance(images, StageErr):
            return images

        if payload.mode == "full":
            subtopics = await self._subtopics(course, topic, tracker)
            if isinstance(subtopics, StageErr):
                return subtopics

        if topic.content and all(s.status == "complete" for s in topic.subtopics):
            topic.status = "complete"
        saved = await attempt(self.courses.save_course(course))
        if isinstance(saved, StageErr):
            return saved

        result = topic.model_dump(mode="json")
        await tracker.complete(result, steps.TOPIC_COMPLETED)
        return StageOk(result)

    async def _overview(self, course: Course, topic: Topic, tracker: StageTracker) -> StageResult[None]:
        if topic.content:
            return StageOk(None)

        label, progress = steps.TOPIC_OVERVIEW
        await tracker.step(progress, label, sub_step=topic.title)
        written = await attempt(self.content.section_content(topic.title))
        if isinstance(written, StageErr):
            return written
        topic.content = written.value

        saved = await attempt(self.courses.save_course(course))
        if isinstance(saved, StageErr):
            return saved
        return StageOk(None)

    async def _images(self, course: Course, topic: Topic, tracker: StageTracker) -> StageResult[None]:
        prompt: Optional[str] = None

        for size, (label, progress) in (
            ("thumbnail", steps.TOPIC_THUMBNAIL),
            ("banner", steps.TOPIC_BANNER),
        ):
            if getattr(topic, size):
                continue

            await tracker.step(progress, label, currentImage=f"{topic.title} {size}")
            if prompt is None:
                generated = await attempt(self.content.image_prompt(topic.title, course.title))
                if isinstance(generated, StageErr):
                    return generated
                prompt = generated.value

            url = await attempt(self.images.generate_image(prompt, size, course.course_id))
            if isinstance(url, StageErr):
                return url
            setattr(topic, size, url.value)

            saved = await attempt(self.courses.save_course(course))
            if isinstance(saved, StageErr):
                return saved

        return StageOk(None)

    async def _subtopics(self, course: Course, topic: Topic, tracker: StageTracker) -> StageResult[None]:
        pending = [s for s in topic.subtopics if s.status != "complete"]
        total = len(pending)
        await tracker.step(
            steps.TOPIC_SUBTOPICS_START,
            "Generating subtopics",
            subtopicsCompleted=0,
            totalSubtopics=total,
        )

        for done, subtopic in enumerate(pending):
            progress = steps.spread(
                steps.TOPIC_SUBTOPICS_START, steps.TOPIC_SUBTOPICS_END, done, total
            )
            await tracker.step(
                progress,
                "Generating subtopics",
                sub_step=f"Subtopic {done + 1} of {total}",
                currentSubtopic=subtopic.title,
            )

            if not subtopic.content:
                written = await attempt(self.content.section_content(topic.title, subtopic.title))
                if isinstance(written, StageErr):
                    return written
                subtopic.content = written.value
            subtopic.status = "complete"

            saved = await attempt(self.courses.save_course(course))
            if isinstance(saved, StageErr):
                return saved

            await tracker.step(
                steps.spread(steps.TOPIC_SUBTOPICS_START, steps.TOPIC_SUBTOPICS_END, done + 1, total),
                "Generating subtopics",
                subtopicsCompleted=done + 1,
            )

        return StageOk(None)
