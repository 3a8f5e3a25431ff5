"""Subtopic generation processor."""

import logging
from typing import Any, Optional

from coursegen.models.course import Course, Subtopic, Topic
from coursegen.models.job import SubtopicGenerationPayload
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
from coursegen.services.courses import CourseRepository, load_subtopic
from coursegen.services.generation import ContentGenerator
from coursegen.services.images import ImageGenerator

logger = logging.getLogger(__name__)


class SubtopicProcessor(BaseProcessor[SubtopicGenerationPayload]):
    """Fills in whatever a subtopic is missing: content, thumbnail, banner."""

    payload_model = SubtopicGenerationPayload
    name = "subtopic"

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
        self, payload: SubtopicGenerationPayload, tracker: StageTracker
    ) -> StageResult[dict[str, Any]]:
        await tracker.init()

        loaded = await attempt(
            load_subtopic(self.courses, payload.course_id, payload.topic_id, payload.subtopic_id)
        )
        if isinstance(loaded, StageErr):
            return loaded
        course, topic, subtopic = loaded.value

        if subtopic.is_realized:
            logger.info(f"Subtopic {subtopic.id} already has content and images")
        else:
            filled = await self._fill(course, topic, subtopic, tracker)
            if isinstance(filled, StageErr):
                return filled

        result = {
            "content": subtopic.content,
            "thumbnail": subtopic.thumbnail,
            "banner": subtopic.banner,
        }
        await tracker.complete(result, steps.SUBTOPIC_COMPLETED)
        return StageOk(result)

    async def _fill(
        self, course: Course, topic: Topic, subtopic: Subtopic, tracker: StageTracker
    ) -> StageResult[None]:
        if not subtopic.content:
            label, progress = steps.SUBTOPIC_CONTENT
            await tracker.step(progress, label, currentSubtopic=subtopic.title)
            written = await attempt(self.content.section_content(topic.title, subtopic.title))
            if isinstance(written, StageErr):
                return written
            subtopic.content = written.value
            subtopic.status = "complete"
            saved = await attempt(self.courses.save_course(course))
            if isinstance(saved, StageErr):
                return saved

        prompt: Optional[str] = None
        for size, (label, progress) in (
            ("thumbnail", steps.SUBTOPIC_THUMBNAIL),
            ("banner", steps.SUBTOPIC_BANNER),
        ):
            if getattr(subtopic, size):
                continue

            await tracker.step(progress, label, currentImage=f"{subtopic.title} {size}")
            if prompt is None:
                generated = await attempt(self.content.image_prompt(subtopic.title, course.title))
                if isinstance(generated, StageErr):
                    return generated
                prompt = generated.value

            url = await attempt(self.images.generate_image(prompt, size, course.course_id))
            if isinstance(url, StageErr):
                return url
            setattr(subtopic, size, url.value)
            saved = await attempt(self.courses.save_course(course))
            if isinstance(saved, StageErr):
                return saved

        return StageOk(None)
