"""Image generation processor."""

from coursegen.models.job import ImageGenerationPayload
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
from coursegen.services.images import ImageGenerator


class ImageProcessor(BaseProcessor[ImageGenerationPayload]):
    """Generates one image; the URL is the job's return value."""

    payload_model = ImageGenerationPayload
    name = "image"

    def __init__(self, reporter: ProgressReporter, images: ImageGenerator) -> None:
        super().__init__(reporter)
        self.images = images

    async def run(self, payload: ImageGenerationPayload, tracker: StageTracker) -> StageResult[str]:
        await tracker.init(currentImage=payload.prompt)

        label, progress = steps.IMAGE_GENERATING
        await tracker.step(progress, f"{label} ({payload.size})")
        url = await attempt(
            self.images.generate_image(payload.prompt, payload.size, payload.course_id)
        )
        if isinstance(url, StageErr):
            return url

        await tracker.complete({"imageUrl": url.value}, steps.IMAGE_COMPLETED)
        return StageOk(url.value)
