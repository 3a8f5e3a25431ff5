"""Image generation via Pollinations, stored locally or in Supabase storage."""

import logging
import time
from pathlib import Path
from typing import Any, Optional, Protocol
from urllib.parse import quote

import httpx

from coursegen.utils.errors import ImageServiceError
from coursegen.utils.retry import with_retry

logger = logging.getLogger(__name__)

IMAGE_SIZES: dict[str, tuple[int, int]] = {
    "thumbnail": (300, 200),
    "banner": (1200, 600),
}


class ImageGenerator(Protocol):
    """Black-box image generation and storage: prompt in, durable URL out."""

    async def generate_image(self, prompt: str, size: str, course_id: str) -> str:
        ...


class ImageService:
    """Service for generating course images and storing them."""

    def __init__(
        self,
        pollinations_url: str,
        images_dir: str = "images",
        public_base_url: str = "",
        timeout: float = 60.0,
        supabase_client: Optional[Any] = None,
        bucket: str = "",
    ) -> None:
        """
        Initialize the ImageService.

        Args:
            pollinations_url: Base URL the encoded prompt is appended to
            images_dir: Local directory for stored images
            public_base_url: URL prefix under which images_dir is served
            timeout: HTTP timeout for one image request
            supabase_client: Supabase client for storage (optional)
            bucket: Supabase storage bucket; local storage is used when empty
        """
        self.pollinations_url = pollinations_url
        self.images_dir = Path(images_dir)
        self.public_base_url = public_base_url.rstrip("/")
        self.timeout = timeout
        self.supabase = supabase_client
        self.bucket = bucket

    def build_source_url(self, prompt: str, size: str) -> str:
        """
        URL that renders the prompt at the size class's dimensions.

        Raises:
            ImageServiceError: If the size class is unknown
        """
        if size not in IMAGE_SIZES:
            raise ImageServiceError(f"Unknown image size: {size}")
        width, height = IMAGE_SIZES[size]
        return f"{self.pollinations_url}{quote(prompt, safe='')}?width={width}&height={height}&nologo=true"

    async def generate_image(self, prompt: str, size: str, course_id: str) -> str:
        """
        Generate an image for a prompt and store it.

        Args:
            prompt: Visual description of the image
            size: "thumbnail" or "banner"
            course_id: Course the image belongs to

        Returns:
            Public URL of the stored image

        Raises:
            ImageServiceError: If generation or storage fails
        """
        source_url = self.build_source_url(prompt, size)
        data = await self._download(source_url)
        file_name = f"{size}-{int(time.time() * 1000)}.jpg"

        if self.supabase and self.bucket:
            url = await self._upload_to_storage(course_id, file_name, data)
        else:
            url = self._save_locally(course_id, file_name, data)

        logger.info(f"Generated {size} image for course {course_id}: {url}")
        return url

    @with_retry(max_attempts=3, base_delay=1.0, exceptions=(ImageServiceError,))
    async def _download(self, url: str) -> bytes:
        try:
            async with httpx.AsyncClient(follow_redirects=True) as client:
                response = await client.get(url, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise ImageServiceError(f"HTTP error during image generation: {e}")

        if response.status_code != 200:
            raise ImageServiceError(response.text[:200], status_code=response.status_code)
        if not response.content:
            raise ImageServiceError("Image service returned an empty body")
        return response.content

    def _save_locally(self, course_id: str, file_name: str, data: bytes) -> str:
        directory = self.images_dir / course_id
        try:
            directory.mkdir(parents=True, exist_ok=True)
            (directory / file_name).write_bytes(data)
        except OSError as e:
            raise ImageServiceError(f"Failed to save image: {e}")
        return f"{self.public_base_url}/{course_id}/{file_name}"

    async def _upload_to_storage(self, course_id: str, file_name: str, data: bytes) -> str:
        file_path = f"{course_id}/{file_name}"
        try:
            self.supabase.storage.from_(self.bucket).upload(
                path=file_path,
                file=data,
                file_options={"content-type": "image/jpeg"},
            )
            return self.supabase.storage.from_(self.bucket).get_public_url(file_path)
        except Exception as e:
            raise ImageServiceError(f"Failed to upload image: {e}")


def create_image_service(
    supabase_client: Optional[Any] = None, settings: Optional[Any] = None
) -> ImageService:
    """
    Create an ImageService instance using application settings.

    Args:
        supabase_client: Optional Supabase client for storage
        settings: Settings to use instead of the cached application settings

    Returns:
        Configured ImageService instance
    """
    from coursegen.config import get_settings

    settings = settings or get_settings()
    return ImageService(
        pollinations_url=settings.pollinations_url,
        images_dir=settings.images_dir,
        public_base_url=settings.public_images_base_url,
        timeout=settings.image_request_timeout,
        supabase_client=supabase_client,
        bucket=settings.supabase_images_bucket,
    )
