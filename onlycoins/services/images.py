"""
Image Generation Service.

This module handles image generation against a hosted image model.
It is responsible for:
1. Turning a theme into a prompt from the template catalog
2. Calling the image model, retrying up to a fixed number of attempts
3. Wrapping the returned image as a base64 JPEG data URI

The image model is injected, so the retry loop can be exercised with a fake.
"""

import base64
import logging
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Sequence

import httpx

from onlycoins.config import Settings, get_settings
from onlycoins.services.errors import RetriesExhaustedError
from onlycoins.services.prompts import (
    IMAGE_PROMPT_TEMPLATES,
    PromptSelector,
    get_prompt_selector,
    render_prompt,
)

# Configure logging
logger = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:image/jpeg;charset=utf-8;base64,"


class ImageModelError(Exception):
    """Raised when the image model cannot be reached or returns an error status."""
    pass


class ImageModel(ABC):
    """A hosted text-to-image model."""

    @abstractmethod
    async def run(self, prompt: str) -> Optional[Mapping[str, Any]]:
        """
        Generate an image for a prompt.

        Returns:
            A mapping whose "image" entry holds the base64 image (or raw bytes),
            or None when the model produced nothing (e.g. blocked by a filter)

        Raises:
            Any exception on transport or service failure
        """


class WorkersAIImageModel(ImageModel):
    """
    Cloudflare Workers AI text-to-image model over the REST API.

    Request:  POST {base}/accounts/{account_id}/ai/run/{model}  {"prompt": "..."}
    Response: {"success": true, "result": {"image": "<base64 jpeg>"}, "errors": []}
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

        if not self.settings.image_configured:
            logger.warning(
                "CLOUDFLARE_ACCOUNT_ID or CLOUDFLARE_API_TOKEN is not configured. "
                "Set both in your .env file to enable image generation."
            )

    @property
    def url(self) -> str:
        return (
            f"{self.settings.WORKERS_AI_BASE_URL}/accounts/"
            f"{self.settings.CLOUDFLARE_ACCOUNT_ID}/ai/run/{self.settings.IMAGE_MODEL}"
        )

    def _get_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self.settings.CLOUDFLARE_API_TOKEN}",
        }

    async def run(self, prompt: str) -> Optional[Mapping[str, Any]]:
        if not self.settings.image_configured:
            raise ImageModelError(
                "Workers AI is not configured. "
                "Please set CLOUDFLARE_ACCOUNT_ID and CLOUDFLARE_API_TOKEN in your .env file."
            )

        logger.info(f"Calling image model {self.settings.IMAGE_MODEL}")
        logger.debug(f"Image prompt: {prompt}")

        try:
            async with httpx.AsyncClient(timeout=self.settings.IMAGE_TIMEOUT) as client:
                response = await client.post(
                    self.url,
                    headers=self._get_headers(),
                    json={"prompt": prompt},
                )
        except httpx.TimeoutException as e:
            raise ImageModelError(
                f"Image model request timed out after {self.settings.IMAGE_TIMEOUT} seconds."
            ) from e
        except httpx.HTTPError as e:
            raise ImageModelError(f"HTTP error calling image model: {e}") from e

        if response.status_code != 200:
            raise ImageModelError(
                f"Image model returned status {response.status_code}: "
                f"{response.text[:200]}"
            )

        data = response.json()
        if not data.get("success", True):
            logger.warning(f"Image model reported failure: {data.get('errors')}")
            return None
        return data.get("result")


class ImageGeneratorService:
    """
    Service for generating themed images with bounded retries.

    At most ``max_attempts`` sequential attempts are made per request, with no
    delay between them. Each attempt asks the selector for a template, so
    retries may send a different prompt than the attempt before.
    """

    def __init__(
        self,
        model: ImageModel,
        selector: Optional[PromptSelector] = None,
        templates: Sequence[str] = IMAGE_PROMPT_TEMPLATES,
        max_attempts: int = 3,
    ):
        if not templates:
            raise ValueError("At least one prompt template is required")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.model = model
        self.selector = selector or get_prompt_selector("random")
        self.templates = templates
        self.max_attempts = max_attempts

    @staticmethod
    def to_data_uri(image: Any) -> str:
        """Wrap a base64 string (or raw bytes) as a JPEG data URI."""
        if isinstance(image, (bytes, bytearray)):
            image = base64.b64encode(image).decode("ascii")
        return f"{DATA_URI_PREFIX}{image}"

    async def generate_image(self, theme: str) -> str:
        """
        Generate an image for a theme.

        Args:
            theme: Text substituted into the prompt template

        Returns:
            The image as a data URI

        Raises:
            RetriesExhaustedError: If no attempt produced an image
        """
        attempt = 0
        while attempt < self.max_attempts:
            prompt = render_prompt(self.selector.select(self.templates, attempt), theme)
            try:
                result = await self.model.run(prompt)
            except Exception as e:
                logger.error(f"Image request failed on attempt {attempt + 1}: {e}")
                attempt += 1
                continue

            image = result.get("image") if isinstance(result, Mapping) else None
            if image:
                logger.info(f"Generated image on attempt {attempt + 1}")
                return self.to_data_uri(image)

            logger.warning(f"Image model returned no image on attempt {attempt + 1}")
            attempt += 1

        logger.error(f"Giving up after {self.max_attempts} image attempts")
        raise RetriesExhaustedError(attempts=self.max_attempts)


# Convenience function for dependency injection
async def get_image_generator_service() -> ImageGeneratorService:
    """Get an ImageGeneratorService instance for dependency injection."""
    settings = get_settings()
    return ImageGeneratorService(
        model=WorkersAIImageModel(settings),
        selector=get_prompt_selector(settings.IMAGE_PROMPT_STRATEGY),
        max_attempts=settings.IMAGE_MAX_ATTEMPTS,
    )
