"""One-off scene generation through the OpenAI images API."""

import logging
import time

from openai import OpenAI
from pydantic import BaseModel, Field

from rugbatch.config import get_settings
from rugbatch.models.errors import ConfigurationError

logger = logging.getLogger(__name__)


class PromptRequest(BaseModel):
    key: str = Field(..., min_length=1)
    prompt: str = Field(..., min_length=1)


class GeneratedImage(BaseModel):
    key: str
    success: bool
    image_url: str | None = None
    revised_prompt: str | None = None
    error: str | None = None


class DirectImageGenerator:
    """Generates preview scenes one prompt at a time."""

    def __init__(
        self,
        client: OpenAI | None = None,
        model: str | None = None,
        delay_seconds: float = 1.0,
    ):
        settings = get_settings()
        self.model = model or settings.openai_image_model
        self.delay_seconds = delay_seconds
        self.client = client
        if self.client is None:
            if not settings.openai_api_key:
                raise ConfigurationError(
                    "OpenAI API key not configured. Set RUGBATCH_OPENAI_API_KEY"
                )
            self.client = OpenAI(api_key=settings.openai_api_key)

    def generate(self, prompts: list[PromptRequest]) -> list[GeneratedImage]:
        """Generate one image per prompt; failures are reported per prompt."""
        results = []
        for i, request in enumerate(prompts):
            results.append(self._generate_one(request))
            if self.delay_seconds and i < len(prompts) - 1:
                time.sleep(self.delay_seconds)
        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Generated {succeeded}/{len(prompts)} images")
        return results

    def _generate_one(self, request: PromptRequest) -> GeneratedImage:
        try:
            response = self.client.images.generate(
                model=self.model,
                prompt=request.prompt,
                n=1,
                size="1792x1024",
                quality="hd",
                style="natural",
            )
        except Exception as e:
            logger.warning(f"Image generation failed for {request.key}: {e}")
            return GeneratedImage(key=request.key, success=False, error=f"Image API error: {e}")

        data = response.data[0] if response.data else None
        if data is None or not data.url:
            return GeneratedImage(key=request.key, success=False, error="No image URL returned")
        return GeneratedImage(
            key=request.key,
            success=True,
            image_url=data.url,
            revised_prompt=data.revised_prompt,
        )
