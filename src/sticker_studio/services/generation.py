"""Image generation client interface."""

from typing import Protocol

from sticker_studio.domain.batch import GeneratedImage


class ImageGenerationClient(Protocol):
    """Interface for a remote image-to-image generation backend."""

    async def generate(self, image_bytes: bytes, prompt: str) -> GeneratedImage:
        """Return one generated image for the source photo and prompt."""
