"""OpenAI Images API client for sticker generation."""

import base64
import binascii
from dataclasses import dataclass

from openai import AsyncOpenAI

from sticker_studio.domain.batch import GeneratedImage
from sticker_studio.domain.errors import BackendCallFailure
from sticker_studio.services.generation import ImageGenerationClient

_OUTPUT_MIME_TYPES = {
    "png": "image/png",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}
_EXTENSIONS = {"image/jpeg": ".jpg", "image/png": ".png", "image/webp": ".webp"}


@dataclass
class OpenAIImageClient(ImageGenerationClient):
    """Image generation client backed by the OpenAI image edit endpoint."""

    client: AsyncOpenAI
    model: str = "gpt-image-1"
    size: str = "1024x1024"
    output_format: str = "png"

    @classmethod
    def create(
        cls, api_key: str, model: str = "gpt-image-1", size: str = "1024x1024"
    ) -> "OpenAIImageClient":
        """Create an OpenAI image client."""
        return cls(client=AsyncOpenAI(api_key=api_key), model=model, size=size)

    async def generate(self, image_bytes: bytes, prompt: str) -> GeneratedImage:
        """Edit the source photo according to the prompt."""
        mime_type = _mime(image_bytes)
        filename = "source" + _EXTENSIONS.get(mime_type, ".jpg")
        response = await self.client.images.edit(
            model=self.model,
            image=(filename, image_bytes, mime_type),
            prompt=prompt,
            size=self.size,
            output_format=self.output_format,
            n=1,
        )
        data = getattr(response, "data", None)
        if not data:
            raise BackendCallFailure("Invalid response structure from image API")
        encoded = getattr(data[0], "b64_json", None)
        if not encoded:
            raise BackendCallFailure("No image data found in response")
        try:
            decoded = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise BackendCallFailure(f"Failed to decode image data: {exc}") from exc
        return GeneratedImage(
            image_bytes=decoded,
            mime_type=_OUTPUT_MIME_TYPES.get(self.output_format, "image/png"),
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()


def _mime(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
