"""Tests for the OpenAI image adapter."""

import asyncio
import base64

import pytest

from sticker_studio.adapters.openai_image_client import OpenAIImageClient
from sticker_studio.domain.errors import BackendCallFailure

PNG_HEADER = b"\x89PNG\r\n\x1a\n"


def _response(data):  # type: ignore[no-untyped-def]
    return type("Resp", (), {"data": data})()


def _image(b64_json):  # type: ignore[no-untyped-def]
    return type("Img", (), {"b64_json": b64_json})()


class _FakeImages:
    def __init__(self, response) -> None:  # type: ignore[no-untyped-def]
        self.response = response
        self.last_payload: dict[str, object] | None = None

    async def edit(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_payload = kwargs
        return self.response


class _FakeOpenAI:
    def __init__(self, response) -> None:  # type: ignore[no-untyped-def]
        self.images = _FakeImages(response)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


def test_openai_image_client_decodes_output() -> None:
    encoded = base64.b64encode(b"sticker").decode()
    fake = _FakeOpenAI(_response([_image(encoded)]))
    client = OpenAIImageClient(client=fake, model="gpt-image-1", size="1024x1024")

    result = asyncio.run(client.generate(PNG_HEADER + b"photo", "make it cute"))

    assert result.image_bytes == b"sticker"
    assert result.mime_type == "image/png"
    payload = fake.images.last_payload
    assert payload is not None
    assert payload["model"] == "gpt-image-1"
    assert payload["prompt"] == "make it cute"
    assert payload["n"] == 1
    assert payload["image"] == ("source.png", PNG_HEADER + b"photo", "image/png")


def test_openai_image_client_defaults_to_jpeg_upload() -> None:
    encoded = base64.b64encode(b"sticker").decode()
    fake = _FakeOpenAI(_response([_image(encoded)]))
    client = OpenAIImageClient(client=fake, output_format="webp")

    result = asyncio.run(client.generate(b"\xff\xd8\xffphoto", "prompt"))

    assert result.mime_type == "image/webp"
    assert fake.images.last_payload["image"][0] == "source.jpg"


@pytest.mark.parametrize(
    ("response", "message"),
    [
        (_response(None), "Invalid response structure"),
        (_response([]), "Invalid response structure"),
        (_response([_image(None)]), "No image data found"),
        (_response([_image("not base64!")]), "Failed to decode image data"),
    ],
)
def test_openai_image_client_rejects_malformed_responses(response, message) -> None:  # type: ignore[no-untyped-def]
    client = OpenAIImageClient(client=_FakeOpenAI(response))

    with pytest.raises(BackendCallFailure, match=message):
        asyncio.run(client.generate(b"photo", "prompt"))


def test_openai_image_client_close() -> None:
    fake = _FakeOpenAI(_response([]))
    client = OpenAIImageClient(client=fake)

    asyncio.run(client.close())

    assert fake.closed is True
