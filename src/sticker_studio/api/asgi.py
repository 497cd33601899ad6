"""ASGI entrypoint for the sticker studio API."""

from sticker_studio.api.app import create_app
from sticker_studio.containers import build_container

app = create_app(build_container())
