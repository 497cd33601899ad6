"""Request models for the sticker HTTP API."""

from pydantic import BaseModel, Field


class BatchRequest(BaseModel):
    """Request body for generating a sticker batch."""

    image: str = Field(min_length=1)
    style: str
    mode: str = "sequential"
    session_id: str | None = Field(default=None, min_length=1, max_length=128)
