"""Schemas for manga art generation."""

import base64
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class AspectRatio(str, Enum):
    """Aspect ratios accepted by the image generation endpoint."""
    SQUARE = "1:1"
    BOOK = "2:3"
    PHOTO = "3:2"
    POSTER = "3:4"
    CLASSIC = "4:3"
    REELS = "9:16"
    VIDEO = "16:9"
    CINEMA = "21:9"


class GeneratedImage(BaseModel):
    """Image returned by the image generation endpoint."""

    data: bytes = Field(..., description="Raw image bytes")
    mime_type: str = Field(default="image/png", description="MIME type of the image")
    prompt: str = Field(..., description="User prompt the image was generated from")
    aspect_ratio: AspectRatio = Field(..., description="Requested aspect ratio")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Generation timestamp"
    )

    @field_validator('data')
    @classmethod
    def validate_data(cls, v: bytes) -> bytes:
        """Ensure image data is not empty."""
        if not v:
            raise ValueError("image data cannot be empty")
        return v

    def to_data_url(self) -> str:
        """Encode the image as a data URL for presentation layers."""
        encoded = base64.b64encode(self.data).decode('ascii')
        return f"data:{self.mime_type};base64,{encoded}"
