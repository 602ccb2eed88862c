"""Generation settings shared by the explainer and image agents."""

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class GenerationSettings(BaseModel):
    """Model and credential settings for the generation endpoints."""

    provider: str = Field(
        default="gemini",
        description="Text/vision backend (gemini|openai)"
    )
    text_model: Optional[str] = Field(
        default=None,
        description="Text/vision model name; provider default when unset"
    )
    image_model: str = Field(
        default="gemini-3-pro-image-preview",
        description="Image generation model name"
    )
    temperature: float = Field(
        default=0.8,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for script generation"
    )
    image_size: str = Field(
        default="1K",
        description="Resolution tier for generated images"
    )
    narration_language: str = Field(
        default="Hindi",
        description="Language of the narration script"
    )
    gemini_api_key: str = Field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", ""),
        description="Gemini API key"
    )
    openai_api_key: str = Field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY", ""),
        description="OpenAI API key"
    )

    @field_validator('provider')
    @classmethod
    def validate_provider(cls, v: str) -> str:
        """Validate provider is one of the supported backends."""
        allowed = {'gemini', 'openai'}
        if v not in allowed:
            raise ValueError(f"provider must be one of {allowed}, got '{v}'")
        return v

    @field_validator('image_size')
    @classmethod
    def validate_image_size(cls, v: str) -> str:
        """Validate image size is one of the advertised tiers."""
        allowed = {'1K', '2K', '4K'}
        if v not in allowed:
            raise ValueError(f"image_size must be one of {allowed}, got '{v}'")
        return v
