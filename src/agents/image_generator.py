"""Manga Image Agent for prompt-to-artwork generation

This module implements single-shot manga art generation through the Gemini
image model. The response's content parts are scanned for the first inline
image payload. Two failure modes are typed so callers can react to them:
no image in the response, and an expired or unknown API key.
"""

import logging
from typing import Optional, Union

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from src.agents.base import (
    Agent,
    AgentExecutionError,
    AgentInput,
    AgentOutput,
    ApiKeyExpiredError,
    NoImageReturnedError,
    RetryPolicy,
)
from src.agents.generation_client import ENTITY_NOT_FOUND_MARKER, ConfigurationError, translate_gemini_error
from src.schemas.configuration import GenerationSettings
from src.schemas.image import AspectRatio, GeneratedImage

logger = logging.getLogger(__name__)


STYLE_PREFIX = "High quality manga art illustration, professional line art, cinematic lighting, "


class ImagePromptInput(AgentInput):
    """Input for Manga Image Agent

    Attributes:
        prompt: User description of the artwork
        aspect_ratio: Requested aspect ratio
    """

    def __init__(self, prompt: str, aspect_ratio: Union[AspectRatio, str] = AspectRatio.SQUARE):
        self.prompt = prompt
        self.aspect_ratio = AspectRatio(aspect_ratio)


class MangaImageAgent(Agent):
    """Agent responsible for generating manga-style artwork from a prompt"""

    def __init__(
        self,
        settings: Optional[GenerationSettings] = None,
        client=None,
        retry_policy: Optional[RetryPolicy] = None
    ):
        """Initialize the Manga Image Agent

        Args:
            settings: Generation settings (defaults read from the environment)
            client: Pre-built genai.Client; created from settings on first use
            retry_policy: Retry policy the orchestrator applies (single-shot by default)
        """
        self.settings = settings or GenerationSettings()
        self._client = client
        self._retry_policy = retry_policy

    @property
    def client(self):
        if self._client is None:
            if not self.settings.gemini_api_key:
                raise ConfigurationError("GEMINI_API_KEY not set")
            self._client = genai.Client(api_key=self.settings.gemini_api_key)
        return self._client

    def execute(self, input_data: AgentInput) -> AgentOutput:
        if not self.validate_input(input_data):
            raise AgentExecutionError(
                error_code="INVALID_INPUT",
                message="Input must be an ImagePromptInput with a non-empty prompt",
                context={"input_type": type(input_data).__name__}
            )
        return self.generate_image(input_data.prompt, input_data.aspect_ratio)

    def generate_image(self, prompt: str, aspect_ratio: Union[AspectRatio, str] = AspectRatio.SQUARE) -> GeneratedImage:
        """Generate manga artwork for a prompt.

        Args:
            prompt: User description of the artwork
            aspect_ratio: One of the AspectRatio values

        Returns:
            GeneratedImage with the raw image bytes

        Raises:
            NoImageReturnedError: The response carried no inline image
            ApiKeyExpiredError: The upstream reported the key/entity as not found
            GenerationError: Any other translated upstream failure
        """
        aspect_ratio = AspectRatio(aspect_ratio)
        logger.info(f"Generating manga art ({aspect_ratio.value}): {prompt[:50]}...")

        try:
            response = self.client.models.generate_content(
                model=self.settings.image_model,
                contents=STYLE_PREFIX + prompt,
                config=types.GenerateContentConfig(
                    image_config=types.ImageConfig(
                        aspect_ratio=aspect_ratio.value,
                        image_size=self.settings.image_size,
                    )
                ),
            )
        except Exception as e:
            if ENTITY_NOT_FOUND_MARKER in str(e):
                raise ApiKeyExpiredError(
                    str(e),
                    status_code=getattr(e, 'code', None),
                    context={"model": self.settings.image_model}
                ) from e
            if isinstance(e, genai_errors.APIError):
                raise translate_gemini_error(e) from e
            raise

        inline_data = self._find_inline_image(response)
        if inline_data is None:
            raise NoImageReturnedError(context={"model": self.settings.image_model})

        logger.info("Received generated image")
        return GeneratedImage(
            data=inline_data.data,
            mime_type=inline_data.mime_type or "image/png",
            prompt=prompt,
            aspect_ratio=aspect_ratio,
        )

    @staticmethod
    def _find_inline_image(response):
        """Return the first inline-data part of the response, if any."""
        for candidate in getattr(response, 'candidates', None) or []:
            content = getattr(candidate, 'content', None)
            for part in getattr(content, 'parts', None) or []:
                inline_data = getattr(part, 'inline_data', None)
                if inline_data is not None and getattr(inline_data, 'data', None):
                    return inline_data
        return None

    def validate_input(self, input_data: AgentInput) -> bool:
        """Validate input is an ImagePromptInput with a non-empty prompt"""
        return isinstance(input_data, ImagePromptInput) and bool(input_data.prompt.strip())

    def get_retry_policy(self) -> RetryPolicy:
        """Image generation is user-triggered and single-shot unless configured"""
        if self._retry_policy is not None:
            return self._retry_policy
        return RetryPolicy(max_attempts=1)
