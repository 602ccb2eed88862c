"""Text/vision generation backends

This module wraps the generation endpoints behind a single call shape:
a system instruction, a user prompt, zero or more inline page images and a
temperature. SDK exceptions are translated into the typed GenerationError
family at this boundary so the retry executor can classify them.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from src.agents.base import (
    AgentExecutionError,
    ApiKeyExpiredError,
    GenerationError,
    TransientUpstreamError,
    error_from_status,
)
from src.schemas.configuration import GenerationSettings
from src.schemas.page import Page

logger = logging.getLogger(__name__)


DEFAULT_GEMINI_TEXT_MODEL = "gemini-3-flash-preview"
DEFAULT_OPENAI_TEXT_MODEL = "gpt-4o"

# Upstream wording when the key (or the project behind it) no longer exists
ENTITY_NOT_FOUND_MARKER = "Requested entity was not found"


class ConfigurationError(AgentExecutionError):
    """Raised when a backend cannot be created from the current settings"""

    def __init__(self, message: str):
        super().__init__("INVALID_CONFIGURATION", message)


@dataclass
class GenerationRequest:
    """One call to the text/vision endpoint.

    Attributes:
        system_instruction: System prompt
        prompt: User prompt, sent after the images
        images: Inline page images, in order
        temperature: Sampling temperature
    """
    system_instruction: str
    prompt: str
    images: List[Page] = field(default_factory=list)
    temperature: float = 0.8


def translate_gemini_error(error: genai_errors.APIError) -> GenerationError:
    """Map a google-genai APIError onto the typed error family."""
    message = getattr(error, 'message', None) or str(error)
    context = {"provider": "gemini", "status": getattr(error, 'status', None)}
    if ENTITY_NOT_FOUND_MARKER in str(error):
        return ApiKeyExpiredError(message, status_code=getattr(error, 'code', None), context=context)
    return error_from_status(getattr(error, 'code', None), message, context=context)


def translate_openai_error(error: openai.OpenAIError) -> GenerationError:
    """Map an openai exception onto the typed error family."""
    if isinstance(error, openai.APIStatusError):
        return error_from_status(error.status_code, str(error), context={"provider": "openai"})
    return TransientUpstreamError(str(error), context={"provider": "openai"})


class TextGenerationClient(ABC):
    """Backend able to turn a GenerationRequest into response text"""

    @property
    @abstractmethod
    def model(self) -> str:
        """Return the model name used for requests."""
        ...

    @abstractmethod
    def generate(self, request: GenerationRequest) -> str:
        """Send the request and return the response text ('' if none).

        Raises:
            GenerationError: Translated upstream failure
        """
        ...


class GeminiTextClient(TextGenerationClient):
    """Gemini backend using the google-genai SDK"""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, client=None):
        """Initialize the Gemini client.

        Args:
            api_key: Gemini API key
            model: Model name (defaults to DEFAULT_GEMINI_TEXT_MODEL)
            client: Pre-built genai.Client (tests inject a mock here)
        """
        if client is None:
            if not api_key:
                raise ConfigurationError("GEMINI_API_KEY not set")
            client = genai.Client(api_key=api_key)
        self._client = client
        self._model = model or DEFAULT_GEMINI_TEXT_MODEL

    @property
    def model(self) -> str:
        return self._model

    def build_contents(self, request: GenerationRequest) -> list:
        """Images first, then the prompt text."""
        contents: list = [
            types.Part.from_bytes(data=page.image, mime_type=page.mime_type)
            for page in request.images
        ]
        contents.append(request.prompt)
        return contents

    def generate(self, request: GenerationRequest) -> str:
        logger.debug(
            f"Sending {len(request.images)} images to {self._model} "
            f"(prompt length {len(request.prompt)})"
        )
        try:
            response = self._client.models.generate_content(
                model=self._model,
                contents=self.build_contents(request),
                config=types.GenerateContentConfig(
                    system_instruction=request.system_instruction,
                    temperature=request.temperature,
                ),
            )
        except genai_errors.APIError as e:
            raise translate_gemini_error(e) from e

        return response.text or ""


class OpenAITextClient(TextGenerationClient):
    """OpenAI chat-completions backend with image_url data-URL parts"""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None, client=None):
        if client is None:
            if not api_key:
                raise ConfigurationError("OPENAI_API_KEY not set")
            # Retries are owned by the pipeline's executor
            client = openai.OpenAI(api_key=api_key, max_retries=0)
        self._client = client
        self._model = model or DEFAULT_OPENAI_TEXT_MODEL

    @property
    def model(self) -> str:
        return self._model

    def build_messages(self, request: GenerationRequest) -> list:
        content = [
            {"type": "image_url", "image_url": {"url": page.to_data_url()}}
            for page in request.images
        ]
        content.append({"type": "text", "text": request.prompt})
        return [
            {"role": "system", "content": request.system_instruction},
            {"role": "user", "content": content},
        ]

    def generate(self, request: GenerationRequest) -> str:
        logger.debug(f"Sending {len(request.images)} images to {self._model}")
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=self.build_messages(request),
                temperature=request.temperature,
            )
        except openai.OpenAIError as e:
            raise translate_openai_error(e) from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""


def create_text_client(settings: GenerationSettings) -> TextGenerationClient:
    """Create the backend selected by ``settings.provider``."""
    if settings.provider == "openai":
        return OpenAITextClient(api_key=settings.openai_api_key, model=settings.text_model)
    return GeminiTextClient(api_key=settings.gemini_api_key, model=settings.text_model)
