"""Agent implementations for the manga explainer pipeline"""

from .base import (
    Agent,
    AgentExecutionError,
    AgentInput,
    AgentOutput,
    ApiKeyExpiredError,
    ClientRequestError,
    GenerationError,
    NoImageReturnedError,
    RateLimitedError,
    RetryPolicy,
    ServerFailureError,
    TransientUpstreamError,
)
from .scene_parser import ParsedBatch, parse_production_script
from .script_explainer import BatchInput, BatchOutput, PanelNumbering, ScriptExplainerAgent
from .page_loader import PageLoaderAgent, PageLoadError, PageSourceInput
from .image_generator import ImagePromptInput, MangaImageAgent

__all__ = [
    "Agent",
    "AgentInput",
    "AgentOutput",
    "AgentExecutionError",
    "RetryPolicy",
    "GenerationError",
    "TransientUpstreamError",
    "RateLimitedError",
    "ServerFailureError",
    "ClientRequestError",
    "NoImageReturnedError",
    "ApiKeyExpiredError",
    "ParsedBatch",
    "parse_production_script",
    "BatchInput",
    "BatchOutput",
    "PanelNumbering",
    "ScriptExplainerAgent",
    "PageLoaderAgent",
    "PageLoadError",
    "PageSourceInput",
    "ImagePromptInput",
    "MangaImageAgent",
]
