"""Base Agent interface for the manga explainer pipeline

This module defines the core Agent interface that all pipeline agents must implement,
the retry policy model, and the error taxonomy shared by the generation agents.
Each agent has a single responsibility and explicit input/output contracts.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


API_KEY_EXPIRED_MESSAGE = "Your session has expired. Please re-select your API key."


class BackoffStrategy(Enum):
    """Retry backoff strategies"""
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    CONSTANT = "constant"


@dataclass
class RetryPolicy:
    """Retry policy configuration for agent execution

    Attributes:
        max_attempts: Maximum number of execution attempts (including initial attempt)
        backoff_strategy: Strategy for calculating retry delays
        base_delay_seconds: Base delay for backoff calculation
        max_delay_seconds: Maximum delay between retries
    """
    max_attempts: int = 3
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")


class AgentInput(ABC):
    """Base class for agent input data

    All agent-specific input classes should inherit from this base class.
    """
    pass


class AgentOutput(ABC):
    """Base class for agent output data

    All agent-specific output classes should inherit from this base class.
    """
    pass


class AgentExecutionError(Exception):
    """Exception raised for unrecoverable agent execution failures

    Attributes:
        error_code: Machine-readable error code
        message: Human-readable error message
        context: Additional context about the failure
    """

    def __init__(self, error_code: str, message: str, context: Optional[Dict[str, Any]] = None):
        self.error_code = error_code
        self.message = message
        self.context = context or {}
        super().__init__(f"[{error_code}] {message}")


class GenerationError(AgentExecutionError):
    """Failure reported by (or while reaching) a generation endpoint

    Attributes:
        status_code: HTTP-like status of the upstream failure, if any
    """

    default_error_code = "GENERATION_FAILED"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.status_code = status_code
        super().__init__(error_code or self.default_error_code, message, context)


class TransientUpstreamError(GenerationError):
    """Network-level failure with no definite status (retryable)"""
    default_error_code = "NETWORK_ERROR"


class RateLimitedError(TransientUpstreamError):
    """Upstream rejected the call with 429 (retryable)"""
    default_error_code = "API_RATE_LIMIT"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=429, context=context)


class ServerFailureError(TransientUpstreamError):
    """Upstream failed with a 5xx status (retryable)"""
    default_error_code = "SERVICE_UNAVAILABLE"


class ClientRequestError(GenerationError):
    """Upstream rejected the request with a 4xx status other than 429 (not retried)"""
    default_error_code = "CLIENT_ERROR"


class NoImageReturnedError(GenerationError):
    """Image endpoint responded without any inline image part"""
    default_error_code = "NO_IMAGE_RETURNED"

    def __init__(self, message: str = "No image data returned from model", context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context=context)


class ApiKeyExpiredError(GenerationError):
    """The referenced API key or resource is no longer valid

    Raised distinctly from other failures so callers can reset key selection
    and prompt for re-authentication.
    """
    default_error_code = "API_KEY_EXPIRED"


def error_from_status(
    status_code: Optional[int],
    message: str,
    context: Optional[Dict[str, Any]] = None
) -> GenerationError:
    """Map an upstream status code onto the typed error family.

    Args:
        status_code: HTTP-like status, or None for network-level failures
        message: Upstream error message
        context: Additional context for debugging

    Returns:
        GenerationError subclass matching the status
    """
    if status_code is None:
        return TransientUpstreamError(message, context=context)
    if status_code == 429:
        return RateLimitedError(message, context=context)
    if status_code >= 500:
        return ServerFailureError(message, status_code=status_code, context=context)
    if 400 <= status_code < 500:
        return ClientRequestError(message, status_code=status_code, context=context)
    return GenerationError(message, status_code=status_code, context=context)


def describe_error(error: Exception) -> str:
    """Return a human-readable message for surfacing a failure to users."""
    if isinstance(error, ApiKeyExpiredError):
        return API_KEY_EXPIRED_MESSAGE
    if isinstance(error, RateLimitedError):
        return "The model is receiving too many requests. Please try again in a moment."
    if isinstance(error, AgentExecutionError):
        return error.message
    return str(error) or "Something went wrong while generating the story."


class Agent(ABC):
    """Base interface for all pipeline agents

    Each agent implements a single stage of the explainer pipeline with
    explicit inputs, outputs, and failure modes. Agents are designed to be
    composable and testable.

    The agent interface provides three core methods:
    - execute(): Perform the agent's primary task
    - validate_input(): Verify input conforms to expected schema
    - get_retry_policy(): Define retry behavior for transient failures
    """

    @abstractmethod
    def execute(self, input_data: AgentInput) -> AgentOutput:
        """Execute the agent's primary task

        Args:
            input_data: Agent-specific input object conforming to expected schema

        Returns:
            Agent-specific output object

        Raises:
            AgentExecutionError: For unrecoverable failures that should abort pipeline
        """
        pass

    def validate_input(self, input_data: AgentInput) -> bool:
        """Validate input conforms to expected schema

        Args:
            input_data: Agent-specific input object to validate

        Returns:
            True if input is valid, False otherwise
        """
        raise NotImplementedError(
            f"{self.__class__.__name__} must implement validate_input()"
        )

    def get_retry_policy(self) -> RetryPolicy:
        """Return retry policy for this agent

        Returns:
            RetryPolicy object defining retry behavior

        Note:
            Agents with deterministic failures should return a policy with
            max_attempts=1. Agents calling generation endpoints should return a
            policy with exponential backoff.
        """
        return RetryPolicy(max_attempts=1)
