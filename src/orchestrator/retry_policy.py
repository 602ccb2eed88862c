"""Retry policy implementation for the explainer pipeline.

This module provides the retrying request executor used around every call to
a generation endpoint. It distinguishes between retryable failures (network
errors, rate limits, server errors) and non-retryable ones (client errors,
locally detected deterministic failures).

The retry system supports:
- Exponential, linear, and constant backoff strategies
- Configurable max attempts and delay bounds
- Status-code based retry decisions
- Injectable sleep so callers and tests control wall-clock waits
"""

import time
import logging
from typing import Callable, Optional, TypeVar

from src.agents.base import BackoffStrategy, RetryPolicy


logger = logging.getLogger(__name__)


# Type variable for generic retry function
T = TypeVar('T')


# Locally raised, deterministic error codes (never retried)
NON_RETRYABLE_ERROR_CODES = {
    'INVALID_INPUT',
    'INVALID_CONFIGURATION',
    'API_KEY_EXPIRED',
    'RUN_CANCELLED',
    'NO_IMAGE_RETURNED',
}


def calculate_backoff_delay(
    attempt: int,
    strategy: BackoffStrategy,
    base_delay: float,
    max_delay: float
) -> float:
    """Calculate backoff delay for retry attempt.

    Args:
        attempt: Current attempt number (0-indexed)
        strategy: Backoff strategy to use
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds

    Returns:
        Delay in seconds, capped at max_delay

    Examples:
        >>> calculate_backoff_delay(0, BackoffStrategy.EXPONENTIAL, 1.0, 60.0)
        1.0
        >>> calculate_backoff_delay(2, BackoffStrategy.EXPONENTIAL, 1.0, 60.0)
        4.0
        >>> calculate_backoff_delay(10, BackoffStrategy.EXPONENTIAL, 1.0, 60.0)
        60.0
    """
    if strategy == BackoffStrategy.EXPONENTIAL:
        delay = base_delay * (2 ** attempt)
    elif strategy == BackoffStrategy.LINEAR:
        delay = base_delay * (attempt + 1)
    else:  # CONSTANT
        delay = base_delay

    return min(delay, max_delay)


def extract_status_code(error: Exception) -> Optional[int]:
    """Read an HTTP-like status from a failure, if it carries one.

    Checks ``status_code`` (typed errors, openai), ``code`` (google-genai)
    and ``status`` in that order; only integer values count.
    """
    for attribute in ('status_code', 'code', 'status'):
        value = getattr(error, attribute, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def is_retryable_error(error: Exception) -> bool:
    """Determine if a failure should be retried.

    Args:
        error: Exception to check

    Returns:
        True if error should be retried, False otherwise

    Logic:
        1. Locally raised deterministic error codes are never retried
        2. No status code (network failure, unknown error): retry
        3. 429 or any status >= 500: retry
        4. Any other 4xx: do not retry
    """
    error_code = getattr(error, 'error_code', None)
    if error_code in NON_RETRYABLE_ERROR_CODES:
        return False

    status_code = extract_status_code(error)
    if status_code is None:
        return True
    if status_code == 429 or status_code >= 500:
        return True
    return not (400 <= status_code < 500)


def execute_with_retry(
    func: Callable[[], T],
    retry_policy: RetryPolicy,
    context_name: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
    on_attempt: Optional[Callable[[int], None]] = None
) -> T:
    """Execute a function with retry logic.

    Args:
        func: Function to execute (should take no arguments)
        retry_policy: Retry policy to apply
        context_name: Name for logging context
        sleep: Delay function receiving seconds (injectable for tests)
        on_attempt: Optional callback invoked with the 0-based attempt number
            before each attempt

    Returns:
        Result of successful function execution

    Raises:
        Exception: The non-retryable failure, or the last failure once all
            attempts are exhausted, unchanged

    Example:
        >>> policy = RetryPolicy(max_attempts=3, base_delay_seconds=1.0)
        >>> result = execute_with_retry(lambda: api_call(), policy, "Batch 1")
    """
    total_delay = 0.0

    for attempt in range(retry_policy.max_attempts):
        if on_attempt is not None:
            on_attempt(attempt)
        try:
            result = func()

            if attempt > 0:
                logger.info(
                    f"{context_name} succeeded on attempt {attempt + 1} "
                    f"after {total_delay:.2f}s total delay"
                )

            return result

        except Exception as e:
            is_last_attempt = (attempt == retry_policy.max_attempts - 1)
            retryable = is_retryable_error(e)

            if is_last_attempt or not retryable:
                if not retryable:
                    logger.error(
                        f"{context_name} failed with non-retryable error: "
                        f"{getattr(e, 'error_code', type(e).__name__)}"
                    )
                else:
                    logger.error(
                        f"{context_name} failed after {retry_policy.max_attempts} attempts"
                    )
                raise

            delay = calculate_backoff_delay(
                attempt,
                retry_policy.backoff_strategy,
                retry_policy.base_delay_seconds,
                retry_policy.max_delay_seconds
            )
            total_delay += delay

            logger.warning(
                f"{context_name} failed with {getattr(e, 'error_code', type(e).__name__)}, "
                f"retrying in {delay:.2f}s (attempt {attempt + 2}/{retry_policy.max_attempts})"
            )

            sleep(delay)

    # max_attempts >= 1 is enforced by RetryPolicy, so the loop always returns or raises
    raise RuntimeError(f"{context_name} made no attempts")
