"""
Retry utilities with exponential backoff for MoodFeed services.
"""

import random
import time
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings

logger = get_logger(__name__)


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        backoff_factor: float = 2.0,
        jitter: bool = True,
        retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,)
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter
        self.retryable_exceptions = retryable_exceptions


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay for retry attempt with exponential backoff and jitter."""
    delay = config.base_delay * (config.backoff_factor ** attempt)
    delay = min(delay, config.max_delay)

    if config.jitter:
        jitter_range = delay * 0.1
        delay += random.uniform(-jitter_range, jitter_range)

    return max(0, delay)


def _pick(value, default):
    return default if value is None else value


def retry(
    max_retries: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
    backoff_factor: Optional[float] = None,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[Exception, int], None]] = None,
    exhausted_error: Type[Exception] = RetryError,
):
    """
    Decorator for retrying function calls with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Base delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        backoff_factor: Multiplier for delay after each retry
        jitter: Whether to add random jitter to delays
        retryable_exceptions: Tuple of exception types to retry on
        on_retry: Callback function called on each retry attempt
        exhausted_error: Exception type raised once retries are exhausted

    Returns:
        Decorated function
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            settings = get_settings()
            config = RetryConfig(
                max_retries=_pick(max_retries, settings.service.max_retries),
                base_delay=_pick(base_delay, settings.service.retry_delay),
                max_delay=_pick(max_delay, settings.service.retry_delay * 10),
                backoff_factor=_pick(backoff_factor, settings.service.retry_backoff_factor),
                jitter=jitter,
                retryable_exceptions=retryable_exceptions
            )

            for attempt in range(config.max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except config.retryable_exceptions as e:
                    if attempt == config.max_retries:
                        logger.error(f"Function {func.__name__} failed after {config.max_retries} retries: {e}")
                        raise exhausted_error(f"Function {func.__name__} failed after {config.max_retries} retries") from e

                    delay = calculate_delay(attempt, config)
                    logger.warning(f"Function {func.__name__} failed (attempt {attempt + 1}/{config.max_retries + 1}): {e}. Retrying in {delay:.2f}s")

                    if on_retry:
                        on_retry(e, attempt + 1)

                    time.sleep(delay)

        return wrapper
    return decorator
