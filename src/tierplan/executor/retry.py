"""Retry with bounded exponential back-off and jitter for provider calls.

Only errors flagged ``transient`` are retried; everything else propagates on
the first failure. The sleep function is injectable so tests do not wait.
"""

import random
import time
from typing import Callable, Tuple, TypeVar
from ..config.models import RetryConfig
from ..utils.errors import ProviderError
from ..utils.logging import get_logger

logger = get_logger("executor.retry")

T = TypeVar("T")


def is_retryable(exc: Exception) -> bool:
    """True for provider errors classified transient."""
    return isinstance(exc, ProviderError) and exc.transient


def backoff_delay(attempt: int, config: RetryConfig, rng: Callable[[float, float], float] = random.uniform) -> float:
    """Sleep before retry number ``attempt`` (1-based): base * 2^(attempt-1), capped, with jitter."""
    delay = min(config.base_delay * (2 ** (attempt - 1)), config.max_delay)
    if config.jitter:
        delay *= 1 + rng(-config.jitter, config.jitter)
    return max(delay, 0.0)


def call_with_retry(
    fn: Callable[[], T],
    config: RetryConfig,
    description: str,
    sleep: Callable[[float], None] = time.sleep,
) -> Tuple[T, int]:
    """
    Call fn until it succeeds, raises a non-retryable error, or attempts run out.

    Args:
        fn: Zero-argument callable performing one provider call
        config: Attempt limit and back-off settings
        description: Label for log messages
        sleep: Sleep function

    Returns:
        (fn's result, attempts used)

    Raises:
        The last exception raised by fn, with ``attempts`` set on it
    """
    attempt = 1
    while True:
        try:
            return fn(), attempt
        except Exception as exc:
            if attempt >= config.max_attempts or not is_retryable(exc):
                if is_retryable(exc):
                    logger.warning(f"{description}: giving up after {attempt} attempts: {exc}")
                exc.attempts = attempt
                raise

            delay = backoff_delay(attempt, config)
            logger.debug(
                f"{description}: transient error on attempt {attempt}/{config.max_attempts}, "
                f"retrying in {delay:.2f}s: {exc}"
            )
            sleep(delay)
            attempt += 1
