"""
Retry logic with exponential backoff.

Every network call made while acquiring a tool (artifact download, checksum
fetch, remote cache restore and save) goes through ``retry_with_backoff`` with
its own label, so transient CDN or cache hiccups are absorbed in one place and
each failure is distinguishable in the logs.

Usage:
    from smtoolkit.core.retry import RetryPolicy, retry_with_backoff

    path = retry_with_backoff(
        lambda: download_file(url, destination),
        "Download smctl",
        RetryPolicy(max_attempts=3, initial_delay=1.0),
    )
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff configuration.

    Attributes:
        max_attempts: Total number of attempts (first try included)
        initial_delay: Delay in seconds after the first failed attempt
        backoff_multiplier: Factor applied to the delay after each failure
        max_delay: Upper bound for any single delay, in seconds
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        """Validate policy values."""
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1: {self.max_attempts}")
        if self.initial_delay < 0:
            raise ValueError(f"initial_delay cannot be negative: {self.initial_delay}")
        if self.backoff_multiplier < 1:
            raise ValueError(
                f"backoff_multiplier must be at least 1: {self.backoff_multiplier}"
            )
        if self.max_delay < 0:
            raise ValueError(f"max_delay cannot be negative: {self.max_delay}")

    def delay_for(self, attempt: int) -> float:
        """
        Delay to wait after failed attempt number ``attempt`` (1-based).

        Example:
            >>> RetryPolicy(initial_delay=1.0, backoff_multiplier=2.0, max_delay=3.0).delay_for(3)
            3.0
        """
        if attempt < 1:
            raise ValueError(f"attempt must be at least 1: {attempt}")
        return min(
            self.initial_delay * self.backoff_multiplier ** (attempt - 1),
            self.max_delay,
        )


DEFAULT_RETRY_POLICY = RetryPolicy()


def retry_with_backoff(
    operation: Callable[[], T],
    label: str,
    policy: Optional[RetryPolicy] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Execute an idempotent operation, retrying with exponential backoff.

    Args:
        operation: Zero-argument callable to execute (must be idempotent)
        label: Human-readable name used in log messages
        policy: Retry configuration (default: 3 attempts, 1s doubling, 30s cap)
        sleep: Function used to wait between attempts

    Returns:
        Result of the first successful attempt

    Raises:
        Exception: The last error raised by ``operation``, unmodified
    """
    policy = policy or DEFAULT_RETRY_POLICY
    max_attempts = policy.max_attempts

    for attempt in range(1, max_attempts + 1):
        try:
            logger.debug(f"[Attempt {attempt}/{max_attempts}] {label}")
            result = operation()
        except Exception as e:
            if attempt >= max_attempts:
                logger.error(f"{label} failed after {max_attempts} attempts: {e}")
                raise

            delay = policy.delay_for(attempt)
            logger.warning(f"{label} failed (attempt {attempt}/{max_attempts}): {e}")
            logger.info(f"Retrying in {delay:g}s with exponential backoff...")
            sleep(delay)
            continue

        if attempt > 1:
            logger.info(f"{label} succeeded on attempt {attempt}/{max_attempts}")
        return result

    # max_attempts >= 1 is enforced by RetryPolicy, so the loop always returns or raises
    raise AssertionError(f"{label} made no attempts")


__all__ = [
    "RetryPolicy",
    "DEFAULT_RETRY_POLICY",
    "retry_with_backoff",
]
