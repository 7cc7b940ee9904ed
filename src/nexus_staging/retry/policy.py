"""Retry policy and attempt outcome types.

The retry engine is driven entirely by these immutable values: a RetryPolicy
resolved once from configuration, and one AttemptOutcome per invocation of
the retried operation.
"""

from dataclasses import dataclass
from typing import Any, Union


DEFAULT_MAX_ATTEMPTS = 10

# Seconds
DEFAULT_DELAY_BETWEEN_ATTEMPTS = 2.0


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded-attempt, fixed-delay retry configuration.

    Attributes:
        max_attempts: Total attempts including the first. A policy with
            max_attempts == 1 performs no retries.
        delay_between_attempts: Seconds to wait between a retryable outcome
            and the next attempt.

    Example:
        >>> policy = RetryPolicy(max_attempts=3, delay_between_attempts=0.5)
        >>> policy.worst_case_wait
        1.0
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    delay_between_attempts: float = DEFAULT_DELAY_BETWEEN_ATTEMPTS

    def __post_init__(self):
        """Validate configuration."""
        attempts = self.max_attempts
        if isinstance(attempts, bool) or not isinstance(attempts, int):
            raise ValueError("max_attempts must be an integer")
        if attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay_between_attempts < 0:
            raise ValueError("delay_between_attempts must be >= 0")

    @property
    def worst_case_wait(self) -> float:
        """Total time spent sleeping if every attempt is retryable."""
        return (self.max_attempts - 1) * self.delay_between_attempts


DEFAULT_RETRY_POLICY = RetryPolicy()


@dataclass(frozen=True)
class Success:
    """Stop retrying and return value."""

    value: Any = None


@dataclass(frozen=True)
class Retryable:
    """Try again if attempts remain."""

    reason: str


@dataclass(frozen=True)
class Fatal:
    """Stop immediately and raise error."""

    error: BaseException


AttemptOutcome = Union[Success, Retryable, Fatal]

ATTEMPT_OUTCOME_TYPES = (Success, Retryable, Fatal)
