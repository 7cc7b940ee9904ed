"""Bounded retry engine.

- RetryPolicy: immutable attempt budget and delay
- Success / Retryable / Fatal: outcome of a single attempt
- OperationRetrier: runs an operation until a terminal outcome
"""

from nexus_staging.retry.policy import (
    DEFAULT_DELAY_BETWEEN_ATTEMPTS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RETRY_POLICY,
    AttemptOutcome,
    Fatal,
    Retryable,
    RetryPolicy,
    Success,
)
from nexus_staging.retry.retrier import CancelSignal, OperationRetrier

__all__ = [
    # Policy
    "DEFAULT_DELAY_BETWEEN_ATTEMPTS",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_RETRY_POLICY",
    "RetryPolicy",
    # Outcomes
    "AttemptOutcome",
    "Fatal",
    "Retryable",
    "Success",
    # Executor
    "CancelSignal",
    "OperationRetrier",
]
