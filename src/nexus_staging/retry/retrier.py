"""Generic bounded-retry executor.

OperationRetrier repeatedly invokes a zero-argument operation until it
reports Success, reports Fatal, or the attempt budget of its RetryPolicy is
spent. The operation classifies its own result; the retrier only counts,
waits and stops.
"""

import time
from typing import Callable, Optional, Protocol

import structlog

from nexus_staging.errors import OperationCancelled, RetriesExhausted
from nexus_staging.retry.policy import (
    ATTEMPT_OUTCOME_TYPES,
    AttemptOutcome,
    Fatal,
    Retryable,
    RetryPolicy,
    Success,
)


logger = structlog.get_logger(__name__)


class CancelSignal(Protocol):
    """Anything with an is_set() method, e.g. threading.Event."""

    def is_set(self) -> bool:
        ...


class OperationRetrier:
    """Executes an operation under a RetryPolicy.

    Attempts are strictly sequential. The only blocking wait is the
    inter-attempt delay, performed through the injected ``sleep`` function,
    and it happens only between a Retryable outcome and the next attempt.

    Attributes:
        policy: The retry policy in force.
        sleep: Function called with the delay in seconds.
        cancel_event: Optional cancellation signal, checked between attempts.

    Example:
        >>> retrier = OperationRetrier(RetryPolicy(max_attempts=3))
        >>> retrier.run(lambda: Success(42))
        42
    """

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Callable[[float], None] = time.sleep,
        cancel_event: Optional[CancelSignal] = None,
    ):
        self.policy = policy
        self.sleep = sleep
        self.cancel_event = cancel_event

    def run(
        self,
        operation: Callable[[], AttemptOutcome],
        description: str = "operation",
        is_retryable_error: Optional[Callable[[Exception], bool]] = None,
    ):
        """Run ``operation`` until it succeeds, fails fatally or runs out.

        Args:
            operation: Zero-argument callable returning an AttemptOutcome.
            description: Name used in log entries.
            is_retryable_error: Optional classifier for exceptions raised by
                the operation. Exceptions it accepts count as Retryable;
                everything else is re-raised unchanged.

        Returns:
            The value carried by the first Success outcome.

        Raises:
            RetriesExhausted: If every attempt was Retryable.
            OperationCancelled: If the cancel signal was set between attempts.
            Exception: The error carried by a Fatal outcome, or an
                unclassified exception raised by the operation.
        """
        max_attempts = self.policy.max_attempts
        attempts = 0

        while True:
            if attempts > 0:
                self._check_cancelled(attempts, description)

            attempts += 1
            outcome = self._attempt(operation, is_retryable_error)

            if isinstance(outcome, Success):
                logger.debug(
                    "Operation succeeded",
                    operation=description,
                    attempt=attempts,
                )
                return outcome.value

            if isinstance(outcome, Fatal):
                logger.debug(
                    "Operation failed fatally",
                    operation=description,
                    attempt=attempts,
                    error=str(outcome.error),
                )
                raise outcome.error

            if attempts >= max_attempts:
                logger.debug(
                    "Retries exhausted",
                    operation=description,
                    attempts=attempts,
                    reason=outcome.reason,
                )
                raise RetriesExhausted(outcome.reason, attempts)

            self._check_cancelled(attempts, description)

            logger.debug(
                "Retrying operation",
                operation=description,
                attempt=attempts,
                max_attempts=max_attempts,
                delay=self.policy.delay_between_attempts,
                reason=outcome.reason,
            )
            self.sleep(self.policy.delay_between_attempts)

    def _attempt(
        self,
        operation: Callable[[], AttemptOutcome],
        is_retryable_error: Optional[Callable[[Exception], bool]],
    ) -> AttemptOutcome:
        try:
            outcome = operation()
        except Exception as exc:
            if is_retryable_error is not None and is_retryable_error(exc):
                return Retryable(f"{type(exc).__name__}: {exc}")
            raise

        if not isinstance(outcome, ATTEMPT_OUTCOME_TYPES):
            raise TypeError(
                f"Operation must return Success, Retryable or Fatal, "
                f"got {type(outcome).__name__}"
            )
        return outcome

    def _check_cancelled(self, attempts: int, description: str) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            logger.debug(
                "Operation cancelled",
                operation=description,
                attempts=attempts,
            )
            raise OperationCancelled(attempts)
