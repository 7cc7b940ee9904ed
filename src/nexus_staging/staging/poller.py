"""Transition poller.

After Nexus accepts an asynchronous command, TransitionPoller re-queries the
repository state until it reaches the expected terminal state, reaches one of
the failure states, or the retry budget runs out. It observes only; it never
changes remote or local state.
"""

from typing import Callable, Iterable, Optional

import structlog

from nexus_staging.errors import RetriesExhausted, TransitionFailed, TransitionTimedOut
from nexus_staging.retry import (
    AttemptOutcome,
    Fatal,
    OperationRetrier,
    Retryable,
    Success,
)
from nexus_staging.staging.models import RepositoryState


logger = structlog.get_logger(__name__)


StateFetcher = Callable[[str], RepositoryState]


def classify_state(
    repository_id: str,
    state: RepositoryState,
    expected_state: RepositoryState,
    failure_states: frozenset,
) -> AttemptOutcome:
    """Map one observed state to an attempt outcome.

    Returns:
        Success(state) when the expected state is reached,
        Fatal(TransitionFailed) for a failure state,
        Retryable otherwise.
    """
    if state == expected_state:
        return Success(state)
    if state in failure_states:
        return Fatal(TransitionFailed(repository_id, expected_state, state))
    return Retryable(f"repository {repository_id} is {state.value}")


class TransitionPoller:
    """Polls a repository until a transition completes.

    Attributes:
        fetch_state: Function returning the current state of a repository.
        retrier: Executor that bounds and paces the polls.
        is_retryable_error: Classifier for errors raised by ``fetch_state``.
            Unclassified errors are fatal.

    Example:
        >>> poller = TransitionPoller(client.get_repository_state, retrier)
        >>> poller.wait_for(
        ...     "iocodearte-1042",
        ...     RepositoryState.CLOSED,
        ...     {RepositoryState.FAILED},
        ... )
    """

    def __init__(
        self,
        fetch_state: StateFetcher,
        retrier: OperationRetrier,
        is_retryable_error: Optional[Callable[[Exception], bool]] = None,
    ):
        self.fetch_state = fetch_state
        self.retrier = retrier
        self.is_retryable_error = is_retryable_error

    def wait_for(
        self,
        repository_id: str,
        expected_state: RepositoryState,
        failure_states: Iterable[RepositoryState],
    ) -> RepositoryState:
        """Block until ``repository_id`` reaches ``expected_state``.

        Args:
            repository_id: Repository to poll.
            expected_state: Terminal state that means success.
            failure_states: States that mean the transition failed.

        Returns:
            The observed expected state.

        Raises:
            TransitionFailed: If a failure state was observed.
            TransitionTimedOut: If the attempt budget ran out first.
            OperationCancelled: If the retrier's cancel signal was set.
        """
        failure_states = frozenset(failure_states)
        if expected_state in failure_states:
            raise ValueError(
                f"{expected_state.value} cannot be both expected and a failure state"
            )

        def poll() -> AttemptOutcome:
            state = self.fetch_state(repository_id)
            logger.debug(
                "Polled repository state",
                repository_id=repository_id,
                state=state.value,
                expected_state=expected_state.value,
            )
            return classify_state(repository_id, state, expected_state, failure_states)

        try:
            return self.retrier.run(
                poll,
                description=f"wait for {repository_id} to be {expected_state.value}",
                is_retryable_error=self.is_retryable_error,
            )
        except RetriesExhausted as exc:
            raise TransitionTimedOut(
                repository_id,
                expected_state,
                exc.last_reason,
                exc.attempts,
            ) from exc
