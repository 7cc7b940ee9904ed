"""Close, promote and drop operations.

Each operation is a two-phase protocol:

1. Command phase: build a TransitionRequest and issue it exactly once.
   Nexus applies the command asynchronously and issuing it twice is not
   safe, so a failure here is raised as-is.
2. Confirmation phase: poll the repository with a TransitionPoller until it
   reaches the operation's expected state.

The command is issued even if the repository already looks done; only the
server's answer counts.
"""

import time
from typing import TYPE_CHECKING, Callable, ClassVar, FrozenSet, Iterable, Optional

import structlog

from nexus_staging.errors import (
    OperationCancelled,
    TransitionFailed,
    TransitionTimedOut,
    is_transient_error,
)
from nexus_staging.metrics import StagingMetrics
from nexus_staging.retry import (
    DEFAULT_RETRY_POLICY,
    CancelSignal,
    OperationRetrier,
    RetryPolicy,
)
from nexus_staging.staging.models import RepositoryState, TransitionRequest
from nexus_staging.staging.poller import StateFetcher, TransitionPoller

if TYPE_CHECKING:
    from nexus_staging.nexus.client import NexusClient


logger = structlog.get_logger(__name__)


CommandIssuer = Callable[[TransitionRequest], None]


class StagingOperation:
    """Base class for staging repository transitions.

    Subclasses set the class attributes describing their transition.

    Attributes:
        issue_command: Function sending the TransitionRequest to Nexus.
        cancel_event: Optional cancellation signal. It is checked before the
            command is sent and between polls.
        poller: Poller used for the confirmation phase.
        failure_states: States that abort the confirmation phase.
        metrics: Optional metrics sink for outcomes and durations.
    """

    name: ClassVar[str] = ""
    client_method: ClassVar[str] = ""
    expected_state: ClassVar[RepositoryState]
    default_failure_states: ClassVar[FrozenSet[RepositoryState]] = frozenset(
        {RepositoryState.FAILED, RepositoryState.DROPPED}
    )
    default_description: ClassVar[str] = ""

    def __init__(
        self,
        issue_command: CommandIssuer,
        fetch_state: StateFetcher,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Callable[[float], None] = time.sleep,
        cancel_event: Optional[CancelSignal] = None,
        is_retryable_error: Optional[Callable[[Exception], bool]] = None,
        failure_states: Optional[Iterable[RepositoryState]] = None,
        metrics: Optional[StagingMetrics] = None,
    ):
        self.issue_command = issue_command
        self.cancel_event = cancel_event
        self.poller = TransitionPoller(
            fetch_state,
            OperationRetrier(policy, sleep=sleep, cancel_event=cancel_event),
            is_retryable_error=is_retryable_error,
        )
        self.failure_states = frozenset(
            self.default_failure_states if failure_states is None else failure_states
        )
        self.metrics = metrics

    @classmethod
    def for_client(
        cls,
        client: "NexusClient",
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        **kwargs,
    ) -> "StagingOperation":
        """Wire the operation to a NexusClient.

        Transient Nexus errors while polling are retried unless the caller
        passes its own ``is_retryable_error``.
        """
        kwargs.setdefault("is_retryable_error", is_transient_error)
        return cls(
            getattr(client, cls.client_method),
            client.get_repository_state,
            policy,
            **kwargs,
        )

    def build_request(
        self,
        repository_id: str,
        staging_profile_id: str,
        description: Optional[str] = None,
    ) -> TransitionRequest:
        return TransitionRequest(
            repository_ids=frozenset({repository_id}),
            staging_profile_id=staging_profile_id,
            description=(
                self.default_description if description is None else description
            ),
        )

    def run(
        self,
        repository_id: str,
        staging_profile_id: str,
        description: Optional[str] = None,
    ) -> RepositoryState:
        """Issue the command and wait for the transition to complete.

        Args:
            repository_id: Repository to transition.
            staging_profile_id: Profile owning the repository.
            description: Audit note; defaults to the operation's own.

        Returns:
            The confirmed terminal state.

        Raises:
            TransitionFailed: If Nexus reported a failure state.
            TransitionTimedOut: If the state never settled in time.
            OperationCancelled: If cancellation was requested.
            NexusAPIError: If the command itself was rejected.
        """
        request = self.build_request(repository_id, staging_profile_id, description)
        started = time.monotonic()
        outcome = "error"

        logger.info(
            f"Starting {self.name}",
            repository_id=repository_id,
            staging_profile_id=staging_profile_id,
        )

        try:
            # A command cannot be taken back once sent
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise OperationCancelled(0)
            self.issue_command(request)
            state = self.poller.wait_for(
                repository_id,
                self.expected_state,
                self.failure_states,
            )
            outcome = "success"
        except TransitionFailed:
            outcome = "failed"
            raise
        except TransitionTimedOut:
            outcome = "timed_out"
            raise
        except OperationCancelled:
            outcome = "cancelled"
            raise
        finally:
            duration = time.monotonic() - started
            if self.metrics is not None:
                self.metrics.record(self.name, outcome, duration)

        logger.info(
            f"Finished {self.name}",
            repository_id=repository_id,
            state=state.value,
            duration_seconds=round(duration, 3),
        )
        return state


class CloseRepository(StagingOperation):
    """Close an open staging repository."""

    name = "close"
    client_method = "close_repository"
    expected_state = RepositoryState.CLOSED
    default_description = "Automatically closed by nexus-staging"


class PromoteRepository(StagingOperation):
    """Promote (release) a closed staging repository."""

    name = "promote"
    client_method = "promote_repository"
    expected_state = RepositoryState.RELEASED
    default_description = "Automatically released/promoted by nexus-staging"


class DropRepository(StagingOperation):
    """Drop a staging repository."""

    name = "drop"
    client_method = "drop_repository"
    expected_state = RepositoryState.DROPPED
    # A repository whose close was rejected can still be dropped
    default_failure_states = frozenset()
    default_description = "Automatically dropped by nexus-staging"


class CloseAndPromote:
    """Close a repository, then promote it.

    Promote is not started unless close confirmed CLOSED; any close error
    propagates before the promote command is issued. When both operations
    share a cancel signal, setting it while close is being confirmed stops
    the run before the promote command.
    """

    def __init__(self, close: StagingOperation, promote: StagingOperation):
        self.close = close
        self.promote = promote

    def run(
        self,
        repository_id: str,
        staging_profile_id: str,
        description: Optional[str] = None,
    ) -> RepositoryState:
        self.close.run(repository_id, staging_profile_id, description)
        return self.promote.run(repository_id, staging_profile_id, description)
