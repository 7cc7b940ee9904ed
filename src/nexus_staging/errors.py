"""Error taxonomy for staging operations.

Every terminal outcome of the retry/poll engine is surfaced as one of these
exceptions. Callers that need to tell "gave up" from "was told to stop" from
"the server said no" can catch the specific subclass; callers that only care
about success can catch StagingError.
"""

from typing import Any, Optional, Sequence


class StagingError(Exception):
    """Base class for all nexus-staging errors."""


class RetriesExhausted(StagingError):
    """Raised when every attempt produced a retryable outcome.

    Attributes:
        last_reason: Reason reported by the final attempt.
        attempts: Number of attempts that were run.
    """

    def __init__(self, last_reason: str, attempts: int):
        self.last_reason = last_reason
        self.attempts = attempts
        super().__init__(
            f"Gave up after {attempts} attempt(s): {last_reason}"
        )


class OperationCancelled(StagingError):
    """Raised when the caller asked the retry loop to stop.

    Attributes:
        attempts: Number of attempts that ran before cancellation.
    """

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Cancelled after {attempts} attempt(s)")


class TransitionFailed(StagingError):
    """Raised when the remote service reports a failure state.

    Attributes:
        repository_id: Repository that failed to transition.
        expected_state: State the transition was meant to reach.
        observed_state: Failure state reported by the service.
    """

    def __init__(self, repository_id: str, expected_state: Any, observed_state: Any):
        self.repository_id = repository_id
        self.expected_state = expected_state
        self.observed_state = observed_state
        super().__init__(
            f"Repository {repository_id} did not reach "
            f"{_state_name(expected_state)}: service reports "
            f"{_state_name(observed_state)}"
        )


class TransitionTimedOut(StagingError):
    """Raised when a repository never reached the expected state in time.

    Attributes:
        repository_id: Repository that was being polled.
        expected_state: State the transition was meant to reach.
        last_reason: Reason reported by the last poll.
        attempts: Number of polls that were run.
    """

    def __init__(
        self,
        repository_id: str,
        expected_state: Any,
        last_reason: str,
        attempts: int,
    ):
        self.repository_id = repository_id
        self.expected_state = expected_state
        self.last_reason = last_reason
        self.attempts = attempts
        super().__init__(
            f"Repository {repository_id} did not reach "
            f"{_state_name(expected_state)} after {attempts} poll(s): "
            f"{last_reason}"
        )


class StagingProfileNotFound(StagingError):
    """Raised when no staging profile matches the package group."""

    def __init__(self, package_group: str):
        self.package_group = package_group
        super().__init__(
            f"No staging profile found for package group '{package_group}'"
        )


class WrongNumberOfRepositories(StagingError):
    """Raised when a lookup expected exactly one repository in a state.

    Attributes:
        state: The state that was searched for.
        repository_ids: Ids of all matching repositories (may be empty).
    """

    def __init__(self, state: Any, repository_ids: Sequence[str]):
        self.state = state
        self.repository_ids = list(repository_ids)
        super().__init__(
            f"Expected exactly one {_state_name(state)} repository, found "
            f"{len(self.repository_ids)}: {self.repository_ids}"
        )


class NexusAPIError(StagingError):
    """Raised when a Nexus REST request returns an error status.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from the Nexus API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class NexusTransportError(NexusAPIError):
    """Raised when the request never produced an HTTP response."""


def _state_name(state: Any) -> str:
    return getattr(state, "value", str(state))


# HTTP status codes worth polling through
TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def is_transient_error(exc: Exception) -> bool:
    """Return True if ``exc`` is a transient Nexus failure.

    Network failures and throttling/server-side statuses are transient.
    Authentication failures, missing resources and malformed requests are
    not: repeating them cannot succeed.
    """
    if isinstance(exc, NexusTransportError):
        return True
    if isinstance(exc, NexusAPIError):
        return exc.status_code in TRANSIENT_STATUS_CODES
    return False
