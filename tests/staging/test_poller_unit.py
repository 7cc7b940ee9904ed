"""Unit tests for TransitionPoller and state classification."""

from unittest.mock import Mock

import pytest

from nexus_staging.errors import (
    NexusAPIError,
    NexusTransportError,
    OperationCancelled,
    TransitionFailed,
    TransitionTimedOut,
    is_transient_error,
)
from nexus_staging.retry import Fatal, OperationRetrier, Retryable, RetryPolicy, Success
from nexus_staging.staging import RepositoryState, TransitionPoller, classify_state


CLOSED = RepositoryState.CLOSED
CLOSING = RepositoryState.CLOSING
FAILED = RepositoryState.FAILED


def _poller(fetch_state, sleep, max_attempts=5, **kwargs) -> TransitionPoller:
    retrier = OperationRetrier(
        RetryPolicy(max_attempts=max_attempts, delay_between_attempts=1.0),
        sleep=sleep,
        cancel_event=kwargs.pop("cancel_event", None),
    )
    return TransitionPoller(fetch_state, retrier, **kwargs)


class TestClassifyState:

    def test_expected_state_is_success(self):
        assert classify_state("r-1", CLOSED, CLOSED, frozenset({FAILED})) == Success(CLOSED)

    def test_failure_state_is_fatal(self):
        outcome = classify_state("r-1", FAILED, CLOSED, frozenset({FAILED}))
        assert isinstance(outcome, Fatal)
        assert isinstance(outcome.error, TransitionFailed)
        assert outcome.error.observed_state == FAILED

    def test_intermediate_state_is_retryable(self):
        outcome = classify_state("r-1", CLOSING, CLOSED, frozenset({FAILED}))
        assert isinstance(outcome, Retryable)
        assert "closing" in outcome.reason


class TestTransitionPoller:

    def test_reaches_expected_state(self, sleep_recorder):
        fetch_state = Mock(side_effect=[CLOSING, CLOSING, CLOSED])
        poller = _poller(fetch_state, sleep_recorder)

        assert poller.wait_for("repo-1", CLOSED, {FAILED}) == CLOSED
        assert fetch_state.call_count == 3
        fetch_state.assert_called_with("repo-1")
        assert sleep_recorder.calls == [1.0, 1.0]

    def test_failure_state_stops_polling(self, sleep_recorder):
        fetch_state = Mock(side_effect=[CLOSING, FAILED, CLOSED])
        poller = _poller(fetch_state, sleep_recorder, max_attempts=10)

        with pytest.raises(TransitionFailed) as exc_info:
            poller.wait_for("repo-1", CLOSED, {FAILED})

        assert fetch_state.call_count == 2
        assert exc_info.value.repository_id == "repo-1"
        assert exc_info.value.expected_state == CLOSED

    def test_timeout_when_state_never_settles(self, sleep_recorder):
        fetch_state = Mock(return_value=CLOSING)
        poller = _poller(fetch_state, sleep_recorder, max_attempts=4)

        with pytest.raises(TransitionTimedOut) as exc_info:
            poller.wait_for("repo-1", CLOSED, {FAILED})

        assert fetch_state.call_count == 4
        assert exc_info.value.attempts == 4
        assert "closing" in exc_info.value.last_reason
        assert exc_info.value.__cause__ is not None

    def test_prior_state_as_failure_state(self, sleep_recorder):
        fetch_state = Mock(return_value=RepositoryState.OPEN)
        poller = _poller(fetch_state, sleep_recorder)

        with pytest.raises(TransitionFailed):
            poller.wait_for("repo-1", CLOSED, {FAILED, RepositoryState.OPEN})

    def test_expected_state_cannot_be_failure_state(self, sleep_recorder):
        poller = _poller(Mock(), sleep_recorder)

        with pytest.raises(ValueError):
            poller.wait_for("repo-1", CLOSED, {CLOSED})

    def test_transient_fetch_error_is_retried(self, sleep_recorder):
        fetch_state = Mock(
            side_effect=[
                NexusTransportError("connection reset"),
                NexusAPIError("unavailable", status_code=503),
                CLOSED,
            ]
        )
        poller = _poller(fetch_state, sleep_recorder, is_retryable_error=is_transient_error)

        assert poller.wait_for("repo-1", CLOSED, {FAILED}) == CLOSED
        assert fetch_state.call_count == 3

    def test_fatal_fetch_error_propagates_unchanged(self, sleep_recorder):
        error = NexusAPIError("unauthorized", status_code=401)
        fetch_state = Mock(side_effect=error)
        poller = _poller(fetch_state, sleep_recorder, is_retryable_error=is_transient_error)

        with pytest.raises(NexusAPIError) as exc_info:
            poller.wait_for("repo-1", CLOSED, {FAILED})

        assert exc_info.value is error
        assert fetch_state.call_count == 1

    def test_fetch_errors_are_fatal_without_classifier(self, sleep_recorder):
        fetch_state = Mock(side_effect=NexusTransportError("down"))
        poller = _poller(fetch_state, sleep_recorder)

        with pytest.raises(NexusTransportError):
            poller.wait_for("repo-1", CLOSED, {FAILED})

    def test_cancellation_is_not_reported_as_timeout(self, sleep_recorder):
        class SetAfterFirstPoll:
            def __init__(self):
                self.polls = 0

            def is_set(self):
                return self.polls >= 1

        signal = SetAfterFirstPoll()

        def fetch_state(repository_id):
            signal.polls += 1
            return CLOSING

        poller = _poller(fetch_state, sleep_recorder, cancel_event=signal)

        with pytest.raises(OperationCancelled):
            poller.wait_for("repo-1", CLOSED, {FAILED})
        assert signal.polls == 1
