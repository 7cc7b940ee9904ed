"""Unit tests for NexusClient.

Uses httpx.MockTransport so request paths, bodies and headers can be
asserted without a server.
"""

import base64
import json

import httpx
import pytest

from nexus_staging.errors import NexusAPIError, NexusTransportError
from nexus_staging.nexus import NexusClient, is_transient_error
from nexus_staging.staging import RepositoryState, TransitionRequest


SERVER_URL = "https://nexus.example.com/service/local"


class RecordingHandler:
    """MockTransport handler returning canned responses keyed by path."""

    def __init__(self, responses=None):
        self.responses = responses or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, text="not found")
        if isinstance(response, Exception):
            raise response
        return response


def _client(handler, **kwargs) -> NexusClient:
    return NexusClient(SERVER_URL, transport=httpx.MockTransport(handler), **kwargs)


def _repository_response(repo_type, transitioning=False, notifications=0):
    return httpx.Response(
        200,
        json={
            "repositoryId": "iocodearte-1042",
            "profileId": "p-1",
            "type": repo_type,
            "transitioning": transitioning,
            "notifications": notifications,
        },
    )


class TestReadEndpoints:

    def test_get_staging_profiles(self):
        handler = RecordingHandler({
            ("GET", "/service/local/staging/profiles"): httpx.Response(
                200,
                json={"data": [
                    {"id": "p-1", "name": "io.codearte"},
                    {"id": "p-2", "name": "com.example"},
                ]},
            ),
        })

        with _client(handler) as client:
            profiles = client.get_staging_profiles()

        assert [profile.id for profile in profiles] == ["p-1", "p-2"]
        assert profiles[0].name == "io.codearte"
        assert handler.requests[0].headers["Accept"] == "application/json"

    def test_get_profile_repositories(self):
        handler = RecordingHandler({
            ("GET", "/service/local/staging/profile_repositories/p-1"): httpx.Response(
                200,
                json={"data": [
                    {"repositoryId": "r-1", "type": "open", "transitioning": False},
                    {"repositoryId": "r-2", "type": "closed", "transitioning": False},
                ]},
            ),
        })

        with _client(handler) as client:
            repositories = client.get_profile_repositories("p-1")

        assert [(r.id, r.state) for r in repositories] == [
            ("r-1", RepositoryState.OPEN),
            ("r-2", RepositoryState.CLOSED),
        ]

    def test_get_repository_state(self):
        handler = RecordingHandler({
            ("GET", "/service/local/staging/repository/iocodearte-1042"):
                _repository_response("open", transitioning=True),
        })

        with _client(handler) as client:
            assert client.get_repository_state("iocodearte-1042") == RepositoryState.CLOSING

    def test_missing_repository_is_dropped(self):
        handler = RecordingHandler()

        with _client(handler) as client:
            repository = client.get_repository("gone-1")

        assert repository.id == "gone-1"
        assert repository.state == RepositoryState.DROPPED

    def test_malformed_repository_payload(self):
        handler = RecordingHandler({
            ("GET", "/service/local/staging/repository/r-1"):
                httpx.Response(200, json={"type": "mystery"}),
        })

        with _client(handler) as client:
            with pytest.raises(NexusAPIError, match="Unexpected staging repository payload"):
                client.get_repository("r-1")

    def test_non_json_body(self):
        handler = RecordingHandler({
            ("GET", "/service/local/staging/profiles"):
                httpx.Response(200, text="<html>maintenance</html>"),
        })

        with _client(handler) as client:
            with pytest.raises(NexusAPIError, match="non-JSON"):
                client.get_staging_profiles()


class TestCommands:

    def test_close_single_repository_uses_profile_finish(self):
        handler = RecordingHandler({
            ("POST", "/service/local/staging/profiles/p-1/finish"): httpx.Response(201),
        })
        request = TransitionRequest(
            repository_ids=frozenset({"r-1"}),
            staging_profile_id="p-1",
            description="closing r-1",
        )

        with _client(handler) as client:
            client.close_repository(request)

        sent = handler.requests[0]
        assert json.loads(sent.content) == {
            "data": {"stagedRepositoryId": "r-1", "description": "closing r-1"}
        }
        assert sent.headers["Content-Type"] == "application/json"

    @pytest.mark.parametrize(
        "method_name, path",
        [
            ("promote_repository", "/service/local/staging/profiles/p-1/promote"),
            ("drop_repository", "/service/local/staging/profiles/p-1/drop"),
        ],
    )
    def test_profile_command_paths(self, method_name, path):
        handler = RecordingHandler({("POST", path): httpx.Response(201)})
        request = TransitionRequest(repository_ids=frozenset({"r-1"}), staging_profile_id="p-1")

        with _client(handler) as client:
            getattr(client, method_name)(request)

        assert handler.requests[0].url.path == path

    def test_bulk_close(self):
        handler = RecordingHandler({
            ("POST", "/service/local/staging/bulk/close"): httpx.Response(201),
        })
        request = TransitionRequest(
            repository_ids=frozenset({"r-2", "r-1"}), staging_profile_id="p-1"
        )

        with _client(handler) as client:
            client.close_repository(request)

        assert json.loads(handler.requests[0].content) == {
            "data": {"stagedRepositoryIds": ["r-1", "r-2"], "description": ""}
        }

    def test_command_error_status(self):
        handler = RecordingHandler({
            ("POST", "/service/local/staging/profiles/p-1/finish"):
                httpx.Response(400, text="repository is not open"),
        })
        request = TransitionRequest(repository_ids=frozenset({"r-1"}), staging_profile_id="p-1")

        with _client(handler) as client:
            with pytest.raises(NexusAPIError) as exc_info:
                client.close_repository(request)

        assert exc_info.value.status_code == 400
        assert exc_info.value.response_body == "repository is not open"
        assert len(handler.requests) == 1


class TestTransport:

    def test_basic_auth_header(self):
        handler = RecordingHandler({
            ("GET", "/service/local/staging/profiles"): httpx.Response(200, json={"data": []}),
        })

        with _client(handler, username="deployer", password="s3cret") as client:
            client.get_staging_profiles()

        expected = base64.b64encode(b"deployer:s3cret").decode()
        assert handler.requests[0].headers["Authorization"] == f"Basic {expected}"

    def test_no_auth_without_username(self):
        handler = RecordingHandler({
            ("GET", "/service/local/staging/profiles"): httpx.Response(200, json={"data": []}),
        })

        with _client(handler) as client:
            client.get_staging_profiles()

        assert "Authorization" not in handler.requests[0].headers

    def test_transport_error_wrapped(self):
        handler = RecordingHandler({
            ("GET", "/service/local/staging/repository/r-1"):
                httpx.ConnectError("connection refused"),
        })

        with _client(handler) as client:
            with pytest.raises(NexusTransportError) as exc_info:
                client.get_repository("r-1")

        assert exc_info.value.status_code is None
        assert exc_info.value.request_url.endswith("staging/repository/r-1")

    def test_server_url_trailing_slash_normalised(self):
        assert NexusClient(SERVER_URL).server_url == SERVER_URL + "/"
        assert NexusClient(SERVER_URL + "/").server_url == SERVER_URL + "/"

    def test_close_releases_http_client(self):
        client = _client(RecordingHandler())
        http_client = client.client

        client.close()

        assert http_client.is_closed
        assert client._client is None


class TestIsTransientError:

    @pytest.mark.parametrize("status_code", [408, 429, 500, 502, 503, 504])
    def test_transient_statuses(self, status_code):
        assert is_transient_error(NexusAPIError("x", status_code=status_code))

    @pytest.mark.parametrize("status_code", [400, 401, 403, 404, 409])
    def test_permanent_statuses(self, status_code):
        assert not is_transient_error(NexusAPIError("x", status_code=status_code))

    def test_transport_errors_are_transient(self):
        assert is_transient_error(NexusTransportError("reset"))

    def test_other_exceptions_are_not_transient(self):
        assert not is_transient_error(RuntimeError("bug"))
