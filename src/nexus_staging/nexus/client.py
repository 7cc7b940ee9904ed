"""Nexus staging REST client.

This module provides a synchronous wrapper around the Nexus 2 staging API
for:
- Listing staging profiles
- Listing the repositories of a staging profile
- Reading the state of a single staging repository
- Issuing close (finish), promote (release) and drop commands

The client performs each request exactly once. Deciding whether a failed
request may be repeated is left to the caller; ``is_transient_error`` is the
classification used when polling repository state.
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog

from nexus_staging.errors import (
    TRANSIENT_STATUS_CODES,
    NexusAPIError,
    NexusTransportError,
    is_transient_error,
)
from nexus_staging.staging.models import (
    RepositoryState,
    StagingProfile,
    StagingRepository,
    TransitionRequest,
)


logger = structlog.get_logger(__name__)


DEFAULT_SERVER_URL = "https://oss.sonatype.org/service/local/"

# Profile endpoint name for each command; bulk endpoints use the command name
_PROFILE_COMMANDS = {"close": "finish", "promote": "promote", "drop": "drop"}


class NexusClient:
    """Nexus staging API client.

    Attributes:
        server_url: Base URL of the Nexus REST API, ending with a slash.
        username: User for HTTP basic authentication.
        password: Password for HTTP basic authentication.
        timeout: Request timeout in seconds.

    Example:
        >>> with NexusClient(DEFAULT_SERVER_URL, "user", "secret") as client:
        ...     client.get_repository_state("iocodearte-1042")
    """

    def __init__(
        self,
        server_url: str = DEFAULT_SERVER_URL,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize the Nexus client.

        Args:
            server_url: Base URL of the Nexus REST API.
            username: User for basic authentication (optional).
            password: Password for basic authentication (optional).
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used by tests.
        """
        self.server_url = server_url.rstrip("/") + "/"
        self.username = username
        self.password = password
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @property
    def client(self) -> httpx.Client:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            auth = None
            if self.username is not None:
                auth = httpx.BasicAuth(self.username, self.password or "")
            self._client = httpx.Client(
                base_url=self.server_url,
                headers=self._default_headers(),
                auth=auth,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "nexus-staging/1.0",
        }

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> "NexusClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make a single HTTP request.

        Args:
            method: HTTP method.
            path: API path relative to server_url (no leading slash).
            json_data: Optional JSON body.

        Returns:
            The successful HTTP response.

        Raises:
            NexusAPIError: If Nexus answered with status >= 400.
            NexusTransportError: If no response was received.
        """
        try:
            response = self.client.request(method=method, url=path, json=json_data)
        except httpx.TransportError as exc:
            logger.warning(
                "Nexus request failed",
                method=method,
                path=path,
                error=str(exc),
            )
            raise NexusTransportError(
                message=f"Nexus request failed: {exc}",
                request_url=f"{self.server_url}{path}",
            ) from exc

        if response.status_code >= 400:
            error_body = response.text
            logger.warning(
                "Nexus API error",
                method=method,
                path=path,
                status_code=response.status_code,
                response_body=error_body[:500],
            )
            raise NexusAPIError(
                message=f"Nexus API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body,
                request_url=str(response.url),
            )

        return response

    def _get_data(self, path: str) -> Any:
        response = self._request("GET", path)
        try:
            body = response.json()
        except ValueError as exc:
            raise NexusAPIError(
                message=f"Nexus returned a non-JSON body for {path}",
                status_code=response.status_code,
                response_body=response.text,
                request_url=str(response.url),
            ) from exc
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    def get_staging_profiles(self) -> List[StagingProfile]:
        """List all staging profiles visible to the user."""
        data = self._get_data("staging/profiles")
        return [StagingProfile.from_nexus(item) for item in data or []]

    def get_profile_repositories(self, profile_id: str) -> List[StagingRepository]:
        """List the staging repositories of a profile.

        Args:
            profile_id: Staging profile id.

        Returns:
            Repositories in the order Nexus lists them.
        """
        data = self._get_data(f"staging/profile_repositories/{profile_id}")
        repositories = [_parse_repository(item) for item in data or []]

        logger.debug(
            "Fetched profile repositories",
            profile_id=profile_id,
            repository_count=len(repositories),
        )
        return repositories

    def get_repository(self, repository_id: str) -> StagingRepository:
        """Read the current state of one staging repository.

        A repository Nexus no longer knows about (404) has been dropped.

        Raises:
            NexusAPIError: For any other error status.
        """
        try:
            data = self._get_data(f"staging/repository/{repository_id}")
        except NexusTransportError:
            raise
        except NexusAPIError as exc:
            if exc.status_code == 404:
                logger.debug("Repository not found", repository_id=repository_id)
                return StagingRepository(
                    id=repository_id, state=RepositoryState.DROPPED
                )
            raise
        return _parse_repository(data)

    def get_repository_state(self, repository_id: str) -> RepositoryState:
        """Shortcut returning only the derived state of a repository."""
        return self.get_repository(repository_id).state

    def close_repository(self, request: TransitionRequest) -> None:
        """Ask Nexus to close the requested repositories."""
        self._issue_command("close", request)

    def promote_repository(self, request: TransitionRequest) -> None:
        """Ask Nexus to promote (release) the requested repositories."""
        self._issue_command("promote", request)

    def drop_repository(self, request: TransitionRequest) -> None:
        """Ask Nexus to drop the requested repositories."""
        self._issue_command("drop", request)

    def _issue_command(self, command: str, request: TransitionRequest) -> None:
        if request.is_bulk:
            path = f"staging/bulk/{command}"
        else:
            path = (
                f"staging/profiles/{request.staging_profile_id}/"
                f"{_PROFILE_COMMANDS[command]}"
            )

        logger.info(
            "Issuing staging command",
            command=command,
            repository_ids=sorted(request.repository_ids),
            staging_profile_id=request.staging_profile_id,
        )

        self._request("POST", path, json_data=request.to_nexus_payload())


def _parse_repository(payload: Any) -> StagingRepository:
    try:
        return StagingRepository.from_nexus(payload)
    except (KeyError, TypeError, ValueError) as exc:
        raise NexusAPIError(
            message=f"Unexpected staging repository payload: {exc}",
            response_body=str(payload)[:500],
        ) from exc
