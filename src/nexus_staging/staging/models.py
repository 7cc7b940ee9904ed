"""Staging repository models.

This module defines the data models shared by the poller, the staging
operations and the Nexus client:
- RepositoryState: Enum of repository lifecycle states
- StagingRepository: Last observed state of a remote staging repository
- TransitionRequest: Body of a close/promote/drop command
- StagingProfile: Server-side profile that owns staging repositories

All models are immutable. A StagingRepository is only ever built from a
fresh server response; the engine never sets a repository's state locally.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RepositoryState(str, Enum):
    """Lifecycle states of a staging repository.

    State Flow:
        open → closing → closed → releasing → released
        open/closed → dropping → dropped

    Any in-progress state can end in 'failed'.

    Attributes:
        OPEN: Accepting uploads.
        CLOSING: Close requested; rules are being evaluated.
        CLOSED: Closed and ready for promotion.
        RELEASING: Promotion in progress.
        RELEASED: Promoted to the release repository.
        DROPPING: Drop in progress.
        DROPPED: Removed from the server.
        FAILED: The last transition was rejected by the server.
    """

    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    RELEASING = "releasing"
    RELEASED = "released"
    DROPPING = "dropping"
    DROPPED = "dropped"
    FAILED = "failed"


# Nexus "type" values that mean the repository no longer exists
_GONE_TYPES = frozenset({"dropped", "not_found"})


class StagingRepository(BaseModel):
    """Last observed state of a staging repository.

    Attributes:
        id: Identifier assigned by Nexus (e.g. "iocodearte-1042").
        profile_id: Staging profile the repository belongs to.
        state: Lifecycle state derived from the server response.
        transitioning: Whether Nexus reported a transition in progress.
        notifications: Number of rule notifications recorded by Nexus.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Nexus repository id")

    profile_id: str = Field(
        default="",
        description="Id of the owning staging profile",
    )

    state: RepositoryState = Field(..., description="Derived lifecycle state")

    transitioning: bool = Field(
        default=False,
        description="True while Nexus is applying a transition",
    )

    notifications: int = Field(
        default=0,
        ge=0,
        description="Count of staging rule notifications",
    )

    @classmethod
    def from_nexus(cls, payload: Dict[str, Any]) -> "StagingRepository":
        """Build a repository from a Nexus staging repository object.

        Nexus only reports ``type`` (open/closed/released) and a
        ``transitioning`` flag. In-progress states are derived from the pair,
        and an open, idle repository carrying rule notifications is a
        repository whose close was rejected.

        Args:
            payload: JSON object from ``staging/repository/{id}`` or from the
                ``data`` list of ``staging/profile_repositories/{id}``.

        Returns:
            The corresponding StagingRepository.

        Raises:
            ValueError: If the repository type is not recognised.
        """
        repo_type = str(payload.get("type", "")).lower()
        transitioning = bool(payload.get("transitioning", False))
        notifications = int(payload.get("notifications") or 0)

        if repo_type == "open":
            if transitioning:
                state = RepositoryState.CLOSING
            elif notifications > 0:
                state = RepositoryState.FAILED
            else:
                state = RepositoryState.OPEN
        elif repo_type == "closed":
            state = (
                RepositoryState.RELEASING if transitioning else RepositoryState.CLOSED
            )
        elif repo_type == "released":
            state = RepositoryState.RELEASED
        elif repo_type in _GONE_TYPES:
            state = RepositoryState.DROPPED
        else:
            raise ValueError(f"Unknown staging repository type: {repo_type!r}")

        return cls(
            id=payload["repositoryId"],
            profile_id=payload.get("profileId", ""),
            state=state,
            transitioning=transitioning,
            notifications=notifications,
        )


class TransitionRequest(BaseModel):
    """Command body for closing, promoting or dropping repositories.

    Attributes:
        repository_ids: Repositories the command applies to (non-empty).
        staging_profile_id: Profile the repositories belong to.
        description: Free-text audit note recorded by Nexus.
    """

    model_config = ConfigDict(frozen=True)

    repository_ids: FrozenSet[str] = Field(
        ...,
        description="Ids of the repositories to transition",
    )

    staging_profile_id: str = Field(
        ...,
        min_length=1,
        description="Id of the owning staging profile",
    )

    description: str = Field(
        default="",
        description="Audit note sent with the command",
    )

    @field_validator("repository_ids")
    @classmethod
    def validate_repository_ids(cls, v: FrozenSet[str]) -> FrozenSet[str]:
        """Validate that at least one non-blank repository id is given."""
        if not v:
            raise ValueError("repository_ids cannot be empty")
        if any(not repository_id.strip() for repository_id in v):
            raise ValueError("repository_ids cannot contain blank ids")
        return v

    @property
    def is_bulk(self) -> bool:
        """True when the command targets more than one repository."""
        return len(self.repository_ids) > 1

    def to_nexus_payload(self) -> Dict[str, Any]:
        """Render the request as a Nexus ``{"data": {...}}`` body."""
        if self.is_bulk:
            data: Dict[str, Any] = {
                "stagedRepositoryIds": sorted(self.repository_ids),
            }
        else:
            (repository_id,) = self.repository_ids
            data = {"stagedRepositoryId": repository_id}
        data["description"] = self.description
        return {"data": data}


class StagingProfile(BaseModel):
    """Staging profile as listed by ``staging/profiles``."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(default="")

    @classmethod
    def from_nexus(cls, payload: Dict[str, Any]) -> "StagingProfile":
        return cls(id=payload["id"], name=payload.get("name", ""))
