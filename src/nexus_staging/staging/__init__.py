"""Staging repository transitions.

This package drives staging repositories through their lifecycle:
- open → closed → released, or → dropped

Commands are issued once and their completion is confirmed by polling the
repository state through a TransitionPoller.
"""

from nexus_staging.staging.lookup import RepositoryFinder, StagingProfileFinder
from nexus_staging.staging.models import (
    RepositoryState,
    StagingProfile,
    StagingRepository,
    TransitionRequest,
)
from nexus_staging.staging.operations import (
    CloseAndPromote,
    CloseRepository,
    DropRepository,
    PromoteRepository,
    StagingOperation,
)
from nexus_staging.staging.poller import TransitionPoller, classify_state

__all__ = [
    # Models
    "RepositoryState",
    "StagingProfile",
    "StagingRepository",
    "TransitionRequest",
    # Poller
    "TransitionPoller",
    "classify_state",
    # Operations
    "CloseAndPromote",
    "CloseRepository",
    "DropRepository",
    "PromoteRepository",
    "StagingOperation",
    # Lookup
    "RepositoryFinder",
    "StagingProfileFinder",
]
