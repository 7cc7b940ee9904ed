"""Staging profile and repository discovery.

Finds the ids the staging operations need when the user does not supply
them: the staging profile matching a package group, and the single open or
closed repository of that profile.
"""

from typing import TYPE_CHECKING, List

import structlog

from nexus_staging.errors import StagingProfileNotFound, WrongNumberOfRepositories
from nexus_staging.staging.models import RepositoryState

if TYPE_CHECKING:
    from nexus_staging.nexus.client import NexusClient


logger = structlog.get_logger(__name__)


class StagingProfileFinder:
    """Resolves a package group to its staging profile id."""

    def __init__(self, client: "NexusClient"):
        self.client = client

    def find_id_by_package_group(self, package_group: str) -> str:
        """Return the id of the profile named ``package_group``.

        Raises:
            ValueError: If package_group is empty.
            StagingProfileNotFound: If no profile has that name.
        """
        if not package_group:
            raise ValueError("package_group cannot be empty")

        profiles = self.client.get_staging_profiles()
        for profile in profiles:
            if profile.name == package_group:
                logger.info(
                    "Found staging profile",
                    package_group=package_group,
                    staging_profile_id=profile.id,
                )
                return profile.id

        logger.debug(
            "Staging profile not found",
            package_group=package_group,
            available=[profile.name for profile in profiles],
        )
        raise StagingProfileNotFound(package_group)


class RepositoryFinder:
    """Finds the single repository of a profile in a given state."""

    def __init__(self, client: "NexusClient"):
        self.client = client

    def find_open_repository_id(self, staging_profile_id: str) -> str:
        return self.find_single_repository_id(
            staging_profile_id, RepositoryState.OPEN
        )

    def find_closed_repository_id(self, staging_profile_id: str) -> str:
        return self.find_single_repository_id(
            staging_profile_id, RepositoryState.CLOSED
        )

    def find_droppable_repository_id(self, staging_profile_id: str) -> str:
        """Return the open repository, including one whose close was rejected."""
        return self.find_single_repository_id(
            staging_profile_id,
            RepositoryState.OPEN,
            RepositoryState.FAILED,
        )

    def find_single_repository_id(
        self,
        staging_profile_id: str,
        *states: RepositoryState,
    ) -> str:
        """Return the only repository of the profile in one of ``states``.

        Raises:
            ValueError: If no state is given.
            WrongNumberOfRepositories: If zero or several repositories match.
        """
        if not states:
            raise ValueError("at least one repository state is required")

        matching: List[str] = [
            repository.id
            for repository in self.client.get_profile_repositories(staging_profile_id)
            if repository.state in states
        ]
        if len(matching) != 1:
            searched = (
                states[0] if len(states) == 1
                else " or ".join(state.value for state in states)
            )
            raise WrongNumberOfRepositories(searched, matching)

        logger.info(
            "Found staging repository",
            staging_profile_id=staging_profile_id,
            repository_id=matching[0],
            states=[state.value for state in states],
        )
        return matching[0]
