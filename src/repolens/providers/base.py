"""Repository provider interface.

A provider turns a RepositoryRef into metadata, a file catalog and recent
history. Providers raise the typed RepositoryError family. The pipeline treats
metadata and catalog failures as fatal for the run; history failures only
degrade the report.
"""

from abc import ABC, abstractmethod

from repolens.models.catalog import FileRecord, RepositoryInfo, RepositoryRef
from repolens.models.history import Commit, Contributor


class RepositoryProvider(ABC):
    """Abstract interface for repository hosts.

    Attributes:
        name: Provider identifier (e.g., "github")
    """

    name: str = ""

    @abstractmethod
    async def get_repository(self, ref: RepositoryRef) -> RepositoryInfo:
        """Fetch repository metadata.

        Raises:
            RepositoryNotFoundError: If the repository does not exist
            UnauthorizedError: If credentials are missing or invalid
            RateLimitedError: If the API rate limit is exhausted
            RepositoryError: For any other provider failure
        """
        pass

    @abstractmethod
    async def fetch_catalog(self, ref: RepositoryRef, branch: str) -> list[FileRecord]:
        """Fetch the file catalog for a branch, tag or commit.

        Files whose bodies were not fetched carry ``content=None``.
        """
        pass

    @abstractmethod
    async def get_commits(self, ref: RepositoryRef, branch: str) -> list[Commit]:
        """Fetch recent commits on a branch, newest first.

        Commits whose changed files were not fetched carry an empty
        ``files`` tuple.
        """
        pass

    @abstractmethod
    async def get_contributors(self, ref: RepositoryRef) -> list[Contributor]:
        """Fetch contributors ordered by commit count."""
        pass

    async def aclose(self) -> None:
        """Release network resources."""

    async def __aenter__(self) -> "RepositoryProvider":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
