"""Repository providers."""

from repolens.providers.base import RepositoryProvider
from repolens.providers.github import GitHubProvider, raise_for_status

__all__ = ["GitHubProvider", "RepositoryProvider", "raise_for_status"]
