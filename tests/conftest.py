"""Shared pytest fixtures for repolens tests.

This module provides common fixtures used across unit and integration
tests. Fixtures are organized by category:
- Catalog fixtures: In-memory file catalogs standing in for a fetched repository
- Provider fixtures: A fake repository provider (no network)
- Configuration fixtures: Config dictionaries for various scenarios
"""

from typing import Any

import pytest

from repolens.errors import RepositoryNotFoundError
from repolens.models.catalog import FileRecord, RepositoryInfo, RepositoryRef
from repolens.models.history import Commit, Contributor
from repolens.providers.base import RepositoryProvider

# =============================================================================
# Fake provider
# =============================================================================


class FakeProvider(RepositoryProvider):
    """In-memory provider serving one repository.

    Any other owner/name raises RepositoryNotFoundError, like a 404. Set
    ``commits_error`` or ``contributors_error`` to make history calls fail.
    """

    name = "fake"

    def __init__(
        self,
        info: RepositoryInfo,
        files: list[FileRecord],
        commits: list[Commit] | None = None,
        contributors: list[Contributor] | None = None,
    ) -> None:
        self.info = info
        self.files = files
        self.commits = commits or []
        self.contributors = contributors or []
        self.commits_error: Exception | None = None
        self.contributors_error: Exception | None = None
        self.catalog_calls = 0
        self.closed = False

    async def get_repository(self, ref: RepositoryRef) -> RepositoryInfo:
        if ref.normalized != self.info.full_name.lower():
            raise RepositoryNotFoundError(f"Repository not found: {ref.full_name}", status=404)
        return self.info

    async def fetch_catalog(self, ref: RepositoryRef, branch: str) -> list[FileRecord]:
        self.catalog_calls += 1
        return list(self.files)

    async def get_commits(self, ref: RepositoryRef, branch: str) -> list[Commit]:
        if self.commits_error is not None:
            raise self.commits_error
        return list(self.commits)

    async def get_contributors(self, ref: RepositoryRef) -> list[Contributor]:
        if self.contributors_error is not None:
            raise self.contributors_error
        return list(self.contributors)

    async def aclose(self) -> None:
        self.closed = True


# =============================================================================
# Sample Source Code Fixtures
# =============================================================================

INDEX_TS = """import { helper } from './util';
import express from 'express';

const app = express();

app.get('/api/users', (req, res) => {
    res.json(helper());
});

export default app;
"""

UTIL_TS = """export function helper() {
    // TODO: cache this result
    return [1, 2, 3];
}
"""

USER_SERVICE_PY = """from app.models import user


def load(user_id):
    if user_id is None:
        return None
    return user.find(user_id)
"""

USER_MODEL_PY = """class User:
    def find(self, user_id):
        return {"id": user_id}
"""

PACKAGE_JSON = """{
  "name": "sample-project",
  "version": "1.0.0",
  "dependencies": {
    "express": "^4.18.0",
    "lodash": "~4.17.21"
  },
  "devDependencies": {
    "jest": "^29.0.0"
  }
}"""

REQUIREMENTS_TXT = """# Production dependencies
fastapi>=0.100.0
uvicorn==0.23.0
pydantic
"""


@pytest.fixture
def repo_info() -> RepositoryInfo:
    """Metadata for the sample repository."""
    return RepositoryInfo(
        owner="octocat",
        name="sample",
        default_branch="main",
        description="Sample repository",
        language="TypeScript",
    )


@pytest.fixture
def sample_files() -> list[FileRecord]:
    """A small mixed TypeScript/Python catalog with one real import edge."""
    return [
        FileRecord(path="src/index.ts", content=INDEX_TS),
        FileRecord(path="src/util.ts", content=UTIL_TS),
        FileRecord(path="app/services/user_service.py", content=USER_SERVICE_PY),
        FileRecord(path="app/models/user.py", content=USER_MODEL_PY),
        FileRecord(path="package.json", content=PACKAGE_JSON),
        FileRecord(path="requirements.txt", content=REQUIREMENTS_TXT),
        FileRecord(path="README.md", content="# Sample\n"),
        FileRecord(path="assets/logo.png", size=2048),
    ]


@pytest.fixture
def sample_commits() -> list[Commit]:
    """Three commits, newest first; src/index.ts changes in two of them."""
    return [
        Commit(
            sha="c3" * 20,
            author="Mona",
            date="2024-03-03T10:00:00Z",
            message="Add users endpoint",
            additions=12,
            deletions=2,
            files=("src/index.ts", "src/util.ts"),
        ),
        Commit(
            sha="b2" * 20,
            author="Hubot",
            date="2024-03-02T10:00:00Z",
            message="Load users by id",
            files=("app/services/user_service.py",),
        ),
        Commit(
            sha="a1" * 20,
            author="Mona",
            date="2024-03-01T10:00:00Z",
            message="Initial commit",
            files=("src/index.ts", "package.json"),
        ),
    ]


@pytest.fixture
def sample_contributors() -> list[Contributor]:
    """Two contributors ordered by commit count."""
    return [
        Contributor(login="mona", contributions=2),
        Contributor(login="hubot", contributions=1),
    ]


@pytest.fixture
def fake_provider(
    repo_info: RepositoryInfo,
    sample_files: list[FileRecord],
    sample_commits: list[Commit],
    sample_contributors: list[Contributor],
) -> FakeProvider:
    """Provider serving octocat/sample with the sample catalog and history."""
    return FakeProvider(repo_info, sample_files, sample_commits, sample_contributors)


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def minimal_config() -> dict[str, Any]:
    """Return a minimal valid repolens configuration."""
    return {"cache": {"backend": "memory"}}


@pytest.fixture
def full_config() -> dict[str, Any]:
    """Return a complete repolens configuration with all sections."""
    return {
        "github": {
            "token": "ghp_test",
            "max_files": 50,
            "concurrency": 4,
            "timeout": 10,
        },
        "llm": {
            "provider": "ollama",
            "model": "llama3.2",
            "api_base": "http://localhost:11434",
            "temperature": 0,
            "max_tokens": 1024,
            "enabled": True,
        },
        "cache": {
            "backend": "memory",
            "max_entries": 5,
            "ttl": 60,
            "key_prefix": "test:",
        },
        "pipeline": {
            "large_repo_threshold": 100,
            "architecture_timeout": 5,
            "fallback_subset": 20,
        },
        "service": {
            "host": "0.0.0.0",
            "port": 9000,
            "keepalive_interval": 15,
        },
    }
