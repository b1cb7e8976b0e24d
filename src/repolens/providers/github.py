"""GitHub REST provider.

Uses these endpoints:
- GET /repos/{owner}/{repo} for metadata
- GET /repos/{owner}/{repo}/git/trees/{ref}?recursive=1 for the file list
- GET /repos/{owner}/{repo}/contents/{path}?ref= (raw media type) for bodies
- GET /repos/{owner}/{repo}/commits?sha= for history, and
  /commits/{sha} for the files each recent commit changed
- GET /repos/{owner}/{repo}/contributors for contributors

List endpoints are paginated by following the Link header.

Bodies are fetched concurrently under a semaphore, only for source files and
manifests, up to ``max_files`` files no larger than ``max_file_size`` bytes.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any
from urllib.parse import quote

import httpx

from repolens.config import GitHubConfig
from repolens.errors import (
    RateLimitedError,
    RepositoryError,
    RepositoryNotFoundError,
    UnauthorizedError,
)
from repolens.models.catalog import (
    FileRecord,
    RepositoryInfo,
    RepositoryRef,
    is_manifest_file,
    is_source_file,
)
from repolens.models.history import Commit, Contributor
from repolens.providers.base import RepositoryProvider

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"
RAW_MEDIA_TYPE = "application/vnd.github.raw"


def _message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(data, dict):
        return str(data.get("message", ""))
    return ""


def _reset_at(response: httpx.Response) -> int | None:
    value = response.headers.get("x-ratelimit-reset")
    return int(value) if value and value.isdigit() else None


def raise_for_status(response: httpx.Response, what: str) -> None:
    """Map a GitHub error response to the RepositoryError family.

    Args:
        response: HTTP response
        what: Resource description used in the error message

    Raises:
        RepositoryNotFoundError: 404
        UnauthorizedError: 401, or 403 "Bad credentials"
        RateLimitedError: 429, or 403 with a rate-limit message or an
            exhausted ``x-ratelimit-remaining`` header
        RepositoryError: Any other non-2xx status
    """
    status = response.status_code
    if status < 400:
        return

    message = _message(response)
    lowered = message.lower()

    if status == 404:
        raise RepositoryNotFoundError(f"{what} not found", status)
    if status == 401 or (status == 403 and "bad credentials" in lowered):
        raise UnauthorizedError(
            f"GitHub rejected the credentials for {what}: {message or 'unauthorized'}", status
        )
    if status == 429 or (
        status == 403
        and ("rate limit" in lowered or response.headers.get("x-ratelimit-remaining") == "0")
    ):
        raise RateLimitedError(
            f"GitHub rate limit exceeded while fetching {what}", status, _reset_at(response)
        )
    raise RepositoryError(f"GitHub returned {status} for {what}: {message}", status)


def _next_page(response: httpx.Response) -> str | None:
    return response.links.get("next", {}).get("url")


def _commit_from_listing(item: dict[str, Any]) -> Commit:
    details = item.get("commit") or {}
    author = details.get("author") or {}
    account = item.get("author") or {}
    return Commit(
        sha=item["sha"],
        author=author.get("name") or account.get("login") or "unknown",
        date=author.get("date") or "",
        message=details.get("message") or "",
    )


class GitHubProvider(RepositoryProvider):
    """GitHub REST API provider on an httpx AsyncClient.

    Example:
        >>> async with GitHubProvider(GitHubConfig()) as provider:
        ...     info = await provider.get_repository(RepositoryRef("octocat", "hello"))
    """

    name = "github"

    def __init__(
        self,
        config: GitHubConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            config: GitHub settings (token, limits, timeouts)
            client: Pre-built client (tests pass one with a MockTransport)
        """
        self.config = config or GitHubConfig()
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": "repolens",
        }
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.config.api_url,
            timeout=self.config.timeout,
            follow_redirects=True,
        )
        self._client.headers.update(headers)
        self._semaphore = asyncio.Semaphore(self.config.concurrency)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, url: str, what: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.get(url, **kwargs)
        except httpx.TimeoutException as e:
            raise RepositoryError(f"Timed out fetching {what}") from e
        except httpx.HTTPError as e:
            raise RepositoryError(f"Network error fetching {what}: {e}") from e
        raise_for_status(response, what)
        return response

    # =========================================================================
    # RepositoryProvider
    # =========================================================================

    async def get_repository(self, ref: RepositoryRef) -> RepositoryInfo:
        response = await self._get(f"/repos/{ref.owner}/{ref.name}", f"repository {ref.full_name}")
        data = response.json()
        owner = data.get("owner") or {}
        return RepositoryInfo(
            owner=owner.get("login", ref.owner),
            name=data.get("name", ref.name),
            full_name=data.get("full_name", ref.full_name),
            default_branch=data.get("default_branch") or "main",
            description=data.get("description") or "",
            language=data.get("language"),
            stars=data.get("stargazers_count", 0),
            forks=data.get("forks_count", 0),
            size=data.get("size", 0),
            topics=list(data.get("topics") or []),
        )

    async def fetch_catalog(self, ref: RepositoryRef, branch: str) -> list[FileRecord]:
        entries = await self.list_tree(ref, branch)
        selected = self.select_for_content(entries)
        logger.info(
            "Fetching %d of %d files from %s@%s", len(selected), len(entries), ref.full_name, branch
        )

        contents = await asyncio.gather(
            *(self.fetch_content(ref, branch, path) for path in selected)
        )
        bodies = dict(zip(selected, contents, strict=True))

        return [
            FileRecord(path=path, size=size, content=bodies.get(path))
            for path, size in entries
        ]

    async def get_commits(self, ref: RepositoryRef, branch: str) -> list[Commit]:
        commits = await self.list_commits(ref, branch)
        recent = commits[: self.config.commit_details]
        detailed = await asyncio.gather(*(self.commit_details(ref, c) for c in recent))
        logger.info(
            "Listed %d commits on %s@%s (%d with changed files)",
            len(commits),
            ref.full_name,
            branch,
            sum(1 for c in detailed if c.files),
        )
        return list(detailed) + commits[len(recent) :]

    async def get_contributors(self, ref: RepositoryRef) -> list[Contributor]:
        contributors: list[Contributor] = []
        url: str | None = f"/repos/{ref.owner}/{ref.name}/contributors"
        params: dict[str, Any] | None = {"per_page": 100}
        pages = 0
        while url and pages < self.config.max_contributor_pages:
            response = await self._get(url, f"contributors of {ref.full_name}", params=params)
            pages += 1
            # 204: empty repository
            if response.status_code == 204 or not response.content:
                break
            for item in response.json():
                login = item.get("login") or item.get("name") or "anonymous"
                contributors.append(
                    Contributor(
                        login=login,
                        contributions=int(item.get("contributions") or 0),
                        avatar_url=item.get("avatar_url") or "",
                        profile_url=item.get("html_url") or f"https://github.com/{login}",
                    )
                )
            url, params = _next_page(response), None
        return contributors

    # =========================================================================
    # Helpers
    # =========================================================================

    async def list_tree(self, ref: RepositoryRef, branch: str) -> list[tuple[str, int]]:
        """List (path, size) for every blob in the tree, sorted by path."""
        response = await self._get(
            f"/repos/{ref.owner}/{ref.name}/git/trees/{quote(branch, safe='')}",
            f"tree {ref.full_name}@{branch}",
            params={"recursive": "1"},
        )
        data = response.json()
        if data.get("truncated"):
            logger.warning("GitHub truncated the tree listing for %s", ref.full_name)
        entries = [
            (item["path"], int(item.get("size") or 0))
            for item in data.get("tree", [])
            if item.get("type") == "blob" and item.get("path")
        ]
        return sorted(entries)

    def select_for_content(self, entries: list[tuple[str, int]]) -> list[str]:
        """Choose which bodies to fetch.

        Manifests come first, then source files in path order. Files over
        ``max_file_size`` are skipped; the list is capped at ``max_files``.
        """
        limit = self.config.max_file_size
        manifests = [p for p, size in entries if is_manifest_file(p) and size <= limit]
        chosen = set(manifests)
        sources = [
            p
            for p, size in entries
            if is_source_file(p) and size <= limit and p not in chosen
        ]
        return (manifests + sources)[: self.config.max_files]

    async def fetch_content(self, ref: RepositoryRef, branch: str, path: str) -> str | None:
        """Fetch one raw file body.

        Per-file failures other than rate limiting and auth are logged and
        leave the body unfetched.
        """
        async with self._semaphore:
            try:
                response = await self._get(
                    f"/repos/{ref.owner}/{ref.name}/contents/{quote(path)}",
                    f"file {path}",
                    params={"ref": branch},
                    headers={"Accept": RAW_MEDIA_TYPE},
                )
            except (RateLimitedError, UnauthorizedError):
                raise
            except RepositoryError as e:
                logger.warning("Skipping %s: %s", path, e)
                return None
        return response.text

    async def list_commits(self, ref: RepositoryRef, branch: str) -> list[Commit]:
        """List up to ``max_commits`` commits on a branch, newest first."""
        limit = self.config.max_commits
        commits: list[Commit] = []
        url: str | None = f"/repos/{ref.owner}/{ref.name}/commits"
        params: dict[str, Any] | None = {"sha": branch, "per_page": max(1, min(100, limit))}
        while url and len(commits) < limit:
            response = await self._get(url, f"commits of {ref.full_name}@{branch}", params=params)
            page = response.json()
            if not page:
                break
            commits.extend(_commit_from_listing(item) for item in page)
            url, params = _next_page(response), None
        return commits[:limit]

    async def commit_details(self, ref: RepositoryRef, commit: Commit) -> Commit:
        """Add line counts and changed files to a listed commit.

        Failures other than rate limiting and auth are logged and return the
        commit unchanged.
        """
        async with self._semaphore:
            try:
                response = await self._get(
                    f"/repos/{ref.owner}/{ref.name}/commits/{commit.sha}",
                    f"commit {commit.short_sha}",
                )
            except (RateLimitedError, UnauthorizedError):
                raise
            except RepositoryError as e:
                logger.warning("No details for commit %s: %s", commit.short_sha, e)
                return commit
        data = response.json()
        stats = data.get("stats") or {}
        return replace(
            commit,
            additions=int(stats.get("additions") or 0),
            deletions=int(stats.get("deletions") or 0),
            files=tuple(f["filename"] for f in data.get("files") or [] if f.get("filename")),
        )
