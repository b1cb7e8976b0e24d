"""Repository history entities and the rankings derived from them.

Commit and Contributor come from the repository provider. Hotspot and
KeyFunction are computed by repolens from history plus quality metrics.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from repolens.models.findings import Severity


@dataclass(frozen=True)
class Commit:
    """One commit from the branch history.

    Attributes:
        sha: Commit hash
        author: Author name (login when the name is missing)
        date: Author date (ISO 8601)
        message: Full commit message
        additions: Lines added (0 when details were not fetched)
        deletions: Lines deleted (0 when details were not fetched)
        files: Paths changed (empty when details were not fetched)
    """

    sha: str
    author: str
    date: str = ""
    message: str = ""
    additions: int = 0
    deletions: int = 0
    files: tuple[str, ...] = ()

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["files"] = list(self.files)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Commit":
        return cls(
            sha=data["sha"],
            author=data.get("author", ""),
            date=data.get("date", ""),
            message=data.get("message", ""),
            additions=int(data.get("additions", 0)),
            deletions=int(data.get("deletions", 0)),
            files=tuple(data.get("files", ())),
        )


@dataclass(frozen=True)
class Contributor:
    """A repository contributor and their commit count."""

    login: str
    contributions: int = 0
    avatar_url: str = ""
    profile_url: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Contributor":
        return cls(
            login=data["login"],
            contributions=int(data.get("contributions", 0)),
            avatar_url=data.get("avatar_url", ""),
            profile_url=data.get("profile_url", ""),
        )


@dataclass(frozen=True)
class FunctionMetrics:
    """Complexity of one function or method, measured on its syntax tree."""

    name: str
    line: int
    complexity: int
    lines_of_code: int
    description: str | None = None


@dataclass(frozen=True)
class Hotspot:
    """A complex file, ranked by how often it changes.

    Attributes:
        file: File name
        path: Repository path
        complexity: File cyclomatic complexity
        changes: Commits (among those with details) touching the file
        risk_level: MEDIUM, HIGH or CRITICAL by complexity
        lines_of_code: Non-blank, non-comment lines
        primary_contributors: Most frequent authors of those commits
    """

    file: str
    path: str
    complexity: int
    changes: int
    risk_level: Severity
    lines_of_code: int = 0
    primary_contributors: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["risk_level"] = self.risk_level.value
        data["primary_contributors"] = list(self.primary_contributors)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Hotspot":
        return cls(
            file=data["file"],
            path=data["path"],
            complexity=int(data["complexity"]),
            changes=int(data.get("changes", 0)),
            risk_level=Severity(data["risk_level"]),
            lines_of_code=int(data.get("lines_of_code", 0)),
            primary_contributors=tuple(data.get("primary_contributors", ())),
        )


@dataclass(frozen=True)
class KeyFunction:
    """One of the most complex functions in the repository."""

    name: str
    file: str
    line: int
    complexity: int
    lines_of_code: int
    explanation: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KeyFunction":
        return cls(
            name=data["name"],
            file=data["file"],
            line=int(data.get("line", 0)),
            complexity=int(data["complexity"]),
            lines_of_code=int(data.get("lines_of_code", 0)),
            explanation=data.get("explanation", ""),
        )
