"""File catalog entities.

The catalog is the list of files fetched from the repository provider. It is
pure input: every downstream component reads it and nothing mutates it.
"""

import posixpath
import re
from dataclasses import dataclass, field
from typing import Any

from repolens.errors import InvalidRepositoryError

# =============================================================================
# Language and file-kind tables
# =============================================================================

EXTENSION_LANGUAGE_MAP: dict[str, str] = {
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".vue": "vue",
    ".svelte": "svelte",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".scss": "scss",
    ".sass": "sass",
    ".less": "less",
    ".py": "python",
    ".pyw": "python",
    ".java": "java",
    ".cs": "csharp",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cc": "cpp",
    ".rb": "ruby",
    ".php": "php",
    ".go": "go",
    ".rs": "rust",
    ".swift": "swift",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".sh": "shell",
    ".bash": "shell",
    ".zsh": "shell",
    ".json": "json",
    ".xml": "xml",
    ".md": "markdown",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".toml": "toml",
    ".dockerfile": "dockerfile",
}

# Languages with executable code (used by quality and heuristics)
CODE_LANGUAGES = frozenset(
    {
        "typescript",
        "javascript",
        "vue",
        "svelte",
        "python",
        "java",
        "csharp",
        "c",
        "cpp",
        "ruby",
        "php",
        "go",
        "rust",
        "swift",
        "kotlin",
        "shell",
    }
)

JS_TS_EXTENSIONS = frozenset(
    {".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".mts", ".cts"}
)

EXCLUDED_EXTENSIONS = frozenset(
    {
        ".svg", ".png", ".jpg", ".jpeg", ".gif", ".ico", ".webp",
        ".woff", ".woff2", ".eot", ".ttf", ".otf",
        ".mp4", ".webm", ".ogg", ".mp3", ".wav",
        ".zip", ".gz", ".tar", ".rar",
        ".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        ".lock", ".log", ".csv",
    }
)

EXCLUDED_DIRECTORIES = frozenset(
    {
        "node_modules",
        ".git",
        "dist",
        "build",
        "coverage",
        "public",
        "assets",
        "vendor",
        ".vscode",
        ".idea",
        "__pycache__",
        ".venv",
        "venv",
    }
)

_EXCLUDED_FILE_PATTERNS = [
    re.compile(p)
    for p in (
        r"^\.",
        r"\.d\.ts$",
        r"vite-env\.d\.ts$",
        r"\.config\.(js|ts|mjs|cjs)$",
        r"\.min\.(js|css)$",
        r"\.bundle\.(js|css)$",
        r"\.chunk\.(js|css)$",
        r"package-lock\.json$",
        r"yarn\.lock$",
        r"Pipfile\.lock$",
    )
]

# Dependency manifests parsed by the dependency analyzer
MANIFEST_FILES = frozenset({"package.json", "requirements.txt", "pyproject.toml", "go.mod"})

_TEST_FILE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\.test\.(js|ts|jsx|tsx)$",
        r"\.spec\.(js|ts|jsx|tsx)$",
        r"(^|/)__tests__/",
        r"(^|/)tests?/",
        r"(^|/)test_[^/]*\.py$",
        r"_test\.py$",
        r"Tests?\.java$",
        r"_test\.go$",
        r"\.test\.cs$",
    )
]


def extension_of(path: str) -> str:
    """Return the lower-cased extension of a path (``Dockerfile`` counts)."""
    name = posixpath.basename(path)
    if name == "Dockerfile":
        return ".dockerfile"
    return posixpath.splitext(name)[1].lower()


def detect_language(path: str) -> str | None:
    """Infer a language name from a file path."""
    return EXTENSION_LANGUAGE_MAP.get(extension_of(path))


def is_source_file(path: str) -> bool:
    """Check whether a path is an analyzable source file.

    Files in excluded directories, binary/asset extensions, lockfiles,
    minified bundles and tool config files are not analyzable.
    """
    parts = path.split("/")
    if any(part in EXCLUDED_DIRECTORIES for part in parts[:-1]):
        return False

    ext = extension_of(path)
    if ext in EXCLUDED_EXTENSIONS:
        return False

    file_name = parts[-1].lower()
    if any(pattern.search(file_name) for pattern in _EXCLUDED_FILE_PATTERNS):
        return False

    return ext in EXTENSION_LANGUAGE_MAP


def is_code_file(path: str) -> bool:
    """Check whether a path is a source file in a programming language."""
    return is_source_file(path) and detect_language(path) in CODE_LANGUAGES


def is_test_file(path: str) -> bool:
    """Check whether a path looks like a test file."""
    return any(pattern.search(path) for pattern in _TEST_FILE_PATTERNS)


def is_manifest_file(path: str) -> bool:
    """Check whether a path is a dependency manifest outside excluded directories."""
    parts = path.split("/")
    if any(part in EXCLUDED_DIRECTORIES for part in parts[:-1]):
        return False
    return parts[-1] in MANIFEST_FILES


# =============================================================================
# Catalog entities
# =============================================================================


@dataclass(frozen=True)
class FileRecord:
    """A single file fetched from the repository provider.

    ``content`` is None when the provider did not fetch the body (too large,
    not a source file, or over the file budget). An empty string is a real,
    empty file.

    Attributes:
        path: Repository-relative POSIX path
        name: Base name of the file
        size: Size in bytes as reported by the provider
        language: Language name (inferred from the extension when omitted)
        content: File text, if fetched
    """

    path: str
    name: str = ""
    size: int = 0
    language: str | None = None
    content: str | None = None

    def __post_init__(self) -> None:
        # frozen: go through object.__setattr__ for derived defaults
        if not self.name:
            object.__setattr__(self, "name", posixpath.basename(self.path))
        if self.language is None:
            object.__setattr__(self, "language", detect_language(self.path))
        if not self.size and self.content:
            object.__setattr__(self, "size", len(self.content.encode("utf-8")))

    @property
    def extension(self) -> str:
        return extension_of(self.path)

    @property
    def directory(self) -> str:
        return posixpath.dirname(self.path)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization.

        Content is omitted; reports carry findings, not file bodies.
        """
        return {
            "path": self.path,
            "name": self.name,
            "size": self.size,
            "language": self.language,
        }


@dataclass
class RepositoryInfo:
    """Repository metadata returned by the provider."""

    owner: str
    name: str
    full_name: str = ""
    default_branch: str = "main"
    description: str = ""
    language: str | None = None
    stars: int = 0
    forks: int = 0
    size: int = 0
    topics: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.full_name:
            self.full_name = f"{self.owner}/{self.name}"

    @property
    def url(self) -> str:
        return f"https://github.com/{self.full_name}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "owner": self.owner,
            "name": self.name,
            "full_name": self.full_name,
            "default_branch": self.default_branch,
            "description": self.description,
            "language": self.language,
            "stars": self.stars,
            "forks": self.forks,
            "size": self.size,
            "topics": list(self.topics),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RepositoryInfo":
        return cls(
            owner=data["owner"],
            name=data["name"],
            full_name=data.get("full_name", ""),
            default_branch=data.get("default_branch", "main"),
            description=data.get("description") or "",
            language=data.get("language"),
            stars=data.get("stars", 0),
            forks=data.get("forks", 0),
            size=data.get("size", 0),
            topics=list(data.get("topics", [])),
        )


_NAME_PART = r"[A-Za-z0-9_.-]+"
_REPO_PATTERNS = [
    re.compile(
        rf"^(?:https?://)?(?:www\.)?github\.com/(?P<owner>{_NAME_PART})/(?P<name>{_NAME_PART})(?:/.*)?$"
    ),
    re.compile(rf"^git@github\.com:(?P<owner>{_NAME_PART})/(?P<name>{_NAME_PART})$"),
    re.compile(rf"^(?P<owner>{_NAME_PART})/(?P<name>{_NAME_PART})$"),
]


@dataclass(frozen=True)
class RepositoryRef:
    """Parsed repository identifier (owner + name)."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def normalized(self) -> str:
        """Lower-cased ``owner/name``, stable across URL spellings."""
        return self.full_name.lower()

    @classmethod
    def parse(cls, identifier: str) -> "RepositoryRef":
        """Parse a repository URL or ``owner/name`` shorthand.

        Args:
            identifier: e.g. ``https://github.com/o/r``, ``github.com/o/r.git``, ``o/r``

        Returns:
            RepositoryRef

        Raises:
            InvalidRepositoryError: If the identifier is malformed
        """
        text = (identifier or "").strip().rstrip("/")
        for pattern in _REPO_PATTERNS:
            match = pattern.match(text)
            if match:
                owner = match.group("owner")
                name = match.group("name")
                if name.endswith(".git"):
                    name = name[: -len(".git")]
                if not owner or not name or owner in {".", ".."} or name in {".", ".."}:
                    break
                return cls(owner=owner, name=name)
        raise InvalidRepositoryError(identifier)
