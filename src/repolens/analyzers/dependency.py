"""Dependency manifest parsing.

Parses manifest contents from the file catalog to extract declared
dependencies:
- package.json (JavaScript/TypeScript)
- requirements.txt, pyproject.toml (Python)
- go.mod (Go)

Nested manifests (monorepos) are merged; the first declaration of a name wins.
"""

import json
import logging
import re
from collections.abc import Callable, Sequence

from repolens.models.catalog import FileRecord, is_manifest_file
from repolens.models.report import DependencyInfo

logger = logging.getLogger(__name__)

# Known frameworks by ecosystem
KNOWN_FRAMEWORKS: dict[str, dict[str, str]] = {
    "npm": {
        "express": "Express.js",
        "fastify": "Fastify",
        "koa": "Koa",
        "next": "Next.js",
        "react": "React",
        "vue": "Vue.js",
        "@angular/core": "Angular",
        "svelte": "Svelte",
        "@nestjs/core": "NestJS",
    },
    "pypi": {
        "fastapi": "FastAPI",
        "flask": "Flask",
        "django": "Django",
        "starlette": "Starlette",
        "tornado": "Tornado",
        "aiohttp": "aiohttp",
    },
    "go": {
        "github.com/gin-gonic/gin": "Gin",
        "github.com/labstack/echo": "Echo",
        "github.com/gofiber/fiber": "Fiber",
        "github.com/gorilla/mux": "Gorilla Mux",
    },
}

_REQUIREMENT = re.compile(r"^([a-zA-Z0-9_.\-]+)(?:\[[^\]]*\])?\s*(?:([<>=!~]=?|===)\s*([^;#\s]+))?")

# TOML array body, allowing one level of nested brackets (extras)
_ARRAY = r"\[((?:[^\[\]]|\[[^\]]*\])*)\]"

ParsedManifest = tuple[dict[str, str | None], dict[str, str | None], str]


def clean_version(version: str | None) -> str | None:
    """Clean a version string by removing range prefixes (``^1.2`` -> ``1.2``)."""
    if version is None:
        return None
    version = version.strip()
    for prefix in (">=", "<=", "==", "~=", "^", "~", ">", "<", "="):
        if version.startswith(prefix):
            version = version[len(prefix) :]
            break
    return version.strip() or None


def _parse_requirement(line: str) -> tuple[str, str | None] | None:
    line = line.strip().strip(",").strip('"').strip("'")
    if not line or line.startswith(("#", "-")):
        return None
    match = _REQUIREMENT.match(line)
    if not match:
        return None
    return match.group(1).lower(), clean_version(match.group(3))


# =============================================================================
# Per-format parsers (content -> (deps, dev_deps, ecosystem))
# =============================================================================


def parse_package_json(content: str) -> ParsedManifest:
    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError("package.json root must be an object")
    deps = {name: clean_version(str(v)) for name, v in (data.get("dependencies") or {}).items()}
    dev = {name: clean_version(str(v)) for name, v in (data.get("devDependencies") or {}).items()}
    return deps, dev, "npm"


def parse_requirements_txt(content: str) -> ParsedManifest:
    deps: dict[str, str | None] = {}
    for line in content.splitlines():
        parsed = _parse_requirement(line)
        if parsed:
            deps.setdefault(parsed[0], parsed[1])
    return deps, {}, "pypi"


def _toml_array(content: str, pattern: str) -> list[str]:
    match = re.search(pattern, content, re.DOTALL)
    if not match:
        return []
    return re.findall(r"""["']([^"']+)["']""", match.group(1))


def parse_pyproject_toml(content: str) -> ParsedManifest:
    deps: dict[str, str | None] = {}
    dev: dict[str, str | None] = {}

    for item in _toml_array(content, r"\[project\](?:(?!\n\[).)*?\bdependencies\s*=\s*" + _ARRAY):
        parsed = _parse_requirement(item)
        if parsed:
            deps.setdefault(*parsed)

    for section in ("dev", "test", "tests"):
        pattern = rf"\[project\.optional-dependencies\](?:(?!\n\[).)*?\b{section}\s*=\s*" + _ARRAY
        for item in _toml_array(content, pattern):
            parsed = _parse_requirement(item)
            if parsed:
                dev.setdefault(*parsed)

    return deps, dev, "pypi"


def parse_go_mod(content: str) -> ParsedManifest:
    deps: dict[str, str | None] = {}

    def add(line: str) -> None:
        line = line.split("//", 1)[0].strip()
        parts = line.split()
        if len(parts) >= 2:
            deps.setdefault(parts[0], parts[1])

    for block in re.finditer(r"^require\s*\((.*?)\)", content, re.DOTALL | re.MULTILINE):
        for line in block.group(1).splitlines():
            add(line)
    for match in re.finditer(r"^require\s+([^\s(]\S*\s+\S+)", content, re.MULTILINE):
        add(match.group(1))

    return deps, {}, "go"


PARSERS: dict[str, Callable[[str], ParsedManifest]] = {
    "package.json": parse_package_json,
    "requirements.txt": parse_requirements_txt,
    "pyproject.toml": parse_pyproject_toml,
    "go.mod": parse_go_mod,
}


class DependencyAnalyzer:
    """Parse dependency manifests found in a file catalog."""

    def analyze(self, files: Sequence[FileRecord]) -> DependencyInfo:
        """Merge all manifests into one DependencyInfo.

        Manifests without fetched content are skipped. A manifest that fails
        to parse is logged and skipped; it never fails the whole step.

        Args:
            files: File catalog

        Returns:
            DependencyInfo (empty when no manifest is present)
        """
        info = DependencyInfo()
        frameworks: set[str] = set()

        # Shallow manifests first so the root declaration wins
        manifests = sorted(
            (r for r in files if is_manifest_file(r.path) and r.content is not None),
            key=lambda r: (r.path.count("/"), r.path),
        )
        for record in manifests:
            parser = PARSERS[record.name]
            try:
                deps, dev, ecosystem = parser(record.content or "")
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning("Failed to parse %s: %s", record.path, e)
                continue

            for name, version in deps.items():
                info.dependencies.setdefault(name, version)
            for name, version in dev.items():
                info.dev_dependencies.setdefault(name, version)
            info.manifests.append(record.path)

            known = KNOWN_FRAMEWORKS.get(ecosystem, {})
            for name in deps:
                for package, framework in known.items():
                    if name == package or (ecosystem == "go" and name.startswith(package)):
                        frameworks.add(framework)

            logger.debug("Parsed %s: %d deps, %d dev deps", record.path, len(deps), len(dev))

        info.frameworks = sorted(frameworks)
        return info


def analyze_dependencies(files: Sequence[FileRecord]) -> DependencyInfo:
    """Parse manifests in a catalog.

    Convenience function for dependency analysis.
    """
    return DependencyAnalyzer().analyze(files)
