"""API endpoint discovery.

Scans route, controller and API files for framework routing declarations
(Express, FastAPI, Flask, NestJS, Spring, ASP.NET, Gin, Flask-RESTful) and
reports one EndpointFinding per declared route.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass

from repolens.analyzers.heuristics.base import HeuristicAnalyzer, iter_lines
from repolens.models.catalog import FileRecord, is_code_file, is_test_file
from repolens.models.findings import EndpointFinding

MAX_ENDPOINTS = 50

_ROUTE_FILE_MARKERS = ("route", "controller", "api", "endpoint", "handler", "view", "server", "app")

_HANDLER_AFTER = re.compile(r"\s*,\s*(?:async\s+)?(?:function\s+)?([A-Za-z_$][\w$.]*)")
_PY_DEF = re.compile(r"^\s*(?:async\s+)?def\s+(\w+)")
_METHOD_DEF = re.compile(r"^\s*(?:public|private|protected)?\s*(?:async\s+)?[\w<>\[\],\s]*?\b(\w+)\s*\(")


@dataclass(frozen=True)
class RouteRule:
    """A routing declaration pattern.

    Attributes:
        framework: Framework label shown next to the handler
        pattern: Line regex with named groups ``method`` and (optionally) ``path``
        handler: Where the handler name lives: "after" (same line, after the
            match), "next_def" (the next function definition) or None
    """

    framework: str
    pattern: re.Pattern[str]
    handler: str | None = None


ROUTE_RULES: list[RouteRule] = [
    RouteRule(
        "Express",
        re.compile(r"(?<![@\w])(?:app|router)\.(?P<method>get|post|put|delete|patch)\s*\(\s*['\"`](?P<path>[^'\"`]+)['\"`]"),
        handler="after",
    ),
    RouteRule(
        "FastAPI",
        re.compile(r"@(?:app|router|api)\.(?P<method>get|post|put|delete|patch)\s*\(\s*['\"](?P<path>[^'\"]*)['\"]"),
        handler="next_def",
    ),
    RouteRule(
        "Flask",
        re.compile(
            r"@(?:app|bp|blueprint|\w+_bp)\.route\s*\(\s*['\"](?P<path>[^'\"]+)['\"]"
            r"(?:.*methods\s*=\s*\[\s*['\"](?P<method>\w+)['\"])?"
        ),
        handler="next_def",
    ),
    RouteRule(
        "NestJS",
        re.compile(r"@(?P<method>Get|Post|Put|Delete|Patch)\s*\(\s*(?:['\"`](?P<path>[^'\"`]*)['\"`])?\s*\)"),
        handler="next_def",
    ),
    RouteRule(
        "Spring",
        re.compile(
            r"@(?P<method>Get|Post|Put|Delete|Patch)Mapping\s*\(\s*(?:value\s*=\s*|path\s*=\s*)?"
            r"(?:['\"](?P<path>[^'\"]*)['\"])?"
        ),
        handler="next_def",
    ),
    RouteRule(
        "ASP.NET",
        re.compile(r"\[Http(?P<method>Get|Post|Put|Delete|Patch)(?:\(\s*\"(?P<path>[^\"]*)\"\s*\))?\]"),
        handler="next_def",
    ),
    RouteRule(
        "Gin",
        re.compile(r"\b\w+\.(?P<method>GET|POST|PUT|DELETE|PATCH)\s*\(\s*\"(?P<path>[^\"]+)\""),
        handler="after",
    ),
    RouteRule(
        "Flask-RESTful",
        re.compile(r"add_resource\s*\(\s*(?P<handler>\w+)\s*,\s*['\"](?P<path>[^'\"]+)['\"]"),
    ),
]


def is_route_file(record: FileRecord) -> bool:
    """Check whether a file is likely to declare routes."""
    lowered = record.path.lower()
    return (
        is_code_file(record.path)
        and not is_test_file(record.path)
        and any(marker in lowered for marker in _ROUTE_FILE_MARKERS)
    )


def _next_definition(lines: list[str], start: int) -> str | None:
    """Name of the first function/method defined within a few lines after ``start``."""
    for line in lines[start + 1 : start + 6]:
        stripped = line.strip()
        if not stripped or stripped.startswith(("@", "[", "//", "#")):
            continue
        match = _PY_DEF.match(line) or _METHOD_DEF.match(line)
        return match.group(1) if match else None
    return None


class EndpointAnalyzer(HeuristicAnalyzer[EndpointFinding]):
    """Framework route declarations, capped at ``limit`` endpoints."""

    step = "api_endpoints"
    description = "HTTP endpoints declared in routing code"

    def __init__(self, limit: int = MAX_ENDPOINTS) -> None:
        self.limit = limit

    def analyze(self, files: Sequence[FileRecord]) -> list[EndpointFinding]:
        endpoints: list[EndpointFinding] = []
        seen: set[tuple[str, str, str]] = set()

        for record in sorted(files, key=lambda r: r.path):
            if record.content is None or not is_route_file(record):
                continue
            lines = (record.content or "").splitlines()
            for number, line in iter_lines(record):
                endpoint = self._match_line(record, lines, number, line)
                if endpoint is None:
                    continue
                key = (endpoint.method, endpoint.path, endpoint.file)
                if key in seen:
                    continue
                seen.add(key)
                endpoints.append(endpoint)
                if len(endpoints) >= self.limit:
                    return endpoints
        return endpoints

    def _match_line(
        self, record: FileRecord, lines: list[str], number: int, line: str
    ) -> EndpointFinding | None:
        for rule in ROUTE_RULES:
            match = rule.pattern.search(line)
            if not match:
                continue

            groups = match.groupdict()
            method = (groups.get("method") or ("RESOURCE" if "handler" in groups else "GET")).upper()
            path = groups.get("path") or "/"

            handler = groups.get("handler")
            if rule.handler == "after":
                after = _HANDLER_AFTER.match(line, match.end())
                handler = after.group(1) if after else None
            elif rule.handler == "next_def":
                handler = _next_definition(lines, number - 1)

            return EndpointFinding(
                method=method,
                path=path,
                file=record.path,
                line=number,
                handler=f"{handler} ({rule.framework})" if handler else f"anonymous ({rule.framework})",
                description=f"{method} {path} ({rule.framework})",
            )
        return None
