"""Heuristic finding entities and the strict finding parser.

Each finding kind is its own frozen dataclass carrying a ``kind`` tag.
Findings produced by repolens's own scanners are built directly. Findings
that arrive as free text (LLM output) go through parse_finding(), which
either returns a validated finding or an Unparseable record; unvalidated
dictionaries never leak into a report.
"""

import json
import logging
import re
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Literal

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    """Finding severity."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class Effort(str, Enum):
    """Estimated remediation effort."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


FindingKind = Literal["security", "tech_debt", "performance", "endpoint"]

HTTP_METHODS = frozenset(
    {"GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS", "RESOURCE"}
)


@dataclass(frozen=True)
class SecurityFinding:
    """Potential secret, vulnerability or insecure configuration."""

    type: str
    severity: Severity
    file: str
    description: str
    recommendation: str
    line: int | None = None
    cwe: str | None = None
    snippet: str | None = None
    kind: Literal["security"] = "security"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        return data


@dataclass(frozen=True)
class TechDebtFinding:
    """Code smell, complexity hotspot or duplication."""

    type: str
    severity: Severity
    file: str
    description: str
    recommendation: str
    line: int | None = None
    effort: Effort = Effort.MEDIUM
    impact: Severity = Severity.LOW
    kind: Literal["tech_debt"] = "tech_debt"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["effort"] = self.effort.value
        data["impact"] = self.impact.value
        return data


@dataclass(frozen=True)
class PerformanceFinding:
    """Performance anti-pattern or high-complexity function."""

    file: str
    description: str
    recommendation: str
    line: int | None = None
    complexity: int | None = None
    function: str | None = None
    kind: Literal["performance"] = "performance"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EndpointFinding:
    """HTTP endpoint discovered in route or controller code."""

    method: str
    path: str
    file: str
    description: str
    line: int | None = None
    handler: str | None = None
    kind: Literal["endpoint"] = "endpoint"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


Finding = SecurityFinding | TechDebtFinding | PerformanceFinding | EndpointFinding


@dataclass(frozen=True)
class Unparseable:
    """A record that failed validation.

    Attributes:
        kind: Finding kind the record was expected to be
        reason: Why validation failed
        raw: The offending value (truncated repr)
    """

    kind: str
    reason: str
    raw: str = ""


# =============================================================================
# Strict parsing
# =============================================================================


class _Invalid(Exception):
    pass


def _required_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise _Invalid(f"missing or empty '{key}'")
    return value.strip()


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise _Invalid(f"'{key}' must be a string")
    return value.strip() or None


def _optional_int(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise _Invalid(f"'{key}' must be a non-negative integer")
    return value


def _enum(data: dict[str, Any], key: str, enum_cls: type[Enum], default: Enum | None = None) -> Any:
    value = data.get(key)
    if value is None:
        if default is None:
            raise _Invalid(f"missing '{key}'")
        return default
    if not isinstance(value, str):
        raise _Invalid(f"'{key}' must be a string")
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        raise _Invalid(f"unknown {key} '{value}'") from None


def _build(kind: str, data: dict[str, Any]) -> Finding:
    if kind == "security":
        return SecurityFinding(
            type=_required_str(data, "type"),
            severity=_enum(data, "severity", Severity),
            file=_required_str(data, "file"),
            description=_required_str(data, "description"),
            recommendation=_optional_str(data, "recommendation") or "",
            line=_optional_int(data, "line"),
            cwe=_optional_str(data, "cwe"),
            snippet=_optional_str(data, "snippet"),
        )
    if kind == "tech_debt":
        return TechDebtFinding(
            type=_required_str(data, "type"),
            severity=_enum(data, "severity", Severity),
            file=_required_str(data, "file"),
            description=_required_str(data, "description"),
            recommendation=_optional_str(data, "recommendation") or "",
            line=_optional_int(data, "line"),
            effort=_enum(data, "effort", Effort, Effort.MEDIUM),
            impact=_enum(data, "impact", Severity, Severity.LOW),
        )
    if kind == "performance":
        return PerformanceFinding(
            file=_required_str(data, "file"),
            description=_required_str(data, "description"),
            recommendation=_optional_str(data, "recommendation") or "",
            line=_optional_int(data, "line"),
            complexity=_optional_int(data, "complexity"),
            function=_optional_str(data, "function"),
        )
    if kind == "endpoint":
        method = _required_str(data, "method").upper()
        if method not in HTTP_METHODS:
            raise _Invalid(f"unknown method '{method}'")
        return EndpointFinding(
            method=method,
            path=_required_str(data, "path"),
            file=_required_str(data, "file"),
            description=_optional_str(data, "description") or "",
            line=_optional_int(data, "line"),
            handler=_optional_str(data, "handler"),
        )
    raise _Invalid(f"unknown finding kind '{kind}'")


def parse_finding(kind: str, raw: Any) -> Finding | Unparseable:
    """Validate one untrusted record as a finding of ``kind``.

    Args:
        kind: Expected finding kind (security, tech_debt, performance, endpoint)
        raw: Untrusted value, typically a dict decoded from JSON

    Returns:
        A typed finding, or Unparseable describing why validation failed
    """
    if not isinstance(raw, dict):
        return Unparseable(kind=kind, reason="record is not an object", raw=repr(raw)[:200])

    declared = raw.get("kind")
    if declared is not None and declared != kind:
        return Unparseable(
            kind=kind, reason=f"kind mismatch: {declared!r}", raw=repr(raw)[:200]
        )

    try:
        return _build(kind, raw)
    except _Invalid as e:
        return Unparseable(kind=kind, reason=str(e), raw=repr(raw)[:200])


def extract_json(text: str) -> Any:
    """Extract the first JSON document from free text.

    Looks for a fenced ```json block first, then the outermost array or
    object. Trailing commas are tolerated.

    Raises:
        ValueError: If no JSON can be decoded
    """
    fenced = re.search(r"```(?:json)?\s*(.*?)\s*```", text, re.DOTALL)
    candidate = fenced.group(1) if fenced else None

    if candidate is None:
        match = re.search(r"\[[\s\S]*\]|\{[\s\S]*\}", text)
        if not match:
            raise ValueError("no JSON document found")
        candidate = match.group(0)

    candidate = re.sub(r",\s*([\]}])", r"\1", candidate)
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON: {e}") from e


def parse_findings(
    kind: str, text: str
) -> tuple[list[Finding], list[Unparseable]]:
    """Parse a free-text response into findings of one kind.

    The payload may be a JSON array, or an object with a ``findings`` (or
    ``issues``) array.

    Returns:
        Tuple of (valid findings, unparseable records)
    """
    try:
        payload = extract_json(text)
    except ValueError as e:
        return [], [Unparseable(kind=kind, reason=str(e), raw=text[:200])]

    if isinstance(payload, dict):
        payload = payload.get("findings", payload.get("issues"))
    if not isinstance(payload, list):
        return [], [Unparseable(kind=kind, reason="expected a list of findings", raw=text[:200])]

    findings: list[Finding] = []
    rejected: list[Unparseable] = []
    for item in payload:
        result = parse_finding(kind, item)
        if isinstance(result, Unparseable):
            rejected.append(result)
        else:
            findings.append(result)

    if rejected:
        logger.debug("Rejected %d of %d %s records", len(rejected), len(payload), kind)
    return findings, rejected
