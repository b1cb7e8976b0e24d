"""Security pattern scan.

Flags hard-coded credentials, private keys and a few insecure constructs by
matching source lines against a fixed pattern table.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass

from repolens.analyzers.heuristics.base import HeuristicAnalyzer, scan_lines
from repolens.models.catalog import FileRecord, is_manifest_file, is_source_file, is_test_file
from repolens.models.findings import SecurityFinding, Severity

SNIPPET_LIMIT = 120


@dataclass(frozen=True)
class SecurityRule:
    """One line pattern and the finding it produces."""

    name: str
    pattern: re.Pattern[str]
    type: str
    severity: Severity
    cwe: str
    recommendation: str


_CREDENTIAL_ADVICE = "Validate and remove credentials from code; use secure vaults instead."

SECURITY_RULES: list[SecurityRule] = [
    SecurityRule(
        name="Private key",
        pattern=re.compile(r"-----BEGIN ((?:RSA|EC|OPENSSH|PGP|DSA) )?PRIVATE KEY-----"),
        type="secret",
        severity=Severity.CRITICAL,
        cwe="CWE-320",
        recommendation="Remove the key from the repository and rotate it.",
    ),
    SecurityRule(
        name="AWS access key",
        pattern=re.compile(r"AWS_ACCESS_KEY_ID\s*[:=]\s*['\"]?(AKIA[0-9A-Z]{16})"),
        type="secret",
        severity=Severity.CRITICAL,
        cwe="CWE-798",
        recommendation=_CREDENTIAL_ADVICE,
    ),
    SecurityRule(
        name="AWS secret key",
        pattern=re.compile(
            r"aws_secret_access_key\s*[:=]\s*['\"]([a-zA-Z0-9/+=]{40})['\"]", re.IGNORECASE
        ),
        type="secret",
        severity=Severity.CRITICAL,
        cwe="CWE-798",
        recommendation=_CREDENTIAL_ADVICE,
    ),
    SecurityRule(
        name="Hard-coded password",
        pattern=re.compile(r"(?:password|passwd|pwd)\s*[:=]\s*['\"`]([^'\"`\s]{8,})['\"`]", re.IGNORECASE),
        type="secret",
        severity=Severity.CRITICAL,
        cwe="CWE-798",
        recommendation=_CREDENTIAL_ADVICE,
    ),
    SecurityRule(
        name="Connection string with credentials",
        pattern=re.compile(r"(?:mongodb(?:\+srv)?|mysql|postgres(?:ql)?|sqlserver|redis)://[^:@\s/]+:[^@\s]+@"),
        type="secret",
        severity=Severity.HIGH,
        cwe="CWE-798",
        recommendation=_CREDENTIAL_ADVICE,
    ),
    SecurityRule(
        name="Hard-coded API key",
        pattern=re.compile(
            r"(?:api[_-]?key|access[_-]?token|secret[_-]?key|token|secret)\s*[:=]\s*['\"]([a-zA-Z0-9\-_]{20,})['\"]",
            re.IGNORECASE,
        ),
        type="secret",
        severity=Severity.HIGH,
        cwe="CWE-798",
        recommendation=_CREDENTIAL_ADVICE,
    ),
    SecurityRule(
        name="Raw HTML injection",
        pattern=re.compile(r"dangerouslySetInnerHTML|\.innerHTML\s*="),
        type="vulnerability",
        severity=Severity.HIGH,
        cwe="CWE-79",
        recommendation="Sanitize the HTML or render it as text.",
    ),
    SecurityRule(
        name="Dynamic code evaluation",
        pattern=re.compile(r"(?<![\w.])eval\s*\(|new Function\s*\("),
        type="vulnerability",
        severity=Severity.HIGH,
        cwe="CWE-95",
        recommendation="Avoid evaluating strings as code; parse the input instead.",
    ),
    SecurityRule(
        name="Shell command injection",
        pattern=re.compile(r"subprocess\.\w+\(.*shell\s*=\s*True|os\.system\s*\(|child_process\.exec\s*\("),
        type="vulnerability",
        severity=Severity.MEDIUM,
        cwe="CWE-78",
        recommendation="Pass arguments as a list and avoid invoking a shell.",
    ),
    SecurityRule(
        name="TLS verification disabled",
        pattern=re.compile(r"verify\s*=\s*False|rejectUnauthorized\s*:\s*false|InsecureSkipVerify\s*:\s*true"),
        type="configuration",
        severity=Severity.MEDIUM,
        cwe="CWE-295",
        recommendation="Keep certificate verification enabled.",
    ),
]


def _scannable(record: FileRecord) -> bool:
    # Secrets leak through config files too, so scan every source file
    return (is_source_file(record.path) or is_manifest_file(record.path)) and not is_test_file(
        record.path
    )


def _snippet(line: str) -> str:
    text = line.strip()
    return text if len(text) <= SNIPPET_LIMIT else text[: SNIPPET_LIMIT - 3] + "..."


class SecurityAnalyzer(HeuristicAnalyzer[SecurityFinding]):
    """Pattern-based secret and vulnerability scan.

    Each line produces at most one finding: the first rule that matches it.
    Rules are ordered most specific first.
    """

    step = "security"
    description = "Hard-coded secrets and insecure patterns"

    def __init__(self, rules: Sequence[SecurityRule] | None = None) -> None:
        self.rules = list(rules) if rules is not None else SECURITY_RULES
        alternatives = "|".join(f"(?:{rule.pattern.pattern})" for rule in self.rules)
        # Cheap prefilter; the per-rule loop runs only on candidate lines
        self._any = re.compile(alternatives, re.IGNORECASE) if self.rules else None

    def analyze(self, files: Sequence[FileRecord]) -> list[SecurityFinding]:
        if self._any is None:
            return []

        findings = []
        for hit in scan_lines(files, self._any, include=_scannable):
            rule = next((r for r in self.rules if r.pattern.search(hit.text)), None)
            if rule is None:
                continue
            findings.append(
                SecurityFinding(
                    type=rule.type,
                    severity=rule.severity,
                    file=hit.record.path,
                    line=hit.line,
                    description=f"{rule.name} detected",
                    recommendation=rule.recommendation,
                    cwe=rule.cwe,
                    snippet=_snippet(hit.text),
                )
            )
        return sorted(findings, key=lambda f: (f.file, f.line or 0))
