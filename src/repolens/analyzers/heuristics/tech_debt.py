"""Technical-debt scan: markers, smells, long files and duplicated blocks."""

import re
from collections.abc import Sequence
from dataclasses import dataclass

from repolens.analyzers.heuristics.base import HeuristicAnalyzer, iter_lines
from repolens.models.catalog import JS_TS_EXTENSIONS, FileRecord, is_code_file, is_test_file
from repolens.models.findings import Effort, Severity, TechDebtFinding

LONG_FILE_LINES = 1000
DUPLICATE_WINDOW = 5
DUPLICATE_MIN_CHARS = 50
MAX_DUPLICATE_FINDINGS = 20


@dataclass(frozen=True)
class SmellRule:
    pattern: re.Pattern[str]
    type: str
    severity: Severity
    effort: Effort
    message: str
    recommendation: str
    js_only: bool = False


SMELL_RULES: list[SmellRule] = [
    SmellRule(
        pattern=re.compile(r"\b(TODO|FIXME|XXX|HACK)\b"),
        type="smell",
        severity=Severity.LOW,
        effort=Effort.LOW,
        message="Unresolved marker",
        recommendation="Resolve the marker or track it in the issue tracker.",
    ),
    SmellRule(
        pattern=re.compile(r"//\s*@ts-(ignore|nocheck)"),
        type="smell",
        severity=Severity.MEDIUM,
        effort=Effort.MEDIUM,
        message="Type checking suppressed",
        recommendation="Fix the underlying type error instead of suppressing it.",
        js_only=True,
    ),
    SmellRule(
        pattern=re.compile(r":\s*any\b|as any\b|<any>"),
        type="smell",
        severity=Severity.MEDIUM,
        effort=Effort.HIGH,
        message="Untyped 'any' usage",
        recommendation="Replace 'any' with a precise type.",
        js_only=True,
    ),
    SmellRule(
        pattern=re.compile(r"\bconsole\.log\s*\("),
        type="smell",
        severity=Severity.LOW,
        effort=Effort.LOW,
        message="Debug logging left in code",
        recommendation="Use a logger or remove the statement.",
        js_only=True,
    ),
    SmellRule(
        pattern=re.compile(r"^\s*except\s*:\s*(#.*)?$|except\s+Exception\s*:\s*pass\b"),
        type="smell",
        severity=Severity.MEDIUM,
        effort=Effort.LOW,
        message="Exception swallowed",
        recommendation="Catch specific exceptions and handle or log them.",
    ),
]


def _normalize_block(lines: Sequence[str]) -> str:
    return "\n".join(line.strip() for line in lines)


class TechDebtAnalyzer(HeuristicAnalyzer[TechDebtFinding]):
    """Line smells, long files and duplicated blocks across code files.

    Test files are skipped for smells but still count towards duplication.
    """

    step = "technical_debt"
    description = "Code smells, long files and duplication"

    def __init__(self, long_file_lines: int = LONG_FILE_LINES) -> None:
        self.long_file_lines = long_file_lines

    def analyze(self, files: Sequence[FileRecord]) -> list[TechDebtFinding]:
        code_files = sorted(
            (r for r in files if r.content is not None and is_code_file(r.path)),
            key=lambda r: r.path,
        )

        findings: list[TechDebtFinding] = []
        for record in code_files:
            if is_test_file(record.path):
                continue
            findings.extend(self._smells(record))
            findings.extend(self._long_file(record))
        findings.extend(self._duplicates(code_files))
        return findings

    def _smells(self, record: FileRecord) -> list[TechDebtFinding]:
        is_js = record.extension in JS_TS_EXTENSIONS
        rules = [r for r in SMELL_RULES if is_js or not r.js_only]
        findings = []
        for number, line in iter_lines(record):
            for rule in rules:
                if rule.pattern.search(line):
                    findings.append(
                        TechDebtFinding(
                            type=rule.type,
                            severity=rule.severity,
                            file=record.path,
                            line=number,
                            description=f"{rule.message}: {line.strip()[:100]}",
                            recommendation=rule.recommendation,
                            effort=rule.effort,
                            impact=Severity.LOW,
                        )
                    )
                    break
        return findings

    def _long_file(self, record: FileRecord) -> list[TechDebtFinding]:
        count = len((record.content or "").splitlines())
        if count <= self.long_file_lines:
            return []
        return [
            TechDebtFinding(
                type="complexity",
                severity=Severity.MEDIUM,
                file=record.path,
                line=None,
                description=f"File is very long ({count} lines), consider splitting.",
                recommendation="Split the file into smaller modules by responsibility.",
                effort=Effort.MEDIUM,
                impact=Severity.MEDIUM,
            )
        ]

    def _duplicates(self, files: Sequence[FileRecord]) -> list[TechDebtFinding]:
        """Report 5-line windows that appear in more than one place.

        Overlapping windows of the same duplicated region are collapsed so a
        long copied region is reported once.
        """
        locations: dict[str, list[tuple[str, int]]] = {}
        for record in files:
            lines = (record.content or "").splitlines()
            for start in range(len(lines) - DUPLICATE_WINDOW + 1):
                block = _normalize_block(lines[start : start + DUPLICATE_WINDOW])
                if len(block.replace("\n", "")) <= DUPLICATE_MIN_CHARS:
                    continue
                locations.setdefault(block, []).append((record.path, start + 1))

        findings = []
        reported: set[tuple[str, int]] = set()
        for block, places in locations.items():
            if len(places) < 2:
                continue
            first = places[0]
            # Skip windows that continue an already reported region
            if (first[0], first[1] - 1) in reported:
                reported.add(first)
                continue
            reported.add(first)
            others = ", ".join(f"{path}:{line}" for path, line in places[1:])
            findings.append(
                TechDebtFinding(
                    type="duplication",
                    severity=Severity.MEDIUM,
                    file=first[0],
                    line=first[1],
                    description=f"Duplicated code block found in {len(places)} locations.",
                    recommendation=f"Refactor duplicated code into a shared function. Other locations: {others}",
                    effort=Effort.MEDIUM,
                    impact=Severity.MEDIUM,
                )
            )
            if len(findings) >= MAX_DUPLICATE_FINDINGS:
                break
        return findings
