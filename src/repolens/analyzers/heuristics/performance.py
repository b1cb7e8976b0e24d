"""Performance scan: known anti-patterns and high-complexity functions."""

import re
from collections.abc import Sequence

from repolens.analyzers.heuristics.base import HeuristicAnalyzer, iter_lines
from repolens.analyzers.quality import keyword_complexity
from repolens.models.catalog import JS_TS_EXTENSIONS, FileRecord, is_code_file, is_test_file
from repolens.models.findings import PerformanceFinding

HIGH_FUNCTION_COMPLEXITY = 15

# (pattern, description, recommendation); JS/TS only
JS_ANTI_PATTERNS: list[tuple[re.Pattern[str], str, str]] = [
    (
        re.compile(r"\.forEach\s*\("),
        "Array.forEach in a potentially hot path",
        "Consider using for...of loops for better performance on large arrays.",
    ),
    (
        re.compile(r"useEffect\(\s*async"),
        "Async function passed directly to useEffect",
        "useEffect should not be async directly. Use an async function inside.",
    ),
    (
        re.compile(r"useMemo\(\s*\(\)\s*=>\s*\[\]"),
        "useMemo returning a constant empty array",
        "useMemo with an empty dependency array may not be necessary.",
    ),
    (
        re.compile(r"JSON\.parse\(\s*JSON\.stringify\("),
        "Deep clone through JSON round trip",
        "Deep cloning with JSON methods can be slow for large objects.",
    ),
]

PY_ANTI_PATTERNS: list[tuple[re.Pattern[str], str, str]] = [
    (
        re.compile(r"\btime\.sleep\s*\("),
        "Blocking sleep",
        "Use asyncio.sleep in async code or remove the delay.",
    ),
    (
        re.compile(r"\.objects\.all\(\)"),
        "Unbounded ORM query",
        "Filter or paginate the queryset.",
    ),
]

_FUNCTION_START = re.compile(
    r"^\s*(?:export\s+)?(?:async\s+)?(?:def|function|func)\s+(?:\([^)]*\)\s*)?([A-Za-z_$][\w$]*)"
    r"|^\s*(?:export\s+)?(?:const|let)\s+([A-Za-z_$][\w$]*)\s*=\s*(?:async\s*)?\([^)]*\)\s*=>"
)


def split_functions(content: str) -> list[tuple[str, int, str]]:
    """Split source text into (function name, start line, body) chunks.

    A chunk runs from one function header to the next. Code before the first
    header is ignored.
    """
    lines = content.splitlines()
    starts = []
    for index, line in enumerate(lines):
        match = _FUNCTION_START.match(line)
        if match:
            starts.append((match.group(1) or match.group(2), index))

    chunks = []
    for position, (name, start) in enumerate(starts):
        end = starts[position + 1][1] if position + 1 < len(starts) else len(lines)
        chunks.append((name, start + 1, "\n".join(lines[start:end])))
    return chunks


class PerformanceAnalyzer(HeuristicAnalyzer[PerformanceFinding]):
    """Anti-pattern lines plus per-function complexity hotspots."""

    step = "performance"
    description = "Performance anti-patterns and complexity hotspots"

    def __init__(self, complexity_threshold: int = HIGH_FUNCTION_COMPLEXITY) -> None:
        self.complexity_threshold = complexity_threshold

    def analyze(self, files: Sequence[FileRecord]) -> list[PerformanceFinding]:
        findings: list[PerformanceFinding] = []
        for record in sorted(files, key=lambda r: r.path):
            if record.content is None or not is_code_file(record.path) or is_test_file(record.path):
                continue
            findings.extend(self._anti_patterns(record))
            findings.extend(self._hotspots(record))
        return findings

    def _anti_patterns(self, record: FileRecord) -> list[PerformanceFinding]:
        if record.extension in JS_TS_EXTENSIONS:
            rules = JS_ANTI_PATTERNS
        elif record.language == "python":
            rules = PY_ANTI_PATTERNS
        else:
            return []

        findings = []
        for number, line in iter_lines(record):
            for pattern, description, recommendation in rules:
                if pattern.search(line):
                    findings.append(
                        PerformanceFinding(
                            file=record.path,
                            line=number,
                            description=description,
                            recommendation=recommendation,
                        )
                    )
                    break
        return findings

    def _hotspots(self, record: FileRecord) -> list[PerformanceFinding]:
        findings = []
        for name, line, body in split_functions(record.content or ""):
            complexity = keyword_complexity(body)
            if complexity >= self.complexity_threshold:
                findings.append(
                    PerformanceFinding(
                        file=record.path,
                        line=line,
                        function=name,
                        complexity=complexity,
                        description=f"Function '{name}' has high cyclomatic complexity ({complexity})",
                        recommendation="Break the function into smaller units and reduce branching.",
                    )
                )
        return findings
