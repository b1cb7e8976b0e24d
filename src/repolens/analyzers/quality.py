"""Code quality metrics.

Per-file cyclomatic complexity, maintainability index and lines of code,
function-level complexity for the key-function ranking, and the
repository-level scores aggregated into AnalysisMetrics.

Complexity is counted by a tree-sitter visitor over decision-point node
kinds. Files without a usable syntax tree fall back to keyword counting.
"""

import logging
import math
import re
from collections import Counter
from collections.abc import Mapping, Sequence
from typing import Any

from repolens.analyzers.history import bus_factor
from repolens.analyzers.imports import ParserPool, grammar_for
from repolens.models.catalog import FileRecord, is_code_file, is_test_file
from repolens.models.findings import (
    PerformanceFinding,
    SecurityFinding,
    Severity,
    TechDebtFinding,
)
from repolens.models.history import Commit, Contributor, FunctionMetrics, KeyFunction
from repolens.models.report import AnalysisMetrics, DependencyInfo, FileQuality

logger = logging.getLogger(__name__)

MAX_COMPLEXITY = 100

# Node kinds that add one execution path, across supported grammars
DECISION_NODE_TYPES = frozenset(
    {
        # shared
        "if_statement",
        "for_statement",
        "while_statement",
        "catch_clause",
        # python
        "elif_clause",
        "except_clause",
        "conditional_expression",
        "boolean_operator",
        "case_clause",
        # javascript / typescript
        "for_in_statement",
        "do_statement",
        "switch_case",
        "ternary_expression",
        # java
        "enhanced_for_statement",
        "switch_label",
        # go
        "expression_case",
        "type_case",
        "communication_case",
    }
)
_SHORT_CIRCUIT_OPERATORS = frozenset({"&&", "||", "??"})

# Named function and method nodes, across supported grammars
FUNCTION_NODE_TYPES = frozenset(
    {
        "function_definition",
        "function_declaration",
        "generator_function_declaration",
        "method_definition",
        "method_declaration",
        "constructor_declaration",
        "function_item",
    }
)
_ANONYMOUS_FUNCTION_TYPES = frozenset({"arrow_function", "function_expression"})
_DECLARATION_WRAPPERS = frozenset(
    {"export_statement", "variable_declarator", "lexical_declaration", "variable_declaration"}
)

KEY_FUNCTION_LIMIT = 10

_KEYWORD_PATTERN = re.compile(r"\b(if|else|for|while|switch|case|catch)\b")
_COMMENT_PREFIXES = ("//", "#", "/*", "*", "--")
_TEST_CONTENT_PATTERNS = ("describe(", "it(", "test(", "def test_", "@Test", "func Test")


def keyword_complexity(content: str) -> int:
    """Fallback complexity: 1 + branching keywords, capped."""
    return min(MAX_COMPLEXITY, 1 + len(_KEYWORD_PATTERN.findall(content)))


def count_lines_of_code(content: str) -> int:
    """Count non-blank lines that are not comment-only."""
    count = 0
    for line in content.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith(_COMMENT_PREFIXES):
            count += 1
    return count


def maintainability_index(complexity: int, lines_of_code: int) -> int:
    """Normalized maintainability index (0-100).

    MI = (171 - 0.23 * CC - 16.2 * ln(LOC)) * 100 / 171, floored at 0.
    """
    if lines_of_code <= 0:
        return 100
    raw = 171 - 0.23 * complexity - 16.2 * math.log(lines_of_code)
    return max(0, min(100, round(raw * 100 / 171)))


def _tree_complexity(root: Any) -> int:
    decisions = 0
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type in DECISION_NODE_TYPES:
            decisions += 1
        elif node.type == "binary_expression":
            operator = node.child_by_field_name("operator")
            if operator is not None and operator.type in _SHORT_CIRCUIT_OPERATORS:
                decisions += 1
        stack.extend(node.children)
    return min(MAX_COMPLEXITY, 1 + decisions)


def _node_text(source: bytes, node: Any) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def _function_name(source: bytes, node: Any) -> str | None:
    if node.type in _ANONYMOUS_FUNCTION_TYPES:
        # const handler = () => {...}
        parent = node.parent
        if parent is None or parent.type != "variable_declarator":
            return None
        node = parent
    name = node.child_by_field_name("name")
    return _node_text(source, name) if name is not None else None


def _python_docstring(source: bytes, node: Any) -> str | None:
    body = node.child_by_field_name("body")
    if body is None or not body.named_children:
        return None
    first = body.named_children[0]
    if first.type != "expression_statement" or not first.named_children:
        return None
    if first.named_children[0].type != "string":
        return None
    text = _node_text(source, first.named_children[0]).strip("\"' \n")
    return text.splitlines()[0].strip() if text else None


def _doc_comment(source: bytes, node: Any) -> str | None:
    """JSDoc-style ``/** ... */`` comment directly above a declaration."""
    anchor = node
    while anchor.parent is not None and anchor.parent.type in _DECLARATION_WRAPPERS:
        anchor = anchor.parent
    previous = anchor.prev_sibling
    if previous is None or previous.type != "comment":
        return None
    text = _node_text(source, previous)
    if not text.startswith("/**"):
        return None
    lines = [line.strip().lstrip("*").strip() for line in text[3:].removesuffix("*/").splitlines()]
    lines = [line for line in lines if line and not line.startswith("@")]
    return lines[0] if lines else None


def extract_functions(root: Any, source: bytes) -> list[FunctionMetrics]:
    """Named functions and methods under ``root``, in source order.

    Anonymous callbacks are skipped; arrow functions assigned to a variable
    take the variable's name.
    """
    functions = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type in FUNCTION_NODE_TYPES or node.type in _ANONYMOUS_FUNCTION_TYPES:
            name = _function_name(source, node)
            if name:
                if node.type == "function_definition":
                    description = _python_docstring(source, node)
                else:
                    description = _doc_comment(source, node)
                functions.append(
                    FunctionMetrics(
                        name=name,
                        line=node.start_point[0] + 1,
                        complexity=_tree_complexity(node),
                        lines_of_code=count_lines_of_code(_node_text(source, node)),
                        description=description,
                    )
                )
        stack.extend(reversed(node.children))
    return functions


def select_key_functions(
    quality: Mapping[str, FileQuality], limit: int = KEY_FUNCTION_LIMIT
) -> list[KeyFunction]:
    """The ``limit`` most complex functions across all measured files.

    Ties go to the longer function, then to path and line order.
    """
    ranked = sorted(
        ((path, fn) for path, q in quality.items() for fn in q.functions),
        key=lambda item: (-item[1].complexity, -item[1].lines_of_code, item[0], item[1].line),
    )
    return [
        KeyFunction(
            name=fn.name,
            file=path,
            line=fn.line,
            complexity=fn.complexity,
            lines_of_code=fn.lines_of_code,
            explanation=fn.description or f"Function {fn.name} in {path.rsplit('/', 1)[-1]}",
        )
        for path, fn in ranked[:limit]
    ]


class QualityAnalyzer:
    """Compute per-file quality metrics for a catalog."""

    def __init__(self, parsers: ParserPool | None = None) -> None:
        self.parsers = parsers or ParserPool()

    def analyze_file(self, record: FileRecord) -> FileQuality:
        """Measure one file.

        With a syntax tree, complexity comes from the decision-node visitor
        and every named function is measured too. Without one, complexity
        falls back to keyword counting and no functions are reported.
        """
        content = record.content or ""
        if not content.strip():
            return FileQuality(path=record.path, complexity=1, maintainability=100, lines_of_code=0)

        source = content.encode("utf-8")
        tree = self.parsers.parse(record.path, source)
        if tree is None:
            if grammar_for(record.path):
                logger.debug("Keyword complexity used for %s", record.path)
            complexity = keyword_complexity(content)
            functions: list[FunctionMetrics] = []
        else:
            complexity = _tree_complexity(tree.root_node)
            functions = extract_functions(tree.root_node, source)

        loc = count_lines_of_code(content)
        # Languages without a grammar get a neutral index
        maintainability = maintainability_index(complexity, loc) if grammar_for(record.path) else 75
        return FileQuality(
            path=record.path,
            complexity=complexity,
            maintainability=maintainability,
            lines_of_code=loc,
            functions=functions,
        )

    def analyze(self, files: Sequence[FileRecord]) -> dict[str, FileQuality]:
        """Analyze every code file with fetched content.

        Returns:
            Mapping of path to FileQuality, in path order
        """
        results: dict[str, FileQuality] = {}
        for record in sorted(files, key=lambda r: r.path):
            if record.content is None or not is_code_file(record.path):
                continue
            results[record.path] = self.analyze_file(record)
        logger.info("Computed quality metrics for %d files", len(results))
        return results


# =============================================================================
# Repository-level scores
# =============================================================================


def estimate_test_coverage(files: Sequence[FileRecord]) -> float:
    """Estimate test coverage from test-file ratio and test patterns (0-90)."""
    code_files = [r for r in files if r.content is not None and is_code_file(r.path)]
    sources = [r for r in code_files if not is_test_file(r.path)]
    if not sources:
        return 0.0

    tests = len(code_files) - len(sources)
    ratio = min(1.0, tests / len(sources))
    with_patterns = sum(
        1 for r in code_files if r.content and any(p in r.content for p in _TEST_CONTENT_PATTERNS)
    )
    pattern_ratio = min(1.0, with_patterns / len(sources))
    return round(min(90.0, ratio * 50 + pattern_ratio * 40), 1)


def security_score(findings: Sequence[SecurityFinding]) -> int:
    return max(0, 100 - 5 * len(findings))


def technical_debt_score(findings: Sequence[TechDebtFinding]) -> int:
    return max(0, 100 - 2 * len(findings))


def performance_score(findings: Sequence[PerformanceFinding]) -> int:
    return max(0, 100 - 3 * len(findings))


def code_quality_score(
    avg_maintainability: float,
    avg_complexity: float,
    test_coverage: float,
    security: int,
    debt: int,
) -> float:
    """Weighted 0-10 quality score."""
    normalized_complexity = max(0.0, 100 - 5 * avg_complexity)
    weighted = (
        0.3 * avg_maintainability
        + 0.25 * normalized_complexity
        + 0.2 * test_coverage
        + 0.15 * security
        + 0.1 * debt
    )
    return round(weighted / 10, 1)


def compute_metrics(
    files: Sequence[FileRecord],
    quality: Mapping[str, FileQuality],
    security_issues: Sequence[SecurityFinding] = (),
    technical_debt: Sequence[TechDebtFinding] = (),
    performance: Sequence[PerformanceFinding] = (),
    dependencies: DependencyInfo | None = None,
    commits: Sequence[Commit] = (),
    contributors: Sequence[Contributor] = (),
) -> AnalysisMetrics:
    """Aggregate per-file metrics, findings and history into repository metrics."""
    measured = list(quality.values())
    avg_complexity = (
        round(sum(q.complexity for q in measured) / len(measured), 1) if measured else 0.0
    )
    avg_maintainability = (
        round(sum(q.maintainability for q in measured) / len(measured), 1) if measured else 0.0
    )
    coverage = estimate_test_coverage(files)
    security = security_score(security_issues)
    debt = technical_debt_score(technical_debt)
    severities = Counter(f.severity for f in security_issues)
    languages = Counter(r.language for r in files if r.language)

    return AnalysisMetrics(
        file_count=len(files),
        analyzable_file_count=sum(1 for r in files if is_code_file(r.path)),
        lines_of_code=sum(q.lines_of_code for q in measured),
        avg_complexity=avg_complexity,
        avg_maintainability=avg_maintainability,
        files_with_complexity=len(measured),
        test_coverage=coverage,
        repository_size=sum(r.size for r in files),
        languages=dict(sorted(languages.items())),
        security_score=security,
        technical_debt_score=debt,
        performance_score=performance_score(performance),
        code_quality=code_quality_score(avg_maintainability, avg_complexity, coverage, security, debt)
        if measured
        else 0.0,
        critical_vulnerabilities=severities[Severity.CRITICAL],
        high_vulnerabilities=severities[Severity.HIGH],
        medium_vulnerabilities=severities[Severity.MEDIUM],
        low_vulnerabilities=severities[Severity.LOW],
        dependency_count=dependencies.total if dependencies else 0,
        total_commits=len(commits),
        total_contributors=len(contributors),
        bus_factor=bus_factor(contributors),
    )
