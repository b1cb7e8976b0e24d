"""LLM prompt templates for report summaries.

Every prompt is built from deterministic analysis results: the LLM
describes what the analyzers found, it does not discover facts of its own.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from repolens.models.catalog import FileRecord

if TYPE_CHECKING:
    from repolens.models.report import AnalysisReport

MAX_PATHS = 100
MAX_FINDING_FILES = 15
MAX_FILE_CHARS = 2000

# Common rules applied to all prompts - enforces factual, definitive language
_COMMON_RULES = """
WRITING RULES:

1. State detected facts definitively. Do not hedge with "appears to",
   "seems to", "likely" or "probably".
2. Use specific names, counts and values from the facts provided.
3. If something cannot be determined from the facts, leave it out.
   Do not guess and do not write about what is absent.
4. Plain English. No markdown headings, no tables.
"""

SUMMARY_SYSTEM_PROMPT = (
    "You write short repository overviews for engineers seeing a codebase for the first time.\n"
    + _COMMON_RULES
)

ARCHITECTURE_SYSTEM_PROMPT = (
    "You are a software architect describing the structure of a codebase.\n" + _COMMON_RULES
)

FINDINGS_SYSTEM_PROMPT = """You are a security reviewer. You answer ONLY with JSON.

Return a JSON array. Each element is an object with these keys:
- "type": one of "secret", "vulnerability", "configuration"
- "severity": one of "critical", "high", "medium", "low"
- "file": repository-relative path of the file
- "line": 1-based line number (integer) or null
- "description": one sentence describing the issue
- "recommendation": one sentence describing the fix
- "cwe": CWE identifier such as "CWE-798", or null

Return [] when there are no issues. Do not wrap the array in prose.
"""


def _facts_block(facts: Sequence[str]) -> str:
    return "\n".join(f"- {fact}" for fact in facts) if facts else "- No facts available."


def build_summary_prompt(report: "AnalysisReport") -> str:
    """Build the repository summary prompt.

    Args:
        report: Report with metrics computed

    Returns:
        Prompt text asking for a 10-bullet "Codebase Overview"
    """
    repo = report.repository
    facts = [f"Repository: {repo.full_name}"]
    if repo.description:
        facts.append(f"Description: {repo.description}")
    if repo.language:
        facts.append(f"Primary language: {repo.language}")

    languages = report.metrics.languages
    if languages:
        facts.append(
            "Files by language: " + ", ".join(f"{name} ({count})" for name, count in languages.items())
        )
    if report.dependencies.frameworks:
        facts.append(f"Frameworks: {', '.join(report.dependencies.frameworks)}")
    if report.dependencies.total:
        facts.append(f"Declared dependencies: {report.dependencies.total}")

    arch = report.architecture
    if arch.components:
        facts.append(f"Components: {len(arch.components)} across {len(arch.layers)} layers")
        facts.append(f"Architectural patterns: {', '.join(arch.patterns)}")
    if report.api_endpoints:
        facts.append(f"HTTP endpoints: {len(report.api_endpoints)}")
    if report.security_issues:
        facts.append(f"Security findings: {len(report.security_issues)}")
    if report.technical_debt:
        facts.append(f"Technical debt findings: {len(report.technical_debt)}")
    if report.metrics.total_commits:
        facts.append(
            f"Recent commits: {report.metrics.total_commits} by "
            f"{report.metrics.total_contributors} contributors (bus factor {report.metrics.bus_factor})"
        )
    if report.hotspots:
        facts.append("Hotspots: " + ", ".join(h.path for h in report.hotspots[:5]))

    return (
        "Summarize this repository from the facts below.\n\n"
        f"Facts:\n{_facts_block(facts)}\n\n"
        "Write a heading line 'Codebase Overview' followed by exactly 10 bullet points, "
        "each a single plain sentence of at most 20 words."
    )


def build_architecture_prompt(report: "AnalysisReport", files: Sequence[FileRecord]) -> str:
    """Build the architecture description prompt.

    Args:
        report: Report with the rule-based architecture analysis
        files: File catalog (only paths and sizes are sent)
    """
    paths = "\n".join(f"- {r.path} ({r.size} bytes)" for r in list(files)[:MAX_PATHS])
    components = "\n".join(
        f"- {c.name} [{c.type.value}] at {c.path}: {len(c.files)} files, complexity {c.complexity}"
        for c in report.architecture.components[:40]
    )
    return (
        "Describe the architecture of this codebase.\n\n"
        f"Detected patterns: {', '.join(report.architecture.patterns)}\n\n"
        f"Components:\n{components or '- none'}\n\n"
        f"Key files:\n{paths or '- none'}\n\n"
        "In 300 to 400 words cover: the architectural pattern and the evidence for it, "
        "the responsibilities of the main components and how they interact, "
        "and two concrete improvements."
    )


def _security_relevant(record: FileRecord) -> bool:
    lowered = record.path.lower()
    return any(marker in lowered for marker in ("config", "auth", "secret", "token", "service", "util")) or (
        record.extension in {".env", ".yml", ".yaml", ".json", ".xml", ".pem"}
    )


def build_findings_prompt(files: Sequence[FileRecord]) -> str | None:
    """Build the LLM security findings prompt.

    Returns:
        Prompt text, or None when no security-relevant file has content
    """
    selected = [r for r in files if r.content and _security_relevant(r)][:MAX_FINDING_FILES]
    if not selected:
        return None
    sections = [
        f"File: {r.path}\n```\n{(r.content or '')[:MAX_FILE_CHARS]}\n```" for r in selected
    ]
    return "Review these files for security issues.\n\n" + "\n\n".join(sections)
