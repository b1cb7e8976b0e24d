"""Unit tests for LLM prompt builders."""

from repolens.llm.prompts import (
    MAX_FILE_CHARS,
    MAX_FINDING_FILES,
    MAX_PATHS,
    build_architecture_prompt,
    build_findings_prompt,
    build_summary_prompt,
)
from repolens.models.catalog import FileRecord, RepositoryInfo
from repolens.models.report import AnalysisMetrics, AnalysisReport, DependencyInfo


def _report() -> AnalysisReport:
    info = RepositoryInfo(owner="octocat", name="sample", description="Sample service", language="Python")
    report = AnalysisReport(id="octocat-sample-1", repository=info, ref="main")
    report.dependencies = DependencyInfo(dependencies={"fastapi": "0.110"}, frameworks=["FastAPI"])
    return report


class TestSummaryPrompt:
    """Tests for build_summary_prompt()."""

    def test_facts_come_from_the_report(self) -> None:
        """Test repository facts are listed."""
        prompt = build_summary_prompt(_report())

        assert "- Repository: octocat/sample" in prompt
        assert "- Description: Sample service" in prompt
        assert "- Frameworks: FastAPI" in prompt
        assert "exactly 10 bullet points" in prompt

    def test_empty_sections_are_omitted(self) -> None:
        """Test absent facts are not mentioned."""
        prompt = build_summary_prompt(_report())

        assert "Security findings" not in prompt
        assert "HTTP endpoints" not in prompt
        assert "Recent commits" not in prompt

    def test_history_facts(self) -> None:
        """Test commit and contributor metrics are listed."""
        report = _report()
        report.metrics = AnalysisMetrics(total_commits=40, total_contributors=6, bus_factor=2)

        prompt = build_summary_prompt(report)

        assert "- Recent commits: 40 by 6 contributors (bus factor 2)" in prompt


class TestArchitecturePrompt:
    """Tests for build_architecture_prompt()."""

    def test_paths_are_capped(self) -> None:
        """Test only the first MAX_PATHS paths are sent."""
        files = [FileRecord(path=f"src/m{i}.py", size=10) for i in range(MAX_PATHS + 20)]

        prompt = build_architecture_prompt(_report(), files)

        assert f"src/m{MAX_PATHS - 1}.py" in prompt
        assert f"src/m{MAX_PATHS}.py" not in prompt
        assert "Components:\n- none" in prompt


class TestFindingsPrompt:
    """Tests for build_findings_prompt()."""

    def test_selects_security_relevant_files(self) -> None:
        """Test config and auth files are chosen and truncated."""
        files = [
            FileRecord(path="src/auth.py", content="x" * (MAX_FILE_CHARS + 500)),
            FileRecord(path="src/math.py", content="def add(a, b): return a + b\n"),
            FileRecord(path="config/settings.yaml", content="debug: true\n"),
        ]

        prompt = build_findings_prompt(files)

        assert prompt is not None
        assert "File: src/auth.py" in prompt
        assert "File: config/settings.yaml" in prompt
        assert "src/math.py" not in prompt
        assert "x" * (MAX_FILE_CHARS + 1) not in prompt

    def test_file_cap(self) -> None:
        """Test at most MAX_FINDING_FILES files are included."""
        files = [FileRecord(path=f"auth/f{i}.py", content="pass\n") for i in range(MAX_FINDING_FILES + 5)]

        prompt = build_findings_prompt(files)

        assert prompt is not None
        assert prompt.count("File: ") == MAX_FINDING_FILES

    def test_nothing_relevant(self) -> None:
        """Test None when no file is security relevant."""
        assert build_findings_prompt([FileRecord(path="src/math.py", content="pass\n")]) is None
