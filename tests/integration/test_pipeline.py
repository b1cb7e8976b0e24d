"""Integration tests for the analysis pipeline.

Runs the full pipeline against an in-memory provider so no network is
needed. The LLM collaborator is replaced by small fakes.
"""

import asyncio
import json
import time
from collections.abc import Sequence

import pytest

from repolens.analyzers.heuristics import (
    EndpointAnalyzer,
    HeuristicAnalyzer,
    HeuristicRegistry,
    PerformanceAnalyzer,
    TechDebtAnalyzer,
)
from repolens.cache import BoundedCache, MemoryStore
from repolens.config import PipelineConfig
from repolens.errors import (
    FatalAnalysisError,
    InvalidRepositoryError,
    RateLimitedError,
    RepositoryError,
    RepositoryNotFoundError,
)
from repolens.models.catalog import FileRecord
from repolens.models.report import AnalysisReport, AnalysisStatus
from repolens.pipeline import AnalysisPipeline, PipelineOptions
from repolens.progress import ProgressEvent


class FakeLLM:
    """LLM stand-in answering every prompt with fixed text."""

    def __init__(self, text: str = "A small sample service.", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.prompts: list[str] = []

    def is_configured(self) -> bool:
        return True

    async def generate_text(self, prompt: str, system_prompt: str | None = None) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.text


def _failing(step_name: str) -> type[HeuristicAnalyzer]:
    class Failing(HeuristicAnalyzer[object]):
        step = step_name

        def analyze(self, files: Sequence[FileRecord]) -> list[object]:
            raise RuntimeError(f"{step_name} crashed")

    return Failing


def _run(pipeline: AnalysisPipeline, repo: str = "octocat/sample", **kwargs) -> AnalysisReport:
    return asyncio.run(pipeline.analyze(repo, **kwargs))


class TestFullRun:
    """Tests for a complete, healthy run."""

    def test_report_contents(self, fake_provider) -> None:
        """Test every section is populated from the sample catalog."""
        report = _run(AnalysisPipeline(fake_provider))

        assert report.status is AnalysisStatus.COMPLETED
        assert report.warnings == []
        assert report.id.startswith("octocat-sample-")
        assert report.ref == "main"
        assert report.cached is False
        assert any(e.source == "src/index.ts" and e.target == "src/util.ts" for e in report.dependency_graph.edges)
        assert report.dependency_graph.fallback is False
        assert report.architecture.components
        assert "express" in report.dependencies.dependencies
        assert any(f.file == "src/util.ts" for f in report.technical_debt)
        assert "src/index.ts" in report.quality
        assert report.metrics.file_count == 8
        assert report.metrics.dependency_count > 0

    def test_report_is_json_serializable(self, fake_provider) -> None:
        """Test the report dictionary survives json.dumps."""
        report = _run(AnalysisPipeline(fake_provider))

        data = json.loads(json.dumps(report.to_dict()))

        assert data["status"] == "completed"
        assert data["repository_url"] == "https://github.com/octocat/sample"
        for key in ("security_issues", "technical_debt", "performance_metrics", "api_endpoints"):
            assert isinstance(data[key], list)

    def test_progress_is_monotonic_and_ends_at_100(self, fake_provider) -> None:
        """Test progress never decreases and the last event is 100."""
        events: list[ProgressEvent] = []

        _run(AnalysisPipeline(fake_provider), on_progress=events.append)

        percents = [e.percent for e in events]
        assert percents == sorted(percents)
        assert percents[-1] == 100
        assert events[-1].label == "Analysis complete"
        assert not any(e.failed for e in events)

    def test_explicit_ref(self, fake_provider) -> None:
        """Test an explicit ref replaces the default branch."""
        report = _run(AnalysisPipeline(fake_provider), ref="release-1.0")

        assert report.ref == "release-1.0"

    def test_skipped_stages(self, fake_provider) -> None:
        """Test disabled stages leave empty sections and no warnings."""
        options = PipelineOptions(
            architecture=False,
            quality=False,
            security=False,
            technical_debt=False,
            performance=False,
            api_endpoints=False,
        )

        report = _run(AnalysisPipeline(fake_provider), options=options)

        assert report.dependency_graph.nodes == []
        assert report.quality == {}
        assert report.technical_debt == []
        assert report.warnings == []
        assert "express" in report.dependencies.dependencies

    def test_history_sections(self, fake_provider) -> None:
        """Test commits, contributors, key functions and history metrics."""
        report = _run(AnalysisPipeline(fake_provider))

        assert [c.message for c in report.commits][0] == "Add users endpoint"
        assert [c.login for c in report.contributors] == ["mona", "hubot"]
        assert report.key_functions[0].name == "load"
        assert report.key_functions[0].explanation == "Function load in user_service.py"
        assert report.metrics.total_commits == 3
        assert report.metrics.total_contributors == 2
        assert report.metrics.bus_factor == 1

    def test_hotspots(self, fake_provider) -> None:
        """Test files above the complexity threshold are ranked with their authors."""
        pipeline = AnalysisPipeline(fake_provider, config=PipelineConfig(hotspot_complexity=1))

        report = _run(pipeline)

        assert [h.path for h in report.hotspots] == ["app/services/user_service.py"]
        assert report.hotspots[0].changes == 1
        assert report.hotspots[0].primary_contributors == ("Hubot",)

    def test_history_skipped(self, fake_provider) -> None:
        """Test history=False leaves history sections empty without warnings."""
        report = _run(AnalysisPipeline(fake_provider), options=PipelineOptions(history=False))

        assert report.commits == []
        assert report.contributors == []
        assert report.metrics.total_commits == 0
        assert report.warnings == []


class TestPartialFailure:
    """Tests for failures that degrade the report instead of failing it."""

    def test_all_heuristics_fail(self, fake_provider) -> None:
        """Test every failing heuristic adds one warning and an empty list."""
        registry = HeuristicRegistry()
        for step in ("security", "technical_debt", "performance", "api_endpoints"):
            registry.register(_failing(step))

        report = _run(AnalysisPipeline(fake_provider, registry=registry))

        assert report.status is AnalysisStatus.PARTIAL
        assert sorted(w.step for w in report.warnings) == [
            "api_endpoints",
            "performance",
            "security",
            "technical_debt",
        ]
        assert report.get_warnings_by_step("security")[0].cause == "security crashed"
        assert report.security_issues == []
        assert report.technical_debt == []
        assert report.dependency_graph.edges

    def test_one_heuristic_fails(self, fake_provider) -> None:
        """Test a failing security scan does not affect its siblings."""
        registry = HeuristicRegistry()
        registry.register(_failing("security"))
        registry.register(TechDebtAnalyzer)
        registry.register(PerformanceAnalyzer)
        registry.register(EndpointAnalyzer)

        report = _run(AnalysisPipeline(fake_provider, registry=registry))

        assert [w.step for w in report.warnings] == ["security"]
        assert report.warnings[0].message == "Security analysis failed"
        assert report.technical_debt

    def test_architecture_timeout_uses_fallback(self, fake_provider) -> None:
        """Test a slow architecture stage is replaced by the fallback graph."""
        pipeline = AnalysisPipeline(fake_provider, config=PipelineConfig(architecture_timeout=0.05))
        original = pipeline.build_architecture

        def slow(files, quality):
            time.sleep(0.3)
            return original(files, quality)

        pipeline.build_architecture = slow  # type: ignore[method-assign]

        report = _run(pipeline)

        assert report.dependency_graph.fallback is True
        assert [w.step for w in report.warnings] == ["architecture"]
        assert "timed out" in report.warnings[0].message
        assert report.status is AnalysisStatus.PARTIAL

    def test_architecture_error_uses_fallback(self, fake_provider) -> None:
        """Test an architecture crash is recorded and the fallback used."""
        pipeline = AnalysisPipeline(fake_provider)

        def broken(files, quality):
            raise ValueError("parser exploded")

        pipeline.build_architecture = broken  # type: ignore[method-assign]

        report = _run(pipeline)

        assert report.dependency_graph.fallback is True
        assert report.get_warnings_by_step("architecture")[0].cause == "parser exploded"

    def test_large_repository(self, fake_provider) -> None:
        """Test catalogs above the threshold skip the full graph."""
        pipeline = AnalysisPipeline(
            fake_provider, config=PipelineConfig(large_repo_threshold=3, fallback_subset=2)
        )

        report = _run(pipeline)

        assert report.dependency_graph.fallback is True
        assert len(report.dependency_graph.nodes) <= 2
        assert "Large repository" in report.warnings[0].message

    def test_source_files_decide_large_repository(self, fake_provider, sample_files) -> None:
        """Test assets do not count towards the large-repository threshold."""
        images = [FileRecord(path=f"assets/img{i}.png", size=1024) for i in range(250)]
        fake_provider.files = [r for r in sample_files if r.path.startswith("src/")] + images

        report = _run(AnalysisPipeline(fake_provider))

        assert report.dependency_graph.fallback is False
        assert any(
            e.source == "src/index.ts" and e.target == "src/util.ts"
            for e in report.dependency_graph.edges
        )
        assert report.get_warnings_by_step("architecture") == []

    def test_commits_fail(self, fake_provider) -> None:
        """Test a failing commit listing becomes a warning; contributors survive."""
        fake_provider.commits_error = RateLimitedError("GitHub rate limit exceeded", 403)

        report = _run(AnalysisPipeline(fake_provider))

        assert [w.step for w in report.warnings] == ["commits"]
        assert report.warnings[0].message == "Could not fetch commits"
        assert report.commits == []
        assert report.hotspots == []
        assert len(report.contributors) == 2
        assert report.status is AnalysisStatus.PARTIAL

    def test_contributors_fail(self, fake_provider) -> None:
        """Test a failing contributor listing becomes a warning."""
        fake_provider.contributors_error = RepositoryError("GitHub returned 500", 500)

        report = _run(AnalysisPipeline(fake_provider))

        assert [w.step for w in report.warnings] == ["contributors"]
        assert report.metrics.bus_factor == 0
        assert len(report.commits) == 3

    def test_hotspots_fail(self, fake_provider, monkeypatch) -> None:
        """Test a hotspot crash is recorded and leaves the list empty."""

        def broken(*args, **kwargs):
            raise ValueError("bad history")

        monkeypatch.setattr("repolens.pipeline.find_hotspots", broken)

        report = _run(AnalysisPipeline(fake_provider))

        assert [w.step for w in report.warnings] == ["hotspots"]
        assert report.hotspots == []
        assert report.key_functions

    def test_key_functions_fail(self, fake_provider, monkeypatch) -> None:
        """Test a key-function crash is recorded and leaves the list empty."""

        def broken(*args, **kwargs):
            raise ValueError("bad tree")

        monkeypatch.setattr("repolens.pipeline.select_key_functions", broken)

        report = _run(AnalysisPipeline(fake_provider))

        assert [w.step for w in report.warnings] == ["key_functions"]
        assert report.get_warnings_by_step("key_functions")[0].cause == "bad tree"
        assert report.key_functions == []


class TestFatalFailure:
    """Tests for failures that end the run."""

    def test_malformed_identifier(self, fake_provider) -> None:
        """Test a malformed identifier fails before any provider call."""
        events: list[ProgressEvent] = []

        with pytest.raises(InvalidRepositoryError):
            _run(AnalysisPipeline(fake_provider), repo="not a repo", on_progress=events.append)

        assert fake_provider.catalog_calls == 0
        assert events[-1].failed is True
        assert events[-1].label.startswith("Analysis failed")

    def test_repository_not_found(self, fake_provider) -> None:
        """Test provider errors propagate as fatal."""
        events: list[ProgressEvent] = []

        with pytest.raises(RepositoryNotFoundError) as exc_info:
            _run(AnalysisPipeline(fake_provider), repo="octocat/missing", on_progress=events.append)

        assert exc_info.value.status == 404
        assert sum(1 for e in events if e.failed) == 1

    def test_unexpected_error_is_wrapped(self, fake_provider) -> None:
        """Test unexpected provider crashes become FatalAnalysisError."""

        async def explode(ref, branch):
            raise RuntimeError("socket closed")

        fake_provider.fetch_catalog = explode  # type: ignore[method-assign]

        with pytest.raises(FatalAnalysisError, match="socket closed"):
            _run(AnalysisPipeline(fake_provider))


class TestCaching:
    """Tests for report caching."""

    @pytest.fixture
    def cache(self) -> BoundedCache:
        return BoundedCache(MemoryStore(), max_entries=10)

    def test_second_run_is_cached(self, fake_provider, cache: BoundedCache) -> None:
        """Test a repeated run is served from the cache without fetching."""
        pipeline = AnalysisPipeline(fake_provider, cache=cache)

        first = _run(pipeline)
        second = _run(pipeline, repo="https://github.com/OctoCat/Sample")

        assert first.cached is False
        assert second.cached is True
        assert second.id == first.id
        assert fake_provider.catalog_calls == 1
        assert second.technical_debt == first.technical_debt

    def test_cached_progress_completes(self, fake_provider, cache: BoundedCache) -> None:
        """Test a cache hit still ends at 100."""
        pipeline = AnalysisPipeline(fake_provider, cache=cache)
        _run(pipeline)
        events: list[ProgressEvent] = []

        _run(pipeline, on_progress=events.append)

        assert events[-1].percent == 100

    def test_refs_are_cached_separately(self, fake_provider, cache: BoundedCache) -> None:
        """Test distinct refs do not share entries."""
        pipeline = AnalysisPipeline(fake_provider, cache=cache)

        _run(pipeline)
        _run(pipeline, ref="dev")

        assert fake_provider.catalog_calls == 2

    def test_no_cache_option(self, fake_provider, cache: BoundedCache) -> None:
        """Test use_cache=False always refetches."""
        pipeline = AnalysisPipeline(fake_provider, cache=cache)
        options = PipelineOptions(use_cache=False)

        _run(pipeline, options=options)
        _run(pipeline, options=options)

        assert fake_provider.catalog_calls == 2

    def test_get_report(self, fake_provider, cache: BoundedCache) -> None:
        """Test reports can be fetched by id after a run."""
        pipeline = AnalysisPipeline(fake_provider, cache=cache)
        report = _run(pipeline)

        found = asyncio.run(pipeline.get_report(report.id))
        missing = asyncio.run(pipeline.get_report("nope"))

        assert found is not None
        assert found.id == report.id
        assert found.cached is True
        assert missing is None


class TestLLM:
    """Tests for the optional LLM stage."""

    def test_summaries(self, fake_provider) -> None:
        """Test LLM text replaces the rule-based descriptions."""
        llm = FakeLLM("Generated description.")

        report = _run(AnalysisPipeline(fake_provider, llm=llm))  # type: ignore[arg-type]

        assert report.ai_summary == "Generated description."
        assert report.architecture_analysis == "Generated description."
        assert len(llm.prompts) == 2

    def test_failure_keeps_rule_based_text(self, fake_provider) -> None:
        """Test LLM errors become warnings and the rule-based summary stays."""
        llm = FakeLLM(error=RuntimeError("model offline"))

        report = _run(AnalysisPipeline(fake_provider, llm=llm))  # type: ignore[arg-type]

        assert report.ai_summary is None
        assert report.architecture_analysis == report.architecture.summary
        assert {w.step for w in report.warnings} == {"ai_summary", "ai_architecture"}
        assert report.status is AnalysisStatus.PARTIAL

    def test_llm_findings_are_validated(self, fake_provider) -> None:
        """Test LLM findings pass the strict parser before joining the report."""
        text = json.dumps(
            [
                {
                    "type": "injection",
                    "severity": "high",
                    "file": "app/services/user_service.py",
                    "line": 7,
                    "description": "Unvalidated user id",
                    "recommendation": "Validate input",
                },
                {"type": "injection", "severity": "apocalyptic", "file": "x", "description": "d"},
            ]
        )
        llm = FakeLLM(text)
        options = PipelineOptions(ai_summary=False, ai_architecture=False, llm_findings=True)

        report = _run(AnalysisPipeline(fake_provider, llm=llm), options=options)  # type: ignore[arg-type]

        assert [f.file for f in report.security_issues] == ["app/services/user_service.py"]
        assert [w.step for w in report.warnings] == ["llm_findings"]

    def test_summary_prompt_includes_metrics(self, fake_provider) -> None:
        """Test metrics are computed before the summary prompt is built."""
        llm = FakeLLM("Generated description.")
        options = PipelineOptions(ai_architecture=False)

        _run(AnalysisPipeline(fake_provider, llm=llm), options=options)  # type: ignore[arg-type]

        assert len(llm.prompts) == 1
        assert "Files by language: " in llm.prompts[0]
        assert "Recent commits: 3 by 2 contributors" in llm.prompts[0]

    def test_duplicate_llm_findings_merge_once(self, fake_provider) -> None:
        """Test identical LLM findings are added to the report once."""
        item = {
            "type": "injection",
            "severity": "high",
            "file": "app/services/user_service.py",
            "line": 7,
            "description": "Unvalidated user id",
            "recommendation": "Validate input",
        }
        llm = FakeLLM(json.dumps([item, dict(item)]))
        options = PipelineOptions(
            ai_summary=False, ai_architecture=False, llm_findings=True, security=False
        )

        report = _run(AnalysisPipeline(fake_provider, llm=llm), options=options)  # type: ignore[arg-type]

        assert len(report.security_issues) == 1
        assert report.warnings == []
