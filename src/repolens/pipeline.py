"""Analysis pipeline coordinator.

Sequences one run:

    init -> fetch -> history -> dependencies -> quality (+ key functions,
         hotspots) -> architecture -> heuristics (parallel) -> metrics
         -> summarize -> done | failed

Every stage after the repository metadata and file catalog is best-effort. A failing stage records an
AnalysisWarning on the report and the run continues; only FatalAnalysisError
escapes analyze(). CPU-bound work runs in worker threads so concurrent runs
(and the event stream heartbeat) stay responsive.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, fields
from datetime import UTC, datetime
from typing import Any

from repolens.analyzers.architecture import ArchitectureClassifier
from repolens.analyzers.dependency import DependencyAnalyzer
from repolens.analyzers.heuristics import HeuristicRegistry, get_default_registry
from repolens.analyzers.history import find_hotspots
from repolens.analyzers.import_graph import ImportGraphBuilder, build_fallback_graph
from repolens.analyzers.quality import QualityAnalyzer, compute_metrics, select_key_functions
from repolens.cache import BoundedCache, analysis_key, report_key
from repolens.config import PipelineConfig
from repolens.errors import FatalAnalysisError, HeuristicError, StageTimeoutError
from repolens.llm import (
    ARCHITECTURE_SYSTEM_PROMPT,
    FINDINGS_SYSTEM_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
    LLMClient,
    build_architecture_prompt,
    build_findings_prompt,
    build_summary_prompt,
)
from repolens.models.architecture import ArchitectureAnalysis
from repolens.models.catalog import FileRecord, RepositoryRef, is_source_file
from repolens.models.findings import SecurityFinding, parse_findings
from repolens.models.graph import DependencyGraph
from repolens.models.report import (
    AnalysisReport,
    AnalysisStatus,
    AnalysisWarning,
    DependencyInfo,
    FileQuality,
)
from repolens.progress import ProgressEmitter, WeightedProgress
from repolens.providers.base import RepositoryProvider
from repolens.utils.tasks import gather_settled, race_deadline

logger = logging.getLogger(__name__)

# Heuristic step name -> report attribute
HEURISTIC_FIELDS = {
    "security": "security_issues",
    "technical_debt": "technical_debt",
    "performance": "performance_metrics",
    "api_endpoints": "api_endpoints",
}

Architecture = tuple[DependencyGraph, ArchitectureAnalysis]


@dataclass
class PipelineOptions:
    """Options for controlling one run.

    Attributes:
        architecture: Build the import graph and classify components
        quality: Compute per-file quality metrics
        dependencies: Parse dependency manifests
        security: Run the security scan
        technical_debt: Run the technical-debt scan
        performance: Run the performance scan
        api_endpoints: Run endpoint discovery
        history: Fetch recent commits and contributors
        hotspots: Rank complex files by change frequency (needs quality)
        key_functions: Rank the most complex functions (needs quality)
        ai_summary: Ask the LLM for a repository summary
        ai_architecture: Ask the LLM for an architecture description
        llm_findings: Ask the LLM for extra security findings
        use_cache: Read and write the analysis cache
        ref: Branch, tag or commit (default branch when None)
    """

    architecture: bool = True
    quality: bool = True
    dependencies: bool = True
    security: bool = True
    technical_debt: bool = True
    performance: bool = True
    api_endpoints: bool = True
    history: bool = True
    hotspots: bool = True
    key_functions: bool = True
    ai_summary: bool = True
    ai_architecture: bool = True
    llm_findings: bool = False
    use_cache: bool = True
    ref: str | None = None

    @property
    def heuristics(self) -> list[str]:
        """Enabled heuristic steps, in report order."""
        return [step for step in HEURISTIC_FIELDS if getattr(self, step)]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PipelineOptions":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


class AnalysisPipeline:
    """Coordinates provider, analyzers, LLM and cache for one repository.

    Collaborators are passed in explicitly; the pipeline owns none of their
    lifecycles (the caller connects and closes the cache and provider).

    Example:
        >>> pipeline = AnalysisPipeline(GitHubProvider(), cache=cache)
        >>> report = await pipeline.analyze("octocat/hello-world")
    """

    def __init__(
        self,
        provider: RepositoryProvider,
        cache: BoundedCache | None = None,
        llm: LLMClient | None = None,
        config: PipelineConfig | None = None,
        registry: HeuristicRegistry | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            provider: Repository provider (GitHub REST in production)
            cache: Report cache (None disables caching)
            llm: LLM client (None disables AI summaries)
            config: Pipeline policy (thresholds, timeouts, stage weights)
            registry: Heuristic analyzers (built-in set when None)
        """
        self.provider = provider
        self.cache = cache
        self.llm = llm
        self.config = config or PipelineConfig()
        self.registry = registry or get_default_registry()

    # =========================================================================
    # Public API
    # =========================================================================

    async def analyze(
        self,
        repo_id: str,
        ref: str | None = None,
        options: PipelineOptions | None = None,
        on_progress: ProgressEmitter | None = None,
    ) -> AnalysisReport:
        """Analyze a repository.

        Args:
            repo_id: Repository URL or ``owner/name``
            ref: Branch, tag or commit (overrides ``options.ref``)
            options: Stage toggles
            on_progress: Callable receiving ProgressEvent notifications

        Returns:
            AnalysisReport (from the cache when a fresh entry exists)

        Raises:
            FatalAnalysisError: If the identifier is malformed or the
                repository cannot be fetched
        """
        options = options or PipelineOptions()
        ref = ref or options.ref
        progress = WeightedProgress(self.config.stage_weights, on_progress)
        progress.reset()

        try:
            return await self._run(repo_id, ref, options, progress)
        except FatalAnalysisError as e:
            logger.error("Analysis of %s failed: %s", repo_id, e)
            progress.fail(f"Analysis failed: {e}")
            raise
        except Exception as e:
            logger.error("Analysis of %s failed unexpectedly: %s", repo_id, e)
            progress.fail(f"Analysis failed: {e}")
            raise FatalAnalysisError(f"Unexpected analysis failure: {e}") from e

    # =========================================================================
    # Run
    # =========================================================================

    async def _run(
        self,
        repo_id: str,
        ref: str | None,
        options: PipelineOptions,
        progress: WeightedProgress,
    ) -> AnalysisReport:
        # init
        repo_ref = RepositoryRef.parse(repo_id)
        progress.report("init", f"Starting analysis of {repo_ref.full_name}", 100)
        logger.info("Starting analysis of %s", repo_ref.full_name)

        cache_key = analysis_key(repo_ref.normalized, ref)
        if options.use_cache:
            cached = await self._load_cached(cache_key)
            if cached is not None:
                progress.complete("Loaded cached analysis")
                return cached

        # fetch
        progress.report("repo_info", "Fetching repository information", 0)
        info = await self.provider.get_repository(repo_ref)
        branch = ref or info.default_branch
        progress.report("repo_info", f"Repository {info.full_name} found", 100)

        created_at = datetime.now(UTC)
        report = AnalysisReport(
            id=AnalysisReport.make_id(info, created_at),
            repository=info,
            ref=branch,
            created_at=created_at,
        )

        if options.history:
            progress.report("history", "Fetching commit history", 0)
            await self._run_history(repo_ref, branch, report)
        progress.report("history", f"Found {len(report.commits)} commits", 100)

        progress.report("files", f"Fetching files from {branch}", 0)
        files = await self.provider.fetch_catalog(repo_ref, branch)
        fetched = sum(1 for r in files if r.content is not None)
        progress.report("files", f"Fetched {fetched} of {len(files)} files", 100)
        logger.info("Fetched %d of %d files from %s@%s", fetched, len(files), info.full_name, branch)

        if options.dependencies:
            progress.report("dependencies", "Parsing dependency manifests", 0)
            report.dependencies = await self._run_dependencies(files, report)
        progress.report("dependencies", "Dependencies analyzed", 100)

        if options.quality:
            progress.report("quality", "Computing code quality metrics", 0)
            report.quality = await self._run_quality(files, report)
            if options.key_functions:
                progress.report("quality", "Ranking key functions", 70)
                self._rank_key_functions(report)
            if options.hotspots:
                progress.report("quality", "Finding hotspots", 85)
                self._find_hotspots(report)
        progress.report("quality", "Quality metrics computed", 100)

        if options.architecture:
            progress.report("architecture", "Building dependency graph", 0)
            report.dependency_graph, report.architecture = await self._run_architecture(
                files, report.quality, report
            )
            report.architecture_analysis = report.architecture.summary
        progress.report("architecture", "Architecture classified", 100)

        await self._run_heuristics(files, options.heuristics, report, progress)
        progress.report("heuristics", "Heuristic analysis complete", 100)

        progress.report("finalizing", "Computing metrics", 0)
        report.metrics = compute_metrics(
            files,
            report.quality,
            report.security_issues,
            report.technical_debt,
            report.performance_metrics,
            report.dependencies,
            commits=report.commits,
            contributors=report.contributors,
        )

        # summarize (prompts read the metrics)
        progress.report("finalizing", "Generating summaries", 20)
        await self._run_llm(files, options, report)

        report.status = (
            AnalysisStatus.PARTIAL if report.has_warnings() else AnalysisStatus.COMPLETED
        )

        if options.use_cache:
            progress.report("finalizing", "Caching results", 90)
            await self._store(cache_key, report)

        logger.info(
            "Analysis of %s complete (%d warnings)", info.full_name, len(report.warnings)
        )
        progress.complete("Analysis complete")
        return report

    # =========================================================================
    # Stages
    # =========================================================================

    async def _run_history(
        self, repo_ref: RepositoryRef, branch: str, report: AnalysisReport
    ) -> None:
        """Fetch commits and contributors concurrently; each may fail on its own."""
        outcomes = await gather_settled(
            {
                "commits": self.provider.get_commits(repo_ref, branch),
                "contributors": self.provider.get_contributors(repo_ref),
            }
        )
        for outcome in outcomes:
            if outcome.ok:
                setattr(report, outcome.name, list(outcome.value or []))
                continue
            logger.warning("Fetching %s failed: %s", outcome.name, outcome.error)
            report.add_warning(
                AnalysisWarning.from_exception(
                    outcome.name, f"Could not fetch {outcome.name}", outcome.error
                )
            )

    def _rank_key_functions(self, report: AnalysisReport) -> None:
        try:
            report.key_functions = select_key_functions(report.quality)
        except Exception as e:
            logger.warning("Key function ranking failed: %s", e)
            report.add_warning(
                AnalysisWarning.from_exception("key_functions", "Key function ranking failed", e)
            )
            report.key_functions = []

    def _find_hotspots(self, report: AnalysisReport) -> None:
        try:
            report.hotspots = find_hotspots(
                report.quality, report.commits, threshold=self.config.hotspot_complexity
            )
        except Exception as e:
            logger.warning("Hotspot analysis failed: %s", e)
            report.add_warning(
                AnalysisWarning.from_exception("hotspots", "Hotspot analysis failed", e)
            )
            report.hotspots = []

    async def _run_dependencies(
        self, files: list[FileRecord], report: AnalysisReport
    ) -> DependencyInfo:
        try:
            return await asyncio.to_thread(DependencyAnalyzer().analyze, files)
        except Exception as e:
            logger.warning("Dependency analysis failed: %s", e)
            report.add_warning(
                AnalysisWarning.from_exception("dependencies", "Dependency analysis failed", e)
            )
            return DependencyInfo()

    async def _run_quality(
        self, files: list[FileRecord], report: AnalysisReport
    ) -> dict[str, FileQuality]:
        try:
            return await asyncio.to_thread(QualityAnalyzer().analyze, files)
        except Exception as e:
            logger.warning("Quality analysis failed: %s", e)
            report.add_warning(
                AnalysisWarning.from_exception("quality", "Quality analysis failed", e)
            )
            return {}

    async def _run_architecture(
        self,
        files: list[FileRecord],
        quality: dict[str, FileQuality],
        report: AnalysisReport,
    ) -> Architecture:
        """Graph and classify under a deadline, falling back to the cheap path.

        Repositories with more than ``large_repo_threshold`` fetched source
        files skip the full build entirely.
        """
        threshold = self.config.large_repo_threshold
        analyzable = sum(1 for r in files if r.content is not None and is_source_file(r.path))
        if analyzable > threshold:
            logger.warning(
                "Repository has %d source files (threshold %d); using fallback graph",
                analyzable,
                threshold,
            )
            report.add_warning(
                AnalysisWarning(
                    step="architecture",
                    message=(
                        f"Large repository ({analyzable} source files); dependency graph "
                        f"limited to {self.config.fallback_subset} files"
                    ),
                )
            )
            return self._fallback_architecture(files, quality, report)

        try:
            return await race_deadline(
                "architecture",
                asyncio.to_thread(self.build_architecture, files, quality),
                self.config.architecture_timeout,
            )
        except StageTimeoutError as e:
            logger.warning("%s; using fallback graph", e)
            report.add_warning(
                AnalysisWarning.from_exception(
                    "architecture", "Architecture analysis timed out; using fallback graph", e
                )
            )
        except Exception as e:
            logger.warning("Architecture analysis failed: %s; using fallback graph", e)
            report.add_warning(
                AnalysisWarning.from_exception(
                    "architecture", "Architecture analysis failed; using fallback graph", e
                )
            )
        return self._fallback_architecture(files, quality, report)

    def build_architecture(
        self, files: Sequence[FileRecord], quality: dict[str, FileQuality]
    ) -> Architecture:
        """Full import graph plus classification (runs in a worker thread)."""
        graph = ImportGraphBuilder().build(list(files))
        architecture = ArchitectureClassifier().classify(list(files), graph, quality)
        return graph, architecture

    def _fallback_architecture(
        self,
        files: list[FileRecord],
        quality: dict[str, FileQuality],
        report: AnalysisReport,
    ) -> Architecture:
        subset_size = self.config.fallback_subset
        try:
            graph = build_fallback_graph(files, subset_size)
            subset = set(graph.node_ids())
            records = [r for r in files if r.path in subset and is_source_file(r.path)]
            architecture = ArchitectureClassifier().classify(records, graph, quality)
        except Exception as e:
            logger.warning("Fallback architecture failed: %s", e)
            report.add_warning(
                AnalysisWarning.from_exception("architecture", "Fallback architecture failed", e)
            )
            return DependencyGraph(fallback=True), ArchitectureAnalysis()
        return graph, architecture

    async def _run_heuristics(
        self,
        files: list[FileRecord],
        steps: list[str],
        report: AnalysisReport,
        progress: WeightedProgress,
    ) -> None:
        """Run the enabled heuristics concurrently, one worker thread each.

        A failing heuristic leaves its report list empty and adds exactly one
        warning named after its step.
        """
        if not steps:
            return

        progress.report("heuristics", "Running heuristic analysis", 0)
        finished = 0

        async def run_one(step: str) -> list[Any]:
            nonlocal finished
            analyzer = self.registry.get(step)
            try:
                return await asyncio.to_thread(analyzer.run, files)
            finally:
                finished += 1
                progress.report(
                    "heuristics", f"Finished {step} analysis", 100 * finished / len(steps)
                )

        outcomes = await gather_settled({step: run_one(step) for step in steps})
        for outcome in outcomes:
            attribute = HEURISTIC_FIELDS[outcome.name]
            if outcome.ok:
                setattr(report, attribute, list(outcome.value or []))
                continue

            error = outcome.error
            cause = error.cause if isinstance(error, HeuristicError) else error
            logger.warning("Heuristic %s failed: %s", outcome.name, cause)
            report.add_warning(
                AnalysisWarning.from_exception(
                    outcome.name, f"{outcome.name.replace('_', ' ').capitalize()} analysis failed", cause
                )
            )
            setattr(report, attribute, [])

    async def _run_llm(
        self, files: list[FileRecord], options: PipelineOptions, report: AnalysisReport
    ) -> None:
        """Generate LLM summaries concurrently; any failure keeps the rule-based text."""
        if self.llm is None or not self.llm.is_configured():
            return

        tasks: dict[str, Any] = {}
        if options.ai_summary:
            tasks["ai_summary"] = self.llm.generate_text(
                build_summary_prompt(report), SUMMARY_SYSTEM_PROMPT
            )
        if options.ai_architecture and options.architecture:
            tasks["ai_architecture"] = self.llm.generate_text(
                build_architecture_prompt(report, files), ARCHITECTURE_SYSTEM_PROMPT
            )
        if options.llm_findings:
            prompt = build_findings_prompt(files)
            if prompt is not None:
                tasks["llm_findings"] = self.llm.generate_text(prompt, FINDINGS_SYSTEM_PROMPT)
        if not tasks:
            return

        for outcome in await gather_settled(tasks):
            if not outcome.ok:
                logger.warning("LLM step %s failed: %s", outcome.name, outcome.error)
                report.add_warning(
                    AnalysisWarning.from_exception(
                        outcome.name, "LLM generation failed; using rule-based output", outcome.error
                    )
                )
                continue

            text = outcome.value or ""
            if outcome.name == "ai_summary":
                report.ai_summary = text
            elif outcome.name == "ai_architecture":
                report.architecture_analysis = text
            else:
                self._merge_llm_findings(text, report)

    def _merge_llm_findings(self, text: str, report: AnalysisReport) -> None:
        findings, rejected = parse_findings("security", text)
        known = {(f.file, f.line, f.type) for f in report.security_issues}
        for finding in findings:
            if not isinstance(finding, SecurityFinding):
                continue
            key = (finding.file, finding.line, finding.type)
            if key not in known:
                known.add(key)
                report.security_issues.append(finding)
        for record in rejected:
            report.add_warning(
                AnalysisWarning(
                    step="llm_findings",
                    message="Discarded unparseable LLM finding",
                    cause=record.reason,
                )
            )
        logger.info("LLM contributed %d security findings (%d rejected)", len(findings), len(rejected))

    # =========================================================================
    # Cache
    # =========================================================================

    async def _load_cached(self, key: str) -> AnalysisReport | None:
        if self.cache is None:
            return None
        data = await self.cache.get(key)
        if data is None:
            return None
        try:
            report = AnalysisReport.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Ignoring unreadable cached report %s: %s", key, e)
            await self.cache.delete(key)
            return None
        report.cached = True
        logger.info("Cache hit for %s", report.repository.full_name)
        return report

    async def _store(self, key: str, report: AnalysisReport) -> None:
        if self.cache is None:
            return
        try:
            payload = report.to_dict()
            await self.cache.set(key, payload)
            await self.cache.set(report_key(report.id), payload)
        except (TypeError, ValueError) as e:
            logger.warning("Report %s could not be cached: %s", report.id, e)
            report.add_warning(
                AnalysisWarning.from_exception("cache", "Report could not be cached", e)
            )

    async def get_report(self, report_id: str) -> AnalysisReport | None:
        """Look up a previously cached report by id."""
        if self.cache is None:
            return None
        data = await self.cache.get(report_key(report_id))
        if data is None:
            return None
        try:
            report = AnalysisReport.from_dict(data)
        except (KeyError, ValueError, TypeError) as e:
            logger.warning("Ignoring unreadable cached report %s: %s", report_id, e)
            return None
        report.cached = True
        return report
