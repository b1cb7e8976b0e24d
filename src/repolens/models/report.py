"""Analysis report entities.

AnalysisReport is the terminal success payload of a run. Finding lists are
always present (possibly empty); sub-analyses that failed are reflected as
AnalysisWarning entries instead of missing fields.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from repolens.models.architecture import (
    ArchitectureAnalysis,
    Component,
    ComponentDependency,
    ComponentType,
    Layer,
    LayerType,
)
from repolens.models.catalog import RepositoryInfo
from repolens.models.findings import (
    EndpointFinding,
    PerformanceFinding,
    SecurityFinding,
    TechDebtFinding,
    Unparseable,
    parse_finding,
)
from repolens.models.graph import DependencyGraph, GraphEdge, GraphNode
from repolens.models.history import (
    Commit,
    Contributor,
    FunctionMetrics,
    Hotspot,
    KeyFunction,
)


class AnalysisStatus(Enum):
    """Status of an analysis run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class AnalysisWarning:
    """Non-fatal failure of one analysis sub-step.

    Attributes:
        step: Step that failed (security, architecture, cache, ...)
        message: What happened, in plain words
        cause: Description of the underlying error (if any)
    """

    step: str
    message: str
    cause: str | None = None

    @classmethod
    def from_exception(
        cls, step: str, message: str, error: BaseException | None = None
    ) -> "AnalysisWarning":
        cause = None
        if error is not None:
            cause = str(error) or type(error).__name__
        return cls(step=step, message=message, cause=cause)

    def to_dict(self) -> dict[str, Any]:
        return {"step": self.step, "message": self.message, "cause": self.cause}


@dataclass
class FileQuality:
    """Per-file quality metrics.

    ``functions`` holds function-level metrics from the syntax tree. It stays
    in memory; reports carry the ranked key functions instead.
    """

    path: str
    complexity: int = 1
    maintainability: int = 100
    lines_of_code: int = 0
    functions: list[FunctionMetrics] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "complexity": self.complexity,
            "maintainability": self.maintainability,
            "lines_of_code": self.lines_of_code,
        }


@dataclass
class DependencyInfo:
    """Dependencies declared in repository manifests.

    Attributes:
        dependencies: Runtime dependency name -> version spec
        dev_dependencies: Development dependency name -> version spec
        frameworks: Known frameworks detected among the dependencies
        manifests: Manifest files that were parsed
    """

    dependencies: dict[str, str | None] = field(default_factory=dict)
    dev_dependencies: dict[str, str | None] = field(default_factory=dict)
    frameworks: list[str] = field(default_factory=list)
    manifests: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.dependencies) + len(self.dev_dependencies)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dependencies": dict(self.dependencies),
            "dev_dependencies": dict(self.dev_dependencies),
            "frameworks": list(self.frameworks),
            "manifests": list(self.manifests),
        }


@dataclass
class AnalysisMetrics:
    """Repository-level metrics and scores (scores are 0-100, quality 0-10)."""

    file_count: int = 0
    analyzable_file_count: int = 0
    lines_of_code: int = 0
    avg_complexity: float = 0.0
    avg_maintainability: float = 0.0
    files_with_complexity: int = 0
    test_coverage: float = 0.0
    repository_size: int = 0
    languages: dict[str, int] = field(default_factory=dict)
    security_score: int = 100
    technical_debt_score: int = 100
    performance_score: int = 100
    code_quality: float = 0.0
    critical_vulnerabilities: int = 0
    high_vulnerabilities: int = 0
    medium_vulnerabilities: int = 0
    low_vulnerabilities: int = 0
    dependency_count: int = 0
    total_commits: int = 0
    total_contributors: int = 0
    bus_factor: int = 0

    def to_dict(self) -> dict[str, Any]:
        return dict(self.__dict__)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisMetrics":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class AnalysisReport:
    """Aggregated result of one analysis run.

    Attributes:
        id: Report identifier (``<owner>-<name>-<epoch-ms>``)
        repository: Repository metadata
        ref: Branch or ref that was analyzed
        created_at: Report creation timestamp (UTC)
        status: Run status
        dependency_graph: File-level import graph
        architecture: Component/layer classification
        quality: Per-file quality metrics keyed by path
        dependencies: Manifest-declared dependencies
        security_issues: Security findings (never omitted)
        technical_debt: Technical-debt findings (never omitted)
        performance_metrics: Performance findings (never omitted)
        api_endpoints: Endpoint findings (never omitted)
        commits: Recent branch history (newest first)
        contributors: Contributors by commit count
        hotspots: Complex files ranked by change frequency
        key_functions: Most complex functions
        ai_summary: LLM repository summary, if generated
        architecture_analysis: LLM architecture description, if generated
        metrics: Repository-level metrics
        warnings: Non-fatal failures recorded during the run
        cached: True when served from the cache
    """

    id: str
    repository: RepositoryInfo
    ref: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    status: AnalysisStatus = AnalysisStatus.COMPLETED
    dependency_graph: DependencyGraph = field(default_factory=DependencyGraph)
    architecture: ArchitectureAnalysis = field(default_factory=ArchitectureAnalysis)
    quality: dict[str, FileQuality] = field(default_factory=dict)
    dependencies: DependencyInfo = field(default_factory=DependencyInfo)
    security_issues: list[SecurityFinding] = field(default_factory=list)
    technical_debt: list[TechDebtFinding] = field(default_factory=list)
    performance_metrics: list[PerformanceFinding] = field(default_factory=list)
    api_endpoints: list[EndpointFinding] = field(default_factory=list)
    commits: list[Commit] = field(default_factory=list)
    contributors: list[Contributor] = field(default_factory=list)
    hotspots: list[Hotspot] = field(default_factory=list)
    key_functions: list[KeyFunction] = field(default_factory=list)
    ai_summary: str | None = None
    architecture_analysis: str | None = None
    metrics: AnalysisMetrics = field(default_factory=AnalysisMetrics)
    warnings: list[AnalysisWarning] = field(default_factory=list)
    cached: bool = False

    @staticmethod
    def make_id(repository: RepositoryInfo, created_at: datetime | None = None) -> str:
        moment = created_at or datetime.now(UTC)
        millis = int(moment.timestamp() * 1000)
        return f"{repository.full_name.replace('/', '-')}-{millis}"

    @property
    def repository_url(self) -> str:
        return self.repository.url

    def add_warning(self, warning: AnalysisWarning) -> None:
        self.warnings.append(warning)

    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def get_warnings_by_step(self, step: str) -> list[AnalysisWarning]:
        return [w for w in self.warnings if w.step == step]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {
            "id": self.id,
            "repository_url": self.repository_url,
            "repository": self.repository.to_dict(),
            "ref": self.ref,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "dependency_graph": self.dependency_graph.to_dict(),
            "architecture": self.architecture.to_dict(),
            "quality": {path: q.to_dict() for path, q in self.quality.items()},
            "dependencies": self.dependencies.to_dict(),
            "security_issues": [f.to_dict() for f in self.security_issues],
            "technical_debt": [f.to_dict() for f in self.technical_debt],
            "performance_metrics": [f.to_dict() for f in self.performance_metrics],
            "api_endpoints": [f.to_dict() for f in self.api_endpoints],
            "commits": [c.to_dict() for c in self.commits],
            "contributors": [c.to_dict() for c in self.contributors],
            "hotspots": [h.to_dict() for h in self.hotspots],
            "key_functions": [k.to_dict() for k in self.key_functions],
            "ai_summary": self.ai_summary,
            "architecture_analysis": self.architecture_analysis,
            "metrics": self.metrics.to_dict(),
            "warnings": [w.to_dict() for w in self.warnings],
            "cached": self.cached,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisReport":
        """Rebuild a report from its ``to_dict()`` form (cache payloads).

        Finding records are re-validated through the strict parser; records
        that no longer validate are dropped.

        Raises:
            KeyError, ValueError: If the payload is structurally invalid
        """
        graph_data = data.get("dependency_graph", {})
        graph = DependencyGraph(
            nodes=[
                GraphNode(
                    id=n["id"],
                    name=n["name"],
                    component_type=n["type"],
                    path=n["path"],
                    layer=n["layer"],
                )
                for n in graph_data.get("nodes", [])
            ],
            edges=[
                GraphEdge(
                    source=e["source"],
                    target=e["target"],
                    type=e.get("type", "import"),
                    synthetic=e.get("synthetic", False),
                )
                for e in graph_data.get("links", [])
            ],
            fallback=graph_data.get("fallback", False),
        )

        arch_data = data.get("architecture", {})
        components = [
            Component(
                id=c["id"],
                name=c["name"],
                type=ComponentType(c["type"]),
                path=c["path"],
                files=list(c.get("files", [])),
                dependencies=list(c.get("dependencies", [])),
                complexity=c.get("complexity", 1),
            )
            for c in arch_data.get("components", [])
        ]
        by_id = {c.id: c for c in components}
        layers = [
            Layer(
                name=layer["name"],
                type=LayerType(layer["type"]),
                components=[by_id[cid] for cid in layer.get("components", []) if cid in by_id],
            )
            for layer in arch_data.get("layers", [])
        ]
        architecture = ArchitectureAnalysis(
            components=components,
            layers=layers,
            dependencies=[
                ComponentDependency(source=d["from"], target=d["to"], type=d.get("type", "import"))
                for d in arch_data.get("dependencies", [])
            ],
            patterns=list(arch_data.get("patterns", [])) or ArchitectureAnalysis().patterns,
            mermaid=arch_data.get("mermaid", ""),
            summary=arch_data.get("summary", ""),
        )

        return cls(
            id=data["id"],
            repository=RepositoryInfo.from_dict(data["repository"]),
            ref=data.get("ref", ""),
            created_at=datetime.fromisoformat(data["created_at"]),
            status=AnalysisStatus(data.get("status", "completed")),
            dependency_graph=graph,
            architecture=architecture,
            quality={
                path: FileQuality(path=path, **values)
                for path, values in data.get("quality", {}).items()
            },
            dependencies=DependencyInfo(**data.get("dependencies", {})),
            security_issues=_valid(data.get("security_issues", []), "security"),
            technical_debt=_valid(data.get("technical_debt", []), "tech_debt"),
            performance_metrics=_valid(data.get("performance_metrics", []), "performance"),
            api_endpoints=_valid(data.get("api_endpoints", []), "endpoint"),
            commits=[Commit.from_dict(c) for c in data.get("commits", [])],
            contributors=[Contributor.from_dict(c) for c in data.get("contributors", [])],
            hotspots=[Hotspot.from_dict(h) for h in data.get("hotspots", [])],
            key_functions=[KeyFunction.from_dict(k) for k in data.get("key_functions", [])],
            ai_summary=data.get("ai_summary"),
            architecture_analysis=data.get("architecture_analysis"),
            metrics=AnalysisMetrics.from_dict(data.get("metrics", {})),
            warnings=[AnalysisWarning(**w) for w in data.get("warnings", [])],
        )


def _valid(records: list[Any], kind: str) -> list[Any]:
    parsed = (parse_finding(kind, record) for record in records)
    return [p for p in parsed if not isinstance(p, Unparseable)]
