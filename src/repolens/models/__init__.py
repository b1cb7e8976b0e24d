"""repolens data models.

This module exports the core entities used throughout the application:
- FileRecord / RepositoryInfo / RepositoryRef: the file catalog and its source
- DependencyGraph: file-level import graph
- ArchitectureAnalysis: components, layers, patterns and diagram
- Findings: tagged security, tech-debt, performance and endpoint findings
- Commit / Contributor / Hotspot / KeyFunction: history and its rankings
- AnalysisReport: aggregated result of one run
"""

from repolens.models.architecture import (
    ArchitectureAnalysis,
    Component,
    ComponentDependency,
    ComponentType,
    Layer,
    LayerType,
)
from repolens.models.catalog import FileRecord, RepositoryInfo, RepositoryRef
from repolens.models.findings import (
    Effort,
    EndpointFinding,
    Finding,
    PerformanceFinding,
    SecurityFinding,
    Severity,
    TechDebtFinding,
    Unparseable,
    parse_finding,
    parse_findings,
)
from repolens.models.graph import DependencyGraph, GraphEdge, GraphNode
from repolens.models.history import (
    Commit,
    Contributor,
    FunctionMetrics,
    Hotspot,
    KeyFunction,
)
from repolens.models.llm_config import LLMConfig
from repolens.models.report import (
    AnalysisMetrics,
    AnalysisReport,
    AnalysisStatus,
    AnalysisWarning,
    DependencyInfo,
    FileQuality,
)

__all__ = [
    "AnalysisMetrics",
    "AnalysisReport",
    "AnalysisStatus",
    "AnalysisWarning",
    "ArchitectureAnalysis",
    "Commit",
    "Component",
    "ComponentDependency",
    "ComponentType",
    "Contributor",
    "DependencyGraph",
    "DependencyInfo",
    "Effort",
    "EndpointFinding",
    "FileQuality",
    "FileRecord",
    "Finding",
    "FunctionMetrics",
    "GraphEdge",
    "GraphNode",
    "Hotspot",
    "KeyFunction",
    "LLMConfig",
    "Layer",
    "LayerType",
    "PerformanceFinding",
    "RepositoryInfo",
    "RepositoryRef",
    "SecurityFinding",
    "Severity",
    "TechDebtFinding",
    "Unparseable",
    "parse_finding",
    "parse_findings",
]
