"""repolens analyzers - deterministic analysis over the file catalog.

Everything here is synchronous, pure with respect to the catalog, and safe to
run in a worker thread. The pipeline decides what runs, when, and under which
deadline.

Analyzers:
- Import extraction and graph building (tree-sitter with a regex fallback)
- Architecture classification and Mermaid rendering
- Quality metrics (complexity, maintainability, lines of code, key functions)
- History rankings (hotspots, bus factor)
- Manifest dependency parsing
- Heuristic scanners (security, technical debt, performance, endpoints)
"""

from repolens.analyzers.architecture import (
    ArchitectureClassifier,
    classify_architecture,
    infer_component_type,
)
from repolens.analyzers.dependency import DependencyAnalyzer, analyze_dependencies
from repolens.analyzers.diagrams import MermaidGenerator
from repolens.analyzers.heuristics import HeuristicAnalyzer, HeuristicRegistry, get_default_registry
from repolens.analyzers.history import bus_factor, find_hotspots
from repolens.analyzers.import_graph import (
    ImportGraphBuilder,
    build_fallback_graph,
    build_import_graph,
)
from repolens.analyzers.imports import ImportExtractor, ParserPool
from repolens.analyzers.quality import QualityAnalyzer, compute_metrics, select_key_functions

__all__ = [
    "ArchitectureClassifier",
    "DependencyAnalyzer",
    "HeuristicAnalyzer",
    "HeuristicRegistry",
    "ImportExtractor",
    "ImportGraphBuilder",
    "MermaidGenerator",
    "ParserPool",
    "QualityAnalyzer",
    "analyze_dependencies",
    "build_fallback_graph",
    "build_import_graph",
    "bus_factor",
    "classify_architecture",
    "compute_metrics",
    "find_hotspots",
    "get_default_registry",
    "infer_component_type",
    "select_key_functions",
]
