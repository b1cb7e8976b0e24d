"""Heuristic analyzers.

Independent, side-effect-free scanners over the file catalog. Each returns a
typed finding list and can fail on its own without affecting the others.
"""

from repolens.analyzers.heuristics.base import HeuristicAnalyzer, LineMatch, scan_lines
from repolens.analyzers.heuristics.endpoints import EndpointAnalyzer
from repolens.analyzers.heuristics.performance import PerformanceAnalyzer
from repolens.analyzers.heuristics.registry import HeuristicRegistry, get_default_registry
from repolens.analyzers.heuristics.security import SecurityAnalyzer
from repolens.analyzers.heuristics.tech_debt import TechDebtAnalyzer

__all__ = [
    "EndpointAnalyzer",
    "HeuristicAnalyzer",
    "HeuristicRegistry",
    "LineMatch",
    "PerformanceAnalyzer",
    "SecurityAnalyzer",
    "TechDebtAnalyzer",
    "get_default_registry",
    "scan_lines",
]
