"""Registry of heuristic analyzers.

The pipeline looks analyzers up by step name, so adding a scanner means
implementing HeuristicAnalyzer and registering it here; nothing else in the
codebase changes.
"""

from typing import Any

from repolens.analyzers.heuristics.base import HeuristicAnalyzer
from repolens.analyzers.heuristics.endpoints import EndpointAnalyzer
from repolens.analyzers.heuristics.performance import PerformanceAnalyzer
from repolens.analyzers.heuristics.security import SecurityAnalyzer
from repolens.analyzers.heuristics.tech_debt import TechDebtAnalyzer


class HeuristicRegistry:
    """Registry of heuristic analyzer classes keyed by step name.

    Attributes:
        analyzers: Registered analyzer classes by step name
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._analyzers: dict[str, type[HeuristicAnalyzer[Any]]] = {}

    def register(self, analyzer_class: type[HeuristicAnalyzer[Any]]) -> None:
        """Register an analyzer class under its ``step`` name.

        Raises:
            ValueError: If the class has no step name
        """
        if not analyzer_class.step:
            raise ValueError(f"{analyzer_class.__name__} has no step name")
        self._analyzers[analyzer_class.step] = analyzer_class

    def get(self, step: str) -> HeuristicAnalyzer[Any]:
        """Instantiate the analyzer registered for ``step``.

        Raises:
            KeyError: If no analyzer is registered under that name
        """
        if step not in self._analyzers:
            available = ", ".join(self.steps) or "none"
            raise KeyError(f"Unknown heuristic '{step}'. Available: {available}")
        return self._analyzers[step]()

    @property
    def steps(self) -> list[str]:
        """Registered step names in registration order."""
        return list(self._analyzers)

    @property
    def analyzers(self) -> dict[str, type[HeuristicAnalyzer[Any]]]:
        return dict(self._analyzers)


def get_default_registry() -> HeuristicRegistry:
    """Create a registry with the built-in analyzers.

    Returns:
        HeuristicRegistry with security, technical_debt, performance and
        api_endpoints registered
    """
    registry = HeuristicRegistry()
    registry.register(SecurityAnalyzer)
    registry.register(TechDebtAnalyzer)
    registry.register(PerformanceAnalyzer)
    registry.register(EndpointAnalyzer)
    return registry
