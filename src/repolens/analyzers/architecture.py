"""Architecture classification.

Groups catalog files into components, assigns each component a type and a
layer, lifts file-level import edges to component dependencies, detects
common architectural patterns and renders a Mermaid diagram.
"""

import logging
import posixpath
import re
from collections import Counter
from collections.abc import Iterable, Mapping

from repolens.analyzers.diagrams.mermaid import MermaidGenerator
from repolens.models.architecture import (
    DEFAULT_PATTERN,
    LAYER_FOR_TYPE,
    LAYER_NAMES,
    ArchitectureAnalysis,
    Component,
    ComponentDependency,
    ComponentType,
    Layer,
    LayerType,
)
from repolens.models.catalog import FileRecord, extension_of, is_source_file
from repolens.models.graph import DependencyGraph
from repolens.models.report import FileQuality

logger = logging.getLogger(__name__)

# =============================================================================
# Component type rules (first match wins)
# =============================================================================

_CONFIG_EXTENSIONS = frozenset({".json", ".yml", ".yaml", ".env", ".toml", ".ini"})
_FRONTEND_EXTENSIONS = frozenset({".tsx", ".jsx", ".vue", ".svelte"})

_TYPE_RULES: list[tuple[ComponentType, tuple[str, ...]]] = [
    (ComponentType.FRONTEND, ("frontend", "client", "/ui", "components", "pages", "views")),
    (ComponentType.BACKEND, ("backend", "server", "controller", "route")),
    (ComponentType.DATABASE, ("database", "/db", "model", "schema", "migration")),
    (ComponentType.SERVICE, ("service",)),
    (ComponentType.API, ("api",)),
    (ComponentType.MIDDLEWARE, ("middleware", "auth", "guard")),
    (ComponentType.TEST, ("test", "spec", "__tests__")),
    (ComponentType.CONFIG, ("config", "settings")),
    (ComponentType.UTIL, ("util", "helper", "lib")),
]

_EVENT_MARKERS = ("emit(", "EventEmitter", "addEventListener", "listener")

PATTERN_MVC = "Model-View-Controller (MVC)"
PATTERN_MICROSERVICES = "Microservices Architecture"
PATTERN_LAYERED = "Layered Architecture"
PATTERN_REPOSITORY = "Repository Pattern"
PATTERN_API_GATEWAY = "API Gateway Pattern"
PATTERN_COMPONENT_BASED = "Component-Based Architecture"
PATTERN_EVENT_DRIVEN = "Event-Driven Architecture"

HIGH_COMPLEXITY = 10

sanitize_id = MermaidGenerator.sanitize_id


def infer_component_type(path: str, extensions: Iterable[str] = ()) -> ComponentType:
    """Infer a component type from a path and the extensions of its files.

    Args:
        path: Component path (or a single file path)
        extensions: Extensions of the component's files (the path's own
            extension is always considered)

    Returns:
        The first matching ComponentType, SERVICE when nothing matches
    """
    lowered = "/" + path.lower()
    exts = set(extensions) | {extension_of(path)}

    for component_type, markers in _TYPE_RULES:
        if any(marker in lowered for marker in markers):
            return component_type
        if component_type is ComponentType.CONFIG and exts & _CONFIG_EXTENSIONS:
            return component_type

    if exts & _FRONTEND_EXTENSIONS:
        return ComponentType.FRONTEND
    return ComponentType.SERVICE


def component_name(path: str) -> str:
    """Human-readable name from the last path segment (``user-service.ts`` -> ``User Service``)."""
    segment = path.rstrip("/").rsplit("/", 1)[-1]
    stem = posixpath.splitext(segment)[0] if "." in segment[1:] else segment
    words = [w for w in re.split(r"[-_]", stem) if w]
    return " ".join(w[:1].upper() + w[1:] for w in words) or segment or "Root"


def component_key(path: str) -> str:
    """Grouping key for a file path.

    Files at depth <= 2 form their own component; depth-3 files group by
    their parent directory; deeper files group by their first three segments.
    """
    parts = path.split("/")
    if len(parts) <= 2:
        return path
    if len(parts) == 3:
        return "/".join(parts[:2])
    return "/".join(parts[:3])


class ArchitectureClassifier:
    """Classify a file catalog into components, layers and patterns.

    Example:
        >>> classifier = ArchitectureClassifier()
        >>> analysis = classifier.classify(files, graph)
        >>> analysis.patterns
        ['Modular Architecture']
    """

    def __init__(self, diagram_generator: MermaidGenerator | None = None) -> None:
        self.diagram_generator = diagram_generator or MermaidGenerator()

    def classify(
        self,
        files: list[FileRecord],
        graph: DependencyGraph | None = None,
        file_quality: Mapping[str, FileQuality] | None = None,
    ) -> ArchitectureAnalysis:
        """Classify files into an ArchitectureAnalysis.

        Args:
            files: File catalog (only source files with content are grouped)
            graph: File-level import graph used for component dependencies
            file_quality: Per-file metrics used for component complexity

        Returns:
            ArchitectureAnalysis (patterns is never empty)
        """
        components = self._identify_components(files, file_quality or {})
        dependencies = self._component_dependencies(components, graph)
        for component in components:
            component.dependencies = sorted(
                {d.target for d in dependencies if d.source == component.id}
            )

        layers = self._build_layers(components)
        patterns = self._detect_patterns(components, files)
        mermaid = self.diagram_generator.generate_architecture_diagram(layers, dependencies)
        summary = self.rule_based_summary(components, patterns, dependencies)

        logger.info(
            "Classified %d components into %d layers (%s)",
            len(components),
            len(layers),
            ", ".join(patterns),
        )
        return ArchitectureAnalysis(
            components=components,
            layers=layers,
            dependencies=dependencies,
            patterns=patterns,
            mermaid=mermaid,
            summary=summary,
        )

    def _identify_components(
        self, files: list[FileRecord], file_quality: Mapping[str, FileQuality]
    ) -> list[Component]:
        groups: dict[str, list[FileRecord]] = {}
        for record in files:
            if record.content is None or not is_source_file(record.path):
                continue
            groups.setdefault(component_key(record.path), []).append(record)

        components = []
        for key in sorted(groups):
            members = sorted(groups[key], key=lambda r: r.path)
            extensions = {r.extension for r in members}
            complexities = [
                file_quality[r.path].complexity for r in members if r.path in file_quality
            ]
            complexity = round(sum(complexities) / len(complexities)) if complexities else 1
            components.append(
                Component(
                    id=sanitize_id(key),
                    name=component_name(key),
                    type=infer_component_type(key, extensions),
                    path=key,
                    files=[r.path for r in members],
                    complexity=max(1, complexity),
                )
            )
        return components

    def _component_dependencies(
        self, components: list[Component], graph: DependencyGraph | None
    ) -> list[ComponentDependency]:
        if graph is None:
            return []

        owner = {path: c.id for c in components for path in c.files}
        seen: set[tuple[str, str, str]] = set()
        dependencies = []
        for edge in graph.real_edges:
            source = owner.get(edge.source)
            target = owner.get(edge.target)
            if source is None or target is None or source == target:
                continue
            key = (source, target, edge.type)
            if key in seen:
                continue
            seen.add(key)
            dependencies.append(ComponentDependency(source=source, target=target, type=edge.type))

        return sorted(dependencies, key=lambda d: (d.source, d.target, d.type))

    def _build_layers(self, components: list[Component]) -> list[Layer]:
        layers = []
        for layer_type in LayerType:
            members = [c for c in components if LAYER_FOR_TYPE[c.type] is layer_type]
            if members:
                layers.append(Layer(name=LAYER_NAMES[layer_type], type=layer_type, components=members))
        return layers

    def _detect_patterns(self, components: list[Component], files: list[FileRecord]) -> list[str]:
        patterns: list[str] = []
        types = Counter(c.type for c in components)
        paths = [c.path.lower() for c in components]

        if (
            types[ComponentType.FRONTEND]
            and types[ComponentType.BACKEND]
            and any("controller" in p for p in paths)
            and any("model" in p for p in paths)
        ):
            patterns.append(PATTERN_MVC)

        if types[ComponentType.SERVICE] >= 3:
            patterns.append(PATTERN_MICROSERVICES)

        if types[ComponentType.FRONTEND] and types[ComponentType.BACKEND] and types[ComponentType.DATABASE]:
            patterns.append(PATTERN_LAYERED)

        if any("repository" in c.name.lower() or "repositories" in c.path for c in components):
            patterns.append(PATTERN_REPOSITORY)

        if any("gateway" in p or "proxy" in p for p in paths):
            patterns.append(PATTERN_API_GATEWAY)

        if types[ComponentType.FRONTEND] >= 5:
            patterns.append(PATTERN_COMPONENT_BASED)

        if any(
            record.content and any(marker in record.content for marker in _EVENT_MARKERS)
            for record in files
        ):
            patterns.append(PATTERN_EVENT_DRIVEN)

        return patterns or [DEFAULT_PATTERN]

    @staticmethod
    def rule_based_summary(
        components: list[Component],
        patterns: list[str],
        dependencies: list[ComponentDependency],
    ) -> str:
        """Plain-text architecture summary built from counts and thresholds."""
        if not components:
            return "No analyzable source components were found."

        by_type = Counter(c.type.value for c in components)
        avg_complexity = sum(c.complexity for c in components) / len(components)
        high_complexity = sum(1 for c in components if c.complexity > HIGH_COMPLEXITY)

        lines = [
            "System Architecture Analysis:",
            "",
            "Architecture Overview:",
            f"- Total Components: {len(components)}",
            f"- Dependencies: {len(dependencies)}",
            f"- Average Complexity: {avg_complexity:.1f}",
            f"- High Complexity Components: {high_complexity}",
            "",
            "Component Distribution:",
        ]
        lines.extend(f"- {name}: {count} components" for name, count in sorted(by_type.items()))
        lines.append("")
        lines.append("Architectural Patterns:")
        lines.extend(f"- {pattern}" for pattern in patterns)

        assessment = []
        if avg_complexity < 5:
            assessment.append("- Low complexity indicates good maintainability")
        elif avg_complexity > 15:
            assessment.append("- High complexity may indicate need for refactoring")
        if len(components) > 20:
            assessment.append("- Large number of components suggests good modularity")
        if len(dependencies) > len(components) * 1.5:
            assessment.append("- High dependency ratio may indicate tight coupling")
        if assessment:
            lines.append("")
            lines.append("Assessment:")
            lines.extend(assessment)

        return "\n".join(lines)


def classify_architecture(
    files: list[FileRecord],
    graph: DependencyGraph | None = None,
    file_quality: Mapping[str, FileQuality] | None = None,
) -> ArchitectureAnalysis:
    """Classify a file catalog.

    Convenience function for architecture classification.
    """
    return ArchitectureClassifier().classify(files, graph, file_quality)
