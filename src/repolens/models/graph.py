"""Dependency graph entities produced by the import graph builder."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class GraphNode:
    """One analyzable file in the dependency graph.

    Attributes:
        id: Node identifier (the file path)
        name: Base name for display
        component_type: Inferred component type (frontend, backend, ...)
        path: Repository-relative path
        layer: Architectural layer for the component type
    """

    id: str
    name: str
    component_type: str
    path: str
    layer: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.component_type,
            "path": self.path,
            "layer": self.layer,
        }


@dataclass(frozen=True)
class GraphEdge:
    """Directed "source statically references target" edge.

    Attributes:
        source: Referencing node id
        target: Referenced node id
        type: Display classification (import, service_call, data_access, ...)
        synthetic: True for fallback connectivity edges, not real references
    """

    source: str
    target: str
    type: str = "import"
    synthetic: bool = False

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.source, self.target, self.type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "target": self.target,
            "type": self.type,
            "synthetic": self.synthetic,
        }


@dataclass
class DependencyGraph:
    """Nodes and edges of the file-level import graph.

    Attributes:
        nodes: One node per analyzable file, sorted by path
        edges: Deduplicated edges, sorted
        fallback: True when produced by the cheap fallback path
    """

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    fallback: bool = False

    @property
    def real_edges(self) -> list[GraphEdge]:
        return [e for e in self.edges if not e.synthetic]

    @property
    def has_synthetic_edges(self) -> bool:
        return any(e.synthetic for e in self.edges)

    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "links": [e.to_dict() for e in self.edges],
            "fallback": self.fallback,
        }
