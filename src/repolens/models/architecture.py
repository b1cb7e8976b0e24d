"""Architecture classification entities.

Components group files; Layers partition Components. A Component belongs to
exactly one Layer, chosen by its type through LAYER_FOR_TYPE.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ComponentType(str, Enum):
    """Kind of architectural component."""

    FRONTEND = "frontend"
    BACKEND = "backend"
    DATABASE = "database"
    SERVICE = "service"
    API = "api"
    MIDDLEWARE = "middleware"
    CONFIG = "config"
    TEST = "test"
    UTIL = "util"


class LayerType(str, Enum):
    """Coarse architectural tier."""

    PRESENTATION = "presentation"
    BUSINESS = "business"
    DATA = "data"
    INFRASTRUCTURE = "infrastructure"


LAYER_FOR_TYPE: dict[ComponentType, LayerType] = {
    ComponentType.FRONTEND: LayerType.PRESENTATION,
    ComponentType.BACKEND: LayerType.BUSINESS,
    ComponentType.SERVICE: LayerType.BUSINESS,
    ComponentType.API: LayerType.BUSINESS,
    ComponentType.DATABASE: LayerType.DATA,
    ComponentType.MIDDLEWARE: LayerType.INFRASTRUCTURE,
    ComponentType.CONFIG: LayerType.INFRASTRUCTURE,
    ComponentType.UTIL: LayerType.INFRASTRUCTURE,
    ComponentType.TEST: LayerType.INFRASTRUCTURE,
}

LAYER_NAMES: dict[LayerType, str] = {
    LayerType.PRESENTATION: "Presentation Layer",
    LayerType.BUSINESS: "Business Layer",
    LayerType.DATA: "Data Layer",
    LayerType.INFRASTRUCTURE: "Infrastructure Layer",
}

DEFAULT_PATTERN = "Modular Architecture"


@dataclass
class Component:
    """A logical grouping of files.

    Attributes:
        id: Sanitized identifier derived from the component path
        name: Human-readable name
        type: Inferred component type
        path: Grouping path prefix (or file path for single-file components)
        files: Paths of the files in this component
        dependencies: Ids of components this one depends on
        complexity: Mean file complexity (1 when nothing measurable)
    """

    id: str
    name: str
    type: ComponentType
    path: str
    files: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    complexity: int = 1

    @property
    def layer(self) -> LayerType:
        return LAYER_FOR_TYPE[self.type]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "path": self.path,
            "files": list(self.files),
            "dependencies": list(self.dependencies),
            "complexity": self.complexity,
        }


@dataclass
class Layer:
    """A partition of components by tier."""

    name: str
    type: LayerType
    components: list[Component] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type.value,
            "components": [c.id for c in self.components],
        }


@dataclass(frozen=True)
class ComponentDependency:
    """Directed dependency between two components."""

    source: str
    target: str
    type: str = "import"

    def to_dict(self) -> dict[str, str]:
        return {"from": self.source, "to": self.target, "type": self.type}


@dataclass
class ArchitectureAnalysis:
    """Full output of the architecture classifier.

    Attributes:
        components: Detected components
        layers: Non-empty layers in fixed tier order
        dependencies: Component-level dependencies
        patterns: Detected pattern names (never empty)
        mermaid: Diagram markup
        summary: Rule-based (or LLM-replaced) prose summary
    """

    components: list[Component] = field(default_factory=list)
    layers: list[Layer] = field(default_factory=list)
    dependencies: list[ComponentDependency] = field(default_factory=list)
    patterns: list[str] = field(default_factory=lambda: [DEFAULT_PATTERN])
    mermaid: str = ""
    summary: str = ""

    def get_component(self, component_id: str) -> Component | None:
        for component in self.components:
            if component.id == component_id:
                return component
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "components": [c.to_dict() for c in self.components],
            "layers": [layer.to_dict() for layer in self.layers],
            "dependencies": [d.to_dict() for d in self.dependencies],
            "patterns": list(self.patterns),
            "mermaid": self.mermaid,
            "summary": self.summary,
        }
