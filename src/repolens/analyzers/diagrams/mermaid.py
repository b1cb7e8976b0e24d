"""Mermaid diagram generation for architecture analysis.

Generates a layered ``graph TB`` flowchart: one subgraph per layer, one node
per component, one arrow per component dependency. Output is a pure
function of its inputs.
"""

import logging
import re

from repolens.models.architecture import ComponentDependency, ComponentType, Layer

logger = logging.getLogger(__name__)

# Arrow per dependency type
ARROW_STYLES = {
    "api_call": "-->",
    "service_call": "==>",
    "data_access": "-.->",
    "component_usage": "-.->",
}
DEFAULT_ARROW = "-->"

# classDef per component type
CLASS_STYLES = {
    ComponentType.FRONTEND: "fill:#e1f5fe,stroke:#01579b,stroke-width:2px",
    ComponentType.BACKEND: "fill:#f3e5f5,stroke:#4a148c,stroke-width:2px",
    ComponentType.DATABASE: "fill:#e8f5e8,stroke:#1b5e20,stroke-width:2px",
    ComponentType.SERVICE: "fill:#fff3e0,stroke:#e65100,stroke-width:2px",
    ComponentType.API: "fill:#ede7f6,stroke:#311b92,stroke-width:2px",
    ComponentType.MIDDLEWARE: "fill:#fce4ec,stroke:#880e4f,stroke-width:2px",
    ComponentType.CONFIG: "fill:#f5f5f5,stroke:#424242,stroke-width:1px",
    ComponentType.TEST: "fill:#f1f8e9,stroke:#33691e,stroke-width:1px",
    ComponentType.UTIL: "fill:#fffde7,stroke:#f57f17,stroke-width:1px",
}

# Order matters: '#' first so entity codes are not re-escaped
_LABEL_ESCAPES = [
    ("#", "#35;"),
    ('"', "#quot;"),
    ("[", "#91;"),
    ("]", "#93;"),
    ("{", "#123;"),
    ("}", "#125;"),
    ("|", "#124;"),
    ("<", "#lt;"),
    (">", "#gt;"),
]


class MermaidGenerator:
    """Generates Mermaid diagrams from architecture layers and dependencies."""

    def generate_architecture_diagram(
        self,
        layers: list[Layer],
        dependencies: list[ComponentDependency],
    ) -> str:
        """Generate a layered Mermaid flowchart.

        Args:
            layers: Non-empty layers in display order
            dependencies: Component dependencies (ids refer to components)

        Returns:
            Mermaid ``graph TB`` syntax
        """
        lines = ["graph TB"]

        if not any(layer.components for layer in layers):
            lines.append('  empty["No components detected"]')
            return "\n".join(lines)

        known: set[str] = set()
        for layer in layers:
            if not layer.components:
                continue
            layer_id = self.sanitize_id(layer.name)
            lines.append(f'  subgraph {layer_id}["{self.escape_label(layer.name)}"]')
            for component in layer.components:
                node_id = self.sanitize_id(component.id)
                known.add(node_id)
                label = self.escape_label(component.name)
                lines.append(f'    {node_id}["{label}"]:::{component.type.value}')
            lines.append("  end")

        edge_lines = []
        for dep in dependencies:
            source = self.sanitize_id(dep.source)
            target = self.sanitize_id(dep.target)
            if source not in known or target not in known:
                logger.debug("Skipping diagram edge with unknown endpoint: %s -> %s", dep.source, dep.target)
                continue
            edge_lines.append(f"  {source} {self.arrow_for(dep.type)} {target}")
        if edge_lines:
            lines.append("")
            lines.extend(edge_lines)

        lines.append("")
        for component_type, style in CLASS_STYLES.items():
            lines.append(f"  classDef {component_type.value} {style}")

        return "\n".join(lines)

    @staticmethod
    def sanitize_id(value: str) -> str:
        """Create a valid Mermaid node id (``[^A-Za-z0-9_]`` -> ``_``, no leading digit)."""
        sanitized = re.sub(r"[^A-Za-z0-9_]", "_", value)
        if not sanitized or sanitized[0].isdigit():
            sanitized = f"_{sanitized}"
        return sanitized

    @staticmethod
    def escape_label(label: str) -> str:
        """Escape characters that would break a quoted Mermaid label."""
        for char, entity in _LABEL_ESCAPES:
            label = label.replace(char, entity)
        label = label.replace("\n", " ").strip()
        return label or "unnamed"

    @staticmethod
    def arrow_for(dependency_type: str) -> str:
        return ARROW_STYLES.get(dependency_type, DEFAULT_ARROW)


def generate_architecture_diagram(
    layers: list[Layer],
    dependencies: list[ComponentDependency],
) -> str:
    """Generate a Mermaid architecture diagram.

    Convenience function for diagram generation.
    """
    return MermaidGenerator().generate_architecture_diagram(layers, dependencies)
