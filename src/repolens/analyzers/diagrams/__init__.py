"""Diagram generators.

All generators are pure functions of architecture analysis output.
"""

from repolens.analyzers.diagrams.mermaid import MermaidGenerator, generate_architecture_diagram

__all__ = ["MermaidGenerator", "generate_architecture_diagram"]
