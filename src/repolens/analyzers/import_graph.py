"""Import graph analysis.

Builds the file-level dependency graph from a file catalog: one node per
analyzable source file, one edge per resolved static reference. External
packages are filtered out; internal references are resolved to node paths.
"""

import asyncio
import logging
import posixpath
from collections.abc import Iterator

from repolens.analyzers.architecture import infer_component_type
from repolens.analyzers.imports import ImportExtractor, grammar_for
from repolens.models.architecture import LAYER_FOR_TYPE, ComponentType
from repolens.models.catalog import FileRecord, is_source_file
from repolens.models.graph import DependencyGraph, GraphEdge, GraphNode

logger = logging.getLogger(__name__)

# Extensions tried when resolving an extension-less relative specifier
RESOLVE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".py", ".go", ".java", ".json")

# Files between cooperative yields in abuild()
YIELD_EVERY = 25

KNOWN_EXTERNAL_PACKAGES = frozenset(
    {
        "react", "react-dom", "vue", "angular", "svelte", "next", "express",
        "lodash", "axios", "rxjs", "jquery", "moment",
        "fastapi", "django", "flask", "requests", "numpy", "pandas", "pydantic",
        "os", "sys", "re", "json", "typing", "logging", "asyncio", "pathlib",
        "fmt", "net/http", "java", "javax",
    }
)

EDGE_TYPE_FOR_TARGET = {
    ComponentType.API: "api_call",
    ComponentType.SERVICE: "service_call",
    ComponentType.DATABASE: "data_access",
    ComponentType.CONFIG: "configuration",
    ComponentType.UTIL: "utility",
}


def _strip_extension(path: str) -> str:
    stem, ext = posixpath.splitext(path)
    return stem if ext else path


def _module_stem(path: str) -> str:
    """Path without extension and without a trailing index/__init__ file."""
    stem = _strip_extension(path)
    for suffix in ("/index", "/__init__"):
        if stem.endswith(suffix):
            return stem[: -len(suffix)]
    return stem


def infer_edge_type(source_type: ComponentType, target_type: ComponentType) -> str:
    """Classify an edge by the component types at both ends."""
    if source_type is ComponentType.FRONTEND and target_type is ComponentType.FRONTEND:
        return "component_usage"
    return EDGE_TYPE_FOR_TARGET.get(target_type, "import")


def make_node(path: str) -> GraphNode:
    component_type = infer_component_type(path)
    return GraphNode(
        id=path,
        name=posixpath.basename(path),
        component_type=component_type.value,
        path=path,
        layer=LAYER_FOR_TYPE[component_type].value,
    )


def hub_edges(nodes: list[GraphNode]) -> list[GraphEdge]:
    """Synthesize connectivity: the first node links to every other node."""
    if len(nodes) < 2:
        return []
    hub = nodes[0]
    hub_type = ComponentType(hub.component_type)
    return [
        GraphEdge(
            source=hub.id,
            target=node.id,
            type=infer_edge_type(hub_type, ComponentType(node.component_type)),
            synthetic=True,
        )
        for node in nodes[1:]
    ]


class ImportGraphBuilder:
    """Builds a directed graph of file import relationships.

    Resolution order for a specifier:
    1. Relative specifiers resolve against the importing file's directory,
       trying the literal path, known extensions, then index/__init__ files.
    2. Other specifiers match any node whose path contains the specifier as
       a path fragment (or whose path is contained by it).
    3. Among several candidates the shortest path wins (ties by path order).
    """

    def __init__(self, extractor: ImportExtractor | None = None) -> None:
        self.extractor = extractor or ImportExtractor()
        self._paths: set[str] = set()
        self._stems: list[tuple[str, str, str]] = []
        self._segments: set[str] = set()
        self._fragment_cache: dict[str, str | None] = {}

    # =========================================================================
    # Public API
    # =========================================================================

    def build(self, files: list[FileRecord]) -> DependencyGraph:
        """Build the import graph for a catalog.

        Args:
            files: File catalog

        Returns:
            DependencyGraph with sorted nodes and edges
        """
        nodes, records = self._prepare(files)
        edges: dict[tuple[str, str, str], GraphEdge] = {}
        for record in records:
            self._collect(record, edges)
        return self._finish(nodes, edges)

    async def abuild(self, files: list[FileRecord]) -> DependencyGraph:
        """Async variant of build() that yields to the event loop periodically."""
        nodes, records = self._prepare(files)
        edges: dict[tuple[str, str, str], GraphEdge] = {}
        for i, record in enumerate(records, start=1):
            self._collect(record, edges)
            if i % YIELD_EVERY == 0:
                await asyncio.sleep(0)
        return self._finish(nodes, edges)

    # =========================================================================
    # Build steps
    # =========================================================================

    def _prepare(self, files: list[FileRecord]) -> tuple[list[GraphNode], list[FileRecord]]:
        records = sorted(
            (r for r in files if is_source_file(r.path)),
            key=lambda r: r.path,
        )
        # Catalogs may list a path twice; keep the first record
        unique: dict[str, FileRecord] = {}
        for record in records:
            unique.setdefault(record.path, record)
        records = list(unique.values())

        self._paths = set(unique)
        self._stems = sorted(
            ((_module_stem(p), posixpath.dirname(p), p) for p in unique),
            key=lambda item: (len(item[2]), item[2]),
        )
        self._segments = {
            segment for stem, _, _ in self._stems for segment in stem.split("/") if segment
        }
        self._fragment_cache = {}

        nodes = [make_node(r.path) for r in records]
        return nodes, records

    def _collect(self, record: FileRecord, edges: dict[tuple[str, str, str], GraphEdge]) -> None:
        source_type = infer_component_type(record.path)
        for specifier in self.extractor.extract(record.path, record.content):
            target = self.resolve(record.path, specifier)
            if target is None:
                if not self.looks_external(record.path, specifier):
                    logger.warning("Unresolved import %r in %s", specifier, record.path)
                continue
            if target == record.path:
                continue
            edge_type = infer_edge_type(source_type, infer_component_type(target))
            edge = GraphEdge(source=record.path, target=target, type=edge_type)
            edges.setdefault(edge.key, edge)

    def _finish(
        self, nodes: list[GraphNode], edges: dict[tuple[str, str, str], GraphEdge]
    ) -> DependencyGraph:
        edge_list = sorted(edges.values(), key=lambda e: e.key)
        fallback = False
        if len(nodes) >= 2 and not edge_list:
            logger.info("No imports resolved across %d files; synthesizing hub edges", len(nodes))
            edge_list = hub_edges(nodes)
            fallback = True

        logger.info("Built import graph with %d nodes and %d edges", len(nodes), len(edge_list))
        return DependencyGraph(nodes=nodes, edges=edge_list, fallback=fallback)

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve(self, importer: str, specifier: str) -> str | None:
        """Resolve one specifier to a node path, or None."""
        specifier = specifier.strip()
        if not specifier:
            return None

        grammar = grammar_for(importer)

        if grammar == "python" and specifier.startswith("."):
            return self._resolve_python_relative(importer, specifier)
        if specifier.startswith(("./", "../")) or specifier in (".", ".."):
            base = posixpath.normpath(posixpath.join(posixpath.dirname(importer), specifier))
            return self._try_candidates(base)
        if specifier.startswith("/"):
            return self._try_candidates(specifier.lstrip("/"))

        return self._resolve_fragment(self._fragment_for(specifier, grammar))

    def _resolve_python_relative(self, importer: str, specifier: str) -> str | None:
        dots = len(specifier) - len(specifier.lstrip("."))
        directory = posixpath.dirname(importer)
        for _ in range(dots - 1):
            directory = posixpath.dirname(directory)
        remainder = specifier[dots:].replace(".", "/")
        base = posixpath.join(directory, remainder) if remainder else directory
        return self._try_candidates(posixpath.normpath(base) if base else "")

    def _candidates(self, base: str) -> Iterator[str]:
        yield base
        for ext in RESOLVE_EXTENSIONS:
            yield base + ext
        for ext in RESOLVE_EXTENSIONS:
            yield posixpath.join(base, "index" + ext) if base else "index" + ext
        yield posixpath.join(base, "__init__.py") if base else "__init__.py"

    def _try_candidates(self, base: str) -> str | None:
        if base.startswith("../") or base == "..":
            return None
        for candidate in self._candidates(base):
            if candidate in self._paths:
                return candidate
        return None

    @staticmethod
    def _fragment_for(specifier: str, grammar: str | None) -> str:
        if grammar in ("python", "java"):
            return specifier.removesuffix(".*").replace(".", "/").strip("/")
        # Path aliases: "@/components/x", "~/lib/y"
        fragment = specifier.removeprefix("@/").removeprefix("~/")
        return _strip_extension(fragment).strip("/")

    def _resolve_fragment(self, fragment: str) -> str | None:
        if not fragment:
            return None
        if fragment in self._fragment_cache:
            return self._fragment_cache[fragment]

        wrapped = f"/{fragment}/"
        match = None
        # _stems is ordered shortest path first, then by path
        for stem, directory, path in self._stems:
            if wrapped in f"/{stem}/":
                match = path
                break
            # Contained by the specifier (Go package paths, Java FQNs)
            if ("/" in stem and f"/{fragment}".endswith(f"/{stem}")) or (
                directory and f"/{fragment}".endswith(f"/{directory}")
            ):
                match = path
                break

        self._fragment_cache[fragment] = match
        return match

    def looks_external(self, importer: str, specifier: str) -> bool:
        """Check whether an unresolved specifier refers to a third-party package."""
        if specifier.startswith((".", "/")):
            return False
        if "node_modules" in specifier:
            return True

        grammar = grammar_for(importer)
        if grammar in ("python", "java"):
            root = specifier.split(".")[0]
            return root in KNOWN_EXTERNAL_PACKAGES or root not in self._segments

        root = specifier.split("/")[0]
        if grammar == "go":
            # Domain-qualified module paths and the standard library
            return "." in root or "/" not in specifier or root not in self._segments
        if specifier.startswith(("@/", "~/")):
            return False
        if root in KNOWN_EXTERNAL_PACKAGES or specifier.startswith("@"):
            return True
        return "/" not in specifier or root not in self._segments


def build_import_graph(files: list[FileRecord]) -> DependencyGraph:
    """Build an import graph from a file catalog.

    Convenience function for import graph building.
    """
    return ImportGraphBuilder().build(files)


def build_fallback_graph(files: list[FileRecord], subset: int = 50) -> DependencyGraph:
    """Cheap graph over the first ``subset`` source files with hub edges.

    No file is parsed; edges are synthetic connectivity only.

    Args:
        files: File catalog
        subset: Maximum number of source files to include

    Returns:
        DependencyGraph with ``fallback=True``
    """
    paths = sorted({r.path for r in files if is_source_file(r.path)})[:subset]
    nodes = [make_node(path) for path in paths]
    edges = hub_edges(nodes)
    logger.info("Built fallback graph with %d nodes and %d synthetic edges", len(nodes), len(edges))
    return DependencyGraph(nodes=nodes, edges=edges, fallback=True)
