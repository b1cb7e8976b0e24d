"""Import specifier extraction via tree-sitter.

Extracts raw import specifiers (``./util``, ``..models``, ``github.com/x/y``,
``com.example.Foo``) from source text for:
- Python (.py)
- JavaScript (.js, .jsx, .mjs, .cjs)
- TypeScript (.ts, .tsx)
- Go (.go)
- Java (.java)

The syntax tree is walked by an explicit visitor that handles a closed set
of node kinds; every other node kind is a no-op. When a grammar is missing,
parsing raises, or the tree contains syntax errors, a permissive regex pass
is used instead. Extraction never raises.
"""

import logging
import re
from collections.abc import Callable
from typing import Any

from tree_sitter_language_pack import get_parser

logger = logging.getLogger(__name__)

# Grammar name per extension (tree-sitter-language-pack names)
GRAMMAR_FOR_EXTENSION: dict[str, str] = {
    ".py": "python",
    ".pyw": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "tsx",
    ".go": "go",
    ".java": "java",
}

SUPPORTED_GRAMMARS = ("python", "javascript", "typescript", "tsx", "go", "java")

# =============================================================================
# Regex fallback
# =============================================================================

_JS_PATTERNS = [
    re.compile(r"""\bfrom\s+['"]([^'"]+)['"]"""),
    re.compile(r"""\brequire\s*\(\s*['"]([^'"]+)['"]\s*\)"""),
    re.compile(r"""\bimport\s*\(\s*['"]([^'"]+)['"]\s*\)"""),
    re.compile(r"""\bimport\s+['"]([^'"]+)['"]"""),
]
_PY_FROM = re.compile(r"^\s*from\s+([.\w]+)\s+import\s+(.+)$", re.MULTILINE)
_PY_IMPORT = re.compile(r"^\s*import\s+([\w.]+(?:\s+as\s+\w+)?(?:\s*,\s*[\w.]+(?:\s+as\s+\w+)?)*)", re.MULTILINE)
_JAVA_IMPORT = re.compile(r"^\s*import\s+(?:static\s+)?([\w.]+(?:\.\*)?)\s*;", re.MULTILINE)
_GO_SINGLE = re.compile(r'^\s*import\s+(?:[\w.]+\s+)?"([^"]+)"', re.MULTILINE)
_GO_BLOCK = re.compile(r"import\s*\(([^)]*)\)", re.DOTALL)
_GO_QUOTED = re.compile(r'"([^"]+)"')


def _unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            result.append(item)
    return result


def _split_python_names(names: str) -> list[str]:
    names = names.strip().strip("()").split("#", 1)[0]
    return [part.split(" as ")[0].strip() for part in names.split(",") if part.strip()]


def regex_extract(content: str, grammar: str | None) -> list[str]:
    """Permissive regex extraction used when parsing is not possible."""
    found: list[str] = []

    if grammar == "python":
        for match in _PY_FROM.finditer(content):
            module = match.group(1)
            if module.strip(".") == "":
                found.extend(module + name for name in _split_python_names(match.group(2)))
            else:
                found.append(module)
        for match in _PY_IMPORT.finditer(content):
            found.extend(_split_python_names(match.group(1)))
    elif grammar == "java":
        found.extend(m.group(1) for m in _JAVA_IMPORT.finditer(content))
    elif grammar == "go":
        found.extend(m.group(1) for m in _GO_SINGLE.finditer(content))
        for block in _GO_BLOCK.finditer(content):
            found.extend(_GO_QUOTED.findall(block.group(1)))
    else:
        for pattern in _JS_PATTERNS:
            found.extend(m.group(1) for m in pattern.finditer(content))

    return _unique(found)


# =============================================================================
# Tree-sitter visitor
# =============================================================================


def _text(source: bytes, node: Any) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def _string_value(source: bytes, node: Any) -> str:
    return _text(source, node).strip().strip("'\"`")


class _ImportVisitor:
    """Collects import specifiers from one syntax tree."""

    def __init__(self, source: bytes) -> None:
        self.source = source
        self.found: list[str] = []
        self._handlers: dict[str, Callable[[Any], None]] = {
            # Python
            "import_statement": self._import_statement,
            "import_from_statement": self._import_from,
            # JavaScript / TypeScript
            "export_statement": self._export_from,
            "call_expression": self._call,
            # Go
            "import_spec": self._go_import_spec,
            # Java
            "import_declaration": self._java_import,
        }

    def visit(self, root: Any) -> list[str]:
        stack = [root]
        while stack:
            node = stack.pop()
            handler = self._handlers.get(node.type)
            if handler is not None:
                handler(node)
            stack.extend(reversed(node.children))
        return self.found

    def _import_statement(self, node: Any) -> None:
        # JS/TS: import x from "y"; import "y"
        source_node = node.child_by_field_name("source")
        if source_node is not None:
            self.found.append(_string_value(self.source, source_node))
            return
        # Python: import a.b, c as d
        for child in node.children:
            if child.type == "dotted_name":
                self.found.append(_text(self.source, child))
            elif child.type == "aliased_import":
                name = child.child_by_field_name("name")
                if name is not None:
                    self.found.append(_text(self.source, name))

    def _import_from(self, node: Any) -> None:
        module = node.child_by_field_name("module_name")
        if module is None:
            return
        module_text = _text(self.source, module)
        if module_text.strip(".") == "":
            # from . import a, b
            for name in node.children_by_field_name("name"):
                target = name.child_by_field_name("name") if name.type == "aliased_import" else name
                if target is not None:
                    self.found.append(module_text + _text(self.source, target))
        else:
            self.found.append(module_text)

    def _export_from(self, node: Any) -> None:
        source_node = node.child_by_field_name("source")
        if source_node is not None:
            self.found.append(_string_value(self.source, source_node))

    def _call(self, node: Any) -> None:
        function = node.child_by_field_name("function")
        if function is None:
            return
        is_require = function.type == "identifier" and _text(self.source, function) == "require"
        if not is_require and function.type != "import":
            return
        arguments = node.child_by_field_name("arguments")
        if arguments is None:
            return
        for arg in arguments.children:
            if arg.type in ("string", "template_string"):
                self.found.append(_string_value(self.source, arg))
                break

    def _go_import_spec(self, node: Any) -> None:
        path = node.child_by_field_name("path")
        if path is not None:
            self.found.append(_string_value(self.source, path))

    def _java_import(self, node: Any) -> None:
        text = _text(self.source, node)
        text = re.sub(r"^import\s+(static\s+)?", "", text).rstrip(";").strip()
        self.found.append(re.sub(r"\s+", "", text))


def grammar_for(path: str) -> str | None:
    """tree-sitter grammar name for a path, or None."""
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return None
    return GRAMMAR_FOR_EXTENSION.get(name[name.rfind(".") :].lower())


class ParserPool:
    """Lazily created tree-sitter parsers, cached per grammar.

    A pool is not shared between threads; each analyzer owns one.
    """

    def __init__(self) -> None:
        self._parsers: dict[str, Any] = {}
        self._unavailable: set[str] = set()

    def get(self, grammar: str) -> Any | None:
        if grammar in self._unavailable:
            return None
        parser = self._parsers.get(grammar)
        if parser is None:
            try:
                parser = get_parser(grammar)
            except Exception as e:
                logger.warning("tree-sitter grammar '%s' unavailable, using fallback: %s", grammar, e)
                self._unavailable.add(grammar)
                return None
            self._parsers[grammar] = parser
        return parser

    def check_available(self) -> dict[str, bool]:
        """Report which grammars can be loaded."""
        return {grammar: self.get(grammar) is not None for grammar in SUPPORTED_GRAMMARS}

    def parse(self, path: str, source: bytes) -> Any | None:
        """Parse source into a tree.

        Returns:
            The syntax tree, or None when there is no grammar, parsing raised,
            or the tree contains syntax errors
        """
        grammar = grammar_for(path)
        parser = self.get(grammar) if grammar else None
        if parser is None:
            return None
        try:
            tree = parser.parse(source)
        except Exception as e:
            logger.debug("Failed to parse %s: %s", path, e)
            return None
        if tree.root_node.has_error:
            logger.debug("Syntax errors in %s", path)
            return None
        return tree


class ImportExtractor:
    """Extract import specifiers from file contents."""

    def __init__(self, parsers: ParserPool | None = None) -> None:
        self.parsers = parsers or ParserPool()

    def extract(self, path: str, content: str | None) -> list[str]:
        """Extract import specifiers from one file.

        Args:
            path: Repository-relative path (selects the grammar)
            content: File text (None or empty yields no imports)

        Returns:
            Specifiers in source order, deduplicated
        """
        if not content:
            return []

        source = content.encode("utf-8")
        tree = self.parsers.parse(path, source)
        if tree is None:
            # Vue/Svelte single-file components fall through to the JS patterns
            return regex_extract(content, grammar_for(path))
        try:
            return _unique(_ImportVisitor(source).visit(tree.root_node))
        except Exception as e:
            logger.debug("Import visitor failed on %s (%s), using regex extraction", path, e)
            return regex_extract(content, grammar_for(path))
