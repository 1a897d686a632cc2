"""
Compiler adapters turning TypeScript source into a runnable script.

Two implementations share the ``Compiler`` interface:

- ``TypeStripCompiler``: parses the source with tree-sitter and blanks out
  type-only syntax, leaving plain JavaScript. Stripped ranges become spaces
  (newlines are kept) so line and column numbers in the artifact match the
  source the user typed.
- ``SubprocessCompiler``: pipes the source through an external transpiler
  (esbuild, bun, tsc wrappers, ...) and returns its stdout.

Both raise ``CompileError`` on failure and ``CompileTimeout`` when the
configured bound is exceeded.
"""

import asyncio
import shlex
from typing import List, Optional, Sequence

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from .app_config import PlaygroundConfig
from .shared.logger import get_logger

logger = get_logger(__name__)

TS_LANGUAGE = Language(tree_sitter_typescript.language_typescript())

# Cap on compiler diagnostics carried in a CompileError.
_MAX_DIAGNOSTIC_CHARS = 1400


class CompileError(Exception):
    """A source text could not be turned into an artifact."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} (line {self.line}, column {self.column})"

    def to_dict(self) -> dict:
        return {"message": self.message, "line": self.line, "column": self.column}


class CompileTimeout(CompileError):
    """The compiler did not finish within the configured timeout."""


class Compiler:
    """Base class for compiler adapters."""

    name = "base"

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    async def compile(self, source: str) -> str:
        """
        Compile a source text.

        Args:
            source: Full source text

        Returns:
            The artifact text

        Raises:
            CompileError: If the source does not compile
            CompileTimeout: If compilation exceeds ``timeout`` seconds
        """
        raise NotImplementedError


# ============= In-process type stripping =============

# Nodes with no runtime meaning, erased together with everything inside them.
_ERASED_NODES = frozenset({
    "type_annotation",
    "type_predicate_annotation",
    "asserts_annotation",
    "type_parameters",
    "type_arguments",
    "interface_declaration",
    "type_alias_declaration",
    "ambient_declaration",
    "function_signature",
    "abstract_method_signature",
    "method_signature",
    "index_signature",
    "implements_clause",
    "accessibility_modifier",
    "override_modifier",
})

# Declarations that make a surrounding ``export`` statement type-only.
_TYPE_ONLY_DECLARATIONS = frozenset({
    "interface_declaration",
    "type_alias_declaration",
    "ambient_declaration",
    "function_signature",
})

# Constructs that need code generation rather than erasure.
_UNSUPPORTED_NODES = {
    "enum_declaration": "enum declarations",
    "internal_module": "namespace declarations",
    "module": "module declarations",
}

_PARAMETERS = frozenset({"required_parameter", "optional_parameter"})
_OPTIONAL_MARKER_PARENTS = frozenset({
    "optional_parameter",
    "public_field_definition",
    "method_definition",
})
_DEFINITE_MARKER_PARENTS = frozenset({
    "non_null_expression",
    "variable_declarator",
    "public_field_definition",
})


def _position(node: Node):
    row, column = node.start_point[0], node.start_point[1]
    return row + 1, column + 1


def _first_error(root: Node) -> Node:
    pending = [root]
    while pending:
        node = pending.pop()
        if node.type == "ERROR" or node.is_missing:
            return node
        if node.has_error:
            pending.extend(reversed(node.children))
    return root


def _syntax_error(root: Node, data: bytes) -> CompileError:
    node = _first_error(root)
    line, column = _position(node)
    if node.is_missing:
        message = f"Syntax error: expected '{node.type}'"
    else:
        snippet = data[node.start_byte:node.end_byte].decode("utf-8", errors="replace")
        snippet = snippet.strip().splitlines()[0][:40] if snippet.strip() else ""
        message = f"Syntax error near '{snippet}'" if snippet else "Syntax error"
    return CompileError(message, line=line, column=column)


class _TypeEraser:
    """Blanks type-only ranges of a parsed TypeScript buffer."""

    def __init__(self, data: bytes):
        self._buf = bytearray(data)

    def run(self, root: Node) -> str:
        pending = [root]
        while pending:
            node = pending.pop()
            pending.extend(self._visit(node))
        return self._buf.decode("utf-8")

    def _erase(self, start: int, end: int) -> None:
        for i in range(start, end):
            if self._buf[i] not in (0x0A, 0x0D):
                self._buf[i] = 0x20

    def _erase_node(self, node: Node) -> List[Node]:
        self._erase(node.start_byte, node.end_byte)
        return []

    def _unsupported(self, node: Node, what: str) -> CompileError:
        line, column = _position(node)
        return CompileError(
            f"{what} are not supported by the type stripper; configure a transpiler",
            line=line,
            column=column,
        )

    def _visit(self, node: Node) -> List[Node]:
        kind = node.type
        parent = node.parent
        parent_kind = parent.type if parent is not None else None

        if kind in _UNSUPPORTED_NODES:
            raise self._unsupported(node, _UNSUPPORTED_NODES[kind].capitalize())

        if parent_kind in _PARAMETERS and kind in ("accessibility_modifier", "override_modifier", "readonly"):
            raise self._unsupported(node, "Parameter properties")

        if kind in _ERASED_NODES:
            return self._erase_node(node)

        if kind in ("abstract", "readonly"):
            return self._erase_node(node)

        if kind == "?" and parent_kind in _OPTIONAL_MARKER_PARENTS:
            return self._erase_node(node)

        if kind == "!" and parent_kind in _DEFINITE_MARKER_PARENTS:
            return self._erase_node(node)

        if kind in ("as_expression", "satisfies_expression"):
            expression, keyword = node.children[0], node.children[1]
            self._erase(keyword.start_byte, node.end_byte)
            return [expression]

        if kind == "public_field_definition" and any(c.type == "declare" for c in node.children):
            return self._erase_node(node)

        if kind == "import_statement" and any(c.type in ("type", "typeof") for c in node.children):
            return self._erase_node(node)

        if kind == "import_specifier" and node.children and node.children[0].type in ("type", "typeof"):
            end = node.end_byte
            sibling = node.next_sibling
            if sibling is not None and sibling.type == ",":
                end = sibling.end_byte
            self._erase(node.start_byte, end)
            return []

        if kind == "export_statement":
            if any(c.type == "type" for c in node.children):
                return self._erase_node(node)
            if any(c.type in _TYPE_ONLY_DECLARATIONS for c in node.named_children):
                return self._erase_node(node)

        return list(node.children)


def strip_types(source: str) -> str:
    """
    Turn TypeScript into JavaScript by erasing type-only syntax.

    A fresh parser is created per call, so concurrent calls share nothing.

    Raises:
        CompileError: On a syntax error or a construct that cannot be erased
    """
    data = source.encode("utf-8")
    parser = Parser(TS_LANGUAGE)
    tree = parser.parse(data)
    root = tree.root_node
    if root.has_error:
        raise _syntax_error(root, data)
    return _TypeEraser(data).run(root)


class TypeStripCompiler(Compiler):
    """Compiles by stripping types in a worker thread."""

    name = "strip"

    async def compile(self, source: str) -> str:
        try:
            return await asyncio.wait_for(asyncio.to_thread(strip_types, source), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise CompileTimeout(f"Type stripping timed out after {self.timeout}s") from None


# ============= External transpiler =============


class SubprocessCompiler(Compiler):
    """Compiles by piping the source through an external command."""

    name = "subprocess"

    def __init__(self, command: Sequence[str], timeout: float = 10.0):
        super().__init__(timeout=timeout)
        if not command:
            raise ValueError("SubprocessCompiler needs a command")
        self.command = list(command)

    async def compile(self, source: str) -> str:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CompileError(f"Could not start compiler `{self.command[0]}`: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(source.encode("utf-8")),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.communicate()
            raise CompileTimeout(
                f"`{' '.join(self.command)}` timed out after {self.timeout}s"
            ) from None

        if process.returncode != 0:
            output = (stderr or stdout or b"").decode("utf-8", errors="replace").strip()
            if len(output) > _MAX_DIAGNOSTIC_CHARS:
                output = output[:_MAX_DIAGNOSTIC_CHARS] + "... [truncated]"
            raise CompileError(
                f"`{' '.join(self.command)}` failed with exit code {process.returncode}: {output}"
            )

        return stdout.decode("utf-8")


def build_compiler(config: PlaygroundConfig) -> Compiler:
    """Create the compiler selected by the configuration."""
    if not config.uses_subprocess_compiler:
        compiler: Compiler = TypeStripCompiler(timeout=config.compile_timeout)
    else:
        compiler = SubprocessCompiler(shlex.split(config.compiler), timeout=config.compile_timeout)
    logger.info("Using %s compiler", compiler.name)
    return compiler
