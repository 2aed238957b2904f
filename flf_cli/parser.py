"""Semantic code chunker using Tree-sitter for multi-language extraction.

Splits source files (or in-memory editor buffers) into one ``Chunk`` per
function / class / method definition.  Imports and comments never become
chunks of their own; leading doc comments are attached to the definition
they document.

Falls back to Python's built-in ``ast`` module when the tree-sitter grammar
for Python is unavailable.
"""

from __future__ import annotations

import ast
import importlib
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from .config import is_skipped_dir
from .models import Chunk, CursorPoint

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".mts": "typescript",
    ".tsx": "tsx",
}

# Node types that become chunks, per language
_DEFINITION_TYPES: Dict[str, Set[str]] = {
    "python": {"function_definition", "class_definition"},
    "javascript": {
        "function_declaration",
        "generator_function_declaration",
        "class_declaration",
        "method_definition",
    },
}
_DEFINITION_TYPES["typescript"] = _DEFINITION_TYPES["javascript"] | {
    "abstract_class_declaration",
    "interface_declaration",
    "enum_declaration",
    "type_alias_declaration",
}
_DEFINITION_TYPES["tsx"] = _DEFINITION_TYPES["typescript"]

_FUNCTION_VALUE_TYPES = {"arrow_function", "function_expression", "function"}


def language_for_path(path: str) -> Optional[str]:
    """Return the language tag for *path* based on its extension."""
    return LANGUAGE_MAP.get(Path(path).suffix.lower())


# ===================================================================
# Abstract Chunker Interface
# ===================================================================

class Chunker(ABC):
    """Abstract base class for all code chunkers."""

    @abstractmethod
    def chunk_source(self, file_path: str, source: str) -> List[Chunk]:
        """Split *source* (labelled *file_path*) into definition chunks."""
        ...

    @abstractmethod
    def supports_language(self, language: str) -> bool:
        """Return True if this chunker can handle *language*."""
        ...


# ===================================================================
# Tree-sitter Chunker (Primary)
# ===================================================================

class TreeSitterChunker(Chunker):
    """Error-tolerant, multi-language chunker built on Tree-sitter.

    Tree-sitter produces a concrete syntax tree that preserves every token,
    so definitions are extracted reliably even from buffers with unfinished
    syntax, which is the normal state of an editor buffer.
    """

    # Map language name -> (module, function returning the Language capsule)
    _GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
        "python": ("tree_sitter_python", "language"),
        "javascript": ("tree_sitter_javascript", "language"),
        "typescript": ("tree_sitter_typescript", "language_typescript"),
        "tsx": ("tree_sitter_typescript", "language_tsx"),
    }

    def __init__(self, languages: Optional[List[str]] = None) -> None:
        self._parsers: Dict[str, Any] = {}
        self._requested_languages = languages or list(self._GRAMMAR_MODULES)
        self._init_parsers()

    def _init_parsers(self) -> None:
        try:
            from tree_sitter import Language, Parser as TSParser  # type: ignore[import-untyped]
        except ImportError:
            logger.warning(
                "tree-sitter is not installed -- "
                "Tree-sitter chunking unavailable. "
                "Install with: pip install tree-sitter tree-sitter-python"
            )
            return

        for lang in self._requested_languages:
            grammar = self._GRAMMAR_MODULES.get(lang)
            if grammar is None:
                logger.warning("No grammar module mapped for language '%s'", lang)
                continue
            mod_name, func_name = grammar
            try:
                mod = importlib.import_module(mod_name)
                ts_lang = Language(getattr(mod, func_name)())
                self._parsers[lang] = TSParser(ts_lang)
                logger.debug("Loaded tree-sitter parser for %s", lang)
            except ImportError:
                logger.warning(
                    "Grammar package '%s' not installed for language '%s'. "
                    "Install with: pip install %s",
                    mod_name, lang, mod_name.replace("_", "-"),
                )
            except Exception as exc:
                logger.warning("Could not load tree-sitter grammar for %s: %s", lang, exc)

    def supports_language(self, language: str) -> bool:
        return language in self._parsers

    def chunk_source(self, file_path: str, source: str) -> List[Chunk]:
        lang = language_for_path(file_path)
        if not lang or lang not in self._parsers:
            return []

        source_bytes = source.encode("utf-8")
        tree = self._parsers[lang].parse(source_bytes)

        chunks: List[Chunk] = []
        self._walk(
            tree.root_node,
            scope=[],
            lang=lang,
            file_path=file_path,
            source_bytes=source_bytes,
            chunks=chunks,
        )
        return chunks

    # ------------------------------------------------------------------
    # Recursive definition walker
    # ------------------------------------------------------------------

    def _walk(
        self,
        ts_node: Any,
        scope: List[str],
        lang: str,
        file_path: str,
        source_bytes: bytes,
        chunks: List[Chunk],
    ) -> None:
        definition_types = _DEFINITION_TYPES[lang]

        for child in ts_node.children:
            outer_node = child
            actual_def = child

            # Unwrap @decorated_definition -> inner function/class
            if child.type == "decorated_definition":
                inner = child.child_by_field_name("definition")
                if inner is None:
                    continue
                actual_def = inner

            name_node = None
            body = None
            if actual_def.type in definition_types:
                name_node = actual_def.child_by_field_name("name")
                body = actual_def.child_by_field_name("body")
            elif actual_def.type == "variable_declarator":
                # const handler = () => {...}
                value = actual_def.child_by_field_name("value")
                if value is not None and value.type in _FUNCTION_VALUE_TYPES:
                    name_node = actual_def.child_by_field_name("name")
                    body = value.child_by_field_name("body")

            if name_node is None:
                self._walk(child, scope, lang, file_path, source_bytes, chunks)
                continue

            name = name_node.text.decode("utf-8")
            if actual_def.type == "variable_declarator" and outer_node.parent is not None:
                # Include the ``const`` keyword line in the chunk range
                outer_node = outer_node.parent

            chunks.append(Chunk(
                file_path=file_path,
                file_name=Path(file_path).name,
                entity=name,
                parent_info=".".join(scope),
                inline_document=self._extract_docs(lang, actual_def, outer_node),
                language=lang,
                content=source_bytes[outer_node.start_byte:outer_node.end_byte].decode(
                    "utf-8", errors="replace"
                ),
                start=CursorPoint(*outer_node.start_point),
                end=CursorPoint(*outer_node.end_point),
            ))

            if body is not None:
                self._walk(body, scope + [name], lang, file_path, source_bytes, chunks)

    # ------------------------------------------------------------------
    # Docstring helpers
    # ------------------------------------------------------------------

    def _extract_docs(self, lang: str, def_node: Any, outer_node: Any) -> str:
        if lang == "python":
            return self._extract_python_docstring(def_node)
        return self._extract_leading_comment(outer_node)

    @staticmethod
    def _extract_python_docstring(def_node: Any) -> str:
        """Extract the docstring from a function / class definition node."""
        body = def_node.child_by_field_name("body")
        if body is None:
            return ""
        for child in body.children:
            if child.type == "expression_statement":
                for expr in child.children:
                    if expr.type == "string":
                        return _strip_quotes(expr.text.decode("utf-8"))
                break
            elif child.type != "comment":
                break
        return ""

    @staticmethod
    def _extract_leading_comment(node: Any) -> str:
        """Return the ``/** ... */`` block directly above *node*, if any."""
        anchor = node
        if anchor.parent is not None and anchor.parent.type == "export_statement":
            anchor = anchor.parent
        prev = anchor.prev_sibling
        if prev is None or prev.type != "comment":
            return ""
        text = prev.text.decode("utf-8")
        if not text.startswith("/**"):
            return ""
        lines = [line.strip().lstrip("*").strip() for line in text[3:-2].splitlines()]
        return "\n".join(line for line in lines if line)


# ===================================================================
# AST Fallback Chunker (when tree-sitter is not installed)
# ===================================================================

class ASTFallbackChunker(Chunker):
    """Pure-Python fallback using the built-in ``ast`` module.

    Only supports Python.
    """

    def supports_language(self, language: str) -> bool:
        return language == "python"

    def chunk_source(self, file_path: str, source: str) -> List[Chunk]:
        if language_for_path(file_path) != "python":
            return []
        try:
            tree = ast.parse(source)
        except SyntaxError as exc:
            logger.warning("SyntaxError in %s: %s", file_path, exc)
            return []

        visitor = _ChunkVisitor(file_path, source.splitlines())
        visitor.visit(tree)
        return visitor.chunks


class _ChunkVisitor(ast.NodeVisitor):
    """Walks a Python AST and collects a Chunk per definition."""

    def __init__(self, file_path: str, lines: List[str]) -> None:
        self.file_path = file_path
        self.lines = lines
        self.scope: List[str] = []
        self.chunks: List[Chunk] = []

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._add(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._add(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._add(node)

    def _add(self, node: Any) -> None:
        if node.decorator_list:
            # decorator col_offset points past the "@"
            first = node.decorator_list[0]
            first_line, start_col = first.lineno, first.col_offset - 1
        else:
            first_line, start_col = node.lineno, node.col_offset
        end_line = getattr(node, "end_lineno", node.lineno)
        end_col = getattr(node, "end_col_offset", 0) or 0

        self.chunks.append(Chunk(
            file_path=self.file_path,
            file_name=Path(self.file_path).name,
            entity=node.name,
            parent_info=".".join(self.scope),
            inline_document=ast.get_docstring(node) or "",
            language="python",
            content="\n".join(self.lines[first_line - 1:end_line]),
            start=CursorPoint(first_line - 1, max(start_col, 0)),
            end=CursorPoint(end_line - 1, end_col),
        ))

        self.scope.append(node.name)
        self.generic_visit(node)
        self.scope.pop()


# ===================================================================
# Default chunker
# ===================================================================

class CodeChunker(Chunker):
    """Selects **TreeSitterChunker** per language, with the AST fallback
    standing in for Python when its grammar is missing."""

    def __init__(self) -> None:
        self._tree_sitter = TreeSitterChunker()
        self._fallback = ASTFallbackChunker()
        if self._tree_sitter.supports_language("python"):
            logger.info("Using Tree-sitter chunker (error-tolerant, semantic chunking)")
        else:
            logger.info("Using AST fallback chunker for Python")

    def supports_language(self, language: str) -> bool:
        return (
            self._tree_sitter.supports_language(language)
            or self._fallback.supports_language(language)
        )

    def chunk_source(self, file_path: str, source: str) -> List[Chunk]:
        lang = language_for_path(file_path)
        if lang and self._tree_sitter.supports_language(lang):
            return self._tree_sitter.chunk_source(file_path, source)
        return self._fallback.chunk_source(file_path, source)


def chunk_directory(root: Path, chunker: Optional[Chunker] = None) -> List[Chunk]:
    """Recursively chunk every supported file under *root*.

    Chunks are labelled with absolute file paths so the editor can open
    them regardless of its working directory.
    """
    chunker = chunker or CodeChunker()
    root = root.resolve()
    chunks: List[Chunk] = []

    for dirpath, dirnames, filenames in os.walk(root):
        # Prune in place so skipped trees are never entered
        dirnames[:] = sorted(d for d in dirnames if not is_skipped_dir(d))
        for name in sorted(filenames):
            file_path = Path(dirpath) / name
            lang = language_for_path(name)
            if not lang or not chunker.supports_language(lang):
                continue
            try:
                source = file_path.read_text(encoding="utf-8", errors="ignore")
                chunks.extend(chunker.chunk_source(str(file_path), source))
            except Exception as exc:
                logger.warning("Failed to chunk %s: %s", file_path, exc)

    return chunks


def _strip_quotes(raw: str) -> str:
    for prefix in ("r", "R", "u", "U", "b", "B"):
        if raw.startswith(prefix) and raw[1:2] in ('"', "'"):
            raw = raw[1:]
            break
    for q in ('"""', "'''"):
        if raw.startswith(q) and raw.endswith(q) and len(raw) >= 6:
            return raw[3:-3].strip()
    for q in ('"', "'"):
        if raw.startswith(q) and raw.endswith(q) and len(raw) >= 2:
            return raw[1:-1].strip()
    return raw.strip()
