from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import tree_sitter_rust as tsrust
from tree_sitter import Language, Node, Parser, Tree

from axumdoc.errors import RustParseError

logger = logging.getLogger(__name__)

RUST_LANGUAGE = Language(tsrust.language())

COMMENT_NODES = {"line_comment", "block_comment"}

_WS = re.compile(r"\s+")
_TIGHT = re.compile(r"\s*(::|[<>,])\s*")


@dataclass(frozen=True)
class ParsedSource:
    path: Optional[Path]
    text: str
    tree: Tree

    @property
    def root(self) -> Node:
        return self.tree.root_node

    @property
    def origin(self) -> str:
        return str(self.path) if self.path is not None else "<memory>"


def _first_error_line(node: Node) -> Optional[int]:
    if node.type == "ERROR" or node.is_missing:
        return node.start_point[0] + 1
    for child in node.children:
        if child.has_error or child.is_missing:
            line = _first_error_line(child)
            if line is not None:
                return line
    return None


def parse_rust_source(text: str, origin: str = "<memory>") -> Tree:
    """
    Parse Rust source text into a tree-sitter tree.
    Raises RustParseError when the grammar reports any error node.
    """
    parser = Parser(RUST_LANGUAGE)
    tree = parser.parse(text.encode("utf-8"))
    if tree.root_node.has_error:
        raise RustParseError(origin, _first_error_line(tree.root_node))
    return tree


def parse_source(text: str, path: Optional[Path] = None) -> ParsedSource:
    origin = str(path) if path is not None else "<memory>"
    return ParsedSource(path=path, text=text, tree=parse_rust_source(text, origin))


class SourceCache:
    """Reads and parses each Rust file at most once per run."""

    def __init__(self) -> None:
        self._sources: dict[Path, Optional[ParsedSource]] = {}

    def load_primary(self, path: Path) -> ParsedSource:
        # IO and parse failures propagate: the primary file is mandatory
        key = path.resolve()
        cached = self._sources.get(key)
        if cached is not None:
            return cached
        text = path.read_text(encoding="utf-8")
        parsed = parse_source(text, path)
        self._sources[key] = parsed
        return parsed

    def load(self, path: Path) -> Optional[ParsedSource]:
        key = path.resolve()
        if key in self._sources:
            return self._sources[key]

        parsed: Optional[ParsedSource] = None
        try:
            parsed = parse_source(path.read_text(encoding="utf-8"), path)
        except RustParseError as e:
            logger.warning("Skipping unparseable file: %s", e)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read %s: %s", path, e)
        self._sources[key] = parsed
        return parsed


# ----------------------------
# Node helpers
# ----------------------------

def node_text(node: Node) -> str:
    return node.text.decode("utf-8", errors="replace") if node.text is not None else ""


def normalize_type_text(text: str) -> str:
    # "HashMap < String , i32 >" -> "HashMap<String,i32>"
    text = _WS.sub(" ", text).strip()
    return _TIGHT.sub(r"\1", text)


def type_text(node: Node) -> str:
    return normalize_type_text(node_text(node))


def string_literal_value(node: Node) -> Optional[str]:
    if node.type == "string_literal":
        raw = node_text(node)
        if len(raw) < 2:
            return None
        return raw[1:-1].replace('\\"', '"').replace("\\\\", "\\")
    if node.type == "raw_string_literal":
        raw = node_text(node)
        if not raw.startswith("r"):
            return None
        body = raw[1:]
        hashes = len(body) - len(body.lstrip("#"))
        return body[hashes + 1 : len(body) - hashes - 1]
    return None


def path_segments(node: Node) -> Optional[list[str]]:
    """
    Flatten a path expression into its segments:
      login              -> ["login"]
      user::router       -> ["user", "router"]
      super::handlers::x -> ["super", "handlers", "x"]
    Returns None for anything that is not a plain path.
    """
    if node.type in ("identifier", "self", "super", "crate", "metavariable"):
        return [node_text(node)]
    if node.type == "scoped_identifier":
        name = node.child_by_field_name("name")
        if name is None:
            return None
        prefix_node = node.child_by_field_name("path")
        prefix: list[str] = []
        if prefix_node is not None:
            inner = path_segments(prefix_node)
            if inner is None:
                return None
            prefix = inner
        return prefix + [node_text(name)]
    if node.type == "generic_function":
        inner_fn = node.child_by_field_name("function")
        return path_segments(inner_fn) if inner_fn is not None else None
    return None


def named_non_comment_children(node: Node) -> list[Node]:
    return [c for c in node.named_children if c.type not in COMMENT_NODES]


def final_expression(body: Node) -> Optional[Node]:
    """Last expression of a block: the tail expression, `expr;` or `return expr;`."""
    children = named_non_comment_children(body)
    if not children:
        return None
    last = children[-1]
    if last.type == "expression_statement":
        inner = named_non_comment_children(last)
        if not inner:
            return None
        last = inner[0]
    if last.type == "return_expression":
        inner = named_non_comment_children(last)
        return inner[0] if inner else None
    return last


def iter_items(container: Node, descend_modules: bool = True) -> Iterator[Node]:
    """Yield items of a file or mod body in source order, optionally entering inline mods."""
    for child in container.named_children:
        yield child
        if descend_modules and child.type == "mod_item":
            body = child.child_by_field_name("body")
            if body is not None:
                yield from iter_items(body, descend_modules=True)


def find_function(container: Node, name: str, descend_modules: bool = False) -> Optional[Node]:
    for item in iter_items(container, descend_modules=descend_modules):
        if item.type != "function_item":
            continue
        ident = item.child_by_field_name("name")
        if ident is not None and node_text(ident) == name:
            return item
    return None


def find_inline_module(container: Node, name: str) -> Optional[Node]:
    """Body (declaration_list) of `mod name { ... }` declared directly in container."""
    for item in container.named_children:
        if item.type != "mod_item":
            continue
        ident = item.child_by_field_name("name")
        body = item.child_by_field_name("body")
        if ident is not None and body is not None and node_text(ident) == name:
            return body
    return None
