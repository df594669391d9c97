from __future__ import annotations

import logging
from typing import Optional, Union

from tree_sitter import Node

from axumdoc.domain.models import Extractor, ExtractorKind, HandlerInfo
from axumdoc.errors import RustParseError
from axumdoc.syntax.parser import (
    ParsedSource,
    find_function,
    named_non_comment_children,
    node_text,
    parse_source,
    string_literal_value,
    type_text,
)

logger = logging.getLogger(__name__)

_EXTRACTORS = {kind.value: kind for kind in ExtractorKind}

# type_arguments children that are not types
_NON_TYPE_ARGS = {"lifetime", "type_binding", "constrained_type", "block"}


def extract_handler(source: Union[ParsedSource, str], name: str) -> Optional[HandlerInfo]:
    """
    Locate `fn <name>` and read what the OpenAPI operation needs from it:
    doc comment (summary + description), extractor parameters, return type.

    Top-level functions are searched first, in source order, then functions
    inside inline `mod` blocks. First match wins.
    """
    if isinstance(source, str):
        try:
            source = parse_source(source)
        except RustParseError as e:
            logger.warning("Cannot search handler '%s': %s", name, e)
            return None

    fn = find_function(source.root, name)
    if fn is None:
        fn = find_function(source.root, name, descend_modules=True)
    if fn is None:
        return None

    summary, description = split_doc(doc_lines(fn))

    ret = fn.child_by_field_name("return_type")
    return HandlerInfo(
        name=name,
        parameters=tuple(extract_parameters(fn)),
        return_type=type_text(ret) if ret is not None else None,
        summary=summary,
        description=description,
    )


def doc_lines(item: Node) -> list[str]:
    """Trimmed, non-empty doc lines attached to an item (///, /** */, #[doc = ""])."""
    collected: list[str] = []  # reverse order
    node = item.prev_sibling
    while node is not None:
        if node.type == "line_comment":
            text = node_text(node)
            if text.startswith("///") and not text.startswith("////"):
                collected.append(text[3:])
        elif node.type == "block_comment":
            text = node_text(node)
            if text.startswith("/**") and not text.startswith("/***") and len(text) > 4:
                body = [line.strip().lstrip("*") for line in text[3:-2].splitlines()]
                collected.extend(reversed(body))
        elif node.type == "attribute_item":
            doc = _doc_attribute(node)
            if doc is not None:
                collected.append(doc)
        else:
            break
        node = node.prev_sibling

    collected.reverse()
    return [line.strip() for line in collected if line.strip()]


def _doc_attribute(item: Node) -> Optional[str]:
    attr = next((c for c in item.named_children if c.type == "attribute"), None)
    if attr is None:
        return None
    children = attr.named_children
    if not children or node_text(children[0]) != "doc":
        return None
    value = attr.child_by_field_name("value")
    return string_literal_value(value) if value is not None else None


def split_doc(lines: list[str]) -> tuple[Optional[str], Optional[str]]:
    lines = [line.strip() for line in lines if line.strip()]
    if not lines:
        return None, None
    description = "\n".join(lines[1:]) or None
    return lines[0], description


def extract_parameters(fn: Node) -> list[Extractor]:
    params = fn.child_by_field_name("parameters")
    if params is None:
        return []

    out: list[Extractor] = []
    for param in params.named_children:
        if param.type != "parameter":
            continue
        ty = param.child_by_field_name("type")
        if ty is None:
            continue
        extractor = match_extractor(ty)
        if extractor is not None:
            out.append(extractor)
    return out


def match_extractor(ty: Node) -> Optional[Extractor]:
    """
    Json<T> / Query<T> / Path<T> / Form<T> (also axum::Json<T> etc.).
    Everything else, e.g. State<AppState> or HeaderMap, is not request data.
    """
    if ty.type != "generic_type":
        return None

    outer = ty.child_by_field_name("type")
    if outer is None:
        return None
    if outer.type == "scoped_type_identifier":
        outer = outer.child_by_field_name("name")
        if outer is None:
            return None

    kind = _EXTRACTORS.get(node_text(outer))
    if kind is None:
        return None

    args = ty.child_by_field_name("type_arguments")
    if args is None:
        return None
    type_args = [a for a in named_non_comment_children(args) if a.type not in _NON_TYPE_ARGS]
    if len(type_args) != 1:
        return None
    return Extractor(kind=kind, inner_type=type_text(type_args[0]))
