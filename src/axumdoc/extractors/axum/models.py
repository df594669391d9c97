from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Union

from axumdoc.domain.models import FieldInfo, StructInfo
from axumdoc.errors import RustParseError
from axumdoc.syntax.parser import ParsedSource, iter_items, node_text, parse_source, type_text

logger = logging.getLogger(__name__)


def extract_models(source: Union[ParsedSource, str], origin: str = "<memory>") -> dict[str, StructInfo]:
    """
    Struct declarations of one file, keyed by name.
      struct A { x: i32 }  -> fields x
      struct B(i32, String) -> fields _0, _1
      struct C;             -> ignored
    A file that does not parse yields {} (and a warning).
    """
    if isinstance(source, str):
        try:
            source = parse_source(source, Path(origin) if origin != "<memory>" else None)
        except RustParseError as e:
            logger.warning("Failed to parse model file: %s", e)
            return {}

    structs: dict[str, StructInfo] = {}
    for item in iter_items(source.root):
        if item.type != "struct_item":
            continue
        name_node = item.child_by_field_name("name")
        body = item.child_by_field_name("body")
        if name_node is None or body is None:
            continue

        if body.type == "field_declaration_list":
            fields = []
            for decl in body.named_children:
                if decl.type != "field_declaration":
                    continue
                fname = decl.child_by_field_name("name")
                ftype = decl.child_by_field_name("type")
                if fname is None or ftype is None:
                    continue
                fields.append(FieldInfo(name=node_text(fname), type_text=type_text(ftype)))
        elif body.type == "ordered_field_declaration_list":
            fields = [
                FieldInfo(name=f"_{i}", type_text=type_text(t))
                for i, t in enumerate(body.children_by_field_name("type"))
            ]
        else:
            continue

        name = node_text(name_node)
        structs[name] = StructInfo(name=name, fields=tuple(fields))
    return structs


def load_models(paths: Iterable[Path]) -> dict[str, StructInfo]:
    """Merge the structs of every model file; a later file wins on name clashes."""
    paths = list(paths)
    if not paths:
        logger.warning(
            "No model files specified. Response/request schemas will be generic. "
            "Use --model-files to point at the struct definitions."
        )

    models: dict[str, StructInfo] = {}
    for p in paths:
        if not p.is_file():
            logger.warning("Model file not found: %s", p)
            continue
        try:
            text = p.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read model file %s: %s", p, e)
            continue
        models.update(extract_models(text, origin=str(p)))
        logger.info("Parsed models from: %s", p)
    return models
