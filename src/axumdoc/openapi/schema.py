from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional

from axumdoc.domain.models import StructInfo
from axumdoc.syntax.parser import normalize_type_text

logger = logging.getLogger(__name__)

Schema = dict[str, Any]

_PRIMITIVES: dict[str, Schema] = {
    "String": {"type": "string"},
    "str": {"type": "string"},
    "i8": {"type": "integer", "format": "int32"},
    "u8": {"type": "integer", "format": "int32"},
    "i16": {"type": "integer", "format": "int32"},
    "u16": {"type": "integer", "format": "int32"},
    "i32": {"type": "integer", "format": "int32"},
    "u32": {"type": "integer", "format": "int32"},
    "i64": {"type": "integer", "format": "int64"},
    "u64": {"type": "integer", "format": "int64"},
    "isize": {"type": "integer", "format": "int64"},
    "usize": {"type": "integer", "format": "int64"},
    "f32": {"type": "number", "format": "float"},
    "f64": {"type": "number", "format": "double"},
    "bool": {"type": "boolean"},
}

UUID_EXAMPLE = "550e8400-e29b-41d4-a716-446655440000"
DATETIME_EXAMPLE = "2024-01-01T00:00:00Z"

_ARRAY_WRAPPERS = {"Vec"}
_NULLABLE_WRAPPERS = {"Option"}
_MAP_WRAPPERS = {"HashMap", "BTreeMap"}

_PATH_LIKE = re.compile(r"^[A-Za-z_]\w*(::[A-Za-z_]\w*)*(<.*>)?$")


def schema_ref(name: str) -> Schema:
    return {"$ref": f"#/components/schemas/{name}"}


def strip_reference(text: str) -> str:
    """`&T`, `& mut T` -> `T`. Lifetimes are left in place."""
    clean = text.strip()
    while clean.startswith("&"):
        clean = clean[1:].lstrip()
    if clean.startswith("mut "):
        clean = clean[4:].lstrip()
    return clean


def last_segment(path: str) -> str:
    return path.rsplit("::", 1)[-1]


def split_generic(text: str) -> Optional[tuple[str, str]]:
    """`Outer<Inner>` -> (Outer, Inner); None when there is no argument list."""
    start = text.find("<")
    if start <= 0:
        return None
    end = text.rfind(">")
    if end < start:
        end = len(text)
    return text[:start].strip(), text[start + 1 : end].strip()


def split_top_level(args: str, sep: str = ",") -> list[str]:
    """Split generic arguments on separators that are not nested: "K,Vec<(A,B)>" -> ["K", "Vec<(A,B)>"]."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in args:
        if ch in "<([":
            depth += 1
        elif ch in ">)]":
            depth -= 1
        if ch == sep and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    tail = "".join(current).strip()
    if tail or parts:
        parts.append(tail)
    return [p for p in parts if p]


def type_name(text: str) -> str:
    """
    Name used to look a type up among declared structs, one wrapper unwrapped:
      Json<User> -> User, Path<u64> -> u64, models::User -> User
    """
    clean = strip_reference(normalize_type_text(text))
    generic = split_generic(clean)
    if generic is not None:
        outer, inner = generic
        args = split_top_level(inner)
        if args and _PATH_LIKE.match(args[0]):
            return last_segment(args[0].split("<", 1)[0])
        return last_segment(outer)
    if _PATH_LIKE.match(clean):
        return last_segment(clean)
    return clean


def type_text_to_schema(text: str, models: Mapping[str, StructInfo]) -> Schema:
    clean = strip_reference(normalize_type_text(text))

    generic = split_generic(clean)
    if generic is not None:
        outer, inner = generic
        wrapper = last_segment(outer)
        if wrapper in _ARRAY_WRAPPERS:
            return {"type": "array", "items": type_text_to_schema(inner, models)}
        if wrapper in _NULLABLE_WRAPPERS:
            schema = dict(type_text_to_schema(inner, models))
            schema["nullable"] = True
            return schema
        if wrapper in _MAP_WRAPPERS:
            parts = split_top_level(inner)
            if len(parts) == 2:
                return {"type": "object", "additionalProperties": type_text_to_schema(parts[1], models)}

    primitive = _PRIMITIVES.get(clean)
    if primitive is not None:
        return dict(primitive)

    if "Uuid" in clean:
        return {"type": "string", "format": "uuid", "example": UUID_EXAMPLE}
    if "DateTime" in clean or "chrono" in clean:
        return {"type": "string", "format": "date-time", "example": DATETIME_EXAMPLE}
    if "Duration" in clean or "duration" in clean:
        return {"type": "string", "format": "duration"}

    if clean in models:
        return schema_ref(clean)

    compact = clean.replace(" ", "")
    if compact.startswith("Json<"):
        logger.warning(
            "Unknown type '%s', defaulting to object. Note: Json<T> wrappers are not unwrapped here; "
            "declare T in --model-files",
            clean,
        )
    elif "::" in clean:
        logger.warning("Unknown type '%s', defaulting to object. Note: type path may need to be added to model files", clean)
    else:
        logger.warning("Unknown type '%s', defaulting to object", clean)
    return {"type": "object"}
