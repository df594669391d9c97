from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


HTTP_METHODS = ("get", "post", "put", "delete", "patch", "head", "options", "trace")


@dataclass(frozen=True)
class Route:
    path: str                                   # full path, every nest prefix applied
    method: str                                 # GET, POST, ...
    handler_name: str
    module_qualifier: Optional[tuple[str, ...]] = None   # grouping only
    source_file: str = ""                       # file the .route() call lives in

    @property
    def tag(self) -> Optional[str]:
        if not self.module_qualifier:
            return None
        return "::".join(self.module_qualifier)


class ExtractorKind(str, Enum):
    BODY = "Json"
    QUERY = "Query"
    PATH = "Path"
    FORM = "Form"

    @property
    def location(self) -> str:
        # OpenAPI "in" value for parameter-style extractors
        return self.value.lower()


@dataclass(frozen=True)
class Extractor:
    kind: ExtractorKind
    inner_type: str


@dataclass(frozen=True)
class HandlerInfo:
    name: str
    parameters: tuple[Extractor, ...] = ()
    return_type: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class FieldInfo:
    name: str
    type_text: str


@dataclass(frozen=True)
class StructInfo:
    name: str
    fields: tuple[FieldInfo, ...] = ()
