from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, Mapping, Optional

from axumdoc.config import DEFAULT_API_VERSION, DEFAULT_DESCRIPTION, DEFAULT_TITLE
from axumdoc.domain.models import ExtractorKind, HandlerInfo, Route, StructInfo
from axumdoc.openapi.schema import Schema, schema_ref, type_name, type_text_to_schema

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.0.0"

_PARAM_COLON = re.compile(r":([A-Za-z0-9_]+)")
_PARAM_BRACE = re.compile(r"\{([A-Za-z0-9_]+)\}")

_BODY_CONTENT_TYPES = {
    ExtractorKind.BODY: "application/json",
    ExtractorKind.FORM: "application/x-www-form-urlencoded",
}


def colon_params(path: str) -> list[str]:
    return _PARAM_COLON.findall(path)


def brace_params(path: str) -> list[str]:
    return _PARAM_BRACE.findall(path)


def extract_path_params(path: str) -> list[dict[str, Any]]:
    """Path parameters of a route path, in both `/:id` and `/{id}` styles."""
    names: list[str] = []
    for name in colon_params(path) + brace_params(path):
        if name not in names:
            names.append(name)
    return [
        {"name": name, "in": "path", "required": True, "schema": {"type": "string"}}
        for name in names
    ]


def build_schemas(models: Mapping[str, StructInfo]) -> dict[str, Schema]:
    schemas: dict[str, Schema] = {}
    for name in sorted(models):
        info = models[name]
        schemas[info.name] = {
            "type": "object",
            "properties": {f.name: type_text_to_schema(f.type_text, models) for f in info.fields},
        }
    return schemas


def declared_parameters(handler: HandlerInfo, models: Mapping[str, StructInfo]) -> list[dict[str, Any]]:
    """One parameter per field of a struct taken through Query<T> or Path<T>."""
    params: list[dict[str, Any]] = []
    for extractor in handler.parameters:
        if extractor.kind not in (ExtractorKind.QUERY, ExtractorKind.PATH):
            continue
        info = models.get(type_name(extractor.inner_type))
        if info is None:
            continue
        for f in info.fields:
            params.append(
                {
                    "name": f.name,
                    "in": extractor.kind.location,
                    "required": not f.type_text.startswith("Option"),
                    "schema": type_text_to_schema(f.type_text, models),
                }
            )
    return params


def request_body(handler: HandlerInfo, models: Mapping[str, StructInfo]) -> Optional[dict[str, Any]]:
    for extractor in handler.parameters:
        content_type = _BODY_CONTENT_TYPES.get(extractor.kind)
        if content_type is None:
            continue
        # one wrapper is unwrapped for the lookup: Json<Vec<User>> documents as User
        name = type_name(extractor.inner_type)
        schema = schema_ref(name) if name in models else type_text_to_schema(extractor.inner_type, models)
        return {"content": {content_type: {"schema": schema}}}
    return None


def build_responses(handler: HandlerInfo, models: Mapping[str, StructInfo]) -> dict[str, Any]:
    if handler.return_type is None:
        return {"200": {"description": "Successful response"}}

    name = type_name(handler.return_type)
    if name in models:
        schema = schema_ref(name)
    else:
        schema = type_text_to_schema(handler.return_type, models)
    return {
        "200": {
            "description": "Successful response",
            "content": {"application/json": {"schema": schema}},
        }
    }


def build_operation(route: Route, handler: HandlerInfo, models: Mapping[str, StructInfo]) -> dict[str, Any]:
    parameters = declared_parameters(handler, models)
    declared_names = {p["name"] for p in parameters}
    parameters.extend(p for p in extract_path_params(route.path) if p["name"] not in declared_names)

    operation: dict[str, Any] = {
        "summary": handler.summary or f"{route.method.upper()} {route.handler_name}",
        "operationId": route.handler_name,
        "responses": build_responses(handler, models),
    }
    if handler.description:
        operation["description"] = handler.description
    if parameters:
        operation["parameters"] = parameters

    body = request_body(handler, models)
    if body is not None:
        operation["requestBody"] = body

    if route.tag:
        operation["tags"] = [route.tag]
    return operation


def build_openapi(
    routes: Iterable[Route],
    handlers: Mapping[str, HandlerInfo],
    models: Mapping[str, StructInfo],
    title: str = DEFAULT_TITLE,
    version: str = DEFAULT_API_VERSION,
    description: str = DEFAULT_DESCRIPTION,
) -> dict[str, Any]:
    """
    Assemble the OpenAPI document. Routes are inserted in registration order;
    the same path + method registered twice keeps the last one.
    """
    paths: dict[str, dict[str, Any]] = {}
    for route in routes:
        handler = handlers.get(route.handler_name)
        if handler is None:
            logger.warning("Route %s %s: handler '%s' not found; skipped",
                           route.method, route.path, route.handler_name)
            continue
        paths.setdefault(route.path, {})[route.method.lower()] = build_operation(route, handler, models)

    return {
        "openapi": OPENAPI_VERSION,
        "info": {"title": title, "version": version, "description": description},
        "paths": paths,
        "components": {"schemas": build_schemas(models)},
    }


def render_document(document: Mapping[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"
