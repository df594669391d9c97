from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from axumdoc.config import DEFAULT_DESCRIPTION, GeneratorConfig
from axumdoc.domain.models import HandlerInfo, Route, StructInfo
from axumdoc.errors import BaseDirNotFoundError, HandlerFileNotFoundError, OutputWriteError, RustParseError
from axumdoc.extractors.axum.handlers import extract_handler
from axumdoc.extractors.axum.models import load_models
from axumdoc.extractors.axum.router import RouteResolver
from axumdoc.openapi.builder import build_openapi, render_document
from axumdoc.repo.layout import HANDLER_FILE_PATTERNS, candidate_paths, first_existing, module_from_path
from axumdoc.syntax.parser import ParsedSource, SourceCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerateResult:
    routes: list[Route]
    handlers: dict[str, HandlerInfo]
    models: dict[str, StructInfo]
    document: dict[str, Any]
    output_path: Optional[Path]


def load_primary_source(config: GeneratorConfig, cache: SourceCache) -> ParsedSource:
    base_dir = config.base_dir
    if not base_dir.is_dir():
        raise BaseDirNotFoundError(base_dir)

    handler_path = config.handler_path
    if not handler_path.is_file():
        raise HandlerFileNotFoundError(handler_path)

    try:
        return cache.load_primary(handler_path)
    except UnicodeDecodeError as e:
        raise RustParseError(str(handler_path)) from e
    except OSError as e:
        raise HandlerFileNotFoundError(handler_path) from e


def resolve_routes(config: GeneratorConfig, cache: Optional[SourceCache] = None) -> tuple[ParsedSource, list[Route]]:
    cache = cache or SourceCache()
    primary = load_primary_source(config, cache)
    resolver = RouteResolver(config.base_dir, cache)
    qualifier = module_from_path(config.base_dir, config.handler_path)
    return primary, resolver.resolve_source(primary, qualifier=qualifier)


def resolve_handlers(
    routes: list[Route],
    primary: ParsedSource,
    base_dir: Path,
    cache: SourceCache,
) -> dict[str, HandlerInfo]:
    """
    HandlerInfo per distinct handler name. Search order per route:
    primary file, the file declaring the route, the module's handler files.
    Names are not qualified: the first definition found wins, and a name
    that was not found is searched (and reported) once.
    """
    handlers: dict[str, HandlerInfo] = {}
    missing: set[str] = set()
    missing_modules: set[tuple[str, ...]] = set()

    for route in routes:
        if route.handler_name in handlers or route.handler_name in missing:
            continue
        info = _find_handler(route, primary, base_dir, cache, missing_modules)
        if info is None:
            missing.add(route.handler_name)
            continue
        logger.debug("Handler %s resolved for %s", route.handler_name, route.path)
        handlers[route.handler_name] = info
    return handlers


def _find_handler(
    route: Route,
    primary: ParsedSource,
    base_dir: Path,
    cache: SourceCache,
    missing_modules: set[tuple[str, ...]],
) -> Optional[HandlerInfo]:
    name = route.handler_name

    info = extract_handler(primary, name)
    if info is not None:
        return info

    if route.source_file:
        declaring = cache.load(Path(route.source_file))
        if declaring is not None and declaring is not primary:
            info = extract_handler(declaring, name)
            if info is not None:
                return info

    qualifier = route.module_qualifier
    if not qualifier:
        logger.warning("Handler '%s' not found", name)
        return None

    candidates = candidate_paths(base_dir, qualifier, HANDLER_FILE_PATTERNS)
    handler_file = first_existing(candidates)
    if handler_file is None:
        if qualifier not in missing_modules:
            missing_modules.add(qualifier)
            logger.warning(
                "Module handler file not found for '%s', tried paths: %s",
                "/".join(qualifier), ", ".join(str(p) for p in candidates),
            )
        return None

    source = cache.load(handler_file)
    if source is not None:
        info = extract_handler(source, name)
        if info is not None:
            return info
    logger.warning("Handler '%s' not found in module '%s'", name, "::".join(qualifier))
    return None


def write_document(document: dict[str, Any], out_path: Path) -> Path:
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(render_document(document), encoding="utf-8")
    except OSError as e:
        raise OutputWriteError(out_path, e.strerror or str(e)) from e
    return out_path


def run_generate(config: GeneratorConfig, write: bool = True) -> GenerateResult:
    cache = SourceCache()

    primary, routes = resolve_routes(config, cache)
    handlers = resolve_handlers(routes, primary, config.base_dir, cache)
    models = load_models(config.model_paths)

    document = build_openapi(
        routes,
        handlers,
        models,
        title=config.title,
        version=config.api_version,
        description=DEFAULT_DESCRIPTION,
    )

    output_path = write_document(document, config.output_path) if write else None

    return GenerateResult(
        routes=routes,
        handlers=handlers,
        models=models,
        document=document,
        output_path=output_path,
    )
