from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from tree_sitter import Node

from axumdoc.domain.models import HTTP_METHODS, Route
from axumdoc.repo.layout import (
    MODULE_FILE_PATTERNS,
    candidate_paths,
    first_existing,
    module_from_path,
)
from axumdoc.syntax.parser import (
    ParsedSource,
    SourceCache,
    final_expression,
    find_function,
    find_inline_module,
    named_non_comment_children,
    node_text,
    path_segments,
    string_literal_value,
)

logger = logging.getLogger(__name__)

ROUTER_FN = "router"

# Path prefixes that anchor a module reference instead of naming a module
_ANCHORS = ("self", "crate", "super")


@dataclass(frozen=True)
class ResolverContext:
    """
    Lexical position of the chain walk. Entering a nest/merge builds a new
    context for the recursive call; leaving it is just returning.
    """

    prefix: str = ""
    module: Optional[str] = None
    qualifier: tuple[str, ...] = ()
    depth: int = 0
    source: Optional[ParsedSource] = None
    scope: Optional[Node] = None              # file root or inline mod body
    nest_literal: Optional[str] = None        # literal that produced `prefix`
    active_files: frozenset = field(default_factory=frozenset)
    active_fns: frozenset = field(default_factory=frozenset)   # (file, fn start byte)

    def enter(self, **changes) -> "ResolverContext":
        return replace(self, depth=self.depth + 1, **changes)

    @property
    def origin(self) -> str:
        return self.source.origin if self.source is not None else "<memory>"

    @property
    def module_label(self) -> str:
        return self.module or "crate"

    @property
    def route_qualifier(self) -> Optional[tuple[str, ...]]:
        if self.depth == 0 or not self.qualifier:
            return None
        return self.qualifier

    @property
    def source_file(self) -> str:
        if self.source is None or self.source.path is None:
            return ""
        return str(self.source.path)


@dataclass(frozen=True)
class ModuleRef:
    segments: tuple[str, ...]
    is_call: bool


def join_route_path(prefix: str, path: str) -> str:
    if not prefix:
        return path
    if path.startswith("/"):
        return f"{prefix}{path}"
    return f"{prefix}/{path}"


def _method_call_parts(node: Node) -> Optional[tuple[Node, str, list[Node]]]:
    """(receiver, method name, args) for `receiver.method(args)`, else None."""
    if node.type != "call_expression":
        return None
    func = node.child_by_field_name("function")
    if func is not None and func.type == "generic_function":
        func = func.child_by_field_name("function")
    if func is None or func.type != "field_expression":
        return None
    receiver = func.child_by_field_name("value")
    method = func.child_by_field_name("field")
    if receiver is None or method is None:
        return None
    return receiver, node_text(method), _call_args(node)


def _call_args(call: Node) -> list[Node]:
    args = call.child_by_field_name("arguments")
    if args is None:
        return []
    return [a for a in named_non_comment_children(args) if a.type != "attribute_item"]


def module_ref(expr: Node) -> Optional[ModuleRef]:
    """
    Recognize a sub-router reference:
      user::router()            -> ("user", "router"), call
      api::handlers::router     -> ("api", "handlers", "router"), no call
    Inline router expressions (method chains, Router::new()) are not references.
    """
    is_call = expr.type == "call_expression"
    target = expr.child_by_field_name("function") if is_call else expr
    if target is None:
        return None
    segs = path_segments(target)
    if not segs:
        return None
    named = [s for s in segs if s not in _ANCHORS]
    if named and named[0][:1].isupper():
        # Router::new(), Type::build(): a value, not a module path
        return None
    return ModuleRef(tuple(segs), is_call)


def _nest_targets(root: Node) -> set[str]:
    """Names of bare helper calls used as nest/merge targets anywhere in the file."""
    out: set[str] = set()
    stack = [root]
    while stack:
        node = stack.pop()
        parts = _method_call_parts(node)
        if parts is not None:
            _, method, args = parts
            target = None
            if method == "nest" and len(args) == 2:
                target = args[1]
            elif method == "merge" and len(args) == 1:
                target = args[0]
            if target is not None and target.type == "call_expression":
                fn = target.child_by_field_name("function")
                if fn is not None and fn.type == "identifier":
                    out.add(node_text(fn))
        stack.extend(node.named_children)
    return out


class RouteResolver:
    """
    Recover the route table of an Axum router built through method chains:

        Router::new()
            .route("/login", post(login))
            .nest("/api", user::router())
            .merge(admin::router())

    Sub-routers referenced by nest/merge are located on disk and parsed
    recursively. Nothing is executed; unresolvable pieces are reported
    and skipped.
    """

    def __init__(self, base_dir: Path, cache: Optional[SourceCache] = None):
        self.base_dir = base_dir
        self.cache = cache or SourceCache()
        self._walked_fns: set[tuple[str, int]] = set()

    def resolve_file(self, path: Path) -> list[Route]:
        source = self.cache.load_primary(path)
        return self.resolve_source(source, qualifier=module_from_path(self.base_dir, path))

    def resolve_source(self, source: ParsedSource, qualifier: tuple[str, ...] = ()) -> list[Route]:
        routes: list[Route] = []
        active = frozenset({source.path.resolve()}) if source.path is not None else frozenset()
        ctx = ResolverContext(qualifier=qualifier, source=source, scope=source.root, active_files=active)

        self._walked_fns = set()
        helpers = _nest_targets(source.root)
        pending: list[Node] = []
        for item in source.root.named_children:
            if item.type == "mod_item":
                continue  # inline modules are reached through nest/merge
            if item.type == "function_item":
                name = item.child_by_field_name("name")
                if name is not None and node_text(name) in helpers:
                    pending.append(item)
                    continue
            self._walk(item, ctx, routes)

        # helpers nobody else reached, e.g. app() <-> api() nesting each other
        for fn in pending:
            if _fn_key(ctx, fn) not in self._walked_fns:
                self._walk_router_fn(fn, ctx, routes)
        return routes

    # ----------------------------
    # Walk / chain interpretation
    # ----------------------------

    def _walk(self, node: Node, ctx: ResolverContext, routes: list[Route]) -> None:
        parts = _method_call_parts(node)
        if parts is not None:
            self._interpret(parts, ctx, routes)
            return
        for child in node.named_children:
            self._walk(child, ctx, routes)

    def _interpret(self, parts: tuple[Node, str, list[Node]], ctx: ResolverContext, routes: list[Route]) -> None:
        receiver, method, args = parts

        # earlier calls of the chain first
        self._walk(receiver, ctx, routes)

        if method == "route":
            self._on_route(args, ctx, routes)
        elif method == "nest":
            self._on_nest(args, ctx, routes)
        elif method == "merge":
            self._on_merge(args, ctx, routes)
        else:
            for arg in args:
                self._walk(arg, ctx, routes)

    def _on_route(self, args: list[Node], ctx: ResolverContext, routes: list[Route]) -> None:
        if len(args) != 2:
            return
        path = string_literal_value(args[0])
        if path is None:
            logger.warning("Skipping .route() with non-literal path `%s` in %s",
                           node_text(args[0]), ctx.origin)
            return

        pairs = self._method_router(args[1])
        if not pairs:
            logger.debug("No static handler in `%s`; route %s skipped", node_text(args[1]), path)
            return

        full_path = join_route_path(ctx.prefix, path)
        for method, handler in pairs:
            routes.append(
                Route(
                    path=full_path,
                    method=method.upper(),
                    handler_name=handler,
                    module_qualifier=ctx.route_qualifier,
                    source_file=ctx.source_file,
                )
            )

    def _method_router(self, expr: Node) -> list[tuple[str, str]]:
        """
        (method, handler) pairs of a method router:
          get(list_users)                 -> [("get", "list_users")]
          get(list).post(handlers::create) -> [("get", "list"), ("post", "create")]
        """
        if expr.type != "call_expression":
            return []

        chained = _method_call_parts(expr)
        if chained is not None:
            receiver, name, args = chained
            pairs = self._method_router(receiver)
        else:
            func = expr.child_by_field_name("function")
            segs = path_segments(func) if func is not None else None
            if not segs:
                return []
            pairs, name, args = [], segs[-1], _call_args(expr)

        if name not in HTTP_METHODS:
            # layer(), any(), get_service(): not a plain method routing call
            return pairs
        if len(args) != 1:
            return pairs

        handler = path_segments(args[0])
        if not handler:
            logger.debug("Handler `%s` is not a function path (runtime dispatch?); skipped",
                         node_text(args[0]))
            return pairs
        return pairs + [(name, handler[-1])]

    def _on_nest(self, args: list[Node], ctx: ResolverContext, routes: list[Route]) -> None:
        if len(args) != 2:
            return
        literal = string_literal_value(args[0])
        if literal is None:
            logger.warning("Skipping .nest() with non-literal prefix `%s` in %s",
                           node_text(args[0]), ctx.origin)
            return

        if literal and literal == ctx.nest_literal and ctx.prefix.endswith(literal):
            logger.warning("Nest prefix '%s' repeats the enclosing nest prefix; applied once", literal)
            new_prefix = ctx.prefix
        else:
            new_prefix = ctx.prefix + literal

        target = args[1]
        ref = module_ref(target)
        if ref is None:
            # nest("/x", Router::new().route(...))
            self._walk(target, ctx.enter(prefix=new_prefix, nest_literal=literal), routes)
            return
        self._enter_module(ref, ctx, routes, prefix=new_prefix, nest_literal=literal, kind="nest")

    def _on_merge(self, args: list[Node], ctx: ResolverContext, routes: list[Route]) -> None:
        if len(args) != 1:
            for arg in args:
                self._walk(arg, ctx, routes)
            return
        ref = module_ref(args[0])
        if ref is None:
            self._walk(args[0], ctx, routes)
            return
        self._enter_module(ref, ctx, routes, prefix=ctx.prefix, nest_literal=ctx.nest_literal, kind="merge")

    # ----------------------------
    # Module resolution
    # ----------------------------

    def _enter_module(
        self,
        ref: ModuleRef,
        ctx: ResolverContext,
        routes: list[Route],
        prefix: str,
        nest_literal: Optional[str],
        kind: str,
    ) -> None:
        segs = list(ref.segments)
        base_qualifier = ctx.qualifier
        while segs and segs[0] in _ANCHORS:
            head = segs.pop(0)
            if head == "crate":
                base_qualifier = ()
            elif head == "super":
                base_qualifier = base_qualifier[:-1]
        if not segs:
            logger.warning("Cannot resolve %s target `%s`", kind, "::".join(ref.segments))
            return

        # helper() defined in the same file
        if ref.is_call and len(segs) == 1 and ctx.scope is not None:
            helper = find_function(ctx.scope, segs[0])
            if helper is not None:
                self._walk_router_fn(helper, ctx.enter(prefix=prefix, nest_literal=nest_literal), routes)
                return

        module_name = segs[0]
        router_fn = segs[-1] if len(segs) > 1 else ROUTER_FN
        qualifier = base_qualifier + (module_name,)

        if ctx.scope is not None:
            inline = find_inline_module(ctx.scope, module_name)
            if inline is not None:
                fn = find_function(inline, router_fn) or find_function(inline, ROUTER_FN)
                if fn is None:
                    logger.warning("No router function in inline module '%s'", module_name)
                    return
                child = ctx.enter(prefix=prefix, module=module_name, qualifier=qualifier,
                                  scope=inline, nest_literal=nest_literal)
                self._walk_router_fn(fn, child, routes)
                return

        candidates = candidate_paths(self.base_dir, qualifier, MODULE_FILE_PATTERNS)
        module_file = first_existing(candidates)
        if module_file is None:
            logger.warning(
                "Module file not found for %s '%s' (tried paths: %s)",
                kind, module_name, ", ".join(str(p) for p in candidates),
            )
            return

        key = module_file.resolve()
        if key in ctx.active_files:
            logger.warning("Module cycle: %s is already being resolved; %s of '%s' skipped",
                           module_file, kind, module_name)
            return

        source = self.cache.load(module_file)
        if source is None:
            return

        fn = find_function(source.root, router_fn)
        if fn is None and router_fn != ROUTER_FN:
            fn = find_function(source.root, ROUTER_FN)
        if fn is None:
            logger.warning("No `%s` function in %s; %s of '%s' skipped", router_fn, module_file, kind, module_name)
            return

        child = ctx.enter(
            prefix=prefix,
            module=module_name,
            qualifier=qualifier,
            source=source,
            scope=source.root,
            nest_literal=nest_literal,
            active_files=ctx.active_files | {key},
        )
        self._walk_router_fn(fn, child, routes)

    def _walk_router_fn(self, fn: Node, ctx: ResolverContext, routes: list[Route]) -> None:
        name_node = fn.child_by_field_name("name")
        name = node_text(name_node) if name_node is not None else "?"

        key = _fn_key(ctx, fn)
        if key in ctx.active_fns:
            logger.warning("Router cycle in module '%s': `%s` is already being resolved; skipped",
                           ctx.module_label, name)
            return
        self._walked_fns.add(key)
        ctx = replace(ctx, active_fns=ctx.active_fns | {key})

        body = fn.child_by_field_name("body")
        expr = final_expression(body) if body is not None else None
        if expr is None:
            logger.warning("Router function `%s` has no final expression", name)
            return

        if expr.type == "identifier" and body is not None:
            # let app = Router::new()...; app
            bound = _let_value(body, node_text(expr))
            if bound is not None:
                expr = bound
        self._walk(expr, ctx, routes)


def _fn_key(ctx: ResolverContext, fn: Node) -> tuple[str, int]:
    return ctx.source_file, fn.start_byte


def _let_value(body: Node, name: str) -> Optional[Node]:
    found = None
    for stmt in body.named_children:
        if stmt.type != "let_declaration":
            continue
        pattern = stmt.child_by_field_name("pattern")
        value = stmt.child_by_field_name("value")
        if pattern is None or value is None:
            continue
        bound_name = node_text(pattern)
        if bound_name.startswith("mut "):
            bound_name = bound_name[4:].strip()
        if bound_name == name:
            found = value
    return found
