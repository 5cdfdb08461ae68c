"""Render-scoped runtime state.

Generated code reads template data from ``_ctx`` (a `RenderContext`) and
resolves components, directives and filters by name through the active
`RenderScope`. The scope also holds the block-tracking state vnode creation
uses. It lives in a ContextVar, so concurrent renders in different threads or
tasks never see each other's blocks.

Example:
    >>> render = compile_to_function("<p>{{ greeting }}</p>")
    >>> with render_scope(components={"MyButton": MyButton}):
    ...     vnode = render(RenderContext(greeting="hi"), {})
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from kiln.runtime.component import compile_component
from kiln.utils.strings import camelize, capitalize

if TYPE_CHECKING:
    from kiln.runtime.vnode import VNode

logger = logging.getLogger(__name__)


class RenderContext:
    """Template data exposed to generated code as ``_ctx``.

    Attribute reads of names that were never set return None, so a template
    may test for data that is absent. ``slots`` defaults to an empty dict.

    Example:
        >>> ctx = RenderContext({"user": "ada"}, ok=True)
        >>> ctx.user, ctx.ok, ctx.missing
        ('ada', True, None)
    """

    def __init__(self, data: Mapping[str, Any] | None = None, /, **kwargs: Any):
        self.__dict__["slots"] = {}
        self.__dict__.update(data or {})
        self.__dict__.update(kwargs)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__"):
            raise AttributeError(name)
        return None

    def __repr__(self) -> str:
        names = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items() if k != "slots")
        return f"RenderContext({names})"


@dataclass
class RenderScope:
    """Per-render state: asset registries, open blocks and scope ids.

    Attributes:
        components: Components by registered name.
        directives: Custom directives by name.
        filters: Legacy filters by name.
        block_stack: Dynamic-child collectors of the blocks being built.
            None entries are blocks opened with tracking disabled.
        current_block: Innermost collector (None when not tracking).
        tracking: Block tracking is active while positive.
        scope_ids: Stack of scoped-style attributes to stamp on new vnodes.
    """

    components: Mapping[str, Any] = field(default_factory=dict)
    directives: Mapping[str, Any] = field(default_factory=dict)
    filters: Mapping[str, Any] = field(default_factory=dict)
    block_stack: list[list[VNode] | None] = field(default_factory=list)
    current_block: list[VNode] | None = None
    tracking: int = 1
    scope_ids: list[str] = field(default_factory=list)

    @property
    def scope_id(self) -> str | None:
        return self.scope_ids[-1] if self.scope_ids else None


_render_scope: ContextVar[RenderScope | None] = ContextVar("kiln_render_scope", default=None)


def get_render_scope() -> RenderScope:
    """Active render scope, creating an empty one for this context if needed."""
    scope = _render_scope.get()
    if scope is None:
        scope = RenderScope()
        _render_scope.set(scope)
    return scope


def set_render_scope(scope: RenderScope) -> Token[RenderScope | None]:
    return _render_scope.set(scope)


def reset_render_scope(token: Token[RenderScope | None]) -> None:
    _render_scope.reset(token)


@contextmanager
def render_scope(
    components: Mapping[str, Any] | None = None,
    directives: Mapping[str, Any] | None = None,
    filters: Mapping[str, Any] | None = None,
) -> Iterator[RenderScope]:
    """Make a fresh `RenderScope` active for the duration of the block."""
    scope = RenderScope(
        components=components or {},
        directives=directives or {},
        filters=filters or {},
    )
    token = _render_scope.set(scope)
    try:
        yield scope
    finally:
        _render_scope.reset(token)


def render(
    render_fn: Any,
    data: Mapping[str, Any] | RenderContext | None = None,
    *,
    components: Mapping[str, Any] | None = None,
    directives: Mapping[str, Any] | None = None,
    filters: Mapping[str, Any] | None = None,
    cache: dict[Any, Any] | None = None,
) -> Any:
    """Call a compiled render function with its own scope and return the tree.

    Args:
        render_fn: Function from `compile_to_function`.
        data: Template data, or a ready `RenderContext`.
        components: Components resolvable by name.
        directives: Custom directives resolvable by name.
        filters: Filters resolvable by name (compat builds).
        cache: Render cache to reuse between calls (v-once, v-memo,
            cached handlers). A new one is used when omitted.
    """
    ctx = data if isinstance(data, RenderContext) else RenderContext(data)
    with render_scope(components, directives, filters):
        return render_fn(ctx, {} if cache is None else cache)


def _resolve_asset(registry: Mapping[str, Any], name: str) -> Any:
    for candidate in (name, camelize(name), capitalize(camelize(name))):
        if candidate in registry:
            return registry[candidate]
    return None


def resolve_component(name: str) -> Any:
    """Registered component for ``name`` (also tried camelized and capitalized).

    Unknown components resolve to the name itself, which renders as a plain
    element. A component with template text is compiled on first use.
    """
    component = _resolve_asset(get_render_scope().components, name)
    if component is None:
        logger.warning("Failed to resolve component: %s", name)
        return name
    return compile_component(component)


def resolve_dynamic_component(component: Any) -> Any:
    """Target of ``<component :is="...">``: a name to resolve or a component."""
    if isinstance(component, str):
        found = _resolve_asset(get_render_scope().components, component)
        return compile_component(found) if found is not None else component
    return compile_component(component)


def resolve_directive(name: str) -> Any:
    directive = _resolve_asset(get_render_scope().directives, name)
    if directive is None:
        logger.warning("Failed to resolve directive: %s", name)
    return directive


def resolve_filter(name: str) -> Any:
    filter_fn = _resolve_asset(get_render_scope().filters, name)
    if filter_fn is None:
        logger.warning("Failed to resolve filter: %s", name)
    return filter_fn


__all__ = [
    "RenderContext",
    "RenderScope",
    "get_render_scope",
    "render",
    "render_scope",
    "resolve_component",
    "resolve_directive",
    "resolve_dynamic_component",
    "resolve_filter",
]
