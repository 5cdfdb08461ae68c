"""Virtual nodes and the block tree.

A block is a vnode that collects its dynamic descendants (nodes with a
positive patch flag, and components) in ``dynamic_children`` so an updater can
skip the static parts of the tree. Generated code opens a block before
evaluating the block's children::

    (_open_block(), _create_element_block('div', None, [...], 0))[-1]

Everything here reads and writes the active `RenderScope`.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from functools import wraps
from typing import Any

from kiln.runtime.context import get_render_scope
from kiln.runtime.helpers import normalize_class, normalize_style
from kiln.utils.constants import PatchFlags


class VNodeType:
    """Marker type for vnodes that are not elements or components."""

    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return self.name


Fragment = VNodeType("Fragment")
Text = VNodeType("Text")
Comment = VNodeType("Comment")


@dataclass(slots=True, eq=False)
class VNode:
    """Description of one node of the rendered tree.

    Attributes:
        type: Tag name, component object, or a `VNodeType` marker.
        props: Props dict (None when there are none).
        children: Text, a list of vnodes, or a slots dict for components.
        patch_flag: Which parts can change (see `PatchFlags`); -1 for hoisted
            constants, -2 to bail out of optimized updates.
        dynamic_props: Names of props that can change.
        dynamic_children: Dynamic descendants collected by a block.
        key: ``key`` prop, used to match nodes between renders.
        dirs: Runtime directive bindings from ``with_directives``.
        scope_id: Scoped-style attribute active when the vnode was created.
        memo: Dependencies recorded by ``with_memo``.
    """

    type: Any
    props: dict[str, Any] | None = None
    children: Any = None
    patch_flag: int = 0
    dynamic_props: list[str] | None = None
    dynamic_children: list[VNode] | None = None
    key: Any = None
    dirs: list[DirectiveBinding] | None = None
    scope_id: str | None = None
    memo: list[Any] | None = None

    @property
    def is_block(self) -> bool:
        return self.dynamic_children is not None

    @property
    def is_component(self) -> bool:
        return not isinstance(self.type, (str, VNodeType))


@dataclass(slots=True)
class DirectiveBinding:
    dir: Any
    value: Any = None
    arg: Any = None
    modifiers: dict[str, bool] = field(default_factory=dict)


def open_block(disable_tracking: bool = False) -> None:
    """Start collecting dynamic children for the next block vnode."""
    scope = get_render_scope()
    scope.current_block = None if disable_tracking else []
    scope.block_stack.append(scope.current_block)


def close_block() -> None:
    scope = get_render_scope()
    if scope.block_stack:
        scope.block_stack.pop()
    scope.current_block = scope.block_stack[-1] if scope.block_stack else None


def set_block_tracking(value: int) -> None:
    """Adjust block tracking; v-once subtrees are built with tracking off."""
    get_render_scope().tracking += value


def _setup_block(vnode: VNode) -> VNode:
    scope = get_render_scope()
    vnode.dynamic_children = (scope.current_block or []) if scope.tracking > 0 else None
    close_block()
    if scope.tracking > 0 and scope.current_block is not None:
        scope.current_block.append(vnode)
    return vnode


def create_base_vnode(
    type: Any,
    props: dict[str, Any] | None = None,
    children: Any = None,
    patch_flag: int = 0,
    dynamic_props: Sequence[str] | None = None,
    is_block_node: bool = False,
) -> VNode:
    scope = get_render_scope()
    vnode = VNode(
        type=type,
        props=props,
        children=children,
        patch_flag=patch_flag,
        dynamic_props=list(dynamic_props) if dynamic_props is not None else None,
        key=props.get("key") if props else None,
        scope_id=scope.scope_id,
    )
    if (
        scope.tracking > 0
        and not is_block_node
        and scope.current_block is not None
        and (patch_flag > 0 or vnode.is_component)
        and patch_flag != PatchFlags.NEED_HYDRATION
    ):
        scope.current_block.append(vnode)
    return vnode


def create_element_vnode(
    type: Any,
    props: dict[str, Any] | None = None,
    children: Any = None,
    patch_flag: int = 0,
    dynamic_props: Sequence[str] | None = None,
) -> VNode:
    return create_base_vnode(type, props, children, patch_flag, dynamic_props)


def create_vnode(
    type: Any,
    props: dict[str, Any] | None = None,
    children: Any = None,
    patch_flag: int = 0,
    dynamic_props: Sequence[str] | None = None,
    is_block_node: bool = False,
) -> VNode:
    """Vnode for a component or any tag; class and style props are normalized."""
    if isinstance(type, VNode):
        # <component :is="vnode">
        return type
    if props:
        props = dict(props)
        if "class" in props and not isinstance(props["class"], str):
            props["class"] = normalize_class(props["class"])
        if "style" in props:
            props["style"] = normalize_style(props["style"])
    return create_base_vnode(type, props, children, patch_flag, dynamic_props, is_block_node)


def create_element_block(
    type: Any,
    props: dict[str, Any] | None = None,
    children: Any = None,
    patch_flag: int = 0,
    dynamic_props: Sequence[str] | None = None,
) -> VNode:
    return _setup_block(create_base_vnode(type, props, children, patch_flag, dynamic_props, True))


def create_block(
    type: Any,
    props: dict[str, Any] | None = None,
    children: Any = None,
    patch_flag: int = 0,
    dynamic_props: Sequence[str] | None = None,
) -> VNode:
    return _setup_block(create_vnode(type, props, children, patch_flag, dynamic_props, True))


def create_text_vnode(text: str = " ", flag: int = 0) -> VNode:
    return create_vnode(Text, None, text, flag)


def create_comment_vnode(text: str = "", as_block: bool = False) -> VNode:
    """Comment vnode; v-if placeholders are created as blocks."""
    if as_block:
        open_block()
        return create_block(Comment, None, text)
    return create_vnode(Comment, None, text)


def with_directives(vnode: VNode, directives: Sequence[Sequence[Any]]) -> VNode:
    """Attach runtime directives: each entry is ``[dir, value, arg, modifiers]``."""
    bindings = vnode.dirs if vnode.dirs is not None else []
    for entry in directives:
        directive, value, arg, modifiers = (*entry, None, None, None)[:4]
        if directive is None:
            continue
        bindings.append(DirectiveBinding(directive, value, arg, dict(modifiers or {})))
    vnode.dirs = bindings
    return vnode


def push_scope_id(scope_id: str) -> None:
    get_render_scope().scope_ids.append(scope_id)


def pop_scope_id() -> None:
    scope = get_render_scope()
    if scope.scope_ids:
        scope.scope_ids.pop()


def with_scope_id(scope_id: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator stamping ``scope_id`` on every vnode the function creates."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def scoped(*args: Any, **kwargs: Any) -> Any:
            push_scope_id(scope_id)
            try:
                return fn(*args, **kwargs)
            finally:
                pop_scope_id()

        return scoped

    return decorator


__all__ = [
    "Comment",
    "DirectiveBinding",
    "Fragment",
    "Text",
    "VNode",
    "VNodeType",
    "close_block",
    "create_base_vnode",
    "create_block",
    "create_comment_vnode",
    "create_element_block",
    "create_element_vnode",
    "create_text_vnode",
    "create_vnode",
    "open_block",
    "pop_scope_id",
    "push_scope_id",
    "set_block_tracking",
    "with_directives",
    "with_scope_id",
]
