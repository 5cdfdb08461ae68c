"""Transform engine.

One depth-first pass over the template AST. Every node is handed to each node
transform in order; a transform may return exit callbacks, which run after the
node's children have been transformed, in reverse registration order:

    transform A (enter) -> transform B (enter) -> children -> B (exit) -> A (exit)

Transforms can replace the current node (``context.replace_node``) or remove
it (``context.remove_node``). Sibling iteration reads its position back from
the context after every child, so removals never skip or repeat a node.

After traversal, constant subtrees are hoisted (when enabled), the root's
codegen node is created and the metadata codegen needs is copied onto the
`Root`.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from kiln.compiler.hoist import hoist_static
from kiln.compiler.options import CompilerOptions, DirectiveTransform, ExitFn, NodeTransform
from kiln.compiler.runtime_helpers import RuntimeHelper
from kiln.compiler.utils import create_vnode_call, is_slot_outlet, is_v_slot, make_block
from kiln.config import DEFAULT_FLAGS, BuildFlags
from kiln.environment.exceptions import default_on_error, default_on_warn
from kiln.nodes import (
    LOC_STUB,
    CacheExpression,
    Comment,
    ConstantType,
    Directive,
    Element,
    ElementType,
    For,
    If,
    IfBranch,
    Interpolation,
    Node,
    Root,
    SimpleExpression,
    VNodeCall,
)
from kiln.utils.constants import PatchFlags

if TYPE_CHECKING:
    from kiln.compiler.options import ErrorHandler

ParentNode = Root | Element | IfBranch | For


@dataclass
class ScopeCounters:
    """Depth of enclosing scope-introducing constructs."""

    v_for: int = 0
    v_slot: int = 0
    v_pre: int = 0
    v_once: int = 0


@dataclass
class TransformContext:
    """Mutable state for one `transform` call.

    Created by `transform` and discarded when it returns; never shared between
    compiles.

    Attributes:
        root: AST being transformed.
        options: Effective compiler options.
        flags: Build flags.
        node_transforms: Ordered node transforms (built-ins first).
        directive_transforms: Directive transforms keyed by directive name.
        helpers: Use count per runtime helper.
        components: Component names to resolve at runtime.
        directives: Custom directive names to resolve at runtime.
        filters: Legacy filter names to resolve at runtime.
        hoists: Hoisted codegen nodes, in ``_hoisted_<n>`` order.
        identifiers: Binding count per scope-bound name (v-for / slot props).
        scopes: Enclosing scope counters.
        parent: Parent of the node being visited.
        child_index: Index of the current node within ``parent.children``.
        current_node: Node being visited; None once it has been removed.
        in_v_once: Inside a v-once subtree.
        constant_cache: Constant type per analyzed node, keyed by ``id``.
    """

    root: Root
    options: CompilerOptions
    flags: BuildFlags = DEFAULT_FLAGS
    node_transforms: list[NodeTransform] = field(default_factory=list)
    directive_transforms: dict[str, DirectiveTransform] = field(default_factory=dict)

    helpers: Counter[RuntimeHelper] = field(default_factory=Counter)
    components: set[str] = field(default_factory=set)
    directives: set[str] = field(default_factory=set)
    filters: set[str] = field(default_factory=set)
    hoists: list[Node | None] = field(default_factory=list)
    cached: int = 0
    temps: int = 0
    identifiers: Counter[str] = field(default_factory=Counter)
    scopes: ScopeCounters = field(default_factory=ScopeCounters)

    parent: ParentNode | None = None
    child_index: int = 0
    current_node: Node | None = None
    in_v_once: bool = False
    constant_cache: dict[int, ConstantType] = field(default_factory=dict)
    seen_once: set[int] = field(default_factory=set)
    seen_memo: set[int] = field(default_factory=set)
    on_node_removed: Callable[[], None] = lambda: None

    def __post_init__(self) -> None:
        self.current_node = self.root

    # -- Options -------------------------------------------------------

    @property
    def prefix_identifiers(self) -> bool:
        return self.options.prefix_identifiers

    @property
    def hoist_static(self) -> bool:
        return bool(self.options.hoist_static)

    @property
    def cache_handlers(self) -> bool:
        return self.options.cache_handlers

    @property
    def scope_id(self) -> str | None:
        return self.options.scope_id

    @property
    def expression_plugins(self) -> Sequence[str]:
        return self.options.expression_plugins

    @property
    def on_error(self) -> ErrorHandler:
        return self.options.on_error or default_on_error

    @property
    def on_warn(self) -> ErrorHandler:
        return self.options.on_warn or default_on_warn

    # -- Helpers -------------------------------------------------------

    def helper(self, name: RuntimeHelper) -> RuntimeHelper:
        self.helpers[name] += 1
        return name

    def remove_helper(self, name: RuntimeHelper) -> None:
        count = self.helpers.get(name, 0)
        if count <= 1:
            self.helpers.pop(name, None)
        else:
            self.helpers[name] = count - 1

    def helper_string(self, name: RuntimeHelper) -> str:
        """Name generated code uses to call ``name``."""
        return self.helper(name).alias

    # -- Tree mutation ---------------------------------------------------

    def replace_node(self, node: Node) -> None:
        """Put ``node`` in place of the node being visited."""
        if self.parent is None:
            raise RuntimeError("Cannot replace root node.")
        self.parent.children[self.child_index] = node
        self.current_node = node

    def remove_node(self, node: Node | None = None) -> None:
        """Remove ``node`` (default: the node being visited) from its parent."""
        if self.parent is None:
            raise RuntimeError("Cannot remove root node.")
        siblings = self.parent.children
        if node is None or node is self.current_node:
            removal_index = self.child_index
            self.current_node = None
            self.on_node_removed()
        else:
            removal_index = next(i for i, child in enumerate(siblings) if child is node)
            if removal_index < self.child_index:
                self.child_index -= 1
                self.on_node_removed()
        siblings.pop(removal_index)

    # -- Scopes ----------------------------------------------------------

    def add_identifiers(self, exp: SimpleExpression | str | None) -> None:
        for name in _scope_names(exp):
            self.identifiers[name] += 1

    def remove_identifiers(self, exp: SimpleExpression | str | None) -> None:
        for name in _scope_names(exp):
            self.identifiers[name] -= 1
            if self.identifiers[name] <= 0:
                del self.identifiers[name]

    def is_local(self, name: str) -> bool:
        return self.identifiers.get(name, 0) > 0

    # -- Hoisting and caching --------------------------------------------

    def hoist(self, exp: Any) -> SimpleExpression:
        """Lift ``exp`` out of ``render``; returns the reference that replaces it."""
        if isinstance(exp, str):
            exp = SimpleExpression(content=exp)
        self.hoists.append(exp)
        return SimpleExpression(
            content=f"_hoisted_{len(self.hoists)}",
            is_static=False,
            const_type=ConstantType.CAN_HOIST,
            loc=exp.loc,
        )

    def cache(self, exp: Any, is_vnode: bool = False) -> CacheExpression:
        index = self.cached
        self.cached += 1
        return CacheExpression(index=index, value=exp, is_vnode=is_vnode, loc=getattr(exp, "loc", LOC_STUB))


def _scope_names(exp: SimpleExpression | str | None) -> list[str]:
    if exp is None:
        return []
    if isinstance(exp, str):
        return [exp]
    if exp.identifiers:
        return list(exp.identifiers)
    return [exp.content] if exp.content.isidentifier() else []


def create_transform_context(
    root: Root,
    options: CompilerOptions,
    *,
    node_transforms: Sequence[NodeTransform] = (),
    directive_transforms: Mapping[str, DirectiveTransform] | None = None,
    flags: BuildFlags | None = None,
) -> TransformContext:
    return TransformContext(
        root=root,
        options=options,
        flags=flags or DEFAULT_FLAGS,
        node_transforms=list(node_transforms),
        directive_transforms=dict(directive_transforms or {}),
    )


def transform(
    root: Root,
    options: CompilerOptions | None = None,
    *,
    node_transforms: Sequence[NodeTransform] = (),
    directive_transforms: Mapping[str, DirectiveTransform] | None = None,
    flags: BuildFlags | None = None,
) -> None:
    """Transform ``root`` in place.

    Args:
        root: Parsed template.
        options: Effective compiler options.
        node_transforms: Node transforms, applied in order.
        directive_transforms: Directive transforms by directive name.
        flags: Build flags.
    """
    context = create_transform_context(
        root,
        options or CompilerOptions(),
        node_transforms=node_transforms,
        directive_transforms=directive_transforms,
        flags=flags,
    )
    traverse_node(root, context)
    if context.hoist_static:
        hoist_static(root, context)
    create_root_codegen(root, context)

    root.helpers = set(context.helpers)
    root.components = set(context.components)
    root.directives = set(context.directives)
    root.filters = set(context.filters)
    root.hoists = context.hoists
    root.temps = context.temps
    root.cached = context.cached
    root.transformed = True


def _is_single_element_root(root: Root, child: Node) -> bool:
    return len(root.children) == 1 and isinstance(child, Element) and not is_slot_outlet(child)


def create_root_codegen(root: Root, context: TransformContext) -> None:
    children = root.children
    if len(children) == 1:
        child = children[0]
        if _is_single_element_root(root, child) and child.codegen_node is not None:
            codegen_node = child.codegen_node
            if isinstance(codegen_node, VNodeCall):
                make_block(codegen_node, context)
            root.codegen_node = codegen_node
        else:
            # v-if / v-for / text / slot outlet: generated from the node itself
            root.codegen_node = child
    elif len(children) > 1:
        patch_flag = PatchFlags.STABLE_FRAGMENT
        if context.flags.dev and len([c for c in children if not isinstance(c, Comment)]) == 1:
            patch_flag |= PatchFlags.DEV_ROOT_FRAGMENT
        root.codegen_node = create_vnode_call(
            context,
            context.helper(RuntimeHelper.FRAGMENT),
            None,
            root.children,
            int(patch_flag),
            None,
            None,
            is_block=True,
            loc=root.loc,
        )


def traverse_children(parent: ParentNode, context: TransformContext) -> None:
    i = 0

    def node_removed() -> None:
        nonlocal i
        i -= 1

    while i < len(parent.children):
        child = parent.children[i]
        context.parent = parent
        context.child_index = i
        context.on_node_removed = node_removed
        traverse_node(child, context)
        i += 1


def traverse_node(node: Node, context: TransformContext) -> None:
    context.current_node = node
    exit_fns: list[ExitFn] = []
    for node_transform in context.node_transforms:
        on_exit = node_transform(node, context)
        if on_exit:
            if isinstance(on_exit, list):
                exit_fns.extend(on_exit)
            else:
                exit_fns.append(on_exit)
        if context.current_node is None:
            # removed
            return
        # may have been replaced
        node = context.current_node

    if isinstance(node, Comment):
        context.helper(RuntimeHelper.CREATE_COMMENT)
    elif isinstance(node, Interpolation):
        context.helper(RuntimeHelper.TO_DISPLAY_STRING)
    elif isinstance(node, If):
        for branch in node.branches:
            traverse_node(branch, context)
    elif isinstance(node, (IfBranch, For, Element, Root)):
        traverse_children(node, context)

    context.current_node = node
    for exit_fn in reversed(exit_fns):
        exit_fn()


StructuralDirectiveFn = Callable[[Element, Directive, TransformContext], "ExitFn | None"]


def create_structural_directive_transform(
    name: str | re.Pattern[str],
    fn: StructuralDirectiveFn,
) -> NodeTransform:
    """Node transform that removes matching directives and hands each to ``fn``.

    Structural directives on ``<template v-slot>`` are left in place; slot
    building handles them.
    """
    if isinstance(name, str):
        matches: Callable[[str], object] = lambda n: n == name
    else:
        matches = name.fullmatch

    def structural_transform(node: Node, context: TransformContext) -> list[ExitFn] | None:
        if not isinstance(node, Element):
            return None
        if node.tag_type == ElementType.TEMPLATE and any(is_v_slot(p) for p in node.props):
            return None
        exit_fns: list[ExitFn] = []
        props = node.props
        i = 0
        while i < len(props):
            prop = props[i]
            if isinstance(prop, Directive) and matches(prop.name):
                # Remove first so fn cannot see (and re-apply) it
                props.pop(i)
                i -= 1
                on_exit = fn(node, prop, context)
                if on_exit:
                    exit_fns.append(on_exit)
            i += 1
        return exit_fns

    return structural_transform
