"""Codegen nodes: the output-shaped tree transforms attach to template nodes.

These describe Python expressions rather than template structure. The code
generator turns each one into an ``ast.expr``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from kiln.nodes.base import Node
from kiln.nodes.template import SimpleExpression

if TYPE_CHECKING:
    from kiln.compiler.runtime_helpers import RuntimeHelper


@dataclass(slots=True, kw_only=True)
class VNodeCall(Node):
    """Virtual node creation.

    Attributes:
        tag: Literal tag name (``str``), a helper symbol (fragment, teleport)
            or an expression node (resolved component).
        props: Props object, merge call, or hoisted reference.
        children: Child list, a single text-like node, or a call expression.
        patch_flag: Patch flag bits, or None when the node is fully static.
        dynamic_props: Names of props that can change between renders.
        directives: Runtime directives applied with ``with_directives``.
        is_block: Create a block (tracks dynamic descendants).
        disable_tracking: Block created for a list whose children are not tracked.
    """

    tag: str | RuntimeHelper | Node
    props: Node | None = None
    children: Any = None
    patch_flag: int | None = None
    dynamic_props: SimpleExpression | None = None
    directives: ArrayExpression | None = None
    is_block: bool = False
    disable_tracking: bool = False
    is_component: bool = False


@dataclass(slots=True, kw_only=True)
class CallExpression(Node):
    """Call ``callee(*arguments)``. Arguments may be nodes, code strings or lists."""

    callee: str | RuntimeHelper
    arguments: list[Any] = field(default_factory=list)


@dataclass(slots=True, kw_only=True)
class Property(Node):
    key: Node
    value: Any


@dataclass(slots=True, kw_only=True)
class ObjectExpression(Node):
    """Dict literal built from properties, in insertion order."""

    properties: list[Property] = field(default_factory=list)


@dataclass(slots=True, kw_only=True)
class ArrayExpression(Node):
    elements: list[Any] = field(default_factory=list)


@dataclass(slots=True, kw_only=True)
class FunctionExpression(Node):
    """Lambda: ``lambda <params>: <returns>``.

    Attributes:
        params: Parameter list (expression nodes or names), a single
            parameter, or None for a zero-argument lambda.
        returns: Returned node, or a list of child nodes returned as a list.
        is_slot: Marks slot functions (wrapped with ``with_ctx``).
        rest: Name of a trailing ``*rest`` parameter absorbing extra arguments.
    """

    params: Any = None
    returns: Any = None
    is_slot: bool = False
    rest: str | None = None


@dataclass(slots=True, kw_only=True)
class ConditionalExpression(Node):
    """``consequent if test else alternate``"""

    test: Node
    consequent: Any
    alternate: Any


@dataclass(slots=True, kw_only=True)
class CacheExpression(Node):
    """Value stored in ``_cache[index]`` on first evaluation."""

    index: int
    value: Any
    is_vnode: bool = False
