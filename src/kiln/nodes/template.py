"""Template nodes: what the parser produces and the transforms lower."""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Any, TypeAlias

from kiln.nodes.base import Node

if TYPE_CHECKING:
    from kiln.compiler.runtime_helpers import RuntimeHelper


class ElementType(IntEnum):
    """What an element tag resolves to."""

    ELEMENT = 0
    COMPONENT = 1
    SLOT = 2
    TEMPLATE = 3


class Namespace(IntEnum):
    HTML = 0
    SVG = 1
    MATH_ML = 2


class ConstantType(IntEnum):
    """How constant an expression or subtree is, weakest first.

    Combining two levels keeps the lower one.
    """

    NOT_CONSTANT = 0
    CAN_SKIP_PATCH = 1
    CAN_HOIST = 2
    CAN_STRINGIFY = 3


@dataclass(slots=True, kw_only=True)
class SimpleExpression(Node):
    """An expression held as Python source text.

    Attributes:
        content: Expression source (or a literal string when ``is_static``).
        is_static: True for literal values such as static directive arguments.
        const_type: Constant level computed by expression analysis.
        identifiers: Context names referenced (filled by the expression pass).
        is_handler_key: True for generated ``on_<event>`` keys.
        parsed: Parsed form, or ``False`` once parsing has failed.
    """

    content: str
    is_static: bool = False
    const_type: ConstantType = ConstantType.NOT_CONSTANT
    identifiers: list[str] | None = None
    is_handler_key: bool = False
    parsed: ast.expr | bool | None = None


@dataclass(slots=True, kw_only=True)
class CompoundExpression(Node):
    """An expression built from parts: nodes, raw code strings and helper symbols.

    Parts concatenate in order to form one Python expression.
    """

    children: list[Any] = field(default_factory=list)
    identifiers: list[str] | None = None
    is_handler_key: bool = False


Expression: TypeAlias = SimpleExpression | CompoundExpression


@dataclass(slots=True, kw_only=True)
class Text(Node):
    content: str


@dataclass(slots=True, kw_only=True)
class Comment(Node):
    content: str


@dataclass(slots=True, kw_only=True)
class Interpolation(Node):
    """Text interpolation: {{ expr }}"""

    content: Expression


@dataclass(slots=True, kw_only=True)
class Attribute(Node):
    """Static attribute: name="value" """

    name: str
    value: Text | None = None


@dataclass(slots=True, kw_only=True)
class ForParseResult:
    """Parsed pieces of a v-for expression: (value, key, index) in source."""

    source: SimpleExpression
    value: SimpleExpression | None = None
    key: SimpleExpression | None = None
    index: SimpleExpression | None = None
    finalized: bool = False


@dataclass(slots=True, kw_only=True)
class Directive(Node):
    """Directive attribute: v-name:arg.modifier="exp" and its shorthands."""

    name: str
    raw_name: str | None = None
    exp: Expression | None = None
    arg: Expression | None = None
    modifiers: list[str] = field(default_factory=list)
    for_parse_result: ForParseResult | None = None


@dataclass(slots=True, kw_only=True)
class Element(Node):
    """Element, component, slot outlet or <template> wrapper."""

    tag: str
    tag_type: ElementType = ElementType.ELEMENT
    ns: Namespace = Namespace.HTML
    props: list[Attribute | Directive] = field(default_factory=list)
    children: list[Node] = field(default_factory=list)
    is_self_closing: bool = False
    codegen_node: Node | None = None


@dataclass(slots=True, kw_only=True)
class IfBranch(Node):
    condition: Expression | None
    children: list[Node] = field(default_factory=list)
    user_key: Attribute | Directive | None = None
    is_template_if: bool = False


@dataclass(slots=True, kw_only=True)
class If(Node):
    """Lowered v-if / v-else-if / v-else chain."""

    branches: list[IfBranch] = field(default_factory=list)
    codegen_node: Node | None = None


@dataclass(slots=True, kw_only=True)
class For(Node):
    """Lowered v-for list rendering."""

    source: Expression
    value_alias: Expression | None
    key_alias: Expression | None
    object_index_alias: Expression | None
    parse_result: ForParseResult
    children: list[Node] = field(default_factory=list)
    codegen_node: Node | None = None


@dataclass(slots=True, kw_only=True)
class TextCall(Node):
    """Text run turned into a text vnode inside mixed children."""

    content: Text | Interpolation | CompoundExpression
    codegen_node: Node


@dataclass(slots=True, kw_only=True)
class Root(Node):
    """AST root. Transform writes compile metadata onto it for codegen.

    Attributes:
        children: Top-level nodes.
        helpers: Runtime helpers referenced by generated code.
        components: Component names needing runtime resolution.
        directives: Custom directive names needing runtime resolution.
        filters: Legacy filter names (compatibility build).
        hoists: Hoisted constant codegen nodes; index n is ``_hoisted_{n+1}``.
        cached: Number of ``_cache`` slots used.
        temps: Number of temporaries generated code declares.
        codegen_node: Node returned by ``render``.
        transformed: Set once the transform pass has run.
        source: Template source the AST was parsed from.
    """

    children: list[Node] = field(default_factory=list)
    helpers: set[RuntimeHelper] = field(default_factory=set)
    components: set[str] = field(default_factory=set)
    directives: set[str] = field(default_factory=set)
    filters: set[str] = field(default_factory=set)
    hoists: list[Node | None] = field(default_factory=list)
    cached: int = 0
    temps: int = 0
    codegen_node: Node | None = None
    transformed: bool = False
    source: str = ""
