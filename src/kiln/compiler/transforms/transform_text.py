"""Merge adjacent text children and pre-create text vnodes.

``Hello {{ name }}!`` becomes one `CompoundExpression`
(``"Hello " + _to_display_string(name) + "!"``). When the parent has other
children as well, every text run is wrapped in ``_create_text_vnode(...)``;
dynamic runs get the ``TEXT`` patch flag.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from kiln.compiler.hoist import get_constant_type
from kiln.compiler.runtime_helpers import RuntimeHelper
from kiln.compiler.utils import is_text
from kiln.nodes import (
    CallExpression,
    CompoundExpression,
    ConstantType,
    Directive,
    Element,
    ElementType,
    For,
    IfBranch,
    Node,
    Root,
    Text,
    TextCall,
)
from kiln.utils.constants import PatchFlags

if TYPE_CHECKING:
    from kiln.compiler.options import ExitFn
    from kiln.compiler.transform import TransformContext


def transform_text(node: Node, context: TransformContext) -> ExitFn | None:
    if not isinstance(node, (Root, Element, For, IfBranch)):
        return None

    def on_exit() -> None:
        children = node.children
        has_text = _merge_adjacent(children)
        if not has_text:
            return
        # A plain element with one text child sets its text content directly
        if len(children) == 1 and (
            isinstance(node, Root)
            or (
                isinstance(node, Element)
                and node.tag_type == ElementType.ELEMENT
                and not any(
                    isinstance(p, Directive) and p.name not in context.directive_transforms for p in node.props
                )
            )
        ):
            return
        for i, child in enumerate(children):
            if is_text(child) or isinstance(child, CompoundExpression):
                call_args: list[Any] = []
                if not (isinstance(child, Text) and child.content == " "):
                    call_args.append(child)
                if get_constant_type(child, context) == ConstantType.NOT_CONSTANT:
                    call_args.append(str(int(PatchFlags.TEXT)))
                children[i] = TextCall(
                    content=child,  # type: ignore[arg-type]
                    codegen_node=CallExpression(callee=context.helper(RuntimeHelper.CREATE_TEXT), arguments=call_args),
                    loc=child.loc,
                )

    return on_exit


def _merge_adjacent(children: list[Node]) -> bool:
    has_text = False
    container: CompoundExpression | None = None
    i = 0
    while i < len(children):
        child = children[i]
        if is_text(child):
            has_text = True
            j = i + 1
            while j < len(children):
                nxt = children[j]
                if not is_text(nxt):
                    container = None
                    break
                if container is None:
                    container = CompoundExpression(children=[child], loc=child.loc)
                    children[i] = container
                container.children.extend([" + ", nxt])
                children.pop(j)
        i += 1
        container = None
    return has_text
