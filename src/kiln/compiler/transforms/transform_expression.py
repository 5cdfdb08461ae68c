"""Expression pass: runs `process_expression` over interpolations and directive
values and arguments.

``v-for`` expressions are handled by the list transform and ``v-on`` values
with an argument by the event transform, which needs the raw handler text.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from kiln.compiler.expressions import process_expression
from kiln.nodes import Directive, Element, Interpolation, Node, SimpleExpression

if TYPE_CHECKING:
    from kiln.compiler.transform import TransformContext


def transform_expression(node: Node, context: TransformContext) -> None:
    if isinstance(node, Interpolation):
        if isinstance(node.content, SimpleExpression):
            node.content = process_expression(node.content, context)
        return
    if not isinstance(node, Element):
        return
    for prop in node.props:
        if not isinstance(prop, Directive) or prop.name == "for":
            continue
        exp, arg = prop.exp, prop.arg
        if isinstance(exp, SimpleExpression) and not (prop.name == "on" and arg is not None):
            prop.exp = process_expression(exp, context, as_params=prop.name == "slot")
        if isinstance(arg, SimpleExpression) and not arg.is_static:
            prop.arg = process_expression(arg, context)
