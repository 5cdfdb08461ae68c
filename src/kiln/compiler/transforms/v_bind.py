"""v-bind / ``:prop`` bindings."""

from __future__ import annotations

from typing import TYPE_CHECKING

from kiln.compiler.options import DirectiveTransformResult
from kiln.compiler.runtime_helpers import RuntimeHelper
from kiln.compiler.utils import static_expression
from kiln.environment.exceptions import ErrorCode, create_compiler_error
from kiln.nodes import CompoundExpression, Directive, Element, Property, SimpleExpression
from kiln.utils.strings import camelize

if TYPE_CHECKING:
    from kiln.compiler.transform import TransformContext


def transform_bind(directive: Directive, node: Element, context: TransformContext) -> DirectiveTransformResult:
    exp, modifiers, loc = directive.exp, directive.modifiers, directive.loc
    arg = directive.arg
    assert arg is not None

    # dynamic names that evaluate to None bind as ''
    if isinstance(arg, CompoundExpression):
        arg.children = ["(", *arg.children, ") or ''"]
    elif not arg.is_static:
        arg.content = f"({arg.content}) or ''"

    if "camel" in modifiers:
        camelize_helper = context.helper_string(RuntimeHelper.CAMELIZE)
        if isinstance(arg, SimpleExpression):
            if arg.is_static:
                arg.content = camelize(arg.content)
            else:
                arg.content = f"{camelize_helper}({arg.content})"
        else:
            arg.children = [f"{camelize_helper}(", *arg.children, ")"]

    if "prop" in modifiers:
        _inject_prefix(arg, ".")
    if "attr" in modifiers:
        _inject_prefix(arg, "^")

    if exp is None or (isinstance(exp, SimpleExpression) and not exp.content.strip()):
        context.on_error(create_compiler_error(ErrorCode.V_BIND_NO_EXPRESSION, loc))
        return DirectiveTransformResult(props=[Property(key=arg, value=static_expression("", loc), loc=loc)])
    return DirectiveTransformResult(props=[Property(key=arg, value=exp, loc=loc)])


def _inject_prefix(arg: SimpleExpression | CompoundExpression, prefix: str) -> None:
    if isinstance(arg, SimpleExpression):
        if arg.is_static:
            arg.content = prefix + arg.content
        else:
            arg.content = f"{prefix!r} + {arg.content}"
    else:
        arg.children = [f"{prefix!r} + ", *arg.children]
