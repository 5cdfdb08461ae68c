"""v-model: two-way binding.

``v-model="form.name"`` expands to a value prop plus an update handler::

    {"model_value": _ctx.form.name,
     "on_update:model_value": lambda _value: _ctx.form.__setattr__('name', _value)}

With an argument (``v-model:title="t"``) the names become ``title`` and
``on_update:title``. The target must be assignable: a name, an attribute or a
subscript. Plain names assign onto the render context.
"""

from __future__ import annotations

import ast
from typing import TYPE_CHECKING, Any

from kiln.compiler.expressions import is_member_expression, is_simple_identifier, parse_expression
from kiln.compiler.options import DirectiveTransformResult
from kiln.compiler.utils import code_expression, has_scope_ref, is_static_exp, static_expression
from kiln.environment.exceptions import ErrorCode, create_compiler_error
from kiln.nodes import (
    CompoundExpression,
    ConstantType,
    Directive,
    Element,
    ElementType,
    Property,
    SimpleExpression,
)

if TYPE_CHECKING:
    from kiln.compiler.transform import TransformContext

MODEL_VALUE = "model_value"
UPDATE_PREFIX = "on_update:"
VALUE_PARAM = "_value"


def transform_model(directive: Directive, node: Element, context: TransformContext) -> DirectiveTransformResult:
    exp, arg = directive.exp, directive.arg
    if exp is None:
        context.on_error(create_compiler_error(ErrorCode.V_MODEL_NO_EXPRESSION, directive.loc))
        return DirectiveTransformResult()

    content = exp.content if isinstance(exp, SimpleExpression) else exp.loc.source
    plugins = context.expression_plugins
    if not content.strip() or not is_member_expression(content, plugins):
        context.on_error(create_compiler_error(ErrorCode.V_MODEL_MALFORMED_EXPRESSION, exp.loc))
        return DirectiveTransformResult()

    if context.prefix_identifiers and is_simple_identifier(content) and context.is_local(content.strip()):
        context.on_error(create_compiler_error(ErrorCode.V_MODEL_ON_SCOPE_VARIABLE, exp.loc))
        return DirectiveTransformResult()

    prop_name: Any = arg if arg is not None else static_expression(MODEL_VALUE)
    event_name: Any
    if arg is None:
        event_name = static_expression(UPDATE_PREFIX + MODEL_VALUE)
    elif is_static_exp(arg):
        event_name = static_expression(UPDATE_PREFIX + arg.content)
    else:
        event_name = CompoundExpression(children=[f"{UPDATE_PREFIX!r} + ", arg])
    event_name.is_handler_key = True

    props = [
        Property(key=prop_name, value=exp),
        Property(key=event_name, value=code_expression(build_setter(content, plugins), loc=exp.loc)),
    ]

    if (
        context.prefix_identifiers
        and not context.in_v_once
        and context.cache_handlers
        and not has_scope_ref(exp, context.identifiers)
    ):
        props[1].value = context.cache(props[1].value)

    if directive.modifiers and node.tag_type == ElementType.COMPONENT:
        modifiers = ", ".join(f"{m!r}: True" for m in directive.modifiers)
        if arg is None:
            modifiers_key: Any = static_expression("model_modifiers")
        elif is_static_exp(arg):
            modifiers_key = static_expression(f"{arg.content}_modifiers")
        else:
            modifiers_key = CompoundExpression(children=[arg, " + '_modifiers'"])
        props.append(
            Property(
                key=modifiers_key,
                value=code_expression(f"{{{modifiers}}}", ConstantType.CAN_HOIST, directive.loc),
            )
        )
    return DirectiveTransformResult(props=props)


def build_setter(target: str, plugins: Any = ()) -> str:
    """Source of a one-argument lambda assigning its argument to ``target``.

    Raises:
        ValueError: If ``target`` is not a name, attribute or subscript.
    """
    node = parse_expression(target, plugins)
    value = ast.Name(id=VALUE_PARAM, ctx=ast.Load())
    if isinstance(node, ast.Name):
        call = _call(_method(ast.Name(id="_ctx", ctx=ast.Load()), "__setattr__"), ast.Constant(node.id), value)
    elif isinstance(node, ast.Attribute):
        call = _call(_method(node.value, "__setattr__"), ast.Constant(node.attr), value)
    elif isinstance(node, ast.Subscript):
        key = node.slice
        if isinstance(key, ast.Slice):
            bounds = [part if part is not None else ast.Constant(None) for part in (key.lower, key.upper, key.step)]
            key = _call(ast.Name(id="slice", ctx=ast.Load()), *bounds)
        call = _call(_method(node.value, "__setitem__"), key, value)
    else:
        raise ValueError(f"Not an assignable expression: {target!r}")
    setter = ast.Lambda(
        args=ast.arguments(posonlyargs=[], args=[ast.arg(arg=VALUE_PARAM)], kwonlyargs=[], kw_defaults=[], defaults=[]),
        body=call,
    )
    return ast.unparse(ast.fix_missing_locations(setter))


def _call(func: ast.expr, *args: ast.expr) -> ast.Call:
    return ast.Call(func=func, args=list(args), keywords=[])


def _method(obj: ast.expr, name: str) -> ast.Attribute:
    return ast.Attribute(value=obj, attr=name, ctx=ast.Load())
