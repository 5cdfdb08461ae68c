"""v-on / ``@event`` handlers.

``@click="save"`` passes the method through as ``on_click``; an inline
expression such as ``@click="save(item)"`` is wrapped into
``lambda *args: save(item)``, with ``args`` holding the event arguments.
Modifiers wrap the handler in ``_with_modifiers(handler, [...])``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from kiln.compiler.expressions import is_function_expression, is_member_expression, process_expression
from kiln.compiler.options import DirectiveTransformResult
from kiln.compiler.runtime_helpers import RuntimeHelper
from kiln.compiler.utils import code_expression, has_scope_ref, static_expression
from kiln.environment.exceptions import ErrorCode, create_compiler_error
from kiln.nodes import (
    ArrayExpression,
    CallExpression,
    CompoundExpression,
    ConstantType,
    Directive,
    Element,
    ElementType,
    Property,
    SimpleExpression,
)
from kiln.utils.strings import camelize, to_handler_key

if TYPE_CHECKING:
    from kiln.compiler.transform import TransformContext

# Name bound to the event arguments inside inline handlers
EVENT_ARGS = "args"


def transform_on(directive: Directive, node: Element, context: TransformContext) -> DirectiveTransformResult:
    arg, modifiers, loc = directive.arg, directive.modifiers, directive.loc
    if directive.exp is None and not modifiers:
        context.on_error(create_compiler_error(ErrorCode.V_ON_NO_EXPRESSION, loc))

    event_name: Any
    if isinstance(arg, SimpleExpression) and arg.is_static:
        raw_name = arg.content
        if raw_name.startswith("vue:"):
            raw_name = f"vnode-{raw_name[4:]}"
        if node.tag_type != ElementType.ELEMENT or raw_name.startswith("vnode") or not any(c.isupper() for c in raw_name):
            event_name = static_expression(to_handler_key(camelize(raw_name)), arg.loc)
        else:
            # keep the case of custom element events
            event_name = static_expression(to_handler_key(raw_name), arg.loc)
    elif isinstance(arg, SimpleExpression):
        event_name = CompoundExpression(
            children=[f"{context.helper_string(RuntimeHelper.TO_HANDLER_KEY)}(", arg, ")"], loc=arg.loc
        )
    else:
        assert isinstance(arg, CompoundExpression)
        arg.children = [f"{context.helper_string(RuntimeHelper.TO_HANDLER_KEY)}(", *arg.children, ")"]
        event_name = arg

    exp: Any = directive.exp
    if isinstance(exp, SimpleExpression) and not exp.content.strip():
        exp = None
    should_cache = context.cache_handlers and exp is None and not context.in_v_once

    if exp is not None:
        plugins = context.expression_plugins
        is_member_exp = is_member_expression(exp.content, plugins)
        is_inline_statement = not (is_member_exp or is_function_expression(exp.content, plugins))
        if context.prefix_identifiers:
            if is_inline_statement:
                context.add_identifiers(EVENT_ARGS)
            exp = directive.exp = process_expression(exp, context)
            if is_inline_statement:
                context.remove_identifiers(EVENT_ARGS)
            should_cache = (
                context.cache_handlers
                and not context.in_v_once
                and not (isinstance(exp, SimpleExpression) and exp.const_type > ConstantType.NOT_CONSTANT)
                # components may inspect the handler itself
                and not (is_member_exp and node.tag_type == ElementType.COMPONENT)
                and not has_scope_ref(exp, context.identifiers)
            )
            if should_cache and is_member_exp:
                # call through so the cached handler always sees the current method
                exp.content = f"{exp.content}(*{EVENT_ARGS})"
        elif context.flags.browser and context.flags.dev:
            exp = directive.exp = process_expression(exp, context)

        if is_inline_statement or (should_cache and is_member_exp):
            exp = CompoundExpression(children=[f"lambda *{EVENT_ARGS}: (", exp, ")"], loc=exp.loc)

    handler: Any = exp if exp is not None else code_expression(f"lambda *{EVENT_ARGS}: None", loc=loc)
    if modifiers:
        handler = CallExpression(
            callee=context.helper(RuntimeHelper.WITH_MODIFIERS),
            arguments=[handler, ArrayExpression(elements=[repr(m) for m in modifiers])],
            loc=loc,
        )
    prop = Property(key=event_name, value=handler, loc=loc)
    if should_cache:
        prop.value = context.cache(prop.value)
    prop.key.is_handler_key = True
    return DirectiveTransformResult(props=[prop])
