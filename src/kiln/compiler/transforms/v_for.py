"""v-for list rendering.

``<li v-for="(item, index) in items" :key="item.id">`` lowers to a `For` node
whose codegen node is a fragment block around::

    _render_list(items, lambda item, index, *_rest: <li block>)

Aliases follow the ``value, key, index`` order: sequences pass
``(item, position)``, mappings pass ``(value, key, position)``.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from kiln.compiler.expressions import process_expression
from kiln.compiler.runtime_helpers import RuntimeHelper, get_vnode_block_helper, get_vnode_helper
from kiln.compiler.transform import create_structural_directive_transform
from kiln.compiler.utils import (
    code_expression,
    create_vnode_call,
    find_dir,
    find_prop,
    inject_prop,
    is_slot_outlet,
    is_template_node,
    static_expression,
)
from kiln.environment.exceptions import ErrorCode, create_compiler_error
from kiln.nodes import (
    Attribute,
    CallExpression,
    ConstantType,
    Directive,
    Element,
    ElementType,
    For,
    ForParseResult,
    FunctionExpression,
    ObjectExpression,
    Position,
    Property,
    SimpleExpression,
    SourceLocation,
    VNodeCall,
)
from kiln.utils.constants import PatchFlags

if TYPE_CHECKING:
    from kiln.compiler.options import ExitFn
    from kiln.compiler.transform import TransformContext

_FOR_ALIAS = re.compile(r"([\s\S]*?)\s+(?:in|of)\s+(\S[\s\S]*)")
_FOR_ITERATOR = re.compile(r",([^,}\]]*)(?:,([^,}\]]*))?$")
_STRIP_PARENS = re.compile(r"^\(|\)$")

# Extra positional arguments the runtime passes and the aliases do not name
LIST_REST_PARAM = "_rest"


def _process(node: Element, directive: Directive, context: TransformContext) -> ExitFn | None:
    return process_for(node, directive, context, _for_codegen)


transform_for = create_structural_directive_transform("for", _process)


def process_for(
    node: Element,
    directive: Directive,
    context: TransformContext,
    process_codegen: Any = None,
) -> ExitFn | None:
    if directive.exp is None:
        context.on_error(create_compiler_error(ErrorCode.V_FOR_NO_EXPRESSION, directive.loc))
        return None

    parse_result = get_for_parse_result(directive)
    if parse_result is None:
        context.on_error(create_compiler_error(ErrorCode.V_FOR_MALFORMED_EXPRESSION, directive.loc))
        return None

    finalize_for_parse_result(parse_result, context)

    for_node = For(
        source=parse_result.source,
        value_alias=parse_result.value,
        key_alias=parse_result.key,
        object_index_alias=parse_result.index,
        parse_result=parse_result,
        children=node.children if is_template_node(node) else [node],
        loc=directive.loc,
    )
    context.replace_node(for_node)

    context.scopes.v_for += 1
    aliases = (parse_result.value, parse_result.key, parse_result.index)
    if context.prefix_identifiers:
        for alias in aliases:
            context.add_identifiers(alias)

    on_exit = process_codegen(for_node, node, context) if process_codegen else None

    def exit_for() -> None:
        context.scopes.v_for -= 1
        if context.prefix_identifiers:
            for alias in aliases:
                context.remove_identifiers(alias)
        if on_exit:
            on_exit()

    return exit_for


def get_for_parse_result(directive: Directive) -> ForParseResult | None:
    """Split a v-for expression, caching the result on the directive."""
    if directive.for_parse_result is None and isinstance(directive.exp, SimpleExpression):
        directive.for_parse_result = parse_for_expression(directive.exp)
    return directive.for_parse_result


def parse_for_expression(exp: SimpleExpression) -> ForParseResult | None:
    """Split ``alias in source`` into its parts.

    Returns None when the expression has no ``in``/``of`` separator.
    """
    content = exp.content
    match = _FOR_ALIAS.match(content)
    if match is None:
        return None
    lhs, rhs = match.group(1), match.group(2)

    def sub_expression(text: str, offset: int) -> SimpleExpression:
        start = _shift(exp.loc.start, content, offset)
        end = _shift(exp.loc.start, content, offset + len(text))
        return SimpleExpression(
            content=text,
            is_static=False,
            loc=SourceLocation(start, end, text),
        )

    source = sub_expression(rhs.strip(), content.index(rhs, len(lhs)))
    result = ForParseResult(source=source)

    value_content = _STRIP_PARENS.sub("", lhs.strip()).strip()
    lhs_offset = content.index(lhs.strip()) if lhs.strip() else 0
    iterator = _FOR_ITERATOR.search(value_content)
    if iterator is not None:
        key_content = iterator.group(1).strip()
        index_content = (iterator.group(2) or "").strip()
        value_content = value_content[: iterator.start()].strip()
        if key_content:
            result.key = sub_expression(key_content, content.find(key_content, lhs_offset + len(value_content)))
        if index_content:
            start = lhs_offset + len(value_content) + len(key_content)
            result.index = sub_expression(index_content, content.find(index_content, start))
    if value_content:
        result.value = sub_expression(value_content, content.find(value_content, lhs_offset))
    return result


def _shift(start: Position, text: str, offset: int) -> Position:
    before = text[:offset]
    newlines = before.count("\n")
    if newlines:
        return Position(start.offset + offset, start.line + newlines, offset - before.rfind("\n") - 1)
    return Position(start.offset + offset, start.line, start.column + offset)


def finalize_for_parse_result(result: ForParseResult, context: TransformContext) -> None:
    """Process the source expression and aliases once per directive."""
    if result.finalized:
        return
    result.source = process_expression(result.source, context)
    for attr in ("key", "index", "value"):
        alias = getattr(result, attr)
        if alias is not None:
            setattr(result, attr, process_expression(alias, context, as_params=True))
    result.finalized = True


def create_for_loop_params(result: ForParseResult, memo_args: list[Any] | None = None) -> list[Any]:
    """Lambda parameters for a list item: aliases in order, gaps filled with ``_``."""
    args: list[Any] = [result.value, result.key, result.index, *(memo_args or [])]
    while args and args[-1] is None:
        args.pop()
    return [arg if arg is not None else code_expression("_" * (i + 1)) for i, arg in enumerate(args)]


def _for_codegen(for_node: For, node: Element, context: TransformContext) -> ExitFn:
    render_exp = CallExpression(callee=context.helper(RuntimeHelper.RENDER_LIST), arguments=[for_node.source])
    is_template = is_template_node(node)
    memo = find_dir(node, "memo")
    key_prop = find_prop(node, "key", allow_empty=True)
    key_exp: Any = None
    if isinstance(key_prop, Attribute):
        key_exp = static_expression(key_prop.value.content if key_prop.value else "")
    elif isinstance(key_prop, Directive):
        key_exp = key_prop.exp or key_prop.arg
    key_property = Property(key=static_expression("key"), value=key_exp) if key_exp is not None else None

    if is_template and context.prefix_identifiers:
        # <template v-for> props are not visited by the expression transform
        if memo is not None and isinstance(memo.exp, SimpleExpression):
            memo.exp = process_expression(memo.exp, context)
        if key_property is not None and isinstance(key_prop, Directive) and isinstance(key_exp, SimpleExpression):
            key_property.value = key_prop.exp = process_expression(key_exp, context)

    source = for_node.source
    is_stable = isinstance(source, SimpleExpression) and source.const_type > ConstantType.NOT_CONSTANT
    if is_stable:
        fragment_flag = PatchFlags.STABLE_FRAGMENT
    elif key_prop is not None:
        fragment_flag = PatchFlags.KEYED_FRAGMENT
    else:
        fragment_flag = PatchFlags.UNKEYED_FRAGMENT

    for_node.codegen_node = create_vnode_call(
        context,
        context.helper(RuntimeHelper.FRAGMENT),
        None,
        render_exp,
        int(fragment_flag),
        None,
        None,
        is_block=True,
        disable_tracking=not is_stable,
        loc=node.loc,
    )

    def on_exit() -> None:
        children = for_node.children
        needs_fragment = len(children) != 1 or not isinstance(children[0], Element)
        slot_outlet: Element | None = None
        if is_slot_outlet(node):
            slot_outlet = node
        elif is_template and len(node.children) == 1 and is_slot_outlet(node.children[0]):
            slot_outlet = node.children[0]  # type: ignore[assignment]

        child_block: Any
        if slot_outlet is not None:
            child_block = slot_outlet.codegen_node
            if is_template and key_property is not None:
                inject_prop(child_block, key_property, context)
        elif needs_fragment:
            child_block = create_vnode_call(
                context,
                context.helper(RuntimeHelper.FRAGMENT),
                ObjectExpression(properties=[key_property]) if key_property else None,
                node.children,
                int(PatchFlags.STABLE_FRAGMENT),
                None,
                None,
                is_block=True,
                loc=node.loc,
            )
        else:
            child = children[0]
            assert isinstance(child, Element)
            child_block = child.codegen_node
            if is_template and key_property is not None and isinstance(child_block, VNodeCall):
                inject_prop(child_block, key_property, context)
            if isinstance(child_block, VNodeCall):
                wants_block = not is_stable
                if child_block.is_block != wants_block:
                    if child_block.is_block:
                        context.remove_helper(RuntimeHelper.OPEN_BLOCK)
                        context.remove_helper(get_vnode_block_helper(child_block.is_component))
                    else:
                        context.remove_helper(get_vnode_helper(child_block.is_component))
                child_block.is_block = wants_block
                if wants_block:
                    context.helper(RuntimeHelper.OPEN_BLOCK)
                    context.helper(get_vnode_block_helper(child_block.is_component))
                else:
                    context.helper(get_vnode_helper(child_block.is_component))

        if memo is not None:
            child_block = CallExpression(
                callee=context.helper(RuntimeHelper.WITH_MEMO),
                arguments=[
                    memo.exp,
                    FunctionExpression(params=None, returns=child_block),
                    code_expression("_cache"),
                    code_expression(str(context.cached)),
                    key_exp if key_exp is not None else code_expression("None"),
                ],
            )
            context.cached += 1

        render_exp.arguments.append(
            FunctionExpression(
                params=create_for_loop_params(for_node.parse_result),
                returns=child_block,
                rest=LIST_REST_PARAM,
            )
        )

    return on_exit


def is_for_element(node: Element) -> bool:
    return node.tag_type != ElementType.TEMPLATE and find_dir(node, "for", allow_empty=True) is not None
