"""Component slots.

A component's children become a slots dict mapping slot names to slot
functions::

    <List :items="rows">
      <template #item="row">{{ row.name }}</template>
      <p>footer</p>
    </List>

    {"item": _with_ctx(lambda row, **_rest: [...]),
     "default": _with_ctx(lambda **_rest: [...]), "_": 1}

Slot props arrive as keyword arguments, so the ``v-slot`` value is a
parameter list: ``#item="row"`` binds the ``row`` prop and
``#default="**props"`` binds all of them.

Slots under ``v-if``/``v-for`` are collected separately and combined at
runtime with ``create_slots``. The ``"_"`` entry carries the `SlotFlags`.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from kiln.compiler.runtime_helpers import RuntimeHelper
from kiln.compiler.transforms.v_for import (
    LIST_REST_PARAM,
    create_for_loop_params,
    finalize_for_parse_result,
    get_for_parse_result,
)
from kiln.compiler.utils import (
    code_expression,
    find_dir,
    has_scope_ref,
    is_static_exp,
    is_template_node,
    is_v_slot,
    static_expression,
)
from kiln.environment.exceptions import ErrorCode, create_compiler_error
from kiln.nodes import (
    ArrayExpression,
    CallExpression,
    Comment,
    ConditionalExpression,
    Element,
    ElementType,
    For,
    FunctionExpression,
    If,
    IfBranch,
    Node,
    ObjectExpression,
    Property,
    SourceLocation,
    Text,
    TextCall,
)
from kiln.utils.constants import SlotFlags

if TYPE_CHECKING:
    from kiln.compiler.options import ExitFn
    from kiln.compiler.transform import TransformContext

_ELSE = re.compile(r"else(-if)?")


def track_slot_scopes(node: Node, context: TransformContext) -> ExitFn | None:
    """Put slot props in scope while a component or ``<template v-slot>`` is traversed."""
    if not isinstance(node, Element) or node.tag_type not in (ElementType.COMPONENT, ElementType.TEMPLATE):
        return None
    v_slot = find_dir(node, "slot")
    if v_slot is None:
        return None
    slot_props = v_slot.exp
    if context.prefix_identifiers and slot_props is not None:
        context.add_identifiers(slot_props)
    context.scopes.v_slot += 1

    def on_exit() -> None:
        if context.prefix_identifiers and slot_props is not None:
            context.remove_identifiers(slot_props)
        context.scopes.v_slot -= 1

    return on_exit


def track_v_for_slot_scopes(node: Node, context: TransformContext) -> ExitFn | None:
    """Put the aliases of ``<template v-slot v-for>`` in scope.

    The list transform leaves slot templates alone, so their aliases are
    tracked here instead.
    """
    if not is_template_node(node) or not any(is_v_slot(p) for p in node.props):  # type: ignore[attr-defined]
        return None
    assert isinstance(node, Element)
    v_for = find_dir(node, "for")
    if v_for is None:
        return None
    result = get_for_parse_result(v_for)
    if result is None:
        return None
    finalize_for_parse_result(result, context)
    aliases = (result.value, result.key, result.index)
    for alias in aliases:
        context.add_identifiers(alias)

    def on_exit() -> None:
        for alias in aliases:
            context.remove_identifiers(alias)

    return on_exit


def build_client_slot_fn(props: Any, children: list[Node], loc: SourceLocation) -> FunctionExpression:
    return FunctionExpression(
        params=props,
        returns=children,
        is_slot=True,
        rest=LIST_REST_PARAM,
        loc=children[0].loc if children else loc,
    )


def build_slots(node: Element, context: TransformContext) -> tuple[Any, bool]:
    """Build the slots expression for a component.

    Returns:
        (slots expression, whether the slots can change between renders).
    """
    context.helper(RuntimeHelper.WITH_CTX)
    children = node.children
    slots_properties: list[Property] = []
    dynamic_slots: list[Any] = []

    # A slot inside a list or another slot likely reads a scope variable
    has_dynamic_slots = context.scopes.v_slot > 0 or context.scopes.v_for > 0
    if context.prefix_identifiers:
        has_dynamic_slots = has_scope_ref(node, context.identifiers)

    on_component_slot = find_dir(node, "slot", allow_empty=True)
    if on_component_slot is not None:
        arg, exp = on_component_slot.arg, on_component_slot.exp
        if arg is not None and not is_static_exp(arg):
            has_dynamic_slots = True
        slots_properties.append(
            Property(
                key=arg if arg is not None else static_expression("default"),
                value=build_client_slot_fn(exp, children, node.loc),
            )
        )

    has_template_slots = False
    has_named_default_slot = False
    implicit_default_children: list[Node] = []
    seen_slot_names: set[str] = set()

    i = 0
    while i < len(children):
        slot_element = children[i]
        slot_dir = find_dir(slot_element, "slot", allow_empty=True) if is_template_node(slot_element) else None
        if slot_dir is None:
            if not isinstance(slot_element, Comment):
                implicit_default_children.append(slot_element)
            i += 1
            continue
        assert isinstance(slot_element, Element)
        if on_component_slot is not None:
            context.on_error(create_compiler_error(ErrorCode.V_SLOT_MIXED_SLOT_USAGE, slot_dir.loc))
            break

        has_template_slots = True
        slot_name = slot_dir.arg if slot_dir.arg is not None else static_expression("default")
        static_slot_name: str | None = None
        if is_static_exp(slot_name):
            static_slot_name = slot_name.content
        else:
            has_dynamic_slots = True

        slot_function = build_client_slot_fn(slot_dir.exp, slot_element.children, slot_element.loc)

        v_if = find_dir(slot_element, "if")
        v_else = find_dir(slot_element, _ELSE, allow_empty=True)
        v_for = find_dir(slot_element, "for")
        if v_if is not None:
            has_dynamic_slots = True
            dynamic_slots.append(
                ConditionalExpression(
                    test=v_if.exp,
                    consequent=_build_dynamic_slot(slot_name, slot_function),
                    alternate=code_expression("None"),
                )
            )
        elif v_else is not None:
            prev = next((c for c in reversed(children[:i]) if not isinstance(c, Comment)), None)
            if prev is not None and is_template_node(prev) and find_dir(prev, "if") is not None and dynamic_slots:
                children.pop(i)
                conditional = dynamic_slots[-1]
                while isinstance(conditional.alternate, ConditionalExpression):
                    conditional = conditional.alternate
                dynamic_slot = _build_dynamic_slot(slot_name, slot_function)
                if v_else.exp is not None:
                    conditional.alternate = ConditionalExpression(
                        test=v_else.exp, consequent=dynamic_slot, alternate=code_expression("None")
                    )
                else:
                    conditional.alternate = dynamic_slot
                continue
            context.on_error(create_compiler_error(ErrorCode.V_ELSE_NO_ADJACENT_IF, v_else.loc))
        elif v_for is not None:
            has_dynamic_slots = True
            result = get_for_parse_result(v_for)
            if result is not None:
                finalize_for_parse_result(result, context)
                dynamic_slots.append(
                    CallExpression(
                        callee=context.helper(RuntimeHelper.RENDER_LIST),
                        arguments=[
                            result.source,
                            FunctionExpression(
                                params=create_for_loop_params(result),
                                returns=_build_dynamic_slot(slot_name, slot_function),
                                rest=LIST_REST_PARAM,
                            ),
                        ],
                    )
                )
            else:
                context.on_error(create_compiler_error(ErrorCode.V_FOR_MALFORMED_EXPRESSION, v_for.loc))
        else:
            if static_slot_name is not None:
                if static_slot_name in seen_slot_names:
                    context.on_error(create_compiler_error(ErrorCode.V_SLOT_DUPLICATE_SLOT_NAMES, slot_dir.loc))
                    i += 1
                    continue
                seen_slot_names.add(static_slot_name)
                if static_slot_name == "default":
                    has_named_default_slot = True
            slots_properties.append(Property(key=slot_name, value=slot_function))
        i += 1

    if on_component_slot is None:
        if not has_template_slots:
            slots_properties.append(_default_slot(children, node))
        elif implicit_default_children and any(_is_non_whitespace(c) for c in implicit_default_children):
            if has_named_default_slot:
                context.on_error(
                    create_compiler_error(
                        ErrorCode.V_SLOT_EXTRANEOUS_DEFAULT_SLOT_CHILDREN, implicit_default_children[0].loc
                    )
                )
            else:
                slots_properties.append(_default_slot(implicit_default_children, node))

    if has_dynamic_slots:
        slot_flag = SlotFlags.DYNAMIC
    elif has_forwarded_slots(node.children):
        slot_flag = SlotFlags.FORWARDED
    else:
        slot_flag = SlotFlags.STABLE

    slots: Any = ObjectExpression(
        properties=[*slots_properties, Property(key=static_expression("_"), value=code_expression(str(int(slot_flag))))],
        loc=node.loc,
    )
    if dynamic_slots:
        slots = CallExpression(
            callee=context.helper(RuntimeHelper.CREATE_SLOTS),
            arguments=[slots, ArrayExpression(elements=dynamic_slots)],
        )
    return slots, has_dynamic_slots


def _default_slot(children: list[Node], node: Element) -> Property:
    return Property(key=static_expression("default"), value=build_client_slot_fn(None, children, node.loc))


def _build_dynamic_slot(name: Any, fn: FunctionExpression) -> ObjectExpression:
    return ObjectExpression(
        properties=[
            Property(key=static_expression("name"), value=name),
            Property(key=static_expression("fn"), value=fn),
        ]
    )


def has_forwarded_slots(children: list[Any]) -> bool:
    """True when ``children`` contain a ``<slot>`` outlet (passing slots through)."""
    for child in children:
        if isinstance(child, Element):
            if child.tag_type == ElementType.SLOT or has_forwarded_slots(child.children):
                return True
        elif isinstance(child, If):
            if has_forwarded_slots(child.branches):
                return True
        elif isinstance(child, (IfBranch, For)):
            if has_forwarded_slots(child.children):
                return True
    return False


def _is_non_whitespace(node: Node) -> bool:
    if isinstance(node, TextCall):
        return _is_non_whitespace(node.content)
    if isinstance(node, Text):
        return bool(node.content.strip())
    return True
