"""``<slot>`` outlets: render a slot passed in by the parent component.

``<slot name="header" :title="t">fallback</slot>`` becomes
``_render_slot(_ctx.slots, "header", {"title": t}, lambda: [fallback])``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from kiln.compiler.runtime_helpers import RuntimeHelper
from kiln.compiler.transforms.transform_element import build_props
from kiln.compiler.utils import is_slot_outlet, is_static_arg_of, static_expression
from kiln.environment.exceptions import ErrorCode, create_compiler_error
from kiln.nodes import Attribute, CallExpression, Directive, Element, FunctionExpression, Node
from kiln.utils.strings import camelize

if TYPE_CHECKING:
    from kiln.compiler.transform import TransformContext


@dataclass
class SlotOutletInfo:
    slot_name: Any
    slot_props: Any = None


def transform_slot_outlet(node: Node, context: TransformContext) -> None:
    if not is_slot_outlet(node):
        return
    assert isinstance(node, Element)
    info = process_slot_outlet(node, context)
    slots = "_ctx.slots" if context.prefix_identifiers else "slots"
    slot_args: list[Any] = [slots, info.slot_name, "{}", "None"]
    expected_len = 2
    if info.slot_props is not None:
        slot_args[2] = info.slot_props
        expected_len = 3
    if node.children:
        slot_args[3] = FunctionExpression(params=None, returns=node.children, loc=node.loc)
        expected_len = 4
    node.codegen_node = CallExpression(
        callee=context.helper(RuntimeHelper.RENDER_SLOT),
        arguments=slot_args[:expected_len],
        loc=node.loc,
    )


def process_slot_outlet(node: Element, context: TransformContext) -> SlotOutletInfo:
    slot_name: Any = repr("default")
    non_name_props: list[Attribute | Directive] = []
    for prop in node.props:
        if isinstance(prop, Attribute):
            if prop.value is not None:
                if prop.name == "name":
                    slot_name = repr(prop.value.content)
                else:
                    non_name_props.append(
                        Attribute(name=camelize(prop.name), value=prop.value, loc=prop.loc)
                    )
        elif prop.name == "slot":
            context.on_error(create_compiler_error(ErrorCode.V_SLOT_UNEXPECTED_DIRECTIVE_ON_SLOT_OUTLET, prop.loc))
        elif prop.name == "bind" and is_static_arg_of(prop.arg, "name"):
            if prop.exp is not None:
                slot_name = prop.exp
        else:
            if prop.name == "bind" and prop.arg is not None and prop.arg.is_static:  # type: ignore[union-attr]
                prop.arg = static_expression(camelize(prop.arg.content), prop.arg.loc)  # type: ignore[union-attr]
            non_name_props.append(prop)

    info = SlotOutletInfo(slot_name=slot_name)
    if non_name_props:
        result = build_props(node, context, non_name_props)
        info.slot_props = result.props
        if result.directives:
            context.on_error(
                create_compiler_error(
                    ErrorCode.V_SLOT_UNEXPECTED_DIRECTIVE_ON_SLOT_OUTLET, result.directives[0].loc
                )
            )
    return info
