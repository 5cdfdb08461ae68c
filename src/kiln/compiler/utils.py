"""AST helpers shared by the transforms."""

from __future__ import annotations

import re
from collections.abc import Container
from typing import TYPE_CHECKING, Any

from kiln.compiler.expressions import expression_names
from kiln.compiler.runtime_helpers import RuntimeHelper, get_vnode_block_helper, get_vnode_helper
from kiln.nodes import (
    LOC_STUB,
    Attribute,
    CallExpression,
    ConstantType,
    Directive,
    Element,
    ElementType,
    Interpolation,
    Node,
    ObjectExpression,
    Property,
    SimpleExpression,
    SourceLocation,
    Text,
    VNodeCall,
    walk,
)

if TYPE_CHECKING:
    from kiln.compiler.transform import TransformContext

_NON_WORD = re.compile(r"[^\w]")


def find_dir(
    node: Element,
    name: str | re.Pattern[str],
    allow_empty: bool = False,
) -> Directive | None:
    """First directive on ``node`` whose name matches and that has an expression
    (or any directive when ``allow_empty``)."""
    for prop in node.props:
        if not isinstance(prop, Directive):
            continue
        matched = prop.name == name if isinstance(name, str) else name.fullmatch(prop.name)
        if matched and (allow_empty or prop.exp is not None):
            return prop
    return None


def find_prop(
    node: Element,
    name: str,
    dynamic_only: bool = False,
    allow_empty: bool = False,
) -> Attribute | Directive | None:
    """Static attribute ``name`` or ``v-bind:name`` on ``node``."""
    for prop in node.props:
        if isinstance(prop, Attribute):
            if dynamic_only:
                continue
            if prop.name == name and (prop.value is not None or allow_empty):
                return prop
        elif prop.name == "bind" and (prop.exp is not None or allow_empty) and is_static_arg_of(prop.arg, name):
            return prop
    return None


def is_static_exp(node: Any) -> bool:
    return isinstance(node, SimpleExpression) and node.is_static


def is_static_arg_of(arg: Any, name: str) -> bool:
    return is_static_exp(arg) and arg.content == name


def is_text(node: Node) -> bool:
    return isinstance(node, (Text, Interpolation))


def is_whitespace_text(node: Node) -> bool:
    return isinstance(node, Text) and not node.content.strip()


def is_template_node(node: Node) -> bool:
    return isinstance(node, Element) and node.tag_type == ElementType.TEMPLATE


def is_slot_outlet(node: Node) -> bool:
    return isinstance(node, Element) and node.tag_type == ElementType.SLOT


def is_v_slot(prop: Attribute | Directive) -> bool:
    return isinstance(prop, Directive) and prop.name == "slot"


def static_expression(content: str, loc: SourceLocation = LOC_STUB) -> SimpleExpression:
    """String literal expression (a static key, name or attribute value)."""
    return SimpleExpression(
        content=content,
        is_static=True,
        const_type=ConstantType.CAN_STRINGIFY,
        loc=loc,
    )


def code_expression(
    content: str,
    const_type: ConstantType = ConstantType.NOT_CONSTANT,
    loc: SourceLocation = LOC_STUB,
) -> SimpleExpression:
    """Expression holding generated Python source."""
    return SimpleExpression(content=content, is_static=False, const_type=const_type, loc=loc)


def to_valid_asset_id(name: str, asset_type: str) -> str:
    """Python identifier for a resolved asset: ``my-button`` -> ``_component_my_button``."""

    def replace(match: re.Match[str]) -> str:
        char = match.group(0)
        return "_" if char == "-" else str(ord(char))

    return f"_{asset_type}_{_NON_WORD.sub(replace, name)}"


def has_scope_ref(node: Node | None, ids: Container[str]) -> bool:
    """True when any expression under ``node`` reads a scope-bound name."""
    if node is None:
        return False
    for child in walk(node):
        if isinstance(child, SimpleExpression) and not child.is_static:
            if any(name in ids for name in expression_names(child.content)):
                return True
    return False


def create_vnode_call(
    context: TransformContext | None,
    tag: Any,
    props: Node | None = None,
    children: Any = None,
    patch_flag: int | None = None,
    dynamic_props: SimpleExpression | None = None,
    directives: Any = None,
    is_block: bool = False,
    disable_tracking: bool = False,
    is_component: bool = False,
    loc: SourceLocation = LOC_STUB,
) -> VNodeCall:
    """Create a VNodeCall, registering the helpers its code will reference."""
    if context is not None:
        if is_block:
            context.helper(RuntimeHelper.OPEN_BLOCK)
            context.helper(get_vnode_block_helper(is_component))
        else:
            context.helper(get_vnode_helper(is_component))
        if directives:
            context.helper(RuntimeHelper.WITH_DIRECTIVES)
    return VNodeCall(
        tag=tag,
        props=props,
        children=children,
        patch_flag=patch_flag,
        dynamic_props=dynamic_props,
        directives=directives,
        is_block=is_block,
        disable_tracking=disable_tracking,
        is_component=is_component,
        loc=loc,
    )


def make_block(node: VNodeCall, context: TransformContext) -> None:
    """Turn a plain vnode call into a block, swapping the helpers it uses."""
    if node.is_block:
        return
    node.is_block = True
    context.remove_helper(get_vnode_helper(node.is_component))
    context.helper(RuntimeHelper.OPEN_BLOCK)
    context.helper(get_vnode_block_helper(node.is_component))


def get_memoed_vnode_call(node: Any) -> Any:
    """The vnode call inside a ``with_memo(...)`` wrapper, or ``node`` itself."""
    if isinstance(node, CallExpression) and node.callee == RuntimeHelper.WITH_MEMO:
        return node.arguments[1].returns
    return node


def _has_prop(prop: Property, props: ObjectExpression) -> bool:
    key = prop.key
    if not is_static_exp(key):
        return False
    return any(is_static_exp(p.key) and p.key.content == key.content for p in props.properties)


def inject_prop(node: VNodeCall | CallExpression, prop: Property, context: TransformContext) -> None:
    """Add ``prop`` to a vnode call (or ``render_slot`` call) unless already present."""
    if isinstance(node, VNodeCall):
        props = node.props
    else:
        props = node.arguments[2] if len(node.arguments) > 2 else None

    injected: Any = None
    if props is None or isinstance(props, str):
        injected = ObjectExpression(properties=[prop])
    elif isinstance(props, ObjectExpression):
        if not _has_prop(prop, props):
            props.properties.insert(0, prop)
        injected = props
    elif isinstance(props, CallExpression) and props.callee == RuntimeHelper.MERGE_PROPS:
        first = props.arguments[0] if props.arguments else None
        if isinstance(first, ObjectExpression):
            if not _has_prop(prop, first):
                first.properties.insert(0, prop)
        else:
            props.arguments.insert(0, ObjectExpression(properties=[prop]))
        injected = props
    else:
        injected = CallExpression(
            callee=context.helper(RuntimeHelper.MERGE_PROPS),
            arguments=[ObjectExpression(properties=[prop]), props],
        )

    if isinstance(node, VNodeCall):
        node.props = injected
    elif len(node.arguments) > 2:
        node.arguments[2] = injected
    else:
        while len(node.arguments) < 2:
            node.arguments.append("None")
        node.arguments.append(injected)
