"""Constant analysis and static hoisting.

Every template subtree gets a `ConstantType`:

    NOT_CONSTANT < CAN_SKIP_PATCH < CAN_HOIST < CAN_STRINGIFY

Combining two levels keeps the lower one, so a subtree is only as constant as
its least constant part. Plain elements at CAN_HOIST or above are lifted out of
``render`` into module-level ``_hoisted_<n>`` constants; elements whose props
alone are constant get just their props object hoisted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from kiln.compiler.runtime_helpers import RuntimeHelper, get_vnode_block_helper, get_vnode_helper
from kiln.nodes import (
    CacheExpression,
    Comment,
    CompoundExpression,
    ConstantType,
    Directive,
    Element,
    ElementType,
    For,
    If,
    IfBranch,
    Interpolation,
    Node,
    ObjectExpression,
    Root,
    SimpleExpression,
    Text,
    TextCall,
    VNodeCall,
)
from kiln.utils.constants import PATCH_FLAG_CACHED, PatchFlags

if TYPE_CHECKING:
    from kiln.compiler.transform import TransformContext


def _combine(a: ConstantType, b: ConstantType) -> ConstantType:
    """Combine two constant levels (take the weaker)."""
    return a if a < b else b


def hoist_static(root: Root, context: TransformContext) -> None:
    """Hoist constant subtrees of a transformed tree."""
    only = root.children[0] if len(root.children) == 1 else None
    # The single root element becomes a block; it must stay in render
    is_single_root = isinstance(only, Element) and only.tag_type != ElementType.SLOT
    _walk(root, context, is_single_root)


def _walk(node: Root | Element | IfBranch | For, context: TransformContext, do_not_hoist_node: bool = False) -> None:
    for child in node.children:
        if isinstance(child, Element) and child.tag_type == ElementType.ELEMENT:
            const_type = ConstantType.NOT_CONSTANT if do_not_hoist_node else get_constant_type(child, context)
            if const_type > ConstantType.NOT_CONSTANT:
                if const_type >= ConstantType.CAN_HOIST:
                    codegen_node = child.codegen_node
                    assert isinstance(codegen_node, VNodeCall)
                    codegen_node.patch_flag = PATCH_FLAG_CACHED
                    child.codegen_node = context.hoist(codegen_node)
                    continue
            else:
                codegen_node = child.codegen_node
                if isinstance(codegen_node, VNodeCall):
                    flag = codegen_node.patch_flag
                    if (
                        flag is None or flag in (PatchFlags.NEED_PATCH, PatchFlags.TEXT)
                    ) and get_generated_props_constant_type(child, context) >= ConstantType.CAN_HOIST:
                        props = codegen_node.props
                        if props is not None:
                            codegen_node.props = context.hoist(props)
                    if codegen_node.dynamic_props is not None:
                        codegen_node.dynamic_props = context.hoist(codegen_node.dynamic_props)
        elif isinstance(child, TextCall):
            if get_constant_type(child.content, context) >= ConstantType.CAN_HOIST:
                child.codegen_node = context.hoist(child.codegen_node)
                continue

        if isinstance(child, Element):
            is_component = child.tag_type == ElementType.COMPONENT
            if is_component:
                context.scopes.v_slot += 1
            _walk(child, context)
            if is_component:
                context.scopes.v_slot -= 1
        elif isinstance(child, For):
            _walk(child, context, len(child.children) == 1)
        elif isinstance(child, If):
            for branch in child.branches:
                _walk(branch, context, len(branch.children) == 1)


def get_constant_type(node: Any, context: TransformContext) -> ConstantType:
    """How constant ``node`` is, given the transforms already applied."""
    if isinstance(node, Element):
        if node.tag_type != ElementType.ELEMENT:
            return ConstantType.NOT_CONSTANT
        key = id(node)
        cached = context.constant_cache.get(key)
        if cached is not None:
            return cached
        codegen_node = node.codegen_node
        if not isinstance(codegen_node, VNodeCall):
            return ConstantType.NOT_CONSTANT
        if codegen_node.is_block and node.tag not in ("svg", "foreignObject"):
            return ConstantType.NOT_CONSTANT
        if codegen_node.patch_flag is not None:
            context.constant_cache[key] = ConstantType.NOT_CONSTANT
            return ConstantType.NOT_CONSTANT

        result = ConstantType.CAN_STRINGIFY
        props_type = get_generated_props_constant_type(node, context)
        if props_type == ConstantType.NOT_CONSTANT:
            context.constant_cache[key] = ConstantType.NOT_CONSTANT
            return ConstantType.NOT_CONSTANT
        result = _combine(result, props_type)

        for child in node.children:
            child_type = get_constant_type(child, context)
            if child_type == ConstantType.NOT_CONSTANT:
                context.constant_cache[key] = ConstantType.NOT_CONSTANT
                return ConstantType.NOT_CONSTANT
            result = _combine(result, child_type)

        if result > ConstantType.CAN_SKIP_PATCH:
            # Bindings that evaluate to constants still count
            for prop in node.props:
                if isinstance(prop, Directive) and prop.name == "bind" and prop.exp is not None:
                    exp_type = get_constant_type(prop.exp, context)
                    if exp_type == ConstantType.NOT_CONSTANT:
                        context.constant_cache[key] = ConstantType.NOT_CONSTANT
                        return ConstantType.NOT_CONSTANT
                    result = _combine(result, exp_type)

        if codegen_node.is_block:
            # svg / foreignObject: hoisted as a plain vnode
            context.remove_helper(RuntimeHelper.OPEN_BLOCK)
            context.remove_helper(get_vnode_block_helper(codegen_node.is_component))
            codegen_node.is_block = False
            context.helper(get_vnode_helper(codegen_node.is_component))

        context.constant_cache[key] = result
        return result

    if isinstance(node, (Text, Comment)):
        return ConstantType.CAN_STRINGIFY
    if isinstance(node, (If, For, IfBranch)):
        return ConstantType.NOT_CONSTANT
    if isinstance(node, (Interpolation, TextCall)):
        return get_constant_type(node.content, context)
    if isinstance(node, SimpleExpression):
        return node.const_type
    if isinstance(node, CompoundExpression):
        result = ConstantType.CAN_STRINGIFY
        for part in node.children:
            if isinstance(part, str) or not isinstance(part, Node):
                continue
            part_type = get_constant_type(part, context)
            if part_type == ConstantType.NOT_CONSTANT:
                return ConstantType.NOT_CONSTANT
            result = _combine(result, part_type)
        return result
    return ConstantType.NOT_CONSTANT


def get_generated_props_constant_type(node: Element, context: TransformContext) -> ConstantType:
    """Constant level of the props object element lowering built for ``node``."""
    result = ConstantType.CAN_STRINGIFY
    codegen_node = node.codegen_node
    props = codegen_node.props if isinstance(codegen_node, VNodeCall) else None
    if not isinstance(props, ObjectExpression):
        return result if props is None else ConstantType.NOT_CONSTANT
    for prop in props.properties:
        key_type = get_constant_type(prop.key, context)
        if key_type == ConstantType.NOT_CONSTANT:
            return key_type
        result = _combine(result, key_type)
        value = prop.value
        if isinstance(value, SimpleExpression):
            value_type = get_constant_type(value, context)
        elif isinstance(value, CacheExpression):
            value_type = ConstantType.CAN_SKIP_PATCH
        else:
            return ConstantType.NOT_CONSTANT
        if value_type == ConstantType.NOT_CONSTANT:
            return value_type
        result = _combine(result, value_type)
    return result
