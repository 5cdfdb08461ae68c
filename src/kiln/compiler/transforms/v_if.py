"""v-if / v-else-if / v-else.

Adjacent branches are grouped into one `If` node. Its codegen node is a chain
of conditional expressions::

    <p v-if="a">A</p><p v-else-if="b">B</p><p v-else>C</p>

    (A_block if a else (B_block if b else C_block))

A chain without ``v-else`` ends in a ``v-if`` comment vnode. Every branch gets
a distinct ``key`` so the runtime never patches one branch into another.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from kiln.compiler.expressions import process_expression
from kiln.compiler.runtime_helpers import RuntimeHelper
from kiln.compiler.transform import create_structural_directive_transform, traverse_node
from kiln.compiler.utils import (
    code_expression,
    create_vnode_call,
    find_dir,
    find_prop,
    get_memoed_vnode_call,
    inject_prop,
    is_whitespace_text,
    make_block,
    static_expression,
)
from kiln.environment.exceptions import ErrorCode, create_compiler_error
from kiln.nodes import (
    Attribute,
    CacheExpression,
    CallExpression,
    Comment,
    ConditionalExpression,
    ConstantType,
    Directive,
    Element,
    ElementType,
    For,
    If,
    IfBranch,
    ObjectExpression,
    Property,
    SimpleExpression,
    VNodeCall,
)
from kiln.utils.constants import PatchFlags

if TYPE_CHECKING:
    from kiln.compiler.options import ExitFn
    from kiln.compiler.transform import TransformContext


def _process(node: Element, directive: Directive, context: TransformContext) -> ExitFn | None:
    return process_if(node, directive, context, _branch_codegen)


transform_if = create_structural_directive_transform(re.compile(r"if|else|else-if"), _process)


def process_if(
    node: Element,
    directive: Directive,
    context: TransformContext,
    process_codegen: Any = None,
) -> ExitFn | None:
    if directive.name != "else" and (directive.exp is None or not directive.exp.content.strip()):
        loc = directive.exp.loc if directive.exp is not None else node.loc
        context.on_error(create_compiler_error(ErrorCode.V_IF_NO_EXPRESSION, directive.loc))
        directive.exp = code_expression("True", loc=loc)

    if directive.exp is not None and isinstance(directive.exp, SimpleExpression):
        directive.exp = process_expression(directive.exp, context)

    if directive.name == "if":
        branch = _create_branch(node, directive)
        if_node = If(branches=[branch], loc=node.loc)
        context.replace_node(if_node)
        if process_codegen:
            return process_codegen(if_node, branch, True, context)
        return None

    # v-else / v-else-if: attach to the preceding v-if
    assert context.parent is not None
    siblings = context.parent.children
    comments: list[Comment] = []
    i = next(index for index, child in enumerate(siblings) if child is node) - 1
    while i >= 0:
        sibling = siblings[i]
        if isinstance(sibling, Comment):
            context.remove_node(sibling)
            if context.flags.dev:
                comments.insert(0, sibling)
            i -= 1
            continue
        if is_whitespace_text(sibling):
            context.remove_node(sibling)
            i -= 1
            continue
        if isinstance(sibling, If):
            if directive.name == "else-if" and sibling.branches[-1].condition is None:
                context.on_error(create_compiler_error(ErrorCode.V_ELSE_NO_ADJACENT_IF, node.loc))
            # move the node into the if chain
            context.remove_node()
            branch = _create_branch(node, directive)
            if comments:
                branch.children = [*comments, *branch.children]
            key = branch.user_key
            if key is not None:
                for existing in sibling.branches:
                    if _is_same_key(existing.user_key, key):
                        context.on_error(create_compiler_error(ErrorCode.V_IF_SAME_KEY, key.loc))
            sibling.branches.append(branch)
            on_exit = process_codegen(sibling, branch, False, context) if process_codegen else None
            # the branch left the sibling list, so traverse it here
            traverse_node(branch, context)
            if on_exit:
                on_exit()
            # removed from the parent; nothing else may touch it
            context.current_node = None
        else:
            context.on_error(create_compiler_error(ErrorCode.V_ELSE_NO_ADJACENT_IF, node.loc))
        break
    else:
        context.on_error(create_compiler_error(ErrorCode.V_ELSE_NO_ADJACENT_IF, node.loc))
    return None


def _create_branch(node: Element, directive: Directive) -> IfBranch:
    is_template_if = node.tag_type == ElementType.TEMPLATE
    if is_template_if and find_dir(node, "for") is None:
        children = node.children
    else:
        children = [node]
    return IfBranch(
        condition=None if directive.name == "else" else directive.exp,
        children=children,
        user_key=find_prop(node, "key"),
        is_template_if=is_template_if,
        loc=node.loc,
    )


def _is_same_key(a: Attribute | Directive | None, b: Attribute | Directive) -> bool:
    if a is None or type(a) is not type(b):
        return False
    if isinstance(a, Attribute) and isinstance(b, Attribute):
        return a.value is not None and b.value is not None and a.value.content == b.value.content
    assert isinstance(a, Directive) and isinstance(b, Directive)
    exp_a, exp_b = a.exp, b.exp
    if not isinstance(exp_a, SimpleExpression) or not isinstance(exp_b, SimpleExpression):
        return False
    return exp_a.is_static == exp_b.is_static and exp_a.content == exp_b.content


def _branch_codegen(if_node: If, branch: IfBranch, is_root: bool, context: TransformContext) -> ExitFn:
    # Keys stay unique across sibling if-chains
    assert context.parent is not None
    siblings = context.parent.children
    index = next((i for i, child in enumerate(siblings) if child is if_node), len(siblings))
    key = sum(len(s.branches) for s in siblings[:index] if isinstance(s, If))

    def on_exit() -> None:
        if is_root:
            if_node.codegen_node = _create_codegen_for_branch(branch, key, context)
        else:
            parent = _get_parent_condition(if_node.codegen_node)
            replaced = parent.alternate
            if isinstance(replaced, CallExpression) and replaced.callee == RuntimeHelper.CREATE_COMMENT:
                context.remove_helper(RuntimeHelper.CREATE_COMMENT)
            parent.alternate = _create_codegen_for_branch(branch, key + len(if_node.branches) - 1, context)

    return on_exit


def _create_codegen_for_branch(branch: IfBranch, key_index: int, context: TransformContext) -> Any:
    if branch.condition is not None:
        return ConditionalExpression(
            test=branch.condition,
            consequent=_create_children_codegen(branch, key_index, context),
            alternate=CallExpression(
                callee=context.helper(RuntimeHelper.CREATE_COMMENT),
                arguments=[repr("v-if") if context.flags.dev else repr(""), "True"],
            ),
            loc=branch.loc,
        )
    return _create_children_codegen(branch, key_index, context)


def _create_children_codegen(branch: IfBranch, key_index: int, context: TransformContext) -> Any:
    key_property = Property(
        key=static_expression("key"),
        value=code_expression(str(key_index), ConstantType.CAN_HOIST),
    )
    children = branch.children
    first = children[0] if children else None
    needs_fragment = len(children) != 1 or not isinstance(first, Element)
    if needs_fragment:
        if len(children) == 1 and isinstance(first, For):
            vnode_call = first.codegen_node
            assert isinstance(vnode_call, VNodeCall)
            inject_prop(vnode_call, key_property, context)
            return vnode_call
        patch_flag = PatchFlags.STABLE_FRAGMENT
        if context.flags.dev and not branch.is_template_if and len([c for c in children if not isinstance(c, Comment)]) == 1:
            patch_flag |= PatchFlags.DEV_ROOT_FRAGMENT
        return create_vnode_call(
            context,
            context.helper(RuntimeHelper.FRAGMENT),
            ObjectExpression(properties=[key_property]),
            children,
            int(patch_flag),
            None,
            None,
            is_block=True,
            loc=branch.loc,
        )

    assert isinstance(first, Element)
    result = first.codegen_node
    vnode_call = get_memoed_vnode_call(result)
    if isinstance(vnode_call, CacheExpression):
        vnode_call = vnode_call.value
    if isinstance(vnode_call, VNodeCall):
        make_block(vnode_call, context)
    if isinstance(vnode_call, (VNodeCall, CallExpression)):
        inject_prop(vnode_call, key_property, context)
    return result


def _get_parent_condition(node: Any) -> ConditionalExpression:
    while True:
        if isinstance(node, ConditionalExpression):
            if isinstance(node.alternate, ConditionalExpression):
                node = node.alternate
            else:
                return node
        elif isinstance(node, CacheExpression):
            node = node.value
        else:
            raise TypeError(f"Unexpected if-chain codegen node: {type(node).__name__}")
