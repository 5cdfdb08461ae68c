"""v-memo: skip re-rendering an element while its dependency list is unchanged.

``<div v-memo="[a, b]">`` renders as
``_with_memo([a, b], lambda: <vnode>, _cache, <index>)``. Inside ``v-for``
the memo is applied per item by the list transform instead.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from kiln.compiler.runtime_helpers import RuntimeHelper
from kiln.compiler.utils import code_expression, find_dir, make_block
from kiln.environment.exceptions import ErrorCode, create_compiler_error
from kiln.nodes import CallExpression, Element, ElementType, FunctionExpression, Node, VNodeCall

if TYPE_CHECKING:
    from kiln.compiler.options import ExitFn
    from kiln.compiler.transform import TransformContext


def transform_memo(node: Node, context: TransformContext) -> ExitFn | None:
    if not isinstance(node, Element):
        return None
    directive = find_dir(node, "memo", allow_empty=True)
    if directive is None or id(node) in context.seen_memo or context.in_v_once:
        return None
    context.seen_memo.add(id(node))
    if directive.exp is None:
        context.on_error(create_compiler_error(ErrorCode.V_MEMO_NO_EXPRESSION, directive.loc))
        return None
    if find_dir(node, "for", allow_empty=True) is not None:
        # handled per item by the v-for transform
        return None

    def on_exit() -> None:
        codegen_node = node.codegen_node
        if codegen_node is None:
            codegen_node = getattr(context.current_node, "codegen_node", None)
        if not isinstance(codegen_node, VNodeCall):
            return
        if node.tag_type != ElementType.COMPONENT:
            make_block(codegen_node, context)
        node.codegen_node = CallExpression(
            callee=context.helper(RuntimeHelper.WITH_MEMO),
            arguments=[
                directive.exp,
                FunctionExpression(params=None, returns=codegen_node),
                code_expression("_cache"),
                code_expression(str(context.cached)),
            ],
            loc=node.loc,
        )
        context.cached += 1

    return on_exit
