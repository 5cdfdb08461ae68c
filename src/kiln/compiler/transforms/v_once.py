"""v-once: render an element once and reuse the cached vnode afterwards."""

from __future__ import annotations

from typing import TYPE_CHECKING

from kiln.compiler.runtime_helpers import RuntimeHelper
from kiln.compiler.utils import find_dir
from kiln.nodes import Element, Node

if TYPE_CHECKING:
    from kiln.compiler.options import ExitFn
    from kiln.compiler.transform import TransformContext


def transform_once(node: Node, context: TransformContext) -> ExitFn | None:
    if not isinstance(node, Element) or find_dir(node, "once", allow_empty=True) is None:
        return None
    if id(node) in context.seen_once or context.in_v_once:
        return None
    context.seen_once.add(id(node))
    context.in_v_once = True
    context.scopes.v_once += 1
    context.helper(RuntimeHelper.SET_BLOCK_TRACKING)

    def on_exit() -> None:
        context.in_v_once = False
        context.scopes.v_once -= 1
        current = context.current_node
        codegen_node = getattr(current, "codegen_node", None)
        if codegen_node is not None:
            current.codegen_node = context.cache(codegen_node, is_vnode=True)  # type: ignore[union-attr]

    return on_exit
