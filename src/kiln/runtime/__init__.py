"""Virtual-tree runtime used by generated render functions.

Every helper the compiler can reference is exported here under the name the
generated code imports (``from kiln.runtime import open_block as _open_block``)
or reads from the injected module (``_open_block = runtime.open_block``).
"""

from kiln.runtime.component import is_runtime_only, register_runtime_compiler
from kiln.runtime.context import (
    RenderContext,
    RenderScope,
    get_render_scope,
    render,
    render_scope,
    resolve_component,
    resolve_directive,
    resolve_dynamic_component,
    resolve_filter,
)
from kiln.runtime.helpers import (
    camelize,
    merge_props,
    normalize_class,
    normalize_props,
    normalize_style,
    to_display_string,
    to_handler_key,
    to_handlers,
    with_modifiers,
)
from kiln.runtime.rendering import create_slots, render_list, render_slot, with_ctx, with_memo
from kiln.runtime.vnode import (
    Comment,
    DirectiveBinding,
    Fragment,
    Text,
    VNode,
    create_block,
    create_comment_vnode,
    create_element_block,
    create_element_vnode,
    create_text_vnode,
    create_vnode,
    open_block,
    pop_scope_id,
    push_scope_id,
    set_block_tracking,
    with_directives,
    with_scope_id,
)

__all__ = [
    "Comment",
    "DirectiveBinding",
    "Fragment",
    "RenderContext",
    "RenderScope",
    "Text",
    "VNode",
    "camelize",
    "create_block",
    "create_comment_vnode",
    "create_element_block",
    "create_element_vnode",
    "create_slots",
    "create_text_vnode",
    "create_vnode",
    "get_render_scope",
    "is_runtime_only",
    "merge_props",
    "normalize_class",
    "normalize_props",
    "normalize_style",
    "open_block",
    "pop_scope_id",
    "push_scope_id",
    "register_runtime_compiler",
    "render",
    "render_list",
    "render_scope",
    "render_slot",
    "resolve_component",
    "resolve_directive",
    "resolve_dynamic_component",
    "resolve_filter",
    "set_block_tracking",
    "to_display_string",
    "to_handler_key",
    "to_handlers",
    "with_ctx",
    "with_directives",
    "with_memo",
    "with_modifiers",
    "with_scope_id",
]
