"""Runtime helper symbols referenced by generated code.

Each helper names a function exported by the runtime module (``kiln.runtime``
by default). Generated code binds the helpers it uses to ``_``-prefixed
aliases, e.g. ``_create_element_vnode``.
"""

from __future__ import annotations

from enum import StrEnum


class RuntimeHelper(StrEnum):
    FRAGMENT = "Fragment"
    OPEN_BLOCK = "open_block"
    CREATE_BLOCK = "create_block"
    CREATE_ELEMENT_BLOCK = "create_element_block"
    CREATE_VNODE = "create_vnode"
    CREATE_ELEMENT_VNODE = "create_element_vnode"
    CREATE_COMMENT = "create_comment_vnode"
    CREATE_TEXT = "create_text_vnode"
    RESOLVE_COMPONENT = "resolve_component"
    RESOLVE_DYNAMIC_COMPONENT = "resolve_dynamic_component"
    RESOLVE_DIRECTIVE = "resolve_directive"
    RESOLVE_FILTER = "resolve_filter"
    WITH_DIRECTIVES = "with_directives"
    RENDER_LIST = "render_list"
    RENDER_SLOT = "render_slot"
    CREATE_SLOTS = "create_slots"
    TO_DISPLAY_STRING = "to_display_string"
    MERGE_PROPS = "merge_props"
    NORMALIZE_CLASS = "normalize_class"
    NORMALIZE_STYLE = "normalize_style"
    NORMALIZE_PROPS = "normalize_props"
    TO_HANDLERS = "to_handlers"
    TO_HANDLER_KEY = "to_handler_key"
    WITH_MODIFIERS = "with_modifiers"
    CAMELIZE = "camelize"
    WITH_CTX = "with_ctx"
    WITH_MEMO = "with_memo"
    SET_BLOCK_TRACKING = "set_block_tracking"
    PUSH_SCOPE_ID = "push_scope_id"
    POP_SCOPE_ID = "pop_scope_id"
    WITH_SCOPE_ID = "with_scope_id"

    @property
    def alias(self) -> str:
        """Local name generated code uses for this helper."""
        return f"_{self.value}"


def get_vnode_helper(is_component: bool) -> RuntimeHelper:
    return RuntimeHelper.CREATE_VNODE if is_component else RuntimeHelper.CREATE_ELEMENT_VNODE


def get_vnode_block_helper(is_component: bool) -> RuntimeHelper:
    return RuntimeHelper.CREATE_BLOCK if is_component else RuntimeHelper.CREATE_ELEMENT_BLOCK
