"""List, slot and memo helpers called by generated code."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from functools import wraps
from typing import Any

from kiln.runtime.context import get_render_scope, reset_render_scope, set_render_scope
from kiln.runtime.vnode import Fragment, VNode, create_block, open_block
from kiln.utils.constants import PATCH_FLAG_BAIL, PatchFlags, SlotFlags


def render_list(source: Any, render_item: Callable[..., Any]) -> list[Any]:
    """Call ``render_item(value, key, index)`` for every entry of ``source``.

    Sequences and other iterables pass the position as key; mappings pass
    their keys; an integer ``n`` iterates ``1..n``. None renders nothing.
    """
    if source is None:
        return []
    if isinstance(source, int):
        return [render_item(i + 1, i, i) for i in range(source)]
    if isinstance(source, Mapping):
        return [render_item(value, key, i) for i, (key, value) in enumerate(source.items())]
    if isinstance(source, Iterable):
        return [render_item(value, i, i) for i, value in enumerate(source)]
    return []


def with_ctx(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Bind a slot function to the render scope it was created in."""
    owner = get_render_scope()

    @wraps(fn)
    def bound(*args: Any, **kwargs: Any) -> Any:
        token = set_render_scope(owner)
        try:
            return fn(*args, **kwargs)
        finally:
            reset_render_scope(token)

    bound._c = True  # type: ignore[attr-defined]
    return bound


def _as_list(content: Any) -> list[Any]:
    if content is None:
        return []
    if isinstance(content, list):
        return content
    return [content]


def render_slot(
    slots: Any,
    name: str,
    props: Mapping[str, Any] | None = None,
    fallback: Callable[[], Any] | None = None,
) -> VNode:
    """Fragment block holding slot ``name`` rendered with ``props``.

    Slot props are passed as keyword arguments. Without a matching slot (or
    when it renders nothing) the fallback content is used.
    """
    props = dict(props or {})
    slot = slots.get(name) if isinstance(slots, Mapping) else getattr(slots, name, None)
    content = _as_list(slot(**props)) if slot is not None else []
    if not content and fallback is not None:
        content = _as_list(fallback())
    stable = isinstance(slots, Mapping) and slots.get("_") == SlotFlags.STABLE
    open_block()
    return create_block(
        Fragment,
        {"key": props.get("key", f"_{name}")},
        content,
        int(PatchFlags.STABLE_FRAGMENT) if stable else PATCH_FLAG_BAIL,
    )


def create_slots(slots: dict[str, Any], dynamic_slots: Sequence[Any]) -> dict[str, Any]:
    """Add conditional and ``v-for`` slots (``{"name": ..., "fn": ...}``) to ``slots``."""
    for slot in dynamic_slots:
        if isinstance(slot, list):
            for entry in slot:
                slots[entry["name"]] = entry["fn"]
        elif slot:
            slots[slot["name"]] = slot["fn"]
    return slots


def is_memo_same(cached: VNode, memo: Sequence[Any]) -> bool:
    previous = cached.memo
    if previous is None or len(previous) != len(memo):
        return False
    return all(a is b or a == b for a, b in zip(previous, memo, strict=True))


def with_memo(
    memo: Sequence[Any],
    render: Callable[[], VNode],
    cache: dict[Any, Any],
    index: int,
    key: Any = None,
) -> VNode:
    """Reuse the vnode cached at ``cache[index]`` while ``memo`` is unchanged.

    Inside ``v-for`` each item is cached under its ``key`` within the slot.
    """
    if key is not None:
        bucket = cache.setdefault(index, {})
        cached = bucket.get(key)
    else:
        bucket = None
        cached = cache.get(index)
    if cached is not None and is_memo_same(cached, memo):
        scope = get_render_scope()
        if scope.tracking > 0 and scope.current_block is not None:
            scope.current_block.append(cached)
        return cached

    vnode = render()
    vnode.memo = list(memo)
    if bucket is not None:
        bucket[key] = vnode
    else:
        cache[index] = vnode
    return vnode


__all__ = ["create_slots", "is_memo_same", "render_list", "render_slot", "with_ctx", "with_memo"]
