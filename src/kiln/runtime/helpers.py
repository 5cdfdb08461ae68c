"""Value helpers called by generated code: display strings, class/style/props
normalization, prop merging and event handler wrapping."""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from kiln.utils.strings import HANDLER_PREFIX, camelize, is_handler_key, to_handler_key

_STYLE_DELIMITER = re.compile(r";(?![^(]*\))")

# Modifier guards: return True to skip the handler
_MODIFIER_GUARDS: dict[str, Callable[[Any, list[str]], bool]] = {
    "stop": lambda e, m: _call_method(e, "stop_propagation"),
    "prevent": lambda e, m: _call_method(e, "prevent_default"),
    "self": lambda e, m: getattr(e, "target", None) is not getattr(e, "current_target", None),
    "ctrl": lambda e, m: not getattr(e, "ctrl_key", False),
    "shift": lambda e, m: not getattr(e, "shift_key", False),
    "alt": lambda e, m: not getattr(e, "alt_key", False),
    "meta": lambda e, m: not getattr(e, "meta_key", False),
    "left": lambda e, m: hasattr(e, "button") and e.button != 0,
    "middle": lambda e, m: hasattr(e, "button") and e.button != 1,
    "right": lambda e, m: hasattr(e, "button") and e.button != 2,
    "exact": lambda e, m: any(
        getattr(e, f"{key}_key", False) and key not in m for key in ("ctrl", "shift", "alt", "meta")
    ),
}


def _call_method(obj: Any, name: str) -> bool:
    method = getattr(obj, name, None)
    if callable(method):
        method()
    return False


def to_display_string(value: Any) -> str:
    """Text for an interpolation: None is empty, containers are pretty JSON."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple, dict, set, frozenset)):
        return json.dumps(
            sorted(value, key=repr) if isinstance(value, (set, frozenset)) else value,
            indent=2,
            default=str,
            ensure_ascii=False,
        )
    return str(value)


def normalize_class(value: Any) -> str:
    """``"a"``, ``["a", {"b": True}]`` or ``{"a": True}`` -> ``"a b"``."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, Mapping):
        return " ".join(str(name) for name, enabled in value.items() if enabled)
    if isinstance(value, Iterable):
        parts = (normalize_class(item) for item in value)
        return " ".join(part for part in parts if part)
    return ""


def parse_string_style(css: str) -> dict[str, str]:
    style: dict[str, str] = {}
    for item in _STYLE_DELIMITER.split(css):
        if not item.strip():
            continue
        name, sep, value = item.partition(":")
        if sep:
            style[name.strip()] = value.strip()
    return style


def normalize_style(value: Any) -> Any:
    """Strings and dicts pass through; a list merges into one dict."""
    if isinstance(value, (str, Mapping)) or value is None:
        return value
    if isinstance(value, Iterable):
        merged: dict[str, Any] = {}
        for item in value:
            normalized = parse_string_style(item) if isinstance(item, str) else normalize_style(item)
            if isinstance(normalized, Mapping):
                merged.update(normalized)
        return merged
    return None


def normalize_props(props: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if props is None:
        return None
    result = dict(props)
    if "class" in result and not isinstance(result["class"], str):
        result["class"] = normalize_class(result["class"])
    if "style" in result:
        result["style"] = normalize_style(result["style"])
    return result


def merge_props(*args: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge prop dicts left to right.

    Classes are concatenated, styles merged, and distinct handlers for the
    same event collected into a list. Other props: the last one wins.
    """
    result: dict[str, Any] = {}
    for props in args:
        if not props:
            continue
        for key, value in props.items():
            if key == "class":
                if result.get("class") != value:
                    result["class"] = normalize_class([result.get("class"), value])
            elif key == "style":
                result["style"] = normalize_style([result.get("style"), value])
            elif is_handler_key(key):
                existing = result.get(key)
                if value is not None and existing is not None and existing is not value:
                    handlers = existing if isinstance(existing, list) else [existing]
                    if value not in handlers:
                        result[key] = [*handlers, value]
                elif value is not None:
                    result[key] = value
            elif key != "":
                result[key] = value
    return result


def to_handlers(obj: Mapping[str, Any] | None, preserve_case: bool = False) -> dict[str, Any]:
    """``v-on="{click: f}"`` -> ``{"on_click": f}``."""
    if not isinstance(obj, Mapping):
        return {}
    return {
        to_handler_key(name if preserve_case and any(c.isupper() for c in name) else camelize(name)): handler
        for name, handler in obj.items()
    }


def with_modifiers(fn: Callable[..., Any], modifiers: list[str]) -> Callable[..., Any]:
    """Wrap an event handler so modifier guards run first.

    ``stop``/``prevent`` call ``event.stop_propagation()`` /
    ``event.prevent_default()``; key and mouse modifiers skip the handler
    when the event does not match.
    """

    def handler(*args: Any) -> Any:
        event = args[0] if args else None
        for modifier in modifiers:
            guard = _MODIFIER_GUARDS.get(modifier)
            if guard is not None and event is not None and guard(event, modifiers):
                return None
        return fn(*args)

    handler._modifiers = list(modifiers)  # type: ignore[attr-defined]
    return handler


__all__ = [
    "HANDLER_PREFIX",
    "camelize",
    "merge_props",
    "normalize_class",
    "normalize_props",
    "normalize_style",
    "parse_string_style",
    "to_display_string",
    "to_handler_key",
    "to_handlers",
    "with_modifiers",
]
