"""Tests for the value helpers generated code calls."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from kiln.runtime import (
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
from kiln.runtime.helpers import parse_string_style


class Event:
    """Minimal event object with the attributes modifier guards read."""

    def __init__(self, **attrs):
        self.calls = []
        for name, value in attrs.items():
            setattr(self, name, value)

    def stop_propagation(self):
        self.calls.append("stop")

    def prevent_default(self):
        self.calls.append("prevent")


def handler(*args):
    return ("handled", *args)


class TestDisplayString:
    """to_display_string formats interpolated values."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, ""),
            ("text", "text"),
            (0, "0"),
            (2.5, "2.5"),
            (False, "False"),
        ],
    )
    def test_scalars(self, value, expected):
        assert to_display_string(value) == expected

    def test_list_is_json(self):
        assert to_display_string([1, 2]) == "[\n  1,\n  2\n]"

    def test_dict_is_json(self):
        assert to_display_string({"a": 1}) == '{\n  "a": 1\n}'

    def test_set_is_sorted(self):
        assert to_display_string({2, 1}) == "[\n  1,\n  2\n]"

    def test_unserializable_members_use_str(self):
        assert to_display_string([object.__name__, complex(1, 2)]) == '[\n  "object",\n  "(1+2j)"\n]'

    @given(st.text())
    def test_strings_pass_through(self, value):
        assert to_display_string(value) == value


class TestClassAndStyle:
    """class/style normalization."""

    def test_string_class_is_stripped(self):
        assert normalize_class("  a b ") == "a b"

    def test_mapping_class(self):
        assert normalize_class({"a": True, "b": False, "c": 1}) == "a c"

    def test_nested_class(self):
        assert normalize_class(["a", {"b": True, "c": False}, ["d", None]]) == "a b d"

    def test_unsupported_class_is_empty(self):
        assert normalize_class(None) == ""
        assert normalize_class(5) == ""

    def test_style_string_passes_through(self):
        assert normalize_style("color: red") == "color: red"
        assert normalize_style(None) is None

    def test_style_list_merges(self):
        result = normalize_style(["color: red; width: 1px", {"margin": 0}, None])
        assert result == {"color": "red", "width": "1px", "margin": 0}

    def test_unsupported_style(self):
        assert normalize_style(5) is None

    def test_parse_string_style_keeps_parenthesized_semicolons(self):
        assert parse_string_style("background: url(a;b); color: red;") == {
            "background": "url(a;b)",
            "color": "red",
        }

    def test_normalize_props(self):
        props = {"class": ["a", {"b": 1}], "style": ["x: 1"], "id": "main"}
        assert normalize_props(props) == {"class": "a b", "style": {"x": "1"}, "id": "main"}
        assert normalize_props(None) is None

    def test_normalize_props_copies(self):
        props = {"class": "a"}
        assert normalize_props(props) is not props


class TestMergeProps:
    """merge_props combines class, style and handlers."""

    def test_classes_concatenate(self):
        assert merge_props({"class": "a"}, {"class": "b"}) == {"class": "a b"}

    def test_equal_classes_are_not_duplicated(self):
        assert merge_props({"class": "a"}, {"class": "a"}) == {"class": "a"}

    def test_styles_merge(self):
        merged = merge_props({"style": "color: red"}, {"style": {"width": "1px"}})
        assert merged == {"style": {"color": "red", "width": "1px"}}

    def test_last_plain_prop_wins(self):
        assert merge_props({"id": "x"}, None, {"id": "y"}) == {"id": "y"}

    def test_distinct_handlers_are_collected(self):
        def other(*args):
            return None

        merged = merge_props({"on_click": handler}, {"on_click": other})
        assert merged == {"on_click": [handler, other]}

    def test_same_handler_is_kept_once(self):
        assert merge_props({"on_click": handler}, {"on_click": handler}) == {"on_click": handler}

    def test_empty_key_is_dropped(self):
        assert merge_props({"": 1, "a": 2}) == {"a": 2}


class TestHandlers:
    """Event handler keys and modifiers."""

    def test_to_handler_key(self):
        assert to_handler_key("click") == "on_click"
        assert to_handler_key("") == ""

    def test_camelize(self):
        assert camelize("my-prop") == "myProp"
        assert camelize("plain") == "plain"

    def test_to_handlers(self):
        assert to_handlers({"click": handler, "my-event": handler}) == {
            "on_click": handler,
            "on_myEvent": handler,
        }

    def test_to_handlers_preserve_case(self):
        assert to_handlers({"my-Event": handler}, preserve_case=True) == {"on_my-Event": handler}
        assert to_handlers({"my-Event": handler}) == {"on_myEvent": handler}

    def test_to_handlers_ignores_non_mappings(self):
        assert to_handlers(None) == {}
        assert to_handlers(["click"]) == {}

    def test_stop_and_prevent_call_event_methods(self):
        event = Event()
        wrapped = with_modifiers(handler, ["stop", "prevent"])
        assert wrapped(event) == ("handled", event)
        assert event.calls == ["stop", "prevent"]
        assert wrapped._modifiers == ["stop", "prevent"]

    def test_key_modifier_skips_unmatched_event(self):
        wrapped = with_modifiers(handler, ["ctrl"])
        assert wrapped(Event(ctrl_key=False)) is None
        event = Event(ctrl_key=True)
        assert wrapped(event) == ("handled", event)

    def test_exact_rejects_extra_keys(self):
        wrapped = with_modifiers(handler, ["ctrl", "exact"])
        assert wrapped(Event(ctrl_key=True, shift_key=True)) is None
        event = Event(ctrl_key=True)
        assert wrapped(event) == ("handled", event)

    def test_mouse_button_modifiers(self):
        wrapped = with_modifiers(handler, ["right"])
        assert wrapped(Event(button=0)) is None
        event = Event(button=2)
        assert wrapped(event) == ("handled", event)

    def test_self_modifier(self):
        wrapped = with_modifiers(handler, ["self"])
        target = object()
        assert wrapped(Event(target=target, current_target=object())) is None
        event = Event(target=target, current_target=target)
        assert wrapped(event) == ("handled", event)

    def test_no_event_calls_through(self):
        assert with_modifiers(handler, ["ctrl"])() == ("handled",)
