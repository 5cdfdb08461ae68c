"""Tests for the built-in transform preset and the transform engine."""

from types import MappingProxyType

import pytest

from kiln import (
    BuildFlags,
    CompilerOptions,
    DirectiveTransformResult,
    base_compile,
    get_base_transform_preset,
    parse,
    transform,
)
from kiln.compiler.transforms import (
    track_slot_scopes,
    track_v_for_slot_scopes,
    transform_bind,
    transform_element,
    transform_expression,
    transform_filter,
    transform_for,
    transform_if,
    transform_memo,
    transform_model,
    transform_on,
    transform_once,
    transform_slot_outlet,
    transform_text,
)
from kiln.compiler.utils import static_expression
from kiln.nodes import Element, Property
from tests.conftest import assert_contains

STRUCTURAL = [transform_once, transform_if, transform_memo, transform_for]
LOWERING = [transform_slot_outlet, transform_element, track_slot_scopes, transform_text]


class TestPresetOrder:
    """Node transform order for each build configuration."""

    def test_default_build_without_prefixing(self):
        preset = get_base_transform_preset(False)
        assert list(preset.node_transforms) == [*STRUCTURAL, *LOWERING]

    def test_default_build_with_prefixing(self):
        preset = get_base_transform_preset(True)
        assert list(preset.node_transforms) == [
            *STRUCTURAL,
            track_v_for_slot_scopes,
            transform_expression,
            *LOWERING,
        ]

    def test_browser_dev_build_validates_expressions(self):
        preset = get_base_transform_preset(False, flags=BuildFlags(browser=True))
        assert list(preset.node_transforms) == [*STRUCTURAL, transform_expression, *LOWERING]

    def test_browser_prefix_request_is_ignored(self):
        preset = get_base_transform_preset(True, flags=BuildFlags(browser=True, dev=False))
        assert list(preset.node_transforms) == [*STRUCTURAL, *LOWERING]

    def test_compat_build_adds_filter_after_structural(self):
        preset = get_base_transform_preset(True, flags=BuildFlags(compat=True))
        assert list(preset.node_transforms) == [
            *STRUCTURAL,
            transform_filter,
            track_v_for_slot_scopes,
            transform_expression,
            *LOWERING,
        ]

    def test_directive_transforms(self):
        preset = get_base_transform_preset(False)
        assert dict(preset.directive_transforms) == {
            "on": transform_on,
            "bind": transform_bind,
            "model": transform_model,
        }

    def test_directive_transforms_are_read_only(self):
        preset = get_base_transform_preset(False)
        assert isinstance(preset.directive_transforms, MappingProxyType)
        with pytest.raises(TypeError):
            preset.directive_transforms["on"] = transform_bind

    def test_each_call_returns_fresh_preset(self):
        assert get_base_transform_preset(False) is not get_base_transform_preset(False)


class TestUserTransforms:
    """Caller transforms run after built-ins and may override directives."""

    def test_user_node_transform_sees_lowered_if(self):
        seen = []

        def spy(node, context):
            seen.append(type(node).__name__)

        base_compile('<div><p v-if="ok">x</p></div>', CompilerOptions(node_transforms=[spy]))
        assert "If" in seen
        assert "IfBranch" in seen

    def test_user_directive_transform_overrides_builtin(self):
        calls = []

        def custom_bind(directive, node, context):
            calls.append(directive.arg.content)
            return DirectiveTransformResult(
                props=[Property(key=static_expression("data-custom"), value=directive.exp)]
            )

        result = base_compile(
            '<p :title="title">x</p>',
            CompilerOptions(directive_transforms={"bind": custom_bind}),
        )
        assert calls == ["title"]
        assert_contains(result.code, "'data-custom': title")
        assert "'title'" not in result.code

    def test_unknown_directive_with_user_transform(self):
        def transform_focus(directive, node, context):
            return DirectiveTransformResult(need_runtime=True)

        result = base_compile('<input v-focus>', CompilerOptions(directive_transforms={"focus": transform_focus}))
        assert_contains(result.code, "_with_directives(", "_resolve_directive('focus')")

    def test_preset_mapping_is_not_modified_by_overrides(self):
        base_compile("<p :a='b'/>", CompilerOptions(directive_transforms={"bind": lambda d, n, c: DirectiveTransformResult()}))
        assert get_base_transform_preset(False).directive_transforms["bind"] is transform_bind


class TestTraversal:
    """Exit callbacks, removal and replacement."""

    def test_exit_functions_run_in_reverse(self):
        events = []

        def make(label):
            def node_transform(node, context):
                if isinstance(node, Element) and node.tag == "p":
                    events.append(f"enter {label}")
                    return lambda: events.append(f"exit {label}")
                return None

            return node_transform

        transform(parse("<p>x</p>"), node_transforms=[make("A"), make("B"), make("C")])
        assert events == ["enter A", "enter B", "enter C", "exit C", "exit B", "exit A"]

    def test_exit_runs_after_children(self):
        events = []

        def record(node, context):
            if isinstance(node, Element):
                events.append(f"enter {node.tag}")
                return lambda: events.append(f"exit {node.tag}")
            return None

        transform(parse("<div><span></span></div>"), node_transforms=[record])
        assert events == ["enter div", "enter span", "exit span", "exit div"]

    def test_list_of_exit_functions(self):
        events = []

        def node_transform(node, context):
            if isinstance(node, Element):
                return [lambda: events.append("first"), lambda: events.append("second")]
            return None

        transform(parse("<p/>"), node_transforms=[node_transform])
        assert events == ["second", "first"]

    def test_removal_during_sibling_iteration(self):
        visited = []

        def remove_bold(node, context):
            if isinstance(node, Element) and node.tag == "b":
                context.remove_node()

        def record(node, context):
            if isinstance(node, Element):
                visited.append(node.tag)

        root = parse("<div><span/><b/><b/><em/></div>")
        transform(root, node_transforms=[remove_bold, record])
        assert visited == ["div", "span", "em"]
        assert [child.tag for child in root.children[0].children] == ["span", "em"]

    def test_removing_root_is_an_error(self):
        def remove_everything(node, context):
            context.remove_node()

        with pytest.raises(RuntimeError, match="root"):
            transform(parse("<p/>"), node_transforms=[remove_everything])

    def test_replacement_is_seen_by_later_transforms(self):
        seen = []

        def swap(node, context):
            if isinstance(node, Element) and node.tag == "old":
                replacement = Element(tag="new", loc=node.loc)
                context.replace_node(replacement)

        def record(node, context):
            if isinstance(node, Element):
                seen.append(node.tag)

        root = parse("<div><old/></div>")
        transform(root, node_transforms=[swap, record])
        assert seen == ["div", "new"]
        assert root.children[0].children[0].tag == "new"

    def test_root_metadata_is_filled(self):
        root = parse("<p>{{ msg }}</p>")
        transform(root, node_transforms=get_base_transform_preset(False).node_transforms)
        assert root.transformed is True
        assert root.codegen_node is not None
        assert root.hoists == []


class TestConditionalLowering:
    """v-if lowers to a conditional expression."""

    def test_v_if_is_a_conditional(self):
        result = base_compile('<p v-if="ok">x</p>')
        assert result.ast.hoists == []
        assert_contains(result.code, " if ok else ", "_create_comment_vnode('v-if', True)")

    def test_v_else_chain(self):
        result = base_compile('<p v-if="a">A</p><p v-else-if="b">B</p><p v-else>C</p>')
        assert_contains(result.code, " if a else ", " if b else ", "{'key': 0}", "{'key': 1}", "{'key': 2}")
        assert "_create_comment_vnode" not in result.code

    def test_else_if_chain_keeps_trailing_comment(self):
        result = base_compile('<p v-if="a">A</p><p v-else-if="b">B</p>')
        assert_contains(result.code, " if b else _create_comment_vnode('v-if', True)")
        assert "create_comment_vnode" in result.helpers
