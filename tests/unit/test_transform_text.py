"""Tests for adjacent text merging and text vnode creation."""

from hypothesis import given, settings

from kiln import CompilerOptions, base_compile, get_base_transform_preset, parse, transform
from kiln.nodes import CompoundExpression, Element, Interpolation, Text, TextCall
from tests.conftest import assert_contains, compile_code
from tests.strategies import element_tree, text_run


def transformed(source):
    root = parse(source)
    preset = get_base_transform_preset(False)
    transform(root, node_transforms=preset.node_transforms, directive_transforms=preset.directive_transforms)
    return root


class TestMerging:
    """Adjacent text and interpolations form one compound expression."""

    def test_text_and_interpolation_are_merged(self):
        root = transformed("<p>Hello {{ name }}!</p>")
        (child,) = root.children[0].children
        assert isinstance(child, CompoundExpression)
        assert isinstance(child.children[0], Text)
        assert child.children[1] == " + "
        assert isinstance(child.children[2], Interpolation)

    def test_generated_concatenation(self):
        code = compile_code("<p>Hello {{ name }}!</p>")
        assert_contains(code, "'Hello ' + _to_display_string(name) + '!'")

    def test_single_interpolation_is_not_wrapped(self):
        root = transformed("<p>{{ name }}</p>")
        assert isinstance(root.children[0].children[0], Interpolation)

    def test_runs_separated_by_elements_stay_separate(self):
        root = transformed("<div>a {{ x }}<br>b {{ y }}</div>")
        children = root.children[0].children
        assert isinstance(children[0], TextCall)
        assert isinstance(children[1], Element)
        assert isinstance(children[2], TextCall)


class TestTextVNodes:
    """Text beside other children becomes a text vnode."""

    def test_dynamic_text_gets_text_flag(self):
        code = compile_code("<div>Hi {{ name }}<span>x</span></div>")
        assert_contains(code, "_create_text_vnode('Hi ' + _to_display_string(name), 1)")

    def test_static_text_has_no_flag(self):
        code = compile_code("<div>plain<span>x</span></div>")
        assert_contains(code, "_create_text_vnode('plain')")

    def test_single_space_is_an_empty_call(self):
        code = compile_code("<div><b>a</b> <i>b</i></div>")
        assert_contains(code, "_create_text_vnode()")

    def test_plain_element_with_single_text_child(self):
        code = compile_code("<p>only text</p>")
        assert "_create_text_vnode" not in code
        assert_contains(code, "_create_element_block('p', None, 'only text')")

    def test_root_level_text(self):
        code = compile_code("just {{ word }}")
        assert "_create_text_vnode" not in code
        assert_contains(code, "return 'just ' + _to_display_string(word)")

    def test_element_with_runtime_directive_wraps_text(self):
        code = compile_code('<p v-tooltip="tip">hello</p>')
        assert_contains(code, "_create_text_vnode('hello')")


class TestGeneratedCodeIsValid:
    """Text-heavy templates always produce compilable Python."""

    @settings(max_examples=50, deadline=None)
    @given(source=text_run)
    def test_text_runs(self, source):
        code = base_compile(f"<p>{source}</p>").code
        compile(code, "<kiln>", "exec")

    @settings(max_examples=50, deadline=None)
    @given(source=element_tree)
    def test_element_trees(self, source):
        code = base_compile(source, CompilerOptions(prefix_identifiers=True)).code
        compile(code, "<kiln>", "exec")
