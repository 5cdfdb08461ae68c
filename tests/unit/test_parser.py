"""Tests for the kiln markup parser: tree shape, locations and error codes."""

import pytest

from kiln import BuildFlags, CompilerError, CompilerOptions, ErrorCode, parse
from kiln.nodes import (
    Attribute,
    Comment,
    Directive,
    Element,
    ElementType,
    Interpolation,
    Namespace,
    Position,
    Text,
)


def parse_collecting(source, errors, **options):
    return parse(source, CompilerOptions(on_error=errors, **options))


class TestTreeShape:
    """Elements, text, interpolations and comments."""

    def test_nested_elements(self):
        root = parse("<div><p>hi</p><span>there</span></div>")
        (div,) = root.children
        assert isinstance(div, Element)
        assert div.tag == "div"
        assert [child.tag for child in div.children] == ["p", "span"]
        assert div.children[0].children[0].content == "hi"

    def test_interpolation_content_is_stripped(self):
        root = parse("<p>{{   user.name  }}</p>")
        interpolation = root.children[0].children[0]
        assert isinstance(interpolation, Interpolation)
        assert interpolation.content.content == "user.name"
        assert interpolation.content.is_static is False

    def test_custom_delimiters(self):
        root = parse("<p>[[ msg ]] {{ raw }}</p>", CompilerOptions(delimiters=("[[", "]]")))
        children = root.children[0].children
        assert isinstance(children[0], Interpolation)
        assert children[0].content.content == "msg"
        assert isinstance(children[1], Text)
        assert children[1].content == " {{ raw }}"

    def test_self_closing_and_void_elements(self):
        root = parse("<div><br><img src='a.png'/><input></div>")
        tags = [child.tag for child in root.children[0].children]
        assert tags == ["br", "img", "input"]
        assert root.children[0].children[1].is_self_closing

    def test_entities_are_decoded(self):
        root = parse("<p>&lt;b&gt; &amp; co</p>")
        assert root.children[0].children[0].content == "<b> & co"

    def test_root_keeps_source(self):
        source = "<p>{{ a }}</p>"
        assert parse(source).source == source

    def test_bogus_comment_from_doctype(self):
        root = parse("<!DOCTYPE html><p>x</p>")
        assert isinstance(root.children[0], Comment)
        assert root.children[0].content == "DOCTYPE html"


class TestLocations:
    """Every node records its source span."""

    SOURCE = "<div>\n  <p>{{ msg }}</p>\n</div>"

    def test_element_location(self):
        root = parse(self.SOURCE)
        p = root.children[0].children[0]
        assert p.loc.start == Position(8, 2, 2)
        assert p.loc.end == Position(24, 2, 18)
        assert p.loc.source == "<p>{{ msg }}</p>"

    def test_interpolation_inner_location(self):
        root = parse(self.SOURCE)
        interpolation = root.children[0].children[0].children[0]
        assert interpolation.loc.source == "{{ msg }}"
        assert interpolation.content.loc.start == Position(14, 2, 8)
        assert interpolation.content.loc.end == Position(17, 2, 11)
        assert interpolation.content.loc.source == "msg"

    def test_root_spans_whole_source(self):
        root = parse(self.SOURCE)
        assert root.loc.start.offset == 0
        assert root.loc.end.offset == len(self.SOURCE)
        assert root.loc.end.line == 3

    def test_attribute_value_location(self):
        root = parse('<p title="hello"></p>')
        attr = root.children[0].props[0]
        assert isinstance(attr, Attribute)
        assert attr.loc.source == 'title="hello"'
        assert attr.value.loc.source == "hello"
        assert attr.value.loc.start.column == 10


class TestDirectives:
    """Directive syntax and its shorthands."""

    def props(self, markup):
        return parse(markup).children[0].props

    def test_v_bind_shorthand(self):
        (prop,) = self.props('<p :title="t"></p>')
        assert isinstance(prop, Directive)
        assert prop.name == "bind"
        assert prop.arg.content == "title"
        assert prop.arg.is_static
        assert prop.exp.content == "t"

    def test_prop_shorthand_adds_modifier(self):
        (prop,) = self.props('<p .inner_text="t"></p>')
        assert prop.name == "bind"
        assert prop.arg.content == "inner_text"
        assert prop.modifiers == ["prop"]

    def test_v_on_with_modifiers(self):
        (prop,) = self.props('<button @click.stop.prevent="go()"></button>')
        assert prop.name == "on"
        assert prop.arg.content == "click"
        assert prop.modifiers == ["stop", "prevent"]

    def test_long_form_with_argument(self):
        (prop,) = self.props('<button v-on:keyup.enter="submit"></button>')
        assert prop.name == "on"
        assert prop.raw_name == "v-on:keyup.enter"
        assert prop.arg.content == "keyup"
        assert prop.modifiers == ["enter"]

    def test_v_model_modifier_without_argument(self):
        (prop,) = self.props('<input v-model.trim="name">')
        assert prop.name == "model"
        assert prop.arg is None
        assert prop.modifiers == ["trim"]

    def test_dynamic_argument(self):
        (prop,) = self.props('<p :[attr_name]="v"></p>')
        assert prop.arg.content == "attr_name"
        assert prop.arg.is_static is False

    def test_slot_shorthand_keeps_dots_in_name(self):
        (prop,) = self.props('<template #item.header="row"></template>')
        assert prop.name == "slot"
        assert prop.arg.content == "item.header"
        assert prop.modifiers == []

    def test_directive_without_value(self):
        (prop,) = self.props("<p v-once></p>")
        assert prop.name == "once"
        assert prop.exp is None

    def test_v_pre_keeps_content_raw(self):
        root = parse('<div v-pre>{{ raw }}<span :x="y"></span></div>')
        div = root.children[0]
        assert div.props == []
        assert isinstance(div.children[0], Text)
        assert div.children[0].content == "{{ raw }}"
        span_prop = div.children[1].props[0]
        assert isinstance(span_prop, Attribute)
        assert span_prop.name == ":x"


class TestElementTypes:
    """Tag classification."""

    def first(self, markup, **options):
        return parse(markup, CompilerOptions(**options)).children[0]

    def test_capitalized_tag_is_component(self):
        assert self.first("<MyButton/>").tag_type == ElementType.COMPONENT

    def test_unknown_tag_is_component(self):
        assert self.first("<my-widget></my-widget>").tag_type == ElementType.COMPONENT

    def test_custom_element_predicate(self):
        node = self.first("<my-widget></my-widget>", is_custom_element=lambda tag: tag.startswith("my-"))
        assert node.tag_type == ElementType.ELEMENT

    def test_slot_outlet(self):
        assert self.first("<slot></slot>").tag_type == ElementType.SLOT

    def test_template_with_structural_directive(self):
        assert self.first('<template v-if="ok"><p/></template>').tag_type == ElementType.TEMPLATE

    def test_plain_template_is_element(self):
        assert self.first("<template><p/></template>").tag_type == ElementType.ELEMENT

    def test_svg_namespace(self):
        svg = self.first("<svg><circle r='1'/></svg>")
        assert svg.ns == Namespace.SVG
        assert svg.children[0].ns == Namespace.SVG
        assert svg.children[0].tag_type == ElementType.ELEMENT


class TestWhitespace:
    """Whitespace condensing and preservation."""

    def test_condenses_runs(self):
        root = parse("<p>a   \n  b</p>")
        assert root.children[0].children[0].content == "a b"

    def test_drops_newline_whitespace_between_elements(self):
        root = parse("<div><p>a</p>\n  <p>b</p></div>")
        assert len(root.children[0].children) == 2

    def test_keeps_single_space_between_elements_on_one_line(self):
        root = parse("<div><b>a</b> <i>b</i></div>")
        children = root.children[0].children
        assert len(children) == 3
        assert children[1].content == " "

    def test_preserve_mode(self):
        root = parse("<p>a   b</p>", CompilerOptions(whitespace="preserve"))
        assert root.children[0].children[0].content == "a   b"

    def test_pre_keeps_content_and_drops_leading_newline(self):
        root = parse("<pre>\n  x  y</pre>")
        assert root.children[0].children[0].content == "  x  y"


class TestComments:
    """Comments are kept in dev builds unless disabled."""

    def test_kept_by_default_in_dev(self):
        root = parse("<p>a</p><!-- note -->")
        assert isinstance(root.children[1], Comment)
        assert root.children[1].content == " note "

    def test_dropped_when_disabled(self):
        root = parse("<p>a</p><!-- note -->", CompilerOptions(comments=False))
        assert len(root.children) == 1

    def test_dropped_in_production_build(self):
        root = parse("<p>a</p><!-- note -->", flags=BuildFlags(dev=False))
        assert len(root.children) == 1


class TestParseErrors:
    """Error codes reported through on_error."""

    @pytest.mark.parametrize(
        ("source", "code"),
        [
            ("<div>", ErrorCode.MISSING_END_TAG),
            ("<p>hi</span></p>", ErrorCode.INVALID_END_TAG),
            ("<p>{{ msg</p>", ErrorCode.MISSING_INTERPOLATION_END),
            ("<!-- open", ErrorCode.EOF_IN_COMMENT),
            ('<p id="a" id="b"></p>', ErrorCode.DUPLICATE_ATTRIBUTE),
            ('<p :[key="x"></p>', ErrorCode.MISSING_DYNAMIC_DIRECTIVE_ARGUMENT_END),
            ('<p v-="x"></p>', ErrorCode.MISSING_DIRECTIVE_NAME),
            ("<p id=></p>", ErrorCode.MISSING_ATTRIBUTE_VALUE),
            ("<p", ErrorCode.EOF_IN_TAG),
        ],
    )
    def test_error_code(self, source, code, errors):
        parse_collecting(source, errors)
        assert code in errors.codes

    def test_missing_end_tag_points_at_start_tag(self, errors):
        parse_collecting("<main>\n  <div>text\n</main>", errors)
        (error,) = errors.errors
        assert error.code == ErrorCode.MISSING_END_TAG
        assert error.loc.start.line == 2
        assert error.loc.start.column == 2
        assert "<div>" in error.message

    def test_parsing_continues_after_error(self, errors):
        root = parse_collecting("<p>{{ a</p><span>b</span>", errors)
        assert errors.codes == [ErrorCode.MISSING_INTERPOLATION_END]
        assert root.children[-1].tag == "span"

    def test_default_sink_raises(self):
        with pytest.raises(CompilerError) as exc_info:
            parse("<div>")
        assert exc_info.value.code == ErrorCode.MISSING_END_TAG

    def test_non_ascii_letter_after_lt_is_text(self, errors):
        root = parse_collecting("<p>a <é b</p>", errors)
        assert errors.errors == []
        assert root.children[0].children[0].content == "a <é b"
