"""Tests for error codes, code frames and exception formatting."""

import logging

import pytest

from kiln import CompilerError, ErrorCode, MaterializationError, TemplateError
from kiln.environment import terminal
from kiln.environment.exceptions import (
    SourceSnippet,
    build_code_frame,
    create_compiler_error,
    default_on_error,
    default_on_warn,
    generate_code_frame,
)
from kiln.nodes import Position, SourceLocation


def span(source, start, end):
    """SourceLocation for ``source[start:end]`` on a single-line source."""
    return SourceLocation(Position(start, 1, start), Position(end, 1, end), source[start:end])


class TestErrorCodes:
    """Codes, categories and default messages."""

    @pytest.mark.parametrize(
        ("code", "category"),
        [
            (ErrorCode.EOF_IN_TAG, "parser"),
            (ErrorCode.V_FOR_MALFORMED_EXPRESSION, "transform"),
            (ErrorCode.SCOPE_ID_NOT_SUPPORTED, "option"),
            (ErrorCode.TEMPLATE_NOT_FOUND, "resolution"),
            (ErrorCode.MATERIALIZATION_FAILED, "codegen"),
        ],
    )
    def test_category(self, code, category):
        assert code.category == category

    def test_every_code_has_a_message(self):
        for code in ErrorCode:
            assert code.message

    def test_codes_are_unique(self):
        values = [code.value for code in ErrorCode]
        assert len(values) == len(set(values))

    def test_code_format(self):
        for code in ErrorCode:
            prefix, category, number = code.value.split("-")
            assert prefix == "KL"
            assert len(number) == 3
            assert number.isdigit()


class TestCodeFrame:
    """build_code_frame picks context lines and caret marks."""

    def test_single_line_span(self):
        snippet = build_code_frame("a\nbcd\ne", 3, 5)
        assert snippet.lines == ((1, "a"), (2, "bcd"), (3, "e"))
        assert snippet.marks == ((2, 1, 2),)
        assert snippet.error_line == 2

    def test_multi_line_span_marks_every_line(self):
        snippet = build_code_frame("ab\ncd\nef", 1, 7)
        assert snippet.marks == ((1, 1, 1), (2, 0, 2), (3, 0, 1))

    def test_context_lines(self):
        source = "\n".join(str(n) for n in range(1, 8))
        snippet = build_code_frame(source, 6, 7, context_lines=1)
        assert [lineno for lineno, _ in snippet.lines] == [3, 4, 5]
        assert snippet.error_line == 4

    def test_point_span_underlines_one_character(self):
        snippet = build_code_frame("<div>", 2)
        assert snippet.marks == ((1, 2, 1),)

    def test_empty_source(self):
        snippet = build_code_frame("")
        assert snippet.lines == ((1, ""),)
        assert snippet.marks == ((1, 0, 1),)

    def test_offsets_are_clamped(self):
        snippet = build_code_frame("abc", 10, 20)
        assert snippet.error_line == 1

    def test_span_at_end_after_newline(self):
        snippet = build_code_frame("<div>\n", 6)
        assert snippet.error_line == 2
        assert snippet.lines[-1] == (2, "")

    def test_no_marks_means_no_error_line(self):
        assert SourceSnippet(lines=((1, "x"),)).error_line is None

    def test_format(self):
        snippet = SourceSnippet(lines=((1, "ctx"), (2, "x")), marks=((2, 0, 1),))
        assert snippet.format() == "     |\n   1 | ctx\n>  2 | x\n     | ^\n     |"

    def test_generate_code_frame(self):
        assert generate_code_frame("<p>", 0, 3) == "     |\n>  1 | <p>\n     | ^^^\n     |"


class TestCompilerError:
    """CompilerError construction and compact formatting."""

    SOURCE = "abc<div>xyz"

    def test_create_with_additional_message(self):
        error = create_compiler_error(ErrorCode.MISSING_END_TAG, None, " <div>")
        assert error.message == "Element is missing end tag. <div>"
        assert str(error) == error.message
        assert error.code is ErrorCode.MISSING_END_TAG

    def test_create_without_additional_message(self):
        error = create_compiler_error(ErrorCode.EOF_IN_TAG)
        assert error.message == "Unexpected EOF in tag."
        assert error.loc is None
        assert error.lineno is None

    def test_repr(self):
        error = CompilerError(ErrorCode.EOF_IN_TAG)
        assert repr(error) == "CompilerError(KL-PAR-001, 'Unexpected EOF in tag.')"

    def test_is_a_template_error(self):
        assert isinstance(CompilerError(ErrorCode.EOF_IN_TAG), TemplateError)

    def test_compact_header_only_without_location(self):
        error = CompilerError(ErrorCode.SCOPE_ID_NOT_SUPPORTED)
        assert error.format_compact("ignored") == f"KL-OPT-004: {ErrorCode.SCOPE_ID_NOT_SUPPORTED.message}"

    def test_compact_with_location_but_no_source(self):
        error = create_compiler_error(ErrorCode.MISSING_END_TAG, span(self.SOURCE, 3, 8), " <div>")
        assert error.format_compact() == "KL-PAR-004: Element is missing end tag. <div>\n  --> <template>:1:3"

    def test_compact_with_frame(self):
        error = create_compiler_error(ErrorCode.MISSING_END_TAG, span(self.SOURCE, 3, 8))
        assert error.format_compact(self.SOURCE) == (
            "KL-PAR-004: Element is missing end tag.\n"
            "  --> <template>:1:3\n"
            "     |\n"
            ">  1 | abc<div>xyz\n"
            "     |    ^^^^^\n"
            "     |"
        )

    def test_code_frame(self):
        error = CompilerError(ErrorCode.MISSING_END_TAG, span(self.SOURCE, 3, 8))
        assert error.code_frame(self.SOURCE).marks == ((1, 3, 5),)
        assert CompilerError(ErrorCode.MISSING_END_TAG).code_frame(self.SOURCE) is None

    def test_warning_colors(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        error = CompilerError(ErrorCode.FILTERS_DEPRECATED)
        assert "\033[93m" in error.format_compact(warning=True)
        assert "\033[91m" in error.format_compact()


class TestMaterializationError:
    """Materialization failures carry the offending generated line."""

    SOURCE = "x = 1\ny = missing\n"

    def test_message_with_line(self):
        error = MaterializationError("NameError", source=self.SOURCE, lineno=2)
        assert str(error) == (
            "Generated render code could not be materialized: NameError\n"
            "   |\n"
            "  2 | y = missing"
        )
        assert error.lineno == 2
        assert error.source == self.SOURCE

    def test_line_out_of_range(self):
        error = MaterializationError("oops", source=self.SOURCE, lineno=9)
        assert str(error) == "Generated render code could not be materialized: oops"

    def test_compact_adds_code(self):
        error = MaterializationError("boom")
        assert error.format_compact() == "KL-GEN-001: Generated render code could not be materialized: boom"


class TestDefaultSinks:
    """Fail-fast error sink and quiet warning sink."""

    def test_default_on_error_raises(self):
        error = CompilerError(ErrorCode.EOF_IN_TAG)
        with pytest.raises(CompilerError) as exc_info:
            default_on_error(error)
        assert exc_info.value is error

    def test_default_on_warn_logs_debug(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="kiln.environment.exceptions"):
            default_on_warn(CompilerError(ErrorCode.FILTERS_DEPRECATED))
        assert "compiler warning KL-TRN-018" in caplog.text
