"""Errors and diagnostics for the kiln compiler.

Exception Hierarchy:
TemplateError (base)
├── CompilerError             # Coded diagnostic from parse/transform/codegen/options
└── MaterializationError      # Generated source could not be turned into a callable

Diagnostics are coded rather than exception-typed: every abnormal condition in
the compiler is a `CompilerError` carrying an `ErrorCode` and an optional source
location. The compiler never raises them itself; it hands them to the caller's
``on_error``/``on_warn`` sink. `default_on_error` raises, which gives the
fail-fast behavior of a plain ``base_compile()`` call.

Example:
    ```
    KL-TRN-003: v-else/v-else-if has no adjacent v-if or v-else-if.
      --> <template>:1:24
         |
    >  1 | <p v-if="a">a</p><b/><p v-else>b</p>
         |                       ^^^^^^^^^^^^^^^
    ```

"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from kiln.environment import terminal

if TYPE_CHECKING:
    from kiln.nodes import SourceLocation

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------


class ErrorCode(Enum):
    """Searchable diagnostic codes.

    Format: KL-{CATEGORY}-{NUMBER}
    Categories: PAR (parser), TRN (transform), OPT (option combination),
    RES (template resolution), GEN (code generation / materialization)
    """

    # Parser errors (KL-PAR-xxx)
    EOF_IN_TAG = "KL-PAR-001"
    EOF_IN_COMMENT = "KL-PAR-002"
    EOF_BEFORE_TAG_NAME = "KL-PAR-003"
    MISSING_END_TAG = "KL-PAR-004"
    INVALID_END_TAG = "KL-PAR-005"
    DUPLICATE_ATTRIBUTE = "KL-PAR-006"
    MISSING_ATTRIBUTE_VALUE = "KL-PAR-007"
    MISSING_INTERPOLATION_END = "KL-PAR-008"
    MISSING_DIRECTIVE_NAME = "KL-PAR-009"
    MISSING_DYNAMIC_DIRECTIVE_ARGUMENT_END = "KL-PAR-010"

    # Transform errors (KL-TRN-xxx)
    V_IF_NO_EXPRESSION = "KL-TRN-001"
    V_IF_SAME_KEY = "KL-TRN-002"
    V_ELSE_NO_ADJACENT_IF = "KL-TRN-003"
    V_FOR_NO_EXPRESSION = "KL-TRN-004"
    V_FOR_MALFORMED_EXPRESSION = "KL-TRN-005"
    V_BIND_NO_EXPRESSION = "KL-TRN-006"
    V_ON_NO_EXPRESSION = "KL-TRN-007"
    V_SLOT_UNEXPECTED_DIRECTIVE_ON_SLOT_OUTLET = "KL-TRN-008"
    V_SLOT_MIXED_SLOT_USAGE = "KL-TRN-009"
    V_SLOT_DUPLICATE_SLOT_NAMES = "KL-TRN-010"
    V_SLOT_EXTRANEOUS_DEFAULT_SLOT_CHILDREN = "KL-TRN-011"
    V_SLOT_MISPLACED = "KL-TRN-012"
    V_MODEL_NO_EXPRESSION = "KL-TRN-013"
    V_MODEL_MALFORMED_EXPRESSION = "KL-TRN-014"
    V_MODEL_ON_SCOPE_VARIABLE = "KL-TRN-015"
    INVALID_EXPRESSION = "KL-TRN-016"
    V_MEMO_NO_EXPRESSION = "KL-TRN-017"
    FILTERS_DEPRECATED = "KL-TRN-018"

    # Unsupported option combinations (KL-OPT-xxx)
    PREFIX_ID_NOT_SUPPORTED = "KL-OPT-001"
    MODULE_MODE_NOT_SUPPORTED = "KL-OPT-002"
    CACHE_HANDLER_NOT_SUPPORTED = "KL-OPT-003"
    SCOPE_ID_NOT_SUPPORTED = "KL-OPT-004"

    # Template resolution (KL-RES-xxx)
    TEMPLATE_NOT_FOUND = "KL-RES-001"
    INVALID_TEMPLATE = "KL-RES-002"

    # Code generation (KL-GEN-xxx)
    MATERIALIZATION_FAILED = "KL-GEN-001"

    @property
    def message(self) -> str:
        """Default human-readable message for this code."""
        return _MESSAGES[self]

    @property
    def category(self) -> str:
        """Error category (e.g., 'parser', 'transform', 'option')."""
        prefix = self.value.split("-")[1]
        return {
            "PAR": "parser",
            "TRN": "transform",
            "OPT": "option",
            "RES": "resolution",
            "GEN": "codegen",
        }.get(prefix, "unknown")


_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.EOF_IN_TAG: "Unexpected EOF in tag.",
    ErrorCode.EOF_IN_COMMENT: "Unexpected EOF in comment.",
    ErrorCode.EOF_BEFORE_TAG_NAME: "Unexpected EOF before tag name.",
    ErrorCode.MISSING_END_TAG: "Element is missing end tag.",
    ErrorCode.INVALID_END_TAG: "Invalid end tag.",
    ErrorCode.DUPLICATE_ATTRIBUTE: "Duplicate attribute.",
    ErrorCode.MISSING_ATTRIBUTE_VALUE: "Attribute value was expected.",
    ErrorCode.MISSING_INTERPOLATION_END: "Interpolation end sign was not found.",
    ErrorCode.MISSING_DIRECTIVE_NAME: "Legal directive name was expected.",
    ErrorCode.MISSING_DYNAMIC_DIRECTIVE_ARGUMENT_END: (
        "End bracket for dynamic directive argument was not found. "
        "Note that dynamic directive argument cannot contain spaces."
    ),
    ErrorCode.V_IF_NO_EXPRESSION: "v-if/v-else-if is missing expression.",
    ErrorCode.V_IF_SAME_KEY: "v-if/else branches must use unique keys.",
    ErrorCode.V_ELSE_NO_ADJACENT_IF: "v-else/v-else-if has no adjacent v-if or v-else-if.",
    ErrorCode.V_FOR_NO_EXPRESSION: "v-for is missing expression.",
    ErrorCode.V_FOR_MALFORMED_EXPRESSION: "v-for has invalid expression.",
    ErrorCode.V_BIND_NO_EXPRESSION: "v-bind is missing expression.",
    ErrorCode.V_ON_NO_EXPRESSION: "v-on is missing expression.",
    ErrorCode.V_SLOT_UNEXPECTED_DIRECTIVE_ON_SLOT_OUTLET: "Unexpected custom directive on <slot> outlet.",
    ErrorCode.V_SLOT_MIXED_SLOT_USAGE: (
        "Mixed v-slot usage on both the component and nested <template>. "
        "When there are multiple named slots, all slots should use <template> syntax."
    ),
    ErrorCode.V_SLOT_DUPLICATE_SLOT_NAMES: "Duplicate slot names found.",
    ErrorCode.V_SLOT_EXTRANEOUS_DEFAULT_SLOT_CHILDREN: (
        "Extraneous children found when component already has explicitly named "
        "default slot. These children will be ignored."
    ),
    ErrorCode.V_SLOT_MISPLACED: "v-slot can only be used on components or <template> tags.",
    ErrorCode.V_MODEL_NO_EXPRESSION: "v-model is missing expression.",
    ErrorCode.V_MODEL_MALFORMED_EXPRESSION: "v-model value must be a valid assignment target.",
    ErrorCode.V_MODEL_ON_SCOPE_VARIABLE: (
        "v-model cannot be used on v-for or v-slot scope variables because they are not writable."
    ),
    ErrorCode.INVALID_EXPRESSION: "Error parsing Python expression: ",
    ErrorCode.V_MEMO_NO_EXPRESSION: "v-memo is missing expression.",
    ErrorCode.FILTERS_DEPRECATED: "Filter pipes are deprecated. Call the filter as a function instead.",
    ErrorCode.PREFIX_ID_NOT_SUPPORTED: (
        '"prefix_identifiers" option is not supported in this build of compiler.'
    ),
    ErrorCode.MODULE_MODE_NOT_SUPPORTED: "Module mode is not supported in this build of compiler.",
    ErrorCode.CACHE_HANDLER_NOT_SUPPORTED: (
        '"cache_handlers" option is only supported when the "prefix_identifiers" option is enabled.'
    ),
    ErrorCode.SCOPE_ID_NOT_SUPPORTED: '"scope_id" option is only supported in module mode.',
    ErrorCode.TEMPLATE_NOT_FOUND: "Template element not found or is empty: ",
    ErrorCode.INVALID_TEMPLATE: "Invalid template option: ",
    ErrorCode.MATERIALIZATION_FAILED: "Generated render code could not be materialized: ",
}


# ---------------------------------------------------------------------------
# Code frames
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source context around a reported span.

    Attributes:
        lines: (line_number, line_content) pairs shown in the frame.
        marks: (line_number, column, width) caret underlines, one per line
            the reported span touches.
    """

    lines: tuple[tuple[int, str], ...]
    marks: tuple[tuple[int, int, int], ...] = ()

    @property
    def error_line(self) -> int | None:
        """First line the span touches."""
        return self.marks[0][0] if self.marks else None

    def format(self) -> str:
        """Format the frame in Rust-inspired diagnostic style."""
        underlines = {lineno: (column, width) for lineno, column, width in self.marks}
        parts: list[str] = [terminal.dim_text("     |")]
        for lineno, content in self.lines:
            mark = underlines.get(lineno)
            parts.append(terminal.format_source_line(lineno, content, highlighted=mark is not None))
            if mark is not None:
                parts.append(terminal.format_underline(*mark))
        parts.append(terminal.dim_text("     |"))
        return "\n".join(parts)


def build_code_frame(
    source: str,
    start: int = 0,
    end: int | None = None,
    *,
    context_lines: int = 2,
) -> SourceSnippet:
    """Build a SourceSnippet underlining ``source[start:end]``.

    Args:
        source: Full template source text.
        start: Start offset of the reported span.
        end: End offset (exclusive). Defaults to ``start``, which underlines a
            single character.
        context_lines: Lines shown before the first and after the last
            underlined line.

    Returns:
        SourceSnippet covering the span plus surrounding context.
    """
    size = len(source)
    start = min(max(start, 0), size)
    end = start if end is None else min(max(end, start), size)

    # (line_start_offset, text) for every line, including a trailing empty line
    rows: list[tuple[int, str]] = []
    offset = 0
    for raw in source.splitlines(keepends=True):
        rows.append((offset, raw.rstrip("\r\n")))
        offset += len(raw)
    if not rows or source.endswith(("\n", "\r")):
        rows.append((offset, ""))

    def row_of(position: int) -> int:
        index = 0
        for i, (line_start, _text) in enumerate(rows):
            if line_start > position:
                break
            index = i
        return index

    first = row_of(start)
    last = row_of(max(end - 1, start))

    marks: list[tuple[int, int, int]] = []
    for i in range(first, last + 1):
        line_start, text = rows[i]
        column = start - line_start if i == first else 0
        stop = end - line_start if i == last else len(text)
        stop = min(stop, len(text))
        marks.append((i + 1, column, max(1, stop - column)))

    lo = max(0, first - context_lines)
    hi = min(len(rows), last + context_lines + 1)
    lines = tuple((i + 1, rows[i][1]) for i in range(lo, hi))
    return SourceSnippet(lines=lines, marks=tuple(marks))


def generate_code_frame(source: str, start: int = 0, end: int | None = None) -> str:
    """Render a code frame as text (convenience over `build_code_frame`)."""
    return build_code_frame(source, start, end).format()


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class TemplateError(Exception):
    """Base exception for all kiln errors.

    Attributes:
        code: Optional ErrorCode for searchable error identification.
    """

    code: ErrorCode | None = None

    def format_compact(self) -> str:
        """Format as ``CODE: message`` without traceback noise."""
        header = str(self)
        if self.code and self.code.value not in header:
            header = f"{self.code.value}: {header}"
        return header


class CompilerError(TemplateError):
    """Coded compiler diagnostic, optionally pinned to a source span.

    Instances are passed to ``on_error``/``on_warn`` sinks. They are only
    raised when a sink decides to raise (the default ``on_error`` does).

    Attributes:
        code: Diagnostic code.
        message: Human-readable message (defaults to the code's message).
        loc: Source span the diagnostic refers to, if known.
    """

    def __init__(
        self,
        code: ErrorCode,
        loc: SourceLocation | None = None,
        message: str | None = None,
    ):
        self.code = code
        self.loc = loc
        self.message = message or code.message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"CompilerError({self.code.value}, {self.message!r})"

    @property
    def lineno(self) -> int | None:
        return self.loc.start.line if self.loc else None

    def code_frame(self, source: str) -> SourceSnippet | None:
        """Code frame for this error's span within ``source``."""
        if self.loc is None:
            return None
        return build_code_frame(source, self.loc.start.offset, self.loc.end.offset)

    def format_compact(self, source: str | None = None, *, warning: bool = False) -> str:
        """Format as a structured terminal diagnostic.

        Args:
            source: Template source; when given, a code frame is included.
            warning: Color the code as a warning instead of an error.
        """
        parts = [terminal.format_error_header(self.code.value, self.message, warning=warning)]
        if self.loc is not None:
            where = f"<template>:{self.loc.start.line}:{self.loc.start.column}"
            parts.append(f"  --> {terminal.location(where)}")
            if source is not None:
                frame = self.code_frame(source)
                if frame is not None:
                    parts.append(frame.format())
        return "\n".join(parts)


class MaterializationError(TemplateError):
    """Generated source could not be turned into a callable.

    Raised by a `CodeMaterializer` when the generated code is malformed or does
    not define a render function.
    """

    code: ErrorCode | None = ErrorCode.MATERIALIZATION_FAILED

    def __init__(self, message: str, *, source: str | None = None, lineno: int | None = None):
        self.message = message
        self.source = source
        self.lineno = lineno
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        header = f"{ErrorCode.MATERIALIZATION_FAILED.message}{self.message}"
        if self.source and self.lineno:
            lines = self.source.splitlines()
            if 0 < self.lineno <= len(lines):
                return f"{header}\n   |\n{self.lineno:>3} | {lines[self.lineno - 1]}"
        return header


def create_compiler_error(
    code: ErrorCode,
    loc: SourceLocation | None = None,
    additional_message: str | None = None,
) -> CompilerError:
    """Create a CompilerError, appending ``additional_message`` to the default text."""
    message = code.message + (additional_message or "")
    return CompilerError(code, loc, message)


def default_on_error(error: CompilerError) -> None:
    """Fail-fast sink: raise the diagnostic."""
    raise error


def default_on_warn(error: CompilerError) -> None:
    """Silent warning sink (DEBUG log only)."""
    logger.debug("compiler warning %s: %s", error.code.value, error.message)
