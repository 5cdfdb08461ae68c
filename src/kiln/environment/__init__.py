"""Diagnostics and the runtime compile environment.

`exceptions` holds the error taxonomy and code frames; `runtime_compiler`
turns templates into cached render functions using `cache`, `materializer`
and the host protocols in `host`.
"""

from kiln.environment.exceptions import (
    CompilerError,
    ErrorCode,
    MaterializationError,
    SourceSnippet,
    TemplateError,
    build_code_frame,
    create_compiler_error,
    generate_code_frame,
)

__all__ = [
    "CompilerError",
    "ErrorCode",
    "MaterializationError",
    "SourceSnippet",
    "TemplateError",
    "build_code_frame",
    "create_compiler_error",
    "generate_code_frame",
]
