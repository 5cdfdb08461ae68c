"""Kiln: compile declarative HTML templates into Python render functions.

Templates use directive attributes (``v-if``, ``v-for``, ``v-bind``,
``v-on``, ``v-model``, ``v-slot``) and ``{{ }}`` interpolation. Template
expressions are Python expressions.

Quickstart:
    >>> from kiln import compile_to_function, render
    >>> fn = compile_to_function('<ul><li v-for="item in items">{{ item }}</li></ul>')
    >>> tree = render(fn, {"items": ["a", "b"]})
    >>> [li.children for li in tree.children[0].children]
    ['a', 'b']

Generated source:
    >>> from kiln import base_compile
    >>> print(base_compile("<p>{{ msg }}</p>").code)  # doctest: +SKIP

Architecture:
Template Source → Parser → Template AST → Transforms → Codegen → Python source

Pipeline stages:
1. **Parser**: Builds the template AST with source locations
2. **Transforms**: Ordered node transforms lower directives into codegen nodes
3. **Codegen**: Builds an `ast.Module` and renders it with `ast.unparse`
4. **Runtime compiler**: Caches and materializes render functions per options object

Errors:
Every diagnostic is a `CompilerError` with a searchable `ErrorCode`
(``KL-TRN-003``) handed to the ``on_error``/``on_warn`` sinks.
`base_compile` raises by default; `compile_to_function` logs a code frame
and returns a no-op render function instead.
"""

from kiln.compiler.codegen import CodegenResult, generate
from kiln.compiler.core import TransformPreset, base_compile, get_base_transform_preset
from kiln.compiler.options import CompilerOptions, DirectiveTransformResult, merge_options
from kiln.compiler.runtime_helpers import RuntimeHelper
from kiln.compiler.transform import TransformContext, transform
from kiln.config import DEFAULT_FLAGS, BuildFlags
from kiln.environment.cache import CompileCache
from kiln.environment.exceptions import (
    CompilerError,
    ErrorCode,
    MaterializationError,
    SourceSnippet,
    TemplateError,
    build_code_frame,
    generate_code_frame,
)
from kiln.environment.materializer import CodeMaterializer, ExecMaterializer
from kiln.environment.runtime_compiler import NOOP, RuntimeCompiler, compile_to_function
from kiln.parser import parse
from kiln.runtime import RenderContext, VNode, render, render_scope

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_FLAGS",
    "NOOP",
    "BuildFlags",
    "CodeMaterializer",
    "CodegenResult",
    "CompileCache",
    "CompilerError",
    "CompilerOptions",
    "DirectiveTransformResult",
    "ErrorCode",
    "ExecMaterializer",
    "MaterializationError",
    "RenderContext",
    "RuntimeCompiler",
    "RuntimeHelper",
    "SourceSnippet",
    "TemplateError",
    "TransformContext",
    "TransformPreset",
    "VNode",
    "__version__",
    "base_compile",
    "build_code_frame",
    "compile_to_function",
    "generate",
    "generate_code_frame",
    "get_base_transform_preset",
    "merge_options",
    "parse",
    "render",
    "render_scope",
    "transform",
]


def __getattr__(name: str) -> object:
    """Module-level getattr for the free-threading declaration."""
    if name == "_Py_mod_gil":
        # 0 = Py_MOD_GIL_NOT_USED; render state lives in ContextVars
        return 0
    raise AttributeError(f"module 'kiln' has no attribute {name!r}")
