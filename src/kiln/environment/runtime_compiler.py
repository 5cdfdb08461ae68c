"""Compile templates to render functions at runtime.

`RuntimeCompiler.compile` resolves a template reference, looks the template up
in its `CompileCache`, and on a miss compiles it with `base_compile` and
materializes the generated source into a callable.

This path never raises for template problems. Diagnostics are logged at
WARNING with a code frame of the template, and a compile that cannot produce
code yields `NOOP`:

    >>> render = compile_to_function("<div>{{ msg }}</div>")
    >>> render._rc
    True

Template references:
    - template text: compiled as-is
    - ``"#id"``: looked up with ``document.query_selector``; a missing element
      compiles the empty template
    - element-like objects: their ``inner_html`` is compiled
    - anything else: `NOOP`
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from kiln import runtime
from kiln.compiler.core import base_compile
from kiln.compiler.options import CompilerOptions, merge_options
from kiln.config import DEFAULT_FLAGS, BuildFlags
from kiln.environment.cache import CompileCache, RenderFunction
from kiln.environment.exceptions import (
    CompilerError,
    ErrorCode,
    MaterializationError,
    create_compiler_error,
)
from kiln.environment.host import CustomElementRegistry, DocumentLike, is_element
from kiln.environment.materializer import CodeMaterializer, ExecMaterializer

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Template compilation error: "


def NOOP(*args: Any, **kwargs: Any) -> None:
    """Render function returned when a template cannot be compiled."""
    return None


class _NotCompiled(Exception):
    """Raised inside a cache computation so `NOOP` is never stored."""


class RuntimeCompiler:
    """Template reference -> cached render function.

    Args:
        cache: Compile cache (a fresh `CompileCache` by default).
        materializer: Turns generated source into a callable.
        document: Host document used to resolve ``"#id"`` references.
        custom_elements: Host custom element registry; backs
            ``is_custom_element`` when the caller's options set none.
        flags: Build flags.
    """

    __slots__ = ("cache", "custom_elements", "document", "flags", "materializer")

    def __init__(
        self,
        cache: CompileCache | None = None,
        materializer: CodeMaterializer | None = None,
        document: DocumentLike | None = None,
        custom_elements: CustomElementRegistry | None = None,
        flags: BuildFlags | None = None,
    ):
        self.flags = flags or DEFAULT_FLAGS
        self.cache = cache if cache is not None else CompileCache()
        if materializer is None:
            # global build: generated code finds the runtime among the materializer's globals
            globals_ = {CompilerOptions().runtime_global_name: runtime} if self.flags.global_build else None
            materializer = ExecMaterializer(globals_)
        self.materializer = materializer
        self.document = document
        self.custom_elements = custom_elements

    def compile(self, template: Any, options: CompilerOptions | None = None) -> RenderFunction:
        """Render function for ``template``.

        Args:
            template: Template text, ``"#id"`` selector, or element-like object.
            options: Caller options. Results are cached per options object.

        Returns:
            The render function, or `NOOP` when nothing could be compiled.
        """
        if not isinstance(template, str):
            if is_element(template):
                template = template.inner_html
            else:
                self._log(
                    create_compiler_error(ErrorCode.INVALID_TEMPLATE, additional_message=repr(template)),
                    None,
                    warning=True,
                )
                return NOOP

        key = template
        missed = False

        def compute() -> RenderFunction:
            nonlocal missed
            missed = True
            logger.debug("compile cache miss (%d chars)", len(key))
            source = self._resolve_selector(key) if key.startswith("#") else key
            fn = self._compile(source, options)
            if fn is NOOP:
                raise _NotCompiled
            return fn

        try:
            fn = self.cache.get_or_compute(options, key, compute)
        except _NotCompiled:
            return NOOP
        if not missed:
            logger.debug("compile cache hit (%d chars)", len(key))
        return fn

    def _resolve_selector(self, selector: str) -> str:
        element = self.document.query_selector(selector) if self.document is not None else None
        if element is None:
            self._log(
                create_compiler_error(ErrorCode.TEMPLATE_NOT_FOUND, additional_message=selector),
                None,
                warning=True,
            )
            return ""
        return element.inner_html

    def _compile(self, source: str, options: CompilerOptions | None) -> RenderFunction:
        dev = self.flags.dev

        def on_error(error: CompilerError) -> None:
            self._log(error, source)

        def on_warn(error: CompilerError) -> None:
            self._log(error, source, warning=True)

        def ignore(error: CompilerError) -> None:
            return None

        defaults = CompilerOptions(
            hoist_static=True,
            on_error=on_error,
            on_warn=on_warn if dev else ignore,
            is_custom_element=self._registry_predicate(),
        )
        effective = merge_options(defaults, options)

        start = time.perf_counter()
        try:
            result = base_compile(source, effective, flags=self.flags)
        except CompilerError as e:
            # raised by a caller-supplied sink
            self._log(e, source)
            return NOOP

        bindings: Mapping[str, Any] = {}
        # browser builds generate function-mode code whatever the requested mode
        if not self.flags.global_build and (self.flags.browser or effective.mode == "function"):
            bindings = {effective.runtime_global_name: runtime}
        try:
            fn = self.materializer.materialize(result.code, bindings)
        except MaterializationError as e:
            logger.warning("%s%s\n\n%s", ERROR_PREFIX, e, result.code)
            return NOOP

        fn._rc = True  # type: ignore[attr-defined]
        logger.debug("compiled template in %.2fms", (time.perf_counter() - start) * 1000)
        return fn

    def _registry_predicate(self) -> Callable[[str], bool] | None:
        registry = self.custom_elements
        if registry is None:
            return None
        return lambda tag: bool(registry.get(tag))

    def _log(self, error: CompilerError, source: str | None, *, warning: bool = False) -> None:
        prefix = "" if warning else ERROR_PREFIX
        logger.warning("%s%s", prefix, error.format_compact(source, warning=warning))


_default_compiler = RuntimeCompiler()


def compile_to_function(template: Any, options: CompilerOptions | None = None) -> RenderFunction:
    """Compile ``template`` with the shared default `RuntimeCompiler`."""
    return _default_compiler.compile(template, options)


runtime.register_runtime_compiler(compile_to_function)


__all__ = ["ERROR_PREFIX", "NOOP", "RuntimeCompiler", "compile_to_function"]
