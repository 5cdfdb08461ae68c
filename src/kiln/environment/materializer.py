"""Turn generated render source into a callable.

A `CodeMaterializer` receives the generated module source and the names to
inject (the runtime module in the standard build) and returns the ``render``
function the source defines. `ExecMaterializer` compiles and executes the
source in a fresh namespace.
"""

from __future__ import annotations

import builtins
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from kiln.compiler.codegen import RENDER_NAME
from kiln.environment.exceptions import MaterializationError


class CodeMaterializer(Protocol):
    def materialize(self, source: str, bindings: Mapping[str, Any]) -> Callable[..., Any]:
        """Return the render function defined by ``source``.

        Raises:
            MaterializationError: If the source is malformed or defines no
                render function.
        """
        ...


class ExecMaterializer:
    """Materialize generated code with `compile` and `exec`.

    Attributes:
        globals: Names every namespace starts with. In the global build the
            runtime is found here instead of being injected per call.
        filename: Filename reported in tracebacks from generated code.
    """

    __slots__ = ("filename", "globals")

    def __init__(self, globals: Mapping[str, Any] | None = None, filename: str = "<template>"):
        self.globals = dict(globals or {})
        self.filename = filename

    def materialize(self, source: str, bindings: Mapping[str, Any]) -> Callable[..., Any]:
        try:
            code = compile(source, self.filename, "exec")
        except SyntaxError as e:
            raise MaterializationError(e.msg, source=source, lineno=e.lineno) from e

        namespace: dict[str, Any] = {"__builtins__": builtins, **self.globals, **bindings}
        try:
            exec(code, namespace)  # noqa: S102
        except Exception as e:
            lineno = self._generated_lineno(e)
            raise MaterializationError(f"{type(e).__name__}: {e}", source=source, lineno=lineno) from e

        render = namespace.get(RENDER_NAME)
        if not callable(render):
            raise MaterializationError(f"generated code does not define {RENDER_NAME}()", source=source)
        return render

    def _generated_lineno(self, error: BaseException) -> int | None:
        lineno = None
        tb = error.__traceback__
        while tb is not None:
            if tb.tb_frame.f_code.co_filename == self.filename:
                lineno = tb.tb_lineno
            tb = tb.tb_next
        return lineno


__all__ = ["CodeMaterializer", "ExecMaterializer"]
