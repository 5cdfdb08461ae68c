"""Lazy compilation of component ``template`` options.

A component may carry template text instead of a render function. The first
time such a component is resolved, the runtime compiles the text through the
compiler installed with `register_runtime_compiler` and stores the result as
the component's ``render``. Importing ``kiln`` installs
`compile_to_function`; without an installed compiler the component is
returned as-is and a warning is logged.

Example:
    >>> class Badge:
    ...     template = "<b>{{ label }}</b>"
    >>> tree = render(compile_to_function("<Badge />"), components={"Badge": Badge})
    >>> callable(tree.type.render)
    True
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, MutableMapping
from typing import Any

logger = logging.getLogger(__name__)

CompileFunction = Callable[..., Any]

_compile: CompileFunction | None = None


def register_runtime_compiler(compile_fn: CompileFunction) -> None:
    """Install the compiler used for component ``template`` options.

    ``compile_fn`` is called as ``compile_fn(template, options)`` where
    ``options`` is the component's ``compiler_options`` (or None).
    """
    global _compile
    _compile = compile_fn


def is_runtime_only() -> bool:
    """True when no runtime compiler is installed."""
    return _compile is None


def _option(component: Any, name: str) -> Any:
    if isinstance(component, Mapping):
        return component.get(name)
    return getattr(component, name, None)


def compile_component(component: Any) -> Any:
    """Give ``component`` a ``render`` compiled from its ``template`` text.

    Components that already define ``render``, or carry no template text, are
    returned unchanged. The compiled function is stored on the component, so
    each component's template is compiled once.
    """
    template = _option(component, "template")
    if not isinstance(template, str) or _option(component, "render") is not None:
        return component
    if isinstance(component, Mapping) and not isinstance(component, MutableMapping):
        return component
    if _compile is None:
        logger.warning("Component provided template option but runtime compilation is not supported in this build.")
        return component

    render_fn = _compile(template, _option(component, "compiler_options"))
    if isinstance(component, MutableMapping):
        component["render"] = render_fn
    else:
        component.render = render_fn
    return component


__all__ = ["compile_component", "is_runtime_only", "register_runtime_compiler"]
