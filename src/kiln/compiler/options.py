"""Compiler options.

`CompilerOptions` is compared and hashed by identity, not by value: the runtime
compiler keys its cache on the options object itself, so two instances with
equal fields get independent cache buckets, and a collected instance releases
its bucket. Options are frozen; derived option sets are new objects created
with `dataclasses.replace` or `merge_options`.

Example:
    >>> opts = CompilerOptions(mode="module", scope_id="data-v-7ba5bd90")
    >>> opts == CompilerOptions(mode="module", scope_id="data-v-7ba5bd90")
    False

"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import MISSING, dataclass, field, fields
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from kiln.environment.exceptions import CompilerError
    from kiln.nodes import Directive, Element, Node, Property
    from kiln.compiler.transform import TransformContext

ErrorHandler = Callable[["CompilerError"], None]
ExitFn = Callable[[], None]
NodeTransform = Callable[["Node", "TransformContext"], "ExitFn | list[ExitFn] | None"]


@dataclass(slots=True)
class DirectiveTransformResult:
    """Props a directive transform contributes to its element.

    Attributes:
        props: Properties merged into the element's props object.
        need_runtime: True (or a helper symbol) when the directive must also be
            applied at runtime with ``with_directives``.
    """

    props: list[Property] = field(default_factory=list)
    need_runtime: Any = False


DirectiveTransform = Callable[
    ["Directive", "Element", "TransformContext"], DirectiveTransformResult
]

Mode = Literal["function", "module"]
Whitespace = Literal["condense", "preserve"]


@dataclass(frozen=True, slots=True, eq=False, weakref_slot=True)
class CompilerOptions:
    """Options for one compile call.

    Attributes:
        mode: "function" emits code that receives the runtime as an injected
            name; "module" emits an importable module.
        prefix_identifiers: Rewrite free names in expressions to ``_ctx.<name>``.
            Implied by module mode outside constrained builds.
        cache_handlers: Cache inline event handlers in ``_cache``. Requires
            identifier prefixing.
        hoist_static: Lift constant subtrees out of ``render`` (None: not set, off).
        scope_id: Scoped-style attribute added to every element. Module mode only.
        is_custom_element: Predicate for tags rendered as plain elements even
            though they are not known HTML tags.
        on_error: Error sink. Defaults to raising.
        on_warn: Warning sink. Defaults to ignoring.
        node_transforms: Extra node transforms, run after the built-ins.
        directive_transforms: Extra directive transforms, overriding built-ins.
        expression_plugins: Expression grammar extensions (e.g. "typescript").
        is_ts: Template expressions may carry type casts.
        delimiters: Interpolation delimiters.
        comments: Keep comments (defaults to keeping them in dev builds).
        whitespace: Whitespace handling between and inside text nodes.
        runtime_module_name: Module imported by module-mode output.
        runtime_global_name: Name function-mode output reads helpers from.
    """

    mode: Mode = "function"
    prefix_identifiers: bool = False
    cache_handlers: bool = False
    hoist_static: bool | None = None
    scope_id: str | None = None
    is_custom_element: Callable[[str], bool] | None = None
    on_error: ErrorHandler | None = None
    on_warn: ErrorHandler | None = None
    node_transforms: Sequence[NodeTransform] = ()
    directive_transforms: Mapping[str, DirectiveTransform] = field(default_factory=dict)
    expression_plugins: Sequence[str] = ()
    is_ts: bool = False
    delimiters: tuple[str, str] = ("{{", "}}")
    comments: bool | None = None
    whitespace: Whitespace = "condense"
    runtime_module_name: str = "kiln.runtime"
    runtime_global_name: str = "runtime"


def _field_default(f: Any) -> Any:
    if f.default is not MISSING:
        return f.default
    if f.default_factory is not MISSING:
        return f.default_factory()
    return MISSING


def merge_options(base: CompilerOptions, overrides: CompilerOptions | None) -> CompilerOptions:
    """Overlay ``overrides`` onto ``base``.

    A field of ``overrides`` wins when it differs from the field's default,
    i.e. when the caller actually set it. Returns a new object; neither input
    is modified.
    """
    if overrides is None:
        return base
    values: dict[str, Any] = {}
    for f in fields(CompilerOptions):
        value = getattr(overrides, f.name)
        values[f.name] = getattr(base, f.name) if value == _field_default(f) else value
    return CompilerOptions(**values)
