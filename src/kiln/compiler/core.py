"""Compile orchestration: parse -> transform -> generate.

`base_compile` validates the option combination for the active build, derives
the effective options (never modifying the caller's object), assembles the
transform preset and runs the pipeline:

    source -> parse() -> Root -> transform() -> generate() -> CodegenResult

Unsupported option combinations are reported through ``on_error``; when the
sink returns, compilation continues with the best-effort options.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

from kiln.compiler.codegen import CodegenResult, generate
from kiln.compiler.expressions import TS_PLUGIN
from kiln.compiler.options import CompilerOptions, DirectiveTransform, NodeTransform
from kiln.compiler.transform import transform
from kiln.compiler.transforms import (
    track_slot_scopes,
    track_v_for_slot_scopes,
    transform_bind,
    transform_element,
    transform_expression,
    transform_filter,
    transform_for,
    transform_if,
    transform_memo,
    transform_model,
    transform_on,
    transform_once,
    transform_slot_outlet,
    transform_text,
)
from kiln.config import DEFAULT_FLAGS, BuildFlags
from kiln.environment.exceptions import ErrorCode, create_compiler_error, default_on_error
from kiln.nodes import Root
from kiln.parser import parse


@dataclass(frozen=True, slots=True)
class TransformPreset:
    """Ordered node transforms plus directive transforms by name."""

    node_transforms: tuple[NodeTransform, ...]
    directive_transforms: Mapping[str, DirectiveTransform] = field(
        default_factory=lambda: MappingProxyType({})
    )


def get_base_transform_preset(
    prefix_identifiers: bool,
    *,
    flags: BuildFlags | None = None,
) -> TransformPreset:
    """Built-in transforms, in the order they must run.

    Structural directives (once, if, memo, for) come first so later transforms
    see the lowered nodes. Expression processing runs before element lowering
    and slot scope tracking wraps it, so expressions see the names bound by
    enclosing ``v-for`` and slot scopes.
    """
    flags = flags or DEFAULT_FLAGS
    node_transforms: list[NodeTransform] = [
        transform_once,
        transform_if,
        transform_memo,
        transform_for,
    ]
    if flags.compat:
        node_transforms.append(transform_filter)
    if not flags.browser and prefix_identifiers:
        node_transforms.extend([track_v_for_slot_scopes, transform_expression])
    elif flags.browser and flags.dev:
        node_transforms.append(transform_expression)
    node_transforms.extend(
        [
            transform_slot_outlet,
            transform_element,
            track_slot_scopes,
            transform_text,
        ]
    )
    return TransformPreset(
        node_transforms=tuple(node_transforms),
        directive_transforms=MappingProxyType(
            {
                "on": transform_on,
                "bind": transform_bind,
                "model": transform_model,
            }
        ),
    )


def resolve_options(options: CompilerOptions, flags: BuildFlags) -> CompilerOptions:
    """Validate ``options`` for ``flags`` and derive the effective options.

    Diagnostics go to ``options.on_error``. Returns a new options object;
    ``options`` is returned unchanged only when nothing needs to change.
    """
    on_error = options.on_error or default_on_error
    is_module_mode = options.mode == "module"

    if flags.browser:
        if options.prefix_identifiers is True:
            on_error(create_compiler_error(ErrorCode.PREFIX_ID_NOT_SUPPORTED))
        elif is_module_mode:
            on_error(create_compiler_error(ErrorCode.MODULE_MODE_NOT_SUPPORTED))

    prefix_identifiers = not flags.browser and (options.prefix_identifiers is True or is_module_mode)
    if not prefix_identifiers and options.cache_handlers:
        on_error(create_compiler_error(ErrorCode.CACHE_HANDLER_NOT_SUPPORTED))
    if options.scope_id and not is_module_mode:
        on_error(create_compiler_error(ErrorCode.SCOPE_ID_NOT_SUPPORTED))

    plugins = tuple(options.expression_plugins)
    if options.is_ts and not flags.browser and TS_PLUGIN not in plugins:
        plugins = (*plugins, TS_PLUGIN)

    # browser builds always generate function-mode code
    mode = "function" if flags.browser else options.mode
    scope_id = None if flags.browser else options.scope_id

    if (
        prefix_identifiers == options.prefix_identifiers
        and plugins == tuple(options.expression_plugins)
        and mode == options.mode
        and scope_id == options.scope_id
    ):
        return options
    return replace(
        options,
        prefix_identifiers=prefix_identifiers,
        expression_plugins=plugins,
        mode=mode,
        scope_id=scope_id,
    )


def base_compile(
    source: str | Root,
    options: CompilerOptions | None = None,
    *,
    flags: BuildFlags | None = None,
) -> CodegenResult:
    """Compile a template to render-function source.

    Args:
        source: Template markup, or an already parsed `Root`.
        options: Compiler options. Never modified.
        flags: Build flags (defaults to `DEFAULT_FLAGS`).

    Returns:
        CodegenResult whose ``code`` defines ``render(_ctx, _cache)``.

    Raises:
        CompilerError: Only when the ``on_error`` sink raises (the default does).

    Example:
        >>> result = base_compile("<div>{{ msg }}</div>")
        >>> "def render(_ctx, _cache):" in result.code
        True
    """
    flags = flags or DEFAULT_FLAGS
    options = resolve_options(options or CompilerOptions(), flags)

    root = parse(source, options, flags=flags) if isinstance(source, str) else source

    preset = get_base_transform_preset(options.prefix_identifiers, flags=flags)
    transform(
        root,
        options,
        node_transforms=[*preset.node_transforms, *options.node_transforms],
        directive_transforms={**preset.directive_transforms, **options.directive_transforms},
        flags=flags,
    )
    return generate(root, options)


__all__ = ["TransformPreset", "base_compile", "get_base_transform_preset", "resolve_options"]
