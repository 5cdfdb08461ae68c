"""Legacy filter pipes (compatibility builds only).

``{{ price | currency('EUR') | upper }}`` is rewritten to
``_filter_upper(_filter_currency(price, 'EUR'))``. A pipe is a ``|`` outside
strings and brackets that is not part of ``||`` or ``|=``; in compatibility
builds that rules out bitwise-or at the top level of an expression.

Every rewritten expression is reported to ``on_warn`` as deprecated.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from kiln.compiler.runtime_helpers import RuntimeHelper
from kiln.compiler.utils import to_valid_asset_id
from kiln.environment.exceptions import ErrorCode, create_compiler_error
from kiln.nodes import CompoundExpression, Directive, Element, Interpolation, Node, SimpleExpression

if TYPE_CHECKING:
    from kiln.compiler.transform import TransformContext

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_QUOTES = ("'", '"')


def transform_filter(node: Node, context: TransformContext) -> None:
    if not context.flags.compat:
        return
    if isinstance(node, Interpolation):
        _rewrite(node.content, context)
    elif isinstance(node, Element):
        for prop in node.props:
            if isinstance(prop, Directive) and prop.name != "for" and prop.exp is not None:
                _rewrite(prop.exp, context)


def _rewrite(exp: SimpleExpression | CompoundExpression, context: TransformContext) -> None:
    if isinstance(exp, SimpleExpression):
        if not exp.is_static:
            rewritten = parse_filter(exp.content, context)
            if rewritten != exp.content:
                context.on_warn(create_compiler_error(ErrorCode.FILTERS_DEPRECATED, exp.loc))
                exp.content = rewritten
        return
    for part in exp.children:
        if isinstance(part, (SimpleExpression, CompoundExpression)):
            _rewrite(part, context)


def split_pipes(content: str) -> list[str]:
    """Split ``content`` at top-level filter pipes.

    The first element is the filtered expression; the rest are filter calls.
    """
    segments: list[str] = []
    depth: list[str] = []
    quote: str | None = None
    last = 0
    i = 0
    while i < len(content):
        char = content[i]
        if quote is not None:
            if char == "\\":
                i += 2
                continue
            if char == quote:
                quote = None
        elif char in _QUOTES:
            quote = char
        elif char in _OPENERS:
            depth.append(_OPENERS[char])
        elif depth and char == depth[-1]:
            depth.pop()
        elif char == "|" and not depth:
            nxt = content[i + 1] if i + 1 < len(content) else ""
            prev = content[i - 1] if i else ""
            if nxt not in ("|", "=") and prev != "|":
                segments.append(content[last:i])
                last = i + 1
        i += 1
    segments.append(content[last:])
    return [segment.strip() for segment in segments]


def parse_filter(content: str, context: TransformContext) -> str:
    """Rewrite filter pipes in ``content`` to nested filter calls."""
    segments = split_pipes(content)
    if len(segments) == 1:
        return content
    expression = segments[0]
    for segment in segments[1:]:
        if segment:
            expression = _wrap_filter(expression, segment, context)
    return expression


def _wrap_filter(expression: str, filter_call: str, context: TransformContext) -> str:
    context.helper(RuntimeHelper.RESOLVE_FILTER)
    paren = filter_call.find("(")
    if paren < 0:
        context.filters.add(filter_call)
        return f"{to_valid_asset_id(filter_call, 'filter')}({expression})"
    name = filter_call[:paren].strip()
    args = filter_call[paren + 1 :]
    context.filters.add(name)
    separator = ", " if args.strip() != ")" else ""
    return f"{to_valid_asset_id(name, 'filter')}({expression}{separator}{args}"
