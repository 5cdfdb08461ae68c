"""Template expression handling.

Template expressions are Python expressions. This module parses them with the
standard ``ast`` module and implements the analysis the transforms need:

- identifier prefixing: free names become ``_ctx.<name>`` unless bound by an
  enclosing ``v-for``/slot scope, by a lambda or comprehension inside the
  expression, or whitelisted (builtins, ``_ctx``, ``_cache``, generated names)
- parameter lists (``v-for`` aliases, slot props) parsed as lambda parameters
- type-cast stripping for the "typescript" expression plugin:
  ``count as int`` parses as ``count``

Example:
    >>> tree = parse_expression("items[i].name.title()")
    >>> ast.unparse(prefix_identifiers(tree, lambda name: name == "i")[0])
    '_ctx.items[i].name.title()'

"""

from __future__ import annotations

import ast
import io
import keyword
import tokenize
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from kiln.environment.exceptions import ErrorCode, create_compiler_error
from kiln.nodes import ConstantType, SimpleExpression
from kiln.utils.constants import ALLOWED_GLOBALS, GENERATED_NAME_PREFIXES

if TYPE_CHECKING:
    from kiln.compiler.transform import TransformContext

TS_PLUGIN = "typescript"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def strip_type_casts(source: str) -> str:
    """Remove ``<expr> as <Type>`` casts from an expression.

    ``as`` never appears inside a Python expression, so every ``as`` token
    starts a cast. The cast type is a dotted name optionally followed by a
    subscript, and may be a ``|`` union of such types.

    Returns the source unchanged when it cannot be tokenized.
    """
    try:
        tokens = list(tokenize.generate_tokens(io.StringIO(source).readline))
    except (tokenize.TokenError, SyntaxError):
        return source

    line_starts = [0]
    for line in source.splitlines(keepends=True):
        line_starts.append(line_starts[-1] + len(line))

    def offset(pos: tuple[int, int]) -> int:
        return line_starts[pos[0] - 1] + pos[1]

    spans: list[tuple[int, int]] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok.type == tokenize.NAME and tok.string == "as":
            start = offset(tok.start)
            i += 1
            end = start + 2
            while i < len(tokens) and tokens[i].type == tokenize.NAME:
                end = offset(tokens[i].end)
                i += 1
                while i + 1 < len(tokens) and tokens[i].string == "." and tokens[i + 1].type == tokenize.NAME:
                    end = offset(tokens[i + 1].end)
                    i += 2
                if i < len(tokens) and tokens[i].string == "[":
                    depth = 0
                    while i < len(tokens):
                        if tokens[i].string == "[":
                            depth += 1
                        elif tokens[i].string == "]":
                            depth -= 1
                        end = offset(tokens[i].end)
                        i += 1
                        if depth == 0:
                            break
                if i < len(tokens) and tokens[i].string == "|":
                    i += 1
                    continue
                break
            spans.append((start, end))
            continue
        i += 1

    if not spans:
        return source
    parts: list[str] = []
    last = 0
    for start, end in spans:
        parts.append(source[last:start])
        last = end
    parts.append(source[last:])
    return "".join(parts).rstrip()


def parse_expression(content: str, plugins: Sequence[str] = ()) -> ast.expr:
    """Parse a template expression into a Python expression AST.

    Multi-line expressions are accepted; leading and trailing whitespace is
    ignored.

    Raises:
        SyntaxError: If the content is not a valid Python expression.
    """
    if TS_PLUGIN in plugins:
        content = strip_type_casts(content)
    tree = ast.parse(f"(\n{content.strip()}\n)", mode="eval")
    return tree.body


def parse_params(content: str, plugins: Sequence[str] = ()) -> ast.arguments:
    """Parse a parameter list (``item, index`` or ``props``) as lambda parameters.

    Raises:
        SyntaxError: If the content is not a valid parameter list.
    """
    if TS_PLUGIN in plugins:
        content = strip_type_casts(content)
    tree = ast.parse(f"lambda {content.strip()}: None", mode="eval")
    assert isinstance(tree.body, ast.Lambda)
    return tree.body.args


def param_names(args: ast.arguments) -> list[str]:
    """Names bound by a parameter list, in declaration order."""
    names = [a.arg for a in (*args.posonlyargs, *args.args)]
    if args.vararg:
        names.append(args.vararg.arg)
    names.extend(a.arg for a in args.kwonlyargs)
    if args.kwarg:
        names.append(args.kwarg.arg)
    return names


def is_simple_identifier(content: str) -> bool:
    content = content.strip()
    return content.isidentifier() and not keyword.iskeyword(content)


def is_member_expression(content: str, plugins: Sequence[str] = ()) -> bool:
    """True for names, attribute chains and subscripts: ``a``, ``a.b``, ``a[b].c``."""
    try:
        node = parse_expression(content, plugins)
    except SyntaxError:
        return False
    return isinstance(node, (ast.Name, ast.Attribute, ast.Subscript))


def is_function_expression(content: str, plugins: Sequence[str] = ()) -> bool:
    try:
        node = parse_expression(content, plugins)
    except SyntaxError:
        return False
    return isinstance(node, ast.Lambda)


def is_allowed_global(name: str) -> bool:
    return name in ALLOWED_GLOBALS or name.startswith(GENERATED_NAME_PREFIXES)


# ---------------------------------------------------------------------------
# Identifier analysis
# ---------------------------------------------------------------------------


class _IdentifierRewriter(ast.NodeTransformer):
    """Rewrite free names to ``_ctx.<name>``, tracking names bound inside the
    expression (lambda parameters, comprehension targets, walrus targets)."""

    def __init__(self, is_local: Callable[[str], bool], prefix: bool):
        self._is_local = is_local
        self._prefix = prefix
        self._scopes: list[set[str]] = []
        self.free: list[str] = []
        self.referenced: list[str] = []

    def _bound(self, name: str) -> bool:
        return any(name in scope for scope in self._scopes) or self._is_local(name)

    def visit_Name(self, node: ast.Name) -> ast.AST:
        name = node.id
        if isinstance(node.ctx, ast.Store):
            if self._scopes:
                self._scopes[-1].add(name)
            return node
        if is_allowed_global(name):
            return node
        if name not in self.referenced:
            self.referenced.append(name)
        if self._bound(name):
            return node
        if name not in self.free:
            self.free.append(name)
        if not self._prefix:
            return node
        return ast.copy_location(
            ast.Attribute(value=ast.Name(id="_ctx", ctx=ast.Load()), attr=name, ctx=node.ctx),
            node,
        )

    def visit_Lambda(self, node: ast.Lambda) -> ast.AST:
        node.args = self.visit(node.args)
        self._scopes.append(set(param_names(node.args)))
        node.body = self.visit(node.body)
        self._scopes.pop()
        return node

    def visit_arguments(self, node: ast.arguments) -> ast.AST:
        # Only defaults are evaluated in the enclosing scope
        node.defaults = [self.visit(d) for d in node.defaults]
        node.kw_defaults = [self.visit(d) if d is not None else None for d in node.kw_defaults]
        return node

    def _visit_comprehension(self, node: ast.AST, elements: Sequence[str]) -> ast.AST:
        generators: list[ast.comprehension] = node.generators  # type: ignore[attr-defined]
        # The first iterable is evaluated outside the comprehension scope
        generators[0].iter = self.visit(generators[0].iter)
        self._scopes.append(set())
        for index, gen in enumerate(generators):
            if index:
                gen.iter = self.visit(gen.iter)
            gen.target = self.visit(gen.target)
            gen.ifs = [self.visit(cond) for cond in gen.ifs]
        for attr in elements:
            setattr(node, attr, self.visit(getattr(node, attr)))
        self._scopes.pop()
        return node

    def visit_ListComp(self, node: ast.ListComp) -> ast.AST:
        return self._visit_comprehension(node, ("elt",))

    def visit_SetComp(self, node: ast.SetComp) -> ast.AST:
        return self._visit_comprehension(node, ("elt",))

    def visit_GeneratorExp(self, node: ast.GeneratorExp) -> ast.AST:
        return self._visit_comprehension(node, ("elt",))

    def visit_DictComp(self, node: ast.DictComp) -> ast.AST:
        return self._visit_comprehension(node, ("key", "value"))


def prefix_identifiers(
    tree: ast.expr,
    is_local: Callable[[str], bool] = lambda name: False,
) -> tuple[ast.expr, list[str]]:
    """Rewrite free names in ``tree`` to ``_ctx.<name>``.

    Args:
        tree: Parsed expression; modified in place.
        is_local: True for names bound by an enclosing template scope.

    Returns:
        (rewritten tree, names that were rewritten).
    """
    rewriter = _IdentifierRewriter(is_local, prefix=True)
    result = rewriter.visit(tree)
    ast.fix_missing_locations(result)
    return result, rewriter.free


def free_names(tree: ast.AST, is_local: Callable[[str], bool] = lambda name: False) -> list[str]:
    """Names ``tree`` reads that nothing inside it (or ``is_local``) binds.

    Whitelisted globals are never reported. Order is first appearance.
    """
    rewriter = _IdentifierRewriter(is_local, prefix=False)
    rewriter.visit(tree)
    return rewriter.free


def expression_names(content: str) -> set[str]:
    """All non-whitelisted names an expression reads (empty when unparseable)."""
    try:
        tree = parse_expression(content)
    except SyntaxError:
        return set()
    rewriter = _IdentifierRewriter(lambda name: False, prefix=False)
    rewriter.visit(tree)
    return set(rewriter.referenced)


# ---------------------------------------------------------------------------
# Transform-time processing
# ---------------------------------------------------------------------------


def _report_invalid(node: SimpleExpression, context: TransformContext, error: SyntaxError) -> None:
    node.parsed = False
    context.on_error(
        create_compiler_error(ErrorCode.INVALID_EXPRESSION, node.loc, error.msg or str(error))
    )


def validate_browser_expression(
    node: SimpleExpression,
    context: TransformContext,
    *,
    as_params: bool = False,
) -> None:
    """Check an expression's syntax without rewriting it."""
    if not node.content.strip():
        return
    try:
        if as_params:
            parse_params(node.content, context.expression_plugins)
        else:
            parse_expression(node.content, context.expression_plugins)
    except SyntaxError as e:
        _report_invalid(node, context, e)


def process_expression(
    node: SimpleExpression,
    context: TransformContext,
    *,
    as_params: bool = False,
) -> SimpleExpression:
    """Analyze (and in prefixing mode rewrite) one template expression.

    Args:
        node: Expression to process; updated in place and returned.
        context: Current transform context (scope identifiers, sinks).
        as_params: Treat the content as a parameter list (``v-for`` aliases,
            slot props). Parameters are recorded in ``node.identifiers`` and
            never rewritten.
    """
    if not context.prefix_identifiers or not node.content.strip():
        if context.flags.browser and context.flags.dev:
            validate_browser_expression(node, context, as_params=as_params)
        return node

    if node.is_static:
        return node

    plugins = context.expression_plugins

    if as_params:
        try:
            args = parse_params(node.content, plugins)
        except SyntaxError as e:
            _report_invalid(node, context, e)
            return node
        node.identifiers = param_names(args)
        return node

    content = node.content.strip()
    if is_simple_identifier(content):
        if context.is_local(content):
            return node
        if is_allowed_global(content):
            node.const_type = ConstantType.CAN_STRINGIFY
            return node
        node.content = f"_ctx.{content}"
        return node

    try:
        tree = parse_expression(content, plugins)
    except SyntaxError as e:
        _report_invalid(node, context, e)
        return node

    rewriter = _IdentifierRewriter(context.is_local, prefix=True)
    tree = rewriter.visit(tree)
    ast.fix_missing_locations(tree)
    node.content = ast.unparse(tree)
    node.parsed = tree
    node.identifiers = []
    if not rewriter.referenced and not _has_call(tree):
        node.const_type = ConstantType.CAN_STRINGIFY
    return node


def _has_call(tree: ast.AST) -> bool:
    return any(isinstance(n, (ast.Call, ast.Lambda)) for n in ast.walk(tree))
