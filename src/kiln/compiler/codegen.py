"""Code generator: transformed template AST -> Python source.

The generator builds an `ast.Module` from the codegen nodes transforms left on
the `Root` and renders it with `ast.unparse`. Source text is the contract.

Function mode (the runtime is injected as a global)::

    _open_block = runtime.open_block
    _create_element_block = runtime.create_element_block
    _hoisted_1 = ...

    def render(_ctx, _cache):
        msg = _ctx.msg
        return (_open_block(), _create_element_block('div', None, msg, 1))[-1]

Module mode imports the helpers instead and, with a scope id, brackets the
hoisted constants with ``_push_scope_id``/``_pop_scope_id`` and decorates
``render`` with ``_with_scope_id``.

Node Dispatch:
    Codegen nodes map to handlers by class name, the same way for every
    node kind::

        handler = self._dispatch[type(node).__name__]

Expressions that fail to parse generate ``None`` in their place; the failure
is reported through ``on_error`` unless a transform already reported it.
"""

from __future__ import annotations

import ast
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from kiln.compiler.expressions import free_names, parse_expression, parse_params
from kiln.compiler.options import CompilerOptions
from kiln.compiler.runtime_helpers import RuntimeHelper, get_vnode_block_helper, get_vnode_helper
from kiln.compiler.utils import to_valid_asset_id
from kiln.environment.exceptions import ErrorCode, create_compiler_error, default_on_error
from kiln.nodes import (
    LOC_STUB,
    CompoundExpression,
    Interpolation,
    Root,
    SimpleExpression,
    SourceLocation,
    Text,
)

RENDER_NAME = "render"
CTX_NAME = "_ctx"
CACHE_NAME = "_cache"

_HELPER_ALIASES = frozenset(helper.alias for helper in RuntimeHelper)


@dataclass(frozen=True, slots=True)
class CodegenResult:
    """Output of `generate`.

    Attributes:
        code: Complete Python source defining ``render``.
        preamble: Module-level part of ``code`` (helper bindings, hoists).
        helpers: Names of the runtime helpers the code references.
        ast: The template AST the code was generated from.
    """

    code: str
    preamble: str
    helpers: tuple[str, ...]
    ast: Root


def _load(name: str) -> ast.Name:
    return ast.Name(id=name, ctx=ast.Load())


def _store(name: str) -> ast.Name:
    return ast.Name(id=name, ctx=ast.Store())


def _call(func: ast.expr, args: Sequence[ast.expr] = ()) -> ast.Call:
    return ast.Call(func=func, args=list(args), keywords=[])


def _assign(name: str, value: ast.expr) -> ast.Assign:
    return ast.Assign(targets=[_store(name)], value=value, lineno=0)


def _arguments(*names: str) -> ast.arguments:
    return ast.arguments(
        posonlyargs=[],
        args=[ast.arg(arg=name) for name in names],
        vararg=None,
        kwonlyargs=[],
        kw_defaults=[],
        kwarg=None,
        defaults=[],
    )


class CodeGenerator:
    """Generate the render module for one transformed `Root`.

    Not reusable across roots; `generate` creates one per call.
    """

    __slots__ = ("_dispatch", "_on_error", "_options", "_plugins", "_root")

    def __init__(self, root: Root, options: CompilerOptions):
        self._root = root
        self._options = options
        self._on_error = options.on_error or default_on_error
        self._plugins = tuple(options.expression_plugins)
        self._dispatch: dict[str, Callable[[Any], ast.expr]] = {
            "Text": self._gen_text,
            "Comment": self._gen_comment,
            "Interpolation": self._gen_interpolation,
            "SimpleExpression": self._gen_simple_expression,
            "CompoundExpression": self._gen_compound_expression,
            "Element": self._gen_codegen_owner,
            "If": self._gen_codegen_owner,
            "For": self._gen_codegen_owner,
            "TextCall": self._gen_codegen_owner,
            "VNodeCall": self._gen_vnode_call,
            "CallExpression": self._gen_call_expression,
            "ObjectExpression": self._gen_object_expression,
            "ArrayExpression": self._gen_array_expression,
            "FunctionExpression": self._gen_function_expression,
            "ConditionalExpression": self._gen_conditional_expression,
            "CacheExpression": self._gen_cache_expression,
        }

    # -- Module ----------------------------------------------------------

    def generate(self) -> CodegenResult:
        root = self._root
        options = self._options
        module_mode = options.mode == "module"
        scope_id = options.scope_id if module_mode else None

        helpers = set(root.helpers)
        if scope_id:
            helpers.add(RuntimeHelper.WITH_SCOPE_ID)
            if any(h is not None for h in root.hoists):
                helpers.update((RuntimeHelper.PUSH_SCOPE_ID, RuntimeHelper.POP_SCOPE_ID))
        ordered_helpers = sorted(helpers, key=lambda h: h.value)

        preamble: list[ast.stmt] = []
        if module_mode:
            if ordered_helpers:
                preamble.append(
                    ast.ImportFrom(
                        module=options.runtime_module_name,
                        names=[ast.alias(name=h.value, asname=h.alias) for h in ordered_helpers],
                        level=0,
                    )
                )
        else:
            runtime = options.runtime_global_name
            preamble.extend(
                _assign(h.alias, ast.Attribute(value=_load(runtime), attr=h.value, ctx=ast.Load()))
                for h in ordered_helpers
            )
        preamble.extend(self._gen_hoists(scope_id))

        render = self._gen_render()
        if scope_id:
            render.decorator_list.append(
                _call(_load(RuntimeHelper.WITH_SCOPE_ID.alias), [ast.Constant(scope_id)])
            )

        module = ast.Module(body=[*preamble, render], type_ignores=[])
        ast.fix_missing_locations(module)
        preamble_module = ast.Module(body=preamble, type_ignores=[])
        return CodegenResult(
            code=ast.unparse(module) + "\n",
            preamble=ast.unparse(preamble_module) + "\n" if preamble else "",
            helpers=tuple(h.value for h in ordered_helpers),
            ast=root,
        )

    def _gen_hoists(self, scope_id: str | None) -> list[ast.stmt]:
        hoists = self._root.hoists
        if not any(h is not None for h in hoists):
            return []
        body: list[ast.stmt] = []
        if scope_id:
            body.append(
                ast.Expr(value=_call(_load(RuntimeHelper.PUSH_SCOPE_ID.alias), [ast.Constant(scope_id)]))
            )
        for index, hoisted in enumerate(hoists, start=1):
            if hoisted is not None:
                body.append(_assign(f"_hoisted_{index}", self.gen(hoisted)))
        if scope_id:
            body.append(ast.Expr(value=_call(_load(RuntimeHelper.POP_SCOPE_ID.alias))))
        return body

    def _gen_render(self) -> ast.FunctionDef:
        root = self._root
        result = self.gen(root.codegen_node) if root.codegen_node is not None else ast.Constant(None)

        body: list[ast.stmt] = []
        if not self._options.prefix_identifiers:
            # bind context names the render expression reads
            for name in free_names(result, lambda n: n in _HELPER_ALIASES):
                body.append(
                    _assign(name, ast.Attribute(value=_load(CTX_NAME), attr=name, ctx=ast.Load()))
                )
        body.extend(self._gen_assets(root.components, "component", RuntimeHelper.RESOLVE_COMPONENT))
        body.extend(self._gen_assets(root.directives, "directive", RuntimeHelper.RESOLVE_DIRECTIVE))
        body.extend(self._gen_assets(root.filters, "filter", RuntimeHelper.RESOLVE_FILTER))
        body.append(ast.Return(value=result))

        return ast.FunctionDef(
            name=RENDER_NAME,
            args=_arguments(CTX_NAME, CACHE_NAME),
            body=body,
            decorator_list=[],
            returns=None,
            type_comment=None,
            type_params=[],
            lineno=0,
        )

    def _gen_assets(self, names: set[str], asset_type: str, resolver: RuntimeHelper) -> list[ast.stmt]:
        return [
            _assign(to_valid_asset_id(name, asset_type), _call(_load(resolver.alias), [ast.Constant(name)]))
            for name in sorted(names)
        ]

    # -- Expressions -----------------------------------------------------

    def gen(self, node: Any) -> ast.expr:
        """Python expression for a codegen node, code string, helper or list."""
        if isinstance(node, RuntimeHelper):
            return _load(node.alias)
        if isinstance(node, str):
            return self._parse(node)
        if isinstance(node, list):
            return ast.List(elts=[self.gen(child) for child in node], ctx=ast.Load())
        if node is None:
            return ast.Constant(None)
        handler = self._dispatch.get(type(node).__name__)
        if handler is None:
            raise TypeError(f"Cannot generate code for {type(node).__name__}")
        return handler(node)

    def _parse(self, source: str, node: SimpleExpression | None = None) -> ast.expr:
        if not source.strip():
            return ast.Constant(None)
        try:
            return parse_expression(source, self._plugins)
        except SyntaxError as e:
            if node is None or node.parsed is not False:
                if node is not None:
                    node.parsed = False
                loc: SourceLocation = node.loc if node is not None else LOC_STUB
                self._on_error(create_compiler_error(ErrorCode.INVALID_EXPRESSION, loc, e.msg or str(e)))
            return ast.Constant(None)

    def _gen_text(self, node: Text) -> ast.expr:
        return ast.Constant(node.content)

    def _gen_comment(self, node: Any) -> ast.expr:
        return _call(_load(RuntimeHelper.CREATE_COMMENT.alias), [ast.Constant(node.content)])

    def _gen_interpolation(self, node: Interpolation) -> ast.expr:
        return _call(_load(RuntimeHelper.TO_DISPLAY_STRING.alias), [self.gen(node.content)])

    def _gen_simple_expression(self, node: SimpleExpression) -> ast.expr:
        if node.is_static:
            return ast.Constant(node.content)
        return self._parse(node.content, node)

    def _gen_compound_expression(self, node: CompoundExpression) -> ast.expr:
        source = self._compound_source(node)
        try:
            return parse_expression(source, self._plugins) if source.strip() else ast.Constant(None)
        except SyntaxError as e:
            self._on_error(create_compiler_error(ErrorCode.INVALID_EXPRESSION, node.loc, e.msg or str(e)))
            return ast.Constant(None)

    def _compound_source(self, node: CompoundExpression) -> str:
        parts: list[str] = []
        for child in node.children:
            if isinstance(child, RuntimeHelper):
                parts.append(child.alias)
            elif isinstance(child, str):
                parts.append(child)
            elif isinstance(child, Text):
                parts.append(repr(child.content))
            elif isinstance(child, SimpleExpression):
                if child.is_static:
                    parts.append(repr(child.content))
                else:
                    parts.append(f"({child.content.strip() or 'None'})")
            elif isinstance(child, Interpolation):
                inner = self._compound_part(child.content)
                parts.append(f"{RuntimeHelper.TO_DISPLAY_STRING.alias}({inner})")
            elif isinstance(child, CompoundExpression):
                parts.append(f"({self._compound_source(child)})")
            else:
                parts.append(f"({ast.unparse(self.gen(child))})")
        return "".join(parts)

    def _compound_part(self, node: Any) -> str:
        if isinstance(node, CompoundExpression):
            return self._compound_source(node)
        if isinstance(node, SimpleExpression) and not node.is_static:
            return node.content.strip() or "None"
        return ast.unparse(self.gen(node))

    def _gen_codegen_owner(self, node: Any) -> ast.expr:
        if node.codegen_node is None:
            return ast.Constant(None)
        return self.gen(node.codegen_node)

    def _gen_vnode_call(self, node: Any) -> ast.expr:
        tag = node.tag
        tag_exp = ast.Constant(tag) if isinstance(tag, str) and not isinstance(tag, RuntimeHelper) else self.gen(tag)
        children = node.children
        args: list[Any] = [
            tag_exp,
            node.props,
            children,
            ast.Constant(node.patch_flag) if node.patch_flag is not None else None,
            node.dynamic_props,
        ]
        while args and args[-1] is None:
            args.pop()
        call_args = [a if isinstance(a, ast.expr) else self.gen(a) for a in args]

        helper = get_vnode_block_helper(node.is_component) if node.is_block else get_vnode_helper(node.is_component)
        call: ast.expr = _call(_load(helper.alias), call_args)
        if node.directives is not None:
            call = _call(_load(RuntimeHelper.WITH_DIRECTIVES.alias), [call, self.gen(node.directives)])
        if node.is_block:
            open_block = _call(
                _load(RuntimeHelper.OPEN_BLOCK.alias),
                [ast.Constant(True)] if node.disable_tracking else [],
            )
            return ast.Subscript(
                value=ast.Tuple(elts=[open_block, call], ctx=ast.Load()),
                slice=ast.Constant(-1),
                ctx=ast.Load(),
            )
        return call

    def _gen_call_expression(self, node: Any) -> ast.expr:
        callee = node.callee
        func = _load(callee.alias) if isinstance(callee, RuntimeHelper) else self._parse(callee)
        return _call(func, [self.gen(arg) for arg in node.arguments])

    def _gen_object_expression(self, node: Any) -> ast.expr:
        keys: list[ast.expr | None] = []
        values: list[ast.expr] = []
        for prop in node.properties:
            keys.append(self.gen(prop.key))
            values.append(self.gen(prop.value))
        return ast.Dict(keys=keys, values=values)

    def _gen_array_expression(self, node: Any) -> ast.expr:
        return ast.List(elts=[self.gen(element) for element in node.elements], ctx=ast.Load())

    def _gen_function_expression(self, node: Any) -> ast.expr:
        args = self._gen_params(node)
        if node.rest:
            if node.is_slot:
                if args.kwarg is None:
                    args.kwarg = ast.arg(arg=node.rest)
            elif args.vararg is None and args.kwarg is None and not args.kwonlyargs:
                args.vararg = ast.arg(arg=node.rest)
        returns = node.returns
        body = self.gen(returns) if returns is not None else ast.Constant(None)
        fn: ast.expr = ast.Lambda(args=args, body=body)
        if node.is_slot:
            fn = _call(_load(RuntimeHelper.WITH_CTX.alias), [fn])
        return fn

    def _gen_params(self, node: Any) -> ast.arguments:
        params = node.params
        if params is None:
            return _arguments()
        if isinstance(params, list):
            source = ", ".join(p if isinstance(p, str) else p.content for p in params)
        elif isinstance(params, str):
            source = params
        else:
            source = params.content
        if not source.strip():
            return _arguments()
        try:
            return parse_params(source, self._plugins)
        except SyntaxError as e:
            invalid = params if isinstance(params, SimpleExpression) else None
            if invalid is None or invalid.parsed is not False:
                self._on_error(
                    create_compiler_error(ErrorCode.INVALID_EXPRESSION, getattr(params, "loc", node.loc), e.msg or str(e))
                )
            return _arguments()

    def _gen_conditional_expression(self, node: Any) -> ast.expr:
        return ast.IfExp(
            test=self.gen(node.test),
            body=self.gen(node.consequent),
            orelse=self.gen(node.alternate),
        )

    def _gen_cache_expression(self, node: Any) -> ast.expr:
        index = ast.Constant(node.index)
        cache = _load(CACHE_NAME)
        cached = _call(ast.Attribute(value=cache, attr="get", ctx=ast.Load()), [index])
        store = _call(ast.Attribute(value=_load(CACHE_NAME), attr="setdefault", ctx=ast.Load()), [index, self.gen(node.value)])
        if node.is_vnode:
            tracking = _load(RuntimeHelper.SET_BLOCK_TRACKING.alias)
            store = ast.Subscript(
                value=ast.Tuple(
                    elts=[
                        _call(tracking, [ast.Constant(-1)]),
                        store,
                        _call(_load(RuntimeHelper.SET_BLOCK_TRACKING.alias), [ast.Constant(1)]),
                        ast.Subscript(value=_load(CACHE_NAME), slice=index, ctx=ast.Load()),
                    ],
                    ctx=ast.Load(),
                ),
                slice=ast.Constant(-1),
                ctx=ast.Load(),
            )
        return ast.BoolOp(op=ast.Or(), values=[cached, store])


def generate(root: Root, options: CompilerOptions | None = None) -> CodegenResult:
    """Generate Python source for a transformed template AST.

    Args:
        root: Root produced by `transform`.
        options: Effective compiler options (mode, runtime names, sinks).

    Returns:
        CodegenResult with the render module source.
    """
    return CodeGenerator(root, options or CompilerOptions()).generate()


__all__ = ["CodeGenerator", "CodegenResult", "generate"]
