"""Tests for the shape of generated render modules."""

import pytest
from hypothesis import given, settings

from kiln import CodegenResult, CompilerOptions, RuntimeHelper, base_compile, generate, parse
from tests.conftest import assert_contains
from tests.strategies import element_tree

HOISTABLE = "<div><p>static</p><p>{{ x }}</p></div>"


class TestFunctionMode:
    """Function mode binds helpers from the injected runtime name."""

    def test_helper_aliases(self):
        code = base_compile("<p>{{ msg }}</p>").code
        assert_contains(
            code,
            "_create_element_block = runtime.create_element_block",
            "_open_block = runtime.open_block",
            "_to_display_string = runtime.to_display_string",
        )

    def test_aliases_sorted_by_helper_name(self):
        code = base_compile("<p>{{ msg }}</p>").code
        lines = [line for line in code.splitlines() if " = runtime." in line]
        assert lines == sorted(lines, key=lambda line: line.split("runtime.")[1])

    def test_render_signature_and_prologue(self):
        code = base_compile("<p>{{ msg }}</p>").code
        assert_contains(
            code,
            "def render(_ctx, _cache):",
            "    msg = _ctx.msg",
            "    return (_open_block(), _create_element_block('p', None, _to_display_string(msg), 1))[-1]",
        )

    def test_custom_runtime_global_name(self):
        code = base_compile("<p/>", CompilerOptions(runtime_global_name="rt")).code
        assert_contains(code, "_open_block = rt.open_block")

    def test_empty_template_renders_none(self):
        code = base_compile("").code
        assert_contains(code, "def render(_ctx, _cache):", "return None")

    def test_generated_code_compiles(self):
        code = base_compile(HOISTABLE, CompilerOptions(hoist_static=True)).code
        compile(code, "<kiln>", "exec")


class TestHoisting:
    """Static subtrees become module-level constants."""

    def test_hoist_defined_once_before_render(self):
        code = base_compile(HOISTABLE, CompilerOptions(hoist_static=True)).code
        definition = "_hoisted_1 = _create_element_vnode('p', None, 'static', -1)"
        assert code.count(definition) == 1
        assert code.index(definition) < code.index("def render")
        render_body = code.split("def render")[1]
        assert "_hoisted_1" in render_body
        assert "'static'" not in render_body

    def test_no_hoisting_by_default(self):
        code = base_compile(HOISTABLE).code
        assert "_hoisted_" not in code

    def test_single_root_element_is_never_hoisted(self):
        result = base_compile("<p>static</p>", CompilerOptions(hoist_static=True))
        assert result.ast.hoists == []

    def test_static_props_are_hoisted_alone(self):
        code = base_compile('<div><p class="a">{{ x }}</p></div>', CompilerOptions(hoist_static=True)).code
        assert_contains(code, "_hoisted_1 = {'class': 'a'}", "_create_element_vnode('p', _hoisted_1,")


class TestModuleMode:
    """Module mode imports helpers and supports scope ids."""

    def test_imports_helpers(self):
        code = base_compile("<p>{{ msg }}</p>", CompilerOptions(mode="module")).code
        first_line = code.splitlines()[0]
        assert first_line.startswith("from kiln.runtime import ")
        assert_contains(first_line, "create_element_block as _create_element_block", "open_block as _open_block")
        assert "runtime." not in code

    def test_custom_runtime_module(self):
        code = base_compile("<p/>", CompilerOptions(mode="module", runtime_module_name="app.rt")).code
        assert code.startswith("from app.rt import ")

    def test_module_mode_reads_context_through_ctx(self):
        code = base_compile("<p>{{ msg }}</p>", CompilerOptions(mode="module")).code
        assert "msg = _ctx.msg" not in code
        assert_contains(code, "_to_display_string(_ctx.msg)")

    def test_scope_id_decorates_render(self):
        code = base_compile("<p>{{ msg }}</p>", CompilerOptions(mode="module", scope_id="data-v-1")).code
        assert_contains(code, "with_scope_id as _with_scope_id", "@_with_scope_id('data-v-1')\ndef render(_ctx, _cache):")
        assert "_push_scope_id" not in code

    def test_scope_id_brackets_hoists(self):
        code = base_compile(
            HOISTABLE, CompilerOptions(mode="module", scope_id="data-v-1", hoist_static=True)
        ).code
        push = code.index("_push_scope_id('data-v-1')\n")
        hoist = code.index("_hoisted_1 = ")
        pop = code.index("_pop_scope_id()\n")
        assert push < hoist < pop < code.index("def render")


class TestCodegenResult:
    """Fields of CodegenResult."""

    def test_fields(self):
        result = base_compile(HOISTABLE, CompilerOptions(hoist_static=True))
        assert isinstance(result, CodegenResult)
        assert result.code.endswith("\n")
        assert result.preamble.strip()
        assert result.code.startswith(result.preamble.rstrip("\n"))
        assert "def render" not in result.preamble
        assert "create_element_vnode" in result.helpers
        assert result.ast.transformed is True

    def test_helpers_are_helper_names(self):
        result = base_compile("<p>{{ msg }}</p>")
        names = {helper.value for helper in RuntimeHelper}
        assert set(result.helpers) <= names
        assert list(result.helpers) == sorted(result.helpers)

    def test_untransformed_root_renders_none(self):
        result = generate(parse("<p>x</p>"))
        assert_contains(result.code, "return None")
        assert result.helpers == ()

    def test_unknown_codegen_node_is_rejected(self):
        root = parse("<p>x</p>")
        root.codegen_node = object()
        with pytest.raises(TypeError, match="object"):
            generate(root)

    def test_assets_are_resolved_in_render(self):
        code = base_compile('<div><MyButton v-focus="x" /></div>').code
        assert_contains(
            code,
            "_component_MyButton = _resolve_component('MyButton')",
            "_directive_focus = _resolve_directive('focus')",
        )


class TestCompileInputs:
    """base_compile accepts source or a parsed Root and is deterministic."""

    def test_parsed_root_matches_source(self):
        root = parse(HOISTABLE)
        result = base_compile(root, CompilerOptions(hoist_static=True))
        assert result.ast is root
        assert result.code == base_compile(HOISTABLE, CompilerOptions(hoist_static=True)).code

    def test_parsed_root_is_transformed_in_place(self):
        root = parse("<p>{{ msg }}</p>")
        assert root.transformed is False
        base_compile(root)
        assert root.transformed is True
        assert root.codegen_node is not None

    @settings(max_examples=40, deadline=None)
    @given(source=element_tree)
    def test_compilation_is_deterministic(self, source):
        options = CompilerOptions(prefix_identifiers=True, hoist_static=True)
        assert base_compile(source, options).code == base_compile(source, options).code
