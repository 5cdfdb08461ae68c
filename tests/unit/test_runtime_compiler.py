"""Tests for RuntimeCompiler: template resolution, caching and logging."""

import logging

import pytest

from kiln import (
    NOOP,
    BuildFlags,
    CompileCache,
    CompilerOptions,
    ExecMaterializer,
    MaterializationError,
    RuntimeCompiler,
    compile_to_function,
    render,
    runtime,
)
from kiln.environment.runtime_compiler import ERROR_PREFIX
from tests.conftest import FakeDocument, FakeElement

LOGGER = "kiln.environment.runtime_compiler"


class RecordingMaterializer:
    """Materializer that records what it was asked to materialize."""

    def __init__(self, globals=None):
        self.calls = []
        self._inner = ExecMaterializer(globals)

    def materialize(self, source, bindings):
        self.calls.append((source, dict(bindings)))
        return self._inner.materialize(source, bindings)


class FailingMaterializer:
    def materialize(self, source, bindings):
        raise MaterializationError("boom", source=source, lineno=1)


def raise_error(error):
    raise error


class TestCompile:
    """Compiling template text."""

    def test_returns_marked_render_function(self, compiler):
        fn = compiler.compile("<p>{{ msg }}</p>")
        assert fn._rc is True
        tree = render(fn, {"msg": "hi"})
        assert tree.type == "p"
        assert tree.children == "hi"

    def test_compile_to_function_uses_shared_compiler(self):
        fn = compile_to_function("<span>{{ n }}</span>")
        assert compile_to_function("<span>{{ n }}</span>") is fn
        assert render(fn, {"n": 3}).children == "3"

    def test_caller_options_are_not_modified(self, compiler):
        options = CompilerOptions(mode="module")
        compiler.compile("<p>{{ msg }}</p>", options)
        assert options.on_error is None
        assert options.hoist_static is None
        assert options.prefix_identifiers is False

    def test_module_mode_renders(self, compiler):
        fn = compiler.compile("<p>{{ msg }}</p>", CompilerOptions(mode="module"))
        assert render(fn, {"msg": "mod"}).children == "mod"


class TestCaching:
    """Results are cached per options object and template text."""

    def test_same_text_same_function(self, compiler):
        assert compiler.compile("<p/>") is compiler.compile("<p/>")

    def test_same_options_object_same_function(self, compiler):
        options = CompilerOptions()
        assert compiler.compile("<p/>", options) is compiler.compile("<p/>", options)

    def test_equal_options_objects_compile_separately(self, compiler):
        first = compiler.compile("<p/>", CompilerOptions(mode="module"))
        second = compiler.compile("<p/>", CompilerOptions(mode="module"))
        assert first is not second

    def test_cache_hits_are_logged_at_debug(self, compiler, caplog):
        with caplog.at_level(logging.DEBUG, logger=LOGGER):
            compiler.compile("<p/>")
            compiler.compile("<p/>")
        messages = [record.getMessage() for record in caplog.records]
        assert "compile cache miss (4 chars)" in messages
        assert "compile cache hit (4 chars)" in messages

    def test_lookups_go_through_get_or_compute(self):
        calls = []

        class RecordingCache(CompileCache):
            def get_or_compute(self, options, text, compute):
                calls.append(text)
                return super().get_or_compute(options, text, compute)

        compiler = RuntimeCompiler(cache=RecordingCache())
        assert compiler.compile("<p/>") is compiler.compile("<p/>")
        assert calls == ["<p/>", "<p/>"]
        assert compiler.cache.info()["hits"] == 1
        assert compiler.cache.info()["misses"] == 1

    def test_noop_is_never_stored(self, compiler):
        options = CompilerOptions(on_error=raise_error)
        assert compiler.compile("<div>", options) is NOOP
        assert compiler.compile("<div>", options) is NOOP
        assert compiler.cache.info()["misses"] == 2
        assert compiler.cache.info()["entries"] == 0


class TestTemplateReferences:
    """Selectors, element objects and invalid references."""

    def test_selector_is_resolved_through_document(self, document):
        compiler = RuntimeCompiler(cache=CompileCache(), document=document)
        fn = compiler.compile("#app")
        assert render(fn, {"msg": "from dom"}).children == "from dom"

    def test_selector_result_is_cached_by_selector(self, document):
        compiler = RuntimeCompiler(cache=CompileCache(), document=document)
        first = compiler.compile("#app")
        document.elements["#app"] = FakeElement("<b>changed</b>")
        assert compiler.compile("#app") is first
        assert document.queries == ["#app"]

    def test_missing_element_compiles_empty_template(self, caplog):
        compiler = RuntimeCompiler(cache=CompileCache(), document=FakeDocument())
        with caplog.at_level(logging.WARNING, logger=LOGGER):
            fn = compiler.compile("#nope")
        assert fn is not NOOP
        assert render(fn) is None
        assert "KL-RES-001: Template element not found or is empty: #nope" in caplog.text

    def test_selector_without_document(self, caplog):
        compiler = RuntimeCompiler(cache=CompileCache())
        with caplog.at_level(logging.WARNING, logger=LOGGER):
            compiler.compile("#app")
        assert "KL-RES-001" in caplog.text

    def test_element_object(self, compiler):
        fn = compiler.compile(FakeElement("<b>{{ word }}</b>"))
        assert render(fn, {"word": "bold"}).type == "b"

    def test_invalid_reference_is_noop(self, compiler, caplog):
        with caplog.at_level(logging.WARNING, logger=LOGGER):
            fn = compiler.compile(42)
        assert fn is NOOP
        assert "KL-RES-002: Invalid template option: 42" in caplog.text
        assert ERROR_PREFIX not in caplog.text

    def test_node_type_zero_is_not_an_element(self, compiler):
        element = FakeElement("<p/>")
        element.node_type = 0
        assert compiler.compile(element) is NOOP


class TestDiagnostics:
    """Template problems are logged with code frames."""

    def test_error_is_logged_with_frame(self, compiler, caplog):
        with caplog.at_level(logging.WARNING, logger=LOGGER):
            fn = compiler.compile("<section>\n  <div>\n</section>")
        assert fn is not NOOP
        text = caplog.text
        assert f"{ERROR_PREFIX}KL-PAR-004: Element is missing end tag. <div>" in text
        assert "  --> <template>:2:" in text
        assert "  2 |   <div>" in text
        assert "^" in text

    def test_raising_sink_gives_noop_and_is_not_cached(self, compiler, caplog):
        options = CompilerOptions(on_error=raise_error)
        with caplog.at_level(logging.WARNING, logger=LOGGER):
            assert compiler.compile("<div>", options) is NOOP
            assert compiler.compile("<div>", options) is NOOP
        assert len(compiler.cache) == 0
        assert caplog.text.count("KL-PAR-004") == 2

    def test_collecting_sink_replaces_logging(self, compiler, errors, caplog):
        with caplog.at_level(logging.WARNING, logger=LOGGER):
            fn = compiler.compile("<div>", CompilerOptions(on_error=errors))
        assert fn is not NOOP
        assert [code.value for code in errors.codes] == ["KL-PAR-004"]
        assert caplog.text == ""

    def test_materialization_failure_is_noop(self, caplog):
        compiler = RuntimeCompiler(cache=CompileCache(), materializer=FailingMaterializer())
        with caplog.at_level(logging.WARNING, logger=LOGGER):
            assert compiler.compile("<p/>") is NOOP
        assert f"{ERROR_PREFIX}Generated render code could not be materialized: boom" in caplog.text
        assert "def render(_ctx, _cache):" in caplog.text
        assert len(compiler.cache) == 0


class TestWarnings:
    """Warnings are logged in dev builds only."""

    SOURCE = "<p>{{ price | currency }}</p>"

    def test_dev_build_logs_deprecated_filters(self, caplog):
        compiler = RuntimeCompiler(cache=CompileCache(), flags=BuildFlags(compat=True))
        with caplog.at_level(logging.WARNING, logger=LOGGER):
            fn = compiler.compile(self.SOURCE)
        assert "KL-TRN-018: Filter pipes are deprecated" in caplog.text
        assert ERROR_PREFIX not in caplog.text
        tree = render(fn, {"price": 5}, filters={"currency": lambda value: f"${value}"})
        assert tree.children == "$5"

    def test_production_build_ignores_warnings(self, caplog):
        compiler = RuntimeCompiler(cache=CompileCache(), flags=BuildFlags(compat=True, dev=False))
        with caplog.at_level(logging.WARNING, logger=LOGGER):
            compiler.compile(self.SOURCE)
        assert caplog.text == ""

    def test_pipes_are_plain_python_outside_compat(self, compiler):
        fn = compiler.compile("<p>{{ a | b }}</p>")
        assert render(fn, {"a": 1, "b": 2}).children == "3"


class TestMaterializerBindings:
    """What the materializer receives in each build."""

    def test_standard_build_injects_runtime(self):
        materializer = RecordingMaterializer()
        RuntimeCompiler(cache=CompileCache(), materializer=materializer).compile("<p/>")
        ((source, bindings),) = materializer.calls
        assert bindings == {"runtime": runtime}
        assert "runtime.open_block" in source

    def test_module_mode_injects_nothing(self):
        materializer = RecordingMaterializer()
        compiler = RuntimeCompiler(cache=CompileCache(), materializer=materializer)
        compiler.compile("<p/>", CompilerOptions(mode="module"))
        assert materializer.calls[0][1] == {}

    def test_browser_build_ignores_module_mode(self, caplog):
        materializer = RecordingMaterializer()
        compiler = RuntimeCompiler(cache=CompileCache(), materializer=materializer, flags=BuildFlags(browser=True))
        with caplog.at_level(logging.WARNING, logger=LOGGER):
            fn = compiler.compile("<p>{{ x }}</p>", CompilerOptions(mode="module"))
        assert "KL-OPT-002" in caplog.text
        assert materializer.calls[0][1] == {"runtime": runtime}
        assert render(fn, {"x": "b"}).children == "b"

    def test_global_build_injects_nothing(self):
        materializer = RecordingMaterializer(globals={"runtime": runtime})
        compiler = RuntimeCompiler(
            cache=CompileCache(), materializer=materializer, flags=BuildFlags(global_build=True)
        )
        fn = compiler.compile("<p>{{ x }}</p>")
        assert materializer.calls[0][1] == {}
        assert render(fn, {"x": "g"}).children == "g"

    def test_global_build_default_materializer_has_runtime_global(self):
        compiler = RuntimeCompiler(cache=CompileCache(), flags=BuildFlags(global_build=True))
        assert compiler.materializer.globals == {"runtime": runtime}
        assert render(compiler.compile("<i>{{ x }}</i>"), {"x": 1}).children == "1"

    def test_hoisting_is_on_by_default(self):
        materializer = RecordingMaterializer()
        RuntimeCompiler(cache=CompileCache(), materializer=materializer).compile(
            "<div><p>static</p><p>{{ x }}</p></div>"
        )
        assert "_hoisted_1 = " in materializer.calls[0][0]


class TestCustomElements:
    """The host registry marks tags as plain elements."""

    def test_registry_predicate(self):
        materializer = RecordingMaterializer()
        compiler = RuntimeCompiler(
            cache=CompileCache(), materializer=materializer, custom_elements={"my-widget": object}
        )
        compiler.compile("<my-widget></my-widget>")
        source = materializer.calls[0][0]
        assert "_resolve_component" not in source
        assert "_create_element_block('my-widget')" in source

    def test_without_registry_tag_is_a_component(self):
        materializer = RecordingMaterializer()
        RuntimeCompiler(cache=CompileCache(), materializer=materializer).compile("<my-widget></my-widget>")
        assert "_resolve_component('my-widget')" in materializer.calls[0][0]

    def test_caller_predicate_wins(self):
        materializer = RecordingMaterializer()
        compiler = RuntimeCompiler(
            cache=CompileCache(), materializer=materializer, custom_elements={"my-widget": object}
        )
        compiler.compile("<my-widget></my-widget>", CompilerOptions(is_custom_element=lambda tag: False))
        assert "_resolve_component('my-widget')" in materializer.calls[0][0]


class TestExecMaterializer:
    """compile + exec of generated source."""

    def test_syntax_error(self):
        with pytest.raises(MaterializationError) as exc_info:
            ExecMaterializer().materialize("def render(:\n", {})
        assert exc_info.value.lineno == 1
        assert "KL-GEN-001" not in str(exc_info.value)
        assert exc_info.value.code.value == "KL-GEN-001"

    def test_missing_render(self):
        with pytest.raises(MaterializationError, match="does not define render"):
            ExecMaterializer().materialize("x = 1\n", {})

    def test_error_while_executing(self):
        source = "x = 1\ny = missing_name\ndef render(_ctx, _cache):\n    return None\n"
        with pytest.raises(MaterializationError) as exc_info:
            ExecMaterializer().materialize(source, {})
        assert exc_info.value.lineno == 2
        assert "NameError" in str(exc_info.value)
        assert "  2 | y = missing_name" in str(exc_info.value)

    def test_bindings_and_globals(self):
        source = "def render(_ctx, _cache):\n    return (greeting, punctuation)\n"
        fn = ExecMaterializer({"punctuation": "!"}).materialize(source, {"greeting": "hi"})
        assert fn(None, {}) == ("hi", "!")
