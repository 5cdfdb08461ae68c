"""Pytest configuration and fixtures for kiln tests."""

import pytest

from kiln import BuildFlags, CompileCache, CompilerOptions, RuntimeCompiler, base_compile
from kiln.environment import terminal


class ErrorCollector:
    """on_error / on_warn sink that records diagnostics instead of raising."""

    def __init__(self):
        self.errors = []

    def __call__(self, error):
        self.errors.append(error)

    @property
    def codes(self):
        return [error.code for error in self.errors]


class FakeElement:
    """Element-like host node: exposes ``node_type`` and ``inner_html``."""

    node_type = 1

    def __init__(self, inner_html: str):
        self.inner_html = inner_html


class FakeDocument:
    """Document double resolving ``#id`` selectors from a dict."""

    def __init__(self, elements: dict[str, FakeElement] | None = None):
        self.elements = elements or {}
        self.queries: list[str] = []

    def query_selector(self, selector: str) -> FakeElement | None:
        self.queries.append(selector)
        return self.elements.get(selector)


@pytest.fixture(autouse=True)
def plain_terminal(monkeypatch):
    """Diagnostics without ANSI colors, whatever the environment says."""
    monkeypatch.setattr(terminal, "_USE_COLORS", False)


@pytest.fixture
def errors():
    """A fresh diagnostic collector."""
    return ErrorCollector()


@pytest.fixture
def collecting_options(errors):
    """Options whose sinks record into the ``errors`` fixture."""
    return CompilerOptions(on_error=errors, on_warn=errors)


@pytest.fixture
def compiler():
    """RuntimeCompiler with its own cache and the default (dev) flags."""
    return RuntimeCompiler(cache=CompileCache())


@pytest.fixture
def browser_flags():
    """Constrained build: no prefixing, no module mode."""
    return BuildFlags(browser=True)


@pytest.fixture
def document():
    """Host document with a single ``#app`` template element."""
    return FakeDocument({"#app": FakeElement("<p>{{ msg }}</p>")})


def compile_code(source: str, **options) -> str:
    """Generated source for ``source`` compiled with ``options``."""
    return base_compile(source, CompilerOptions(**options)).code


def assert_contains(code: str, *expected_parts: str) -> None:
    """Assert generated code contains all expected parts.

    Args:
        code: Generated render module source.
        expected_parts: Strings that should all be present in the code.
    """
    for part in expected_parts:
        assert part in code, (
            f"Generated code missing expected content:\n"
            f"  Missing: {part!r}\n"
            f"  Actual:\n{code}"
        )
