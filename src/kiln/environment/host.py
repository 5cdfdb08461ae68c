"""Host document protocols used to resolve template references.

The runtime compiler accepts ``"#id"`` selectors and element objects. It only
needs a small structural surface from the host, described here so any DOM-like
object (a browser bridge, a parsed HTML document, a test double) can be used.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ElementLike(Protocol):
    node_type: int
    inner_html: str


class DocumentLike(Protocol):
    def query_selector(self, selector: str) -> ElementLike | None: ...


class CustomElementRegistry(Protocol):
    def get(self, tag: str) -> Any: ...


def is_element(value: object) -> bool:
    """True for node objects exposing ``inner_html`` (any non-zero ``node_type``)."""
    return isinstance(value, ElementLike) and bool(value.node_type)


__all__ = ["CustomElementRegistry", "DocumentLike", "ElementLike", "is_element"]
