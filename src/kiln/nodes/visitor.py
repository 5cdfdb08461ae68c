"""Generic child traversal for the kiln template AST.

Provides iter_child_nodes and walk for passes that need to look at every
template node without caring about its exact type, such as scope-reference
checks in the directive transforms.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kiln.nodes import Node

# Attributes holding lists of child nodes
CONTAINER_ATTRS = ("children", "branches", "props")
# Attributes holding a single child node (or None)
EXPR_ATTRS = ("content", "value", "exp", "arg", "condition", "source")


def iter_child_nodes(node: Node) -> Iterator[Node]:
    """Yield the direct template children of ``node``.

    Codegen nodes attached during transform (``codegen_node``) are not
    children and are never yielded.
    """
    from kiln.nodes.base import Node

    # CompoundExpression parts mix nodes with raw code strings; only nodes count
    for attr in CONTAINER_ATTRS:
        children = getattr(node, attr, None)
        if children and isinstance(children, list):
            for child in children:
                if isinstance(child, Node):
                    yield child

    for attr in EXPR_ATTRS:
        child = getattr(node, attr, None)
        if isinstance(child, Node):
            yield child


def walk(node: Node) -> Iterator[Node]:
    """Pre-order traversal of ``node`` and all its template descendants."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(iter_child_nodes(current))))
