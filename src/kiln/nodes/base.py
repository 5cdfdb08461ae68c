"""Base node class and source locations for the kiln AST."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Position:
    """A point in template source.

    Attributes:
        offset: 0-based character offset.
        line: 1-based line number.
        column: 0-based column on that line.
    """

    offset: int
    line: int
    column: int


@dataclass(frozen=True, slots=True)
class SourceLocation:
    """A span of template source: ``source`` is the text between start and end."""

    start: Position
    end: Position
    source: str = ""


# Location for synthesized nodes that have no source text of their own
LOC_STUB = SourceLocation(Position(0, 1, 0), Position(0, 1, 0), "")


@dataclass(slots=True, kw_only=True)
class Node:
    """Base class for all AST nodes.

    Unlike the parse trees of most template engines, kiln nodes are mutable:
    transforms annotate and rewrite them in place during a compile.
    """

    loc: SourceLocation = LOC_STUB
