"""Kiln markup parser: template source to `Root` AST."""

from kiln.parser.core import Parser, parse

__all__ = ["Parser", "parse"]
