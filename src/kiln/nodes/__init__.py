"""kiln AST nodes.

Template nodes come out of the parser; codegen nodes are attached by the
transforms and consumed by the code generator.
"""

from kiln.nodes.base import LOC_STUB, Node, Position, SourceLocation
from kiln.nodes.codegen import (
    ArrayExpression,
    CacheExpression,
    CallExpression,
    ConditionalExpression,
    FunctionExpression,
    ObjectExpression,
    Property,
    VNodeCall,
)
from kiln.nodes.template import (
    Attribute,
    Comment,
    CompoundExpression,
    ConstantType,
    Directive,
    Element,
    ElementType,
    Expression,
    For,
    ForParseResult,
    If,
    IfBranch,
    Interpolation,
    Namespace,
    Root,
    SimpleExpression,
    Text,
    TextCall,
)
from kiln.nodes.visitor import iter_child_nodes, walk

__all__ = [
    "LOC_STUB",
    "ArrayExpression",
    "Attribute",
    "CacheExpression",
    "CallExpression",
    "Comment",
    "CompoundExpression",
    "ConditionalExpression",
    "ConstantType",
    "Directive",
    "Element",
    "ElementType",
    "Expression",
    "For",
    "ForParseResult",
    "FunctionExpression",
    "If",
    "IfBranch",
    "Interpolation",
    "Namespace",
    "Node",
    "ObjectExpression",
    "Position",
    "Property",
    "Root",
    "SimpleExpression",
    "SourceLocation",
    "Text",
    "TextCall",
    "VNodeCall",
    "iter_child_nodes",
    "walk",
]
