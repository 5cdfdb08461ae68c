"""Kiln markup parser.

Scans template source into a `Root` AST in a single recursive-descent pass.
The scanner works directly on the source string; there is no separate
tokenizer, since attribute and text rules depend on the enclosing element.

Parse errors are reported through the ``on_error`` sink and parsing continues
on a best-effort tree, so one call can surface several diagnostics.
"""

from __future__ import annotations

import html
import re

from kiln.config import DEFAULT_FLAGS, BuildFlags
from kiln.compiler.options import CompilerOptions
from kiln.environment.exceptions import ErrorCode, create_compiler_error, default_on_error
from kiln.nodes import (
    Attribute,
    Comment,
    ConstantType,
    Directive,
    Element,
    ElementType,
    Interpolation,
    Namespace,
    Node,
    Position,
    Root,
    SimpleExpression,
    SourceLocation,
    Text,
)
from kiln.parser.attributes import AttributeParsingMixin
from kiln.utils.constants import HTML_TAGS, MATH_ML_TAGS, PRE_TAGS, SVG_TAGS, VOID_TAGS

# Directives that make a <template> a structural wrapper rather than an element
_TEMPLATE_DIRECTIVES = frozenset({"if", "else", "else-if", "for", "slot"})


def _is_tag_start(char: str) -> bool:
    return char.isascii() and char.isalpha()


class Parser(AttributeParsingMixin):
    """Recursive descent parser for kiln templates.

    Example:
        >>> root = Parser("<p>{{ msg }}</p>").parse()
        >>> root.children[0].tag
        'p'
    """

    __slots__ = (
        "_source",
        "_pos",
        "_line",
        "_column",
        "_options",
        "_on_error",
        "_comments",
        "_in_pre",
        "_in_v_pre",
    )

    _TAG_OPEN = re.compile(r"</?([a-zA-Z][^\t\r\n\f />]*)")
    _SPACES = re.compile(r"[\t\r\n\f ]+")
    _COMMENT_END = re.compile(r"--(!)?>")
    _WHITESPACE_ONLY = re.compile(r"[\t\r\n\f ]*$")

    def __init__(
        self,
        source: str,
        options: CompilerOptions | None = None,
        *,
        flags: BuildFlags | None = None,
    ):
        self._source = source
        self._pos = 0
        self._line = 1
        self._column = 0
        self._options = options or CompilerOptions()
        self._on_error = self._options.on_error or default_on_error
        flags = flags or DEFAULT_FLAGS
        self._comments = flags.dev if self._options.comments is None else self._options.comments
        self._in_pre = False
        self._in_v_pre = False

    def parse(self) -> Root:
        """Parse the whole source into a Root node."""
        start = self._cursor()
        children = self._parse_children([])
        return Root(children=children, loc=self._selection(start), source=self._source)

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    def _rest(self) -> str:
        return self._source[self._pos :]

    def _cursor(self) -> Position:
        return Position(self._pos, self._line, self._column)

    def _selection(self, start: Position, end: Position | None = None) -> SourceLocation:
        end = end or self._cursor()
        return SourceLocation(start, end, self._source[start.offset : end.offset])

    def _advance(self, count: int) -> None:
        segment = self._source[self._pos : self._pos + count]
        newlines = segment.count("\n")
        if newlines:
            self._line += newlines
            self._column = len(segment) - segment.rfind("\n") - 1
        else:
            self._column += len(segment)
        self._pos += len(segment)

    def _advance_spaces(self) -> None:
        match = self._SPACES.match(self._source, self._pos)
        if match:
            self._advance(match.end() - self._pos)

    def _emit_error(self, code: ErrorCode, offset: int | None = None) -> None:
        if offset is None or offset == self._pos:
            where = self._cursor()
        else:
            where = self._position_at(offset)
        loc = SourceLocation(where, where, "")
        self._on_error(create_compiler_error(code, loc))

    def _position_at(self, offset: int) -> Position:
        before = self._source[:offset]
        line = before.count("\n") + 1
        column = offset - (before.rfind("\n") + 1)
        return Position(offset, line, column)

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    def _is_end(self, ancestors: list[Element]) -> bool:
        rest = self._rest()
        if not rest:
            return True
        if rest.startswith("</"):
            return any(self._starts_with_end_tag(rest, a.tag) for a in reversed(ancestors))
        return False

    @staticmethod
    def _starts_with_end_tag(rest: str, tag: str) -> bool:
        if not rest.startswith("</"):
            return False
        candidate = rest[2 : 2 + len(tag)]
        if candidate.lower() != tag.lower():
            return False
        after = rest[2 + len(tag) : 3 + len(tag)]
        return after == "" or after in "\t\r\n\f />"

    def _parse_children(self, ancestors: list[Element]) -> list[Node]:
        parent = ancestors[-1] if ancestors else None
        open_delim = self._options.delimiters[0]
        nodes: list[Node] = []

        while not self._is_end(ancestors):
            rest = self._rest()
            node: Node | None = None

            if not self._in_v_pre and rest.startswith(open_delim):
                node = self._parse_interpolation()
            elif rest[0] == "<":
                if len(rest) == 1:
                    self._emit_error(ErrorCode.EOF_BEFORE_TAG_NAME, self._pos + 1)
                elif rest.startswith("<!--"):
                    node = self._parse_comment()
                elif rest[1] == "!":
                    node = self._parse_bogus_comment()
                elif rest[1] == "/":
                    if len(rest) == 2:
                        self._emit_error(ErrorCode.EOF_BEFORE_TAG_NAME, self._pos + 2)
                    elif rest[2] == ">":
                        # "</>": end tag with no name, dropped
                        self._emit_error(ErrorCode.INVALID_END_TAG, self._pos + 2)
                        self._advance(3)
                        continue
                    elif _is_tag_start(rest[2]):
                        # Stray end tag with no matching open element
                        self._emit_error(ErrorCode.INVALID_END_TAG)
                        self._parse_tag(parent, is_end_tag=True)
                        continue
                    else:
                        node = self._parse_bogus_comment()
                elif _is_tag_start(rest[1]):
                    node = self._parse_element(ancestors)

            if node is None:
                node = self._parse_text()
            self._push_node(nodes, node)

        return self._condense(nodes, parent)

    @staticmethod
    def _push_node(nodes: list[Node], node: Node) -> None:
        if isinstance(node, Text) and nodes:
            prev = nodes[-1]
            if isinstance(prev, Text) and prev.loc.end.offset == node.loc.start.offset:
                prev.content += node.content
                prev.loc = SourceLocation(
                    prev.loc.start, node.loc.end, prev.loc.source + node.loc.source
                )
                return
        nodes.append(node)

    def _condense(self, nodes: list[Node], parent: Element | None) -> list[Node]:
        preserve = self._options.whitespace == "preserve"
        kept: list[Node] = []
        for i, node in enumerate(nodes):
            if isinstance(node, Comment) and not self._comments:
                continue
            if not isinstance(node, Text) or self._in_pre:
                kept.append(node)
                continue
            if preserve:
                kept.append(node)
                continue
            if self._WHITESPACE_ONLY.match(node.content):
                prev = nodes[i - 1] if i > 0 else None
                nxt = nodes[i + 1] if i + 1 < len(nodes) else None
                if (
                    prev is None
                    or nxt is None
                    or isinstance(prev, Comment)
                    or isinstance(nxt, Comment)
                    or (
                        isinstance(prev, Element)
                        and isinstance(nxt, Element)
                        and "\n" in node.content
                    )
                ):
                    continue
                node.content = " "
            else:
                node.content = self._SPACES.sub(" ", node.content)
            kept.append(node)

        if self._in_pre and parent is not None and parent.tag in PRE_TAGS and kept:
            first = kept[0]
            # Leading newline directly after <pre> is not content
            if isinstance(first, Text) and first.content.startswith("\n"):
                first.content = first.content[1:]
                if not first.content:
                    kept.pop(0)
        return kept

    # ------------------------------------------------------------------
    # Elements
    # ------------------------------------------------------------------

    def _parse_element(self, ancestors: list[Element]) -> Element | None:
        was_in_pre = self._in_pre
        was_in_v_pre = self._in_v_pre
        parent = ancestors[-1] if ancestors else None

        element = self._parse_tag(parent, is_end_tag=False)
        if element is None:
            return None
        start = element.loc.start

        if element.is_self_closing or element.tag in VOID_TAGS:
            if self._in_pre and not was_in_pre:
                self._in_pre = False
            if self._in_v_pre and not was_in_v_pre:
                self._in_v_pre = False
            return element

        ancestors.append(element)
        element.children = self._parse_children(ancestors)
        ancestors.pop()

        if self._starts_with_end_tag(self._rest(), element.tag):
            self._parse_tag(parent, is_end_tag=True)
        else:
            self._on_error(
                create_compiler_error(
                    ErrorCode.MISSING_END_TAG,
                    SourceLocation(start, start, ""),
                    f" <{element.tag}>",
                )
            )

        element.loc = self._selection(start)
        self._in_pre = was_in_pre
        self._in_v_pre = was_in_v_pre
        return element

    def _parse_tag(self, parent: Element | None, *, is_end_tag: bool) -> Element | None:
        start = self._cursor()
        match = self._TAG_OPEN.match(self._source, self._pos)
        assert match is not None  # callers check for "<" + letter
        tag = match.group(1)
        ns = self._namespace(tag, parent)

        self._advance(match.end() - self._pos)
        self._advance_spaces()
        props = self._parse_attributes(is_end_tag=is_end_tag)

        if not is_end_tag:
            if tag in PRE_TAGS:
                self._in_pre = True
            if not self._in_v_pre and any(
                isinstance(p, Directive) and p.name == "pre" for p in props
            ):
                self._in_v_pre = True
                props = self._unwrap_v_pre(props)

        is_self_closing = False
        rest = self._rest()
        if not rest:
            self._emit_error(ErrorCode.EOF_IN_TAG)
        else:
            is_self_closing = rest.startswith("/>")
            self._advance(2 if is_self_closing else 1)

        if is_end_tag:
            return None

        tag_type = ElementType.ELEMENT
        if not self._in_v_pre:
            if tag == "slot":
                tag_type = ElementType.SLOT
            elif tag == "template" and any(
                isinstance(p, Directive) and p.name in _TEMPLATE_DIRECTIVES for p in props
            ):
                tag_type = ElementType.TEMPLATE
            elif self._is_component(tag, ns):
                tag_type = ElementType.COMPONENT

        return Element(
            tag=tag,
            tag_type=tag_type,
            ns=ns,
            props=props,
            is_self_closing=is_self_closing,
            loc=self._selection(start),
        )

    @staticmethod
    def _unwrap_v_pre(props: list[Attribute | Directive]) -> list[Attribute | Directive]:
        """Drop v-pre itself and keep every other directive as a plain attribute."""
        result: list[Attribute | Directive] = []
        for prop in props:
            if isinstance(prop, Attribute):
                result.append(prop)
            elif prop.name != "pre":
                value = None
                if prop.exp is not None and isinstance(prop.exp, SimpleExpression):
                    value = Text(content=prop.exp.content, loc=prop.exp.loc)
                result.append(Attribute(name=prop.raw_name or prop.name, value=value, loc=prop.loc))
        return result

    @staticmethod
    def _namespace(tag: str, parent: Element | None) -> Namespace:
        ns = parent.ns if parent is not None else Namespace.HTML
        if ns == Namespace.SVG and parent is not None and parent.tag == "foreignObject":
            ns = Namespace.HTML
        if ns == Namespace.HTML:
            if tag == "svg":
                return Namespace.SVG
            if tag == "math":
                return Namespace.MATH_ML
        return ns

    def _is_component(self, tag: str, ns: Namespace) -> bool:
        is_custom = self._options.is_custom_element
        if is_custom is not None and is_custom(tag):
            return False
        if tag == "component" or tag[0].isupper():
            return True
        if ns == Namespace.SVG:
            return tag not in SVG_TAGS and tag != "foreignObject"
        if ns == Namespace.MATH_ML:
            return tag not in MATH_ML_TAGS
        return tag not in HTML_TAGS and tag not in SVG_TAGS and tag not in MATH_ML_TAGS

    # ------------------------------------------------------------------
    # Leaves
    # ------------------------------------------------------------------

    def _parse_interpolation(self) -> Interpolation | None:
        open_delim, close_delim = self._options.delimiters
        close_index = self._source.find(close_delim, self._pos + len(open_delim))
        if close_index == -1:
            self._emit_error(ErrorCode.MISSING_INTERPOLATION_END)
            return None

        start = self._cursor()
        self._advance(len(open_delim))
        raw = self._source[self._pos : close_index]
        leading = len(raw) - len(raw.lstrip())
        content = raw.strip()

        self._advance(leading)
        inner_start = self._cursor()
        self._advance(len(content))
        inner_end = self._cursor()
        self._advance(close_index - self._pos + len(close_delim))

        return Interpolation(
            content=SimpleExpression(
                content=html.unescape(content),
                is_static=False,
                const_type=ConstantType.NOT_CONSTANT,
                loc=self._selection(inner_start, inner_end),
            ),
            loc=self._selection(start),
        )

    def _parse_text(self) -> Text:
        end_tokens = ["<"]
        if not self._in_v_pre:
            end_tokens.append(self._options.delimiters[0])
        end = len(self._source)
        for token in end_tokens:
            index = self._source.find(token, self._pos + 1)
            if index != -1 and index < end:
                end = index

        start = self._cursor()
        raw = self._source[self._pos : end]
        self._advance(len(raw))
        return Text(content=html.unescape(raw), loc=self._selection(start))

    def _parse_comment(self) -> Comment:
        start = self._cursor()
        match = self._COMMENT_END.search(self._source, self._pos + 4)
        if match is None:
            content = self._source[self._pos + 4 :]
            self._advance(len(self._rest()))
            self._emit_error(ErrorCode.EOF_IN_COMMENT)
        else:
            content = self._source[self._pos + 4 : match.start()]
            self._advance(match.end() - self._pos)
        return Comment(content=content, loc=self._selection(start))

    def _parse_bogus_comment(self) -> Comment:
        """``<!DOCTYPE ...>``, ``<![CDATA[...]]>`` and ``</ 1>`` become comments."""
        start = self._cursor()
        content_start = self._pos + (1 if self._rest().startswith("<?") else 2)
        close = self._source.find(">", self._pos)
        if close == -1:
            content = self._source[content_start:]
            self._advance(len(self._rest()))
        else:
            content = self._source[content_start:close]
            self._advance(close - self._pos + 1)
        return Comment(content=content, loc=self._selection(start))


def parse(
    source: str,
    options: CompilerOptions | None = None,
    *,
    flags: BuildFlags | None = None,
) -> Root:
    """Parse template source into a Root AST.

    Args:
        source: Template markup.
        options: Compiler options (delimiters, whitespace, comments, sinks).
        flags: Build flags; comments are kept by default in dev builds.
    """
    return Parser(source, options, flags=flags).parse()
