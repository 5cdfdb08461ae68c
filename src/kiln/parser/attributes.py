"""Attribute and directive parsing for the kiln parser.

Provides mixin for parsing element attributes, turning directive syntax into
`Directive` nodes:

    v-name:arg.mod1.mod2="exp"
    :arg="exp"      (v-bind)
    .arg="exp"      (v-bind with the "prop" modifier)
    @arg="exp"      (v-on)
    #arg="exp"      (v-slot)
    :[key]="exp"    (dynamic argument)

Uses inline TYPE_CHECKING declarations for host attributes.
"""

from __future__ import annotations

import html
import re
from typing import TYPE_CHECKING

from kiln.environment.exceptions import ErrorCode
from kiln.nodes import (
    Attribute,
    ConstantType,
    Directive,
    Position,
    SimpleExpression,
    SourceLocation,
    Text,
)


class AttributeParsingMixin:
    """Mixin for parsing the attribute list of a start tag."""

    if TYPE_CHECKING:
        _source: str
        _pos: int
        _in_v_pre: bool

        def _rest(self) -> str: ...
        def _advance(self, count: int) -> None: ...
        def _advance_spaces(self) -> None: ...
        def _cursor(self) -> Position: ...
        def _selection(self, start: Position, end: Position | None = None) -> SourceLocation: ...
        def _emit_error(self, code: ErrorCode, offset: int | None = None) -> None: ...

    _ATTR_NAME = re.compile(r"[^\t\r\n\f />][^\t\r\n\f />=]*")
    _ATTR_EQUALS = re.compile(r"[\t\r\n\f ]*=")
    _UNQUOTED_VALUE = re.compile(r"[^\t\r\n\f >]+")
    _IS_DIRECTIVE = re.compile(r"^(v-[A-Za-z0-9-]|:|\.|@|#)")
    _DIRECTIVE = re.compile(
        r"(?:^v-([a-z0-9-]+))?(?:(?::|^\.|^@|^#)(\[[^\]]+\]|[^.]+))?(.+)?$",
        re.IGNORECASE,
    )
    _CLASS_SPACES = re.compile(r"\s+")

    def _parse_attributes(self, *, is_end_tag: bool) -> list[Attribute | Directive]:
        props: list[Attribute | Directive] = []
        names: set[str] = set()
        while True:
            rest = self._rest()
            if not rest or rest.startswith(">") or rest.startswith("/>"):
                break
            if rest.startswith("/"):
                # Stray solidus inside a tag
                self._advance(1)
                self._advance_spaces()
                continue
            if is_end_tag:
                self._emit_error(ErrorCode.INVALID_END_TAG)

            attr = self._parse_attribute(names)
            if isinstance(attr, Attribute) and attr.name == "class" and attr.value is not None:
                attr.value.content = self._CLASS_SPACES.sub(" ", attr.value.content).strip()
            if not is_end_tag:
                props.append(attr)
            self._advance_spaces()
        return props

    def _parse_attribute(self, names: set[str]) -> Attribute | Directive:
        start = self._cursor()
        match = self._ATTR_NAME.match(self._rest())
        # _parse_attributes only calls us on a non-space, non-terminator char
        name = match.group(0) if match else self._rest()[0]
        if name in names:
            self._emit_error(ErrorCode.DUPLICATE_ATTRIBUTE)
        names.add(name)
        self._advance(len(name))

        value: Text | None = None
        equals = self._ATTR_EQUALS.match(self._rest())
        if equals:
            self._advance_spaces()
            self._advance(1)
            self._advance_spaces()
            value = self._parse_attribute_value()
            if value is None:
                self._emit_error(ErrorCode.MISSING_ATTRIBUTE_VALUE)

        loc = self._selection(start)

        if not self._in_v_pre and self._IS_DIRECTIVE.match(name):
            return self._make_directive(name, start, value, loc)
        if not self._in_v_pre and name.startswith("v-"):
            self._emit_error(ErrorCode.MISSING_DIRECTIVE_NAME, start.offset)
        return Attribute(name=name, value=value, loc=loc)

    def _parse_attribute_value(self) -> Text | None:
        start = self._cursor()
        rest = self._rest()
        if not rest:
            return None
        quote = rest[0]
        if quote in ("'", '"'):
            self._advance(1)
            end = self._source.find(quote, self._pos)
            if end == -1:
                raw = self._rest()
            else:
                raw = self._source[self._pos : end]
            inner_start = self._cursor()
            self._advance(len(raw))
            inner_loc = self._selection(inner_start)
            if end != -1:
                self._advance(1)
            return Text(content=html.unescape(raw), loc=inner_loc)

        match = self._UNQUOTED_VALUE.match(rest)
        if not match:
            return None
        raw = match.group(0)
        self._advance(len(raw))
        return Text(content=html.unescape(raw), loc=self._selection(start))

    def _make_directive(
        self,
        name: str,
        start: Position,
        value: Text | None,
        loc: SourceLocation,
    ) -> Directive:
        match = self._DIRECTIVE.match(name)
        assert match is not None  # the pattern matches any non-empty string
        dir_name_part, arg_part, modifier_part = match.groups()

        is_prop_shorthand = name.startswith(".")
        if dir_name_part:
            dir_name = dir_name_part
        elif is_prop_shorthand or name.startswith(":"):
            dir_name = "bind"
        elif name.startswith("@"):
            dir_name = "on"
        else:
            dir_name = "slot"

        arg: SimpleExpression | None = None
        if arg_part:
            is_slot = dir_name == "slot"
            stop = len(name) - (len(modifier_part) if modifier_part and not is_slot else 0)
            arg_offset = name.rfind(arg_part, 0, stop)
            content = arg_part
            is_static = True
            if content.startswith("["):
                is_static = False
                if not content.endswith("]"):
                    self._emit_error(
                        ErrorCode.MISSING_DYNAMIC_DIRECTIVE_ARGUMENT_END,
                        start.offset + arg_offset,
                    )
                    content = content[1:]
                else:
                    content = content[1:-1]
            elif is_slot:
                # Slot names may contain dots: #item.header
                content += modifier_part or ""
                modifier_part = None

            arg_start = Position(
                start.offset + arg_offset, start.line, start.column + arg_offset
            )
            arg_end = Position(
                arg_start.offset + len(arg_part),
                start.line,
                arg_start.column + len(arg_part),
            )
            arg = SimpleExpression(
                content=content,
                is_static=is_static,
                const_type=ConstantType.CAN_STRINGIFY if is_static else ConstantType.NOT_CONSTANT,
                loc=SourceLocation(arg_start, arg_end, arg_part),
            )

        modifiers = modifier_part[1:].split(".") if modifier_part else []
        if is_prop_shorthand:
            modifiers.append("prop")

        exp = None
        if value is not None:
            exp = SimpleExpression(content=value.content, is_static=False, loc=value.loc)

        return Directive(
            name=dir_name,
            raw_name=name,
            exp=exp,
            arg=arg,
            modifiers=modifiers,
            loc=loc,
        )
