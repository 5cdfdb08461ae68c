"""Shared constants for kiln.

Tag tables used by the parser to classify elements, patch flags produced by
element lowering, and the names expressions may use without a context prefix.
"""

from __future__ import annotations

from enum import IntEnum, IntFlag

# HTML elements (WHATWG HTML Living Standard)
HTML_TAGS: frozenset[str] = frozenset(
    {
        # Document metadata and sections
        "html", "body", "base", "head", "link", "meta", "style", "title",
        "address", "article", "aside", "footer", "header", "hgroup",
        "h1", "h2", "h3", "h4", "h5", "h6", "nav", "section", "main", "search",
        # Grouping content
        "div", "dd", "dl", "dt", "figcaption", "figure", "picture", "hr", "img",
        "li", "menu", "ol", "p", "pre", "ul", "blockquote",
        # Text-level semantics
        "a", "b", "abbr", "bdi", "bdo", "br", "cite", "code", "data", "dfn", "em",
        "i", "kbd", "mark", "q", "rp", "rt", "ruby", "s", "samp", "small", "span",
        "strong", "sub", "sup", "time", "u", "var", "wbr",
        # Embedded content
        "area", "audio", "map", "track", "video", "embed", "object", "param",
        "source", "canvas", "script", "noscript", "iframe",
        # Edits and tables
        "del", "ins", "caption", "col", "colgroup", "table", "thead", "tbody",
        "td", "th", "tr", "tfoot",
        # Forms and interactive elements
        "button", "datalist", "fieldset", "form", "input", "label", "legend",
        "meter", "optgroup", "option", "output", "progress", "select", "textarea",
        "details", "dialog", "summary",
        # Web components
        "template", "slot",
    }
)

SVG_TAGS: frozenset[str] = frozenset(
    {
        "svg", "animate", "circle", "clipPath", "defs", "desc", "ellipse",
        "filter", "g", "image", "line", "linearGradient", "marker", "mask",
        "path", "pattern", "polygon", "polyline", "radialGradient", "rect",
        "stop", "symbol", "text", "textPath", "tspan", "use", "view",
    }
)

MATH_ML_TAGS: frozenset[str] = frozenset(
    {"math", "mi", "mn", "mo", "ms", "mrow", "msup", "msub", "mfrac", "msqrt", "mtext"}
)

# Elements that never have children or an end tag
VOID_TAGS: frozenset[str] = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input", "link",
        "meta", "param", "source", "track", "wbr",
    }
)

# Tags whose content is kept verbatim (no whitespace condensing)
PRE_TAGS: frozenset[str] = frozenset({"pre", "textarea"})


class PatchFlags(IntFlag):
    """Hints telling the runtime which parts of a vnode can change."""

    TEXT = 1
    CLASS = 1 << 1
    STYLE = 1 << 2
    PROPS = 1 << 3
    FULL_PROPS = 1 << 4
    NEED_HYDRATION = 1 << 5
    STABLE_FRAGMENT = 1 << 6
    KEYED_FRAGMENT = 1 << 7
    UNKEYED_FRAGMENT = 1 << 8
    NEED_PATCH = 1 << 9
    DYNAMIC_SLOTS = 1 << 10
    DEV_ROOT_FRAGMENT = 1 << 11


# Special (negative) patch flags; never combined with the bits above
PATCH_FLAG_CACHED = -1
PATCH_FLAG_BAIL = -2

PATCH_FLAG_NAMES: dict[int, str] = {
    **{int(flag): flag.name for flag in PatchFlags if flag.name},
    PATCH_FLAG_CACHED: "CACHED",
    PATCH_FLAG_BAIL: "BAIL",
}


class SlotFlags(IntEnum):
    """How a component's slots object may change."""

    STABLE = 1
    DYNAMIC = 2
    FORWARDED = 3


def describe_patch_flag(flag: int) -> str:
    """Readable name for a patch flag value, e.g. ``"TEXT, CLASS"``."""
    if flag < 0:
        return PATCH_FLAG_NAMES.get(flag, str(flag))
    return ", ".join(PATCH_FLAG_NAMES[int(bit)] for bit in PatchFlags if bit & flag)


# Names expressions can use without being rewritten to ``_ctx.<name>``.
# Everything else, builtins included, is read from the render context.
ALLOWED_GLOBALS: frozenset[str] = frozenset(
    {
        "None", "True", "False",
        "abs", "all", "any", "bool", "chr", "dict", "divmod", "enumerate",
        "float", "frozenset", "int", "isinstance", "len", "list", "max", "min",
        "ord", "pow", "range", "repr", "reversed", "round", "set", "slice",
        "sorted", "str", "sum", "tuple", "zip",
        "_ctx", "_cache",
    }
)

# Prefixes of names the compiler itself introduces into expressions
GENERATED_NAME_PREFIXES: tuple[str, ...] = ("_filter_", "_component_", "_directive_", "_hoisted_")
