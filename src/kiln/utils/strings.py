"""Name conversions shared by the compiler and the runtime.

Both sides must agree on them: the compiler bakes converted names into
generated code and the runtime converts dynamic names the same way.
"""

from __future__ import annotations

import re
from functools import lru_cache

_CAMELIZE = re.compile(r"-(\w)")

HANDLER_PREFIX = "on_"


@lru_cache(maxsize=512)
def camelize(name: str) -> str:
    """``my-prop`` -> ``myProp``"""
    return _CAMELIZE.sub(lambda m: m.group(1).upper(), name)


def capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def to_handler_key(event: str) -> str:
    """Props key for an event handler: ``click`` -> ``on_click``."""
    return f"{HANDLER_PREFIX}{event}" if event else ""


def is_handler_key(key: str) -> bool:
    return key.startswith(HANDLER_PREFIX) and len(key) > len(HANDLER_PREFIX)
