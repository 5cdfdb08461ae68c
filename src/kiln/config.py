"""Build flags for the kiln compiler.

A build flag describes the environment a compiler build targets rather than a
single compile call. The same flags apply to every template compiled by a
process, so they live outside `CompilerOptions`.

Flags:
- **browser**: constrained build. Identifier prefixing and module output are
  unavailable; requesting them is reported through the error sink.
- **dev**: diagnostics build. Enables syntax validation of expressions in
  constrained builds and warning-level diagnostics in the runtime compiler.
- **compat**: legacy compatibility build. Enables filter-pipe rewriting.
- **global_build**: generated code finds the runtime in the materializer's
  global namespace instead of receiving it as an injected binding.

Environment variables (read by `BuildFlags.from_env()`):
    KILN_BROWSER, KILN_DEV, KILN_COMPAT, KILN_GLOBAL_BUILD

Values "1", "true", "yes" and "on" (any case) enable a flag; "0", "false", "no"
and "off" disable it. Unset variables keep the default.

Example:
    >>> flags = BuildFlags(browser=True)
    >>> flags.browser, flags.dev
    (True, True)

"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off", ""})

_ENV_PREFIX = "KILN_"


def _read_flag(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(_ENV_PREFIX + name.upper())
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ValueError(
        f"Invalid value {raw!r} for {_ENV_PREFIX}{name.upper()}: "
        f"expected one of {sorted(_TRUTHY | (_FALSY - {''}))}"
    )


@dataclass(frozen=True, slots=True)
class BuildFlags:
    """Build-level switches consumed by the compiler and runtime compiler.

    Attributes:
        browser: Constrained build (no identifier prefixing, no module mode).
        dev: Diagnostics build.
        compat: Legacy compatibility build (filter pipes).
        global_build: Runtime is resolved from the materializer's globals.
    """

    browser: bool = False
    dev: bool = True
    compat: bool = False
    global_build: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> BuildFlags:
        """Build flags from ``KILN_*`` environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``).

        Raises:
            ValueError: If a variable holds an unrecognized value.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            browser=_read_flag(env, "browser", defaults.browser),
            dev=_read_flag(env, "dev", defaults.dev),
            compat=_read_flag(env, "compat", defaults.compat),
            global_build=_read_flag(env, "global_build", defaults.global_build),
        )


# Non-browser diagnostics build
DEFAULT_FLAGS = BuildFlags()


__all__ = ["DEFAULT_FLAGS", "BuildFlags"]
