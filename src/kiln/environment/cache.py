"""Compiled render function cache.

Entries are keyed first by the options object (by identity) and then by the
template text. The default store is a `weakref.WeakKeyDictionary`, so dropping
the last reference to an options object also drops everything compiled with
it. Compiling with no options uses a shared module-level key.

Writes are check-compute-write: two callers racing on the same key may both
compile, and the later result replaces the earlier one. Both are equivalent.
"""

from __future__ import annotations

import weakref
from collections.abc import Callable, MutableMapping
from typing import Any

from kiln.compiler.options import CompilerOptions

RenderFunction = Callable[..., Any]


class _DefaultOptionsKey:
    """Cache key standing in for "no options"."""

    __slots__ = ("__weakref__",)

    def __repr__(self) -> str:
        return "<default options>"


DEFAULT_OPTIONS_KEY = _DefaultOptionsKey()


class CompileCache:
    """Two-level cache: options identity -> template text -> render function.

    Args:
        store: Outer mapping to use. Must key by identity (objects used as keys
            do not define value equality). Defaults to a WeakKeyDictionary.

    Example:
        >>> cache = CompileCache()
        >>> fn = cache.get_or_compute(None, "<p/>", lambda: print)
        >>> cache.get(None, "<p/>") is fn
        True
    """

    __slots__ = ("_stats", "_store")

    def __init__(self, store: MutableMapping[Any, dict[str, RenderFunction]] | None = None):
        self._store: MutableMapping[Any, dict[str, RenderFunction]] = (
            store if store is not None else weakref.WeakKeyDictionary()
        )
        self._stats: dict[str, int] = {"hits": 0, "misses": 0}

    @staticmethod
    def _key(options: CompilerOptions | None) -> Any:
        return DEFAULT_OPTIONS_KEY if options is None else options

    def get(self, options: CompilerOptions | None, text: str) -> RenderFunction | None:
        bucket = self._store.get(self._key(options))
        fn = bucket.get(text) if bucket is not None else None
        if fn is None:
            self._stats["misses"] += 1
        else:
            self._stats["hits"] += 1
        return fn

    def set(self, options: CompilerOptions | None, text: str, fn: RenderFunction) -> None:
        key = self._key(options)
        bucket = self._store.get(key)
        if bucket is None:
            bucket = self._store[key] = {}
        bucket[text] = fn

    def get_or_compute(
        self,
        options: CompilerOptions | None,
        text: str,
        compute: Callable[[], RenderFunction],
    ) -> RenderFunction:
        """Cached function for (options, text), computing and storing it on a miss."""
        fn = self.get(options, text)
        if fn is None:
            fn = compute()
            self.set(options, text, fn)
        return fn

    def clear(self) -> None:
        self._store.clear()
        self._stats = {"hits": 0, "misses": 0}

    def info(self) -> dict[str, int]:
        """Hit/miss counters plus the number of option buckets and entries."""
        buckets = list(self._store.values())
        return {
            **self._stats,
            "buckets": len(buckets),
            "entries": sum(len(bucket) for bucket in buckets),
        }

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in list(self._store.values()))


__all__ = ["DEFAULT_OPTIONS_KEY", "CompileCache", "RenderFunction"]
