"""Tests for CompileCache: per-options buckets, weak keys and stats."""

import gc

from kiln import CompileCache, CompilerOptions
from kiln.environment.cache import DEFAULT_OPTIONS_KEY


def render_a(ctx, cache):
    return "a"


def render_b(ctx, cache):
    return "b"


class TestLookup:
    """get / set / get_or_compute."""

    def test_miss_then_hit(self):
        cache = CompileCache()
        options = CompilerOptions()
        assert cache.get(options, "<p/>") is None
        cache.set(options, "<p/>", render_a)
        assert cache.get(options, "<p/>") is render_a

    def test_buckets_are_per_options_object(self):
        cache = CompileCache()
        first, second = CompilerOptions(), CompilerOptions()
        cache.set(first, "<p/>", render_a)
        assert cache.get(second, "<p/>") is None

    def test_none_options_share_a_bucket(self):
        cache = CompileCache()
        cache.set(None, "<p/>", render_a)
        assert cache.get(None, "<p/>") is render_a

    def test_text_is_the_inner_key(self):
        cache = CompileCache()
        cache.set(None, "<p/>", render_a)
        cache.set(None, "<p></p>", render_b)
        assert cache.get(None, "<p/>") is render_a
        assert cache.get(None, "<p></p>") is render_b

    def test_get_or_compute_computes_once(self):
        cache = CompileCache()
        calls = []

        def compute():
            calls.append(1)
            return render_a

        assert cache.get_or_compute(None, "x", compute) is render_a
        assert cache.get_or_compute(None, "x", compute) is render_a
        assert calls == [1]

    def test_later_write_replaces(self):
        cache = CompileCache()
        cache.set(None, "x", render_a)
        cache.set(None, "x", render_b)
        assert cache.get(None, "x") is render_b


class TestWeakBuckets:
    """Dropping an options object drops its bucket."""

    def test_bucket_released_with_options(self):
        cache = CompileCache()
        options = CompilerOptions()
        cache.set(options, "<p/>", render_a)
        assert len(cache) == 1
        del options
        gc.collect()
        assert len(cache) == 0
        assert cache.info()["buckets"] == 0

    def test_default_bucket_is_kept(self):
        cache = CompileCache()
        cache.set(None, "<p/>", render_a)
        gc.collect()
        assert len(cache) == 1


class TestStatsAndStore:
    """Counters, clear() and custom stores."""

    def test_info(self):
        cache = CompileCache()
        options = CompilerOptions()
        cache.get(options, "x")
        cache.set(options, "x", render_a)
        cache.set(None, "y", render_b)
        cache.get(options, "x")
        cache.get(options, "x")
        assert cache.info() == {"hits": 2, "misses": 1, "buckets": 2, "entries": 2}

    def test_clear_resets_everything(self):
        cache = CompileCache()
        cache.set(None, "x", render_a)
        cache.get(None, "x")
        cache.clear()
        assert cache.info() == {"hits": 0, "misses": 0, "buckets": 0, "entries": 0}

    def test_custom_store(self):
        store = {}
        cache = CompileCache(store)
        options = CompilerOptions()
        cache.set(options, "x", render_a)
        cache.set(None, "y", render_b)
        assert store[options] == {"x": render_a}
        assert store[DEFAULT_OPTIONS_KEY] == {"y": render_b}

    def test_custom_store_keeps_options_alive(self):
        store = {}
        cache = CompileCache(store)
        cache.set(CompilerOptions(), "x", render_a)
        gc.collect()
        assert len(cache) == 1
