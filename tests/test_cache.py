"""
Template cache (templates/cache.py)

Tests versioning, invalidation, run modes and single-flight compilation
under concurrent resolution.
"""

import threading

import pytest

from ardea.faults import TemplateCompilationFault, TemplateNotFoundFault
from ardea.request import RunMode
from ardea.templates import TemplateRenderer

from tests.conftest import make_cache


# ============================================================================
# Versioning
# ============================================================================

class TestVersioning:

    def test_resolve_is_idempotent(self):
        cache = make_cache({"index.gtmpl": "x"})
        first = cache.resolve("index.gtmpl")
        second = cache.resolve("/index.gtmpl")
        assert first is second
        assert first.version == 1

    def test_touch_bumps_version(self):
        cache = make_cache({"index.gtmpl": "x"})
        first = cache.resolve("index.gtmpl")
        cache.context.loader.touch("index.gtmpl", "y")
        second = cache.resolve("index.gtmpl")
        assert second is not first
        assert second.version == first.version + 1
        assert cache.resolve("index.gtmpl") is second

    def test_model_lookup_does_not_load(self):
        cache = make_cache({"index.gtmpl": "x"})
        assert cache.model("index.gtmpl") is None
        cache.resolve("index.gtmpl")
        assert cache.model("index.gtmpl").version == 1

    def test_missing_template(self):
        cache = make_cache({})
        with pytest.raises(TemplateNotFoundFault):
            cache.resolve("nope.gtmpl")
        with pytest.raises(TemplateNotFoundFault):
            cache.get("nope.gtmpl")

    def test_invalid_template(self):
        cache = make_cache({"index.gtmpl": "#{nope/}"})
        with pytest.raises(TemplateCompilationFault) as info:
            cache.get("index.gtmpl")
        assert info.value.errors[0].code == "UNKNOWN_TAG"


# ============================================================================
# Compiled templates
# ============================================================================

class TestCompiled:

    def test_compiled_once(self):
        cache = make_cache({"index.gtmpl": "x"})
        first = cache.get("index.gtmpl")
        assert cache.get("/index.gtmpl") is first
        assert cache.compilations["/index.gtmpl"] == 1

    def test_prod_trusts_compiled(self):
        cache = make_cache({"index.gtmpl": "x"}, run_mode=RunMode.PROD)
        first = cache.get("index.gtmpl")
        cache.context.loader.touch("index.gtmpl", "y")
        assert cache.get("index.gtmpl") is first

    def test_resolve_invalidates_dependents(self):
        cache = make_cache({
            "a.gtmpl": "#{include path=b.gtmpl/}",
            "b.gtmpl": "#{include path=c.gtmpl/}",
            "c.gtmpl": "c",
            "other.gtmpl": "o",
        })
        cache.compile_all()
        assert cache.compilations["/a.gtmpl"] == 1
        cache.context.loader.touch("c.gtmpl", "C")
        assert cache.resolve("c.gtmpl").version == 2
        other = cache.get("other.gtmpl")
        assert cache.get("a.gtmpl").version == 1
        assert cache.compilations["/a.gtmpl"] == 2
        assert cache.compilations["/b.gtmpl"] == 1
        cache.get("b.gtmpl")
        assert cache.compilations["/b.gtmpl"] == 2
        assert cache.get("other.gtmpl") is other
        assert cache.compilations["/other.gtmpl"] == 1

    def test_live_mode_picks_up_changes(self):
        cache = make_cache(
            {"index.gtmpl": "[#{include path=part.gtmpl/}]", "part.gtmpl": "v1"},
            run_mode=RunMode.LIVE,
        )
        renderer = TemplateRenderer(cache, cache.compiler.registry)
        assert renderer.render("index.gtmpl").text == "[v1]"
        cache.context.loader.touch("part.gtmpl", "v2")
        assert renderer.render("index.gtmpl").text == "[v2]"
        assert cache.model("part.gtmpl").version == 2
        assert cache.compilations["/index.gtmpl"] == 2

    def test_live_mode_unchanged_reuses(self):
        cache = make_cache({"index.gtmpl": "x"}, run_mode=RunMode.LIVE)
        first = cache.get("index.gtmpl")
        assert cache.get("index.gtmpl") is first

    def test_compile_all(self):
        cache = make_cache({"a.gtmpl": "a", "tags/box.gtmpl": "[#{insert/}]"})
        result = cache.compile_all()
        assert set(result.models) == {"/a.gtmpl", "/tags/box.gtmpl"}
        assert cache.get("a.gtmpl").version == 1
        assert cache.compilations["/a.gtmpl"] == 1

    def test_compile_all_failure_installs_nothing(self):
        cache = make_cache({"a.gtmpl": "a", "b.gtmpl": "#{nope/}"})
        with pytest.raises(TemplateCompilationFault):
            cache.compile_all()
        assert cache.models() == {}

    def test_clear(self):
        cache = make_cache({"index.gtmpl": "x"})
        cache.get("index.gtmpl")
        cache.clear()
        assert cache.model("index.gtmpl") is None
        cache.get("index.gtmpl")
        assert cache.compilations["/index.gtmpl"] == 2


# ============================================================================
# Concurrency
# ============================================================================

class TestConcurrency:

    def test_single_compilation_under_concurrent_resolution(self):
        cache = make_cache({
            "index.gtmpl": "#{include path=a.gtmpl/}#{include path=b.gtmpl/}",
            "a.gtmpl": "a",
            "b.gtmpl": "b",
        })
        workers = 16
        barrier = threading.Barrier(workers)
        results = []
        failures = []

        def resolve():
            try:
                barrier.wait()
                results.append(cache.get("index.gtmpl"))
            except Exception as e:
                failures.append(e)

        threads = [threading.Thread(target=resolve) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert failures == []
        assert len(results) == workers
        assert all(r is results[0] for r in results)
        assert cache.compilations["/index.gtmpl"] == 1

    def test_concurrent_resolve_returns_one_model(self):
        cache = make_cache({"index.gtmpl": "x"})
        workers = 8
        barrier = threading.Barrier(workers)
        models = []

        def resolve():
            barrier.wait()
            models.append(cache.resolve("index.gtmpl"))

        threads = [threading.Thread(target=resolve) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len({id(m) for m in models}) == 1
