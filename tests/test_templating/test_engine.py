"""Tests for TemplateEngine and TemplateCache (manifestgen.templating.engine).

Tests cover:
- Rendering, missing variables and custom filters
- Trailing newline normalization
- TODO marker insertion and idempotence
- Syntax errors surfaced as TemplateRenderError
- Cache hits, statistics and concurrent compilation of the same key
"""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from manifestgen.templating.engine import (
    DEFAULT_TODO_COMMENT,
    TemplateCache,
    TemplateEngine,
)
from manifestgen.templating.errors import TemplateReadError, TemplateRenderError


pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRender:
    @pytest.mark.asyncio
    async def test_renders_data(self):
        engine = TemplateEngine()
        result = await engine.render("public class {{ name }} {}", {"name": "Order"}, "k")
        assert result == "public class Order {}\n"

    @pytest.mark.asyncio
    async def test_missing_variables_render_empty(self):
        engine = TemplateEngine()
        result = await engine.render("[{{ missing }}][{{ missing.deeper }}]", {}, "k")
        assert result == "[][]\n"

    @pytest.mark.asyncio
    async def test_loops_over_missing_are_empty(self):
        engine = TemplateEngine()
        result = await engine.render("a{% for f in fields %}{{ f }}{% endfor %}b", {}, "k")
        assert result == "ab\n"

    @pytest.mark.parametrize(
        "source, expected",
        [
            ("x", "x\n"),
            ("x\n", "x\n"),
            ("x\n\n\n", "x\n"),
            ("x\r\n", "x\n"),
            ("", "\n"),
        ],
    )
    def test_single_trailing_newline(self, source: str, expected: str):
        assert TemplateEngine().render_sync(source, {}, source or "empty") == expected

    @pytest.mark.parametrize(
        "expr, expected",
        [
            ("'order line' | slugify", "order-line"),
            ("'order_line' | pascal_case", "OrderLine"),
            ("'OrderLine' | snake_case", "order_line"),
            ("'order-line' | camel_case", "orderLine"),
            ("'customerId' | pascal_case", "CustomerId"),
            ("'PlaceOrder' | slugify", "place-order"),
            ("'IOrderRepository' | snake_case", "i_order_repository"),
            ("'HTTPClient' | snake_case", "http_client"),
            ("'OrderId' | camel_case", "orderId"),
            ("'' | camel_case", ""),
        ],
    )
    def test_filters(self, expr: str, expected: str):
        assert TemplateEngine().render_sync("{{ " + expr + " }}", {}, expr) == expected + "\n"

    def test_html_is_not_escaped(self):
        result = TemplateEngine().render_sync("{{ t }}", {"t": "List<Order>"}, "k")
        assert result == "List<Order>\n"


# ---------------------------------------------------------------------------
# TODO insertion
# ---------------------------------------------------------------------------


class TestTodoInsertion:
    def test_disabled_by_default(self):
        assert TemplateEngine().render_sync("class A {}", {}, "k") == "class A {}\n"

    def test_appends_marker(self):
        engine = TemplateEngine().with_todo_insertion(True)
        assert engine.render_sync("class A {}", {}, "k") == f"class A {{}}\n{DEFAULT_TODO_COMMENT}\n"

    def test_existing_marker_is_respected(self):
        engine = TemplateEngine(insert_todo=True)
        assert engine.render_sync("// TODO later", {}, "k") == "// TODO later\n"

    def test_idempotent_over_repeated_renders(self):
        engine = TemplateEngine(insert_todo=True)
        once = engine.render_sync("class A {}", {}, "first")
        twice = engine.render_sync(once, {}, "second")
        assert twice == once
        assert twice.count("TODO") == 1

    def test_custom_comment(self):
        engine = TemplateEngine(insert_todo=True, todo_comment="# TODO: check")
        assert engine.render_sync("x = 1", {}, "k") == "x = 1\n# TODO: check\n"

    def test_toggle_leaves_original_unchanged(self):
        base = TemplateEngine()
        marked = base.with_todo_insertion(True)
        assert marked is not base
        assert base.insert_todo is False
        assert marked.cache is base.cache
        assert marked.env is base.env
        assert base.render_sync("class A {}", {}, "k") == "class A {}\n"
        assert marked.render_sync("class A {}", {}, "k").endswith(f"{DEFAULT_TODO_COMMENT}\n")

    def test_toggle_to_current_value_returns_same_engine(self):
        engine = TemplateEngine(insert_todo=True)
        assert engine.with_todo_insertion(True) is engine


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_syntax_error(self):
        with pytest.raises(TemplateRenderError) as exc_info:
            TemplateEngine().render_sync("{% for x in %}", {}, "broken.j2")
        assert exc_info.value.template == "broken.j2"
        assert "line 1" in exc_info.value.message

    def test_runtime_error(self):
        with pytest.raises(TemplateRenderError):
            TemplateEngine().render_sync("{{ 'x' | no_such_filter }}", {}, "k")

    def test_failed_compile_is_not_cached(self):
        engine = TemplateEngine()
        with pytest.raises(TemplateRenderError):
            engine.render_sync("{% if %}", {}, "k")
        assert "k" not in engine.cache

    @pytest.mark.parametrize(
        "source, data",
        [
            ("{{ name + 1 }}", {"name": "Order"}),
            ("{{ total // count }}", {"total": 4, "count": 0}),
            ("{{ name.upper(1) }}", {"name": "Order"}),
        ],
    )
    def test_python_errors_become_render_errors(self, source: str, data: dict):
        with pytest.raises(TemplateRenderError) as exc_info:
            TemplateEngine().render_sync(source, data, "entity.j2")
        assert exc_info.value.template == "entity.j2"
        assert exc_info.value.__cause__ is not None

    @pytest.mark.asyncio
    async def test_unreadable_file(self, tmp_path: Path):
        with pytest.raises(TemplateReadError):
            await TemplateEngine().render_file(tmp_path / "missing.j2", {})

    @pytest.mark.asyncio
    async def test_undecodable_file(self, tmp_path: Path):
        template = tmp_path / "binary.j2"
        template.write_bytes(b"\xff\xfeclass {{ name }}")
        with pytest.raises(TemplateReadError) as exc_info:
            await TemplateEngine().render_file(template, {"name": "A"})
        assert isinstance(exc_info.value.cause, UnicodeDecodeError)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class TestCache:
    def test_compiles_once_per_key(self):
        engine = TemplateEngine()
        assert engine.render_sync("A{{ v }}", {"v": 1}, "k") == "A1\n"
        # Same key: cached template wins, the new source is ignored.
        assert engine.render_sync("B{{ v }}", {"v": 2}, "k") == "A2\n"
        assert engine.cache_stats() == {"entries": 1, "hits": 1, "misses": 1}

    def test_different_keys(self):
        engine = TemplateEngine()
        engine.render_sync("A", {}, "a")
        engine.render_sync("B", {}, "b")
        assert len(engine.cache) == 2

    def test_clear_cache(self):
        engine = TemplateEngine()
        engine.render_sync("A", {}, "a")
        engine.clear_cache()
        assert engine.cache_stats() == {"entries": 0, "hits": 0, "misses": 0}

    def test_shared_cache_between_engines(self):
        cache = TemplateCache()
        TemplateEngine(cache=cache).render_sync("A", {}, "a")
        assert "a" in TemplateEngine(cache=cache).cache

    @pytest.mark.asyncio
    async def test_render_file_uses_path_as_key(self, tmp_path: Path):
        template = tmp_path / "entity.j2"
        template.write_text("class {{ name }}", encoding="utf-8")
        engine = TemplateEngine()
        assert await engine.render_file(template, {"name": "A"}) == "class A\n"

        with patch.object(Path, "read_text", side_effect=AssertionError("re-read")):
            assert await engine.render_file(template, {"name": "B"}) == "class B\n"
        assert engine.cache_stats()["hits"] == 1

    def test_concurrent_same_key_compiles_once(self):
        cache = TemplateCache()
        engine = TemplateEngine(cache=cache)
        compiled = []
        barrier = threading.Barrier(8)

        def compile_fn():
            compiled.append(1)
            return engine.env.from_string("{{ n }}")

        def worker():
            barrier.wait()
            cache.get_or_compile("shared", compile_fn)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(compiled) == 1
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_concurrent_renders_are_consistent(self):
        engine = TemplateEngine()
        results = await asyncio.gather(*(
            engine.render("{{ key }}={{ n }}", {"key": f"k{i % 4}", "n": i}, f"k{i % 4}")
            for i in range(40)
        ))
        assert results == [f"k{i % 4}={i}\n" for i in range(40)]
        assert engine.cache_stats()["entries"] == 4
