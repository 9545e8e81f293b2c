"""Jinja2 template rendering with a compiled-template cache.

Provides the TemplateEngine class which compiles template sources once per
cache key and renders them against JSON-like data payloads.  Missing
variables render as empty text, output always ends with exactly one
newline, and an optional review marker can be appended to generated files.
"""

from __future__ import annotations

import asyncio
import copy
import re
import threading
from pathlib import Path
from typing import Any

from jinja2 import (
    ChainableUndefined,
    Environment,
    Template,
    TemplateSyntaxError,
    select_autoescape,
)

from .errors import TemplateReadError, TemplateRenderError


TODO_MARKER = "TODO"
DEFAULT_TODO_COMMENT = "// TODO: Review generated content"


# ---------------------------------------------------------------------------
# TemplateCache
# ---------------------------------------------------------------------------


class TemplateCache:
    """Compiled templates keyed by cache key.

    Entries are filled lazily and never invalidated while the owning engine
    lives.  Compilation for a given key happens at most once even when many
    threads ask for it at the same time: each key gets its own lock, and
    different keys compile in parallel.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Template] = {}
        self._key_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get_or_compile(self, key: str, compile_fn) -> Template:
        """Return the template cached under *key*, compiling it on first use."""
        entry = self._entries.get(key)
        if entry is not None:
            with self._lock:
                self.hits += 1
            return entry

        with self._lock:
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            entry = self._entries.get(key)
            if entry is not None:
                with self._lock:
                    self.hits += 1
                return entry
            compiled = compile_fn()
            with self._lock:
                self._entries[key] = compiled
                self.misses += 1
            return compiled

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._key_locks.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> dict[str, int]:
        return {"entries": len(self._entries), "hits": self.hits, "misses": self.misses}


# ---------------------------------------------------------------------------
# TemplateEngine
# ---------------------------------------------------------------------------


class TemplateEngine:
    """Renders Jinja2 templates for generated artifacts.

    One engine owns one :class:`TemplateCache`; share the engine to share
    the cache.  The engine is safe to use from concurrent coroutines:
    compilation and rendering run in worker threads and the cache guards
    itself.
    """

    def __init__(
        self,
        *,
        insert_todo: bool = False,
        todo_comment: str = DEFAULT_TODO_COMMENT,
        cache: TemplateCache | None = None,
    ) -> None:
        self.insert_todo = insert_todo
        self.todo_comment = todo_comment
        self.cache = cache if cache is not None else TemplateCache()
        self.env = Environment(
            autoescape=select_autoescape([], default_for_string=False),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=ChainableUndefined,
        )
        # Register custom filters
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["snake_case"] = _snake_case_filter
        self.env.filters["camel_case"] = _camel_case_filter

    def with_todo_insertion(self, enabled: bool) -> "TemplateEngine":
        """Return an engine with review-marker insertion set to *enabled*.

        The returned engine shares this engine's Jinja environment and
        compiled-template cache; this engine is left unchanged.
        """
        if enabled == self.insert_todo:
            return self
        engine = copy.copy(self)
        engine.insert_todo = enabled
        return engine

    # -- Rendering ---------------------------------------------------------

    async def render(self, source: str, data: dict[str, Any], cache_key: str) -> str:
        """Render template *source* against *data*.

        The compiled form is cached under *cache_key*; later calls with the
        same key reuse it and ignore *source*.

        Raises:
            TemplateRenderError: The template is syntactically invalid or
                failed while rendering.
        """
        return await asyncio.to_thread(self.render_sync, source, data, cache_key)

    async def render_file(self, template_path: str | Path, data: dict[str, Any]) -> str:
        """Read a template file and render it, caching by its path."""
        path = Path(template_path)
        cache_key = str(path)
        if cache_key in self.cache:
            source = ""
        else:
            try:
                source = await asyncio.to_thread(path.read_text, encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise TemplateReadError(str(path), exc) from exc
        return await self.render(source, data, cache_key)

    def render_sync(self, source: str, data: dict[str, Any], cache_key: str) -> str:
        """Blocking variant of :meth:`render`."""
        template = self._compiled(source, cache_key)
        try:
            content = template.render(**data)
        except Exception as exc:
            raise TemplateRenderError(cache_key, str(exc)) from exc
        return self.post_process(content)

    def post_process(self, content: str) -> str:
        """Normalize the trailing newline and add the review marker if enabled."""
        content = content.rstrip("\r\n") + "\n"
        if self.insert_todo and TODO_MARKER not in content:
            content += f"{self.todo_comment}\n"
        return content

    # -- Cache -------------------------------------------------------------

    def clear_cache(self) -> None:
        self.cache.clear()

    def cache_stats(self) -> dict[str, int]:
        return self.cache.stats()

    def _compiled(self, source: str, cache_key: str) -> Template:
        def compile_source() -> Template:
            try:
                return self.env.from_string(source)
            except TemplateSyntaxError as exc:
                raise TemplateRenderError(
                    cache_key, f"line {exc.lineno}: {exc.message}"
                ) from exc

        return self.cache.get_or_compile(cache_key, compile_source)


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

# Identifier words: "IOrderRepository" -> I, Order, Repository;
# "customerId" -> customer, Id; "order_line" -> order, line.
_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")


def _words(value: str) -> list[str]:
    return _WORD_RE.findall(str(value))


def _slugify_filter(value: str) -> str:
    """Kebab-case for routes and file names: ``PlaceOrder`` -> ``place-order``."""
    return "-".join(word.lower() for word in _words(value))


def _pascal_case_filter(value: str) -> str:
    """Type and property names: ``order_line`` -> ``OrderLine``, ``customerId`` -> ``CustomerId``."""
    return "".join(word[:1].upper() + word[1:] for word in _words(value))


def _snake_case_filter(value: str) -> str:
    """Column and table names: ``OrderLine`` -> ``order_line``."""
    return "_".join(word.lower() for word in _words(value))


def _camel_case_filter(value: str) -> str:
    """Parameters and JSON members: ``OrderId`` -> ``orderId``."""
    pascal = _pascal_case_filter(value)
    return pascal[:1].lower() + pascal[1:]
