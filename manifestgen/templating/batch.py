"""Bounded-concurrency batch rendering.

Renders many ``(template, data, destination)`` requests at once.  Every
request is resolved, rendered and written independently: a failure is
recorded against that request and the rest of the batch carries on.
"""

from __future__ import annotations

import asyncio
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .engine import TemplateEngine
from .errors import TemplateError, TemplateWriteError
from .resolver import TemplateResolver


def default_concurrency() -> int:
    """Number of in-flight renders used when no limit is given."""
    return os.cpu_count() or 4


# ---------------------------------------------------------------------------
# Request / result records
# ---------------------------------------------------------------------------


@dataclass
class RenderRequest:
    """One template to render and where to put the output."""

    template: str
    data: dict[str, Any]
    destination: Path


@dataclass
class BatchError:
    """A request that failed, with the error that stopped it."""

    template: str
    destination: Path
    error: TemplateError

    def __str__(self) -> str:
        return f"{self.template} -> {self.destination}: {self.error}"


@dataclass
class RenderOutcome:
    """Result of rendering one request without writing it."""

    request: RenderRequest
    content: str | None = None
    error: TemplateError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchRenderResult:
    """Counts and errors for a completed batch."""

    succeeded: int = 0
    failed: int = 0
    errors: list[BatchError] = field(default_factory=list)
    duration: float = 0.0

    @property
    def total(self) -> int:
        return self.succeeded + self.failed


# ---------------------------------------------------------------------------
# BatchRenderer
# ---------------------------------------------------------------------------


class BatchRenderer:
    """Fans out render requests under a concurrency cap.

    At most ``max_concurrency`` requests are in flight at any moment.  The
    engine (and its compiled-template cache) and the resolver are shared by
    every request in the batch.  Existing destination files are overwritten;
    collision handling belongs to the caller.
    """

    def __init__(
        self,
        templates_root: str | Path,
        *,
        engine: TemplateEngine | None = None,
        resolver: TemplateResolver | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        self.engine = engine if engine is not None else TemplateEngine()
        self.resolver = resolver if resolver is not None else TemplateResolver(templates_root)
        self.max_concurrency = max(1, max_concurrency or default_concurrency())

    async def render_batch(self, requests: list[RenderRequest]) -> BatchRenderResult:
        """Render and write every request, collecting per-request failures."""
        start = time.monotonic()
        gate = asyncio.Semaphore(self.max_concurrency)

        async def _run(request: RenderRequest) -> BatchError | None:
            async with gate:
                try:
                    content = await self.render_one(request)
                    await asyncio.to_thread(_write_file, request.destination, content)
                except TemplateError as exc:
                    return BatchError(request.template, request.destination, exc)
                except OSError as exc:
                    return BatchError(
                        request.template,
                        request.destination,
                        TemplateWriteError(str(request.destination), exc),
                    )
            return None

        outcomes = await asyncio.gather(*(_run(r) for r in requests))

        result = BatchRenderResult()
        for error in outcomes:
            if error is None:
                result.succeeded += 1
            else:
                result.failed += 1
                result.errors.append(error)
        result.duration = time.monotonic() - start
        return result

    async def render_many(self, requests: list[RenderRequest]) -> list[RenderOutcome]:
        """Render every request without writing, preserving input order."""
        gate = asyncio.Semaphore(self.max_concurrency)

        async def _run(request: RenderRequest) -> RenderOutcome:
            async with gate:
                try:
                    content = await self.render_one(request)
                except TemplateError as exc:
                    return RenderOutcome(request, error=exc)
            return RenderOutcome(request, content=content)

        return list(await asyncio.gather(*(_run(r) for r in requests)))

    async def render_one(self, request: RenderRequest) -> str:
        """Resolve and render a single request."""
        template_path = await self.resolver.resolve(request.template)
        return await self.engine.render_file(template_path, request.data)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _write_file(path: Path, content: str) -> None:
    """Synchronous helper: create parent dirs and write content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
