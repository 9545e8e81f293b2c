"""Template reference resolution.

Turns a logical reference such as ``"dotnet/Domain/Entity"`` into a file
under the templates root.  Resolution is read-only: it only checks whether
candidate paths exist.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from .errors import TemplateNotFoundError
from .strategies import LanguageStrategyRegistry, default_registry


TEMPLATE_SUFFIX = ".j2"


class TemplateResolver:
    """Resolves template references relative to a templates root.

    Candidates are tried in order:

    1. the resolver's own path cache,
    2. the reference as given (with and without the ``.j2`` suffix),
    3. the language-normalized reference (with and without ``.j2``),
    4. optionally, a recursive search for a file with the same name.

    Successful lookups are cached; templates are assumed not to move during
    a run.
    """

    def __init__(
        self,
        templates_root: str | Path,
        registry: LanguageStrategyRegistry | None = None,
        *,
        search_fallback: bool = False,
    ) -> None:
        self.templates_root = Path(templates_root)
        self.registry = registry if registry is not None else default_registry()
        self.search_fallback = search_fallback
        self._path_cache: dict[str, Path] = {}

    # -- Public API --------------------------------------------------------

    async def resolve(self, reference: str) -> Path:
        """Return the concrete template path for *reference*.

        Raises:
            TemplateNotFoundError: No candidate exists on disk.
        """
        cached = self._path_cache.get(reference)
        if cached is not None:
            return cached

        found = await asyncio.to_thread(self._lookup, reference)
        if found is None:
            raise TemplateNotFoundError(reference)
        self._path_cache[reference] = found
        return found

    def candidates(self, reference: str) -> list[Path]:
        """Every path :meth:`resolve` checks before any fallback search."""
        relative = reference.replace("\\", "/").strip("/")
        names = [relative]
        normalized = self.registry.normalize(relative)
        if normalized is not None:
            names.append(normalized)

        paths: list[Path] = []
        for name in names:
            paths.append(self.templates_root / name)
            if not name.endswith(TEMPLATE_SUFFIX):
                paths.append(self.templates_root / f"{name}{TEMPLATE_SUFFIX}")
        return paths

    def clear_cache(self) -> None:
        self._path_cache.clear()

    def cache_stats(self) -> dict[str, int]:
        return {"entries": len(self._path_cache)}

    # -- Internal helpers --------------------------------------------------

    def _lookup(self, reference: str) -> Path | None:
        for candidate in self.candidates(reference):
            if candidate.is_file():
                return candidate
        if self.search_fallback:
            return self._search_by_filename(reference)
        return None

    def _search_by_filename(self, reference: str) -> Path | None:
        file_name = Path(reference.replace("\\", "/")).name
        if not file_name or not self.templates_root.is_dir():
            return None
        wanted = {file_name, f"{file_name}{TEMPLATE_SUFFIX}"}
        for path in sorted(self.templates_root.rglob("*")):
            if path.is_file() and path.name in wanted:
                return path
        return None
