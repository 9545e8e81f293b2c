"""Language strategies for template path conventions.

Each target language knows where its source and test files conventionally
live.  Template references look like ``"<language>/<relative/path>"``; when
the relative part does not already start with a conventional directory, the
strategy inserts the language's source directory right after the language
segment::

    dotnet/Domain/Entity      -> dotnet/src/Domain/Entity
    java/Domain/Entity        -> java/src/main/java/Domain/Entity
    dotnet/src/Domain/Entity  -> (already normalized, no rewrite)

New languages are added by registering another ``LanguageStrategy`` with a
``LanguageStrategyRegistry``; callers never branch on the language.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field


# ---------------------------------------------------------------------------
# Conventions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LanguageConventions:
    """Directory conventions for one language."""

    source_dirs: tuple[str, ...]
    test_dirs: tuple[str, ...]
    skip_normalization: tuple[str, ...] = field(default_factory=tuple)

    def conventional_segments(self) -> frozenset[str]:
        """Segments that mark a path as already normalized."""
        segments = set(self.skip_normalization)
        if self.source_dirs:
            segments.add(self.source_dirs[0])
        if self.test_dirs:
            segments.add(self.test_dirs[0])
        return frozenset(segments)


# ---------------------------------------------------------------------------
# Strategy base
# ---------------------------------------------------------------------------


class LanguageStrategy:
    """Path-normalization policy for a single target language.

    Subclasses only declare data: ``language_id``, ``aliases``,
    ``file_extension`` and ``conventions``.
    """

    language_id: str = ""
    aliases: tuple[str, ...] = ()
    file_extension: str = ""
    conventions: LanguageConventions = LanguageConventions((), ())

    def identifiers(self) -> tuple[str, ...]:
        """Canonical identifier followed by every recognised alias."""
        return (self.language_id, *self.aliases)

    def is_normalized(self, path_parts: Sequence[str]) -> bool:
        """Return ``True`` when the second segment is a conventional directory."""
        if len(path_parts) <= 1:
            return False
        return path_parts[1] in self.conventions.conventional_segments()

    def normalize_path(self, path_parts: Sequence[str]) -> str | None:
        """Insert the source directory after the language segment.

        Returns ``None`` when the path is already normalized (or empty), so
        applying the rewrite to its own output is always a no-op.
        """
        if not path_parts or self.is_normalized(path_parts):
            return None
        normalized = [path_parts[0], *self.conventions.source_dirs, *path_parts[1:]]
        return "/".join(normalized)

    def template_patterns(self) -> list[str]:
        """Glob patterns matching this language's templates."""
        return [
            f"*.{self.file_extension}.j2",
            f"**/*.{self.file_extension}.j2",
        ]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.language_id!r})"


# ---------------------------------------------------------------------------
# Built-in strategies
# ---------------------------------------------------------------------------


class DotNetStrategy(LanguageStrategy):
    language_id = "dotnet"
    aliases = ("csharp", "c#", "cs")
    file_extension = "cs"
    conventions = LanguageConventions(
        source_dirs=("src",),
        test_dirs=("tests",),
        skip_normalization=("src", "tests", "test"),
    )


class JavaStrategy(LanguageStrategy):
    language_id = "java"
    file_extension = "java"
    conventions = LanguageConventions(
        source_dirs=("src", "main", "java"),
        test_dirs=("src", "test", "java"),
        skip_normalization=("src", "test", "tests"),
    )


class GoStrategy(LanguageStrategy):
    language_id = "go"
    aliases = ("golang",)
    file_extension = "go"
    conventions = LanguageConventions(
        source_dirs=("pkg",),
        test_dirs=("internal",),
        skip_normalization=("pkg", "internal", "cmd"),
    )


class PythonStrategy(LanguageStrategy):
    language_id = "python"
    aliases = ("py",)
    file_extension = "py"
    conventions = LanguageConventions(
        source_dirs=("src",),
        test_dirs=("tests",),
        skip_normalization=("src", "tests", "test"),
    )


class RustStrategy(LanguageStrategy):
    language_id = "rust"
    aliases = ("rs",)
    file_extension = "rs"
    conventions = LanguageConventions(
        source_dirs=("src",),
        test_dirs=("tests",),
        skip_normalization=("src", "tests", "benches", "examples"),
    )


class ClojureStrategy(LanguageStrategy):
    language_id = "clojure"
    aliases = ("clj",)
    file_extension = "clj"
    conventions = LanguageConventions(
        source_dirs=("src",),
        test_dirs=("test",),
        skip_normalization=("src", "test", "dev"),
    )


BUILTIN_STRATEGIES: tuple[type[LanguageStrategy], ...] = (
    DotNetStrategy,
    JavaStrategy,
    GoStrategy,
    PythonStrategy,
    RustStrategy,
    ClojureStrategy,
)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class LanguageStrategyRegistry:
    """Maps language identifiers and aliases to strategies.

    Lookups are case-insensitive dictionary hits.
    """

    def __init__(self, strategies: Iterable[LanguageStrategy] | None = None) -> None:
        self._by_name: dict[str, LanguageStrategy] = {}
        self._strategies: dict[str, LanguageStrategy] = {}
        if strategies is None:
            strategies = (cls() for cls in BUILTIN_STRATEGIES)
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: LanguageStrategy) -> None:
        """Add *strategy*, replacing any strategy that claimed the same names."""
        if not strategy.language_id:
            raise ValueError(f"{strategy!r} has no language_id")
        self._strategies[strategy.language_id] = strategy
        for name in strategy.identifiers():
            self._by_name[name.lower()] = strategy

    def get(self, name: str) -> LanguageStrategy | None:
        """Return the strategy registered under *name* or one of its aliases."""
        return self._by_name.get(name.strip().lower())

    def detect_from_path(self, path: str) -> LanguageStrategy | None:
        """Pick a strategy from the first segment of a template reference."""
        first_segment = path.replace("\\", "/").split("/", 1)[0]
        if not first_segment:
            return None
        return self.get(first_segment)

    def normalize(self, path: str) -> str | None:
        """Normalize a full reference string, or ``None`` if no rewrite applies."""
        strategy = self.detect_from_path(path)
        if strategy is None:
            return None
        return strategy.normalize_path(path.replace("\\", "/").split("/"))

    def supported_languages(self) -> list[str]:
        """Canonical identifiers of every registered language, sorted."""
        return sorted(self._strategies)

    def is_supported(self, name: str) -> bool:
        return self.get(name) is not None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.is_supported(name)

    def __len__(self) -> int:
        return len(self._strategies)


def default_registry() -> LanguageStrategyRegistry:
    """A fresh registry holding every built-in strategy."""
    return LanguageStrategyRegistry()
