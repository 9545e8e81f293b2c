"""manifestgen configuration.

Typed engine settings shared by the executor and the CLI.  Pydantic v2
validates them at construction time and handles the JSON round-trip;
``from_env`` builds an instance from ``MANIFESTGEN_*`` variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from manifestgen.templating.batch import default_concurrency
from manifestgen.templating.engine import DEFAULT_TODO_COMMENT

_TRUE_VALUES = {"1", "true", "yes", "on"}


class EngineConfig(BaseModel):
    """Settings for one or more manifest executions."""

    max_concurrency: int = Field(
        default_factory=default_concurrency, ge=1, description="Maximum in-flight renders"
    )
    templates_root: Optional[Path] = Field(
        default=None, description="Explicit templates directory; searched near the manifest when unset"
    )
    template_dir_names: list[str] = Field(default=["templates", ".templates"])
    fail_on_task_errors: bool = Field(
        default=False, description="Raise TaskFailuresError when any task fails"
    )
    scaffold_solution: bool = Field(
        default=True, description="Create solution and project stubs when missing"
    )
    search_fallback: bool = Field(
        default=False, description="Search the templates tree by file name as a last resort"
    )
    todo_comment: str = Field(default=DEFAULT_TODO_COMMENT)
    timeout: Optional[float] = Field(
        default=None, gt=0, description="Wall-clock limit for one execution, in seconds"
    )

    # ------------------------------------------------------------------
    # Derived paths
    # ------------------------------------------------------------------

    def template_root_candidates(self, manifest_path: Path) -> list[Path]:
        """Directories searched for templates, in order."""
        if self.templates_root is not None:
            return [self.templates_root]
        manifest_dir = manifest_path.parent
        candidates = [manifest_dir / name for name in self.template_dir_names]
        candidates.append(manifest_dir.parent / "templates")
        return candidates

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file and return its path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "EngineConfig":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build an ``EngineConfig`` from environment variables.

        Recognised variables (all optional):
            MANIFESTGEN_MAX_CONCURRENCY, MANIFESTGEN_TEMPLATES_ROOT,
            MANIFESTGEN_FAIL_ON_TASK_ERRORS, MANIFESTGEN_SCAFFOLD_SOLUTION,
            MANIFESTGEN_SEARCH_FALLBACK, MANIFESTGEN_TIMEOUT.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("MANIFESTGEN_MAX_CONCURRENCY"):
            kwargs["max_concurrency"] = int(os.environ["MANIFESTGEN_MAX_CONCURRENCY"])
        if os.environ.get("MANIFESTGEN_TEMPLATES_ROOT"):
            kwargs["templates_root"] = Path(os.environ["MANIFESTGEN_TEMPLATES_ROOT"])
        if os.environ.get("MANIFESTGEN_FAIL_ON_TASK_ERRORS"):
            kwargs["fail_on_task_errors"] = _env_flag("MANIFESTGEN_FAIL_ON_TASK_ERRORS")
        if os.environ.get("MANIFESTGEN_SCAFFOLD_SOLUTION"):
            kwargs["scaffold_solution"] = _env_flag("MANIFESTGEN_SCAFFOLD_SOLUTION")
        if os.environ.get("MANIFESTGEN_SEARCH_FALLBACK"):
            kwargs["search_fallback"] = _env_flag("MANIFESTGEN_SEARCH_FALLBACK")
        if os.environ.get("MANIFESTGEN_TIMEOUT"):
            kwargs["timeout"] = float(os.environ["MANIFESTGEN_TIMEOUT"])
        return cls(**kwargs)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUE_VALUES
