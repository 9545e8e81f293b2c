"""Error types for manifest loading, validation and execution."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ExecutionSummary


class ManifestError(Exception):
    """Base class for manifest failures."""


class ManifestNotFoundError(ManifestError):
    """Raised when the manifest file does not exist."""

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        super().__init__(f"manifest not found: {self.path}")


class ManifestReadError(ManifestError):
    """Raised when the manifest file exists but cannot be read or decoded."""

    def __init__(self, path: str | Path, cause: OSError | UnicodeDecodeError) -> None:
        self.path = str(path)
        self.cause = cause
        super().__init__(f"failed to read manifest from {self.path}: {cause}")


class ManifestParseError(ManifestError):
    """Raised when the manifest is not valid YAML or does not fit the schema."""

    def __init__(self, message: str) -> None:
        super().__init__(f"failed to parse manifest: {message}")


class ManifestValidationError(ManifestError):
    """Raised when a parsed manifest breaks a structural rule."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"manifest validation failed: {message}")


class GuardError(ManifestError):
    """Raised when a guard requires a project or solution that is missing."""

    def __init__(self, path: str | Path, what: str = "project") -> None:
        self.path = Path(path)
        self.what = what
        super().__init__(f"{what} missing: {self.path}")


class ExecutionCancelled(ManifestError):
    """Raised when an execution is cancelled or times out.

    Writes that completed before the cancellation point are kept.
    """

    def __init__(self, message: str = "execution was cancelled") -> None:
        super().__init__(message)


class ConcurrentExecutionError(ManifestError):
    """Raised when two executions in one process target overlapping roots."""

    def __init__(self, output_root: str | Path, active_root: str | Path) -> None:
        self.output_root = Path(output_root)
        self.active_root = Path(active_root)
        super().__init__(
            f"output root {self.output_root} overlaps {self.active_root}, "
            "which another execution is writing to"
        )


class TaskFailuresError(ManifestError):
    """Raised after apply when task failures are configured to be fatal.

    ``summary`` holds everything that was created, updated and skipped.
    """

    def __init__(self, summary: "ExecutionSummary") -> None:
        self.summary = summary
        count = len(summary.errors)
        super().__init__(f"{count} task(s) failed during execution")
