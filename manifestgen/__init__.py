"""manifestgen -- manifest-driven code generation.

A YAML manifest describing bounded contexts, aggregates and use cases is
turned into layered source files by resolving and rendering Jinja2
templates.

Quick usage::

    from manifestgen import execute

    summary = await execute("manifest.yaml", "./out", dry_run=True)
    for note in summary.notes:
        print(note)
"""

from manifestgen.cancellation import CancellationToken
from manifestgen.config import EngineConfig
from manifestgen.executor import ExecutionState, ManifestExecutor, execute
from manifestgen.manifest.models import ExecutionSummary

__version__ = "0.1.0"

__all__ = [
    "CancellationToken",
    "EngineConfig",
    "ExecutionState",
    "ExecutionSummary",
    "ManifestExecutor",
    "execute",
]
