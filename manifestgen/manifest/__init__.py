"""Manifest model, parser and task generation.

Usage::

    from manifestgen.manifest import parse_manifest, validate_manifest, generate_tasks

    document = parse_manifest("manifest.yaml")
    validate_manifest(document)
    for task in generate_tasks(document):
        print(task.kind, task.template, task.destination)
"""

from manifestgen.manifest.errors import (
    ConcurrentExecutionError,
    ExecutionCancelled,
    GuardError,
    ManifestError,
    ManifestNotFoundError,
    ManifestParseError,
    ManifestReadError,
    ManifestValidationError,
    TaskFailuresError,
)
from manifestgen.manifest.models import (
    SUPPORTED_API_VERSION,
    ArtifactKind,
    CollisionPolicy,
    ExecutionSummary,
    FileChange,
    FileChangeKind,
    ManifestDocument,
    RenderTask,
    TemplateIndex,
    UnknownArtifactKind,
)
from manifestgen.manifest.parser import (
    load_manifest,
    parse_manifest,
    parse_manifest_text,
    validate_manifest,
)
from manifestgen.manifest.tasks import TaskGenerator, generate_tasks

__all__ = [
    "SUPPORTED_API_VERSION",
    "ArtifactKind",
    "CollisionPolicy",
    "ConcurrentExecutionError",
    "ExecutionCancelled",
    "ExecutionSummary",
    "FileChange",
    "FileChangeKind",
    "GuardError",
    "ManifestDocument",
    "ManifestError",
    "ManifestNotFoundError",
    "ManifestParseError",
    "ManifestReadError",
    "ManifestValidationError",
    "RenderTask",
    "TaskFailuresError",
    "TaskGenerator",
    "TemplateIndex",
    "UnknownArtifactKind",
    "generate_tasks",
    "load_manifest",
    "parse_manifest",
    "parse_manifest_text",
    "validate_manifest",
]
