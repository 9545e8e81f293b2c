"""Pydantic v2 models for the generation manifest.

Defines the manifest document hierarchy (meta, conventions, projects,
bounded contexts, template mappings, apply configuration) together with the
ephemeral records produced while executing it: render tasks, file changes
and the execution summary.

Every container is an ordered list; iteration order decides the order of
generated files and must stay stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


SUPPORTED_API_VERSION = "ntk/v1"


class _ManifestModel(BaseModel):
    """Shared config: camelCase aliases, snake_case access, immutable."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ManifestKind(str, Enum):
    """Document kind. Only solutions are supported today."""
    SOLUTION = "solution"


class ProjectKind(str, Enum):
    """Role of a project within the solution."""
    DOMAIN = "domain"
    APPLICATION = "application"
    INFRASTRUCTURE = "infrastructure"
    API = "api"
    WORKER = "worker"
    UNKNOWN = "unknown"

    def template_path(self) -> Optional[str]:
        """Template used to scaffold this kind of project, if any."""
        if self is ProjectKind.DOMAIN:
            return "dotnet/src/domain/domain.csproj"
        return None


class CollisionPolicy(str, Enum):
    """What to do when a planned destination already exists."""
    FAIL = "fail"
    OVERWRITE = "overwrite"


class MissingProjectAction(str, Enum):
    """Guard reaction to a project that is not on disk."""
    FAIL = "fail"
    SKIP = "skip"


class ApplyModeKind(str, Enum):
    """Which apply section drives task generation."""
    ARTIFACT = "artifact"
    FEATURE = "feature"
    LAYER = "layer"


class Layer(str, Enum):
    """Generation layers, in the order tasks are produced."""
    DOMAIN = "domain"
    APPLICATION = "application"
    API = "api"


class ArtifactKind(str, Enum):
    """Closed set of generated artifact categories.

    Tags outside this set parse to :class:`UnknownArtifactKind` instead of
    failing, so manifests written for newer versions still load.
    """
    VALUE_OBJECT = "value-object"
    ENTITY = "entity"
    DOMAIN_EVENT = "domain-event"
    REPOSITORY_INTERFACE = "repository-interface"
    ENUM = "enum"
    USECASE_COMMAND = "usecase-command"
    ENDPOINT = "endpoint"

    @classmethod
    def parse(cls, value: str) -> "AnyArtifactKind":
        """Map a manifest tag to a known kind or an ``UnknownArtifactKind``."""
        try:
            return cls(value)
        except ValueError:
            return UnknownArtifactKind(value)

    @property
    def label(self) -> str:
        return self.value


@dataclass(frozen=True)
class UnknownArtifactKind:
    """An artifact tag this version does not recognise."""

    raw: str

    @property
    def label(self) -> str:
        return self.raw

    def __str__(self) -> str:
        return self.raw


AnyArtifactKind = Union[ArtifactKind, UnknownArtifactKind]

# Order in which domain artifacts of one aggregate are generated.
DOMAIN_ARTIFACT_ORDER: tuple[ArtifactKind, ...] = (
    ArtifactKind.VALUE_OBJECT,
    ArtifactKind.ENTITY,
    ArtifactKind.DOMAIN_EVENT,
    ArtifactKind.REPOSITORY_INTERFACE,
    ArtifactKind.ENUM,
)


# ---------------------------------------------------------------------------
# Domain model
# ---------------------------------------------------------------------------

class ManifestField(_ManifestModel):
    """A typed field of a value object, entity or use case."""
    name: str = Field(..., description="Field name")
    type: str = Field(..., description="Type name in the target language, e.g. 'Guid'")
    key: bool = Field(default=False, description="Whether the field is part of the identity")
    nullable: bool = Field(default=False, description="Whether the field accepts null")
    column_name: Optional[str] = Field(
        default=None, alias="columnName", description="Storage column override"
    )


class ValueObject(_ManifestModel):
    name: str
    fields: list[ManifestField] = Field(default_factory=list)


class Entity(_ManifestModel):
    name: str
    fields: list[ManifestField] = Field(default_factory=list)


class DomainEvent(_ManifestModel):
    name: str
    fields: list[ManifestField] = Field(default_factory=list)


class MethodArgument(_ManifestModel):
    name: str
    type: str


class RepositoryMethod(_ManifestModel):
    name: str
    args: list[MethodArgument] = Field(default_factory=list)
    returns: Optional[str] = None


class Repository(_ManifestModel):
    name: str
    methods: list[RepositoryMethod] = Field(default_factory=list)


class EnumValue(_ManifestModel):
    name: str
    value: int


class ManifestEnum(_ManifestModel):
    name: str
    values: list[EnumValue] = Field(default_factory=list)


class Aggregate(_ManifestModel):
    """A cluster of domain artifacts generated together."""
    name: str = Field(..., description="Aggregate root name")
    value_objects: list[ValueObject] = Field(default_factory=list, alias="valueObjects")
    entities: list[Entity] = Field(default_factory=list)
    domain_events: list[DomainEvent] = Field(default_factory=list, alias="domainEvents")
    repository: Optional[Repository] = None
    enums: list[ManifestEnum] = Field(default_factory=list)


class UseCase(_ManifestModel):
    """An application-layer operation with its input and output fields."""
    name: str = Field(..., description="Use case name, e.g. 'CreateOrder'")
    type: str = Field(default="command", description="Kind tag: 'command', 'query', ...")
    input: list[ManifestField] = Field(default_factory=list)
    output: list[ManifestField] = Field(default_factory=list)


class BoundedContext(_ManifestModel):
    """A named grouping of aggregates and use cases."""
    name: str = Field(..., description="Context name, e.g. 'Orders'")
    aggregates: list[Aggregate] = Field(default_factory=list)
    use_cases: list[UseCase] = Field(default_factory=list, alias="useCases")


# ---------------------------------------------------------------------------
# Solution / conventions
# ---------------------------------------------------------------------------

class ManifestMeta(_ManifestModel):
    name: str
    description: Optional[str] = None
    author: Optional[str] = None


class ManifestPolicy(_ManifestModel):
    collision: CollisionPolicy = Field(default=CollisionPolicy.FAIL)
    insert_todo_when_missing: bool = Field(default=False, alias="insertTodoWhenMissing")
    strict: bool = Field(
        default=False, description="Treat per-task failures as a failed run"
    )


class ManifestConventions(_ManifestModel):
    namespace_root: str = Field(..., alias="namespaceRoot")
    target_framework: str = Field(..., alias="targetFramework")
    policy: ManifestPolicy = Field(default_factory=ManifestPolicy)


class ManifestSolution(_ManifestModel):
    root: Path = Field(..., description="Solution root, relative to the output root")
    sln_file: Path = Field(..., alias="slnFile")


class ManifestGuards(_ManifestModel):
    require_existing_projects: bool = Field(default=False, alias="requireExistingProjects")
    on_missing_project: Optional[MissingProjectAction] = Field(
        default=None, alias="onMissingProject"
    )


class ProjectDefinition(_ManifestModel):
    kind: ProjectKind = Field(default=ProjectKind.UNKNOWN, alias="type")
    name: str
    path: Path


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

class TemplateMapping(_ManifestModel):
    """Binds an artifact tag to a template and a destination pattern."""
    artifact: str = Field(..., description="Artifact tag, e.g. 'value-object'")
    template: str = Field(..., description="Template reference, e.g. 'dotnet/Domain/ValueObject'")
    dst: str = Field(..., description="Destination with {context}/{aggregate}/{name} placeholders")

    @property
    def kind(self) -> AnyArtifactKind:
        return ArtifactKind.parse(self.artifact)


class ManifestTemplates(_ManifestModel):
    mapping: list[TemplateMapping] = Field(default_factory=list)

    def index_by_artifact(self) -> "TemplateIndex":
        return TemplateIndex.from_mappings(self.mapping)


class TemplateIndex:
    """Read-only view of template mappings grouped by artifact kind.

    Mappings keep their manifest order within each kind.
    """

    def __init__(self, entries: dict[AnyArtifactKind, tuple[TemplateMapping, ...]]) -> None:
        self._entries = MappingProxyType(dict(entries))

    @classmethod
    def from_mappings(cls, mappings: Iterable[TemplateMapping]) -> "TemplateIndex":
        grouped: dict[AnyArtifactKind, list[TemplateMapping]] = {}
        for mapping in mappings:
            grouped.setdefault(mapping.kind, []).append(mapping)
        return cls({kind: tuple(items) for kind, items in grouped.items()})

    def get(self, kind: AnyArtifactKind) -> tuple[TemplateMapping, ...]:
        return self._entries.get(kind, ())

    def kinds(self) -> list[AnyArtifactKind]:
        return list(self._entries)

    def __contains__(self, kind: object) -> bool:
        return kind in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class RenderRule(_ManifestModel):
    expand: str
    as_: str = Field(..., alias="as")


class ManifestRender(_ManifestModel):
    rules: list[RenderRule] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Apply configuration
# ---------------------------------------------------------------------------

class ApplyArtifact(_ManifestModel):
    kind: str = Field(..., description="Artifact tag to generate")
    context: Optional[str] = None
    name: Optional[str] = Field(default=None, description="Only generate the artifact with this name")


class ApplyFeature(_ManifestModel):
    context: Optional[str] = None
    include: list[str] = Field(default_factory=list)


class ApplyLayer(_ManifestModel):
    include: list[str] = Field(default_factory=list)


class ApplyConfig(_ManifestModel):
    """Tagged by ``mode``; the matching section is checked by validation."""
    mode: ApplyModeKind
    artifact: Optional[ApplyArtifact] = None
    feature: Optional[ApplyFeature] = None
    layer: Optional[ApplyLayer] = None


# ---------------------------------------------------------------------------
# Document root
# ---------------------------------------------------------------------------

class ManifestDocument(_ManifestModel):
    """A complete manifest as loaded from YAML."""
    api_version: str = Field(..., alias="apiVersion")
    kind: ManifestKind
    meta: ManifestMeta
    conventions: ManifestConventions
    solution: ManifestSolution
    guards: ManifestGuards = Field(default_factory=ManifestGuards)
    projects: dict[str, ProjectDefinition] = Field(default_factory=dict)
    contexts: list[BoundedContext] = Field(default_factory=list)
    templates: ManifestTemplates = Field(default_factory=ManifestTemplates)
    render: ManifestRender = Field(default_factory=ManifestRender)
    apply: ApplyConfig

    def template_index(self) -> TemplateIndex:
        return self.templates.index_by_artifact()


# ---------------------------------------------------------------------------
# Execution records
# ---------------------------------------------------------------------------

@dataclass
class RenderTask:
    """One template to render against one payload into one destination."""

    kind: AnyArtifactKind
    template: str
    destination: Path
    data: dict[str, Any]
    note: Optional[str] = None


class FileChangeKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass
class FileChange:
    path: Path
    content: str
    kind: FileChangeKind
    note: Optional[str] = None


@dataclass
class ExecutionSummary:
    """What one execution created, updated, skipped and noted.

    ``errors`` collects per-task failures (missing templates, render errors,
    failed writes); they never abort the run on their own.
    """

    created: list[Path] = field(default_factory=list)
    updated: list[Path] = field(default_factory=list)
    skipped: list[tuple[Path, str]] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def is_empty(self) -> bool:
        return not (self.created or self.updated or self.skipped or self.notes)
