"""Render-task generation.

Walks a validated manifest and its template index and produces the ordered
list of :class:`RenderTask` objects to render.  Order follows the manifest:
contexts, then aggregates, then domain artifact kinds in
``DOMAIN_ARTIFACT_ORDER``, then application and API tasks.  Each artifact
yields one task per template mapping registered for its kind; an artifact
kind with no mapping yields nothing.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .errors import ManifestValidationError
from .models import (
    DOMAIN_ARTIFACT_ORDER,
    Aggregate,
    AnyArtifactKind,
    ApplyModeKind,
    ArtifactKind,
    BoundedContext,
    Layer,
    ManifestConventions,
    ManifestDocument,
    ManifestField,
    RenderTask,
    TemplateIndex,
    TemplateMapping,
    UseCase,
)


_PLACEHOLDER_RE = re.compile(r"\{([A-Za-z0-9_]+)\}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def substitute_placeholders(pattern: str, values: dict[str, str]) -> str:
    """Replace ``{key}`` tokens in *pattern*; unknown tokens stay verbatim."""
    return _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), pattern)


def select_contexts(
    contexts: Sequence[BoundedContext], name: Optional[str]
) -> list[BoundedContext]:
    """All contexts, or those whose name matches *name* case-insensitively."""
    if name is None:
        return list(contexts)
    target = name.strip().lower()
    return [ctx for ctx in contexts if ctx.name.lower() == target]


def resolve_layers(include: Sequence[str]) -> list[Layer]:
    """Layers named in *include*, in generation order; empty means all."""
    if not include:
        return list(Layer)
    wanted = {value.strip().lower() for value in include}
    return [layer for layer in Layer if layer.value in wanted]


def _field_payload(field: ManifestField) -> dict[str, Any]:
    return {
        "name": field.name,
        "type": field.type,
        "nullable": field.nullable,
        "key": field.key,
        "columnName": field.column_name or field.name,
    }


# ---------------------------------------------------------------------------
# Artifact enumeration
# ---------------------------------------------------------------------------

@dataclass
class _Artifact:
    """A manifest element that can be rendered, before mapping expansion."""

    kind: ArtifactKind
    context: BoundedContext
    name: str
    data: dict[str, Any]
    note: str
    aggregate: Optional[Aggregate] = None
    match_names: tuple[str, ...] = ()


def _aggregate_artifacts(
    context: BoundedContext,
    aggregate: Aggregate,
    kind: ArtifactKind,
    conventions: ManifestConventions,
) -> Iterator[_Artifact]:
    ns = conventions.namespace_root
    base = {"contextName": context.name, "aggregateName": aggregate.name}

    if kind is ArtifactKind.VALUE_OBJECT:
        for vo in aggregate.value_objects:
            yield _Artifact(kind, context, vo.name, {
                **base,
                "namespace": f"{ns}.Domain.ValueObjects",
                "name": vo.name,
                "fields": [_field_payload(f) for f in vo.fields],
            }, f"ValueObject: {vo.name}", aggregate)

    elif kind is ArtifactKind.ENTITY:
        for entity in aggregate.entities:
            yield _Artifact(kind, context, entity.name, {
                **base,
                "namespace": f"{ns}.Domain.Entities",
                "name": entity.name,
                "fields": [_field_payload(f) for f in entity.fields],
            }, f"Entity: {entity.name}", aggregate)

    elif kind is ArtifactKind.DOMAIN_EVENT:
        for event in aggregate.domain_events:
            yield _Artifact(kind, context, event.name, {
                **base,
                "namespace": f"{ns}.Domain.Events",
                "name": event.name,
                "fields": [_field_payload(f) for f in event.fields],
            }, f"DomainEvent: {event.name}", aggregate)

    elif kind is ArtifactKind.REPOSITORY_INTERFACE:
        repository = aggregate.repository
        if repository is not None:
            yield _Artifact(kind, context, repository.name, {
                **base,
                "namespace": f"{ns}.Domain.Repositories",
                "name": repository.name,
                "methods": [
                    {
                        "name": method.name,
                        "returns": method.returns,
                        "args": [{"name": a.name, "type": a.type} for a in method.args],
                    }
                    for method in repository.methods
                ],
            }, f"Repository: {repository.name}", aggregate)

    elif kind is ArtifactKind.ENUM:
        for enum_def in aggregate.enums:
            yield _Artifact(kind, context, enum_def.name, {
                **base,
                "namespace": f"{ns}.Domain.Enums",
                "name": enum_def.name,
                "values": [{"name": v.name, "value": v.value} for v in enum_def.values],
            }, f"Enum: {enum_def.name}", aggregate)


def _use_case_artifact(
    context: BoundedContext,
    use_case: UseCase,
    kind: ArtifactKind,
    conventions: ManifestConventions,
) -> _Artifact:
    ns = conventions.namespace_root
    payload = {
        "contextName": context.name,
        "useCaseName": use_case.name,
        "type": use_case.type,
        "input": [_field_payload(f) for f in use_case.input],
        "output": [_field_payload(f) for f in use_case.output],
    }
    if kind is ArtifactKind.ENDPOINT:
        controller = f"{use_case.name}Controller"
        payload.update(namespace=f"{ns}.Api.Controllers", name=controller)
        return _Artifact(
            kind, context, controller, payload, f"Controller: {controller}",
            match_names=(use_case.name, controller),
        )
    payload.update(namespace=f"{ns}.Application.UseCases", name=use_case.name)
    return _Artifact(kind, context, use_case.name, payload, f"UseCase: {use_case.name}")


def _artifacts_of_kind(
    contexts: Sequence[BoundedContext],
    kind: ArtifactKind,
    conventions: ManifestConventions,
) -> Iterator[_Artifact]:
    for context in contexts:
        if kind in (ArtifactKind.USECASE_COMMAND, ArtifactKind.ENDPOINT):
            for use_case in context.use_cases:
                yield _use_case_artifact(context, use_case, kind, conventions)
        else:
            for aggregate in context.aggregates:
                yield from _aggregate_artifacts(context, aggregate, kind, conventions)


def _expand(
    tasks: list[RenderTask],
    artifact: _Artifact,
    mappings: Sequence[TemplateMapping],
) -> None:
    values = {"context": artifact.context.name, "name": artifact.name}
    if artifact.aggregate is not None:
        values["aggregate"] = artifact.aggregate.name
    for mapping in mappings:
        tasks.append(RenderTask(
            kind=artifact.kind,
            template=mapping.template,
            destination=Path(substitute_placeholders(mapping.dst, values)),
            data=copy.deepcopy(artifact.data),
            note=artifact.note,
        ))


# ---------------------------------------------------------------------------
# Layer generators
# ---------------------------------------------------------------------------

def append_domain_tasks(
    tasks: list[RenderTask],
    contexts: Sequence[BoundedContext],
    conventions: ManifestConventions,
    index: TemplateIndex,
) -> None:
    """Value objects, entities, events, repositories and enums per aggregate."""
    for context in contexts:
        for aggregate in context.aggregates:
            for kind in DOMAIN_ARTIFACT_ORDER:
                mappings = index.get(kind)
                if not mappings:
                    continue
                for artifact in _aggregate_artifacts(context, aggregate, kind, conventions):
                    _expand(tasks, artifact, mappings)


def append_application_tasks(
    tasks: list[RenderTask],
    contexts: Sequence[BoundedContext],
    conventions: ManifestConventions,
    index: TemplateIndex,
) -> None:
    """One use-case command per use case."""
    mappings = index.get(ArtifactKind.USECASE_COMMAND)
    if not mappings:
        return
    for artifact in _artifacts_of_kind(contexts, ArtifactKind.USECASE_COMMAND, conventions):
        _expand(tasks, artifact, mappings)


def append_api_tasks(
    tasks: list[RenderTask],
    contexts: Sequence[BoundedContext],
    conventions: ManifestConventions,
    index: TemplateIndex,
) -> None:
    """One controller endpoint wrapping each use case."""
    mappings = index.get(ArtifactKind.ENDPOINT)
    if not mappings:
        return
    for artifact in _artifacts_of_kind(contexts, ArtifactKind.ENDPOINT, conventions):
        _expand(tasks, artifact, mappings)


def append_artifact_tasks(
    tasks: list[RenderTask],
    contexts: Sequence[BoundedContext],
    conventions: ManifestConventions,
    kind: AnyArtifactKind,
    name: Optional[str],
    mappings: Sequence[TemplateMapping],
) -> None:
    """Tasks for every artifact of *kind*, or only the one called *name*."""
    if not isinstance(kind, ArtifactKind):
        raise ManifestValidationError(f"artifact mode not supported for kind '{kind.label}'")
    target = name.strip().lower() if name else None
    for artifact in _artifacts_of_kind(contexts, kind, conventions):
        if target is not None:
            candidates = artifact.match_names or (artifact.name,)
            if not any(c.lower() == target for c in candidates):
                continue
        _expand(tasks, artifact, mappings)


_LAYER_GENERATORS = {
    Layer.DOMAIN: append_domain_tasks,
    Layer.APPLICATION: append_application_tasks,
    Layer.API: append_api_tasks,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

class TaskGenerator:
    """Turns a manifest into render tasks according to ``apply.mode``."""

    def __init__(self, manifest: ManifestDocument, index: TemplateIndex | None = None) -> None:
        self.manifest = manifest
        self.index = index if index is not None else manifest.template_index()

    def generate(self) -> list[RenderTask]:
        """Build the ordered task list.

        Raises:
            ManifestValidationError: The apply section is missing, a context
                filter matches nothing, or an artifact kind has no mapping.
        """
        apply = self.manifest.apply
        conventions = self.manifest.conventions
        tasks: list[RenderTask] = []

        if apply.mode is ApplyModeKind.ARTIFACT:
            if apply.artifact is None:
                raise ManifestValidationError("apply.artifact section missing")
            kind = ArtifactKind.parse(apply.artifact.kind)
            mappings = self.index.get(kind)
            if not mappings:
                raise ManifestValidationError(
                    f"no template mapping found for artifact '{kind.label}'"
                )
            contexts = self._contexts(apply.artifact.context, "artifact")
            append_artifact_tasks(
                tasks, contexts, conventions, kind, apply.artifact.name, mappings
            )

        elif apply.mode is ApplyModeKind.FEATURE:
            if apply.feature is None:
                raise ManifestValidationError("apply.feature section missing")
            contexts = self._contexts(apply.feature.context, "feature")
            for layer in resolve_layers(apply.feature.include):
                _LAYER_GENERATORS[layer](tasks, contexts, conventions, self.index)

        elif apply.mode is ApplyModeKind.LAYER:
            if apply.layer is None:
                raise ManifestValidationError("apply.layer section missing")
            contexts = list(self.manifest.contexts)
            for layer in resolve_layers(apply.layer.include):
                _LAYER_GENERATORS[layer](tasks, contexts, conventions, self.index)

        return tasks

    def _contexts(self, name: Optional[str], mode: str) -> list[BoundedContext]:
        contexts = select_contexts(self.manifest.contexts, name)
        if name is not None and not contexts:
            raise ManifestValidationError(
                f"no context named '{name}' found for {mode} apply mode"
            )
        return contexts


def generate_tasks(manifest: ManifestDocument) -> list[RenderTask]:
    """Shortcut for ``TaskGenerator(manifest).generate()``."""
    return TaskGenerator(manifest).generate()
