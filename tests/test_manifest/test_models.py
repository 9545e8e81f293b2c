"""Tests for the manifest models (manifestgen.manifest.models).

Tests cover:
- ArtifactKind parsing, including unknown tags
- camelCase aliases and defaults on the document model
- Immutability of parsed documents
- TemplateIndex grouping and ordering
- ExecutionSummary helpers
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from manifestgen.manifest.models import (
    DOMAIN_ARTIFACT_ORDER,
    ArtifactKind,
    CollisionPolicy,
    ExecutionSummary,
    ManifestDocument,
    ProjectKind,
    TemplateIndex,
    TemplateMapping,
    UnknownArtifactKind,
)


pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# ArtifactKind
# ---------------------------------------------------------------------------


class TestArtifactKind:
    @pytest.mark.parametrize(
        "tag, expected",
        [
            ("value-object", ArtifactKind.VALUE_OBJECT),
            ("entity", ArtifactKind.ENTITY),
            ("domain-event", ArtifactKind.DOMAIN_EVENT),
            ("repository-interface", ArtifactKind.REPOSITORY_INTERFACE),
            ("enum", ArtifactKind.ENUM),
            ("usecase-command", ArtifactKind.USECASE_COMMAND),
            ("endpoint", ArtifactKind.ENDPOINT),
        ],
    )
    def test_known_tags(self, tag: str, expected: ArtifactKind):
        assert ArtifactKind.parse(tag) is expected
        assert expected.label == tag

    def test_unknown_tag_does_not_fail(self):
        kind = ArtifactKind.parse("saga")
        assert isinstance(kind, UnknownArtifactKind)
        assert kind.raw == "saga"
        assert kind.label == "saga"
        assert str(kind) == "saga"

    def test_unknown_kinds_compare_by_value(self):
        assert ArtifactKind.parse("saga") == UnknownArtifactKind("saga")
        assert hash(ArtifactKind.parse("saga")) == hash(UnknownArtifactKind("saga"))

    def test_domain_order_is_canonical(self):
        assert DOMAIN_ARTIFACT_ORDER == (
            ArtifactKind.VALUE_OBJECT,
            ArtifactKind.ENTITY,
            ArtifactKind.DOMAIN_EVENT,
            ArtifactKind.REPOSITORY_INTERFACE,
            ArtifactKind.ENUM,
        )


# ---------------------------------------------------------------------------
# ManifestDocument
# ---------------------------------------------------------------------------


class TestManifestDocument:
    def test_aliases_are_mapped(self, manifest_document: ManifestDocument):
        assert manifest_document.api_version == "ntk/v1"
        assert manifest_document.conventions.namespace_root == "Acme.Orders"
        assert manifest_document.conventions.target_framework == "net8.0"
        assert manifest_document.solution.sln_file == Path("Orders.sln")
        aggregate = manifest_document.contexts[0].aggregates[0]
        assert aggregate.value_objects[0].name == "OrderId"
        assert aggregate.value_objects[0].fields[0].key is True

    def test_optional_sections_default(self, manifest_document: ManifestDocument):
        assert manifest_document.guards.require_existing_projects is False
        assert manifest_document.guards.on_missing_project is None
        assert manifest_document.projects == {}
        assert manifest_document.render.rules == []
        assert manifest_document.contexts[0].use_cases == []

    def test_policy_defaults_to_fail(self, manifest_data: dict[str, Any]):
        del manifest_data["conventions"]["policy"]
        document = ManifestDocument.model_validate(manifest_data)
        assert document.conventions.policy.collision is CollisionPolicy.FAIL
        assert document.conventions.policy.insert_todo_when_missing is False
        assert document.conventions.policy.strict is False

    def test_project_type_alias(self, manifest_data: dict[str, Any]):
        manifest_data["projects"] = {
            "domain": {"type": "domain", "name": "Acme.Orders.Domain", "path": "src/Domain"},
            "misc": {"name": "Misc", "path": "src/Misc"},
        }
        document = ManifestDocument.model_validate(manifest_data)
        assert document.projects["domain"].kind is ProjectKind.DOMAIN
        assert document.projects["misc"].kind is ProjectKind.UNKNOWN

    def test_project_template_path(self):
        assert ProjectKind.DOMAIN.template_path() == "dotnet/src/domain/domain.csproj"
        assert ProjectKind.API.template_path() is None

    def test_render_rule_as_alias(self, manifest_data: dict[str, Any]):
        manifest_data["render"] = {"rules": [{"expand": "fields", "as": "field"}]}
        document = ManifestDocument.model_validate(manifest_data)
        assert document.render.rules[0].as_ == "field"

    def test_missing_apply_is_rejected(self, manifest_data: dict[str, Any]):
        del manifest_data["apply"]
        with pytest.raises(ValidationError):
            ManifestDocument.model_validate(manifest_data)

    def test_missing_apply_section_still_parses(self, manifest_data: dict[str, Any]):
        manifest_data["apply"] = {"mode": "layer"}
        document = ManifestDocument.model_validate(manifest_data)
        assert document.apply.layer is None

    def test_document_is_frozen(self, manifest_document: ManifestDocument):
        with pytest.raises(ValidationError):
            manifest_document.kind = "solution"


# ---------------------------------------------------------------------------
# TemplateIndex
# ---------------------------------------------------------------------------


class TestTemplateIndex:
    def _mapping(self, artifact: str, template: str) -> TemplateMapping:
        return TemplateMapping(artifact=artifact, template=template, dst="{name}.cs")

    def test_groups_by_kind_in_manifest_order(self):
        index = TemplateIndex.from_mappings([
            self._mapping("entity", "a"),
            self._mapping("value-object", "b"),
            self._mapping("entity", "c"),
        ])
        assert [m.template for m in index.get(ArtifactKind.ENTITY)] == ["a", "c"]
        assert [m.template for m in index.get(ArtifactKind.VALUE_OBJECT)] == ["b"]
        assert len(index) == 2

    def test_unknown_kinds_are_indexed(self):
        index = TemplateIndex.from_mappings([self._mapping("saga", "s")])
        assert UnknownArtifactKind("saga") in index
        assert index.get(UnknownArtifactKind("saga"))[0].template == "s"

    def test_missing_kind_returns_empty(self):
        index = TemplateIndex.from_mappings([])
        assert index.get(ArtifactKind.ENUM) == ()
        assert ArtifactKind.ENUM not in index

    def test_index_is_read_only(self):
        index = TemplateIndex.from_mappings([self._mapping("enum", "e")])
        with pytest.raises(TypeError):
            index._entries[ArtifactKind.ENTITY] = ()

    def test_document_builds_index(self, manifest_document: ManifestDocument):
        index = manifest_document.template_index()
        assert index.kinds() == [ArtifactKind.VALUE_OBJECT]


# ---------------------------------------------------------------------------
# ExecutionSummary
# ---------------------------------------------------------------------------


class TestExecutionSummary:
    def test_empty(self):
        summary = ExecutionSummary()
        assert summary.is_empty()
        assert not summary.has_errors

    def test_notes_make_it_non_empty(self):
        summary = ExecutionSummary(notes=["hello"])
        assert not summary.is_empty()

    def test_errors(self):
        summary = ExecutionSummary(errors=["boom"])
        assert summary.has_errors
