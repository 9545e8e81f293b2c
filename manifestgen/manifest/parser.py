"""Manifest loading and structural validation.

``parse_manifest`` reads a YAML manifest, builds a :class:`ManifestDocument`
and rejects unsupported ``apiVersion`` values.  ``validate_manifest`` is a
separate, pure pass over an already-parsed document; it never touches the
file system and never mutates the document.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .errors import (
    ManifestNotFoundError,
    ManifestParseError,
    ManifestReadError,
    ManifestValidationError,
)
from .models import SUPPORTED_API_VERSION, ApplyModeKind, Layer, ManifestDocument


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_manifest(path: str | Path) -> ManifestDocument:
    """Read and parse the manifest at *path*.

    Raises:
        ManifestNotFoundError: The file does not exist.
        ManifestReadError: The file exists but could not be read.
        ManifestParseError: The content is not YAML or does not fit the schema.
        ManifestValidationError: ``apiVersion`` is not supported.
    """
    manifest_path = Path(path)
    if not manifest_path.is_file():
        raise ManifestNotFoundError(manifest_path)
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestReadError(manifest_path, exc) from exc
    return parse_manifest_text(text, source=str(manifest_path))


async def load_manifest(path: str | Path) -> ManifestDocument:
    """Async wrapper around :func:`parse_manifest`; reading runs in a thread."""
    return await asyncio.to_thread(parse_manifest, path)


def parse_manifest_text(text: str, source: str = "<string>") -> ManifestDocument:
    """Parse manifest YAML held in memory."""
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ManifestParseError(f"{source}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ManifestParseError(
            f"{source}: expected a mapping at the top level, got {type(raw).__name__}"
        )

    _check_api_version(raw)

    try:
        document = ManifestDocument.model_validate(raw)
    except ValidationError as exc:
        raise ManifestParseError(f"{source}: {_format_schema_errors(exc)}") from exc

    return document


def _check_api_version(raw: dict[str, Any]) -> None:
    version = raw.get("apiVersion")
    if version is not None and version != SUPPORTED_API_VERSION:
        raise ManifestValidationError(f"unsupported apiVersion: {version}")


def _format_schema_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ())) or "<root>"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_APPLY_SECTIONS: dict[ApplyModeKind, str] = {
    ApplyModeKind.ARTIFACT: "artifact",
    ApplyModeKind.FEATURE: "feature",
    ApplyModeKind.LAYER: "layer",
}


def validate_manifest(document: ManifestDocument) -> None:
    """Check the structural rules a parsed manifest must satisfy.

    Raises:
        ManifestValidationError: The first rule that is broken.
    """
    if document.api_version != SUPPORTED_API_VERSION:
        raise ManifestValidationError(f"unsupported apiVersion: {document.api_version}")

    if not document.meta.name.strip():
        raise ManifestValidationError("meta.name cannot be empty")

    if not document.conventions.namespace_root.strip():
        raise ManifestValidationError("conventions.namespaceRoot cannot be empty")

    apply = document.apply
    section = _APPLY_SECTIONS[apply.mode]
    if getattr(apply, section) is None:
        raise ManifestValidationError(
            f"apply.{section} section is required for {apply.mode.value} mode"
        )

    includes: list[str] = []
    if apply.mode is ApplyModeKind.FEATURE and apply.feature is not None:
        includes = apply.feature.include
    elif apply.mode is ApplyModeKind.LAYER and apply.layer is not None:
        includes = apply.layer.include
    known = {layer.value for layer in Layer}
    for value in includes:
        if value.strip().lower() not in known:
            raise ManifestValidationError(
                f"apply.{section}.include has unknown layer '{value}' "
                f"(expected one of: {', '.join(l.value for l in Layer)})"
            )

    if apply.mode is ApplyModeKind.ARTIFACT and apply.artifact is not None:
        if not apply.artifact.kind.strip():
            raise ManifestValidationError("apply.artifact.kind cannot be empty")
