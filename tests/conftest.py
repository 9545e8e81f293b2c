"""Shared pytest fixtures for the manifestgen test suite.

Provides reusable fixtures for:
- A minimal "Orders" manifest (as a dict, a model and a YAML file)
- A templates directory with one template per artifact kind
- A workspace layout: ``<tmp>/manifest.yaml`` + ``<tmp>/templates`` + ``<tmp>/out``
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml

from manifestgen.manifest.models import ManifestDocument


# ---------------------------------------------------------------------------
# Manifest data
# ---------------------------------------------------------------------------

ORDERS_MANIFEST: dict[str, Any] = {
    "apiVersion": "ntk/v1",
    "kind": "solution",
    "meta": {"name": "OrdersService", "description": "Order management", "author": "Acme"},
    "conventions": {
        "namespaceRoot": "Acme.Orders",
        "targetFramework": "net8.0",
        "policy": {"collision": "fail", "insertTodoWhenMissing": False},
    },
    "solution": {"root": "solution", "slnFile": "Orders.sln"},
    "contexts": [
        {
            "name": "Orders",
            "aggregates": [
                {
                    "name": "Order",
                    "valueObjects": [
                        {
                            "name": "OrderId",
                            "fields": [{"name": "value", "type": "Guid", "key": True}],
                        },
                    ],
                },
            ],
        },
    ],
    "templates": {
        "mapping": [
            {
                "artifact": "value-object",
                "template": "dotnet/Domain/ValueObject",
                "dst": "src/{context}/Domain/ValueObjects/{name}.cs",
            },
        ],
    },
    "apply": {"mode": "artifact", "artifact": {"kind": "value-object", "name": "OrderId"}},
}


# Jinja2 sources keyed by template reference (".j2" is appended on disk).
TEMPLATE_SOURCES: dict[str, str] = {
    "dotnet/src/Domain/ValueObject": (
        "namespace {{ namespace }};\n"
        "\n"
        "public record {{ name }}(\n"
        "{% for field in fields %}"
        "    {{ field.type }} {{ field.name | pascal_case }}{{ ',' if not loop.last }}\n"
        "{% endfor %}"
        ");\n"
    ),
    "dotnet/src/Domain/Entity": "public class {{ name }} {}\n",
    "dotnet/src/Domain/DomainEvent": "public record {{ name }}();\n",
    "dotnet/src/Domain/Repository": (
        "public interface {{ name }}\n{\n"
        "{% for method in methods %}"
        "    {{ method.returns or 'void' }} {{ method.name }}();\n"
        "{% endfor %}"
        "}\n"
    ),
    "dotnet/src/Domain/Enum": (
        "public enum {{ name }} { "
        "{% for v in values %}{{ v.name }} = {{ v.value }}{{ ', ' if not loop.last }}{% endfor %}"
        " }\n"
    ),
    "dotnet/src/Application/UseCase": "public record {{ name }}Command();\n",
    "dotnet/src/Api/Controller": "public class {{ name }} {}\n",
}


@pytest.fixture
def manifest_data() -> dict[str, Any]:
    """A deep copy of the Orders manifest, safe to mutate."""
    return copy.deepcopy(ORDERS_MANIFEST)


@pytest.fixture
def manifest_document(manifest_data: dict[str, Any]) -> ManifestDocument:
    """The Orders manifest as a validated model."""
    return ManifestDocument.model_validate(manifest_data)


@pytest.fixture
def full_manifest_data(manifest_data: dict[str, Any]) -> dict[str, Any]:
    """Orders manifest with every artifact kind present and mapped."""
    aggregate = manifest_data["contexts"][0]["aggregates"][0]
    aggregate["entities"] = [
        {"name": "OrderLine", "fields": [{"name": "quantity", "type": "int"}]},
    ]
    aggregate["domainEvents"] = [
        {"name": "OrderPlaced", "fields": [{"name": "orderId", "type": "Guid"}]},
    ]
    aggregate["repository"] = {
        "name": "IOrderRepository",
        "methods": [
            {"name": "GetById", "args": [{"name": "id", "type": "Guid"}], "returns": "Order"},
        ],
    }
    aggregate["enums"] = [
        {"name": "OrderStatus", "values": [{"name": "Open", "value": 1}, {"name": "Closed", "value": 2}]},
    ]
    manifest_data["contexts"][0]["useCases"] = [
        {
            "name": "PlaceOrder",
            "type": "command",
            "input": [{"name": "customerId", "type": "Guid"}],
            "output": [{"name": "orderId", "type": "Guid"}],
        },
    ]
    manifest_data["templates"]["mapping"].extend([
        {"artifact": "entity", "template": "dotnet/Domain/Entity",
         "dst": "src/{context}/Domain/Entities/{name}.cs"},
        {"artifact": "domain-event", "template": "dotnet/Domain/DomainEvent",
         "dst": "src/{context}/Domain/Events/{name}.cs"},
        {"artifact": "repository-interface", "template": "dotnet/Domain/Repository",
         "dst": "src/{context}/Domain/Repositories/{name}.cs"},
        {"artifact": "enum", "template": "dotnet/Domain/Enum",
         "dst": "src/{context}/Domain/Enums/{name}.cs"},
        {"artifact": "usecase-command", "template": "dotnet/Application/UseCase",
         "dst": "src/{context}/Application/{name}Command.cs"},
        {"artifact": "endpoint", "template": "dotnet/Api/Controller",
         "dst": "src/{context}/Api/{name}.cs"},
    ])
    manifest_data["apply"] = {"mode": "feature", "feature": {"context": "Orders"}}
    return manifest_data


# ---------------------------------------------------------------------------
# Files on disk
# ---------------------------------------------------------------------------

def write_templates(root: Path, sources: dict[str, str] | None = None) -> Path:
    """Write *sources* (default: every template) under *root* as ``.j2`` files."""
    for reference, body in (sources or TEMPLATE_SOURCES).items():
        path = root / f"{reference}.j2"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(body, encoding="utf-8")
    return root


@pytest.fixture
def templates_dir(tmp_path: Path) -> Path:
    """``<tmp>/templates`` populated with every template."""
    return write_templates(tmp_path / "templates")


@pytest.fixture
def write_manifest(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper that dumps a manifest dict to ``<tmp>/<name>``."""

    def _write(data: dict[str, Any], name: str = "manifest.yaml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def output_root(tmp_path: Path) -> Path:
    """Empty output directory ``<tmp>/out``."""
    root = tmp_path / "out"
    root.mkdir()
    return root
