"""Unit tests for schema and service config loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from proto_to_rest_client_generator.descriptors import FieldKind
from proto_to_rest_client_generator.loader import (
    SchemaLoadError,
    load_schema,
    load_service_config,
)

from .fixture_helpers import fixture_path, service_config_for


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "schema.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_fixture_schema_resolves_nested_and_qualified_types() -> None:
    schema = load_schema(fixture_path("mollusca"))

    squid = schema.message("animalia.mollusca.v1.Squid")
    mantle = squid.field("mantle")
    assert mantle is not None
    assert mantle.type_name == "animalia.mollusca.v1.Squid.Mantle"
    colors = schema.message("animalia.mollusca.v1.ClassifyRequest").field("colors")
    assert colors is not None
    assert colors.kind is FieldKind.ENUM
    assert colors.type_name == "animalia.mollusca.v1.Squid.Color"

    delete = schema.service("animalia.mollusca.v1.MolluscaService").methods[2]
    assert delete.output_type == "google.protobuf.Empty"


def test_json_names_and_field_numbers_default_from_declaration() -> None:
    schema = load_schema(fixture_path("mollusca"))
    squid = schema.message("animalia.mollusca.v1.Squid")

    assert [field.json_name for field in squid.fields[:2]] == ["name", "lengthM"]
    assert [field.number for field in squid.fields[:3]] == [1, 2, 3]
    labels = squid.field("labels")
    assert labels is not None
    assert labels.kind is FieldKind.MAP
    assert labels.is_repeated


def test_non_mapping_document_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(SchemaLoadError, match="must deserialize to a mapping"):
        load_schema(_write(tmp_path, "- just\n- a list\n"))


def test_invalid_yaml_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(SchemaLoadError, match="Failed to parse YAML"):
        load_schema(_write(tmp_path, "files: [unclosed\n"))


def test_missing_file_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(SchemaLoadError, match="Failed to read schema file"):
        load_schema(tmp_path / "absent.yaml")


def test_field_with_type_and_map_fails_validation(tmp_path: Path) -> None:
    text = """
files:
  - package: zoo
    messages:
      - name: Squid
        fields:
          - {name: labels, type: string, map: {key: string, value: string}}
"""
    with pytest.raises(SchemaLoadError, match="Schema validation failed"):
        load_schema(_write(tmp_path, text))


def test_http_rule_needs_exactly_one_verb(tmp_path: Path) -> None:
    text = """
files:
  - package: zoo
    messages:
      - name: Squid
    services:
      - name: Aquarium
        methods:
          - name: GetSquid
            input: Squid
            output: Squid
            http: {get: "/v1/squids", post: "/v1/squids"}
"""
    with pytest.raises(SchemaLoadError, match="exactly one verb"):
        load_schema(_write(tmp_path, text))


@pytest.mark.parametrize(
    ("fields", "message"),
    [
        ("- {name: tank, type: Tank}", "Unknown type 'Tank'"),
        ("- {name: by_weight, map: {key: double, value: string}}", "invalid key type 'double'"),
    ],
)
def test_unresolvable_schema_is_rejected(tmp_path: Path, fields: str, message: str) -> None:
    text = f"""
files:
  - package: zoo
    messages:
      - name: Squid
        fields:
          {fields}
"""
    with pytest.raises(SchemaLoadError, match=message):
        load_schema(_write(tmp_path, text))


def test_duplicate_declaration_is_rejected(tmp_path: Path) -> None:
    text = """
files:
  - package: zoo
    messages:
      - name: Squid
  - package: zoo
    messages:
      - name: Squid
"""
    with pytest.raises(SchemaLoadError, match="declared more than once"):
        load_schema(_write(tmp_path, text))


def test_service_config_ignores_unknown_sections() -> None:
    config = load_service_config(service_config_for(fixture_path("mollusca")))

    assert config.name == "mollusca.example.com"
    assert [api.name for api in config.apis][0] == "animalia.mollusca.v1.MolluscaService"
    assert len(config.http.rules) == 5


def test_type_names_resolve_innermost_scope_first() -> None:
    schema = load_schema(fixture_path("mollusca"))

    assert (
        schema.resolve_type_name("Mantle", "animalia.mollusca.v1.Squid")
        == "animalia.mollusca.v1.Squid.Mantle"
    )
    assert (
        schema.resolve_type_name("Squid.Color", "animalia.mollusca.v1.ClassifyRequest")
        == "animalia.mollusca.v1.Squid.Color"
    )
    assert schema.resolve_type_name(".google.rpc.Status", "animalia") == "google.rpc.Status"
