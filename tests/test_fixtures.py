"""Fixture-based schema document validation tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any, cast

import pytest
import yaml
from pydantic import ValidationError

from proto_to_rest_client_generator.document import SchemaDocument, ServiceConfigDoc

from .fixture_helpers import fixture_dir, parametrize_fixtures, service_config_for


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        pytest.fail(f"Failed to parse YAML in {path}: {exc}")
    except OSError as exc:
        pytest.fail(f"Failed to read fixture {path}: {exc}")

    if not isinstance(data, dict):
        pytest.fail(f"Fixture {path} must parse to a mapping, got {type(data)!r}")

    return cast(dict[str, Any], data)


def test_fixture_directory_exists() -> None:
    """Ensure the fixtures directory is present."""
    assert fixture_dir().is_dir(), f"Fixture directory not found: {fixture_dir()}"


@parametrize_fixtures()
def test_fixture_is_valid_schema_document(fixture_path: Path) -> None:
    """Validate each fixture, and its service config if any, against the document models."""
    try:
        SchemaDocument.model_validate(_load_yaml(fixture_path))
    except ValidationError as exc:
        pytest.fail(f"Schema validation failed for {fixture_path}:\n{exc}")

    config_path = service_config_for(fixture_path)
    if config_path is None:
        return
    try:
        ServiceConfigDoc.model_validate(_load_yaml(config_path))
    except ValidationError as exc:
        pytest.fail(f"Service config validation failed for {config_path}:\n{exc}")
