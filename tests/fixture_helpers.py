"""Shared helpers for fixture-driven tests."""

from __future__ import annotations

import textwrap
from collections.abc import Callable
from pathlib import Path
from typing import Optional, ParamSpec, TypeVar

import pytest
import yaml

from proto_to_rest_client_generator.document import SchemaDocument, ServiceConfigDoc
from proto_to_rest_client_generator.mixins import STANDARD_SURFACE_FILES
from proto_to_rest_client_generator.schema import Schema

_FIXTURE_DIR = Path(__file__).resolve().parent / "fixtures" / "schemas"
_SERVICE_CONFIG_DIR = Path(__file__).resolve().parent / "fixtures" / "service_configs"
_P = ParamSpec("_P")
_R = TypeVar("_R")


def fixture_dir() -> Path:
    """Return the schema fixtures directory."""
    return _FIXTURE_DIR


def fixture_path(name: str) -> Path:
    return _FIXTURE_DIR / f"{name}.yaml"


def iter_fixture_paths() -> list[Path]:
    """Return all YAML fixture paths sorted by name."""
    paths = sorted(_FIXTURE_DIR.glob("*.yaml")) + sorted(_FIXTURE_DIR.glob("*.yml"))
    return [path for path in paths if path.is_file()]


def service_config_for(schema_path: Path) -> Optional[Path]:
    """Return the service config paired with a schema fixture, if there is one."""
    candidate = _SERVICE_CONFIG_DIR / schema_path.name
    return candidate if candidate.is_file() else None


def parametrize_fixtures() -> Callable[[Callable[_P, _R]], Callable[_P, _R]]:
    """Parametrize a test over all fixture paths."""

    def _decorator(func: Callable[_P, _R]) -> Callable[_P, _R]:
        decorator: Callable[[Callable[_P, _R]], Callable[_P, _R]]
        decorator = pytest.mark.parametrize(
            "fixture_path",
            iter_fixture_paths(),
            ids=lambda path: path.name,
        )
        return decorator(func)

    return _decorator


def inline_schema(text: str) -> Schema:
    """Build a schema from an inline YAML document, standard surfaces included."""
    document = SchemaDocument.model_validate(yaml.safe_load(textwrap.dedent(text)))
    return Schema.build(document.files, supplemental_files=tuple(STANDARD_SURFACE_FILES.values()))


def inline_service_config(text: str) -> ServiceConfigDoc:
    return ServiceConfigDoc.model_validate(yaml.safe_load(textwrap.dedent(text)))
