"""Schema and service config loading and validation."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .document import FileDoc, SchemaDocument, ServiceConfigDoc
from .errors import SchemaLookupError
from .schema import Schema

logger = logging.getLogger(__name__)


class SchemaLoadError(RuntimeError):
    """Raised when a schema or service config document cannot be loaded."""


def load_yaml_mapping(path: Path, *, kind: str) -> dict[str, Any]:
    """Read a YAML file that must contain a mapping at its root."""
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle)
    except OSError as exc:
        raise SchemaLoadError(f"Failed to read {kind} file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise SchemaLoadError(f"Failed to parse YAML in {path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise SchemaLoadError(
            f"{kind.capitalize()} document must deserialize to a mapping, "
            f"got {type(payload)!r}"
        )
    return payload


def load_schema_document(path: Path) -> SchemaDocument:
    """Load and validate an API schema document from YAML."""
    payload = load_yaml_mapping(path, kind="schema")
    try:
        document = SchemaDocument.model_validate(payload)
    except ValidationError as exc:
        raise SchemaLoadError(f"Schema validation failed for {path}: {exc}") from exc
    logger.debug("Loaded %d schema file(s) from %s", len(document.files), path)
    return document


def load_service_config(path: Path) -> ServiceConfigDoc:
    """Load and validate an API service config from YAML."""
    payload = load_yaml_mapping(path, kind="service config")
    try:
        config = ServiceConfigDoc.model_validate(payload)
    except ValidationError as exc:
        raise SchemaLoadError(f"Service config validation failed for {path}: {exc}") from exc
    logger.debug("Loaded service config %s listing %d API(s)", config.name, len(config.apis))
    return config


def build_schema(
    document: SchemaDocument,
    *,
    supplemental_files: Sequence[FileDoc] = (),
) -> Schema:
    """Resolve a validated document into a :class:`Schema`.

    Args:
        document (SchemaDocument): The validated schema document.
        supplemental_files (Sequence[FileDoc]): Extra definitions (standard
            surfaces) merged in when the document does not declare them itself.

    Returns:
        Schema: The resolved schema.

    Raises:
        SchemaLoadError: A type name cannot be resolved or is declared twice.
    """
    try:
        return Schema.build(document.files, supplemental_files=supplemental_files)
    except SchemaLookupError as exc:
        raise SchemaLoadError(f"Schema resolution failed: {exc}") from exc


def load_schema(path: Path, *, supplemental_files: Sequence[FileDoc] = ()) -> Schema:
    """Load, validate and resolve the schema document at ``path``."""
    return build_schema(load_schema_document(path), supplemental_files=supplemental_files)
