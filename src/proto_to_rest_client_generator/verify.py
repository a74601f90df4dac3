"""Verification of generated packages against the schema they came from."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from pydantic import BaseModel

from .model_types import ClientVerificationItem, VerificationItem
from .module_loading import load_package_from_path, load_submodule, unload_package

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationMismatch:
    """One verification mismatch."""

    subject: str
    class_name: str
    path: str
    expected: Any
    actual: Any


@dataclass(frozen=True)
class VerificationReport:
    """Result of the verification phase."""

    verified_count: int
    mismatch_count: int
    mismatches: tuple[VerificationMismatch, ...]


def verify_package(
    *,
    package_dir: Path,
    items: list[VerificationItem],
    client_items: list[ClientVerificationItem],
) -> VerificationReport:
    """Import a generated package and check its models and clients.

    Every model must produce a valid JSON schema whose properties are exactly
    the JSON names of its message fields. Every client class must expose one
    callable per expected method name. No RPC is called.
    """
    package_name = f"generated_{package_dir.name}_{next(_COUNTER)}"
    load_package_from_path(package_name=package_name, package_dir=package_dir)
    mismatches: list[VerificationMismatch] = []
    try:
        for item in items:
            module = load_submodule(
                package_name=package_name,
                module_name=Path(item.generated_module_path).stem,
            )
            _rebuild_module_models(module=module)
            mismatches.extend(_verify_model(item=item, module=module))
        for client_item in client_items:
            module = load_submodule(
                package_name=package_name,
                module_name=Path(client_item.generated_module_path).stem,
            )
            mismatches.extend(_verify_client(item=client_item, module=module))
    finally:
        unload_package(package_name)

    logger.debug("Verified %d generated item(s)", len(items) + len(client_items))
    return VerificationReport(
        verified_count=len(items) + len(client_items),
        mismatch_count=len(mismatches),
        mismatches=tuple(mismatches),
    )


def format_report(report: VerificationReport) -> str:
    """Render report as CLI output text."""
    lines = [
        f"Verified items: {report.verified_count}",
        f"Mismatches: {report.mismatch_count}",
    ]
    for mismatch in report.mismatches:
        lines.extend(
            [
                f"- {mismatch.subject} ({mismatch.class_name})",
                f"  path: {mismatch.path}",
                f"  expected: {short_repr(mismatch.expected)}",
                f"  actual: {short_repr(mismatch.actual)}",
            ]
        )
    return "\n".join(lines)


def _verify_model(*, item: VerificationItem, module: Any) -> list[VerificationMismatch]:
    model_class = getattr(module, item.class_name, None)
    if not isinstance(model_class, type) or not issubclass(model_class, BaseModel):
        return [
            VerificationMismatch(
                subject=item.full_name,
                class_name=item.class_name,
                path="class",
                expected=item.class_name,
                actual=None,
            )
        ]

    schema = model_class.model_json_schema(by_alias=True)
    try:
        validator_for(schema).check_schema(schema)
    except SchemaError as exc:
        return [
            VerificationMismatch(
                subject=item.full_name,
                class_name=item.class_name,
                path="json_schema",
                expected="valid JSON schema",
                actual=exc.message,
            )
        ]

    properties = schema.get("properties", {})
    expected = set(item.expected_aliases)
    actual = set(properties)
    mismatches: list[VerificationMismatch] = []
    for alias in sorted(expected - actual):
        mismatches.append(
            VerificationMismatch(
                subject=item.full_name,
                class_name=item.class_name,
                path=f"properties.{alias}",
                expected=alias,
                actual=None,
            )
        )
    for alias in sorted(actual - expected):
        mismatches.append(
            VerificationMismatch(
                subject=item.full_name,
                class_name=item.class_name,
                path=f"properties.{alias}",
                expected=None,
                actual=alias,
            )
        )
    return mismatches


def _verify_client(*, item: ClientVerificationItem, module: Any) -> list[VerificationMismatch]:
    client_class = getattr(module, item.class_name, None)
    if not isinstance(client_class, type):
        return [
            VerificationMismatch(
                subject=item.service_name,
                class_name=item.class_name,
                path="class",
                expected=item.class_name,
                actual=None,
            )
        ]
    return [
        VerificationMismatch(
            subject=item.service_name,
            class_name=item.class_name,
            path=f"methods.{name}",
            expected=name,
            actual=None,
        )
        for name in item.method_names
        if not callable(getattr(client_class, name, None))
    ]


def short_repr(value: Any, *, limit: int = 160) -> str:
    """A short representation for mismatch diagnostics."""
    text = repr(value)
    return text if len(text) <= limit else f"{text[: limit - 3]}..."


def _rebuild_module_models(*, module: Any) -> None:
    model_types: list[type[BaseModel]] = []
    for value in module.__dict__.values():
        if not isinstance(value, type):
            continue
        if not issubclass(value, BaseModel):
            continue
        if value.__module__ != module.__name__:
            continue
        model_types.append(value)

    for model_type in model_types:
        model_type.model_rebuild(_types_namespace=module.__dict__)


_COUNTER = itertools.count(1)
