"""Naming helpers for Python identifiers, JSON names and generated modules."""

from __future__ import annotations

import builtins
import keyword
import re
from collections.abc import Iterable

from pydantic import BaseModel

_IDENTIFIER_SANITIZE_RE = re.compile(r"[^0-9a-zA-Z_]+")
_MULTIPLE_UNDERSCORES_RE = re.compile(r"_+")
_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")

_BASEMODEL_RESERVED = set(dir(BaseModel))
_BUILTIN_IDENTIFIER_RESERVED = {
    "bool",
    "bytes",
    "dict",
    "float",
    "int",
    "list",
    "str",
    "type",
}
_CLIENT_RESERVED = {"close"}


def sanitize_identifier(raw: str, *, lowercase: bool = True) -> str:
    """Convert arbitrary text into a valid Python identifier."""
    text = raw.lower() if lowercase else raw
    text = _IDENTIFIER_SANITIZE_RE.sub("_", text)
    text = _MULTIPLE_UNDERSCORES_RE.sub("_", text).strip("_")
    if not text:
        text = "root"
    if text[0].isdigit():
        text = f"x_{text}"
    if keyword.iskeyword(text):
        text = f"{text}_"
    return text


def snake_case(name: str) -> str:
    """Convert ``CamelCase`` method or service names into ``snake_case``."""
    return sanitize_identifier(_CAMEL_BOUNDARY_RE.sub("_", name))


def lower_camel(name: str) -> str:
    """Return the default JSON name of a proto field (``mass_kg`` -> ``massKg``)."""
    parts = name.split("_")
    head, tail = parts[0], parts[1:]
    return head + "".join(part[:1].upper() + part[1:] for part in tail)


def class_name(raw: str) -> str:
    """Convert a name to a PascalCase class name."""
    clean = sanitize_identifier(raw)
    return "".join(part.capitalize() for part in clean.split("_") if part) or "Model"


def nested_class_name(relative_name: str) -> str:
    """Return the model name for a message relative to its package.

    ``Outer.Inner`` becomes ``Outer_Inner`` so nested names never collide with
    top-level ones.
    """
    parts = [sanitize_identifier(part, lowercase=False) for part in relative_name.split(".")]
    return "_".join(parts)


def field_attribute_names(field_names: Iterable[str]) -> dict[str, str]:
    """Map proto field names to unique attribute names usable on a pydantic model."""
    attributes: dict[str, str] = {}
    used: set[str] = set()
    for name in field_names:
        candidate = sanitize_identifier(name)
        if candidate in _BASEMODEL_RESERVED or candidate in _BUILTIN_IDENTIFIER_RESERVED:
            candidate = f"{candidate}_field"
        if candidate in used:
            suffix = 2
            while f"{candidate}_{suffix}" in used:
                suffix += 1
            candidate = f"{candidate}_{suffix}"
        used.add(candidate)
        attributes[name] = candidate
    return attributes


def method_name(rpc_name: str) -> str:
    """Return the Python method name generated for an RPC."""
    name = snake_case(rpc_name)
    if name in _CLIENT_RESERVED or hasattr(builtins, name) and name.startswith("__"):
        return f"{name}_"
    return name


def client_class_name(service_name: str) -> str:
    """Return the generated REST client class name for a service."""
    return f"{class_name(snake_case(service_name))}RestClient"


def client_module_name(service_name: str) -> str:
    """Return the generated module name holding a service's REST client."""
    return f"{snake_case(service_name)}_rest_client"


def package_name_for(proto_package: str) -> str:
    """Derive a generated Python package name from a proto package."""
    return sanitize_identifier(proto_package.replace(".", "_"))


def operation_client_attribute(service_name: str) -> str:
    """Return the client attribute holding a paired operation service client."""
    return f"_{snake_case(service_name)}_client"
