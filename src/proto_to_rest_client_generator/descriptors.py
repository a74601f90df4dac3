"""Resolved, read-only schema descriptors.

Descriptors compare by identity: two fields with identical attributes that
belong to different messages are different fields.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

SCALAR_KINDS: frozenset[str] = frozenset(
    {
        "double",
        "float",
        "int32",
        "int64",
        "uint32",
        "uint64",
        "sint32",
        "sint64",
        "fixed32",
        "fixed64",
        "sfixed32",
        "sfixed64",
        "bool",
        "string",
        "bytes",
    }
)

INTEGER_KINDS: frozenset[str] = frozenset(
    kind for kind in SCALAR_KINDS if "int" in kind or "fixed" in kind
)


class FieldKind(enum.Enum):
    """Declared type category of a field."""

    SCALAR = "scalar"
    ENUM = "enum"
    MESSAGE = "message"
    MAP = "map"


@dataclass(frozen=True, eq=False)
class FieldDescriptor:
    """A message field with its resolved type."""

    name: str
    json_name: str
    py_name: str
    number: int
    owner: str
    kind: FieldKind
    scalar: Optional[str] = None
    type_name: Optional[str] = None
    repeated: bool = False
    optional: bool = False
    required: bool = False
    map_key: Optional[str] = None
    map_value_kind: Optional[FieldKind] = None
    map_value_scalar: Optional[str] = None
    map_value_type: Optional[str] = None
    comment: Optional[str] = None
    operation_field: Optional[str] = None
    operation_request_field: Optional[str] = None
    operation_response_field: Optional[str] = None

    @property
    def is_message(self) -> bool:
        """Whether the field refers to another message (maps included)."""
        return self.kind in (FieldKind.MESSAGE, FieldKind.MAP)

    @property
    def is_bytes(self) -> bool:
        return self.kind is FieldKind.SCALAR and self.scalar == "bytes"

    @property
    def is_repeated(self) -> bool:
        """Maps behave like repeated entry messages."""
        return self.repeated or self.kind is FieldKind.MAP


@dataclass(frozen=True, eq=False)
class EnumDescriptor:
    full_name: str
    name: str
    package: str
    values: tuple[str, ...]
    comment: Optional[str] = None

    @property
    def zero_value(self) -> Optional[str]:
        return self.values[0] if self.values else None


@dataclass(frozen=True, eq=False)
class MessageDescriptor:
    full_name: str
    name: str
    package: str
    fields: tuple[FieldDescriptor, ...]
    comment: Optional[str] = None

    def field(self, name: str) -> Optional[FieldDescriptor]:
        """Return the field named ``name`` declared directly on this message."""
        for candidate in self.fields:
            if candidate.name == name:
                return candidate
        return None


@dataclass(frozen=True)
class HttpRule:
    """HTTP annotation as declared, before normalization."""

    verb: str
    url: str
    body: str = ""


@dataclass(frozen=True)
class OperationInfo:
    response_type: str
    metadata_type: Optional[str] = None


@dataclass(frozen=True)
class PaginationOverride:
    """Explicit pagination role field names declared on a method."""

    page_size: str
    page_token: str
    next_page_token: str
    items: Optional[str] = None


@dataclass(frozen=True, eq=False)
class MethodDescriptor:
    name: str
    full_name: str
    service_name: str
    input_type: str
    output_type: str
    client_streaming: bool = False
    server_streaming: bool = False
    http: Optional[HttpRule] = None
    operation_info: Optional[OperationInfo] = None
    operation_service: Optional[str] = None
    operation_polling_method: bool = False
    pagination: Optional[PaginationOverride] = None
    pagination_disabled: bool = False
    comment: Optional[str] = None
    mixin_api: Optional[str] = None


@dataclass(frozen=True, eq=False)
class ServiceDescriptor:
    full_name: str
    name: str
    package: str
    methods: tuple[MethodDescriptor, ...]
    default_host: Optional[str] = None
    comment: Optional[str] = None
    is_mixin: bool = False
