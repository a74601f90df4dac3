"""Internal datatypes for generation and verification."""

from __future__ import annotations

import ast
import enum
from dataclasses import dataclass, field
from typing import Optional

from .descriptors import (
    INTEGER_KINDS,
    FieldDescriptor,
    FieldKind,
    MessageDescriptor,
    MethodDescriptor,
    ServiceDescriptor,
)

_INTEGER_MAXIMUMS: dict[str, int] = {
    "int32": 2**31 - 1,
    "sint32": 2**31 - 1,
    "sfixed32": 2**31 - 1,
    "uint32": 2**32 - 1,
    "fixed32": 2**32 - 1,
    "int64": 2**63 - 1,
    "sint64": 2**63 - 1,
    "sfixed64": 2**63 - 1,
    "uint64": 2**64 - 1,
    "fixed64": 2**64 - 1,
}


class CallShape(enum.Enum):
    """Call strategy chosen for a method."""

    LONG_RUNNING_OPERATION = "long_running_operation"
    CUSTOM_POLLING_OPERATION = "custom_polling_operation"
    EMPTY_RESPONSE = "empty_response"
    PAGINATED_LISTING = "paginated_listing"
    CLIENT_STREAMING = "client_streaming"
    SERVER_STREAMING = "server_streaming"
    PLAIN_UNARY = "plain_unary"

    @property
    def is_streaming(self) -> bool:
        return self in (CallShape.CLIENT_STREAMING, CallShape.SERVER_STREAMING)


@dataclass(frozen=True)
class HttpBinding:
    """Normalized HTTP annotation of a method."""

    verb: str
    url: str
    body: str = ""


@dataclass(frozen=True)
class ParameterPartition:
    """Split of the request fields between URL path, body and query string.

    ``path_params`` keeps template order; ``query_params`` is sorted by path.
    """

    path_params: dict[str, FieldDescriptor]
    body_selector: str
    body_field: Optional[FieldDescriptor]
    query_params: dict[str, FieldDescriptor]
    shadowed: tuple[str, ...] = ()


@dataclass(frozen=True)
class PaginationRoles:
    """Request and response fields that drive a paginated listing."""

    page_size: FieldDescriptor
    page_token: FieldDescriptor
    items: FieldDescriptor
    next_page_token: FieldDescriptor

    @property
    def is_map(self) -> bool:
        return self.items.kind is FieldKind.MAP

    @property
    def max_page_size(self) -> int:
        """Largest value the page size field can carry."""
        scalar = self.page_size.scalar or "int32"
        if scalar not in INTEGER_KINDS:
            return _INTEGER_MAXIMUMS["int32"]
        return _INTEGER_MAXIMUMS[scalar]


@dataclass(frozen=True)
class OperationPairing:
    """Custom operation service used to poll a method's returned operation."""

    service: ServiceDescriptor
    polling_method: MethodDescriptor
    operation_message: MessageDescriptor
    name_field: FieldDescriptor
    status_field: Optional[FieldDescriptor] = None
    error_code_field: Optional[FieldDescriptor] = None
    error_message_field: Optional[FieldDescriptor] = None


@dataclass(frozen=True)
class MethodPlan:
    """Everything synthesis needs to know about one method, computed once."""

    service: ServiceDescriptor
    method: MethodDescriptor
    shape: CallShape
    input_message: MessageDescriptor
    output_message: MessageDescriptor
    binding: Optional[HttpBinding] = None
    partition: Optional[ParameterPartition] = None
    pagination: Optional[PaginationRoles] = None
    operation_pairing: Optional[OperationPairing] = None
    lro_poll_method: Optional[MethodDescriptor] = None


@dataclass(frozen=True)
class FieldDef:
    """Represents a single pydantic model field."""

    name: str
    alias: str
    annotation: str
    default: Optional[str]
    default_factory: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class ModelDef:
    """Represents a generated pydantic model class."""

    name: str
    full_name: str
    fields: tuple[FieldDef, ...]
    docstring: Optional[str] = None


@dataclass(frozen=True)
class EnumAliasDef:
    """Represents a generated ``Literal`` alias for an enum."""

    name: str
    full_name: str
    values: tuple[str, ...]


@dataclass(frozen=True)
class MessagesModule:
    """Models and enum aliases rendered into ``messages.py``."""

    models: tuple[ModelDef, ...]
    enum_aliases: tuple[EnumAliasDef, ...]
    runtime_names: tuple[str, ...]


@dataclass(frozen=True)
class MethodOutput:
    """Synthesized client method with the imports it needs."""

    name: str
    rpc_name: str
    shape: CallShape
    function: ast.FunctionDef
    imports: dict[str, set[str]] = field(default_factory=dict)
    message_names: frozenset[str] = frozenset()
    operation_client: Optional[ServiceDescriptor] = None


@dataclass(frozen=True)
class MethodError:
    """A method whose client code could not be generated."""

    method: str
    message: str


@dataclass(frozen=True)
class ClientMethodEntry:
    """Manifest entry describing one generated client method."""

    name: str
    rpc_name: str
    shape: CallShape
    verb: Optional[str]
    url: Optional[str]
    summary: Optional[str] = None


@dataclass(frozen=True)
class ServiceManifest:
    """Documentation payload for one generated service client module."""

    service_name: str
    module_name: str
    class_name: str
    methods: tuple[ClientMethodEntry, ...]


@dataclass(frozen=True)
class VerificationItem:
    """A generated model checked against the schema message it came from."""

    full_name: str
    class_name: str
    expected_aliases: tuple[str, ...]
    generated_module_path: str


@dataclass(frozen=True)
class ClientVerificationItem:
    """A generated client class checked for its expected method names."""

    service_name: str
    class_name: str
    method_names: tuple[str, ...]
    generated_module_path: str


@dataclass(frozen=True)
class GenerationResult:
    """Generation output metadata."""

    output_dir: str
    package_name: str
    services: tuple[ServiceManifest, ...]
    verification_items: tuple[VerificationItem, ...]
    client_verification_items: tuple[ClientVerificationItem, ...]
    errors: tuple[MethodError, ...]
    warnings: tuple[str, ...]
