"""Typed, read-only view over a loaded API schema."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Optional, Union

from .descriptors import (
    SCALAR_KINDS,
    EnumDescriptor,
    FieldDescriptor,
    FieldKind,
    HttpRule,
    MessageDescriptor,
    MethodDescriptor,
    OperationInfo,
    PaginationOverride,
    ServiceDescriptor,
)
from .document import EnumDoc, FieldDoc, FileDoc, MessageDoc, MethodDoc, PaginationDoc, ServiceDoc
from .errors import SchemaLookupError
from .naming import field_attribute_names, lower_camel

EMPTY_TYPE = "google.protobuf.Empty"
ANY_TYPE = "google.protobuf.Any"
STATUS_TYPE = "google.rpc.Status"
OPERATION_TYPE = "google.longrunning.Operation"
HTTP_BODY_TYPE = "google.api.HttpBody"

WELL_KNOWN_TYPES: dict[str, str] = {
    EMPTY_TYPE: "Empty",
    ANY_TYPE: "AnyMessage",
    STATUS_TYPE: "Status",
    OPERATION_TYPE: "Operation",
    HTTP_BODY_TYPE: "HttpBody",
}

WELL_KNOWN_FILES: tuple[FileDoc, ...] = (
    FileDoc.model_validate(
        {
            "package": "google.protobuf",
            "messages": [
                {"name": "Empty"},
                {
                    "name": "Any",
                    "fields": [
                        {"name": "type_url", "type": "string"},
                        {"name": "value", "type": "bytes"},
                    ],
                },
            ],
        }
    ),
    FileDoc.model_validate(
        {
            "package": "google.rpc",
            "messages": [
                {
                    "name": "Status",
                    "fields": [
                        {"name": "code", "type": "int32"},
                        {"name": "message", "type": "string"},
                        {"name": "details", "type": ".google.protobuf.Any", "repeated": True},
                    ],
                }
            ],
        }
    ),
    FileDoc.model_validate(
        {
            "package": "google.longrunning",
            "messages": [
                {
                    "name": "Operation",
                    "fields": [
                        {"name": "name", "type": "string"},
                        {"name": "metadata", "type": ".google.protobuf.Any"},
                        {"name": "done", "type": "bool"},
                        {"name": "error", "type": ".google.rpc.Status", "number": 4},
                        {"name": "response", "type": ".google.protobuf.Any", "number": 5},
                    ],
                }
            ],
        }
    ),
    FileDoc.model_validate(
        {
            "package": "google.api",
            "messages": [
                {
                    "name": "HttpBody",
                    "fields": [
                        {"name": "content_type", "type": "string"},
                        {"name": "data", "type": "bytes"},
                        {"name": "extensions", "type": ".google.protobuf.Any", "repeated": True},
                    ],
                }
            ],
        }
    ),
)

_MAP_KEY_KINDS = frozenset(
    kind for kind in SCALAR_KINDS if kind not in {"double", "float", "bytes"}
)


@dataclass(frozen=True)
class _Declared:
    kind: FieldKind
    package: str
    doc: Union[MessageDoc, EnumDoc]
    file: FileDoc
    supplemental: bool = False


def _join(*parts: str) -> str:
    return ".".join(part for part in parts if part)


class Schema:
    """Immutable lookup surface over every message, enum and service of an API.

    Use :meth:`build` to construct one from schema files. Supplemental files
    (well-known types, standard surfaces) only contribute definitions the
    primary files do not already declare, and their services are marked as
    mixins.
    """

    def __init__(
        self,
        *,
        messages: dict[str, MessageDescriptor],
        enums: dict[str, EnumDescriptor],
        services: dict[str, ServiceDescriptor],
        files: dict[str, FileDoc],
        supplemental: frozenset[str] = frozenset(),
    ) -> None:
        self._messages = messages
        self._enums = enums
        self._services = services
        self._files = files
        self._supplemental = supplemental

    @classmethod
    def build(
        cls,
        files: Sequence[FileDoc],
        *,
        supplemental_files: Sequence[FileDoc] = (),
    ) -> Schema:
        """Resolve every type reference and build descriptors.

        Raises:
            SchemaLookupError: A type reference cannot be resolved, a map key
                is not a valid key kind, or a name is declared twice.
        """
        builder = _SchemaBuilder()
        for file_doc in files:
            builder.declare_file(file_doc, supplemental=False)
        for file_doc in (*supplemental_files, *WELL_KNOWN_FILES):
            builder.declare_file(file_doc, supplemental=True)
        return builder.finish()

    def find_message(self, full_name: str) -> Optional[MessageDescriptor]:
        return self._messages.get(full_name.lstrip("."))

    def message(self, full_name: str) -> MessageDescriptor:
        """Return the message named ``full_name``."""
        found = self.find_message(full_name)
        if found is None:
            raise SchemaLookupError(f"Unknown message {full_name!r}")
        return found

    def enum(self, full_name: str) -> EnumDescriptor:
        """Return the enum named ``full_name``."""
        found = self._enums.get(full_name.lstrip("."))
        if found is None:
            raise SchemaLookupError(f"Unknown enum {full_name!r}")
        return found

    def find_service(self, full_name: str) -> Optional[ServiceDescriptor]:
        return self._services.get(full_name.lstrip("."))

    def service(self, full_name: str) -> ServiceDescriptor:
        """Return the service named ``full_name``."""
        found = self.find_service(full_name)
        if found is None:
            raise SchemaLookupError(f"Unknown service {full_name!r}")
        return found

    def services(self) -> tuple[ServiceDescriptor, ...]:
        """Return the services declared by the primary files, in document order."""
        return tuple(service for service in self._services.values() if not service.is_mixin)

    def messages(self) -> tuple[MessageDescriptor, ...]:
        return tuple(self._messages.values())

    def enums(self) -> tuple[EnumDescriptor, ...]:
        return tuple(self._enums.values())

    def file_of(self, full_name: str) -> FileDoc:
        """Return the file that declares the message, enum or service ``full_name``."""
        found = self._files.get(full_name.lstrip("."))
        if found is None:
            raise SchemaLookupError(f"Unknown schema element {full_name!r}")
        return found

    def is_primary(self, full_name: str) -> bool:
        """Whether ``full_name`` is declared by the primary files rather than supplied."""
        return full_name.lstrip(".") not in self._supplemental

    def field_message(self, field: FieldDescriptor) -> MessageDescriptor:
        """Return the message type of a singular or repeated message field."""
        if field.kind is not FieldKind.MESSAGE or field.type_name is None:
            raise SchemaLookupError(f"Field {field.owner}.{field.name} is not a message field")
        return self.message(field.type_name)

    def field_enum(self, field: FieldDescriptor) -> EnumDescriptor:
        if field.kind is not FieldKind.ENUM or field.type_name is None:
            raise SchemaLookupError(f"Field {field.owner}.{field.name} is not an enum field")
        return self.enum(field.type_name)

    def iter_path(self, message: MessageDescriptor, dotted_path: str) -> Iterator[FieldDescriptor]:
        """Yield the field descriptors traversed by ``dotted_path``."""
        current: Optional[MessageDescriptor] = message
        segments = dotted_path.split(".")
        for index, segment in enumerate(segments):
            if current is None:
                raise SchemaLookupError(
                    f"Path {dotted_path!r} descends into non-message field "
                    f"{segments[index - 1]!r} of {message.full_name}"
                )
            field = current.field(segment)
            if field is None:
                raise SchemaLookupError(
                    f"Message {current.full_name} has no field {segment!r} (path {dotted_path!r})"
                )
            yield field
            current = self.field_message(field) if field.kind is FieldKind.MESSAGE else None

    def lookup_field(self, message: MessageDescriptor, dotted_path: str) -> FieldDescriptor:
        """Return the field reached by following ``dotted_path`` from ``message``."""
        *_, last = self.iter_path(message, dotted_path)
        return last

    def resolve_type_name(self, name: str, scope: str) -> str:
        """Resolve a type reference the way protoc does, innermost scope first."""
        return _resolve(name, scope, set(self._messages) | set(self._enums))


def _resolve(name: str, scope: str, known: set[str]) -> str:
    if name.startswith("."):
        candidate = name[1:]
        if candidate in known:
            return candidate
        raise SchemaLookupError(f"Unknown type {name!r}")
    parts = scope.split(".") if scope else []
    while True:
        candidate = _join(".".join(parts), name)
        if candidate in known:
            return candidate
        if not parts:
            break
        parts.pop()
    raise SchemaLookupError(f"Unknown type {name!r} referenced from {scope or '<root>'}")


class _SchemaBuilder:
    def __init__(self) -> None:
        self._declared: dict[str, _Declared] = {}
        self._service_docs: dict[str, tuple[ServiceDoc, FileDoc, bool]] = {}

    def declare_file(self, file_doc: FileDoc, *, supplemental: bool) -> None:
        for message_doc in file_doc.messages:
            self._declare_message(message_doc, file_doc.package, file_doc, supplemental)
        for enum_doc in file_doc.enums:
            full_name = _join(file_doc.package, enum_doc.name)
            self._declare(full_name, FieldKind.ENUM, enum_doc, file_doc, supplemental)
        for service_doc in file_doc.services:
            full_name = _join(file_doc.package, service_doc.name)
            if full_name in self._service_docs:
                if supplemental:
                    continue
                raise SchemaLookupError(f"Service {full_name!r} is declared more than once")
            self._service_docs[full_name] = (service_doc, file_doc, supplemental)

    def _declare_message(
        self, message_doc: MessageDoc, scope: str, file_doc: FileDoc, supplemental: bool
    ) -> None:
        full_name = _join(scope, message_doc.name)
        if not self._declare(full_name, FieldKind.MESSAGE, message_doc, file_doc, supplemental):
            return
        for nested in message_doc.messages:
            self._declare_message(nested, full_name, file_doc, supplemental)
        for enum_doc in message_doc.enums:
            enum_name = _join(full_name, enum_doc.name)
            self._declare(enum_name, FieldKind.ENUM, enum_doc, file_doc, supplemental)

    def _declare(
        self,
        full_name: str,
        kind: FieldKind,
        doc: Union[MessageDoc, EnumDoc],
        file_doc: FileDoc,
        supplemental: bool,
    ) -> bool:
        if full_name in self._declared:
            if supplemental:
                return False
            raise SchemaLookupError(f"Type {full_name!r} is declared more than once")
        self._declared[full_name] = _Declared(
            kind=kind,
            package=file_doc.package,
            doc=doc,
            file=file_doc,
            supplemental=supplemental,
        )
        return True

    def finish(self) -> Schema:
        known = set(self._declared)
        messages: dict[str, MessageDescriptor] = {}
        enums: dict[str, EnumDescriptor] = {}
        files: dict[str, FileDoc] = {}
        for full_name, declared in self._declared.items():
            files[full_name] = declared.file
            if isinstance(declared.doc, EnumDoc):
                enums[full_name] = _build_enum(full_name, declared.package, declared.doc)
            else:
                messages[full_name] = _build_message(
                    full_name, declared.package, declared.doc, known, self._declared
                )

        services: dict[str, ServiceDescriptor] = {}
        service_names = set(self._service_docs)
        for full_name, (service_doc, file_doc, supplemental) in self._service_docs.items():
            files[full_name] = file_doc
            services[full_name] = _build_service(
                full_name,
                file_doc.package,
                service_doc,
                known,
                service_names,
                is_mixin=supplemental,
            )
        supplemental = frozenset(
            name for name, declared in self._declared.items() if declared.supplemental
        )
        return Schema(
            messages=messages,
            enums=enums,
            services=services,
            files=files,
            supplemental=supplemental,
        )


def _build_enum(full_name: str, package: str, doc: EnumDoc) -> EnumDescriptor:
    return EnumDescriptor(
        full_name=full_name,
        name=doc.name,
        package=package,
        values=tuple(doc.values),
        comment=doc.comment,
    )


def _type_kind(full_name: str, declared: dict[str, _Declared]) -> FieldKind:
    return declared[full_name].kind


def _build_message(
    full_name: str,
    package: str,
    doc: MessageDoc,
    known: set[str],
    declared: dict[str, _Declared],
) -> MessageDescriptor:
    py_names = field_attribute_names(field_doc.name for field_doc in doc.fields)
    fields = tuple(
        _build_field(field_doc, index, full_name, py_names[field_doc.name], known, declared)
        for index, field_doc in enumerate(doc.fields)
    )
    return MessageDescriptor(
        full_name=full_name,
        name=doc.name,
        package=package,
        fields=fields,
        comment=doc.comment,
    )


def _build_field(
    doc: FieldDoc,
    index: int,
    owner: str,
    py_name: str,
    known: set[str],
    declared: dict[str, _Declared],
) -> FieldDescriptor:
    common = {
        "name": doc.name,
        "json_name": doc.json_name or lower_camel(doc.name),
        "py_name": py_name,
        "number": doc.number if doc.number is not None else index + 1,
        "owner": owner,
        "repeated": doc.repeated,
        "optional": doc.optional,
        "required": doc.required,
        "comment": doc.comment,
        "operation_field": doc.operation_field,
        "operation_request_field": doc.operation_request_field,
        "operation_response_field": doc.operation_response_field,
    }
    if doc.map is not None:
        if doc.map.key not in _MAP_KEY_KINDS:
            raise SchemaLookupError(
                f"Map field {owner}.{doc.name} has invalid key type {doc.map.key!r}"
            )
        if doc.map.value in SCALAR_KINDS:
            return FieldDescriptor(
                kind=FieldKind.MAP,
                map_key=doc.map.key,
                map_value_kind=FieldKind.SCALAR,
                map_value_scalar=doc.map.value,
                **common,
            )
        value_type = _resolve(doc.map.value, owner, known)
        return FieldDescriptor(
            kind=FieldKind.MAP,
            map_key=doc.map.key,
            map_value_kind=_type_kind(value_type, declared),
            map_value_type=value_type,
            **common,
        )

    if doc.type is None:
        raise SchemaLookupError(f"Field {owner}.{doc.name} has neither a type nor a map")
    if doc.type in SCALAR_KINDS:
        return FieldDescriptor(kind=FieldKind.SCALAR, scalar=doc.type, **common)
    type_name = _resolve(doc.type, owner, known)
    return FieldDescriptor(kind=_type_kind(type_name, declared), type_name=type_name, **common)


def _build_pagination(
    value: Union[PaginationDoc, bool, None],
) -> tuple[Optional[PaginationOverride], bool]:
    if value is False:
        return None, True
    if value is None:
        return None, False
    doc = PaginationDoc() if value is True else value
    return (
        PaginationOverride(
            page_size=doc.page_size,
            page_token=doc.page_token,
            next_page_token=doc.next_page_token,
            items=doc.items,
        ),
        False,
    )


def _resolve_service_name(name: str, package: str, service_names: set[str]) -> str:
    if name.startswith("."):
        return name[1:]
    qualified = _join(package, name)
    if qualified in service_names or name not in service_names:
        return qualified
    return name


def _build_method(
    doc: MethodDoc,
    service_full_name: str,
    package: str,
    known: set[str],
    service_names: set[str],
) -> MethodDescriptor:
    http = None
    if doc.http is not None:
        verb, url = doc.http.verb_and_url()
        http = HttpRule(verb=verb, url=url, body=doc.http.body)
    operation_info = None
    if doc.operation_info is not None:
        operation_info = OperationInfo(
            response_type=_resolve(doc.operation_info.response_type, package, known),
            metadata_type=(
                _resolve(doc.operation_info.metadata_type, package, known)
                if doc.operation_info.metadata_type
                else None
            ),
        )
    pagination, pagination_disabled = _build_pagination(doc.pagination)
    return MethodDescriptor(
        name=doc.name,
        full_name=_join(service_full_name, doc.name),
        service_name=service_full_name,
        input_type=_resolve(doc.input, package, known),
        output_type=_resolve(doc.output, package, known),
        client_streaming=doc.client_streaming,
        server_streaming=doc.server_streaming,
        http=http,
        operation_info=operation_info,
        operation_service=(
            _resolve_service_name(doc.operation_service, package, service_names)
            if doc.operation_service
            else None
        ),
        operation_polling_method=doc.operation_polling_method,
        pagination=pagination,
        pagination_disabled=pagination_disabled,
        comment=doc.comment,
    )


def _build_service(
    full_name: str,
    package: str,
    doc: ServiceDoc,
    known: set[str],
    service_names: set[str],
    *,
    is_mixin: bool,
) -> ServiceDescriptor:
    return ServiceDescriptor(
        full_name=full_name,
        name=doc.name,
        package=package,
        methods=tuple(
            _build_method(method, full_name, package, known, service_names)
            for method in doc.methods
        ),
        default_host=doc.default_host,
        comment=doc.comment,
        is_mixin=is_mixin,
    )
