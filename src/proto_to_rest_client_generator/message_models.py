"""Conversion of schema messages and enums into pydantic model definitions."""

from __future__ import annotations

from collections import Counter, deque
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from . import runtime
from .descriptors import (
    EnumDescriptor,
    FieldDescriptor,
    FieldKind,
    MessageDescriptor,
    MethodDescriptor,
)
from .errors import SchemaLookupError
from .model_types import EnumAliasDef, FieldDef, MessagesModule, ModelDef, VerificationItem
from .naming import nested_class_name
from .schema import WELL_KNOWN_TYPES, Schema

_SCALAR_ANNOTATIONS: dict[str, str] = {
    "double": "float",
    "float": "float",
    "int32": "int",
    "int64": "int",
    "uint32": "int",
    "uint64": "int",
    "sint32": "int",
    "sint64": "int",
    "fixed32": "int",
    "fixed64": "int",
    "sfixed32": "int",
    "sfixed64": "int",
    "bool": "bool",
    "string": "str",
    "bytes": "bytes",
}

_SCALAR_DEFAULTS: dict[str, str] = {
    "double": "0.0",
    "float": "0.0",
    "bool": "False",
    "string": "''",
    "bytes": "b''",
}

# Names generated modules import or define themselves.
_MODULE_RESERVED = {
    "DEFAULT_ENDPOINT",
    "Field",
    "Iterable",
    "Iterator",
    "Literal",
    "Optional",
    "Sequence",
    "annotations",
    "httpx",
    "threading",
    *runtime.__all__,
}


@dataclass(frozen=True)
class TypeNames:
    """Python names of the messages and enums visible to generated modules."""

    names: dict[str, str]

    def of(self, full_name: str) -> str:
        """Return the Python name for a message or enum FQN."""
        key = full_name.lstrip(".")
        if key in WELL_KNOWN_TYPES:
            return WELL_KNOWN_TYPES[key]
        try:
            return self.names[key]
        except KeyError as exc:
            raise SchemaLookupError(f"No generated model for {full_name!r}") from exc

    @staticmethod
    def is_runtime(full_name: str) -> bool:
        """Whether the type is provided by the runtime library instead of generated."""
        return full_name.lstrip(".") in WELL_KNOWN_TYPES


def select_types(schema: Schema, methods: Iterable[MethodDescriptor]) -> list[str]:
    """Return the message and enum FQNs to generate, in declaration order.

    Everything the primary files declare is included, plus every type
    reachable from the given methods (standard surface messages).
    Well-known types are never generated.
    """
    pending: deque[str] = deque()
    pending.extend(
        message.full_name for message in schema.messages() if schema.is_primary(message.full_name)
    )
    pending.extend(enum.full_name for enum in schema.enums() if schema.is_primary(enum.full_name))
    for method in methods:
        pending.extend((method.input_type, method.output_type))
        if method.operation_info is not None:
            pending.append(method.operation_info.response_type)
            if method.operation_info.metadata_type:
                pending.append(method.operation_info.metadata_type)

    seen: set[str] = set()
    while pending:
        full_name = pending.popleft()
        if full_name in seen or full_name in WELL_KNOWN_TYPES:
            continue
        seen.add(full_name)
        message = schema.find_message(full_name)
        if message is None:
            continue
        for field in message.fields:
            if field.type_name is not None:
                pending.append(field.type_name)
            if field.map_value_type is not None:
                pending.append(field.map_value_type)

    ordered = [message.full_name for message in schema.messages() if message.full_name in seen]
    ordered.extend(enum.full_name for enum in schema.enums() if enum.full_name in seen)
    return ordered


def assign_type_names(schema: Schema, full_names: Iterable[str]) -> TypeNames:
    """Give every selected message and enum a unique Python name."""
    full_names = list(full_names)
    short: dict[str, str] = {}
    for full_name in full_names:
        package = schema.file_of(full_name).package
        relative = full_name[len(package) + 1 :] if package else full_name
        short[full_name] = nested_class_name(relative)

    counts = Counter(short.values())
    reserved = _MODULE_RESERVED | set(WELL_KNOWN_TYPES.values())
    names: dict[str, str] = {}
    used: set[str] = set()
    for full_name in full_names:
        candidate = short[full_name]
        if counts[candidate] > 1 or candidate in reserved:
            candidate = nested_class_name(full_name)
        base = candidate
        suffix = 2
        while candidate in used:
            candidate = f"{base}_{suffix}"
            suffix += 1
        used.add(candidate)
        names[full_name] = candidate
    return TypeNames(names=names)


def build_messages_module(
    schema: Schema,
    methods: Iterable[MethodDescriptor],
) -> tuple[MessagesModule, TypeNames]:
    """Build model and enum alias definitions for ``messages.py``.

    Args:
        schema (Schema): Resolved schema.
        methods (Iterable[MethodDescriptor]): Every method a generated client
            exposes, standard surface methods included.

    Returns:
        tuple[MessagesModule, TypeNames]: Module definition and the name map
        client modules use to refer to its classes.
    """
    methods = list(methods)
    selected = select_types(schema, methods)
    type_names = assign_type_names(schema, selected)

    models: list[ModelDef] = []
    enum_aliases: list[EnumAliasDef] = []
    for full_name in selected:
        message = schema.find_message(full_name)
        if message is not None:
            models.append(_message_to_model(message, type_names, schema))
            continue
        enum = schema.enum(full_name)
        enum_aliases.append(_enum_to_alias(enum, type_names))

    runtime_names = _referenced_runtime_names(schema, selected)
    module = MessagesModule(
        models=tuple(models),
        enum_aliases=tuple(enum_aliases),
        runtime_names=runtime_names,
    )
    return module, type_names


def verification_items(
    schema: Schema,
    module: MessagesModule,
    *,
    module_path: str,
) -> tuple[VerificationItem, ...]:
    """Describe the JSON names each generated model must expose."""
    items: list[VerificationItem] = []
    for model in module.models:
        message = schema.message(model.full_name)
        items.append(
            VerificationItem(
                full_name=model.full_name,
                class_name=model.name,
                expected_aliases=tuple(field.json_name for field in message.fields),
                generated_module_path=module_path,
            )
        )
    return tuple(items)


def _enum_to_alias(enum: EnumDescriptor, type_names: TypeNames) -> EnumAliasDef:
    return EnumAliasDef(
        name=type_names.of(enum.full_name),
        full_name=enum.full_name,
        values=enum.values,
    )


def _message_to_model(
    message: MessageDescriptor, type_names: TypeNames, schema: Schema
) -> ModelDef:
    return ModelDef(
        name=type_names.of(message.full_name),
        full_name=message.full_name,
        fields=tuple(_field_to_def(field, type_names, schema) for field in message.fields),
        docstring=message.comment,
    )


def _element_annotation(
    kind: FieldKind,
    scalar: Optional[str],
    type_name: Optional[str],
    type_names: TypeNames,
) -> str:
    if kind is FieldKind.SCALAR:
        if scalar is None:
            raise ValueError("Scalar field without a scalar kind")
        return _SCALAR_ANNOTATIONS[scalar]
    if type_name is None:
        raise ValueError(f"{kind.name} field without a type name")
    return type_names.of(type_name)


def _map_annotations(field: FieldDescriptor, type_names: TypeNames) -> tuple[str, str]:
    if field.map_key is None or field.map_value_kind is None:
        raise ValueError(f"Map field {field.owner}.{field.name} has no key or value kind")
    value = _element_annotation(
        field.map_value_kind, field.map_value_scalar, field.map_value_type, type_names
    )
    return _SCALAR_ANNOTATIONS[field.map_key], value


def field_annotation(field: FieldDescriptor, type_names: TypeNames) -> str:
    """Return the Python annotation of a field as source text."""
    if field.kind is FieldKind.MAP:
        key, value = _map_annotations(field, type_names)
        return f"dict[{key}, {value}]"
    element = _element_annotation(field.kind, field.scalar, field.type_name, type_names)
    if field.repeated:
        return f"list[{element}]"
    if field.kind is FieldKind.MESSAGE or field.optional:
        return f"Optional[{element}]"
    return element


def zero_value_code(field: FieldDescriptor, schema: Schema) -> str:
    """Return source text for the zero value of a singular non-message field."""
    if field.kind is FieldKind.ENUM:
        zero = schema.field_enum(field).zero_value
        return repr(zero) if zero is not None else "''"
    if field.kind is FieldKind.SCALAR:
        return _SCALAR_DEFAULTS.get(field.scalar or "", "0")
    return "None"


def _field_to_def(field: FieldDescriptor, type_names: TypeNames, schema: Schema) -> FieldDef:
    default: Optional[str]
    default_factory: Optional[str] = None
    if field.kind is FieldKind.MAP:
        default, default_factory = None, "dict"
    elif field.repeated:
        default, default_factory = None, "list"
    elif field.kind is FieldKind.MESSAGE or field.optional:
        default = "None"
    else:
        default = zero_value_code(field, schema)
    return FieldDef(
        name=field.py_name,
        alias=field.json_name,
        annotation=field_annotation(field, type_names),
        default=default,
        default_factory=default_factory,
        description=field.comment,
    )


def _referenced_runtime_names(schema: Schema, selected: list[str]) -> tuple[str, ...]:
    referenced: set[str] = set()
    for full_name in selected:
        message = schema.find_message(full_name)
        if message is None:
            continue
        for field in message.fields:
            for type_name in (field.type_name, field.map_value_type):
                if type_name is not None and TypeNames.is_runtime(type_name):
                    referenced.add(WELL_KNOWN_TYPES[type_name])
    return tuple(sorted(referenced))


def item_annotation(field: FieldDescriptor, type_names: TypeNames) -> str:
    """Return the annotation of one element of a repeated or map field."""
    if field.kind is FieldKind.MAP:
        key, value = _map_annotations(field, type_names)
        return f"tuple[{key}, {value}]"
    return _element_annotation(field.kind, field.scalar, field.type_name, type_names)
