"""Enumeration of the leaf fields reachable from a request message."""

from __future__ import annotations

from collections.abc import Collection

from .descriptors import FieldDescriptor, MessageDescriptor
from .schema import Schema


def collect_leaf_fields(
    schema: Schema,
    message: MessageDescriptor,
    excluded: Collection[FieldDescriptor] = (),
) -> dict[str, FieldDescriptor]:
    """Map dotted field paths to every leaf field whose top ancestor is ``message``.

    A leaf is a non-message field. Singular message fields are descended into;
    repeated message fields (maps included), fields in ``excluded`` and fields
    already on the current path are skipped and contribute no entry.

    For::

        message Mollusc {
          message Squid {
            message Mantle { int32 mass_kg = 1; }
            Mantle mantle = 1;
          }
          Squid squid = 1;
        }

    the single entry is ``"squid.mantle.mass_kg"``.

    Args:
        schema (Schema): Schema used to resolve message field types.
        message (MessageDescriptor): Root message.
        excluded (Collection[FieldDescriptor]): Message fields that must not be
            descended into. Compared by identity.

    Returns:
        dict[str, FieldDescriptor]: Leaf fields keyed by dotted proto name path.
    """
    leaves: dict[str, FieldDescriptor] = {}
    _visit(schema, message, (), excluded, leaves)
    return leaves


def _contains(fields: Collection[FieldDescriptor], target: FieldDescriptor) -> bool:
    return any(candidate is target for candidate in fields)


def _visit(
    schema: Schema,
    message: MessageDescriptor,
    stack: tuple[FieldDescriptor, ...],
    excluded: Collection[FieldDescriptor],
    leaves: dict[str, FieldDescriptor],
) -> None:
    for field in message.fields:
        if not field.is_message:
            path = ".".join([*(parent.name for parent in stack), field.name])
            leaves[path] = field
            continue
        # Repeated messages cannot be mapped onto query parameters.
        if field.is_repeated:
            continue
        if _contains(excluded, field) or _contains(stack, field):
            continue
        _visit(schema, schema.field_message(field), (*stack, field), excluded, leaves)
