"""Classification of request fields into path, body and query parameters."""

from __future__ import annotations

import logging
from typing import Optional

from .descriptors import FieldDescriptor, MessageDescriptor, MethodDescriptor
from .errors import GenerationError, SchemaLookupError
from .http_binding import placeholders
from .leaves import collect_leaf_fields
from .model_types import HttpBinding, ParameterPartition
from .schema import Schema

logger = logging.getLogger(__name__)


def path_params(
    schema: Schema,
    method: MethodDescriptor,
    binding: HttpBinding,
) -> dict[str, FieldDescriptor]:
    """Return the leaf fields bound to URL placeholders, in template order.

    Raises:
        GenerationError: A placeholder does not name a leaf field of the
            request message.
    """
    request = schema.message(method.input_type)
    leaves = collect_leaf_fields(schema, request)
    params: dict[str, FieldDescriptor] = {}
    for path in placeholders(binding.url):
        leaf = leaves.get(path)
        if leaf is None:
            raise GenerationError(
                f"{method.full_name}: URL placeholder {{{path}}} in {binding.url!r} "
                f"does not name a leaf field of {request.full_name}"
            )
        params[path] = leaf
    return params


def body_field(
    schema: Schema,
    method: MethodDescriptor,
    binding: HttpBinding,
) -> Optional[FieldDescriptor]:
    """Return the field named by a non-wildcard body selector."""
    if binding.body in ("", "*"):
        return None
    request = schema.message(method.input_type)
    try:
        return schema.lookup_field(request, binding.body)
    except SchemaLookupError as exc:
        raise GenerationError(
            f"{method.full_name}: body selector {binding.body!r} does not name a field "
            f"of {request.full_name}"
        ) from exc


def query_params(
    schema: Schema,
    method: MethodDescriptor,
    binding: HttpBinding,
) -> dict[str, FieldDescriptor]:
    """Return the query parameters of ``method`` sorted by dotted path."""
    query, _ = _classify_query(schema, method, binding)
    return query


def partition_parameters(
    schema: Schema,
    method: MethodDescriptor,
    binding: HttpBinding,
) -> ParameterPartition:
    """Split the request fields of ``method`` into path, body and query parts.

    Returns:
        ParameterPartition: Path parameters in template order, the body
        selector and field, query parameters sorted by path, and the leaf
        paths dropped because a top-level field shares their simple name.
    """
    query, shadowed = _classify_query(schema, method, binding)
    return ParameterPartition(
        path_params=path_params(schema, method, binding),
        body_selector=binding.body,
        body_field=body_field(schema, method, binding),
        query_params=query,
        shadowed=shadowed,
    )


def _classify_query(
    schema: Schema,
    method: MethodDescriptor,
    binding: HttpBinding,
) -> tuple[dict[str, FieldDescriptor], tuple[str, ...]]:
    if binding.body == "*":
        return {}, ()

    request = schema.message(method.input_type)
    body = body_field(schema, method, binding)
    excluded = (body,) if body is not None and body.is_message else ()
    leaves = collect_leaf_fields(schema, request, excluded)

    taken = set(path_params(schema, method, binding))
    if binding.body:
        taken.add(binding.body)

    query: dict[str, FieldDescriptor] = {}
    shadowed: list[str] = []
    for path in sorted(leaves):
        if path in taken:
            continue
        leaf = leaves[path]
        if _is_shadowed(request, leaf):
            shadowed.append(path)
            continue
        query[path] = leaf
    if shadowed:
        logger.debug(
            "%s: dropping query parameters shadowed by top-level fields: %s",
            method.full_name,
            ", ".join(shadowed),
        )
    return query, tuple(shadowed)


def _is_shadowed(request: MessageDescriptor, leaf: FieldDescriptor) -> bool:
    top_level = request.field(leaf.name)
    return top_level is not None and top_level is not leaf
