"""RPC shape classification and per-method planning."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Optional

from .descriptors import (
    INTEGER_KINDS,
    FieldDescriptor,
    FieldKind,
    MessageDescriptor,
    MethodDescriptor,
    ServiceDescriptor,
)
from .errors import GenerationError
from .http_binding import get_http_binding, require_http_binding
from .model_types import CallShape, MethodPlan, OperationPairing, PaginationRoles
from .params import partition_parameters
from .schema import EMPTY_TYPE, OPERATION_TYPE, Schema

logger = logging.getLogger(__name__)

LONGRUNNING_PACKAGE = "google.longrunning"
GET_OPERATION = "GetOperation"

_BODYLESS_VERBS = ("GET", "DELETE")


def is_long_running(schema: Schema, method: MethodDescriptor) -> bool:
    """Whether ``method`` starts a ``google.longrunning`` operation.

    Methods of the Operations surface itself return operations without
    starting them.
    """
    if method.operation_info is not None:
        return True
    if method.output_type != OPERATION_TYPE:
        return False
    service = schema.find_service(method.service_name)
    return service is None or service.package != LONGRUNNING_PACKAGE


def _is_string(field: Optional[FieldDescriptor]) -> bool:
    return (
        field is not None
        and field.kind is FieldKind.SCALAR
        and field.scalar == "string"
        and not field.repeated
    )


def _is_integer(field: Optional[FieldDescriptor]) -> bool:
    return (
        field is not None
        and field.kind is FieldKind.SCALAR
        and field.scalar in INTEGER_KINDS
        and not field.repeated
    )


def _first_repeated(message: MessageDescriptor) -> Optional[FieldDescriptor]:
    repeated = [field for field in message.fields if field.is_repeated]
    if not repeated:
        return None
    return min(repeated, key=lambda field: field.number)


def pagination_roles(schema: Schema, method: MethodDescriptor) -> Optional[PaginationRoles]:
    """Return the fields driving pagination of ``method``, if it is a listing.

    An explicit ``pagination`` annotation names the role fields; otherwise a
    method is a listing when its request has a string ``page_token`` and an
    integer ``page_size`` (or ``max_results``) and its response has a string
    ``next_page_token``. Streaming methods are never listings.

    Raises:
        GenerationError: Pagination is signaled but a role field is missing.
    """
    if method.client_streaming or method.server_streaming or method.pagination_disabled:
        return None
    request = schema.message(method.input_type)
    response = schema.message(method.output_type)

    override = method.pagination
    if override is not None:
        page_size = request.field(override.page_size)
        page_token = request.field(override.page_token)
        next_page_token = response.field(override.next_page_token)
        items = response.field(override.items) if override.items else _first_repeated(response)
        missing = [
            description
            for description, found in (
                (f"{request.full_name}.{override.page_size} (integer)", _is_integer(page_size)),
                (f"{request.full_name}.{override.page_token} (string)", _is_string(page_token)),
                (
                    f"{response.full_name}.{override.next_page_token} (string)",
                    _is_string(next_page_token),
                ),
                (
                    f"{response.full_name}.{override.items or '<repeated field>'} (repeated)",
                    items is not None and items.is_repeated,
                ),
            )
            if not found
        ]
        if missing:
            raise GenerationError(
                f"{method.full_name}: pagination fields missing or mistyped: {', '.join(missing)}"
            )
    else:
        page_token = request.field("page_token")
        page_size = request.field("page_size") or request.field("max_results")
        next_page_token = response.field("next_page_token")
        if not (_is_string(page_token) and _is_integer(page_size) and _is_string(next_page_token)):
            return None
        items = _first_repeated(response)
        if items is None:
            raise GenerationError(
                f"{method.full_name}: looks like a paginated method, but response "
                f"{response.full_name} has no repeated field"
            )

    if page_size is None or page_token is None or next_page_token is None or items is None:
        raise GenerationError(f"{method.full_name}: pagination fields are incomplete")
    return PaginationRoles(
        page_size=page_size,
        page_token=page_token,
        items=items,
        next_page_token=next_page_token,
    )


def _operation_field(message: MessageDescriptor, role: str) -> Optional[FieldDescriptor]:
    for field in message.fields:
        if field.operation_field == role:
            return field
    return None


def operation_service_for(schema: Schema, method: MethodDescriptor) -> Optional[OperationPairing]:
    """Return the custom operation pairing of ``method``, if it returns a custom operation.

    Raises:
        GenerationError: The paired service is missing, is the method's own
            service, or does not have exactly one polling method.
    """
    if not method.operation_service:
        return None
    output = schema.message(method.output_type)
    name_field = _operation_field(output, "name")
    if name_field is None:
        return None

    service = schema.find_service(method.operation_service)
    if service is None:
        raise GenerationError(
            f"{method.full_name}: operation service {method.operation_service!r} not found"
        )
    if service.full_name == method.service_name:
        raise GenerationError(
            f"{method.full_name}: operation service must differ from the method's own service"
        )
    pollers = [candidate for candidate in service.methods if candidate.operation_polling_method]
    if len(pollers) != 1:
        raise GenerationError(
            f"{method.full_name}: operation service {service.full_name} must declare exactly one "
            f"polling method, found {len(pollers)}"
        )
    return OperationPairing(
        service=service,
        polling_method=pollers[0],
        operation_message=output,
        name_field=name_field,
        status_field=_operation_field(output, "status"),
        error_code_field=_operation_field(output, "error_code"),
        error_message_field=_operation_field(output, "error_message"),
    )


def classify_method(schema: Schema, method: MethodDescriptor) -> CallShape:
    """Return the call shape of ``method``; the first matching rule wins."""
    if is_long_running(schema, method):
        shape = CallShape.LONG_RUNNING_OPERATION
    elif method.output_type == EMPTY_TYPE:
        shape = CallShape.EMPTY_RESPONSE
    elif pagination_roles(schema, method) is not None:
        shape = CallShape.PAGINATED_LISTING
    elif method.client_streaming:
        shape = CallShape.CLIENT_STREAMING
    elif method.server_streaming:
        shape = CallShape.SERVER_STREAMING
    else:
        shape = CallShape.PLAIN_UNARY

    if shape in (CallShape.PLAIN_UNARY, CallShape.LONG_RUNNING_OPERATION):
        output = schema.message(method.output_type)
        if method.operation_service and _operation_field(output, "name"):
            return CallShape.CUSTOM_POLLING_OPERATION
    return shape


def plan_method(
    schema: Schema,
    service: ServiceDescriptor,
    method: MethodDescriptor,
    surface: Sequence[MethodDescriptor],
) -> MethodPlan:
    """Compute everything needed to synthesize ``method`` on ``service``'s client.

    Args:
        schema (Schema): Resolved schema.
        service (ServiceDescriptor): Service whose client receives the method.
        method (MethodDescriptor): Own or standard surface method.
        surface (Sequence[MethodDescriptor]): Every method of the client, used to find
            the operation polling method for long-running operations.

    Returns:
        MethodPlan: Shape, transcoding and pairing data for the method.

    Raises:
        GenerationError: The method cannot be transcoded.
    """
    shape = classify_method(schema, method)
    input_message = schema.message(method.input_type)
    output_message = schema.message(method.output_type)
    logger.debug("%s classified as %s", method.full_name, shape.value)

    if shape.is_streaming:
        return MethodPlan(
            service=service,
            method=method,
            shape=shape,
            input_message=input_message,
            output_message=output_message,
            binding=get_http_binding(method),
        )

    binding = require_http_binding(method)
    if binding.body and binding.verb in _BODYLESS_VERBS:
        raise GenerationError(
            f"{method.full_name}: invalid use of body parameter for a get/delete method "
            f"{method.name!r}"
        )
    partition = partition_parameters(schema, method, binding)

    pagination = None
    if shape is CallShape.PAGINATED_LISTING:
        pagination = pagination_roles(schema, method)

    pairing = None
    if shape is CallShape.CUSTOM_POLLING_OPERATION:
        pairing = operation_service_for(schema, method)

    lro_poll_method = None
    if shape is CallShape.LONG_RUNNING_OPERATION:
        lro_poll_method = next(
            (
                candidate
                for candidate in surface
                if candidate.name == GET_OPERATION and candidate.output_type == OPERATION_TYPE
            ),
            None,
        )
        if lro_poll_method is None:
            raise GenerationError(
                f"{method.full_name}: long-running method needs the "
                f"{LONGRUNNING_PACKAGE}.Operations.{GET_OPERATION} standard method; list "
                f"{LONGRUNNING_PACKAGE}.Operations in the service config with an http rule for it"
            )

    return MethodPlan(
        service=service,
        method=method,
        shape=shape,
        input_message=input_message,
        output_message=output_message,
        binding=binding,
        partition=partition,
        pagination=pagination,
        operation_pairing=pairing,
        lro_poll_method=lro_poll_method,
    )
