"""Call-strategy synthesizers producing one client method per RPC."""

from __future__ import annotations

import ast
from collections.abc import Callable
from dataclasses import dataclass

from .builder import MethodBuilder, parse_statements
from .errors import GenerationError
from .message_models import TypeNames, item_annotation
from .model_types import CallShape, MethodOutput, MethodPlan
from .naming import method_name, operation_client_attribute
from .schema import HTTP_BODY_TYPE, Schema
from .transcoding import body_expression, query_statements, url_statements

_CALL_OPTIONS = (
    "metadata: Sequence[tuple[str, str]] = (), "
    "cancel: Optional[threading.Event] = None, "
    "retry: Optional[RetryWrapper] = None"
)
_FORWARD_OPTIONS = "metadata=metadata, cancel=cancel, retry=retry"


@dataclass(frozen=True)
class SynthesisContext:
    """Schema-wide lookups shared by every method synthesizer."""

    schema: Schema
    type_names: TypeNames


def _incomplete_plan(plan: MethodPlan, missing: str) -> GenerationError:
    return GenerationError(f"{plan.method.full_name}: {plan.shape.value} plan lacks {missing}")


def _type_ref(builder: MethodBuilder, context: SynthesisContext, full_name: str) -> str:
    name = context.type_names.of(full_name)
    if context.type_names.is_runtime(full_name):
        builder.runtime(name)
        return name
    return builder.message(name)


def _signature(builder: MethodBuilder, *, request: str, returns: str) -> str:
    builder.require("collections.abc", "Sequence")
    builder.require("typing", "Optional")
    builder.require("threading")
    builder.runtime("RetryWrapper")
    return f"(self, {request}, *, {_CALL_OPTIONS}) -> {returns}"


def _docstring(plan: MethodPlan) -> str:
    method = plan.method
    lines: list[str] = []
    if method.comment:
        lines.append(method.comment.strip())
    else:
        lines.append(f"Call ``{method.full_name}``.")
    if plan.binding is not None:
        lines.extend(["", f"HTTP: ``{plan.binding.verb} {plan.binding.url}``"])
    return "\n".join(lines)


def _request_statements(
    builder: MethodBuilder,
    plan: MethodPlan,
    context: SynthesisContext,
    *,
    assign: bool = True,
) -> list[ast.stmt]:
    """Transcode ``request`` and perform the round trip."""
    if plan.binding is None or plan.partition is None:
        raise _incomplete_plan(plan, "an http binding")
    schema = context.schema
    statements: list[ast.stmt] = []
    statements.extend(url_statements(builder, schema, plan.input_message, plan.binding))
    query = query_statements(builder, schema, plan.input_message, plan.partition)
    statements.extend(query)
    arguments = [repr(plan.binding.verb), "url"]
    if query:
        arguments.append("params=params")
    body = body_expression(builder, schema, plan.input_message, plan.partition)
    if body is not None:
        arguments.append(f"body={body}")
    arguments.append(_FORWARD_OPTIONS)
    call = f"self._transport.invoke({', '.join(arguments)})"
    statements.extend(parse_statements(f"http_response = {call}" if assign else call))
    return statements


def _decode_expression(builder: MethodBuilder, plan: MethodPlan, context: SynthesisContext) -> str:
    if plan.method.output_type == HTTP_BODY_TYPE:
        builder.runtime("decode_http_body")
        return "decode_http_body(http_response)"
    builder.runtime("decode_message")
    output = _type_ref(builder, context, plan.method.output_type)
    return f"decode_message({output}, http_response.content)"


def synthesize_empty(
    builder: MethodBuilder, plan: MethodPlan, context: SynthesisContext
) -> MethodOutput:
    request_type = _type_ref(builder, context, plan.method.input_type)
    signature = _signature(builder, request=f"request: {request_type}", returns="None")
    builder.emit_nodes(_request_statements(builder, plan, context, assign=False))
    return builder.build(signature=signature, shape=plan.shape)


def synthesize_unary(
    builder: MethodBuilder, plan: MethodPlan, context: SynthesisContext
) -> MethodOutput:
    request_type = _type_ref(builder, context, plan.method.input_type)
    output = _type_ref(builder, context, plan.method.output_type)
    signature = _signature(builder, request=f"request: {request_type}", returns=output)
    builder.emit_nodes(_request_statements(builder, plan, context))
    builder.emit(f"return {_decode_expression(builder, plan, context)}")
    return builder.build(signature=signature, shape=plan.shape)


def synthesize_paged(
    builder: MethodBuilder, plan: MethodPlan, context: SynthesisContext
) -> MethodOutput:
    roles = plan.pagination
    if roles is None:
        raise _incomplete_plan(plan, "pagination fields")
    builder.runtime("PageIterator", "decode_message")
    request_type = _type_ref(builder, context, plan.method.input_type)
    output = _type_ref(builder, context, plan.method.output_type)
    for full_name in (roles.items.type_name, roles.items.map_value_type):
        if full_name is not None:
            _type_ref(builder, context, full_name)
    item = item_annotation(roles.items, context.type_names)
    signature = _signature(
        builder, request=f"request: {request_type}", returns=f"PageIterator[{item}]"
    )

    size = roles.page_size.py_name
    token = roles.page_token.py_name
    maximum = roles.max_page_size
    if roles.is_map:
        items = f"sorted(response.{roles.items.py_name}.items())"
    else:
        items = f"list(response.{roles.items.py_name})"

    fetch = parse_statements(
        f"""
        def fetch(page_size: int, page_token: str) -> tuple[list[{item}], str]:
            request.{token} = page_token
            if page_size > {maximum}:
                request.{size} = {maximum}
            elif page_size != 0:
                request.{size} = page_size
        """
    )[0]
    if not isinstance(fetch, ast.FunctionDef):
        raise ValueError(f"Page fetcher of {plan.method.full_name} is not a function")
    fetch.body.extend(_request_statements(builder, plan, context))
    fetch.body.extend(
        parse_statements(
            f"""
            response = decode_message({output}, http_response.content)
            iterator.response = response
            return {items}, response.{roles.next_page_token.py_name}
            """
        )
    )

    initial_size = f"request.{size} or 0" if roles.page_size.optional else f"request.{size}"
    initial_token = f"request.{token} or ''" if roles.page_token.optional else f"request.{token}"
    builder.emit(
        f"""
        request = request.model_copy(deep=True)
        iterator: PageIterator[{item}]
        """
    )
    builder.emit_nodes([fetch])
    builder.emit(
        f"""
        iterator = PageIterator(fetch, page_size={initial_size}, page_token={initial_token})
        return iterator
        """
    )
    return builder.build(signature=signature, shape=plan.shape)


def synthesize_long_running(
    builder: MethodBuilder, plan: MethodPlan, context: SynthesisContext
) -> MethodOutput:
    poll_method = plan.lro_poll_method
    if poll_method is None:
        raise _incomplete_plan(plan, "an operation polling method")
    poll_request = context.schema.message(poll_method.input_type)
    name_field = poll_request.field("name")
    if name_field is None:
        raise GenerationError(
            f"{plan.method.full_name}: {poll_method.full_name} request has no 'name' field"
        )

    builder.runtime("LongRunningOperation", "Operation", "decode_message")
    request_type = _type_ref(builder, context, plan.method.input_type)
    poll_request_type = _type_ref(builder, context, poll_method.input_type)
    info = plan.method.operation_info
    result_type = _type_ref(builder, context, info.response_type) if info else "None"
    metadata_type = (
        _type_ref(builder, context, info.metadata_type) if info and info.metadata_type else "None"
    )
    signature = _signature(
        builder, request=f"request: {request_type}", returns="LongRunningOperation"
    )

    builder.emit_nodes(_request_statements(builder, plan, context))
    builder.emit(
        f"""
        operation = decode_message(Operation, http_response.content)

        def poll() -> Operation:
            return self.{method_name(poll_method.name)}(
                {poll_request_type}({name_field.py_name}=operation.name), {_FORWARD_OPTIONS}
            )

        return LongRunningOperation(
            operation, poll=poll, result_type={result_type}, metadata_type={metadata_type}
        )
        """
    )
    return builder.build(signature=signature, shape=plan.shape)


def _poll_request_arguments(plan: MethodPlan, context: SynthesisContext) -> list[str]:
    pairing = plan.operation_pairing
    if pairing is None:
        raise _incomplete_plan(plan, "an operation service pairing")
    schema = context.schema
    poll_request = schema.message(pairing.polling_method.input_type)
    arguments: list[str] = []
    for field in poll_request.fields:
        if field.operation_response_field is None:
            continue
        source = pairing.operation_message.field(field.operation_response_field)
        if source is None:
            raise GenerationError(
                f"{plan.method.full_name}: {pairing.operation_message.full_name} has no field "
                f"{field.operation_response_field!r} named by {poll_request.full_name}.{field.name}"
            )
        arguments.append(f"{field.py_name}=response.{source.py_name}")
    for field in plan.input_message.fields:
        if field.operation_request_field is None:
            continue
        target = poll_request.field(field.operation_request_field)
        if target is None:
            raise GenerationError(
                f"{plan.method.full_name}: polling request {poll_request.full_name} has no field "
                f"{field.operation_request_field!r} named by "
                f"{plan.input_message.full_name}.{field.name}"
            )
        arguments.append(f"{target.py_name}=request.{field.py_name}")
    return arguments


def synthesize_custom_operation(
    builder: MethodBuilder, plan: MethodPlan, context: SynthesisContext
) -> MethodOutput:
    pairing = plan.operation_pairing
    if pairing is None:
        raise _incomplete_plan(plan, "an operation service pairing")
    builder.runtime("CustomOperation", "decode_message")
    request_type = _type_ref(builder, context, plan.method.input_type)
    output = _type_ref(builder, context, plan.method.output_type)
    poll_request_type = _type_ref(builder, context, pairing.polling_method.input_type)
    poll_output = _type_ref(builder, context, pairing.polling_method.output_type)
    signature = _signature(
        builder, request=f"request: {request_type}", returns=f"CustomOperation[{output}]"
    )

    options = [f"name_field={pairing.name_field.py_name!r}"]
    if pairing.status_field is not None:
        done_value = "True" if pairing.status_field.scalar == "bool" else "'DONE'"
        options.append(f"status_field={pairing.status_field.py_name!r}")
        options.append(f"done_value={done_value}")
    if pairing.error_code_field is not None:
        options.append(f"error_code_field={pairing.error_code_field.py_name!r}")
    if pairing.error_message_field is not None:
        options.append(f"error_message_field={pairing.error_message_field.py_name!r}")

    client = operation_client_attribute(pairing.service.name)
    poll_call = f"self.{client}.{method_name(pairing.polling_method.name)}"

    builder.emit_nodes(_request_statements(builder, plan, context))
    builder.emit(
        f"""
        response = decode_message({output}, http_response.content)
        poll_request = {poll_request_type}({', '.join(_poll_request_arguments(plan, context))})

        def poll() -> {poll_output}:
            return {poll_call}(poll_request, {_FORWARD_OPTIONS})

        return CustomOperation(response, poll=poll, {', '.join(options)})
        """
    )
    return builder.build(
        signature=signature,
        shape=plan.shape,
        operation_client=pairing.service,
    )


def synthesize_streaming(
    builder: MethodBuilder, plan: MethodPlan, context: SynthesisContext
) -> MethodOutput:
    method = plan.method
    builder.runtime("UnsupportedTransportError")
    request_type = _type_ref(builder, context, method.input_type)
    output = _type_ref(builder, context, method.output_type)
    if method.client_streaming:
        builder.require("collections.abc", "Iterable")
        request = f"requests: Iterable[{request_type}]"
    else:
        request = f"request: {request_type}"
    returns = output
    if method.server_streaming:
        builder.require("collections.abc", "Iterator")
        returns = f"Iterator[{output}]"
    signature = _signature(builder, request=request, returns=returns)
    builder.emit(
        f"raise UnsupportedTransportError({f'{method.name} not yet supported for REST clients'!r})"
    )
    return builder.build(signature=signature, shape=plan.shape)


type Synthesizer = Callable[[MethodBuilder, MethodPlan, SynthesisContext], MethodOutput]

_SYNTHESIZERS: dict[CallShape, Synthesizer] = {
    CallShape.LONG_RUNNING_OPERATION: synthesize_long_running,
    CallShape.CUSTOM_POLLING_OPERATION: synthesize_custom_operation,
    CallShape.EMPTY_RESPONSE: synthesize_empty,
    CallShape.PAGINATED_LISTING: synthesize_paged,
    CallShape.CLIENT_STREAMING: synthesize_streaming,
    CallShape.SERVER_STREAMING: synthesize_streaming,
    CallShape.PLAIN_UNARY: synthesize_unary,
}


def synthesize_method(plan: MethodPlan, context: SynthesisContext) -> MethodOutput:
    """Generate the client method for ``plan`` with a fresh builder.

    Raises:
        GenerationError: The method cannot be expressed with its planned strategy.
    """
    builder = MethodBuilder(method_name(plan.method.name), plan.method.name)
    builder.set_docstring(_docstring(plan))
    return _SYNTHESIZERS[plan.shape](builder, plan, context)
