"""Synthesis of URL, query string and body construction code."""

from __future__ import annotations

import ast
from typing import Optional

from .builder import MethodBuilder, parse_expr, parse_statements
from .descriptors import FieldDescriptor, FieldKind, MessageDescriptor
from .http_binding import split_template
from .message_models import zero_value_code
from .model_types import HttpBinding, ParameterPartition
from .schema import Schema


def value_accessor(
    builder: MethodBuilder,
    schema: Schema,
    message: MessageDescriptor,
    path: str,
    *,
    root: str = "request",
) -> str:
    """Return source text reading ``path`` from the request variable ``root``.

    Top-level fields are plain attribute reads. Nested fields go through
    ``field_value`` so an unset parent message yields the leaf's zero value.
    """
    fields = list(schema.iter_path(message, path))
    if len(fields) == 1:
        return f"{root}.{fields[0].py_name}"
    builder.runtime("field_value")
    attributes = tuple(field.py_name for field in fields)
    return f"field_value({root}, {attributes!r}, {_leaf_default(fields[-1], schema)})"


def external_name(schema: Schema, message: MessageDescriptor, path: str) -> str:
    """Return the dot-joined JSON names of every segment of ``path``."""
    return ".".join(field.json_name for field in schema.iter_path(message, path))


def url_statements(
    builder: MethodBuilder,
    schema: Schema,
    message: MessageDescriptor,
    binding: HttpBinding,
    *,
    root: str = "request",
) -> list[ast.stmt]:
    """Emit ``url = ...`` with every placeholder replaced by its field value.

    Placeholders are substituted in template order and literal text is kept.
    A placeholder's ``=sub/pattern`` is not evaluated; only the field value is
    substituted.
    """
    values: list[ast.expr] = []
    for literal, path in split_template(binding.url):
        if literal:
            values.append(ast.Constant(value=literal))
        if path is None:
            continue
        builder.runtime("format_path_value")
        accessor = value_accessor(builder, schema, message, path, root=root)
        values.append(
            ast.FormattedValue(
                value=parse_expr(f"format_path_value({accessor})"),
                conversion=-1,
                format_spec=None,
            )
        )
    url_value: ast.expr
    if all(isinstance(value, ast.Constant) for value in values):
        url_value = ast.Constant(value=binding.url)
    else:
        url_value = ast.JoinedStr(values=values)
    return [ast.Assign(targets=[ast.Name(id="url", ctx=ast.Store())], value=url_value)]


def query_guard(field: FieldDescriptor, value: str, schema: Schema) -> Optional[str]:
    """Return the condition under which a query field is sent, or ``None`` for always.

    Rules, first match wins: required singular scalars and enums (bytes
    excluded) are always sent; repeated fields when non-empty; fields with
    explicit presence when set; anything else when it differs from its zero
    value.
    """
    singular_primitive = not field.is_message and not field.is_bytes and not field.is_repeated
    if field.required and singular_primitive:
        return None
    if field.is_repeated:
        return value
    if field.optional:
        return f"{value} is not None"
    if field.kind is FieldKind.MESSAGE:
        return f"{value} is not None"
    if field.kind is FieldKind.ENUM:
        return f"{value} != {zero_value_code(field, schema)}"
    if field.scalar == "string":
        return f"{value} != ''"
    if field.scalar in ("bool", "bytes"):
        return value
    return f"{value} != 0"


def query_statements(
    builder: MethodBuilder,
    schema: Schema,
    message: MessageDescriptor,
    partition: ParameterPartition,
    *,
    root: str = "request",
) -> list[ast.stmt]:
    """Emit the ``params`` list and one guarded append per query field, in path order."""
    if not partition.query_params:
        return []
    builder.runtime("add_query_param")
    lines = ["params: list[tuple[str, str]] = []"]
    for path in sorted(partition.query_params):
        field = partition.query_params[path]
        value = value_accessor(builder, schema, message, path, root=root)
        add = f"add_query_param(params, {external_name(schema, message, path)!r}, {value})"
        guard = query_guard(field, value, schema)
        if guard is None:
            lines.append(add)
        else:
            lines.append(f"if {guard}:\n    {add}")
    return parse_statements("\n".join(lines))


def body_expression(
    builder: MethodBuilder,
    schema: Schema,
    message: MessageDescriptor,
    partition: ParameterPartition,
    *,
    root: str = "request",
) -> Optional[str]:
    """Return source text producing the encoded request body, if the method has one."""
    if not partition.body_selector:
        return None
    builder.runtime("encode_body")
    if partition.body_selector == "*":
        return f"encode_body({root})"
    accessor = _body_accessor(builder, schema, message, partition.body_selector, root)
    return f"encode_body({accessor})"


def _body_accessor(
    builder: MethodBuilder, schema: Schema, message: MessageDescriptor, selector: str, root: str
) -> str:
    fields = list(schema.iter_path(message, selector))
    if len(fields) == 1:
        return f"{root}.{fields[0].py_name}"
    # A nested body with an unset parent encodes as an empty object.
    builder.runtime("field_value")
    return f"field_value({root}, {tuple(field.py_name for field in fields)!r}, None)"


def _leaf_default(field: FieldDescriptor, schema: Schema) -> str:
    if field.is_repeated:
        return "()"
    if field.optional or field.is_message:
        return "None"
    return zero_value_code(field, schema)
