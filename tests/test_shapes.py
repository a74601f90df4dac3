"""Unit tests for call shape classification and method planning."""

from __future__ import annotations

import dataclasses

import pytest

from proto_to_rest_client_generator.errors import GenerationError
from proto_to_rest_client_generator.message_models import build_messages_module
from proto_to_rest_client_generator.model_types import CallShape
from proto_to_rest_client_generator.schema import Schema
from proto_to_rest_client_generator.shapes import (
    classify_method,
    operation_service_for,
    pagination_roles,
    plan_method,
)
from proto_to_rest_client_generator.strategies import SynthesisContext, synthesize_method

from .fixture_helpers import fixture_path, inline_schema

_SCHEMA = """
files:
  - package: zoo
    messages:
      - name: Squid
        fields:
          - {name: name, type: string}
      - name: ListRequest
        fields:
          - {name: parent, type: string}
          - {name: page_size, type: int32}
          - {name: page_token, type: string}
      - name: MaxResultsRequest
        fields:
          - {name: max_results, type: uint32}
          - {name: page_token, type: string}
      - name: ListResponse
        fields:
          - {name: total, type: int32}
          - {name: squids, type: Squid, repeated: true}
          - {name: next_page_token, type: string}
      - name: TokenOnlyResponse
        fields:
          - {name: next_page_token, type: string}
      - name: MapResponse
        fields:
          - {name: squids, map: {key: string, value: Squid}}
          - {name: next_page_token, type: string}
      - name: CustomListResponse
        fields:
          - {name: cursor, type: string}
          - {name: squids, type: Squid, repeated: true}
    services:
      - name: Aquarium
        methods:
          - name: GetSquid
            input: Squid
            output: Squid
            http: {get: "/v1/{name=squids/*}"}
          - name: ListSquids
            input: ListRequest
            output: ListResponse
            http: {get: "/v1/{parent=tanks/*}/squids"}
          - name: ListByMaxResults
            input: MaxResultsRequest
            output: ListResponse
            http: {get: "/v1/squids"}
          - name: ListSquidMap
            input: ListRequest
            output: MapResponse
            http: {get: "/v1/{parent=tanks/*}/squidMap"}
          - name: PurgeSquids
            input: ListRequest
            output: .google.protobuf.Empty
            http: {delete: "/v1/{parent=tanks/*}/squids"}
          - name: StartListing
            input: ListRequest
            output: .google.longrunning.Operation
            http: {post: "/v1/{parent=tanks/*}:list", body: "*"}
          - name: WatchSquids
            input: ListRequest
            output: ListResponse
            server_streaming: true
          - name: UploadSquids
            input: Squid
            output: Squid
            client_streaming: true
          - name: ListWithoutPaging
            input: ListRequest
            output: ListResponse
            pagination: false
            http: {get: "/v1/{parent=tanks/*}/unpaged"}
          - name: ListWithoutItems
            input: ListRequest
            output: TokenOnlyResponse
            http: {get: "/v1/{parent=tanks/*}/tokens"}
          - name: ListByCursor
            input: ListRequest
            output: CustomListResponse
            pagination: {next_page_token: cursor}
            http: {get: "/v1/{parent=tanks/*}/cursor"}
          - name: ListByMissingCursor
            input: ListRequest
            output: CustomListResponse
            pagination: {next_page_token: missing}
            http: {get: "/v1/{parent=tanks/*}/missing"}
          - name: SearchSquids
            input: Squid
            output: Squid
            http: {get: "/v1/squids:search", body: "*"}
"""


def _method(schema: Schema, name: str, service: str = "zoo.Aquarium"):
    return next(method for method in schema.service(service).methods if method.name == name)


def _plan(schema: Schema, name: str, service: str = "zoo.Aquarium"):
    descriptor = schema.service(service)
    return plan_method(schema, descriptor, _method(schema, name, service), descriptor.methods)


@pytest.mark.parametrize(
    ("method_name", "expected"),
    [
        ("GetSquid", CallShape.PLAIN_UNARY),
        ("ListSquids", CallShape.PAGINATED_LISTING),
        ("ListByMaxResults", CallShape.PAGINATED_LISTING),
        ("ListSquidMap", CallShape.PAGINATED_LISTING),
        ("PurgeSquids", CallShape.EMPTY_RESPONSE),
        ("StartListing", CallShape.LONG_RUNNING_OPERATION),
        ("WatchSquids", CallShape.SERVER_STREAMING),
        ("UploadSquids", CallShape.CLIENT_STREAMING),
        ("ListWithoutPaging", CallShape.PLAIN_UNARY),
        ("ListByCursor", CallShape.PAGINATED_LISTING),
    ],
)
def test_classify_method(method_name: str, expected: CallShape) -> None:
    schema = inline_schema(_SCHEMA)

    assert classify_method(schema, _method(schema, method_name)) is expected


def test_pagination_roles_pick_first_repeated_field_by_number() -> None:
    schema = inline_schema(_SCHEMA)
    roles = pagination_roles(schema, _method(schema, "ListSquids"))

    assert roles is not None
    assert roles.items.name == "squids"
    assert roles.page_size.name == "page_size"
    assert roles.next_page_token.name == "next_page_token"
    assert roles.max_page_size == 2147483647
    assert not roles.is_map


def test_max_results_is_accepted_as_page_size() -> None:
    schema = inline_schema(_SCHEMA)
    roles = pagination_roles(schema, _method(schema, "ListByMaxResults"))

    assert roles is not None
    assert roles.page_size.name == "max_results"
    assert roles.max_page_size == 2**32 - 1


def test_map_items_are_flagged() -> None:
    schema = inline_schema(_SCHEMA)
    roles = pagination_roles(schema, _method(schema, "ListSquidMap"))

    assert roles is not None
    assert roles.is_map


def test_explicit_pagination_names_role_fields() -> None:
    schema = inline_schema(_SCHEMA)
    roles = pagination_roles(schema, _method(schema, "ListByCursor"))

    assert roles is not None
    assert roles.next_page_token.name == "cursor"
    assert roles.items.name == "squids"


def test_explicit_pagination_reports_missing_fields() -> None:
    schema = inline_schema(_SCHEMA)

    with pytest.raises(GenerationError, match=r"zoo\.CustomListResponse\.missing \(string\)"):
        pagination_roles(schema, _method(schema, "ListByMissingCursor"))


def test_listing_without_repeated_field_is_an_error() -> None:
    schema = inline_schema(_SCHEMA)

    with pytest.raises(GenerationError, match="has no repeated field"):
        pagination_roles(schema, _method(schema, "ListWithoutItems"))


def test_body_on_get_names_the_method() -> None:
    schema = inline_schema(_SCHEMA)

    with pytest.raises(GenerationError, match="'SearchSquids'"):
        _plan(schema, "SearchSquids")


def test_long_running_method_needs_get_operation() -> None:
    schema = inline_schema(_SCHEMA)

    with pytest.raises(GenerationError, match=r"google\.longrunning\.Operations\.GetOperation"):
        _plan(schema, "StartListing")


def test_long_running_method_finds_get_operation_on_the_surface() -> None:
    schema = inline_schema(_SCHEMA)
    service = schema.service("zoo.Aquarium")
    operations = schema.service("google.longrunning.Operations")
    surface = (*service.methods, *operations.methods)

    plan = plan_method(schema, service, _method(schema, "StartListing"), surface)

    assert plan.lro_poll_method is not None
    assert plan.lro_poll_method.name == "GetOperation"


def test_operations_surface_methods_are_not_long_running() -> None:
    schema = inline_schema(_SCHEMA)
    get_operation = _method(schema, "GetOperation", "google.longrunning.Operations")

    assert classify_method(schema, get_operation) is CallShape.PLAIN_UNARY


def test_streaming_plan_needs_no_http_binding() -> None:
    schema = inline_schema(_SCHEMA)
    plan = _plan(schema, "WatchSquids")

    assert plan.shape is CallShape.SERVER_STREAMING
    assert plan.binding is None
    assert plan.partition is None


def test_synthesis_rejects_a_plan_without_http_binding() -> None:
    schema = inline_schema(_SCHEMA)
    plan = dataclasses.replace(_plan(schema, "WatchSquids"), shape=CallShape.PLAIN_UNARY)
    _, type_names = build_messages_module(schema, [plan.method])
    context = SynthesisContext(schema=schema, type_names=type_names)

    with pytest.raises(
        GenerationError, match=r"zoo\.Aquarium\.WatchSquids: plain_unary plan lacks an http binding"
    ):
        synthesize_method(plan, context)


def test_paged_plan_carries_roles_and_partition() -> None:
    schema = inline_schema(_SCHEMA)
    plan = _plan(schema, "ListSquids")

    assert plan.pagination is not None
    assert plan.partition is not None
    assert list(plan.partition.path_params) == ["parent"]


def test_custom_operation_is_paired_with_its_polling_service() -> None:
    schema = inline_schema(fixture_path("compute").read_text(encoding="utf-8"))
    insert = _method(schema, "Insert", "compute.v1.Instances")

    assert classify_method(schema, insert) is CallShape.CUSTOM_POLLING_OPERATION
    pairing = operation_service_for(schema, insert)
    assert pairing is not None
    assert pairing.service.full_name == "compute.v1.ZoneOperations"
    assert pairing.polling_method.name == "Get"
    assert pairing.name_field.name == "name"
    assert pairing.status_field is not None
    assert pairing.status_field.name == "status"


def test_custom_operation_service_must_exist() -> None:
    schema = inline_schema(
        """
        files:
          - package: zoo
            messages:
              - name: Op
                fields:
                  - {name: id, type: string, operation_field: name}
            services:
              - name: Aquarium
                methods:
                  - name: Drain
                    input: Op
                    output: Op
                    operation_service: Pumps
                    http: {post: "/v1/drain", body: "*"}
        """
    )

    with pytest.raises(GenerationError, match="operation service 'zoo.Pumps' not found"):
        operation_service_for(schema, _method(schema, "Drain"))


def test_custom_operation_service_needs_one_polling_method() -> None:
    schema = inline_schema(
        """
        files:
          - package: zoo
            messages:
              - name: Op
                fields:
                  - {name: id, type: string, operation_field: name}
            services:
              - name: Aquarium
                methods:
                  - name: Drain
                    input: Op
                    output: Op
                    operation_service: Pumps
                    http: {post: "/v1/drain", body: "*"}
              - name: Pumps
                methods:
                  - name: Get
                    input: Op
                    output: Op
                    http: {get: "/v1/pumps/{id}"}
        """
    )

    with pytest.raises(GenerationError, match="exactly one polling method, found 0"):
        operation_service_for(schema, _method(schema, "Drain"))
