"""Unit tests for generated identifier naming."""

from __future__ import annotations

import pytest

from proto_to_rest_client_generator.naming import (
    client_class_name,
    client_module_name,
    field_attribute_names,
    lower_camel,
    method_name,
    nested_class_name,
    package_name_for,
    snake_case,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("GetSquid", "get_squid"),
        ("ListHTTPRoutes", "list_http_routes"),
        ("IAMPolicy", "iam_policy"),
        ("Classify", "classify"),
    ],
)
def test_snake_case(raw: str, expected: str) -> None:
    assert snake_case(raw) == expected


def test_lower_camel_follows_proto_json_names() -> None:
    assert lower_camel("mass_kg") == "massKg"
    assert lower_camel("page_token") == "pageToken"
    assert lower_camel("name") == "name"


def test_client_names() -> None:
    assert client_class_name("MolluscaService") == "MolluscaServiceRestClient"
    assert client_module_name("MolluscaService") == "mollusca_service_rest_client"
    assert package_name_for("animalia.mollusca.v1") == "animalia_mollusca_v1"


def test_method_name_avoids_client_members() -> None:
    assert method_name("Close") == "close_"
    assert method_name("GetSquid") == "get_squid"


def test_nested_class_names_keep_the_outer_name() -> None:
    assert nested_class_name("Squid.Mantle") == "Squid_Mantle"


def test_field_attribute_names_avoid_model_members_and_builtins() -> None:
    names = field_attribute_names(["json", "type", "class", "name"])

    assert names == {
        "json": "json_field",
        "type": "type_field",
        "class": "class_",
        "name": "name",
    }
