"""Unit tests for the REST transport and transcoding helpers."""

from __future__ import annotations

import threading
from typing import Optional

import httpx
import pytest
from pydantic import Field

from proto_to_rest_client_generator.runtime import (
    APIError,
    CancelledError,
    MessageModel,
    RestTransport,
    TransportError,
    add_query_param,
    encode_body,
    field_value,
    format_path_value,
)


class Mantle(MessageModel):
    mass_kg: int = Field(0, alias="massKg")


class Squid(MessageModel):
    name: str = Field("", alias="name")
    mantle: Optional[Mantle] = Field(None, alias="mantle")
    photo: bytes = Field(b"", alias="photo")


def _transport(handler) -> RestTransport:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RestTransport("https://mollusca.example.com/", http_client=client)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("squids/giant", "squids/giant"),
        ("giant squid", "giant%20squid"),
        ("a?b#c", "a%3Fb%23c"),
        (True, "true"),
        (42, "42"),
        (b"\xfb\xff", "-_8="),
    ],
)
def test_format_path_value(value: object, expected: str) -> None:
    assert format_path_value(value) == expected


def test_add_query_param_repeats_list_values() -> None:
    params: list[tuple[str, str]] = []

    add_query_param(params, "colors", ["RED", "WHITE"])
    add_query_param(params, "force", False)

    assert params == [("colors", "RED"), ("colors", "WHITE"), ("force", "false")]


def test_field_value_defaults_when_parent_is_unset() -> None:
    assert field_value(Squid(), ("mantle", "mass_kg"), 0) == 0
    assert field_value(Squid(mantle=Mantle(mass_kg=3)), ("mantle", "mass_kg"), 0) == 3


def test_encode_body_uses_json_names_and_skips_defaults() -> None:
    body = encode_body(Squid(name="squids/a", mantle=Mantle(mass_kg=2), photo=b"hi"))

    assert body == b'{"name":"squids/a","mantle":{"massKg":2},"photo":"aGk="}'
    assert encode_body(None) == b"{}"
    assert encode_body(["a", "b"]) == b'["a","b"]'


def test_invoke_sends_query_headers_and_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"name": "squids/a"})

    transport = _transport(handler)
    response = transport.invoke(
        "POST",
        "/v1/tanks/t1/squids",
        params=[("requestId", "r 1")],
        body=b'{"name":"squids/a"}',
        metadata=[("x-goog-request-params", "parent=tanks/t1")],
    )

    assert response.json() == {"name": "squids/a"}
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/tanks/t1/squids"
    assert request.url.params["requestId"] == "r 1"
    assert request.headers["x-goog-api-client"].startswith("gl-python/")
    assert request.headers["content-type"] == "application/json"
    assert request.headers["x-goog-request-params"] == "parent=tanks/t1"
    assert request.content == b'{"name":"squids/a"}'


def test_error_envelope_becomes_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            404,
            json={
                "error": {
                    "code": 404,
                    "message": "squid not found",
                    "status": "NOT_FOUND",
                    "details": [{"@type": "type.googleapis.com/google.rpc.ErrorInfo"}],
                }
            },
        )

    with pytest.raises(APIError) as excinfo:
        _transport(handler).invoke("GET", "/v1/squids/a")

    assert excinfo.value.status_code == 404
    assert excinfo.value.message == "squid not found"
    assert excinfo.value.status == "NOT_FOUND"
    assert len(excinfo.value.details) == 1


def test_plain_text_error_body_is_the_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway upstream")

    with pytest.raises(APIError, match="HTTP 502: bad gateway upstream"):
        _transport(handler).invoke("GET", "/v1/squids/a")


def test_retry_wrapper_controls_attempts() -> None:
    statuses = [503, 200]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(statuses.pop(0), json={})

    def retry_once(send):
        try:
            return send()
        except APIError:
            return send()

    response = _transport(handler).invoke("GET", "/v1/squids/a", retry=retry_once)

    assert response.status_code == 200
    assert statuses == []


def test_cancelled_call_is_never_sent() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={})

    cancel = threading.Event()
    cancel.set()

    with pytest.raises(CancelledError):
        _transport(handler).invoke("GET", "/v1/squids/a", cancel=cancel)
    assert seen == []


def test_connection_failure_becomes_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError, match="GET https://mollusca.example.com/v1/squids/a"):
        _transport(handler).invoke("GET", "/v1/squids/a")


def test_close_leaves_a_caller_owned_client_open() -> None:
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    transport = RestTransport("https://mollusca.example.com", http_client=client)

    transport.close()

    assert not client.is_closed
    client.close()
