"""Unit tests for response decoding."""

from __future__ import annotations

import logging
from typing import Literal

import httpx
import pytest
from pydantic import Field

from proto_to_rest_client_generator.runtime import (
    DecodeError,
    MessageModel,
    decode_http_body,
    decode_message,
)

Color = Literal["COLOR_UNSPECIFIED", "RED", "WHITE"]


class Squid(MessageModel):
    name: str = Field("", alias="name")
    length_m: int = Field(0, alias="lengthM")
    color: Color = Field("COLOR_UNSPECIFIED", alias="color")
    colors: list[Color] = Field(default_factory=list, alias="colors")
    by_tank: dict[str, Color] = Field(default_factory=dict, alias="byTank")
    photo: bytes = Field(b"", alias="photo")


def test_known_values_decode_by_json_name() -> None:
    squid = decode_message(
        Squid, b'{"name": "squids/giant", "lengthM": 12, "color": "RED", "photo": "aGk="}'
    )

    assert squid == Squid(name="squids/giant", length_m=12, color="RED", photo=b"hi")


def test_unknown_fields_are_ignored() -> None:
    assert decode_message(Squid, b'{"name": "a", "tentacles": 10}') == Squid(name="a")


def test_unknown_singular_enum_falls_back_to_zero_value(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING):
        squid = decode_message(Squid, b'{"name": "a", "color": "PURPLE"}')

    assert squid == Squid(name="a")
    assert "Dropping unknown enum value 'PURPLE' at color" in caplog.text


def test_unknown_repeated_and_map_enums_are_removed() -> None:
    squid = decode_message(
        Squid,
        b'{"colors": ["RED", "PURPLE", "WHITE"], "byTank": {"a": "RED", "b": "GOLD"}}',
    )

    assert squid.colors == ["RED", "WHITE"]
    assert squid.by_tank == {"a": "RED"}


@pytest.mark.parametrize("content", [b'{"name": 5}', b"not json", b'{"lengthM": "long"}'])
def test_malformed_body_raises_decode_error(content: bytes) -> None:
    with pytest.raises(DecodeError, match="Failed to decode Squid"):
        decode_message(Squid, content)


def test_empty_body_decodes_to_default_message() -> None:
    assert decode_message(Squid, b"") == Squid()
    assert decode_message(Squid, b"  \n") == Squid()


def test_http_body_keeps_raw_content() -> None:
    response = httpx.Response(200, headers={"Content-Type": "image/png"}, content=b"\x89PNG")

    body = decode_http_body(response)

    assert body.content_type == "image/png"
    assert body.data == b"\x89PNG"
