"""Permissive JSON decoding of response bodies into generated models."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
import pydantic_core
from pydantic import BaseModel, ValidationError

from .errors import DecodeError
from .wellknown import HttpBody

logger = logging.getLogger(__name__)

_M = TypeVar("_M", bound=BaseModel)

_DROPPED = object()


def decode_message(model_type: type[_M], content: bytes) -> _M:
    """Decode a JSON body, tolerating enum values this client does not know.

    Unknown enum values are removed from the payload (a singular field falls
    back to its zero value, a repeated or map entry disappears) and a warning
    is logged. Any other validation failure raises :class:`DecodeError`.
    """
    if not content.strip():
        return model_type()
    try:
        return model_type.model_validate_json(content)
    except ValidationError as exc:
        errors = exc.errors()
        unknown_enums = [error for error in errors if error["type"] == "literal_error"]
        if not unknown_enums or len(unknown_enums) != len(errors):
            raise DecodeError(f"Failed to decode {model_type.__name__}: {exc}") from exc

    payload = pydantic_core.from_json(content)
    for error in unknown_enums:
        logger.warning(
            "Dropping unknown enum value %r at %s while decoding %s",
            error.get("input"),
            ".".join(str(part) for part in error["loc"]),
            model_type.__name__,
        )
        payload = _mark_dropped(payload, error["loc"])
    cleaned = _prune(payload)
    try:
        return model_type.model_validate_json(pydantic_core.to_json(cleaned))
    except ValidationError as exc:
        raise DecodeError(f"Failed to decode {model_type.__name__}: {exc}") from exc


def decode_http_body(response: httpx.Response) -> HttpBody:
    """Copy a raw response body and its ``Content-Type`` into :class:`HttpBody`."""
    return HttpBody(content_type=response.headers.get("Content-Type", ""), data=response.content)


def _mark_dropped(payload: Any, loc: tuple[Any, ...]) -> Any:
    if not loc:
        return _DROPPED
    head, rest = loc[0], loc[1:]
    if isinstance(payload, dict) and head in payload:
        payload[head] = _mark_dropped(payload[head], rest)
    elif isinstance(payload, list) and isinstance(head, int) and 0 <= head < len(payload):
        payload[head] = _mark_dropped(payload[head], rest)
    return payload


def _prune(payload: Any) -> Any:
    if isinstance(payload, dict):
        return {key: _prune(value) for key, value in payload.items() if value is not _DROPPED}
    if isinstance(payload, list):
        return [_prune(value) for value in payload if value is not _DROPPED]
    return payload
