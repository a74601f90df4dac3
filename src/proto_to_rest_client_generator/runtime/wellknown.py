"""Models for well-known message types shared by every generated package."""

from __future__ import annotations

from typing import Optional, TypeVar

import pydantic_core
from pydantic import BaseModel, ConfigDict, Field

_M = TypeVar("_M", bound=BaseModel)


class MessageModel(BaseModel):
    """Base class of generated messages: JSON names as aliases, base64 bytes."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )


class Empty(MessageModel):
    """A message with no fields, returned by side-effect-only methods."""


class AnyMessage(BaseModel):
    """A packed message in its JSON form: ``@type`` plus the message's own fields."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type_url: str = Field("", alias="@type")

    def unpack(self, model_type: type[_M]) -> _M:
        """Validate the packed fields as ``model_type``."""
        return model_type.model_validate_json(pydantic_core.to_json(self.model_extra or {}))


class Status(MessageModel):
    code: int = Field(0, alias="code")
    message: str = Field("", alias="message")
    details: list[AnyMessage] = Field(default_factory=list, alias="details")


class Operation(MessageModel):
    name: str = Field("", alias="name")
    metadata: Optional[AnyMessage] = Field(None, alias="metadata")
    done: bool = Field(False, alias="done")
    error: Optional[Status] = Field(None, alias="error")
    response: Optional[AnyMessage] = Field(None, alias="response")


class HttpBody(MessageModel):
    """Raw response payload with its content type, copied verbatim."""

    content_type: str = Field("", alias="contentType")
    data: bytes = Field(b"", alias="data")
    extensions: list[AnyMessage] = Field(default_factory=list, alias="extensions")
