"""Support library imported by generated REST client packages."""

from __future__ import annotations

from .decoding import decode_http_body, decode_message
from .errors import (
    APIError,
    CancelledError,
    ClientError,
    DecodeError,
    OperationError,
    TransportError,
    UnsupportedTransportError,
)
from .operations import Backoff, CustomOperation, LongRunningOperation, OperationHandle, pause
from .pagination import PageIterator
from .transport import (
    RestTransport,
    RetryWrapper,
    add_query_param,
    encode_body,
    field_value,
    format_path_value,
)
from .wellknown import AnyMessage, Empty, HttpBody, MessageModel, Operation, Status

__all__ = [
    "APIError",
    "AnyMessage",
    "Backoff",
    "CancelledError",
    "ClientError",
    "CustomOperation",
    "DecodeError",
    "Empty",
    "HttpBody",
    "LongRunningOperation",
    "MessageModel",
    "Operation",
    "OperationError",
    "OperationHandle",
    "PageIterator",
    "RestTransport",
    "RetryWrapper",
    "Status",
    "TransportError",
    "UnsupportedTransportError",
    "add_query_param",
    "decode_http_body",
    "decode_message",
    "encode_body",
    "field_value",
    "format_path_value",
    "pause",
]
