"""HTTP transport and transcoding helpers used by generated REST clients."""

from __future__ import annotations

import base64
import logging
import platform
import threading
from collections.abc import Callable, Sequence
from importlib import metadata as importlib_metadata
from typing import Any, Optional
from urllib.parse import quote

import httpx
import pydantic_core
from pydantic import BaseModel

from .errors import APIError, CancelledError, TransportError

logger = logging.getLogger(__name__)

type RetryWrapper = Callable[[Callable[[], httpx.Response]], httpx.Response]

CLIENT_INFO_HEADER = "x-goog-api-client"
DEFAULT_TIMEOUT = 60.0

# Characters kept unescaped in a path segment, besides unreserved ones.
_PATH_SAFE = "/$&+,:;=@"


def _generator_version() -> str:
    try:
        return importlib_metadata.version("proto-to-rest-client-generator")
    except importlib_metadata.PackageNotFoundError:
        return "UNKNOWN"


def default_client_info() -> str:
    """Return the value of the client identity header."""
    return (
        f"gl-python/{platform.python_version()} gapic/{_generator_version()} "
        f"rest/{httpx.__version__}"
    )


def check_cancel(cancel: Optional[threading.Event]) -> None:
    """Raise :class:`CancelledError` when ``cancel`` is set."""
    if cancel is not None and cancel.is_set():
        raise CancelledError("call cancelled")


def _scalar_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return base64.urlsafe_b64encode(value).decode("ascii")
    if value is None:
        return ""
    return str(value)


def format_path_value(value: Any) -> str:
    """Render a field value for substitution into a URL path."""
    return quote(_scalar_text(value), safe=_PATH_SAFE)


def format_query_value(value: Any) -> str:
    """Render a field value as a query parameter value; httpx does the escaping."""
    return _scalar_text(value)


def add_query_param(params: list[tuple[str, str]], name: str, value: Any) -> None:
    """Append ``value`` under ``name``; repeated values add one entry per element."""
    if isinstance(value, (list, tuple)):
        for item in value:
            params.append((name, format_query_value(item)))
        return
    params.append((name, format_query_value(value)))


def field_value(message: Any, path: Sequence[str], default: Any) -> Any:
    """Read a nested field, yielding ``default`` when a parent message is unset."""
    current = message
    for name in path:
        if current is None:
            return default
        current = getattr(current, name)
    return default if current is None else current


def encode_body(value: Any) -> bytes:
    """Serialize a request message or field to its JSON body."""
    if value is None:
        return b"{}"
    if isinstance(value, BaseModel):
        return value.model_dump_json(by_alias=True, exclude_defaults=True).encode("utf-8")
    return pydantic_core.to_json(value, by_alias=True, bytes_mode="base64")


class RestTransport:
    """Sends transcoded requests to one endpoint over a shared ``httpx.Client``.

    Calls may run concurrently; :meth:`close` must not race with them.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        http_client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
        client_info: Optional[str] = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self._owns_client = http_client is None
        if http_client is None:
            http_client = httpx.Client(timeout=timeout if timeout is not None else DEFAULT_TIMEOUT)
        self._client = http_client
        self._client_info = client_info or default_client_info()

    def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            self._client.close()

    def build_headers(self, metadata: Sequence[tuple[str, str]] = ()) -> httpx.Headers:
        """Merge client identity, content type and caller metadata."""
        return httpx.Headers(
            [
                (CLIENT_INFO_HEADER, self._client_info),
                ("Content-Type", "application/json"),
                *metadata,
            ]
        )

    def invoke(
        self,
        verb: str,
        path: str,
        *,
        params: Sequence[tuple[str, str]] = (),
        body: Optional[bytes] = None,
        metadata: Sequence[tuple[str, str]] = (),
        cancel: Optional[threading.Event] = None,
        retry: Optional[RetryWrapper] = None,
    ) -> httpx.Response:
        """Perform one round trip and return the successful response.

        Raises:
            CancelledError: ``cancel`` was set before the request was sent.
            TransportError: The request could not be completed.
            APIError: The service answered with a non-success status.
        """
        url = self.endpoint + path
        headers = self.build_headers(metadata)
        query = list(params) or None

        def send() -> httpx.Response:
            check_cancel(cancel)
            logger.debug("%s %s params=%r", verb, url, query)
            try:
                response = self._client.request(
                    verb, url, params=query, content=body, headers=headers
                )
            except httpx.HTTPError as exc:
                raise TransportError(f"{verb} {url} failed: {exc}") from exc
            if response.is_error:
                raise APIError.from_response(response)
            return response

        if retry is None:
            return send()
        return retry(send)
