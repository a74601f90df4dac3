"""Errors raised by generated REST clients."""

from __future__ import annotations

from typing import Any, Optional

import httpx


class ClientError(RuntimeError):
    """Base class for every error raised by a generated client."""


class APIError(ClientError):
    """The service answered with a non-success HTTP status.

    ``status`` and ``details`` come from the JSON error envelope
    (``{"error": {"code", "message", "status", "details"}}``) when the
    response carries one.
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        status: Optional[str] = None,
        details: Optional[list[Any]] = None,
        response: Optional[httpx.Response] = None,
    ) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.status = status
        self.details = details or []
        self.response = response

    @classmethod
    def from_response(cls, response: httpx.Response) -> APIError:
        """Build an error from a failed response, parsing the error envelope if present."""
        message = response.reason_phrase or "request failed"
        status: Optional[str] = None
        details: Optional[list[Any]] = None
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
            envelope = payload["error"]
            message = str(envelope.get("message") or message)
            status = envelope.get("status")
            raw_details = envelope.get("details")
            if isinstance(raw_details, list):
                details = raw_details
        elif response.text:
            message = response.text
        return cls(response.status_code, message, status=status, details=details, response=response)


class TransportError(ClientError):
    """The request could not be sent or the response could not be read."""


class DecodeError(ClientError):
    """A response body could not be decoded into the expected message."""


class OperationError(ClientError):
    """A completed operation reported failure."""

    def __init__(self, code: Optional[int], message: str) -> None:
        super().__init__(f"operation failed with code {code}: {message}")
        self.code = code
        self.message = message


class CancelledError(ClientError):
    """The caller's cancellation signal was set."""


class UnsupportedTransportError(ClientError):
    """The method cannot be called over the REST transport."""
