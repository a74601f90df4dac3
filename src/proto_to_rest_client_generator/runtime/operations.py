"""Handles for long-running and custom polling operations."""

from __future__ import annotations

import abc
import logging
import threading
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

from .errors import CancelledError, ClientError, OperationError
from .transport import check_cancel
from .wellknown import Empty, Operation

logger = logging.getLogger(__name__)

_O = TypeVar("_O")
_R = TypeVar("_R")


@dataclass(frozen=True)
class Backoff:
    """Exponential delay schedule between polls, in seconds."""

    initial: float = 1.0
    multiplier: float = 2.0
    maximum: float = 60.0

    def delays(self) -> Iterator[float]:
        delay = min(self.initial, self.maximum)
        while True:
            yield delay
            delay = min(delay * self.multiplier, self.maximum)


def pause(delay: float, cancel: Optional[threading.Event] = None) -> None:
    """Sleep for ``delay`` seconds, waking early with :class:`CancelledError` on cancel."""
    if cancel is None:
        time.sleep(delay)
        return
    if cancel.wait(delay):
        raise CancelledError("cancelled while waiting for the operation")


class OperationHandle(abc.ABC, Generic[_O, _R]):
    """A started operation that can be polled until it completes."""

    def __init__(self, operation: _O, *, poll: Callable[[], _O]) -> None:
        self._operation = operation
        self._poll = poll

    @property
    def operation(self) -> _O:
        """The most recently fetched state of the operation."""
        return self._operation

    @property
    @abc.abstractmethod
    def name(self) -> str: ...

    @property
    @abc.abstractmethod
    def done(self) -> bool: ...

    @abc.abstractmethod
    def result(self) -> _R:
        """Return the final result of a completed operation."""

    def poll(self) -> bool:
        """Fetch the latest state once and report whether the operation is done."""
        self._operation = self._poll()
        return self.done

    def wait(
        self,
        cancel: Optional[threading.Event] = None,
        backoff: Optional[Backoff] = None,
    ) -> _R:
        """Poll until the operation completes and return its result.

        Raises:
            CancelledError: ``cancel`` was set between polls.
            OperationError: The operation completed with an error.
        """
        if self.done:
            return self.result()
        delays = (backoff or Backoff()).delays()
        while True:
            check_cancel(cancel)
            if self.poll():
                return self.result()
            check_cancel(cancel)
            delay = next(delays)
            logger.debug("Operation %s not done; polling again in %.1fs", self.name, delay)
            pause(delay, cancel)


class LongRunningOperation(OperationHandle[Operation, Any]):
    """A ``google.longrunning.Operation`` polled through the Operations surface."""

    def __init__(
        self,
        operation: Operation,
        *,
        poll: Callable[[], Operation],
        result_type: Optional[type[BaseModel]] = None,
        metadata_type: Optional[type[BaseModel]] = None,
    ) -> None:
        super().__init__(operation, poll=poll)
        self._result_type = result_type
        self._metadata_type = metadata_type

    @property
    def name(self) -> str:
        return self._operation.name

    @property
    def done(self) -> bool:
        return self._operation.done

    def metadata(self) -> Any:
        """Return the operation metadata, unpacked when its type is known."""
        packed = self._operation.metadata
        if packed is None or self._metadata_type is None:
            return packed
        return packed.unpack(self._metadata_type)

    def result(self) -> Any:
        if not self._operation.done:
            raise ClientError(f"operation {self.name!r} is not done")
        error = self._operation.error
        if error is not None:
            raise OperationError(error.code, error.message)
        packed = self._operation.response
        if self._result_type is None:
            return packed
        if packed is None:
            return self._result_type()
        if self._result_type is Empty:
            return Empty()
        return packed.unpack(self._result_type)


class CustomOperation(OperationHandle[_O, _O]):
    """A service-specific operation message polled through a paired service.

    Field arguments name attributes of the operation message. Without a
    status field the operation counts as done as soon as it is returned.
    """

    def __init__(
        self,
        operation: _O,
        *,
        poll: Callable[[], _O],
        name_field: str = "name",
        status_field: Optional[str] = None,
        done_value: Any = "DONE",
        error_code_field: Optional[str] = None,
        error_message_field: Optional[str] = None,
    ) -> None:
        super().__init__(operation, poll=poll)
        self._name_field = name_field
        self._status_field = status_field
        self._done_value = done_value
        self._error_code_field = error_code_field
        self._error_message_field = error_message_field

    @property
    def name(self) -> str:
        return str(getattr(self._operation, self._name_field))

    @property
    def done(self) -> bool:
        if self._status_field is None:
            return True
        return getattr(self._operation, self._status_field) == self._done_value

    def result(self) -> _O:
        if not self.done:
            raise ClientError(f"operation {self.name!r} is not done")
        code = getattr(self._operation, self._error_code_field) if self._error_code_field else None
        if code:
            message = (
                getattr(self._operation, self._error_message_field)
                if self._error_message_field
                else ""
            )
            raise OperationError(code, str(message or ""))
        return self._operation
