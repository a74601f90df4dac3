"""Unit tests for operation handles and polling."""

from __future__ import annotations

import threading
from typing import Optional

import pytest
from pydantic import Field

from proto_to_rest_client_generator.runtime import (
    APIError,
    Backoff,
    CancelledError,
    ClientError,
    CustomOperation,
    Empty,
    LongRunningOperation,
    MessageModel,
    Operation,
    OperationError,
)
from proto_to_rest_client_generator.runtime import operations as operations_module


class RestockResponse(MessageModel):
    restocked: int = Field(0, alias="restocked")


class RestockMetadata(MessageModel):
    progress_percent: int = Field(0, alias="progressPercent")


class ZoneOperation(MessageModel):
    name: str = Field("", alias="name")
    status: str = Field("UNDEFINED_STATUS", alias="status")
    http_error_status_code: int = Field(0, alias="httpErrorStatusCode")
    http_error_message: str = Field("", alias="httpErrorMessage")


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []

    def fake_pause(delay: float, cancel: Optional[threading.Event] = None) -> None:
        recorded.append(delay)

    monkeypatch.setattr(operations_module, "pause", fake_pause)
    return recorded


def _operation(**values: object) -> Operation:
    return Operation.model_validate({"name": "operations/restock-1", **values})


def _poller(*states):
    remaining = list(states)
    calls: list[int] = []

    def poll():
        calls.append(1)
        state = remaining.pop(0)
        if isinstance(state, Exception):
            raise state
        return state

    return poll, calls


def test_wait_polls_with_backoff_until_done(sleeps: list[float]) -> None:
    done = _operation(
        done=True,
        response={"@type": "type.googleapis.com/animalia.RestockResponse", "restocked": 3},
    )
    poll, calls = _poller(_operation(), _operation(), done)
    handle = LongRunningOperation(_operation(), poll=poll, result_type=RestockResponse)

    result = handle.wait()

    assert result == RestockResponse(restocked=3)
    assert len(calls) == 3
    assert sleeps == [1.0, 2.0]
    assert handle.operation is done


def test_poll_error_stops_waiting(sleeps: list[float]) -> None:
    poll, calls = _poller(_operation(), APIError(503, "unavailable"), _operation(done=True))
    handle = LongRunningOperation(_operation(), poll=poll)

    with pytest.raises(APIError, match="HTTP 503"):
        handle.wait()

    assert len(calls) == 2
    assert sleeps == [1.0]


def test_cancel_before_polling(sleeps: list[float]) -> None:
    poll, calls = _poller(_operation(done=True))
    cancel = threading.Event()
    cancel.set()
    handle = LongRunningOperation(_operation(), poll=poll)

    with pytest.raises(CancelledError):
        handle.wait(cancel=cancel)

    assert calls == []
    assert sleeps == []


def test_real_pause_wakes_on_cancel() -> None:
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(CancelledError):
        operations_module.pause(30.0, cancel)


def test_failed_operation_raises_operation_error(sleeps: list[float]) -> None:
    failed = _operation(done=True, error={"code": 5, "message": "tank not found"})
    poll, _ = _poller(failed)
    handle = LongRunningOperation(_operation(), poll=poll, result_type=RestockResponse)

    with pytest.raises(OperationError) as excinfo:
        handle.wait()

    assert excinfo.value.code == 5
    assert excinfo.value.message == "tank not found"


def test_already_done_operation_is_not_polled(sleeps: list[float]) -> None:
    poll, calls = _poller()
    handle = LongRunningOperation(_operation(done=True), poll=poll, result_type=Empty)

    assert handle.wait() == Empty()
    assert calls == []
    assert sleeps == []


def test_result_before_done_is_an_error() -> None:
    handle = LongRunningOperation(_operation(), poll=lambda: _operation())

    with pytest.raises(ClientError, match="is not done"):
        handle.result()


def test_metadata_is_unpacked() -> None:
    operation = _operation(
        metadata={"@type": "type.googleapis.com/animalia.RestockMetadata", "progressPercent": 40}
    )
    handle = LongRunningOperation(
        operation, poll=lambda: operation, metadata_type=RestockMetadata
    )

    assert handle.metadata() == RestockMetadata(progress_percent=40)
    assert handle.name == "operations/restock-1"


def test_custom_operation_polls_until_status_is_done(sleeps: list[float]) -> None:
    running = ZoneOperation(name="op-1", status="RUNNING")
    finished = ZoneOperation(name="op-1", status="DONE")
    poll, calls = _poller(running, finished)
    handle = CustomOperation(
        ZoneOperation(name="op-1", status="PENDING"),
        poll=poll,
        status_field="status",
        error_code_field="http_error_status_code",
        error_message_field="http_error_message",
    )

    assert handle.wait() is finished
    assert len(calls) == 2
    assert sleeps == [1.0]


def test_custom_operation_reports_http_error() -> None:
    failed = ZoneOperation(
        name="op-1", status="DONE", http_error_status_code=404, http_error_message="no zone"
    )
    handle = CustomOperation(
        failed,
        poll=lambda: failed,
        status_field="status",
        error_code_field="http_error_status_code",
        error_message_field="http_error_message",
    )

    with pytest.raises(OperationError, match="code 404: no zone"):
        handle.result()


def test_custom_operation_without_status_is_done_immediately() -> None:
    operation = ZoneOperation(name="op-1")
    handle = CustomOperation(operation, poll=lambda: operation)

    assert handle.done
    assert handle.name == "op-1"
    assert handle.wait() is operation


def test_backoff_delays_are_capped() -> None:
    delays = Backoff(initial=1.0, multiplier=2.0, maximum=3.0).delays()

    assert [next(delays) for _ in range(4)] == [1.0, 2.0, 3.0, 3.0]
