from __future__ import annotations

import asyncio
from collections.abc import Collection, Sequence
from datetime import datetime

import pytest
from apiprobe.builder import build_from_description, build_request_spec
from apiprobe.emitter import LogEmitter, build_record
from apiprobe.errors import PersistenceWarning
from apiprobe.models import (
    HttpMethod,
    JsonBody,
    Outcome,
    RequestDescription,
    RequestLogRecord,
    Subscription,
)
from apiprobe.store.base import RecordStore
from apiprobe.store.memory import MemoryRecordStore

from conftest import utc_dt


class _BrokenStore(RecordStore):
    async def insert_request_log(self, record: RequestLogRecord) -> str:
        raise ConnectionError("store unavailable")

    async def list_request_logs(
        self,
        subscription_ids: Collection[str],
        since: datetime | None = None,
    ) -> Sequence[RequestLogRecord]:
        return []

    async def list_subscriptions(self, api_id: str) -> Sequence[Subscription]:
        return []

    async def add_subscription(self, subscription: Subscription) -> None:
        return None


def _outcome(status: int = 200) -> Outcome:
    return Outcome(
        status=status,
        status_text="OK",
        response_headers={"Content-Type": "application/json"},
        response_body=JsonBody(value={"id": 1}),
        elapsed_ms=42,
    )


def test_build_record_keeps_description_as_entered() -> None:
    description = RequestDescription(
        base_url="https://api.example.com",
        path="/orders",
        method=HttpMethod.POST,
        query_params=[("page", "2"), ("", "ignored")],
        headers=[("X-Trace", "t-1")],
        body='{ "sku": "A1" }',
    )
    spec = build_from_description(description)

    record = build_record(
        "sub_1",
        spec,
        _outcome(201),
        description=description,
        timestamp=utc_dt(2026, 3, 1, 9),
    )

    assert record.subscription_id == "sub_1"
    assert record.endpoint_path == "/orders"
    assert record.method == "POST"
    assert record.request_query == {"page": "2"}
    assert record.request_body == '{ "sku": "A1" }'
    assert record.request_headers["X-Trace"] == "t-1"
    assert record.timestamp == utc_dt(2026, 3, 1, 9)
    assert record.status_code == 201
    assert record.response_time_ms == 42
    assert record.response_body == JsonBody(value={"id": 1})
    assert record.error is None
    assert record.id


def test_build_record_recovers_path_and_query_from_url() -> None:
    spec = build_request_spec(
        "https://api.example.com", "users", "GET", query_params=[("q", "a b")]
    )

    record = build_record("sub_1", spec, _outcome())

    assert record.endpoint_path == "/users"
    assert record.request_query == {"q": "a b"}
    assert record.request_body is None
    assert record.timestamp.tzinfo is not None


def test_build_record_drops_body_for_bodyless_methods() -> None:
    description = RequestDescription(
        base_url="https://api.example.com",
        path="/users",
        method=HttpMethod.GET,
        body="ignored",
    )

    record = build_record(
        "sub_1", build_from_description(description), _outcome(), description=description
    )

    assert record.request_body is None


def test_build_record_transport_failure() -> None:
    spec = build_request_spec("https://api.example.com", "/users", "GET")
    outcome = Outcome(status=0, elapsed_ms=10, error_message="Request timed out after 10s")

    record = build_record("sub_1", spec, outcome)

    assert record.status_code == 0
    assert record.response_body is None
    assert record.error == "Request timed out after 10s"


def test_build_record_ids_are_unique() -> None:
    spec = build_request_spec("https://api.example.com", "/users", "GET")
    ids = {build_record("sub_1", spec, _outcome()).id for _ in range(20)}
    assert len(ids) == 20


@pytest.mark.asyncio
async def test_emit_persists_record() -> None:
    store = MemoryRecordStore()
    emitter = LogEmitter(store)
    spec = build_request_spec("https://api.example.com", "/users", "GET")

    result = await emitter.emit("sub_1", spec, _outcome())

    assert result.persisted
    assert result.warning is None
    stored = await store.list_request_logs({"sub_1"})
    assert [record.id for record in stored] == [result.record_id]


@pytest.mark.asyncio
async def test_emit_turns_store_failure_into_warning(caplog) -> None:
    emitter = LogEmitter(_BrokenStore())
    spec = build_request_spec("https://api.example.com", "/users", "GET")

    with caplog.at_level("WARNING", logger="apiprobe.emitter"):
        result = await emitter.emit("sub_9", spec, _outcome())

    assert not result.persisted
    assert isinstance(result.warning, PersistenceWarning)
    assert result.warning.subscription_id == "sub_9"
    assert "store unavailable" in str(result.warning)
    assert "sub_9" in caplog.text


@pytest.mark.asyncio
async def test_schedule_and_drain() -> None:
    store = MemoryRecordStore()
    emitter = LogEmitter(store)
    spec = build_request_spec("https://api.example.com", "/users", "GET")

    tasks = [emitter.schedule("sub_1", spec, _outcome()) for _ in range(3)]
    assert emitter.pending == 3

    results = await emitter.drain()
    await asyncio.sleep(0)

    assert len(results) == 3
    assert all(result.persisted for result in results)
    assert all(task.done() for task in tasks)
    assert emitter.pending == 0
    assert len(await store.list_request_logs({"sub_1"})) == 3


@pytest.mark.asyncio
async def test_drain_with_nothing_pending() -> None:
    assert await LogEmitter(MemoryRecordStore()).drain() == []
