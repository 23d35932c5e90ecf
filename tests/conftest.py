from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Callable, Iterator
from datetime import UTC, datetime
from typing import Any

import pytest
import pytest_asyncio
from apiprobe.config import get_settings
from apiprobe.models import RequestLogRecord
from fakeredis.aioredis import FakeRedis


def utc_dt(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path) -> Iterator[None]:
    for key in (
        "APIPROBE_RECORD_STORE",
        "APIPROBE_REDIS_URL",
        "APIPROBE_MOCK_STORE_PATH",
        "APIPROBE_REQUEST_TIMEOUT_SECONDS",
        "APIPROBE_TOP_ENDPOINTS_LIMIT",
        "APIPROBE_SECRET",
        "APIPROBE_LOG_FORMAT",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def fake_redis() -> AsyncIterator[FakeRedis]:
    client = FakeRedis(decode_responses=True)
    try:
        yield client
    finally:
        await client.aclose()


@pytest.fixture
def make_record() -> Callable[..., RequestLogRecord]:
    def _make(**overrides: Any) -> RequestLogRecord:
        payload: dict[str, Any] = {
            "id": uuid.uuid4().hex,
            "subscription_id": "sub_1",
            "endpoint_path": "/users",
            "method": "GET",
            "timestamp": utc_dt(2026, 3, 1, 12),
            "status_code": 200,
            "response_time_ms": 100,
        }
        payload.update(overrides)
        return RequestLogRecord(**payload)

    return _make
