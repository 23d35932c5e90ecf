"""Redis-backed record store."""

import logging
from collections.abc import Collection, Sequence
from datetime import datetime

import redis.asyncio as redis
from pydantic import ValidationError

from apiprobe.models import RequestLogRecord, Subscription
from apiprobe.shared_utils.time_utils import as_utc_aware
from apiprobe.store.base import RecordStore
from apiprobe.store.keys import (
    api_subscriptions_key,
    request_log_key,
    subscription_key,
    subscription_logs_key,
)

logger = logging.getLogger(__name__)


def _score(value: datetime) -> float:
    return float(int(value.timestamp() * 1000))


def _decode_text(value: object) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        try:
            return value.decode()
        except UnicodeDecodeError:
            return None
    return None


class RedisRecordStore(RecordStore):
    """Record store on a shared Redis instance."""

    def __init__(self, redis_client: redis.Redis) -> None:
        self._redis = redis_client

    @classmethod
    def from_url(cls, url: str) -> "RedisRecordStore":
        return cls(redis.from_url(url, decode_responses=True))

    async def insert_request_log(self, record: RequestLogRecord) -> str:
        key = request_log_key(record.id)
        if await self._redis.exists(key):
            raise ValueError(f"Request log {record.id} already exists")

        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(key, record.model_dump_json(), nx=True)
            pipe.zadd(
                subscription_logs_key(record.subscription_id),
                {record.id: _score(record.timestamp)},
                nx=True,
            )
            created, _ = await pipe.execute()
        # A concurrent writer won the id between the check and the transaction.
        if not created:
            raise ValueError(f"Request log {record.id} already exists")
        return record.id

    async def list_request_logs(
        self,
        subscription_ids: Collection[str],
        since: datetime | None = None,
    ) -> Sequence[RequestLogRecord]:
        lower = as_utc_aware(since)
        min_score: float | str = _score(lower) if lower is not None else "-inf"

        record_ids: list[str] = []
        for subscription_id in sorted(set(subscription_ids)):
            members = await self._redis.zrangebyscore(
                subscription_logs_key(subscription_id), min_score, "+inf"
            )
            for member in members:
                value = _decode_text(member)
                if value:
                    record_ids.append(value)
        if not record_ids:
            return []

        payloads = await self._redis.mget([request_log_key(rid) for rid in record_ids])
        records: list[RequestLogRecord] = []
        for record_id, payload in zip(record_ids, payloads, strict=True):
            text = _decode_text(payload)
            if text is None:
                logger.warning("Request log %s is indexed but missing", record_id)
                continue
            try:
                record = RequestLogRecord.model_validate_json(text)
            except ValidationError:
                logger.warning("Skipping unreadable request log %s", record_id)
                continue
            # Scores are truncated to ms; re-check the exact bound.
            if lower is not None and record.timestamp < lower:
                continue
            records.append(record)

        return sorted(records, key=lambda record: record.timestamp)

    async def list_subscriptions(self, api_id: str) -> Sequence[Subscription]:
        raw_ids = await self._redis.smembers(api_subscriptions_key(api_id))
        ids = sorted(value for value in map(_decode_text, raw_ids) if value)
        if not ids:
            return []

        payloads = await self._redis.mget([subscription_key(sid) for sid in ids])
        subscriptions: list[Subscription] = []
        for payload in payloads:
            text = _decode_text(payload)
            if text is None:
                continue
            subscriptions.append(Subscription.model_validate_json(text))
        return subscriptions

    async def add_subscription(self, subscription: Subscription) -> None:
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.set(subscription_key(subscription.id), subscription.model_dump_json())
            pipe.sadd(api_subscriptions_key(subscription.api_id), subscription.id)
            await pipe.execute()

    async def close(self) -> None:
        await self._redis.aclose()
