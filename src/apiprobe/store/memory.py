"""In-process record store, optionally mirrored to a JSON file.

Stands in for the managed store during local use and tests. When a path is
given the whole snapshot is loaded at construction and rewritten after every
write, so separate CLI invocations see each other's records.
"""

import logging
from collections.abc import Collection, Sequence
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from apiprobe.models import RequestLogRecord, Subscription
from apiprobe.shared_utils.time_utils import as_utc_aware
from apiprobe.store.base import RecordStore

logger = logging.getLogger(__name__)


class _Snapshot(BaseModel):
    """On-disk layout of the mock store."""

    subscriptions: list[Subscription] = Field(default_factory=list)
    request_logs: list[RequestLogRecord] = Field(default_factory=list)


class MemoryRecordStore(RecordStore):
    """Record store kept in memory."""

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else None
        self._records: list[RequestLogRecord] = []
        self._record_ids: set[str] = set()
        self._subscriptions: dict[str, Subscription] = {}
        if self._path is not None and self._path.exists():
            self._load()

    def _load(self) -> None:
        assert self._path is not None
        snapshot = _Snapshot.model_validate_json(self._path.read_text(encoding="utf-8"))
        self._subscriptions = {sub.id: sub for sub in snapshot.subscriptions}
        self._records = list(snapshot.request_logs)
        self._record_ids = {record.id for record in self._records}
        logger.debug(
            "Loaded %d records and %d subscriptions from %s",
            len(self._records),
            len(self._subscriptions),
            self._path,
        )

    def _save(self) -> None:
        if self._path is None:
            return
        snapshot = _Snapshot(
            subscriptions=list(self._subscriptions.values()),
            request_logs=self._records,
        )
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(snapshot.model_dump_json(), encoding="utf-8")

    async def insert_request_log(self, record: RequestLogRecord) -> str:
        if record.id in self._record_ids:
            raise ValueError(f"Request log {record.id} already exists")
        self._records.append(record)
        self._record_ids.add(record.id)
        self._save()
        return record.id

    async def list_request_logs(
        self,
        subscription_ids: Collection[str],
        since: datetime | None = None,
    ) -> Sequence[RequestLogRecord]:
        wanted = set(subscription_ids)
        lower = as_utc_aware(since)
        matched = [
            record
            for record in self._records
            if record.subscription_id in wanted
            and (lower is None or record.timestamp >= lower)
        ]
        # sorted() is stable, so equal timestamps keep insertion order.
        return sorted(matched, key=lambda record: record.timestamp)

    async def list_subscriptions(self, api_id: str) -> Sequence[Subscription]:
        return [sub for sub in self._subscriptions.values() if sub.api_id == api_id]

    async def add_subscription(self, subscription: Subscription) -> None:
        self._subscriptions[subscription.id] = subscription
        self._save()
