"""Caller-facing facade: execute probes and compute analytics."""

import asyncio
import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Self

from apiprobe.analytics import (
    compute_analytics,
    filter_request_logs,
    resolve_time_range,
    summarize,
)
from apiprobe.auth import apply_auth, redact_record
from apiprobe.builder import build_from_description
from apiprobe.config import get_settings
from apiprobe.emitter import LogEmitter
from apiprobe.errors import PersistenceWarning
from apiprobe.executor import RequestExecutor
from apiprobe.logging import execution_id_var
from apiprobe.models import (
    AnalyticsSummary,
    AuthConfig,
    Outcome,
    RequestDescription,
    RequestLogRecord,
    RequestSpec,
    StatusFilter,
    TimeRange,
)
from apiprobe.store.base import RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionResult:
    """What the caller gets back from one probe.

    ``outcome`` is always present. ``persistence_warning`` is set instead of
    ``record_id`` when the log write failed.
    """

    spec: RequestSpec
    outcome: Outcome
    record_id: str | None = None
    persistence_warning: PersistenceWarning | None = None


class ProbeService:
    """Wires builder, auth, executor, emitter and analytics over one record store."""

    def __init__(
        self,
        store: RecordStore,
        *,
        executor: RequestExecutor | None = None,
    ) -> None:
        self._store = store
        self._executor = executor or RequestExecutor()
        self._emitter = LogEmitter(store)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: Any,
    ) -> None:
        await self.close()

    @property
    def store(self) -> RecordStore:
        return self._store

    async def close(self) -> None:
        await self._emitter.drain()
        await self._executor.close()
        await self._store.close()

    async def execute(
        self,
        description: RequestDescription,
        auth: AuthConfig | None = None,
        *,
        subscription_id: str | None = None,
        timeout: float | None = None,
        cancel: asyncio.Event | None = None,
    ) -> ExecutionResult:
        """Build, authenticate, send and (with a subscription) log one request.

        Raises:
            ValidationError: The description is malformed; nothing was sent.
        """
        token = execution_id_var.set(uuid.uuid4().hex)
        try:
            spec = apply_auth(build_from_description(description), auth)
            outcome = await self._executor.execute(spec, timeout=timeout, cancel=cancel)

            if subscription_id is None:
                return ExecutionResult(spec=spec, outcome=outcome)

            emitted = await self._emitter.emit(
                subscription_id, spec, outcome, description=description
            )
            return ExecutionResult(
                spec=spec,
                outcome=outcome,
                record_id=emitted.record_id,
                persistence_warning=emitted.warning,
            )
        finally:
            execution_id_var.reset(token)

    def compute_analytics(
        self,
        records: Iterable[RequestLogRecord],
        selector: str | TimeRange,
        *,
        now: datetime | None = None,
    ) -> AnalyticsSummary:
        return compute_analytics(
            records,
            selector,
            now=now,
            top_endpoints=get_settings().top_endpoints_limit,
        )

    async def _records_for_api(
        self, api_id: str, since: datetime | None = None
    ) -> list[RequestLogRecord]:
        subscriptions = await self._store.list_subscriptions(api_id)
        if not subscriptions:
            return []
        records = await self._store.list_request_logs(
            {sub.id for sub in subscriptions}, since
        )
        return list(records)

    async def api_analytics(
        self,
        api_id: str,
        selector: str | TimeRange = TimeRange.LAST_7D,
        *,
        now: datetime | None = None,
    ) -> AnalyticsSummary:
        """Analytics over every subscription of one tested API."""
        window = resolve_time_range(selector, now)
        records = await self._records_for_api(api_id, window.start)
        logger.debug("Summarizing %d records for api %s", len(records), api_id)
        return summarize(
            records,
            window.start,
            window.end,
            top_endpoints=get_settings().top_endpoints_limit,
        )

    async def recent_requests(
        self,
        api_id: str,
        *,
        status_filter: str | StatusFilter = StatusFilter.ALL,
        method: str | None = None,
        limit: int | None = None,
        redact: bool = True,
    ) -> list[RequestLogRecord]:
        """Newest-first request logs for one tested API."""
        records = await self._records_for_api(api_id)
        selected = filter_request_logs(
            records,
            status_filter=status_filter,
            method=method,
            limit=limit if limit is not None else get_settings().recent_requests_limit,
        )
        if not redact:
            return selected
        return [redact_record(record) for record in selected]


__all__ = [
    "ExecutionResult",
    "ProbeService",
]
