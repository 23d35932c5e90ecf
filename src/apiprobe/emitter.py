"""Log emitter - turns an executed request into one persisted RequestLogRecord."""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import parse_qsl, urlsplit

from apiprobe.errors import PersistenceWarning
from apiprobe.models import (
    Outcome,
    RequestDescription,
    RequestLogRecord,
    RequestSpec,
)
from apiprobe.shared_utils.time_utils import as_utc_aware, utc_now
from apiprobe.store.base import RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmitResult:
    """Outcome of one log write: the new record id or a warning, never both."""

    record_id: str | None = None
    warning: PersistenceWarning | None = None

    @property
    def persisted(self) -> bool:
        return self.record_id is not None


def build_record(
    subscription_id: str,
    spec: RequestSpec,
    outcome: Outcome,
    *,
    description: RequestDescription | None = None,
    timestamp: datetime | None = None,
) -> RequestLogRecord:
    """Assemble the audit record for one attempt.

    With a ``description`` the record keeps the path and query exactly as the
    caller entered them; otherwise both are recovered from the resolved URL.
    """
    if description is not None:
        endpoint_path = description.path
        request_query = {key: value for key, value in description.query_params if key}
        request_body = description.body or None
    else:
        parts = urlsplit(spec.url)
        endpoint_path = parts.path or "/"
        request_query = dict(parse_qsl(parts.query, keep_blank_values=True))
        request_body = None

    if not spec.method.carries_body:
        request_body = None

    return RequestLogRecord(
        id=uuid.uuid4().hex,
        subscription_id=subscription_id,
        endpoint_path=endpoint_path,
        method=spec.method.value,
        request_headers=dict(spec.headers),
        request_query=request_query,
        request_body=request_body,
        timestamp=as_utc_aware(timestamp) or utc_now(),
        status_code=outcome.status,
        response_time_ms=outcome.elapsed_ms,
        response_headers=dict(outcome.response_headers),
        response_body=outcome.response_body,
        error=outcome.error_message,
    )


class LogEmitter:
    """Writes request-log records; store failures become warnings, never errors."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._pending: set[asyncio.Task[EmitResult]] = set()

    async def emit(
        self,
        subscription_id: str,
        spec: RequestSpec,
        outcome: Outcome,
        *,
        description: RequestDescription | None = None,
        timestamp: datetime | None = None,
    ) -> EmitResult:
        record = build_record(
            subscription_id,
            spec,
            outcome,
            description=description,
            timestamp=timestamp,
        )
        try:
            record_id = await self._store.insert_request_log(record)
        except Exception as exc:
            message = f"Failed to persist request log: {exc}"
            logger.warning(
                "Request log for subscription %s not persisted: %s",
                subscription_id,
                exc,
            )
            return EmitResult(
                warning=PersistenceWarning(message, subscription_id=subscription_id)
            )

        logger.debug("Persisted request log %s", record_id)
        return EmitResult(record_id=record_id)

    def schedule(
        self,
        subscription_id: str,
        spec: RequestSpec,
        outcome: Outcome,
        *,
        description: RequestDescription | None = None,
        timestamp: datetime | None = None,
    ) -> asyncio.Task[EmitResult]:
        """Fire-and-forget variant of ``emit``; the task result carries any warning."""
        task = asyncio.create_task(
            self.emit(
                subscription_id,
                spec,
                outcome,
                description=description,
                timestamp=timestamp,
            )
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> list[EmitResult]:
        """Wait for every scheduled write to finish."""
        if not self._pending:
            return []
        return list(await asyncio.gather(*self._pending))


__all__ = [
    "EmitResult",
    "LogEmitter",
    "build_record",
]
