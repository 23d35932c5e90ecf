"""Usage analytics over request-log records.

Everything here is a pure function of the records handed in: nothing is
cached or persisted, and the input collection is never mutated. Calendar
dates are UTC dates.
"""

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

from apiprobe.errors import ValidationError
from apiprobe.models import (
    AnalyticsSummary,
    DailyUsage,
    EndpointUsage,
    RequestLogRecord,
    StatusBand,
    StatusFilter,
    TimeRange,
)
from apiprobe.shared_utils.time_utils import as_utc_aware, utc_now

OTHERS_ENDPOINT = "Others"
TOP_ENDPOINTS_LIMIT = 5

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

_RANGE_SPANS: dict[TimeRange, timedelta] = {
    TimeRange.LAST_24H: timedelta(hours=24),
    TimeRange.LAST_7D: timedelta(days=7),
    TimeRange.LAST_30D: timedelta(days=30),
}


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive analytics window."""

    start: datetime
    end: datetime

    def contains(self, value: datetime) -> bool:
        return self.start <= value <= self.end


def parse_time_range(selector: str | TimeRange) -> TimeRange:
    try:
        return TimeRange(selector)
    except ValueError as exc:
        raise ValidationError(f"Unknown time range: {selector!r}") from exc


def resolve_time_range(
    selector: str | TimeRange, now: datetime | None = None
) -> TimeWindow:
    """Turn a preset into a concrete window ending at ``now``."""
    end = as_utc_aware(now) or utc_now()
    time_range = parse_time_range(selector)
    if time_range == TimeRange.ALL_TIME:
        return TimeWindow(start=_EPOCH, end=end)
    return TimeWindow(start=end - _RANGE_SPANS[time_range], end=end)


def classify_status(status_code: int | None) -> StatusBand:
    """Band a status code; missing and 0 are transport errors."""
    if not status_code:
        return StatusBand.ERROR
    if 200 <= status_code < 300:
        return StatusBand.SUCCESS
    if 300 <= status_code < 400:
        return StatusBand.REDIRECT
    if 400 <= status_code < 500:
        return StatusBand.CLIENT_ERROR
    if 500 <= status_code < 600:
        return StatusBand.SERVER_ERROR
    return StatusBand.ERROR


def endpoint_key(endpoint_path: str) -> str:
    """Group key for an endpoint: the path without its query string."""
    return endpoint_path.split("?", 1)[0] or "/"


def rank_endpoints(
    records: Iterable[RequestLogRecord], limit: int = TOP_ENDPOINTS_LIMIT
) -> list[EndpointUsage]:
    """Top ``limit`` endpoints by count plus an ``Others`` overflow entry.

    Ties keep first-seen order.
    """
    counts: Counter[str] = Counter()
    for record in records:
        counts[endpoint_key(record.endpoint_path)] += 1

    # Counter preserves first-seen order and sorted() is stable.
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    top = [EndpointUsage(endpoint=name, count=count) for name, count in ranked[:limit]]
    overflow = sum(count for _, count in ranked[limit:])
    if len(ranked) > limit:
        top.append(EndpointUsage(endpoint=OTHERS_ENDPOINT, count=overflow))
    return top


def daily_usage(records: Iterable[RequestLogRecord]) -> list[DailyUsage]:
    counts: Counter[date] = Counter(
        record.timestamp.astimezone(UTC).date() for record in records
    )
    return [DailyUsage(date=day, count=counts[day]) for day in sorted(counts)]


def summarize(
    records: Iterable[RequestLogRecord],
    window_start: datetime,
    window_end: datetime,
    *,
    top_endpoints: int = TOP_ENDPOINTS_LIMIT,
) -> AnalyticsSummary:
    """Aggregate the records whose timestamp falls in ``[window_start, window_end]``.

    Raises:
        ValidationError: ``window_start`` is after ``window_end``.
    """
    start = as_utc_aware(window_start)
    end = as_utc_aware(window_end)
    if start is None or end is None:
        raise ValidationError("Analytics window needs both a start and an end")
    if start > end:
        raise ValidationError(
            f"Analytics window start {start.isoformat()} is after end {end.isoformat()}"
        )

    window = TimeWindow(start=start, end=end)
    filtered = [record for record in records if window.contains(record.timestamp)]
    total = len(filtered)
    if total == 0:
        return AnalyticsSummary(window_start=start, window_end=end)

    bands: Counter[StatusBand] = Counter(
        classify_status(record.status_code) for record in filtered
    )
    methods: Counter[str] = Counter(record.method for record in filtered)
    total_latency = sum(record.response_time_ms or 0 for record in filtered)

    return AnalyticsSummary(
        window_start=start,
        window_end=end,
        total_requests=total,
        success_rate=round(bands[StatusBand.SUCCESS] / total * 100, 2),
        avg_response_time_ms=round(total_latency / total, 2),
        daily_usage=daily_usage(filtered),
        method_counts=dict(methods),
        status_bands=dict(bands),
        top_endpoints=rank_endpoints(filtered, top_endpoints),
    )


def compute_analytics(
    records: Iterable[RequestLogRecord],
    selector: str | TimeRange,
    *,
    now: datetime | None = None,
    top_endpoints: int = TOP_ENDPOINTS_LIMIT,
) -> AnalyticsSummary:
    """Summarize records over a preset window ending now."""
    window = resolve_time_range(selector, now)
    return summarize(records, window.start, window.end, top_endpoints=top_endpoints)


def parse_status_filter(value: str | StatusFilter) -> StatusFilter:
    try:
        return StatusFilter(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(f"Unknown status filter: {value!r}") from exc


def matches_status_filter(status_code: int | None, status_filter: StatusFilter) -> bool:
    band = classify_status(status_code)
    if status_filter == StatusFilter.SUCCESS:
        return band == StatusBand.SUCCESS
    if status_filter == StatusFilter.WARNING:
        return band == StatusBand.REDIRECT
    if status_filter == StatusFilter.ERROR:
        return band in (
            StatusBand.CLIENT_ERROR,
            StatusBand.SERVER_ERROR,
            StatusBand.ERROR,
        )
    return True


def filter_request_logs(
    records: Sequence[RequestLogRecord],
    *,
    status_filter: str | StatusFilter = StatusFilter.ALL,
    method: str | None = None,
    limit: int = 50,
) -> list[RequestLogRecord]:
    """Newest-first slice of records for the request-log view."""
    wanted_status = parse_status_filter(status_filter)
    wanted_method = None if method in (None, "", "all") else method
    matched = [
        record
        for record in records
        if matches_status_filter(record.status_code, wanted_status)
        and (wanted_method is None or record.method == wanted_method)
    ]
    matched.sort(key=lambda record: record.timestamp, reverse=True)
    return matched[: max(0, limit)]


__all__ = [
    "OTHERS_ENDPOINT",
    "TOP_ENDPOINTS_LIMIT",
    "TimeWindow",
    "classify_status",
    "compute_analytics",
    "daily_usage",
    "endpoint_key",
    "filter_request_logs",
    "matches_status_filter",
    "parse_status_filter",
    "parse_time_range",
    "rank_endpoints",
    "resolve_time_range",
    "summarize",
]
