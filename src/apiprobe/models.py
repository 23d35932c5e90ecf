"""Request, outcome, log-record and analytics payloads."""

from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HttpMethod(StrEnum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"

    @property
    def carries_body(self) -> bool:
        return self in (HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH)


class AuthType(StrEnum):
    NONE = "none"
    API_KEY = "apiKey"
    BEARER = "bearer"


class AuthLocation(StrEnum):
    HEADER = "header"
    QUERY = "query"


class StatusBand(StrEnum):
    """Classification of a recorded status code (or its absence)."""

    SUCCESS = "Success"
    REDIRECT = "Redirect"
    CLIENT_ERROR = "ClientError"
    SERVER_ERROR = "ServerError"
    ERROR = "Error"

    @property
    def label(self) -> str:
        return _BAND_LABELS[self]


_BAND_LABELS = {
    StatusBand.SUCCESS: "Success (2xx)",
    StatusBand.REDIRECT: "Redirect (3xx)",
    StatusBand.CLIENT_ERROR: "Client Error (4xx)",
    StatusBand.SERVER_ERROR: "Server Error (5xx)",
    StatusBand.ERROR: "Error",
}


class TimeRange(StrEnum):
    """Analytics window presets, resolved against the current instant."""

    LAST_24H = "last24h"
    LAST_7D = "last7d"
    LAST_30D = "last30d"
    ALL_TIME = "allTime"

    @classmethod
    def _missing_(cls, value: object) -> "TimeRange | None":
        if isinstance(value, str):
            return _TIME_RANGE_ALIASES.get(value.strip().lower())
        return None


_TIME_RANGE_ALIASES = {
    "24h": TimeRange.LAST_24H,
    "7d": TimeRange.LAST_7D,
    "30d": TimeRange.LAST_30D,
    "all": TimeRange.ALL_TIME,
    "last24h": TimeRange.LAST_24H,
    "last7d": TimeRange.LAST_7D,
    "last30d": TimeRange.LAST_30D,
    "alltime": TimeRange.ALL_TIME,
}


class StatusFilter(StrEnum):
    """Request-log list filters."""

    ALL = "all"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class JsonBody(BaseModel):
    """Body that parsed as JSON."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["json"] = "json"
    value: Any = None


class TextBody(BaseModel):
    """Body kept verbatim as text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    value: str = ""


Body = Annotated[JsonBody | TextBody, Field(discriminator="kind")]


class AuthConfig(BaseModel):
    """How to authenticate against the API under test."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: AuthType = AuthType.NONE
    key_name: str = Field(default="X-API-Key", alias="keyName")
    location: AuthLocation = AuthLocation.HEADER
    secret: str = Field(default="", repr=False)


class RequestDescription(BaseModel):
    """Logical request as entered by a caller, before resolution."""

    base_url: str
    path: str = ""
    method: str = "GET"
    query_params: list[tuple[str, str]] = Field(default_factory=list)
    headers: list[tuple[str, str]] = Field(default_factory=list)
    body: str | None = None


class RequestSpec(BaseModel):
    """Fully resolved, ready-to-send HTTP request."""

    model_config = ConfigDict(frozen=True)

    method: HttpMethod
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Body | None = None


class Outcome(BaseModel):
    """Uniform success-or-failure result of executing a RequestSpec.

    ``status == 0`` means no response was received; ``error_message`` then
    holds the transport failure. HTTP error responses keep their real status
    and body and additionally carry an ``HTTP Error: ...`` message.
    """

    model_config = ConfigDict(frozen=True)

    status: int = Field(ge=0)
    status_text: str = ""
    response_headers: dict[str, str] = Field(default_factory=dict)
    response_body: Body | None = None
    elapsed_ms: int = Field(default=0, ge=0)
    error_message: str | None = None

    @property
    def is_transport_failure(self) -> bool:
        return self.status == 0

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class RequestLogRecord(BaseModel):
    """Immutable audit record of one executed or attempted request."""

    model_config = ConfigDict(frozen=True)

    id: str
    subscription_id: str
    endpoint_path: str
    method: str
    request_headers: dict[str, str] = Field(default_factory=dict)
    request_query: dict[str, str] = Field(default_factory=dict)
    request_body: str | None = None
    timestamp: datetime
    status_code: int | None = None
    response_time_ms: int | None = None
    response_headers: dict[str, str] = Field(default_factory=dict)
    response_body: Body | None = None
    error: str | None = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Subscription(BaseModel):
    """Subscription whose credential is used to call a tested API."""

    model_config = ConfigDict(frozen=True)

    id: str
    api_id: str
    user_id: str
    plan: str = "free"
    created_at: datetime


class DailyUsage(BaseModel):
    date: date
    count: int


class EndpointUsage(BaseModel):
    endpoint: str
    count: int


class AnalyticsSummary(BaseModel):
    """Recomputed-on-demand aggregate view over request-log records."""

    window_start: datetime
    window_end: datetime
    total_requests: int = 0
    success_rate: float = 0.0
    avg_response_time_ms: float = 0.0
    daily_usage: list[DailyUsage] = Field(default_factory=list)
    method_counts: dict[str, int] = Field(default_factory=dict)
    status_bands: dict[StatusBand, int] = Field(default_factory=dict)
    top_endpoints: list[EndpointUsage] = Field(default_factory=list)


__all__ = [
    "AnalyticsSummary",
    "AuthConfig",
    "AuthLocation",
    "AuthType",
    "Body",
    "DailyUsage",
    "EndpointUsage",
    "HttpMethod",
    "JsonBody",
    "Outcome",
    "RequestDescription",
    "RequestLogRecord",
    "RequestSpec",
    "StatusBand",
    "StatusFilter",
    "Subscription",
    "TextBody",
    "TimeRange",
]
