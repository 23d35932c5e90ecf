"""apiprobe - probe third-party APIs and summarize their usage."""

from apiprobe._version import __version__
from apiprobe.analytics import compute_analytics, summarize
from apiprobe.auth import apply_auth
from apiprobe.builder import build_request_spec
from apiprobe.emitter import LogEmitter
from apiprobe.errors import ApiProbeError, PersistenceWarning, ValidationError
from apiprobe.executor import RequestExecutor, execute_request
from apiprobe.models import (
    AnalyticsSummary,
    AuthConfig,
    AuthLocation,
    AuthType,
    HttpMethod,
    Outcome,
    RequestDescription,
    RequestLogRecord,
    RequestSpec,
    StatusBand,
    TimeRange,
)
from apiprobe.service import ExecutionResult, ProbeService
from apiprobe.store import RecordStore, create_record_store

__all__ = [
    "AnalyticsSummary",
    "ApiProbeError",
    "AuthConfig",
    "AuthLocation",
    "AuthType",
    "ExecutionResult",
    "HttpMethod",
    "LogEmitter",
    "Outcome",
    "PersistenceWarning",
    "ProbeService",
    "RecordStore",
    "RequestDescription",
    "RequestExecutor",
    "RequestLogRecord",
    "RequestSpec",
    "StatusBand",
    "TimeRange",
    "ValidationError",
    "__version__",
    "apply_auth",
    "build_request_spec",
    "compute_analytics",
    "create_record_store",
    "execute_request",
    "summarize",
]
