"""Error taxonomy for apiprobe.

Only ``ValidationError`` is ever raised out of the core before a request is
dispatched. Transport failures are folded into ``Outcome(status=0)`` and
log-write failures come back as ``PersistenceWarning`` values.
"""


class ApiProbeError(Exception):
    """Base class for apiprobe errors."""


class ValidationError(ApiProbeError, ValueError):
    """Malformed request description or analytics window."""


class PersistenceWarning(UserWarning):
    """A request-log record could not be written to the record store.

    Returned alongside the outcome rather than raised, so a store outage never
    masks the result of the request itself.
    """

    def __init__(self, message: str, *, subscription_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.subscription_id = subscription_id

    def __str__(self) -> str:
        return self.message


__all__ = [
    "ApiProbeError",
    "PersistenceWarning",
    "ValidationError",
]
