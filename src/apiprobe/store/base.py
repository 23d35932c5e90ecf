"""Record store interface shared by the mock and real backends."""

from abc import ABC, abstractmethod
from collections.abc import Collection, Sequence
from datetime import datetime

from apiprobe.models import RequestLogRecord, Subscription


class RecordStore(ABC):
    """Append-only request-log storage plus subscription lookup.

    Implementations are interchangeable; nothing outside this package may
    branch on which one is active.
    """

    @abstractmethod
    async def insert_request_log(self, record: RequestLogRecord) -> str:
        """Append one record and return its id."""

    @abstractmethod
    async def list_request_logs(
        self,
        subscription_ids: Collection[str],
        since: datetime | None = None,
    ) -> Sequence[RequestLogRecord]:
        """Records for the given subscriptions, oldest first.

        ``since`` is an inclusive lower bound on ``timestamp``; ``None`` means
        no bound.
        """

    @abstractmethod
    async def list_subscriptions(self, api_id: str) -> Sequence[Subscription]:
        """Subscriptions that belong to one tested API."""

    @abstractmethod
    async def add_subscription(self, subscription: Subscription) -> None:
        """Register a subscription (seeding only; no update or delete)."""

    async def close(self) -> None:
        """Release backend resources."""
        return None
