"""
Capability interfaces the monitor depends on.

Each monitor receives implementations of these at construction so that
stores, publishers and notifiers can be swapped for test doubles.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from txmonitor.monitor.models import StatusUpdateEvent, TxRecord, UserProfile, WebhookPayload


class RecordStore(ABC):
    """Key-addressable store of submitted transactions."""

    @abstractmethod
    async def get(self, tx_hash: str) -> Optional[TxRecord]:
        pass

    @abstractmethod
    async def update(self, tx_hash: str, fields: Dict[str, Any]) -> None:
        """Overwrite the given fields. Applying the same update twice is a no-op."""
        pass

    @abstractmethod
    async def list_submitted(self, limit: Optional[int] = None) -> List[TxRecord]:
        """Records still waiting for an outcome, oldest first."""
        pass


class UserDirectory(ABC):
    """Resolves wallet addresses to user profiles."""

    @abstractmethod
    async def find_by_wallet(self, address: str) -> Optional[UserProfile]:
        pass


class EventPublisher(ABC):
    """Downstream notification fan-out."""

    @abstractmethod
    async def publish(self, topic: str, event: StatusUpdateEvent) -> None:
        pass


class WebhookResult(BaseModel):
    """Outcome of one webhook delivery attempt."""

    url: str
    delivered: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class WebhookNotifier(ABC):
    """Delivers completion callbacks to user-registered URLs."""

    @abstractmethod
    async def notify(
        self, url: str, payload: WebhookPayload, idempotency_key: str
    ) -> WebhookResult:
        """Deliver a payload. Implementations report failures, never raise."""
        pass
