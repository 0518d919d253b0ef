"""Record store interface for engine state."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

Record = Dict[str, Any]

# Collections
WORKFLOWS = "workflows"
EVENTS = "events"
SYNC_OPERATIONS = "sync_operations"
WEBHOOKS = "webhooks"
WEBHOOK_DELIVERIES = "webhook_deliveries"


class RecordStore(ABC):
    """
    Abstract store for engine records.

    Records are JSON-compatible dicts addressed by (collection, opaque id).
    The store makes no assumption about the database technology behind it.
    """

    @abstractmethod
    async def get(self, collection: str, record_id: str) -> Optional[Record]:
        """Load a record.

        Args:
            collection: Collection name
            record_id: Opaque record id

        Returns:
            A copy of the record, or None if absent
        """
        pass

    @abstractmethod
    async def put(self, collection: str, record_id: str, record: Record) -> None:
        """Insert or replace a record."""
        pass

    @abstractmethod
    async def list(self, collection: str) -> List[Record]:
        """Return every record of a collection in insertion order."""
        pass

    @abstractmethod
    async def delete(self, collection: str, record_id: str) -> bool:
        """Delete a record.

        Returns:
            True if a record was removed, False if it did not exist
        """
        pass
