"""
In-Memory Record Store Implementation.

Default store for tests, demos and single-process deployments.
"""
from typing import Dict, List, Optional
import copy
import logging

from core.domain.repositories.record_store import Record, RecordStore


logger = logging.getLogger(__name__)


class InMemoryRecordStore(RecordStore):
    """
    In-memory implementation of RecordStore.

    Records are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self):
        """Initialize empty storage."""
        self._storage: Dict[str, Dict[str, Record]] = {}
        logger.info("InMemoryRecordStore initialized")

    async def get(self, collection: str, record_id: str) -> Optional[Record]:
        record = self._storage.get(collection, {}).get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def put(self, collection: str, record_id: str, record: Record) -> None:
        self._storage.setdefault(collection, {})[record_id] = copy.deepcopy(record)
        logger.debug(f"Record stored: {collection}/{record_id}")

    async def list(self, collection: str) -> List[Record]:
        return [copy.deepcopy(r) for r in self._storage.get(collection, {}).values()]

    async def delete(self, collection: str, record_id: str) -> bool:
        removed = self._storage.get(collection, {}).pop(record_id, None)
        if removed is not None:
            logger.debug(f"Record deleted: {collection}/{record_id}")
        return removed is not None

    def clear(self) -> None:
        """Drop every record (for testing)."""
        self._storage.clear()
