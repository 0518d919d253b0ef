"""
SQLAlchemy Record Store Implementation.

Implements RecordStore on any SQLAlchemy async backend
(PostgreSQL via asyncpg in production, SQLite via aiosqlite in tests).
"""
from typing import List, Optional
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.domain.repositories.record_store import Record, RecordStore
from core.infrastructure.database.models import RecordModel


logger = logging.getLogger(__name__)


class SQLAlchemyRecordStore(RecordStore):
    """
    SQLAlchemy implementation of RecordStore.

    Each call runs in its own session and commits before returning.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """
        Initialize store.

        Args:
            session_factory: Factory for async sessions
        """
        self._session_factory = session_factory

    async def get(self, collection: str, record_id: str) -> Optional[Record]:
        async with self._session_factory() as session:
            model = await self._find(session, collection, record_id)
            return dict(model.data) if model else None

    async def put(self, collection: str, record_id: str, record: Record) -> None:
        async with self._session_factory() as session:
            try:
                model = await self._find(session, collection, record_id)
                if model:
                    model.data = dict(record)
                else:
                    session.add(
                        RecordModel(collection=collection, record_id=record_id, data=dict(record))
                    )
                await session.commit()
            except Exception as e:
                logger.error(f"Failed to store record {collection}/{record_id}: {e}")
                await session.rollback()
                raise

    async def list(self, collection: str) -> List[Record]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(RecordModel)
                .where(RecordModel.collection == collection)
                .order_by(RecordModel.id)
            )
            return [dict(model.data) for model in result.scalars().all()]

    async def delete(self, collection: str, record_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(RecordModel).where(
                    RecordModel.collection == collection,
                    RecordModel.record_id == record_id,
                )
            )
            await session.commit()
            return (result.rowcount or 0) > 0

    @staticmethod
    async def _find(session: AsyncSession, collection: str, record_id: str) -> Optional[RecordModel]:
        result = await session.execute(
            select(RecordModel).where(
                RecordModel.collection == collection,
                RecordModel.record_id == record_id,
            )
        )
        return result.scalar_one_or_none()
