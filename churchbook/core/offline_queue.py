"""
Pending operation queue for mutations made while offline
Entries are replayed oldest-first with at-least-once semantics
"""

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import delete, func, select

from churchbook.core.database import DatabaseService
from churchbook.core.models import (
    EntityCollection, OperationKind, PendingOperation, PendingOperationDB,
    collection_name, utc_now
)


class OfflineQueue:
    """Service for managing queued mutations"""

    def __init__(self, database: DatabaseService):
        self.database = database
        self.logger = logging.getLogger(__name__)

    async def enqueue(self, entity_collection: Union[EntityCollection, str],
                      operation_kind: Union[OperationKind, str],
                      payload: Dict[str, Any]) -> int:
        """Append an operation and return the id assigned to it"""
        entry = PendingOperation(
            entity_collection=collection_name(entity_collection),
            operation_kind=OperationKind(operation_kind),
            payload=dict(payload),
            enqueued_at=utc_now(),
            attempt_count=0
        )

        async with self.database.storage_session() as session:
            db_entry = entry.to_db_model()
            session.add(db_entry)
            await session.flush()
            entry_id = db_entry.id

        self.logger.info(
            f"Queued {entry.operation_kind.value} on {entry.entity_collection} as operation {entry_id}"
        )
        return entry_id

    async def get(self, entry_id: int) -> Optional[PendingOperation]:
        async with self.database.storage_session() as session:
            entry = await session.get(PendingOperationDB, entry_id)
            return PendingOperation.from_db_model(entry) if entry else None

    async def list_all(self) -> List[PendingOperation]:
        """All queued operations, oldest first"""
        async with self.database.storage_session() as session:
            result = await session.execute(
                select(PendingOperationDB).order_by(PendingOperationDB.id)
            )
            return [PendingOperation.from_db_model(entry) for entry in result.scalars().all()]

    async def list_by_collection(self, entity_collection: Union[EntityCollection, str]) -> List[PendingOperation]:
        """Queued operations for one entity collection, oldest first"""
        async with self.database.storage_session() as session:
            result = await session.execute(
                select(PendingOperationDB)
                .where(PendingOperationDB.entity_collection == collection_name(entity_collection))
                .order_by(PendingOperationDB.id)
            )
            return [PendingOperation.from_db_model(entry) for entry in result.scalars().all()]

    async def list_dead_letters(self, max_retries: int) -> List[PendingOperation]:
        """Operations retained after reaching the retry ceiling"""
        async with self.database.storage_session() as session:
            result = await session.execute(
                select(PendingOperationDB)
                .where(PendingOperationDB.attempt_count >= max_retries)
                .order_by(PendingOperationDB.id)
            )
            return [PendingOperation.from_db_model(entry) for entry in result.scalars().all()]

    async def remove(self, entry_id: int) -> None:
        """Delete an entry; removing an absent entry is a no-op"""
        async with self.database.storage_session() as session:
            await session.execute(delete(PendingOperationDB).where(PendingOperationDB.id == entry_id))

    async def increment_attempt(self, entry_id: int, error: Optional[str] = None) -> None:
        """Record a failed replay attempt; no-op if the entry is gone"""
        async with self.database.storage_session() as session:
            entry = await session.get(PendingOperationDB, entry_id)
            if not entry:
                return

            entry.attempt_count = (entry.attempt_count or 0) + 1
            if error is not None:
                entry.last_error = error

    async def clear(self) -> int:
        """Empty the queue. Administrative use only, never part of a sync pass"""
        async with self.database.storage_session() as session:
            result = await session.execute(delete(PendingOperationDB))
            removed = result.rowcount or 0

        self.logger.warning(f"Cleared offline queue ({removed} operations discarded)")
        return removed

    async def count(self) -> int:
        async with self.database.storage_session() as session:
            result = await session.execute(select(func.count()).select_from(PendingOperationDB))
            return result.scalar_one()
