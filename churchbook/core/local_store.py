"""
Durable local record store, partitioned into named entity collections
"""

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import delete, select

from churchbook.core.database import DatabaseService
from churchbook.core.models import EntityCollection, LocalRecordDB, SYNC_FLAG, collection_name


class LocalStore:
    """
    Keyed record store surviving process restarts.

    Records are plain dicts keyed by their ``id`` field. The synchronization
    flag travels inside the record and is mirrored in an indexed column.
    """

    def __init__(self, database: DatabaseService):
        self.database = database
        self.logger = logging.getLogger(__name__)

    async def put(self, collection: Union[EntityCollection, str], record: Dict[str, Any]) -> None:
        """Upsert a record keyed by its identifier"""
        if record.get('id') is None:
            raise ValueError("Local records need an 'id' field")

        name = collection_name(collection)
        record_id = str(record['id'])
        data = dict(record)
        data[SYNC_FLAG] = bool(data.get(SYNC_FLAG, False))

        async with self.database.storage_session() as session:
            existing = await session.get(LocalRecordDB, (name, record_id))
            if existing:
                existing.data = data
                existing.synced = data[SYNC_FLAG]
            else:
                session.add(LocalRecordDB(
                    collection=name,
                    record_id=record_id,
                    data=data,
                    synced=data[SYNC_FLAG]
                ))

        self.logger.debug(f"Stored {name}/{record_id} (synced={data[SYNC_FLAG]})")

    async def get(self, collection: Union[EntityCollection, str], record_id) -> Optional[Dict[str, Any]]:
        """Return the record or None"""
        async with self.database.storage_session() as session:
            row = await session.get(LocalRecordDB, (collection_name(collection), str(record_id)))
            return dict(row.data) if row else None

    async def get_all(self, collection: Union[EntityCollection, str]) -> List[Dict[str, Any]]:
        """Return every record of a collection, in no particular order"""
        async with self.database.storage_session() as session:
            result = await session.execute(
                select(LocalRecordDB).where(LocalRecordDB.collection == collection_name(collection))
            )
            return [dict(row.data) for row in result.scalars().all()]

    async def list_unsynced(self, collection: Union[EntityCollection, str]) -> List[Dict[str, Any]]:
        """Return records not yet confirmed by the remote service"""
        async with self.database.storage_session() as session:
            result = await session.execute(
                select(LocalRecordDB).where(
                    (LocalRecordDB.collection == collection_name(collection)) &
                    (LocalRecordDB.synced.is_(False))
                )
            )
            return [dict(row.data) for row in result.scalars().all()]

    async def delete(self, collection: Union[EntityCollection, str], record_id) -> None:
        """Remove a record; absent records are ignored"""
        async with self.database.storage_session() as session:
            await session.execute(
                delete(LocalRecordDB).where(
                    (LocalRecordDB.collection == collection_name(collection)) &
                    (LocalRecordDB.record_id == str(record_id))
                )
            )

    async def clear(self, collection: Union[EntityCollection, str]) -> None:
        """Remove all records of a collection"""
        name = collection_name(collection)
        async with self.database.storage_session() as session:
            await session.execute(delete(LocalRecordDB).where(LocalRecordDB.collection == name))
        self.logger.info(f"Cleared local collection '{name}'")
