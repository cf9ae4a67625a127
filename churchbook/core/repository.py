"""
Read-through repositories per entity collection

Writes go straight to the remote service while online and are mirrored into
the local store. Offline, or when the remote call cannot reach the service,
the record is written locally with ``synced = False`` and a twin operation is
queued for the synchronizer.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from churchbook.core.exceptions import ConnectivityError, RecordNotFoundError
from churchbook.core.local_store import LocalStore
from churchbook.core.models import EntityCollection, OperationKind, SYNC_FLAG
from churchbook.core.offline_queue import OfflineQueue
from churchbook.core.remote_service import RemoteDataService


def timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class EntityRepository:
    """Read access with local fallback"""

    collection: EntityCollection = None
    sort_field: Optional[str] = None
    sort_descending = False

    def __init__(self, store: LocalStore, queue: OfflineQueue, remote: RemoteDataService, connectivity):
        self.store = store
        self.queue = queue
        self.remote = remote
        self.connectivity = connectivity
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def list(self) -> List[Dict[str, Any]]:
        """Server records when reachable, the local copy otherwise"""
        if not self.connectivity.is_online():
            return await self._list_local()

        try:
            rows = await self.remote.list(self.collection)
        except ConnectivityError as e:
            self.logger.warning(f"Falling back to local {self.collection.value}: {e}")
            return await self._list_local()

        # Records with unconfirmed local edits win over the server copy
        pending = {str(record['id']): record for record in await self.store.list_unsynced(self.collection)}
        records = []
        for row in rows:
            key = str(row['id'])
            if key in pending:
                records.append(pending.pop(key))
                continue
            mirrored = {**row, SYNC_FLAG: True}
            await self.store.put(self.collection, mirrored)
            records.append(mirrored)

        records.extend(pending.values())
        return self._sorted([record for record in records if not record.get('deleted_at')])

    async def get(self, record_id) -> Optional[Dict[str, Any]]:
        return await self.store.get(self.collection, record_id)

    async def _list_local(self) -> List[Dict[str, Any]]:
        records = await self.store.get_all(self.collection)
        return self._sorted([record for record in records if not record.get('deleted_at')])

    def _sorted(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not self.sort_field:
            return records
        field = self.sort_field
        return sorted(records, key=lambda record: (record.get(field) is None, str(record.get(field) or '')),
                      reverse=self.sort_descending)


class WritableRepository(EntityRepository):
    """Create, update and delete with offline fallback"""

    def prepare_new(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Payload sent to the server for a new record"""
        record = {key: value for key, value in fields.items() if value is not None}
        record['id'] = str(uuid.uuid4())
        return record

    def local_defaults(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Fields the server would fill in, synthesized for offline records"""
        return {}

    async def _must_queue(self, record_id) -> bool:
        """Offline, or the record still has queued edits that must replay first"""
        if not self.connectivity.is_online():
            return True
        local = await self.store.get(self.collection, record_id)
        return local is not None and not local.get(SYNC_FLAG, False)

    async def create(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        record = self.prepare_new(fields)

        if self.connectivity.is_online():
            try:
                saved = await self.remote.create(self.collection, record)
            except ConnectivityError as e:
                self.logger.warning(f"Remote create failed, keeping {self.collection.value} offline: {e}")
            else:
                saved = {**saved, SYNC_FLAG: True}
                await self.store.put(self.collection, saved)
                return saved

        now = timestamp()
        local = {
            **self.local_defaults(record),
            **record,
            'created_at': now,
            'updated_at': now,
            SYNC_FLAG: False
        }
        await self.store.put(self.collection, local)
        await self.queue.enqueue(self.collection, OperationKind.INSERT, record)
        return local

    async def update(self, record_id, fields: Dict[str, Any]) -> Dict[str, Any]:
        changes = {**fields, 'updated_at': timestamp()}

        if not await self._must_queue(record_id):
            try:
                saved = await self.remote.update(self.collection, record_id, changes)
            except ConnectivityError as e:
                self.logger.warning(f"Remote update failed, queueing {self.collection.value}/{record_id}: {e}")
            else:
                local = await self.store.get(self.collection, record_id) or {}
                saved = {**local, **saved, SYNC_FLAG: True}
                await self.store.put(self.collection, saved)
                return saved

        local = await self.store.get(self.collection, record_id)
        if local is None:
            raise RecordNotFoundError(self.collection.value, record_id)

        local.update(changes)
        local[SYNC_FLAG] = False
        await self.store.put(self.collection, local)
        await self.queue.enqueue(self.collection, OperationKind.UPDATE, {'id': local['id'], **changes})
        return local

    async def delete(self, record_id) -> None:
        if not await self._must_queue(record_id):
            try:
                await self.remote.delete(self.collection, record_id)
            except ConnectivityError as e:
                self.logger.warning(f"Remote delete failed, queueing {self.collection.value}/{record_id}: {e}")
            else:
                await self.store.delete(self.collection, record_id)
                return

        # Hidden from lists until the server confirms the delete
        local = await self.store.get(self.collection, record_id)
        if local is not None:
            local['deleted_at'] = timestamp()
            local[SYNC_FLAG] = False
            await self.store.put(self.collection, local)
        await self.queue.enqueue(self.collection, OperationKind.DELETE, {'id': record_id})


class MemberRepository(WritableRepository):
    collection = EntityCollection.MEMBERS
    sort_field = 'full_name'

    def prepare_new(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        record = super().prepare_new(fields)
        record.setdefault('church_position', 'Miembro')
        record.setdefault('status', 'Activo')
        return record

    def local_defaults(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'dui': None,
            'phone': None,
            'address': None,
            'baptism_date': None,
            'is_baptized': bool(record.get('baptism_date')),
            'sector_id': None,
            'created_by': None
        }


class IncomeRepository(WritableRepository):
    collection = EntityCollection.INCOME
    sort_field = 'date'
    sort_descending = True

    def local_defaults(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'period': None,
            'member_id': None,
            'sector_id': None,
            'notes': None,
            'created_by': None,
            'deleted_at': None
        }


class ExpenseRepository(WritableRepository):
    collection = EntityCollection.EXPENSES
    sort_field = 'date'
    sort_descending = True

    def local_defaults(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'receipt_url': None,
            'funding_source': None,
            'created_by': None,
            'deleted_at': None
        }


class SectorRepository(EntityRepository):
    """Sectors are maintained on the server; the client only caches them"""
    collection = EntityCollection.SECTORS
    sort_field = 'name'
