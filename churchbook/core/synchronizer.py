"""
Synchronizer draining the offline queue against the remote data service.
Ensures eventual consistency between the local store and the hosted database.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from churchbook.core.exceptions import ChurchBookError, ConnectivityError, StorageUnavailableError
from churchbook.core.local_store import LocalStore
from churchbook.core.models import (
    EntityCollection, OperationKind, PendingOperation, SYNC_FLAG, SyncResult,
    collection_name, utc_now
)
from churchbook.core.offline_queue import OfflineQueue
from churchbook.core.remote_service import RemoteDataService

MAX_RETRIES = 5
NO_CONNECTION = "No internet connection"


class Synchronizer:
    """
    Replays queued mutations in one bounded, sequential pass.

    Operations are processed oldest first. A failing operation stays queued
    with its attempt count incremented; once the count reaches ``max_retries``
    it is kept for operator inspection and no longer replayed. Connectivity
    lost mid-pass does not abort the pass: every remaining entry is attempted.
    Only a local storage failure ends a pass early.
    """

    def __init__(self, queue: OfflineQueue, store: LocalStore, remote: RemoteDataService,
                 connectivity, max_retries: int = MAX_RETRIES):
        self.queue = queue
        self.store = store
        self.remote = remote
        self.connectivity = connectivity
        self.max_retries = max_retries
        self.logger = logging.getLogger(__name__)

        self.last_result: Optional[SyncResult] = None
        self.last_sync_time: Optional[datetime] = None
        self._current: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._current is not None and not self._current.done()

    async def sync(self) -> SyncResult:
        """Run one pass, or join the pass already in flight"""
        if self.is_running:
            self.logger.info("Sync pass already in progress, waiting for it")
            return await asyncio.shield(self._current)

        self._current = asyncio.ensure_future(self._run_pass())
        return await asyncio.shield(self._current)

    async def _run_pass(self) -> SyncResult:
        result = SyncResult()

        if not self.connectivity.is_online():
            result.success = False
            result.errors.append(NO_CONNECTION)
            self.last_result = result
            self.last_sync_time = utc_now()
            self.logger.info("Skipping sync pass: offline")
            return result

        operations = await self.queue.list_all()
        if operations:
            self.logger.info(f"Processing {len(operations)} pending operations")

        for operation in operations:
            if operation.attempt_count >= self.max_retries:
                result.failed += 1
                result.errors.append(
                    f"Max retries exceeded for {operation.operation_kind.value} operation "
                    f"{operation.id} on {operation.entity_collection}"
                )
                continue

            try:
                server_record = await self._replay(operation)
            except StorageUnavailableError:
                raise
            except Exception as e:
                message = (f"{operation.operation_kind.value} on {operation.entity_collection} "
                           f"(operation {operation.id}) failed: {e}")
                self.logger.warning(message, exc_info=not isinstance(e, ChurchBookError))
                await self.queue.increment_attempt(operation.id, str(e) or type(e).__name__)
                result.failed += 1
                result.errors.append(message)
                continue

            await self.queue.remove(operation.id)
            result.synced += 1
            await self._mirror(operation, server_record)

        result.success = result.failed == 0
        self.last_result = result
        self.last_sync_time = utc_now()

        if operations:
            self.logger.info(f"Sync pass finished: {result.synced} synced, {result.failed} failed")
        return result

    async def _replay(self, operation: PendingOperation) -> Optional[Dict[str, Any]]:
        """Re-issue one queued mutation against the remote service"""
        collection = operation.entity_collection

        if operation.operation_kind is OperationKind.INSERT:
            return await self.remote.create(collection, operation.payload)

        payload = dict(operation.payload)
        if payload.get('id') is None:
            raise ValueError(f"{operation.operation_kind.value} payload has no 'id'")
        record_id = payload.pop('id')

        if operation.operation_kind is OperationKind.UPDATE:
            return await self.remote.update(collection, record_id, payload)

        await self.remote.delete(collection, record_id)
        return None

    async def _mirror(self, operation: PendingOperation, server_record: Optional[Dict[str, Any]]):
        """
        Record the server-confirmed state locally

        The queue is read again here rather than trusting the pass snapshot:
        edits queued while the pass was running, and earlier operations that
        failed, keep the local copy unsynced and untouched.
        """
        record_id = operation.record_id
        if record_id is None:
            return

        collection = operation.entity_collection
        remaining = [
            entry for entry in await self.queue.list_by_collection(collection)
            if entry.record_id == record_id
        ]
        if remaining:
            self.logger.debug(
                f"{collection} {record_id} still has {len(remaining)} queued operations, "
                f"keeping the local copy unsynced"
            )
            return

        if operation.operation_kind is OperationKind.DELETE:
            await self.store.delete(collection, record_id)
            return

        local = await self.store.get(collection, record_id) or {}
        confirmed = {**local, **(server_record or operation.payload), SYNC_FLAG: True}
        await self.store.put(collection, confirmed)

    async def refresh(self, collection: Union[EntityCollection, str]) -> int:
        """
        Pull the server copy of a collection into the local store

        Local records still carrying unconfirmed edits are left untouched.

        Returns:
            Number of records stored
        """
        name = collection_name(collection)
        if not self.connectivity.is_online():
            return 0

        try:
            rows = await self.remote.list(name)
        except ConnectivityError as e:
            self.logger.warning(f"Could not refresh {name}: {e}")
            return 0

        pending_ids = {str(record['id']) for record in await self.store.list_unsynced(name)}
        stored = 0
        for row in rows:
            if row.get('id') is None or str(row['id']) in pending_ids:
                continue
            await self.store.put(name, {**row, SYNC_FLAG: True})
            stored += 1

        self.logger.debug(f"Refreshed {stored} {name} records from the server")
        return stored

    async def refresh_all(self) -> Dict[str, int]:
        return {
            collection.value: await self.refresh(collection)
            for collection in EntityCollection
        }
