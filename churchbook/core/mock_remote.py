"""
In-memory remote data service for development/testing
Stands in for the Supabase adapter when no project is configured
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from churchbook.core.exceptions import ConnectivityError, RemoteRejectionError
from churchbook.core.models import EntityCollection, collection_name
from churchbook.core.remote_service import RemoteDataService

# Called as rule(operation, collection, record_id, payload); return an error message to reject
RejectionRule = Callable[[str, str, Optional[str], Dict[str, Any]], Optional[str]]


class MockRemoteService(RemoteDataService):
    """Complete mock remote service with in-memory tables"""

    def __init__(self, config: Optional[Dict[str, Any]] = None, seed: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        super().__init__(config or {})
        remote_config = self.config.get('remote', {})
        self.soft_delete = set(remote_config.get('soft_delete', ['income', 'expenses']))

        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, str, Optional[str]]] = []
        self.reachable = True
        self.rejection_rules: List[RejectionRule] = []
        self._fail_after: Optional[int] = None

        for table, rows in (seed or {}).items():
            for row in rows:
                self.tables.setdefault(table, {})[str(row['id'])] = dict(row)

    def reject_when(self, rule: RejectionRule):
        """Register a rule that can reject individual calls"""
        self.rejection_rules.append(rule)

    def disconnect_after(self, calls: int):
        """Lose connectivity once ``calls`` more calls have been served"""
        self._fail_after = len(self.calls) + calls

    def _check(self, operation: str, table: str, record_id: Optional[str], payload: Dict[str, Any]):
        if self._fail_after is not None and len(self.calls) >= self._fail_after:
            self.reachable = False
            self._fail_after = None

        self.calls.append((operation, table, record_id))

        if not self.reachable:
            raise ConnectivityError("Mock remote service is offline")

        for rule in self.rejection_rules:
            message = rule(operation, table, record_id, payload)
            if message:
                raise RemoteRejectionError(message, status_code=400)

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        return self.tables.setdefault(table, {})

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    async def create(self, collection: Union[EntityCollection, str], payload: Dict[str, Any]) -> Dict[str, Any]:
        table = collection_name(collection)
        record = dict(payload)
        record.setdefault('id', str(uuid.uuid4()))
        record_id = str(record['id'])
        self._check('create', table, record_id, payload)

        now = self._now()
        stored = {**self._table(table).get(record_id, {'created_at': now}), **record}
        stored.setdefault('updated_at', now)
        self._table(table)[record_id] = stored
        return dict(stored)

    async def update(self, collection: Union[EntityCollection, str], record_id: Any,
                     payload: Dict[str, Any]) -> Dict[str, Any]:
        table = collection_name(collection)
        key = str(record_id)
        self._check('update', table, key, payload)

        if key not in self._table(table):
            raise RemoteRejectionError(f"{table} record '{record_id}' not found", status_code=404)

        stored = self._table(table)[key]
        stored.update(payload)
        return dict(stored)

    async def delete(self, collection: Union[EntityCollection, str], record_id: Any) -> None:
        table = collection_name(collection)
        key = str(record_id)
        self._check('delete', table, key, {})

        if table in self.soft_delete:
            if key in self._table(table):
                self._table(table)[key]['deleted_at'] = self._now()
        else:
            self._table(table).pop(key, None)

    async def list(self, collection: Union[EntityCollection, str]) -> List[Dict[str, Any]]:
        table = collection_name(collection)
        self._check('list', table, None, {})
        return [dict(row) for row in self._table(table).values() if not row.get('deleted_at')]

    async def health_check(self) -> bool:
        return self.reachable
