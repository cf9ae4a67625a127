"""
Core data models for ChurchBook - SQLAlchemy tables and domain objects
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, JSON, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()

SYNC_FLAG = "synced"


class EntityCollection(Enum):
    """Entity collections mirrored between the remote service and the local store"""
    MEMBERS = "members"
    INCOME = "income"
    EXPENSES = "expenses"
    SECTORS = "sectors"


class OperationKind(Enum):
    """Kinds of queued mutations"""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


def utc_now() -> datetime:
    """Naive UTC timestamp, the form SQLite hands back"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def collection_name(collection: Union[EntityCollection, str]) -> str:
    if isinstance(collection, EntityCollection):
        return collection.value
    return str(collection)


# SQLAlchemy Models
class LocalRecordDB(Base):
    """Local copy of one entity record"""
    __tablename__ = 'local_records'

    collection = Column(String(50), primary_key=True)
    record_id = Column(String(64), primary_key=True)
    data = Column(JSON, nullable=False)
    synced = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        Index('idx_local_records_synced', 'collection', 'synced'),
    )


class PendingOperationDB(Base):
    """Queued mutation waiting to be replayed against the remote service"""
    __tablename__ = 'pending_operations'

    id = Column(Integer, primary_key=True, autoincrement=True)
    entity_collection = Column(String(50), nullable=False, index=True)
    operation_kind = Column(String(10), nullable=False)
    payload = Column(JSON, nullable=False)
    enqueued_at = Column(DateTime, nullable=False, default=utc_now)
    attempt_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)

    # AUTOINCREMENT keeps ids from being reused after the newest entry is removed
    __table_args__ = {'sqlite_autoincrement': True}


@dataclass
class PendingOperation:
    """Pending operation domain model"""
    id: Optional[int] = None
    entity_collection: str = ""
    operation_kind: OperationKind = OperationKind.INSERT
    payload: Dict[str, Any] = field(default_factory=dict)
    enqueued_at: datetime = field(default_factory=utc_now)
    attempt_count: int = 0
    last_error: Optional[str] = None

    @property
    def record_id(self) -> Optional[str]:
        """Identifier of the entity record the operation targets"""
        value = self.payload.get('id') if isinstance(self.payload, dict) else None
        return None if value is None else str(value)

    def to_db_model(self) -> PendingOperationDB:
        """Convert to database model"""
        return PendingOperationDB(
            id=self.id,
            entity_collection=self.entity_collection,
            operation_kind=self.operation_kind.value,
            payload=self.payload,
            enqueued_at=self.enqueued_at,
            attempt_count=self.attempt_count,
            last_error=self.last_error
        )

    @classmethod
    def from_db_model(cls, db_entry: PendingOperationDB) -> 'PendingOperation':
        """Convert database model to domain model"""
        return cls(
            id=db_entry.id,
            entity_collection=db_entry.entity_collection,
            operation_kind=OperationKind(db_entry.operation_kind),
            payload=dict(db_entry.payload or {}),
            enqueued_at=db_entry.enqueued_at,
            attempt_count=db_entry.attempt_count or 0,
            last_error=db_entry.last_error
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'entity_collection': self.entity_collection,
            'operation_kind': self.operation_kind.value,
            'payload': self.payload,
            'enqueued_at': self.enqueued_at.isoformat() if self.enqueued_at else None,
            'attempt_count': self.attempt_count,
            'last_error': self.last_error
        }


@dataclass
class SyncResult:
    """Aggregate outcome of one synchronization pass"""
    success: bool = True
    synced: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'synced': self.synced,
            'failed': self.failed,
            'errors': list(self.errors)
        }
