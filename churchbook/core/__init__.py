"""
ChurchBook Core Module
Exports the offline sync components for easy imports
"""

from .exceptions import (
    ChurchBookError,
    ConnectivityError,
    RemoteRejectionError,
    StorageUnavailableError,
    RecordNotFoundError
)
from .models import (
    EntityCollection,
    OperationKind,
    PendingOperation,
    SyncResult
)
from .database import DatabaseService
from .local_store import LocalStore
from .offline_queue import OfflineQueue
from .remote_service import RemoteDataService
from .supabase_adapter import SupabaseAdapter
from .mock_remote import MockRemoteService
from .synchronizer import Synchronizer, MAX_RETRIES
from .connectivity import ConnectivityMonitor, ConnectivityWatcher, ConnectivityState
from .scheduler import SyncScheduler
from .repository import (
    MemberRepository,
    IncomeRepository,
    ExpenseRepository,
    SectorRepository
)

__all__ = [
    # Errors
    'ChurchBookError',
    'ConnectivityError',
    'RemoteRejectionError',
    'StorageUnavailableError',
    'RecordNotFoundError',

    # Models
    'EntityCollection',
    'OperationKind',
    'PendingOperation',
    'SyncResult',

    # Storage
    'DatabaseService',
    'LocalStore',
    'OfflineQueue',

    # Remote services
    'RemoteDataService',
    'SupabaseAdapter',
    'MockRemoteService',

    # Synchronization
    'Synchronizer',
    'MAX_RETRIES',
    'ConnectivityMonitor',
    'ConnectivityWatcher',
    'ConnectivityState',
    'SyncScheduler',

    # Repositories
    'MemberRepository',
    'IncomeRepository',
    'ExpenseRepository',
    'SectorRepository'
]
