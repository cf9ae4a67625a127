"""
Pytest configuration and fixtures for ChurchBook tests
"""

import pytest

from churchbook.core.connectivity import ConnectivityMonitor
from churchbook.core.database import DatabaseService
from churchbook.core.local_store import LocalStore
from churchbook.core.mock_remote import MockRemoteService
from churchbook.core.offline_queue import OfflineQueue
from churchbook.core.synchronizer import Synchronizer

IN_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def test_config():
    """Configuration for an isolated in-memory application"""
    return {
        'database': {'url': IN_MEMORY_URL, 'echo': False},
        'remote': {'mock': True, 'soft_delete': ['income', 'expenses']},
        'sync': {'max_retries': 5, 'interval_seconds': 30, 'max_interval_seconds': 600, 'auto_sync': False},
        'connectivity': {'probe_interval': 15, 'initial_online': True},
        'api': {'api_key': 'test-api-key', 'cors_origins': ['*']},
        'logging': {'level': 'DEBUG', 'format': 'text', 'file_path': None}
    }


@pytest.fixture
async def database():
    service = DatabaseService(IN_MEMORY_URL)
    await service.create_tables()
    yield service
    await service.close()


@pytest.fixture
def store(database):
    return LocalStore(database)


@pytest.fixture
def queue(database):
    return OfflineQueue(database)


@pytest.fixture
def remote():
    return MockRemoteService()


@pytest.fixture
def connectivity():
    return ConnectivityMonitor(initial_online=True)


@pytest.fixture
def synchronizer(queue, store, remote, connectivity):
    return Synchronizer(queue, store, remote, connectivity, max_retries=5)


@pytest.fixture
def sample_member():
    return {
        'id': 'member-ana',
        'full_name': 'Ana Ruiz',
        'church_position': 'Miembro',
        'status': 'Activo'
    }


@pytest.fixture
def sample_income():
    return {
        'id': 'income-1',
        'amount': 25.0,
        'date': '2024-03-03',
        'category': 'Diezmo'
    }
