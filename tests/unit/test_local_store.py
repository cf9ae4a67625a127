"""Unit tests for the durable local store."""

import pytest

from churchbook.core.database import DatabaseService
from churchbook.core.exceptions import StorageUnavailableError
from churchbook.core.local_store import LocalStore
from churchbook.core.models import EntityCollection


@pytest.mark.asyncio
async def test_put_then_get_returns_record(store, sample_member):
    await store.put(EntityCollection.MEMBERS, {**sample_member, 'synced': False})

    record = await store.get(EntityCollection.MEMBERS, 'member-ana')

    assert record['full_name'] == 'Ana Ruiz'
    assert record['synced'] is False


@pytest.mark.asyncio
async def test_put_upserts_by_id(store, sample_member):
    await store.put('members', {**sample_member, 'synced': False})
    await store.put('members', {**sample_member, 'phone': '7777-0000', 'synced': True})

    records = await store.get_all('members')

    assert len(records) == 1
    assert records[0]['phone'] == '7777-0000'
    assert records[0]['synced'] is True


@pytest.mark.asyncio
async def test_put_defaults_sync_flag_to_false(store):
    await store.put('sectors', {'id': 3, 'name': 'Norte'})

    record = await store.get('sectors', 3)

    assert record['synced'] is False


@pytest.mark.asyncio
async def test_put_requires_id(store):
    with pytest.raises(ValueError):
        await store.put('members', {'full_name': 'Sin Id'})


@pytest.mark.asyncio
async def test_get_missing_record_returns_none(store):
    assert await store.get('members', 'nobody') is None


@pytest.mark.asyncio
async def test_collections_are_partitioned(store):
    await store.put('members', {'id': 'shared-id', 'full_name': 'Ana Ruiz'})
    await store.put('income', {'id': 'shared-id', 'amount': 10})

    assert (await store.get('members', 'shared-id'))['full_name'] == 'Ana Ruiz'
    assert (await store.get('income', 'shared-id'))['amount'] == 10
    assert len(await store.get_all('expenses')) == 0


@pytest.mark.asyncio
async def test_list_unsynced_only_returns_pending_records(store):
    await store.put('members', {'id': 'a', 'full_name': 'Ana', 'synced': False})
    await store.put('members', {'id': 'b', 'full_name': 'Beto', 'synced': True})

    unsynced = await store.list_unsynced('members')

    assert [record['id'] for record in unsynced] == ['a']


@pytest.mark.asyncio
async def test_delete_is_idempotent(store, sample_member):
    await store.put('members', sample_member)

    await store.delete('members', 'member-ana')
    await store.delete('members', 'member-ana')

    assert await store.get('members', 'member-ana') is None


@pytest.mark.asyncio
async def test_clear_only_touches_one_collection(store):
    await store.put('members', {'id': 'a', 'full_name': 'Ana'})
    await store.put('income', {'id': 'i', 'amount': 5})

    await store.clear('members')

    assert await store.get_all('members') == []
    assert len(await store.get_all('income')) == 1


@pytest.mark.asyncio
async def test_records_survive_reopening(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'churchbook.db'}"

    first = DatabaseService(url)
    await first.create_tables()
    await LocalStore(first).put('members', {'id': 'a', 'full_name': 'Ana Ruiz', 'synced': False})
    await first.close()

    second = DatabaseService(url)
    await second.create_tables()
    record = await LocalStore(second).get('members', 'a')
    await second.close()

    assert record == {'id': 'a', 'full_name': 'Ana Ruiz', 'synced': False}


@pytest.mark.asyncio
async def test_missing_tables_raise_storage_unavailable():
    database = DatabaseService("sqlite+aiosqlite:///:memory:")
    try:
        with pytest.raises(StorageUnavailableError):
            await LocalStore(database).get('members', 'a')
    finally:
        await database.close()
