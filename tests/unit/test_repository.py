"""Unit tests for the read-through repositories."""

import pytest

from churchbook.core.exceptions import RecordNotFoundError
from churchbook.core.models import OperationKind
from churchbook.core.repository import (
    ExpenseRepository, IncomeRepository, MemberRepository, SectorRepository
)


@pytest.fixture
def members(store, queue, remote, connectivity):
    return MemberRepository(store, queue, remote, connectivity)


@pytest.fixture
def income(store, queue, remote, connectivity):
    return IncomeRepository(store, queue, remote, connectivity)


@pytest.mark.asyncio
async def test_offline_create_writes_locally_and_queues(members, store, queue, connectivity):
    connectivity.set_online(False)

    record = await members.create({'full_name': 'Ana Ruiz'})

    assert record['synced'] is False
    assert record['church_position'] == 'Miembro'
    assert record['status'] == 'Activo'
    assert record['is_baptized'] is False
    assert record['phone'] is None
    assert record['created_at'] == record['updated_at']
    assert len(await store.get_all('members')) == 1

    entries = await queue.list_all()
    assert len(entries) == 1
    assert entries[0].operation_kind is OperationKind.INSERT
    assert entries[0].payload['id'] == record['id']
    assert 'synced' not in entries[0].payload


@pytest.mark.asyncio
async def test_online_create_goes_to_remote(members, store, queue, remote):
    record = await members.create({'full_name': 'Ana Ruiz', 'baptism_date': None})

    assert record['synced'] is True
    assert record['id'] in remote.tables['members']
    assert 'baptism_date' not in remote.tables['members'][record['id']]
    assert (await store.get('members', record['id']))['synced'] is True
    assert await queue.count() == 0


@pytest.mark.asyncio
async def test_create_falls_back_when_remote_unreachable(members, queue, remote):
    remote.reachable = False

    record = await members.create({'full_name': 'Ana Ruiz'})

    assert record['synced'] is False
    assert await queue.count() == 1


@pytest.mark.asyncio
async def test_offline_update_of_unknown_record_raises(members, connectivity):
    connectivity.set_online(False)

    with pytest.raises(RecordNotFoundError):
        await members.update('missing', {'phone': '7000-0000'})


@pytest.mark.asyncio
async def test_edits_to_unsynced_record_queue_behind_insert(members, queue, remote, connectivity):
    connectivity.set_online(False)
    record = await members.create({'full_name': 'Ana Ruiz'})
    connectivity.set_online(True)

    updated = await members.update(record['id'], {'phone': '7000-0000'})

    assert remote.calls == []
    assert updated['phone'] == '7000-0000'
    kinds = [entry.operation_kind for entry in await queue.list_all()]
    assert kinds == [OperationKind.INSERT, OperationKind.UPDATE]


@pytest.mark.asyncio
async def test_online_update_merges_server_record(members, store, remote):
    record = await members.create({'full_name': 'Ana Ruiz'})

    updated = await members.update(record['id'], {'phone': '7000-0000'})

    assert updated['phone'] == '7000-0000'
    assert updated['synced'] is True
    assert remote.tables['members'][record['id']]['phone'] == '7000-0000'


@pytest.mark.asyncio
async def test_offline_delete_hides_record_and_queues(income, store, queue, connectivity, sample_income):
    await store.put('income', {**sample_income, 'synced': True})
    connectivity.set_online(False)

    await income.delete(sample_income['id'])

    assert await income.list() == []
    local = await store.get('income', sample_income['id'])
    assert local['deleted_at'] is not None
    entry = (await queue.list_all())[0]
    assert entry.operation_kind is OperationKind.DELETE
    assert entry.payload == {'id': sample_income['id']}


@pytest.mark.asyncio
async def test_online_delete_soft_deletes_income(income, store, remote):
    record = await income.create({'amount': 25.0, 'date': '2024-03-03', 'category': 'Diezmo'})

    await income.delete(record['id'])

    assert remote.tables['income'][record['id']]['deleted_at'] is not None
    assert await store.get('income', record['id']) is None
    assert await income.list() == []


@pytest.mark.asyncio
async def test_list_prefers_unsynced_local_copy(members, store, remote):
    remote.tables['members'] = {
        'a': {'id': 'a', 'full_name': 'Ana Ruiz', 'phone': 'server'},
        'b': {'id': 'b', 'full_name': 'Beto Cruz'},
    }
    await store.put('members', {'id': 'a', 'full_name': 'Ana Ruiz', 'phone': 'local', 'synced': False})
    await store.put('members', {'id': 'c', 'full_name': 'Carla Diaz', 'synced': False})

    records = await members.list()

    assert [record['id'] for record in records] == ['a', 'b', 'c']
    assert records[0]['phone'] == 'local'
    assert (await store.get('members', 'b'))['synced'] is True


@pytest.mark.asyncio
async def test_list_falls_back_to_local_when_unreachable(members, store, remote):
    await store.put('members', {'id': 'z', 'full_name': 'Zoe', 'synced': True})
    await store.put('members', {'id': 'a', 'full_name': 'Ana', 'synced': True})
    remote.reachable = False

    records = await members.list()

    assert [record['full_name'] for record in records] == ['Ana', 'Zoe']


@pytest.mark.asyncio
async def test_income_sorted_by_date_descending(income, store, connectivity):
    connectivity.set_online(False)
    await store.put('income', {'id': '1', 'date': '2024-01-07', 'amount': 5})
    await store.put('income', {'id': '2', 'date': '2024-03-03', 'amount': 5})

    records = await income.list()

    assert [record['id'] for record in records] == ['2', '1']


@pytest.mark.asyncio
async def test_expense_local_defaults(store, queue, remote, connectivity):
    expenses = ExpenseRepository(store, queue, remote, connectivity)
    connectivity.set_online(False)

    record = await expenses.create({
        'amount': 40.0, 'date': '2024-03-05', 'category': 'Limpieza', 'description': 'Escobas'
    })

    assert record['receipt_url'] is None
    assert record['funding_source'] is None
    assert record['deleted_at'] is None


@pytest.mark.asyncio
async def test_sectors_are_read_only_cache(store, queue, remote, connectivity):
    remote.tables['sectors'] = {'2': {'id': 2, 'name': 'Sur'}, '1': {'id': 1, 'name': 'Norte'}}
    sectors = SectorRepository(store, queue, remote, connectivity)

    records = await sectors.list()

    assert [record['name'] for record in records] == ['Norte', 'Sur']
    assert not hasattr(sectors, 'create')
    connectivity.set_online(False)
    assert len(await sectors.list()) == 2
