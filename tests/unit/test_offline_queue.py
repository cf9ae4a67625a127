"""Unit tests for the pending operation queue."""

import pytest

from churchbook.core.models import EntityCollection, OperationKind


@pytest.mark.asyncio
async def test_enqueue_then_list_shows_zero_attempts(queue, sample_member):
    entry_id = await queue.enqueue(EntityCollection.MEMBERS, OperationKind.INSERT, sample_member)

    entries = await queue.list_all()

    assert len(entries) == 1
    entry = entries[0]
    assert entry.id == entry_id
    assert entry.entity_collection == 'members'
    assert entry.operation_kind is OperationKind.INSERT
    assert entry.payload == sample_member
    assert entry.attempt_count == 0
    assert entry.last_error is None
    assert entry.enqueued_at is not None


@pytest.mark.asyncio
async def test_ids_are_assigned_in_insertion_order(queue):
    first = await queue.enqueue('members', 'INSERT', {'id': 'a'})
    second = await queue.enqueue('income', 'INSERT', {'id': 'b'})
    third = await queue.enqueue('members', 'UPDATE', {'id': 'a', 'phone': '1'})

    assert first < second < third
    assert [entry.id for entry in await queue.list_all()] == [first, second, third]


@pytest.mark.asyncio
async def test_ids_are_not_reused_after_removal(queue):
    first = await queue.enqueue('members', 'INSERT', {'id': 'a'})
    await queue.remove(first)

    second = await queue.enqueue('members', 'INSERT', {'id': 'b'})

    assert second > first


@pytest.mark.asyncio
async def test_list_by_collection_filters(queue):
    await queue.enqueue('members', 'INSERT', {'id': 'a'})
    await queue.enqueue('income', 'INSERT', {'id': 'b'})

    entries = await queue.list_by_collection(EntityCollection.INCOME)

    assert [entry.record_id for entry in entries] == ['b']


@pytest.mark.asyncio
async def test_remove_twice_is_safe(queue):
    entry_id = await queue.enqueue('members', 'DELETE', {'id': 'a'})

    await queue.remove(entry_id)
    await queue.remove(entry_id)

    assert await queue.list_all() == []


@pytest.mark.asyncio
async def test_increment_attempt_records_error(queue):
    entry_id = await queue.enqueue('members', 'INSERT', {'id': 'a'})

    await queue.increment_attempt(entry_id, 'duplicate key value')
    await queue.increment_attempt(entry_id)

    entry = await queue.get(entry_id)
    assert entry.attempt_count == 2
    assert entry.last_error == 'duplicate key value'


@pytest.mark.asyncio
async def test_increment_attempt_on_missing_entry_is_noop(queue):
    await queue.increment_attempt(999, 'gone')

    assert await queue.count() == 0


@pytest.mark.asyncio
async def test_list_dead_letters(queue):
    stuck = await queue.enqueue('members', 'INSERT', {'id': 'a'})
    await queue.enqueue('members', 'INSERT', {'id': 'b'})
    for _ in range(5):
        await queue.increment_attempt(stuck, 'rejected')

    dead = await queue.list_dead_letters(5)

    assert [entry.id for entry in dead] == [stuck]


@pytest.mark.asyncio
async def test_clear_returns_number_removed(queue):
    await queue.enqueue('members', 'INSERT', {'id': 'a'})
    await queue.enqueue('members', 'INSERT', {'id': 'b'})

    assert await queue.clear() == 2
    assert await queue.count() == 0


@pytest.mark.asyncio
async def test_payload_without_id_has_no_record_id(queue):
    entry_id = await queue.enqueue('members', 'INSERT', {'full_name': 'Ana Ruiz'})

    entry = await queue.get(entry_id)

    assert entry.record_id is None
