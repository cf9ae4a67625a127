"""Unit tests for the Supabase PostgREST adapter."""

import json

import httpx
import pytest

from churchbook.core.exceptions import ConnectivityError, RemoteRejectionError
from churchbook.core.supabase_adapter import SupabaseAdapter

CONFIG = {
    'remote': {
        'url': 'https://demo.supabase.co/',
        'api_key': 'anon-key',
        'soft_delete': ['income', 'expenses']
    }
}


class RecordingTransport:
    """Builds an httpx.MockTransport that records requests"""

    def __init__(self, responder):
        self.requests = []
        self.responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def make_adapter(responder, config=CONFIG):
    recorder = RecordingTransport(responder)
    return SupabaseAdapter(config, transport=recorder.transport()), recorder


@pytest.mark.asyncio
async def test_create_upserts_and_returns_row():
    def responder(request):
        body = json.loads(request.content)
        return httpx.Response(201, json=[{**body, 'created_at': '2024-03-03T10:00:00Z'}])

    adapter, recorder = make_adapter(responder)
    row = await adapter.create('members', {'id': 'm1', 'full_name': 'Ana Ruiz'})
    await adapter.close()

    request = recorder.requests[0]
    assert request.method == 'POST'
    assert request.url.path == '/rest/v1/members'
    assert request.headers['apikey'] == 'anon-key'
    assert request.headers['authorization'] == 'Bearer anon-key'
    assert 'resolution=merge-duplicates' in request.headers['prefer']
    assert row['full_name'] == 'Ana Ruiz'
    assert row['created_at'] == '2024-03-03T10:00:00Z'


@pytest.mark.asyncio
async def test_access_token_replaces_bearer():
    config = {'remote': {**CONFIG['remote'], 'access_token': 'user-jwt'}}
    adapter, recorder = make_adapter(lambda request: httpx.Response(200, json=[]), config)

    await adapter.list('sectors')
    await adapter.close()

    assert recorder.requests[0].headers['authorization'] == 'Bearer user-jwt'


@pytest.mark.asyncio
async def test_update_filters_by_id():
    adapter, recorder = make_adapter(
        lambda request: httpx.Response(200, json=[{'id': 'm1', 'phone': '7000-0000'}])
    )

    row = await adapter.update('members', 'm1', {'phone': '7000-0000'})
    await adapter.close()

    request = recorder.requests[0]
    assert request.method == 'PATCH'
    assert request.url.params['id'] == 'eq.m1'
    assert row['phone'] == '7000-0000'


@pytest.mark.asyncio
async def test_update_of_missing_row_is_rejected():
    adapter, _ = make_adapter(lambda request: httpx.Response(200, json=[]))

    with pytest.raises(RemoteRejectionError) as exc_info:
        await adapter.update('members', 'ghost', {'phone': '1'})
    await adapter.close()

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_delete_is_soft_for_ledger_tables():
    adapter, recorder = make_adapter(lambda request: httpx.Response(204))

    await adapter.delete('income', 'inc-1')
    await adapter.delete('members', 'm1')
    await adapter.close()

    soft, hard = recorder.requests
    assert soft.method == 'PATCH'
    assert 'deleted_at' in json.loads(soft.content)
    assert hard.method == 'DELETE'
    assert hard.url.params['id'] == 'eq.m1'


@pytest.mark.asyncio
async def test_list_orders_and_hides_deleted():
    adapter, recorder = make_adapter(lambda request: httpx.Response(200, json=[{'id': 'inc-1'}]))

    rows = await adapter.list('income')
    await adapter.close()

    params = recorder.requests[0].url.params
    assert params['order'] == 'date.desc'
    assert params['deleted_at'] == 'is.null'
    assert rows == [{'id': 'inc-1'}]


@pytest.mark.asyncio
async def test_http_error_becomes_rejection_with_code():
    adapter, _ = make_adapter(lambda request: httpx.Response(
        409, json={'code': '23505', 'message': 'duplicate key value violates unique constraint'}
    ))

    with pytest.raises(RemoteRejectionError) as exc_info:
        await adapter.create('members', {'id': 'm1'})
    await adapter.close()

    assert exc_info.value.status_code == 409
    assert exc_info.value.code == '23505'
    assert 'duplicate key' in str(exc_info.value)


@pytest.mark.asyncio
async def test_gateway_error_is_connectivity_failure():
    adapter, _ = make_adapter(lambda request: httpx.Response(503, text='upstream unavailable'))

    with pytest.raises(ConnectivityError):
        await adapter.list('members')
    await adapter.close()


@pytest.mark.asyncio
async def test_transport_error_is_connectivity_failure():
    def responder(request):
        raise httpx.ConnectError("Name or service not known", request=request)

    adapter, _ = make_adapter(responder)

    with pytest.raises(ConnectivityError):
        await adapter.create('members', {'id': 'm1'})
    assert await adapter.health_check() is False
    await adapter.close()


@pytest.mark.asyncio
@pytest.mark.parametrize('error_type', [httpx.DecodingError, httpx.TooManyRedirects])
async def test_unusable_exchange_is_rejection(error_type):
    def responder(request):
        raise error_type("response could not be used", request=request)

    adapter, _ = make_adapter(responder)

    with pytest.raises(RemoteRejectionError) as exc_info:
        await adapter.update('members', 'm1', {'phone': '7000-0000'})
    await adapter.close()

    assert isinstance(exc_info.value.__cause__, error_type)


@pytest.mark.asyncio
async def test_body_that_is_not_json_is_rejection():
    adapter, _ = make_adapter(lambda request: httpx.Response(200, text='<html>maintenance</html>'))

    with pytest.raises(RemoteRejectionError, match='not JSON'):
        await adapter.list('members')
    await adapter.close()


@pytest.mark.asyncio
async def test_health_check_counts_rejection_as_reachable():
    adapter, _ = make_adapter(lambda request: httpx.Response(401, json={'message': 'Invalid API key'}))

    assert await adapter.health_check() is True
    await adapter.close()


@pytest.mark.asyncio
async def test_unconfigured_adapter_is_not_healthy():
    adapter = SupabaseAdapter({'remote': {}})

    assert adapter.is_configured is False
    assert await adapter.health_check() is False
