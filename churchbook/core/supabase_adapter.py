"""
Supabase Adapter for the hosted church database
Implements RemoteDataService over the PostgREST interface using httpx
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import httpx

from churchbook.core.exceptions import ConnectivityError, RemoteRejectionError
from churchbook.core.models import EntityCollection, collection_name
from churchbook.core.remote_service import RemoteDataService

DEFAULT_ORDER = {
    'members': 'full_name.asc',
    'income': 'date.desc',
    'expenses': 'date.desc',
    'sectors': 'name.asc',
}

# Gateway failures mean the database behind Supabase is unreachable
UNREACHABLE_STATUSES = {502, 503, 504}


class SupabaseAdapter(RemoteDataService):
    """
    PostgREST adapter for Supabase

    Supports:
    - Upsert-by-id inserts (idempotent replays)
    - Soft deletes through a ``deleted_at`` column for ledger tables
    - Bearer access tokens on top of the project api key
    """

    def __init__(self, config: Dict[str, Any], transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__(config)
        self.remote_config = config.get('remote', {})
        self.base_url = (self.remote_config.get('url') or '').rstrip('/')
        self.api_key = self.remote_config.get('api_key') or ''
        self.access_token = self.remote_config.get('access_token') or None
        self.timeout = self.remote_config.get('timeout', 10)
        self.soft_delete = set(self.remote_config.get('soft_delete', ['income', 'expenses']))
        self.order = {**DEFAULT_ORDER, **self.remote_config.get('order', {})}

        self._transport = transport
        # HTTP client will be created on first use
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client with auth headers and timeouts"""
        if self._client is None:
            headers = {
                'apikey': self.api_key,
                'Authorization': f"Bearer {self.access_token or self.api_key}",
                'Content-Type': 'application/json',
                'User-Agent': 'ChurchBook/1.0'
            }
            self._client = httpx.AsyncClient(
                base_url=f"{self.base_url}/rest/v1",
                headers=headers,
                timeout=self.timeout,
                transport=self._transport
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request and translate transport and HTTP failures"""
        try:
            response = await self._get_client().request(method, path, **kwargs)
        except httpx.TransportError as e:
            self.logger.warning(f"{method} /{path} could not reach Supabase: {e}")
            raise ConnectivityError(f"Supabase unreachable: {e}") from e
        except httpx.RequestError as e:
            # Reached the server but the exchange was unusable (bad encoding, redirect loop)
            self.logger.warning(f"{method} /{path} failed: {type(e).__name__}: {e}")
            raise RemoteRejectionError(f"Unusable response from Supabase: {e}") from e

        if response.status_code in UNREACHABLE_STATUSES:
            raise ConnectivityError(f"Supabase gateway returned {response.status_code}")

        if response.status_code >= 400:
            message, code = self._error_details(response)
            self.logger.warning(f"{method} /{path} rejected: {response.status_code} {message}")
            raise RemoteRejectionError(message, status_code=response.status_code, code=code)

        return response

    @staticmethod
    def _error_details(response: httpx.Response):
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase, None

        if isinstance(body, dict):
            return body.get('message') or body.get('error') or str(body), body.get('code')
        return str(body), None

    @staticmethod
    def _body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise RemoteRejectionError(
                f"Supabase returned a body that is not JSON: {e}", status_code=response.status_code
            ) from e

    @staticmethod
    def _single(rows: Any, collection: str, record_id: Any = None) -> Dict[str, Any]:
        if isinstance(rows, list):
            if not rows:
                raise RemoteRejectionError(f"{collection} record '{record_id}' not found", status_code=404)
            return rows[0]
        return rows

    async def create(self, collection: Union[EntityCollection, str], payload: Dict[str, Any]) -> Dict[str, Any]:
        table = collection_name(collection)
        response = await self._request(
            'POST', table,
            json=payload,
            headers={'Prefer': 'return=representation,resolution=merge-duplicates'}
        )
        return self._single(self._body(response), table, payload.get('id'))

    async def update(self, collection: Union[EntityCollection, str], record_id: Any,
                     payload: Dict[str, Any]) -> Dict[str, Any]:
        table = collection_name(collection)
        response = await self._request(
            'PATCH', table,
            params={'id': f"eq.{record_id}"},
            json=payload,
            headers={'Prefer': 'return=representation'}
        )
        return self._single(self._body(response), table, record_id)

    async def delete(self, collection: Union[EntityCollection, str], record_id: Any) -> None:
        table = collection_name(collection)
        if table in self.soft_delete:
            deleted_at = datetime.now(timezone.utc).isoformat()
            await self._request(
                'PATCH', table,
                params={'id': f"eq.{record_id}"},
                json={'deleted_at': deleted_at}
            )
        else:
            await self._request('DELETE', table, params={'id': f"eq.{record_id}"})

    async def list(self, collection: Union[EntityCollection, str]) -> List[Dict[str, Any]]:
        table = collection_name(collection)
        params = {'select': '*'}
        if table in self.order:
            params['order'] = self.order[table]
        if table in self.soft_delete:
            params['deleted_at'] = 'is.null'

        response = await self._request('GET', table, params=params)
        rows = self._body(response)
        return rows if isinstance(rows, list) else []

    async def health_check(self) -> bool:
        """Probe the PostgREST root"""
        if not self.is_configured:
            return False
        try:
            await self._request('GET', '')
            return True
        except ConnectivityError:
            return False
        except RemoteRejectionError as e:
            # Reachable, even if this key may not read the schema
            self.logger.debug(f"Health probe answered with {e.status_code}")
            return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
