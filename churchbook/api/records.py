"""
Entity Records API Router
Members, income and expenses with offline fallback; sectors read-only
"""

import logging
from typing import Any, Dict, List, Type

from fastapi import APIRouter, Body, Depends, status

from churchbook.api.dependencies import get_services, verify_api_key
from churchbook.api.schemas import (
    ExpenseCreate, ExpenseUpdate, IncomeCreate, IncomeUpdate, MemberCreate, MemberUpdate,
    RecordPayload
)
from churchbook.core.models import EntityCollection

logger = logging.getLogger(__name__)


def build_collection_router(collection: EntityCollection, create_schema: Type[RecordPayload],
                            update_schema: Type[RecordPayload]) -> APIRouter:
    """CRUD routes for one writable collection"""
    router = APIRouter()
    name = collection.value

    @router.get("", response_model=List[Dict[str, Any]])
    async def list_records(
        authenticated: bool = Depends(verify_api_key),
        services=Depends(get_services)
    ):
        return await services.repositories[name].list()

    @router.post("", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
    async def create_record(
        payload: create_schema = Body(...),
        authenticated: bool = Depends(verify_api_key),
        services=Depends(get_services)
    ):
        record = await services.repositories[name].create(payload.to_record())
        logger.info(f"Created {name}/{record['id']} (synced={record.get('synced')})")
        return record

    @router.patch("/{record_id}", response_model=Dict[str, Any])
    async def update_record(
        record_id: str,
        payload: update_schema = Body(...),
        authenticated: bool = Depends(verify_api_key),
        services=Depends(get_services)
    ):
        return await services.repositories[name].update(record_id, payload.to_record())

    @router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_record(
        record_id: str,
        authenticated: bool = Depends(verify_api_key),
        services=Depends(get_services)
    ):
        await services.repositories[name].delete(record_id)
        logger.info(f"Deleted {name}/{record_id}")

    return router


members_router = build_collection_router(EntityCollection.MEMBERS, MemberCreate, MemberUpdate)
income_router = build_collection_router(EntityCollection.INCOME, IncomeCreate, IncomeUpdate)
expenses_router = build_collection_router(EntityCollection.EXPENSES, ExpenseCreate, ExpenseUpdate)

sectors_router = APIRouter()


@sectors_router.get("", response_model=List[Dict[str, Any]])
async def list_sectors(
    authenticated: bool = Depends(verify_api_key),
    services=Depends(get_services)
):
    return await services.repositories[EntityCollection.SECTORS.value].list()
