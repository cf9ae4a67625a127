"""
Sync API Router
Manual synchronization, queue inspection and dead-letter handling
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from churchbook.api.dependencies import get_services, verify_api_key
from churchbook.api.error_handling import ConflictAPIError
from churchbook.api.schemas import (
    PendingOperationResponse, RefreshResponse, SyncResultResponse, SyncStatusResponse
)
from churchbook.core.exceptions import RecordNotFoundError
from churchbook.core.models import EntityCollection

router = APIRouter()
logger = logging.getLogger(__name__)


def _operation_response(operation, max_retries: int) -> PendingOperationResponse:
    return PendingOperationResponse(
        **operation.to_dict(),
        dead_letter=operation.attempt_count >= max_retries
    )


@router.post("", response_model=SyncResultResponse)
async def trigger_sync(
    authenticated: bool = Depends(verify_api_key),
    services=Depends(get_services)
):
    """Run a synchronization pass now"""
    logger.info("Manual sync triggered")
    result = await services.synchronizer.sync()
    if result.failed:
        logger.warning(f"Manual sync left {result.failed} operations pending")
    return SyncResultResponse(**result.to_dict())


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(
    authenticated: bool = Depends(verify_api_key),
    services=Depends(get_services)
):
    synchronizer = services.synchronizer
    last_result = synchronizer.last_result

    return SyncStatusResponse(
        online=services.connectivity.is_online(),
        is_running=synchronizer.is_running,
        pending_operations=await services.queue.count(),
        dead_letters=len(await services.queue.list_dead_letters(synchronizer.max_retries)),
        max_retries=synchronizer.max_retries,
        last_sync=synchronizer.last_sync_time,
        last_result=SyncResultResponse(**last_result.to_dict()) if last_result else None,
        scheduler=services.scheduler.get_status()
    )


@router.get("/queue", response_model=List[PendingOperationResponse])
async def list_queue(
    collection: Optional[EntityCollection] = Query(None),
    authenticated: bool = Depends(verify_api_key),
    services=Depends(get_services)
):
    """Queued operations, oldest first"""
    if collection:
        operations = await services.queue.list_by_collection(collection)
    else:
        operations = await services.queue.list_all()

    max_retries = services.synchronizer.max_retries
    return [_operation_response(operation, max_retries) for operation in operations]


@router.delete("/queue/{operation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_operation(
    operation_id: int,
    authenticated: bool = Depends(verify_api_key),
    services=Depends(get_services)
):
    """Discard an operation that has exhausted its retries"""
    operation = await services.queue.get(operation_id)
    if operation is None:
        raise RecordNotFoundError("pending_operations", operation_id)

    if operation.attempt_count < services.synchronizer.max_retries:
        raise ConflictAPIError(
            f"Operation {operation_id} is still retryable "
            f"({operation.attempt_count}/{services.synchronizer.max_retries} attempts)"
        )

    await services.queue.remove(operation_id)
    logger.warning(
        f"Discarded {operation.operation_kind.value} operation {operation_id} on "
        f"{operation.entity_collection}: {operation.last_error}"
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_from_server(
    authenticated: bool = Depends(verify_api_key),
    services=Depends(get_services)
):
    """Pull every collection from the server into the local store"""
    refreshed = await services.synchronizer.refresh_all()
    return RefreshResponse(refreshed=refreshed, timestamp=datetime.now(timezone.utc))
