# bizflow/mobile/api/routes/sync.py

from fastapi import APIRouter, Depends

from bizflow.mobile.api.dependencies import Container, CurrentIdentity, rate_limit
from bizflow.mobile.api.schemas import (
    SyncBatchRequest,
    SyncBatchResponse,
    SyncErrorItem,
    SyncRequest,
    SyncResponse,
)
from bizflow.mobile.application.dtos import BatchItemError

router = APIRouter(prefix="/sync", tags=["Mobile:Sync"], dependencies=[Depends(rate_limit("sync"))])


@router.post("", response_model=SyncResponse)
async def sync_entity(payload: SyncRequest, identity: CurrentIdentity, container: Container) -> SyncResponse:
    """
    Push pending changes for one entity and pull what changed on the server.

    Conflicting updates are resolved last-writer-wins and reported in
    `conflicts`; follow `nextCursor` while `hasMore` is true.
    """
    result = await container.sync.process_sync(identity, payload.to_command())
    return SyncResponse.from_result(result)


@router.post("/batch", response_model=SyncBatchResponse)
async def sync_batch(payload: SyncBatchRequest, identity: CurrentIdentity, container: Container) -> SyncBatchResponse:
    outcomes = await container.sync.process_batch(identity, [r.to_command() for r in payload.entities])
    return SyncBatchResponse(
        results=[
            SyncErrorItem.from_domain(o) if isinstance(o, BatchItemError) else SyncResponse.from_result(o)
            for o in outcomes
        ]
    )
