"""
Sync router.

Provides the login-time merge of client-held interaction snapshots.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from inkwell_core.exceptions import InteractionError
from inkwell_core.schemas import SyncRequest, SyncResult, SyncStatusResponse
from inkwell_core.services import SyncService

from ..dependencies import get_anonymous_token, get_sync_service, http_error, require_user_id

router = APIRouter()


@router.post("")
async def sync_local_snapshot(
    data: SyncRequest,
    user_id: Annotated[int, Depends(require_user_id)],
    anonymous_token: Annotated[str | None, Depends(get_anonymous_token)],
    service: Annotated[SyncService, Depends(get_sync_service)],
) -> SyncResult:
    """
    Merge the client's local snapshot into the server store.

    The anonymous token may come in the body or the X-Anonymous-Id header;
    rows written under it are moved to the logged-in user first.

    Args:
        data: Local snapshot and optional anonymous token.
        user_id: Current user ID.
        anonymous_token: Anonymous token header.
        service: Sync service.

    Returns:
        Merged snapshot.
    """
    try:
        return await service.sync_on_login(
            user_id, data.local, data.anonymous_id or anonymous_token
        )
    except InteractionError as e:
        raise http_error(e) from None


@router.get("/status")
async def sync_status(
    user_id: Annotated[int, Depends(require_user_id)],
    service: Annotated[SyncService, Depends(get_sync_service)],
) -> SyncStatusResponse:
    """Check whether the client should push its local snapshot."""
    return SyncStatusResponse(needs_sync=await service.needs_sync(user_id))


@router.post("/flag")
async def flag_sync(
    user_id: Annotated[int, Depends(require_user_id)],
    service: Annotated[SyncService, Depends(get_sync_service)],
) -> SyncStatusResponse:
    """Ask the client to push its snapshot on its next request, e.g. after login."""
    await service.flag_sync_needed(user_id)
    return SyncStatusResponse(needs_sync=True)
