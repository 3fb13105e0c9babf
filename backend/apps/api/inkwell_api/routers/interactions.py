"""
Interactions router.

Provides endpoints for likes, dislikes, ratings, views, reads and follows.
Writes are attributed to the bearer token's user, or to the anonymous
client token when no user is logged in.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from inkwell_core.exceptions import InteractionError
from inkwell_core.schemas import (
    ActorState,
    FollowResult,
    InteractionResult,
    RatingRequest,
    ViewResult,
)
from inkwell_core.services import InteractionService

from ..dependencies import (
    get_anonymous_token,
    get_current_user_id,
    get_interaction_service,
    http_error,
    require_user_id,
)

router = APIRouter()

UserId = Annotated[int, Depends(get_current_user_id)]
AnonymousToken = Annotated[str | None, Depends(get_anonymous_token)]
Service = Annotated[InteractionService, Depends(get_interaction_service)]


@router.post("/{item_id}/like")
async def like(
    item_id: int, user_id: UserId, anonymous_token: AnonymousToken, service: Service
) -> InteractionResult:
    """
    Like a chapter.

    Args:
        item_id: Chapter identifier.
        user_id: Current user ID (0 when anonymous).
        anonymous_token: Anonymous client token.
        service: Interaction service.

    Returns:
        Change flag and updated chapter stats.
    """
    try:
        return await service.record_like(item_id, user_id, anonymous_token)
    except InteractionError as e:
        raise http_error(e) from None


@router.delete("/{item_id}/like")
async def unlike(
    item_id: int, user_id: UserId, anonymous_token: AnonymousToken, service: Service
) -> InteractionResult:
    """Remove a like."""
    try:
        return await service.remove_like(item_id, user_id, anonymous_token)
    except InteractionError as e:
        raise http_error(e) from None


@router.post("/{item_id}/dislike")
async def dislike(
    item_id: int, user_id: UserId, anonymous_token: AnonymousToken, service: Service
) -> InteractionResult:
    """Dislike a chapter."""
    try:
        return await service.record_dislike(item_id, user_id, anonymous_token)
    except InteractionError as e:
        raise http_error(e) from None


@router.delete("/{item_id}/dislike")
async def undislike(
    item_id: int, user_id: UserId, anonymous_token: AnonymousToken, service: Service
) -> InteractionResult:
    """Remove a dislike."""
    try:
        return await service.remove_dislike(item_id, user_id, anonymous_token)
    except InteractionError as e:
        raise http_error(e) from None


@router.put("/{item_id}/rating")
async def rate(
    item_id: int,
    data: RatingRequest,
    user_id: UserId,
    anonymous_token: AnonymousToken,
    service: Service,
) -> InteractionResult:
    """
    Rate a chapter.

    Args:
        item_id: Chapter identifier.
        data: Rating between 0.5 and 5.0.
        user_id: Current user ID (0 when anonymous).
        anonymous_token: Anonymous client token.
        service: Interaction service.

    Returns:
        Change flag and updated chapter stats.
    """
    try:
        return await service.record_rating(item_id, data.rating, user_id, anonymous_token)
    except InteractionError as e:
        raise http_error(e) from None


@router.delete("/{item_id}/rating")
async def unrate(
    item_id: int, user_id: UserId, anonymous_token: AnonymousToken, service: Service
) -> InteractionResult:
    """Remove a rating."""
    try:
        return await service.remove_rating(item_id, user_id, anonymous_token)
    except InteractionError as e:
        raise http_error(e) from None


@router.post("/{item_id}/view")
async def view(item_id: int, user_id: UserId, service: Service) -> ViewResult:
    """
    Record a chapter view.

    Views by the story's author or co-authors are skipped.
    """
    try:
        return await service.record_view(item_id, viewer_id=user_id)
    except InteractionError as e:
        raise http_error(e) from None


@router.post("/{item_id}/read")
async def mark_read(
    item_id: int,
    user_id: Annotated[int, Depends(require_user_id)],
    service: Service,
) -> InteractionResult:
    """Mark a chapter as read."""
    try:
        return await service.record_read(item_id, user_id)
    except InteractionError as e:
        raise http_error(e) from None


@router.delete("/{item_id}/read")
async def unmark_read(
    item_id: int,
    user_id: Annotated[int, Depends(require_user_id)],
    service: Service,
) -> InteractionResult:
    """Clear a chapter's read mark."""
    try:
        return await service.remove_read(item_id, user_id)
    except InteractionError as e:
        raise http_error(e) from None


@router.post("/{post_id}/follow/toggle")
async def toggle_follow(
    post_id: int, user_id: UserId, anonymous_token: AnonymousToken, service: Service
) -> FollowResult:
    """
    Follow a story or chapter, or unfollow it if already followed.

    Args:
        post_id: Story or chapter identifier.
        user_id: Current user ID (0 when anonymous).
        anonymous_token: Anonymous client token.
        service: Interaction service.

    Returns:
        Change flag and resulting follow state.
    """
    try:
        return await service.toggle_follow(post_id, user_id, anonymous_token)
    except InteractionError as e:
        raise http_error(e) from None


@router.put("/{post_id}/follow")
async def follow(
    post_id: int, user_id: UserId, anonymous_token: AnonymousToken, service: Service
) -> FollowResult:
    """Follow a story or chapter."""
    try:
        return await service.record_follow(post_id, user_id, anonymous_token)
    except InteractionError as e:
        raise http_error(e) from None


@router.delete("/{post_id}/follow")
async def unfollow(
    post_id: int, user_id: UserId, anonymous_token: AnonymousToken, service: Service
) -> FollowResult:
    """Unfollow a story or chapter."""
    try:
        return await service.remove_follow(post_id, user_id, anonymous_token)
    except InteractionError as e:
        raise http_error(e) from None


@router.get("/{post_id}/follow")
async def get_follow(
    post_id: int, user_id: UserId, anonymous_token: AnonymousToken, service: Service
) -> dict[str, bool]:
    """Check whether the current actor follows a post."""
    return {"is_followed": await service.has_follow(post_id, user_id, anonymous_token)}


@router.get("/{item_id}/state")
async def get_state(
    item_id: int, user_id: UserId, anonymous_token: AnonymousToken, service: Service
) -> ActorState:
    """Get the current actor's interactions with an item."""
    return await service.get_actor_state(item_id, user_id, anonymous_token)
