from fastapi import Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from quill.api.dependencies import get_current_identity
from quill.api.routing import RouteDefinition, build_router
from quill.api.schemas import PostResponse
from quill.core.database import get_db
from quill.core.exceptions import envelope
from quill.core.security import TokenPayload
from quill.services.bookmark_service import bookmark_service


async def list_bookmarks(
    identity: TokenPayload = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Posts bookmarked by the signed-in user"""
    posts = await bookmark_service.list_bookmarks(db, identity.subject)
    return envelope("Get bookmarks successfully", status.HTTP_200_OK, [PostResponse.model_validate(p) for p in posts])


async def add_bookmark(
    post_id: str,
    identity: TokenPayload = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    await bookmark_service.add_bookmark(db, identity.subject, post_id)
    return envelope("Bookmark post successfully", status.HTTP_201_CREATED)


async def remove_bookmark(
    post_id: str,
    identity: TokenPayload = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    await bookmark_service.remove_bookmark(db, identity.subject, post_id)
    return envelope("Remove bookmark successfully", status.HTTP_200_OK)


routes = [
    RouteDefinition("", list_bookmarks),
    RouteDefinition("/{post_id}", add_bookmark, methods=("POST",), status_code=status.HTTP_201_CREATED),
    RouteDefinition("/{post_id}", remove_bookmark, methods=("DELETE",)),
]

router = build_router("/bookmarks", ["bookmarks"], routes)
