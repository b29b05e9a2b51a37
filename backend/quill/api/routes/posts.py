from typing import Optional

from fastapi import Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from quill.api.dependencies import get_current_identity
from quill.api.routing import RouteDefinition, build_router
from quill.api.schemas import PostResponse
from quill.core.database import get_db
from quill.core.exceptions import envelope
from quill.core.security import TokenPayload
from quill.services.post_service import PostChanges, PostContent, PostQuery, PostSort, post_service


async def create_post(
    title: str = Form(..., min_length=6, max_length=70),
    summary: str = Form(..., min_length=50, max_length=160),
    body: str = Form(..., min_length=50),
    tags: list[str] = Form(...),
    cover: UploadFile = File(...),
    identity: TokenPayload = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Create a post with a cover image (multipart form)"""
    post = await post_service.create_post(
        db,
        author_id=identity.subject,
        content=PostContent(title=title, summary=summary, body=body, tags=tags),
        cover=cover,
    )
    return envelope("Create new post successfully", status.HTTP_201_CREATED, PostResponse.model_validate(post))


async def list_posts(
    q: Optional[str] = Query(None, description="Search posts by title"),
    sort_by: PostSort = Query(PostSort.DATE_DESC, alias="sortBy"),
    take: int = Query(20, ge=1, le=100),
    skip: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """List posts, optionally filtered by title"""
    posts = await post_service.list_posts(db, PostQuery(q=q, sort_by=sort_by, take=take, skip=skip))
    return envelope("get posts successfully", status.HTTP_200_OK, [PostResponse.model_validate(p) for p in posts])


async def get_post(slug: str, db: AsyncSession = Depends(get_db)):
    post = await post_service.get_post(db, slug)
    return envelope("Get post successfully", status.HTTP_200_OK, PostResponse.model_validate(post))


async def update_post(
    slug: str,
    title: Optional[str] = Form(None, min_length=6, max_length=70),
    summary: Optional[str] = Form(None, min_length=50, max_length=160),
    body: Optional[str] = Form(None, min_length=50),
    tags: Optional[list[str]] = Form(None),
    cover: Optional[UploadFile] = File(None),
    identity: TokenPayload = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Update a post; only its author may do this"""
    post = await post_service.update_post(
        db,
        user_id=identity.subject,
        slug=slug,
        changes=PostChanges(title=title, summary=summary, body=body, tags=tags),
        cover=cover,
    )
    return envelope("Update post successfully", status.HTTP_200_OK, PostResponse.model_validate(post))


async def delete_post(
    slug: str,
    identity: TokenPayload = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    await post_service.remove_post(db, identity.subject, slug)
    return envelope("delete post successfully", status.HTTP_200_OK)


routes = [
    RouteDefinition("", create_post, methods=("POST",), status_code=status.HTTP_201_CREATED),
    RouteDefinition("", list_posts, public=True),
    RouteDefinition("/{slug}", get_post, public=True),
    RouteDefinition("/{slug}", update_post, methods=("PATCH",)),
    RouteDefinition("/{slug}", delete_post, methods=("DELETE",)),
]

router = build_router("/posts", ["posts"], routes)
