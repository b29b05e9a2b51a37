import enum
import logging
import re
from dataclasses import dataclass
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from quill.core.config import settings
from quill.core.exceptions import AppError, BadRequestError, ConflictError, InternalError, NotFoundError, UnauthorizedError
from quill.models.post import Post, Tag
from quill.models.user import User
from quill.services.integrity import classify_integrity_error
from quill.storage.local_storage import storage

logger = logging.getLogger(__name__)

ALLOWED_COVER_TYPES = {"image/avif", "image/jpeg", "image/jpg", "image/png", "image/webp"}
POST_NOT_FOUND_MESSAGE = "post not found"


class PostSort(str, enum.Enum):
    TITLE_ASC = "title-asc"
    TITLE_DESC = "title-desc"
    DATE_ASC = "date-asc"
    DATE_DESC = "date-desc"


_ORDERING = {
    PostSort.TITLE_ASC: Post.title.asc(),
    PostSort.TITLE_DESC: Post.title.desc(),
    PostSort.DATE_ASC: Post.created_at.asc(),
    PostSort.DATE_DESC: Post.created_at.desc(),
}


@dataclass(frozen=True)
class PostQuery:
    q: Optional[str] = None
    sort_by: PostSort = PostSort.DATE_DESC
    take: int = 20
    skip: int = 0


@dataclass(frozen=True)
class PostContent:
    title: str
    summary: str
    body: str
    tags: list[str]


@dataclass(frozen=True)
class PostChanges:
    title: Optional[str] = None
    summary: Optional[str] = None
    body: Optional[str] = None
    tags: Optional[list[str]] = None


def slugify(title: str) -> str:
    """'10 Tips for Time Management!' -> '10-tips-for-time-management'"""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower())
    return slug.strip("-")


def normalize_tags(tags: list[str]) -> list[str]:
    """Lower-case, strip and de-duplicate tags, keeping first-seen order"""
    seen = []
    for tag in tags:
        name = tag.strip().lower()
        if name and name not in seen:
            seen.append(name)
    return seen


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostService:
    @staticmethod
    async def read_cover(cover: UploadFile) -> bytes:
        """Validate the uploaded cover's type and size and return its bytes"""
        if not cover.filename:
            raise BadRequestError("cover filename is required")
        if cover.content_type not in ALLOWED_COVER_TYPES:
            raise BadRequestError(
                f"cover type not supported. Allowed: {', '.join(sorted(ALLOWED_COVER_TYPES))}"
            )
        content = await cover.read()
        if len(content) > settings.MAX_COVER_SIZE:
            raise BadRequestError(f"cover must be at most {settings.MAX_COVER_SIZE} bytes")
        return content

    @staticmethod
    async def resolve_tags(db: AsyncSession, names: list[str]) -> list[Tag]:
        """Connect existing tags by name and create the missing ones"""
        names = normalize_tags(names)
        if not names:
            return []
        result = await db.execute(select(Tag).where(Tag.name.in_(names)))
        existing = {tag.name: tag for tag in result.scalars().all()}

        tags = []
        for name in names:
            tag = existing.get(name)
            if tag is None:
                tag = Tag(name=name)
                db.add(tag)
            tags.append(tag)
        return tags

    @staticmethod
    async def find_by_slug(db: AsyncSession, slug: str) -> Optional[Post]:
        result = await db.execute(
            select(Post).options(selectinload(Post.tags)).where(Post.slug == slug)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_post(db: AsyncSession, slug: str) -> Post:
        try:
            post = await PostService.find_by_slug(db, slug)
            if post is None:
                raise NotFoundError(POST_NOT_FOUND_MESSAGE)
            return post
        except AppError:
            raise
        except Exception:
            logger.exception(f"failed to get post {slug}")
            raise InternalError("something went wrong. failed to get post.")

    @staticmethod
    async def list_posts(db: AsyncSession, query: PostQuery, author_id: Optional[str] = None) -> list[Post]:
        try:
            stmt = select(Post).options(selectinload(Post.tags))
            if author_id is not None:
                stmt = stmt.where(Post.author_id == author_id)
            if query.q:
                stmt = stmt.where(Post.title.ilike(f"%{escape_like(query.q.lower())}%", escape="\\"))
            stmt = stmt.order_by(_ORDERING[query.sort_by], Post.id).offset(query.skip).limit(query.take)

            result = await db.execute(stmt)
            return list(result.scalars().all())
        except Exception:
            logger.exception("failed to list posts")
            raise InternalError("Failed to get posts. something went wrong")

    @staticmethod
    async def list_user_posts(db: AsyncSession, user_id: str, query: PostQuery) -> list[Post]:
        if await db.get(User, user_id) is None:
            raise NotFoundError("User not found")
        return await PostService.list_posts(db, query, author_id=user_id)

    @staticmethod
    async def create_post(db: AsyncSession, author_id: str, content: PostContent, cover: UploadFile) -> Post:
        cover_path = None
        try:
            title = content.title.lower()
            slug = slugify(title)
            if not slug:
                raise BadRequestError("title must contain letters or digits")
            if await PostService.find_by_slug(db, slug):
                raise ConflictError("post already exist")

            cover_bytes = await PostService.read_cover(cover)
            tags = await PostService.resolve_tags(db, content.tags)
            if not tags:
                raise BadRequestError("at least one tag is required")

            cover_path = storage.save_cover(cover_bytes, cover.filename, slug)
            post = Post(
                author_id=author_id,
                title=title,
                slug=slug,
                summary=content.summary,
                body=content.body,
                cover=cover_path,
                tags=tags,
            )
            db.add(post)
            await db.commit()
            return post
        except AppError:
            await db.rollback()
            if cover_path:
                storage.delete_cover(cover_path)
            raise
        except IntegrityError as e:
            await db.rollback()
            if cover_path:
                storage.delete_cover(cover_path)
            raise classify_integrity_error(e) from e
        except Exception:
            logger.exception("failed to create post")
            await db.rollback()
            if cover_path:
                storage.delete_cover(cover_path)
            raise InternalError("Failed to creat post. something went wrong")

    @staticmethod
    async def _get_owned_post(db: AsyncSession, slug: str, user_id: str) -> Post:
        post = await PostService.find_by_slug(db, slug)
        if post is None:
            raise NotFoundError(POST_NOT_FOUND_MESSAGE)
        if post.author_id != user_id:
            raise UnauthorizedError("only the author can change this post")
        return post

    @staticmethod
    async def update_post(
        db: AsyncSession,
        user_id: str,
        slug: str,
        changes: PostChanges,
        cover: Optional[UploadFile] = None,
    ) -> Post:
        try:
            post = await PostService._get_owned_post(db, slug, user_id)

            if changes.title is not None:
                title = changes.title.lower()
                new_slug = slugify(title)
                if not new_slug:
                    raise BadRequestError("title must contain letters or digits")
                if new_slug != post.slug and await PostService.find_by_slug(db, new_slug):
                    raise ConflictError("post already exist")
                post.title = title
                post.slug = new_slug
            if changes.summary is not None:
                post.summary = changes.summary
            if changes.body is not None:
                post.body = changes.body
            if changes.tags is not None:
                tags = await PostService.resolve_tags(db, changes.tags)
                if not tags:
                    raise BadRequestError("at least one tag is required")
                post.tags = tags
            if cover is not None:
                cover_bytes = await PostService.read_cover(cover)
                storage.delete_cover(post.cover)
                post.cover = storage.save_cover(cover_bytes, cover.filename, post.slug)

            await db.commit()
            return post
        except AppError:
            await db.rollback()
            raise
        except IntegrityError as e:
            await db.rollback()
            raise classify_integrity_error(e) from e
        except Exception:
            logger.exception(f"failed to update post {slug}")
            await db.rollback()
            raise InternalError("Something went wrong. Failed to update post")

    @staticmethod
    async def remove_post(db: AsyncSession, user_id: str, slug: str) -> None:
        try:
            post = await PostService._get_owned_post(db, slug, user_id)
            cover_path = post.cover

            # Tag links and bookmarks go with the post via ON DELETE CASCADE
            await db.execute(delete(Post).where(Post.id == post.id))
            await db.commit()

            storage.delete_cover(cover_path)
        except AppError:
            raise
        except Exception:
            logger.exception(f"failed to delete post {slug}")
            await db.rollback()
            raise InternalError("something went wrong. failed to delete post.")


post_service = PostService()
