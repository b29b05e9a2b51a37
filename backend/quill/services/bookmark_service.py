import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from quill.core.exceptions import AppError, InternalError, NotFoundError
from quill.models.bookmark import Bookmark
from quill.models.post import Post
from quill.services.integrity import classify_integrity_error

logger = logging.getLogger(__name__)


class BookmarkService:
    @staticmethod
    async def add_bookmark(db: AsyncSession, user_id: str, post_id: str) -> Bookmark:
        try:
            if await db.get(Post, post_id) is None:
                raise NotFoundError("post not found")

            bookmark = Bookmark(user_id=user_id, post_id=post_id)
            db.add(bookmark)
            await db.commit()
            return bookmark
        except AppError:
            raise
        except IntegrityError as e:
            await db.rollback()
            raise classify_integrity_error(e) from e
        except Exception:
            logger.exception(f"failed to bookmark post {post_id}")
            await db.rollback()
            raise InternalError("failed to bookmark post")

    @staticmethod
    async def remove_bookmark(db: AsyncSession, user_id: str, post_id: str) -> None:
        try:
            result = await db.execute(
                delete(Bookmark).where(Bookmark.user_id == user_id, Bookmark.post_id == post_id)
            )
            if result.rowcount == 0:
                await db.rollback()
                raise NotFoundError("bookmark not found")
            await db.commit()
        except AppError:
            raise
        except Exception:
            logger.exception(f"failed to remove bookmark for post {post_id}")
            await db.rollback()
            raise InternalError("failed to remove bookmark")

    @staticmethod
    async def list_bookmarks(db: AsyncSession, user_id: str) -> list[Post]:
        """Bookmarked posts, most recently bookmarked first"""
        result = await db.execute(
            select(Post)
            .options(selectinload(Post.tags))
            .join(Bookmark, Bookmark.post_id == Post.id)
            .where(Bookmark.user_id == user_id)
            .order_by(Bookmark.created_at.desc())
        )
        return list(result.scalars().all())


bookmark_service = BookmarkService()
