import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from quill.core.exceptions import AppError, InternalError, NotFoundError
from quill.models.follow import Follows
from quill.models.user import User
from quill.services.integrity import classify_integrity_error, ensure_not_self_follow

logger = logging.getLogger(__name__)


class FollowService:
    @staticmethod
    async def _ensure_user(db: AsyncSession, user_id: str) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    @staticmethod
    async def follow(db: AsyncSession, follower_id: str, following_id: str) -> Follows:
        """Create the edge follower -> following; ConflictError if it already exists"""
        try:
            ensure_not_self_follow(follower_id, following_id)
            await FollowService._ensure_user(db, follower_id)
            await FollowService._ensure_user(db, following_id)

            edge = Follows(follower_id=follower_id, following_id=following_id)
            db.add(edge)
            await db.commit()
            return edge
        except AppError:
            raise
        except IntegrityError as e:
            # Composite primary key: the pair is already followed
            await db.rollback()
            raise classify_integrity_error(e) from e
        except Exception:
            logger.exception(f"failed to follow {following_id} as {follower_id}")
            await db.rollback()
            raise InternalError("Something went wrong. Failed to following user.")

    @staticmethod
    async def unfollow(db: AsyncSession, follower_id: str, following_id: str) -> None:
        """Remove the edge; NotFoundError if there is nothing to remove"""
        try:
            result = await db.execute(
                delete(Follows).where(
                    Follows.follower_id == follower_id,
                    Follows.following_id == following_id,
                )
            )
            if result.rowcount == 0:
                await db.rollback()
                raise NotFoundError("not following user")
            await db.commit()
        except AppError:
            raise
        except Exception:
            logger.exception(f"failed to unfollow {following_id} as {follower_id}")
            await db.rollback()
            raise InternalError("Something went wrong. Failed to unfollow user.")

    @staticmethod
    async def list_followers(db: AsyncSession, user_id: str) -> list[User]:
        """Users who follow user_id"""
        await FollowService._ensure_user(db, user_id)
        result = await db.execute(
            select(User)
            .options(selectinload(User.profile))
            .join(Follows, Follows.follower_id == User.id)
            .where(Follows.following_id == user_id)
            .order_by(Follows.created_at.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_following(db: AsyncSession, user_id: str) -> list[User]:
        """Users that user_id follows"""
        await FollowService._ensure_user(db, user_id)
        result = await db.execute(
            select(User)
            .options(selectinload(User.profile))
            .join(Follows, Follows.following_id == User.id)
            .where(Follows.follower_id == user_id)
            .order_by(Follows.created_at.desc())
        )
        return list(result.scalars().all())


follow_service = FollowService()
