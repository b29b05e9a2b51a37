import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quill.core.exceptions import AppError, InternalError, NotFoundError, UnauthorizedError
from quill.models.follow import Follows
from quill.models.post import Post
from quill.models.user import Profile, Role, User
from quill.services.account_service import account_service
from quill.services.integrity import classify_integrity_error
from quill.storage.local_storage import storage

logger = logging.getLogger(__name__)

PROFILE_FIELDS = {"first_name", "last_name", "mobile_number", "gender", "birth_of_date"}


@dataclass(frozen=True)
class UserCounts:
    followers: int
    following: int
    posts: int


class UserService:
    @staticmethod
    async def count_relations(db: AsyncSession, user_id: str) -> UserCounts:
        followers = await db.scalar(
            select(func.count()).select_from(Follows).where(Follows.following_id == user_id)
        )
        following = await db.scalar(
            select(func.count()).select_from(Follows).where(Follows.follower_id == user_id)
        )
        posts = await db.scalar(select(func.count()).select_from(Post).where(Post.author_id == user_id))
        return UserCounts(followers=followers or 0, following=following or 0, posts=posts or 0)

    @staticmethod
    async def get_current_user(db: AsyncSession, user_id: str) -> tuple[User, UserCounts]:
        try:
            user = await account_service.get_user(db, user_id)
            return user, await UserService.count_relations(db, user.id)
        except NotFoundError:
            # The token outlived its user
            raise UnauthorizedError("Unauthorize")
        except AppError:
            raise
        except Exception:
            logger.exception(f"failed to get current user {user_id}")
            raise InternalError("Somthing went wrong. failed to get current user.")

    @staticmethod
    async def get_profile(db: AsyncSession, user_id: str) -> Profile:
        try:
            user = await account_service.get_user(db, user_id)
            if user.profile is None:
                raise NotFoundError("profile not found")
            return user.profile
        except AppError:
            raise
        except Exception:
            logger.exception(f"failed to get profile of {user_id}")
            raise InternalError("failed to get user information")

    @staticmethod
    async def update_profile(db: AsyncSession, user_id: str, changes: dict[str, Any]) -> Profile:
        """Apply the given profile fields; a mobile number already used elsewhere is a ConflictError"""
        try:
            user = await account_service.get_user(db, user_id)
            profile = user.profile
            if profile is None:
                raise NotFoundError("profile not found")

            for field, value in changes.items():
                if field in PROFILE_FIELDS:
                    setattr(profile, field, value)

            await db.commit()
            return profile
        except AppError:
            raise
        except IntegrityError as e:
            await db.rollback()
            raise classify_integrity_error(e) from e
        except Exception:
            logger.exception(f"failed to update profile of {user_id}")
            await db.rollback()
            raise InternalError("failed to update profile")

    @staticmethod
    async def ensure_can_manage(db: AsyncSession, acting_user_id: str, target_user_id: str) -> None:
        """Users manage themselves; admins manage anyone"""
        if acting_user_id == target_user_id:
            return
        acting_user = await db.get(User, acting_user_id)
        if acting_user is None or acting_user.role != Role.ADMIN:
            raise UnauthorizedError("Unauthorized")

    @staticmethod
    async def remove_user(db: AsyncSession, user_id: str) -> None:
        """
        Delete a user.

        Profile, accounts, posts (and their tag links and bookmarks), the
        user's own bookmarks and follow edges in both directions are removed
        by the database cascades. Cover files are removed after commit.
        """
        try:
            if await db.get(User, user_id) is None:
                raise NotFoundError("user not found")

            covers = (await db.execute(select(Post.cover).where(Post.author_id == user_id))).scalars().all()

            await db.execute(delete(User).where(User.id == user_id))
            await db.commit()

            for cover in covers:
                storage.delete_cover(cover)
            logger.info(f"Deleted user {user_id} and {len(covers)} posts")
        except AppError:
            raise
        except Exception:
            logger.exception(f"failed to delete user {user_id}")
            await db.rollback()
            raise InternalError("failed to delete user")


user_service = UserService()
