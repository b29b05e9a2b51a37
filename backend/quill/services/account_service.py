import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from starlette.concurrency import run_in_threadpool

from quill.core.exceptions import AppError, ConflictError, InternalError, NotFoundError, UnauthorizedError
from quill.core.security import get_password_hash, verify_password
from quill.models.user import Account, Profile, User
from quill.services.integrity import classify_integrity_error, ensure_credentials, normalize_email

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileFields:
    first_name: str
    last_name: Optional[str] = None


@dataclass(frozen=True)
class ProviderIdentity:
    provider_type: str
    provider_id: str


class AccountService:
    """
    Single place that decides whether an identity already has an account.

    Creation writes the user, its profile and any provider link in one
    transaction, so a half-created user is never visible.
    """

    @staticmethod
    async def find_by_email(db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(
            select(User)
            .options(selectinload(User.profile), selectinload(User.accounts))
            .where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user(db: AsyncSession, user_id: str) -> User:
        result = await db.execute(
            select(User)
            .options(selectinload(User.profile), selectinload(User.accounts))
            .where(User.id == user_id)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("user not found")
        return user

    @staticmethod
    async def _create_user(
        db: AsyncSession,
        email: str,
        password_hash: Optional[str],
        profile: ProfileFields,
        identity: Optional[ProviderIdentity] = None,
        avatar: Optional[str] = None,
    ) -> User:
        accounts = []
        if identity is not None:
            accounts.append(Account(provider_type=identity.provider_type, provider_id=identity.provider_id))
        ensure_credentials(password_hash, len(accounts))

        user = User(
            email=normalize_email(email),
            password=password_hash,
            avatar=avatar,
            profile=Profile(first_name=profile.first_name, last_name=profile.last_name),
            accounts=accounts,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent sign-up for the same email
            await db.rollback()
            raise classify_integrity_error(e) from e
        return user

    @staticmethod
    async def register_local(
        db: AsyncSession,
        email: str,
        raw_password: str,
        profile: ProfileFields,
    ) -> User:
        """Create a user with a password; fails with ConflictError if the email is taken"""
        try:
            if await AccountService.find_by_email(db, email):
                raise ConflictError("user already exist")

            password_hash = await run_in_threadpool(get_password_hash, raw_password)
            return await AccountService._create_user(db, email, password_hash, profile)
        except AppError:
            raise
        except Exception:
            logger.exception("failed to create user")
            await db.rollback()
            raise InternalError("failed to create user")

    @staticmethod
    async def register_or_link_external(
        db: AsyncSession,
        identity: ProviderIdentity,
        email: str,
        profile: ProfileFields,
        avatar: Optional[str] = None,
    ) -> User:
        """
        Return the user for an external login, creating one on first sight.

        A user found by email is returned unchanged: the provider identity is
        not attached to an account that was registered some other way.
        """
        try:
            user = await AccountService.find_by_email(db, email)
            if user is not None:
                linked = any(
                    account.provider_type == identity.provider_type and account.provider_id == identity.provider_id
                    for account in user.accounts
                )
                if not linked:
                    logger.info(
                        f"User {user.id} signed in with unlinked {identity.provider_type} identity; not linking"
                    )
                return user

            return await AccountService._create_user(db, email, None, profile, identity=identity, avatar=avatar)
        except AppError:
            raise
        except Exception:
            logger.exception(f"failed to register {identity.provider_type} user")
            await db.rollback()
            raise InternalError("failed to sign in with external provider")

    @staticmethod
    async def authenticate_local(db: AsyncSession, email: str, raw_password: str) -> User:
        """Check email/password; any mismatch is reported the same way to avoid email enumeration"""
        try:
            user = await AccountService.find_by_email(db, email)
            # Provider-only accounts have no password and cannot sign in locally
            if not user or not user.password:
                raise UnauthorizedError("Invalid credentials")

            if not await run_in_threadpool(verify_password, raw_password, user.password):
                raise UnauthorizedError("Invalid credentials")
            return user
        except AppError:
            raise
        except Exception:
            logger.exception("Failed to login")
            raise InternalError("Failed to login")


account_service = AccountService()
