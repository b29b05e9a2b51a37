"""
Relational integrity rules shared by the services.

The database is the final authority on uniqueness (two concurrent sign-ups
for the same email can both pass a pre-check). When it rejects a write the
driver error is translated here into a stable domain error instead of
surfacing as a 500.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError

from quill.core.exceptions import AppError, BadRequestError, ConflictError, InternalError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConstraintRule:
    # Substrings identifying the constraint in PostgreSQL and SQLite messages
    markers: tuple[str, ...]
    error: type[AppError]
    message: str


CONSTRAINT_RULES = (
    ConstraintRule(("uq_users_email", "users.email"), ConflictError, "user already exist"),
    ConstraintRule(
        ("uq_profiles_mobile_number", "profiles.mobile_number"),
        ConflictError,
        "mobile number already in use",
    ),
    ConstraintRule(
        ("uq_accounts_provider", "accounts.provider_type"),
        ConflictError,
        "provider account already linked",
    ),
    ConstraintRule(("pk_follows", "follows.follower_id"), ConflictError, "already following user"),
    ConstraintRule(("pk_bookmarks", "bookmarks.user_id"), ConflictError, "post already bookmarked"),
    ConstraintRule(("uq_posts_slug", "posts.slug"), ConflictError, "post already exist"),
    ConstraintRule(("foreign key",), NotFoundError, "referenced record not found"),
)


def normalize_email(email: str) -> str:
    """Emails are compared and stored lower-cased so uniqueness is case-insensitive"""
    return email.strip().lower()


def ensure_credentials(password_hash: Optional[str], provider_accounts: int) -> None:
    """A user must be able to sign in somehow: a password or a linked provider account"""
    if not password_hash and provider_accounts < 1:
        raise BadRequestError("user needs a password or a linked provider account")


def ensure_not_self_follow(follower_id: str, following_id: str) -> None:
    if follower_id == following_id:
        raise BadRequestError("users cannot follow themselves")


def classify_integrity_error(exc: IntegrityError) -> AppError:
    """Map a constraint violation to the domain error callers should see"""
    detail = str(exc.orig).lower()
    for rule in CONSTRAINT_RULES:
        if any(marker.lower() in detail for marker in rule.markers):
            return rule.error(rule.message)

    logger.error(f"Unrecognised integrity error: {detail}")
    return InternalError()
