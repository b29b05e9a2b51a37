from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from quill.api.dependencies import get_current_identity
from quill.api.routing import RouteDefinition, build_router
from quill.api.schemas import (
    AccountResponse,
    CurrentUserResponse,
    PostResponse,
    ProfileResponse,
    UserCountsResponse,
    UserResponse,
)
from quill.core.database import get_db
from quill.core.exceptions import UnauthorizedError, envelope
from quill.core.security import TokenPayload
from quill.models.user import Gender
from quill.services.follow_service import follow_service
from quill.services.post_service import PostQuery, PostSort, post_service
from quill.services.user_service import user_service


class UpdateProfileRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = None
    # E.164-style: optional +, 8 to 15 digits
    mobile_number: Optional[str] = Field(None, pattern=r"^\+?[0-9]{8,15}$")
    gender: Optional[Gender] = None
    birth_of_date: Optional[date] = None

    @field_validator("first_name")
    @classmethod
    def first_name_not_null(cls, value):
        # Omitting firstName keeps the stored one; an explicit null would clear a required column
        if value is None:
            raise ValueError("firstName cannot be null")
        return value


async def current_user(
    identity: TokenPayload = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Get the signed-in user with profile, linked accounts and counts"""
    user, counts = await user_service.get_current_user(db, identity.subject)
    data = CurrentUserResponse(
        **UserResponse.model_validate(user).model_dump(),
        accounts=[AccountResponse.model_validate(account) for account in user.accounts],
        counts=UserCountsResponse(**asdict(counts)),
    )
    return envelope("Get current user successfully", status.HTTP_200_OK, data)


async def get_profile(user_id: str, db: AsyncSession = Depends(get_db)):
    """Get a user's profile"""
    profile = await user_service.get_profile(db, user_id)
    return envelope(
        f"Get {profile.first_name} profile successfully",
        status.HTTP_200_OK,
        ProfileResponse.model_validate(profile),
    )


async def update_profile(
    user_id: str,
    profile_update: UpdateProfileRequest,
    identity: TokenPayload = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Update a user's profile; only the user or an admin may do this"""
    await user_service.ensure_can_manage(db, identity.subject, user_id)
    profile = await user_service.update_profile(db, user_id, profile_update.model_dump(exclude_unset=True))
    return envelope(
        f"Update {profile.first_name} profile successfully",
        status.HTTP_200_OK,
        ProfileResponse.model_validate(profile),
    )


async def delete_user(
    user_id: str,
    identity: TokenPayload = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Delete a user and everything they own"""
    await user_service.ensure_can_manage(db, identity.subject, user_id)
    await user_service.remove_user(db, user_id)
    return envelope("delete user", status.HTTP_200_OK)


async def get_user_posts(
    user_id: str,
    sort_by: PostSort = Query(PostSort.DATE_DESC, alias="sortBy"),
    take: int = Query(20, ge=1, le=100),
    skip: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """List posts written by a user"""
    posts = await post_service.list_user_posts(db, user_id, PostQuery(sort_by=sort_by, take=take, skip=skip))
    return envelope("Get user posts", status.HTTP_200_OK, [PostResponse.model_validate(p) for p in posts])


def _ensure_acting_user(identity: TokenPayload, user_id: str) -> None:
    # Follow edges can only be changed by the follower themselves
    if identity.subject != user_id:
        raise UnauthorizedError("Unauthorized")


async def follow_user(
    user_id: str,
    followed_id: str,
    identity: TokenPayload = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Follow another user"""
    _ensure_acting_user(identity, user_id)
    await follow_service.follow(db, user_id, followed_id)
    return envelope("following user successfully", status.HTTP_201_CREATED)


async def unfollow_user(
    user_id: str,
    followed_id: str,
    identity: TokenPayload = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    """Stop following a user"""
    _ensure_acting_user(identity, user_id)
    await follow_service.unfollow(db, user_id, followed_id)
    return envelope("unfollow user successfully", status.HTTP_200_OK)


async def list_followers(user_id: str, db: AsyncSession = Depends(get_db)):
    users = await follow_service.list_followers(db, user_id)
    return envelope("Get followers successfully", status.HTTP_200_OK, [UserResponse.model_validate(u) for u in users])


async def list_following(user_id: str, db: AsyncSession = Depends(get_db)):
    users = await follow_service.list_following(db, user_id)
    return envelope("Get following successfully", status.HTTP_200_OK, [UserResponse.model_validate(u) for u in users])


routes = [
    RouteDefinition("/current-user", current_user),
    RouteDefinition("/{user_id}/profile", get_profile),
    RouteDefinition("/{user_id}/profile", update_profile, methods=("PATCH",)),
    RouteDefinition("/{user_id}", delete_user, methods=("DELETE",)),
    RouteDefinition("/{user_id}/posts", get_user_posts, public=True),
    RouteDefinition(
        "/{user_id}/follow/{followed_id}", follow_user, methods=("POST",), status_code=status.HTTP_201_CREATED
    ),
    RouteDefinition("/{user_id}/unfollow/{followed_id}", unfollow_user, methods=("DELETE",)),
    RouteDefinition("/{user_id}/followers", list_followers, public=True),
    RouteDefinition("/{user_id}/following", list_following, public=True),
]

router = build_router("/users", ["users"], routes)
