from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from quill.models.user import Gender, Role


class CamelModel(BaseModel):
    # Response bodies use camelCase keys
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ProfileResponse(CamelModel):
    id: str
    user_id: str
    first_name: str
    last_name: Optional[str] = None
    mobile_number: Optional[str] = None
    gender: Optional[Gender] = None
    birth_of_date: Optional[date] = None


class AccountResponse(CamelModel):
    id: str
    provider_type: str
    provider_id: str
    created_at: datetime


class UserResponse(CamelModel):
    id: str
    email: str
    avatar: Optional[str] = None
    role: Role
    created_at: datetime
    profile: Optional[ProfileResponse] = None


class UserCountsResponse(CamelModel):
    followers: int
    following: int
    posts: int


class CurrentUserResponse(UserResponse):
    accounts: list[AccountResponse] = []
    counts: UserCountsResponse


class TagResponse(CamelModel):
    id: int
    name: str


class PostResponse(CamelModel):
    id: str
    author_id: str
    title: str
    slug: str
    summary: str
    body: str
    cover: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    tags: list[TagResponse] = []


class AccessTokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
