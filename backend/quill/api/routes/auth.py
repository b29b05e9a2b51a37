import logging
from typing import Optional

from fastapi import Depends, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from quill.api.dependencies import get_google_client, get_token_issuer
from quill.api.routing import RouteDefinition, build_router
from quill.api.schemas import AccessTokenResponse, UserResponse
from quill.core.database import get_db
from quill.core.exceptions import UnauthorizedError, envelope
from quill.core.security import TokenIssuer
from quill.services.account_service import ProfileFields, ProviderIdentity, account_service
from quill.services.google_oauth import GoogleOAuthClient, OAuthError

logger = logging.getLogger(__name__)


class SignUpRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    first_name: str = Field(..., min_length=1)
    last_name: Optional[str] = None
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=25)
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class SignInRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


async def sign_up(user_data: SignUpRequest, db: AsyncSession = Depends(get_db)):
    """Register a new user with email and password"""
    user = await account_service.register_local(
        db,
        email=user_data.email,
        raw_password=user_data.password,
        profile=ProfileFields(first_name=user_data.first_name, last_name=user_data.last_name),
    )
    return envelope("Create user successfully", status.HTTP_201_CREATED, UserResponse.model_validate(user))


async def sign_in(
    credentials: SignInRequest,
    db: AsyncSession = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Login with email and password and get an access token"""
    user = await account_service.authenticate_local(db, credentials.email, credentials.password)
    access_token = issuer.issue(subject=user.id, email=user.email)
    return envelope(
        "Login successfully",
        status.HTTP_201_CREATED,
        AccessTokenResponse(access_token=access_token),
    )


async def google_login(google: GoogleOAuthClient = Depends(get_google_client)):
    """Redirect to Google's account chooser"""
    return RedirectResponse(google.authorization_url(google.create_state()), status_code=status.HTTP_302_FOUND)


async def google_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    google: GoogleOAuthClient = Depends(get_google_client),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    """Finish Google sign-in: create the user on first login and issue an access token"""
    if error or not code:
        raise UnauthorizedError("No user from google")
    if not google.verify_state(state):
        raise UnauthorizedError("Invalid OAuth state")

    try:
        google_profile = await google.fetch_profile(code)
    except OAuthError as e:
        raise UnauthorizedError(str(e))

    user = await account_service.register_or_link_external(
        db,
        identity=ProviderIdentity(provider_type="google", provider_id=google_profile.id),
        email=google_profile.email,
        profile=ProfileFields(first_name=google_profile.first_name, last_name=google_profile.last_name),
        avatar=google_profile.picture,
    )
    access_token = issuer.issue(subject=user.id, email=user.email)
    return envelope(
        "successfully logged-in using google",
        status.HTTP_200_OK,
        AccessTokenResponse(access_token=access_token),
    )


routes = [
    RouteDefinition("/sign-up", sign_up, methods=("POST",), public=True, status_code=status.HTTP_201_CREATED),
    RouteDefinition("/sign-in", sign_in, methods=("POST",), public=True, status_code=status.HTTP_201_CREATED),
    RouteDefinition("/google", google_login, public=True, status_code=status.HTTP_302_FOUND),
    RouteDefinition("/google/callback", google_callback, public=True),
]

router = build_router("/auth", ["auth"], routes)
