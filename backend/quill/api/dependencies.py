from fastapi import Depends, Request

from quill.api.guard import AccessGuard
from quill.core.exceptions import UnauthorizedError
from quill.core.security import TokenIssuer, TokenPayload, token_issuer
from quill.services.google_oauth import GoogleOAuthClient, google_client


def get_token_issuer() -> TokenIssuer:
    # Wrapped in a dependency so tests can swap in an issuer with another key or lifetime
    return token_issuer


def get_google_client() -> GoogleOAuthClient:
    # Tests override this with a client whose HTTP transport is mocked
    return google_client


async def authenticate_request(
    request: Request,
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> TokenPayload:
    """
    Guard attached to every non-public route.

    Verifies the bearer token and stores the identity on request.state so
    handlers can read the acting user id from identity.subject.
    """
    guard = AccessGuard(issuer)
    # Raises UnauthorizedError (401 + WWW-Authenticate) before the handler runs
    identity = guard.authorize(request.headers.get("Authorization"))
    # request.state lives for this request only, so identities never leak between requests
    request.state.identity = identity
    return identity


def get_current_identity(request: Request) -> TokenPayload:
    """Identity attached by the guard; only meaningful on non-public routes"""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        # Handler on a public route asked for an identity; treat as unauthenticated
        raise UnauthorizedError("Invalid credentials")
    return identity
