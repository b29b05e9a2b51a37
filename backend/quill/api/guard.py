from typing import Optional

from quill.core.exceptions import UnauthorizedError
from quill.core.security import InvalidTokenError, TokenIssuer, TokenPayload


class AccessGuard:
    """
    Decides whether a request may reach its handler.

    Only installed in front of non-public routes (see build_router); public
    routes never reach it. A request needs "Authorization: Bearer <token>"
    with a token the issuer accepts; the decoded identity is handed back so
    the caller can attach it to the request. Resource ownership is not
    checked here.
    """

    def __init__(self, issuer: TokenIssuer):
        self.issuer = issuer

    @staticmethod
    def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
        if not authorization:
            return None
        scheme, _, token = authorization.partition(" ")
        if scheme != "Bearer" or not token.strip():
            return None
        return token.strip()

    def authorize(self, authorization: Optional[str]) -> TokenPayload:
        token = self.extract_bearer_token(authorization)
        if token is None:
            raise UnauthorizedError("Invalid credentials")

        try:
            return self.issuer.verify(token)
        except InvalidTokenError:
            raise UnauthorizedError("Invalid credentials")
