from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import UnknownHashError

from quill.core.config import settings

# CryptContext handles password hashing using bcrypt
# bcrypt generates a fresh salt per call and embeds it in the hash,
# so hashing the same password twice never gives the same string
# 'deprecated="auto"' lets passlib re-hash with newer schemes if they are added
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    # Slow on purpose; callers run this in a threadpool so the event loop keeps serving
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against a hash using constant-time comparison"""
    # Accounts created through Google have no password hash at all
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, UnknownHashError):
        # A malformed stored hash is a failed match, not a server error
        return False


class InvalidTokenError(Exception):
    """Token is malformed, tampered with, expired or missing claims"""


@dataclass(frozen=True)
class TokenPayload:
    # subject is the user id; handlers use it as the acting user
    subject: str
    email: str


class TokenIssuer:
    """
    Signs and verifies bearer tokens carrying {sub, email}.

    The signing key, algorithm and lifetime are fixed at construction.
    There is no revocation list: a token stays valid until it expires.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 60 * 24):
        # If the secret key leaks, anyone can forge tokens for any user
        self._secret_key = secret_key
        # Algorithm must match between issue and verify; changing it invalidates all tokens
        self._algorithm = algorithm
        self._lifetime = timedelta(minutes=expire_minutes)

    @property
    def lifetime(self) -> timedelta:
        return self._lifetime

    def issue(self, subject: str, email: str, expires_delta: Optional[timedelta] = None) -> str:
        """Create a signed access token for a user"""
        # Use timezone.utc instead of utcnow() (deprecated in Python 3.12+)
        expire = datetime.now(timezone.utc) + (expires_delta if expires_delta is not None else self._lifetime)
        # 'exp' is the JWT standard expiry claim; jose checks it on decode
        to_encode = {"sub": str(subject), "email": email, "exp": expire}
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> TokenPayload:
        """Decode a token, checking signature and expiry"""
        try:
            # Signature and expiration are verified here
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError as e:
            # Expired, tampered with, or signed with a different key
            raise InvalidTokenError(str(e)) from e

        # A validly signed token still needs both claims to identify a user
        subject = payload.get("sub")
        email = payload.get("email")
        if not subject or not email:
            raise InvalidTokenError("Token is missing required claims")
        return TokenPayload(subject=subject, email=email)


# Process-wide issuer, configured once from settings at import time
token_issuer = TokenIssuer(
    secret_key=settings.SECRET_KEY,
    algorithm=settings.ALGORITHM,
    expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
)
