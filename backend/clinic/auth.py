"""
Auth module: session token creation/validation and the get_current_user FastAPI dependency.

Tokens are stateless HS256 JWTs. Validity is decided only by the signature and the
expiry embedded at issuance; there is no server-side revocation or refresh, so a
client re-runs the email code flow once its token expires.
"""

import time
from dataclasses import dataclass
from typing import Optional
from jose import jwt, JWTError
from fastapi import Request
from clinic.config import get_settings
from clinic.exceptions import ForbiddenError, UnauthorizedError

ALGORITHM = "HS256"


@dataclass
class UserPrincipal:
    """Resolved identity attached to each request."""
    account_id: str
    email: str
    role: str                     # "doctor" | "user"
    issued_at: Optional[int] = None

    @property
    def is_doctor(self) -> bool:
        return self.role == "doctor"


def create_token(account, issued_at: Optional[int] = None) -> str:
    """Create a signed JWT for the given Account model instance."""
    settings = get_settings()
    now = int(time.time()) if issued_at is None else int(issued_at)
    payload = {
        "sub": account.id,
        "email": account.email,
        "role": account.role,
        "login_time": now * 1000,
        "iat": now,
        "exp": now + settings.token_expire_seconds,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> UserPrincipal:
    """Decode and validate a JWT. Raises ForbiddenError if invalid/expired."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[ALGORITHM])
    except JWTError:
        raise ForbiddenError()
    if not payload.get("sub") or not payload.get("email"):
        raise ForbiddenError()
    return UserPrincipal(
        account_id=payload["sub"],
        email=payload["email"],
        role=payload.get("role", "user"),
        issued_at=payload.get("iat"),
    )


async def get_current_user(request: Request) -> UserPrincipal:
    """
    FastAPI dependency. Extracts the JWT from the Authorization header.
    Missing header -> 401; bad signature or expired -> 403.
    """
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError()
    return decode_token(token.strip())
