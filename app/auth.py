"""
Caller identity.

Accounts and sessions live with the external identity provider; this service
only verifies the bearer token it issued and reads the user id from ``sub``.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.config import get_settings
from app.models import USER_ID_LENGTH

settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Create a token the way the identity provider does (dev tooling and tests)."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=24))
    to_encode = {"sub": user_id, "exp": expire}
    return jwt.encode(to_encode, settings.identity_secret, algorithm=settings.identity_algorithm)


def get_token_from_cookie_or_header(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """Extract token from Authorization header or the provider's cookie."""
    if credentials is not None:
        return credentials.credentials
    cookie_token = request.cookies.get("access_token")
    if cookie_token:
        # Remove "Bearer " prefix if present
        if cookie_token.startswith("Bearer "):
            return cookie_token[7:]
        return cookie_token
    return None


async def get_current_user_id(
    token: Annotated[str | None, Depends(get_token_from_cookie_or_header)],
) -> str:
    """Verified user id of the caller."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    try:
        payload = jwt.decode(token, settings.identity_secret, algorithms=[settings.identity_algorithm])
    except JWTError:
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id or len(str(user_id)) > USER_ID_LENGTH:
        raise credentials_exception
    return str(user_id)
