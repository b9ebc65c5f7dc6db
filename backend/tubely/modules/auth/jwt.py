"""JWT bearer authentication.

Tokens are HS256 JWTs whose subject is the user UUID. The API only consumes
them; issuing is exposed for tooling and tests.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"


class AuthError(Exception):
    """Raised when a bearer credential is missing or invalid."""

    pass


class TokenPayload(BaseModel):
    """JWT token payload structure."""

    sub: str  # User ID
    exp: datetime
    iat: datetime
    type: str
    jti: str


def create_access_token(
    user_id: uuid.UUID,
    secret: str,
    expires_delta: timedelta = timedelta(hours=1),
) -> str:
    """Create a signed access token.

    Args:
        user_id: User UUID
        secret: HMAC signing secret
        expires_delta: Token lifetime

    Returns:
        str: Encoded JWT
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "exp": now + expires_delta,
        "iat": now,
        "type": ACCESS_TOKEN_TYPE,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def get_bearer_token(authorization: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header value.

    Raises:
        AuthError: If the header is missing or not a bearer credential
    """
    if not authorization:
        raise AuthError("Authorization header is missing")

    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthError("Authorization header is not a bearer token")
    return token.strip()


def decode_token(token: str, secret: str) -> TokenPayload:
    """Decode and verify a JWT.

    Raises:
        AuthError: If the signature, expiry, or claims are invalid
    """
    try:
        claims = jwt.decode(token, secret, algorithms=[ALGORITHM])
        return TokenPayload(**claims)
    except JWTError as e:
        raise AuthError(f"Invalid token: {e}") from e
    except ValidationError as e:
        raise AuthError("Token is missing required claims") from e


def resolve_user(token: str, secret: str) -> uuid.UUID:
    """Resolve a bearer token to the authenticated user ID.

    Args:
        token: Encoded JWT
        secret: HMAC signing secret

    Returns:
        uuid.UUID: The user ID carried in the token subject

    Raises:
        AuthError: If the token is invalid, expired, of the wrong type,
            or its subject is not a UUID
    """
    payload = decode_token(token, secret)

    if payload.type != ACCESS_TOKEN_TYPE:
        raise AuthError("Token is not an access token")

    try:
        return uuid.UUID(payload.sub)
    except ValueError as e:
        raise AuthError("Token subject is not a user ID") from e


# FastAPI dependencies
security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> uuid.UUID:
    """Get the authenticated user ID from the bearer token.

    Raises:
        HTTPException: 401 if the credential is missing or invalid
    """
    secret = request.app.state.settings.SECRET_KEY
    try:
        if credentials is None:
            token = get_bearer_token(request.headers.get("Authorization"))
        else:
            token = credentials.credentials
        return resolve_user(token, secret)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
