"""Authentication module."""

from tubely.modules.auth.jwt import (
    AuthError,
    TokenPayload,
    create_access_token,
    decode_token,
    get_bearer_token,
    get_current_user_id,
    resolve_user,
)

__all__ = [
    "AuthError",
    "TokenPayload",
    "create_access_token",
    "decode_token",
    "get_bearer_token",
    "get_current_user_id",
    "resolve_user",
]
