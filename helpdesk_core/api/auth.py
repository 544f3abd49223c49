"""
Authentication helper library for the core REST API
"""

import datetime
from typing import Any, Dict, Optional

from jose import jwt
from argon2 import PasswordHasher, profiles

from . import base
from .policies import get_capabilities
from ..persistence import models
from ..settings import Settings


_password_check: Optional[PasswordHasher] = None


def hash_password(password: str) -> str:
    return _get_password_check().hash(password)


def _get_password_check() -> PasswordHasher:
    global _password_check
    if _password_check is not None:
        return _password_check
    config = Settings()
    if config.server.allow_weak_insecure_password_hashes:
        _password_check = PasswordHasher.from_parameters(profiles.CHEAPEST)
    else:
        _password_check = PasswordHasher.from_parameters(profiles.RFC_9106_LOW_MEMORY)
    return _password_check


def get_secret(secret: Optional[str] = None) -> str:
    """
    Return the key used to sign tokens, which is random per process if not configured
    """

    return secret or base.runtime_key


def create_access_token(user: models.User, expiration_minutes: int = 120, secret: Optional[str] = None) -> str:
    now = datetime.datetime.now(datetime.timezone.utc)
    return jwt.encode(
        {
            "exp": now + datetime.timedelta(minutes=expiration_minutes),
            "iat": now,
            "sub": str(user.id),
            "abilities": get_capabilities(user.is_manager)
        },
        get_secret(secret),
        algorithm=jwt.ALGORITHMS.HS256
    )


def decode_access_token(token: str, secret: Optional[str] = None) -> Dict[str, Any]:
    """
    Verify the signature and expiration of a bearer token and return its claims

    :raises AuthenticationRequired: when the token is invalid, expired or incomplete
    """

    try:
        payload = jwt.decode(
            token,
            get_secret(secret),
            algorithms=[jwt.ALGORITHMS.HS256],
            options={"require_exp": True, "require_iat": True, "require_sub": True}
        )
        payload["sub"] = int(payload["sub"])
    except (jwt.JWTError, KeyError, ValueError) as exc:
        raise base.AuthenticationRequired("Failed to validate token successfully") from exc
    if payload["sub"] <= 0:
        raise base.AuthenticationRequired("Token subject is not a valid user ID")
    return payload
