import hashlib
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from jwt import InvalidTokenError

from . import config
from .errors import Unauthorized


def hash_password(password: str) -> str:
    salt = os.urandom(16)
    digest = hashlib.sha256(salt + password.encode()).hexdigest()
    return f"{salt.hex()}:{digest}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        salt_hex, stored_digest = hashed_password.split(":", 1)
        salt = bytes.fromhex(salt_hex)
    except ValueError:
        return False
    computed = hashlib.sha256(salt + plain_password.encode()).hexdigest()
    return secrets.compare_digest(computed, stored_digest)


@dataclass(frozen=True)
class TokenIdentity:
    user_id: int
    role: str


def issue_token(user_id: int, role: str, expires_in: timedelta | None = None) -> str:
    """Sign a bearer token bound to ``user_id``."""
    now = datetime.now(timezone.utc)
    lifetime = expires_in if expires_in is not None else timedelta(minutes=config.JWT_EXPIRE_MINUTES)
    payload = {
        "sub": str(user_id),
        "role": role,
        "iss": config.JWT_ISSUER,
        "iat": now,
        "exp": now + lifetime,
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm="HS256")


def verify_token(token: str) -> TokenIdentity:
    """Decode a bearer token; raises Unauthorized when it is invalid or expired."""
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=["HS256"],
            issuer=config.JWT_ISSUER,
            options={"require": ["sub", "exp", "iat", "iss"]},
        )
        return TokenIdentity(user_id=int(payload["sub"]), role=str(payload.get("role", "")))
    except (InvalidTokenError, ValueError) as exc:
        raise Unauthorized() from exc
