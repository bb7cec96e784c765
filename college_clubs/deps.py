import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .db import get_session
from .errors import Unauthorized
from .models import User
from .permissions import ensure_super_admin
from .security import verify_token

logger = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    with get_session() as session:
        yield session


def _load_identity(db: Session, credentials: HTTPAuthorizationCredentials | None) -> User:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("No token provided, authorization denied")
    identity = verify_token(credentials.credentials)
    user = db.get(User, identity.user_id)
    if not user:
        logger.warning("User not found for token subject %s", identity.user_id)
        raise Unauthorized()
    if not user.is_active:
        logger.warning("Inactive user attempted access: %s", user.email)
        raise Unauthorized("User account is deactivated")
    return user


def get_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    return _load_identity(db, credentials)


def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    db: Session = Depends(get_db),
) -> User | None:
    """Like get_user, but anonymous callers get None instead of a 401."""
    if credentials is None:
        return None
    return _load_identity(db, credentials)


def get_super_admin(user: User = Depends(get_user)) -> User:
    ensure_super_admin(user, "access this route")
    return user
