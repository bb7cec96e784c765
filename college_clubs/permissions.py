"""Club-scoped authority resolution.

Authority over a club comes from the ``clubs.club_head_id`` relation and
the super_admin role, never from ``role == "club_head"`` alone: a user may
still hold the club_head label after losing headship, or head a club
while labelled student.
"""

import logging
from enum import IntEnum

from .errors import Forbidden
from .models import Club, User

logger = logging.getLogger(__name__)


class Permission(IntEnum):
    NONE = 0
    MEMBER = 1
    CLUB_HEAD = 2
    SUPER_ADMIN = 3


def is_super_admin(user: User | None) -> bool:
    return user is not None and user.role == "super_admin"


def resolve_permission(user: User | None, club: Club) -> Permission:
    if user is None:
        return Permission.NONE
    if is_super_admin(user):
        return Permission.SUPER_ADMIN
    if club.club_head_id is not None and club.club_head_id == user.id:
        return Permission.CLUB_HEAD
    if club.has_member(user.id):
        return Permission.MEMBER
    return Permission.NONE


def ensure_club_manager(user: User, club: Club, action: str = "manage this club") -> Permission:
    permission = resolve_permission(user, club)
    if permission < Permission.CLUB_HEAD:
        logger.warning("User %s denied: %s (club %s)", user.email, action, club.id)
        raise Forbidden(f"Not authorized to {action}")
    return permission


def ensure_club_member(user: User, club: Club, action: str = "view this club") -> Permission:
    permission = resolve_permission(user, club)
    if permission < Permission.MEMBER:
        logger.warning("User %s denied: %s (club %s)", user.email, action, club.id)
        raise Forbidden(f"Only club members can {action}")
    return permission


def ensure_super_admin(user: User, action: str = "perform this action") -> None:
    if not is_super_admin(user):
        logger.warning("User %s with role %s denied: %s", user.email, user.role, action)
        raise Forbidden(f"Only super admins can {action}")
