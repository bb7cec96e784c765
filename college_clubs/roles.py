"""Role changes and club-head assignment.

Demoting a user does not clear ``clubs.club_head_id``; club authority is
resolved from that relation (see :mod:`college_clubs.permissions`), so a
stale role label never grants or removes power over a club by itself.
"""

import logging

from sqlalchemy.orm import Session

from .errors import ActionBlocked, BadRequest
from .membership import add_to_club, close_pending_request, ensure_capacity, get_club, get_user
from .models import ROLES, Club, User
from .permissions import ensure_super_admin

logger = logging.getLogger(__name__)


def make_club_head(db: Session, club: Club, user: User, actor: User) -> None:
    """Point the club at ``user`` and make sure the head is a member.

    The previous head stays in ``members`` and keeps its role label. An
    open join request from ``user`` is closed as approved by ``actor``.
    """
    if not club.has_member(user.id):
        ensure_capacity(db, club)
    previous = club.club_head_id
    club.club_head_id = user.id
    db.flush()
    add_to_club(db, club, user)
    close_pending_request(db, club, user, actor)
    if previous and previous != user.id:
        logger.info("Club %s head changed from user %s to %s", club.name, previous, user.id)


def set_role(db: Session, actor: User, user_id: int, role: str, club_id: int | None = None) -> User:
    ensure_super_admin(actor, "change user roles")
    if role not in ROLES:
        raise BadRequest("Invalid role specified")
    if user_id == actor.id:
        raise ActionBlocked("Cannot change your own role")
    target = get_user(db, user_id)

    if role == "club_head" and club_id is not None:
        club = db.get(Club, club_id)
        if not club or not club.is_active:
            raise BadRequest("Invalid club specified")
        make_club_head(db, club, target, actor)
        logger.info("Super admin %s assigned %s as club head of %s", actor.email, target.email, club.name)

    previous = target.role
    target.role = role
    db.flush()
    logger.info("Super admin %s changed role of %s from %s to %s", actor.email, target.email, previous, role)
    return target


def assign_club_head(db: Session, actor: User, club_id: int, user_id: int) -> Club:
    ensure_super_admin(actor, "assign club heads")
    club = get_club(db, club_id, active_only=True)
    target = get_user(db, user_id)

    make_club_head(db, club, target, actor)
    if target.role == "student":
        target.role = "club_head"
        db.flush()

    logger.info("Super admin %s assigned %s as club head of %s", actor.email, target.email, club.name)
    return club
