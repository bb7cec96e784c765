"""Membership lifecycle for (user, club) pairs.

Per pair the state machine is::

    NONE     --join (no approval)--> MEMBER
    NONE     --join (approval)-----> PENDING
    PENDING  --approve------------> MEMBER
    PENDING  --reject-------------> REJECTED
    REJECTED --join---------------> PENDING   (new request, old one kept)
    MEMBER   --leave / remove-----> NONE

``clubs.members`` is authoritative and ``users.joined_clubs`` is its
back-reference. Every mutation writes the club side first and flushes it
before touching the user side, then recomputes ``member_count``. Both
writes share the request transaction; data written outside this module
is repaired by :mod:`college_clubs.reconcile`.
"""

import logging
from dataclasses import dataclass

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import ActionBlocked, BadRequest, CapacityExceeded, Conflict, NotFound
from .models import (
    Announcement,
    Club,
    Event,
    MembershipRequest,
    User,
    club_members,
    event_attendees,
    user_joined_clubs,
    utcnow,
)
from .permissions import ensure_club_manager, ensure_super_admin

logger = logging.getLogger(__name__)

DECISIONS = ("approved", "rejected")
REQUEST_FILTERS = ("pending", "approved", "rejected", "all")


@dataclass
class JoinResult:
    club: Club
    request: MembershipRequest | None = None

    @property
    def pending(self) -> bool:
        return self.request is not None


# --- lookups -----------------------------------------------------------------


def get_club(db: Session, club_id: int, *, active_only: bool = False) -> Club:
    club = db.get(Club, club_id)
    if not club or (active_only and not club.is_active):
        raise NotFound("Club not found")
    return club


def get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def current_member_count(db: Session, club_id: int) -> int:
    return db.execute(
        select(func.count()).select_from(club_members).where(club_members.c.club_id == club_id)
    ).scalar_one()


def pending_request(db: Session, user_id: int, club_id: int) -> MembershipRequest | None:
    return db.execute(
        select(MembershipRequest).where(
            MembershipRequest.user_id == user_id,
            MembershipRequest.club_id == club_id,
            MembershipRequest.status == "pending",
        )
    ).scalar_one_or_none()


def ensure_capacity(db: Session, club: Club) -> None:
    """Re-read the member count right before a write that adds a member."""
    if club.max_members is None:
        return
    if current_member_count(db, club.id) >= club.max_members:
        raise CapacityExceeded()


# --- paired writes -----------------------------------------------------------


def add_to_club(db: Session, club: Club, user: User) -> None:
    if not club.has_member(user.id):
        club.members.append(user)
    club.member_count = len(club.members)
    db.flush()
    if club not in user.joined_clubs:
        user.joined_clubs.append(club)
    db.flush()


def remove_from_club(db: Session, club: Club, user: User) -> None:
    if club.has_member(user.id):
        club.members.remove(user)
    club.member_count = len(club.members)
    db.flush()
    if club in user.joined_clubs:
        user.joined_clubs.remove(club)
    db.flush()


def close_pending_request(db: Session, club: Club, user: User, actor: User) -> None:
    """Mark an open request approved once the user was added by someone else."""
    request = pending_request(db, user.id, club.id)
    if request:
        request.status = "approved"
        request.responded_by_id = actor.id
        request.responded_at = utcnow()
        db.flush()


# --- operations --------------------------------------------------------------


def join(db: Session, user: User, club_id: int, message: str = "") -> JoinResult:
    club = db.get(Club, club_id)
    if not club or not club.is_active:
        raise NotFound("Club not found")
    if club.has_member(user.id):
        raise Conflict("You are already a member of this club")
    if pending_request(db, user.id, club.id):
        raise Conflict("You already have a pending membership request")
    if not club.allow_joining:
        raise ActionBlocked("This club is currently not accepting new members")
    ensure_capacity(db, club)

    if club.require_approval:
        request = MembershipRequest(user_id=user.id, club_id=club.id, request_message=message or "")
        db.add(request)
        try:
            db.flush()
        except IntegrityError as exc:
            # A concurrent join created the pending request first; nothing else was written yet.
            db.rollback()
            raise Conflict("You already have a pending membership request") from exc
        logger.info("Membership request %s created for club %s by %s", request.id, club.name, user.email)
        return JoinResult(club=club, request=request)

    add_to_club(db, club, user)
    logger.info("User %s joined club %s", user.email, club.name)
    return JoinResult(club=club)


def decide(
    db: Session,
    request_id: int,
    decision: str,
    responder: User,
    admin_response: str = "",
) -> MembershipRequest:
    if decision not in DECISIONS:
        raise BadRequest("Status must be either approved or rejected")
    request = db.get(MembershipRequest, request_id)
    if not request:
        raise NotFound("Membership request not found")
    club = request.club
    ensure_club_manager(responder, club, "manage membership requests for this club")
    if request.status != "pending":
        raise Conflict(f"Membership request has already been {request.status}")

    if decision == "approved":
        if not club.is_active:
            raise NotFound("Club not found")
        applicant = request.user
        if applicant is None:
            raise NotFound("User not found")
        if not club.has_member(applicant.id):
            ensure_capacity(db, club)
            add_to_club(db, club, applicant)

    request.status = decision
    request.admin_response = admin_response or ""
    request.responded_by_id = responder.id
    request.responded_at = utcnow()
    db.flush()

    applicant_email = request.user.email if request.user else "deleted user"
    logger.info("User %s %s for club %s by %s", applicant_email, decision, club.name, responder.email)
    return request


def leave(db: Session, user: User, club_id: int) -> Club:
    club = get_club(db, club_id)
    if not club.has_member(user.id):
        raise Conflict("You are not a member of this club")
    if club.club_head_id == user.id:
        raise ActionBlocked("Cannot leave club as the club head. Transfer leadership first.")
    remove_from_club(db, club, user)
    logger.info("User %s left club %s", user.email, club.name)
    return club


def remove_member(db: Session, actor: User, club_id: int, member_id: int) -> Club:
    club = get_club(db, club_id)
    ensure_club_manager(actor, club, "remove members")
    if not club.has_member(member_id):
        raise Conflict("User is not a member of this club")
    if club.club_head_id == member_id:
        raise ActionBlocked("Cannot remove the club head. Assign a new club head first.")
    member = get_user(db, member_id)
    remove_from_club(db, club, member)
    logger.info("Member %s removed from club %s by %s", member.email, club.name, actor.email)
    return club


def add_member(db: Session, actor: User, club_id: int, user_id: int) -> Club:
    club = get_club(db, club_id, active_only=True)
    ensure_club_manager(actor, club, "add members to this club")
    user = get_user(db, user_id)
    if club.has_member(user.id):
        raise Conflict("User is already a member of this club")
    ensure_capacity(db, club)
    add_to_club(db, club, user)
    close_pending_request(db, club, user, actor)

    logger.info("User %s added to club %s by %s", user.email, club.name, actor.email)
    return club


def toggle_joining(db: Session, actor: User, club_id: int) -> Club:
    club = get_club(db, club_id, active_only=True)
    ensure_club_manager(actor, club, "modify club settings")
    club.allow_joining = not club.allow_joining
    db.flush()
    logger.info("Joining for club %s set to %s by %s", club.name, club.allow_joining, actor.email)
    return club


def list_requests(db: Session, actor: User, club_id: int, status: str = "pending"):
    """Return a select() over the club's requests, newest first."""
    if status not in REQUEST_FILTERS:
        raise BadRequest("Status must be one of pending, approved, rejected, all")
    club = get_club(db, club_id)
    ensure_club_manager(actor, club, "view membership requests for this club")
    stmt = select(MembershipRequest).where(MembershipRequest.club_id == club.id)
    if status != "all":
        stmt = stmt.where(MembershipRequest.status == status)
    return stmt.order_by(MembershipRequest.requested_at.desc(), MembershipRequest.id.desc())


def delete_club(db: Session, actor: User, club_id: int) -> Club:
    """Soft-delete: the club and its history stay, members lose the back-reference."""
    club = get_club(db, club_id, active_only=True)
    ensure_club_manager(actor, club, "delete this club")
    club.is_active = False
    db.flush()

    holders = db.execute(
        select(User).join(user_joined_clubs, user_joined_clubs.c.user_id == User.id).where(
            user_joined_clubs.c.club_id == club.id
        )
    ).scalars().all()
    for user in holders:
        if club in user.joined_clubs:
            user.joined_clubs.remove(club)
    db.flush()

    logger.info("Club %s deleted by %s", club.name, actor.email)
    return club


def delete_user(db: Session, actor: User, user_id: int) -> None:
    ensure_super_admin(actor, "delete users")
    if user_id == actor.id:
        raise ActionBlocked("Cannot delete your own account")
    target = get_user(db, user_id)

    headed = db.execute(
        select(Club).where(Club.club_head_id == target.id, Club.is_active.is_(True)).order_by(Club.name)
    ).scalars().all()
    if headed:
        raise Conflict(
            "Cannot delete user who is a club head. Transfer club leadership first.",
            clubs=[club.name for club in headed],
        )

    # Clubs first so no club ever references a deleted user.
    memberships = db.execute(
        select(Club).join(club_members, club_members.c.club_id == Club.id).where(
            club_members.c.user_id == target.id
        )
    ).scalars().all()
    for club in memberships:
        club.members.remove(target)
        club.member_count = len(club.members)
    db.flush()

    db.execute(update(Club).where(Club.club_head_id == target.id).values(club_head_id=None))
    db.execute(update(Club).where(Club.creator_id == target.id).values(creator_id=None))
    db.execute(delete(event_attendees).where(event_attendees.c.user_id == target.id))
    db.execute(update(Event).where(Event.organizer_id == target.id).values(organizer_id=None))
    db.execute(update(Announcement).where(Announcement.author_id == target.id).values(author_id=None))
    db.execute(
        delete(MembershipRequest).where(
            MembershipRequest.user_id == target.id, MembershipRequest.status == "pending"
        )
    )
    db.execute(
        update(MembershipRequest).where(MembershipRequest.user_id == target.id).values(user_id=None)
    )
    db.execute(
        update(MembershipRequest)
        .where(MembershipRequest.responded_by_id == target.id)
        .values(responded_by_id=None)
    )

    db.delete(target)
    db.flush()
    db.expire_all()
    logger.info("User %s deleted by %s", target.email, actor.email)
