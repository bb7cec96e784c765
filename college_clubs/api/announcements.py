import logging

from fastapi import APIRouter, Depends
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from .. import membership
from ..deps import get_db, get_user
from ..errors import BadRequest, Forbidden, NotFound
from ..models import AUDIENCES, PRIORITIES, Announcement, User, utcnow
from ..permissions import Permission, ensure_club_manager, ensure_club_member, resolve_permission
from ..schemas import AnnouncementCreate, AnnouncementUpdate
from ..services import ok, paginate, serialize_announcement

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_choices(priority: str | None, audience: str | None) -> None:
    if priority is not None and priority not in PRIORITIES:
        raise BadRequest("Priority must be low, medium or high")
    if audience is not None and audience not in AUDIENCES:
        raise BadRequest("Invalid target audience")


def _get_editable(db: Session, announcement_id: int, user: User, action: str) -> Announcement:
    announcement = db.get(Announcement, announcement_id)
    if not announcement:
        raise NotFound("Announcement not found")
    club = membership.get_club(db, announcement.club_id)
    is_author = announcement.author_id is not None and announcement.author_id == user.id
    if resolve_permission(user, club) < Permission.CLUB_HEAD and not is_author:
        logger.warning("User %s denied: %s (announcement %s)", user.email, action, announcement.id)
        raise Forbidden(f"Not authorized to {action}")
    return announcement


@router.get("/api/clubs/{club_id}/announcements")
def list_announcements(
    club_id: int,
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    club = membership.get_club(db, club_id, active_only=True)
    ensure_club_member(user, club, "view announcements")
    stmt = (
        select(Announcement)
        .where(
            Announcement.club_id == club.id,
            Announcement.is_active.is_(True),
            or_(Announcement.expires_at.is_(None), Announcement.expires_at >= utcnow()),
        )
        .order_by(Announcement.created_at.desc(), Announcement.id.desc())
    )
    announcements, pagination = paginate(db, stmt, page, limit)
    return ok(data=[serialize_announcement(item) for item in announcements], pagination=pagination)


@router.post("/api/clubs/{club_id}/announcements", status_code=201)
def create_announcement(
    club_id: int,
    payload: AnnouncementCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    club = membership.get_club(db, club_id, active_only=True)
    ensure_club_manager(user, club, "create announcements for this club")
    _check_choices(payload.priority, payload.target_audience)
    announcement = Announcement(**payload.model_dump(), club_id=club.id, author_id=user.id)
    db.add(announcement)
    db.flush()
    db.refresh(announcement)
    logger.info("Announcement created for club %s by %s", club.name, user.email)
    return ok("Announcement created successfully", serialize_announcement(announcement))


@router.put("/api/announcements/{announcement_id}")
def update_announcement(
    announcement_id: int,
    payload: AnnouncementUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    announcement = _get_editable(db, announcement_id, user, "update this announcement")
    changes = payload.model_dump(exclude_unset=True)
    _check_choices(changes.get("priority"), changes.get("target_audience"))
    for field, value in changes.items():
        if value is None and field != "expires_at":
            continue
        setattr(announcement, field, value)
    db.flush()
    db.refresh(announcement)
    logger.info("Announcement %s updated by %s", announcement.id, user.email)
    return ok("Announcement updated successfully", serialize_announcement(announcement))


@router.delete("/api/announcements/{announcement_id}")
def delete_announcement(
    announcement_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    announcement = _get_editable(db, announcement_id, user, "delete this announcement")
    db.delete(announcement)
    db.flush()
    logger.info("Announcement %s deleted by %s", announcement_id, user.email)
    return ok("Announcement deleted successfully")
