import math
from typing import Any

from pydantic import BaseModel
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from . import config
from .errors import envelope
from .models import Announcement, Club, Event, MembershipRequest, User
from .schemas import (
    AnnouncementOut,
    ClubDetailOut,
    ClubOut,
    EventOut,
    MembershipRequestOut,
    Pagination,
    UserOut,
    UserStatus,
)


def dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [dump(item) for item in value]
    return value


def ok(message: str | None = None, data: Any = None, **extra: Any) -> dict:
    return envelope(True, message, dump(data), **{key: dump(val) for key, val in extra.items()})


def clamp_page(page: int, limit: int | None) -> tuple[int, int]:
    page = max(page or 1, 1)
    limit = limit or config.DEFAULT_PAGE_SIZE
    return page, min(max(limit, 1), config.MAX_PAGE_SIZE)


def paginate(db: Session, stmt, page: int, limit: int | None) -> tuple[list, Pagination]:
    page, limit = clamp_page(page, limit)
    total = db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    items = db.execute(stmt.offset((page - 1) * limit).limit(limit)).unique().scalars().all()
    return list(items), Pagination(current=page, pages=math.ceil(total / limit), total=total)


def search_filter(term: str | None, *columns):
    """Case-insensitive substring match over any of ``columns``."""
    term = term.strip() if isinstance(term, str) else ""
    if not term:
        return None
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    like_pattern = f"%{escaped}%"
    return or_(*(func.lower(column).like(like_pattern, escape="\\") for column in columns))


def serialize_user(user: User) -> UserOut:
    return UserOut.model_validate(user)


def serialize_club(club: Club) -> ClubOut:
    return ClubOut.model_validate(club)


def club_detail(db: Session, club: Club, viewer: User | None) -> ClubDetailOut:
    detail = ClubDetailOut.model_validate(club)
    if viewer is not None:
        latest = db.execute(
            select(MembershipRequest)
            .where(MembershipRequest.user_id == viewer.id, MembershipRequest.club_id == club.id)
            .order_by(MembershipRequest.requested_at.desc(), MembershipRequest.id.desc())
            .limit(1)
        ).scalar_one_or_none()
        detail.user_status = UserStatus(
            is_member=club.has_member(viewer.id),
            is_club_head=club.club_head_id == viewer.id,
            membership_status=latest.status if latest else None,
        )
    return detail


def serialize_request(request: MembershipRequest) -> MembershipRequestOut:
    return MembershipRequestOut.model_validate(request)


def serialize_event(event: Event) -> EventOut:
    out = EventOut.model_validate(event)
    out.attendee_count = len(event.attendees)
    return out


def serialize_announcement(announcement: Announcement) -> AnnouncementOut:
    return AnnouncementOut.model_validate(announcement)
