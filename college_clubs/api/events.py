import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import membership
from ..deps import get_db, get_user
from ..errors import BadRequest, CapacityExceeded, Conflict, NotFound
from ..models import EVENT_STATUSES, Club, Event, User, event_attendees
from ..permissions import ensure_club_manager
from ..schemas import EventCreate, EventUpdate
from ..services import ok, paginate, search_filter, serialize_event

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_event(db: Session, event_id: int) -> Event:
    event = db.get(Event, event_id)
    if not event:
        raise NotFound("Event not found")
    return event


@router.get("/api/events")
def list_events(
    status: str = "upcoming",
    search: str | None = None,
    club_id: int | None = Query(default=None, alias="clubId"),
    start_date: datetime | None = Query(default=None, alias="startDate"),
    end_date: datetime | None = Query(default=None, alias="endDate"),
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
):
    stmt = select(Event).join(Club, Event.club_id == Club.id).where(Club.is_active.is_(True))
    if status != "all":
        stmt = stmt.where(Event.status == status)
    condition = search_filter(search, Event.title, Event.description)
    if condition is not None:
        stmt = stmt.where(condition)
    if club_id is not None:
        stmt = stmt.where(Event.club_id == club_id)
    if start_date:
        stmt = stmt.where(Event.date_time >= start_date)
    if end_date:
        stmt = stmt.where(Event.date_time <= end_date)
    events, pagination = paginate(db, stmt.order_by(Event.date_time.asc(), Event.id.asc()), page, limit)
    return ok(data=[serialize_event(event) for event in events], pagination=pagination)


@router.get("/api/events/user/my-events")
def my_events(
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    events = db.execute(
        select(Event)
        .join(event_attendees, event_attendees.c.event_id == Event.id)
        .where(event_attendees.c.user_id == user.id)
        .order_by(Event.date_time.asc())
    ).unique().scalars().all()
    return ok(data=[serialize_event(event) for event in events])


@router.get("/api/events/{event_id}")
def get_event(event_id: int, db: Session = Depends(get_db)):
    return ok(data=serialize_event(_get_event(db, event_id)))


@router.post("/api/events", status_code=201)
def create_event(
    payload: EventCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    club = membership.get_club(db, payload.club_id, active_only=True)
    ensure_club_manager(user, club, "create events for this club")
    event = Event(**payload.model_dump(), organizer_id=user.id)
    db.add(event)
    db.flush()
    db.refresh(event)
    logger.info("Event created: %s for club %s by %s", event.title, club.name, user.email)
    return ok("Event created successfully", serialize_event(event))


@router.put("/api/events/{event_id}")
def update_event(
    event_id: int,
    payload: EventUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    event = _get_event(db, event_id)
    ensure_club_manager(user, event.club, "update this event")
    changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}

    if "status" in changes and changes["status"] not in EVENT_STATUSES:
        raise BadRequest("Invalid event status")
    starts = changes.get("date_time", event.date_time)
    ends = changes.get("end_date_time", event.end_date_time)
    if ends <= starts:
        raise BadRequest("End time must be after start time")

    for field, value in changes.items():
        setattr(event, field, value)
    db.flush()
    db.refresh(event)
    logger.info("Event updated: %s by %s", event.title, user.email)
    return ok("Event updated successfully", serialize_event(event))


@router.delete("/api/events/{event_id}")
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    event = _get_event(db, event_id)
    ensure_club_manager(user, event.club, "delete this event")
    db.delete(event)
    db.flush()
    logger.info("Event deleted: %s by %s", event.title, user.email)
    return ok("Event deleted successfully")


@router.post("/api/events/{event_id}/join")
def join_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    event = _get_event(db, event_id)
    if event.status != "upcoming":
        raise Conflict("Can only join upcoming events")
    if event.has_attendee(user.id):
        raise Conflict("You are already attending this event")
    if event.max_attendees is not None and len(event.attendees) >= event.max_attendees:
        raise CapacityExceeded("Event is full")
    event.attendees.append(user)
    db.flush()
    logger.info("User %s joined event %s", user.email, event.title)
    return ok("Successfully joined the event", serialize_event(event))


@router.post("/api/events/{event_id}/leave")
def leave_event(
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    event = _get_event(db, event_id)
    if not event.has_attendee(user.id):
        raise Conflict("You are not attending this event")
    event.attendees = [attendee for attendee in event.attendees if attendee.id != user.id]
    db.flush()
    logger.info("User %s left event %s", user.email, event.title)
    return ok("Successfully left the event")
