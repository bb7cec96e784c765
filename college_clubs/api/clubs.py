import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .. import membership
from ..deps import get_db, get_optional_user, get_super_admin, get_user
from ..errors import BadRequest, Conflict
from ..models import Category, Club, User
from ..permissions import ensure_club_manager
from ..schemas import AddMemberRequest, ClubCreate, ClubUpdate, JoinRequest
from ..services import (
    club_detail,
    ok,
    paginate,
    search_filter,
    serialize_club,
    serialize_request,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _name_taken(db: Session, name: str, exclude_id: int | None = None) -> bool:
    stmt = select(Club.id).where(func.lower(Club.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(Club.id != exclude_id)
    return db.execute(stmt).first() is not None


def _ensure_category(db: Session, category_id: int | None) -> None:
    if category_id is None:
        return
    category = db.get(Category, category_id)
    if not category or not category.is_active:
        raise BadRequest("Invalid category selected")


@router.get("/api/clubs")
def list_clubs(
    search: str | None = None,
    category: int | None = None,
    page: int = 1,
    limit: int = 12,
    db: Session = Depends(get_db),
):
    stmt = select(Club).where(Club.is_active.is_(True))
    condition = search_filter(search, Club.name, Club.description)
    if condition is not None:
        stmt = stmt.where(condition)
    if category is not None:
        stmt = stmt.where(Club.category_id == category)
    clubs, pagination = paginate(db, stmt.order_by(Club.created_at.desc(), Club.id.desc()), page, limit)
    return ok(data=[serialize_club(club) for club in clubs], pagination=pagination)


@router.get("/api/clubs/user/my-clubs")
def my_clubs(user: User = Depends(get_user)):
    clubs = [club for club in user.joined_clubs if club.is_active]
    return ok(data=[serialize_club(club) for club in clubs])


@router.get("/api/clubs/{club_id}")
def get_club(
    club_id: int,
    db: Session = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    club = membership.get_club(db, club_id, active_only=True)
    return ok(data=club_detail(db, club, user))


@router.post("/api/clubs", status_code=201)
def create_club(
    payload: ClubCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_super_admin),
):
    if _name_taken(db, payload.name):
        raise Conflict("Club with this name already exists")
    _ensure_category(db, payload.category_id)

    club = Club(
        **payload.model_dump(),
        creator_id=user.id,
        club_head_id=user.id,
        member_count=0,
    )
    db.add(club)
    db.flush()
    membership.add_to_club(db, club, user)
    db.refresh(club)
    logger.info("New club created: %s by %s", club.name, user.email)
    return ok("Club created successfully", serialize_club(club))


@router.put("/api/clubs/{club_id}")
def update_club(
    club_id: int,
    payload: ClubUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    club = membership.get_club(db, club_id, active_only=True)
    ensure_club_manager(user, club, "update this club")
    changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}

    if "name" in changes and changes["name"] != club.name and _name_taken(db, changes["name"], club.id):
        raise Conflict("Club with this name already exists")
    if "category_id" in changes:
        _ensure_category(db, changes["category_id"])
    if "max_members" in changes and changes["max_members"] < membership.current_member_count(db, club.id):
        raise BadRequest("maxMembers cannot be lower than the current member count")

    for field, value in changes.items():
        setattr(club, field, value)
    db.flush()
    db.refresh(club)
    logger.info("Club updated: %s by %s", club.name, user.email)
    return ok("Club updated successfully", serialize_club(club))


@router.delete("/api/clubs/{club_id}")
def delete_club(
    club_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    membership.delete_club(db, user, club_id)
    return ok("Club deleted successfully")


@router.post("/api/clubs/{club_id}/join", status_code=201)
def join_club(
    club_id: int,
    payload: JoinRequest | None = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    message = payload.message if payload else ""
    result = membership.join(db, user, club_id, message)
    if result.pending:
        return ok("Membership request submitted successfully", serialize_request(result.request))
    return ok("Successfully joined the club", serialize_club(result.club))


@router.post("/api/clubs/{club_id}/leave")
def leave_club(
    club_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    membership.leave(db, user, club_id)
    return ok("Successfully left the club")


@router.put("/api/clubs/{club_id}/toggle-joining")
def toggle_joining(
    club_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    club = membership.toggle_joining(db, user, club_id)
    state = "enabled" if club.allow_joining else "disabled"
    return ok(f"Club joining {state} successfully", {"allowJoining": club.allow_joining})


@router.post("/api/clubs/{club_id}/members")
def add_member(
    club_id: int,
    payload: AddMemberRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    club = membership.add_member(db, user, club_id, payload.user_id)
    return ok("Member added successfully", serialize_club(club))


@router.delete("/api/clubs/{club_id}/members/{member_id}")
def remove_member(
    club_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    membership.remove_member(db, user, club_id, member_id)
    return ok("Member removed successfully")


@router.get("/api/clubs/{club_id}/membership-requests")
def list_membership_requests(
    club_id: int,
    status: str = "pending",
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    stmt = membership.list_requests(db, user, club_id, status)
    requests, pagination = paginate(db, stmt, page, limit)
    return ok(data=[serialize_request(request) for request in requests], pagination=pagination)
