import logging
from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .. import membership, roles
from ..deps import get_db, get_super_admin
from ..errors import ActionBlocked
from ..models import Club, Event, User, utcnow
from ..reconcile import reconcile
from ..schemas import AdminUserUpdate, AssignHeadRequest, RoleUpdate
from ..services import ok, paginate, search_filter, serialize_club, serialize_user

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/admin/dashboard")
def dashboard(
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    def count(stmt) -> int:
        return db.execute(stmt).scalar_one()

    since = utcnow() - timedelta(days=30)
    stats = {
        "totalUsers": count(select(func.count(User.id))),
        "totalClubs": count(select(func.count(Club.id)).where(Club.is_active.is_(True))),
        "totalEvents": count(select(func.count(Event.id))),
        "totalStudents": count(select(func.count(User.id)).where(User.role == "student")),
        "totalClubHeads": count(select(func.count(User.id)).where(User.role == "club_head")),
        "recentUsers": count(select(func.count(User.id)).where(User.created_at >= since)),
        "recentClubs": count(
            select(func.count(Club.id)).where(Club.created_at >= since, Club.is_active.is_(True))
        ),
    }
    logger.info("Super admin %s accessed dashboard stats", admin.email)
    return ok(data=stats)


@router.get("/api/admin/users")
def list_users(
    search: str | None = None,
    role: str | None = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    stmt = select(User)
    condition = search_filter(search, User.first_name, User.last_name, User.email, User.student_id)
    if condition is not None:
        stmt = stmt.where(condition)
    if role and role != "all":
        stmt = stmt.where(User.role == role)
    users, pagination = paginate(db, stmt.order_by(User.created_at.desc(), User.id.desc()), page, limit)
    return ok(data=[serialize_user(user) for user in users], pagination=pagination)


@router.get("/api/admin/users/{user_id}")
def get_user_detail(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    return ok(data=serialize_user(membership.get_user(db, user_id)))


@router.put("/api/admin/users/{user_id}/role")
def update_user_role(
    user_id: int,
    payload: RoleUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    user = roles.set_role(db, admin, user_id, payload.role, payload.club_id)
    db.refresh(user)
    return ok(f"User role updated to {user.role}", serialize_user(user))


@router.put("/api/admin/users/{user_id}")
def update_user(
    user_id: int,
    payload: AdminUserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    user = membership.get_user(db, user_id)
    changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
    if changes.get("is_active") is False and user.id == admin.id:
        raise ActionBlocked("Cannot deactivate your own account")
    for field, value in changes.items():
        setattr(user, field, value)
    db.flush()
    db.refresh(user)
    logger.info("Super admin %s updated user %s", admin.email, user.email)
    return ok("User updated successfully", serialize_user(user))


@router.delete("/api/admin/users/{user_id}")
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    membership.delete_user(db, admin, user_id)
    return ok("User deleted successfully")


@router.get("/api/admin/clubs")
def list_all_clubs(
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    stmt = select(Club).where(Club.is_active.is_(True))
    condition = search_filter(search, Club.name, Club.description)
    if condition is not None:
        stmt = stmt.where(condition)
    clubs, pagination = paginate(db, stmt.order_by(Club.created_at.desc(), Club.id.desc()), page, limit)
    return ok(data=[serialize_club(club) for club in clubs], pagination=pagination)


@router.get("/api/admin/clubs/no-head")
def clubs_without_head(
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    clubs = db.execute(
        select(Club)
        .where(Club.is_active.is_(True), Club.club_head_id.is_(None))
        .order_by(Club.created_at.desc())
    ).scalars().all()
    return ok(data=[serialize_club(club) for club in clubs])


@router.put("/api/admin/clubs/{club_id}/assign-head")
def assign_club_head(
    club_id: int,
    payload: AssignHeadRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    club = roles.assign_club_head(db, admin, club_id, payload.user_id)
    db.refresh(club)
    return ok("Club head assigned successfully", serialize_club(club))


@router.delete("/api/admin/clubs/{club_id}")
def delete_club(
    club_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    membership.delete_club(db, admin, club_id)
    return ok("Club deleted successfully")


@router.post("/api/admin/maintenance/reconcile")
def run_reconciliation(
    dry_run: bool = False,
    db: Session = Depends(get_db),
    admin: User = Depends(get_super_admin),
):
    report = reconcile(db, dry_run=dry_run)
    logger.info("Super admin %s ran reconciliation (dry_run=%s)", admin.email, dry_run)
    return ok("Reconciliation complete", report.as_dict())
