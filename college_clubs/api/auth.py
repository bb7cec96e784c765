import logging

from fastapi import APIRouter, Depends
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..deps import get_db, get_user
from ..errors import BadRequest, Conflict, Unauthorized
from ..models import User
from ..schemas import AuthOut, LoginRequest, PasswordChange, ProfileUpdate, RegisterRequest
from ..security import hash_password, issue_token, verify_password
from ..services import ok, serialize_user

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/auth/register", status_code=201)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    student_id = payload.student_id.strip()
    existing = db.execute(
        select(User).where(or_(User.email == payload.email, User.student_id == student_id))
    ).scalars().first()
    if existing:
        logger.warning("Registration attempt with existing credentials: %s", payload.email)
        if existing.email == payload.email:
            raise Conflict("Email already registered")
        raise Conflict("Student ID already registered")

    user = User(
        email=payload.email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        student_id=student_id,
        year=payload.year,
        major=payload.major,
        role="student",
    )
    db.add(user)
    db.flush()
    db.refresh(user)
    logger.info("New user registered: %s", user.email)
    auth = AuthOut(token=issue_token(user.id, user.role), user=serialize_user(user))
    return ok("User registered successfully", auth)


@router.post("/api/auth/login")
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.execute(select(User).where(User.email == payload.email)).scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        logger.warning("Failed login for %s", payload.email)
        raise Unauthorized("Invalid credentials")
    if not user.is_active:
        raise Unauthorized("User account is deactivated")
    logger.info("User logged in: %s", user.email)
    auth = AuthOut(token=issue_token(user.id, user.role), user=serialize_user(user))
    return ok("Login successful", auth)


@router.get("/api/auth/me")
def me(user: User = Depends(get_user)):
    return ok(data=serialize_user(user))


@router.put("/api/auth/profile")
def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(user, field, value)
    db.flush()
    db.refresh(user)
    logger.info("Profile updated for %s", user.email)
    return ok("Profile updated successfully", serialize_user(user))


@router.put("/api/auth/password")
def change_password(
    payload: PasswordChange,
    db: Session = Depends(get_db),
    user: User = Depends(get_user),
):
    if not verify_password(payload.current_password, user.password_hash):
        raise BadRequest("Current password is incorrect")
    user.password_hash = hash_password(payload.new_password)
    db.flush()
    logger.info("Password changed for %s", user.email)
    return ok("Password updated successfully")
