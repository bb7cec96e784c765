from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base

ROLES = ("student", "club_head", "super_admin")
REQUEST_STATUSES = ("pending", "approved", "rejected")
EVENT_STATUSES = ("upcoming", "ongoing", "completed", "cancelled")
PRIORITIES = ("low", "medium", "high")
AUDIENCES = ("all_members", "admins_only", "new_members")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Authoritative membership set (Club.members).
club_members = Table(
    "club_members",
    Base.metadata,
    Column("club_id", ForeignKey("clubs.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True),
)

# Derived back-reference (User.joinedClubs); rebuilt by the reconciliation pass.
user_joined_clubs = Table(
    "user_joined_clubs",
    Base.metadata,
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("club_id", ForeignKey("clubs.id", ondelete="CASCADE"), primary_key=True, index=True),
)

event_attendees = Table(
    "event_attendees",
    Base.metadata,
    Column("event_id", ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True),
)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100))
    last_name: Mapped[str] = mapped_column(String(100))
    student_id: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    year: Mapped[str | None] = mapped_column(String(20), default=None)
    major: Mapped[str | None] = mapped_column(String(120), default=None)
    phone: Mapped[str | None] = mapped_column(String(30), default=None)
    bio: Mapped[str] = mapped_column(Text, default="")
    profile_picture: Mapped[str] = mapped_column(String(500), default="")
    role: Mapped[str] = mapped_column(String(20), default="student")  # student | club_head | super_admin
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow, onupdate=utcnow)

    joined_clubs: Mapped[list["Club"]] = relationship(
        secondary=user_joined_clubs, lazy="selectin", order_by="Club.name"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True)
    description: Mapped[str] = mapped_column(Text, default="")
    color: Mapped[str] = mapped_column(String(20), default="#3B82F6")
    icon: Mapped[str] = mapped_column(String(50), default="users")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Club(Base):
    __tablename__ = "clubs"
    __table_args__ = (CheckConstraint("member_count >= 0", name="ck_clubs_member_count"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    logo: Mapped[str] = mapped_column(String(500), default="")
    contact_email: Mapped[str | None] = mapped_column(String(255), default=None)
    meeting_schedule: Mapped[str] = mapped_column(String(255), default="")
    requirements: Mapped[str] = mapped_column(Text, default="")
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    creator_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    club_head_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Cache of len(members); recomputed by the engine, never taken from input.
    member_count: Mapped[int] = mapped_column(Integer, default=0)
    max_members: Mapped[int | None] = mapped_column(Integer, default=None)
    allow_joining: Mapped[bool] = mapped_column(Boolean, default=True)
    require_approval: Mapped[bool] = mapped_column(Boolean, default=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow, onupdate=utcnow)

    category: Mapped[Category | None] = relationship(lazy="joined")
    club_head: Mapped[User | None] = relationship(foreign_keys=[club_head_id], lazy="joined")
    creator: Mapped[User | None] = relationship(foreign_keys=[creator_id])
    members: Mapped[list[User]] = relationship(
        secondary=club_members, lazy="selectin", order_by="User.id"
    )

    def has_member(self, user_id: int) -> bool:
        return any(member.id == user_id for member in self.members)

    def is_full(self) -> bool:
        return self.max_members is not None and len(self.members) >= self.max_members


# Club names are unique regardless of case.
Index("uq_clubs_name_lower", func.lower(Club.name), unique=True)


class MembershipRequest(Base):
    __tablename__ = "membership_requests"
    __table_args__ = (
        # At most one pending request per (user, club); decided ones are kept as history.
        Index(
            "uq_membership_requests_pending",
            "user_id",
            "club_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    club_id: Mapped[int] = mapped_column(ForeignKey("clubs.id", ondelete="CASCADE"), index=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending | approved | rejected
    request_message: Mapped[str] = mapped_column(Text, default="")
    admin_response: Mapped[str] = mapped_column(Text, default="")
    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow)
    responded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), default=None)
    responded_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    user: Mapped[User | None] = relationship(foreign_keys=[user_id], lazy="joined")
    club: Mapped[Club] = relationship(lazy="joined")
    responded_by: Mapped[User | None] = relationship(foreign_keys=[responded_by_id], lazy="joined")


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("end_date_time > date_time", name="ck_events_end_after_start"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    club_id: Mapped[int] = mapped_column(ForeignKey("clubs.id", ondelete="CASCADE"), index=True)
    organizer_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text)
    date_time: Mapped[datetime] = mapped_column(DateTime(timezone=False), index=True)
    end_date_time: Mapped[datetime] = mapped_column(DateTime(timezone=False))
    location: Mapped[str] = mapped_column(String(200))
    max_attendees: Mapped[int | None] = mapped_column(Integer, default=None)
    status: Mapped[str] = mapped_column(String(20), default="upcoming")
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    requirements: Mapped[str] = mapped_column(Text, default="")
    image_url: Mapped[str] = mapped_column(String(500), default="")
    tags: Mapped[list[str]] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow)

    club: Mapped[Club] = relationship(lazy="joined")
    organizer: Mapped[User | None] = relationship(lazy="joined")
    attendees: Mapped[list[User]] = relationship(secondary=event_attendees, lazy="selectin")

    def has_attendee(self, user_id: int) -> bool:
        return any(attendee.id == user_id for attendee in self.attendees)


class Announcement(Base):
    __tablename__ = "announcements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    club_id: Mapped[int] = mapped_column(ForeignKey("clubs.id", ondelete="CASCADE"), index=True)
    author_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    title: Mapped[str] = mapped_column(String(200))
    content: Mapped[str] = mapped_column(Text)
    priority: Mapped[str] = mapped_column(String(10), default="medium")
    target_audience: Mapped[str] = mapped_column(String(20), default="all_members")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), default=utcnow, onupdate=utcnow)

    author: Mapped[User | None] = relationship(lazy="joined")
