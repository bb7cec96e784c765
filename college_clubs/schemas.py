from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _not_blank(value: str) -> str:
    cleaned = value.strip() if isinstance(value, str) else ""
    if not cleaned:
        raise ValueError("must not be empty")
    return cleaned


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Stored timestamps are naive UTC.
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# --- auth -----------------------------------------------------------------


class RegisterRequest(CamelModel):
    email: str
    password: str = Field(min_length=6)
    first_name: str
    last_name: str
    student_id: str
    year: Optional[str] = None
    major: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str):
        normalized = value.strip().lower()
        if "@" not in normalized or normalized.startswith("@") or normalized.endswith("@"):
            raise ValueError("must be a valid email address")
        return normalized

    @field_validator("first_name", "last_name", "student_id")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _not_blank(value)


class LoginRequest(CamelModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str):
        return value.strip().lower()


class ProfileUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    year: Optional[str] = None
    major: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=500)
    profile_picture: Optional[str] = None


class PasswordChange(CamelModel):
    current_password: str
    new_password: str = Field(min_length=6)


# --- outputs ----------------------------------------------------------------


class UserBrief(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str


class ClubBrief(CamelModel):
    id: int
    name: str


class CategoryOut(CamelModel):
    id: int
    name: str
    description: str
    color: str
    icon: str


class UserOut(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    full_name: str
    student_id: str
    year: Optional[str] = None
    major: Optional[str] = None
    phone: Optional[str] = None
    bio: str = ""
    profile_picture: str = ""
    role: str
    is_active: bool
    joined_clubs: list[ClubBrief] = []
    created_at: datetime


class AuthOut(CamelModel):
    token: str
    user: UserOut


class ClubOut(CamelModel):
    id: int
    name: str
    description: str
    category: Optional[CategoryOut] = None
    logo: str = ""
    contact_email: Optional[str] = None
    meeting_schedule: str = ""
    requirements: str = ""
    tags: list[str] = []
    club_head: Optional[UserBrief] = None
    member_count: int
    max_members: Optional[int] = None
    allow_joining: bool
    require_approval: bool
    is_public: bool
    is_active: bool
    created_at: datetime


class UserStatus(CamelModel):
    is_member: bool
    is_club_head: bool
    membership_status: Optional[str] = None


class ClubDetailOut(ClubOut):
    members: list[UserBrief] = []
    user_status: Optional[UserStatus] = None


class MembershipRequestOut(CamelModel):
    id: int
    user: Optional[UserBrief] = None
    club: ClubBrief
    status: str
    request_message: str
    admin_response: str
    requested_at: datetime
    responded_at: Optional[datetime] = None
    responded_by: Optional[UserBrief] = None


class EventOut(CamelModel):
    id: int
    club: ClubBrief
    organizer: Optional[UserBrief] = None
    title: str
    description: str
    date_time: datetime
    end_date_time: datetime
    location: str
    max_attendees: Optional[int] = None
    attendee_count: int = 0
    status: str
    is_public: bool
    requirements: str = ""
    image_url: str = ""
    tags: list[str] = []


class AnnouncementOut(CamelModel):
    id: int
    club_id: int
    author: Optional[UserBrief] = None
    title: str
    content: str
    priority: str
    target_audience: str
    is_active: bool
    expires_at: Optional[datetime] = None
    created_at: datetime


class Pagination(BaseModel):
    current: int
    pages: int
    total: int


# --- clubs & membership -----------------------------------------------------


class ClubCreate(CamelModel):
    name: str = Field(max_length=200)
    description: str = Field(max_length=1000)
    category_id: Optional[int] = None
    contact_email: Optional[str] = None
    meeting_schedule: str = ""
    requirements: str = ""
    tags: list[str] = []
    max_members: Optional[int] = Field(default=None, ge=1)
    allow_joining: bool = True
    require_approval: bool = False
    is_public: bool = True
    logo: str = ""

    @field_validator("name", "description")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _not_blank(value)


class ClubUpdate(CamelModel):
    name: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    category_id: Optional[int] = None
    contact_email: Optional[str] = None
    meeting_schedule: Optional[str] = None
    requirements: Optional[str] = None
    tags: Optional[list[str]] = None
    max_members: Optional[int] = Field(default=None, ge=1)
    require_approval: Optional[bool] = None
    is_public: Optional[bool] = None
    logo: Optional[str] = None

    @field_validator("name", "description")
    @classmethod
    def must_not_be_empty(cls, value: Optional[str]):
        if value is None:
            return value
        return _not_blank(value)


class JoinRequest(CamelModel):
    message: str = Field(default="", max_length=500)


class DecisionRequest(CamelModel):
    status: str
    admin_response: str = Field(default="", max_length=500)


class AddMemberRequest(CamelModel):
    user_id: int


# --- admin -------------------------------------------------------------------


class RoleUpdate(CamelModel):
    role: str
    club_id: Optional[int] = None


class AssignHeadRequest(CamelModel):
    user_id: int


class AdminUserUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    year: Optional[str] = None
    major: Optional[str] = None
    is_active: Optional[bool] = None


# --- announcements, events, categories ---------------------------------------


class AnnouncementCreate(CamelModel):
    title: str = Field(max_length=200)
    content: str = Field(max_length=2000)
    priority: str = "medium"
    target_audience: str = "all_members"
    expires_at: Optional[datetime] = None

    @field_validator("title", "content")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _not_blank(value)

    @field_validator("expires_at")
    @classmethod
    def to_naive_utc(cls, value: Optional[datetime]):
        return _naive_utc(value)


class AnnouncementUpdate(CamelModel):
    title: Optional[str] = Field(default=None, max_length=200)
    content: Optional[str] = Field(default=None, max_length=2000)
    priority: Optional[str] = None
    target_audience: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("expires_at")
    @classmethod
    def to_naive_utc(cls, value: Optional[datetime]):
        return _naive_utc(value)


class EventCreate(CamelModel):
    club_id: int
    title: str
    description: str = Field(max_length=2000)
    date_time: datetime
    end_date_time: datetime
    location: str
    max_attendees: Optional[int] = Field(default=None, ge=1)
    is_public: bool = True
    requirements: str = ""
    image_url: str = ""
    tags: list[str] = []

    @field_validator("title", "location")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _not_blank(value)

    @field_validator("date_time", "end_date_time")
    @classmethod
    def to_naive_utc(cls, value: datetime):
        return _naive_utc(value)

    @model_validator(mode="after")
    def end_after_start(self):
        if self.end_date_time <= self.date_time:
            raise ValueError("End time must be after start time")
        return self


class EventUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=2000)
    date_time: Optional[datetime] = None
    end_date_time: Optional[datetime] = None
    location: Optional[str] = None
    max_attendees: Optional[int] = Field(default=None, ge=1)
    status: Optional[str] = None
    is_public: Optional[bool] = None
    requirements: Optional[str] = None
    image_url: Optional[str] = None
    tags: Optional[list[str]] = None

    @field_validator("date_time", "end_date_time")
    @classmethod
    def to_naive_utc(cls, value: Optional[datetime]):
        return _naive_utc(value)


class CategoryCreate(CamelModel):
    name: str = Field(max_length=100)
    description: str = ""
    color: str = "#3B82F6"
    icon: str = "users"

    @field_validator("name")
    @classmethod
    def must_not_be_empty(cls, value: str):
        return _not_blank(value)
