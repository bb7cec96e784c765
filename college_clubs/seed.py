import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import config
from .models import Category, User
from .security import hash_password

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    ("Academic", "Study groups, honor societies and subject clubs", "#3B82F6", "book"),
    ("Arts", "Music, theatre, dance and visual arts", "#EC4899", "palette"),
    ("Sports", "Teams, fitness and outdoor activities", "#10B981", "trophy"),
    ("Technology", "Programming, robotics and maker spaces", "#8B5CF6", "cpu"),
    ("Community Service", "Volunteering and outreach", "#F59E0B", "heart"),
    ("Cultural", "Language, heritage and cultural exchange", "#EF4444", "globe"),
]


def seed_super_admin(session: Session) -> User:
    admin = session.execute(select(User).where(User.email == config.SUPER_ADMIN_EMAIL)).scalar_one_or_none()
    if admin:
        if admin.role != "super_admin":
            admin.role = "super_admin"
            logger.info("Restored super_admin role for %s", admin.email)
        return admin
    admin = User(
        email=config.SUPER_ADMIN_EMAIL,
        password_hash=hash_password(config.SUPER_ADMIN_PASSWORD),
        first_name="Super",
        last_name="Admin",
        student_id="ADMIN001",
        role="super_admin",
    )
    session.add(admin)
    session.flush()
    logger.info("Seeded super admin %s", admin.email)
    return admin


def seed_categories(session: Session) -> None:
    existing = set(session.execute(select(Category.name)).scalars().all())
    for name, description, color, icon in DEFAULT_CATEGORIES:
        if name in existing:
            continue
        session.add(Category(name=name, description=description, color=color, icon=icon))
    session.flush()


def seed_data(session: Session) -> None:
    seed_super_admin(session)
    seed_categories(session)
