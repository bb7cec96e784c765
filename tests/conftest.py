import os

os.environ["DATABASE_URL"] = "sqlite:///./test_clubs.db"
os.environ["SEED_ON_STARTUP"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from college_clubs import config
from college_clubs.db import Base
from college_clubs.deps import get_db
from college_clubs.main import app
from college_clubs.membership import add_to_club
from college_clubs.models import Club, User
from college_clubs.security import hash_password, issue_token
from college_clubs.seed import seed_data

TEST_DB_URL = "sqlite:///./test_clubs.db"
engine = create_engine(TEST_DB_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def override_get_db():
    session = TestingSessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def make_user(session, email: str, role: str = "student", password: str = "password123") -> User:
    local = email.split("@")[0]
    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=local.capitalize(),
        last_name="Tester",
        student_id=f"S-{local}",
        role=role,
    )
    session.add(user)
    session.flush()
    return user


def make_club(session, name: str, head: User | None = None, **fields) -> Club:
    club = Club(
        name=name,
        description=f"{name} description",
        club_head_id=head.id if head else None,
        creator_id=head.id if head else None,
        member_count=0,
        **fields,
    )
    session.add(club)
    session.flush()
    if head is not None:
        add_to_club(session, club, head)
    return club


def get_admin(session) -> User:
    return session.execute(select(User).where(User.email == config.SUPER_ADMIN_EMAIL)).scalar_one()


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(user.id, user.role)}"}


@pytest.fixture(autouse=True)
def setup_test_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    with TestingSessionLocal() as session:
        seed_data(session)
        session.commit()
    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides.pop(get_db, None)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture()
def client():
    with TestClient(app) as c:
        yield c
