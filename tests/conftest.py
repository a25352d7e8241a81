# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Generator, Iterator
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from commune.core.security import create_access_token
from commune.db.session import build_engine, create_tables, drop_tables
from commune.db.session import get_db as app_get_session
from commune.main import app as fastapi_app
from commune.models import (
    Community,
    CommunityApplication,
    CommunityRole,
    Membership,
    Profile,
    User,
)
from commune.services.applications import approve_membership_application, submit_application
from commune.services.communities import create_community

TEST_DB_URL = "sqlite://"

_LOGIN_COUNTER = count(1)
_SLUG_COUNTER = count(1)


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = build_engine(TEST_DB_URL, poolclass=StaticPool)
    create_tables(engine)
    try:
        yield engine
    finally:
        drop_tables(engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def app(db_session: Session) -> Iterator[FastAPI]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    fastapi_app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield fastapi_app
    finally:
        fastapi_app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory that persists a fresh user account."""

    def _make(login_name: str | None = None) -> User:
        user = User(login_name=login_name or f"user{next(_LOGIN_COUNTER)}")
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def owner(make_user: Callable[..., User]) -> User:
    return make_user("owner")


@pytest.fixture()
def community(db_session: Session, owner: User) -> Community:
    """Create a community whose creator is its active owner."""
    community, _, _ = create_community(
        db_session,
        owner.id,
        slug=f"test-{next(_SLUG_COUNTER)}",
        name="Test Community",
        profile_name="Owner",
        profile_username="owner",
    )
    return community


@pytest.fixture()
def owner_membership(db_session: Session, owner: User, community: Community) -> Membership:
    return db_session.query(Membership).filter_by(user_id=owner.id, community_id=community.id).one()


JoinResult = tuple[CommunityApplication, Membership, Profile]


@pytest.fixture()
def join(
    db_session: Session,
    owner: User,
    community: Community,
) -> Callable[..., JoinResult]:
    """Return a helper that submits and approves an application in one go."""

    def _join(user: User, username: str, name: str | None = None) -> JoinResult:
        application = submit_application(
            db_session,
            user.id,
            community.id,
            profile_name=name or username.title(),
            profile_username=username,
        )
        membership, profile = approve_membership_application(db_session, application.id, owner.id)
        return application, membership, profile

    return _join


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Return a helper that builds bearer headers for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest.fixture()
def active_owner_count(db_session: Session) -> Callable[[int], int]:
    """Return a helper counting active owner memberships in a community."""

    def _count(community_id: int) -> int:
        return db_session.query(Membership).filter(
            Membership.community_id == community_id,
            Membership.role == CommunityRole.OWNER,
            Membership.activated_at.is_not(None),
        ).count()

    return _count
