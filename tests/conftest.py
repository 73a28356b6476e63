import os
import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import worklane.models  # noqa: F401
from worklane.db import get_db
from worklane.main import create_app
from worklane.models.base import Base
from worklane.models.org import Org
from worklane.models.user import User
from worklane.rbac.members import provision_organization
from worklane.rbac.roles import bootstrap_defaults

@pytest.fixture()
def engine():
    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        engine = create_engine(database_url, pool_pre_ping=True)
    else:
        # one shared in-memory connection across the test client's threads
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()

@pytest.fixture()
def db_session(engine) -> Session:
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture()
def seeded_db(db_session: Session) -> Session:
    bootstrap_defaults(db_session)
    return db_session

@pytest.fixture()
def client(seeded_db: Session) -> TestClient:
    app = create_app()

    def _override_get_db():
        yield seeded_db

    app.dependency_overrides[get_db] = _override_get_db
    return TestClient(app)

@pytest.fixture()
def make_user(db_session: Session):
    def _make(name: str | None = None) -> User:
        name = name or f"user-{uuid.uuid4().hex[:8]}"
        u = User(email=f"{name}+{uuid.uuid4().hex[:6]}@example.com", name=name)
        db_session.add(u)
        db_session.commit()
        return u

    return _make

@pytest.fixture()
def owner(make_user) -> User:
    return make_user("owner")

@pytest.fixture()
def seeded_org(seeded_db: Session, owner: User) -> Org:
    return provision_organization(seeded_db, f"seeded-org-{uuid.uuid4().hex[:6]}", owner.id)

