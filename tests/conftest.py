"""
Shared fixtures.

Every test gets its own SQLite file under tmp_path (foreign keys on, WAL), so
threaded reference reads and the submit path see the same committed data.
"""

import os

# Keep the import-time engine off the developer's ./data folder.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from typing import Iterable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from intake.api.deps import get_reference_store
from intake.api.wizard import WizardRegistry, get_registry
from intake.database import get_db, get_engine, init_db
from intake.main import create_app
from intake.models.profile import Profile
from intake.services.reference_store import ReferenceStore
from intake.services.session import CurrentSession


class FakeSessions:
    """In-memory SessionProvider: a fixed user id and a set of admin ids."""

    def __init__(self, user_id: Optional[str] = "user-1", admins: Iterable[str] = ()) -> None:
        self.user_id = user_id
        self.admins = set(admins)

    def get_current_session(self) -> Optional[CurrentSession]:
        return CurrentSession(self.user_id) if self.user_id else None

    def is_admin(self, user_id: str) -> bool:
        return user_id in self.admins


@pytest.fixture
def engine(tmp_path):
    eng = get_engine(f"sqlite:///{tmp_path / 'intake.sqlite'}")
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return lambda: Session(engine)


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def store(session_factory):
    return ReferenceStore(session_factory)


@pytest.fixture
def sessions():
    return FakeSessions()


@pytest.fixture
def profiles(db):
    db.add(Profile(id="admin-1", full_name="Ada Admin", is_admin=True))
    db.add(Profile(id="user-1", full_name="Uma User", is_admin=False))
    db.commit()


@pytest.fixture
def wizards():
    return WizardRegistry()


@pytest.fixture
def client(engine, session_factory, profiles, wizards):
    app = create_app(create_tables=False)

    def _get_db():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_reference_store] = lambda: ReferenceStore(session_factory)
    app.dependency_overrides[get_registry] = lambda: wizards

    with TestClient(app) as c:
        yield c


USER = {"X-User-Id": "user-1"}
ADMIN = {"X-User-Id": "admin-1"}


@pytest.fixture
def user_headers():
    return dict(USER)


@pytest.fixture
def admin_headers():
    return dict(ADMIN)


@pytest.fixture
def make_sessions():
    return FakeSessions
