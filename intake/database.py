from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from .config import settings


def _is_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite")


def _ensure_sqlite_dir(database_url: str) -> None:
    """
    Ensure the parent folder exists for SQLite file-based DB URLs like:
      sqlite:///./data/intake.sqlite
      sqlite:////absolute/path/to/db.sqlite
    """
    if not database_url.startswith("sqlite:///"):
        return

    path = database_url.replace("sqlite:///", "", 1)
    if path == ":memory:":
        return
    folder = os.path.dirname(path)
    if folder:
        os.makedirs(folder, exist_ok=True)


def _sqlite_pragmas(engine: Engine) -> None:
    """
    Pragmas that make SQLite usable for concurrent dropdown reads while a submit is writing.
    """

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):  # noqa: ANN001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA synchronous=NORMAL;")
        cursor.execute("PRAGMA foreign_keys=ON;")  # contact -> reference FKs must hold
        cursor.execute("PRAGMA busy_timeout=5000;")
        cursor.close()


def get_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create and return the SQLAlchemy engine.

    - Defaults to settings.resolved_database_url (DATABASE_URL or DB_PATH)
    - SQLite gets pragmas + check_same_thread=False (reads run in worker threads)
    """
    database_url = database_url or settings.resolved_database_url

    if _is_sqlite(database_url):
        _ensure_sqlite_dir(database_url)

    connect_args = {"check_same_thread": False} if _is_sqlite(database_url) else {}

    engine = create_engine(
        database_url,
        echo=False,
        connect_args=connect_args,
        pool_pre_ping=True,
    )

    if _is_sqlite(database_url):
        _sqlite_pragmas(engine)

    return engine


# Single, shared engine for the app process
engine: Engine = get_engine()


def register_models() -> None:
    """
    Central place to import ALL models so SQLModel registers them before create_all.
    """
    from .models.reference import (  # noqa: F401
        City,
        Country,
        Department,
        Occupation,
        Organization,
        Specialty,
        StateRegion,
    )
    from .models.profile import Profile  # noqa: F401
    from .models.contact import Contact  # noqa: F401
    from .models.investigator_profile import InvestigatorProfile  # noqa: F401


def init_db(create_tables: bool = True, bind: Optional[Engine] = None) -> None:
    """
    Register models, then create missing tables (non-destructive).
    """
    register_models()
    if create_tables:
        SQLModel.metadata.create_all(bind or engine)


def get_session() -> Session:
    """
    Simple session factory (scripts, worker-thread reads).
    For FastAPI routes, prefer the yield-dependency `get_db()`.
    """
    return Session(engine)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency:
        def route(db: Session = Depends(get_db)):
            ...
    """
    with Session(engine) as session:
        yield session


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Context manager for scripts/jobs that need commit/rollback safety.
    """
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
