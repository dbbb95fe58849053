# FILE: sitesmith/db.py
"""
Database wiring.

The engine and session factory are built by the application factory and
kept on ``app.state``; nothing here opens a connection at import time.
"""
from datetime import datetime, timezone

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def make_engine(database_url: str, echo: bool = False) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False  # Required for SQLite
    return create_engine(database_url, connect_args=connect_args, echo=echo)


def make_session_factory(engine: Engine) -> sessionmaker:
    # expire_on_commit=False: services hand detached rows back to callers
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables. Call once at startup."""
    # Import models so Base.metadata knows about them
    from sitesmith.projects import models as _projects  # noqa: F401
    from sitesmith.builds import models as _builds  # noqa: F401
    from sitesmith.conversation import models as _conversation  # noqa: F401
    Base.metadata.create_all(bind=engine)


def get_session_factory(request: Request) -> sessionmaker:
    """FastAPI dependency returning the app's session factory."""
    return request.app.state.session_factory


def get_db(request: Request):
    """FastAPI dependency that yields a DB session and closes it after the request."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
