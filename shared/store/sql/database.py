"""SQLAlchemy engine, session factory and declarative base."""

from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()

DEFAULT_DATABASE_URL = "sqlite:///./data/rag_sync.db"


def utcnow() -> datetime:
    """Naive UTC timestamp, the format stored in all DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def create_db_engine(database_url: str = DEFAULT_DATABASE_URL, echo: bool = False) -> Engine:
    """Create the engine for the given URL.

    SQLite connections are shared with worker threads (store calls run in
    asyncio.to_thread); in-memory SQLite keeps a single static connection so
    all sessions see the same database.
    """
    kwargs: dict = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Create all tables. Call once at startup."""
    # register the tables on Base.metadata
    from shared.store.sql import tables  # noqa: F401
    Base.metadata.create_all(bind=engine)
