from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings


class Base(DeclarativeBase):
    pass


def _sqlite_on_connect(dbapi_conn, _record):
    cursor = dbapi_conn.cursor()
    # ON DELETE CASCADE / SET NULL on asset records and auto-posted rows
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.close()


def make_engine(database_url: Optional[str] = None) -> Engine:
    """Engine for ``database_url``, defaulting to the configured database.

    An in-memory SQLite URL gets a single shared connection so every session
    sees the same schema.
    """
    url = make_url(database_url or get_settings().database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)

    options: dict[str, object] = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
    eng = create_engine(url, **options)
    event.listen(eng, "connect", _sqlite_on_connect)
    return eng


def make_session_factory(eng: Engine) -> sessionmaker:
    return sessionmaker(bind=eng, autoflush=False, expire_on_commit=False)


engine = make_engine()
SessionLocal = make_session_factory(engine)


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """Transactional session for work outside a request (startup, scheduler jobs)."""
    session: Session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
