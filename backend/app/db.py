from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .core.config import settings


def _ensure_sqlite_path(url: str) -> None:
    if not url.startswith("sqlite"):
        return

    parsed = make_url(url)
    database = parsed.database
    if not database or database == ":memory:":
        return

    path = Path(database)
    path.parent.mkdir(parents=True, exist_ok=True)


def _enable_sqlite_wal(dbapi_connection, connection_record) -> None:
    # WAL lets readers (count/list) proceed while a claim insert holds the write lock.
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA journal_mode=WAL")
    finally:
        cursor.close()


def _create_engine(url: str, *, timeout: float | None = None):
    timeout = timeout if timeout is not None else settings.storage_timeout_seconds
    connect_args: dict[str, object] = {}
    engine_kwargs: dict[str, object] = {
        "echo": settings.debug,
        "future": True,
        "pool_pre_ping": True,
    }

    parsed = make_url(url)
    backend = parsed.get_backend_name()
    in_memory = backend == "sqlite" and parsed.database in (None, "", ":memory:")
    if not in_memory:
        engine_kwargs["pool_timeout"] = timeout

    if backend == "sqlite":
        connect_args["check_same_thread"] = False
        # sqlite3 waits this long on a locked database before raising.
        connect_args["timeout"] = timeout
        _ensure_sqlite_path(url)
    else:
        engine_kwargs["pool_recycle"] = 300
        if backend.startswith("postgresql"):
            connect_args.setdefault("connect_timeout", max(1, int(timeout)))

    if connect_args:
        engine_kwargs["connect_args"] = connect_args

    engine = create_engine(url, **engine_kwargs)
    if backend == "sqlite" and not in_memory:
        event.listen(engine, "connect", _enable_sqlite_wal)
    return engine


def _create_session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=True, autocommit=False, future=True)


def build_db_components(url: str, *, timeout: float | None = None):
    engine = _create_engine(url, timeout=timeout)
    session_factory = _create_session_factory(engine)
    return engine, session_factory


engine, SessionLocal = build_db_components(settings.resolved_database_url)
Base = declarative_base()


def create_schema(bind) -> None:
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=bind)


def init_db() -> None:
    create_schema(engine)
