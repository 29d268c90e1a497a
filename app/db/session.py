from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.core.config import Settings


class Base(DeclarativeBase):
    pass


def _serialize_sqlite_writers(engine: Engine) -> None:
    # Take the write lock at BEGIN so the overlap scan and the insert see one order of writers.
    @event.listens_for(engine, "connect")
    def _no_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(settings: Settings) -> Engine:
    """Pooled engine with bounded checkout, connect and statement timeouts."""
    url = make_url(settings.DATABASE_URL)
    if url.get_backend_name() == "sqlite":
        # timeout is the busy wait for the database lock
        engine = create_engine(
            url,
            connect_args={"timeout": settings.DB_CONNECT_TIMEOUT_SECONDS, "check_same_thread": False},
        )
        _serialize_sqlite_writers(engine)
        return engine
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT_SECONDS,
        connect_args={
            "connect_timeout": settings.DB_CONNECT_TIMEOUT_SECONDS,
            "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
        },
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
