from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from metastore.context import OperationContext
from metastore.utils.logging import get_logger

from .schema import Base

logger = get_logger(__name__)


@dataclass
class DatabaseConfig:
    url: str = "sqlite:///metastore.db"
    pool_size: int = 5
    max_overflow: int = 10
    pool_recycle: int = 3600
    echo: bool = False


def create_engine_from_config(config: DatabaseConfig) -> Engine:
    """
    Build a pooled SQLAlchemy engine.

    In-memory SQLite gets a StaticPool so every session sees the same database.
    """
    url = make_url(config.url)
    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            return create_engine(
                config.url,
                echo=config.echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        return create_engine(
            config.url,
            echo=config.echo,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        config.url,
        echo=config.echo,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_recycle=config.pool_recycle,
        pool_pre_ping=True,
    )


def interrupt_hook(dbapi_connection) -> Optional[Callable[[], None]]:
    """Return the driver call that aborts a running statement, or None."""
    return getattr(dbapi_connection, "interrupt", None) or getattr(dbapi_connection, "cancel", None)


class Database:
    """Connection pool plus session factory shared by all entity stores."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._sessionmaker = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "Database":
        engine = create_engine_from_config(config)
        logger.info(f"Database engine created: {engine.url.render_as_string(hide_password=True)}")
        return cls(engine)

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """Get a SQLAlchemy session (caller must close it)."""
        return self._sessionmaker()

    @contextmanager
    def session_context(self, ctx: Optional[OperationContext] = None) -> Generator[Session, None, None]:
        """
        Context manager for SQLAlchemy sessions.

        Rolls back on error and always closes the session. Callers commit
        explicitly. When ``ctx`` is given it is checked before the connection
        is used, and cancelling it interrupts the statement running on this
        session's connection if the driver supports that. Only drivers whose
        connections expose ``interrupt()`` (sqlite3) or ``cancel()`` (psycopg2)
        can be stopped mid-statement; with others, e.g. PyMySQL or mysqlclient,
        the context is only checked before each statement.

        Usage:
            with db.session_context(ctx) as session:
                session.execute(...)
                session.commit()
        """
        if ctx is not None:
            ctx.check()
        session = self.get_session()
        token = None
        try:
            if ctx is not None:
                dbapi_conn = session.connection().connection.dbapi_connection
                interrupt = interrupt_hook(dbapi_conn)
                if interrupt is not None:
                    token = ctx.on_cancel(interrupt)
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            if token is not None:
                ctx.remove_callback(token)
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
