"""
Helpdesk database bindings: one engine and one session factory per process
"""

import logging
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session


DEFAULT_DATABASE_URL: str = "sqlite://"
PRINT_SQLITE_WARNING: bool = True

Base = declarative_base()
_engine: Optional[Engine] = None
_make_session: Optional[sessionmaker] = None
_logger: logging.Logger = logging.getLogger(__name__)


def _enforce_sqlite_foreign_keys(dbapi_connection, _):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init(database_url: str, echo: bool = False, create_all: bool = True):
    """
    Bind the helpdesk to the database at the given URL, replacing any previous binding

    Tickets reference their author with a restrictive foreign key. SQLite
    only checks such keys when asked to, so every SQLite connection gets
    the check switched on. Deleting an author of tickets is then rejected
    by SQLite the same way as by any database server.

    :param database_url: SQLAlchemy URL of the database
    :param echo: switch to log every emitted SQL statement
    :param create_all: switch to create the ``users`` and ``tickets`` tables if they're missing
    """

    global _engine, _make_session
    if _engine is not None:
        _engine.dispose()

    if not database_url.startswith("sqlite:"):
        _engine = create_engine(database_url, echo=echo)

    else:
        _engine = create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})
        event.listen(_engine, "connect", _enforce_sqlite_foreign_keys)
        if database_url == "sqlite://" or ":memory:" in database_url:
            _logger.warning(
                "Tickets and users are kept in memory and get lost on shutdown. "
                "Set 'database.connection' to a file or server URL to keep them."
            )
        elif PRINT_SQLITE_WARNING:
            _logger.warning(
                "SQLite is meant for development and tests. Set 'database.connection' "
                "to a database server URL for production deployments."
            )

    if create_all:
        Base.metadata.create_all(bind=_engine)

    _make_session = sessionmaker(autocommit=False, autoflush=False, bind=_engine)


def _ensure_bound():
    if _engine is None or _make_session is None:
        _logger.warning(
            f"No database has been bound, falling back to {DEFAULT_DATABASE_URL!r}. "
            "Call 'init' at startup to keep tickets between restarts."
        )
        init(DEFAULT_DATABASE_URL)


def get_engine() -> Engine:
    _ensure_bound()
    return _engine


def get_new_session() -> Session:
    _ensure_bound()
    return _make_session()
