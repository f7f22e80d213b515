import logging
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # ON DELETE CASCADE / SET NULL only fire with this pragma on
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owns the engine and session factory for one application instance.
    Created in `create_app` and handed to request handlers through `get_db`.
    """

    def __init__(self, url: str, echo: bool = False):
        kwargs = {"echo": echo}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # in-memory databases live on a single shared connection
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True
        self.url = url
        self.engine = create_engine(url, **kwargs)
        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self):
        # models register themselves on Base when imported
        import models, task_models, post_models  # noqa: F401
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database schema ready (%s)", self.engine.url.get_backend_name())

    def session(self):
        return self.SessionLocal()

    def dispose(self):
        self.engine.dispose()
        logger.info("Database connections closed")


LIKE_ESCAPE = "\\"


def like_pattern(term: str) -> str:
    """Lower-cased `%term%` pattern with the LIKE wildcards in `term` escaped."""
    term = term.strip().lower()
    for char in (LIKE_ESCAPE, "%", "_"):
        term = term.replace(char, LIKE_ESCAPE + char)
    return f"%{term}%"
