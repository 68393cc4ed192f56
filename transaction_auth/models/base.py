"""
Database engine, session management, and base model.

This module is the foundation for all database operations.
Every model inherits from Base. The Database object is the
storage context: the application opens one at startup,
every request gets a session from it through get_db(), and
it is disposed at shutdown.
"""

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, DeclarativeBase


# --- Base Model Class ---
# Every database model (User, Transaction, AuditLog, ...)
# inherits from this class. SQLAlchemy uses it to track
# all models and generate the correct SQL for table creation.
class Base(DeclarativeBase):
    pass


class Database:
    """
    Engine plus session factory for one database URL.

    pool_pre_ping=True tests connections before using them,
    which handles cases where the database restarted or a
    connection went stale.

    Sessions use autocommit=False and autoflush=False: the
    caller decides when changes are flushed and committed.
    """

    def __init__(self, url: str, **engine_kwargs):
        if url.startswith("sqlite"):
            engine_kwargs.setdefault(
                "connect_args", {"check_same_thread": False}
            )
        self.url = url
        self.engine = create_engine(url, pool_pre_ping=True, **engine_kwargs)
        self.SessionLocal = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
        )

    def session(self) -> Session:
        return self.SessionLocal()

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        """Close every pooled connection. Called at process shutdown."""
        self.engine.dispose()


# --- Dependency for FastAPI ---
def get_db(request: Request):
    """
    Provide a database session for a single request.

    The session comes from the Database opened by the
    application lifespan. The try/finally pattern ensures
    the session is always closed, preventing connection leaks.
    """
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    finally:
        db.close()
