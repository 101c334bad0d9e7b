"""Database connection and session management."""

from typing import Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

# Global engine instance
_engine: Optional[Engine] = None

# Base class for all database models
Base = declarative_base()


def get_database_engine(database_url: Optional[str] = None,
                        echo: bool = False,
                        connect_args: Optional[dict] = None) -> Engine:
    """Get or create the database engine."""
    global _engine

    if _engine is None:
        if database_url is None:
            from ..config import get_config
            database_url = get_config().database_url

        if connect_args is None:
            connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}

        if database_url.startswith("sqlite"):
            _engine = create_engine(
                database_url,
                connect_args=connect_args,
                poolclass=StaticPool,
                echo=echo
            )
        else:
            _engine = create_engine(
                database_url,
                echo=echo,
                connect_args=connect_args
            )

    return _engine


def reset_database_engine():
    """Dispose of the global database engine (mainly for testing)."""
    global _engine
    if _engine:
        _engine.dispose()
    _engine = None


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """Create a session factory bound to the given (or global) engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine or get_database_engine())


def get_db():
    """Yield a database session and close it afterwards."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def create_tables(engine: Optional[Engine] = None):
    """Create all database tables."""
    from . import models  # noqa: F401  registers the ORM models on Base
    Base.metadata.create_all(bind=engine or get_database_engine())


def drop_tables(engine: Optional[Engine] = None):
    """Drop all database tables."""
    Base.metadata.drop_all(bind=engine or get_database_engine())
