"""
Database Configuration

SQLAlchemy setup for the habit ledger.
Uses SQLite for development, can switch to PostgreSQL for production.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from habitcoin.config import settings


def build_engine(database_url: str, **engine_kwargs):
    """
    Create an engine for the given URL.

    SQLite connections get foreign keys switched on so that deleting
    a habit cascades to its completions.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},  # SQLite needs this
            echo=False,  # Set True for SQL debugging
            **engine_kwargs,
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    # PostgreSQL or other databases
    return create_engine(database_url, echo=False, pool_pre_ping=True, **engine_kwargs)


engine = build_engine(settings.DATABASE_URL)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for ORM models
Base = declarative_base()


def get_db():
    """
    Dependency that provides a database session.
    Ensures proper cleanup after request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """
    Initialize database tables.
    Call this on application startup.
    """
    from habitcoin.models import db_models  # noqa
    Base.metadata.create_all(bind=bind or engine)
