"""
Income Proof - Database Configuration
SQLAlchemy engine and session factory built from DatabaseSettings
"""
from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from .config import DatabaseSettings

# Base class for ORM models
Base = declarative_base()


def build_engine(settings: DatabaseSettings) -> Engine:
    """Create the engine. In-memory SQLite shares one connection across threads."""
    if settings.url.startswith("sqlite") and ":memory:" in settings.url:
        return create_engine(
            settings.url,
            echo=settings.echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if settings.url.startswith("sqlite"):
        return create_engine(settings.url, echo=settings.echo, connect_args={"check_same_thread": False})
    return create_engine(settings.url, echo=settings.echo)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine):
    """Initialize database - create all tables."""
    # Register ORM models on Base before create_all
    from .models import db_models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def get_db(request: Request):
    """Dependency for FastAPI - yields database session."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
