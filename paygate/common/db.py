"""Database bootstrap helpers shared by all services."""

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from paygate.common.config import settings


def build_engine(dsn: str) -> Engine:
    """Create an engine for `dsn`; in-memory SQLite shares one connection."""

    if dsn.startswith("sqlite"):
        return create_engine(
            dsn,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(dsn, pool_pre_ping=True)


def build_session_factory(bind: Engine) -> sessionmaker:
    # `expire_on_commit=False` keeps ORM objects readable after commit in handlers.
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False)


# Single SQLAlchemy engine per process.
engine = build_engine(settings.postgres_dsn)
SessionLocal = build_session_factory(engine)


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""

    pass
