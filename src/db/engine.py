"""Database engine and session factories."""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.settings import get_settings

_sync_engine = None


def create_ledger_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine for the given URL.

    In-memory SQLite gets a single shared connection so every session of
    one ledger sees the same database.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, echo=echo, pool_pre_ping=True)


def get_sync_engine() -> Engine:
    """Get or create the process-wide engine configured by settings."""
    global _sync_engine
    if _sync_engine is None:
        settings = get_settings()
        _sync_engine = create_ledger_engine(
            settings.database_url,
            echo=settings.database_echo,
        )
    return _sync_engine


def get_sync_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    return sessionmaker(bind=engine or get_sync_engine(), expire_on_commit=False)


# Convenience alias
SyncSessionLocal = get_sync_session_factory
