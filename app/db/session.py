"""
Durable Store handle.

The engine is owned by an explicitly constructed ``Database`` whose lifecycle
belongs to process startup/shutdown (FastAPI lifespan, Celery worker signals).
Nothing connects at import time.
"""
from collections.abc import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.db.base import Base


class Database:
    def __init__(self, url: str, **engine_kwargs) -> None:
        if url.startswith("postgresql"):
            engine_kwargs.setdefault("pool_pre_ping", True)
            engine_kwargs.setdefault("pool_size", settings.database_pool_size)
            engine_kwargs.setdefault("max_overflow", settings.database_max_overflow)
            engine_kwargs.setdefault("pool_recycle", 1800)  # recycle connections every 30 min (avoid stale)
            engine_kwargs.setdefault("connect_args", {"connect_timeout": 5})
        self.engine: Engine = create_engine(url, **engine_kwargs)
        self.session_factory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def session(self) -> Session:
        return self.session_factory()

    def create_all(self) -> None:
        # Import models so they register on Base.metadata
        from app.models import image, transaction, user  # noqa: F401

        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
