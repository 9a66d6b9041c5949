from __future__ import annotations

from collections.abc import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from torquetrack.config import settings
from torquetrack.models import Base


def build_engine(database_url: str) -> Engine:
    if database_url.startswith('sqlite'):
        if ':memory:' in database_url or database_url.endswith('://'):
            # In-memory SQLite lives on a single connection shared by every session.
            return create_engine(
                database_url,
                connect_args={'check_same_thread': False},
                poolclass=StaticPool,
            )
        return create_engine(database_url, connect_args={'check_same_thread': False})
    return create_engine(database_url, pool_pre_ping=True)


def init_db(bind: Engine) -> None:
    Base.metadata.create_all(bind=bind)


engine = build_engine(settings.database_url_normalized)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
