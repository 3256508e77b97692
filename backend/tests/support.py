from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vitalstore.core.config import Settings
from vitalstore.db import models  # noqa: F401
from vitalstore.db.base import Base


SQLITE_URL = "sqlite+pysqlite:///:memory:"


def make_session_factory() -> sessionmaker:
    engine = create_engine(
        SQLITE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def make_settings(**overrides: object) -> Settings:
    return Settings(database_url=SQLITE_URL, **overrides)


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0, microsecond: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=timezone.utc)
