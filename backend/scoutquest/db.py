from __future__ import annotations
from datetime import datetime, timezone as dt_tz
from typing import AsyncGenerator
from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from scoutquest.config import settings

class Base(DeclarativeBase):
    pass


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp that always comes back in UTC.
    Backends without a native timestamptz (SQLite) hand back naive values;
    those are stored as UTC so we re-attach the zone on the way out.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime is not allowed")
        return value.astimezone(dt_tz.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt_tz.utc)
        return value.astimezone(dt_tz.utc)


def utcnow() -> datetime:
    return datetime.now(dt_tz.utc)


engine = create_async_engine(settings.database_url, future=True, echo=False)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session
