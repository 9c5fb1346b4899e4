import os

# Point the app at an in-memory database before anything imports scoutquest.db
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("OPERATOR_TOKEN", "test-operator-token")

import uuid
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from scoutquest.db import Base, get_session
from scoutquest.main import app
from scoutquest.models.challenge import Challenge
from scoutquest.models.scout import ScoutAccount, ParentScoutLink, GroupLeader
from scoutquest.models.badge import BadgeDefinition
from scoutquest.services.leaderboard import LeaderboardRanker, RankingCache


def now_utc():
    return datetime.now(timezone.utc)


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; let SQLAlchemy emit it
    @event.listens_for(eng.sync_engine, "connect")
    def _no_autobegin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng.sync_engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def ranker():
    return LeaderboardRanker(RankingCache(ttl_seconds=60))


@pytest_asyncio.fixture
async def client(session_factory, ranker):
    async def _override_session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _override_session
    previous_ranker = app.state.ranker
    app.state.ranker = ranker
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
    app.state.ranker = previous_ranker


class Seed:
    """
    Writes the identity-side rows (scouts, parent links, leaders) the core only reads.

    Goes through the test's own session: every session shares the single
    in-memory connection, so a second session opening its own transaction
    while the test session still has one open would fail on BEGIN.
    """

    def __init__(self, session):
        self.session = session

    async def _save(self, row):
        self.session.add(row)
        await self.session.commit()
        return row

    async def scout(self, group_id, name="Scout", points=0):
        acc = await self._save(ScoutAccount(group_id=group_id, display_name=name, point_total=points))
        return acc.id

    async def parent_link(self, parent_id, scout_id, active=True, verified=True):
        await self._save(ParentScoutLink(parent_id=parent_id, scout_id=scout_id, active=active, verified=verified))

    async def leader(self, leader_id, group_id):
        await self._save(GroupLeader(leader_id=leader_id, group_id=group_id))

    async def challenge(self, created_by, *, points=10, group_id=None, starts_at=None, ends_at=None, **extra):
        starts_at = starts_at or now_utc() - timedelta(hours=1)
        ends_at = ends_at or now_utc() + timedelta(days=7)
        ch = await self._save(Challenge(
            created_by=created_by, title=extra.pop("title", "Build a campfire"),
            description=None, point_value=points, group_id=group_id,
            starts_at=starts_at, ends_at=ends_at, **extra,
        ))
        return ch.id

    async def badge(self, name, condition_type, condition_value=None, challenge_category=None, category="nature"):
        b = await self._save(BadgeDefinition(
            name=name, description=f"{name} badge", icon="🏅", category=category,
            condition_type=condition_type, condition_value=condition_value,
            challenge_category=challenge_category,
        ))
        return b.id


@pytest.fixture
def seed(session):
    return Seed(session)


@pytest.fixture
def group_id():
    return uuid.uuid4()
