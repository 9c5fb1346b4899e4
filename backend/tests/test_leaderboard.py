import uuid

import pytest

from scoutquest.models.scout import ScoutAccount
from scoutquest.services.errors import InvalidArgument, NotFound
from scoutquest.services.leaderboard import (
    GLOBAL_SCOPE, LeaderboardRanker, RankingCache, competition_rank, parse_scope,
)


class FakeClock:
    def __init__(self):
        self.t = 0.0

    def __call__(self):
        return self.t


def _ids(n):
    return [uuid.UUID(int=i + 1) for i in range(n)]


def test_competition_rank_ties_skip():
    a, b, c, d = _ids(4)
    g = uuid.uuid4()
    out = competition_rank([(a, "a", g, 50), (b, "b", g, 80), (c, "c", g, 80), (d, "d", g, 10)])
    assert [(e.scout_id, e.rank) for e in out] == [(b, 1), (c, 1), (a, 3), (d, 4)]


def test_competition_rank_is_deterministic():
    ids = _ids(5)
    g = uuid.uuid4()
    rows = [(i, str(i), g, 0) for i in ids]
    first = competition_rank(rows)
    second = competition_rank(list(reversed(rows)))
    assert [e.scout_id for e in first] == [e.scout_id for e in second] == ids
    assert {e.rank for e in first} == {1}


def test_competition_rank_empty():
    assert competition_rank([]) == []


def test_parse_scope():
    g = uuid.uuid4()
    assert parse_scope("global") == GLOBAL_SCOPE
    assert parse_scope(str(g)) == g
    with pytest.raises(InvalidArgument):
        parse_scope("my-troop")


def test_cache_ttl_and_invalidation():
    clock = FakeClock()
    cache = RankingCache(ttl_seconds=10, clock=clock)
    sentinel = object()
    g = uuid.uuid4()
    cache.put(GLOBAL_SCOPE, sentinel)
    cache.put(str(g), sentinel)
    other = str(uuid.uuid4())
    cache.put(other, sentinel)

    clock.t = 9.9
    assert cache.get(GLOBAL_SCOPE) is sentinel

    cache.invalidate_group(g)
    assert cache.get(GLOBAL_SCOPE) is None
    assert cache.get(str(g)) is None
    assert cache.get(other) is sentinel

    clock.t = 10.0
    assert cache.get(other) is None


def test_cache_disabled_with_zero_ttl():
    cache = RankingCache(ttl_seconds=0)
    cache.put(GLOBAL_SCOPE, object())
    assert cache.get(GLOBAL_SCOPE) is None


@pytest.mark.asyncio
async def test_ranker_scopes_and_rank_of(session, seed):
    g1, g2 = uuid.uuid4(), uuid.uuid4()
    a = await seed.scout(g1, "A", points=120)
    b = await seed.scout(g1, "B", points=120)
    c = await seed.scout(g2, "C", points=300)
    d = await seed.scout(g2, "D", points=0)
    ranker = LeaderboardRanker(RankingCache(ttl_seconds=60))

    glob = await ranker.rank(session, GLOBAL_SCOPE)
    assert [(e.scout_id, e.rank) for e in glob][0] == (c, 1)
    assert {e.scout_id: e.rank for e in glob} == {c: 1, a: 2, b: 2, d: 4}

    group = await ranker.rank(session, g1)
    assert {e.rank for e in group} == {1}
    assert await ranker.rank_of(session, g1, b) == 1
    assert await ranker.rank_of(session, GLOBAL_SCOPE, d) == 4
    assert len(await ranker.rank(session, GLOBAL_SCOPE, limit=2)) == 2

    with pytest.raises(NotFound):
        await ranker.rank_of(session, g1, c)


@pytest.mark.asyncio
async def test_ranker_serves_cached_view_until_invalidated(session, seed):
    g = uuid.uuid4()
    a = await seed.scout(g, "A", points=10)
    b = await seed.scout(g, "B", points=20)
    ranker = LeaderboardRanker(RankingCache(ttl_seconds=600))
    assert await ranker.rank_of(session, g, b) == 1

    acc = await session.get(ScoutAccount, a)
    acc.point_total = 50
    await session.commit()

    # Still the cached view
    assert await ranker.rank_of(session, g, b) == 1
    ranker.invalidate_group(g)
    assert await ranker.rank_of(session, g, b) == 2
    assert await ranker.rank_of(session, g, a) == 1
