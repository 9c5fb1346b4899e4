from __future__ import annotations
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable
from uuid import UUID
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scoutquest.db import utcnow
from scoutquest.models.scout import ScoutAccount
from scoutquest.services.errors import InvalidArgument, NotFound

log = structlog.get_logger()

GLOBAL_SCOPE = "global"


@dataclass(frozen=True)
class LeaderboardEntry:
    scout_id: UUID
    display_name: str
    group_id: UUID
    point_total: int
    rank: int


@dataclass(frozen=True)
class RankedView:
    scope: str
    computed_at: datetime
    entries: tuple[LeaderboardEntry, ...] = field(default_factory=tuple)

    def rank_of(self, scout_id: UUID) -> int | None:
        for e in self.entries:
            if e.scout_id == scout_id:
                return e.rank
        return None


def scope_key(scope: str | UUID) -> str:
    return GLOBAL_SCOPE if scope == GLOBAL_SCOPE else str(scope)


def parse_scope(raw: str) -> str | UUID:
    """'global' or a group UUID."""
    if raw == GLOBAL_SCOPE:
        return GLOBAL_SCOPE
    try:
        return UUID(raw)
    except ValueError:
        raise InvalidArgument("scope must be 'global' or a group id")


def competition_rank(rows: Iterable[tuple[UUID, str, UUID, int]]) -> list[LeaderboardEntry]:
    """
    Standard competition ranking ("1224"): tied totals share a rank and the
    next distinct total resumes at previous rank + size of the tie.
    Iteration order among ties is ascending scout id so repeated calls agree.

    >>> import uuid
    >>> a, b, c = (uuid.UUID(int=i) for i in (1, 2, 3))
    >>> g = uuid.UUID(int=9)
    >>> [e.rank for e in competition_rank([(c, "c", g, 30), (b, "b", g, 50), (a, "a", g, 50)])]
    [1, 1, 3]
    """
    ordered = sorted(rows, key=lambda r: (-int(r[3]), str(r[0])))
    out: list[LeaderboardEntry] = []
    prev_total: int | None = None
    current_rank = 0
    for position, (scout_id, name, group_id, total) in enumerate(ordered, start=1):
        if total != prev_total:
            current_rank = position
            prev_total = total
        out.append(LeaderboardEntry(
            scout_id=scout_id, display_name=name, group_id=group_id,
            point_total=int(total), rank=current_rank,
        ))
    return out


class RankingCache:
    """
    Per-scope cache of ranked views.

    Contract: writers that move a scout's point_total call ``invalidate_group``
    for that scout's group after their transaction commits; that drops the
    group view and the global view. Anything else expires after ``ttl_seconds``.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._views: dict[str, tuple[float, RankedView]] = {}

    def get(self, key: str) -> RankedView | None:
        if self.ttl_seconds <= 0:
            return None
        with self._lock:
            hit = self._views.get(key)
            if hit is None:
                return None
            stored_at, view = hit
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._views[key]
                return None
            return view

    def put(self, key: str, view: RankedView) -> None:
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            self._views[key] = (self._clock(), view)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._views.pop(key, None)

    def invalidate_group(self, group_id: UUID | None) -> None:
        with self._lock:
            self._views.pop(GLOBAL_SCOPE, None)
            if group_id is not None:
                self._views.pop(str(group_id), None)

    def clear(self) -> None:
        with self._lock:
            self._views.clear()


class LeaderboardRanker:
    def __init__(self, cache: RankingCache):
        self.cache = cache

    async def _compute(self, session: AsyncSession, scope: str | UUID, at: datetime) -> RankedView:
        q = select(ScoutAccount.id, ScoutAccount.display_name, ScoutAccount.group_id, ScoutAccount.point_total)
        if scope != GLOBAL_SCOPE:
            q = q.where(ScoutAccount.group_id == scope)
        rows = (await session.execute(q)).all()
        entries = competition_rank(tuple(r) for r in rows)
        return RankedView(scope=scope_key(scope), computed_at=at, entries=tuple(entries))

    async def view(self, session: AsyncSession, scope: str | UUID, at: datetime | None = None) -> RankedView:
        key = scope_key(scope)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        view = await self._compute(session, scope, at or utcnow())
        self.cache.put(key, view)
        log.debug("leaderboard_computed", scope=key, scouts=len(view.entries))
        return view

    async def rank(
        self,
        session: AsyncSession,
        scope: str | UUID,
        at: datetime | None = None,
        limit: int | None = None,
    ) -> list[LeaderboardEntry]:
        view = await self.view(session, scope, at)
        entries = list(view.entries)
        return entries[:limit] if limit is not None else entries

    async def rank_of(self, session: AsyncSession, scope: str | UUID, scout_id: UUID, at: datetime | None = None) -> int:
        # Same view as rank(), so the list and the single lookup never disagree
        view = await self.view(session, scope, at)
        r = view.rank_of(scout_id)
        if r is None:
            raise NotFound("Scout not ranked in this scope")
        return r

    def invalidate_group(self, group_id: UUID | None) -> None:
        self.cache.invalidate_group(group_id)
