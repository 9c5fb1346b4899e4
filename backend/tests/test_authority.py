import uuid
from types import SimpleNamespace

import pytest

from scoutquest.services.authority import (
    LeaderActor, ParentActor, ScoutActor, SqlRelationshipDirectory, actor_from_claims, can_validate,
)
from scoutquest.services.errors import InvalidArgument


class StaticDirectory:
    """In-memory relationships for exercising the rules without a database."""

    def __init__(self, parents=(), leaders=(), groups=None):
        self.parents = set(parents)
        self.leaders = set(leaders)
        self.groups = groups or {}

    async def is_parent_of(self, actor_id, scout_id):
        return (actor_id, scout_id) in self.parents

    async def is_leader_of_scouts_group(self, actor_id, scout_id):
        return (actor_id, self.groups.get(scout_id)) in self.leaders

    async def scout_group_id(self, scout_id):
        return self.groups.get(scout_id)


def _sub(scout_id):
    return SimpleNamespace(scout_id=scout_id)


@pytest.mark.asyncio
async def test_accept_and_reject_share_one_rule():
    scout, parent, leader, stranger = (uuid.uuid4() for _ in range(4))
    group = uuid.uuid4()
    d = StaticDirectory(parents={(parent, scout)}, leaders={(leader, group)}, groups={scout: group})

    assert await can_validate(ParentActor(parent), _sub(scout), d)
    assert await can_validate(LeaderActor(leader), _sub(scout), d)
    assert not await can_validate(ParentActor(stranger), _sub(scout), d)
    assert not await can_validate(LeaderActor(stranger), _sub(scout), d)
    assert not await can_validate(ScoutActor(stranger), _sub(scout), d)


@pytest.mark.asyncio
async def test_self_validation_refused_even_if_linked():
    scout = uuid.uuid4()
    group = uuid.uuid4()
    d = StaticDirectory(parents={(scout, scout)}, leaders={(scout, group)}, groups={scout: group})
    assert not await can_validate(ParentActor(scout), _sub(scout), d)
    assert not await can_validate(LeaderActor(scout), _sub(scout), d)


@pytest.mark.asyncio
async def test_sql_directory_reads_live_links(session, seed):
    group = uuid.uuid4()
    scout = await seed.scout(group)
    parent, leader = uuid.uuid4(), uuid.uuid4()
    await seed.parent_link(parent, scout)
    await seed.leader(leader, group)
    old_parent = uuid.uuid4()
    await seed.parent_link(old_parent, scout, active=False)

    d = SqlRelationshipDirectory(session)
    assert await d.is_parent_of(parent, scout)
    assert not await d.is_parent_of(old_parent, scout)
    assert await d.is_leader_of_scouts_group(leader, scout)
    assert not await d.is_leader_of_scouts_group(leader, uuid.uuid4())
    assert await d.scout_group_id(scout) == group
    assert await d.scouts_of_parent(parent) == [scout]
    assert await d.groups_of_leader(leader) == [group]


@pytest.mark.asyncio
async def test_unverified_parent_link_grants_nothing(session, seed):
    scout = await seed.scout(uuid.uuid4())
    claimed = uuid.uuid4()
    await seed.parent_link(claimed, scout, verified=False)

    d = SqlRelationshipDirectory(session)
    assert not await d.is_parent_of(claimed, scout)
    assert await d.scouts_of_parent(claimed) == []
    assert not await can_validate(ParentActor(claimed), _sub(scout), d)


def test_actor_from_claims():
    uid = uuid.uuid4()
    assert actor_from_claims(str(uid), "leader") == LeaderActor(uid)
    assert actor_from_claims(str(uid), "scout").kind == "scout"
    with pytest.raises(InvalidArgument):
        actor_from_claims(str(uid), "admin")
    with pytest.raises(InvalidArgument):
        actor_from_claims("not-a-uuid", "parent")
