"""
Who may accept or reject a pending submission.

Actors are a closed set of kinds (scout, parent, leader). Each kind carries
its own ``can_validate`` so the rule for a new kind has to be written next
to the others. Relationship data is read through a ``RelationshipDirectory``
on every call; nothing here is cached, because a parent can be unlinked (or a
leader moved) between a scout's submit and the validator's tap.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import ClassVar, Protocol, Union
from uuid import UUID
from sqlalchemy import select, exists
from sqlalchemy.ext.asyncio import AsyncSession

from scoutquest.models.scout import ScoutAccount, ParentScoutLink, GroupLeader
from scoutquest.services.errors import InvalidArgument


class RelationshipDirectory(Protocol):
    async def is_parent_of(self, actor_id: UUID, scout_id: UUID) -> bool: ...
    async def is_leader_of_scouts_group(self, actor_id: UUID, scout_id: UUID) -> bool: ...
    async def scout_group_id(self, scout_id: UUID) -> UUID | None: ...


class SqlRelationshipDirectory:
    """Live reads against the identity service's relation tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def is_parent_of(self, actor_id: UUID, scout_id: UUID) -> bool:
        found = await self.session.scalar(
            select(exists().where(
                ParentScoutLink.parent_id == actor_id,
                ParentScoutLink.scout_id == scout_id,
                ParentScoutLink.active.is_(True),
                ParentScoutLink.verified.is_(True),
            ))
        )
        return bool(found)

    async def is_leader_of_scouts_group(self, actor_id: UUID, scout_id: UUID) -> bool:
        found = await self.session.scalar(
            select(exists().where(
                GroupLeader.leader_id == actor_id,
                GroupLeader.group_id == ScoutAccount.group_id,
                ScoutAccount.id == scout_id,
            ))
        )
        return bool(found)

    async def scout_group_id(self, scout_id: UUID) -> UUID | None:
        return await self.session.scalar(select(ScoutAccount.group_id).where(ScoutAccount.id == scout_id))

    async def scouts_of_parent(self, parent_id: UUID) -> list[UUID]:
        rows = await self.session.scalars(
            select(ParentScoutLink.scout_id).where(
                ParentScoutLink.parent_id == parent_id,
                ParentScoutLink.active.is_(True),
                ParentScoutLink.verified.is_(True),
            )
        )
        return list(rows)

    async def groups_of_leader(self, leader_id: UUID) -> list[UUID]:
        rows = await self.session.scalars(select(GroupLeader.group_id).where(GroupLeader.leader_id == leader_id))
        return list(rows)


@dataclass(frozen=True)
class ScoutActor:
    id: UUID
    kind: ClassVar[str] = "scout"

    async def can_validate(self, scout_id: UUID, directory: RelationshipDirectory) -> bool:
        return False


@dataclass(frozen=True)
class ParentActor:
    id: UUID
    kind: ClassVar[str] = "parent"

    async def can_validate(self, scout_id: UUID, directory: RelationshipDirectory) -> bool:
        return await directory.is_parent_of(self.id, scout_id)


@dataclass(frozen=True)
class LeaderActor:
    id: UUID
    kind: ClassVar[str] = "leader"

    async def can_validate(self, scout_id: UUID, directory: RelationshipDirectory) -> bool:
        return await directory.is_leader_of_scouts_group(self.id, scout_id)


Actor = Union[ScoutActor, ParentActor, LeaderActor]

ACTOR_KINDS: dict[str, type] = {cls.kind: cls for cls in (ScoutActor, ParentActor, LeaderActor)}


def actor_from_claims(sub: str, role: str) -> Actor:
    cls = ACTOR_KINDS.get(role)
    if cls is None:
        raise InvalidArgument(f"Unknown actor role: {role}")
    try:
        actor_id = UUID(str(sub))
    except ValueError:
        raise InvalidArgument("Actor id is not a UUID")
    return cls(id=actor_id)


async def can_validate(actor: Actor, submission, directory: RelationshipDirectory) -> bool:
    # Self-validation is forbidden whatever else the relation tables say
    if actor.id == submission.scout_id:
        return False
    return await actor.can_validate(submission.scout_id, directory)
