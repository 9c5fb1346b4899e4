from __future__ import annotations
from datetime import datetime
from typing import Literal

from scoutquest.services.errors import InvalidArgument, InvalidTransition, ChallengeExpired

RuntimeState = Literal["upcoming", "open", "closed"]


def validate_window(starts_at: datetime, ends_at: datetime) -> None:
    if starts_at.tzinfo is None or ends_at.tzinfo is None:
        raise InvalidArgument("starts_at and ends_at must be timezone-aware")
    if ends_at <= starts_at:
        raise InvalidArgument("ends_at must be after starts_at")


def runtime_state(starts_at: datetime, ends_at: datetime, now: datetime) -> RuntimeState:
    """
    Position of ``now`` relative to the half-open window [starts_at, ends_at).

    Examples:
        >>> from datetime import timezone
        >>> s = datetime(2025, 6, 1, tzinfo=timezone.utc)
        >>> e = datetime(2025, 6, 8, tzinfo=timezone.utc)
        >>> runtime_state(s, e, e)
        'closed'
    """
    if now < starts_at:
        return "upcoming"
    if now < ends_at:
        return "open"
    return "closed"


def is_open(starts_at: datetime, ends_at: datetime, now: datetime) -> bool:
    return runtime_state(starts_at, ends_at, now) == "open"


def ensure_open(challenge, now: datetime) -> None:
    """Raise unless ``challenge`` accepts actions at ``now``."""
    state = runtime_state(challenge.starts_at, challenge.ends_at, now)
    if state == "upcoming":
        raise InvalidTransition("Challenge has not started yet")
    if state == "closed":
        raise ChallengeExpired("Challenge window has closed")
