from types import SimpleNamespace
from datetime import datetime, timedelta, timezone

import pytest

from scoutquest.services.errors import ChallengeExpired, InvalidArgument, InvalidTransition
from scoutquest.services.windows import ensure_open, is_open, runtime_state, validate_window

S = datetime(2026, 6, 1, 8, 0, tzinfo=timezone.utc)
E = datetime(2026, 6, 8, 8, 0, tzinfo=timezone.utc)


def test_half_open_window():
    assert runtime_state(S, E, S - timedelta(microseconds=1)) == "upcoming"
    assert runtime_state(S, E, S) == "open"
    assert runtime_state(S, E, E - timedelta(microseconds=1)) == "open"
    assert runtime_state(S, E, E) == "closed"
    assert is_open(S, E, S + timedelta(days=1))


def test_validate_window():
    validate_window(S, E)
    with pytest.raises(InvalidArgument):
        validate_window(E, S)
    with pytest.raises(InvalidArgument):
        validate_window(S, S)
    with pytest.raises(InvalidArgument):
        validate_window(S.replace(tzinfo=None), E)


def test_ensure_open():
    ch = SimpleNamespace(starts_at=S, ends_at=E)
    ensure_open(ch, S)
    with pytest.raises(InvalidTransition) as exc:
        ensure_open(ch, S - timedelta(hours=1))
    assert not isinstance(exc.value, ChallengeExpired)
    with pytest.raises(ChallengeExpired):
        ensure_open(ch, E)


def test_window_compares_across_offsets():
    paris = timezone(timedelta(hours=2))
    # 09:59 in Paris is 07:59 UTC, still before S
    assert runtime_state(S, E, datetime(2026, 6, 1, 9, 59, tzinfo=paris)) == "upcoming"
    assert runtime_state(S, E, datetime(2026, 6, 1, 10, 0, tzinfo=paris)) == "open"
