from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class LevelDefinition:
    order: int
    name: str
    min_points: int
    max_points: int | None  # None = open-ended top tier
    icon: str
    color: str


LEVELS: tuple[LevelDefinition, ...] = (
    LevelDefinition(1, "Louveteau", 0, 99, "🐺", "#8bbaaa"),
    LevelDefinition(2, "Éclaireur", 100, 249, "🔦", "#5d9a86"),
    LevelDefinition(3, "Aventurier", 250, 499, "🧭", "#2D5A45"),
    LevelDefinition(4, "Pionnier", 500, 999, "⛺", "#e99265"),
    LevelDefinition(5, "Ranger", 1000, 1999, "🏕️", "#D97B4A"),
    LevelDefinition(6, "Guide", 2000, 3499, "🗺️", "#c46839"),
    LevelDefinition(7, "Chef de patrouille", 3500, 4999, "🎖️", "#1f4031"),
    LevelDefinition(8, "Maître Scout", 5000, None, "👑", "#a3552e"),
)


@dataclass(frozen=True)
class LevelInfo:
    current: LevelDefinition
    next: LevelDefinition | None
    points: int
    points_in_level: int
    points_to_next: int
    progress: int  # percent, 0..100
    is_max_level: bool


def level_for(points: int, levels: tuple[LevelDefinition, ...] = LEVELS) -> LevelDefinition:
    for lvl in levels:
        if points >= lvl.min_points and (lvl.max_points is None or points <= lvl.max_points):
            return lvl
    # Below the first tier (should not happen with non-negative totals)
    return levels[0]


def level_info(points: int, levels: tuple[LevelDefinition, ...] = LEVELS) -> LevelInfo:
    """
    Where ``points`` sits in the tier ladder.

    >>> info = level_info(175)
    >>> info.current.name, info.points_to_next, info.progress
    ('Éclaireur', 75, 50)
    """
    points = max(0, int(points))
    current = level_for(points, levels)
    idx = levels.index(current)
    nxt = levels[idx + 1] if idx + 1 < len(levels) else None
    in_level = points - current.min_points

    if current.max_points is None or nxt is None:
        return LevelInfo(current, None, points, in_level, 0, 100, True)

    span = current.max_points - current.min_points + 1
    to_next = current.max_points - points + 1
    progress = min(100, round(in_level * 100 / span))
    return LevelInfo(current, nxt, points, in_level, to_next, progress, False)
