"""Level curve: XP thresholds and level computation.

Levels 0-5 have literal thresholds. Past level 5 the marginal cost starts at
600 XP and grows by 100 per level:

    threshold(L) = 1500 + 600*d + 100*d*(d-1)/2,   d = L - 5

That closed form reduces to 50*L*(L+1) and also reproduces every literal
breakpoint, so ``level_for_xp`` inverts it directly with integer math instead
of walking the piecewise table.
"""

from __future__ import annotations

from math import isqrt

LITERAL_THRESHOLDS: tuple[int, ...] = (0, 100, 300, 600, 1000, 1500)
LAST_LITERAL_LEVEL = len(LITERAL_THRESHOLDS) - 1
BASE_LEVEL_COST = 600
COST_STEP = 100


def xp_threshold_for_level(level: int) -> int:
    """Total XP needed to reach ``level``."""
    if level < 0:
        msg = f"level must be non-negative, got {level}"
        raise ValueError(msg)
    if level <= LAST_LITERAL_LEVEL:
        return LITERAL_THRESHOLDS[level]
    d = level - LAST_LITERAL_LEVEL
    return LITERAL_THRESHOLDS[-1] + BASE_LEVEL_COST * d + COST_STEP * d * (d - 1) // 2


def level_for_xp(total_xp: int) -> int:
    """Highest level whose threshold is <= ``total_xp``.

    threshold(L) = 50*L*(L+1) <= xp  <=>  L*(L+1) <= xp // 50, solved exactly
    with ``isqrt``.
    """
    if total_xp < 0:
        msg = f"total_xp must be non-negative, got {total_xp}"
        raise ValueError(msg)
    q = total_xp // 50
    return (isqrt(4 * q + 1) - 1) // 2


def compute_level(total_xp: int) -> dict:
    """Compute level info from total XP for profile views."""
    level = level_for_xp(total_xp)
    current_level_xp = xp_threshold_for_level(level)
    next_level_xp = xp_threshold_for_level(level + 1)
    xp_into_level = total_xp - current_level_xp
    xp_for_level = next_level_xp - current_level_xp
    progress = min(100.0, max(0.0, xp_into_level / xp_for_level * 100))

    return {
        "level": level,
        "xp": total_xp,
        "current_level_xp": current_level_xp,
        "next_level_xp": next_level_xp,
        "xp_into_level": xp_into_level,
        "xp_for_level": xp_for_level,
        "progress": round(progress, 2),
    }
