"""
Gamification module - level calculations from total XP.

Levels follow a quadratic curve: reaching level n takes base * n^2 XP, so
level = floor(sqrt(totalXp / base)). Levels are always derived from the
cached total and never stored.
"""
import math
from decimal import Decimal
from typing import Dict, List, Optional, Union

Number = Union[int, Decimal]


def compute_level(total_xp: Number, base: Number) -> int:
    """
    Calculate level from total XP.

    Args:
        total_xp: Cached XP total (may be fractional after multipliers)
        base: Level formula base (XP for level 1)

    Returns:
        Level, 0 when total_xp or base is not positive
    """
    if total_xp <= 0 or base <= 0:
        return 0
    # floor(sqrt(x)) == isqrt(floor(x)) for x >= 0, and stays exact for Decimals
    return math.isqrt(int(Decimal(total_xp) // Decimal(base)))


def xp_for_level(level: int, base: Number) -> Number:
    """XP required to reach a level: base * level^2."""
    return base * level * level


def get_level_progress(total_xp: Number, base: Number) -> Dict[str, Number]:
    """
    Get progress information inside the current level.

    Returns:
        Dict with level, currentXp (XP earned since the level started),
        xpForNextLevel (XP span of the current level) and totalXp
    """
    level = compute_level(total_xp, base)
    at_current = xp_for_level(level, base)
    at_next = xp_for_level(level + 1, base)
    return {
        'level': level,
        'currentXp': total_xp - at_current,
        'xpForNextLevel': at_next - at_current,
        'totalXp': total_xp,
    }


def resolve_level_title(level: int, titles: List[dict]) -> Optional[str]:
    """
    Pick the title whose [minLevel, maxLevel] range contains the level.

    Titles are scanned from the highest minLevel down; on equal minLevel a
    bounded range wins over an open-ended one (no maxLevel).
    """
    def scan_order(title):
        return (-int(title['minLevel']), title.get('maxLevel') is None)

    for title in sorted(titles, key=scan_order):
        if level < title['minLevel']:
            continue
        max_level = title.get('maxLevel')
        if max_level is None or level <= max_level:
            return title['title']
    return None
