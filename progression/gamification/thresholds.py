"""
Level Threshold Table

Levels are derived from total points against a fixed, strictly increasing
table of thresholds. Level 1 starts at 0 points; once points pass the last
threshold the level stays at the table length.

Default table:
- Level 1: 0 points
- Level 2: 100 points
- Level 3: 300 points
- Level 4: 600 points
- Level 5: 1000 points (max)
"""

from bisect import bisect_right
from typing import Dict, Optional, Sequence, Tuple

from progression.exceptions import ConfigurationError, InvalidArgumentError

DEFAULT_LEVEL_THRESHOLDS: Tuple[int, ...] = (0, 100, 300, 600, 1000)


def _check_points(points: int) -> None:
    if isinstance(points, bool) or not isinstance(points, int):
        raise InvalidArgumentError(
            message="points must be an integer",
            field="points",
            value=points,
            operation="level_for"
        )
    if points < 0:
        raise InvalidArgumentError(
            message="points cannot be negative",
            field="points",
            value=points,
            operation="level_for"
        )


class ThresholdTable:
    """Ordered point thresholds defining level boundaries"""

    def __init__(self, thresholds: Sequence[int] = DEFAULT_LEVEL_THRESHOLDS):
        table = tuple(thresholds)
        if not table:
            raise ConfigurationError("Level threshold table is empty", config_key="LEVEL_THRESHOLDS")
        if table[0] != 0:
            raise ConfigurationError(
                f"First level threshold must be 0, got {table[0]}",
                config_key="LEVEL_THRESHOLDS"
            )
        if any(b <= a for a, b in zip(table, table[1:])):
            raise ConfigurationError(
                f"Level thresholds must be strictly increasing: {list(table)}",
                config_key="LEVEL_THRESHOLDS"
            )
        self._thresholds = table

    def thresholds(self) -> Tuple[int, ...]:
        return self._thresholds

    @property
    def max_level(self) -> int:
        return len(self._thresholds)

    def level_for(self, points: int) -> int:
        """
        1-based index of the last threshold not exceeding points

        Raises:
            InvalidArgumentError: points is negative or not an integer
        """
        _check_points(points)
        return bisect_right(self._thresholds, points)

    def level_info(self, points: int) -> Dict[str, Optional[int]]:
        """
        Level and distance to the next level

        Returns:
            {
                'current_level': int,
                'next_level_at': int | None (None at max level),
                'points_to_next_level': int | None,
                'is_max_level': bool
            }
        """
        level = self.level_for(points)
        if level >= self.max_level:
            return {
                "current_level": level,
                "next_level_at": None,
                "points_to_next_level": None,
                "is_max_level": True,
            }

        next_level_at = self._thresholds[level]
        return {
            "current_level": level,
            "next_level_at": next_level_at,
            "points_to_next_level": next_level_at - points,
            "is_max_level": False,
        }

    def __repr__(self) -> str:
        return f"ThresholdTable({list(self._thresholds)})"


default_table = ThresholdTable()


def level_for(points: int) -> int:
    """Level for points against the default table"""
    return default_table.level_for(points)
