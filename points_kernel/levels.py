"""
Points Kernel - Level Progress Calculator v1.0

total points -> LevelProgress. Stateless; level is recomputed from the
total on every call.

Beyond the last configured level, the next threshold is extrapolated
as twice the last known threshold.
"""

from __future__ import annotations

import math
from typing import Any, List, Mapping

from .constants import ACHIEVEMENT_REQUIREMENTS, DEFAULT_LEVEL_THRESHOLDS
from .domain_types import AchievementType, LevelProgress, LevelThresholds
from .invariants import ConfigurationError, InvalidArgumentError


def _validate_total(total_points: Any) -> None:
    if isinstance(total_points, bool) or not isinstance(total_points, (int, float)):
        raise InvalidArgumentError(
            "total_points", f"Total points must be a number, got {total_points!r}"
        )
    if not math.isfinite(total_points):
        raise InvalidArgumentError(
            "total_points", f"Total points must be finite, got {total_points!r}"
        )
    if total_points < 0:
        raise InvalidArgumentError(
            "total_points", f"Total points cannot be negative, got {total_points}"
        )


def _as_thresholds(thresholds: Any) -> LevelThresholds:
    """Accept a LevelThresholds or a plain {level: threshold} mapping."""
    if isinstance(thresholds, LevelThresholds):
        return thresholds
    if isinstance(thresholds, Mapping):
        return LevelThresholds.from_mapping(thresholds)
    raise ConfigurationError(
        "thresholds",
        f"Expected a {{level: threshold}} mapping, got {type(thresholds).__name__}",
    )


def calculate_level_progress(
    total_points: float,
    thresholds: LevelThresholds | Mapping[int, float] = DEFAULT_LEVEL_THRESHOLDS,
) -> LevelProgress:
    """
    Locate total_points in the threshold table.

    Linear scan; the table is small and already ordered by construction.
    A plain {level: threshold} mapping goes through
    LevelThresholds.from_mapping first. Raises InvalidArgumentError
    for a negative total.
    """
    _validate_total(total_points)

    levels = _as_thresholds(thresholds).levels
    current_level, previous_threshold = levels[0]
    next_threshold = levels[1][1]

    for idx, (level, threshold) in enumerate(levels):
        if total_points < threshold:
            break
        current_level, previous_threshold = level, threshold
        if idx + 1 < len(levels):
            next_threshold = levels[idx + 1][1]
        else:
            next_threshold = previous_threshold * 2

    band = next_threshold - previous_threshold
    percentage = (total_points - previous_threshold) / band * 100
    percentage = max(0.0, min(100.0, percentage))

    return LevelProgress(
        current_level=current_level,
        total_points=total_points,
        previous_level_threshold=previous_threshold,
        next_level_threshold=next_threshold,
        points_to_next_level=max(0, next_threshold - total_points),
        progress_percentage=percentage,
    )


def is_valid_level(
    level: int, thresholds: LevelThresholds | Mapping[int, float] = DEFAULT_LEVEL_THRESHOLDS,
) -> bool:
    return any(lvl == level for lvl, _ in _as_thresholds(thresholds).levels)


def threshold_for_level(
    level: int, thresholds: LevelThresholds | Mapping[int, float] = DEFAULT_LEVEL_THRESHOLDS,
) -> float:
    for lvl, threshold in _as_thresholds(thresholds).levels:
        if lvl == level:
            return threshold
    raise ConfigurationError("thresholds", f"Level {level} is not defined")


def unlocked_achievements(
    total_points: float,
    requirements: Mapping[AchievementType, float] = ACHIEVEMENT_REQUIREMENTS,
) -> List[AchievementType]:
    """Achievements whose point requirement the total meets, by requirement."""
    _validate_total(total_points)
    met = [a for a, needed in requirements.items() if total_points >= needed]
    return sorted(met, key=lambda a: (requirements[a], a.value))
