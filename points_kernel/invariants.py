"""
Points Kernel - Errors and Invariant Checks v1.0

Hard-fail validation. Every check raises ConfigurationError on failure.
Argument errors raise InvalidArgumentError and are never retried.
"""

from __future__ import annotations

import math
import re
from typing import TYPE_CHECKING, Any, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from .domain_types import PointsBounds, PointsConfig


VERSION_PATTERN = re.compile(r'^\d+\.\d+\.\d+$')


class PointsKernelError(Exception):
    """Base class for all points kernel errors."""


class ConfigurationError(PointsKernelError):
    """Raised when configuration cannot resolve or violates an invariant."""

    def __init__(self, field: str, detail: str) -> None:
        self.field = field
        self.detail = detail
        super().__init__(f"[CONFIG:{field}] {detail}")


class InvalidArgumentError(PointsKernelError, ValueError):
    """Raised when a caller passes an argument outside the contract."""

    def __init__(self, argument: str, detail: str) -> None:
        self.argument = argument
        self.detail = detail
        super().__init__(f"[ARGUMENT:{argument}] {detail}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_points_config(
    config: "PointsConfig",
    *,
    require_complete: bool = False,
    bounds: Optional["PointsBounds"] = None,
) -> None:
    """
    Validate a PointsConfig. Raises ConfigurationError on the first failure.

    require_complete: every ActivityType must carry a base value.
    bounds: every base value must lie inside [min_points, max_points].
    """
    _check_ai_modifier(config.ai_modifier)
    _check_point_values("base_points", config.base_points)
    _check_point_values("org_overrides", config.org_overrides)
    _check_version(config.version)
    if require_complete:
        _check_complete(config)
    if bounds is not None:
        validate_bounds(bounds)
        _check_within_bounds(config, bounds)


def validate_bounds(bounds: "PointsBounds") -> None:
    """0 <= min_points <= max_points."""
    lo, hi = bounds.min_points, bounds.max_points
    if not (_is_number(lo) and _is_number(hi)):
        raise ConfigurationError("bounds", f"Bounds must be numbers, got {lo!r}/{hi!r}")
    if lo < 0 or lo > hi:
        raise ConfigurationError(
            "bounds", f"Require 0 <= min_points <= max_points, got {lo}/{hi}"
        )


def validate_level_thresholds(pairs: Sequence[Tuple[int, Any]]) -> None:
    """
    Check the threshold table invariants on (level, threshold) pairs
    given in level order.
    """
    if len(pairs) < 2:
        raise ConfigurationError(
            "thresholds", f"At least two levels required, got {len(pairs)}"
        )

    first_level, first_threshold = pairs[0]
    if first_level != 1 or first_threshold != 0:
        raise ConfigurationError(
            "thresholds",
            f"Table must start at level 1 with threshold 0, "
            f"got level {first_level} at {first_threshold!r}",
        )

    prev_level, prev_threshold = 0, None
    for level, threshold in pairs:
        if not _is_number(threshold) or threshold < 0:
            raise ConfigurationError(
                "thresholds",
                f"Level {level} threshold {threshold!r} is not a finite non-negative number",
            )
        if level <= prev_level:
            raise ConfigurationError(
                "thresholds", f"Levels not strictly increasing at level {level}"
            )
        if prev_threshold is not None and threshold <= prev_threshold:
            raise ConfigurationError(
                "thresholds",
                f"Threshold for level {level} ({threshold}) does not exceed "
                f"level {prev_level} ({prev_threshold})",
            )
        prev_level, prev_threshold = level, threshold


# ---------------------------------------------------------------------------
# Individual checks (private)
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _check_ai_modifier(modifier: Any) -> None:
    if modifier is None:
        return
    if not _is_number(modifier) or not 0 <= modifier <= 1:
        raise ConfigurationError(
            "ai_modifier", f"AI modifier must be within [0, 1], got {modifier!r}"
        )


def _check_point_values(field: str, values) -> None:
    for activity_type, points in values.items():
        if not _is_number(points) or points < 0:
            raise ConfigurationError(
                field,
                f"{activity_type.value} points must be a finite non-negative "
                f"number, got {points!r}",
            )


def _check_version(version: Any) -> None:
    if not isinstance(version, str) or not VERSION_PATTERN.match(version):
        raise ConfigurationError(
            "version", f"Version {version!r} must look like MAJOR.MINOR.PATCH"
        )


def _check_complete(config: "PointsConfig") -> None:
    from .domain_types import ActivityType

    missing = sorted(t.value for t in ActivityType if t not in config.base_points)
    if missing:
        raise ConfigurationError(
            "base_points", f"Missing base points for: {', '.join(missing)}"
        )


def _check_within_bounds(config: "PointsConfig", bounds: "PointsBounds") -> None:
    for activity_type, points in config.base_points.items():
        if not bounds.min_points <= points <= bounds.max_points:
            raise ConfigurationError(
                "base_points",
                f"{activity_type.value} points {points} outside "
                f"[{bounds.min_points}, {bounds.max_points}]",
            )
