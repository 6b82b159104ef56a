"""
Points Kernel - Activity Point Calculator v1.0

(activity type, AI flag, config) -> PointsCalculation.
Pure: no I/O, no shared state, inputs never mutated.

Rounding policy: round half up (18.5 -> 19, 18.75 -> 19).
"""

from __future__ import annotations

import math
from typing import Any, List, Optional

from .constants import DEFAULT_POINTS_BOUNDS, DEFAULT_POINTS_CONFIG
from .domain_types import (
    ActivityType,
    BaseResolution,
    CalculationStep,
    PointsBounds,
    PointsCalculation,
    PointsConfig,
    PointsSource,
    StepKind,
    coerce_activity_type,
)
from .invariants import ConfigurationError


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def resolve_base_points(
    activity_type: ActivityType,
    config: Optional[PointsConfig] = None,
    default_config: PointsConfig = DEFAULT_POINTS_CONFIG,
) -> BaseResolution:
    """
    Three-tier lookup: org override -> config base -> system default.

    A tier that holds the type wins even with a value of 0.
    Never raises; an unresolved type comes back as an error result.
    """
    if config is not None:
        if activity_type in config.org_overrides:
            return BaseResolution(
                value=config.org_overrides[activity_type],
                source=PointsSource.ORG_OVERRIDE,
            )
        if activity_type in config.base_points:
            return BaseResolution(
                value=config.base_points[activity_type],
                source=PointsSource.CONFIG,
            )
    if activity_type in default_config.base_points:
        return BaseResolution(
            value=default_config.base_points[activity_type],
            source=PointsSource.SYSTEM_DEFAULT,
        )
    return BaseResolution(error=ConfigurationError(
        "base_points",
        f"No base points for {activity_type.value} in org overrides, "
        f"config or system default",
    ))


def resolve_ai_modifier(
    is_ai_generated: bool,
    config: Optional[PointsConfig] = None,
    default_config: PointsConfig = DEFAULT_POINTS_CONFIG,
) -> float:
    """Exactly 1 for human-authored work; configured modifier otherwise."""
    if not is_ai_generated:
        return 1
    if config is not None and config.ai_modifier is not None:
        return config.ai_modifier
    if default_config.ai_modifier is None:
        raise ConfigurationError("ai_modifier", "No AI modifier configured")
    return default_config.ai_modifier


def calculate_points(
    activity_type: Any,
    is_ai_generated: bool,
    config: Optional[PointsConfig] = None,
    *,
    default_config: PointsConfig = DEFAULT_POINTS_CONFIG,
    bounds: PointsBounds = DEFAULT_POINTS_BOUNDS,
) -> PointsCalculation:
    """
    Compute the awarded points for one activity.

      1. Resolve base points (override -> config -> system default)
      2. Resolve AI modifier (1 when not AI-generated)
      3. intermediate = base * modifier
      4. final = round_half_up(clamp(intermediate, min, max))

    Without a config, base points and modifier come straight from
    default_config and the audit trail says system_default.

    Raises ConfigurationError for an unknown activity type or one that
    no configuration tier covers. Clamping is recorded, never raised.
    """
    activity_type = coerce_activity_type(activity_type)
    steps: List[CalculationStep] = []

    base_points, source = resolve_base_points(
        activity_type, config, default_config,
    ).unwrap()
    steps.append(CalculationStep(
        kind=StepKind.BASE_POINTS, value=base_points, source=source,
    ))

    ai_modifier = resolve_ai_modifier(bool(is_ai_generated), config, default_config)
    intermediate_points = base_points * ai_modifier
    if is_ai_generated:
        steps.append(CalculationStep(
            kind=StepKind.AI_MODIFIER,
            value=intermediate_points,
            operand=ai_modifier,
        ))

    clamped = clamp(intermediate_points, bounds.min_points, bounds.max_points)
    if clamped != intermediate_points:
        hit_min = intermediate_points < bounds.min_points
        steps.append(CalculationStep(
            kind=StepKind.CLAMPED,
            value=clamped,
            operand=bounds.min_points if hit_min else bounds.max_points,
            bound="min" if hit_min else "max",
        ))

    final_points = round_half_up(clamped)
    if final_points != clamped:
        steps.append(CalculationStep(
            kind=StepKind.ROUNDED, value=final_points, operand=clamped,
        ))

    return PointsCalculation(
        activity_type=activity_type,
        base_points=base_points,
        ai_modifier=ai_modifier,
        intermediate_points=intermediate_points,
        final_points=final_points,
        calculation_steps=tuple(steps),
    )
