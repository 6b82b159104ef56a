"""
Points Kernel v1.0
Deterministic points-and-leveling calculation engine with an
event-sourced, in-memory points ledger.
"""

from .domain_types import (
    ActivityType, AchievementType, PointsSource, StepKind,
    PointsBounds, PointsConfig, CalculationStep, BaseResolution,
    PointsCalculation, LevelThresholds, LevelProgress,
    PointsHistoryEntry, MemberTotals, AwardResult, LedgerState,
    SCALE, coerce_activity_type, validate_member_id,
)
from .invariants import (
    PointsKernelError,
    ConfigurationError,
    InvalidArgumentError,
    validate_points_config,
    validate_level_thresholds,
    validate_bounds,
)
from .constants import (
    MIN_POINTS_PER_ACTIVITY,
    MAX_POINTS_PER_ACTIVITY,
    DEFAULT_POINTS_BOUNDS,
    DEFAULT_POINTS_CONFIG,
    DEFAULT_AI_MODIFIER,
    DEFAULT_LEVEL_THRESHOLDS,
    ACHIEVEMENT_REQUIREMENTS,
    POINTS_CONFIG_VERSION,
)
from .points import calculate_points, resolve_base_points, resolve_ai_modifier, round_half_up
from .levels import (
    calculate_level_progress,
    is_valid_level,
    threshold_for_level,
    unlocked_achievements,
)
from .formatting import format_points
from .events import (
    BaseEvent,
    InitializeLedgerEvent,
    RecordActivityEvent,
    UpdateOrgOverridesEvent,
)
from .engine import PointsEngine
from .leaderboard import LeaderboardEntry, build_leaderboard
from .hashing import canonical_serialize, canonical_hash
from .diagnostics import compute_diagnostics

__all__ = [
    "ActivityType",
    "AchievementType",
    "PointsSource",
    "StepKind",
    "PointsBounds",
    "PointsConfig",
    "CalculationStep",
    "BaseResolution",
    "PointsCalculation",
    "LevelThresholds",
    "LevelProgress",
    "PointsHistoryEntry",
    "MemberTotals",
    "AwardResult",
    "LedgerState",
    "SCALE",
    "coerce_activity_type",
    "validate_member_id",
    "PointsKernelError",
    "ConfigurationError",
    "InvalidArgumentError",
    "validate_points_config",
    "validate_level_thresholds",
    "validate_bounds",
    "MIN_POINTS_PER_ACTIVITY",
    "MAX_POINTS_PER_ACTIVITY",
    "DEFAULT_POINTS_BOUNDS",
    "DEFAULT_POINTS_CONFIG",
    "DEFAULT_AI_MODIFIER",
    "DEFAULT_LEVEL_THRESHOLDS",
    "ACHIEVEMENT_REQUIREMENTS",
    "POINTS_CONFIG_VERSION",
    "calculate_points",
    "resolve_base_points",
    "resolve_ai_modifier",
    "round_half_up",
    "calculate_level_progress",
    "is_valid_level",
    "threshold_for_level",
    "unlocked_achievements",
    "format_points",
    "BaseEvent",
    "InitializeLedgerEvent",
    "RecordActivityEvent",
    "UpdateOrgOverridesEvent",
    "PointsEngine",
    "LeaderboardEntry",
    "build_leaderboard",
    "canonical_serialize",
    "canonical_hash",
    "compute_diagnostics",
]
