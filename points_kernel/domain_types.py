"""
Points Kernel - Core Domain Types v1.0

Pure data. No calculation logic.
Every record here is created fresh per call and never shared mutably.

────────────────────────────────────────────────
DOMAIN GLOSSARY
────────────────────────────────────────────────

Activity:
    A tracked developer action (commit, PR, review...) with a type
    and an AI-generated flag.

Base points:
    Unmodified point value of an activity type before AI adjustment.

AI modifier:
    Multiplier applied to base points when the activity is AI-generated.

Level threshold:
    Minimum cumulative point total required to attain a level.

Progress percentage:
    Position within the current level band, expressed 0-100.

────────────────────────────────────────────────
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .invariants import ConfigurationError, validate_level_thresholds


# ── Fixed-Point Scale (ratios in diagnostics) ─────────────────
SCALE: int = 10_000

# ── Member ID Validation ──────────────────────────────────────
MEMBER_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_.@-]+$')


def validate_member_id(member_id: str) -> None:
    """Validate that a team member id is non-empty ASCII. Hard fail."""
    if not isinstance(member_id, str) or not MEMBER_ID_PATTERN.match(member_id):
        raise ValueError(
            f"Invalid team member ID {member_id!r}: must match [a-zA-Z0-9_.@-]+"
        )


# ── Enumerations ──────────────────────────────────────────────

class ActivityType(str, Enum):
    """Point-earning Azure DevOps activity kinds. Closed set."""

    CODE_CHECKIN = "CODE_CHECKIN"
    PULL_REQUEST = "PULL_REQUEST"
    CODE_REVIEW = "CODE_REVIEW"
    BUG_FIX = "BUG_FIX"
    STORY_CLOSURE = "STORY_CLOSURE"


class AchievementType(str, Enum):
    CODE_MASTER = "CODE_MASTER"
    BUG_HUNTER = "BUG_HUNTER"
    TEAM_PLAYER = "TEAM_PLAYER"


class PointsSource(str, Enum):
    """Which resolution tier supplied the base points."""

    ORG_OVERRIDE = "org_override"
    CONFIG = "config"
    SYSTEM_DEFAULT = "system_default"


class StepKind(str, Enum):
    BASE_POINTS = "base_points"
    AI_MODIFIER = "ai_modifier"
    ROUNDED = "rounded"
    CLAMPED = "clamped"


def coerce_activity_type(value: Any) -> ActivityType:
    """Turn a string or enum into an ActivityType. Unknown -> ConfigurationError."""
    if isinstance(value, ActivityType):
        return value
    try:
        return ActivityType(value)
    except ValueError:
        raise ConfigurationError(
            "activity_type",
            f"Unknown activity type {value!r}. "
            f"Known types: {sorted(t.value for t in ActivityType)}",
        ) from None


def _freeze_points_map(
    raw: Optional[Mapping[Any, Any]], field_name: str,
) -> Mapping[ActivityType, Any]:
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError(
            field_name,
            f"Expected a mapping of activity type to points, got {type(raw).__name__}",
        )
    frozen: Dict[ActivityType, Any] = {}
    for key, value in raw.items():
        try:
            frozen[coerce_activity_type(key)] = value
        except ConfigurationError as exc:
            raise ConfigurationError(field_name, exc.detail) from None
    return MappingProxyType(frozen)


# ── Configuration ─────────────────────────────────────────────

@dataclass(frozen=True)
class PointsBounds:
    """Per-activity validation bounds applied to every award."""

    min_points: int = 5
    max_points: int = 100

    def to_dict(self) -> dict:
        return {"min_points": self.min_points, "max_points": self.max_points}


@dataclass(frozen=True)
class PointsConfig:
    """
    Immutable points configuration.

    Mappings are copied into read-only views, so a config never aliases
    the dicts it was built from. ai_modifier=None means "system default".
    """

    base_points: Mapping[ActivityType, float] = field(default_factory=dict)
    ai_modifier: Optional[float] = 0.75
    org_overrides: Mapping[ActivityType, float] = field(default_factory=dict)
    org_id: str = ""
    version: str = "1.0.0"

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "base_points", _freeze_points_map(self.base_points, "base_points"),
        )
        object.__setattr__(
            self, "org_overrides",
            _freeze_points_map(self.org_overrides, "org_overrides"),
        )

    # Immutable: copies share the instance (read-only views don't deep-copy).
    def __copy__(self) -> "PointsConfig":
        return self

    def __deepcopy__(self, memo: dict) -> "PointsConfig":
        return self

    def with_overrides(self, org_overrides: Optional[Mapping[Any, Any]]) -> "PointsConfig":
        """Return a copy whose override tier is replaced wholesale."""
        return PointsConfig(
            base_points=dict(self.base_points),
            ai_modifier=self.ai_modifier,
            org_overrides=org_overrides,
            org_id=self.org_id,
            version=self.version,
        )

    def to_dict(self) -> dict:
        return {
            "base_points": {t.value: v for t, v in sorted(self.base_points.items())},
            "ai_modifier": self.ai_modifier,
            "org_overrides": {t.value: v for t, v in sorted(self.org_overrides.items())},
            "org_id": self.org_id,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PointsConfig":
        if not isinstance(data, Mapping):
            raise ConfigurationError(
                "config", f"Expected a mapping, got {type(data).__name__}"
            )
        return cls(
            base_points=data.get("base_points"),
            ai_modifier=data.get("ai_modifier", 0.75),
            org_overrides=data.get("org_overrides"),
            org_id=data.get("org_id", ""),
            version=data.get("version", "1.0.0"),
        )


# ── Calculation Results ───────────────────────────────────────

@dataclass(frozen=True)
class CalculationStep:
    """One structured entry of the calculation audit trail."""

    kind: StepKind
    value: float
    operand: Optional[float] = None
    source: Optional[PointsSource] = None
    bound: str = ""  # "min" | "max" for CLAMPED

    def describe(self, activity_type: Optional[ActivityType] = None) -> str:
        """Human-readable rendering for display and debugging."""
        if self.kind is StepKind.BASE_POINTS:
            label = activity_type.value if activity_type is not None else "activity"
            return f"Base points for {label}: {self.value} ({self.source.value})"
        if self.kind is StepKind.AI_MODIFIER:
            return f"Applied AI modifier ({self.operand}x): {self.value}"
        if self.kind is StepKind.ROUNDED:
            return f"Rounded {self.operand} to {self.value}"
        return (
            f"Adjusted points to {self.bound} bound ({self.operand}): {self.value}"
        )

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "value": self.value,
            "operand": self.operand,
            "source": self.source.value if self.source is not None else None,
            "bound": self.bound,
        }


@dataclass(frozen=True)
class BaseResolution:
    """
    Tagged result of the base-point lookup.

    Either ``ok`` with value and source, or carrying the
    ConfigurationError that explains why nothing resolved.
    """

    value: Optional[float] = None
    source: Optional[PointsSource] = None
    error: Optional[ConfigurationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Tuple[float, PointsSource]:
        if self.error is not None:
            raise self.error
        return self.value, self.source


@dataclass(frozen=True)
class PointsCalculation:
    """Immutable outcome of a single points calculation."""

    activity_type: ActivityType
    base_points: float
    ai_modifier: float
    intermediate_points: float
    final_points: int
    calculation_steps: Tuple[CalculationStep, ...] = ()

    def step_kinds(self) -> List[StepKind]:
        return [s.kind for s in self.calculation_steps]

    def to_dict(self) -> dict:
        return {
            "activity_type": self.activity_type.value,
            "base_points": self.base_points,
            "ai_modifier": self.ai_modifier,
            "intermediate_points": self.intermediate_points,
            "final_points": self.final_points,
            "calculation_steps": [s.to_dict() for s in self.calculation_steps],
            "calculation_log": [
                s.describe(self.activity_type) for s in self.calculation_steps
            ],
        }


# ── Levels ────────────────────────────────────────────────────

@dataclass(frozen=True)
class LevelThresholds:
    """
    Ordered (level, threshold) table.

    Level 1 starts at 0; levels and thresholds strictly increase.
    Levels need not be contiguous.
    """

    levels: Tuple[Tuple[int, float], ...]

    def __post_init__(self) -> None:
        pairs = tuple((int(lvl), pts) for lvl, pts in self.levels)
        validate_level_thresholds(pairs)
        object.__setattr__(self, "levels", pairs)

    @classmethod
    def from_mapping(cls, mapping: Mapping[Any, Any]) -> "LevelThresholds":
        """
        Build from a level -> threshold mapping.

        Entries are sorted by level here; a table whose thresholds then
        fail to increase strictly is rejected, never silently reordered.
        """
        try:
            pairs = sorted((int(lvl), pts) for lvl, pts in mapping.items())
        except (TypeError, ValueError) as exc:
            raise ConfigurationError("thresholds", f"Invalid level key: {exc}") from None
        return cls(tuple(pairs))

    def to_dict(self) -> Dict[str, float]:
        return {str(lvl): pts for lvl, pts in self.levels}

    def __iter__(self):
        return iter(self.levels)

    def __len__(self) -> int:
        return len(self.levels)


@dataclass(frozen=True)
class LevelProgress:
    current_level: int
    total_points: float
    previous_level_threshold: float
    next_level_threshold: float
    points_to_next_level: float
    progress_percentage: float

    def to_dict(self) -> dict:
        return {
            "current_level": self.current_level,
            "total_points": self.total_points,
            "previous_level_threshold": self.previous_level_threshold,
            "next_level_threshold": self.next_level_threshold,
            "points_to_next_level": self.points_to_next_level,
            "progress_percentage": self.progress_percentage,
        }


# ── Ledger ────────────────────────────────────────────────────

@dataclass
class PointsHistoryEntry:
    """A single awarded activity, as recorded in the ledger."""

    sequence: int
    activity_id: str
    team_member_id: str
    activity_type: ActivityType
    is_ai_generated: bool
    points: int
    clamped: bool = False
    timestamp: str = ""


@dataclass
class MemberTotals:
    team_member_id: str
    total_points: int = 0
    activity_count: int = 0
    last_activity_timestamp: str = ""
    recent_activities: List[ActivityType] = field(default_factory=list)


@dataclass(frozen=True)
class AwardResult:
    """
    Structured, immutable outcome of a ledger transition.
    calculation is None for non-award events.
    """

    event_type: str = ""
    success: bool = True
    team_member_id: str = ""
    activity_id: str = ""
    calculation: Optional[PointsCalculation] = None
    previous_level: int = 0
    new_level: int = 0

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.previous_level

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type,
            "success": self.success,
            "team_member_id": self.team_member_id,
            "activity_id": self.activity_id,
            "calculation": (
                self.calculation.to_dict() if self.calculation is not None else None
            ),
            "previous_level": self.previous_level,
            "new_level": self.new_level,
            "leveled_up": self.leveled_up,
        }


@dataclass
class LedgerState:
    """
    Complete ledger state.

    config / thresholds / bounds are immutable values and are replaced,
    never edited, by transitions.
    """

    config: PointsConfig = field(default_factory=PointsConfig)
    thresholds: Optional[LevelThresholds] = None
    bounds: PointsBounds = field(default_factory=PointsBounds)
    members: Dict[str, MemberTotals] = field(default_factory=dict)
    history: List[PointsHistoryEntry] = field(default_factory=list)
    event_history: List[dict] = field(default_factory=list)

    def copy(self) -> "LedgerState":
        """Deep-copy the entire state for immutable transitions."""
        return copy.deepcopy(self)

    def activity_ids(self) -> set:
        return {h.activity_id for h in self.history}

    def to_dict(self) -> dict:
        return {
            "config": self.config.to_dict(),
            "thresholds": self.thresholds.to_dict() if self.thresholds else {},
            "bounds": self.bounds.to_dict(),
            "members": {
                mid: {
                    "team_member_id": m.team_member_id,
                    "total_points": m.total_points,
                    "activity_count": m.activity_count,
                    "last_activity_timestamp": m.last_activity_timestamp,
                    "recent_activities": [t.value for t in m.recent_activities],
                }
                for mid, m in sorted(self.members.items())
            },
            "history_count": len(self.history),
            "event_count": len(self.event_history),
        }
