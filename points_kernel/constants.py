"""
Points Kernel - Default Values

All magic numbers live here as module-level defaults.
Callers pass these (or their own) explicitly; the calculators never
read module state beyond their default arguments.
"""

from .domain_types import (
    AchievementType,
    ActivityType,
    LevelThresholds,
    PointsBounds,
    PointsConfig,
)

# --- Per-activity bounds ---
MIN_POINTS_PER_ACTIVITY: int = 5
MAX_POINTS_PER_ACTIVITY: int = 100

DEFAULT_POINTS_BOUNDS = PointsBounds(
    min_points=MIN_POINTS_PER_ACTIVITY,
    max_points=MAX_POINTS_PER_ACTIVITY,
)

# --- Points configuration ---
POINTS_CONFIG_VERSION: str = "1.0.0"

# AI-authored work is worth 75% of human-authored work.
DEFAULT_AI_MODIFIER: float = 0.75

DEFAULT_POINTS_CONFIG = PointsConfig(
    base_points={
        ActivityType.CODE_CHECKIN: 10,
        ActivityType.PULL_REQUEST: 25,
        ActivityType.CODE_REVIEW: 15,
        ActivityType.BUG_FIX: 20,
        ActivityType.STORY_CLOSURE: 30,
    },
    ai_modifier=DEFAULT_AI_MODIFIER,
    version=POINTS_CONFIG_VERSION,
)

# --- Levels ---
DEFAULT_LEVEL_THRESHOLDS = LevelThresholds.from_mapping({
    1: 0,
    2: 500,
    3: 1000,
    4: 2000,
    5: 3500,
    10: 10000,
    15: 25000,
})

# --- Achievements ---
ACHIEVEMENT_REQUIREMENTS = {
    AchievementType.CODE_MASTER: 5000,
    AchievementType.BUG_HUNTER: 3000,
    AchievementType.TEAM_PLAYER: 4000,
}

# Most recent activity types kept per member for leaderboard display.
RECENT_ACTIVITY_LIMIT: int = 5
