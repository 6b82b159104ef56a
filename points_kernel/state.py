"""
Points Kernel - Ledger State Construction
"""

from .constants import DEFAULT_LEVEL_THRESHOLDS, DEFAULT_POINTS_BOUNDS, DEFAULT_POINTS_CONFIG
from .domain_types import LedgerState, LevelThresholds, PointsBounds, PointsConfig


def create_initial_state(
    config: PointsConfig | None = None,
    thresholds: LevelThresholds | None = None,
    bounds: PointsBounds | None = None,
) -> LedgerState:
    """Create a fresh, empty LedgerState with the given (or system) settings."""
    return LedgerState(
        config=config or DEFAULT_POINTS_CONFIG,
        thresholds=thresholds or DEFAULT_LEVEL_THRESHOLDS,
        bounds=bounds or DEFAULT_POINTS_BOUNDS,
        members={},
        history=[],
        event_history=[],
    )
