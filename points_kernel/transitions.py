"""
Points Kernel - Centralized Ledger Transition Logic v1.0

ALL ledger-mutation logic lives here.
Points arithmetic is delegated to points.py / levels.py.
"""

from __future__ import annotations

from typing import Tuple

from .constants import RECENT_ACTIVITY_LIMIT
from .domain_types import (
    AwardResult,
    LedgerState,
    LevelThresholds,
    MemberTotals,
    PointsBounds,
    PointsConfig,
    PointsHistoryEntry,
    StepKind,
    validate_member_id,
)
from .events import BaseEvent
from .invariants import validate_bounds, validate_points_config
from .levels import calculate_level_progress
from .points import calculate_points


# ---------------------------------------------------------------------------
# Public dispatcher
# ---------------------------------------------------------------------------

def apply_event(
    state: LedgerState, event: BaseEvent,
) -> Tuple[LedgerState, AwardResult]:
    """
    Apply *event* to *state* and return ``(new_state, result)``.
    The original state is never mutated; a deep copy is made first.
    """
    new_state = state.copy()

    etype = event.event_type

    if etype == "initialize_ledger":
        result = _apply_initialize_ledger(new_state, event)
    elif etype == "record_activity":
        result = _apply_record_activity(new_state, event)
    elif etype == "update_org_overrides":
        result = _apply_update_org_overrides(new_state, event)
    else:
        raise ValueError(f"Unknown event type: {etype}")

    new_state.event_history.append(event.to_dict())

    return new_state, result


# ---------------------------------------------------------------------------
# Individual transition handlers (private)
# ---------------------------------------------------------------------------

def _apply_initialize_ledger(state: LedgerState, event: BaseEvent) -> AwardResult:
    p = event.payload

    if p.get("config") is not None:
        config = PointsConfig.from_dict(p["config"])
        validate_points_config(config)
        state.config = config

    if p.get("thresholds") is not None:
        state.thresholds = LevelThresholds.from_mapping(p["thresholds"])

    if p.get("bounds") is not None:
        bounds = PointsBounds(
            min_points=p["bounds"].get("min_points", state.bounds.min_points),
            max_points=p["bounds"].get("max_points", state.bounds.max_points),
        )
        validate_bounds(bounds)
        state.bounds = bounds

    return AwardResult(event_type="initialize_ledger", success=True)


def _apply_record_activity(state: LedgerState, event: BaseEvent) -> AwardResult:
    p = event.payload
    member_id = p["team_member_id"]
    validate_member_id(member_id)

    activity_id = str(p.get("activity_id") or "")
    if not activity_id:
        raise ValueError("record_activity requires a non-empty activity_id")
    if activity_id in state.activity_ids():
        raise ValueError(f"Activity {activity_id!r} already awarded")

    member = state.members.get(member_id) or MemberTotals(team_member_id=member_id)
    previous_level = calculate_level_progress(
        member.total_points, state.thresholds,
    ).current_level

    calculation = calculate_points(
        p["activity_type"],
        bool(p.get("is_ai_generated", False)),
        state.config,
        bounds=state.bounds,
    )

    member.total_points += calculation.final_points
    member.activity_count += 1
    member.last_activity_timestamp = event.timestamp
    member.recent_activities = (
        [calculation.activity_type] + member.recent_activities
    )[:RECENT_ACTIVITY_LIMIT]
    state.members[member_id] = member

    state.history.append(PointsHistoryEntry(
        sequence=event.sequence,
        activity_id=activity_id,
        team_member_id=member_id,
        activity_type=calculation.activity_type,
        is_ai_generated=bool(p.get("is_ai_generated", False)),
        points=calculation.final_points,
        clamped=StepKind.CLAMPED in calculation.step_kinds(),
        timestamp=event.timestamp,
    ))

    new_level = calculate_level_progress(
        member.total_points, state.thresholds,
    ).current_level

    return AwardResult(
        event_type="record_activity",
        success=True,
        team_member_id=member_id,
        activity_id=activity_id,
        calculation=calculation,
        previous_level=previous_level,
        new_level=new_level,
    )


def _apply_update_org_overrides(state: LedgerState, event: BaseEvent) -> AwardResult:
    config = state.config.with_overrides(event.payload.get("org_overrides") or {})
    validate_points_config(config)
    state.config = config
    return AwardResult(event_type="update_org_overrides", success=True)
