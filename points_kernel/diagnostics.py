"""
Points Kernel - Diagnostics v1.0

Compute a diagnostic snapshot of the current ledger.
Ratios are int64 fixed-point (real * SCALE).
"""

from __future__ import annotations

from typing import Dict

from .domain_types import SCALE, ActivityType, LedgerState

# Above this AI-generated share (fixed-point) the ledger raises a warning.
AI_SHARE_WARNING: int = 5000  # 0.5 * SCALE


def compute_diagnostics(state: LedgerState) -> dict:
    """Return a diagnostic dict summarising the current ledger health."""
    by_type: Dict[str, int] = {t.value: 0 for t in ActivityType}
    ai_count = 0
    clamped = 0
    total = 0
    for entry in state.history:
        by_type[entry.activity_type.value] += entry.points
        total += entry.points
        if entry.is_ai_generated:
            ai_count += 1
        if entry.clamped:
            clamped += 1

    awards = len(state.history)
    ai_share = (ai_count * SCALE) // awards if awards else 0

    warnings: list[str] = []
    if ai_share > AI_SHARE_WARNING:
        warnings.append(
            f"AI-generated share ({ai_share}) above {AI_SHARE_WARNING} - "
            f"most awards are AI-assisted"
        )
    if clamped:
        warnings.append(
            f"{clamped} award(s) clamped to per-activity bounds "
            f"[{state.bounds.min_points}, {state.bounds.max_points}]"
        )
    idle = sorted(mid for mid, m in state.members.items() if m.total_points == 0)
    if idle:
        warnings.append(f"{len(idle)} member(s) with zero points: {', '.join(idle)}")

    return {
        "member_count": len(state.members),
        "award_count": awards,
        "total_points_awarded": total,
        "points_by_activity_type": by_type,
        "ai_generated_share": ai_share,
        "clamped_award_count": clamped,
        "warnings": warnings,
    }
