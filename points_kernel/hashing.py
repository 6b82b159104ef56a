"""
Points Kernel - Canonical Hashing v1.0

Deterministic canonical serialization + SHA-256 hashing of LedgerState.

Rules:
  - Members sorted by id
  - History in sequence order
  - Config maps sorted by activity type
  - Floats serialized through repr() so the hash never depends on
    JSON float formatting
  - UTF-8 JSON, no whitespace
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, List

from .domain_types import LedgerState


def canonical_serialize(state: LedgerState) -> bytes:
    """Canonical serialization of LedgerState to UTF-8 JSON bytes."""
    obj = _build_canonical_dict(state)
    return json.dumps(obj, ensure_ascii=True, separators=(",", ":"), sort_keys=False).encode("utf-8")


def canonical_hash(state: LedgerState) -> str:
    """SHA-256 of canonical serialization. Lowercase hex string."""
    return hashlib.sha256(canonical_serialize(state)).hexdigest()


def _num(value: Any) -> Any:
    if isinstance(value, float):
        return repr(value)
    return value


def _build_canonical_dict(state: LedgerState) -> Dict[str, Any]:
    """Build the canonical dict in strict field order."""
    config = state.config
    members_list: List[Dict[str, Any]] = []
    for mid in sorted(state.members.keys()):
        m = state.members[mid]
        members_list.append({
            "team_member_id": m.team_member_id,
            "total_points": m.total_points,
            "activity_count": m.activity_count,
            "last_activity_timestamp": m.last_activity_timestamp,
            "recent_activities": [t.value for t in m.recent_activities],
        })

    history_list: List[Dict[str, Any]] = []
    for h in sorted(state.history, key=lambda h: h.sequence):
        history_list.append({
            "sequence": h.sequence,
            "activity_id": h.activity_id,
            "team_member_id": h.team_member_id,
            "activity_type": h.activity_type.value,
            "is_ai_generated": h.is_ai_generated,
            "points": h.points,
            "clamped": h.clamped,
        })

    return {
        "ledger_version": 1,
        "config": {
            "base_points": [
                [t.value, _num(v)] for t, v in sorted(config.base_points.items())
            ],
            "ai_modifier": _num(config.ai_modifier),
            "org_overrides": [
                [t.value, _num(v)] for t, v in sorted(config.org_overrides.items())
            ],
            "org_id": config.org_id,
            "version": config.version,
        },
        "thresholds": [
            [lvl, _num(pts)] for lvl, pts in (state.thresholds or ())
        ],
        "bounds": [_num(state.bounds.min_points), _num(state.bounds.max_points)],
        "members": members_list,
        "history": history_list,
    }
