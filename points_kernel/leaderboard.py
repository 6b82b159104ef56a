"""
Points Kernel - Leaderboard

Ranking by total points, descending; ties broken by member id for a
stable order and sharing the same rank (1, 2, 2, 4).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .domain_types import ActivityType, LedgerState
from .levels import calculate_level_progress


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    team_member_id: str
    total_points: int
    level: int
    activity_count: int
    last_activity_timestamp: str = ""
    recent_activities: List[ActivityType] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "rank": self.rank,
            "team_member_id": self.team_member_id,
            "total_points": self.total_points,
            "level": self.level,
            "activity_count": self.activity_count,
            "last_activity_timestamp": self.last_activity_timestamp,
            "recent_activities": [t.value for t in self.recent_activities],
        }


def build_leaderboard(state: LedgerState, limit: Optional[int] = None) -> List[LeaderboardEntry]:
    ordered = sorted(
        state.members.values(),
        key=lambda m: (-m.total_points, m.team_member_id),
    )
    if limit is not None:
        if limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")
        ordered = ordered[:limit]

    entries: List[LeaderboardEntry] = []
    rank = 0
    previous_total = None
    for position, member in enumerate(ordered, 1):
        if member.total_points != previous_total:
            rank = position
            previous_total = member.total_points
        entries.append(LeaderboardEntry(
            rank=rank,
            team_member_id=member.team_member_id,
            total_points=member.total_points,
            level=calculate_level_progress(
                member.total_points, state.thresholds,
            ).current_level,
            activity_count=member.activity_count,
            last_activity_timestamp=member.last_activity_timestamp,
            recent_activities=list(member.recent_activities),
        ))
    return entries
