"""
Points Kernel - Ledger Engine v1.0

Top-level orchestrator. Delegates mutation to transitions.py,
level math to levels.py, reporting to diagnostics.py / leaderboard.py.

Strict sequence enforcement, initialize-first validation.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from .diagnostics import compute_diagnostics
from .domain_types import AwardResult, LedgerState, LevelProgress
from .events import BaseEvent
from .leaderboard import LeaderboardEntry, build_leaderboard
from .levels import calculate_level_progress
from .state import create_initial_state
from .transitions import apply_event as _transition_apply


class PointsEngine:
    """
    Stateful engine that wraps the pure functional transition layer.

    Constraints:
      - First event MUST be initialize_ledger (sequence=1)
      - Sequence numbers strictly increasing, no gaps, no duplicates
      - Hard fail on any violation
    """

    def __init__(self) -> None:
        self._state: LedgerState | None = None
        self._last_sequence: int = 0
        self._initialized: bool = False

    # -- State access -------------------------------------------------------

    @property
    def state(self) -> LedgerState:
        if self._state is None:
            raise RuntimeError("Engine not initialised - call initialize_state() first")
        return self._state

    @property
    def last_sequence(self) -> int:
        return self._last_sequence

    # -- Public API ---------------------------------------------------------

    def initialize_state(self, **kwargs) -> LedgerState:
        """Create a fresh initial state and store it."""
        self._state = create_initial_state(**kwargs)
        self._last_sequence = 0
        self._initialized = False
        return self._state

    def apply_event(self, event: BaseEvent) -> Tuple[LedgerState, AwardResult]:
        """
        Apply a single event:
          1. Validate sequence (strictly increasing, no gaps)
          2. Validate initialize-first rule
          3. Delegate to transitions.apply_event
          4. Store and return
        """
        expected = self._last_sequence + 1
        if event.sequence != expected:
            raise ValueError(
                f"Sequence violation: expected {expected}, "
                f"got {event.sequence}"
            )

        if not self._initialized:
            if event.event_type != "initialize_ledger":
                raise ValueError(
                    "First event MUST be initialize_ledger, "
                    f"got {event.event_type!r}"
                )
        elif event.event_type == "initialize_ledger":
            raise ValueError("initialize_ledger can only be the first event")

        new_state, result = _transition_apply(self.state, event)
        self._initialized = True
        self._state = new_state
        self._last_sequence = event.sequence
        return new_state, result

    def apply_sequence(self, events: List[BaseEvent]) -> LedgerState:
        """Apply an ordered sequence of events. Returns the final state."""
        for event in events:
            self.apply_event(event)
        return self.state

    def replay(self, events: List[BaseEvent]) -> LedgerState:
        """
        Event-sourced reconstruction: reset to a fresh initial state,
        then replay every event from scratch.
        """
        self.initialize_state()
        for event in events:
            self.apply_event(event)
        return self.state

    # -- Queries ------------------------------------------------------------

    def get_member_total(self, team_member_id: str) -> int:
        member = self.state.members.get(team_member_id)
        return member.total_points if member is not None else 0

    def get_level_progress(self, team_member_id: str) -> LevelProgress:
        """Level progress of a member; unknown members sit at 0 points."""
        return calculate_level_progress(
            self.get_member_total(team_member_id), self.state.thresholds,
        )

    def get_leaderboard(self, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        return build_leaderboard(self.state, limit=limit)

    def get_diagnostics(self) -> dict:
        """Return diagnostic snapshot of the current state."""
        return compute_diagnostics(self.state)
