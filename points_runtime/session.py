"""
Ledger Session - orchestrates engine + persistence.

Apply-before-persist order:
  1. engine.apply_event(event)     - may raise ConfigurationError / ValueError
  2. event_repo.append_event(...)  - only if step 1 succeeded
  3. update metadata hash          - only if step 2 succeeded

Persisted events are therefore always valid and replayable.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Tuple

from points_kernel.domain_types import AwardResult, LevelProgress, StepKind
from points_kernel.engine import PointsEngine
from points_kernel.events import BaseEvent, InitializeLedgerEvent
from points_kernel.hashing import canonical_hash

from .event_repository import EventRepository

if TYPE_CHECKING:
    from .observability import SessionMetrics

logger = logging.getLogger(__name__)


class DeterminismError(Exception):
    """Raised when replay produces a different hash than the stored one."""

    def __init__(self, ledger_id: str, expected: str, actual: str):
        self.ledger_id = ledger_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Determinism failure for ledger {ledger_id!r}: "
            f"stored hash={expected!r}, replayed hash={actual!r}"
        )


class LedgerSession:
    """
    Binds a PointsEngine to the persistent event store of one ledger.

    initialize() replays from scratch; an empty ledger is opened with an
    initialize_ledger event built from init_payload.
    """

    def __init__(
        self,
        ledger_id: str,
        engine: PointsEngine,
        event_repo: EventRepository,
        init_payload: Optional[dict] = None,
    ) -> None:
        self._ledger_id = ledger_id
        self._engine = engine
        self._event_repo = event_repo
        self._init_payload = dict(init_payload or {})
        self._current_sequence: int = 0

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self, timestamp: str = "") -> None:
        self.replay_full()
        if self._current_sequence == 0:
            self.apply_event(InitializeLedgerEvent(
                timestamp=timestamp, payload=self._init_payload,
            ))
            logger.info("Opened ledger %r", self._ledger_id)

    # ------------------------------------------------------------------
    # Event application (apply-before-persist)
    # ------------------------------------------------------------------

    def apply_event(
        self,
        event: BaseEvent,
        event_uuid: str = "",
    ) -> Tuple[dict, AwardResult]:
        """
        Apply an event to the engine, then persist if successful.

        If the engine raises, nothing is persisted and the event log
        stays clean.
        """
        event_uuid = event_uuid or event.event_uuid
        if event_uuid:
            existing = self._event_repo.load_event_by_uuid(self._ledger_id, event_uuid)
            if existing is not None:
                logger.warning(
                    "Duplicate event_uuid %r on ledger %r (seq %d), not re-applied",
                    event_uuid, self._ledger_id, existing.sequence,
                )
                return self._engine.state.to_dict(), AwardResult(
                    event_type=existing.event_type, success=False,
                )

        seq = self._current_sequence + 1
        event.sequence = seq
        event.event_uuid = event_uuid

        state, result = self._engine.apply_event(event)

        self._event_repo.append_event(self._ledger_id, event, event_uuid=event_uuid)
        self._current_sequence = seq

        self._event_repo.update_metadata(self._ledger_id, seq, canonical_hash(state))

        if result.calculation is not None and StepKind.CLAMPED in result.calculation.step_kinds():
            logger.warning(
                "Activity %r on ledger %r clamped to %d points",
                result.activity_id, self._ledger_id, result.calculation.final_points,
            )
        if result.calculation is not None and result.leveled_up:
            logger.info(
                "Member %r reached level %d on ledger %r",
                result.team_member_id, result.new_level, self._ledger_id,
            )
        return state.to_dict(), result

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    def replay_full(self) -> dict:
        """Reset engine and replay all persisted events from scratch."""
        events = self._event_repo.load_events(self._ledger_id)
        self._current_sequence = self._event_repo.get_last_sequence(self._ledger_id)
        if events:
            self._engine.replay(events)
        else:
            self._engine.initialize_state()
        return self._engine.state.to_dict()

    # ------------------------------------------------------------------
    # Determinism verification
    # ------------------------------------------------------------------

    def verify_determinism(self) -> bool:
        """
        Replay from scratch and compare hash against stored metadata.
        Raises DeterminismError on mismatch.
        """
        metadata = self._event_repo.load_metadata(self._ledger_id)
        if metadata is None:
            return True

        _, stored_hash = metadata
        events = self._event_repo.load_events(self._ledger_id)
        temp_engine = PointsEngine()
        if events:
            temp_engine.replay(events)
        else:
            temp_engine.initialize_state()

        replayed_hash = canonical_hash(temp_engine.state)
        if replayed_hash != stored_hash:
            raise DeterminismError(self._ledger_id, stored_hash, replayed_hash)
        return True

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def get_metrics(self) -> "SessionMetrics":
        from .observability import collect_metrics
        return collect_metrics(self)

    # ------------------------------------------------------------------
    # Delegates
    # ------------------------------------------------------------------

    def get_state(self) -> dict:
        return self._engine.state.to_dict()

    def get_diagnostics(self) -> dict:
        return self._engine.get_diagnostics()

    def get_level_progress(self, team_member_id: str) -> LevelProgress:
        return self._engine.get_level_progress(team_member_id)

    def get_leaderboard(self, limit: Optional[int] = None) -> list:
        return self._engine.get_leaderboard(limit=limit)

    @property
    def engine(self) -> PointsEngine:
        return self._engine

    @property
    def ledger_id(self) -> str:
        return self._ledger_id

    @property
    def current_sequence(self) -> int:
        return self._current_sequence
