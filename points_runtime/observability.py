"""
Observability - In-process metrics collection.

No external dependencies. Uses compute_diagnostics + timing.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from points_kernel.hashing import canonical_hash

if TYPE_CHECKING:
    from .session import LedgerSession


@dataclass(frozen=True)
class SessionMetrics:
    """Snapshot of observable session metrics."""

    replay_latency_ms: float
    event_count: int
    member_count: int
    total_points_awarded: int
    ai_generated_share: int       # fixed-point (x SCALE)
    last_state_hash: str
    warnings: list


def collect_metrics(session: "LedgerSession") -> SessionMetrics:
    """
    Collect metrics from a live session.

    Performs a full replay to measure latency.
    """
    start = time.perf_counter()
    session.replay_full()
    elapsed_ms = (time.perf_counter() - start) * 1000.0

    diagnostics = session.get_diagnostics()

    return SessionMetrics(
        replay_latency_ms=round(elapsed_ms, 2),
        event_count=session.current_sequence,
        member_count=diagnostics["member_count"],
        total_points_awarded=diagnostics["total_points_awarded"],
        ai_generated_share=diagnostics["ai_generated_share"],
        last_state_hash=canonical_hash(session.engine.state),
        warnings=diagnostics["warnings"],
    )
