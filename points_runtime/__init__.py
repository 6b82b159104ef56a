"""
Points Runtime - Persistence Layer

Non-invasive sqlite3 persistence around the Points Kernel ledger:
idempotent appends, hash validation, observability.
"""

from .event_repository import EventRepository, reconstruct_event
from .session import LedgerSession, DeterminismError
from .observability import SessionMetrics, collect_metrics

__all__ = [
    "EventRepository",
    "reconstruct_event",
    "LedgerSession",
    "DeterminismError",
    "SessionMetrics",
    "collect_metrics",
]
