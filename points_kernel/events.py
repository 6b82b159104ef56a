"""
Points Kernel - Ledger Event Definitions v1.0

Events are **pure data**. They carry intent and payload only.
They contain ZERO transition logic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class BaseEvent:
    """Base for all ledger events. Pure data container."""

    event_type: str = ""
    timestamp: str = ""
    sequence: int = 0
    event_uuid: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        d = {
            "event_type": self.event_type,
            "timestamp": self.timestamp,
            "sequence": self.sequence,
            "payload": dict(self.payload),
        }
        if self.event_uuid:
            d["event_uuid"] = self.event_uuid
        return d


@dataclass
class InitializeLedgerEvent(BaseEvent):
    """Fix the ledger's config, thresholds and bounds. MUST be first."""

    event_type: str = "initialize_ledger"
    # payload keys (all optional): config, thresholds, bounds


@dataclass
class RecordActivityEvent(BaseEvent):
    """Award points for one developer activity."""

    event_type: str = "record_activity"
    # payload keys: team_member_id, activity_id, activity_type, is_ai_generated


@dataclass
class UpdateOrgOverridesEvent(BaseEvent):
    """Replace the organization override tier of the ledger config."""

    event_type: str = "update_org_overrides"
    # payload keys: org_overrides (activity type -> points)


EVENT_CLASS_MAP = {
    "initialize_ledger": InitializeLedgerEvent,
    "record_activity": RecordActivityEvent,
    "update_org_overrides": UpdateOrgOverridesEvent,
}
