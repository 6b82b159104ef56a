# file: backend/main.py
"""
FastAPI Backend - Points Kernel API v1.

Stateless: every ledger request replays from the event store.
No in-memory ledger state between requests.

Endpoints:
  GET  /config/default                         - system config, bounds, thresholds
  POST /config/validate                        - validate a points config
  POST /points/calculate                       - one activity -> points
  POST /levels/progress                        - total -> level progress
  GET  /ledgers                                - list ledgers
  POST /ledgers/{ledger_id}                    - open a ledger with custom settings
  POST /ledgers/{ledger_id}/activities         - award points (auto-opens ledger)
  PUT  /ledgers/{ledger_id}/org-overrides      - replace org override tier
  GET  /ledgers/{ledger_id}/members/{id}/progress
  GET  /ledgers/{ledger_id}/leaderboard
  GET  /ledgers/{ledger_id}/state
"""
from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

env_path = os.path.join(os.path.dirname(__file__), ".env")
if os.path.exists(env_path):
    load_dotenv(env_path)

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from points_kernel.constants import (
    ACHIEVEMENT_REQUIREMENTS,
    DEFAULT_LEVEL_THRESHOLDS,
    DEFAULT_POINTS_CONFIG,
    MAX_POINTS_PER_ACTIVITY,
    MIN_POINTS_PER_ACTIVITY,
)
from points_kernel.domain_types import LevelThresholds, PointsBounds, PointsConfig
from points_kernel.engine import PointsEngine
from points_kernel.events import (
    InitializeLedgerEvent,
    RecordActivityEvent,
    UpdateOrgOverridesEvent,
)
from points_kernel.formatting import format_points
from points_kernel.hashing import canonical_hash
from points_kernel.invariants import (
    ConfigurationError,
    InvalidArgumentError,
    validate_bounds,
    validate_points_config,
)
from points_kernel.levels import calculate_level_progress, unlocked_achievements
from points_kernel.points import calculate_points

from points_runtime.event_repository import EventRepository
from points_runtime.session import LedgerSession

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DB_PATH = os.environ.get("POINTS_DB_PATH", "points.sqlite3")
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _load_system_settings() -> tuple[PointsConfig, PointsBounds]:
    """System config and bounds, with POINTS_* environment overrides."""
    bounds = PointsBounds(
        min_points=int(os.environ.get("POINTS_MIN", MIN_POINTS_PER_ACTIVITY)),
        max_points=int(os.environ.get("POINTS_MAX", MAX_POINTS_PER_ACTIVITY)),
    )
    config = DEFAULT_POINTS_CONFIG
    if os.environ.get("POINTS_AI_MODIFIER"):
        config = PointsConfig(
            base_points=dict(DEFAULT_POINTS_CONFIG.base_points),
            ai_modifier=float(os.environ["POINTS_AI_MODIFIER"]),
            version=DEFAULT_POINTS_CONFIG.version,
        )
    validate_bounds(bounds)
    validate_points_config(config, require_complete=True, bounds=bounds)
    return config, bounds


SYSTEM_CONFIG, SYSTEM_BOUNDS = _load_system_settings()

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Points Kernel API",
    version="1.0.0",
    description="Developer activity points and leveling - event-sourced ledgers",
)
logger.info("Points API loaded (db=%s, bounds=%s)", DB_PATH, SYSTEM_BOUNDS.to_dict())

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        FRONTEND_URL,
        "http://localhost:3000",
        "http://localhost:3001",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Request / Response models
# ---------------------------------------------------------------------------


class PointsConfigRequest(BaseModel):
    base_points: Dict[str, float] = {}
    ai_modifier: Optional[float] = 0.75
    org_overrides: Dict[str, float] = {}
    org_id: str = ""
    version: str = "1.0.0"
    require_complete: bool = False


class CalculatePointsRequest(BaseModel):
    activity_type: str
    is_ai_generated: bool = False
    config: Optional[Dict[str, Any]] = None


class LevelProgressRequest(BaseModel):
    total_points: float
    thresholds: Optional[Dict[str, float]] = None


class OpenLedgerRequest(BaseModel):
    config: Optional[Dict[str, Any]] = None
    thresholds: Optional[Dict[str, float]] = None
    bounds: Optional[Dict[str, int]] = None
    timestamp: str = ""


class RecordActivityRequest(BaseModel):
    team_member_id: str
    activity_id: str
    activity_type: str
    is_ai_generated: bool = False
    timestamp: str = ""
    event_uuid: str = ""


class OrgOverridesRequest(BaseModel):
    org_overrides: Dict[str, float] = {}
    timestamp: str = ""


# ---------------------------------------------------------------------------
# Core helpers
# ---------------------------------------------------------------------------

_REPO: Optional[EventRepository] = None


def _get_repo() -> EventRepository:
    global _REPO
    if _REPO is None:
        _REPO = EventRepository(DB_PATH)
    return _REPO


def _to_http(exc: Exception) -> HTTPException:
    """Kernel error -> HTTP status. Config problems 422, bad input 400."""
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _default_init_payload() -> dict:
    return {"config": SYSTEM_CONFIG.to_dict(), "bounds": SYSTEM_BOUNDS.to_dict()}


def _open_session(ledger_id: str, create: bool = False, timestamp: str = "") -> LedgerSession:
    """Replay a ledger. Unknown ledgers are opened only when create=True."""
    repo = _get_repo()
    if not create and repo.get_last_sequence(ledger_id) == 0:
        raise HTTPException(status_code=404, detail=f"Ledger {ledger_id!r} not found")
    session = LedgerSession(
        ledger_id, PointsEngine(), repo, init_payload=_default_init_payload(),
    )
    session.initialize(timestamp=timestamp)
    return session


def _check_first_award(payload: dict) -> None:
    """Apply an award to a scratch ledger; raises what the real one would."""
    engine = PointsEngine()
    engine.initialize_state()
    engine.apply_event(InitializeLedgerEvent(sequence=1, payload=_default_init_payload()))
    engine.apply_event(RecordActivityEvent(sequence=2, payload=payload))


def _progress_dict(total_points: float, thresholds: LevelThresholds) -> dict:
    progress = calculate_level_progress(total_points, thresholds)
    data = progress.to_dict()
    data["achievements"] = [a.value for a in unlocked_achievements(total_points)]
    data["display_total"] = format_points(total_points)
    return data


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
def health():
    return {"status": "ok", "version": "1.0.0"}


@app.get("/config/default")
def get_default_config():
    return {
        "config": SYSTEM_CONFIG.to_dict(),
        "bounds": SYSTEM_BOUNDS.to_dict(),
        "thresholds": DEFAULT_LEVEL_THRESHOLDS.to_dict(),
        "achievements": {a.value: pts for a, pts in ACHIEVEMENT_REQUIREMENTS.items()},
    }


@app.post("/config/validate")
def validate_config(req: PointsConfigRequest):
    try:
        config = PointsConfig.from_dict(req.model_dump())
        validate_points_config(
            config,
            require_complete=req.require_complete,
            bounds=SYSTEM_BOUNDS if req.require_complete else None,
        )
    except ConfigurationError as exc:
        return {"valid": False, "field": exc.field, "detail": exc.detail}
    return {"valid": True, "config": config.to_dict()}


@app.post("/points/calculate")
def calculate(req: CalculatePointsRequest):
    try:
        config = None
        if req.config is not None:
            config = PointsConfig.from_dict(req.config)
            validate_points_config(config)
        calc = calculate_points(
            req.activity_type, req.is_ai_generated, config,
            default_config=SYSTEM_CONFIG, bounds=SYSTEM_BOUNDS,
        )
    except ConfigurationError as exc:
        logger.error("Points calculation failed: %s", exc)
        raise _to_http(exc)
    return calc.to_dict()


@app.post("/levels/progress")
def level_progress(req: LevelProgressRequest):
    try:
        thresholds = DEFAULT_LEVEL_THRESHOLDS
        if req.thresholds is not None:
            thresholds = LevelThresholds.from_mapping(req.thresholds)
        return _progress_dict(req.total_points, thresholds)
    except (ConfigurationError, InvalidArgumentError) as exc:
        raise _to_http(exc)


@app.get("/ledgers")
def list_ledgers():
    return _get_repo().list_ledgers()


@app.post("/ledgers/{ledger_id}")
def open_ledger(ledger_id: str, req: OpenLedgerRequest):
    """Open a ledger with its own config / thresholds / bounds."""
    repo = _get_repo()
    if repo.get_last_sequence(ledger_id) > 0:
        raise HTTPException(status_code=400, detail=f"Ledger {ledger_id!r} already exists")

    payload = _default_init_payload()
    payload.update({k: v for k, v in req.model_dump().items()
                    if k != "timestamp" and v is not None})
    session = LedgerSession(ledger_id, PointsEngine(), repo, init_payload=payload)
    try:
        session.initialize(timestamp=req.timestamp)
    except (ConfigurationError, ValueError) as exc:
        logger.error("Opening ledger %r failed: %s", ledger_id, exc)
        raise _to_http(exc)
    return {"ledger_id": ledger_id, "state": session.get_state()}


@app.post("/ledgers/{ledger_id}/activities")
def record_activity(ledger_id: str, req: RecordActivityRequest):
    """
    Award points for an activity. Ledger is auto-opened with the system
    settings if this is its first activity. A rejected first award leaves
    no ledger behind.
    """
    payload = {
        "team_member_id": req.team_member_id,
        "activity_id": req.activity_id,
        "activity_type": req.activity_type,
        "is_ai_generated": req.is_ai_generated,
    }
    try:
        if _get_repo().get_last_sequence(ledger_id) == 0:
            _check_first_award(payload)
        session = _open_session(ledger_id, create=True, timestamp=req.timestamp)
        _, result = session.apply_event(
            RecordActivityEvent(timestamp=req.timestamp, payload=payload),
            event_uuid=req.event_uuid,
        )
    except (ConfigurationError, ValueError) as exc:
        logger.error("Award on ledger %r failed: %s", ledger_id, exc)
        raise _to_http(exc)

    total = session.engine.get_member_total(req.team_member_id)
    return {
        "award": result.to_dict(),
        "progress": _progress_dict(total, session.engine.state.thresholds),
        "sequence": session.current_sequence,
    }


@app.put("/ledgers/{ledger_id}/org-overrides")
def update_org_overrides(ledger_id: str, req: OrgOverridesRequest):
    session = _open_session(ledger_id)
    event = UpdateOrgOverridesEvent(
        timestamp=req.timestamp, payload={"org_overrides": req.org_overrides},
    )
    try:
        state, _ = session.apply_event(event)
    except (ConfigurationError, ValueError) as exc:
        raise _to_http(exc)
    return {"config": state["config"]}


@app.get("/ledgers/{ledger_id}/members/{member_id}/progress")
def member_progress(ledger_id: str, member_id: str):
    session = _open_session(ledger_id)
    total = session.engine.get_member_total(member_id)
    return {
        "team_member_id": member_id,
        **_progress_dict(total, session.engine.state.thresholds),
    }


@app.get("/ledgers/{ledger_id}/leaderboard")
def leaderboard(ledger_id: str, limit: Optional[int] = Query(None, ge=0)):
    session = _open_session(ledger_id)
    return [entry.to_dict() for entry in session.get_leaderboard(limit=limit)]


@app.get("/ledgers/{ledger_id}/state")
def get_state(ledger_id: str):
    session = _open_session(ledger_id)
    return {
        "event_count": session.current_sequence,
        "state_hash": canonical_hash(session.engine.state),
        "state": session.get_state(),
        "diagnostics": session.get_diagnostics(),
    }
