"""
Points API -- HTTP Test

Every test runs against a fresh temporary sqlite event store.

Run:  py -3 -m backend.test_api
"""

from __future__ import annotations

import os
import sys
import tempfile
from contextlib import contextmanager

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from backend import main as api
from points_runtime.event_repository import EventRepository


_pass = 0
_fail = 0


def _test(name, fn):
    global _pass, _fail
    try:
        fn()
        print(f"  [PASS] {name}")
        _pass += 1
    except Exception as exc:
        print(f"  [FAIL] {name}: {exc}")
        _fail += 1


@contextmanager
def _client():
    db_fd, db_path = tempfile.mkstemp(suffix=".db", prefix="points_api_test_")
    os.close(db_fd)
    api._REPO = EventRepository(db_path)
    try:
        yield TestClient(api.app)
    finally:
        api._REPO.close()
        api._REPO = None
        for suffix in ("", "-wal", "-shm"):
            try:
                os.unlink(db_path + suffix)
            except OSError:
                pass


def _award(client, member, activity_type, activity_id, ai=False, ledger="acme", **extra):
    body = {
        "team_member_id": member,
        "activity_id": activity_id,
        "activity_type": activity_type,
        "is_ai_generated": ai,
        "timestamp": "2026-01-01T00:00:00Z",
    }
    body.update(extra)
    return client.post(f"/ledgers/{ledger}/activities", json=body)


# ── Stateless endpoints ──────────────────────────────────────

def test_health_and_default_config():
    with _client() as client:
        assert client.get("/health").json()["status"] == "ok"
        data = client.get("/config/default").json()
        assert data["config"]["base_points"]["PULL_REQUEST"] == 25
        assert data["bounds"] == {"min_points": 5, "max_points": 100}
        assert data["thresholds"]["1"] == 0
        assert data["achievements"]["CODE_MASTER"] == 5000


def test_calculate_with_ai_modifier():
    with _client() as client:
        resp = client.post("/points/calculate", json={
            "activity_type": "PULL_REQUEST", "is_ai_generated": True,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["final_points"] == 19
        assert data["intermediate_points"] == 18.75
        kinds = [s["kind"] for s in data["calculation_steps"]]
        assert kinds[0] == "base_points" and kinds[-1] == "rounded"
        assert "ai_modifier" in kinds


def test_calculate_with_org_override():
    with _client() as client:
        resp = client.post("/points/calculate", json={
            "activity_type": "BUG_FIX",
            "config": {"base_points": {}, "org_overrides": {"BUG_FIX": 500}},
        })
        data = resp.json()
        assert data["final_points"] == 100
        assert data["calculation_steps"][0]["source"] == "org_override"
        assert any(s["bound"] == "max" for s in data["calculation_steps"])


def test_calculate_errors():
    with _client() as client:
        resp = client.post("/points/calculate", json={"activity_type": "DEPLOY"})
        assert resp.status_code == 422
        assert "CONFIG:activity_type" in resp.json()["detail"]

        resp = client.post("/points/calculate", json={
            "activity_type": "BUG_FIX", "config": {"ai_modifier": 3.0},
        })
        assert resp.status_code == 422


def test_calculate_default_config_reports_system_tier():
    with _client() as client:
        data = client.post("/points/calculate", json={"activity_type": "BUG_FIX"}).json()
        assert data["final_points"] == 20
        assert data["calculation_steps"][0]["source"] == "system_default"


def test_calculate_rejects_malformed_config():
    with _client() as client:
        for config in ({"base_points": [1, 2]}, {"org_overrides": "abc"}):
            resp = client.post("/points/calculate", json={
                "activity_type": "BUG_FIX", "config": config,
            })
            assert resp.status_code == 422


def test_validate_config():
    with _client() as client:
        ok = client.post("/config/validate", json={"base_points": {"BUG_FIX": 20}}).json()
        assert ok["valid"] is True

        bad = client.post("/config/validate", json={"ai_modifier": -0.5}).json()
        assert bad["valid"] is False and bad["field"] == "ai_modifier"

        incomplete = client.post("/config/validate", json={
            "base_points": {"BUG_FIX": 20}, "require_complete": True,
        }).json()
        assert incomplete["valid"] is False


def test_level_progress_endpoint():
    with _client() as client:
        data = client.post("/levels/progress", json={
            "total_points": 150, "thresholds": {"1": 0, "2": 100, "3": 300},
        }).json()
        assert data["current_level"] == 2
        assert data["next_level_threshold"] == 300
        assert data["points_to_next_level"] == 150
        assert data["progress_percentage"] == 25.0

        default = client.post("/levels/progress", json={"total_points": 5200}).json()
        assert default["current_level"] == 5
        assert default["achievements"] == ["BUG_HUNTER", "TEAM_PLAYER", "CODE_MASTER"]
        assert default["display_total"] == "5.2K"


def test_level_progress_errors():
    with _client() as client:
        assert client.post("/levels/progress", json={"total_points": -1}).status_code == 400
        resp = client.post("/levels/progress", json={
            "total_points": 10, "thresholds": {"1": 0, "2": 100, "3": 100},
        })
        assert resp.status_code == 422


# ── Ledger endpoints ─────────────────────────────────────────

def test_record_activity_auto_opens_ledger():
    with _client() as client:
        resp = _award(client, "alice", "PULL_REQUEST", "pr-1")
        assert resp.status_code == 200
        data = resp.json()
        assert data["sequence"] == 2
        assert data["award"]["calculation"]["final_points"] == 25
        assert data["progress"]["total_points"] == 25
        assert data["progress"]["progress_percentage"] == 5.0

        listed = client.get("/ledgers").json()
        assert [l["ledger_id"] for l in listed] == ["acme"]


def test_record_activity_rejections():
    with _client() as client:
        _award(client, "alice", "BUG_FIX", "bug-1")
        assert _award(client, "alice", "BUG_FIX", "bug-1").status_code == 400
        assert _award(client, "alice", "DEPLOY", "dep-1").status_code == 422
        state = client.get("/ledgers/acme/state").json()
        assert state["event_count"] == 2


def test_duplicate_event_uuid():
    with _client() as client:
        first = _award(client, "alice", "BUG_FIX", "bug-1", event_uuid="u-1").json()
        again = _award(client, "alice", "BUG_FIX", "bug-2", event_uuid="u-1").json()
        assert first["award"]["success"] is True
        assert again["award"]["success"] is False
        assert again["progress"]["total_points"] == 20


def test_custom_ledger_and_level_up():
    with _client() as client:
        resp = client.post("/ledgers/team-x", json={
            "thresholds": {"1": 0, "2": 30, "3": 60},
        })
        assert resp.status_code == 200
        assert client.post("/ledgers/team-x", json={}).status_code == 400

        _award(client, "bob", "CODE_REVIEW", "cr-1", ledger="team-x")
        data = _award(client, "bob", "STORY_CLOSURE", "sc-1", ledger="team-x").json()
        assert data["award"]["previous_level"] == 1
        assert data["award"]["new_level"] == 2
        assert data["award"]["leveled_up"] is True

        progress = client.get("/ledgers/team-x/members/bob/progress").json()
        assert progress["total_points"] == 45
        assert progress["next_level_threshold"] == 60


def test_rejected_first_award_leaves_no_ledger():
    with _client() as client:
        assert _award(client, "alice", "DEPLOY", "dep-1", ledger="fresh").status_code == 422
        assert _award(client, "bad id!", "BUG_FIX", "bug-1", ledger="fresh").status_code == 400
        assert client.get("/ledgers").json() == []
        assert client.get("/ledgers/fresh/state").status_code == 404

        resp = client.post("/ledgers/fresh", json={"thresholds": {"1": 0, "2": 30}})
        assert resp.status_code == 200
        data = _award(client, "alice", "STORY_CLOSURE", "sc-1", ledger="fresh").json()
        assert data["award"]["new_level"] == 2
        assert data["sequence"] == 2


def test_open_ledger_rejects_malformed_config():
    with _client() as client:
        resp = client.post("/ledgers/team-z", json={"config": {"base_points": [1, 2]}})
        assert resp.status_code == 422
        assert client.get("/ledgers").json() == []


def test_custom_ledger_rejects_bad_settings():
    with _client() as client:
        resp = client.post("/ledgers/team-y", json={"bounds": {"min_points": 50, "max_points": 10}})
        assert resp.status_code == 422
        assert client.get("/ledgers").json() == []


def test_org_overrides():
    with _client() as client:
        _award(client, "alice", "BUG_FIX", "bug-1")
        resp = client.put("/ledgers/acme/org-overrides", json={
            "org_overrides": {"BUG_FIX": 40},
        })
        assert resp.status_code == 200
        assert resp.json()["config"]["org_overrides"] == {"BUG_FIX": 40}

        data = _award(client, "alice", "BUG_FIX", "bug-2").json()
        assert data["award"]["calculation"]["final_points"] == 40

        bad = client.put("/ledgers/acme/org-overrides", json={"org_overrides": {"BUG_FIX": -5}})
        assert bad.status_code == 422


def test_leaderboard():
    with _client() as client:
        _award(client, "alice", "STORY_CLOSURE", "sc-1")
        _award(client, "bob", "STORY_CLOSURE", "sc-2")
        _award(client, "carol", "CODE_CHECKIN", "ci-1")

        board = client.get("/ledgers/acme/leaderboard").json()
        assert [e["rank"] for e in board] == [1, 1, 3]
        assert [e["team_member_id"] for e in board] == ["alice", "bob", "carol"]

        top = client.get("/ledgers/acme/leaderboard", params={"limit": 1}).json()
        assert len(top) == 1
        assert client.get("/ledgers/acme/leaderboard", params={"limit": -1}).status_code == 422


def test_unknown_ledger_is_404():
    with _client() as client:
        assert client.get("/ledgers/nope/state").status_code == 404
        assert client.get("/ledgers/nope/leaderboard").status_code == 404
        assert client.get("/ledgers/nope/members/alice/progress").status_code == 404
        assert client.put("/ledgers/nope/org-overrides", json={}).status_code == 404


def test_state_endpoint():
    with _client() as client:
        _award(client, "alice", "PULL_REQUEST", "pr-1", ai=True)
        data = client.get("/ledgers/acme/state").json()
        assert data["event_count"] == 2
        assert len(data["state_hash"]) == 64
        assert data["diagnostics"]["member_count"] == 1
        assert data["diagnostics"]["ai_generated_share"] == 10_000


def main() -> None:
    tests = [
        ("API: health + default config", test_health_and_default_config),
        ("API: calculate with AI modifier", test_calculate_with_ai_modifier),
        ("API: calculate with org override", test_calculate_with_org_override),
        ("API: calculate errors", test_calculate_errors),
        ("API: calculate default tier", test_calculate_default_config_reports_system_tier),
        ("API: calculate malformed config", test_calculate_rejects_malformed_config),
        ("API: validate config", test_validate_config),
        ("API: level progress", test_level_progress_endpoint),
        ("API: level progress errors", test_level_progress_errors),
        ("Ledger: auto-open on first award", test_record_activity_auto_opens_ledger),
        ("Ledger: rejected awards", test_record_activity_rejections),
        ("Ledger: duplicate event_uuid", test_duplicate_event_uuid),
        ("Ledger: custom settings + level-up", test_custom_ledger_and_level_up),
        ("Ledger: bad settings rejected", test_custom_ledger_rejects_bad_settings),
        ("Ledger: rejected first award", test_rejected_first_award_leaves_no_ledger),
        ("Ledger: malformed config", test_open_ledger_rejects_malformed_config),
        ("Ledger: org overrides", test_org_overrides),
        ("Ledger: leaderboard", test_leaderboard),
        ("Ledger: unknown -> 404", test_unknown_ledger_is_404),
        ("Ledger: state", test_state_endpoint),
    ]

    print(f"\nRunning {len(tests)} tests...\n")
    for name, fn in tests:
        _test(name, fn)

    print(f"\n{'='*60}")
    print(f"  {_pass} passed, {_fail} failed out of {_pass + _fail}")
    print(f"{'='*60}")

    if _fail > 0:
        sys.exit(1)


if __name__ == "__main__":
    main()
