from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Dict, Optional

import httpx

from models import AttackRecord, GameSession, GameState, Phase, ShotRecord


logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

USE_SUPABASE = os.getenv("USE_SUPABASE") == "1"
SUPABASE_URL = (os.getenv("SUPABASE_URL") or "").rstrip("/")
SUPABASE_KEY = os.getenv("SUPABASE_KEY") or ""
SUPABASE_TABLE = os.getenv("SUPABASE_TABLE", "battleship_sessions")

DATA_FILE = Path(os.getenv("DATA_FILE_PATH", "sessions.json"))

# reserved row holding the ledger height next to the sessions
LEDGER_ID = "__ledger__"

_lock = Lock()


class StaleSession(RuntimeError):
    """A newer version of the record is already stored."""


def _check_version(key: str, current: Optional[dict], payload: dict) -> None:
    if current and int(current.get("version", 0)) > payload["version"]:
        raise StaleSession(
            f"record {key} is at version {current['version']}, "
            f"refusing to write version {payload['version']}"
        )


def _sb_headers(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    base = {
        "apikey": SUPABASE_KEY,
        "Authorization": f"Bearer {SUPABASE_KEY}",
        "Accept": "application/json",
    }
    if extra:
        base.update(extra)
    return base


def _require_supabase() -> None:
    if not (SUPABASE_URL and SUPABASE_KEY):
        raise RuntimeError("Supabase credentials are not configured")


def _sb_get_one(session_id: str) -> Optional[dict]:
    _require_supabase()
    url = f"{SUPABASE_URL}/rest/v1/{SUPABASE_TABLE}?id=eq.{session_id}&select=id,payload"
    with httpx.Client(timeout=30) as client:
        response = client.get(url, headers=_sb_headers())
        response.raise_for_status()
        rows = response.json()
    if not rows:
        return None
    return rows[0]["payload"]


def _sb_upsert_one(session_id: str, payload: dict) -> None:
    _require_supabase()
    _check_version(session_id, _sb_get_one(session_id), payload)
    url = f"{SUPABASE_URL}/rest/v1/{SUPABASE_TABLE}?on_conflict=id"
    body = [{"id": session_id, "version": payload["version"], "payload": payload}]
    headers = _sb_headers({
        "Content-Type": "application/json",
        "Prefer": "resolution=merge-duplicates",
    })
    with httpx.Client(timeout=30) as client:
        response = client.post(url, headers=headers, json=body)
        response.raise_for_status()


def _file_load_all() -> Dict[str, dict]:
    if DATA_FILE.exists():
        try:
            return json.loads(DATA_FILE.read_text(encoding="utf-8")) or {}
        except json.JSONDecodeError:
            logger.warning("DATA_FILE is corrupted or empty, returning {}")
            return {}
    return {}


def _file_save_all(data: Dict[str, dict]) -> None:
    DATA_FILE.parent.mkdir(parents=True, exist_ok=True)
    tmp = DATA_FILE.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    tmp.replace(DATA_FILE)


def _file_get_one(session_id: str) -> Optional[dict]:
    with _lock:
        data = _file_load_all()
        return data.get(session_id)


def _file_upsert_one(session_id: str, payload: dict) -> None:
    with _lock:
        data = _file_load_all()
        _check_version(session_id, data.get(session_id), payload)
        data[session_id] = payload
        _file_save_all(data)


# ---------------------------------------------------------------------------
# Helpers for serialising sessions
# ---------------------------------------------------------------------------

def _attack_to_payload(attack: Optional[AttackRecord]) -> Optional[dict]:
    if attack is None:
        return None
    return {
        "attacker": attack.attacker,
        "x": attack.x,
        "y": attack.y,
        "block": attack.block,
    }


def _attack_from_payload(data: Optional[dict]) -> Optional[AttackRecord]:
    if not data:
        return None
    return AttackRecord(
        attacker=str(data["attacker"]),
        x=int(data["x"]),
        y=int(data["y"]),
        block=int(data.get("block", 0)),
    )


def _session_to_payload(session: GameSession) -> dict:
    return {
        "schema": SCHEMA_VERSION,
        "session_id": session.session_id,
        "version": session.version,
        "state": int(session.state),
        "phase": int(session.phase),
        "players": list(session.players),
        "commitments": {
            player: [str(c) for c in commitment]
            for player, commitment in session.commitments.items()
        },
        "attacker": session.attacker,
        "defender": session.defender,
        "commit_deadline": session.commit_deadline,
        "turn_deadline": session.turn_deadline,
        "scores": dict(session.scores),
        "pending_attack": _attack_to_payload(session.pending_attack),
        "shots": [
            {
                "attacker": shot.attacker,
                "x": shot.x,
                "y": shot.y,
                "occupied": shot.occupied,
                "timed_out": shot.timed_out,
            }
            for shot in session.shots
        ],
        "winner": session.winner,
        "created_at": session.created_at,
    }


def _payload_to_session(payload: dict) -> GameSession:
    schema = int(payload.get("schema", SCHEMA_VERSION))
    if schema > SCHEMA_VERSION:
        raise ValueError(f"unsupported session schema {schema}")
    session = GameSession(
        session_id=payload["session_id"],
        version=int(payload.get("version", 0)),
        state=GameState(int(payload.get("state", 0))),
        phase=Phase(int(payload.get("phase", 0))),
        created_at=payload.get("created_at") or datetime.now(timezone.utc).isoformat(),
    )
    session.players = [str(p) for p in payload.get("players") or []]
    session.commitments = {
        player: (int(value[0]), int(value[1]))
        for player, value in (payload.get("commitments") or {}).items()
    }
    session.attacker = payload.get("attacker")
    session.defender = payload.get("defender")
    session.commit_deadline = int(payload.get("commit_deadline", 0))
    session.turn_deadline = int(payload.get("turn_deadline", 0))
    session.scores = {k: int(v) for k, v in (payload.get("scores") or {}).items()}
    session.pending_attack = _attack_from_payload(payload.get("pending_attack"))
    session.shots = [
        ShotRecord(
            attacker=str(item["attacker"]),
            x=int(item["x"]),
            y=int(item["y"]),
            occupied=int(item["occupied"]),
            timed_out=bool(item.get("timed_out", False)),
        )
        for item in payload.get("shots") or []
    ]
    session.winner = payload.get("winner")
    return session


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def _read(key: str) -> Optional[dict]:
    if USE_SUPABASE:
        try:
            return _sb_get_one(key)
        except Exception:
            logger.exception("Failed to get %s from Supabase", key)
            return None
    return _file_get_one(key)


def _write(key: str, payload: dict) -> Optional[str]:
    payload["updated_at"] = datetime.now(timezone.utc).isoformat()
    try:
        if USE_SUPABASE:
            _sb_upsert_one(key, payload)
        else:
            _file_upsert_one(key, payload)
    except Exception as exc:
        logger.exception("Failed to persist %s", key)
        return str(exc)
    return None


def get_session(session_id: str) -> Optional[GameSession]:
    if session_id == LEDGER_ID:
        return None
    payload = _read(session_id)
    if not payload:
        return None
    try:
        return _payload_to_session(payload)
    except Exception:
        logger.exception("Failed to deserialize session %s", session_id)
        return None


def save_session(session: GameSession) -> Optional[str]:
    """Persist ``session``; returns an error message instead of raising."""
    return _write(session.session_id, _session_to_payload(session))


def load_height() -> int:
    """Last ledger height written by :func:`save_height`, 0 when none is stored."""
    payload = _read(LEDGER_ID)
    if not payload:
        return 0
    try:
        return int(payload.get("height", 0))
    except (TypeError, ValueError):
        logger.exception("Stored ledger height is unreadable: %r", payload.get("height"))
        return 0


def save_height(height: int) -> Optional[str]:
    """Persist the ledger height; a lower height than the stored one is refused."""
    return _write(LEDGER_ID, {"schema": SCHEMA_VERSION, "version": height, "height": height})
