import json
from types import SimpleNamespace

import httpx
import pytest

import storage
from models import AttackRecord, GameSession, GameState, Phase, ShotRecord


@pytest.fixture(autouse=True)
def data_file(tmp_path, monkeypatch):
    path = tmp_path / "sessions.json"
    monkeypatch.setattr(storage, "USE_SUPABASE", False)
    monkeypatch.setattr(storage, "DATA_FILE", path)
    return path


def _session(**kwargs):
    session = GameSession.new()
    session.players = ["A", "B"]
    session.scores = {"A": 3, "B": 1}
    for key, value in kwargs.items():
        setattr(session, key, value)
    return session


def test_round_trip_keeps_every_field():
    session = _session(
        version=7,
        state=GameState.PLAYING,
        phase=Phase.PROOF,
        commitments={"A": (2**250, 5), "B": (7, 9)},
        attacker="B",
        defender="A",
        commit_deadline=122,
        turn_deadline=40,
        pending_attack=AttackRecord("B", 4, 5, 20),
        shots=[ShotRecord("A", 0, 0, 1), ShotRecord("B", 1, 1, 1, timed_out=True)],
    )
    assert storage.save_session(session) is None

    loaded = storage.get_session(session.session_id)
    assert loaded == session


def test_commitments_stored_as_decimal_strings(data_file):
    session = _session(commitments={"A": (2**250, 5)})
    storage.save_session(session)
    raw = json.loads(data_file.read_text(encoding="utf-8"))
    assert raw[session.session_id]["commitments"]["A"] == [str(2**250), "5"]
    assert "updated_at" in raw[session.session_id]


def test_older_version_is_refused():
    session = _session(version=3)
    storage.save_session(session)
    stale = _session(version=2)
    stale.session_id = session.session_id

    error = storage.save_session(stale)
    assert error and "refusing" in error
    assert storage.get_session(session.session_id).version == 3


def test_missing_session_reads_as_none():
    assert storage.get_session("nope") is None


def test_corrupted_file_reads_as_empty(data_file):
    data_file.write_text("{not json", encoding="utf-8")
    assert storage.get_session("anything") is None
    assert storage.load_height() == 0


def test_height_record_only_moves_forward(data_file):
    assert storage.load_height() == 0
    assert storage.save_height(12) is None
    assert storage.save_height(30) is None
    assert storage.load_height() == 30

    error = storage.save_height(29)
    assert error and "refusing" in error
    assert storage.load_height() == 30
    assert storage.get_session(storage.LEDGER_ID) is None


def test_height_record_sits_beside_sessions(data_file):
    session = _session()
    storage.save_session(session)
    storage.save_height(8)
    raw = json.loads(data_file.read_text(encoding="utf-8"))
    assert raw[storage.LEDGER_ID]["height"] == 8
    assert storage.get_session(session.session_id) == session


@pytest.fixture
def supabase(monkeypatch):
    rows = {}
    posted = []

    def handler(request):
        if request.method == "GET":
            key = request.url.params["id"][len("eq."):]
            row = rows.get(key)
            return httpx.Response(200, json=[{"id": key, "payload": row}] if row else [])
        body = json.loads(request.content)
        posted.extend(body)
        for item in body:
            rows[item["id"]] = item["payload"]
        return httpx.Response(201)

    real_client = httpx.Client
    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(storage, "USE_SUPABASE", True)
    monkeypatch.setattr(storage, "SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setattr(storage, "SUPABASE_KEY", "service-key")
    monkeypatch.setattr(
        storage.httpx, "Client", lambda **kwargs: real_client(transport=transport, **kwargs)
    )
    return SimpleNamespace(rows=rows, posted=posted)


def test_supabase_round_trip(supabase):
    session = _session(version=4)
    assert storage.save_session(session) is None
    assert supabase.posted[0]["version"] == 4
    assert storage.get_session(session.session_id) == session


def test_supabase_refuses_older_version(supabase):
    session = _session(version=5)
    storage.save_session(session)
    stale = _session(version=4)
    stale.session_id = session.session_id

    error = storage.save_session(stale)
    assert error and "refusing" in error
    assert len(supabase.posted) == 1
    assert storage.get_session(session.session_id).version == 5


def test_supabase_height_record(supabase):
    assert storage.load_height() == 0
    storage.save_height(40)
    assert storage.save_height(39) is not None
    assert storage.load_height() == 40
    assert [row["id"] for row in supabase.posted] == [storage.LEDGER_ID]
