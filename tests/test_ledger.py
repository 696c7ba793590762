import pytest

import storage
from logic.game import GameRejected, GameStateMachine
from logic.ledger import Ledger, UnknownSession
from models import GameStarted, GameState, PlayerJoined
from tests.utils import fake_call, verifier


def _ledger(**kwargs):
    return Ledger(GameStateMachine(verifier()), **kwargs)


def test_each_operation_takes_one_block():
    ledger = _ledger()
    sid = ledger.create_session()
    assert ledger.height == 0

    ledger.join(sid, "A")
    ledger.join(sid, "B")
    assert ledger.height == 2
    assert ledger.session(sid).commit_deadline == 122

    ledger.commit_grid(sid, "A", fake_call("1", "2"))
    transition = ledger.commit_grid(sid, "B", fake_call("3", "4"))
    assert transition.notifications[-1] == GameStarted("A", "B")
    assert ledger.session(sid).turn_deadline == 24


def test_rejection_changes_nothing():
    ledger = _ledger()
    sid = ledger.create_session()
    ledger.join(sid, "A")
    before = ledger.session(sid)

    with pytest.raises(GameRejected):
        ledger.join(sid, "A")
    assert ledger.height == 1
    assert ledger.session(sid) is before
    assert len(ledger.notifications(sid)) == 1


def test_unknown_session_and_operation():
    ledger = _ledger()
    with pytest.raises(UnknownSession):
        ledger.join("missing", "A")
    with pytest.raises(UnknownSession):
        ledger.session("missing")
    with pytest.raises(ValueError):
        ledger.submit(ledger.create_session(), "resign", "A")


def test_notifications_are_ordered_and_filtered():
    ledger = _ledger()
    first = ledger.create_session()
    second = ledger.create_session()
    ledger.join(first, "A")
    ledger.join(second, "C")
    ledger.join(first, "B")

    notices = ledger.notifications(first)
    assert [n.event for n in notices] == [PlayerJoined("A"), PlayerJoined("B")]
    assert [n.block for n in notices] == [1, 3]
    assert [n.seq for n in ledger.notifications()] == [1, 2, 3]
    assert [n.event for n in ledger.notifications(since=2)] == [PlayerJoined("B")]


def test_mining_moves_deadlines_into_the_past():
    ledger = _ledger()
    sid = ledger.create_session()
    ledger.join(sid, "A")
    ledger.join(sid, "B")
    with pytest.raises(GameRejected):
        ledger.timeout(sid)

    assert ledger.mine(120) == 122
    ended = ledger.timeout(sid)
    assert ended.session.state == GameState.GAME_OVER
    assert ended.session.winner is None

    with pytest.raises(ValueError):
        ledger.mine(-1)


def test_persisted_sessions_survive_restart(tmp_path, monkeypatch):
    monkeypatch.setattr(storage, "USE_SUPABASE", False)
    monkeypatch.setattr(storage, "DATA_FILE", tmp_path / "sessions.json")

    ledger = _ledger(persist=True)
    sid = ledger.create_session()
    ledger.join(sid, "A")
    ledger.join(sid, "B")

    restarted = _ledger(persist=True)
    session = restarted.session(sid)
    assert session.players == ["A", "B"]
    assert session.state == GameState.COMMIT_PHASE
    assert session.version == 2


def test_restarted_ledger_resumes_from_the_stored_height(tmp_path, monkeypatch):
    monkeypatch.setattr(storage, "USE_SUPABASE", False)
    monkeypatch.setattr(storage, "DATA_FILE", tmp_path / "sessions.json")

    ledger = Ledger(GameStateMachine(verifier(), commit_window=5), persist=True)
    sid = ledger.create_session()
    ledger.mine(1000)
    ledger.join(sid, "A")
    ledger.join(sid, "B")
    assert ledger.session(sid).commit_deadline == 1007
    ledger.mine(10)

    restarted = Ledger(GameStateMachine(verifier(), commit_window=5), persist=True)
    assert restarted.height == 1012
    ended = restarted.timeout(sid)
    assert ended.session.state == GameState.GAME_OVER
    assert restarted.height == 1013
    assert storage.load_height() == 1013


def test_in_memory_ledger_starts_at_zero(tmp_path, monkeypatch):
    monkeypatch.setattr(storage, "USE_SUPABASE", False)
    monkeypatch.setattr(storage, "DATA_FILE", tmp_path / "sessions.json")
    storage.save_height(50)
    assert _ledger().height == 0
    assert _ledger(persist=True).height == 50
