import pytest

from logic.game import GameRejected, GameStateMachine
from logic.placement import FLEET_CELLS
from models import (
    AttackRecorded,
    CommitmentAccepted,
    GameEnded,
    GameStarted,
    GameState,
    Phase,
    PlayerJoined,
    ProofAccepted,
)
from tests.utils import fake_call, verifier

A_COMMIT = ("100", "200")
B_COMMIT = ("300", "400")


def _machine(**kwargs):
    return GameStateMachine(verifier(**kwargs))


def _joined(machine):
    session = machine.new_session()
    session = machine.join(session, "A", 1).session
    return machine.join(session, "B", 2).session


def _playing(machine):
    session = _joined(machine)
    session = machine.commit_grid(session, "A", fake_call(*A_COMMIT), 3).session
    return machine.commit_grid(session, "B", fake_call(*B_COMMIT), 4).session


def _answer(session, occupied):
    commitment = A_COMMIT if session.defender == "A" else B_COMMIT
    pending = session.pending_attack
    return fake_call(str(occupied), *commitment, str(pending.x), str(pending.y))


def _reject(reason, op, *args):
    with pytest.raises(GameRejected) as exc_info:
        op(*args)
    assert exc_info.value.reason == reason


def test_join_moves_to_commit_phase():
    machine = _machine()
    session = machine.new_session()
    first = machine.join(session, "A", 1)
    assert first.notifications == [PlayerJoined("A")]
    assert first.session.state == GameState.WAITING_PLAYERS

    second = machine.join(first.session, "B", 5)
    assert second.session.state == GameState.COMMIT_PHASE
    assert second.session.commit_deadline == 125
    assert second.session.players == ["A", "B"]
    assert session.players == []


def test_join_rejections():
    machine = _machine()
    session = machine.join(machine.new_session(), "A", 1).session
    _reject("Already joined", machine.join, session, "A", 2)
    session = machine.join(session, "B", 2).session
    _reject("Game already started", machine.join, session, "C", 3)


def test_commit_starts_game_with_first_joiner_attacking():
    machine = _machine()
    session = _joined(machine)
    first = machine.commit_grid(session, "B", fake_call(*B_COMMIT), 3)
    assert first.notifications == [CommitmentAccepted("B")]
    assert first.session.state == GameState.COMMIT_PHASE

    second = machine.commit_grid(first.session, "A", fake_call(*A_COMMIT), 4)
    started = second.session
    assert second.notifications == [CommitmentAccepted("A"), GameStarted("A", "B")]
    assert started.state == GameState.PLAYING
    assert started.phase == Phase.ATTACK
    assert (started.attacker, started.defender) == ("A", "B")
    assert started.turn_deadline == 24
    assert started.commitments == {"A": (100, 200), "B": (300, 400)}


def test_commit_rejections():
    machine = _machine()
    waiting = machine.join(machine.new_session(), "A", 1).session
    _reject("Not commit phase", machine.commit_grid, waiting, "A", fake_call(*A_COMMIT), 2)

    session = _joined(machine)
    call = fake_call(*A_COMMIT)
    _reject("Not a player", machine.commit_grid, session, "C", call, 3)
    _reject("Commit deadline passed", machine.commit_grid, session, "A", call, 123)
    _reject("Malformed proof", machine.commit_grid, session, "A", fake_call("1", "2", "3"), 3)

    committed = machine.commit_grid(session, "A", call, 122).session
    _reject("Already committed", machine.commit_grid, committed, "A", call, 123 - 1)

    _reject(
        "Invalid proof",
        _machine(commitment=False).commit_grid, session, "A", call, 3,
    )


def test_attack_then_hit_swaps_roles():
    machine = _machine()
    session = _playing(machine)

    attacked = machine.attack(session, "A", 4, 5, 10)
    assert attacked.notifications == [AttackRecorded("A", 4, 5)]
    assert attacked.session.phase == Phase.PROOF
    assert attacked.session.turn_deadline == 30
    assert session.phase == Phase.ATTACK

    answered = machine.submit_proof(attacked.session, "B", _answer(attacked.session, 1), 12)
    after = answered.session
    assert answered.notifications == [ProofAccepted("B", 1)]
    assert after.score("A") == 1
    assert (after.attacker, after.defender) == ("B", "A")
    assert after.phase == Phase.ATTACK
    assert after.turn_deadline == 32
    assert after.pending_attack is None
    assert after.version == session.version + 2


def test_miss_keeps_score():
    machine = _machine()
    session = machine.attack(_playing(machine), "A", 2, 3, 5).session
    after = machine.submit_proof(session, "B", _answer(session, 0), 6).session
    assert after.scores == {"A": 0, "B": 0}
    assert after.shots[0].occupied == 0


def test_attack_rejections():
    machine = _machine()
    _reject("Not playing", machine.attack, _joined(machine), "A", 0, 0, 3)

    session = _playing(machine)
    _reject("Not your turn", machine.attack, session, "B", 0, 0, 5)
    _reject("Invalid coordinates", machine.attack, session, "A", 10, 0, 5)
    _reject("Invalid coordinates", machine.attack, session, "A", 0, -1, 5)
    _reject("Turn deadline passed", machine.attack, session, "A", 0, 0, 25)

    pending = machine.attack(session, "A", 0, 0, 5).session
    _reject("Not attack phase", machine.attack, pending, "A", 1, 1, 6)


def test_repeat_attack_rejected():
    machine = _machine()
    session = _playing(machine)
    session = machine.attack(session, "A", 1, 1, 5).session
    session = machine.submit_proof(session, "B", _answer(session, 0), 6).session
    session = machine.attack(session, "B", 1, 1, 7).session
    session = machine.submit_proof(session, "A", _answer(session, 0), 8).session
    _reject("Cell already attacked", machine.attack, session, "A", 1, 1, 9)


def test_proof_rejections():
    machine = _machine()
    session = machine.attack(_playing(machine), "A", 4, 5, 5).session
    good = _answer(session, 1)

    _reject("Not your turn", machine.submit_proof, session, "A", good, 6)
    _reject("Turn deadline passed", machine.submit_proof, session, "B", good, 26)
    _reject("Malformed proof", machine.submit_proof, session, "B", fake_call("1", "300"), 6)
    _reject(
        "Invalid commitment",
        machine.submit_proof, session, "B", fake_call("1", *A_COMMIT, "4", "5"), 6,
    )
    _reject(
        "Invalid attack coordinates",
        machine.submit_proof, session, "B", fake_call("1", *B_COMMIT, "5", "4"), 6,
    )
    _reject("Invalid proof", _machine(position=False).submit_proof, session, "B", good, 6)

    before = machine.attack(_playing(machine), "A", 0, 0, 5).session
    answered = machine.submit_proof(before, "B", _answer(before, 0), 6).session
    _reject("Not proof phase", machine.submit_proof, answered, "A", good, 7)


def test_seventeen_hits_win():
    machine = _machine()
    session = _playing(machine)
    block = 5
    cells = [(x, y) for x in range(10) for y in range(10)]
    for i in range(FLEET_CELLS):
        x, y = cells[i]
        session = machine.attack(session, "A", x, y, block).session
        result = machine.submit_proof(session, "B", _answer(session, 1), block + 1)
        session = result.session
        block += 2
        if i == FLEET_CELLS - 1:
            break
        session = machine.attack(session, "B", x, y, block).session
        session = machine.submit_proof(session, "A", _answer(session, 0), block + 1).session
        block += 2

    assert result.notifications == [ProofAccepted("B", 1), GameEnded("A")]
    assert session.state == GameState.GAME_OVER
    assert session.winner == "A"
    assert session.score("A") == FLEET_CELLS
    _reject("Game over", machine.attack, session, "B", 9, 9, block)
    _reject("Game over", machine.timeout, session, block + 100)


def test_timeout_in_attack_phase_awards_defender():
    machine = _machine()
    session = _playing(machine)
    _reject("Deadline not reached", machine.timeout, session, 24)
    ended = machine.timeout(session, 25)
    assert ended.notifications == [GameEnded("B")]
    assert ended.session.winner == "B"
    assert ended.session.state == GameState.GAME_OVER


def test_timeout_in_proof_phase_counts_as_hit():
    machine = _machine()
    session = machine.attack(_playing(machine), "A", 2, 3, 10).session
    _reject("Deadline not reached", machine.timeout, session, 30)
    result = machine.timeout(session, 31)
    after = result.session
    assert result.notifications == [ProofAccepted("B", 1, timed_out=True)]
    assert after.score("A") == 1
    assert after.shots[-1].timed_out
    assert (after.attacker, after.defender) == ("B", "A")
    assert after.turn_deadline == 51


def test_timeout_in_commit_phase():
    machine = _machine()
    session = _joined(machine)
    _reject("Deadline not reached", machine.timeout, session, 122)
    assert machine.timeout(session, 123).session.winner is None

    committed = machine.commit_grid(session, "B", fake_call(*B_COMMIT), 10).session
    ended = machine.timeout(committed, 123)
    assert ended.notifications == [GameEnded("B")]


def test_timeout_while_waiting():
    machine = _machine()
    _reject("Nothing to time out", machine.timeout, machine.new_session(), 1000)


def test_custom_windows():
    machine = GameStateMachine(verifier(), commit_window=5, turn_window=2)
    session = _joined(machine)
    assert session.commit_deadline == 7
    session = machine.commit_grid(session, "A", fake_call(*A_COMMIT), 3).session
    session = machine.commit_grid(session, "B", fake_call(*B_COMMIT), 4).session
    assert session.turn_deadline == 6
