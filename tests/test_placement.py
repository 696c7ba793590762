import random

from logic.placement import (
    FLEET_CELLS,
    SHIP_NAMES,
    build_board,
    fleet_from_mapping,
    fleet_to_mapping,
    random_fleet,
)
from tests.utils import fleet_inputs
from zk.circuits import CommitmentCircuit


def test_fleet_cells_total():
    assert FLEET_CELLS == 17


def test_sample_board_values(fleet):
    board = build_board(fleet)
    assert board.value_at((0, 0)) == 1
    assert board.value_at((4, 5)) == 5
    assert board.value_at((6, 3)) == 4
    assert board.value_at((2, 7)) == 3
    assert board.value_at((9, 9)) == 2
    assert not board.occupied((2, 3))
    assert len(board.occupied_cells()) == FLEET_CELLS


def test_mapping_round_trip(fleet):
    rebuilt = fleet_from_mapping(fleet_to_mapping(fleet))
    assert [s.name for s in rebuilt.ships] == SHIP_NAMES
    assert build_board(rebuilt) == build_board(fleet)


def test_ships_are_straight(fleet):
    assert all(ship.is_straight for ship in fleet.ships)
    submarine = next(ship for ship in fleet.ships if ship.name == "submarine")
    assert submarine.orientation == "vertical"


def test_random_fleet_is_a_valid_layout():
    rng = random.Random(7)
    for _ in range(5):
        fleet = random_fleet(rng)
        assert len(build_board(fleet).occupied_cells()) == FLEET_CELLS
        CommitmentCircuit().calculate_witness(fleet_inputs(fleet))


def test_random_fleet_vertical_respects_length(monkeypatch):
    rng = random.Random()
    monkeypatch.setattr(rng, "choice", lambda seq: "vertical")
    calls = []

    original = rng.randint

    def recording_randint(a, b):
        calls.append((a, b))
        return original(a, b)

    monkeypatch.setattr(rng, "randint", recording_randint)
    fleet = random_fleet(rng)
    # carrier: x anywhere, y leaves room for five cells
    assert calls[:2] == [(0, 9), (0, 5)]
    for ship in fleet.ships:
        assert all(0 <= x < 10 and 0 <= y < 10 for x, y in ship.cells)
