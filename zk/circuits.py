"""Constraint systems for the board commitment and cell position circuits.

A circuit either produces a full satisfying assignment or raises
:class:`WitnessError`; there is no partial result.  A layout that fails here
can never be committed and must not be retried with the same input.

Board encoding, shared by both circuits: cell ``(x, y)`` has index
``10*x + y``.  Cells 0-49 are packed into one word and cells 50-99 into a
second, 3 little-endian bits per cell.  The commitment is the Poseidon sponge
of ``(word_0, word_1, salt)``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from logic.placement import FLEET_SPEC
from models import BOARD_SIZE
from zk.field import R, inv, is_field_element
from zk.poseidon import sponge, sponge_gadget
from zk.r1cs import LC, ConstraintSystem, WitnessError, boolean, one_hot, product

logger = logging.getLogger(__name__)

CELL_BITS = 3
MAX_CELL_VALUE = (1 << CELL_BITS) - 1
BOARD_CELLS = BOARD_SIZE * BOARD_SIZE
CELLS_PER_WORD = BOARD_CELLS // 2


@dataclass
class Witness:
    circuit: str
    public_signals: List[int]
    system: ConstraintSystem


def pack_board(grid: Sequence[Sequence[int]]) -> Tuple[int, int]:
    words = [0, 0]
    for x in range(BOARD_SIZE):
        for y in range(BOARD_SIZE):
            value = grid[x][y]
            if not 0 <= value <= MAX_CELL_VALUE:
                raise ValueError(f"grid[{x}][{y}] does not fit in {CELL_BITS} bits")
            index = x * BOARD_SIZE + y
            words[index // CELLS_PER_WORD] += value << (CELL_BITS * (index % CELLS_PER_WORD))
    return words[0], words[1]


def hash_board(grid: Sequence[Sequence[int]], salt: int) -> Tuple[int, int]:
    """Commitment to ``grid`` and ``salt``; the only hash either circuit uses."""
    return sponge([*pack_board(grid), salt])


def _pack(cells: Mapping[int, LC]) -> List[LC]:
    words: List[List[LC]] = [[], []]
    for index in range(BOARD_CELLS):
        shift = CELL_BITS * (index % CELLS_PER_WORD)
        words[index // CELLS_PER_WORD].append(cells[index] * (1 << shift))
    return [LC.sum(w) for w in words]


def _as_int(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return value


def _is_list(value: Any, length: int) -> bool:
    return (
        isinstance(value, Sequence)
        and not isinstance(value, (str, bytes))
        and len(value) == length
    )


def _read(cs: ConstraintSystem, value: Any, name: str) -> int:
    number = _as_int(value)
    cs.require(is_field_element(number), f"{name} is a field element")
    return number


def _commit(cs: ConstraintSystem, cells: Mapping[int, LC], salt: Any,
            targets: Tuple[LC, LC]) -> None:
    salt_var = cs.private("salt", _read(cs, salt, "salt"))
    digest = sponge_gadget(cs, [*_pack(cells), salt_var])
    for i, (target, value) in enumerate(zip(targets, digest)):
        cs.bind(target, value, f"commitment_{i} is the board hash")


def _ship_cells(cs: ConstraintSystem, ship: str, length: int, points: Any) -> Dict[int, LC]:
    """Occupancy flags of every board cell for one ship.

    The first point is split into one-hot rows ``ox``/``oy`` (which also keeps
    it on the board) and a direction bit; every later point is pinned to
    ``first + i`` along that direction.
    """
    cs.require(_is_list(points, length), f"{ship} has {length} points")
    coords = []
    for i, point in enumerate(points):
        cs.require(_is_list(point, 2), f"{ship}[{i}] is a coordinate pair")
        px = cs.private(f"{ship}[{i}].x", _read(cs, point[0], f"{ship}[{i}][0]"))
        py = cs.private(f"{ship}[{i}].y", _read(cs, point[1], f"{ship}[{i}][1]"))
        coords.append((px, py))

    x0, y0 = coords[0]
    x1, y1 = coords[1]
    vertical = int(cs.value(x1) == cs.value(x0) and cs.value(y1) == (cs.value(y0) + 1) % R)
    d = boolean(cs, f"{ship}.vertical", vertical)
    ox = one_hot(cs, f"{ship}[0][0]", x0, BOARD_SIZE)
    oy = one_hot(cs, f"{ship}[0][1]", y0, BOARD_SIZE)

    for i in range(1, length):
        px, py = coords[i]
        cs.enforce(x0 + (1 - d) * i, 1, px, f"{ship}[{i}] continues the line")
        cs.enforce(y0 + d * i, 1, py, f"{ship}[{i}] continues the line")

    tail = range(BOARD_SIZE - length + 1, BOARD_SIZE)
    cs.enforce(1 - d, LC.sum(ox[k] for k in tail), 0, f"{ship} ends inside the board")
    cs.enforce(d, LC.sum(oy[k] for k in tail), 0, f"{ship} ends inside the board")

    cover_x, cover_y = [], []
    for k in range(BOARD_SIZE):
        run_x = LC.sum(ox[j] for j in range(max(0, k - length + 1), k + 1))
        run_y = LC.sum(oy[j] for j in range(max(0, k - length + 1), k + 1))
        # vertical ships cover one column and a run of rows, horizontal ones the reverse
        cover_x.append(run_x + product(cs, f"{ship}.cover_x[{k}]", d, ox[k] - run_x))
        cover_y.append(oy[k] + product(cs, f"{ship}.cover_y[{k}]", d, run_y - oy[k]))

    cells = {}
    for x in range(BOARD_SIZE):
        for y in range(BOARD_SIZE):
            cells[x * BOARD_SIZE + y] = product(cs, f"{ship} covers ({x}, {y})", cover_x[x], cover_y[y])
    return cells


class CommitmentCircuit:
    """Validates a fleet layout and commits to the resulting board.

    Inputs: ``carrier``, ``battleship``, ``cruiser``, ``submarine`` and
    ``destroyer`` as lists of ``[x, y]`` (lengths 5, 4, 3, 3, 2), plus ``salt``.
    Consecutive points must advance by exactly +1 along one axis, the same
    axis for the whole ship, and no cell may hold two ships.  Public signals:
    ``[commitment_0, commitment_1]``.
    """

    name = "commitment"

    def reference_inputs(self) -> Dict[str, Any]:
        inputs: Dict[str, Any] = {
            ship: [[i, row] for i in range(length)]
            for row, (ship, length, _) in enumerate(FLEET_SPEC)
        }
        inputs["salt"] = 0
        return inputs

    def synthesize(self, inputs: Mapping[str, Any], check: bool = True) -> ConstraintSystem:
        cs = ConstraintSystem(self.name)
        targets = (cs.public("commitment_0"), cs.public("commitment_1"))

        covers: Dict[int, List[Tuple[int, LC]]] = {i: [] for i in range(BOARD_CELLS)}
        for ship, length, value in FLEET_SPEC:
            for index, flag in _ship_cells(cs, ship, length, inputs.get(ship)).items():
                covers[index].append((value, flag))

        board = {}
        for index, flags in covers.items():
            count = LC.sum(flag for _, flag in flags)
            x, y = divmod(index, BOARD_SIZE)
            cs.enforce(count, count - 1, 0, f"no two ships share ({x}, {y})")
            board[index] = LC.sum(flag * value for value, flag in flags)

        _commit(cs, board, inputs.get("salt"), targets)
        if check:
            cs.check()
        return cs

    def calculate_witness(self, inputs: Mapping[str, Any]) -> Witness:
        cs = self.synthesize(inputs)
        logger.debug(
            "commitment witness built | constraints=%d variables=%d",
            len(cs.constraints), cs.n_vars,
        )
        return Witness(self.name, cs.public_signals(), cs)


class PositionProofCircuit:
    """Proves whether one cell is occupied and re-derives the board commitment.

    Inputs: ``grid`` (10x10 cell values, ``grid[x][y]``), ``salt`` and
    ``p = [x, y]``.  Public signals: ``[occupied, commitment_0, commitment_1,
    x, y]``.  Only occupancy is exposed, never the ship class.
    """

    name = "position"

    def reference_inputs(self) -> Dict[str, Any]:
        grid = [[0] * BOARD_SIZE for _ in range(BOARD_SIZE)]
        return {"grid": grid, "salt": 0, "p": [0, 0]}

    def _grid(self, cs: ConstraintSystem, grid: Any) -> Dict[int, LC]:
        cs.require(_is_list(grid, BOARD_SIZE), f"grid has {BOARD_SIZE} columns")
        cells = {}
        for x in range(BOARD_SIZE):
            column = grid[x]
            cs.require(_is_list(column, BOARD_SIZE), f"grid[{x}] has {BOARD_SIZE} cells")
            for y in range(BOARD_SIZE):
                value = _read(cs, column[y], f"grid[{x}][{y}]")
                cs.require(value <= MAX_CELL_VALUE, f"grid[{x}][{y}] fits in {CELL_BITS} bits")
                bits = [
                    boolean(cs, f"grid[{x}][{y}].bit{k}", (value >> k) & 1)
                    for k in range(CELL_BITS)
                ]
                cells[x * BOARD_SIZE + y] = LC.sum(bit * (1 << k) for k, bit in enumerate(bits))
        return cells

    def synthesize(self, inputs: Mapping[str, Any], check: bool = True) -> ConstraintSystem:
        cs = ConstraintSystem(self.name)
        occupied = cs.public("occupied")
        targets = (cs.public("commitment_0"), cs.public("commitment_1"))
        p = inputs.get("p")
        cs.require(_is_list(p, 2), "p is a coordinate pair")
        x = cs.public("x", _read(cs, p[0], "p[0]"))
        y = cs.public("y", _read(cs, p[1], "p[1]"))

        cells = self._grid(cs, inputs.get("grid"))
        _commit(cs, cells, inputs.get("salt"), targets)

        ex = one_hot(cs, "p[0]", x, BOARD_SIZE)
        ey = one_hot(cs, "p[1]", y, BOARD_SIZE)
        picked = []
        for i in range(BOARD_SIZE):
            column = LC.sum(
                product(cs, f"select ({i}, {j})", ey[j], cells[i * BOARD_SIZE + j])
                for j in range(BOARD_SIZE)
            )
            picked.append(product(cs, f"select column {i}", ex[i], column))
        cell = LC.sum(picked)

        value = cs.value(cell)
        cs.assign(occupied, int(value != 0))
        inverse = cs.private("cell^-1", inv(value) if value else 0)
        cs.enforce(cell, inverse, occupied, "occupied is set for a non-empty cell")
        cs.enforce(cell, 1 - occupied, 0, "occupied is clear for an empty cell")
        if check:
            cs.check()
        return cs

    def calculate_witness(self, inputs: Mapping[str, Any]) -> Witness:
        cs = self.synthesize(inputs)
        return Witness(self.name, cs.public_signals(), cs)


CIRCUITS = {
    CommitmentCircuit.name: CommitmentCircuit(),
    PositionProofCircuit.name: PositionProofCircuit(),
}


def commitment_of(grid: Sequence[Sequence[int]], salt: int) -> Tuple[int, int]:
    if not is_field_element(salt):
        raise ValueError("salt must be a field element")
    return hash_board(grid, salt)


__all__ = [
    "CIRCUITS",
    "CommitmentCircuit",
    "PositionProofCircuit",
    "Witness",
    "WitnessError",
    "commitment_of",
    "hash_board",
    "pack_board",
]
