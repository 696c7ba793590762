from __future__ import annotations
import random
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from models import BOARD_SIZE, HORIZONTAL, VERTICAL, Board, Fleet, ShipPlacement

# name, length, cell value; input order of the commitment circuit
FLEET_SPEC: List[Tuple[str, int, int]] = [
    ("carrier", 5, 5),
    ("battleship", 4, 4),
    ("cruiser", 3, 3),
    ("submarine", 3, 2),
    ("destroyer", 2, 1),
]

SHIP_NAMES = [name for name, _, _ in FLEET_SPEC]
SHIP_LENGTHS: Dict[str, int] = {name: length for name, length, _ in FLEET_SPEC}
SHIP_VALUES: Dict[str, int] = {name: value for name, _, value in FLEET_SPEC}
FLEET_CELLS = sum(SHIP_LENGTHS.values())


def ship_cells(
    origin: Tuple[int, int], length: int, orientation: str
) -> List[Tuple[int, int]]:
    """Cells of a ship starting at ``origin`` in canonical (ascending) order."""
    x, y = origin
    dx, dy = (1, 0) if orientation == HORIZONTAL else (0, 1)
    return [(x + i * dx, y + i * dy) for i in range(length)]


def place(name: str, origin: Tuple[int, int], orientation: str) -> ShipPlacement:
    return ShipPlacement(name=name, cells=ship_cells(origin, SHIP_LENGTHS[name], orientation))


def can_place(grid: List[List[int]], cells: Sequence[Tuple[int, int]]) -> bool:
    for x, y in cells:
        if not (0 <= x < BOARD_SIZE and 0 <= y < BOARD_SIZE):
            return False
        if grid[x][y] != 0:
            return False
    return True


def build_board(fleet: Fleet) -> Board:
    """Write every ship of ``fleet`` onto a fresh board.

    Later ships overwrite earlier ones on overlap; callers that need a valid
    layout must run the commitment circuit, which rejects overlaps.
    """
    board = Board()
    for ship in fleet.ships:
        value = SHIP_VALUES[ship.name]
        for x, y in ship.cells:
            board.grid[x][y] = value
    return board


def fleet_from_mapping(data: Mapping[str, Sequence[Sequence[int]]]) -> Fleet:
    """Build a fleet from ``{"carrier": [[x, y], ...], ...}`` style input."""
    ships = []
    for name in SHIP_NAMES:
        cells = data.get(name) or []
        ships.append(
            ShipPlacement(name=name, cells=[(int(c[0]), int(c[1])) for c in cells])
        )
    return Fleet(ships=ships)


def fleet_to_mapping(fleet: Fleet) -> Dict[str, List[List[int]]]:
    return {
        ship.name: [[x, y] for x, y in ship.cells]
        for ship in fleet.ships
    }


def random_fleet(rng: Optional[random.Random] = None) -> Fleet:
    rng = rng or random.Random()
    grid = [[0] * BOARD_SIZE for _ in range(BOARD_SIZE)]
    ships: List[ShipPlacement] = []
    for name, length, value in FLEET_SPEC:
        placed = False
        while not placed:
            orientation = rng.choice([HORIZONTAL, VERTICAL])
            if orientation == HORIZONTAL:
                x = rng.randint(0, BOARD_SIZE - length)
                y = rng.randint(0, BOARD_SIZE - 1)
            else:
                x = rng.randint(0, BOARD_SIZE - 1)
                y = rng.randint(0, BOARD_SIZE - length)
            cells = ship_cells((x, y), length, orientation)
            if can_place(grid, cells):
                for cx, cy in cells:
                    grid[cx][cy] = value
                ships.append(ShipPlacement(name=name, cells=cells))
                placed = True
    return Fleet(ships=ships)
