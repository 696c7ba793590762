from __future__ import annotations
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Dict, List, Optional, Tuple
import uuid


Coord = Tuple[int, int]  # x, y indexes; boards are stored as grid[x][y]

BOARD_SIZE = 10

HORIZONTAL, VERTICAL = 'horizontal', 'vertical'


class GameState(IntEnum):
    WAITING_PLAYERS = 0
    COMMIT_PHASE = 1
    PLAYING = 2
    GAME_OVER = 3


class Phase(IntEnum):
    ATTACK = 0
    PROOF = 1


@dataclass
class ShipPlacement:
    name: str
    cells: List[Coord]

    @property
    def orientation(self) -> Optional[str]:
        """Direction implied by the first step, ``None`` for single cells."""
        if len(self.cells) < 2:
            return None
        (x0, y0), (x1, y1) = self.cells[0], self.cells[1]
        if y0 == y1 and x1 - x0 == 1:
            return HORIZONTAL
        if x0 == x1 and y1 - y0 == 1:
            return VERTICAL
        return None

    @property
    def is_straight(self) -> bool:
        """True when every step advances by exactly one cell along one axis."""
        orientation = self.orientation
        if orientation is None:
            return False
        step = (1, 0) if orientation == HORIZONTAL else (0, 1)
        return all(
            (b[0] - a[0], b[1] - a[1]) == step
            for a, b in zip(self.cells, self.cells[1:])
        )


@dataclass
class Fleet:
    ships: List[ShipPlacement] = field(default_factory=list)


@dataclass
class Board:
    # cell value per coordinate, 0 for water, 1..5 for the ship class
    grid: List[List[int]] = field(
        default_factory=lambda: [[0] * BOARD_SIZE for _ in range(BOARD_SIZE)]
    )

    def value_at(self, coord: Coord) -> int:
        x, y = coord
        return self.grid[x][y]

    def occupied(self, coord: Coord) -> bool:
        return self.value_at(coord) != 0

    def occupied_cells(self) -> List[Coord]:
        return [
            (x, y)
            for x in range(BOARD_SIZE)
            for y in range(BOARD_SIZE)
            if self.grid[x][y] != 0
        ]


@dataclass
class AttackRecord:
    attacker: str
    x: int
    y: int
    block: int


@dataclass
class ShotRecord:
    attacker: str
    x: int
    y: int
    occupied: int
    timed_out: bool = False


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class GameSession:
    session_id: str
    version: int = 0
    state: GameState = GameState.WAITING_PLAYERS
    phase: Phase = Phase.ATTACK
    players: List[str] = field(default_factory=list)
    commitments: Dict[str, Tuple[int, int]] = field(default_factory=dict)
    attacker: Optional[str] = None
    defender: Optional[str] = None
    commit_deadline: int = 0
    turn_deadline: int = 0
    scores: Dict[str, int] = field(default_factory=dict)
    pending_attack: Optional[AttackRecord] = None
    shots: List[ShotRecord] = field(default_factory=list)
    winner: Optional[str] = None
    created_at: str = field(default_factory=_utcnow)

    @staticmethod
    def new() -> 'GameSession':
        return GameSession(session_id=uuid.uuid4().hex)

    def score(self, player: str) -> int:
        return self.scores.get(player, 0)

    def attacked_cells(self, attacker: str) -> List[Coord]:
        cells = [(s.x, s.y) for s in self.shots if s.attacker == attacker]
        pending = self.pending_attack
        if pending is not None and pending.attacker == attacker:
            cells.append((pending.x, pending.y))
        return cells


# ---------------------------------------------------------------------------
# Notifications emitted by the state machine
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlayerJoined:
    player: str


@dataclass(frozen=True)
class CommitmentAccepted:
    player: str


@dataclass(frozen=True)
class GameStarted:
    attacker: str
    defender: str


@dataclass(frozen=True)
class AttackRecorded:
    attacker: str
    x: int
    y: int


@dataclass(frozen=True)
class ProofAccepted:
    defender: str
    occupied: int
    timed_out: bool = False


@dataclass(frozen=True)
class GameEnded:
    winner: Optional[str]


Notification = (
    PlayerJoined
    | CommitmentAccepted
    | GameStarted
    | AttackRecorded
    | ProofAccepted
    | GameEnded
)


def notification_to_payload(event: Notification) -> dict:
    return {"type": type(event).__name__, **asdict(event)}
