"""Turn-based game state machine.

Every operation takes a :class:`GameSession`, the caller and the current
block height and returns a :class:`Transition` carrying a new session (the
input is never mutated) plus the notifications to publish.  Rejections raise
:class:`GameRejected` with a stable reason string before anything changes.

Deadlines are block heights; a deadline has elapsed once the current block is
strictly greater than it.
"""
from __future__ import annotations

import copy
import logging
from typing import List, NamedTuple, Optional

from logic.placement import FLEET_CELLS
from models import (
    BOARD_SIZE,
    AttackRecord,
    AttackRecorded,
    CommitmentAccepted,
    GameEnded,
    GameSession,
    GameStarted,
    GameState,
    Notification,
    Phase,
    PlayerJoined,
    ProofAccepted,
    ShotRecord,
)
from zk.codec import CallData, CodecError, commitment_signals, position_signals

logger = logging.getLogger(__name__)

COMMIT_WINDOW = 120
TURN_WINDOW = 20

# rejection reasons
GAME_STARTED = "Game already started"
ALREADY_JOINED = "Already joined"
GAME_OVER = "Game over"
NOT_COMMIT_PHASE = "Not commit phase"
NOT_A_PLAYER = "Not a player"
COMMIT_DEADLINE_PASSED = "Commit deadline passed"
ALREADY_COMMITTED = "Already committed"
MALFORMED_PROOF = "Malformed proof"
INVALID_PROOF = "Invalid proof"
NOT_PLAYING = "Not playing"
NOT_ATTACK_PHASE = "Not attack phase"
NOT_PROOF_PHASE = "Not proof phase"
NOT_YOUR_TURN = "Not your turn"
INVALID_COORDINATES = "Invalid coordinates"
CELL_ALREADY_ATTACKED = "Cell already attacked"
TURN_DEADLINE_PASSED = "Turn deadline passed"
INVALID_COMMITMENT = "Invalid commitment"
INVALID_ATTACK_COORDINATES = "Invalid attack coordinates"
DEADLINE_NOT_REACHED = "Deadline not reached"
NOTHING_TO_TIME_OUT = "Nothing to time out"


class GameRejected(Exception):
    """Operation refused; the session is left exactly as it was."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class Transition(NamedTuple):
    session: GameSession
    notifications: List[Notification]


def _require(condition: bool, reason: str) -> None:
    if not condition:
        raise GameRejected(reason)


def _in_range(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < BOARD_SIZE


def _next(session: GameSession) -> GameSession:
    updated = copy.deepcopy(session)
    updated.version += 1
    return updated


class GameStateMachine:
    """Validates and applies game operations.

    ``verifier`` supplies ``verify_commitment(call)`` and
    ``verify_position(call)``; all cryptographic checks go through it.
    """

    def __init__(
        self,
        verifier,
        commit_window: int = COMMIT_WINDOW,
        turn_window: int = TURN_WINDOW,
    ) -> None:
        self.verifier = verifier
        self.commit_window = commit_window
        self.turn_window = turn_window

    def new_session(self) -> GameSession:
        return GameSession.new()

    # ------------------------------------------------------------------
    # commands
    # ------------------------------------------------------------------

    def join(self, session: GameSession, player: str, block: int) -> Transition:
        _require(session.state != GameState.GAME_OVER, GAME_OVER)
        _require(session.state == GameState.WAITING_PLAYERS, GAME_STARTED)
        _require(player not in session.players, ALREADY_JOINED)

        updated = _next(session)
        updated.players.append(player)
        updated.scores[player] = 0
        events: List[Notification] = [PlayerJoined(player)]
        if len(updated.players) == 2:
            updated.state = GameState.COMMIT_PHASE
            updated.commit_deadline = block + self.commit_window
        logger.info(
            "GAME_JOIN | session=%s player=%s players=%d",
            session.session_id,
            player,
            len(updated.players),
        )
        return Transition(updated, events)

    def commit_grid(
        self, session: GameSession, player: str, call: CallData, block: int
    ) -> Transition:
        _require(session.state != GameState.GAME_OVER, GAME_OVER)
        _require(session.state == GameState.COMMIT_PHASE, NOT_COMMIT_PHASE)
        _require(player in session.players, NOT_A_PLAYER)
        _require(block <= session.commit_deadline, COMMIT_DEADLINE_PASSED)
        _require(player not in session.commitments, ALREADY_COMMITTED)
        try:
            signals = commitment_signals(call)
        except CodecError as exc:
            logger.warning("GAME_COMMIT_MALFORMED | session=%s player=%s error=%s",
                           session.session_id, player, exc)
            raise GameRejected(MALFORMED_PROOF) from exc
        _require(self.verifier.verify_commitment(call), INVALID_PROOF)

        updated = _next(session)
        updated.commitments[player] = signals.commitment
        events: List[Notification] = [CommitmentAccepted(player)]
        if len(updated.commitments) == 2:
            first, second = updated.players
            updated.state = GameState.PLAYING
            updated.phase = Phase.ATTACK
            updated.attacker, updated.defender = first, second
            updated.turn_deadline = block + self.turn_window
            events.append(GameStarted(attacker=first, defender=second))
            logger.info("GAME_START | session=%s attacker=%s defender=%s",
                        session.session_id, first, second)
        logger.info("GAME_COMMIT | session=%s player=%s", session.session_id, player)
        return Transition(updated, events)

    def attack(
        self, session: GameSession, player: str, x: int, y: int, block: int
    ) -> Transition:
        _require(session.state != GameState.GAME_OVER, GAME_OVER)
        _require(session.state == GameState.PLAYING, NOT_PLAYING)
        _require(session.phase == Phase.ATTACK, NOT_ATTACK_PHASE)
        _require(player == session.attacker, NOT_YOUR_TURN)
        _require(_in_range(x) and _in_range(y), INVALID_COORDINATES)
        _require((x, y) not in session.attacked_cells(player), CELL_ALREADY_ATTACKED)
        _require(block <= session.turn_deadline, TURN_DEADLINE_PASSED)

        updated = _next(session)
        updated.pending_attack = AttackRecord(attacker=player, x=x, y=y, block=block)
        updated.phase = Phase.PROOF
        updated.turn_deadline = block + self.turn_window
        logger.info("GAME_ATTACK | session=%s attacker=%s x=%s y=%s",
                    session.session_id, player, x, y)
        return Transition(updated, [AttackRecorded(attacker=player, x=x, y=y)])

    def submit_proof(
        self, session: GameSession, player: str, call: CallData, block: int
    ) -> Transition:
        _require(session.state != GameState.GAME_OVER, GAME_OVER)
        _require(session.state == GameState.PLAYING, NOT_PLAYING)
        _require(session.phase == Phase.PROOF, NOT_PROOF_PHASE)
        _require(player == session.defender, NOT_YOUR_TURN)
        _require(block <= session.turn_deadline, TURN_DEADLINE_PASSED)
        try:
            signals = position_signals(call)
        except CodecError as exc:
            logger.warning("GAME_PROOF_MALFORMED | session=%s player=%s error=%s",
                           session.session_id, player, exc)
            raise GameRejected(MALFORMED_PROOF) from exc
        _require(self.verifier.verify_position(call), INVALID_PROOF)
        _require(signals.commitment == tuple(session.commitments[player]), INVALID_COMMITMENT)
        pending = session.pending_attack
        _require(
            pending is not None and (signals.x, signals.y) == (pending.x, pending.y),
            INVALID_ATTACK_COORDINATES,
        )

        updated = _next(session)
        events = self._resolve(updated, signals.occupied, block, timed_out=False)
        logger.info("GAME_PROOF | session=%s defender=%s occupied=%s",
                    session.session_id, player, signals.occupied)
        return Transition(updated, events)

    def timeout(self, session: GameSession, block: int) -> Transition:
        _require(session.state != GameState.GAME_OVER, GAME_OVER)

        if session.state == GameState.COMMIT_PHASE:
            _require(block > session.commit_deadline, DEADLINE_NOT_REACHED)
            committed = list(session.commitments)
            winner = committed[0] if len(committed) == 1 else None
            updated = _next(session)
            self._finish(updated, winner)
            logger.info("GAME_COMMIT_TIMEOUT | session=%s winner=%s",
                        session.session_id, winner)
            return Transition(updated, [GameEnded(winner)])

        _require(session.state == GameState.PLAYING, NOTHING_TO_TIME_OUT)
        _require(block > session.turn_deadline, DEADLINE_NOT_REACHED)

        updated = _next(session)
        if session.phase == Phase.ATTACK:
            self._finish(updated, session.defender)
            logger.info("GAME_ATTACK_TIMEOUT | session=%s winner=%s",
                        session.session_id, session.defender)
            return Transition(updated, [GameEnded(session.defender)])

        events = self._resolve(updated, 1, block, timed_out=True)
        logger.info("GAME_PROOF_TIMEOUT | session=%s defender=%s",
                    session.session_id, session.defender)
        return Transition(updated, events)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _resolve(
        self, session: GameSession, occupied: int, block: int, *, timed_out: bool
    ) -> List[Notification]:
        """Consume the pending attack on an already copied ``session``."""
        pending = session.pending_attack
        attacker, defender = session.attacker, session.defender
        session.shots.append(
            ShotRecord(
                attacker=attacker,
                x=pending.x,
                y=pending.y,
                occupied=occupied,
                timed_out=timed_out,
            )
        )
        session.pending_attack = None
        if occupied:
            session.scores[attacker] = session.score(attacker) + 1

        events: List[Notification] = [
            ProofAccepted(defender=defender, occupied=occupied, timed_out=timed_out)
        ]
        if session.score(attacker) >= FLEET_CELLS:
            self._finish(session, attacker)
            events.append(GameEnded(attacker))
            return events

        session.attacker, session.defender = defender, attacker
        session.phase = Phase.ATTACK
        session.turn_deadline = block + self.turn_window
        return events

    @staticmethod
    def _finish(session: GameSession, winner: Optional[str]) -> None:
        session.state = GameState.GAME_OVER
        session.winner = winner
