"""Client-side driver for one player in one game session.

Proof generation is the only expensive step.  It runs on an executor and is
handed back as a :class:`ProofTask`; a task can be abandoned but not stopped
mid-proof.  An abandoned answer simply lets the turn deadline expire, after
which anyone may call ``timeout``.
"""
from __future__ import annotations

import logging
import secrets
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Dict, List, Optional, Union

from logic.game import Transition
from logic.ledger import Ledger
from logic.parser import format_coord, parse_coord
from logic.placement import build_board, fleet_to_mapping
from models import Fleet, GameSession, GameState, Phase
from sdk.feed import NotificationFeed
from zk.codec import CallData
from zk.field import R
from zk.prover import Keyring, ProvingKey, prove_call

logger = logging.getLogger(__name__)


def _prove(circuit: str, inputs: dict, key: ProvingKey) -> CallData:
    return prove_call(circuit, inputs, key)


class ProofTask:
    """Handle on a proof being generated in the background."""

    def __init__(self, future: Future, circuit: str) -> None:
        self._future = future
        self.circuit = circuit
        self.abandoned = False

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> CallData:
        """Wait for the call data; re-raises ``WitnessError`` from the circuit."""
        return self._future.result(timeout)

    def abandon(self) -> None:
        """Drop the task; a proof already running is left to finish unused."""
        self.abandoned = True
        self._future.cancel()


class GameOrchestrator:
    def __init__(
        self,
        ledger: Ledger,
        session_id: str,
        player: str,
        keyring: Keyring,
        executor: Optional[Executor] = None,
    ) -> None:
        self.ledger = ledger
        self.session_id = session_id
        self.player = player
        self.keyring = keyring
        self._own_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"prover-{player}"
        )
        self._grid: Optional[List[List[int]]] = None
        self._salt: Optional[int] = None

    # ------------------------------------------------------------------
    # proving
    # ------------------------------------------------------------------

    def _submit_proof_job(self, circuit: str, inputs: dict) -> ProofTask:
        future = self.executor.submit(
            _prove, circuit, inputs, self.keyring.proving_key(circuit)
        )
        logger.info("PROOF_TASK | player=%s circuit=%s", self.player, circuit)
        return ProofTask(future, circuit)

    def prepare_commitment(self, fleet: Fleet, salt: Optional[int] = None) -> ProofTask:
        """Start proving ``fleet``; the board and salt are kept for later answers."""
        if salt is None:
            salt = secrets.randbelow(R)
        self._grid = build_board(fleet).grid
        self._salt = salt
        inputs = {**fleet_to_mapping(fleet), "salt": salt}
        return self._submit_proof_job("commitment", inputs)

    def prepare_answer(self) -> ProofTask:
        """Start proving the cell of the attack currently pending against us."""
        if self._grid is None or self._salt is None:
            raise RuntimeError("no committed board to answer from")
        pending = self.session().pending_attack
        if pending is None:
            raise RuntimeError("no pending attack")
        inputs = {"grid": self._grid, "salt": self._salt, "p": [pending.x, pending.y]}
        return self._submit_proof_job("position", inputs)

    # ------------------------------------------------------------------
    # commands
    # ------------------------------------------------------------------

    def join(self) -> Transition:
        return self.ledger.join(self.session_id, self.player)

    def commit_grid(
        self, fleet: Fleet, salt: Optional[int] = None, wait: bool = True
    ) -> Union[Transition, ProofTask]:
        task = self.prepare_commitment(fleet, salt)
        if not wait:
            return task
        return self.submit_commitment(task.result())

    def submit_commitment(self, call: CallData) -> Transition:
        return self.ledger.commit_grid(self.session_id, self.player, call)

    def attack(self, x: Union[int, str], y: Optional[int] = None) -> Transition:
        if isinstance(x, str):
            coord = parse_coord(x)
            if coord is None:
                raise ValueError(f"cannot parse cell {x!r}")
            x, y = coord
            logger.info("ORCH_ATTACK | player=%s cell=%s", self.player, format_coord(coord))
        return self.ledger.attack(self.session_id, self.player, x, y)

    def answer_attack(self, wait: bool = True) -> Union[Transition, ProofTask]:
        task = self.prepare_answer()
        if not wait:
            return task
        return self.submit_answer(task.result())

    def submit_answer(self, call: CallData) -> Transition:
        return self.ledger.submit_proof(self.session_id, self.player, call)

    def timeout(self) -> Transition:
        return self.ledger.timeout(self.session_id)

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    def session(self) -> GameSession:
        return self.ledger.session(self.session_id)

    def state(self) -> GameState:
        return self.session().state

    def phase(self) -> Phase:
        return self.session().phase

    def attacker(self) -> Optional[str]:
        return self.session().attacker

    def defender(self) -> Optional[str]:
        return self.session().defender

    def commit_deadline(self) -> int:
        return self.session().commit_deadline

    def turn_deadline(self) -> int:
        return self.session().turn_deadline

    def scores(self) -> Dict[str, int]:
        return dict(self.session().scores)

    def score(self, player: Optional[str] = None) -> int:
        return self.session().score(player or self.player)

    def notifications(self, since: int = 0) -> NotificationFeed:
        return NotificationFeed(
            lambda cursor: self.ledger.notifications(self.session_id, cursor), since
        )

    def close(self) -> None:
        if self._own_executor:
            self.executor.shutdown(wait=False, cancel_futures=True)
