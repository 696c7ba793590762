"""In-process ledger that orders game operations.

Every accepted operation is applied alone, under one lock, in its own block:
the height is bumped, the operation runs against the stored session at the
new height and the resulting session and notifications are recorded.  With
``persist`` the height is stored too, so a restarted ledger resumes from the
last block instead of block 0.  A
rejected operation leaves the height, the session and the log untouched.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Dict, List, Optional

import storage
from logic.game import GameRejected, GameStateMachine, Transition
from models import GameSession, Notification
from zk.codec import CallData

logger = logging.getLogger(__name__)

OPERATIONS = ("join", "commit_grid", "attack", "submit_proof", "timeout")


class UnknownSession(KeyError):
    pass


@dataclass(frozen=True)
class Notice:
    seq: int
    block: int
    session_id: str
    event: Notification


class Ledger:
    def __init__(self, machine: GameStateMachine, *, persist: bool = False) -> None:
        self.machine = machine
        self.persist = persist
        self.height = storage.load_height() if persist else 0
        self._sessions: Dict[str, GameSession] = {}
        self._log: List[Notice] = []
        self._lock = Lock()

    # ------------------------------------------------------------------
    # sessions
    # ------------------------------------------------------------------

    def create_session(self) -> str:
        session = self.machine.new_session()
        with self._lock:
            self._sessions[session.session_id] = session
            self._store(session)
        logger.info("SESSION_CREATE | session=%s", session.session_id)
        return session.session_id

    def session(self, session_id: str) -> GameSession:
        with self._lock:
            return self._load(session_id)

    def _load(self, session_id: str) -> GameSession:
        session = self._sessions.get(session_id)
        if session is None and self.persist:
            session = storage.get_session(session_id)
            if session is not None:
                self._sessions[session_id] = session
        if session is None:
            raise UnknownSession(session_id)
        return session

    def _store(self, session: GameSession) -> None:
        if not self.persist:
            return
        error = storage.save_session(session)
        if error:
            logger.error("Failed to persist session %s: %s", session.session_id, error)

    def _store_height(self) -> None:
        if not self.persist:
            return
        error = storage.save_height(self.height)
        if error:
            logger.error("Failed to persist ledger height %d: %s", self.height, error)

    # ------------------------------------------------------------------
    # ordering
    # ------------------------------------------------------------------

    def mine(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError("cannot mine a negative number of blocks")
        with self._lock:
            self.height += blocks
            self._store_height()
            return self.height

    def submit(self, session_id: str, operation: str, sender: Optional[str], *args) -> Transition:
        """Apply ``operation`` for ``sender`` in the next block.

        ``timeout`` ignores ``sender``; every other operation passes it as
        the caller.  Raises :class:`GameRejected` or :class:`UnknownSession`.
        """
        if operation not in OPERATIONS:
            raise ValueError(f"unknown operation {operation!r}")
        with self._lock:
            session = self._load(session_id)
            block = self.height + 1
            handler = getattr(self.machine, operation)
            try:
                if operation == "timeout":
                    transition = handler(session, block)
                else:
                    transition = handler(session, sender, *args, block)
            except GameRejected as exc:
                logger.info(
                    "LEDGER_REJECT | session=%s op=%s sender=%s reason=%s",
                    session_id,
                    operation,
                    sender,
                    exc.reason,
                )
                raise
            self.height = block
            self._sessions[session_id] = transition.session
            for event in transition.notifications:
                self._log.append(Notice(len(self._log) + 1, block, session_id, event))
            self._store(transition.session)
            self._store_height()
            return transition

    def notifications(self, session_id: Optional[str] = None, since: int = 0) -> List[Notice]:
        """Notices with ``seq > since``, optionally for one session only."""
        with self._lock:
            return [
                notice
                for notice in self._log[since:]
                if session_id is None or notice.session_id == session_id
            ]

    # convenience wrappers -------------------------------------------------

    def join(self, session_id: str, player: str) -> Transition:
        return self.submit(session_id, "join", player)

    def commit_grid(self, session_id: str, player: str, call: CallData) -> Transition:
        return self.submit(session_id, "commit_grid", player, call)

    def attack(self, session_id: str, player: str, x: int, y: int) -> Transition:
        return self.submit(session_id, "attack", player, x, y)

    def submit_proof(self, session_id: str, player: str, call: CallData) -> Transition:
        return self.submit(session_id, "submit_proof", player, call)

    def timeout(self, session_id: str) -> Transition:
        return self.submit(session_id, "timeout", None)
