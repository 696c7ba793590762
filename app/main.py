from __future__ import annotations

import logging
from typing import List, Optional, Union

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

from app.config import Settings, load_settings
from logic.game import GameRejected, GameStateMachine, Transition
from logic.ledger import Ledger, UnknownSession
from logic.parser import parse_coord
from models import GameSession, notification_to_payload
from zk.codec import CallData, CodecError
from zk.prover import Keyring

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class JoinRequest(BaseModel):
    player: str


class ProofBody(BaseModel):
    pA: List[Union[int, str]]
    pB: List[List[Union[int, str]]]
    pC: List[Union[int, str]]
    pubSignals: List[Union[int, str]]


class ProofRequest(BaseModel):
    player: str
    proof: ProofBody


class AttackRequest(BaseModel):
    player: str
    x: Optional[int] = None
    y: Optional[int] = None
    cell: Optional[str] = None


class MineRequest(BaseModel):
    blocks: int = 1


def session_view(session: GameSession, height: int) -> dict:
    pending = session.pending_attack
    return {
        "session_id": session.session_id,
        "version": session.version,
        "block": height,
        "state": session.state.name,
        "phase": session.phase.name,
        "players": list(session.players),
        "committed": sorted(session.commitments),
        "attacker": session.attacker,
        "defender": session.defender,
        "commit_deadline": session.commit_deadline,
        "turn_deadline": session.turn_deadline,
        "scores": dict(session.scores),
        "pending_attack": None if pending is None else [pending.x, pending.y],
        "winner": session.winner,
    }


def create_app(
    settings: Optional[Settings] = None, keyring: Optional[Keyring] = None
) -> FastAPI:
    settings = settings or load_settings()
    keyring = keyring or Keyring.generate(settings.setup_seed)
    machine = GameStateMachine(
        keyring.verifier(),
        commit_window=settings.commit_window,
        turn_window=settings.turn_window,
    )
    ledger = Ledger(machine, persist=settings.persist)

    app = FastAPI(title="zk-battleship")
    app.state.ledger = ledger
    app.state.keyring = keyring

    def _apply(session_id: str, operation: str, sender: Optional[str], *args) -> dict:
        try:
            transition: Transition = ledger.submit(session_id, operation, sender, *args)
        except UnknownSession:
            raise HTTPException(status_code=404, detail="Unknown session")
        except GameRejected as exc:
            raise HTTPException(status_code=409, detail=exc.reason)
        return {
            "session": session_view(transition.session, ledger.height),
            "notifications": [notification_to_payload(e) for e in transition.notifications],
        }

    def _call(body: ProofBody) -> CallData:
        try:
            return CallData.from_payload(body.model_dump())
        except CodecError as exc:
            raise HTTPException(status_code=422, detail=str(exc))

    @app.api_route("/", methods=["GET", "HEAD"])
    async def root() -> dict[str, str]:
        return {"status": "running"}

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/sessions", status_code=201)
    def create_session() -> dict:
        session_id = ledger.create_session()
        return session_view(ledger.session(session_id), ledger.height)

    @app.get("/sessions/{session_id}")
    def get_session(session_id: str) -> dict:
        try:
            return session_view(ledger.session(session_id), ledger.height)
        except UnknownSession:
            raise HTTPException(status_code=404, detail="Unknown session")

    @app.post("/sessions/{session_id}/join")
    def join(session_id: str, body: JoinRequest) -> dict:
        return _apply(session_id, "join", body.player)

    @app.post("/sessions/{session_id}/commit")
    def commit(session_id: str, body: ProofRequest) -> dict:
        return _apply(session_id, "commit_grid", body.player, _call(body.proof))

    @app.post("/sessions/{session_id}/attack")
    def attack(session_id: str, body: AttackRequest) -> dict:
        if body.cell is not None:
            coord = parse_coord(body.cell)
            if coord is None:
                raise HTTPException(status_code=422, detail=f"Cannot parse cell {body.cell!r}")
            x, y = coord
        elif body.x is not None and body.y is not None:
            x, y = body.x, body.y
        else:
            raise HTTPException(status_code=422, detail="Provide x and y or cell")
        return _apply(session_id, "attack", body.player, x, y)

    @app.post("/sessions/{session_id}/proof")
    def proof(session_id: str, body: ProofRequest) -> dict:
        return _apply(session_id, "submit_proof", body.player, _call(body.proof))

    @app.post("/sessions/{session_id}/timeout")
    def timeout(session_id: str) -> dict:
        return _apply(session_id, "timeout", None)

    @app.get("/sessions/{session_id}/events")
    def events(session_id: str, since: int = Query(0, ge=0)) -> list[dict]:
        return [
            {
                "seq": notice.seq,
                "block": notice.block,
                "event": notification_to_payload(notice.event),
            }
            for notice in ledger.notifications(session_id, since)
        ]

    if settings.dev_mining:
        @app.post("/ledger/mine")
        def mine(body: MineRequest) -> dict[str, int]:
            if body.blocks < 0:
                raise HTTPException(status_code=422, detail="blocks must be non-negative")
            return {"block": ledger.mine(body.blocks)}

    logger.info(
        "Service ready | commit_window=%s turn_window=%s persist=%s dev_mining=%s",
        settings.commit_window,
        settings.turn_window,
        settings.persist,
        settings.dev_mining,
    )
    return app


app = create_app()
