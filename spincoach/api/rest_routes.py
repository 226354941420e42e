from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from spincoach.tools.battlecards import DEFAULT_LIBRARY, HOTKEYS, search_cards

router = APIRouter()


class CardsPayload(BaseModel):
    cards: List[Dict[str, Any]] = Field(default_factory=list)
    sector: Optional[Dict[str, Any]] = None


class PhaseChange(BaseModel):
    phase: str


def _agent(session_id: str):
    from spincoach.main import active_agents
    agent = active_agents.get(session_id)
    if agent is None:
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'")
    return agent


@router.get("/cards")
async def list_cards():
    return {
        "cards": [c.to_dict() for c in DEFAULT_LIBRARY],
        "hotkeys": HOTKEYS,
    }


@router.get("/cards/search")
async def search(q: str, limit: int = 6):
    results = search_cards(q, DEFAULT_LIBRARY, limit=limit)
    return {"query": q, "results": [c.to_dict() for c in results]}


@router.post("/sessions/{session_id}/cards")
async def add_cards(session_id: str, payload: CardsPayload):
    agent = _agent(session_id)
    if not payload.cards and not payload.sector:
        raise HTTPException(status_code=400, detail="Provide cards or a sector payload")
    try:
        keys = agent.augment_cards(payload.cards, payload.sector)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"status": "added", "cards": keys, "total": len(agent.session.library)}


@router.get("/sessions/{session_id}/state")
async def session_state(session_id: str):
    return _agent(session_id).state()


@router.post("/sessions/{session_id}/phase")
async def change_phase(session_id: str, body: PhaseChange):
    agent = _agent(session_id)
    try:
        changed = await agent.set_phase(body.phase)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"changed": changed, **agent.session.phase.snapshot().to_dict()}


@router.get("/health")
async def health():
    return {"status": "ok"}
