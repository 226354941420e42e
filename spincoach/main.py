import asyncio
import json
from contextlib import asynccontextmanager
from typing import Dict, List, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from spincoach.agents.advisory import create_advisor
from spincoach.agents.orchestrator import CoachingOrchestrator
from spincoach.api import events
from spincoach.api.rest_routes import router as rest_router
from spincoach.api.websocket_handler import WebSocketManager
from spincoach.config import Config

ws_manager = WebSocketManager()
active_agents: Dict[str, CoachingOrchestrator] = {}
session_queues: Dict[str, asyncio.Queue] = {}
session_workers: Dict[str, List[asyncio.Task]] = {}
session_tasks: Dict[str, Set[asyncio.Task]] = {}


@asynccontextmanager
async def lifespan(app: FastAPI):
    print("SPIN coach starting up...")
    for problem in Config.validate():
        print(f"WARNING: {problem}")
    yield
    print("SPIN coach shutting down...")
    for session_id in list(session_workers.keys()):
        await stop_session_workers(session_id)
    for session_id in list(active_agents.keys()):
        await release_agent(session_id)
    await ws_manager.broadcast({"type": "shutdown"})


app = FastAPI(
    title="SPIN Coach",
    description="Live SPIN sales-call coaching engine",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.ALLOWED_ORIGINS or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rest_router, prefix="/api")


def get_or_create_agent(session_id: str) -> CoachingOrchestrator:
    if session_id not in active_agents:
        try:
            advisor = create_advisor()
        except ValueError as e:
            print(f"Advisory disabled for {session_id}: {e}")
            advisor = None
        active_agents[session_id] = CoachingOrchestrator(
            session_id=session_id,
            ws_manager=ws_manager,
            advisor=advisor,
        )
    return active_agents[session_id]


def start_session_workers(session_id: str, agent: CoachingOrchestrator) -> asyncio.Queue:
    if session_id in session_workers:
        return session_queues[session_id]
    queue: asyncio.Queue = asyncio.Queue(maxsize=Config.EVENT_QUEUE_SIZE)
    session_queues[session_id] = queue
    session_workers[session_id] = [
        asyncio.create_task(dispatch_loop(session_id, queue, agent)),
        asyncio.create_task(tick_loop(session_id, agent)),
    ]
    return queue


async def stop_session_workers(session_id: str):
    for task in session_workers.pop(session_id, []):
        task.cancel()
    for task in session_tasks.pop(session_id, set()):
        task.cancel()
    session_queues.pop(session_id, None)
    agent = active_agents.get(session_id)
    if agent and agent.session.status == "live":
        await agent.end_session()


async def release_agent(session_id: str):
    agent = active_agents.pop(session_id, None)
    if agent is not None:
        await agent.aclose()
        print(f"Released coach for session {session_id}")


def spawn_session_task(session_id: str, coro) -> asyncio.Task:
    """Run a side job for a session, keeping a reference until it finishes."""
    task = asyncio.create_task(coro)
    tasks = session_tasks.setdefault(session_id, set())
    tasks.add(task)
    task.add_done_callback(tasks.discard)
    return task


def enqueue_event(session_id: str, data: dict) -> bool:
    queue = session_queues.get(session_id)
    if queue is None:
        return False
    try:
        queue.put_nowait(data)
        return True
    except asyncio.QueueFull:
        print(f"Event queue full for {session_id}, dropping {data.get('type')!r}")
        return False


async def dispatch_loop(session_id: str, queue: asyncio.Queue, agent: CoachingOrchestrator):
    while True:
        data = await queue.get()
        try:
            await handle_frontend_message(data, agent, session_id)
        except Exception as e:
            print(f"Event handling error in {session_id}: {e}")
        finally:
            queue.task_done()


async def tick_loop(session_id: str, agent: CoachingOrchestrator):
    while True:
        await asyncio.sleep(1.0)
        try:
            await agent.tick()
        except Exception as e:
            print(f"Tick error in {session_id}: {e}")


def origin_allowed(websocket: WebSocket) -> bool:
    if not Config.ALLOWED_ORIGINS:
        return True
    origin = (websocket.headers.get("origin") or "").rstrip("/")
    return origin in Config.ALLOWED_ORIGINS


@app.websocket("/ws/{session_id}")
async def websocket_endpoint(websocket: WebSocket, session_id: str):
    if not origin_allowed(websocket):
        print(f"Rejected websocket for {session_id} from origin {websocket.headers.get('origin')!r}")
        await websocket.close(code=1008)
        return

    await ws_manager.connect(websocket, session_id)
    agent = get_or_create_agent(session_id)
    start_session_workers(session_id, agent)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "error": "Invalid JSON"})
                continue
            enqueue_event(session_id, data)

    except WebSocketDisconnect:
        print(f"Session {session_id} disconnected")
    except Exception as e:
        print(f"WebSocket error in {session_id}: {e}")
    finally:
        if ws_manager.active_connections.get(session_id) is websocket:
            await ws_manager.disconnect(session_id, websocket)
            await stop_session_workers(session_id)
            await release_agent(session_id)


async def handle_frontend_message(data: dict, agent: CoachingOrchestrator, session_id: str):
    event = events.parse_event(data, Config.CAPTION_SOURCE)
    if event is None:
        return

    if isinstance(event, events.CaptionEvent):
        await agent.on_caption(event.text, ts=event.ts_seconds, speaker=event.speaker)
    elif isinstance(event, events.BridgeReadyEvent):
        await agent.mark_bridge_ready(event.ts_seconds)
    elif isinstance(event, events.SessionStartEvent):
        await agent.start_session(event.lead)
        if event.generate_cards:
            spawn_session_task(session_id, agent.generate_sector_cards())
    elif isinstance(event, events.SessionEndEvent):
        await agent.end_session()
    elif isinstance(event, events.CardActionEvent):
        if event.type == "use_card":
            await agent.use_card(event.key)
        else:
            await agent.dismiss_card(event.key)
    elif isinstance(event, events.HotkeyEvent):
        if await agent.pick_hotkey(event.key) is None:
            print(f"No card bound to hotkey {event.key!r}")
    elif isinstance(event, events.SetPhaseEvent):
        try:
            await agent.set_phase(event.phase)
        except ValueError as e:
            await ws_manager.send(session_id, {"type": "error", "error": str(e)})
    elif isinstance(event, events.ClearFeedEvent):
        await agent.clear_feed()
    elif isinstance(event, events.AugmentCardsEvent):
        try:
            keys = agent.augment_cards(event.cards, event.sector)
        except ValueError as e:
            await ws_manager.send(session_id, {"type": "error", "error": str(e)})
            return
        await ws_manager.send(session_id, {"type": "cards_added", "cards": keys})
        if event.generate:
            spawn_session_task(session_id, agent.generate_sector_cards())


@app.get("/health")
async def health():
    return {
        "status": "alive",
        "active_sessions": ws_manager.active_count(),
        "advisor": Config.ADVISOR,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("spincoach.main:app", host="0.0.0.0", port=8000, reload=True)
