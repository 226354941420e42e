from typing import Dict
from fastapi import WebSocket


class WebSocketManager:
    """One outbound socket per coaching session."""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket, session_id: str):
        await websocket.accept()
        previous = self.active_connections.get(session_id)
        self.active_connections[session_id] = websocket
        if previous is not None and previous is not websocket:
            print(f"WebSocket replaced for {session_id}")
        print(f"WebSocket connected: {session_id}")
        await self.send(session_id, {
            "type": "connected",
            "session_id": session_id,
            "message": "SPIN coach online",
        })

    async def disconnect(self, session_id: str, websocket: WebSocket = None):
        current = self.active_connections.get(session_id)
        if current is None:
            return
        # a stale socket must not evict a newer one
        if websocket is not None and current is not websocket:
            return
        del self.active_connections[session_id]
        print(f"WebSocket disconnected: {session_id}")

    async def send(self, session_id: str, data: dict):
        ws = self.active_connections.get(session_id)
        if ws is None:
            return
        try:
            await ws.send_json(data)
        except Exception as e:
            print(f"WS send error for {session_id}: {e}")
            await self.disconnect(session_id, ws)

    async def broadcast(self, data: dict):
        for session_id in list(self.active_connections.keys()):
            await self.send(session_id, data)

    def active_count(self) -> int:
        return len(self.active_connections)
