"""Best-effort fan-out of note create/delete events to open viewers.

Nothing here is durable: clients that connect late miss earlier events and
there is no ordering across producers. Viewers re-fetch from the API for
the real state.
"""

import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

# inbound client event -> event re-emitted to the other clients
RELAYED_EVENTS = {
    "transcriptionCreated": "newTranscription",
    "transcriptionDeleted": "deleteTranscription",
}


class NoteRelay:
    """Registry of connected viewers keyed by client id."""

    def __init__(self):
        self.active_connections: dict[str, WebSocket] = {}

    async def connect(self, client_id: str, websocket: WebSocket):
        await websocket.accept()
        self.active_connections[client_id] = websocket
        logger.info("Cliente conectado: %s (%d activos)", client_id, len(self.active_connections))

    def disconnect(self, client_id: str):
        self.active_connections.pop(client_id, None)
        logger.info("Cliente desconectado: %s", client_id)

    async def broadcast(self, event: str, payload, exclude: str | None = None) -> int:
        """Send ``{event, payload}`` to every client except ``exclude``.

        Returns the number of clients reached. Clients that fail to receive
        are dropped.
        """
        message = {"event": event, "payload": payload}
        sent = 0
        disconnected = []
        for client_id, websocket in list(self.active_connections.items()):
            if client_id == exclude:
                continue
            try:
                await websocket.send_json(message)
                sent += 1
            except Exception as e:
                logger.warning("No se pudo enviar '%s' a %s: %s", event, client_id, e)
                disconnected.append(client_id)

        for client_id in disconnected:
            self.disconnect(client_id)
        return sent

    async def notify(self, event: str, payload, exclude: str | None = None):
        """Broadcast from the REST side; never raises."""
        try:
            await self.broadcast(event, payload, exclude=exclude)
        except Exception as e:
            logger.warning("Notificacion '%s' descartada: %s", event, e)


def create_relay_router(relay: NoteRelay) -> APIRouter:
    router = APIRouter()

    @router.websocket("/ws/notes")
    async def notes_stream(websocket: WebSocket, client_id: str | None = None):
        client_id = client_id or uuid.uuid4().hex
        await relay.connect(client_id, websocket)
        await websocket.send_json({"event": "connected", "payload": {"clientId": client_id}})

        try:
            while True:
                data = await websocket.receive_json()
                event = RELAYED_EVENTS.get(data.get("event")) if isinstance(data, dict) else None
                if event is None:
                    logger.debug("Evento ignorado de %s: %r", client_id, data)
                    continue
                await relay.broadcast(event, data.get("payload"), exclude=client_id)
        except WebSocketDisconnect:
            relay.disconnect(client_id)
        except Exception as e:
            logger.error("Error en WebSocket %s: %s", client_id, e)
            relay.disconnect(client_id)

    return router
