import asyncio
import logging

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Clientes conectados a /api/events; reenvia las notificaciones del EventBus."""

    def __init__(self):
        self.active_connections: list[WebSocket] = []
        self.queue: asyncio.Queue = asyncio.Queue()

    def enqueue(self, event):
        self.queue.put_nowait(event.to_message())

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info("WebSocket conectado: %d clientes", len(self.active_connections))

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        logger.info("WebSocket desconectado: %d clientes", len(self.active_connections))

    async def broadcast(self, message: dict):
        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.warning("Fallo el envio por WebSocket: %s", e)
                self.disconnect(connection)

    async def run(self):
        while True:
            message = await self.queue.get()
            try:
                await self.broadcast(message)
            finally:
                self.queue.task_done()

    async def serve(self, websocket: WebSocket):
        await self.connect(websocket)
        try:
            while True:
                # Mantiene viva la conexion; los mensajes del cliente se ignoran
                await websocket.receive_text()
        except WebSocketDisconnect:
            self.disconnect(websocket)
