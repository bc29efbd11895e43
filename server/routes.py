import asyncio
import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

import config
from db.database import Database
from detector.monitor import MeetingActivityMonitor
from server.websocket import ConnectionManager
from session.controller import RecordingSessionController
from session.errors import StreamConnectionError, StreamUnavailable
from session.services import SECRET_KEYS, SETTING_KEYS, configure_services, effective_settings

logger = logging.getLogger(__name__)


class StartRecordingRequest(BaseModel):
    title: str | None = None


class UpdateMeetingRequest(BaseModel):
    title: str


def _mask(value: str) -> str:
    if not value:
        return ""
    return "****" + value[-4:]


def _public_settings(settings: dict[str, str]) -> dict[str, str]:
    return {k: _mask(v) if k in SECRET_KEYS else v for k, v in settings.items()}


def create_router(db: Database, controller: RecordingSessionController,
                  monitor: MeetingActivityMonitor | None,
                  manager: ConnectionManager) -> APIRouter:
    router = APIRouter()

    def _get_meeting_or_404(meeting_id: int) -> dict:
        meeting = db.get_meeting(meeting_id)
        if not meeting:
            raise HTTPException(404, "Reunion no encontrada")
        return meeting

    # -- Status --

    @router.get("/status")
    def get_status():
        status = controller.current_status()
        return {
            **status.to_dict(),
            "transcription_configured": controller.stream_factory is not None,
            "summary_configured": controller.summarizer is not None,
            "detected_app": monitor.current_app if monitor else None,
        }

    # -- Recording control --

    @router.post("/recording/start")
    async def start_recording(body: StartRecordingRequest = StartRecordingRequest()):
        title = body.title or config.DEFAULT_RECORDING_TITLE
        try:
            meeting_id = await controller.start(title)
        except StreamUnavailable as e:
            raise HTTPException(503, str(e))
        except StreamConnectionError as e:
            raise HTTPException(502, str(e))

        return {"started": meeting_id is not None, **controller.current_status().to_dict()}

    @router.post("/recording/stop")
    async def stop_recording():
        meeting_id = await controller.stop()
        return {"stopped": meeting_id is not None, "meeting_id": meeting_id}

    # -- Meetings --

    @router.get("/meetings")
    def list_meetings(q: str | None = None, limit: int = 50, offset: int = 0):
        if q:
            return db.search_meetings(q, limit=limit)
        return db.list_meetings(limit=limit, offset=offset)

    @router.get("/meetings/{meeting_id}")
    def get_meeting(meeting_id: int):
        meeting = _get_meeting_or_404(meeting_id)
        transcript = db.get_transcript(meeting_id)
        return {"meeting": meeting, "transcript": [seg.to_dict() for seg in transcript]}

    @router.put("/meetings/{meeting_id}")
    def update_meeting(meeting_id: int, body: UpdateMeetingRequest):
        _get_meeting_or_404(meeting_id)
        return db.update_title(meeting_id, body.title)

    @router.delete("/meetings/{meeting_id}")
    def delete_meeting(meeting_id: int):
        _get_meeting_or_404(meeting_id)
        if controller.current_status().active_meeting_id == meeting_id:
            raise HTTPException(400, "No se puede eliminar la reunion en curso")
        db.delete_meeting(meeting_id)
        return {"deleted": True}

    # -- Processing --

    @router.post("/meetings/{meeting_id}/summary")
    async def regenerate_summary(meeting_id: int):
        _get_meeting_or_404(meeting_id)
        summarizer = controller.summarizer
        if summarizer is None:
            raise HTTPException(503, "No hay backend de resumen configurado")

        transcript = db.get_transcript(meeting_id)
        if not transcript:
            raise HTTPException(400, "No hay transcripcion disponible")

        try:
            summary = await asyncio.to_thread(summarizer.summarize, transcript)
        except Exception as e:
            logger.error("Error generando resumen %s: %s", meeting_id, e)
            raise HTTPException(502, f"Error generando resumen: {e}")

        db.set_summary(meeting_id, summary)
        return {"summary": summary}

    @router.post("/meetings/{meeting_id}/action-items")
    async def extract_action_items(meeting_id: int):
        _get_meeting_or_404(meeting_id)
        summarizer = controller.summarizer
        if summarizer is None:
            raise HTTPException(503, "No hay backend de resumen configurado")

        transcript = db.get_transcript(meeting_id)
        items = await asyncio.to_thread(summarizer.extract_action_items, transcript)
        return {"action_items": items}

    # -- Settings --

    @router.get("/settings")
    def get_settings():
        return _public_settings(effective_settings(db))

    @router.put("/settings")
    def update_settings(body: dict[str, str]):
        unknown = sorted(set(body) - set(SETTING_KEYS))
        if unknown:
            raise HTTPException(400, f"Claves desconocidas: {', '.join(unknown)}")

        for key, value in body.items():
            db.set_setting(key, value)
        settings = configure_services(db, controller)
        return _public_settings(settings)

    # -- Realtime --

    @router.websocket("/events")
    async def events(websocket: WebSocket):
        await manager.serve(websocket)

    @router.websocket("/audio")
    async def audio(websocket: WebSocket):
        # Cada frame binario: 1 byte de origen (1 = microfono local) + PCM16
        await websocket.accept()
        try:
            while True:
                data = await websocket.receive_bytes()
                if len(data) < 2:
                    continue
                controller.feed_audio(data[1:], data[0] != 0)
        except WebSocketDisconnect:
            logger.info("Cliente de audio desconectado")

    return router
