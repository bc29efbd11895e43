import asyncio
import contextlib
import logging
from typing import Callable

from db.database import Database
from processing.transcriber import TranscriptStream
from session.errors import StreamConnectionError
from session.events import (
    EventBus,
    TranscriptionError,
    TranscriptionReady,
    TranscriptionStopped,
    TranscriptSegmentReceived,
)
from session.models import RecognitionEvent, SessionState, TranscriptSegment, wall_clock_ms

logger = logging.getLogger(__name__)

USER_SPEAKER = "You"


def speaker_label(diarization_index: int, is_user: bool) -> str:
    if is_user:
        return USER_SPEAKER
    return f"Speaker {diarization_index + 1}"


class TranscriptStreamProcessor:
    """Convierte los eventos de un TranscriptStream en segmentos de la reunion.

    Los resultados finales se persisten en el orden en que llegan; los
    interinos solo se notifican (reemplazan al interino anterior en pantalla).
    Tras close() todo evento se descarta.
    """

    def __init__(self, meeting_id: int, session_start_ms: int, stream: TranscriptStream,
                 db: Database, bus: EventBus, clock_ms: Callable[[], int] = wall_clock_ms,
                 state: SessionState | None = None):
        self.meeting_id = meeting_id
        self.session_start_ms = session_start_ms
        self.stream = stream
        self.db = db
        self.bus = bus
        self.clock_ms = clock_ms
        self._closed = False
        self._active = False
        # El ultimo origen de audio vive en el SessionState del controlador
        self.state = state or SessionState(meeting_id, session_start_ms)
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._sender_task: asyncio.Task | None = None
        self._reader_task: asyncio.Task | None = None

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def start(self):
        await self.stream.connect()
        self._active = True
        self._sender_task = asyncio.create_task(self._send_loop())
        self._reader_task = asyncio.create_task(self._read_loop())
        self._reader_task.add_done_callback(self._on_reader_done)
        self.bus.publish(TranscriptionReady())

    def feed_audio(self, chunk: bytes, is_user: bool):
        if self._closed:
            return
        # Pista de hablante para el proximo evento, complementa la diarizacion
        self.state.last_audio_source_is_user = is_user
        if self._active:
            self._outbox.put_nowait(chunk)

    def on_recognition_event(self, event: RecognitionEvent) -> TranscriptSegment | None:
        if self._closed:
            return None

        text = (event.text or "").strip()
        if not text:
            return None

        timestamp_ms = max(0, self.clock_ms() - self.session_start_ms)
        index = event.diarization_index if event.diarization_index is not None else 0
        is_user = index == 0 or self.state.last_audio_source_is_user
        speaker = speaker_label(index, is_user)
        confidence = event.confidence if event.confidence is not None else 1.0

        segment_id = None
        if event.is_final:
            segment_id = self.db.insert_segment(
                self.meeting_id, speaker, text, timestamp_ms, is_user, confidence,
            )

        segment = TranscriptSegment(
            id=segment_id,
            meeting_id=self.meeting_id,
            speaker=speaker,
            text=text,
            timestamp_ms=timestamp_ms,
            is_user=is_user,
            confidence=confidence,
        )
        self.bus.publish(TranscriptSegmentReceived(segment=segment))
        return segment

    async def close(self):
        if self._closed:
            return
        self._closed = True
        self._active = False

        # Envia el audio pendiente antes de cerrar
        self._outbox.put_nowait(None)
        if self._sender_task is not None:
            await self._sender_task

        try:
            await self.stream.close()
        except StreamConnectionError as e:
            logger.warning("Error cerrando stream de la reunion %s: %s", self.meeting_id, e)
        finally:
            reader = self._reader_task
            if reader is not None and not reader.done():
                reader.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await reader
            self.bus.publish(TranscriptionStopped())

        logger.info("Transcripcion de la reunion %s finalizada", self.meeting_id)

    async def _send_loop(self):
        while True:
            chunk = await self._outbox.get()
            if chunk is None:
                return
            try:
                await self.stream.send(chunk)
            except StreamConnectionError as e:
                logger.error("Error enviando audio (reunion %s): %s", self.meeting_id, e)
                self._fail(str(e))
                return

    async def _read_loop(self):
        try:
            async for event in self.stream.events():
                self.on_recognition_event(event)
        except StreamConnectionError as e:
            logger.error("Conexion de transcripcion perdida (reunion %s): %s", self.meeting_id, e)
            self._fail(str(e))
            return

        if not self._closed:
            logger.warning("El proveedor cerro el stream de la reunion %s", self.meeting_id)
            self._fail("El proveedor de transcripcion cerro la conexion")

    def _on_reader_done(self, task: asyncio.Task):
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Error procesando transcripcion de la reunion %s: %s", self.meeting_id, exc)
            self._fail(str(exc))

    def _fail(self, message: str):
        # Sin reconexion automatica: hace falta un nuevo start()
        if self._closed or not self._active:
            return
        self._active = False
        self._outbox.put_nowait(None)
        self.bus.publish(TranscriptionError(message=message))
