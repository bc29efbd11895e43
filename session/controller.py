import asyncio
import logging
from typing import Callable

from db.database import Database
from processing.stream_processor import TranscriptStreamProcessor
from processing.summarizer import Summarizer
from processing.transcriber import TranscriptStream
from session.errors import StreamUnavailable
from session.events import EventBus, MeetingEnded, RecordingStarted, RecordingStopped
from session.models import RecordingState, RecordingStatus, SessionState, wall_clock_ms

logger = logging.getLogger(__name__)

StreamFactory = Callable[[], TranscriptStream]


class RecordingSessionController:
    """Maquina de estados IDLE/RECORDING con una unica sesion activa.

    Todos los disparadores (API, bandeja, deteccion de reuniones) pasan por
    start()/stop(), serializados con un asyncio.Lock en el mismo event loop.
    """

    def __init__(self, db: Database, bus: EventBus,
                 stream_factory: StreamFactory | None = None,
                 summarizer: Summarizer | None = None,
                 clock_ms: Callable[[], int] = wall_clock_ms):
        self.db = db
        self.bus = bus
        self.stream_factory = stream_factory
        self.summarizer = summarizer
        self.clock_ms = clock_ms
        self._state = SessionState()
        self._processor: TranscriptStreamProcessor | None = None
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe = bus.subscribe(MeetingEnded, self._on_meeting_ended)

    @property
    def state(self) -> RecordingState:
        if self._state.active_meeting_id is None:
            return RecordingState.IDLE
        return RecordingState.RECORDING

    def configure(self, stream_factory: StreamFactory | None, summarizer: Summarizer | None):
        # La sesion activa conserva su stream; el cambio aplica al proximo start()
        self.stream_factory = stream_factory
        self.summarizer = summarizer

    def current_status(self) -> RecordingStatus:
        return RecordingStatus(
            is_recording=self.state is RecordingState.RECORDING,
            active_meeting_id=self._state.active_meeting_id,
        )

    async def start(self, title: str) -> int | None:
        async with self._lock:
            if self.state is RecordingState.RECORDING:
                logger.info("Ya hay una grabacion en curso (reunion %s)", self._state.active_meeting_id)
                return None

            if self.stream_factory is None:
                raise StreamUnavailable("No hay backend de transcripcion configurado")

            meeting_id = self.db.create_meeting(title)
            self._state.active_meeting_id = meeting_id
            self._state.session_start_ms = self.clock_ms()

            processor = TranscriptStreamProcessor(
                meeting_id,
                self._state.session_start_ms,
                self.stream_factory(),
                self.db,
                self.bus,
                clock_ms=self.clock_ms,
                state=self._state,
            )
            try:
                await processor.start()
            except Exception:
                # Sin stream no hay sesion: se cierra la reunion recien creada
                logger.error("No se pudo iniciar la transcripcion de la reunion %s", meeting_id)
                self.db.end_meeting(meeting_id)
                self._state.clear()
                raise

            self._processor = processor
            logger.info("Grabacion iniciada: reunion %s (%s)", meeting_id, title)
            self.bus.publish(RecordingStarted(meeting_id=meeting_id, title=title))
            return meeting_id

    async def stop(self) -> int | None:
        async with self._lock:
            if self.state is RecordingState.IDLE:
                return None

            meeting_id = self._state.active_meeting_id
            processor, self._processor = self._processor, None
            try:
                await processor.close()
            except Exception as e:
                logger.error("Error cerrando la transcripcion de la reunion %s: %s", meeting_id, e)
            finally:
                self.db.end_meeting(meeting_id)
                self._state.clear()

            logger.info("Grabacion detenida: reunion %s", meeting_id)
            self.bus.publish(RecordingStopped(meeting_id=meeting_id))

        self._spawn(self._summarize(meeting_id))
        return meeting_id

    def feed_audio(self, chunk: bytes, is_user: bool):
        processor = self._processor
        if processor is None:
            return
        processor.feed_audio(chunk, is_user)

    async def wait_for_background_tasks(self):
        # Un stop() automatico puede lanzar a su vez la tarea de resumen
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def shutdown(self):
        self._unsubscribe()
        await self.stop()
        await self.wait_for_background_tasks()

    async def _summarize(self, meeting_id: int):
        summarizer = self.summarizer
        if summarizer is None:
            logger.info("Sin backend de resumen configurado, reunion %s sin resumen", meeting_id)
            return

        try:
            transcript = self.db.get_transcript(meeting_id)
            if not transcript:
                logger.info("Reunion %s sin transcripcion, se omite el resumen", meeting_id)
                return
            summary = await asyncio.to_thread(summarizer.summarize, transcript)
            self.db.set_summary(meeting_id, summary)
            logger.info("Resumen guardado para la reunion %s", meeting_id)
        except Exception as e:
            logger.error("Error generando resumen de la reunion %s: %s", meeting_id, e)

    def _on_meeting_ended(self, event: MeetingEnded):
        if self.state is not RecordingState.RECORDING:
            return
        logger.info("La reunion termino, deteniendo grabacion")
        task = self._spawn(self.stop())
        task.add_done_callback(self._log_task_error)

    @staticmethod
    def _log_task_error(task: asyncio.Task):
        if not task.cancelled() and task.exception() is not None:
            logger.error("Error deteniendo grabacion automaticamente: %s", task.exception())
