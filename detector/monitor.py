import asyncio
import logging

import config
from detector.apps import FALLBACK_RULES, MEETING_APPS, match_processes, match_windows
from detector.probe import ActivityProbe
from session.events import EventBus, MeetingEnded, MeetingStarted

logger = logging.getLogger(__name__)


class MeetingActivityMonitor:
    def __init__(self, probe: ActivityProbe, bus: EventBus,
                 interval_secs: float = None,
                 registry=MEETING_APPS, fallback_rules=FALLBACK_RULES):
        self.probe = probe
        self.bus = bus
        self.interval_secs = interval_secs if interval_secs is not None else config.DETECTION_POLL_SECS
        self.registry = registry
        self.fallback_rules = fallback_rules
        self._last_detected_app: str | None = None
        self._task: asyncio.Task | None = None

    @property
    def current_app(self) -> str | None:
        return self._last_detected_app

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.is_running():
            return
        self._task = asyncio.create_task(self._poll_loop(), name="meeting-activity-monitor")
        logger.info("Deteccion de reuniones activa (cada %.1fs)", self.interval_secs)

    async def stop(self):
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Deteccion de reuniones detenida")

    async def _poll_loop(self):
        while True:
            await self.check()
            await asyncio.sleep(self.interval_secs)

    async def check(self) -> str | None:
        """Ejecuta un tick de deteccion y emite eventos solo en los cambios de estado."""
        try:
            detected = await self._detect()
        except Exception as e:
            logger.error("Error detectando reuniones: %s", e)
            detected = None

        previous = self._last_detected_app
        self._last_detected_app = detected

        if detected is not None and previous is None:
            logger.info("Reunion detectada: %s", detected)
            self.bus.publish(MeetingStarted(app_name=detected))
        elif detected is None and previous is not None:
            logger.info("Reunion finalizada: %s", previous)
            self.bus.publish(MeetingEnded())
        return detected

    async def _detect(self) -> str | None:
        try:
            windows = await self.probe.list_windows()
        except Exception as e:
            logger.debug("Listado de ventanas fallo (%s), usando procesos", e)
            return await self._detect_by_process()
        return match_windows(windows, self.registry)

    async def _detect_by_process(self) -> str | None:
        try:
            processes = await self.probe.list_processes()
        except Exception as e:
            logger.warning("Listado de procesos fallo: %s", e)
            return None
        return match_processes(processes, self.fallback_rules)
