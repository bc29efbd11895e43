"""Notificaciones tipadas que el nucleo emite hacia la interfaz.

Los componentes publican eventos (dataclasses inmutables) en un ``EventBus``;
los consumidores se suscriben por tipo de evento y conservan la funcion de
desuscripcion mientras vivan.
"""
import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Callable, ClassVar

from session.models import TranscriptSegment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    name: ClassVar[str] = "event"

    def to_message(self) -> dict:
        return {"type": self.name, **asdict(self)}


@dataclass(frozen=True)
class MeetingStarted(Event):
    name: ClassVar[str] = "meeting-started"
    app_name: str


@dataclass(frozen=True)
class MeetingEnded(Event):
    name: ClassVar[str] = "meeting-ended"


@dataclass(frozen=True)
class RecordingStarted(Event):
    name: ClassVar[str] = "recording-started"
    meeting_id: int
    title: str


@dataclass(frozen=True)
class RecordingStopped(Event):
    name: ClassVar[str] = "recording-stopped"
    meeting_id: int


@dataclass(frozen=True)
class TranscriptSegmentReceived(Event):
    name: ClassVar[str] = "transcript-segment"
    segment: TranscriptSegment

    def to_message(self) -> dict:
        return {"type": self.name, **self.segment.to_dict()}


@dataclass(frozen=True)
class TranscriptionReady(Event):
    name: ClassVar[str] = "transcription-ready"


@dataclass(frozen=True)
class TranscriptionStopped(Event):
    name: ClassVar[str] = "transcription-stopped"


@dataclass(frozen=True)
class TranscriptionError(Event):
    name: ClassVar[str] = "transcription-error"
    message: str


Handler = Callable[[Event], None]


class EventBus:
    def __init__(self):
        self._handlers: dict[type, list[Handler]] = defaultdict(list)
        self._catch_all: list[Handler] = []

    def subscribe(self, event_type: type, handler: Handler) -> Callable[[], None]:
        self._handlers[event_type].append(handler)

        def unsubscribe():
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

        return unsubscribe

    def subscribe_all(self, handler: Handler) -> Callable[[], None]:
        self._catch_all.append(handler)

        def unsubscribe():
            if handler in self._catch_all:
                self._catch_all.remove(handler)

        return unsubscribe

    def publish(self, event: Event):
        handlers = list(self._handlers.get(type(event), ())) + list(self._catch_all)
        for handler in handlers:
            # Un listener roto no debe interrumpir la maquina de estados
            try:
                handler(event)
            except Exception:
                logger.exception("Error en handler de %s", event.name)
