import json
import logging
from typing import AsyncIterator
from urllib.parse import urlencode

import aiohttp

import config
from session.errors import StreamConnectionError
from session.models import RecognitionEvent

logger = logging.getLogger(__name__)


class TranscriptStream:
    """Canal bidireccional: recibe audio y produce eventos de reconocimiento."""

    async def connect(self):
        raise NotImplementedError

    async def send(self, chunk: bytes):
        raise NotImplementedError

    def events(self) -> AsyncIterator[RecognitionEvent]:
        raise NotImplementedError

    async def close(self):
        raise NotImplementedError


def parse_results(message: dict) -> RecognitionEvent | None:
    """Convierte un mensaje 'Results' de Deepgram en un RecognitionEvent.

    El indice de diarizacion es el hablante de la primera palabra; los
    mensajes de otro tipo (Metadata, SpeechStarted, UtteranceEnd) se ignoran.
    """
    if message.get("type") != "Results":
        return None

    alternatives = (message.get("channel") or {}).get("alternatives") or []
    if not alternatives:
        return None

    best = alternatives[0]
    words = best.get("words") or []
    speaker = words[0].get("speaker") if words else None

    return RecognitionEvent(
        text=(best.get("transcript") or "").strip(),
        is_final=bool(message.get("is_final")),
        diarization_index=speaker,
        confidence=best.get("confidence"),
    )


class DeepgramStream(TranscriptStream):
    def __init__(self, api_key: str, model: str = None, language: str = None,
                 sample_rate: int = None, url: str = None):
        self.api_key = api_key
        self.model = model or config.DEEPGRAM_MODEL
        self.language = language or config.DEEPGRAM_LANGUAGE
        self.sample_rate = sample_rate or config.SAMPLE_RATE
        self.url = url or config.DEEPGRAM_URL
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    def build_url(self) -> str:
        params = {
            "model": self.model,
            "language": self.language,
            "smart_format": "true",
            "punctuate": "true",
            "diarize": "true",
            "interim_results": "true",
            "utterance_end_ms": 1000,
            "vad_events": "true",
            "encoding": "linear16",
            "sample_rate": self.sample_rate,
            "channels": config.CHANNELS,
        }
        return f"{self.url}?{urlencode(params)}"

    async def connect(self):
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(
                self.build_url(),
                headers={"Authorization": f"Token {self.api_key}"},
            )
        except aiohttp.ClientError as e:
            await self._session.close()
            self._session = None
            raise StreamConnectionError(f"No se pudo conectar con Deepgram: {e}") from e
        logger.info("Conexion con Deepgram abierta (modelo=%s, idioma=%s)", self.model, self.language)

    async def send(self, chunk: bytes):
        ws = self._ws
        if ws is None or ws.closed:
            raise StreamConnectionError("La conexion con Deepgram no esta abierta")
        try:
            await ws.send_bytes(chunk)
        except (aiohttp.ClientError, ConnectionResetError) as e:
            raise StreamConnectionError(f"Error enviando audio a Deepgram: {e}") from e

    async def events(self) -> AsyncIterator[RecognitionEvent]:
        ws = self._ws
        if ws is None:
            raise StreamConnectionError("La conexion con Deepgram no esta abierta")

        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    data = json.loads(msg.data)
                except ValueError:
                    logger.warning("Mensaje de Deepgram no es JSON valido: %.200s", msg.data)
                    continue
                event = parse_results(data)
                if event is not None:
                    yield event
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise StreamConnectionError(f"Error en la conexion con Deepgram: {ws.exception()}")

    async def close(self):
        ws, self._ws = self._ws, None
        session, self._session = self._session, None
        try:
            if ws is not None and not ws.closed:
                try:
                    await ws.send_str(json.dumps({"type": "CloseStream"}))
                except (aiohttp.ClientError, ConnectionResetError) as e:
                    logger.warning("No se pudo enviar CloseStream a Deepgram: %s", e)
                await ws.close()
        finally:
            if session is not None:
                await session.close()
        logger.info("Conexion con Deepgram cerrada")
