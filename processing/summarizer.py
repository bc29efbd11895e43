import json
import logging

import requests

import config
from processing.prompts import (
    ACTION_ITEMS_PROMPT,
    ACTION_ITEMS_SYSTEM_PROMPT,
    CONSOLIDATION_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
    SUMMARY_USER_PROMPT,
)
from session.models import TranscriptSegment

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_CHARS = 100_000
EMPTY_TRANSCRIPT_SUMMARY = "No transcript available."


def format_timestamp(timestamp_ms: int) -> str:
    minutes, seconds = divmod(timestamp_ms // 1000, 60)
    return f"{minutes:02d}:{seconds:02d}"


def format_transcript(transcript: list[TranscriptSegment]) -> str:
    return "\n".join(
        f"[{format_timestamp(seg.timestamp_ms)}] {seg.speaker}: {seg.text}"
        for seg in transcript
    )


class LLMBackend:
    def __init__(self, provider: str = "anthropic", api_key: str = None,
                 model: str = None, ollama_url: str = None, ollama_model: str = None):
        self.provider = provider
        self.api_key = api_key
        self.model = model
        self.ollama_url = ollama_url or "http://localhost:11434"
        self.ollama_model = ollama_model or "llama3"

    def complete(self, prompt: str, max_tokens: int = 2048,
                 system: str | None = SUMMARY_SYSTEM_PROMPT) -> str:
        if self.provider == "anthropic" and self.api_key:
            return self._call_anthropic(prompt, max_tokens, system)

        if self.provider == "ollama" or not self.api_key:
            try:
                return self._call_ollama(prompt, system)
            except Exception as e:
                if self.api_key:
                    logger.warning("Ollama fallo (%s), intentando con Anthropic...", e)
                    return self._call_anthropic(prompt, max_tokens, system)
                raise

        return self._call_anthropic(prompt, max_tokens, system)

    def _call_anthropic(self, prompt: str, max_tokens: int, system: str | None) -> str:
        import anthropic

        client = anthropic.Anthropic(api_key=self.api_key)
        kwargs = {"system": system} if system else {}
        message = client.messages.create(
            model=self.model or config.ANTHROPIC_MODEL,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
            **kwargs,
        )
        for block in message.content:
            if block.type == "text":
                return block.text
        raise ValueError("La respuesta de Anthropic no contiene texto")

    def _call_ollama(self, prompt: str, system: str | None) -> str:
        payload = {"model": self.ollama_model, "prompt": prompt, "stream": False}
        if system:
            payload["system"] = system
        response = requests.post(
            f"{self.ollama_url}/api/generate",
            json=payload,
            timeout=300,
        )
        response.raise_for_status()
        return response.json()["response"]


class Summarizer:
    def __init__(self, backend):
        self.backend = backend

    def summarize(self, transcript: list[TranscriptSegment]) -> str:
        if not transcript:
            return EMPTY_TRANSCRIPT_SUMMARY

        formatted = format_transcript(transcript)
        if len(formatted) > MAX_TRANSCRIPT_CHARS:
            summary = self._summarize_long(formatted)
        else:
            summary = self.backend.complete(
                SUMMARY_USER_PROMPT.format(transcript=formatted), system=SUMMARY_SYSTEM_PROMPT,
            )

        logger.info("Resumen generado (%d segmentos)", len(transcript))
        return summary

    def _summarize_long(self, formatted: str) -> str:
        # Corta por lineas para no partir un segmento a la mitad
        chunks, current, size = [], [], 0
        for line in formatted.split("\n"):
            if current and size + len(line) + 1 > MAX_TRANSCRIPT_CHARS:
                chunks.append("\n".join(current))
                current, size = [], 0
            current.append(line)
            size += len(line) + 1
        if current:
            chunks.append("\n".join(current))

        partial_summaries = []
        for idx, chunk in enumerate(chunks):
            logger.info("Resumiendo parte %d/%d...", idx + 1, len(chunks))
            partial_summaries.append(self.backend.complete(
                SUMMARY_USER_PROMPT.format(transcript=chunk), system=SUMMARY_SYSTEM_PROMPT,
            ))

        if len(partial_summaries) == 1:
            return partial_summaries[0]

        combined = "\n\n---\n\n".join(partial_summaries)
        return self.backend.complete(
            CONSOLIDATION_PROMPT.format(partials=combined), system=SUMMARY_SYSTEM_PROMPT,
        )

    def extract_action_items(self, transcript: list[TranscriptSegment]) -> list[str]:
        if not transcript:
            return []

        formatted = "\n".join(f"{seg.speaker}: {seg.text}" for seg in transcript)
        try:
            response = self.backend.complete(
                ACTION_ITEMS_PROMPT.format(transcript=formatted),
                max_tokens=1024,
                system=ACTION_ITEMS_SYSTEM_PROMPT,
            )
        except Exception as e:
            logger.error("Error extrayendo action items: %s", e)
            return []

        try:
            items = json.loads(response.strip())
        except ValueError:
            logger.warning("Respuesta de action items no es JSON valido")
            return []

        if not isinstance(items, list) or not all(isinstance(item, str) for item in items):
            logger.warning("Respuesta de action items no es una lista de textos")
            return []
        return items
