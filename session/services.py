import logging

import config
from db.database import Database
from processing.summarizer import LLMBackend, Summarizer
from processing.transcriber import DeepgramStream

logger = logging.getLogger(__name__)

# Claves editables desde /api/settings; sobreescriben las variables de entorno
SETTING_KEYS = (
    "deepgram_api_key",
    "deepgram_model",
    "language",
    "llm_provider",
    "anthropic_api_key",
    "ollama_url",
    "ollama_model",
)

SECRET_KEYS = ("deepgram_api_key", "anthropic_api_key")


def effective_settings(db: Database) -> dict[str, str]:
    settings = {
        "deepgram_api_key": config.DEEPGRAM_API_KEY,
        "deepgram_model": config.DEEPGRAM_MODEL,
        "language": config.DEEPGRAM_LANGUAGE,
        "llm_provider": config.LLM_PROVIDER,
        "anthropic_api_key": config.ANTHROPIC_API_KEY,
        "ollama_url": config.OLLAMA_URL,
        "ollama_model": config.OLLAMA_MODEL,
    }
    stored = db.get_settings()
    settings.update({k: v for k, v in stored.items() if k in SETTING_KEYS and v})
    return settings


def build_stream_factory(settings: dict[str, str]):
    api_key = settings.get("deepgram_api_key")
    if not api_key:
        return None

    def factory():
        return DeepgramStream(
            api_key=api_key,
            model=settings.get("deepgram_model"),
            language=settings.get("language"),
        )

    return factory


def build_summarizer(settings: dict[str, str]) -> Summarizer | None:
    provider = settings.get("llm_provider") or "anthropic"
    api_key = settings.get("anthropic_api_key")
    if provider == "anthropic" and not api_key:
        return None
    return Summarizer(LLMBackend(
        provider=provider,
        api_key=api_key,
        model=config.ANTHROPIC_MODEL,
        ollama_url=settings.get("ollama_url"),
        ollama_model=settings.get("ollama_model"),
    ))


def configure_services(db: Database, controller) -> dict[str, str]:
    settings = effective_settings(db)
    stream_factory = build_stream_factory(settings)
    summarizer = build_summarizer(settings)
    controller.configure(stream_factory, summarizer)

    if stream_factory is None:
        logger.warning("Sin DEEPGRAM_API_KEY: la grabacion no estara disponible")
    if summarizer is None:
        logger.warning("Sin backend de resumen configurado")
    return settings
