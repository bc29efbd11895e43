import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Rutas
BASE_DIR = Path(__file__).parent
DATA_DIR = Path(os.getenv("MEETSCRIBE_DATA_DIR", BASE_DIR / "data"))
DB_PATH = DATA_DIR / "meetscribe.db"

# Servidor
HOST = "127.0.0.1"
PORT = int(os.getenv("MEETSCRIBE_PORT", "8787"))

# Audio
SAMPLE_RATE = 16000
CHANNELS = 1

# Deteccion de reuniones
DETECTION_POLL_SECS = float(os.getenv("MEETSCRIBE_POLL_SECS", "3.0"))

# Transcripcion en vivo (Deepgram)
DEEPGRAM_API_KEY = os.getenv("DEEPGRAM_API_KEY", "")
DEEPGRAM_URL = os.getenv("MEETSCRIBE_DEEPGRAM_URL", "wss://api.deepgram.com/v1/listen")
DEEPGRAM_MODEL = os.getenv("MEETSCRIBE_DEEPGRAM_MODEL", "nova-2")
DEEPGRAM_LANGUAGE = os.getenv("MEETSCRIBE_LANGUAGE", "en")

# LLM
LLM_PROVIDER = os.getenv("MEETSCRIBE_LLM_PROVIDER", "anthropic")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_MODEL = "claude-sonnet-4-20250514"
OLLAMA_MODEL = os.getenv("MEETSCRIBE_OLLAMA_MODEL", "llama3")
OLLAMA_URL = os.getenv("MEETSCRIBE_OLLAMA_URL", "http://localhost:11434")

# Dispositivos de audio (None = autodetectar)
LOOPBACK_DEVICE_INDEX = None
MIC_DEVICE_INDEX = None

DEFAULT_RECORDING_TITLE = "Manual Recording"
