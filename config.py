import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Rutas
BASE_DIR = Path(__file__).parent
DATA_DIR = Path(os.getenv("STRATEGYSCRIBE_DATA_DIR", str(BASE_DIR / "data")))
DB_PATH = DATA_DIR / "strategyscribe.db"

# Servidor
HOST = os.getenv("STRATEGYSCRIBE_HOST", "127.0.0.1")
PORT = int(os.getenv("STRATEGYSCRIBE_PORT", "8787"))

# Colecciones
NOTES_COLLECTION = "transcriptions"
CARDS_COLLECTION = "businessCards"

# Whisper
WHISPER_MODEL = os.getenv("STRATEGYSCRIBE_WHISPER_MODEL", "medium")
WHISPER_LANGUAGE = os.getenv("STRATEGYSCRIBE_LANGUAGE") or None  # None = autodetectar

# LLM
LLM_PROVIDER = os.getenv("STRATEGYSCRIBE_LLM_PROVIDER", "ollama")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_MODEL = os.getenv("STRATEGYSCRIBE_ANTHROPIC_MODEL", "claude-sonnet-4-5-20250929")
OLLAMA_MODEL = os.getenv("STRATEGYSCRIBE_OLLAMA_MODEL", "llama3")
OLLAMA_VISION_MODEL = os.getenv("STRATEGYSCRIBE_OLLAMA_VISION_MODEL", "llava")
OLLAMA_URL = os.getenv("STRATEGYSCRIBE_OLLAMA_URL", "http://localhost:11434")

# Busqueda
DEFAULT_PAGE_SIZE = 10

# Mantenimiento (vacio = sin proteccion)
MAINTENANCE_SECRET = os.getenv("STRATEGYSCRIBE_MAINTENANCE_SECRET", "")
