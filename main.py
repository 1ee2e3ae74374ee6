import logging
import socket
import sys
import threading

import uvicorn

import config
from db.database import DocumentStore
from notes.errors import StoreError
from notes.lifecycle import NoteManager
from notes.search import SearchEngine
from processing.analyzer import Analyzer
from processing.business_card import BusinessCardReader
from processing.transcriber import Transcriber
from server.app import create_app
from server.relay import NoteRelay

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("strategyscribe")


def find_available_port(start: int, end: int) -> int:
    for port in range(start, end + 1):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            try:
                s.bind((config.HOST, port))
                return port
            except OSError:
                continue
    raise RuntimeError(f"No se encontro un puerto disponible entre {start} y {end}")


def main():
    config.DATA_DIR.mkdir(parents=True, exist_ok=True)

    # Find available port
    try:
        port = find_available_port(config.PORT, config.PORT + 13)
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)

    if port != config.PORT:
        logger.info("Puerto %d en uso, usando %d", config.PORT, port)
    config.PORT = port

    # Initialize components
    store = DocumentStore(config.DB_PATH)
    try:
        store.open()
    except StoreError as e:
        logger.error(e.message)
        sys.exit(1)

    transcriber = Transcriber(
        model_size=config.WHISPER_MODEL,
        language=config.WHISPER_LANGUAGE,
    )
    analyzer = Analyzer(
        provider=config.LLM_PROVIDER,
        api_key=config.ANTHROPIC_API_KEY,
        model=config.ANTHROPIC_MODEL,
        ollama_url=config.OLLAMA_URL,
        ollama_model=config.OLLAMA_MODEL,
    )
    card_reader = BusinessCardReader(
        provider=config.LLM_PROVIDER,
        api_key=config.ANTHROPIC_API_KEY,
        model=config.ANTHROPIC_MODEL,
        ollama_url=config.OLLAMA_URL,
        ollama_model=config.OLLAMA_VISION_MODEL,
    )
    manager = NoteManager(store, transcriber, analyzer, collection=config.NOTES_COLLECTION)
    search = SearchEngine(store, collection=config.NOTES_COLLECTION)
    relay = NoteRelay()

    # Load Whisper model in background
    def preload_whisper():
        try:
            logger.info("Pre-cargando modelo Whisper en background...")
            transcriber._load_model()
        except Exception as e:
            logger.warning("No se pudo pre-cargar Whisper: %s", e)

    threading.Thread(target=preload_whisper, daemon=True).start()

    app = create_app(store, manager, search, card_reader, relay)

    server_config = uvicorn.Config(
        app,
        host=config.HOST,
        port=config.PORT,
        log_level="warning",
    )
    server = uvicorn.Server(server_config)

    logger.info("StrategyScribe iniciado en http://%s:%d", config.HOST, config.PORT)
    try:
        server.run()
    except KeyboardInterrupt:
        pass
    finally:
        logger.info("Cerrando StrategyScribe...")
        if not manager.wait_idle(timeout=10):
            logger.warning("Quedaron transcripciones en curso al cerrar")
        search.close()
        store.close()


if __name__ == "__main__":
    main()
