import logging
import os
import tempfile

from notes.errors import TranscriptionError

logger = logging.getLogger(__name__)

_model_cache = {}

_SUFFIXES = {
    "audio/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/mp4": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/flac": ".flac",
}


def suffix_for(mime_type: str | None) -> str:
    if not mime_type:
        return ".webm"
    return _SUFFIXES.get(mime_type.split(";")[0].strip().lower(), ".webm")


class Transcriber:
    def __init__(self, model_size: str = "medium", language: str | None = None):
        self.model_size = model_size
        self.language = language
        self._model = None

    def _load_model(self):
        if self.model_size in _model_cache:
            self._model = _model_cache[self.model_size]
            return

        from faster_whisper import WhisperModel

        # Detect best device
        device = "cpu"
        compute_type = "int8"
        try:
            import torch
            if torch.cuda.is_available():
                device = "cuda"
                compute_type = "float16"
        except ImportError:
            pass

        logger.info(
            "Cargando modelo Whisper '%s' en %s (compute_type=%s)...",
            self.model_size, device, compute_type,
        )
        self._model = WhisperModel(
            self.model_size,
            device=device,
            compute_type=compute_type,
        )
        _model_cache[self.model_size] = self._model
        logger.info("Modelo Whisper cargado")

    @property
    def is_loaded(self) -> bool:
        return self._model is not None or self.model_size in _model_cache

    def transcribe(self, audio_bytes: bytes, mime_type: str | None = None) -> dict:
        if not audio_bytes:
            raise TranscriptionError("El archivo de audio esta vacio")

        fd, tmp_path = tempfile.mkstemp(suffix=suffix_for(mime_type))
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(audio_bytes)

            if self._model is None:
                self._load_model()

            logger.info("Transcribiendo %d bytes (%s)...", len(audio_bytes), mime_type)
            segments, info = self._model.transcribe(
                tmp_path,
                language=self.language,
                beam_size=5,
                vad_filter=True,
            )
            text = " ".join(segment.text.strip() for segment in segments).strip()
        except TranscriptionError:
            raise
        except Exception as e:
            raise TranscriptionError(f"Fallo la transcripcion: {e}") from e
        finally:
            os.unlink(tmp_path)

        logger.info("Transcripcion completada: %d caracteres", len(text))
        return {
            "text": text,
            "language": info.language,
            "duration_secs": round(info.duration),
        }
