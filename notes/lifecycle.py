"""Note lifecycle: every write to a note's status, text or analysis goes
through :class:`NoteManager`.

States and the triggers that move between them::

    (new) --create text-----------> draft
    (new) --create audio----------> processing
    processing --transcribed------> draft
    processing --transcription err-> error
    any --save--------------------> draft
    any --submit------------------> processing
    processing --analyzed---------> analyzed
    processing --analysis err-----> error

Transcriber and Analyzer failures never escape the manager on the
asynchronous legs: they are logged and written onto the note as
``status=error`` with the last good text left in place.

Concurrent writers are not serialized. Two submits on the same note race
and the last write wins.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum

from notes.errors import (
    AnalysisError,
    EmptyText,
    InvalidInput,
    NoteError,
    NotFound,
    TranscriptionError,
)
from notes.models import (
    PLACEHOLDER_TEXT,
    Analysis,
    Note,
    NotePatch,
    NoteSource,
    NoteStatus,
    utc_now,
    word_count,
)

logger = logging.getLogger(__name__)

ANY_STATUS = frozenset(NoteStatus)


class Trigger(Enum):
    SAVE = "save"
    SUBMIT = "submit"
    TRANSCRIBED = "transcribed"
    TRANSCRIPTION_FAILED = "transcription_failed"
    ANALYZED = "analyzed"
    ANALYSIS_FAILED = "analysis_failed"


# trigger -> (statuses it is expected from, resulting status)
TRANSITIONS: dict[Trigger, tuple[frozenset, NoteStatus]] = {
    Trigger.SAVE: (ANY_STATUS, NoteStatus.DRAFT),
    Trigger.SUBMIT: (ANY_STATUS, NoteStatus.PROCESSING),
    Trigger.TRANSCRIBED: (frozenset({NoteStatus.PROCESSING}), NoteStatus.DRAFT),
    Trigger.TRANSCRIPTION_FAILED: (frozenset({NoteStatus.PROCESSING}), NoteStatus.ERROR),
    Trigger.ANALYZED: (frozenset({NoteStatus.PROCESSING}), NoteStatus.ANALYZED),
    Trigger.ANALYSIS_FAILED: (frozenset({NoteStatus.PROCESSING}), NoteStatus.ERROR),
}


@dataclass
class AudioInput:
    data: bytes
    mime_type: str | None = None
    filename: str | None = None


def _require_text(text) -> str:
    if not isinstance(text, str) or not text.strip():
        raise EmptyText("El texto de la nota esta vacio")
    return text


class NoteManager:
    def __init__(self, store, transcriber, analyzer, collection: str = "transcriptions"):
        self.notes = store.collection(collection)
        self.transcriber = transcriber
        self.analyzer = analyzer
        self._pending: set[threading.Thread] = set()
        self._pending_lock = threading.Lock()

    # -- Reads --

    def get(self, note_id: str) -> Note:
        try:
            doc = self.notes.get(note_id)
        except NotFound:
            raise NotFound("Nota no encontrada") from None
        return Note.model_validate(doc)

    # -- Creation --

    def create(self, text: str | None = None, audio: AudioInput | None = None) -> str:
        """Create a note from typed text or from audio and return its id.

        The audio path returns as soon as the placeholder is stored; the
        transcript lands later on a background thread.
        """
        if (text is None) == (audio is None):
            raise InvalidInput("Se requiere exactamente uno de: texto o audio")

        if text is not None:
            return self._create_text(text)

        note_id = self._create_placeholder()
        self._run_in_background(self._transcribe_in_background, note_id, audio)
        return note_id

    def ingest_audio(self, audio: AudioInput) -> Note:
        """Create a note from audio and transcribe it before returning."""
        if audio is None or not audio.data:
            raise InvalidInput("Archivo de audio invalido")
        note_id = self._create_placeholder()
        self._transcribe(note_id, audio)
        return self.get(note_id)

    def _create_text(self, text: str) -> str:
        text = _require_text(text)
        now = utc_now()
        note_id = self.notes.add({
            "text": text,
            "textLower": text.lower(),
            "status": NoteStatus.DRAFT.value,
            "metadata": {"source": NoteSource.MANUAL.value, "wordCount": word_count(text)},
            "timestamp": now,
            "updatedAt": now,
        })
        logger.info("Nota creada desde texto: %s", note_id)
        return note_id

    def _create_placeholder(self) -> str:
        now = utc_now()
        note_id = self.notes.add({
            "text": PLACEHOLDER_TEXT,
            "textLower": PLACEHOLDER_TEXT.lower(),
            "status": NoteStatus.PROCESSING.value,
            "metadata": {
                "source": NoteSource.RECORDING.value,
                "wordCount": word_count(PLACEHOLDER_TEXT),
            },
            "timestamp": now,
            "updatedAt": now,
        })
        logger.info("Nota creada desde audio, pendiente de transcripcion: %s", note_id)
        return note_id

    # -- Transcription leg --

    def _transcribe(self, note_id: str, audio: AudioInput):
        try:
            result = self.transcriber.transcribe(audio.data, audio.mime_type)
            text = result.get("text")
            if not isinstance(text, str):
                raise TranscriptionError("La transcripcion no devolvio texto")
        except Exception as e:
            logger.error("Error transcribiendo %s: %s", note_id, e)
            self._apply_result(note_id, Trigger.TRANSCRIPTION_FAILED, NotePatch(error=str(e)))
            return

        self._apply_result(
            note_id,
            Trigger.TRANSCRIBED,
            NotePatch(text=text, source=NoteSource.RECORDING),
        )
        logger.info("Nota %s transcrita (%d palabras)", note_id, word_count(text))

    def _transcribe_in_background(self, note_id: str, audio: AudioInput):
        try:
            self._transcribe(note_id, audio)
        except NoteError as e:
            logger.error("No se pudo guardar la transcripcion de %s: %s", note_id, e)

    # -- Editing and analysis --

    def update_text(self, note_id: str, text: str, submit: bool = False) -> dict:
        """Rewrite a note's text and optionally submit it for analysis.

        Returns ``{"success": True, "analyzed": bool}``. An Analyzer failure
        is recorded on the note and reported through ``error`` in the result;
        it is not raised.
        """
        text = _require_text(text)
        current = self.get(note_id).status

        trigger = Trigger.SUBMIT if submit else Trigger.SAVE
        self._write(note_id, trigger, NotePatch(text=text, source=NoteSource.EDITED), current)
        if not submit:
            return {"success": True, "analyzed": False}

        try:
            self._run_analysis(note_id, text)
        except AnalysisError as e:
            return {"success": True, "analyzed": False, "error": e.message}
        return {"success": True, "analyzed": True}

    def analyze(self, note_id: str, text: str) -> Analysis:
        """Run the Analyzer on demand; failures are recorded and raised."""
        if not isinstance(text, str) or not text.strip():
            raise InvalidInput("Falta el texto a analizar")
        current = self.get(note_id).status
        self._write(note_id, Trigger.SUBMIT, NotePatch(), current)
        return self._run_analysis(note_id, text)

    def _run_analysis(self, note_id: str, text: str) -> Analysis:
        try:
            result = self.analyzer.analyze(text)
            strategy = result.get("strategy")
            if not isinstance(strategy, str) or not strategy.strip():
                raise AnalysisError("El analisis no devolvio una estrategia")
            model = result.get("model") or getattr(self.analyzer, "provider", None) or "unknown"
        except Exception as e:
            logger.error("Error analizando %s: %s", note_id, e)
            self._apply_result(note_id, Trigger.ANALYSIS_FAILED, NotePatch(error=str(e)))
            if isinstance(e, AnalysisError):
                raise
            raise AnalysisError(f"Fallo el analisis: {e}") from e

        analysis = Analysis(strategy=strategy, model=model, timestamp=utc_now())
        self._apply_result(note_id, Trigger.ANALYZED, NotePatch(analysis=analysis))
        logger.info("Nota %s analizada con %s", note_id, analysis.model)
        return analysis

    # -- Deletion --

    def delete(self, note_id: str):
        try:
            self.notes.delete(note_id)
        except NotFound:
            raise NotFound("Nota no encontrada") from None
        logger.info("Nota eliminada: %s", note_id)

    # -- Maintenance --

    def backfill_search_fields(self) -> dict:
        """Fill ``textLower`` and ``wordCount`` on notes written without them."""
        docs = self.notes.all()
        updated = 0
        errors = []
        for doc in docs:
            text = doc.get("text")
            if doc.get("textLower") or not isinstance(text, str) or text == PLACEHOLDER_TEXT:
                continue
            fields = {"textLower": text.lower(), "updatedAt": utc_now()}
            if (doc.get("metadata") or {}).get("wordCount") is None:
                fields["metadata.wordCount"] = word_count(text)
            try:
                self.notes.update(doc["id"], fields)
                updated += 1
            except NoteError as e:
                errors.append(f"Error actualizando {doc['id']}: {e.message}")

        logger.info("Backfill: %d/%d notas actualizadas", updated, len(docs))
        report = {
            "success": True,
            "totalDocuments": len(docs),
            "updatedCount": updated,
            "errorCount": len(errors),
        }
        if errors:
            report["errors"] = errors
        return report

    # -- Internals --

    def _write(self, note_id: str, trigger: Trigger, patch: NotePatch,
               current: NoteStatus | None = None):
        expected, target = TRANSITIONS[trigger]
        if current is not None and current not in expected:
            logger.warning(
                "Nota %s: '%s' llega en estado '%s'; se aplica igualmente",
                note_id, trigger.value, current.value,
            )
        patch.status = target
        patch.updatedAt = utc_now()
        if target is not NoteStatus.ERROR:
            patch.clear_error = True
        try:
            self.notes.update(note_id, patch.to_fields())
        except NotFound:
            raise NotFound("Nota no encontrada") from None

    def _apply_result(self, note_id: str, trigger: Trigger, patch: NotePatch):
        # The note may have been deleted while the external call was running.
        try:
            current = self.get(note_id).status
            self._write(note_id, trigger, patch, current)
        except NotFound:
            logger.warning("Nota %s eliminada antes de guardar '%s'", note_id, trigger.value)

    def _run_in_background(self, target, *args):
        def runner():
            try:
                target(*args)
            finally:
                with self._pending_lock:
                    self._pending.discard(threading.current_thread())

        thread = threading.Thread(target=runner, daemon=True)
        with self._pending_lock:
            self._pending.add(thread)
        thread.start()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Join background transcriptions; True if none are left running."""
        with self._pending_lock:
            threads = list(self._pending)
        for thread in threads:
            thread.join(timeout)
        with self._pending_lock:
            return not self._pending
