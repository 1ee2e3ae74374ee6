"""Library listing and prefix search over notes.

An empty query is a plain newest-first listing with offset pagination. A
non-empty query runs two "starts with" range queries at the same time, one
over ``textLower`` and one over ``analysis.strategy``, and merges them.

The merged mode only ever looks at the first ``page_size`` hits of each
query, so asking for page 2 of a search returns the same window as page 1.
``hasMore`` is an estimate there, good enough to decide whether to show a
"more" button but not a cursor.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from pydantic import ValidationError

from notes.errors import NoteError
from notes.models import MatchType, Note, SearchHit, SearchPage

logger = logging.getLogger(__name__)

# Highest code point; sorts after any realistic input in SQLite's BINARY collation.
HIGH_SENTINEL = "\U0010ffff"

MAX_PAGE_SIZE = 50

SEARCH_UNAVAILABLE = (
    "La busqueda no esta disponible en este momento ({detail}). "
    "Reintenta en unos segundos o revisa la base de datos."
)


def clamp_paging(page, page_size) -> tuple[int, int]:
    return max(1, int(page)), min(MAX_PAGE_SIZE, max(1, int(page_size)))


def prefix_range(field: str, prefix: str) -> tuple[str, str, str]:
    return field, prefix, prefix + HIGH_SENTINEL


def to_note(doc: dict) -> Note | None:
    """Validate a stored document, or log and return None if it is not a note."""
    try:
        return Note.model_validate(doc)
    except ValidationError as e:
        logger.warning("Documento %s ignorado, no es una nota valida: %s", doc.get("id"), e)
        return None


def merge_hits(text_docs: list[dict], analysis_docs: list[dict]) -> list[SearchHit]:
    """Dedupe two result lists by id, tagging where each note matched."""
    merged: dict[str, SearchHit] = {}
    for doc in text_docs:
        note = to_note(doc)
        if note is not None:
            merged[note.id] = SearchHit(note=note, matchType=MatchType.TEXT)
    for doc in analysis_docs:
        hit = merged.get(doc["id"])
        if hit is not None:
            hit.matchType = MatchType.BOTH
            continue
        note = to_note(doc)
        if note is not None:
            merged[note.id] = SearchHit(note=note, matchType=MatchType.ANALYSIS)
    return sorted(merged.values(), key=lambda h: h.note.timestamp, reverse=True)


class SearchEngine:
    def __init__(self, store, collection: str = "transcriptions", max_workers: int = 2):
        self.notes = store.collection(collection)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="search")

    def close(self):
        self._executor.shutdown(wait=True)

    def search(self, page: int = 1, page_size: int = 10, query: str = "") -> SearchPage:
        """Return one page of notes, newest first, optionally filtered by prefix.

        The query is lower-cased for both prefix ranges, so an analysis whose
        strategy starts with a capital letter is only found through its text.
        Documents that do not validate as notes are skipped.
        """
        page, page_size = clamp_paging(page, page_size)
        query = (query or "").strip()
        try:
            if not query:
                items, has_more = self._list(page, page_size)
            else:
                items, has_more = self._search(page, page_size, query)
        except NoteError as e:
            logger.error("Error en la busqueda (q=%r, pagina %d): %s", query, page, e)
            return SearchPage(
                items=[], hasMore=False, page=page, pageSize=page_size,
                error=SEARCH_UNAVAILABLE.format(detail=e.message),
            )
        return SearchPage(items=items, hasMore=has_more, page=page, pageSize=page_size)

    def _list(self, page: int, page_size: int) -> tuple[list[SearchHit], bool]:
        # One extra row tells us whether another page exists.
        docs = self.notes.query(
            "timestamp", "desc", limit=page_size + 1, offset=(page - 1) * page_size,
        )
        notes = (to_note(doc) for doc in docs[:page_size])
        items = [SearchHit(note=note) for note in notes if note is not None]
        return items, len(docs) > page_size

    def _search(self, page: int, page_size: int, query: str) -> tuple[list[SearchHit], bool]:
        prefix = query.lower()
        text_future = self._executor.submit(
            self.notes.query,
            "textLower", "asc",
            range_filter=prefix_range("textLower", prefix),
            limit=page_size,
            then_by=("timestamp", "desc"),
        )
        analysis_future = self._executor.submit(
            self.notes.query,
            "analysis.strategy", "asc",
            range_filter=prefix_range("analysis.strategy", prefix),
            limit=page_size,
        )
        merged = merge_hits(text_future.result(), analysis_future.result())
        logger.debug("Busqueda %r: %d coincidencias unicas", query, len(merged))
        return merged[:page_size], len(merged) > page * page_size
