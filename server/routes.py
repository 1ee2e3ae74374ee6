import logging

from fastapi import APIRouter, BackgroundTasks, File, Header, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import config
from db.database import DocumentStore
from notes.errors import NoteError
from notes.lifecycle import AudioInput, NoteManager
from notes.models import NoteStatus
from notes.search import SearchEngine
from processing.business_card import BusinessCardReader, process_business_card
from server.relay import NoteRelay

logger = logging.getLogger(__name__)


class CreateNoteRequest(BaseModel):
    text: str


class UpdateNoteRequest(BaseModel):
    text: str
    submit: bool = False


class AnalyzeRequest(BaseModel):
    text: str


class BusinessCardRequest(BaseModel):
    imageData: str


def _http_error(e: NoteError) -> HTTPException:
    return HTTPException(e.status_code, e.message)


def create_router(store: DocumentStore, manager: NoteManager, search: SearchEngine,
                  card_reader: BusinessCardReader, relay: NoteRelay) -> APIRouter:
    router = APIRouter()
    cards = store.collection(config.CARDS_COLLECTION)

    # -- Status --

    @router.get("/status")
    def get_status():
        transcriber = manager.transcriber
        return {
            "store": store.is_open,
            "whisper_model_loaded": getattr(transcriber, "is_loaded", False),
            "llm_provider": getattr(manager.analyzer, "provider", None),
            "relay_clients": len(relay.active_connections),
        }

    # -- Notes --

    @router.post("/notes")
    def create_note(body: CreateNoteRequest, background_tasks: BackgroundTasks,
                    x_client_id: str | None = Header(None)):
        try:
            note_id = manager.create(text=body.text)
            note = manager.get(note_id)
        except NoteError as e:
            raise _http_error(e)

        background_tasks.add_task(
            relay.notify, "newTranscription", note.model_dump(mode="json", exclude_none=True),
            exclude=x_client_id,
        )
        return {"id": note_id, "text": note.text, "saved": True}

    @router.post("/notes/audio")
    def create_audio_note(background_tasks: BackgroundTasks, file: UploadFile = File(...),
                          x_client_id: str | None = Header(None)):
        data = file.file.read()
        if not data:
            raise HTTPException(400, "Archivo de audio invalido")

        try:
            note = manager.ingest_audio(
                AudioInput(data=data, mime_type=file.content_type, filename=file.filename)
            )
        except NoteError as e:
            raise _http_error(e)

        background_tasks.add_task(
            relay.notify, "newTranscription", note.model_dump(mode="json", exclude_none=True),
            exclude=x_client_id,
        )
        if note.status is NoteStatus.ERROR:
            return JSONResponse(
                status_code=500,
                content={"error": "Fallo la transcripcion", "details": note.error, "id": note.id},
            )
        return {"id": note.id, "text": note.text, "saved": True}

    @router.get("/notes")
    def list_notes(page: int = 1,
                   page_size: int = Query(config.DEFAULT_PAGE_SIZE, alias="pageSize"),
                   query: str = ""):
        result = search.search(page=page, page_size=page_size, query=query)
        response = {
            "items": [hit.to_dict() for hit in result.items],
            "hasMore": result.hasMore,
            "page": result.page,
            "pageSize": result.pageSize,
        }
        if result.error:
            response["error"] = result.error
        return response

    @router.get("/notes/{note_id}")
    def get_note(note_id: str):
        try:
            note = manager.get(note_id)
        except NoteError as e:
            raise _http_error(e)
        return note.model_dump(mode="json", exclude_none=True)

    @router.put("/notes/{note_id}")
    def update_note(note_id: str, body: UpdateNoteRequest):
        try:
            return manager.update_text(note_id, body.text, submit=body.submit)
        except NoteError as e:
            raise _http_error(e)

    @router.delete("/notes/{note_id}")
    def delete_note(note_id: str, background_tasks: BackgroundTasks,
                    x_client_id: str | None = Header(None)):
        try:
            manager.delete(note_id)
        except NoteError as e:
            raise _http_error(e)

        background_tasks.add_task(relay.notify, "deleteTranscription", note_id, exclude=x_client_id)
        return {"success": True}

    @router.post("/notes/{note_id}/analyze")
    def analyze_note(note_id: str, body: AnalyzeRequest):
        try:
            analysis = manager.analyze(note_id, body.text)
        except NoteError as e:
            raise _http_error(e)
        return {"success": True, "analysis": analysis.strategy, "model": analysis.model}

    # -- Maintenance --

    @router.post("/maintenance/backfill")
    def backfill(secret: str | None = None):
        if config.MAINTENANCE_SECRET and secret != config.MAINTENANCE_SECRET:
            raise HTTPException(401, "No autorizado")
        try:
            return manager.backfill_search_fields()
        except NoteError as e:
            raise _http_error(e)

    # -- Business cards --

    @router.post("/business-cards")
    def create_business_card(body: BusinessCardRequest):
        try:
            card = process_business_card(card_reader, cards, body.imageData)
        except NoteError as e:
            raise _http_error(e)
        return {"success": True, "data": card.model_dump(exclude={"imageData", "rawText"})}

    @router.get("/business-cards")
    def list_business_cards(limit: int = Query(50, ge=1, le=200)):
        try:
            return cards.query("createdAt", "desc", limit=limit)
        except NoteError as e:
            raise _http_error(e)

    return router
