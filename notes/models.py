from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

PLACEHOLDER_TEXT = "Processing..."


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def word_count(text: str) -> int:
    # Split on single spaces only: "" counts as 1 and runs of spaces add tokens.
    return len(text.split(" "))


class NoteStatus(str, Enum):
    DRAFT = "draft"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ANALYZED = "analyzed"
    ERROR = "error"


class NoteSource(str, Enum):
    RECORDING = "recording"
    MANUAL = "manual"
    EDITED = "edited"


class MatchType(str, Enum):
    TEXT = "text"
    ANALYSIS = "analysis"
    BOTH = "both"


class NoteMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    source: NoteSource | None = None
    wordCount: int | None = None


class Analysis(BaseModel):
    strategy: str
    model: str
    timestamp: str


class Note(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    text: str
    textLower: str | None = None
    status: NoteStatus
    metadata: NoteMetadata = Field(default_factory=NoteMetadata)
    analysis: Analysis | None = None
    error: str | None = None
    timestamp: str
    updatedAt: str | None = None


class NotePatch(BaseModel):
    """Typed partial update of a note.

    Only the fields explicitly set are written. Setting ``text`` also writes
    ``textLower`` and ``metadata.wordCount`` so the derived fields never drift.
    """

    model_config = ConfigDict(extra="forbid")

    text: str | None = None
    status: NoteStatus | None = None
    source: NoteSource | None = None
    analysis: Analysis | None = None
    error: str | None = None
    clear_error: bool = False
    updatedAt: str | None = None

    def to_fields(self) -> dict:
        fields: dict = {}
        if self.text is not None:
            fields["text"] = self.text
            fields["textLower"] = self.text.lower()
            fields["metadata.wordCount"] = word_count(self.text)
        if self.status is not None:
            fields["status"] = self.status.value
        if self.source is not None:
            fields["metadata.source"] = self.source.value
        if self.analysis is not None:
            fields["analysis"] = self.analysis.model_dump()
        if self.error is not None:
            fields["error"] = self.error
        elif self.clear_error:
            fields["error"] = None
        if self.updatedAt is not None:
            fields["updatedAt"] = self.updatedAt
        return fields


class SearchHit(BaseModel):
    note: Note
    matchType: MatchType | None = None

    def to_dict(self) -> dict:
        data = self.note.model_dump(mode="json", exclude_none=True)
        if self.matchType is not None:
            data["matchType"] = self.matchType.value
        return data


class SearchPage(BaseModel):
    items: list[SearchHit]
    hasMore: bool
    page: int
    pageSize: int
    error: str | None = None


class BusinessCard(BaseModel):
    id: str | None = None
    name: str = ""
    email: str = ""
    phone: str = ""
    company: str = ""
    role: str = ""
    rawText: str = ""
    imageData: str = ""
    createdAt: str | None = None
