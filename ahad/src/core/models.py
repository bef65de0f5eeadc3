"""
Ahad - Data Model
==================
Records exchanged between the core components.

``Document``, ``RetrievedPassage`` and ``ConversationTurn`` are plain
frozen dataclasses: they are created by the core and never validated
from outside.  ``FileContext`` and ``RAGAnswer`` sit on the boundary with
the transport layer, so they are Pydantic models that validate on the way
in and serialise with ``model_dump()`` on the way out.

``Session`` is the only mutable record.  It is owned by the
``SessionRegistry`` and mutated exclusively through it.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from ahad.src.utils.text_utils import classify_mime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SourceTag(str, Enum):
    """Provenance of a retrieved passage (and of an answer)."""

    LOCAL_KNOWLEDGE = "local_knowledge"
    EXTERNAL_VECTOR = "external_vector"
    SESSION_FILE = "session_file"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class Document:
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RetrievedPassage:
    text: str
    source_tag: SourceTag
    match_score: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ConversationTurn:
    role: Literal["user", "assistant"]
    content: str
    language: str
    file_count: int = 0
    timestamp: datetime = field(default_factory=utc_now)


class FileContext(BaseModel):
    """
    One uploaded file after content extraction.

    Produced by the file-processing collaborator with ``extracted_text``
    already filled in (or ``None`` when nothing could be extracted).
    """

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    filename: str
    mime_class: Literal["image", "document", "unknown"] = "unknown"
    mime_subtype: str = ""
    size_bytes: int = Field(default=0, ge=0)
    extracted_text: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_upload(cls, filename: str, mimetype: str | None, size_bytes: int, extracted_text: str | None = None) -> FileContext:
        """Build a record from the raw upload attributes."""
        mime_class, mime_subtype = classify_mime(mimetype)
        return cls(filename=filename, mime_class=mime_class, mime_subtype=mime_subtype, size_bytes=size_bytes, extracted_text=extracted_text)

    @property
    def has_text(self) -> bool:
        return bool(self.extracted_text)


@dataclass(slots=True)
class Session:
    """
    Accumulated state of one conversation.

    ``last_updated`` moves only when files are attached; ``last_active``
    moves on every access and drives idle expiry.
    """

    id: str
    language: str = "en"
    files: list[FileContext] = field(default_factory=list)
    aggregated_file_context: str = ""
    history: deque[ConversationTurn] = field(default_factory=deque)
    created_at: datetime = field(default_factory=utc_now)
    last_updated: datetime = field(default_factory=utc_now)
    last_active: datetime = field(default_factory=utc_now)

    @property
    def file_count(self) -> int:
        return len(self.files)


class RAGAnswer(BaseModel):
    """Structured result of ``RAGOrchestrator.answer``."""

    text: str
    sentiment: Literal["positive", "negative", "neutral"] = "neutral"
    intent: str = "general"
    sources: list[str] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    language: str
    session_id: str
    file_count: int = 0
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def degraded(self) -> bool:
        return SourceTag.FALLBACK.value in self.sources
