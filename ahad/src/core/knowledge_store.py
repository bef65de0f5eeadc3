"""
Ahad - Knowledge Store
=======================
Process-wide, append-only corpus searched lexically on every query.

Contract
--------
``add(text, source, metadata) -> id``
    Appends one ``Document`` and returns its logical id (store size minus
    one after the append).  Ids therefore increase monotonically.
``search(query, limit=3, session_id=None) -> list[Document]``
    Returns documents whose lowercased content contains at least one
    query token, in insertion order, truncated to *limit*.  A query
    without tokens treats every document as relevant and returns the
    first *limit* documents unfiltered.

Concurrency
-----------
Appends and scans share a ``threading.Lock``.  ``search`` works on a
snapshot taken under the lock, so a reader never observes a document
that is only partially added.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from ahad.config.prompt_templates import SYSTEM_DOCUMENTS
from ahad.src.core.models import Document
from ahad.src.utils.logger import get_logger
from ahad.src.utils.text_utils import count_matches, tokenize_query

logger = get_logger(__name__)

# Metadata value marking a document as visible to its own session only
SESSION_VISIBILITY = "session"


class KnowledgeStore:
    """
    Parameters
    ----------
    seed
        Initial ``(content, metadata)`` pairs.  Defaults to the built-in
        system documents; pass ``()`` for an empty store.
    """

    __slots__ = ("_documents", "_lock")

    def __init__(self, seed: Iterable[tuple[str, dict[str, Any]]] | None = None) -> None:
        self._documents: list[Document] = []
        self._lock = threading.Lock()

        for content, metadata in SYSTEM_DOCUMENTS if seed is None else seed:
            self._documents.append(Document(content=content, metadata=dict(metadata)))

        logger.info("[KNOWLEDGE] Local knowledge initialised with %d document(s).", len(self._documents))


    def add(self, text: str, source: str = "user", metadata: dict[str, Any] | None = None) -> int:
        """
        Append *text* and return its id.

        ``source``, ``type``, ``timestamp`` and ``languages`` are stamped
        into the metadata unless the caller already supplied them.
        """
        stamped: dict[str, Any] = {"source": source, "type": "general", "timestamp": datetime.now(timezone.utc).isoformat(), "languages": ["en"]}
        stamped.update(metadata or {})
        document = Document(content=text, metadata=stamped)

        with self._lock:
            self._documents.append(document)
            doc_id = len(self._documents) - 1

        logger.info("[KNOWLEDGE] Added document #%d from %s: %s", doc_id, source, text[:100])
        return doc_id


    def search(self, query: str, limit: int = 3, session_id: str | None = None) -> list[Document]:
        """Lexical filter over the store; see module docstring for the rules."""
        if limit <= 0:
            return []

        tokens = tokenize_query(query)
        with self._lock:
            snapshot = list(self._documents)

        results: list[Document] = []
        for document in snapshot:
            if not self._visible_to(document, session_id):
                continue
            if tokens and count_matches(tokens, document.content) == 0:
                continue
            results.append(document)
            if len(results) >= limit:
                break

        logger.debug("[KNOWLEDGE] Query tokens=%s → %d document(s).", tokens, len(results))
        return results


    def get(self, doc_id: int) -> Document:
        with self._lock:
            return self._documents[doc_id]


    def count(self) -> int:
        with self._lock:
            return len(self._documents)


    @staticmethod
    def _visible_to(document: Document, session_id: str | None) -> bool:
        if document.metadata.get("visibility") != SESSION_VISIBILITY:
            return True
        return session_id is not None and document.metadata.get("session_id") == session_id


    def __len__(self) -> int:
        return self.count()


    def __repr__(self) -> str:
        return f"KnowledgeStore(documents={self.count()})"
