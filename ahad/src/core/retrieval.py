"""
Ahad - Retrieval Merger
========================
Collects context for one query from three sources, in a fixed order:

    1. Local knowledge  — lexical search of the ``KnowledgeStore``
    2. External vector  — similarity search, only when a store is
                          configured and reachable; failures degrade
    3. Session files    — lexical match against the session's uploads,
                          ranked by the share of query tokens matched

Results are concatenated in that order without cross-source re-ranking.
The returned ``sources`` list names every source that contributed at
least one passage and always includes ``local_knowledge``, signalling
that the local corpus was consulted even when it matched nothing.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Protocol, runtime_checkable

from ahad.src.core.errors import SourceUnavailable
from ahad.src.core.knowledge_store import KnowledgeStore
from ahad.src.core.models import RetrievedPassage, Session, SourceTag
from ahad.src.utils.logger import get_logger
from ahad.src.utils.text_utils import count_matches, tokenize_query, truncate

logger = get_logger(__name__)


@runtime_checkable
class VectorStore(Protocol):
    """External vector-similarity store as seen by the core."""

    def similarity_search(self, query_text: str, limit: int = 2) -> list[dict[str, Any]]: ...

    def add_documents(self, texts: list[str], metadatas: list[dict[str, Any]]) -> int: ...


class RetrievalMerger:
    """
    Parameters
    ----------
    knowledge
        The shared ``KnowledgeStore``.
    vector_store
        Optional external store; ``None`` disables step 2 entirely.
    local_limit, vector_limit, file_limit
        Per-source result caps.
    file_chars
        Characters of an uploaded file quoted in its passage.
    vector_timeout
        Seconds allowed for the similarity search.
    """

    __slots__ = ("_knowledge", "_vector_store", "_local_limit", "_vector_limit", "_file_limit", "_file_chars", "_vector_timeout")

    def __init__(self, knowledge: KnowledgeStore, vector_store: VectorStore | None = None, local_limit: int = 3, vector_limit: int = 2, file_limit: int = 2, file_chars: int = 1000, vector_timeout: float = 5.0) -> None:
        self._knowledge = knowledge
        self._vector_store = vector_store
        self._local_limit = local_limit
        self._vector_limit = vector_limit
        self._file_limit = file_limit
        self._file_chars = file_chars
        self._vector_timeout = vector_timeout


    @property
    def vector_store(self) -> VectorStore | None:
        return self._vector_store


    async def retrieve(self, query: str, session: Session | None, external_vector_available: bool = True) -> tuple[list[RetrievedPassage], list[str]]:
        """
        Run the three retrieval steps and merge their passages.

        Returns
        -------
        tuple[list[RetrievedPassage], list[str]]
            Passages in source order, and the source tags that
            contributed (``local_knowledge`` always first).
        """
        t_start = time.perf_counter()
        session_id = session.id if session is not None else None

        local = self.search_local(query, session_id)
        external = await self.search_external(query) if external_vector_available else []
        files = self.search_session_files(query, session) if session is not None else []

        sources = [SourceTag.LOCAL_KNOWLEDGE.value]
        if external:
            sources.append(SourceTag.EXTERNAL_VECTOR.value)
        if files:
            sources.append(SourceTag.SESSION_FILE.value)

        elapsed_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RETRIEVAL] local=%d, external=%d, session_files=%d in %.1fms", len(local), len(external), len(files), elapsed_ms)
        return local + external + files, sources

    # ── Step 1 ─────────────────────────────────────────────────────────

    def search_local(self, query: str, session_id: str | None = None) -> list[RetrievedPassage]:
        documents = self._knowledge.search(query, limit=self._local_limit, session_id=session_id)
        return [RetrievedPassage(text=doc.content, source_tag=SourceTag.LOCAL_KNOWLEDGE, metadata=dict(doc.metadata)) for doc in documents]

    # ── Step 2 ─────────────────────────────────────────────────────────

    async def search_external(self, query: str) -> list[RetrievedPassage]:
        """Similarity search with a timeout; any failure yields no passages."""
        if self._vector_store is None:
            return []
        try:
            hits = await self._query_vector_store(query)
        except SourceUnavailable as exc:
            logger.warning("[RETRIEVAL] %s — continuing without it.", exc)
            return []

        passages: list[RetrievedPassage] = []
        for hit in hits:
            metadata = dict(hit.get("metadata") or {})
            distance = metadata.get("distance")
            score = 1.0 / (1.0 + float(distance)) if distance is not None else None
            passages.append(RetrievedPassage(text=str(hit.get("text", "")), source_tag=SourceTag.EXTERNAL_VECTOR, match_score=score, metadata=metadata))
        return passages


    async def _query_vector_store(self, query: str) -> list[dict[str, Any]]:
        try:
            return await asyncio.wait_for(asyncio.to_thread(self._vector_store.similarity_search, query, self._vector_limit), timeout=self._vector_timeout)
        except asyncio.TimeoutError:
            raise SourceUnavailable("external_vector", f"timed out after {self._vector_timeout:.1f}s") from None
        except Exception as exc:
            raise SourceUnavailable("external_vector", str(exc) or type(exc).__name__) from exc

    # ── Step 3 ─────────────────────────────────────────────────────────

    def search_session_files(self, query: str, session: Session) -> list[RetrievedPassage]:
        """
        Rank the session's uploads by ``matched tokens / query tokens``.

        Files with no extracted text are skipped.  An empty query matches
        every file with score 1.0.  Ties keep upload order.
        """
        tokens = tokenize_query(query)
        scored: list[tuple[float, RetrievedPassage]] = []

        for file in session.files:
            if not file.has_text:
                continue
            if tokens:
                matched = count_matches(tokens, file.extracted_text)
                if matched == 0:
                    continue
                score = matched / len(tokens)
            else:
                score = 1.0

            text = f'From uploaded file "{file.filename}":\n' + truncate(file.extracted_text, self._file_chars)
            metadata = {"source": SourceTag.SESSION_FILE.value, "filename": file.filename, "type": file.mime_class, "file_id": str(file.id)}
            scored.append((score, RetrievedPassage(text=text, source_tag=SourceTag.SESSION_FILE, match_score=score, metadata=metadata)))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [passage for _, passage in scored[: self._file_limit]]
