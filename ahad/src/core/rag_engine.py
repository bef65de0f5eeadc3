"""
Ahad - RAG Engine
==================
Top-level entry point of the assistant core.  Coordinates the session
registry, the retrieval merger, the prompt builder and the inference
backend, and keeps the per-session bookkeeping.

Architecture
------------
``KnowledgeStore``
    Shared append-only corpus (built-in documents, manual ingests and
    uploaded file text).
``SessionRegistry``
    Files, aggregated file context, conversation log and language of
    every session, plus the per-session locks.
``RetrievalMerger``
    Local knowledge → external vector store → session files.
``PromptBuilder``
    Language-tagged, fixed-order prompt.
``RAGOrchestrator``
    Flow of ``answer``:
        1. Resolve language (unknown codes fall back to English)
        2. Take the session lock, get or create the session
        3. Attach new files, copy their text into the knowledge store
        4. Retrieve context
        5. Build prompt
        6. Call the LLM (bounded by ``LLM_TIMEOUT_SECONDS``)
        7. Degrade to the canned fallback on any failure in 4–6
        8. Sentiment (English only) and intent
        9. Append the user and assistant turns
        10. Return a ``RAGAnswer``

``answer`` never raises: every failure ends in a well-formed result whose
``sources`` show what actually contributed (``["fallback"]`` when the
answer is the canned response).

Usage:
    from ahad.src.core.rag_engine import RAGOrchestrator
    rag = RAGOrchestrator.from_settings()
    result = await rag.answer("What does the invoice say?", "en", "session-1")
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

from langchain_core.messages import HumanMessage

from ahad.config.prompt_templates import FILE_ONLY_MESSAGE_TEMPLATE, FILE_SUMMARY_LINE, LANGUAGE_PROFILES, NO_HISTORY_SENTINEL
from ahad.config.settings import settings
from ahad.src.core.analysis import Sentiment, SentimentAnalyzer, VaderSentimentAnalyzer, classify_polarity, detect_intent
from ahad.src.core.errors import InferenceFailure, MalformedInput, SessionNotFound
from ahad.src.core.knowledge_store import SESSION_VISIBILITY, KnowledgeStore
from ahad.src.core.models import ConversationTurn, FileContext, RAGAnswer, Session, SourceTag
from ahad.src.core.prompt_builder import PromptBuilder, resolve_language
from ahad.src.core.retrieval import RetrievalMerger, VectorStore
from ahad.src.core.session_registry import SessionRegistry
from ahad.src.utils.logger import get_logger
from ahad.src.utils.text_utils import chunk_text

logger = get_logger(__name__)

SUCCESS_CONFIDENCE = 0.9
FALLBACK_CONFIDENCE = 0.6
FILE_UPLOAD_SOURCE = "file_upload"


@runtime_checkable
class InferenceBackend(Protocol):
    """Any LangChain chat model: ``await ainvoke(messages)`` → message with ``.content``."""

    async def ainvoke(self, input: Any, **kwargs: Any) -> Any: ...


class RAGOrchestrator:
    """
    Parameters
    ----------
    llm
        Inference backend.  ``None`` means no backend is configured and
        every answer is the fallback response.
    vector_store
        Optional external vector store.
    knowledge
        Shared knowledge store (defaults to one seeded with the built-in
        documents).
    sessions
        Session registry (defaults to one capped at ``MAX_HISTORY_TURNS``).
    sentiment_analyzer
        Polarity scorer for English text (defaults to NLTK VADER).
    """

    __slots__ = ("_llm", "_vector_store", "_knowledge", "_sessions", "_retriever", "_prompts", "_sentiment", "_started_at")

    def __init__(self, llm: InferenceBackend | None = None, vector_store: VectorStore | None = None, knowledge: KnowledgeStore | None = None, sessions: SessionRegistry | None = None, sentiment_analyzer: SentimentAnalyzer | None = None, prompt_builder: PromptBuilder | None = None) -> None:
        self._llm = llm
        self._vector_store = vector_store
        self._knowledge = knowledge if knowledge is not None else KnowledgeStore()
        self._sessions = sessions if sessions is not None else SessionRegistry(max_turns=settings.MAX_HISTORY_TURNS, default_language=settings.DEFAULT_LANGUAGE)
        self._retriever = RetrievalMerger(self._knowledge, vector_store, local_limit=settings.LOCAL_SEARCH_LIMIT, vector_limit=settings.VECTOR_SEARCH_LIMIT, file_limit=settings.SESSION_FILE_LIMIT, file_chars=settings.FILE_PASSAGE_CHARS, vector_timeout=settings.VECTOR_TIMEOUT_SECONDS)
        self._prompts = prompt_builder or PromptBuilder()
        self._sentiment = sentiment_analyzer or VaderSentimentAnalyzer()
        self._started_at = datetime.now(timezone.utc)

        logger.info("[RAG] Orchestrator ready (llm=%s, vector_store=%s, knowledge=%d docs, languages=%s).", self._llm is not None, self._vector_store is not None, len(self._knowledge), ", ".join(LANGUAGE_PROFILES))


    @classmethod
    def from_settings(cls) -> RAGOrchestrator:
        """Production wiring: Gemini chat model plus the LanceDB store when enabled."""
        vector_store = cls._init_vector_store() if settings.VECTOR_STORE_ENABLED else None
        return cls(llm=cls._init_llm(), vector_store=vector_store)


    @staticmethod
    def _init_llm() -> InferenceBackend:
        from langchain_google_genai import ChatGoogleGenerativeAI

        llm = ChatGoogleGenerativeAI(model=settings.LLM_MODEL, temperature=settings.LLM_TEMPERATURE, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
        logger.info("LLM initialised: %s (temperature=%.1f)", settings.LLM_MODEL, settings.LLM_TEMPERATURE)
        return llm


    @staticmethod
    def _init_vector_store() -> VectorStore | None:
        """Connect the LanceDB store; an unreachable store must not stop start-up."""
        try:
            from langchain_google_genai import GoogleGenerativeAIEmbeddings

            from ahad.src.database.vector_store import AhadVectorStore

            embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
            return AhadVectorStore(embedder)
        except Exception as exc:
            logger.warning("Vector store unavailable, continuing without it: %s", exc)
            return None

    # ══════════════════════════════════════════════════════════════════
    #  ANSWER
    # ══════════════════════════════════════════════════════════════════

    async def answer(self, query: str, language_code: str = "en", session_id: str = "default", use_retrieval: bool = True, want_sentiment: bool = True, new_file_contexts: Sequence[FileContext] = ()) -> RAGAnswer:
        """
        Answer *query* within *session_id*.

        With ``use_retrieval=False`` no source is consulted and the
        prompt carries the "no specific context" sentinel; ``sources`` is
        then empty.
        """
        language = resolve_language(language_code).code
        if settings.SESSION_TTL_SECONDS:
            await self.expire_idle_sessions()

        try:
            async with self._sessions.lock(session_id):
                return await self._answer_locked(query, language, session_id, use_retrieval, want_sentiment, list(new_file_contexts or ()))
        except Exception:
            logger.exception("[RAG] Unexpected failure answering in session '%s'.", session_id)
            return self.fallback_response(query, language, session_id)


    async def _answer_locked(self, query: str, language: str, session_id: str, use_retrieval: bool, want_sentiment: bool, new_files: list[FileContext]) -> RAGAnswer:
        t_start = time.perf_counter()
        logger.info("[RAG] %s query in session '%s' (%d new file(s)): %s", language.upper(), session_id, len(new_files), query[:80])

        session = self._sessions.get_or_create(session_id)
        self._sessions.set_language(session_id, language)

        if new_files:
            self._sessions.append_files(session_id, new_files)
            await self._ingest_uploads(session_id, new_files)

        history = self._sessions.history_text(session_id, limit=settings.HISTORY_WINDOW, empty=NO_HISTORY_SENTINEL)

        try:
            text, sources = await self._generate(query, language, session, history, use_retrieval)
            confidence = SUCCESS_CONFIDENCE
        except InferenceFailure as exc:
            logger.warning("[RAG] Inference failed, using fallback: %s", exc)
            text, sources, confidence = self.fallback_text(query, language), [SourceTag.FALLBACK.value], FALLBACK_CONFIDENCE
        except Exception:
            logger.exception("[RAG] Retrieval or prompt assembly failed, using fallback.")
            text, sources, confidence = self.fallback_text(query, language), [SourceTag.FALLBACK.value], FALLBACK_CONFIDENCE

        sentiment = self.analyze_sentiment(query, language) if want_sentiment else "neutral"
        intent = detect_intent(query)

        self._sessions.append_turn(session_id, ConversationTurn(role="user", content=query, language=language, file_count=len(new_files)))
        self._sessions.append_turn(session_id, ConversationTurn(role="assistant", content=text, language=language))

        total_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] Answered in %.1fms (sources=%s, intent=%s, sentiment=%s)", total_ms, sources, intent, sentiment)
        return RAGAnswer(text=text, sentiment=sentiment, intent=intent, sources=sources, confidence=confidence, language=language, session_id=session_id, file_count=session.file_count)


    async def _generate(self, query: str, language: str, session: Session, history: str, use_retrieval: bool) -> tuple[str, list[str]]:
        if use_retrieval:
            passages, sources = await self._retriever.retrieve(query, session, external_vector_available=self._vector_store is not None)
        else:
            passages, sources = [], []

        prompt = self._prompts.build(language, passages, session.aggregated_file_context, history, query, file_count=session.file_count)
        text = await self._invoke_llm(prompt)
        return text, sources


    async def _invoke_llm(self, prompt: str) -> str:
        if self._llm is None:
            raise InferenceFailure("no inference backend configured")

        t_llm = time.perf_counter()
        try:
            response = await asyncio.wait_for(self._llm.ainvoke([HumanMessage(content=prompt)]), timeout=settings.LLM_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            raise InferenceFailure(f"LLM timed out after {settings.LLM_TIMEOUT_SECONDS:.1f}s") from None
        except Exception as exc:
            raise InferenceFailure(f"LLM call failed: {exc}") from exc

        text = self._response_text(response)
        if not text.strip():
            raise InferenceFailure("LLM returned an empty response")

        logger.info("[RAG] LLM response: %.1fms (%d chars)", (time.perf_counter() - t_llm) * 1000, len(text))
        return text


    @staticmethod
    def _response_text(response: Any) -> str:
        content = response.content if hasattr(response, "content") else response
        if isinstance(content, list):
            # Multi-part messages: keep the text parts only
            return "".join(part if isinstance(part, str) else str(part.get("text", "")) for part in content)
        return str(content)

    # ══════════════════════════════════════════════════════════════════
    #  CHAT BOUNDARY
    # ══════════════════════════════════════════════════════════════════

    async def chat(self, message: str | None, language_code: str = "en", session_id: str = "default", use_retrieval: bool = True, want_sentiment: bool = True, new_file_contexts: Sequence[FileContext] = ()) -> RAGAnswer:
        """
        Request-level entry point.

        Raises ``MalformedInput`` when there is neither a message nor a
        file.  A files-only request is answered with a synthesised
        "analyze these files" message and sentiment disabled.
        """
        files = list(new_file_contexts or ())
        if message and message.strip():
            return await self.answer(message, language_code, session_id, use_retrieval, want_sentiment, files)
        if not files:
            raise MalformedInput("Either message or files are required")

        summary = "\n".join(FILE_SUMMARY_LINE.format(filename=f.filename, mime_class=f.mime_class, status="Content extracted" if f.has_text else "Unable to extract content") for f in files)
        synthesised = FILE_ONLY_MESSAGE_TEMPLATE.format(summary=summary)
        return await self.answer(synthesised, language_code, session_id, use_retrieval=True, want_sentiment=False, new_file_contexts=files)


    async def upload_files(self, session_id: str, file_contexts: Sequence[FileContext]) -> dict[str, Any]:
        """
        Attach files to *session_id* without generating an answer.

        Extracted text is copied into the knowledge store exactly as in
        ``answer``.  Raises ``MalformedInput`` when no file is given.
        """
        files = list(file_contexts or ())
        if not files:
            raise MalformedInput("No files uploaded")

        async with self._sessions.lock(session_id):
            self._sessions.append_files(session_id, files)
            await self._ingest_uploads(session_id, files)

        logger.info("[RAG] Uploaded %d file(s) to session '%s'.", len(files), session_id)
        now = datetime.now(timezone.utc).isoformat()
        return {
            "success": True,
            "message": f"Successfully processed {len(files)} file(s)",
            "session_id": session_id,
            "files": [{**self._file_summary(f), "timestamp": now} for f in files],
            "timestamp": now,
        }

    # ══════════════════════════════════════════════════════════════════
    #  KNOWLEDGE
    # ══════════════════════════════════════════════════════════════════

    async def ingest(self, text: str, source: str = "manual", metadata: dict[str, Any] | None = None) -> int:
        """Add *text* to the knowledge store (and the vector store when present)."""
        meta = dict(metadata or {})
        doc_id = self._knowledge.add(text, source, meta)
        if self._vector_store is not None and meta.get("visibility") != SESSION_VISIBILITY:
            await self._index_in_vector_store(text, source, meta)
        return doc_id


    async def _ingest_uploads(self, session_id: str, files: list[FileContext]) -> None:
        for file in files:
            if not file.has_text:
                continue
            metadata: dict[str, Any] = {"filename": file.filename, "type": file.mime_class, "size": file.size_bytes, "session_id": session_id}
            if not settings.SHARE_UPLOADS_ACROSS_SESSIONS:
                metadata["visibility"] = SESSION_VISIBILITY
            await self.ingest(file.extracted_text, FILE_UPLOAD_SOURCE, metadata)


    async def _index_in_vector_store(self, text: str, source: str, metadata: dict[str, Any]) -> None:
        chunks = chunk_text(text, settings.CHUNK_SIZE, settings.CHUNK_OVERLAP)
        if not chunks:
            return
        metadatas = [{**metadata, "source": source, "chunk_index": i} for i in range(len(chunks))]
        try:
            await asyncio.wait_for(asyncio.to_thread(self._vector_store.add_documents, chunks, metadatas), timeout=settings.VECTOR_TIMEOUT_SECONDS)
            logger.info("[KNOWLEDGE] Indexed %d chunk(s) in the vector store.", len(chunks))
        except asyncio.TimeoutError:
            logger.warning("[KNOWLEDGE] Vector indexing timed out; document kept in local knowledge only.")
        except Exception as exc:
            logger.warning("[KNOWLEDGE] Vector indexing failed; document kept in local knowledge only: %s", exc)

    # ══════════════════════════════════════════════════════════════════
    #  ANALYSIS
    # ══════════════════════════════════════════════════════════════════

    def analyze_sentiment(self, text: str, language: str = "en") -> Sentiment:
        """English-only polarity; every other language is ``neutral``."""
        if language != "en":
            return "neutral"
        try:
            return classify_polarity(self._sentiment.polarity(text))
        except Exception as exc:
            logger.warning("Sentiment analysis failed, reporting neutral: %s", exc)
            return "neutral"


    def fallback_text(self, query: str, language: str) -> str:
        return resolve_language(language).fallback_template.format(query=query)


    def fallback_response(self, query: str, language: str = "en", session_id: str = "default") -> RAGAnswer:
        """Canned answer used whenever generation cannot complete."""
        language = resolve_language(language).code
        return RAGAnswer(text=self.fallback_text(query, language), sentiment="neutral", intent=detect_intent(query), sources=[SourceTag.FALLBACK.value], confidence=FALLBACK_CONFIDENCE, language=language, session_id=session_id)

    # ══════════════════════════════════════════════════════════════════
    #  SESSIONS & STATUS
    # ══════════════════════════════════════════════════════════════════

    def get_session_info(self, session_id: str) -> dict[str, Any]:
        try:
            session = self._sessions.get(session_id)
        except SessionNotFound:
            return {"exists": False, "session_id": session_id, "message": "Session not found"}

        return {
            "exists": True,
            "session_id": session_id,
            "language": session.language,
            "file_count": session.file_count,
            "message_count": len(session.history),
            "last_updated": session.last_updated.isoformat(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


    def list_session_files(self, session_id: str) -> dict[str, Any]:
        try:
            files = self._sessions.get(session_id).files
        except SessionNotFound:
            return {"session_id": session_id, "files": [], "count": 0, "message": "No active session found"}

        summaries = [self._file_summary(f) for f in files]
        return {"session_id": session_id, "files": summaries, "count": len(summaries)}


    @staticmethod
    def _file_summary(file: FileContext) -> dict[str, Any]:
        return {"id": str(file.id), "filename": file.filename, "type": file.mime_class, "size": file.size_bytes, "extracted": file.has_text}


    async def clear_session(self, session_id: str) -> dict[str, Any]:
        """Evict *session_id* once any in-flight turn on it has finished."""
        async with self._sessions.lock(session_id):
            existed = self._sessions.evict(session_id)
        message = f"Session {session_id} cleared successfully" if existed else f"Session {session_id} not found"
        return {"success": True, "existed": existed, "session_id": session_id, "message": message, "timestamp": datetime.now(timezone.utc).isoformat()}


    async def expire_idle_sessions(self) -> list[str]:
        """Evict sessions idle for longer than ``SESSION_TTL_SECONDS``; busy sessions are skipped."""
        ttl = settings.SESSION_TTL_SECONDS
        if not ttl:
            return []

        expired: list[str] = []
        for session_id in self._sessions.idle_sessions(ttl):
            session_lock = self._sessions.lock(session_id)
            if session_lock.locked():
                continue
            async with session_lock:
                if session_id in self._sessions.idle_sessions(ttl) and self._sessions.evict(session_id):
                    expired.append(session_id)

        if expired:
            logger.info("[SESSION] Expired %d idle session(s).", len(expired))
        return expired


    def greeting(self, language_code: str = "en") -> str:
        """Welcome message for a new conversation in the resolved language."""
        return resolve_language(language_code).greeting


    def get_status(self) -> dict[str, Any]:
        return {
            "is_ready": True,
            "has_llm": self._llm is not None,
            "has_vector_store": self._vector_store is not None,
            "llm_model": settings.LLM_MODEL,
            "supported_languages": list(LANGUAGE_PROFILES),
            "greetings": {code: profile.greeting for code, profile in LANGUAGE_PROFILES.items()},
            "local_knowledge_count": len(self._knowledge),
            "active_sessions": len(self._sessions),
            "conversation_sessions": self._sessions.conversation_count(),
            "started_at": self._started_at.isoformat(),
        }
