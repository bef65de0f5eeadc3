"""
Ahad - Session Registry
========================
Owns every ``Session``: uploaded files, the aggregated file context,
the conversation log and the last-used response language.

Sessions are created lazily on first reference and destroyed only by
``evict`` (or ``evict_expired`` when an idle TTL is configured).

Concurrency
-----------
* The id → session map is guarded by a ``threading.Lock`` held only for
  dictionary operations.
* ``lock(session_id)`` hands out one ``asyncio.Lock`` per session id.
  The orchestrator holds it for a whole turn, so two requests on the
  same session serialise their read-modify-write of files, aggregate
  and history, while requests on different sessions never contend.
* Lock entries outlive their session: ``evict`` keeps the lock, so a
  request that still holds it and a request arriving after the eviction
  keep serialising on the same object.  Callers evict under the lock.
"""

from __future__ import annotations

import asyncio
import threading
from collections import deque
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from ahad.src.core.errors import SessionNotFound
from ahad.src.core.models import ConversationTurn, FileContext, Session, utc_now
from ahad.src.utils.logger import get_logger
from ahad.src.utils.text_utils import format_file_size

logger = get_logger(__name__)

_FILE_HEADER = "\n\n=== File: {filename} ===\nType: {mime_class}\nSize: {size}\nContent: {content}\n"


class SessionRegistry:
    """
    Parameters
    ----------
    max_turns
        FIFO cap of each session's conversation log.
    default_language
        Language assigned to freshly created sessions.
    """

    __slots__ = ("_sessions", "_locks", "_guard", "_max_turns", "_default_language")

    def __init__(self, max_turns: int = 50, default_language: str = "en") -> None:
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._guard = threading.Lock()
        self._max_turns = max_turns
        self._default_language = default_language

    # ── Lifecycle ──────────────────────────────────────────────────────

    def get_or_create(self, session_id: str) -> Session:
        with self._guard:
            session = self._sessions.get(session_id)
            if session is None:
                session = Session(id=session_id, language=self._default_language, history=deque(maxlen=self._max_turns))
                self._sessions[session_id] = session
                logger.info("[SESSION] Created session '%s'.", session_id)
        session.last_active = utc_now()
        return session


    def get(self, session_id: str) -> Session:
        """Return an existing session or raise ``SessionNotFound``."""
        with self._guard:
            try:
                return self._sessions[session_id]
            except KeyError:
                raise SessionNotFound(session_id) from None


    def exists(self, session_id: str) -> bool:
        with self._guard:
            return session_id in self._sessions


    def evict(self, session_id: str) -> bool:
        """Drop the session and its conversation log.  Returns True if it existed."""
        with self._guard:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info("[SESSION] Evicted session '%s' (%d file(s), %d turn(s)).", session_id, removed.file_count, len(removed.history))
        return removed is not None


    def evict_expired(self, max_idle_seconds: float, now: datetime | None = None) -> list[str]:
        """Evict every session idle for longer than *max_idle_seconds*."""
        expired = self.idle_sessions(max_idle_seconds, now)
        for session_id in expired:
            self.evict(session_id)
        if expired:
            logger.info("[SESSION] Expired %d idle session(s).", len(expired))
        return expired


    def idle_sessions(self, max_idle_seconds: float, now: datetime | None = None) -> list[str]:
        """Ids of sessions whose ``last_active`` is older than *max_idle_seconds*."""
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(seconds=max_idle_seconds)
        with self._guard:
            return [sid for sid, session in self._sessions.items() if session.last_active < cutoff]


    def lock(self, session_id: str) -> asyncio.Lock:
        with self._guard:
            session_lock = self._locks.get(session_id)
            if session_lock is None:
                session_lock = self._locks[session_id] = asyncio.Lock()
            return session_lock

    # ── Mutation ───────────────────────────────────────────────────────

    def append_files(self, session_id: str, file_contexts: Iterable[FileContext]) -> Session:
        """
        Attach *file_contexts* in order and extend the aggregated context.

        Files without extracted text are attached but contribute no header
        block.  An empty input leaves the session untouched, including
        ``last_updated``.
        """
        new_files = list(file_contexts)
        session = self.get_or_create(session_id)
        if not new_files:
            return session

        session.files.extend(new_files)
        session.aggregated_file_context += "".join(
            _FILE_HEADER.format(filename=f.filename, mime_class=f.mime_class, size=format_file_size(f.size_bytes), content=f.extracted_text)
            for f in new_files
            if f.has_text
        )
        session.last_updated = utc_now()

        logger.info("[SESSION] Session '%s' now holds %d file(s) (+%d).", session_id, session.file_count, len(new_files))
        return session


    def set_language(self, session_id: str, language: str) -> None:
        self.get_or_create(session_id).language = language


    def append_turn(self, session_id: str, turn: ConversationTurn) -> None:
        """Append *turn*; the oldest turn falls off once the cap is reached."""
        self.get_or_create(session_id).history.append(turn)

    # ── Inspection ─────────────────────────────────────────────────────

    def history_text(self, session_id: str, limit: int = 10, empty: str = "No previous conversation in this session.") -> str:
        """Render the last *limit* turns as ``role: content`` lines."""
        with self._guard:
            session = self._sessions.get(session_id)
        if session is None or not session.history:
            return empty

        recent = list(session.history)[-limit:]
        return "\n".join(
            f"{turn.role}: {turn.content}" + (f" (uploaded {turn.file_count} file(s))" if turn.file_count else "")
            for turn in recent
        )


    def conversation_count(self) -> int:
        """Sessions holding at least one conversation turn."""
        with self._guard:
            return sum(1 for session in self._sessions.values() if session.history)


    def __len__(self) -> int:
        with self._guard:
            return len(self._sessions)


    def __contains__(self, session_id: object) -> bool:
        with self._guard:
            return session_id in self._sessions
