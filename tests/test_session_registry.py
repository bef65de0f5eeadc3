from datetime import timedelta

import pytest

from ahad.src.core.errors import SessionNotFound
from ahad.src.core.models import ConversationTurn, FileContext, utc_now
from ahad.src.core.session_registry import SessionRegistry

from conftest import make_file


def test_get_or_create_is_lazy_and_stable():
    registry = SessionRegistry()
    assert "s1" not in registry

    session = registry.get_or_create("s1")

    assert registry.get_or_create("s1") is session
    assert session.language == "en"
    assert len(registry) == 1


def test_get_unknown_session_raises():
    registry = SessionRegistry()
    with pytest.raises(SessionNotFound) as excinfo:
        registry.get("missing")
    assert isinstance(excinfo.value, KeyError)
    assert str(excinfo.value) == "Session not found: missing"


def test_append_files_builds_aggregated_context():
    registry = SessionRegistry()
    with_text = make_file("notes.txt", "hello there", size=2048)
    without_text = FileContext.from_upload("scan.png", "image/png", 10, None)

    session = registry.append_files("s1", [with_text, without_text])

    assert session.file_count == 2
    assert [f.filename for f in session.files] == ["notes.txt", "scan.png"]
    assert session.aggregated_file_context == "\n\n=== File: notes.txt ===\nType: document\nSize: 2 KB\nContent: hello there\n"


def test_append_files_accumulates_in_order():
    registry = SessionRegistry()
    registry.append_files("s1", [make_file("a.txt", "first")])
    session = registry.append_files("s1", [make_file("b.txt", "second")])

    assert [f.filename for f in session.files] == ["a.txt", "b.txt"]
    assert session.aggregated_file_context.index("a.txt") < session.aggregated_file_context.index("b.txt")


def test_append_no_files_leaves_last_updated_untouched():
    registry = SessionRegistry()
    session = registry.get_or_create("s1")
    before = session.last_updated

    registry.append_files("s1", [])

    assert session.last_updated == before
    assert session.file_count == 0


def test_append_files_refreshes_last_updated():
    registry = SessionRegistry()
    session = registry.get_or_create("s1")
    session.last_updated = utc_now() - timedelta(hours=1)
    before = session.last_updated

    registry.append_files("s1", [make_file()])

    assert session.last_updated > before


def test_history_is_capped_fifo():
    registry = SessionRegistry(max_turns=3)
    for i in range(5):
        registry.append_turn("s1", ConversationTurn(role="user", content=f"q{i}", language="en"))

    history = registry.get("s1").history
    assert [turn.content for turn in history] == ["q2", "q3", "q4"]


def test_history_text_format_and_window():
    registry = SessionRegistry()
    registry.append_turn("s1", ConversationTurn(role="user", content="old", language="en"))
    registry.append_turn("s1", ConversationTurn(role="user", content="look at this", language="en", file_count=2))
    registry.append_turn("s1", ConversationTurn(role="assistant", content="done", language="en"))

    assert registry.history_text("s1", limit=2) == "user: look at this (uploaded 2 file(s))\nassistant: done"
    assert registry.history_text("unknown", empty="nothing") == "nothing"


def test_evict_and_conversation_count():
    registry = SessionRegistry()
    registry.get_or_create("idle")
    registry.append_turn("chatty", ConversationTurn(role="user", content="hi", language="en"))

    assert registry.conversation_count() == 1
    assert registry.evict("chatty") is True
    assert registry.evict("chatty") is False
    assert registry.conversation_count() == 0
    assert "chatty" not in registry


def test_evict_expired_uses_last_active():
    registry = SessionRegistry()
    stale = registry.get_or_create("stale")
    stale.last_active = utc_now() - timedelta(hours=2)
    registry.get_or_create("fresh")

    assert registry.evict_expired(max_idle_seconds=3600) == ["stale"]
    assert registry.exists("fresh")
    assert not registry.exists("stale")


def test_lock_is_shared_per_session():
    registry = SessionRegistry()
    assert registry.lock("s1") is registry.lock("s1")
    assert registry.lock("s1") is not registry.lock("s2")


def test_lock_survives_eviction():
    registry = SessionRegistry()
    registry.get_or_create("s1")
    held = registry.lock("s1")

    registry.evict("s1")

    assert registry.lock("s1") is held


def test_idle_sessions_lists_without_evicting():
    registry = SessionRegistry()
    registry.get_or_create("stale").last_active = utc_now() - timedelta(hours=2)
    registry.get_or_create("fresh")

    assert registry.idle_sessions(max_idle_seconds=3600) == ["stale"]
    assert registry.exists("stale")
