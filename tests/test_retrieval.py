import asyncio

from ahad.src.core.knowledge_store import KnowledgeStore
from ahad.src.core.models import FileContext, SourceTag
from ahad.src.core.retrieval import RetrievalMerger
from ahad.src.core.session_registry import SessionRegistry

from conftest import DummyVectorStore, make_file


def _session_with(*files):
    registry = SessionRegistry()
    return registry.append_files("s1", files)


def test_local_knowledge_is_always_reported():
    merger = RetrievalMerger(KnowledgeStore(()))

    passages, sources = asyncio.run(merger.retrieve("anything at all", None))

    assert passages == []
    assert sources == ["local_knowledge"]


def test_sources_follow_fixed_order():
    knowledge = KnowledgeStore(())
    knowledge.add("invoice policy text")
    store = DummyVectorStore(hits=[{"text": "vector invoice hit", "metadata": {"distance": 1.0}}])
    session = _session_with(make_file("a.txt", "the invoice total is 40"))
    merger = RetrievalMerger(knowledge, store)

    passages, sources = asyncio.run(merger.retrieve("invoice total", session))

    assert sources == ["local_knowledge", "external_vector", "session_file"]
    assert [p.source_tag for p in passages] == [SourceTag.LOCAL_KNOWLEDGE, SourceTag.EXTERNAL_VECTOR, SourceTag.SESSION_FILE]
    assert passages[1].match_score == 0.5
    assert store.queries == [("invoice total", 2)]


def test_external_store_skipped_when_marked_unavailable():
    store = DummyVectorStore(hits=[{"text": "hit", "metadata": {}}])
    merger = RetrievalMerger(KnowledgeStore(()), store)

    _, sources = asyncio.run(merger.retrieve("query", None, external_vector_available=False))

    assert sources == ["local_knowledge"]
    assert store.queries == []


def test_external_store_failure_degrades_silently():
    merger = RetrievalMerger(KnowledgeStore(()), DummyVectorStore(error=ConnectionError("refused")))

    passages, sources = asyncio.run(merger.retrieve("query", None))

    assert passages == []
    assert sources == ["local_knowledge"]


def test_external_store_timeout_degrades_silently():
    store = DummyVectorStore(hits=[{"text": "late", "metadata": {}}], delay=0.5)
    merger = RetrievalMerger(KnowledgeStore(()), store, vector_timeout=0.05)

    assert asyncio.run(merger.search_external("query")) == []


def test_session_files_ranked_by_share_of_tokens_matched():
    partial = make_file("partial.txt", "revenue only")
    full = make_file("full.txt", "quarterly revenue report")
    unrelated = make_file("other.txt", "nothing relevant")
    image = FileContext.from_upload("scan.png", "image/png", 100, None)
    merger = RetrievalMerger(KnowledgeStore(()))

    passages = merger.search_session_files("quarterly revenue", _session_with(partial, full, unrelated, image))

    assert [p.metadata["filename"] for p in passages] == ["full.txt", "partial.txt"]
    assert [p.match_score for p in passages] == [1.0, 0.5]
    assert passages[0].text == 'From uploaded file "full.txt":\nquarterly revenue report...'


def test_session_files_capped_and_truncated():
    files = [make_file(f"f{i}.txt", "ledger " * 400) for i in range(3)]
    merger = RetrievalMerger(KnowledgeStore(()), file_limit=2, file_chars=50)

    passages = merger.search_session_files("ledger", _session_with(*files))

    assert [p.metadata["filename"] for p in passages] == ["f0.txt", "f1.txt"]
    assert passages[0].text.endswith("...")
    assert len(passages[0].text) == len('From uploaded file "f0.txt":\n') + 50 + 3


def test_empty_query_matches_every_file_with_text():
    merger = RetrievalMerger(KnowledgeStore(()), file_limit=5)
    session = _session_with(make_file("a.txt", "one"), make_file("b.txt", "two"))

    passages = merger.search_session_files("", session)

    assert [p.match_score for p in passages] == [1.0, 1.0]
    assert [p.metadata["filename"] for p in passages] == ["a.txt", "b.txt"]
