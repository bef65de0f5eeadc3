from ahad.config.prompt_templates import SYSTEM_DOCUMENTS
from ahad.src.core.knowledge_store import SESSION_VISIBILITY, KnowledgeStore


def test_default_store_is_seeded_with_system_documents():
    store = KnowledgeStore()
    assert len(store) == len(SYSTEM_DOCUMENTS)
    assert store.get(0).metadata["source"] == "system"


def test_add_returns_increasing_ids_and_stamps_metadata():
    store = KnowledgeStore(())

    first = store.add("Invoices are due in 30 days", source="manual")
    second = store.add("Refunds take a week", metadata={"type": "policy"})

    assert (first, second) == (0, 1)
    assert store.count() == 2

    meta = store.get(0).metadata
    assert meta["source"] == "manual"
    assert meta["type"] == "general"
    assert meta["languages"] == ["en"]
    assert "timestamp" in meta
    assert store.get(1).metadata["type"] == "policy"
    assert store.get(1).metadata["source"] == "user"


def test_search_filters_lexically_in_insertion_order():
    store = KnowledgeStore(())
    store.add("alpha invoice")
    store.add("beta receipt")
    store.add("gamma invoice copy")

    results = store.search("find the invoice")

    assert [d.content for d in results] == ["alpha invoice", "gamma invoice copy"]


def test_search_respects_limit():
    store = KnowledgeStore(())
    for i in range(5):
        store.add(f"invoice number {i}")

    assert len(store.search("invoice", limit=2)) == 2
    assert store.search("invoice", limit=0) == []


def test_search_without_tokens_returns_first_documents_unfiltered():
    store = KnowledgeStore()
    results = store.search("is a")
    assert [d.content for d in results] == [content for content, _ in SYSTEM_DOCUMENTS[:3]]


def test_search_without_matches_returns_nothing():
    store = KnowledgeStore()
    assert store.search("zzzqqq") == []


def test_session_scoped_documents_are_only_visible_to_their_session():
    store = KnowledgeStore(())
    store.add("private ledger entry", metadata={"visibility": SESSION_VISIBILITY, "session_id": "s1"})
    store.add("public ledger entry")

    assert len(store.search("ledger", session_id="s1")) == 2
    assert [d.content for d in store.search("ledger", session_id="s2")] == ["public ledger entry"]
    assert [d.content for d in store.search("ledger")] == ["public ledger entry"]
