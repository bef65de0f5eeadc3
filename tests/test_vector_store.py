import pytest

from ahad.src.database.vector_store import AhadVectorStore

_VECTORS = {
    "alpha": [1.0, 0.0, 0.0],
    "beta": [0.0, 1.0, 0.0],
    "gamma": [0.0, 0.0, 1.0],
}


class KeywordEmbedder:
    def embed_documents(self, texts):
        return [self.embed_query(text) for text in texts]

    def embed_query(self, text):
        return _VECTORS[text.split()[0]]


@pytest.fixture
def store(tmp_path):
    return AhadVectorStore(KeywordEmbedder(), db_path=str(tmp_path / "lancedb"), table_name="test_chunks")


def test_empty_store(store):
    assert store.count() == 0
    assert store.similarity_search("alpha") == []


def test_add_and_search_round_trip_metadata(store):
    added = store.add_documents(
        ["alpha invoice terms", "beta refund policy"],
        [
            {"source": "corpus", "type": "txt", "chunk_index": 0, "source_file": "a.txt"},
            {"source": "corpus", "type": "md", "chunk_index": 3, "source_file": "b.md"},
        ],
    )

    assert added == 2
    assert store.count() == 2

    hits = store.similarity_search("beta", limit=1)
    assert len(hits) == 1
    assert hits[0]["text"] == "beta refund policy"
    meta = hits[0]["metadata"]
    assert meta["source_file"] == "b.md"
    assert meta["type"] == "md"
    assert meta["chunk_index"] == 3
    assert meta["distance"] == pytest.approx(0.0)


def test_length_mismatch_is_rejected(store):
    with pytest.raises(ValueError):
        store.add_documents(["alpha"], [])


def test_drop_table(store):
    store.add_documents(["gamma notes"], [{"source": "corpus"}])
    store.drop_table()
    assert store.count() == 0
