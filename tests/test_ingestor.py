from ahad.src.core.ingestor import IngestionPipeline

from conftest import DummyVectorStore


def _write_corpus(root):
    root.mkdir()
    (root / "faq.txt").write_text("Invoices are payable within 30 days.", encoding="utf-8")
    (root / "guide.md").write_text("# Uploads\n\nImages and PDFs are supported.", encoding="utf-8")
    (root / "scan.pdf").write_bytes(b"%PDF-1.4")
    return root


def test_run_ingests_supported_files(tmp_path):
    source = _write_corpus(tmp_path / "raw")
    store = DummyVectorStore()

    summary = IngestionPipeline(store, source_dir=source, cache_path=tmp_path / "hashes.json").run()

    assert summary["total_files"] == 2
    assert summary["files_processed"] == 2
    assert summary["files_skipped"] == 0
    assert summary["total_chunks"] == 2

    metadatas = {meta["source_file"]: meta for _, metas in store.added for meta in metas}
    assert metadatas["faq.txt"] == {"source": "corpus", "type": "txt", "source_file": "faq.txt", "chunk_index": 0}
    assert metadatas["guide.md"]["type"] == "md"


def test_unchanged_files_are_skipped_on_rerun(tmp_path):
    source = _write_corpus(tmp_path / "raw")
    cache = tmp_path / "hashes.json"
    IngestionPipeline(DummyVectorStore(), source_dir=source, cache_path=cache).run()

    (source / "faq.txt").write_text("Invoices are payable within 45 days.", encoding="utf-8")
    store = DummyVectorStore()
    summary = IngestionPipeline(store, source_dir=source, cache_path=cache).run()

    assert summary["files_skipped"] == 1
    assert summary["files_processed"] == 1
    assert store.added[0][0] == ["Invoices are payable within 45 days."]


def test_clear_cache_forces_full_reingestion(tmp_path):
    source = _write_corpus(tmp_path / "raw")
    cache = tmp_path / "hashes.json"
    IngestionPipeline(DummyVectorStore(), source_dir=source, cache_path=cache).run()

    pipeline = IngestionPipeline(DummyVectorStore(), source_dir=source, cache_path=cache)
    assert pipeline.clear_cache() is True
    assert not cache.exists()
    assert pipeline.run()["files_processed"] == 2


def test_missing_source_directory(tmp_path):
    summary = IngestionPipeline(DummyVectorStore(), source_dir=tmp_path / "absent", cache_path=tmp_path / "hashes.json").run()
    assert summary["total_files"] == 0
    assert summary["total_chunks"] == 0
