"""
Ahad - IngestionPipeline
=========================
Offline pipeline that reads raw corpus files, cleans and chunks them, and
persists the chunks into the external vector store used by retrieval.

Key design decisions:
    • **Dependency Injection** – receives the vector store, so tests can
      pass an in-memory fake.
    • **Chunking** – ``RecursiveCharacterTextSplitter`` with
      ``CHUNK_SIZE`` / ``CHUNK_OVERLAP`` (see ``text_utils.chunk_text``),
      the same splitter used for runtime ingests.
    • **Concurrency** – files are processed in parallel via
      ``ThreadPoolExecutor`` (embedding calls are I/O-bound).
    • **Caching** – MD5-based file hashing skips unchanged files.

Usage:
    from ahad.src.core.ingestor import IngestionPipeline
    pipeline = IngestionPipeline(vector_store)
    result   = pipeline.run()
"""

from __future__ import annotations

import hashlib
import json
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

from ahad.config.settings import settings
from ahad.src.core.retrieval import VectorStore
from ahad.src.utils.logger import get_logger
from ahad.src.utils.text_utils import chunk_text, clean_text

logger = get_logger(__name__)

SUPPORTED_EXTENSIONS = {".txt", ".md"}
HASH_CACHE_FILENAME = "ingestion_hashes.json"
CORPUS_SOURCE = "corpus"

_MAX_WORKERS = 4


class IngestionPipeline:
    """
    End-to-end document ingestion: read → clean → chunk → embed → store.

    Parameters
    ----------
    vector_store
        Store exposing ``add_documents(texts, metadatas)`` (injected).
    source_dir
        Override the source directory. Defaults to ``settings.DATA_RAW_DIR``.
    cache_path
        Override the hash-cache file. Defaults to
        ``settings.DATA_PROCESSED_DIR / "ingestion_hashes.json"``.
    max_workers
        Number of parallel threads for file processing.
    """

    def __init__(self, vector_store: VectorStore, source_dir: Path | None = None, cache_path: Path | None = None, max_workers: int = _MAX_WORKERS) -> None:
        self._store = vector_store
        self._source_dir = Path(source_dir or settings.DATA_RAW_DIR)
        self._max_workers = max_workers
        self._hash_cache_path = Path(cache_path or settings.DATA_PROCESSED_DIR / HASH_CACHE_FILENAME)
        self._hash_cache: dict[str, str] = self._load_hash_cache()

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    def run(self) -> dict[str, Any]:
        """
        Ingest every supported file in the source directory.

        Returns
        -------
        dict
            ``total_files``, ``files_processed``, ``files_skipped``,
            ``total_chunks``, ``elapsed_seconds``.
        """
        t_start = time.perf_counter()

        if not self._source_dir.exists():
            logger.warning("Source directory does not exist: %s", self._source_dir)
            return self._summary(0, 0, 0, 0, time.perf_counter() - t_start)

        files = sorted(f for f in self._source_dir.iterdir() if f.is_file() and f.suffix.lower() in SUPPORTED_EXTENSIONS)
        if not files:
            logger.warning("No supported files found in %s", self._source_dir)
            return self._summary(0, 0, 0, 0, time.perf_counter() - t_start)

        logger.info("Starting ingestion — %d file(s) found in %s", len(files), self._source_dir)

        total_chunks = 0
        files_processed = 0
        files_skipped = 0

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            future_to_path = {pool.submit(self._ingest_file, fp): fp for fp in files}
            for future in as_completed(future_to_path):
                filepath = future_to_path[future]
                try:
                    result = future.result()
                except Exception:
                    logger.exception("Failed to ingest file: %s", filepath.name)
                    continue
                if result == -1:
                    files_skipped += 1
                else:
                    total_chunks += result
                    files_processed += 1

        self._save_hash_cache()

        elapsed = time.perf_counter() - t_start
        logger.info("Ingestion complete — %d file(s) processed, %d skipped, %d chunk(s) stored in %.2fs.", files_processed, files_skipped, total_chunks, elapsed)
        return self._summary(len(files), files_processed, files_skipped, total_chunks, elapsed)


    def clear_cache(self) -> bool:
        """Forget every cached hash (next ``run`` re-ingests everything)."""
        self._hash_cache.clear()
        if self._hash_cache_path.exists():
            self._hash_cache_path.unlink()
            logger.warning("Hash cache deleted: %s", self._hash_cache_path)
            return True
        return False

    # ══════════════════════════════════════════════════════════════════
    #  PER-FILE PROCESSING
    # ══════════════════════════════════════════════════════════════════

    def _ingest_file(self, filepath: Path) -> int:
        """Number of chunks added, or ``-1`` on a cache hit."""
        file_hash = self._compute_file_hash(filepath)
        if self._hash_cache.get(filepath.name) == file_hash:
            logger.info("CACHE_HIT — Skipping unchanged file: %s", filepath.name)
            return -1

        t_file = time.perf_counter()
        cleaned = clean_text(self._read_file(filepath))
        if not cleaned:
            logger.warning("Skipping empty file: %s", filepath.name)
            self._hash_cache[filepath.name] = file_hash
            return 0

        chunks = chunk_text(cleaned, settings.CHUNK_SIZE, settings.CHUNK_OVERLAP)
        metadata_base = {"source": CORPUS_SOURCE, "type": filepath.suffix.lstrip(".").lower(), "source_file": filepath.name}
        metadatas = [{**metadata_base, "chunk_index": idx} for idx in range(len(chunks))]

        added = self._store.add_documents(chunks, metadatas)
        logger.info("File '%s' → %d chunk(s) in %.1fms.", filepath.name, added, (time.perf_counter() - t_file) * 1000)

        self._hash_cache[filepath.name] = file_hash
        return added


    @staticmethod
    def _read_file(filepath: Path) -> str:
        try:
            return filepath.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            return filepath.read_text(encoding="latin-1")

    # ══════════════════════════════════════════════════════════════════
    #  MD5 CACHING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _compute_file_hash(filepath: Path) -> str:
        hasher = hashlib.md5()
        with open(filepath, "rb") as f:
            for block in iter(lambda: f.read(8192), b""):
                hasher.update(block)
        return hasher.hexdigest()


    def _load_hash_cache(self) -> dict[str, str]:
        if self._hash_cache_path.exists():
            try:
                return json.loads(self._hash_cache_path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError):
                logger.warning("Corrupt hash cache — starting fresh.")
        return {}


    def _save_hash_cache(self) -> None:
        self._hash_cache_path.parent.mkdir(parents=True, exist_ok=True)
        self._hash_cache_path.write_text(json.dumps(self._hash_cache, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("Hash cache saved to %s", self._hash_cache_path)


    @staticmethod
    def _summary(total: int, processed: int, skipped: int, chunks: int, elapsed: float) -> dict[str, Any]:
        return {
            "total_files": total,
            "files_processed": processed,
            "files_skipped": skipped,
            "total_chunks": chunks,
            "elapsed_seconds": round(elapsed, 2),
        }
