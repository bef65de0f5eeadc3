"""
Ahad - Vector Store Setup & Ingestion Script
==============================================
CLI entry point that:
    1. Validates the configuration (fail-fast on a missing ``GOOGLE_API_KEY``).
    2. Opens the LanceDB-backed ``AhadVectorStore`` (optionally dropping
       the existing table).
    3. Runs the ``IngestionPipeline`` over ``DATA_RAW_DIR``.
    4. Prints an execution summary.

Flags:
    --drop       Drop the LanceDB table before ingesting (cache preserved).
    --purge      Drop table AND clear the hash cache (full re-ingestion).
    --drop-only  Drop the table and exit immediately (no ingestion).

Usage:
    python -m ahad.scripts.setup_db
    python -m ahad.scripts.setup_db --purge
"""

from __future__ import annotations

import argparse
import sys
import time


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="setup_db", description="Ahad — Initialise the vector store and ingest the raw corpus.")
    parser.add_argument("--drop", action="store_true", default=False, help="Drop the LanceDB table before ingesting (hash cache preserved).")
    parser.add_argument("--purge", action="store_true", default=False, help="Drop the LanceDB table AND clear the hash cache (full clean re-ingestion).")
    parser.add_argument("--drop-only", action="store_true", default=False, help="Drop the LanceDB table and exit (no ingestion).")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    try:
        from ahad.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}\n")
        sys.exit(1)

    from ahad.src.utils.logger import get_logger
    logger = get_logger(__name__)

    _print_header(settings)

    try:
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    except Exception:
        logger.exception("Failed to initialise embedding model.")
        sys.exit(1)

    from ahad.src.core.ingestor import IngestionPipeline
    from ahad.src.database.vector_store import AhadVectorStore

    store = AhadVectorStore(embedder=embedder)
    pipeline = IngestionPipeline(vector_store=store)

    if args.drop or args.purge or args.drop_only:
        logger.warning("Dropping table '%s' as requested.", settings.LANCEDB_TABLE_NAME)
        store.drop_table()
        if args.purge and not pipeline.clear_cache():
            logger.info("No hash cache to clear.")
        if args.drop_only:
            logger.info("--drop-only: Table dropped. Exiting.")
            return
        # Reopen so a fresh table is created
        store = AhadVectorStore(embedder=embedder)
        pipeline = IngestionPipeline(vector_store=store)

    logger.info("Vector store ready — table '%s' (%d existing rows).", settings.LANCEDB_TABLE_NAME, store.count())

    summary = pipeline.run()
    _print_footer(summary, time.perf_counter() - t_start)


def _print_header(settings: object) -> None:
    api_key_val = settings.GOOGLE_API_KEY.get_secret_value()  # type: ignore[attr-defined]
    masked = f"****{api_key_val[-4:]}" if len(api_key_val) > 4 else "****"

    print()
    print("=" * 60)
    print("  AHAD — Vector Store Setup & Ingestion")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                     # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_MODEL}")         # type: ignore[attr-defined]
    print(f"  LanceDB path : {settings.LANCEDB_PATH}")            # type: ignore[attr-defined]
    print(f"  Source dir   : {settings.DATA_RAW_DIR}")            # type: ignore[attr-defined]
    print(f"  Chunking     : {settings.CHUNK_SIZE}/{settings.CHUNK_OVERLAP} chars")  # type: ignore[attr-defined]
    print(f"  API Key      : {masked}")
    print("=" * 60)
    print()


def _print_footer(summary: dict, elapsed: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Total files scanned  : {summary['total_files']}")
    print(f"  Files ingested       : {summary['files_processed']}")
    print(f"  Files skipped (cache): {summary['files_skipped']}")
    print(f"  Total chunks stored  : {summary['total_chunks']}")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


if __name__ == "__main__":
    main()
