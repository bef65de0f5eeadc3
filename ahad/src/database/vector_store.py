"""
Ahad - AhadVectorStore
========================
LanceDB adapter that plays the role of the optional external
vector-similarity store:
  • ``similarity_search(query, limit)`` → ``[{"text", "metadata"}, ...]``
  • ``add_documents(texts, metadatas)`` → number of rows written

Design decisions:
  • **Singleton DB connection** — ``_get_connection()`` caches the
    ``lancedb.DBConnection`` per path to avoid file-lock issues.
  • **Dependency Injection** — the embedder is injected, so tests can use
    a deterministic fake and production uses Gemini embeddings.
  • **Free-form metadata** — anything beyond ``source``/``type``/
    ``chunk_index`` is stored as a JSON string column and restored on read.
  • **Blocking API** — every call is synchronous; the retrieval merger
    runs it in a worker thread under a timeout.

Usage:
    from langchain_google_genai import GoogleGenerativeAIEmbeddings
    from ahad.src.database.vector_store import AhadVectorStore

    embedder = GoogleGenerativeAIEmbeddings(model=settings.EMBEDDING_MODEL, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
    store = AhadVectorStore(embedder)
    store.add_documents(texts=[...], metadatas=[...])
    hits = store.similarity_search("query text", limit=2)
"""

from __future__ import annotations

import json
import threading
from typing import Any, Protocol, runtime_checkable

import lancedb
import pyarrow as pa

from ahad.config.settings import settings
from ahad.src.utils.logger import get_logger

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
DocumentMetadata = dict[str, Any]
VectorHit = dict[str, str | DocumentMetadata]


@runtime_checkable
class Embedder(Protocol):
    """Structural type for any LangChain-compatible embedding model."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...


# ── LanceDB Table Schema ──────────────────────────────────────────────
# The vector column must be a fixed-size list for ANN search, so the
# schema is built once the embedding dimension is known.
def ahad_schema(dimension: int) -> pa.Schema:
    return pa.schema([
        pa.field("vector", pa.list_(pa.float32(), dimension)),
        pa.field("text", pa.utf8()),
        pa.field("source", pa.utf8()),
        pa.field("doc_type", pa.utf8()),
        pa.field("chunk_index", pa.int32()),
        pa.field("metadata_json", pa.utf8()),
    ])

_RESERVED_KEYS = {"source", "type", "chunk_index"}
_EMBED_BATCH_SIZE = 64
_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


def _get_connection(db_path: str) -> lancedb.DBConnection:
    """Return the cached ``lancedb.DBConnection`` for *db_path*, opening it once."""
    if db_path not in _db_connection_cache:
        with _DB_LOCK:
            if db_path not in _db_connection_cache:
                logger.info("Opening new LanceDB connection: %s", db_path)
                _db_connection_cache[db_path] = lancedb.connect(db_path)
    return _db_connection_cache[db_path]


class AhadVectorStore:
    """
    Vector store over a single LanceDB table.

    Parameters
    ----------
    embedder : Embedder
        Object exposing ``embed_documents`` and ``embed_query``.
    db_path
        Override the database directory.  Defaults to ``settings.LANCEDB_PATH``.
    table_name
        Override the table name.  Defaults to ``settings.LANCEDB_TABLE_NAME``.

    Raises
    ------
    OSError
        When the database directory cannot be opened.  Callers treat this
        as "vector store unavailable" and carry on without it.
    """

    __slots__ = ("embedder", "_db_path", "_table_name", "db", "table")

    def __init__(self, embedder: Embedder, db_path: str | None = None, table_name: str | None = None) -> None:
        self.embedder: Embedder = embedder
        self._db_path: str = str(db_path or settings.LANCEDB_PATH)
        self._table_name: str = table_name or settings.LANCEDB_TABLE_NAME
        self.db: lancedb.DBConnection | None = None
        self.table: lancedb.table.Table | None = None
        self._connect()


    def _connect(self) -> None:
        try:
            self.db = _get_connection(self._db_path)
            if self._table_name in self.db.table_names():
                self.table = self.db.open_table(self._table_name)
                logger.info("Opened existing table '%s' (%d rows).", self._table_name, self.table.count_rows())
            else:
                logger.info("Table '%s' not found; it will be created on first insert.", self._table_name)
        except OSError as exc:
            logger.error("LanceDB filesystem error at %s: %s", self._db_path, exc)
            raise


    def add_documents(self, texts: list[str], metadatas: list[DocumentMetadata]) -> int:
        """
        Embed *texts* in batches and persist them with *metadatas*.

        Returns
        -------
        int
            Number of rows written.

        Raises
        ------
        ValueError
            If ``texts`` and ``metadatas`` have mismatched lengths.
        RuntimeError
            If there is no database connection.
        """
        if len(texts) != len(metadatas):
            raise ValueError(f"Length mismatch: {len(texts)} texts vs {len(metadatas)} metadatas.")
        if self.db is None:
            raise RuntimeError("Vector store is not connected.")
        if not texts:
            return 0

        vectors: list[list[float]] = []
        for i in range(0, len(texts), _EMBED_BATCH_SIZE):
            batch = texts[i : i + _EMBED_BATCH_SIZE]
            try:
                vectors.extend(self.embedder.embed_documents(batch))
            except Exception as exc:
                logger.error("Embedding batch %d–%d failed: %s", i, i + len(batch) - 1, exc)
                raise

        records = [self._to_record(text, vector, meta) for text, vector, meta in zip(texts, vectors, metadatas)]
        with _DB_LOCK:
            if self.table is None:
                self.table = self.db.create_table(self._table_name, schema=ahad_schema(len(vectors[0])))
                logger.info("Created new table '%s' (dimension=%d).", self._table_name, len(vectors[0]))
        self.table.add(records)

        logger.info("Added %d chunk(s). Table '%s' now has %d rows.", len(records), self._table_name, self.table.count_rows())
        return len(records)


    def similarity_search(self, query_text: str, limit: int = 2) -> list[VectorHit]:
        """Nearest neighbours of *query_text* as ``{"text", "metadata"}`` dicts."""
        if self.table is None:
            return []

        query_vector = self.embedder.embed_query(query_text)
        rows = self.table.search(query_vector).limit(limit).to_list()
        logger.debug("Vector search returned %d row(s) (limit=%d).", len(rows), limit)
        return [self._from_row(row) for row in rows]


    def count(self) -> int:
        if self.table is None:
            return 0
        return self.table.count_rows()


    def drop_table(self) -> None:
        """Drop the vector table (used before a clean re-ingestion)."""
        if self.db is None:
            logger.warning("No database connection; nothing to drop.")
            return
        try:
            self.db.drop_table(self._table_name)
            self.table = None
            logger.info("Dropped table '%s'.", self._table_name)
        except ValueError:
            logger.warning("Table '%s' does not exist — nothing to drop.", self._table_name)


    @staticmethod
    def _to_record(text: str, vector: list[float], meta: DocumentMetadata) -> dict[str, Any]:
        extra = {k: v for k, v in meta.items() if k not in _RESERVED_KEYS}
        return {
            "vector": vector,
            "text": text,
            "source": str(meta.get("source", "unknown")),
            "doc_type": str(meta.get("type", "general")),
            "chunk_index": int(meta.get("chunk_index", 0)),
            "metadata_json": json.dumps(extra, ensure_ascii=False, default=str),
        }


    @staticmethod
    def _from_row(row: dict[str, Any]) -> VectorHit:
        try:
            metadata: DocumentMetadata = json.loads(row.get("metadata_json") or "{}")
        except json.JSONDecodeError:
            metadata = {}
        metadata.update({"source": row.get("source", "unknown"), "type": row.get("doc_type", "general"), "chunk_index": row.get("chunk_index", 0)})
        if "_distance" in row:
            metadata["distance"] = float(row["_distance"])
        return {"text": str(row.get("text", "")), "metadata": metadata}


    def __repr__(self) -> str:
        return f"AhadVectorStore(db='{self._db_path}', table='{self._table_name}', rows={self.count()})"
