"""
Ahad - Centralized Configuration
=================================
Uses ``pydantic-settings`` (``BaseSettings``) to load *all* configuration
from environment variables and the project-level ``.env`` file.

Security
--------
- ``GOOGLE_API_KEY`` is typed as ``SecretStr`` and has **no default value**.
  If the key is missing at startup, Pydantic will raise a ``ValidationError``
  with a clear error message.  The raw value is never exposed in repr,
  logs, or tracebacks.

Paths
-----
All filesystem paths are ``Path.resolve()``-d at class level so they
work identically on Windows, WSL, and Linux.

Timeouts
--------
``LLM_TIMEOUT_SECONDS`` and ``VECTOR_TIMEOUT_SECONDS`` bound the only two
calls that may suspend for a noticeable time.  Hitting either one degrades
the answer instead of failing the request.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.

    Every field is loaded from environment variables (or ``.env``).
    Fields *without* a default are **required** — the app will refuse
    to start until they are provided.

    Attributes
    ----------
    GOOGLE_API_KEY : SecretStr
        API key for Google AI Studio (Gemini).  **Required.**
    ENV : Literal["dev", "prod"]
        Environment mode controlling logging verbosity.
    LOG_LEVEL : str | None
        Explicit level that overrides the ``ENV``-derived default.
    LLM_MODEL, LLM_TEMPERATURE, LLM_TIMEOUT_SECONDS
        Response-generation model and its call budget.
    EMBEDDING_MODEL : str
        Model identifier passed to ``GoogleGenerativeAIEmbeddings``.
    VECTOR_STORE_ENABLED : bool
        Whether to try connecting the LanceDB vector store at all.
    LOCAL_SEARCH_LIMIT, VECTOR_SEARCH_LIMIT, SESSION_FILE_LIMIT
        Per-source caps applied by the retrieval merger.
    FILE_PASSAGE_CHARS : int
        Characters of an uploaded file quoted in a retrieved passage.
    MAX_HISTORY_TURNS : int
        FIFO cap of the per-session conversation log.
    HISTORY_WINDOW : int
        Number of most recent turns rendered into the prompt.
    SESSION_TTL_SECONDS : int | None
        Idle time after which ``evict_expired`` drops a session.
        ``None`` disables expiry.
    SHARE_UPLOADS_ACROSS_SESSIONS : bool
        When true, uploaded file text is searchable from every session.
    """

    # ── Resolved Absolute Paths ────────────────────────────────────────
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    DATA_RAW_DIR: Path = BASE_DIR / "data" / "raw"
    DATA_PROCESSED_DIR: Path = BASE_DIR / "data" / "processed"
    LANCEDB_PATH: Path = BASE_DIR / "data" / "lancedb"

    # ── Environment Mode ───────────────────────────────────────────────
    ENV: Literal["dev", "prod"] = "dev"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None

    # ── API Keys (REQUIRED — no default) ───────────────────────────────
    GOOGLE_API_KEY: SecretStr

    # ── Model Configuration ────────────────────────────────────────────
    LLM_MODEL: str = "gemini-2.0-flash"
    LLM_TEMPERATURE: float = 0.7
    LLM_TIMEOUT_SECONDS: float = 30.0
    EMBEDDING_MODEL: str = "gemini-embedding-001"

    # ── Vector Store (optional) ────────────────────────────────────────
    VECTOR_STORE_ENABLED: bool = True
    LANCEDB_TABLE_NAME: str = "ahad_knowledge"
    VECTOR_TIMEOUT_SECONDS: float = 5.0

    # ── Ingestion Parameters ───────────────────────────────────────────
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 200

    # ── Retrieval ──────────────────────────────────────────────────────
    LOCAL_SEARCH_LIMIT: int = 3
    VECTOR_SEARCH_LIMIT: int = 2
    SESSION_FILE_LIMIT: int = 2
    FILE_PASSAGE_CHARS: int = 1000

    # ── Sessions ───────────────────────────────────────────────────────
    DEFAULT_LANGUAGE: str = "en"
    MAX_HISTORY_TURNS: int = 50
    HISTORY_WINDOW: int = 10
    SESSION_TTL_SECONDS: int | None = None
    SHARE_UPLOADS_ACROSS_SESSIONS: bool = True

    # ── Validators ─────────────────────────────────────────────────────

    @field_validator("CHUNK_SIZE")
    @classmethod
    def _chunk_size_positive(cls, v: int) -> int:
        if v < 50:
            raise ValueError(f"CHUNK_SIZE must be ≥ 50, got {v}")
        return v


    @field_validator("LLM_TIMEOUT_SECONDS", "VECTOR_TIMEOUT_SECONDS")
    @classmethod
    def _timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Timeouts must be > 0 seconds, got {v}")
        return v


    @field_validator("MAX_HISTORY_TURNS", "HISTORY_WINDOW", "LOCAL_SEARCH_LIMIT", "VECTOR_SEARCH_LIMIT", "SESSION_FILE_LIMIT")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"Limit must be ≥ 1, got {v}")
        return v

    # ── Pydantic Settings Configuration ────────────────────────────────
    model_config = SettingsConfigDict(env_file=Path(__file__).resolve().parent.parent / ".env", env_file_encoding="utf-8", extra="ignore")


# ── Singleton Instance ─────────────────────────────────────────────────
# Import this throughout the project:
#     from ahad.config.settings import settings
settings = Settings()
