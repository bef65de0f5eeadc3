"""
Ahad - Text Utilities
======================
Stateless helpers shared by the retrieval path and the ingestion path:
query tokenisation, text cleaning, chunking, file-size formatting and
MIME classification.
"""

from __future__ import annotations

import re
import unicodedata

from langchain_text_splitters import RecursiveCharacterTextSplitter


# Control characters (C0/C1) except \n, \r, \t, plus BOM and zero-width marks
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")

_MIN_TOKEN_LENGTH = 3
_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")

_DOCUMENT_SUBTYPES = {
    "pdf",
    "plain",
    "markdown",
    "json",
    "csv",
    "msword",
    "vnd.openxmlformats-officedocument.wordprocessingml.document",
}


# ── Tokenisation ───────────────────────────────────────────────────────

def tokenize_query(query: str) -> list[str]:
    """
    Split *query* into the lowercase words used for lexical matching.

    Words are whitespace-separated and must be longer than two characters,
    so ``"what is the total"`` becomes ``["what", "the", "total"]``.
    """
    return [word for word in query.lower().split() if len(word) >= _MIN_TOKEN_LENGTH]


def count_matches(tokens: list[str], text: str) -> int:
    """Number of *tokens* that occur as substrings of the lowercased *text*."""
    haystack = text.lower()
    return sum(1 for token in tokens if token in haystack)


# ── Cleaning & chunking ────────────────────────────────────────────────

def clean_text(text: str) -> str:
    """
    Sanitise raw document text before it is chunked and embedded.

    Steps:
        1. Unicode NFC normalisation, so Devanagari, Arabic and Telugu
           combining marks have a single representation.
        2. Strip non-printable and zero-width characters.
        3. Collapse runs of horizontal whitespace, *preserving* newlines.
        4. Strip every line and collapse 3+ blank lines to 2.
    """
    text = unicodedata.normalize("NFC", text)
    text = _NON_PRINTABLE_RE.sub("", text)
    text = re.sub(r"[^\S\n]+", " ", text)
    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def chunk_text(text: str, chunk_size: int, chunk_overlap: int) -> list[str]:
    """Split *text* into overlapping chunks for vector-store insertion."""
    if not text.strip():
        return []
    splitter = RecursiveCharacterTextSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
    return [chunk for chunk in splitter.split_text(text) if chunk.strip()]


def truncate(text: str, max_chars: int, marker: str = "...") -> str:
    """First *max_chars* characters of *text* followed by *marker*."""
    return text[:max_chars] + marker


# ── File metadata ──────────────────────────────────────────────────────

def format_file_size(size_bytes: int) -> str:
    """
    Human-readable size using 1024-based units.

    Examples::

        0        → "0 Bytes"
        500      → "500 Bytes"
        1536     → "1.5 KB"
        10485760 → "10 MB"
    """
    if size_bytes <= 0:
        return "0 Bytes"
    value = float(size_bytes)
    exponent = 0
    while value >= 1024 and exponent < len(_SIZE_UNITS) - 1:
        value /= 1024
        exponent += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[exponent]}"


def classify_mime(mimetype: str | None) -> tuple[str, str]:
    """
    Map a MIME type onto the ``(mime_class, mime_subtype)`` pair.

    ``image/*`` is an image, text and office formats are documents,
    everything else (including a missing type) is ``unknown``.
    """
    if not mimetype or "/" not in mimetype:
        return "unknown", ""
    major, _, subtype = mimetype.lower().partition("/")
    if major == "image":
        return "image", subtype
    if major == "text" or subtype in _DOCUMENT_SUBTYPES:
        return "document", subtype
    return "unknown", subtype
