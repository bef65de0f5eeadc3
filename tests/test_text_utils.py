from ahad.src.utils.text_utils import (
    chunk_text,
    classify_mime,
    clean_text,
    count_matches,
    format_file_size,
    tokenize_query,
    truncate,
)


def test_tokenize_query_drops_short_words_and_lowercases():
    assert tokenize_query("What IS the Total") == ["what", "the", "total"]
    assert tokenize_query("  a to ") == []


def test_count_matches_is_case_insensitive_substring_match():
    tokens = tokenize_query("quarterly revenue growth")
    assert count_matches(tokens, "Quarterly REVENUE was flat") == 2


def test_clean_text_strips_invisible_characters_and_blank_runs():
    raw = "  hello\u200b   world \n\n\n\n next "
    assert clean_text(raw) == "hello world\n\nnext"


def test_chunk_text_respects_chunk_size():
    text = " ".join(f"word{i}" for i in range(300))
    chunks = chunk_text(text, chunk_size=100, chunk_overlap=20)

    assert len(chunks) > 1
    assert all(len(chunk) <= 100 for chunk in chunks)
    assert chunks[0].startswith("word0")


def test_chunk_text_empty_input():
    assert chunk_text("   ", chunk_size=100, chunk_overlap=20) == []


def test_truncate_always_appends_marker():
    assert truncate("abcdef", 3) == "abc..."
    assert truncate("ab", 3) == "ab..."


def test_format_file_size():
    assert format_file_size(0) == "0 Bytes"
    assert format_file_size(500) == "500 Bytes"
    assert format_file_size(1536) == "1.5 KB"
    assert format_file_size(1024 * 1024) == "1 MB"
    assert format_file_size(10485760) == "10 MB"


def test_classify_mime():
    assert classify_mime("image/png") == ("image", "png")
    assert classify_mime("application/pdf") == ("document", "pdf")
    assert classify_mime("text/markdown") == ("document", "markdown")
    assert classify_mime("application/zip") == ("unknown", "zip")
    assert classify_mime(None) == ("unknown", "")
