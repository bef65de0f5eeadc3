from ahad.config.prompt_templates import NO_CONTEXT_SENTINEL, NO_HISTORY_SENTINEL
from ahad.src.core.models import RetrievedPassage, SourceTag
from ahad.src.core.prompt_builder import PromptBuilder, resolve_language


def _passage(text):
    return RetrievedPassage(text=text, source_tag=SourceTag.LOCAL_KNOWLEDGE)


def test_minimal_prompt_uses_sentinels_and_skips_optional_sections():
    prompt = PromptBuilder().build("en", [], "", NO_HISTORY_SENTINEL, "What can you do?")

    assert prompt.startswith("You are Ahad AI")
    assert f"CONTEXT INFORMATION:\n{NO_CONTEXT_SENTINEL}" in prompt
    assert "UPLOADED FILES INFORMATION" not in prompt
    assert "UPLOADED FILE(S)." not in prompt
    assert "PREVIOUS CONVERSATION" not in prompt
    assert "USER QUERY: What can you do?" in prompt
    assert prompt.endswith("RESPONSE IN EN:\n")


def test_sections_follow_fixed_order():
    prompt = PromptBuilder().build(
        "en",
        [_passage("first passage"), _passage("second passage")],
        "=== File: notes.txt ===",
        "user: hello\nassistant: hi",
        "summarise my notes",
        file_count=1,
    )

    markers = [
        "IMPORTANT: You MUST respond EXCLUSIVELY in English language (EN)!",
        "AVAILABLE LANGUAGES: English (en), Hindi (hi), Arabic (ar), Telugu (te)",
        "CONTEXT INFORMATION:\nfirst passage\n\nsecond passage",
        "UPLOADED FILES INFORMATION:\n=== File: notes.txt ===",
        "CURRENT SESSION HAS 1 UPLOADED FILE(S).",
        "PREVIOUS CONVERSATION:\nuser: hello\nassistant: hi",
        "USER QUERY: summarise my notes",
        "LANGUAGE-SPECIFIC INSTRUCTIONS:",
        "GENERAL GUIDELINES:",
        "RESPONSE IN EN:",
    ]
    positions = [prompt.index(marker) for marker in markers]
    assert positions == sorted(positions)


def test_keyword_triggered_instruction_blocks_are_numbered():
    prompt = PromptBuilder().build("en", [], "", "", "describe the photo in this pdf", file_count=2)

    assert "1. Respond ONLY in English (EN)" in prompt
    assert "2. Provide helpful, accurate responses in English." in prompt
    assert "3. Describe the image content in detail." in prompt
    assert "4. Analyze the document and extract key information." in prompt
    assert "5. Reference uploaded files when relevant." in prompt
    assert "   - Summarize key points" in prompt


def test_no_keywords_no_files_only_general_instructions():
    prompt = PromptBuilder().build("en", [], "", "", "what is the weather")

    assert "3." not in prompt.split("LANGUAGE-SPECIFIC INSTRUCTIONS:")[1].split("GENERAL GUIDELINES:")[0]


def test_language_profile_drives_every_language_reference():
    prompt = PromptBuilder().build("hi", [], "", "", "नमस्ते")

    assert "EXCLUSIVELY in Hindi language (HI)" in prompt
    assert "CURRENT RESPONSE LANGUAGE: Hindi (HI)" in prompt
    assert "हिंदी में सहायक" in prompt
    assert prompt.endswith("RESPONSE IN HI:\n")


def test_unknown_language_falls_back_to_default_everywhere():
    prompt = PromptBuilder().build("fr", [], "", "", "bonjour")

    assert "Respond ONLY in English (EN)" in prompt
    assert "(FR)" not in prompt
    assert prompt.endswith("RESPONSE IN EN:\n")


def test_resolve_language_normalises_code():
    assert resolve_language(" AR ").code == "ar"
    assert resolve_language(None).code == "en"
    assert resolve_language("xx").name == "English"
