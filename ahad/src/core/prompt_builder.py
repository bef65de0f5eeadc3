"""
Ahad - Prompt Builder
======================
Deterministic assembly of the instruction prompt sent to the LLM.

Section order (fixed):
    a. Role + hard language directive (language name and code)
    b. Supported response languages
    c. Retrieved passages, or the "no specific context" sentinel
    d. Uploaded-files block            — only if non-blank
    e. Session file-count notice       — only if the session has files
    f. Previous conversation           — only if there is history
    g. The user query
    h. Language-specific instructions  — general, plus image/document/file
                                         blocks triggered by query keywords
                                         or session files
    i. General guidelines
    j. Closing directive repeating the language code

Image and document blocks are keyword-triggered, not evidence-triggered:
they appear whenever the query mentions e.g. "photo" or "pdf", whether
or not anything matching was retrieved.

Unsupported language codes are replaced by the default language in every
section (name *and* code), see ``resolve_language``.
"""

from __future__ import annotations

from collections.abc import Sequence

from ahad.config.prompt_templates import (
    CLOSING_LINE,
    CONTEXT_BLOCK,
    DEFAULT_LANGUAGE_CODE,
    DOCUMENT_ANALYSIS_STEPS,
    DOCUMENT_KEYWORDS,
    FILE_COUNT_LINE,
    FILES_BLOCK,
    GENERAL_GUIDELINES,
    HISTORY_BLOCK,
    IMAGE_ANALYSIS_STEPS,
    IMAGE_KEYWORDS,
    INSTRUCTIONS_HEADER,
    LANGUAGE_BLOCK,
    LANGUAGE_PROFILES,
    NO_CONTEXT_SENTINEL,
    NO_HISTORY_SENTINEL,
    QUERY_LINE,
    RESPOND_ONLY_LINE,
    ROLE_HEADER,
    SUPPORTED_LANGUAGES_LINE,
    LanguageProfile,
)
from ahad.src.core.models import RetrievedPassage
from ahad.src.utils.logger import get_logger

logger = get_logger(__name__)


def resolve_language(code: str | None) -> LanguageProfile:
    """
    Profile for *code*, case- and whitespace-insensitive.

    Unknown or empty codes resolve to the default language profile, so
    callers should use ``profile.code`` from here on rather than the
    code they were given.
    """
    normalised = (code or "").strip().lower()
    profile = LANGUAGE_PROFILES.get(normalised)
    if profile is None:
        logger.warning("Unsupported language code %r — using '%s'.", code, DEFAULT_LANGUAGE_CODE)
        return LANGUAGE_PROFILES[DEFAULT_LANGUAGE_CODE]
    return profile


def _mentions(query_lower: str, keywords: Sequence[str]) -> bool:
    return any(keyword in query_lower for keyword in keywords)


class PromptBuilder:
    """Stateless; a single instance is shared across requests."""

    __slots__ = ()

    def build(self, language_code: str, passages: Sequence[RetrievedPassage], file_context_text: str, history_text: str, query: str, file_count: int = 0) -> str:
        profile = resolve_language(language_code)
        names = {"language_name": profile.name, "language_upper": profile.code.upper()}

        sections: list[str] = [
            ROLE_HEADER.format(**names),
            LANGUAGE_BLOCK.format(supported=SUPPORTED_LANGUAGES_LINE, **names),
            CONTEXT_BLOCK.format(context=self._format_context(passages)),
        ]

        if file_context_text and file_context_text.strip():
            sections.append(FILES_BLOCK.format(file_context=file_context_text.strip()))

        if file_count > 0:
            sections.append(FILE_COUNT_LINE.format(count=file_count))

        if history_text and history_text.strip() and history_text.strip() != NO_HISTORY_SENTINEL:
            sections.append(HISTORY_BLOCK.format(history=history_text.strip()))

        sections.append(QUERY_LINE.format(query=query))
        sections.append(self._instructions(profile, query, file_count))
        sections.append("GENERAL GUIDELINES:\n" + "\n".join(f"- {line}" for line in GENERAL_GUIDELINES))
        sections.append(CLOSING_LINE.format(**names))

        prompt = "\n\n".join(sections) + "\n"
        logger.debug("Prompt built: %d chars, %d passage(s), language=%s", len(prompt), len(passages), profile.code)
        return prompt


    @staticmethod
    def _format_context(passages: Sequence[RetrievedPassage]) -> str:
        if not passages:
            return NO_CONTEXT_SENTINEL
        return "\n\n".join(p.text for p in passages)


    @staticmethod
    def _instructions(profile: LanguageProfile, query: str, file_count: int) -> str:
        query_lower = query.lower()
        lines = [
            INSTRUCTIONS_HEADER,
            "1. " + RESPOND_ONLY_LINE.format(language_name=profile.name, language_upper=profile.code.upper()),
            f"2. {profile.general_instruction}",
        ]
        step = 3

        if _mentions(query_lower, IMAGE_KEYWORDS):
            lines.append(f"{step}. {profile.image_instruction}")
            lines.extend(f"   - {item}" for item in IMAGE_ANALYSIS_STEPS)
            step += 1

        if _mentions(query_lower, DOCUMENT_KEYWORDS):
            lines.append(f"{step}. {profile.document_instruction}")
            lines.extend(f"   - {item}" for item in DOCUMENT_ANALYSIS_STEPS)
            step += 1

        if file_count > 0:
            lines.append(f"{step}. {profile.file_instruction}")

        return "\n".join(lines)
