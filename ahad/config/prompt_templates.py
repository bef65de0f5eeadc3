"""
Ahad - Prompt Templates & Language Tables
===========================================
Centralised prompt management for the RAG engine.  All user-facing
strings live here so they can be reviewed and translated independently
of application logic.

Language tables are a fixed mapping ``code → LanguageProfile``; every
profile carries every string, so a lookup on a supported code can never
miss a key.

Exports
-------
LanguageProfile, LANGUAGE_PROFILES, DEFAULT_LANGUAGE_CODE,
SUPPORTED_LANGUAGES_LINE, NO_CONTEXT_SENTINEL, NO_HISTORY_SENTINEL,
IMAGE_KEYWORDS, DOCUMENT_KEYWORDS, IMAGE_ANALYSIS_STEPS,
DOCUMENT_ANALYSIS_STEPS, GENERAL_GUIDELINES, INTENT_RULES,
SYSTEM_DOCUMENTS, FILE_ONLY_MESSAGE_TEMPLATE.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType


# ══════════════════════════════════════════════════════════════════════
#  LANGUAGE PROFILES
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class LanguageProfile:
    code: str
    name: str
    greeting: str
    general_instruction: str
    image_instruction: str
    document_instruction: str
    file_instruction: str
    fallback_template: str


DEFAULT_LANGUAGE_CODE: str = "en"

_ENGLISH = LanguageProfile(
    code="en",
    name="English",
    greeting="Hello! I'm Ahad AI, your multilingual assistant. How can I help you today?",
    general_instruction="Provide helpful, accurate responses in English.",
    image_instruction="Describe the image content in detail.",
    document_instruction="Analyze the document and extract key information.",
    file_instruction="Reference uploaded files when relevant.",
    fallback_template='I understand you\'re asking: "{query}". As Ahad AI, I can help you analyze uploaded files and answer questions about them. If you\'ve uploaded files, please make sure they were successfully processed.',
)

_HINDI = LanguageProfile(
    code="hi",
    name="Hindi",
    greeting="नमस्ते! मैं आहद AI हूं, आपका बहुभाषी सहायक। आज मैं आपकी कैसे सहायता कर सकता हूं?",
    general_instruction="हिंदी में सहायक, सटीक प्रतिक्रियाएं प्रदान करें।",
    image_instruction="छवि सामग्री का विस्तार से वर्णन करें।",
    document_instruction="दस्तावेज़ का विश्लेषण करें और मुख्य जानकारी निकालें।",
    file_instruction="प्रासंगिक होने पर अपलोड की गई फ़ाइलों का संदर्भ दें।",
    fallback_template='मैं समझता हूं आप पूछ रहे हैं: "{query}"। आहद AI के रूप में, मैं अपलोड किए गए फाइलों का विश्लेषण करने और उनके बारे में प्रश्नों का उत्तर देने में आपकी सहायता कर सकता हूं। यदि आपने फाइलें अपलोड की हैं, तो कृपया सुनिश्चित करें कि वे सफलतापूर्वक प्रसंस्कृत हुई हैं।',
)

_ARABIC = LanguageProfile(
    code="ar",
    name="Arabic",
    greeting="مرحبًا! أنا آحاد AI، مساعدك متعدد اللغات. كيف يمكنني مساعدتك اليوم؟",
    general_instruction="قدم ردودًا مفيدة ودقيقة باللغة العربية.",
    image_instruction="صف محتوى الصورة بالتفصيل.",
    document_instruction="حلل المستند واستخرج المعلومات الرئيسية.",
    file_instruction="أشر إلى الملفات المرفوعة عندما تكون ذات صلة.",
    fallback_template='أفهم أنك تسأل: "{query}". كآحاد AI، يمكنني مساعدتك في تحليل الملفات المرفوعة والإجابة على أسئلتك عنها. إذا قمت بتحميل ملفات، يرجى التأكد من معالجتها بنجاح.',
)

_TELUGU = LanguageProfile(
    code="te",
    name="Telugu",
    greeting="హలో! నేను ఆహద్ AI, మీ బహుభాషా సహాయకుడు. నేను ఈరోజు మీకు ఎలా సహాయం చేయగలను?",
    general_instruction="తెలుగులో సహాయకరమైన, ఖచ్చితమైన ప్రతిస్పందనలను అందించండి.",
    image_instruction="చిత్రం కంటెంట్‌ను వివరంగా వివరించండి.",
    document_instruction="డాక్యుమెంట్‌ను విశ్లేషించి ప్రధాన సమాచారాన్ని సేకరించండి.",
    file_instruction="సంబంధితమైనప్పుడు అప్‌లోడ్ చేసిన ఫైళ్లను సూచించండి.",
    fallback_template='మీరు అడుగుతున్నారని నేను అర్థం చేసుకున్నాను: "{query}". ఆహద్ AI గా, నేను అప్‌లోడ్ చేసిన ఫైళ్లను విశ్లేషించడంలో మరియు వాటి గురించి ప్రశ్నలకు సమాధానం ఇవ్వడంలో మీకు సహాయపడగలను. మీరు ఫైళ్లను అప్‌లోడ్ చేసి ఉంటే, అవి విజయవంతంగా ప్రాసెస్ చేయబడ్డాయని నిర్ధారించుకోండి.',
)

LANGUAGE_PROFILES: MappingProxyType[str, LanguageProfile] = MappingProxyType({p.code: p for p in (_ENGLISH, _HINDI, _ARABIC, _TELUGU)})

SUPPORTED_LANGUAGES_LINE: str = ", ".join(f"{p.name} ({p.code})" for p in LANGUAGE_PROFILES.values())


# ══════════════════════════════════════════════════════════════════════
#  PROMPT SECTIONS
# ══════════════════════════════════════════════════════════════════════

ROLE_HEADER: str = """You are Ahad AI, an intelligent multilingual assistant.

IMPORTANT: You MUST respond EXCLUSIVELY in {language_name} language ({language_upper})!"""

LANGUAGE_BLOCK: str = """AVAILABLE LANGUAGES: {supported}
CURRENT RESPONSE LANGUAGE: {language_name} ({language_upper})"""

CONTEXT_BLOCK: str = "CONTEXT INFORMATION:\n{context}"
FILES_BLOCK: str = "UPLOADED FILES INFORMATION:\n{file_context}"
FILE_COUNT_LINE: str = "CURRENT SESSION HAS {count} UPLOADED FILE(S)."
HISTORY_BLOCK: str = "PREVIOUS CONVERSATION:\n{history}"
QUERY_LINE: str = "USER QUERY: {query}"
INSTRUCTIONS_HEADER: str = "LANGUAGE-SPECIFIC INSTRUCTIONS:"
RESPOND_ONLY_LINE: str = "Respond ONLY in {language_name} ({language_upper})"
CLOSING_LINE: str = "RESPONSE IN {language_upper}:"

NO_CONTEXT_SENTINEL: str = "No specific context available. Use your general knowledge."
NO_HISTORY_SENTINEL: str = "No previous conversation in this session."

# Keyword triggers, matched as substrings of the lowercased query
IMAGE_KEYWORDS: tuple[str, ...] = ("image", "picture", "photo")
DOCUMENT_KEYWORDS: tuple[str, ...] = ("document", "file", "pdf")

IMAGE_ANALYSIS_STEPS: tuple[str, ...] = (
    "Describe visual elements, colors, objects, text",
    "Mention composition and overall impression",
    "If text is visible, read and interpret it",
)

DOCUMENT_ANALYSIS_STEPS: tuple[str, ...] = (
    "Summarize key points",
    "Extract important information",
    "Answer specific questions about content",
)

GENERAL_GUIDELINES: tuple[str, ...] = (
    "Be helpful, friendly, and informative",
    "If context is relevant, use it",
    "If no context, use general knowledge",
    "Maintain conversation flow",
    "Keep responses concise but complete",
)


# ══════════════════════════════════════════════════════════════════════
#  INTENT RULES
# ══════════════════════════════════════════════════════════════════════
# Evaluated top to bottom; the first rule with a matching pattern wins.
# Patterns run against the lowercased query.  Greeting words use word
# boundaries so that "this" or "history" never read as "hi".

INTENT_RULES: tuple[tuple[str, str], ...] = (
    ("file_upload", r"upload|file|attach"),
    ("image_analysis", r"image|picture|photo"),
    ("document_analysis", r"document|pdf|\bword\b"),
    ("search", r"search|find"),
    ("analysis", r"analy[sz]e|explain|describe"),
    ("calculate", r"calculate|math"),
    ("translate", r"translate|language"),
    ("greeting", r"\bhello\b|\bhi\b|\bhey\b|नमस्ते|مرحبً?ا|హలో"),
    ("help", r"help"),
)

DEFAULT_INTENT: str = "general"


# ══════════════════════════════════════════════════════════════════════
#  BUILT-IN KNOWLEDGE
# ══════════════════════════════════════════════════════════════════════

_ALL_CODES: tuple[str, ...] = tuple(LANGUAGE_PROFILES)

SYSTEM_DOCUMENTS: tuple[tuple[str, dict[str, object]], ...] = (
    ("Ahad AI is a multilingual assistant supporting English, Hindi, Arabic, and Telugu", {"source": "system", "type": "multilingual", "languages": list(_ALL_CODES)}),
    ("The assistant can analyze uploaded files including images, PDFs, and documents in any supported language", {"source": "system", "type": "file_support", "languages": list(_ALL_CODES)}),
    ("For image analysis, describe visual elements, colors, objects, text, and overall composition", {"source": "system", "type": "image_analysis", "languages": list(_ALL_CODES)}),
    ("For document analysis, summarize content, extract key points, identify themes, and answer specific questions", {"source": "system", "type": "document_analysis", "languages": list(_ALL_CODES)}),
    ("The assistant maintains conversation context and can remember uploaded files within a session", {"source": "system", "type": "memory", "languages": list(_ALL_CODES)}),
)


# ══════════════════════════════════════════════════════════════════════
#  FILE-ONLY REQUESTS
# ══════════════════════════════════════════════════════════════════════

FILE_ONLY_MESSAGE_TEMPLATE: str = "I uploaded these files: {summary}. Analyze them and tell me about the content."
FILE_SUMMARY_LINE: str = "📄 {filename} ({mime_class}): {status}"
