"""
Ahad - Query Analysis
======================
Cheap, deterministic signals computed for every answer.

``detect_intent``
    Language-agnostic keyword rules, first match wins
    (see ``INTENT_RULES``).
``SentimentAnalyzer``
    Structural type of the sentiment collaborator: English text in, a
    scalar polarity out.  ``VaderSentimentAnalyzer`` is the default,
    backed by NLTK's VADER lexicon (compound score in [-1, 1]).
``classify_polarity``
    Thresholds a polarity into ``positive`` / ``negative`` / ``neutral``
    at ±0.2.
"""

from __future__ import annotations

import re
from typing import Literal, Protocol, runtime_checkable

from ahad.config.prompt_templates import DEFAULT_INTENT, INTENT_RULES
from ahad.src.utils.logger import get_logger

logger = get_logger(__name__)

Sentiment = Literal["positive", "negative", "neutral"]

POLARITY_THRESHOLD = 0.2

_COMPILED_RULES: tuple[tuple[str, re.Pattern[str]], ...] = tuple((intent, re.compile(pattern)) for intent, pattern in INTENT_RULES)


def detect_intent(text: str) -> str:
    """Return the first intent whose pattern matches the lowercased *text*."""
    lowered = text.lower()
    for intent, pattern in _COMPILED_RULES:
        if pattern.search(lowered):
            return intent
    return DEFAULT_INTENT


def classify_polarity(score: float) -> Sentiment:
    if score > POLARITY_THRESHOLD:
        return "positive"
    if score < -POLARITY_THRESHOLD:
        return "negative"
    return "neutral"


@runtime_checkable
class SentimentAnalyzer(Protocol):
    def polarity(self, text: str) -> float: ...


class VaderSentimentAnalyzer:
    """
    NLTK VADER wrapper.

    The lexicon is loaded lazily on first use.  When it is not installed
    (``nltk.download("vader_lexicon")``) a warning is logged once and
    every text scores 0.0.
    """

    __slots__ = ("_analyzer", "_unavailable")

    def __init__(self) -> None:
        self._analyzer = None
        self._unavailable = False


    def polarity(self, text: str) -> float:
        analyzer = self._load()
        if analyzer is None:
            return 0.0
        return float(analyzer.polarity_scores(text)["compound"])


    def _load(self):
        if self._analyzer is None and not self._unavailable:
            from nltk.sentiment import SentimentIntensityAnalyzer

            try:
                self._analyzer = SentimentIntensityAnalyzer()
            except LookupError:
                logger.warning("VADER lexicon missing; sentiment scoring disabled.")
                self._unavailable = True
        return self._analyzer
