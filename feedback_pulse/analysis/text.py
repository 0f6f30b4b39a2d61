"""Composite analysis of a free-text answer.

``TextAnalyzer`` bundles sentiment, topics, emoji statistics, readability and
key phrases into one :class:`TextAnalysis`.  Every step is a pure function of
the text and the injected keyword tables, so results are never cached or
persisted.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from feedback_pulse.analysis.emoji import EmojiAnalysis, analyze_emojis
from feedback_pulse.analysis.keywords import DEFAULT_TABLES, KeywordTables
from feedback_pulse.analysis.sentiment import NEUTRAL_RESULT, SentimentResult, analyze_sentiment
from feedback_pulse.analysis.themes import KeyPhrase, TopicRelevance, extract_key_phrases, extract_topics

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


@dataclass(frozen=True)
class TextAnalysis:
    """Everything derived from a single text answer."""

    sentiment: SentimentResult = NEUTRAL_RESULT
    topics: List[TopicRelevance] = field(default_factory=list)
    emoji_analysis: EmojiAnalysis = field(default_factory=EmojiAnalysis)
    word_count: int = 0
    readability_score: int = 0
    key_phrases: List[KeyPhrase] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sentiment": self.sentiment.to_dict(),
            "topics": [t.to_dict() for t in self.topics],
            "emojiAnalysis": self.emoji_analysis.to_dict(),
            "wordCount": self.word_count,
            "readabilityScore": self.readability_score,
            "keyPhrases": [p.to_dict() for p in self.key_phrases],
        }


def readability_score(words: List[str]) -> int:
    """Return a 0-100 readability estimate (higher is easier to read).

    ``100 - avg_word_length * 5 - avg_sentence_length * 2``, clamped.
    """

    if not words:
        return 0
    avg_word_length = sum(len(w) for w in words) / len(words)
    sentences = [s for s in _SENTENCE_SPLIT_RE.split(" ".join(words)) if s.strip()]
    avg_sentence_length = len(words) / max(1, len(sentences))
    score = 100 - avg_word_length * 5 - avg_sentence_length * 2
    return round(max(0.0, min(100.0, score)))


class TextAnalyzer:
    """Deterministic keyword/weight text analytics."""

    def __init__(self, tables: KeywordTables = DEFAULT_TABLES) -> None:
        self.tables = tables

    def sentiment(self, text: Optional[str]) -> SentimentResult:
        return analyze_sentiment(text, tables=self.tables)

    def analyze_text(self, text: Optional[str]) -> TextAnalysis:
        """Analyse *text*; ``None``, non-strings and blanks give the neutral zero result."""

        if not text or not isinstance(text, str):
            return TextAnalysis()

        clean = text.lower().strip()
        words = clean.split()
        return TextAnalysis(
            sentiment=analyze_sentiment(clean, tables=self.tables),
            topics=extract_topics(clean, tables=self.tables),
            emoji_analysis=analyze_emojis(text, tables=self.tables),
            word_count=len(words),
            readability_score=readability_score(words),
            key_phrases=extract_key_phrases(clean, tables=self.tables),
        )


_default_analyzer = TextAnalyzer()


def analyze_text(text: Optional[str]) -> TextAnalysis:
    """Analyse *text* with the default keyword tables."""
    return _default_analyzer.analyze_text(text)
