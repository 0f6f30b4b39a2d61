"""Static keyword tables used by the text analysis heuristics.

The tables are plain immutable data.  ``TextAnalyzer`` takes a
:class:`KeywordTables` instance at construction so tests (or a deployment in
another language) can substitute smaller or different dictionaries.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple

_TOPICS = MappingProxyType(
    {
        "Teaching Quality": (
            "teaching", "instruction", "explanation", "clarity", "understanding",
            "knowledge", "expertise", "methodology", "approach", "delivery",
        ),
        "Communication": (
            "communication", "speaking", "listening", "interaction", "discussion",
            "questions", "answers", "feedback", "response", "dialogue",
        ),
        "Course Content": (
            "content", "material", "curriculum", "topics", "subjects", "lessons",
            "modules", "chapters", "information", "knowledge", "theory", "practical",
        ),
        "Organization": (
            "organization", "structure", "planning", "schedule", "time", "management",
            "preparation", "arrangement", "order", "sequence",
        ),
        "Engagement": (
            "engagement", "participation", "interaction", "involvement", "activity",
            "discussion", "collaboration", "teamwork", "group", "active",
        ),
    }
)


@dataclass(frozen=True)
class KeywordTables:
    """Sentiment, topic, emoji and stop-word dictionaries."""

    positive: Tuple[str, ...] = (
        "excellent", "great", "amazing", "wonderful", "fantastic", "outstanding",
        "good", "nice", "helpful", "clear", "effective", "engaging", "informative",
        "professional", "knowledgeable", "patient", "thorough", "well-organized",
        "inspiring", "motivating", "supportive", "friendly", "approachable",
    )
    negative: Tuple[str, ...] = (
        "terrible", "awful", "bad", "poor", "disappointing", "confusing",
        "unclear", "boring", "ineffective", "unprofessional", "rude", "impatient",
        "disorganized", "unhelpful", "difficult", "frustrating", "waste",
        "useless", "inadequate", "insufficient", "lacking",
    )
    neutral: Tuple[str, ...] = (
        "okay", "average", "normal", "standard", "typical", "regular",
        "moderate", "fair", "acceptable", "adequate",
    )
    topics: Mapping[str, Tuple[str, ...]] = field(default_factory=lambda: _TOPICS)
    positive_emojis: frozenset = frozenset(
        ["😊", "😃", "😄", "😁", "🙂", "👍", "👏", "🎉", "✅", "💯", "🌟", "⭐"]
    )
    negative_emojis: frozenset = frozenset(
        ["😞", "😢", "😠", "😡", "👎", "❌", "😔", "😕", "🙁", "😤", "😒"]
    )
    stop_words: frozenset = frozenset(
        [
            "the", "and", "but", "for", "are", "was", "were", "been", "have",
            "has", "had", "will", "would", "could", "should",
        ]
    )
    # Substrings checked against checkbox selections.
    checkbox_positive: Tuple[str, ...] = ("excellent", "good", "satisfied", "helpful", "clear")
    checkbox_negative: Tuple[str, ...] = ("poor", "bad", "unclear", "confusing", "unhelpful")


DEFAULT_TABLES = KeywordTables()
