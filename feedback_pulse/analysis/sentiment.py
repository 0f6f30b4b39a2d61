"""Keyword-based sentiment scoring.

This module provides ``analyze_sentiment`` which counts positive, negative and
neutral keywords in a text and turns the winning category into a structured
result.  It is a deterministic heuristic, not a language model: the goal is a
stable, explainable signal for dashboards.
"""
from __future__ import annotations

import functools
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from feedback_pulse.analysis.keywords import DEFAULT_TABLES, KeywordTables


class SentimentLabel(str, Enum):
    """Enumeration of supported sentiment classes."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


@dataclass(frozen=True)
class SentimentResult:
    """Structured sentiment analysis output."""

    label: SentimentLabel
    score: float  # range ‑1.0 .. 1.0
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label.value, "score": self.score, "confidence": self.confidence}


NEUTRAL_RESULT = SentimentResult(label=SentimentLabel.NEUTRAL, score=0.0, confidence=0.0)


@functools.lru_cache(maxsize=1024)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # Word-bounded so "clear" does not fire inside "unclear".
    return re.compile(r"(?<![\w-])" + re.escape(keyword) + r"(?![\w-])", re.IGNORECASE)


def count_keywords(text: str, keywords: Iterable[str]) -> int:
    """Return the total number of occurrences of *keywords* in *text*."""
    return sum(len(_keyword_pattern(kw).findall(text)) for kw in keywords)


def pick_majority(positive: int, negative: int, neutral: int) -> SentimentLabel:
    """Return the category with the strictly largest count; ties are neutral."""
    if positive > negative and positive > neutral:
        return SentimentLabel.POSITIVE
    if negative > positive and negative > neutral:
        return SentimentLabel.NEGATIVE
    return SentimentLabel.NEUTRAL


def analyze_sentiment(text: Optional[str], *, tables: KeywordTables = DEFAULT_TABLES) -> SentimentResult:
    """Classify *text* as positive/neutral/negative from keyword counts.

    Parameters
    ----------
    text
        The text to classify.  ``None`` or non-strings are neutral.
    tables
        Keyword dictionaries to match against.
    """

    if not text or not isinstance(text, str):
        return NEUTRAL_RESULT

    positive = count_keywords(text, tables.positive)
    negative = count_keywords(text, tables.negative)
    neutral = count_keywords(text, tables.neutral)

    total = positive + negative + neutral
    if total == 0:
        return NEUTRAL_RESULT

    label = pick_majority(positive, negative, neutral)
    if label is SentimentLabel.POSITIVE:
        ratio = positive / total
        return SentimentResult(label=label, score=ratio, confidence=min(0.9, ratio * 1.2))
    if label is SentimentLabel.NEGATIVE:
        ratio = negative / total
        return SentimentResult(label=label, score=-ratio, confidence=min(0.9, ratio * 1.2))
    return SentimentResult(label=label, score=0.0, confidence=max(0.3, neutral / total))
