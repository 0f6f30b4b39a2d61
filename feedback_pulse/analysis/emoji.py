"""Emoji usage statistics: count, sentiment, diversity and Shannon entropy."""
from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict

from feedback_pulse.analysis.keywords import DEFAULT_TABLES, KeywordTables
from feedback_pulse.analysis.sentiment import SentimentLabel, pick_majority

_EMOJI_RE = re.compile(
    "["
    "\U0001F600-\U0001F64F"  # emoticons
    "\U0001F300-\U0001F5FF"  # symbols & pictographs
    "\U0001F680-\U0001F6FF"  # transport & map
    "\U0001F1E0-\U0001F1FF"  # flags
    "\U0001F900-\U0001F9FF"  # supplemental symbols
    "\u2600-\u26FF"  # misc symbols
    "\u2700-\u27BF"  # dingbats
    "\u2B50\u2B55"  # star, circle
    "]"
)


@dataclass(frozen=True)
class EmojiAnalysis:
    count: int = 0
    entropy: float = 0.0
    sentiment: SentimentLabel = SentimentLabel.NEUTRAL
    diversity: float = 0.0
    breakdown: Dict[str, int] = field(
        default_factory=lambda: {"positive": 0, "negative": 0, "neutral": 0}
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "entropy": self.entropy,
            "sentiment": self.sentiment.value,
            "diversity": self.diversity,
            "breakdown": dict(self.breakdown),
        }


def shannon_entropy(counts: Counter) -> float:
    """Return base-2 entropy of a frequency table (0 for one symbol or none)."""
    if len(counts) <= 1:
        return 0.0
    total = sum(counts.values())
    return -sum((n / total) * math.log2(n / total) for n in counts.values())


def analyze_emojis(text: str, *, tables: KeywordTables = DEFAULT_TABLES) -> EmojiAnalysis:
    """Scan *text* for emoji and summarise how they are used."""

    emojis = _EMOJI_RE.findall(text or "")
    if not emojis:
        return EmojiAnalysis()

    per_emoji: Counter[str] = Counter(emojis)
    positive = sum(n for e, n in per_emoji.items() if e in tables.positive_emojis)
    negative = sum(n for e, n in per_emoji.items() if e in tables.negative_emojis)
    neutral = len(emojis) - positive - negative

    return EmojiAnalysis(
        count=len(emojis),
        entropy=shannon_entropy(per_emoji),
        sentiment=pick_majority(positive, negative, neutral),
        diversity=len(per_emoji) / len(emojis),
        breakdown={"positive": positive, "negative": negative, "neutral": neutral},
    )
