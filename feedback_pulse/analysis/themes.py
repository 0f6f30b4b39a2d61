"""Topic relevance and key-phrase extraction."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List

from feedback_pulse.analysis.keywords import DEFAULT_TABLES, KeywordTables
from feedback_pulse.analysis.sentiment import count_keywords

MAX_KEY_PHRASES = 5

# Three mentions make a topic fully relevant.
_MENTIONS_FOR_FULL_RELEVANCE = 3


@dataclass(frozen=True)
class TopicRelevance:
    topic: str
    relevance: float  # 0..1
    mentions: int

    def to_dict(self) -> Dict[str, Any]:
        return {"topic": self.topic, "relevance": self.relevance, "mentions": self.mentions}


@dataclass(frozen=True)
class KeyPhrase:
    phrase: str
    frequency: int

    def to_dict(self) -> Dict[str, Any]:
        return {"phrase": self.phrase, "frequency": self.frequency}


def extract_topics(text: str, *, tables: KeywordTables = DEFAULT_TABLES) -> List[TopicRelevance]:
    """Return topics mentioned in *text*, most relevant first.

    Topics without a single keyword hit are left out.
    """

    if not text:
        return []

    topics: List[TopicRelevance] = []
    for topic, keywords in tables.topics.items():
        mentions = count_keywords(text, keywords)
        if mentions > 0:
            topics.append(
                TopicRelevance(
                    topic=topic,
                    relevance=min(1.0, mentions / _MENTIONS_FOR_FULL_RELEVANCE),
                    mentions=mentions,
                )
            )
    # sorted() is stable, so equal relevance keeps table order.
    return sorted(topics, key=lambda t: t.relevance, reverse=True)


def extract_key_phrases(
    text: str, *, tables: KeywordTables = DEFAULT_TABLES, limit: int = MAX_KEY_PHRASES
) -> List[KeyPhrase]:
    """Return the most frequent repeated two-word phrases in *text*.

    Stop words and words of three characters or fewer are dropped before the
    bigrams are built, so phrases may join words that were not adjacent in
    the original text.
    """

    words = [w for w in text.lower().split() if len(w) > 3 and w not in tables.stop_words]
    counts: Counter[str] = Counter(f"{a} {b}" for a, b in zip(words, words[1:]))
    repeated = [(phrase, n) for phrase, n in counts.items() if n > 1]
    repeated.sort(key=lambda item: item[1], reverse=True)
    return [KeyPhrase(phrase=p, frequency=n) for p, n in repeated[:limit]]
