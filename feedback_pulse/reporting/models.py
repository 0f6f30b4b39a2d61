"""Data structures produced by the scoring pipeline.

All of them are rebuilt from scratch on every aggregation and never mutated
afterwards.  ``to_dict`` gives the camelCase shape dashboards consume.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from feedback_pulse.analysis.emoji import EmojiAnalysis
from feedback_pulse.reporting.trend import NOT_AVAILABLE, Average, Trend


@dataclass(frozen=True)
class ChannelScore:
    """One channel of the 0-100 score: ``score`` is 0-100, ``weight`` its share."""

    score: int
    weight: float

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "weight": self.weight}


@dataclass(frozen=True)
class AggregateScore:
    """Coarse dashboard score combining numeric, sentiment and engagement channels."""

    overall_score: int
    numeric: ChannelScore
    sentiment: ChannelScore
    engagement: ChannelScore
    total_responses: int
    confidence: int
    data_points: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def empty(cls, numeric_weight: float, sentiment_weight: float, engagement_weight: float) -> "AggregateScore":
        """Sentinel used when there are no responses at all."""
        return cls(
            overall_score=0,
            numeric=ChannelScore(0, numeric_weight),
            sentiment=ChannelScore(0, sentiment_weight),
            engagement=ChannelScore(0, engagement_weight),
            total_responses=0,
            confidence=0,
            data_points={"numericCount": 0, "textCount": 0, "avgTextWordCount": 0.0},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallScore": self.overall_score,
            "breakdown": {
                "numeric": self.numeric.to_dict(),
                "sentiment": self.sentiment.to_dict(),
                "engagement": self.engagement.to_dict(),
            },
            "totalResponses": self.total_responses,
            "confidence": self.confidence,
            "dataPoints": dict(self.data_points),
        }


@dataclass(frozen=True)
class TypeBreakdown:
    average: float
    count: int
    distribution: Dict[int, int]

    def to_dict(self) -> Dict[str, Any]:
        return {"average": self.average, "count": self.count, "distribution": dict(self.distribution)}


@dataclass(frozen=True)
class RatingBreakdown:
    """Per-question-type statistics plus trend and suggestions."""

    by_question_type: Dict[str, TypeBreakdown] = field(default_factory=dict)
    trend: Trend = Trend.STABLE
    recent_average: Average = NOT_AVAILABLE
    overall_average: Average = NOT_AVAILABLE
    improvement_suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "byQuestionType": {k: v.to_dict() for k, v in self.by_question_type.items()},
            "trend": self.trend.value,
            "recentAverage": self.recent_average,
            "overallAverage": self.overall_average,
            "improvementSuggestions": list(self.improvement_suggestions),
        }


@dataclass(frozen=True)
class TopicScore:
    """A topic with its relevance summed over every text answer, times 100."""

    topic: str
    score: int

    def to_dict(self) -> Dict[str, Any]:
        return {"topic": self.topic, "score": self.score}


@dataclass(frozen=True)
class ScoreReport:
    """Everything :meth:`ScoreAggregator.aggregate` computes for one response set."""

    form_id: str
    overall_average_score: Average
    breakdown: RatingBreakdown
    aggregate_score: AggregateScore
    sentiment_counts: Dict[str, int] = field(default_factory=dict)
    top_topics: List[TopicScore] = field(default_factory=list)
    # Only text answers that contained at least one emoji
    emoji_analyses: List[EmojiAnalysis] = field(default_factory=list)

    @property
    def has_signal(self) -> bool:
        """Return *True* when at least one answer produced a rating."""
        return self.overall_average_score != NOT_AVAILABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formId": self.form_id,
            "overallAverageScore": self.overall_average_score,
            "breakdown": self.breakdown.to_dict(),
            "aggregateScore": self.aggregate_score.to_dict(),
            "sentimentCounts": dict(self.sentiment_counts),
            "topTopics": [t.to_dict() for t in self.top_topics],
            "emojiAnalysis": [e.to_dict() for e in self.emoji_analyses],
        }
