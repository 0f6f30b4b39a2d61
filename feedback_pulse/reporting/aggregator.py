"""Aggregate raw survey responses into a structured :class:`ScoreReport`."""

from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from typing import Dict, List, Optional, Sequence

from feedback_pulse.analysis.emoji import EmojiAnalysis
from feedback_pulse.analysis.normalizer import NormalizedRating, NumericNormalizer
from feedback_pulse.analysis.text import TextAnalyzer
from feedback_pulse.reporting.config import ScoringConfig
from feedback_pulse.reporting.models import (
    AggregateScore,
    ChannelScore,
    RatingBreakdown,
    ScoreReport,
    TopicScore,
    TypeBreakdown,
)
from feedback_pulse.reporting.trend import NOT_AVAILABLE, TrendPoint, TrendTracker
from feedback_pulse.survey import AnswerValue, Question, QuestionType, Response, index_questions

logger = logging.getLogger(__name__)

DEFAULT_FORM_ID = "default"

_NUMERIC_CHANNEL_TYPES = frozenset({QuestionType.RATING, QuestionType.SCALE, QuestionType.NUMBER})
_TEXT_TYPES = frozenset({QuestionType.TEXT, QuestionType.TEXTAREA})


def _mean(values: Sequence[float], default: float) -> float:
    return sum(values) / len(values) if values else default


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def rating_distribution(ratings: Sequence[float]) -> Dict[int, int]:
    """Return counts of ratings rounded to each whole star 1..5."""
    distribution = {star: 0 for star in range(1, 6)}
    for rating in ratings:
        rounded = _round_half_up(rating)
        if rounded in distribution:
            distribution[rounded] += 1
    return distribution


class ScoreAggregator:
    """Combine normalized answers into per-form scores, trends and suggestions."""

    def __init__(
        self,
        config: Optional[ScoringConfig] = None,
        analyzer: Optional[TextAnalyzer] = None,
        normalizer: Optional[NumericNormalizer] = None,
        tracker: Optional[TrendTracker] = None,
    ) -> None:
        self.config = config or ScoringConfig()
        self.analyzer = analyzer or TextAnalyzer()
        self.normalizer = normalizer or NumericNormalizer(self.analyzer)
        self.tracker = tracker or TrendTracker(self.config.trend)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def aggregate(
        self,
        responses: Sequence[Response],
        questions: Sequence[Question],
        *,
        form_id: Optional[str] = None,
    ) -> ScoreReport:
        """Score *responses* against the *questions* schema.

        The function is read-only with respect to its inputs.  The trend
        history for the form is rebuilt from this response set, replacing
        whatever was recorded before.
        """

        responses = list(responses or ())
        key = form_id or (responses[0].form_id if responses and responses[0].form_id else DEFAULT_FORM_ID)

        if not responses:
            self.tracker.replace(key, [])
            return ScoreReport(
                form_id=key,
                overall_average_score=NOT_AVAILABLE,
                breakdown=RatingBreakdown(),
                aggregate_score=self.empty_score(),
            )

        schema = index_questions(questions or ())
        weighted_total = 0.0
        weight_total = 0.0
        ratings_by_type: Dict[str, List[float]] = defaultdict(list)
        points: List[TrendPoint] = []
        numeric_channel: List[float] = []
        sentiment_channel: List[float] = []
        word_counts: List[int] = []
        sentiment_counts: Counter[str] = Counter()
        topic_totals: Dict[str, float] = defaultdict(float)
        emoji_analyses: List[EmojiAnalysis] = []
        skipped = 0

        for response in responses:
            for answer in response.answers:
                question = schema.get(answer.question_id)
                if question is None:
                    skipped += 1
                    continue
                if answer.is_empty:
                    continue

                rating: NormalizedRating = self.normalizer.normalize_answer(
                    answer, question, self.config.weight_for(question.type)
                )

                if question.type in _TEXT_TYPES and isinstance(answer.value, str):
                    analysis = self.analyzer.analyze_text(answer.value)
                    sentiment_channel.append((analysis.sentiment.score + 1) / 2)
                    word_counts.append(analysis.word_count)
                    sentiment_counts[analysis.sentiment.label.value] += 1
                    for topic in analysis.topics:
                        topic_totals[topic.topic] += topic.relevance
                    if analysis.emoji_analysis.count > 0:
                        emoji_analyses.append(analysis.emoji_analysis)
                elif question.type in _NUMERIC_CHANNEL_TYPES:
                    channel_rating = self.numeric_channel_rating(answer.value, question, rating)
                    if channel_rating.rated:
                        numeric_channel.append(channel_rating.normalized)

                if not rating.rated or rating.weight <= 0:
                    continue
                weighted_total += rating.score * rating.weight
                weight_total += rating.weight
                ratings_by_type[question.type.value].append(rating.score)
                points.append(TrendPoint(response.submitted_at, rating.score))

        if skipped:
            logger.warning(
                "Skipped %d answer(s) referencing unknown questions for form %s", skipped, key
            )

        overall_average_score = (
            round(max(0.0, min(5.0, weighted_total / weight_total)), 1)
            if weight_total > 0
            else NOT_AVAILABLE
        )

        aggregate_score = self.channel_score(
            len(responses), numeric_channel, sentiment_channel, word_counts
        )
        breakdown = self.rating_breakdown(key, ratings_by_type, points)

        logger.debug(
            "Aggregated form=%s responses=%d ratings=%d overall=%s",
            key,
            len(responses),
            len(points),
            overall_average_score,
        )

        return ScoreReport(
            form_id=key,
            overall_average_score=overall_average_score,
            breakdown=breakdown,
            aggregate_score=aggregate_score,
            sentiment_counts=dict(sentiment_counts),
            top_topics=self.top_topics(topic_totals),
            emoji_analyses=emoji_analyses,
        )

    def numeric_channel_rating(
        self, value: AnswerValue, question: Question, rating: NormalizedRating
    ) -> NormalizedRating:
        """Rating used for the 0-100 numeric channel.

        Numeric ``number`` answers count there as ratings on a 1-5 or 1-10
        scale, while the 0-5 weighted score keeps the embedded-number rule.
        Non-numeric text keeps its embedded-number result.
        """
        if question.type is not QuestionType.NUMBER:
            return rating
        as_rating = self.normalizer.normalize(value, QuestionType.RATING, max_scale=question.max_scale)
        return as_rating if as_rating.rated else rating

    def top_topics(self, totals: Dict[str, float]) -> List[TopicScore]:
        # sorted() is stable, so ties keep first-mention order.
        ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
        return [
            TopicScore(topic, _round_half_up(total * 100))
            for topic, total in ranked[: self.config.top_topic_limit]
        ]

    def empty_score(self) -> AggregateScore:
        cfg = self.config
        return AggregateScore.empty(cfg.numeric_weight, cfg.sentiment_weight, cfg.engagement_weight)

    def confidence(self, response_count: int) -> int:
        """Return 0-100 confidence; linear until ``confidence_saturation`` responses."""
        saturation = max(1, self.config.confidence_saturation)
        return _round_half_up(min(1.0, response_count / saturation) * 100)

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------
    def channel_score(
        self,
        response_count: int,
        numeric_channel: Sequence[float],
        sentiment_channel: Sequence[float],
        word_counts: Sequence[int],
    ) -> AggregateScore:
        """Weighted 0-100 score from the numeric, sentiment and engagement channels."""

        cfg = self.config
        if response_count == 0:
            return self.empty_score()

        avg_numeric = _mean(numeric_channel, cfg.channel_default)
        avg_sentiment = _mean(sentiment_channel, cfg.channel_default)
        avg_words = _mean(word_counts, 0.0)
        avg_engagement = (
            min(1.0, avg_words / cfg.engagement_word_target) if word_counts else cfg.channel_default
        )

        overall = (
            avg_numeric * cfg.numeric_weight
            + avg_sentiment * cfg.sentiment_weight
            + avg_engagement * cfg.engagement_weight
        )

        return AggregateScore(
            overall_score=_round_half_up(overall * 100),
            numeric=ChannelScore(_round_half_up(avg_numeric * 100), cfg.numeric_weight),
            sentiment=ChannelScore(_round_half_up(avg_sentiment * 100), cfg.sentiment_weight),
            engagement=ChannelScore(_round_half_up(avg_engagement * 100), cfg.engagement_weight),
            total_responses=response_count,
            confidence=self.confidence(response_count),
            data_points={
                "numericCount": len(numeric_channel),
                "textCount": len(sentiment_channel),
                "avgTextWordCount": round(avg_words, 1),
            },
        )

    def rating_breakdown(
        self,
        form_id: str,
        ratings_by_type: Dict[str, List[float]],
        points: Sequence[TrendPoint],
    ) -> RatingBreakdown:
        """Per-type statistics, trend and suggestions for one form."""

        by_type = {
            qtype: TypeBreakdown(
                average=round(_mean(ratings, 0.0), 1),
                count=len(ratings),
                distribution=rating_distribution(ratings),
            )
            for qtype, ratings in ratings_by_type.items()
        }

        history = self.tracker.replace(form_id, points)
        return RatingBreakdown(
            by_question_type=by_type,
            trend=self.tracker.classify(history),
            recent_average=self.tracker.recent_average(history),
            overall_average=self.tracker.overall_average(history),
            improvement_suggestions=self.improvement_suggestions(by_type, [p.rating for p in history]),
        )

    def improvement_suggestions(
        self, by_type: Dict[str, TypeBreakdown], ratings: Sequence[float]
    ) -> List[str]:
        """Evaluate the suggestion rules in order; every matching rule adds one line."""

        # With responses but no ratings the overall mean counts as 0.
        cfg = self.config
        suggestions: List[str] = []
        if _mean(ratings, 0.0) < cfg.overall_review_below:
            suggestions.append(
                "Overall ratings are below average. Consider reviewing training content and delivery methods."
            )
        for qtype, stats in by_type.items():
            if stats.average < cfg.type_low_below:
                suggestions.append(
                    f"{qtype} questions show low satisfaction. Focus on improving this aspect of training."
                )
            elif stats.average > cfg.type_excellent_above:
                suggestions.append(
                    f"{qtype} questions show excellent results. Consider using this approach in other areas."
                )
        if not suggestions:
            suggestions.append("Ratings are performing well. Continue current training methods.")
        return suggestions

