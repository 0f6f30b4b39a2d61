"""Turn a single answer into a rating on the canonical 0-5 scale.

Each question type has its own rule; the dispatch table in
:class:`NumericNormalizer` covers every :class:`QuestionType` member.
Answers that carry no usable signal come back with ``rated=False`` and a
score of 0 rather than raising, so aggregation can simply skip them.

Multiple-choice questions are scored by option position.  By default the
options are assumed to be authored worst first and best last
(``OptionOrder.ASCENDING``); forms that list them the other way round must
say so with ``DESCENDING``, and ``UNORDERED`` questions are never rated.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from feedback_pulse.analysis.text import TextAnalyzer
from feedback_pulse.survey import Answer, AnswerValue, OptionOrder, Question, QuestionType

logger = logging.getLogger(__name__)

CANONICAL_MAX = 5.0

_INTEGER_RE = re.compile(r"\d+")


@dataclass(frozen=True)
class NormalizedRating:
    """A single answer expressed on the 0-5 scale."""

    score: float  # 0..5
    weight: float
    question_type: QuestionType
    normalized: float = 0.0  # 0..1, before the 0-5 remap
    rated: bool = True

    @classmethod
    def unrated(cls, question_type: QuestionType, weight: float) -> "NormalizedRating":
        return cls(score=0.0, weight=weight, question_type=question_type, normalized=0.0, rated=False)

    @classmethod
    def from_unit(cls, unit: float, question_type: QuestionType, weight: float) -> "NormalizedRating":
        unit = _clamp(unit, 0.0, 1.0)
        return cls(score=unit * CANONICAL_MAX, weight=weight, question_type=question_type, normalized=unit)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def to_number(value: Any) -> Optional[float]:
    """Return *value* as a finite float or *None*.  Booleans are not numbers."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class NumericNormalizer:
    """Normalize raw answers by declared question type."""

    def __init__(
        self,
        analyzer: Optional[TextAnalyzer] = None,
        *,
        sentiment_fallback_factor: float = 0.8,
    ) -> None:
        self.analyzer = analyzer or TextAnalyzer()
        self.sentiment_fallback_factor = sentiment_fallback_factor
        self._rules: Dict[QuestionType, Callable[..., NormalizedRating]] = {
            QuestionType.RATING: self._scale,
            QuestionType.SCALE: self._scale,
            QuestionType.MULTIPLE_CHOICE: self._multiple_choice,
            QuestionType.CHECKBOX: self._checkbox,
            QuestionType.TEXT: self._text,
            QuestionType.TEXTAREA: self._text,
            QuestionType.NUMBER: self._embedded_number,
            QuestionType.OTHER: self._embedded_number,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def normalize(
        self,
        value: AnswerValue,
        question_type: QuestionType | str,
        weight: float = 1.0,
        *,
        options: Sequence[str] = (),
        max_scale: Optional[float] = None,
        option_order: OptionOrder = OptionOrder.ASCENDING,
    ) -> NormalizedRating:
        """Return the :class:`NormalizedRating` for *value*.

        Parameters
        ----------
        value
            The raw answer value.
        question_type
            Declared type of the question; unknown strings count as ``other``.
        weight
            Contribution weight passed through to the result.
        options, max_scale, option_order
            Question schema details used by the choice and scale rules.
        """

        qtype = QuestionType.parse(question_type)
        if value is None:
            return NormalizedRating.unrated(qtype, weight)
        rule = self._rules[qtype]
        return rule(
            value,
            qtype,
            weight,
            options=options,
            max_scale=max_scale,
            option_order=option_order,
        )

    def normalize_answer(self, answer: Answer, question: Question, weight: float = 1.0) -> NormalizedRating:
        """Normalize *answer* using the schema of *question*."""
        return self.normalize(
            answer.value,
            question.type,
            weight,
            options=question.options,
            max_scale=question.max_scale,
            option_order=question.option_order,
        )

    # ------------------------------------------------------------------
    # Per-type rules
    # ------------------------------------------------------------------
    def _scale(self, value, qtype, weight, *, max_scale=None, **_):
        number = to_number(value)
        if number is None:
            return NormalizedRating.unrated(qtype, weight)
        top = max_scale if max_scale and max_scale > 1 else (5.0 if number <= 5 else 10.0)
        return NormalizedRating.from_unit((number - 1) / (top - 1), qtype, weight)

    def _multiple_choice(self, value, qtype, weight, *, options=(), option_order=OptionOrder.ASCENDING, **_):
        if option_order is OptionOrder.UNORDERED or not options or not isinstance(value, str):
            return NormalizedRating.unrated(qtype, weight)
        try:
            index = list(options).index(value)
        except ValueError:
            logger.debug("Answer %r is not one of the declared options", value)
            return NormalizedRating.unrated(qtype, weight)
        if option_order is OptionOrder.DESCENDING:
            index = len(options) - 1 - index
        return NormalizedRating.from_unit((index + 1) / len(options), qtype, weight)

    def _checkbox(self, value, qtype, weight, **_):
        selections: Iterable[Any] = [value] if isinstance(value, str) else value
        if not isinstance(selections, (list, tuple)) and not isinstance(value, str):
            return NormalizedRating.unrated(qtype, weight)
        tables = self.analyzer.tables
        positive = negative = 0
        for item in selections:
            lowered = str(item).lower()
            # A selection may count on both sides ("unclear" contains "clear").
            if any(kw in lowered for kw in tables.checkbox_positive):
                positive += 1
            if any(kw in lowered for kw in tables.checkbox_negative):
                negative += 1
        if positive + negative == 0:
            return NormalizedRating.unrated(qtype, weight)
        return NormalizedRating.from_unit(positive / (positive + negative), qtype, weight)

    def _text(self, value, qtype, weight, **_):
        if not isinstance(value, str) or not value.strip():
            return NormalizedRating.unrated(qtype, weight)
        return self._from_sentiment(value, qtype, weight)

    def _embedded_number(self, value, qtype, weight, **_):
        number = to_number(value)
        if number is not None:
            if 1 <= number <= 10:
                return NormalizedRating.from_unit(number / 10, qtype, weight)
            return NormalizedRating.unrated(qtype, weight)
        if not isinstance(value, str) or not value.strip():
            return NormalizedRating.unrated(qtype, weight)
        match = _INTEGER_RE.search(value)
        if match:
            embedded = int(match.group(0))
            if 1 <= embedded <= 10:
                return NormalizedRating.from_unit(embedded / 10, qtype, weight)
            return NormalizedRating.unrated(qtype, weight)
        return self._from_sentiment(value, qtype, weight * self.sentiment_fallback_factor)

    def _from_sentiment(self, text: str, qtype: QuestionType, weight: float) -> NormalizedRating:
        sentiment = self.analyzer.sentiment(text)
        score = _clamp(2.5 + sentiment.score * 1.5, 0.0, CANONICAL_MAX)
        return NormalizedRating(
            score=score,
            weight=weight,
            question_type=qtype,
            normalized=score / CANONICAL_MAX,
        )


_default_normalizer = NumericNormalizer()


def normalize(value: AnswerValue, question_type: QuestionType | str, weight: float = 1.0, **schema: Any) -> NormalizedRating:
    """Normalize *value* with the default normalizer."""
    return _default_normalizer.normalize(value, question_type, weight, **schema)
