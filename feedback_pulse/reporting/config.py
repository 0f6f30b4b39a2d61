"""Configuration for the scoring pipeline.

Defaults can be overridden through environment variables (loaded from a
``.env`` file at bootstrap) or by constructing the dataclasses directly.
"""
from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Mapping, TypeVar

from feedback_pulse.survey import QuestionType

logger = logging.getLogger(__name__)

T = TypeVar("T", int, float)


def env_number(name: str, default: T, cast: Callable[[str], T]) -> T:
    """Read a positive finite number from the environment, falling back to *default*."""
    raw_val = os.getenv(name)
    if not raw_val:
        return default
    try:
        parsed = cast(raw_val)
    except ValueError:
        logger.warning("Invalid %s value '%s'; using %s.", name, raw_val, default)
        return default
    if not math.isfinite(parsed) or parsed <= 0:
        logger.warning("Ignoring %s=%s (must be a positive finite number)", name, raw_val)
        return default
    return parsed


# Maximum number of emojis displayed in the sentiment bar
MAX_EMOJI_BAR: int = env_number("FEEDBACK_PULSE_MAX_EMOJI_BAR", 20, int)

# Maximum improvement suggestions listed in a scorecard
MAX_SUGGESTIONS: int = env_number("FEEDBACK_PULSE_MAX_SUGGESTIONS", 5, int)

_TYPE_WEIGHTS = MappingProxyType(
    {
        QuestionType.RATING: 2.0,
        QuestionType.SCALE: 2.0,
        QuestionType.MULTIPLE_CHOICE: 1.5,
        QuestionType.TEXT: 1.2,
        QuestionType.TEXTAREA: 1.2,
        QuestionType.CHECKBOX: 1.0,
        QuestionType.NUMBER: 1.0,
        QuestionType.OTHER: 1.0,
    }
)


@dataclass(frozen=True)
class TrendSettings:
    """Thresholds for recent-versus-prior trend classification."""

    min_points: int = 10
    window: int = 5
    threshold: float = 0.3

    @classmethod
    def from_env(cls) -> "TrendSettings":
        return cls(
            min_points=env_number("FEEDBACK_PULSE_TREND_MIN_POINTS", cls.min_points, int),
            threshold=env_number("FEEDBACK_PULSE_TREND_THRESHOLD", cls.threshold, float),
        )


@dataclass(frozen=True)
class ScoringConfig:
    """Weights and thresholds used by :class:`ScoreAggregator`."""

    type_weights: Mapping[QuestionType, float] = field(default_factory=lambda: _TYPE_WEIGHTS)
    # Channel weights of the 0-100 overall score
    numeric_weight: float = 0.6
    sentiment_weight: float = 0.3
    engagement_weight: float = 0.1
    # Value used for a channel without data points
    channel_default: float = 0.5
    # Average text length (words) that counts as full engagement
    engagement_word_target: int = 50
    # Number of responses at which confidence reaches 100
    confidence_saturation: int = 10
    # Topics listed in the text summary
    top_topic_limit: int = 5
    # Suggestion rule thresholds (0-5 scale)
    overall_review_below: float = 3.0
    type_low_below: float = 2.5
    type_excellent_above: float = 4.5
    trend: TrendSettings = field(default_factory=TrendSettings)

    def weight_for(self, question_type: QuestionType) -> float:
        return self.type_weights.get(question_type, 1.0)

    @classmethod
    def from_env(cls) -> "ScoringConfig":
        return cls(
            confidence_saturation=env_number(
                "FEEDBACK_PULSE_CONFIDENCE_SATURATION", cls.confidence_saturation, int
            ),
            trend=TrendSettings.from_env(),
        )
