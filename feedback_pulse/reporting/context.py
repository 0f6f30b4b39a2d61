"""Context dataclass for rendering scorecards.

This module defines `ScorecardContext`, a typed container that holds all
values expected by the Jinja2 template located in
`feedback_pulse/reporting/templates/scorecard.md.j2`.

Keeping *context building* apart from *template rendering* lets the
aggregation output be checked without touching template strings, and lets
other output formats reuse the same context object.
"""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from datetime import datetime as _dt
from datetime import timezone as _tz
from typing import Any, Dict, List

from feedback_pulse.reporting import config
from feedback_pulse.reporting.models import ScoreReport
from feedback_pulse.reporting.trend import Trend

__all__ = [
    "TypeRow",
    "ScorecardContext",
    "build_scorecard_context",
]

_TREND_ARROWS = {
    Trend.IMPROVING: "↗️",
    Trend.DECLINING: "↘️",
    Trend.STABLE: "➡️",
}


@dataclass(slots=True)
class TypeRow:
    """One line of the per-question-type table."""

    question_type: str
    average: float
    count: int

    def to_dict(self) -> Dict[str, Any]:  # noqa: D401 – simple helper
        """Return a *plain* ``dict`` representation suitable for Jinja."""
        return asdict(self)


@dataclass(slots=True)
class ScorecardContext:
    """Container with all fields used by the scorecard template."""

    # Header & meta
    form_id: str
    date: str  # ISO-8601 date string (UTC)

    # Scores
    overall_average: Any  # float or "N/A"
    overall_score: int
    confidence: int
    total_responses: int

    # Trend
    trend: str
    trend_arrow: str
    recent_average: Any

    # Sentiment
    emoji_bar: str
    sentiment_counts: Dict[str, int]

    rows: List[TypeRow] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    # Text summary
    topics: List[Dict[str, Any]] = field(default_factory=list)
    emoji_total: int = 0
    emoji_answers: int = 0

    version: str = "1"

    def to_dict(self) -> Dict[str, Any]:  # noqa: D401 – simple helper
        """Return a *plain* ``dict`` (recursively) for Jinja rendering."""
        return asdict(self)

    # Alias for convenience (e.g. template kwargs)
    __call__ = to_dict


def emoji_bar(counts: Dict[str, int], max_emoji: int = 20) -> str:
    """Return a string bar of emojis based on *counts*.

    Positive → 😊, Neutral → 😐, Negative → 🙁.  Limit total length to
    *max_emoji*.
    """

    pos = counts.get("positive", 0)
    neu = counts.get("neutral", 0)
    neg = counts.get("negative", 0)
    total = pos + neu + neg or 1

    scale = max_emoji / total
    pos_e = "😊" * max(1 if pos else 0, round(pos * scale))
    neu_e = "😐" * max(1 if neu else 0, round(neu * scale))
    neg_e = "🙁" * max(1 if neg else 0, round(neg * scale))
    return pos_e + neu_e + neg_e


def build_scorecard_context(report: ScoreReport) -> ScorecardContext:
    """Convert a :class:`ScoreReport` into :class:`ScorecardContext`.

    The function is *pure*: it does not mutate *report*.
    """

    breakdown = report.breakdown
    score = report.aggregate_score
    rows = [
        TypeRow(question_type=qtype, average=stats.average, count=stats.count)
        for qtype, stats in breakdown.by_question_type.items()
    ]

    return ScorecardContext(
        form_id=report.form_id,
        date=_dt.now(tz=_tz.utc).strftime("%Y-%m-%d"),
        overall_average=report.overall_average_score,
        overall_score=score.overall_score,
        confidence=score.confidence,
        total_responses=score.total_responses,
        trend=breakdown.trend.value,
        trend_arrow=_TREND_ARROWS[breakdown.trend],
        recent_average=breakdown.recent_average,
        emoji_bar=emoji_bar(report.sentiment_counts, config.MAX_EMOJI_BAR),
        sentiment_counts=dict(report.sentiment_counts),
        rows=rows,
        suggestions=list(breakdown.improvement_suggestions[: config.MAX_SUGGESTIONS]),
        topics=[topic.to_dict() for topic in report.top_topics],
        emoji_total=sum(e.count for e in report.emoji_analyses),
        emoji_answers=len(report.emoji_analyses),
        version=os.getenv("FEEDBACK_PULSE_REPORT_VERSION", "0.1"),
    )
