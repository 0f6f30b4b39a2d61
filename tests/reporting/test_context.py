"""Unit tests for ScorecardContext and its builder."""
from __future__ import annotations

from feedback_pulse.reporting import config as _cfg
from feedback_pulse.reporting.context import (
    ScorecardContext,
    TypeRow,
    build_scorecard_context,
    emoji_bar,
)
from feedback_pulse.reporting.models import AggregateScore, RatingBreakdown, ScoreReport, TypeBreakdown
from feedback_pulse.reporting.trend import Trend


def _sample_report(suggestions: list[str] | None = None) -> ScoreReport:
    breakdown = RatingBreakdown(
        by_question_type={"rating": TypeBreakdown(average=4.2, count=6, distribution={})},
        trend=Trend.IMPROVING,
        recent_average=4.5,
        overall_average=4.2,
        improvement_suggestions=suggestions or ["Keep going."],
    )
    return ScoreReport(
        form_id="form-9",
        overall_average_score=4.2,
        breakdown=breakdown,
        aggregate_score=AggregateScore.empty(0.6, 0.3, 0.1),
        sentiment_counts={"positive": 2, "neutral": 1},
    )


def test_to_dict_roundtrip() -> None:
    """`to_dict` should convert nested rows and alias __call__."""
    ctx = build_scorecard_context(_sample_report())
    as_dict = ctx.to_dict()

    assert as_dict["form_id"] == "form-9"
    assert as_dict["rows"] == [TypeRow("rating", 4.2, 6).to_dict()]
    assert as_dict["trend"] == "improving"
    assert as_dict["trend_arrow"] == "↗️"
    # Alias `__call__` returns same mapping
    assert ctx() == as_dict


def test_default_lists_are_empty() -> None:
    ctx = ScorecardContext(
        form_id="f",
        date="2025-06-12",
        overall_average="N/A",
        overall_score=0,
        confidence=0,
        total_responses=0,
        trend="stable",
        trend_arrow="➡️",
        recent_average="N/A",
        emoji_bar="",
        sentiment_counts={},
    )

    assert ctx.rows == []
    assert ctx.suggestions == []
    assert ctx.to_dict()["suggestions"] == []


def test_suggestions_are_capped(monkeypatch):
    monkeypatch.setattr(_cfg, "MAX_SUGGESTIONS", 2)

    ctx = build_scorecard_context(_sample_report([f"tip {i}" for i in range(6)]))

    assert ctx.suggestions == ["tip 0", "tip 1"]


def test_version_from_environment(monkeypatch):
    monkeypatch.setenv("FEEDBACK_PULSE_REPORT_VERSION", "9.9")

    assert build_scorecard_context(_sample_report()).version == "9.9"


def test_emoji_bar_scales_counts():
    assert emoji_bar({"positive": 2, "neutral": 1, "negative": 0}, 6) == "😊😊😊😊😐😐"


def test_emoji_bar_keeps_minority_visible():
    bar = emoji_bar({"positive": 100, "negative": 1}, 10)

    assert bar.count("🙁") == 1
    assert bar.count("😊") == 10


def test_emoji_bar_empty():
    assert emoji_bar({}) == ""
