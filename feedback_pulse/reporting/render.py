"""Render scorecards using Jinja2 templates."""
from __future__ import annotations

import logging
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from feedback_pulse.reporting.context import build_scorecard_context
from feedback_pulse.reporting.models import ScoreReport

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).parent / "templates"

# Markdown templates don’t need HTML escaping – it breaks apostrophes etc.
# Disable autoescape to preserve original characters.
_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)


def render_scorecard(report: ScoreReport) -> str:
    """Render a Markdown scorecard from a :class:`ScoreReport`."""

    context = build_scorecard_context(report)

    template = _env.get_template("scorecard.md.j2")
    text = template.render(**context.to_dict())
    logger.debug("Scorecard rendered for form=%s len=%d", report.form_id, len(text))
    return text
