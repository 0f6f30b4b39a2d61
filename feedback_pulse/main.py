"""Command line entry point for Feedback Pulse.

    python -m feedback_pulse.main score responses.json
    python -m feedback_pulse.main watch [--token TOKEN]

``score`` reads ``{"questions": [...], "responses": [...]}`` (optionally with
``"formId"``) and prints the Markdown scorecard.  ``watch`` connects the
real-time distributor and logs every event until interrupted.
"""
from __future__ import annotations

import argparse
import atexit
import json
import logging
import sys
import threading
from contextlib import suppress
from typing import List, Optional

from feedback_pulse.app import build_services, configure_logging, log_future_exception
from feedback_pulse.realtime.events import WILDCARD, DistributionEvent
from feedback_pulse.reporting.aggregator import ScoreAggregator
from feedback_pulse.reporting.config import ScoringConfig
from feedback_pulse.reporting.render import render_scorecard
from feedback_pulse.survey import Question, Response

logger = logging.getLogger(__name__)


def load_document(path: str) -> tuple[list[Question], list[Response], Optional[str]]:
    """Parse a scoring document; raises ``ValueError`` on an unusable shape."""
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError("document must be a JSON object")
    questions: list[Question] = []
    for raw in data.get("questions") or []:
        try:
            if not isinstance(raw, dict):
                raise ValueError("question is not an object")
            questions.append(Question.from_dict(raw))
        except ValueError as exc:
            logger.warning("Skipping malformed question %r: %s", raw, exc)
    responses = [Response.from_dict(r) for r in data.get("responses") or [] if isinstance(r, dict)]
    return questions, responses, data.get("formId")


def score_command(path: str) -> int:
    try:
        questions, responses, form_id = load_document(path)
    except (OSError, ValueError) as exc:
        logger.error("Cannot read %s: %s", path, exc)
        return 1
    aggregator = ScoreAggregator(ScoringConfig.from_env())
    report = aggregator.aggregate(responses, questions, form_id=form_id)
    print(render_scorecard(report))
    return 0


def watch_command(token: Optional[str]) -> int:  # pragma: no cover – manual run path
    services = build_services()
    atexit.register(services.shutdown)

    def _log_event(event: DistributionEvent) -> None:
        logger.info("event %s at %s: %s", event.type, event.timestamp, event.payload)

    services.distributor.subscribe(WILDCARD, _log_event)
    services.distributor.initialize(token).add_done_callback(log_future_exception)
    stop = threading.Event()
    try:
        logger.info("Watching for real-time events (Ctrl-C to stop)…")
        stop.wait()
    except KeyboardInterrupt:
        logger.info("Shutdown requested (KeyboardInterrupt). Exiting…")
    finally:
        with suppress(Exception):
            services.shutdown()
        logger.info("Goodbye.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="feedback-pulse", description=__doc__.splitlines()[0])
    sub = parser.add_subparsers(dest="command", required=True)
    score = sub.add_parser("score", help="print the scorecard for a responses file")
    score.add_argument("path", help="JSON document with questions and responses")
    watch = sub.add_parser("watch", help="log real-time events until interrupted")
    watch.add_argument("--token", default=None, help="auth token for the push channel")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    if args.command == "score":
        return score_command(args.path)
    return watch_command(args.token)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
