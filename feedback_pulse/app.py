"""Service wiring for Feedback Pulse.

Everything is built through :func:`build_services` instead of module-level
singletons, so tests and the command line each get their own executor,
scheduler, aggregator and distributor.
"""
import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field

from dotenv import load_dotenv

from feedback_pulse.realtime.config import DistributorConfig
from feedback_pulse.realtime.distributor import RealTimeDistributor
from feedback_pulse.reporting.aggregator import ScoreAggregator
from feedback_pulse.reporting.config import ScoringConfig

from .scheduler import Scheduler

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging() -> None:
    """Set up root logging from ``FEEDBACK_PULSE_LOG_LEVEL`` (default INFO)."""
    logging_level = os.environ.get("FEEDBACK_PULSE_LOG_LEVEL", "INFO").upper()
    if not isinstance(logging.getLevelName(logging_level), int):
        logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)
        logger.warning("Invalid FEEDBACK_PULSE_LOG_LEVEL '%s'; using INFO.", logging_level)
        return
    logging.basicConfig(format=LOG_FORMAT, level=logging_level)


@dataclass
class Services:
    """The long-lived objects one process needs."""

    executor: ThreadPoolExecutor
    scheduler: Scheduler
    aggregator: ScoreAggregator
    distributor: RealTimeDistributor
    _closed: bool = field(default=False, repr=False)

    def shutdown(self) -> None:
        """Disconnect the distributor, then stop the scheduler and thread pool."""
        if self._closed:
            return
        self._closed = True
        logger.info("Shutting down distributor, scheduler and thread pool executor...")
        try:
            self.distributor.disconnect()
        except Exception:  # pragma: no cover – ensure shutdown continues
            logger.exception("Error disconnecting distributor")
        # Stop scheduler first so it doesn't submit new tasks while executor is shutting down
        try:
            self.scheduler.shutdown()
        except Exception:  # pragma: no cover – ensure shutdown continues
            logger.exception("Error shutting down scheduler")
        self.executor.shutdown(wait=True)
        logger.info("Scheduler and thread pool executor shut down gracefully.")


def build_services(
    scoring_config: ScoringConfig | None = None,
    distributor_config: DistributorConfig | None = None,
    *,
    max_workers: int = 10,
) -> Services:
    """Create executor, scheduler, aggregator and distributor from config (env by default)."""
    executor = ThreadPoolExecutor(max_workers=max_workers)
    scheduler = Scheduler(executor)
    aggregator = ScoreAggregator(scoring_config or ScoringConfig.from_env())
    distributor = RealTimeDistributor(
        distributor_config or DistributorConfig.from_env(),
        scheduler=scheduler,
        executor=executor,
    )
    return Services(executor=executor, scheduler=scheduler, aggregator=aggregator, distributor=distributor)


def log_future_exception(fut: Future) -> None:
    """Done-callback that logs an exception raised by a background task."""
    exc = fut.exception()
    if exc is not None:
        logger.error("Background task raised", exc_info=exc)
