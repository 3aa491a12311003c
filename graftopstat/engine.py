"""Collector engine and scheduler."""
import asyncio
import threading
import time
import logging
from typing import List, Optional

from graftopstat.config import Config
from graftopstat.self_metrics import SelfMetrics
from graftopstat.sources import Source, SourceReport
from graftopstat.store import SnapshotStore

logger = logging.getLogger(__name__)


class CollectorEngine:
    """Runs all sources on a fixed interval and publishes complete snapshots."""

    def __init__(
        self,
        config: Config,
        store: SnapshotStore,
        sources: List[Source],
        self_metrics: Optional[SelfMetrics] = None
    ):
        self.config = config
        self.store = store
        self.sources = sources
        self.self_metrics = self_metrics
        self.tick_count = 0
        self._stop_event = threading.Event()

        logger.info(
            f"Collector engine initialized with sources: "
            f"{[source.name for source in sources]}"
        )

    @property
    def running(self) -> bool:
        return not self._stop_event.is_set()

    async def collect_once(self) -> List[SourceReport]:
        """Run every source concurrently into a fresh buffer, then publish it."""
        buffer = self.store.new_buffer()

        outcomes = await asyncio.gather(
            *(source.collect(buffer) for source in self.sources),
            return_exceptions=True
        )

        reports = []
        for source, outcome in zip(self.sources, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"Error collecting source '{source.name}': {outcome}", exc_info=outcome)
                reports.append(SourceReport(source.name, ok=False, errors=[str(outcome)]))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                reports.append(outcome)

        generation = self.store.publish(buffer)
        logger.debug(f"Published snapshot generation {generation} with {len(buffer)} records")
        return reports

    def tick(self) -> List[SourceReport]:
        """Execute one collection cycle."""
        tick_start = time.time()
        reports = asyncio.run(self.collect_once())
        tick_duration = time.time() - tick_start

        if self.self_metrics:
            for report in reports:
                if not report.ok:
                    self.self_metrics.record_command_failure(report.source)
                else:
                    self.self_metrics.record_parse_errors(report.source, len(report.errors))
            self.self_metrics.record_cycle(tick_duration, sum(r.records for r in reports))

        self.tick_count += 1

        if self.tick_count == 1 or self.tick_count % 60 == 0:
            logger.info(
                f"Tick {self.tick_count}: collected {sum(r.records for r in reports)} records "
                f"in {tick_duration:.3f}s"
            )
        return reports

    def run(self):
        """Run the collection loop until stopped."""

        logger.info("Starting collector engine")

        interval = self.config.collector.interval_s

        while self.running:
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in tick: {e}", exc_info=True)

            # Fixed delay after every cycle; stop() cuts it short
            self._stop_event.wait(interval)

    def stop(self):
        """Stop the collector engine."""
        logger.info("Stopping collector engine")
        self._stop_event.set()


def run_engine_thread(engine: CollectorEngine):
    """Run engine in a separate thread."""
    try:
        engine.run()
    except Exception as e:
        logger.error(f"Engine thread error: {e}", exc_info=True)
        engine.stop()
