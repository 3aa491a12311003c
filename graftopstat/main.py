"""Main entry point for the graftopstat exporter."""
import argparse
import logging
import sys
import threading
import signal

from graftopstat.config import load_config
from graftopstat.engine import CollectorEngine, run_engine_thread
from graftopstat.self_metrics import SelfMetrics
from graftopstat.server import ExpositionAPI
from graftopstat.sources import create_sources
from graftopstat.store import SnapshotStore


def setup_logging(log_level: str):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    # Reduce noise from some libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main():
    """Main function."""
    parser = argparse.ArgumentParser(
        description="graftopstat - expose top and netstat statistics as text metrics"
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to configuration YAML file (defaults apply when omitted)"
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config.global_.log_level)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("graftopstat")
    logger.info("=" * 60)
    logger.info(f"Configuration loaded from: {args.config or '<defaults>'}")
    logger.info(f"Collection interval: {config.collector.interval_s}s")

    store = SnapshotStore()
    sources = create_sources(config)
    if not sources:
        logger.warning("No sources enabled, the metrics endpoint will stay empty")

    self_metrics = None
    if config.self_metrics.enabled:
        self_metrics = SelfMetrics()
        try:
            self_metrics.start_server(config.self_metrics)
        except Exception:
            sys.exit(1)

    engine = CollectorEngine(config, store, sources, self_metrics=self_metrics)

    # Start engine in separate thread
    engine_thread = threading.Thread(
        target=run_engine_thread,
        args=(engine,),
        daemon=True
    )
    engine_thread.start()
    logger.info("Collector engine started")

    # Setup signal handlers
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        engine.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    # Run exposition API (blocking)
    api = ExpositionAPI(config.server, store)
    try:
        api.run()
    except Exception as e:
        logger.error(f"Exposition API error: {e}", exc_info=True)
        engine.stop()
        sys.exit(1)
    finally:
        engine.stop()


if __name__ == "__main__":
    main()
