#!/usr/bin/env python3
"""Windows Event Log input — Entry Point."""

import argparse
import logging
import queue
import signal
import sys
import threading

from eventlog_tail.config import load_config, load_yaml_config
from eventlog_tail.metrics import MetricsReporter, TailMetrics
from eventlog_tail.normalizer import EventNormalizer
from eventlog_tail.subscription import WmiSubscription
from eventlog_tail.tail_loop import TailLoop
from eventlog_tail.variants import select_adapter
from eventlog_tail.writer import CODECS, EventWriter

logger = logging.getLogger(__name__)


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tail the Windows Event Log")
    parser.add_argument(
        "--logfile", action="append", default=None,
        help="Event log to watch, repeatable (default: Application, Security, System)",
    )
    parser.add_argument("--type", default=None, help="Type tag added to every event")
    parser.add_argument("--codec", choices=CODECS, default=None, help="Output codec (default: plain)")
    parser.add_argument("--hostname", default=None, help="Host name recorded on events")
    parser.add_argument(
        "--binding", choices=("pywin32", "variant"), default=None,
        help="How COM property values are unwrapped (default: pywin32)",
    )
    parser.add_argument("--output", default=None, help="Output file, '-' for stdout (default)")
    parser.add_argument(
        "--metrics-interval", type=float, default=None,
        help="Seconds between metrics log lines, 0 disables (default: 0)",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: INFO)")
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    return parser


def main(argv=None):
    args = build_cli_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [EVENTLOG] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    config = load_config(args, load_yaml_config(args.config))
    logging.getLogger().setLevel(config.log_level)
    logger.info("Registering input eventlog://%s/%s", config.hostname, ",".join(config.logfiles))

    shutdown_event = threading.Event()

    def _signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    normalizer = EventNormalizer(
        config.hostname, config.logfiles, config.type_tag, select_adapter(config.binding),
    )
    events: queue.Queue = queue.Queue(maxsize=config.queue_size)
    metrics = TailMetrics()
    loop = TailLoop(
        WmiSubscription.open, normalizer, events, shutdown_event, config.logfiles,
        wait_timeout_ms=config.wait_timeout_ms, retry_delay=config.retry_delay,
        metrics=metrics,
    )

    if config.output == "-":
        stream = sys.stdout
        # Console code pages cannot encode every character found in event messages
        if hasattr(stream, "reconfigure"):
            stream.reconfigure(errors="backslashreplace")
    else:
        stream = open(config.output, "a", encoding="utf-8", errors="replace")
    writer = EventWriter(events, stream, config.codec)
    writer.start()

    reporter = None
    if config.metrics_interval > 0:
        reporter = MetricsReporter(metrics, config.metrics_interval, shutdown_event)
        reporter.start()

    tail_thread = threading.Thread(target=loop.run, name="eventlog-tail", daemon=True)
    tail_thread.start()

    # Wake periodically so signal handlers run; the loop also ends on fatal setup failure
    while tail_thread.is_alive():
        tail_thread.join(timeout=1.0)

    shutdown_event.set()
    writer.stop()
    if reporter:
        reporter.stop()
    if stream is not sys.stdout:
        stream.close()

    logger.info("Stats: %s", metrics.totals())
    logger.info("Windows Event Log input stopped.")


if __name__ == "__main__":
    main()
