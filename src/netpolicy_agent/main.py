"""Entry point for the netpolicy-sync agent."""

from __future__ import annotations

import argparse
import logging
import logging.handlers
import signal
import socket
import sys
from pathlib import Path
from threading import Event
from typing import Optional

from netpolicy_sync.errors import SyncError
from netpolicy_sync.worker import PolicyLoader, SyncWorker

from .clients import NAMClient
from .config import AgentConfig, RuntimeConfig, load_config
from .factory import AgentClientFactory
from .policies import FilePolicySource, NAMPolicySource
from .scheduler import PassScheduler

LOG = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def _setup_logging(verbose: bool, log_dir: Optional[Path] = None) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.TimedRotatingFileHandler(
            log_dir / "netpolicy-sync.log", when="midnight", backupCount=30
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def build_policy_source(config: AgentConfig) -> PolicyLoader:
    if config.source.type == "nam":
        client = NAMClient.from_options(
            config.source.options,
            timeout=config.runtime.request_timeout,
            verify=config.runtime.verify_tls,
            user_agent=config.runtime.user_agent,
        )
        return NAMPolicySource(client)
    return FilePolicySource(config.source.path)


def build_worker(config: AgentConfig) -> SyncWorker:
    return SyncWorker(build_policy_source(config), AgentClientFactory(config.runtime))


def _run_continuously(worker: SyncWorker, runtime: RuntimeConfig) -> int:
    stop_event = Event()

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    scheduler = PassScheduler(worker, runtime.interval, stop_event)
    scheduler.start()
    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        stop_event.set()
    scheduler.join()
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the netpolicy-sync agent")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/netpolicy-sync/config.yaml"),
        help="Path to the agent configuration file",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        dest="once",
        action="store_true",
        default=None,
        help="Run a single reconciliation pass and exit",
    )
    mode.add_argument(
        "--continuous",
        dest="once",
        action="store_false",
        default=None,
        help="Run a pass every --interval seconds until stopped",
    )
    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between passes in continuous mode",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except SyncError as exc:
        _setup_logging(args.verbose)
        LOG.error("invalid configuration: %s", exc)
        return 1

    runtime = config.runtime
    if args.once is not None:
        runtime.once = args.once
    if args.interval is not None:
        runtime.interval = args.interval
    _setup_logging(args.verbose, runtime.log_dir)

    LOG.info("Starting %s on %s", runtime.user_agent, socket.gethostname())
    worker = build_worker(config)

    if not runtime.once:
        LOG.info("running a pass every %s seconds", runtime.interval)
        return _run_continuously(worker, runtime)

    try:
        result = worker.work()
    except Exception as exc:
        LOG.error("reconciliation pass failed: %s", exc, exc_info=not isinstance(exc, SyncError))
        return 1
    if result.failed:
        LOG.warning("policies failed in this pass: %s", ", ".join(result.failed))
    return int(result.status)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
