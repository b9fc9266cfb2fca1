#!/usr/bin/env python3
"""
CLI for running the changefeed poller and inspecting its state.

Usage:
    python -m src.cli run --watch-path /data/logs --db ./data/changefeed.db
    python -m src.cli checkpoint show --db ./data/changefeed.db
    python -m src.cli records --db ./data/changefeed.db --limit 20
"""

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Tuple

from dotenv import load_dotenv

from src.changefeed import (
    CheckpointError,
    ConfigError,
    EventPoller,
    LocalFSEventSource,
    PollerConfig,
    PollerProcess,
    QueueSink,
    RecordQueue,
    SENTINEL_TXID,
    SQLiteCheckpointStore,
    Scope,
    load_position,
    save_position,
)


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cli")

STATS_INTERVAL = 5.0


class GracefulShutdown:
    """Handle graceful shutdown on SIGINT/SIGTERM."""

    def __init__(self):
        self.should_exit = False
        self._event = threading.Event()
        signal.signal(signal.SIGINT, self._handler)
        signal.signal(signal.SIGTERM, self._handler)

    def _handler(self, signum, frame):
        logger.info("Received shutdown signal, stopping...")
        self.should_exit = True
        self._event.set()

    def wait(self, timeout: float) -> bool:
        """Sleep until a shutdown signal arrives or the timeout passes."""
        return self._event.wait(timeout)


def _build_config(args) -> PollerConfig:
    return PollerConfig.from_env(
        watch_path=getattr(args, "watch_path", None),
        recursive=False if getattr(args, "no_recursive", False) else None,
        event_types=getattr(args, "event_types", None),
        poll_duration=getattr(args, "poll_duration", None),
        trigger_interval=getattr(args, "interval", None),
        state_db_path=Path(args.db) if getattr(args, "db", None) else None,
        scope=Scope(args.scope) if getattr(args, "scope", None) else None,
    )


def _prepare_run(args) -> Tuple[PollerConfig, Path]:
    """
    Build the run configuration and the directory to observe.

    The local source journals absolute paths, so the watch path is
    resolved the same way before any event is matched against it.
    """
    try:
        config = _build_config(args)
        config.validate()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    root = Path(getattr(args, "root", None) or config.watch_path).resolve()
    if not root.is_dir():
        logger.error(f"Root path is not a directory: {root}")
        sys.exit(1)

    config.watch_path = Path(config.watch_path).resolve().as_posix()
    return config, root


def _initial_txid(store: SQLiteCheckpointStore, config: PollerConfig) -> int:
    """Pick the journal numbering start from the persisted checkpoint."""
    try:
        position = load_position(store, config.checkpoint_key, config.scope)
    except CheckpointError as e:
        logger.error(f"Unable to read checkpoint at startup, cycles abort until it is fixed: {e}")
        return 0
    return position if position != SENTINEL_TXID else 0


def cmd_run(args):
    """Run the poller against a local directory."""
    config, root = _prepare_run(args)

    db_path = config.state_db_path.resolve()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    store = SQLiteCheckpointStore(db_path)
    start_txid = _initial_txid(store, config)

    shutdown = GracefulShutdown()

    with RecordQueue(db_path) as queue, LocalFSEventSource(
        root, recursive=config.recursive, start_txid=start_txid
    ) as source:
        poller = EventPoller(source, QueueSink(queue), config, store)

        with PollerProcess(poller) as process:
            process.start_async()

            logger.info(f"Watching {config.watch_path} (recursive={config.recursive})")
            logger.info(f"Event types: {', '.join(sorted(config.accepted_types()))}")
            logger.info(f"State database: {db_path}")
            logger.info("Press Ctrl+C to stop")

            while not shutdown.should_exit:
                shutdown.wait(STATS_INTERVAL)
                stats = process.stats
                logger.debug(
                    f"Stats: {stats.cycles} cycles, {stats.emitted} emitted, "
                    f"{stats.gap_resets} gap resets, {queue.size()} pending records"
                )

    logger.info("Poller stopped")


def cmd_checkpoint(args):
    """Show, reset or set the persisted checkpoint."""
    config = _build_config(args)
    store = SQLiteCheckpointStore(config.state_db_path)
    key, scope = config.checkpoint_key, config.scope

    if args.action == "show":
        position = load_position(store, key, scope)
        if position == SENTINEL_TXID:
            print(f"{key}: (none, starting from current tip)")
        else:
            print(f"{key}: {position}")
    elif args.action == "reset":
        save_position(store, SENTINEL_TXID, key, scope)
        print(f"{key} reset to {SENTINEL_TXID}")
    elif args.action == "set":
        if args.txid is None:
            logger.error("A transaction id is required for 'set'")
            sys.exit(1)
        save_position(store, args.txid, key, scope)
        print(f"{key} set to {args.txid}")


def cmd_records(args):
    """Print pending records as JSON lines."""
    with RecordQueue(Path(args.db)) as queue:
        items = queue.dequeue(batch_size=args.limit)
        for _, record in items:
            print(json.dumps(record.to_dict()))

        ids = [item_id for item_id, _ in items]
        if args.ack:
            queue.ack(ids)
        else:
            queue.nack(ids)


def main():
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Poll a filesystem change feed and emit matching events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Emit create and append events under ./incoming
  python -m src.cli run --watch-path ./incoming --event-types create,append

  # Show the persisted transaction id
  python -m src.cli checkpoint show --db changefeed.db

  # Drain up to 50 records
  python -m src.cli records --db changefeed.db --limit 50 --ack
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the poller")
    run_parser.add_argument("--watch-path", help="Path whose events are emitted (or CHANGEFEED_WATCH_PATH)")
    run_parser.add_argument("--root", help="Directory to observe (default: the watch path)")
    run_parser.add_argument("--no-recursive", action="store_true", help="Only emit events for the watch path itself")
    run_parser.add_argument("--event-types", help="Comma-separated event types (default: all six)")
    run_parser.add_argument("--poll-duration", help="Poll duration, e.g. '1 second' or '500 millis'")
    run_parser.add_argument("--interval", help="Time between cycles, e.g. '1 sec'")
    run_parser.add_argument("--db", help="State database path (or CHANGEFEED_STATE_DB)")
    run_parser.add_argument("--scope", choices=[s.value for s in Scope], help="Checkpoint scope")
    run_parser.set_defaults(func=cmd_run)

    checkpoint_parser = subparsers.add_parser("checkpoint", help="Inspect or change the checkpoint")
    checkpoint_parser.add_argument("action", choices=["show", "reset", "set"])
    checkpoint_parser.add_argument("txid", nargs="?", type=int, help="Transaction id for 'set'")
    checkpoint_parser.add_argument("--db", help="State database path (or CHANGEFEED_STATE_DB)")
    checkpoint_parser.add_argument("--scope", choices=[s.value for s in Scope], help="Checkpoint scope")
    checkpoint_parser.set_defaults(func=cmd_checkpoint)

    records_parser = subparsers.add_parser("records", help="Print pending records")
    records_parser.add_argument("--db", default="changefeed.db", help="State database path")
    records_parser.add_argument("--limit", type=int, default=100, help="Maximum records to print")
    records_parser.add_argument("--ack", action="store_true", help="Remove printed records from the queue")
    records_parser.set_defaults(func=cmd_records)

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    args.func(args)


if __name__ == "__main__":
    main()
