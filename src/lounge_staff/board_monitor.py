#!/usr/bin/env python3
"""
Live table board monitor.

Runs the reconciliation coordinator against the configured database and logs
every table whose derived status changes. With REDIS_URL set it also receives
the changes the staff API publishes.

Usage:
    python -m lounge_staff.board_monitor [--once]
"""

import argparse
import asyncio
import signal

from lounge_shared.config import load_config
from lounge_shared.datetime_utils import local_now
from lounge_shared.db import dispose_engine, init_db, init_engine
from lounge_shared.logging_config import configure_logging, get_logger
from lounge_shared.models import Base
from lounge_shared.realtime import build_change_feed
from lounge_shared.services.reconciliation_service import ReconciliationCoordinator
from lounge_shared.services.table_status_service import TableStatus
from lounge_shared.store import DocumentStore

logger = get_logger(__name__)


class BoardChangeLogger:
    """Logs tables whose status differs from the previous board."""

    def __init__(self):
        self._previous: dict[int, str] = {}

    def __call__(self, statuses: list[TableStatus]) -> None:
        for item in statuses:
            number = item.table.number
            status = item.status.value
            if self._previous.get(number) != status:
                logger.info(
                    f"Table {number}: {self._previous.get(number, '-')} -> {status}",
                    extra={"table_number": number, "waiting_time": item.waiting_time},
                )
            self._previous[number] = status


async def main():
    parser = argparse.ArgumentParser(description="Live table status board")
    parser.add_argument("--once", action="store_true", help="Compute the board once and exit")
    parser.add_argument(
        "--interval", type=int, default=60, help="Seconds between time-based recomputes"
    )
    args = parser.parse_args()

    config = load_config("lounge-board")
    configure_logging(config.app_name, config.log_level)
    init_engine(config)
    init_db(Base.metadata)

    store = DocumentStore(
        feed=build_change_feed(config.redis_url, config.redis_channel_prefix),
        clock=lambda: local_now(config.restaurant_timezone or None),
    )
    if store.feed.bus is None:
        logger.warning("REDIS_URL not set; only time-based recomputes will see API writes")
    coordinator = ReconciliationCoordinator(store, thresholds=config.status_thresholds())
    coordinator.on_table_status_change(BoardChangeLogger())

    try:
        if args.once:
            await coordinator.recompute()
            return

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        await coordinator.start()
        # Waiting times grow between writes, so recompute on a timer as well.
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=args.interval)
            except asyncio.TimeoutError:
                coordinator.request_recompute("tick")
        await coordinator.stop()
    finally:
        store.feed.close()
        dispose_engine()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
