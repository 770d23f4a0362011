from __future__ import annotations

import argparse
from pathlib import Path

from passroute.api.state import NetworkState
from passroute.ingestion.status_feed import StatusFeedClient
from passroute.ingestion.sync import FeedSyncResult, poll_status_feed
from passroute.logging_config import configure_logging
from passroute.settings import get_config
from passroute.storage.datasets import save_csv, statuses_frame


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Poll the road-status feed and keep the segment set current.")
    parser.add_argument(
        "--interval-seconds",
        type=float,
        default=None,
        help="Seconds between polls (default: config feed.poll_interval_seconds).",
    )
    parser.add_argument("--max-iterations", type=int, default=None, help="Stop after N polls (default: run forever).")
    parser.add_argument(
        "--snapshot-out",
        default=None,
        help="Write the current status of every segment to this CSV after each poll that changed something.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    configure_logging()

    config = get_config()
    interval = float(args.interval_seconds if args.interval_seconds is not None else config.feed.poll_interval_seconds)
    state = NetworkState.from_config(config)
    client = StatusFeedClient(config=config)

    def report(result: FeedSyncResult) -> None:
        if result.ok:
            print(f"[feed] {result.received} records, {len(result.changed)} changed")
            if result.changed and args.snapshot_out:
                save_csv(statuses_frame(state.reconciler.statuses()), Path(args.snapshot_out))
        else:
            code = result.error.code if result.error else "unknown"
            print(f"[feed] degraded ({code}); keeping last-known statuses")

    try:
        poll_status_feed(
            lambda: state.sync(client),
            interval_seconds=interval,
            max_iterations=args.max_iterations,
            on_result=report,
        )
    except KeyboardInterrupt:
        print("[feed] stopped")
    finally:
        client.close()


if __name__ == "__main__":
    main()
