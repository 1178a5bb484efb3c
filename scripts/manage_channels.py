"""
Offline management of monitored channels and their subscriptions.

Usage:
    python -m scripts.manage_channels add-channel 11249217 JakenbakeLIVE --timezone Asia/Tokyo
    python -m scripts.manage_channels subscribe 11249217 123456789012345678
    python -m scripts.manage_channels unsubscribe 11249217 123456789012345678
    python -m scripts.manage_channels show 11249217
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from core.monitoring.phase import was_live
from shared.config.monitor import load_monitor_config
from shared.storage.channel_store import MonitoredChannelStore


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage monitored channels")
    parser.add_argument("--db", help="SQLite database path (defaults to monitor.json)")

    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add-channel", help="Register or update a monitored channel")
    add.add_argument("channel_id")
    add.add_argument("display_name")
    add.add_argument("--timezone", default=None)

    for name in ("subscribe", "unsubscribe"):
        cmd = sub.add_parser(name, help=f"{name.title()} a Discord channel")
        cmd.add_argument("channel_id")
        cmd.add_argument("destination_id", type=int)

    show = sub.add_parser("show", help="Print a monitored channel")
    show.add_argument("channel_id", nargs="?")

    return parser


def _show(store: MonitoredChannelStore, channel_id: Optional[str]) -> int:
    channel_ids = [channel_id] if channel_id else store.list_channel_ids()
    for cid in channel_ids:
        channel = store.load(cid)
        if channel is None:
            print(f"{cid}: not monitored")
            return 1

        state = "live" if was_live(channel) else "offline"
        print(f"{channel.channel_id} ({channel.display_name}): {state}")
        print(f"  timezone: {channel.timezone_override or 'UTC'}")
        for sub in channel.subscriptions:
            print(f"  -> {sub.destination_id} (message {sub.last_message_id or '-'})")
        segment = channel.last_segment
        if segment is not None:
            print(f"  last activity: {segment.activity_name} since {segment.start:%Y-%m-%d %H:%M}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    store = MonitoredChannelStore(args.db or load_monitor_config().database_path)

    if args.command == "add-channel":
        store.register_channel(args.channel_id, args.display_name, timezone_override=args.timezone)
        print(f"Registered {args.channel_id}")
        return 0

    if args.command == "subscribe":
        if not store.add_subscription(args.channel_id, args.destination_id):
            print("Channel not monitored or destination already subscribed", file=sys.stderr)
            return 1
        print(f"Subscribed {args.destination_id}")
        return 0

    if args.command == "unsubscribe":
        if not store.remove_subscription(args.channel_id, args.destination_id):
            print("Subscription not found", file=sys.stderr)
            return 1
        print(f"Unsubscribed {args.destination_id}")
        return 0

    return _show(store, args.channel_id)


if __name__ == "__main__":
    sys.exit(main())
