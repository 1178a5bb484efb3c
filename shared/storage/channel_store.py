"""Monitored channel persistence backed by SQLite."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from core.monitoring.errors import StoreError
from core.monitoring.models import ActivitySegment, MonitoredChannel, Subscription
from shared.logging.logger import get_logger
from shared.storage.paths import get_data_path

log = get_logger("shared.channel_store")

DEFAULT_DB_NAME = "livewatch.db"


def _to_text(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def _from_text(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class MonitoredChannelStore:
    """
    Loads and commits MonitoredChannel aggregates.

    commit() writes the channel row, its segments and its subscription rows
    in a single transaction; a failure leaves the previous state intact.
    Admin subscription changes are single-row writes that a concurrent
    commit never undoes.
    """

    def __init__(self, db_path: Path | str | None = None) -> None:
        self._db_path = Path(db_path) if db_path else get_data_path(DEFAULT_DB_NAME)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_schema()

    # ------------------------------------------------------------------
    # SQLite setup
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_schema(self) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS channels (
                        channel_id TEXT PRIMARY KEY,
                        display_name TEXT NOT NULL,
                        session_start TEXT NOT NULL,
                        session_end TEXT NOT NULL,
                        timezone_override TEXT
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS activity_segments (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        channel_id TEXT NOT NULL REFERENCES channels(channel_id) ON DELETE CASCADE,
                        activity_name TEXT NOT NULL,
                        started_at TEXT NOT NULL,
                        ended_at TEXT
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS subscriptions (
                        channel_id TEXT NOT NULL REFERENCES channels(channel_id) ON DELETE CASCADE,
                        destination_id INTEGER NOT NULL,
                        last_message_id INTEGER NOT NULL DEFAULT 0,
                        PRIMARY KEY (channel_id, destination_id)
                    )
                    """
                )
                conn.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_activity_segments_channel
                    ON activity_segments(channel_id, id)
                    """
                )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to initialise schema at {self._db_path}: {e}") from e
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Aggregate load / commit
    # ------------------------------------------------------------------

    def load(self, channel_id: str) -> Optional[MonitoredChannel]:
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT * FROM channels WHERE channel_id = ?",
                    (channel_id,),
                ).fetchone()
                if row is None:
                    return None

                segments = [
                    ActivitySegment(
                        activity_name=seg["activity_name"],
                        start=_from_text(seg["started_at"]),
                        end=_from_text(seg["ended_at"]),
                        segment_id=seg["id"],
                    )
                    for seg in conn.execute(
                        "SELECT * FROM activity_segments WHERE channel_id = ? ORDER BY id",
                        (channel_id,),
                    )
                ]
                subscriptions = [
                    Subscription(
                        destination_id=sub["destination_id"],
                        last_message_id=sub["last_message_id"] or 0,
                        stored=True,
                    )
                    for sub in conn.execute(
                        "SELECT * FROM subscriptions WHERE channel_id = ? ORDER BY destination_id",
                        (channel_id,),
                    )
                ]
            except sqlite3.Error as e:
                raise StoreError(f"[{channel_id}] Failed to load channel: {e}") from e
            finally:
                conn.close()

        return MonitoredChannel(
            channel_id=row["channel_id"],
            display_name=row["display_name"],
            session_start=_from_text(row["session_start"]),
            session_end=_from_text(row["session_end"]),
            timezone_override=row["timezone_override"],
            segments=segments,
            subscriptions=subscriptions,
        )

    def commit(self, channel: MonitoredChannel) -> None:
        """Persist the whole aggregate atomically. Raises StoreError."""
        inserted: List[tuple[ActivitySegment, int]] = []

        with self._lock:
            conn = self._connect()
            try:
                with conn:
                    conn.execute(
                        """
                        INSERT INTO channels (
                            channel_id, display_name, session_start,
                            session_end, timezone_override
                        )
                        VALUES (?, ?, ?, ?, ?)
                        ON CONFLICT(channel_id) DO UPDATE SET
                            display_name = excluded.display_name,
                            session_start = excluded.session_start,
                            session_end = excluded.session_end,
                            timezone_override = excluded.timezone_override
                        """,
                        (
                            channel.channel_id,
                            channel.display_name,
                            _to_text(channel.session_start),
                            _to_text(channel.session_end),
                            channel.timezone_override,
                        ),
                    )

                    for segment in channel.segments:
                        if segment.segment_id is None:
                            cur = conn.execute(
                                """
                                INSERT INTO activity_segments (channel_id, activity_name, started_at, ended_at)
                                VALUES (?, ?, ?, ?)
                                """,
                                (
                                    channel.channel_id,
                                    segment.activity_name,
                                    _to_text(segment.start),
                                    _to_text(segment.end),
                                ),
                            )
                            inserted.append((segment, cur.lastrowid))
                        else:
                            conn.execute(
                                """
                                UPDATE activity_segments
                                SET activity_name = ?, started_at = ?, ended_at = ?
                                WHERE id = ? AND channel_id = ?
                                """,
                                (
                                    segment.activity_name,
                                    _to_text(segment.start),
                                    _to_text(segment.end),
                                    segment.segment_id,
                                    channel.channel_id,
                                ),
                            )

                    self._write_subscriptions(conn, channel)
            except sqlite3.Error as e:
                raise StoreError(f"[{channel.channel_id}] Commit failed: {e}") from e
            finally:
                conn.close()

        for segment, row_id in inserted:
            segment.segment_id = row_id
        for sub in channel.subscriptions:
            sub.stored = True
        channel.removed_destination_ids.clear()

        log.debug(
            f"[{channel.channel_id}] Committed "
            f"({len(channel.segments)} segments, {len(channel.subscriptions)} subscriptions)"
        )

    def _write_subscriptions(self, conn: sqlite3.Connection, channel: MonitoredChannel) -> None:
        """
        Row-level subscription writes.

        Rows added or removed by admin commands since the aggregate was
        loaded are left alone: stored subscriptions are only updated, and
        only destinations removed through the aggregate are deleted.
        """
        for sub in channel.subscriptions:
            if sub.stored:
                cur = conn.execute(
                    """
                    UPDATE subscriptions SET last_message_id = ?
                    WHERE channel_id = ? AND destination_id = ?
                    """,
                    (sub.last_message_id or 0, channel.channel_id, sub.destination_id),
                )
                if cur.rowcount == 0:
                    log.info(
                        f"[{channel.channel_id}] Subscription {sub.destination_id} "
                        f"was removed during the tick; not restoring it"
                    )
            else:
                conn.execute(
                    """
                    INSERT INTO subscriptions (channel_id, destination_id, last_message_id)
                    VALUES (?, ?, ?)
                    ON CONFLICT(channel_id, destination_id) DO UPDATE SET
                        last_message_id = excluded.last_message_id
                    """,
                    (channel.channel_id, sub.destination_id, sub.last_message_id or 0),
                )

        conn.executemany(
            "DELETE FROM subscriptions WHERE channel_id = ? AND destination_id = ?",
            [(channel.channel_id, dest_id) for dest_id in sorted(channel.removed_destination_ids)],
        )

    def _execute(self, sql: str, params: tuple, action: str) -> int:
        """Run a single write in its own transaction and return the rowcount."""
        with self._lock:
            conn = self._connect()
            try:
                with conn:
                    return conn.execute(sql, params).rowcount
            except sqlite3.Error as e:
                raise StoreError(f"{action} failed: {e}") from e
            finally:
                conn.close()

    # ------------------------------------------------------------------
    # Admin surface
    # ------------------------------------------------------------------

    def register_channel(
        self,
        channel_id: str,
        display_name: str,
        *,
        timezone_override: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> MonitoredChannel:
        """
        Create the channel if missing, otherwise refresh its display fields.

        New channels start Settled (session_start == session_end). Lifecycle
        markers, segments and subscriptions of an existing channel are kept.
        """
        channel = self.load(channel_id)
        if channel is not None:
            self._execute(
                "UPDATE channels SET display_name = ?, timezone_override = ? WHERE channel_id = ?",
                (display_name, timezone_override, channel_id),
                f"[{channel_id}] Channel update",
            )
            channel.display_name = display_name
            channel.timezone_override = timezone_override
            return channel

        registered_at = now or datetime.now(timezone.utc)
        channel = MonitoredChannel(
            channel_id=channel_id,
            display_name=display_name,
            session_start=registered_at,
            session_end=registered_at,
            timezone_override=timezone_override,
        )
        self.commit(channel)
        log.info(f"[{channel_id}] Registered monitored channel '{display_name}'")
        return channel

    def add_subscription(self, channel_id: str, destination_id: int) -> bool:
        added = self._execute(
            """
            INSERT OR IGNORE INTO subscriptions (channel_id, destination_id, last_message_id)
            SELECT channel_id, ?, 0 FROM channels WHERE channel_id = ?
            """,
            (destination_id, channel_id),
            f"[{channel_id}] Subscribe",
        )
        if added:
            log.info(f"[{channel_id}] Subscribed destination {destination_id}")
        return bool(added)

    def remove_subscription(self, channel_id: str, destination_id: int) -> bool:
        removed = self._execute(
            "DELETE FROM subscriptions WHERE channel_id = ? AND destination_id = ?",
            (channel_id, destination_id),
            f"[{channel_id}] Unsubscribe",
        )
        if removed:
            log.info(f"[{channel_id}] Unsubscribed destination {destination_id}")
        return bool(removed)

    def list_channel_ids(self) -> List[str]:
        with self._lock:
            conn = self._connect()
            try:
                rows = conn.execute("SELECT channel_id FROM channels ORDER BY channel_id").fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"Failed to list channels: {e}") from e
            finally:
                conn.close()
        return [row["channel_id"] for row in rows]
