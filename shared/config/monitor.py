from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from services.discord.embeds import DEFAULT_MENTION_TEMPLATE
from shared.logging.logger import get_logger

log = get_logger("shared.config.monitor")

_CONFIG_PATH = Path(__file__).parent / "monitor.json"


@dataclass
class ChannelEntry:
    channel_id: str
    display_name: str
    timezone: Optional[str] = None


@dataclass
class MonitorConfig:
    poll_interval_seconds: int = 60
    debounce_seconds: int = 180
    database_path: str = "data/livewatch.db"
    mention_template: str = DEFAULT_MENTION_TEMPLATE
    channels: List[ChannelEntry] = field(default_factory=list)

    @property
    def debounce_window(self) -> timedelta:
        return timedelta(seconds=self.debounce_seconds)


def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        log.warning(f"monitor.json not found at {path}; using defaults")
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except Exception as e:
        log.warning(f"Failed to load monitor.json ({e}); using defaults")
        return {}


def _positive_int(raw: Dict[str, Any], key: str, default: int) -> int:
    value = raw.get(key, default)
    try:
        value_int = int(value)
    except (TypeError, ValueError):
        log.warning(f"{key} must be an integer; defaulting to {default}")
        return default

    if value_int <= 0:
        log.warning(f"{key} must be positive; defaulting to {default}")
        return default
    return value_int


def _load_channels(raw: Any) -> List[ChannelEntry]:
    if not isinstance(raw, list):
        return []

    channels: List[ChannelEntry] = []
    seen = set()
    for entry in raw:
        if not isinstance(entry, dict):
            log.warning(f"Ignoring channel entry that is not an object: {entry!r}")
            continue

        channel_id = str(entry.get("channel_id") or "").strip()
        if not channel_id:
            log.warning(f"Ignoring channel entry without channel_id: {entry!r}")
            continue
        if channel_id in seen:
            log.warning(f"Ignoring duplicate channel entry {channel_id}")
            continue
        seen.add(channel_id)

        display_name = str(entry.get("display_name") or channel_id).strip()
        tz_name = entry.get("timezone")
        channels.append(ChannelEntry(
            channel_id=channel_id,
            display_name=display_name,
            timezone=tz_name if isinstance(tz_name, str) and tz_name.strip() else None,
        ))

    return channels


def load_monitor_config(path: Optional[Path] = None) -> MonitorConfig:
    raw = _load_json(path or _CONFIG_PATH)

    mention_template = raw.get("mention_template", DEFAULT_MENTION_TEMPLATE)
    if not isinstance(mention_template, str):
        log.warning("mention_template must be a string; using default")
        mention_template = DEFAULT_MENTION_TEMPLATE

    database_path = raw.get("database_path", MonitorConfig.database_path)

    return MonitorConfig(
        poll_interval_seconds=_positive_int(
            raw, "poll_interval_seconds", MonitorConfig.poll_interval_seconds
        ),
        debounce_seconds=_positive_int(
            raw, "debounce_seconds", MonitorConfig.debounce_seconds
        ),
        database_path=str(database_path),
        mention_template=mention_template,
        channels=_load_channels(raw.get("channels")),
    )
