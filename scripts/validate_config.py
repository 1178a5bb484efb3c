"""
LiveWatch Runtime v0.3.0-alpha (Build 2026.10)

Configuration validation script.

Validates shared/config/monitor.json against minimal runtime expectations.

Design rules:
- No side effects on import
- No runtime startup
- Validation only (no mutation)
- Forward-compatible: unknown fields are ignored
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


# ------------------------------------------------------------
# Paths
# ------------------------------------------------------------

ROOT = Path(__file__).resolve().parents[1]
CONFIG_DIR = ROOT / "shared" / "config"


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------

def _load_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            raise ValueError("Root JSON value must be an object")
    except Exception as e:
        raise ValueError(f"{path.name}: invalid JSON ({e})") from e


def _error(msg: str):
    print(f"[CONFIG ERROR] {msg}", file=sys.stderr)


# ------------------------------------------------------------
# Validators
# ------------------------------------------------------------

def validate_monitor_config(data: Dict[str, Any]) -> List[str]:
    """
    Validate the monitor.json payload and return a list of errors.

    Expected (minimal) shape:
    {
        "poll_interval_seconds": 60,
        "debounce_seconds": 180,
        "channels": [
            {"channel_id": "123", "display_name": "name", "timezone": "Asia/Tokyo"}
        ]
    }
    """
    errors: List[str] = []

    for key in ("poll_interval_seconds", "debounce_seconds"):
        if key not in data:
            continue
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            errors.append(f"'{key}' must be a positive integer")

    template = data.get("mention_template")
    if template is not None and not isinstance(template, str):
        errors.append("'mention_template' must be a string")

    channels = data.get("channels", [])
    if not isinstance(channels, list):
        errors.append("'channels' must be a list")
        return errors

    seen = set()
    for idx, entry in enumerate(channels):
        if not isinstance(entry, dict):
            errors.append(f"channels[{idx}] must be an object")
            continue

        channel_id = entry.get("channel_id")
        if not isinstance(channel_id, str) or not channel_id.strip().isdigit():
            errors.append(f"channels[{idx}].channel_id must be a numeric string")
        elif channel_id in seen:
            errors.append(f"channels[{idx}].channel_id '{channel_id}' is duplicated")
        else:
            seen.add(channel_id)

        tz_name = entry.get("timezone")
        if tz_name is not None:
            try:
                ZoneInfo(tz_name)
            except (ZoneInfoNotFoundError, ValueError, TypeError):
                errors.append(f"channels[{idx}].timezone '{tz_name}' is not a known timezone")

    return errors


# ------------------------------------------------------------
# Entry point
# ------------------------------------------------------------

def main() -> int:
    try:
        data = _load_json(CONFIG_DIR / "monitor.json")
    except ValueError as e:
        _error(str(e))
        return 1

    errors = validate_monitor_config(data)
    for err in errors:
        _error(f"monitor.json: {err}")

    if errors:
        print("Configuration validation failed.", file=sys.stderr)
        return 1

    print("Configuration validation passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
