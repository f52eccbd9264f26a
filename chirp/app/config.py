from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

DEFAULT_URL_SCAN_WORKERS = 2
MAX_URL_SCAN_WORKERS = 8


def _global_config_path() -> Path:
    override = os.getenv("CHIRP_CONFIG")
    if override:
        return Path(override)
    return Path.home() / ".chirp_config.json"


def init_settings() -> None:
    _global_config_path().parent.mkdir(parents=True, exist_ok=True)


def _read_global_config() -> dict:
    """Return the parsed global config, or an empty dict on error/missing."""
    path = _global_config_path()
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}
    return payload if isinstance(payload, dict) else {}


def _update_global_config(updates: dict) -> None:
    """Merge updates into global config file."""
    path = _global_config_path()
    existing = _read_global_config()
    existing.update(updates)
    path.write_text(json.dumps(existing, indent=2), encoding="utf-8")


def load_sound_enabled() -> bool:
    """Load whether incoming messages should beep (default: True)."""
    payload = _read_global_config()
    if "sound_enabled" in payload:
        return bool(payload["sound_enabled"])
    return True


def save_sound_enabled(enabled: bool) -> None:
    _update_global_config({"sound_enabled": bool(enabled)})


def load_sound_file() -> Optional[str]:
    payload = _read_global_config()
    value = payload.get("sound_file")
    return value if isinstance(value, str) and value.strip() else None


def save_sound_file(path: Optional[str]) -> None:
    _update_global_config({"sound_file": path})


def load_url_scan_workers() -> int:
    """Number of background workers used to scan inserted text for URLs."""
    payload = _read_global_config()
    try:
        value = int(payload.get("url_scan_workers", DEFAULT_URL_SCAN_WORKERS))
    except (TypeError, ValueError):
        return DEFAULT_URL_SCAN_WORKERS
    return max(1, min(MAX_URL_SCAN_WORKERS, value))


def save_url_scan_workers(count: int) -> None:
    _update_global_config({"url_scan_workers": int(count)})


def load_url_open_on_click() -> bool:
    """Load whether clicking a highlighted URL opens it in the desktop handler."""
    payload = _read_global_config()
    if "url_open_on_click" in payload:
        return bool(payload["url_open_on_click"])
    return True


def save_url_open_on_click(enabled: bool) -> None:
    _update_global_config({"url_open_on_click": bool(enabled)})
