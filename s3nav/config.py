from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

DEFAULT_TICK_SECONDS = 0.25
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class AppConfig:
    profile: Optional[str] = None
    region: Optional[str] = None
    endpoint_url: Optional[str] = None
    tick_seconds: float = DEFAULT_TICK_SECONDS
    log_file: Optional[str] = None

    def with_overrides(self, **overrides: object) -> AppConfig:
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values)


def config_base_dir() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        base = Path(config_home).expanduser()
    else:
        base = Path.home() / ".config"
    return base / "s3nav"


def default_config_path() -> Path:
    return config_base_dir() / "config.json"


def _decode_str(value: object) -> Optional[str]:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    return normalized or None


def _decode_tick(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_TICK_SECONDS
    if value <= 0:
        return DEFAULT_TICK_SECONDS
    return float(value)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Read ``config.json``; unreadable or malformed files give the defaults."""
    config_path = path or default_config_path()
    try:
        payload = json.loads(config_path.read_text())
    except (OSError, ValueError):
        return AppConfig()
    if not isinstance(payload, dict):
        return AppConfig()
    return AppConfig(
        profile=_decode_str(payload.get("profile")),
        region=_decode_str(payload.get("region")),
        endpoint_url=_decode_str(payload.get("endpoint_url")),
        tick_seconds=_decode_tick(payload.get("tick_seconds")),
        log_file=_decode_str(payload.get("log_file")),
    )


def configure_logging(log_file: Optional[str], debug: bool = False) -> None:
    # The terminal belongs to the UI, so records only ever go to a file.
    root = logging.getLogger("s3nav")
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    if not log_file:
        root.addHandler(logging.NullHandler())
        root.propagate = False
        return
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.propagate = False
