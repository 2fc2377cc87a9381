from __future__ import annotations

import json
import os
import warnings
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from .db import DEFAULT_DB_PATH, DEFAULT_SERVER_DB_PATH

DEFAULT_CONFIG_PATH = Path("~/.config/phrasesync/config.json").expanduser()

CONFIG_ENV_OVERRIDES = {
    "db_path": "PHRASESYNC_DB_PATH",
    "user_id": "PHRASESYNC_USER_ID",
    "remote_url": "PHRASESYNC_REMOTE_URL",
    "sync_interval_s": "PHRASESYNC_SYNC_INTERVAL_S",
    "sync_timeout_s": "PHRASESYNC_SYNC_TIMEOUT_S",
    "server_host": "PHRASESYNC_SERVER_HOST",
    "server_port": "PHRASESYNC_SERVER_PORT",
    "server_db_path": "PHRASESYNC_SERVER_DB_PATH",
    "server_max_body_bytes": "PHRASESYNC_SERVER_MAX_BODY_BYTES",
    "log_level": "PHRASESYNC_LOG_LEVEL",
}

_INT_KEYS = {"server_port", "server_max_body_bytes"}
_FLOAT_KEYS = {"sync_interval_s", "sync_timeout_s"}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("PHRASESYNC_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    return config_path


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class PhraseSyncConfig:
    db_path: str = str(DEFAULT_DB_PATH)
    user_id: str | None = None
    remote_url: str = "http://127.0.0.1:3000"
    sync_interval_s: float = 30.0
    sync_timeout_s: float = 3.0
    server_host: str = "127.0.0.1"
    server_port: int = 3000
    server_db_path: str = str(DEFAULT_SERVER_DB_PATH)
    server_max_body_bytes: int = 50 * 1024 * 1024
    log_level: str = "WARNING"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_float(value: object, default: float, *, key: str) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid number for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    if parsed <= 0:
        warnings.warn(f"Invalid number for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default
    return parsed


def load_config(path: Path | None = None) -> PhraseSyncConfig:
    cfg = PhraseSyncConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
        except json.JSONDecodeError:
            data = {}
        if isinstance(data, dict):
            cfg = _apply_dict(cfg, data)
    cfg = _apply_dict(cfg, get_env_overrides())
    return cfg


def _apply_dict(cfg: PhraseSyncConfig, data: dict[str, Any]) -> PhraseSyncConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        if key in _INT_KEYS:
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        if key in _FLOAT_KEYS:
            setattr(cfg, key, _parse_float(value, getattr(cfg, key), key=key))
            continue
        if value is None or value == "":
            if key == "user_id":
                setattr(cfg, key, None)
            continue
        setattr(cfg, key, str(value))
    return cfg
