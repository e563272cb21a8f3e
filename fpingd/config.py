from __future__ import annotations

import os
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

from .constants import GCM_SEND_URL, PAYLOAD_JSON, SERVER_CLIENT_AVATAR_URL, SERVER_CLIENT_NAME


@dataclass(frozen=True)
class RelayRuntimeConfig:
    config_path: str | None = None
    api_key: str | None = None
    sender_id: str | None = None
    test_data_path: str | None = None
    send_url: str = GCM_SEND_URL
    send_timeout_s: float = 10.0
    payload_encoding: str = PAYLOAD_JSON
    listen_host: str = "127.0.0.1"
    listen_port: int = 8080
    server_name: str = SERVER_CLIENT_NAME
    server_avatar_url: str = SERVER_CLIENT_AVATAR_URL
    log_level: str = "INFO"
    log_http_level: str = "WARNING"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
    log_datefmt: str | None = None


def default_config_path() -> Path:
    """``$FPINGD_HOME/fpingd.toml``, falling back to ``~/.fpingd/fpingd.toml``."""
    home = os.environ.get("FPINGD_HOME")
    return (Path(home) if home else Path.home() / ".fpingd") / "fpingd.toml"


_LOGGING_KEYS = {
    "level": "log_level",
    "http_level": "log_http_level",
    "console": "log_console",
    "file": "log_file",
    "format": "log_format",
    "datefmt": "log_datefmt",
}

# Empty strings in the file mean "unset" for these keys.
_OPTIONAL_KEYS = ("api_key", "sender_id", "test_data_path", "log_file", "log_datefmt")


def load_toml(path: str) -> dict:
    import tomllib

    with open(path, "rb") as f:
        return tomllib.load(f)


def apply_config_data(cfg: RelayRuntimeConfig, data: dict[str, Any]) -> RelayRuntimeConfig:
    """Overlay values from a parsed config file onto ``cfg``.

    Top-level keys and the ``[relay]`` table map to fields by name; the
    ``[logging]`` table maps to the ``log_*`` fields. Unknown keys are ignored.
    """
    if not isinstance(data, dict):
        return cfg

    relay = data.get("relay")
    if isinstance(relay, dict):
        data = {**data, **relay}

    log_table = data.get("logging")
    if isinstance(log_table, dict):
        mapped = {_LOGGING_KEYS[k]: v for k, v in log_table.items() if k in _LOGGING_KEYS}
        data = {**data, **mapped}

    allowed = set(asdict(cfg).keys())
    # This identifies where the file came from; do not let the file override it.
    allowed.discard("config_path")
    updates = {k: v for k, v in data.items() if k in allowed}

    for key in _OPTIONAL_KEYS:
        if key in updates and updates[key] == "":
            updates[key] = None
    if "sender_id" in updates and updates["sender_id"] is not None:
        # Sender ids are numeric project numbers; TOML may carry them as ints.
        updates["sender_id"] = str(updates["sender_id"])
    if "listen_port" in updates:
        updates["listen_port"] = int(updates["listen_port"])
    if "send_timeout_s" in updates:
        updates["send_timeout_s"] = float(updates["send_timeout_s"])

    return replace(cfg, **updates) if updates else cfg


def apply_config_file(cfg: RelayRuntimeConfig, path: str) -> RelayRuntimeConfig:
    return apply_config_data(cfg, load_toml(path))
