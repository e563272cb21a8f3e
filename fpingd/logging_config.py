from __future__ import annotations

import logging
import os
from pathlib import Path

from .config import RelayRuntimeConfig

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Third-party loggers governed by ``log_http_level``.
HTTP_LOGGERS = ("httpx", "httpcore", "uvicorn", "uvicorn.error", "uvicorn.access")


def _level(name: str | None, default: int) -> int:
    level = logging.getLevelName((name or "").strip().upper())
    return level if isinstance(level, int) else default


def _file_handler(log_file: str) -> logging.FileHandler:
    p = Path(os.path.expanduser(log_file))
    p.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(p, encoding="utf-8")
    try:
        # Logs carry client tokens.
        os.chmod(p, 0o600)
    except OSError:
        pass
    return handler


def configure_logging(cfg: RelayRuntimeConfig) -> None:
    """Install fpingd's handlers on the root logger.

    CLI overrides are expected to be folded into ``cfg`` already.
    """
    handlers: list[logging.Handler] = []
    if cfg.log_console:
        handlers.append(logging.StreamHandler())
    if cfg.log_file and cfg.log_file.strip():
        handlers.append(_file_handler(cfg.log_file))

    formatter = logging.Formatter(
        fmt=cfg.log_format.strip() or DEFAULT_FORMAT,
        datefmt=cfg.log_datefmt or None,
    )

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    for h in handlers:
        h.setFormatter(formatter)
        root.addHandler(h)
    root.setLevel(_level(cfg.log_level, logging.INFO))

    http_level = _level(cfg.log_http_level, logging.WARNING)
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)

    logging.captureWarnings(True)
