from __future__ import annotations

import argparse
import os
import sys
from dataclasses import replace
from pathlib import Path

from .config import RelayRuntimeConfig, apply_config_file, default_config_path
from .constants import PAYLOAD_ENCODINGS
from .errors import FixtureError
from .logging_config import configure_logging
from .service import RelayService


def _write_default_config(config_path: str) -> None:
    Path(config_path).parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    content = """# fpingd configuration (TOML)
#
# This file was created on first run.
# Edit it, then start fpingd again.

[relay]

# Push backend credentials (required).
# api_key: server key authorized to send messages.
# sender_id: project number identifying the app on the push backend.
api_key = ""
sender_id = ""

# Push backend HTTP send endpoint and request timeout.
send_url = "https://gcm-http.googleapis.com/gcm/send"
send_timeout_s = 10.0

# Encoding of the data payload: "json" (plain map) or "cbor"
# (a single "base64" field holding a CBOR map).
payload_encoding = "json"

# Where upstream messages are accepted (POST /upstream).
listen_host = "127.0.0.1"
listen_port = 8080

# Optional JSON file of clients to load at startup (leave empty to disable).
test_data_path = ""

# The relay's own client entry, used to answer test pings.
server_name = "Larry"

[logging]

# Log level for fpingd itself.
level = "INFO"

# Log level for the httpx/httpcore libraries.
http_level = "WARNING"

# Log to stderr (systemd/journald friendly).
console = true

# Optional file path for logs (leave empty to disable).
file = ""

# Log format and optional date format.
format = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
datefmt = ""
"""

    with open(config_path, "w", encoding="utf-8") as f:
        f.write(content)
    try:
        # The file holds the API key.
        os.chmod(config_path, 0o600)
    except OSError:
        pass


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="fpingd", description="Run a Friendly Ping push relay"
    )

    p.add_argument(
        "--config",
        default=str(default_config_path()),
        help="Path to a TOML config file (created on first run)",
    )
    p.add_argument(
        "--api-key", default=None, help="The api key authorized to send messages"
    )
    p.add_argument(
        "--sender-id",
        default=None,
        help="The sender id to identify the app on the push backend",
    )
    p.add_argument(
        "--test-data",
        default=None,
        help="Optional: JSON file of clients to load at startup",
    )
    p.add_argument("--send-url", default=None, help="Push backend send endpoint")
    p.add_argument(
        "--payload-encoding",
        choices=PAYLOAD_ENCODINGS,
        default=None,
        help="Data payload encoding (default: json)",
    )
    p.add_argument("--listen-host", default=None, help="Upstream listener address")
    p.add_argument(
        "--listen-port", type=int, default=None, help="Upstream listener port"
    )

    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )

    return p


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    config_path = str(args.config)
    creds_on_cli = args.api_key is not None and args.sender_id is not None

    cfg = RelayRuntimeConfig(config_path=config_path)

    if os.path.exists(config_path):
        try:
            cfg = apply_config_file(cfg, config_path)
        except ValueError as e:
            print(f"fpingd: bad config {config_path}: {e}", file=sys.stderr)
            raise SystemExit(2)
    elif not creds_on_cli:
        _write_default_config(config_path)
        print(
            "Created default fpingd config. Set api_key and sender_id before starting:\n"
            f"- Config: {config_path}\n"
            "\nThen re-run fpingd.",
            file=sys.stderr,
        )
        raise SystemExit(0)

    if args.api_key is not None:
        cfg = replace(cfg, api_key=str(args.api_key))
    if args.sender_id is not None:
        cfg = replace(cfg, sender_id=str(args.sender_id))
    if args.test_data is not None:
        cfg = replace(cfg, test_data_path=str(args.test_data) or None)
    if args.send_url is not None:
        cfg = replace(cfg, send_url=str(args.send_url))
    if args.payload_encoding is not None:
        cfg = replace(cfg, payload_encoding=str(args.payload_encoding))
    if args.listen_host is not None:
        cfg = replace(cfg, listen_host=str(args.listen_host))
    if args.listen_port is not None:
        cfg = replace(cfg, listen_port=int(args.listen_port))

    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))
    if args.log_file is not None:
        cfg = replace(cfg, log_file=str(args.log_file) if str(args.log_file) else None)

    configure_logging(cfg)

    if not cfg.api_key or not cfg.sender_id:
        print(
            f"fpingd: api_key and sender_id are required (set them in {config_path} "
            "or pass --api-key/--sender-id)",
            file=sys.stderr,
        )
        raise SystemExit(2)

    try:
        svc = RelayService(cfg)
    except FixtureError as e:
        print(f"fpingd: {e}", file=sys.stderr)
        raise SystemExit(1)
    except ValueError as e:
        print(f"fpingd: {e}", file=sys.stderr)
        raise SystemExit(2)

    svc.start()
    svc.run_forever()


if __name__ == "__main__":
    main()
