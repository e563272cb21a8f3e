"""Statistics tracking and reporting for the relay."""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .service import RelayService


class StatsManager:
    """
    Lifetime counters for the relay.

    Tracks:
    - Inbound messages (handled, ignored, malformed)
    - Registrations and pings
    - Sends and send failures
    - Directory rekeys from canonical ids
    """

    def __init__(self, relay: RelayService) -> None:
        self.relay = relay
        self._lock = threading.Lock()

        self.started_wall_time: float | None = None
        self.started_monotonic: float | None = None

        self._counters: dict[str, int] = {
            "msgs_in": 0,
            "msgs_ignored": 0,
            "msgs_bad": 0,
            "registrations": 0,
            "pings_in": 0,
            "pings_loopback": 0,
            "unknown_senders": 0,
            "sends": 0,
            "send_failures": 0,
            "rekeys": 0,
        }

    def set_start_time(self) -> None:
        """Set the start time for uptime calculations."""
        self.started_wall_time = time.time()
        self.started_monotonic = time.monotonic()

    def inc(self, key: str, delta: int = 1) -> None:
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + int(delta)

    def get(self, key: str) -> int:
        with self._lock:
            return self._counters.get(key, 0)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counters)

    def format_stats(self) -> str:
        """Format current statistics as a human-readable string."""
        from . import __version__

        started_mono = self.started_monotonic
        uptime_s = (time.monotonic() - started_mono) if started_mono is not None else 0.0
        c = self.snapshot()

        lines: list[str] = []
        lines.append(f"fpingd {__version__} stats")
        lines.append(f"uptime_s={uptime_s:.1f}")
        lines.append(f"clients={len(self.relay.directory)}")
        lines.append(
            "inbound: msgs={} ignored={} bad={}".format(
                c.get("msgs_in", 0),
                c.get("msgs_ignored", 0),
                c.get("msgs_bad", 0),
            )
        )
        lines.append(
            "events: registrations={} pings={} loopback_pings={} unknown_senders={}".format(
                c.get("registrations", 0),
                c.get("pings_in", 0),
                c.get("pings_loopback", 0),
                c.get("unknown_senders", 0),
            )
        )
        lines.append(
            "delivery: sends={} failures={} rekeys={}".format(
                c.get("sends", 0),
                c.get("send_failures", 0),
                c.get("rekeys", 0),
            )
        )

        return "\n".join(lines)
