from __future__ import annotations

import logging
import signal
import threading
import time
from typing import Any

from . import reconciler
from .codec import unpack_data
from .config import RelayRuntimeConfig
from .directory import Client, ClientDirectory
from .errors import DeliveryFailed, MalformedPayload
from .fixtures import load_test_data
from .notifications import OutboundMessage
from .router import MessageRouter
from .stats import StatsManager
from .transport import DeliveryReport, GcmHttpTransport, Transport
from .util import fmt_token, server_address


class RelayService:
    def __init__(
        self, config: RelayRuntimeConfig, *, transport: Transport | None = None
    ) -> None:
        if not config.api_key:
            raise ValueError("api_key is not set")
        if not config.sender_id:
            raise ValueError("sender_id is not set")

        self.config = config
        self.log = logging.getLogger("fpingd.relay")

        self._shutdown = threading.Event()

        self.directory = ClientDirectory()
        self.stats_manager = StatsManager(self)
        self.router = MessageRouter(self)

        self.transport: Transport = transport or GcmHttpTransport(
            config.api_key,
            send_url=config.send_url,
            timeout_s=config.send_timeout_s,
            payload_encoding=config.payload_encoding,
        )

        self.server_address = server_address(config.sender_id)
        self._ingress = None

        # Fixture errors are fatal: the relay cannot serve without its seed state.
        if config.test_data_path:
            self.directory.seed(load_test_data(config.test_data_path))

        self.directory.upsert(
            self.server_address,
            Client(
                registration_token=self.server_address,
                name=config.server_name,
                profile_picture_url=config.server_avatar_url,
            ),
        )

    def on_message(self, from_address: str, data: Any) -> None:
        """Transport callback for one upstream message.

        May be called from several threads at once. Errors propagate so the
        transport can log and acknowledge per its own policy.
        """
        try:
            data = unpack_data(data)
        except MalformedPayload:
            self.stats_manager.inc("msgs_bad")
            raise
        self.router.route_message(from_address, data)

    def send(self, message: OutboundMessage, *, reconcile: bool = True) -> DeliveryReport:
        """Hand a message to the transport and apply any canonical ids."""
        self.stats_manager.inc("sends")
        try:
            report = self.transport.send(message)
        except DeliveryFailed:
            self.stats_manager.inc("send_failures")
            raise
        except Exception as e:
            # Transports are expected to raise DeliveryFailed; normalise others.
            self.stats_manager.inc("send_failures")
            self.log.debug("Transport error to=%s", fmt_token(message.target), exc_info=True)
            raise DeliveryFailed(f"send failed: {e}", target=message.to) from e

        if reconcile:
            self._reconcile(message, report)
        return report

    def _reconcile(self, message: OutboundMessage, report: DeliveryReport) -> None:
        try:
            applied = reconciler.reconcile(self.directory, message, report)
        except Exception:
            self.log.warning("Reconciling delivery report failed", exc_info=True)
            return
        if applied:
            self.stats_manager.inc("rekeys", len(applied))

    def start(self) -> None:
        from .ingress import UpstreamIngress

        self.stats_manager.set_start_time()
        self._ingress = UpstreamIngress(
            self, host=self.config.listen_host, port=self.config.listen_port
        )
        self._ingress.start()

        self.log.info(
            "Relay running sender_id=%s server_address=%s clients=%s",
            self.config.sender_id,
            self.server_address,
            len(self.directory),
        )
        self.log.info(
            "Policy send_url=%s payload_encoding=%s send_timeout_s=%s",
            self.config.send_url,
            self.config.payload_encoding,
            self.config.send_timeout_s,
        )

    def run_forever(self) -> None:
        if self._ingress is None:
            self.start()

        signal.signal(signal.SIGINT, lambda *_: self.stop())
        signal.signal(signal.SIGTERM, lambda *_: self.stop())

        while not self._shutdown.is_set():
            time.sleep(0.25)

    def stop(self) -> None:
        if self._shutdown.is_set():
            return
        self._shutdown.set()

        if self._ingress is not None:
            self._ingress.stop()
        self.transport.close()

        self.log.info("Relay stopped\n%s", self.stats_manager.format_stats())

