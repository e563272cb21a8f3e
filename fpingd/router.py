from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .directory import Client
from .errors import DeliveryFailed, MalformedPayload, RegistrationDeliveryFailed, UnknownSender
from .messages import PingClient, RegisterNewClient, parse_message
from .notifications import build_broadcast_new_client, build_client_list, build_ping
from .util import fmt_token

if TYPE_CHECKING:
    from .service import RelayService


class MessageRouter:
    """
    Dispatches upstream messages for the relay.

    This class is responsible for:
    - Reading the action of an inbound data map
    - Admitting new clients and announcing them
    - Routing pings, including test pings addressed to the relay itself

    Handler errors propagate to the caller; unhandled actions are ignored.
    """

    def __init__(self, relay: RelayService) -> None:
        self.relay = relay
        self.log = logging.getLogger("fpingd.router")

    def route_message(self, from_address: str, data: Any) -> None:
        """Main entry point for an inbound message."""
        self.relay.stats_manager.inc("msgs_in")

        try:
            msg = parse_message(data)
        except MalformedPayload:
            self.relay.stats_manager.inc("msgs_bad")
            raise

        if msg is None:
            self.relay.stats_manager.inc("msgs_ignored")
            if self.log.isEnabledFor(logging.DEBUG):
                action = data.get("action") if isinstance(data, dict) else None
                self.log.debug(
                    "Ignoring message from=%s action=%r",
                    fmt_token(from_address),
                    action,
                )
            return

        if isinstance(msg, RegisterNewClient):
            self._handle_register_new_client(msg)
        elif isinstance(msg, PingClient):
            self._handle_ping_client(msg)

    def _handle_register_new_client(self, msg: RegisterNewClient) -> None:
        """Add the client, announce it, and send it the directory."""
        client = msg.to_client()
        token = client.registration_token

        self.relay.directory.upsert(token, client)
        self.relay.stats_manager.inc("registrations")
        self.log.info("Registered client name=%r token=%s", client.name, fmt_token(token))

        # The client is committed; delivery failures below do not undo it.
        # TODO: decide on a retry policy for failed broadcast/list sends.
        failures: dict[str, Exception] = {}

        try:
            self.relay.send(build_broadcast_new_client(client), reconcile=False)
        except DeliveryFailed as e:
            self.log.warning("Failed broadcasting the new client: %s", e)
            failures["broadcast"] = e

        others = self.relay.directory.list(excluding=token)
        try:
            self.relay.send(build_client_list(token, others))
        except DeliveryFailed as e:
            self.log.warning("Failed sending client list: %s", e)
            failures["client_list"] = e

        if failures:
            raise RegistrationDeliveryFailed(token, failures)

    def _handle_ping_client(self, msg: PingClient) -> None:
        server_address = self.relay.server_address
        self.relay.stats_manager.inc("pings_in")

        # A ping to the relay is a test ping: answer the sender as the relay.
        if msg.to == server_address:
            self.relay.stats_manager.inc("pings_loopback")
            recipient = msg.sender
            data = msg.to_data(to=msg.sender, sender=server_address)
            sender: Client | None = self.relay.directory.get(server_address)
            sender_address = server_address
        else:
            recipient = msg.to
            data = msg.to_data()
            sender = self.relay.directory.get(msg.sender)
            sender_address = msg.sender

        if sender is None:
            self.relay.stats_manager.inc("unknown_senders")
            raise UnknownSender(sender_address)

        self.log.info(
            "Ping sender=%r to=%s", sender.name, fmt_token(recipient)
        )
        self.relay.send(build_ping(recipient, data, sender))
