"""Builders for the messages the relay hands to the push backend."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .constants import (
    A_BROADCAST_NEW_CLIENT,
    A_SEND_CLIENT_LIST,
    K_ACTION,
    K_CLIENT,
    K_CLIENTS,
    NEW_CLIENT_TOPIC,
    PING_CLICK_ACTION,
    PING_ICON,
    PING_SOUND,
    PING_TITLE,
)
from .directory import Client


@dataclass(frozen=True)
class Notification:
    """Display notification rendered by the device platform."""

    title: str
    body: str
    icon: str | None = None
    sound: str | None = None
    click_action: str | None = None

    def to_dict(self) -> dict[str, str]:
        out = {"title": self.title, "body": self.body}
        if self.icon:
            out["icon"] = self.icon
        if self.sound:
            out["sound"] = self.sound
        if self.click_action:
            out["click_action"] = self.click_action
        return out


@dataclass(frozen=True)
class OutboundMessage:
    data: dict[str, Any]
    to: str | None = None
    registration_ids: tuple[str, ...] = ()
    notification: Notification | None = None

    def __post_init__(self) -> None:
        if bool(self.to) == bool(self.registration_ids):
            raise ValueError("message needs exactly one of to or registration_ids")

    @property
    def target(self) -> str:
        if self.to:
            return self.to
        return f"{len(self.registration_ids)} recipient(s)"

    @property
    def action(self) -> str | None:
        return self.data.get(K_ACTION)

    def to_json(self, data: dict[str, Any] | None = None) -> dict[str, Any]:
        """HTTP send body. ``data`` overrides the payload (e.g. once wrapped)."""
        body: dict[str, Any] = {"data": self.data if data is None else data}
        if self.to:
            body["to"] = self.to
        else:
            body["registration_ids"] = list(self.registration_ids)
        if self.notification is not None:
            body["notification"] = self.notification.to_dict()
        return body


def ping_message(name: str) -> str:
    return f"{name} is pinging you!"


def build_broadcast_new_client(client: Client) -> OutboundMessage:
    """Announce a newly registered client on the new-client topic."""
    return OutboundMessage(
        to=NEW_CLIENT_TOPIC,
        data={K_ACTION: A_BROADCAST_NEW_CLIENT, K_CLIENT: client.to_dict()},
    )


def build_client_list(to: str, clients: Iterable[Client]) -> OutboundMessage:
    """Directory listing delivered to a newly registered client."""
    return OutboundMessage(
        to=to,
        data={K_ACTION: A_SEND_CLIENT_LIST, K_CLIENTS: [c.to_dict() for c in clients]},
    )


def build_ping(recipient: str, data: dict[str, Any], sender: Client) -> OutboundMessage:
    notification = Notification(
        title=PING_TITLE,
        body=ping_message(sender.name),
        icon=PING_ICON,
        sound=PING_SOUND,
        click_action=PING_CLICK_ACTION,
    )
    return OutboundMessage(to=recipient, data=dict(data), notification=notification)
