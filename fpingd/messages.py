"""Inbound message types, decoded and validated at the dispatch boundary."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .constants import (
    A_PING_CLIENT,
    A_REGISTER_NEW_CLIENT,
    K_ACTION,
    K_NAME,
    K_PROFILE_PICTURE_URL,
    K_REGISTRATION_TOKEN,
    K_SENDER,
    K_TO,
)
from .directory import Client
from .errors import MalformedPayload


@dataclass(frozen=True)
class RegisterNewClient:
    name: str
    registration_token: str
    profile_picture_url: str

    def to_client(self) -> Client:
        return Client(
            registration_token=self.registration_token,
            name=self.name,
            profile_picture_url=self.profile_picture_url,
        )


@dataclass(frozen=True)
class PingClient:
    to: str
    sender: str
    # Remaining data fields, forwarded to the recipient untouched.
    extra: dict[str, Any] = field(default_factory=dict)

    def to_data(self, *, to: str | None = None, sender: str | None = None) -> dict:
        data: dict[str, Any] = dict(self.extra)
        data[K_ACTION] = A_PING_CLIENT
        data[K_TO] = self.to if to is None else to
        data[K_SENDER] = self.sender if sender is None else sender
        return data


InboundMessage = RegisterNewClient | PingClient


def _require_str(data: dict, key: str, *, allow_empty: bool = True) -> str:
    if key not in data:
        raise MalformedPayload(key, f"missing field {key!r}")
    value = data[key]
    if not isinstance(value, str):
        raise MalformedPayload(key, f"field {key!r} must be a string")
    if not allow_empty and not value:
        raise MalformedPayload(key, f"field {key!r} must not be empty")
    return value


def parse_register_new_client(data: dict) -> RegisterNewClient:
    if not isinstance(data, dict):
        raise MalformedPayload(K_ACTION, "payload must be a map")
    return RegisterNewClient(
        name=_require_str(data, K_NAME),
        registration_token=_require_str(data, K_REGISTRATION_TOKEN, allow_empty=False),
        profile_picture_url=_require_str(data, K_PROFILE_PICTURE_URL),
    )


def parse_ping_client(data: dict) -> PingClient:
    if not isinstance(data, dict):
        raise MalformedPayload(K_ACTION, "payload must be a map")
    to = _require_str(data, K_TO, allow_empty=False)
    sender = _require_str(data, K_SENDER, allow_empty=False)
    extra = {k: v for k, v in data.items() if k not in (K_ACTION, K_TO, K_SENDER)}
    return PingClient(to=to, sender=sender, extra=extra)


_PARSERS = {
    A_REGISTER_NEW_CLIENT: parse_register_new_client,
    A_PING_CLIENT: parse_ping_client,
}


def parse_message(data: Any) -> InboundMessage | None:
    """Decode an inbound data map.

    Returns None for maps without a handled action; the relay ignores those.
    Raises MalformedPayload when a handled action lacks a required field.
    """
    if not isinstance(data, dict):
        return None
    action = data.get(K_ACTION)
    if not isinstance(action, str):
        return None
    parser = _PARSERS.get(action)
    if parser is None:
        return None
    return parser(data)
