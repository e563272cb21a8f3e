"""In-memory client directory shared by every dispatch."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from .constants import K_NAME, K_PROFILE_PICTURE_URL, K_REGISTRATION_TOKEN
from .errors import UnknownClient
from .util import fmt_token


@dataclass(frozen=True)
class Client:
    registration_token: str
    name: str = ""
    profile_picture_url: str = ""

    def to_dict(self) -> dict[str, str]:
        # Empty fields are omitted on the wire.
        out: dict[str, str] = {}
        if self.name:
            out[K_NAME] = self.name
        if self.registration_token:
            out[K_REGISTRATION_TOKEN] = self.registration_token
        if self.profile_picture_url:
            out[K_PROFILE_PICTURE_URL] = self.profile_picture_url
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Client:
        if not isinstance(data, Mapping):
            raise TypeError("client must be a JSON object")

        token = data.get(K_REGISTRATION_TOKEN)
        if not isinstance(token, str) or not token:
            raise ValueError("client registration_token must be a non-empty string")

        name = data.get(K_NAME) or ""
        if not isinstance(name, str):
            raise TypeError("client name must be a string")

        url = data.get(K_PROFILE_PICTURE_URL) or ""
        if not isinstance(url, str):
            raise TypeError("client profile_picture_url must be a string")

        return cls(registration_token=token, name=name, profile_picture_url=url)


class _ReadWriteLock:
    """Many readers or one writer. Waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class ClientDirectory:
    """
    Registry of known clients keyed by delivery address.

    All access goes through a single reader/writer lock: lookups and
    listings share it, inserts and key moves take it exclusively.
    The lock is never held while talking to the push backend.
    """

    def __init__(self) -> None:
        self.log = logging.getLogger("fpingd.directory")
        self._lock = _ReadWriteLock()
        self._clients: dict[str, Client] = {}

    def upsert(self, address: str, client: Client) -> None:
        with self._lock.write():
            self._clients[address] = client

    def seed(self, clients: Mapping[str, Client]) -> None:
        with self._lock.write():
            self._clients.update(clients)
        self.log.info("Seeded directory with %d client(s)", len(clients))

    def get(self, address: str) -> Client | None:
        with self._lock.read():
            return self._clients.get(address)

    def list(self, excluding: str | None = None) -> list[Client]:
        """Snapshot of every client except the one under ``excluding``."""
        with self._lock.read():
            return [c for a, c in self._clients.items() if a != excluding]

    def rekey(self, old: str, new: str) -> None:
        """Move the record under ``old`` to ``new``, dropping the old key."""
        with self._lock.write():
            client = self._clients.get(old)
            if client is None:
                raise UnknownClient(old)
            if old == new:
                return
            displaced = self._clients.get(new)
            del self._clients[old]
            self._clients[new] = client

        if displaced is not None:
            self.log.warning(
                "Rekey replaced existing client at new=%s old=%s name=%r",
                fmt_token(new),
                fmt_token(old),
                displaced.name,
            )

        self.log.info(
            "Rekeyed client old=%s new=%s", fmt_token(old), fmt_token(new)
        )

    def __contains__(self, address: object) -> bool:
        with self._lock.read():
            return address in self._clients

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._clients)
