"""Optional test data: an initial ``address -> client`` map in JSON."""

from __future__ import annotations

import json

from .directory import Client
from .errors import FixtureError
from .util import expand_path


def load_test_data(path: str) -> dict[str, Client]:
    p = expand_path(path)
    try:
        with open(p, encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise FixtureError(f"Failed to read test data file {p}: {e}") from e
    except ValueError as e:
        raise FixtureError(f"Failed to unmarshal test data {p}: {e}") from e

    if not isinstance(raw, dict):
        raise FixtureError(f"Test data {p} must be a JSON object of clients")

    clients: dict[str, Client] = {}
    for address, entry in raw.items():
        if not address:
            raise FixtureError(f"Test data {p} has an empty client address")
        if isinstance(entry, dict) and not entry.get("registration_token"):
            entry = {**entry, "registration_token": address}
        try:
            clients[address] = Client.from_dict(entry)
        except (TypeError, ValueError) as e:
            raise FixtureError(f"Bad test client {address!r} in {p}: {e}") from e
    return clients
