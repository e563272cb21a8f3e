from __future__ import annotations

import os

from .constants import SERVER_ADDRESS_SUFFIX


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def server_address(sender_id: str) -> str:
    """Address the push backend uses for the relay itself."""
    return f"{sender_id}{SERVER_ADDRESS_SUFFIX}"


def fmt_token(token, *, prefix: int = 12) -> str:
    # Registration tokens are long and sensitive; only log a prefix.
    if not isinstance(token, str) or not token:
        return "-"
    if prefix <= 0 or len(token) <= prefix:
        return token
    return token[:prefix] + "..."
