from __future__ import annotations

import logging

from .directory import ClientDirectory
from .errors import UnknownClient
from .notifications import OutboundMessage
from .transport import DeliveryReport
from .util import fmt_token

log = logging.getLogger("fpingd.reconciler")


def superseded_addresses(
    message: OutboundMessage, report: DeliveryReport
) -> list[tuple[str, str]]:
    """(old, new) pairs for recipients the backend gave a canonical id."""
    if report.canonical_ids <= 0 or not report.results:
        return []

    if message.to:
        if message.to.startswith("/topics/"):
            return []
        new = report.results[0].registration_id
        return [(message.to, new)] if new and new != message.to else []

    pairs: list[tuple[str, str]] = []
    for old, result in zip(message.registration_ids, report.results):
        new = result.registration_id
        if new and new != old:
            pairs.append((old, new))
    return pairs


def reconcile(
    directory: ClientDirectory, message: OutboundMessage, report: DeliveryReport
) -> list[tuple[str, str]]:
    """
    Move directory entries to the canonical addresses reported for a send.

    Best-effort: a pair whose old address is no longer registered is logged
    and skipped. Returns the pairs that were applied.
    """
    applied: list[tuple[str, str]] = []
    for old, new in superseded_addresses(message, report):
        try:
            directory.rekey(old, new)
        except UnknownClient:
            log.warning(
                "Canonical id for unknown client old=%s new=%s",
                fmt_token(old),
                fmt_token(new),
            )
            continue
        applied.append((old, new))
    return applied
