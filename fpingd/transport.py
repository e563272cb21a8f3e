"""Outbound push delivery over the GCM HTTP send API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from .codec import pack_data
from .constants import GCM_SEND_URL, PAYLOAD_CBOR, PAYLOAD_ENCODINGS, PAYLOAD_JSON
from .errors import DeliveryFailed
from .notifications import OutboundMessage
from .util import fmt_token


@dataclass(frozen=True)
class DeliveryResult:
    message_id: str | None = None
    registration_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class DeliveryReport:
    """Parsed response of one send; ``results`` follow recipient order."""

    message_id: str | None = None
    multicast_id: int | None = None
    success: int = 0
    failure: int = 0
    canonical_ids: int = 0
    results: tuple[DeliveryResult, ...] = ()
    error: str | None = None

    @classmethod
    def from_json(cls, body: Any) -> DeliveryReport:
        if not isinstance(body, dict):
            raise ValueError("send response must be a JSON object")

        results: list[DeliveryResult] = []
        for r in body.get("results") or ():
            if not isinstance(r, dict):
                raise ValueError("send result must be a JSON object")
            results.append(
                DeliveryResult(
                    message_id=_opt_str(r.get("message_id")),
                    registration_id=_opt_str(r.get("registration_id")),
                    error=_opt_str(r.get("error")),
                )
            )

        multicast_id = body.get("multicast_id")
        return cls(
            message_id=_opt_str(body.get("message_id")),
            multicast_id=multicast_id if isinstance(multicast_id, int) else None,
            success=int(body.get("success") or 0),
            failure=int(body.get("failure") or 0),
            canonical_ids=int(body.get("canonical_ids") or 0),
            results=tuple(results),
            error=_opt_str(body.get("error")),
        )


def _opt_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


class Transport(Protocol):
    def send(self, message: OutboundMessage) -> DeliveryReport: ...

    def close(self) -> None: ...


class GcmHttpTransport:
    """
    Sends messages through the GCM/FCM legacy HTTP endpoint.

    One ``httpx.Client`` is shared by all callers; it is safe to use from
    several dispatch threads at once. Nothing is retried here.
    """

    def __init__(
        self,
        api_key: str,
        *,
        send_url: str = GCM_SEND_URL,
        timeout_s: float = 10.0,
        payload_encoding: str = PAYLOAD_JSON,
        client: httpx.Client | None = None,
    ) -> None:
        if payload_encoding not in PAYLOAD_ENCODINGS:
            raise ValueError(f"unsupported payload encoding {payload_encoding!r}")

        self.log = logging.getLogger("fpingd.transport")
        self.send_url = send_url
        self.payload_encoding = payload_encoding
        self._client = client or httpx.Client(timeout=timeout_s)
        self._headers = {
            "Authorization": f"key={api_key}",
            "Content-Type": "application/json",
        }

    def send(self, message: OutboundMessage) -> DeliveryReport:
        data = message.data
        if self.payload_encoding == PAYLOAD_CBOR:
            data = pack_data(data)
        body = message.to_json(data)

        try:
            resp = self._client.post(self.send_url, json=body, headers=self._headers)
        except httpx.HTTPError as e:
            raise DeliveryFailed(f"send failed: {e}", target=message.to) from e

        if resp.status_code != 200:
            raise DeliveryFailed(
                f"send rejected: HTTP {resp.status_code} {resp.text.strip()[:200]}",
                target=message.to,
            )

        try:
            report = DeliveryReport.from_json(resp.json())
        except (TypeError, ValueError) as e:
            raise DeliveryFailed(f"bad send response: {e}", target=message.to) from e

        if report.error:
            # Topic sends report failures at the top level.
            raise DeliveryFailed(f"send rejected: {report.error}", target=message.to)

        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "TX to=%s action=%s success=%s failure=%s canonical_ids=%s",
                fmt_token(message.target),
                message.action,
                report.success,
                report.failure,
                report.canonical_ids,
            )
        return report

    def close(self) -> None:
        self._client.close()
