import base64
import json

import httpx
import pytest

from fpingd.codec import decode
from fpingd.errors import DeliveryFailed
from fpingd.notifications import OutboundMessage
from fpingd.transport import DeliveryReport, GcmHttpTransport

SEND_URL = "https://push.test/send"


def _transport(handler, **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return GcmHttpTransport("secret", send_url=SEND_URL, client=client, **kwargs)


def test_send_posts_json_with_key() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "multicast_id": 7,
                "success": 1,
                "failure": 0,
                "canonical_ids": 1,
                "results": [{"message_id": "0:1", "registration_id": "tok-new"}],
            },
        )

    t = _transport(handler)
    report = t.send(OutboundMessage(data={"action": "ping_client"}, to="tok-old"))

    (req,) = seen
    assert str(req.url) == SEND_URL
    assert req.headers["Authorization"] == "key=secret"
    assert json.loads(req.content) == {"data": {"action": "ping_client"}, "to": "tok-old"}

    assert report.multicast_id == 7
    assert report.canonical_ids == 1
    assert report.results[0].registration_id == "tok-new"


def test_cbor_encoding_wraps_data() -> None:
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"message_id": 123})

    t = _transport(handler, payload_encoding="cbor")
    report = t.send(OutboundMessage(data={"action": "send_client_list", "clients": []}, to="a"))

    wrapped = bodies[0]["data"]["base64"]
    assert decode(base64.b64decode(wrapped)) == {"action": "send_client_list", "clients": []}
    assert report.message_id == "123"


def test_non_200_raises_delivery_failed() -> None:
    t = _transport(lambda request: httpx.Response(401, text="Unauthorized"))
    with pytest.raises(DeliveryFailed) as exc:
        t.send(OutboundMessage(data={}, to="a"))
    assert exc.value.target == "a"
    assert "401" in str(exc.value)


def test_network_error_raises_delivery_failed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    t = _transport(handler)
    with pytest.raises(DeliveryFailed):
        t.send(OutboundMessage(data={}, to="a"))


def test_topic_error_raises_delivery_failed() -> None:
    t = _transport(lambda request: httpx.Response(200, json={"error": "TopicsMessageRateExceeded"}))
    with pytest.raises(DeliveryFailed):
        t.send(OutboundMessage(data={}, to="/topics/newclient"))


def test_unparseable_response_raises_delivery_failed() -> None:
    t = _transport(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(DeliveryFailed):
        t.send(OutboundMessage(data={}, to="a"))


def test_unknown_encoding_rejected() -> None:
    with pytest.raises(ValueError):
        GcmHttpTransport("k", payload_encoding="protobuf")


def test_report_from_json_defaults() -> None:
    report = DeliveryReport.from_json({})
    assert report.success == 0
    assert report.results == ()
    with pytest.raises(ValueError):
        DeliveryReport.from_json([])
