import pytest

from fpingd.constants import NEW_CLIENT_TOPIC
from fpingd.directory import Client
from fpingd.errors import MalformedPayload, RegistrationDeliveryFailed, UnknownSender
from fpingd.transport import DeliveryReport, DeliveryResult


def _register(relay, token="tok-a", name="alice", url="http://pic/a"):
    relay.on_message(
        token,
        {
            "action": "register_new_client",
            "name": name,
            "registration_token": token,
            "profile_picture_url": url,
        },
    )


def test_server_client_is_seeded(relay) -> None:
    server = relay.directory.get(relay.server_address)
    assert server is not None
    assert server.name == "Larry"
    assert relay.server_address == "1234567890@gcm.googleapis.com"


def test_registration_adds_client_and_sends(relay, transport) -> None:
    _register(relay)

    assert relay.directory.get("tok-a") == Client(
        registration_token="tok-a", name="alice", profile_picture_url="http://pic/a"
    )

    broadcasts = transport.sent_to(NEW_CLIENT_TOPIC)
    assert len(broadcasts) == 1
    assert broadcasts[0].data["client"]["registration_token"] == "tok-a"

    lists = transport.sent_to("tok-a")
    assert len(lists) == 1
    listed = [c["registration_token"] for c in lists[0].data["clients"]]
    assert listed == [relay.server_address]


def test_client_list_excludes_new_client(relay, transport) -> None:
    _register(relay, "tok-a")
    _register(relay, "tok-b", name="bob")

    listed = {c["registration_token"] for c in transport.sent_to("tok-b")[0].data["clients"]}
    assert listed == {relay.server_address, "tok-a"}


def test_reregistration_is_last_write_wins(relay) -> None:
    _register(relay, "tok-a", name="alice")
    _register(relay, "tok-a", name="alicia")

    assert relay.directory.get("tok-a").name == "alicia"
    assert len(relay.directory) == 2


def test_registration_missing_token_leaves_directory_unchanged(relay, transport) -> None:
    before = len(relay.directory)
    with pytest.raises(MalformedPayload) as exc:
        relay.on_message(
            "x",
            {"action": "register_new_client", "name": "alice", "profile_picture_url": "u"},
        )
    assert exc.value.field == "registration_token"
    assert len(relay.directory) == before
    assert transport.sent == []


def test_broadcast_failure_still_sends_list(relay, transport) -> None:
    transport.failing.add(NEW_CLIENT_TOPIC)

    with pytest.raises(RegistrationDeliveryFailed) as exc:
        _register(relay)

    assert set(exc.value.failures) == {"broadcast"}
    assert len(transport.sent_to("tok-a")) == 1
    assert relay.directory.get("tok-a") is not None


def test_both_delivery_failures_are_reported(relay, transport) -> None:
    transport.failing.update({NEW_CLIENT_TOPIC, "tok-a"})

    with pytest.raises(RegistrationDeliveryFailed) as exc:
        _register(relay)

    assert set(exc.value.failures) == {"broadcast", "client_list"}
    assert relay.directory.get("tok-a") is not None
    assert relay.stats_manager.get("send_failures") == 2


def test_loopback_ping_answers_sender_as_server(relay, transport) -> None:
    relay.directory.upsert("A", Client(registration_token="A", name="alice"))

    relay.on_message("A", {"action": "ping_client", "to": relay.server_address, "sender": "A"})

    (msg,) = transport.sent
    assert msg.to == "A"
    assert msg.data["to"] == "A"
    assert msg.data["sender"] == relay.server_address
    assert msg.notification.body == "Larry is pinging you!"
    assert relay.stats_manager.get("pings_loopback") == 1


def test_loopback_ping_does_not_require_registered_sender(relay, transport) -> None:
    relay.on_message("A", {"action": "ping_client", "to": relay.server_address, "sender": "A"})
    assert transport.sent[0].to == "A"


def test_routed_ping_names_sender(relay, transport) -> None:
    relay.directory.upsert("A", Client(registration_token="A", name="alice"))

    relay.on_message("A", {"action": "ping_client", "to": "B", "sender": "A"})

    (msg,) = transport.sent
    assert msg.to == "B"
    assert msg.data == {"action": "ping_client", "to": "B", "sender": "A"}
    assert msg.notification.title == "Friendly Ping!"
    assert msg.notification.body == "alice is pinging you!"
    assert msg.notification.click_action == "ping_received"


def test_ping_from_unknown_sender_is_not_sent(relay, transport) -> None:
    with pytest.raises(UnknownSender) as exc:
        relay.on_message("A", {"action": "ping_client", "to": "B", "sender": "A"})
    assert exc.value.address == "A"
    assert transport.sent == []


def test_ping_missing_sender_is_malformed(relay, transport) -> None:
    with pytest.raises(MalformedPayload):
        relay.on_message("A", {"action": "ping_client", "to": "B"})
    assert transport.sent == []
    assert relay.stats_manager.get("msgs_bad") == 1


def test_unknown_action_is_ignored(relay, transport) -> None:
    relay.on_message("A", {"action": "dance"})
    relay.on_message("A", {"no_action": True})
    assert transport.sent == []
    assert relay.stats_manager.get("msgs_ignored") == 2


def test_ping_reply_with_canonical_id_rekeys_sender(relay, transport) -> None:
    relay.directory.upsert("A", Client(registration_token="A", name="alice"))
    transport.reports["B"] = DeliveryReport(
        success=1, canonical_ids=1, results=(DeliveryResult(registration_id="B2"),)
    )
    relay.directory.upsert("B", Client(registration_token="B", name="bob"))

    relay.on_message("A", {"action": "ping_client", "to": "B", "sender": "A"})

    assert relay.directory.get("B") is None
    assert relay.directory.get("B2").name == "bob"
    assert relay.stats_manager.get("rekeys") == 1


def test_wrapped_cbor_payload_is_unwrapped(relay, transport) -> None:
    from fpingd.codec import pack_data

    relay.directory.upsert("A", Client(registration_token="A", name="alice"))
    relay.on_message("A", pack_data({"action": "ping_client", "to": "B", "sender": "A"}))
    assert transport.sent[0].to == "B"
