import json

import pytest

from fpingd.config import RelayRuntimeConfig
from fpingd.errors import FixtureError
from fpingd.fixtures import load_test_data
from fpingd.service import RelayService


def test_load_test_data(tmp_path) -> None:
    path = tmp_path / "clients.json"
    path.write_text(
        json.dumps(
            {
                "tok-a": {"name": "alice", "registration_token": "tok-a"},
                "tok-b": {"name": "bob", "profile_picture_url": "http://pic/b"},
            }
        )
    )

    clients = load_test_data(str(path))
    assert clients["tok-a"].name == "alice"
    # Entries without a token take it from their key.
    assert clients["tok-b"].registration_token == "tok-b"


@pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"a": {"name": 5}}', '{"a": 3}'])
def test_bad_test_data_is_fatal(tmp_path, content) -> None:
    path = tmp_path / "clients.json"
    path.write_text(content)
    with pytest.raises(FixtureError):
        load_test_data(str(path))


def test_missing_test_data_file(tmp_path) -> None:
    with pytest.raises(FixtureError):
        load_test_data(str(tmp_path / "missing.json"))


def test_relay_seeds_fixture_then_server_client(tmp_path, transport) -> None:
    sender_id = "42"
    server_address = "42@gcm.googleapis.com"
    path = tmp_path / "clients.json"
    path.write_text(
        json.dumps(
            {
                "tok-a": {"name": "alice"},
                server_address: {"name": "impostor"},
            }
        )
    )
    cfg = RelayRuntimeConfig(api_key="k", sender_id=sender_id, test_data_path=str(path))

    relay = RelayService(cfg, transport=transport)

    assert relay.directory.get("tok-a").name == "alice"
    assert relay.directory.get(server_address).name == "Larry"
