import threading

import pytest

from fpingd.config import RelayRuntimeConfig
from fpingd.errors import DeliveryFailed
from fpingd.service import RelayService
from fpingd.transport import DeliveryReport

SENDER_ID = "1234567890"


class RecordingTransport:
    """Records sends; reports and failures can be queued per target."""

    def __init__(self):
        self.sent = []
        self.reports = {}
        self.failing = set()
        self.closed = False
        self._lock = threading.Lock()

    def send(self, message):
        with self._lock:
            self.sent.append(message)
        if message.to in self.failing:
            raise DeliveryFailed("backend unavailable", target=message.to)
        return self.reports.get(message.to, DeliveryReport(success=1))

    def close(self):
        self.closed = True

    def sent_to(self, target):
        return [m for m in self.sent if m.to == target]


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def config():
    return RelayRuntimeConfig(api_key="test-key", sender_id=SENDER_ID)


@pytest.fixture
def relay(config, transport):
    return RelayService(config, transport=transport)
