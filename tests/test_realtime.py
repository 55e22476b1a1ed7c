"""
Connection registry and best-effort notifier.
"""

import pytest

from panchayat.realtime.notifier import APPLICATION_UPDATE, Notifier
from panchayat.realtime.registry import ConnectionRegistry
from panchayat.realtime.hub import WebSocketHub

from conftest import FakeTransport


@pytest.fixture
def registry():
    return ConnectionRegistry()


class TestConnectionRegistry:
    def test_bind_and_lookup(self, registry):
        registry.bind("CIT-1", "conn-a")

        assert registry.lookup("CIT-1") == "conn-a"
        assert registry.lookup("CIT-2") is None
        assert len(registry) == 1

    def test_latest_bind_wins(self, registry):
        registry.bind("CIT-1", "conn-a")
        registry.bind("CIT-1", "conn-b")

        assert registry.lookup("CIT-1") == "conn-b"
        # The superseded connection closing must not drop the new binding
        assert registry.unbind("conn-a") is None
        assert registry.lookup("CIT-1") == "conn-b"

    def test_unbind_returns_citizen(self, registry):
        registry.bind("CIT-1", "conn-a")

        assert registry.unbind("conn-a") == "CIT-1"
        assert registry.lookup("CIT-1") is None
        assert registry.unbind("conn-a") is None

    def test_rebinding_connection_moves_it(self, registry):
        registry.bind("CIT-1", "conn-a")
        registry.bind("CIT-2", "conn-a")

        assert registry.lookup("CIT-1") is None
        assert registry.lookup("CIT-2") == "conn-a"

    def test_touch_refreshes_last_seen(self, registry):
        binding = registry.bind("CIT-1", "conn-a")

        registry.touch("conn-a")

        [current] = registry.bindings()
        assert current.last_seen >= binding.last_seen


class TestNotifier:
    def test_no_binding_is_a_no_op(self, registry):
        transport = FakeTransport()
        notifier = Notifier(registry, transport)

        assert notifier.notify("CIT-1", "CRT-1", "Certificates", "Ready", "done") is False
        assert transport.sent == []

    def test_delivers_payload(self, registry):
        transport = FakeTransport()
        notifier = Notifier(registry, transport)
        registry.bind("CIT-1", "conn-a")

        assert notifier.notify("CIT-1", "CRT-1", "Certificates", "Ready", "done") is True

        connection_id, event, payload = transport.sent[0]
        assert connection_id == "conn-a"
        assert event == APPLICATION_UPDATE
        assert payload["recordId"] == "CRT-1"
        assert payload["category"] == "Certificates"
        assert payload["status"] == "Ready"
        assert payload["message"] == "done"
        assert "timestamp" in payload

    def test_transport_failure_is_swallowed(self, registry):
        notifier = Notifier(registry, FakeTransport(fail=True))
        registry.bind("CIT-1", "conn-a")

        assert notifier.notify("CIT-1", "CRT-1", "Certificates", "Ready", "done") is False

    def test_closed_socket_on_hub(self, registry):
        notifier = Notifier(registry, WebSocketHub())
        registry.bind("CIT-1", "conn-gone")

        assert notifier.notify("CIT-1", "CRT-1", "Certificates", "Ready", "done") is False
