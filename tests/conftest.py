"""
Shared fixtures: isolated database and cache directories, a recording
transport for live notifications, and sample payloads for each kind.
"""

import threading

import pytest

from panchayat.services import build_services


class FakeTransport:
    """Records deliveries instead of writing to a socket."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []
        self._lock = threading.Lock()

    def deliver(self, connection_id, event, payload):
        if self.fail:
            raise ConnectionError("socket closed")
        with self._lock:
            self.sent.append((connection_id, event, payload))


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "panchayat.db")


@pytest.fixture
def cache_dir(tmp_path):
    return str(tmp_path / "artifacts")


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def services(db_path, cache_dir, transport):
    """Fully wired services on a temporary database and cache."""
    portal = build_services(db_path=db_path, cache_dir=cache_dir, durable_enabled=True,
                            reencode_enabled=True, transport=transport)
    yield portal
    portal.shutdown()


@pytest.fixture
def offline_services(cache_dir, transport):
    """Services whose durable store is switched off."""
    portal = build_services(db_path="unused.db", cache_dir=cache_dir, durable_enabled=False,
                            reencode_enabled=True, transport=transport)
    yield portal
    portal.shutdown()


@pytest.fixture
def certificate_fields():
    return {
        "citizen_id": "CIT-1001",
        "applicant_name": "Asha Patil",
        "certificate_type": "Birth",
        "father_name": "Ramesh Patil",
        "mother_name": "Sunita Patil",
        "date": "2024-02-11",
        "place": "Shirur",
        "village": "Shirur",
        "district": "Pune",
    }


@pytest.fixture
def land_record_fields():
    return {
        "citizen_id": "CIT-1001",
        "owner": "Asha Patil",
        "survey_no": "112/3A",
        "area": "2.5 acres",
        "land_type": "Agricultural",
        "encumbrance_status": "Clear",
    }


@pytest.fixture
def property_tax_fields():
    return {
        "citizen_id": "CIT-2002",
        "property_id": "PROP-77",
        "owner_name": "Vikram Jadhav",
        "village": "Shirur",
        "tax_due": 1250.5,
    }


@pytest.fixture
def mutation_fields():
    return {
        "citizen_id": "CIT-2002",
        "property_id": "PROP-77",
        "timeline": [
            {"step": "Application received", "status": "Completed", "date": "2024-03-01"},
            {"step": "Field verification", "status": "Pending"},
        ],
    }
