from types import SimpleNamespace
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient

from relaybot.api import create_app


def test_health():
    client = TestClient(create_app())
    assert client.get("/health").json() == {"status": "ok"}


def test_status_without_service_is_unavailable():
    client = TestClient(create_app())
    assert client.get("/status").status_code == 503


def test_status_reports_relay_state():
    relay = SimpleNamespace(active_transfers=2, threshold=100, chunk_size=10)
    client = TestClient(create_app(relay))
    assert client.get("/status").json() == {
        "status": "ok",
        "active_transfers": 2,
        "chunk_threshold_bytes": 100,
        "chunk_size_bytes": 10,
    }


def test_status_includes_member_count_when_store_is_wired():
    relay = SimpleNamespace(active_transfers=0, threshold=100, chunk_size=10)
    users = AsyncMock()
    users.count.return_value = 7
    client = TestClient(create_app(relay, users))
    assert client.get("/status").json()["members_with_token"] == 7
