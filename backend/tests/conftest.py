"""Shared fakes for the cache and search clients.

The fixtures replace the client factories used by server assembly, so no
test ever opens a connection to Redis or Elasticsearch. Every client built
during a test is recorded in creation order.
"""

from __future__ import annotations

import pytest

from tileserver.services import cache, search


class FakeClient:
    """Stand-in for a Redis or Elasticsearch client."""

    def __init__(self, address: str) -> None:
        self.address = address
        self.closed = False

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def cache_clients(monkeypatch: pytest.MonkeyPatch) -> list[FakeClient]:
    """Record cache clients instead of connecting to Redis."""
    created: list[FakeClient] = []

    def fake_create_cache_client(address: str) -> FakeClient:
        client = FakeClient(address)
        created.append(client)
        return client

    monkeypatch.setattr(cache, "create_cache_client", fake_create_cache_client)
    return created


@pytest.fixture
def search_clients(monkeypatch: pytest.MonkeyPatch) -> list[FakeClient]:
    """Record search clients instead of connecting to Elasticsearch."""
    created: list[FakeClient] = []

    def fake_create_search_client(host: str) -> FakeClient:
        client = FakeClient(host)
        created.append(client)
        return client

    monkeypatch.setattr(search, "create_search_client", fake_create_search_client)
    return created
