from collections.abc import AsyncIterator

import pytest

from renovation import MemorySessionStore, Renovation, RenovationConfig

from tests.helpers import HOST_URL, FakeFrappe


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def frappe() -> FakeFrappe:
    return FakeFrappe()


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
async def client(anyio_backend, frappe: FakeFrappe, store: MemorySessionStore) -> AsyncIterator[Renovation]:
    renovation = Renovation(RenovationConfig(host_url=HOST_URL, storage=store), transport=frappe.transport())
    await renovation.init()
    yield renovation
    await renovation.aclose()
