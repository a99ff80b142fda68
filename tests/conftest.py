import pytest

from chatfeed.api.messages import MessagesAPI
from chatfeed.config import reload_config
from chatfeed.feed.optimistic import OptimisticWriteTracker
from chatfeed.feed.store import PageStore
from chatfeed.http import HTTPClient

from factories import FakeBackend, FakeClock


@pytest.fixture(autouse=True)
def _clear_config():
    """Reset the in-memory config singleton to defaults."""
    reload_config()
    yield
    reload_config()


@pytest.fixture()
def backend():
    return FakeBackend()


@pytest.fixture()
async def http(backend):
    client = HTTPClient("http://chatfeed.test", transport=backend)
    yield client
    await client.close()


@pytest.fixture()
def api(http):
    return MessagesAPI(http)


@pytest.fixture()
def store(api):
    return PageStore(api, page_size=3)


@pytest.fixture()
def clock():
    # wall-clock seconds; 1_700_000_000_500 ms
    return FakeClock(1_700_000_000.5)


@pytest.fixture()
def writes(store, api, clock):
    return OptimisticWriteTracker(store, api, clock=clock)
