import httpx
import pytest
import pytest_asyncio

from localization_console.api_client import TranslationApiClient
from localization_console.query_cache import QueryClient
from localization_console.store import StatePersistence, TranslationStore
from localization_console.stub_service import InMemoryTranslationRepository, create_app
from localization_console.translation_api import TranslationApi

from tests.helpers import RecordingTransport


@pytest.fixture
def repository():
    return InMemoryTranslationRepository()


@pytest.fixture
def transport(repository):
    return RecordingTransport(httpx.ASGITransport(app=create_app(repository)))


@pytest_asyncio.fixture
async def api_client(transport):
    client = TranslationApiClient(base_url="http://testserver", transport=transport)
    yield client
    await client.aclose()


@pytest.fixture
def state_file(tmp_path):
    return tmp_path / "state.json"


@pytest.fixture
def store(state_file):
    return TranslationStore(StatePersistence(state_file))


@pytest.fixture
def api(api_client, store):
    api = TranslationApi(
        api_client,
        store,
        query_client=QueryClient(retry_delay=0),
        updated_by="tester",
        list_retry=1,
        stats_stale_time=0,
    )
    yield api
    api.close()
