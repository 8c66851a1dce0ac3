import asyncio

import pytest

from localization_console.errors import FetchError
from localization_console.models import TranslationKeyCreate, TranslationKeyUpdate
from localization_console.translation_api import QueryKeys
from tests.helpers import seed_key, wait_until

LIST_PATH = "/translation-keys"
STATS_PATH = "/translation-keys/stats/completion"


@pytest.mark.asyncio
async def test_first_page_of_thirty_buttons(api, store, repository):
    for i in range(30):
        await seed_key(repository, f"button.k{i:02d}", category="buttons")
    for i in range(5):
        await seed_key(repository, f"label.k{i}", category="labels")

    store.set_filters(category="buttons", search="", offset=0, limit=24)
    page = await api.load_translation_keys()

    assert [item.key for item in page.items] == [f"button.k{i:02d}" for i in range(24)]
    assert page.total == 30
    assert store.state.total_items == 30
    assert store.state.filters.offset == 0


@pytest.mark.asyncio
async def test_created_key_shows_up_in_unfiltered_list(api, transport):
    await api.load_translation_keys()
    list_calls = transport.count("GET", LIST_PATH)

    created = await api.create_key(TranslationKeyCreate(key="a.b", category="labels"))

    # The observed list was refetched as part of the mutation
    assert transport.count("GET", LIST_PATH) == list_calls + 1
    listed = [item for item in api.translation_keys if item.key == "a.b"]
    assert len(listed) == 1
    assert listed[0].id == created.id
    assert listed[0].category == "labels"
    assert listed[0].description is None

    page = await api.load_translation_keys()
    assert any(item.key == "a.b" for item in page.items)


@pytest.mark.asyncio
async def test_update_translation_preserves_other_languages(api, repository):
    seeded = await seed_key(repository, "greeting.hello", "messages", translations={"en_US": "Hi", "fr_FR": "Bonjour"})
    key = await api.load_key(seeded.id)

    updated = await api.update_translation(key, "en_US", "Hello")

    assert {lang: t.value for lang, t in updated.translations.items()} == {"en_US": "Hello", "fr_FR": "Bonjour"}
    assert updated.translations["fr_FR"] == key.translations["fr_FR"]
    assert updated.translations["en_US"].updated_by == "tester"
    stored = await repository.get_translation_key(seeded.id)
    assert stored.translations["fr_FR"].value == "Bonjour"
    # The cached detail follows the server response
    assert api.query_client.get_query_data(QueryKeys.detail(seeded.id)) == updated


@pytest.mark.asyncio
async def test_update_key_fields_invalidates_lists(api, repository):
    seeded = await seed_key(repository, "button.save", description=None)
    await api.load_translation_keys()

    await api.update_key(seeded.id, TranslationKeyUpdate(description="Save button"))

    assert api.translation_keys[0].description == "Save button"


@pytest.mark.asyncio
async def test_delete_removes_row_locally_before_refetch(api, store, repository, transport):
    keep = await seed_key(repository, "button.keep")
    gone = await seed_key(repository, "button.gone")
    await api.load_translation_keys()
    assert store.state.total_items == 2

    gate = asyncio.Event()
    transport.gates[("GET", LIST_PATH)] = gate
    deleting = asyncio.ensure_future(api.delete_key(gone.id))

    # Step 1: synchronous local removal while the refetch is still stalled
    await wait_until(lambda: api.list_state.is_fetching)
    assert [item.id for item in api.translation_keys] == [keep.id]
    assert api.total_items == 1
    assert store.state.total_items == 1
    assert api.is_deleting

    # Step 2: the authoritative refetch lands and replaces the local edit
    gate.set()
    await deleting
    assert [item.id for item in api.translation_keys] == [keep.id]
    assert not api.list_state.is_fetching
    assert not api.is_deleting


@pytest.mark.asyncio
async def test_delete_removes_row_from_every_cached_list(api, store, repository):
    gone = await seed_key(repository, "button.gone", category="buttons")
    await seed_key(repository, "button.other", category="buttons")
    await api.load_translation_keys()
    store.set_category("buttons")
    await api.load_translation_keys()
    store.set_category(None)

    await api.delete_key(gone.id)

    for query in api.query_client.find_all(QueryKeys.lists()):
        assert gone.id not in [item.id for item in query.state.data.items]


@pytest.mark.asyncio
async def test_delete_of_uncached_id_still_sends_request(api, store, repository, transport):
    button = await seed_key(repository, "button.save", category="buttons")
    label = await seed_key(repository, "label.name", category="labels")
    store.set_category("labels")
    await api.load_translation_keys()
    before = api.translation_keys

    await api.delete_key(button.id)

    assert transport.count("DELETE", f"{LIST_PATH}/{button.id}") == 1
    assert api.translation_keys == before
    assert [item.id for item in api.translation_keys] == [label.id]
    assert await repository.get_translation_key(button.id) is None


@pytest.mark.asyncio
async def test_failed_delete_refetches_list(api, repository, transport):
    key = await seed_key(repository, "button.save")
    await api.load_translation_keys()
    list_calls = transport.count("GET", LIST_PATH)
    transport.failures[("DELETE", f"{LIST_PATH}/{key.id}")] = 500

    with pytest.raises(FetchError):
        await api.delete_key(key.id)

    assert transport.count("GET", LIST_PATH) == list_calls + 1
    assert [item.id for item in api.translation_keys] == [key.id]
    assert isinstance(api.delete_mutation.error, FetchError)


@pytest.mark.asyncio
async def test_failed_list_is_retried_once(api, transport):
    transport.failures[("GET", LIST_PATH)] = 500

    with pytest.raises(FetchError):
        await api.load_translation_keys()

    assert transport.count("GET", LIST_PATH) == 2
    assert api.list_state.is_error
    assert api.translation_keys == []


@pytest.mark.asyncio
async def test_stats_failure_yields_empty_mapping(api, transport):
    transport.failures[("GET", STATS_PATH)] = 500

    assert await api.load_stats() == {}
    assert api.stats == {}
    assert transport.count("GET", STATS_PATH) == 1


@pytest.mark.asyncio
async def test_stats_languages_extend_available_languages(api, store, repository):
    await seed_key(repository, "button.save", translations={"en_US": "Save", "fr_FR": "Enregistrer", "de_DE": ""})

    stats = await api.load_stats()

    assert stats["fr_FR"] == 100.0
    assert store.state.available_languages == ["en_US", "de_DE", "fr_FR"]


@pytest.mark.asyncio
async def test_mutations_refresh_stats(api, repository):
    key = await seed_key(repository, "button.save")
    await api.load_stats()
    assert api.stats == {}

    await api.update_translation(await api.load_key(key.id), "en_US", "Save")

    assert api.stats == {"en_US": 100.0}
