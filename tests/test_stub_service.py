import httpx
import pytest
import pytest_asyncio

from localization_console.stub_service import create_app
from tests.helpers import seed_key


@pytest_asyncio.fixture
async def http(repository):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=create_app(repository)), base_url="http://testserver"
    ) as client:
        yield client


@pytest.mark.asyncio
async def test_search_matches_key_and_description(http, repository):
    await seed_key(repository, "button.save", description="Primary action")
    await seed_key(repository, "button.cancel", description="Dismiss dialog")

    by_key = await http.get("/translation-keys", params={"search": "SAVE"})
    by_description = await http.get("/translation-keys", params={"search": "dialog"})

    assert [item["key"] for item in by_key.json()] == ["button.save"]
    assert [item["key"] for item in by_description.json()] == ["button.cancel"]
    assert by_description.headers["X-Total-Count"] == "1"


@pytest.mark.asyncio
async def test_limit_must_be_positive(http):
    response = await http.get("/translation-keys", params={"limit": 0})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_then_fetch(http):
    created = await http.post("/translation-keys", json={"key": "a.b", "category": "labels"})
    assert created.status_code == 201
    body = created.json()

    fetched = await http.get(f"/translation-keys/{body['id']}")

    assert fetched.json()["description"] is None
    assert fetched.json()["created_at"] == fetched.json()["updated_at"]


@pytest.mark.asyncio
async def test_patch_translations_replaces_mapping(http, repository):
    key = await seed_key(repository, "greeting.hello", translations={"en_US": "Hi", "fr_FR": "Bonjour"})

    response = await http.patch(
        f"/translation-keys/{key.id}",
        json={"translations": {"en_US": {"value": "Hello", "updated_by": "tester"}}},
    )

    assert set(response.json()["translations"]) == {"en_US"}
    assert response.json()["updated_at"] >= response.json()["created_at"]


@pytest.mark.asyncio
async def test_delete_twice_reports_not_found(http, repository):
    key = await seed_key(repository, "button.save")

    first = await http.delete(f"/translation-keys/{key.id}")
    second = await http.delete(f"/translation-keys/{key.id}")

    assert first.status_code == 204
    assert second.status_code == 404


@pytest.mark.asyncio
async def test_bulk_update_merges_languages(http, repository):
    key = await seed_key(repository, "button.save", translations={"en_US": "Save"})

    response = await http.post(
        "/translation-keys/bulk-update",
        json={"translations": {key.id: {"fr_FR": "Enregistrer"}}, "updated_by": "tester"},
    )

    stored = await repository.get_translation_key(key.id)
    assert response.status_code == 200
    assert {lang: t.value for lang, t in stored.translations.items()} == {"en_US": "Save", "fr_FR": "Enregistrer"}


@pytest.mark.asyncio
async def test_stats_empty_without_keys(http):
    response = await http.get("/translation-keys/stats/completion")

    assert response.json() == {}
