import pytest

from localization_console import cli
from localization_console.api_client import TranslationApiClient
from localization_console.errors import NotFoundError
from tests.helpers import seed_key


@pytest.fixture
def patched_client(monkeypatch, transport):
    def factory(base_url=None, **kwargs):
        return TranslationApiClient(base_url="http://testserver", transport=transport)

    monkeypatch.setattr(cli, "TranslationApiClient", factory)


async def run(store, *argv):
    args = cli.build_parser().parse_args(list(argv))
    return await cli.run_command(args, store)


@pytest.mark.asyncio
async def test_create_then_list(patched_client, store, capsys):
    assert await run(store, "create", "button.save", "buttons", "--description", "Save button") == 0
    assert await run(store, "list", "--category", "buttons") == 0

    out = capsys.readouterr().out
    assert "Created button.save" in out
    assert "button.save" in out.splitlines()[1]
    assert "(no en_US translation)" in out
    assert "Showing 1-1 of 1" in out
    assert store.state.filters.category == "buttons"


@pytest.mark.asyncio
async def test_translate_and_show(patched_client, store, repository, capsys):
    key = await seed_key(repository, "button.save", translations={"en_US": "Save", "fr_FR": "Enregistrer"})

    assert await run(store, "translate", key.id, "en_US", "Store") == 0
    assert await run(store, "show", key.id) == 0

    out = capsys.readouterr().out
    assert "en_US: Store" in out
    assert "fr_FR: Enregistrer" in out


@pytest.mark.asyncio
async def test_translate_keeps_display_language(patched_client, store, repository):
    key = await seed_key(repository, "button.save", translations={"en_US": "Save"})

    assert await run(store, "translate", key.id, "fr_FR", "Enregistrer") == 0

    assert store.state.selected_language == "en_US"
    assert store.persisted_state()["selected_language"] == "en_US"
    stored = await repository.get_translation_key(key.id)
    assert stored.translations["fr_FR"].value == "Enregistrer"
    assert stored.translations["en_US"].value == "Save"


@pytest.mark.asyncio
async def test_translate_unknown_key_raises(patched_client, store):
    with pytest.raises(NotFoundError):
        await run(store, "translate", "missing", "en_US", "Save")


@pytest.mark.asyncio
async def test_delete_with_yes(patched_client, store, repository, capsys):
    key = await seed_key(repository, "button.save")

    assert await run(store, "delete", key.id, "--yes") == 0

    assert await repository.get_translation_key(key.id) is None
    assert f"Deleted {key.id}" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_delete_unknown_reports_error(patched_client, store, capsys):
    assert await run(store, "delete", "missing", "--yes") == 1

    assert "404" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_stats_without_data(patched_client, store, capsys):
    assert await run(store, "stats") == 0

    assert "No completion statistics available" in capsys.readouterr().out


def test_create_rejects_unknown_category():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["create", "button.save", "widgets"])
