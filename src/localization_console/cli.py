import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .api_client import TranslationApiClient
from .components import TranslationKeyManager
from .config import get_settings
from .errors import ConsoleError
from .logging_config import setup_logging
from .models import CATEGORIES, TranslationFilters
from .store import StatePersistence, TranslationStore
from .translation_api import TranslationApi

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="localization-console",
        description="Manage translation keys on a Localization Management API.",
    )
    parser.add_argument("--base-url", help="API base URL (defaults to API_BASE_URL)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List translation keys")
    list_parser.add_argument("--search", help="Substring to match against key or description")
    list_parser.add_argument("--category", help="Only keys of this category ('' clears)")
    list_parser.add_argument("--page", type=int, help="Page number, starting at 1")
    list_parser.add_argument("--language", help="Display language, e.g. en_US")

    show_parser = subparsers.add_parser("show", help="Show one translation key")
    show_parser.add_argument("id")

    create_parser = subparsers.add_parser("create", help="Create a translation key")
    create_parser.add_argument("key")
    create_parser.add_argument("category", choices=CATEGORIES)
    create_parser.add_argument("--description")

    translate_parser = subparsers.add_parser("translate", help="Set one language's value")
    translate_parser.add_argument("id")
    translate_parser.add_argument("language")
    translate_parser.add_argument("value")

    delete_parser = subparsers.add_parser("delete", help="Delete a translation key")
    delete_parser.add_argument("id")
    delete_parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    subparsers.add_parser("stats", help="Show completion per language")

    serve_parser = subparsers.add_parser("serve-stub", help="Run the in-memory API for development")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    return parser


def _print_list(manager: TranslationKeyManager) -> None:
    state = manager.store.state
    if manager.error_message:
        print(f"Error: {manager.error_message}", file=sys.stderr)
        return
    rows = manager.rows
    if not rows:
        print("No translation keys found")
        return
    width = max(len(row.key) for row in rows)
    for row in rows:
        value = row.value or f"(no {state.selected_language} translation)"
        print(f"{row.id}  {row.key:<{width}}  {row.category:<12}  {value}")
    page = manager.pagination
    print(
        f"\nShowing {page.start_item}-{page.end_item} of {page.total_items} "
        f"(page {page.current_page}/{max(page.total_pages, 1)}, language {state.selected_language})"
    )


async def run_command(args: argparse.Namespace, store: TranslationStore) -> int:
    settings = get_settings()
    async with TranslationApiClient(base_url=args.base_url or settings.API_BASE_URL) as client:
        api = TranslationApi(client, store)
        manager = TranslationKeyManager(api, store)
        try:
            return await _dispatch(args, api, manager)
        finally:
            manager.close()
            api.close()


async def _dispatch(args: argparse.Namespace, api: TranslationApi, manager: TranslationKeyManager) -> int:
    store = manager.store
    if args.command == "list":
        if args.language:
            manager.change_language(args.language)
        if args.search is not None:
            store.set_search(args.search)
        if args.category is not None:
            store.set_category(args.category)
        if args.page is not None:
            store.set_page(args.page)
        await manager.refresh()
        _print_list(manager)
        return 1 if manager.error_message else 0

    if args.command == "show":
        key = await api.load_key(args.id)
        print(f"{key.key} [{key.category}]")
        if key.description:
            print(key.description)
        for language, translation in sorted(key.translations.items()):
            print(f"  {language}: {translation.value}  ({translation.updated_by})")
        return 0

    if args.command == "create":
        created = await manager.create_key(args.key, args.category, args.description)
        if created is None:
            print(f"Error: {manager.add_key_modal.error}", file=sys.stderr)
            return 1
        print(f"Created {created.key} ({created.id})")
        return 0

    if args.command == "translate":
        # Writes one language without changing the saved display language
        key = await api.load_key(args.id)
        await api.update_translation(key, args.language, args.value)
        print(f"{key.key} [{args.language}] = {args.value}")
        return 0

    if args.command == "delete":
        manager.request_delete(args.id)
        if not args.yes:
            answer = input(f"Delete translation key {args.id}? This cannot be undone. [y/N] ")
            if answer.strip().lower() not in ("y", "yes"):
                manager.cancel_delete()
                print("Cancelled")
                return 0
        if not await manager.confirm_delete():
            print(f"Error: {manager.delete_error}", file=sys.stderr)
            return 1
        print(f"Deleted {args.id}")
        return 0

    if args.command == "stats":
        stats = await api.load_stats()
        if not stats:
            print("No completion statistics available")
        for language, percentage in sorted(stats.items()):
            print(f"{language}: {percentage:.1f}%")
        return 0

    raise ValueError(f"Unknown command {args.command}")


def serve_stub(host: str, port: int) -> int:
    import uvicorn

    from .stub_service import create_app

    uvicorn.run(create_app(), host=host, port=port)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging("DEBUG" if args.debug else settings.LOG_LEVEL)

    if args.command == "serve-stub":
        return serve_stub(args.host, args.port)

    store = TranslationStore(
        StatePersistence(settings.STATE_FILE),
        default_filters=TranslationFilters(limit=settings.PAGE_SIZE),
    )
    try:
        return asyncio.run(run_command(args, store))
    except ConsoleError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
