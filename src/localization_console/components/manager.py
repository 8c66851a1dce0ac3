import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..errors import AggregateUiError
from ..models import TranslationKey, TranslationStats
from ..store import TranslationStore
from ..translation_api import TranslationApi
from .editor import TranslationEditor
from .modals import AddKeyModal, DeleteKeyModal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyRow:
    id: str
    key: str
    category: str
    description: Optional[str]
    value: str
    is_deleting: bool


@dataclass(frozen=True)
class Pagination:
    current_page: int
    total_pages: int
    start_item: int
    end_item: int
    total_items: int

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages


@dataclass(frozen=True)
class HeaderStats:
    total_keys: int
    categories: int
    languages: int
    translated_keys: int


class TranslationKeyManager:
    """List view: filters, pagination, per-key editors and the two modals."""

    def __init__(self, api: TranslationApi, store: TranslationStore):
        self.api = api
        self.store = store
        self.add_key_modal = AddKeyModal(api, store)
        self.delete_modal = DeleteKeyModal(api, store)
        self._editors: Dict[str, TranslationEditor] = {}

    def close(self) -> None:
        for editor in self._editors.values():
            editor.close()
        self._editors.clear()

    async def refresh(self) -> None:
        """Load the current page and the completion stats.

        A failed list load is left on the query state and shown through
        :attr:`error_message`; stats never fail.
        """
        self.store.set_loading(True)
        try:
            await self.api.load_translation_keys()
            self.store.set_error(None)
        except Exception as e:
            self.store.set_error(AggregateUiError.from_exception(e).message)
        finally:
            self.store.set_loading(False)
        await self.api.load_stats()
        self._sync_editors()

    # Data for rendering

    @property
    def translation_keys(self) -> List[TranslationKey]:
        return self.api.translation_keys

    @property
    def is_loading(self) -> bool:
        return self.api.is_loading

    @property
    def error_message(self) -> Optional[str]:
        error = self.api.error
        if error is None:
            return None
        return AggregateUiError.from_exception(error, "Failed to load translation keys").message

    @property
    def stats(self) -> TranslationStats:
        return self.api.stats

    @property
    def rows(self) -> List[KeyRow]:
        state = self.store.state
        return [
            KeyRow(
                id=key.id,
                key=key.key,
                category=key.category,
                description=key.description,
                value=key.value_for(state.selected_language),
                is_deleting=state.is_delete_modal_open and state.deleting_key_id == key.id,
            )
            for key in self.translation_keys
        ]

    @property
    def pagination(self) -> Pagination:
        filters = self.store.state.filters
        total = self.store.state.total_items
        return Pagination(
            current_page=filters.offset // filters.limit + 1,
            total_pages=math.ceil(total / filters.limit),
            start_item=min(filters.offset + 1, total),
            end_item=min(filters.offset + filters.limit, total),
            total_items=total,
        )

    @property
    def header_stats(self) -> HeaderStats:
        keys = self.translation_keys
        language = self.store.state.selected_language
        return HeaderStats(
            total_keys=len(keys),
            categories=len({key.category for key in keys}),
            languages=len(self.store.state.available_languages),
            translated_keys=sum(1 for key in keys if key.value_for(language)),
        )

    def editor_for(self, translation_key: TranslationKey) -> TranslationEditor:
        editor = self._editors.get(translation_key.id)
        if editor is None:
            editor = TranslationEditor(translation_key, self.api, self.store)
            self._editors[translation_key.id] = editor
        return editor

    def _sync_editors(self) -> None:
        current = {key.id: key for key in self.translation_keys}
        for key_id in list(self._editors):
            editor = self._editors[key_id]
            if key_id in current:
                editor.sync(current[key_id])
            elif not editor.is_editing:
                editor.close()
                del self._editors[key_id]

    # User intents

    async def search(self, text: str) -> None:
        self.store.set_search(text)
        await self.refresh()

    async def filter_category(self, category: Optional[str]) -> None:
        self.store.set_category(category)
        await self.refresh()

    def change_language(self, language: str) -> None:
        self.store.set_selected_language(language)

    async def change_page(self, page: int) -> None:
        total_pages = self.pagination.total_pages
        if total_pages:
            page = min(page, total_pages)
        self.store.set_page(page)
        await self.refresh()

    def request_delete(self, key_id: str) -> None:
        self.delete_modal.open(key_id)

    def cancel_delete(self) -> None:
        self.delete_modal.cancel()

    async def confirm_delete(self) -> bool:
        deleted = await self.delete_modal.confirm()
        self._sync_editors()
        return deleted

    @property
    def delete_error(self) -> Optional[str]:
        return self.delete_modal.error

    def open_add_key(self) -> None:
        self.add_key_modal.open()

    async def create_key(
        self, key: str, category: str, description: Optional[str] = None
    ) -> Optional[TranslationKey]:
        self.add_key_modal.open()
        self.add_key_modal.set_fields(key=key, category=category, description=description)
        created = await self.add_key_modal.submit()
        self._sync_editors()
        return created

