import logging
from typing import Callable, List, Optional

from .api_client import TranslationApiClient
from .config import get_settings
from .models import (
    TranslationFilters,
    TranslationKey,
    TranslationKeyCreate,
    TranslationKeyPage,
    TranslationKeyUpdate,
    TranslationStats,
    merge_translation,
)
from .query_cache import Mutation, Query, QueryClient, QueryKey, QueryState, hash_query_key
from .store import TranslationState, TranslationStore

logger = logging.getLogger(__name__)


class QueryKeys:
    """Query keys for the translation key collection."""

    all: QueryKey = ("translationKeys",)

    @staticmethod
    def lists() -> QueryKey:
        return QueryKeys.all + ("list",)

    @staticmethod
    def list(filters: TranslationFilters) -> QueryKey:
        return QueryKeys.lists() + (filters,)

    @staticmethod
    def details() -> QueryKey:
        return QueryKeys.all + ("detail",)

    @staticmethod
    def detail(key_id: str) -> QueryKey:
        return QueryKeys.details() + (key_id,)

    @staticmethod
    def stats() -> QueryKey:
        return QueryKeys.all + ("stats",)


class TranslationApi:
    """Binds the store's filters to cached queries and cache-aware mutations."""

    def __init__(
        self,
        client: TranslationApiClient,
        store: TranslationStore,
        query_client: Optional[QueryClient] = None,
        updated_by: Optional[str] = None,
        list_retry: Optional[int] = None,
        stats_stale_time: Optional[float] = None,
    ):
        settings = get_settings()
        self.client = client
        self.store = store
        self.query_client = query_client or QueryClient(retry_delay=settings.RETRY_DELAY)
        self.updated_by = updated_by or settings.UPDATED_BY
        self.list_retry = settings.LIST_RETRY if list_retry is None else list_retry
        self.stats_stale_time = settings.STATS_STALE_TIME if stats_stale_time is None else stats_stale_time

        self.create_mutation: Mutation[TranslationKeyCreate, TranslationKey] = Mutation(
            self.client.create_key, on_success=self._after_write
        )
        self.update_mutation: Mutation[tuple, TranslationKey] = Mutation(
            lambda variables: self.client.update_key(*variables), on_success=self._after_update
        )
        self.delete_mutation: Mutation[str, str] = Mutation(
            self._delete, on_success=self._after_delete, on_error=self._after_delete_failed
        )

        self._unobserve_list = self._observe_list(store.state.filters)
        self._unobserve_stats = self.query_client.observe(
            QueryKeys.stats(),
            self.client.get_stats,
            stale_time=self.stats_stale_time,
            fallback=dict,
        )
        self._unsubscribe_store = store.subscribe(self._on_state_change)
        self._unsubscribe_queries = self.query_client.subscribe(self._on_query_change)

    def close(self) -> None:
        self._unobserve_list()
        self._unobserve_stats()
        self._unsubscribe_store()
        self._unsubscribe_queries()

    # Wiring

    def _list_fn(self, filters: TranslationFilters):
        return lambda: self.client.list_keys_page(filters)

    def _observe_list(self, filters: TranslationFilters) -> Callable[[], None]:
        return self.query_client.observe(
            QueryKeys.list(filters), self._list_fn(filters), retry=self.list_retry
        )

    def _on_state_change(self, new: TranslationState, old: TranslationState) -> None:
        if new.filters != old.filters:
            self._unobserve_list()
            self._unobserve_list = self._observe_list(new.filters)
            page = self.query_client.get_query_data(QueryKeys.list(new.filters))
            if isinstance(page, TranslationKeyPage):
                self.store.set_total_items(page.total)

    def _on_query_change(self, query: Query) -> None:
        data = query.state.data
        if query.hash == hash_query_key(self.list_key) and isinstance(data, TranslationKeyPage):
            self.store.set_total_items(data.total)
        elif query.hash == hash_query_key(QueryKeys.stats()) and data:
            languages = list(self.store.state.available_languages)
            new_languages = sorted(lang for lang in data if lang not in languages)
            if new_languages:
                self.store.set_available_languages(languages + new_languages)

    # Queries

    @property
    def list_key(self) -> QueryKey:
        return QueryKeys.list(self.store.state.filters)

    async def load_translation_keys(self) -> TranslationKeyPage:
        filters = self.store.state.filters
        return await self.query_client.fetch_query(
            QueryKeys.list(filters), self._list_fn(filters), retry=self.list_retry
        )

    async def load_stats(self) -> TranslationStats:
        return await self.query_client.fetch_query(
            QueryKeys.stats(),
            self.client.get_stats,
            stale_time=self.stats_stale_time,
            fallback=dict,
        )

    async def load_key(self, key_id: str) -> TranslationKey:
        return await self.query_client.fetch_query(
            QueryKeys.detail(key_id),
            lambda: self.client.get_key(key_id),
            retry=self.list_retry,
        )

    @property
    def list_state(self) -> QueryState:
        return self.query_client.get_query_state(self.list_key)

    @property
    def translation_keys(self) -> List[TranslationKey]:
        page = self.list_state.data
        return list(page.items) if isinstance(page, TranslationKeyPage) else []

    @property
    def total_items(self) -> int:
        page = self.list_state.data
        return page.total if isinstance(page, TranslationKeyPage) else 0

    @property
    def is_loading(self) -> bool:
        return self.list_state.is_loading

    @property
    def error(self) -> Optional[BaseException]:
        return self.list_state.error

    @property
    def stats(self) -> TranslationStats:
        return self.query_client.get_query_data(QueryKeys.stats()) or {}

    @property
    def is_creating(self) -> bool:
        return self.create_mutation.is_pending

    @property
    def is_updating(self) -> bool:
        return self.update_mutation.is_pending

    @property
    def is_deleting(self) -> bool:
        return self.delete_mutation.is_pending

    # Mutations

    async def create_key(self, request: TranslationKeyCreate) -> TranslationKey:
        return await self.create_mutation.mutate(request)

    async def update_key(self, key_id: str, patch: TranslationKeyUpdate) -> TranslationKey:
        return await self.update_mutation.mutate((key_id, patch))

    async def update_translation(self, key: TranslationKey, language: str, value: str) -> TranslationKey:
        translations = merge_translation(key.translations, language, value, self.updated_by)
        return await self.update_key(key.id, TranslationKeyUpdate(translations=translations))

    async def delete_key(self, key_id: str) -> None:
        await self.delete_mutation.mutate(key_id)

    async def _delete(self, key_id: str) -> str:
        await self.client.delete_key(key_id)
        return key_id

    async def _invalidate_collection(self) -> None:
        await self.query_client.invalidate_queries(QueryKeys.lists())
        await self.query_client.invalidate_queries(QueryKeys.stats())

    async def _after_write(self, _data, _variables) -> None:
        await self._invalidate_collection()

    async def _after_update(self, updated: TranslationKey, _variables) -> None:
        detail_key = QueryKeys.detail(updated.id)
        if self.query_client.find(detail_key) is not None:
            self.query_client.set_query_data(detail_key, updated)
        await self._invalidate_collection()

    async def _after_delete(self, key_id: str, _variables) -> None:
        # Drop the row locally first so no stale row shows while the
        # authoritative refetch below is in flight; the refetch may overwrite it.
        self.query_client.set_queries_data(
            QueryKeys.lists(),
            lambda page: page.without(key_id) if isinstance(page, TranslationKeyPage) else page,
        )
        self.query_client.remove_queries(QueryKeys.detail(key_id))
        await self._invalidate_collection()

    async def _after_delete_failed(self, error: BaseException, key_id: str) -> None:
        logger.error("Failed to delete translation key %s: %s", key_id, error)
        await self.query_client.invalidate_queries(QueryKeys.lists())
