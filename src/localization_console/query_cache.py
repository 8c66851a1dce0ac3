"""Request cache for the console.

Queries are addressed by tuple keys such as ``("translationKeys", "list",
filters)``. The cache stores one :class:`Query` per canonical serialization
of that key, so two structurally equal filter objects share an entry and a
single in-flight request. Invalidation is explicit and prefix based: every
query whose key starts with the given prefix is marked stale and, when
something observes it, refetched.

Everything runs on one event loop; the cache is never touched from another
thread, so there is no locking.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T")
V = TypeVar("V")

QueryKey = Tuple[Any, ...]
QueryFn = Callable[[], Awaitable[Any]]
Listener = Callable[["Query"], None]


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return _to_jsonable(value.model_dump(mode="json"))
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def hash_query_key(query_key: QueryKey) -> str:
    return json.dumps(_to_jsonable(query_key), sort_keys=True, separators=(",", ":"))


def matches_prefix(query_key: QueryKey, prefix: QueryKey) -> bool:
    if len(prefix) > len(query_key):
        return False
    return all(
        hash_query_key((a,)) == hash_query_key((b,))
        for a, b in zip(query_key, prefix)
    )


class QueryStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class QueryState:
    data: Any = None
    error: Optional[BaseException] = None
    status: QueryStatus = QueryStatus.PENDING
    is_fetching: bool = False
    is_invalidated: bool = False
    data_updated_at: Optional[float] = None
    fetch_count: int = 0

    @property
    def is_loading(self) -> bool:
        # No data yet and a request is running
        return self.status is QueryStatus.PENDING and self.is_fetching

    @property
    def is_error(self) -> bool:
        return self.status is QueryStatus.ERROR

    @property
    def is_success(self) -> bool:
        return self.status is QueryStatus.SUCCESS


@dataclass
class Query:
    key: QueryKey
    hash: str
    state: QueryState = field(default_factory=QueryState)
    query_fn: Optional[QueryFn] = None
    retry: int = 0
    stale_time: float = 0.0
    fallback: Optional[Callable[[], Any]] = None
    observers: int = 0
    generation: int = 0
    task: Optional["asyncio.Task[Any]"] = None

    def is_stale(self, now: float) -> bool:
        if self.state.is_invalidated or self.state.data_updated_at is None:
            return True
        return now - self.state.data_updated_at >= self.stale_time


class QueryClient:
    def __init__(self, retry_delay: float = 1.0, clock: Callable[[], float] = time.monotonic):
        self.retry_delay = retry_delay
        self._clock = clock
        self._queries: Dict[str, Query] = {}
        self._listeners: List[Listener] = []

    # -- cache access ---------------------------------------------------

    def _build(self, query_key: QueryKey) -> Query:
        key_hash = hash_query_key(query_key)
        query = self._queries.get(key_hash)
        if query is None:
            query = Query(key=tuple(query_key), hash=key_hash)
            self._queries[key_hash] = query
        return query

    def find(self, query_key: QueryKey) -> Optional[Query]:
        return self._queries.get(hash_query_key(query_key))

    def find_all(self, prefix: QueryKey = ()) -> List[Query]:
        return [q for q in self._queries.values() if matches_prefix(q.key, prefix)]

    def get_query_state(self, query_key: QueryKey) -> QueryState:
        query = self.find(query_key)
        return query.state if query else QueryState()

    def get_query_data(self, query_key: QueryKey) -> Any:
        return self.get_query_state(query_key).data

    def set_query_data(self, query_key: QueryKey, updater: Any) -> Any:
        """Write data into the cache synchronously.

        ``updater`` is either the new value or a callable receiving the old
        value. A running request for the key is left alone; whatever it
        resolves with overwrites this value.
        """
        query = self._build(query_key)
        data = updater(query.state.data) if callable(updater) else updater
        self._set_state(
            query,
            data=data,
            error=None,
            status=QueryStatus.SUCCESS,
            data_updated_at=self._clock(),
        )
        return data

    def set_queries_data(self, prefix: QueryKey, updater: Callable[[Any], Any]) -> None:
        for query in self.find_all(prefix):
            if query.state.data is not None:
                self.set_query_data(query.key, updater)

    def remove_queries(self, prefix: QueryKey = ()) -> None:
        for query in self.find_all(prefix):
            del self._queries[query.hash]

    # -- subscriptions --------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def observe(
        self,
        query_key: QueryKey,
        query_fn: QueryFn,
        retry: int = 0,
        stale_time: float = 0.0,
        fallback: Optional[Callable[[], Any]] = None,
    ) -> Callable[[], None]:
        """Mark a query as active so invalidation refetches it."""
        query = self._build(query_key)
        self._configure(query, query_fn, retry, stale_time, fallback)
        query.observers += 1

        def unobserve() -> None:
            query.observers = max(query.observers - 1, 0)

        return unobserve

    def _notify(self, query: Query) -> None:
        for listener in list(self._listeners):
            try:
                listener(query)
            except Exception:
                logger.exception("Query listener failed for %s", query.hash)

    def _set_state(self, query: Query, **changes: Any) -> None:
        query.state = replace(query.state, **changes)
        self._notify(query)

    # -- fetching -------------------------------------------------------

    @staticmethod
    def _configure(
        query: Query,
        query_fn: QueryFn,
        retry: int,
        stale_time: float,
        fallback: Optional[Callable[[], Any]],
    ) -> None:
        query.query_fn = query_fn
        query.retry = retry
        query.stale_time = stale_time
        query.fallback = fallback

    async def fetch_query(
        self,
        query_key: QueryKey,
        query_fn: QueryFn,
        retry: int = 0,
        stale_time: float = 0.0,
        fallback: Optional[Callable[[], Any]] = None,
    ) -> Any:
        query = self._build(query_key)
        self._configure(query, query_fn, retry, stale_time, fallback)
        if query.task is not None and not query.task.done():
            return await asyncio.shield(query.task)
        if not query.is_stale(self._clock()):
            return query.state.data
        return await asyncio.shield(self._start_fetch(query))

    def _start_fetch(self, query: Query) -> "asyncio.Task[Any]":
        query.generation += 1
        generation = query.generation
        self._set_state(query, is_fetching=True)
        task = asyncio.create_task(self._run(query, generation))
        query.task = task
        return task

    async def _run(self, query: Query, generation: int) -> Any:
        attempt = 0
        while True:
            try:
                data = await query.query_fn()
                break
            except Exception as e:
                if attempt < query.retry:
                    attempt += 1
                    logger.warning(
                        "Query %s failed (%s), retry %d of %d", query.hash, e, attempt, query.retry
                    )
                    await asyncio.sleep(self.retry_delay)
                    continue
                if query.fallback is not None:
                    logger.warning("Query %s failed (%s), using fallback", query.hash, e)
                    data = query.fallback()
                    break
                logger.error("Query %s failed: %s", query.hash, e)
                if generation == query.generation:
                    self._set_state(
                        query,
                        error=e,
                        status=QueryStatus.ERROR,
                        is_fetching=False,
                        fetch_count=query.state.fetch_count + 1,
                    )
                raise

        if generation == query.generation:
            self._set_state(
                query,
                data=data,
                error=None,
                status=QueryStatus.SUCCESS,
                is_fetching=False,
                is_invalidated=False,
                data_updated_at=self._clock(),
                fetch_count=query.state.fetch_count + 1,
            )
        else:
            logger.debug("Dropping stale response for %s (generation %d)", query.hash, generation)
        return data

    async def invalidate_queries(self, prefix: QueryKey = ()) -> None:
        """Mark matching queries stale and refetch the observed ones.

        Refetch failures are recorded on the query state rather than raised.
        """
        tasks = []
        for query in self.find_all(prefix):
            self._set_state(query, is_invalidated=True)
            if query.observers > 0 and query.query_fn is not None:
                tasks.append(self._start_fetch(query))
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


class Mutation(Generic[V, T]):
    """A write that runs exactly once per call and is never retried."""

    def __init__(
        self,
        mutation_fn: Callable[[V], Awaitable[T]],
        on_success: Optional[Callable[[T, V], Awaitable[None]]] = None,
        on_error: Optional[Callable[[BaseException, V], Awaitable[None]]] = None,
    ):
        self._mutation_fn = mutation_fn
        self._on_success = on_success
        self._on_error = on_error
        self.is_pending = False
        self.error: Optional[BaseException] = None
        self.data: Optional[T] = None

    async def mutate(self, variables: V) -> T:
        self.is_pending = True
        self.error = None
        try:
            try:
                data = await self._mutation_fn(variables)
            except Exception as e:
                self.error = e
                if self._on_error is not None:
                    await self._on_error(e, variables)
                raise
            self.data = data
            if self._on_success is not None:
                await self._on_success(data, variables)
            return data
        finally:
            self.is_pending = False
