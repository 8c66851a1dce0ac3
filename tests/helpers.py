import asyncio
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from localization_console.models import TranslationKey, TranslationKeyCreate
from localization_console.stub_service import InMemoryTranslationRepository

Route = Tuple[str, str]


class RecordingTransport(httpx.AsyncBaseTransport):
    """Wraps another transport, records requests and can stall or fail routes."""

    def __init__(self, inner: httpx.AsyncBaseTransport):
        self.inner = inner
        self.requests: List[Route] = []
        self.failures: Dict[Route, int] = {}
        self.gates: Dict[Route, asyncio.Event] = {}

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        route = (request.method, request.url.path)
        self.requests.append(route)
        gate = self.gates.get(route)
        if gate is not None:
            await gate.wait()
        status = self.failures.get(route)
        if status is not None:
            return httpx.Response(status, json={"detail": "injected failure"})
        return await self.inner.handle_async_request(request)

    def count(self, method: str, path: str) -> int:
        return self.requests.count((method, path))


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout)


async def seed_key(
    repository: InMemoryTranslationRepository,
    key: str,
    category: str = "buttons",
    description: Optional[str] = None,
    translations: Optional[Dict[str, str]] = None,
) -> TranslationKey:
    created = await repository.create_translation_key(
        TranslationKeyCreate(key=key, category=category, description=description)
    )
    if translations:
        await repository.bulk_update_translations({created.id: translations}, "seed")
        created = await repository.get_translation_key(created.id)
    return created
