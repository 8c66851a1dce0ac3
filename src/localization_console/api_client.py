import logging
from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx
from pydantic import ValidationError as PydanticValidationError

from .config import get_settings
from .errors import FetchError, HttpError, NetworkError, NotFoundError, ValidationError
from .models import (
    TranslationFilters,
    TranslationKey,
    TranslationKeyCreate,
    TranslationKeyPage,
    TranslationKeyUpdate,
    TranslationStats,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

TOTAL_COUNT_HEADER = "X-Total-Count"


def build_list_params(filters: TranslationFilters) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    if filters.category:
        params["category"] = filters.category
    if filters.search:
        params["search"] = filters.search
    if filters.limit:
        params["limit"] = filters.limit
    if filters.offset:
        params["offset"] = filters.offset
    if filters.sort_by:
        params["sort_by"] = filters.sort_by
    if filters.sort_order:
        params["sort_order"] = filters.sort_order
    return params


def _detail(response: httpx.Response) -> str:
    # FastAPI puts the reason under "detail"; fall back to the raw body
    try:
        payload = response.json()
    except ValueError:
        return response.text
    if isinstance(payload, dict) and "detail" in payload:
        return str(payload["detail"])
    return response.text


def _parse(response: httpx.Response, validate: Callable[[Any], T]) -> T:
    # A 2xx with a body we cannot read is reported like any other failed read
    try:
        return validate(response.json())
    except (ValueError, TypeError, PydanticValidationError) as e:
        logger.error("Unreadable response from %s: %s", response.request.url, e)
        raise FetchError(
            response.status_code,
            response.text,
            f"Invalid response from translation service: {response.status_code}",
        ) from e


def _parse_key(response: httpx.Response) -> TranslationKey:
    return _parse(response, TranslationKey.model_validate)


def _parse_key_list(response: httpx.Response) -> List[TranslationKey]:
    def validate(payload: Any) -> List[TranslationKey]:
        if not isinstance(payload, list):
            raise TypeError(f"expected a list, got {type(payload).__name__}")
        return [TranslationKey.model_validate(item) for item in payload]

    return _parse(response, validate)


class TranslationApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        if client is None:
            client = httpx.AsyncClient(
                base_url=base_url or settings.API_BASE_URL,
                timeout=timeout if timeout is not None else settings.REQUEST_TIMEOUT,
                transport=transport,
                headers={"Accept": "application/json"},
            )
        self._client = client

    async def __aenter__(self) -> "TranslationApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        logger.debug("%s %s %s", method, url, kwargs.get("params") or "")
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.error("Network error on %s %s: %s", method, url, e)
            raise NetworkError(f"Network error: {e}", url=url) from e
        logger.debug("%s %s -> %s", method, url, response.status_code)
        return response

    async def list_keys_page(self, filters: TranslationFilters) -> TranslationKeyPage:
        response = await self._request(
            "GET", "/translation-keys", params=build_list_params(filters)
        )
        if not response.is_success:
            logger.error("Error listing translation keys: %s %s", response.status_code, response.text)
            raise FetchError(
                response.status_code,
                response.text,
                f"Failed to fetch translation keys: {response.status_code} {_detail(response)}",
            )
        items = _parse_key_list(response)
        total_header = response.headers.get(TOTAL_COUNT_HEADER)
        if total_header is not None and total_header.isdigit():
            total = int(total_header)
        else:
            total = filters.offset + len(items)
        return TranslationKeyPage(items=items, total=total)

    async def list_keys(self, filters: TranslationFilters) -> List[TranslationKey]:
        page = await self.list_keys_page(filters)
        return page.items

    async def get_key(self, key_id: str) -> TranslationKey:
        response = await self._request("GET", f"/translation-keys/{key_id}")
        if response.status_code == 404:
            raise NotFoundError(response.text)
        if not response.is_success:
            raise FetchError(
                response.status_code,
                response.text,
                f"Failed to fetch translation key: {response.status_code} {_detail(response)}",
            )
        return _parse_key(response)

    async def create_key(self, request: TranslationKeyCreate) -> TranslationKey:
        response = await self._request(
            "POST", "/translation-keys", json=request.model_dump(mode="json")
        )
        if 400 <= response.status_code < 500:
            logger.warning("Create of %r rejected: %s", request.key, response.text)
            raise ValidationError(response.status_code, response.text, _detail(response))
        if not response.is_success:
            raise HttpError(
                response.status_code,
                response.text,
                f"Failed to create translation key: {response.status_code} {_detail(response)}",
            )
        return _parse_key(response)

    async def update_key(self, key_id: str, patch: TranslationKeyUpdate) -> TranslationKey:
        # Only the fields the caller set go over the wire
        payload = patch.model_dump(mode="json", exclude_unset=True)
        response = await self._request("PATCH", f"/translation-keys/{key_id}", json=payload)
        if response.status_code == 404:
            raise NotFoundError(response.text)
        if 400 <= response.status_code < 500:
            logger.warning("Update of %s rejected: %s", key_id, response.text)
            raise ValidationError(response.status_code, response.text, _detail(response))
        if not response.is_success:
            raise HttpError(
                response.status_code,
                response.text,
                f"Failed to update translation key: {response.status_code} {_detail(response)}",
            )
        return _parse_key(response)

    async def delete_key(self, key_id: str) -> None:
        response = await self._request("DELETE", f"/translation-keys/{key_id}")
        if not response.is_success:
            logger.warning("Delete of %s failed: %s %s", key_id, response.status_code, response.text)
            raise FetchError(
                response.status_code,
                response.text,
                f"Failed to delete translation key: {response.status_code} {_detail(response)}",
            )

    async def get_stats(self) -> TranslationStats:
        # Stats are best effort: any failure degrades to an empty mapping
        try:
            response = await self._request("GET", "/translation-keys/stats/completion")
        except NetworkError as e:
            logger.warning("Failed to fetch translation stats: %s", e)
            return {}
        if not response.is_success:
            logger.warning("Failed to fetch translation stats: %s %s", response.status_code, response.text)
            return {}
        try:
            data = response.json()
        except ValueError:
            logger.warning("Translation stats response is not JSON: %r", response.text)
            return {}
        if not isinstance(data, dict):
            return {}
        try:
            return {str(lang): float(pct) for lang, pct in data.items()}
        except (TypeError, ValueError):
            logger.warning("Unexpected translation stats payload: %r", data)
            return {}
