import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from ..errors import AggregateUiError
from ..models import CATEGORIES, TranslationKey, TranslationKeyCreate
from ..store import TranslationStore
from ..translation_api import TranslationApi

logger = logging.getLogger(__name__)


class AddKeyModal:
    """Create-key form bound to the store's add-key modal flag."""

    def __init__(self, api: TranslationApi, store: TranslationStore):
        self.api = api
        self.store = store
        self.key = ""
        self.category = ""
        self.description: Optional[str] = None
        self.error: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.store.state.is_add_key_modal_open

    @property
    def is_submitting(self) -> bool:
        return self.api.is_creating

    def open(self) -> None:
        self.store.open_add_key_modal()

    def set_fields(
        self,
        key: Optional[str] = None,
        category: Optional[str] = None,
        description: Optional[str] = None,
    ) -> None:
        if key is not None:
            self.key = key
        if category is not None:
            self.category = category
        if description is not None:
            self.description = description

    def _reset(self) -> None:
        self.key = ""
        self.category = ""
        self.description = None
        self.error = None

    def close(self) -> None:
        self._reset()
        self.store.close_add_key_modal()

    def validate(self) -> Optional[str]:
        if not self.key.strip() or not self.category.strip():
            return "Key and category are required"
        if self.category.strip() not in CATEGORIES:
            return f"Category must be one of: {', '.join(CATEGORIES)}"
        return None

    async def submit(self) -> Optional[TranslationKey]:
        self.error = self.validate()
        if self.error:
            return None
        try:
            request = TranslationKeyCreate(
                key=self.key.strip(),
                category=self.category.strip(),
                description=self.description or None,
            )
            created = await self.api.create_key(request)
        except PydanticValidationError as e:
            self.error = str(e)
            return None
        except Exception as e:
            logger.warning("Failed to create translation key %r: %s", self.key, e)
            self.error = AggregateUiError.from_exception(e, "Failed to create translation key").message
            return None
        self.close()
        return created


class DeleteKeyModal:
    """Confirmation step before a key is deleted."""

    def __init__(self, api: TranslationApi, store: TranslationStore):
        self.api = api
        self.store = store
        self.error: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.store.state.is_delete_modal_open

    @property
    def key_id(self) -> Optional[str]:
        return self.store.state.deleting_key_id

    @property
    def is_deleting(self) -> bool:
        return self.api.is_deleting

    def open(self, key_id: str) -> None:
        self.error = None
        self.store.open_delete_modal(key_id)

    def cancel(self) -> None:
        self.error = None
        self.store.close_delete_modal()

    async def confirm(self) -> bool:
        key_id = self.key_id
        if not key_id or self.is_deleting:
            return False
        self.error = None
        try:
            await self.api.delete_key(key_id)
        except Exception as e:
            self.error = AggregateUiError.from_exception(e, "Failed to delete translation key").message
            return False
        self.store.close_delete_modal()
        return True
