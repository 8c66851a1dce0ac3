import logging
from enum import Enum
from typing import Callable, NamedTuple, Optional

from ..errors import AggregateUiError
from ..models import TranslationKey
from ..store import TranslationState, TranslationStore
from ..translation_api import TranslationApi

logger = logging.getLogger(__name__)


class EditorMode(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"


class Draft(NamedTuple):
    language: str
    value: str


class TranslationEditor:
    """Inline editor for one key's value in the selected display language.

    The edit target language is fixed when editing starts. If the selected
    language changes mid-edit the editor goes back to viewing the new
    language; an unsaved buffer is kept in ``discarded_draft`` so it can be
    restored with :meth:`restore_draft`.
    """

    def __init__(self, translation_key: TranslationKey, api: TranslationApi, store: TranslationStore):
        self.translation_key = translation_key
        self.api = api
        self.store = store
        self.mode = EditorMode.VIEWING
        self.language = store.state.selected_language
        self.input_value = translation_key.value_for(self.language)
        self.error: Optional[str] = None
        self.is_saving = False
        self.discarded_draft: Optional[Draft] = None
        self._pending_language: Optional[str] = None
        self._unsubscribe: Callable[[], None] = store.subscribe(self._on_state_change)

    def close(self) -> None:
        self._unsubscribe()

    @property
    def is_editing(self) -> bool:
        return self.mode is EditorMode.EDITING

    @property
    def current_value(self) -> str:
        return self.translation_key.value_for(self.language)

    @property
    def can_save(self) -> bool:
        return self.is_editing and not self.is_saving

    @property
    def is_dirty(self) -> bool:
        return self.input_value != self.current_value

    @property
    def placeholder(self) -> str:
        return f"Enter {self.language} translation..."

    @property
    def display_text(self) -> str:
        return self.current_value or f"No {self.language} translation"

    def begin_edit(self) -> None:
        if self.is_editing:
            return
        self.input_value = self.current_value
        self.error = None
        self.mode = EditorMode.EDITING

    def set_input(self, value: str) -> None:
        self.input_value = value

    def cancel(self) -> None:
        self.input_value = self.current_value
        self.error = None
        self.mode = EditorMode.VIEWING

    async def save(self) -> bool:
        if not self.can_save:
            return False
        self.is_saving = True
        self.error = None
        try:
            updated = await self.api.update_translation(
                self.translation_key, self.language, self.input_value
            )
        except Exception as e:
            logger.warning("Saving %s/%s failed: %s", self.translation_key.key, self.language, e)
            self.error = AggregateUiError.from_exception(e, "Failed to update translation").message
            self._apply_pending_language()
            return False
        finally:
            self.is_saving = False
        self.translation_key = updated
        self.mode = EditorMode.VIEWING
        self.input_value = self.current_value
        self._apply_pending_language()
        return True

    def sync(self, translation_key: TranslationKey) -> None:
        """Take fresh server data; an in-progress edit keeps its buffer."""
        self.translation_key = translation_key
        if not self.is_editing:
            self.input_value = self.current_value

    def restore_draft(self) -> bool:
        draft = self.discarded_draft
        if draft is None or draft.language != self.language:
            return False
        self.begin_edit()
        self.input_value = draft.value
        self.discarded_draft = None
        return True

    def _on_state_change(self, new: TranslationState, old: TranslationState) -> None:
        if new.selected_language == old.selected_language:
            return
        if self.is_saving:
            self._pending_language = new.selected_language
            return
        self._switch_language(new.selected_language)

    def _apply_pending_language(self) -> None:
        language, self._pending_language = self._pending_language, None
        if language is not None and language != self.language:
            self._switch_language(language)

    def _switch_language(self, language: str) -> None:
        if self.is_editing and self.is_dirty:
            self.discarded_draft = Draft(self.language, self.input_value)
            logger.info(
                "Unsaved %s edit of %s set aside after language switch",
                self.language,
                self.translation_key.key,
            )
        self.language = language
        self.mode = EditorMode.VIEWING
        self.error = None
        self.input_value = self.current_value
