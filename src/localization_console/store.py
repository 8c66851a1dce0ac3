import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from .models import TranslationFilters

logger = logging.getLogger(__name__)

STORAGE_NAME = "translation-storage"
STORAGE_VERSION = 0

# Fields that survive a restart; everything else starts from its default
PERSISTED_FIELDS = ("selected_language", "available_languages", "filters", "is_sidebar_collapsed")

# Changing any of these puts the list back on its first page
FILTER_RESET_FIELDS = ("search", "category")

DEFAULT_FILTERS = TranslationFilters(offset=0, limit=24)

StateListener = Callable[["TranslationState", "TranslationState"], None]


@dataclass(frozen=True)
class TranslationState:
    selected_language: str = "en_US"
    available_languages: List[str] = field(default_factory=lambda: ["en_US"])
    filters: TranslationFilters = DEFAULT_FILTERS
    total_items: int = 0

    is_loading: bool = False
    error: Optional[str] = None

    is_add_key_modal_open: bool = False
    is_delete_modal_open: bool = False
    deleting_key_id: Optional[str] = None
    selected_key_id: Optional[str] = None
    is_sidebar_collapsed: bool = False
    is_mobile_menu_open: bool = False


class StatePersistence:
    """Keeps the persisted slice of the store in a JSON file.

    The file can hold several named records; the store only reads and
    writes its own, stored as ``{"state": {...}, "version": N}``.
    """

    def __init__(self, path: Path, name: str = STORAGE_NAME):
        self.path = Path(path)
        self.name = name

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable state file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Dict[str, Any]:
        record = self._read_all().get(self.name)
        if not isinstance(record, dict):
            return {}
        if record.get("version", STORAGE_VERSION) != STORAGE_VERSION:
            logger.warning("Discarding %s state with version %r", self.name, record.get("version"))
            return {}
        state = record.get("state")
        return state if isinstance(state, dict) else {}

    def save(self, state: Dict[str, Any]) -> None:
        data = self._read_all()
        data[self.name] = {"state": state, "version": STORAGE_VERSION}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with tmp_path.open("w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
            tmp_path.replace(self.path)
        except OSError as e:
            # Persistence is a convenience; the in-memory state stays valid
            logger.error("Failed to write state file %s: %s", self.path, e)


def _restore(saved: Dict[str, Any]) -> Dict[str, Any]:
    restored: Dict[str, Any] = {}
    if isinstance(saved.get("selected_language"), str):
        restored["selected_language"] = saved["selected_language"]
    languages = saved.get("available_languages")
    if isinstance(languages, list) and all(isinstance(lang, str) for lang in languages):
        restored["available_languages"] = list(languages)
    if isinstance(saved.get("filters"), dict):
        try:
            restored["filters"] = TranslationFilters.model_validate(saved["filters"])
        except PydanticValidationError as e:
            logger.warning("Ignoring invalid persisted filters: %s", e)
    if isinstance(saved.get("is_sidebar_collapsed"), bool):
        restored["is_sidebar_collapsed"] = saved["is_sidebar_collapsed"]
    return restored


class TranslationStore:
    """UI and filter state shared by the console components.

    Every setter always succeeds. Listeners receive ``(new_state,
    old_state)`` after each change.
    """

    def __init__(
        self,
        persistence: Optional[StatePersistence] = None,
        default_filters: TranslationFilters = DEFAULT_FILTERS,
    ):
        self._persistence = persistence
        self._default_filters = default_filters
        self._listeners: List[StateListener] = []
        initial = TranslationState(filters=default_filters)
        if persistence is not None:
            initial = replace(initial, **_restore(persistence.load()))
        self._state = initial

    @property
    def state(self) -> TranslationState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_state(self, **changes: Any) -> None:
        old = self._state
        new = replace(old, **changes)
        if new == old:
            return
        self._state = new
        if self._persistence is not None and any(
            getattr(old, name) != getattr(new, name) for name in PERSISTED_FIELDS
        ):
            self._persistence.save(self.persisted_state())
        for listener in list(self._listeners):
            try:
                listener(new, old)
            except Exception:
                logger.exception("State listener failed")

    def persisted_state(self) -> Dict[str, Any]:
        return {
            "selected_language": self._state.selected_language,
            "available_languages": list(self._state.available_languages),
            "filters": self._state.filters.model_dump(mode="json"),
            "is_sidebar_collapsed": self._state.is_sidebar_collapsed,
        }

    # Data

    def set_selected_language(self, language: str) -> None:
        self.set_state(selected_language=language)

    def set_available_languages(self, languages: List[str]) -> None:
        self.set_state(available_languages=list(languages))

    def set_loading(self, is_loading: bool) -> None:
        self.set_state(is_loading=is_loading)

    def set_error(self, error: Optional[str]) -> None:
        self.set_state(error=error)

    # Filters and pagination

    def set_filters(self, **changes: Any) -> None:
        current = self._state.filters.model_dump()
        current.update(changes)
        if any(name in changes for name in FILTER_RESET_FIELDS):
            current["offset"] = 0
        try:
            current["offset"] = max(int(current["offset"] or 0), 0)
            current["limit"] = max(int(current["limit"] or 0), 1)
            filters = TranslationFilters(**current)
        except (TypeError, ValueError, PydanticValidationError) as e:
            logger.warning("Ignoring invalid filter change %r: %s", changes, e)
            return
        self.set_state(filters=filters)

    def set_search(self, search: Optional[str]) -> None:
        self.set_filters(search=search or None)

    def set_category(self, category: Optional[str]) -> None:
        self.set_filters(category=category or None)

    def set_offset(self, offset: int) -> None:
        self.set_filters(offset=offset)

    def set_page(self, page: int) -> None:
        limit = self._state.filters.limit
        self.set_offset((max(page, 1) - 1) * limit)

    def reset_filters(self) -> None:
        self.set_state(filters=self._default_filters)

    def set_total_items(self, total: int) -> None:
        self.set_state(total_items=max(total, 0))

    # UI

    def open_add_key_modal(self) -> None:
        self.set_state(is_add_key_modal_open=True)

    def close_add_key_modal(self) -> None:
        self.set_state(is_add_key_modal_open=False)

    def open_delete_modal(self, key_id: str) -> None:
        self.set_state(is_delete_modal_open=True, deleting_key_id=key_id)

    def close_delete_modal(self) -> None:
        self.set_state(is_delete_modal_open=False, deleting_key_id=None)

    def set_selected_key(self, key_id: Optional[str]) -> None:
        self.set_state(selected_key_id=key_id)

    def toggle_sidebar(self) -> None:
        self.set_state(is_sidebar_collapsed=not self._state.is_sidebar_collapsed)

    def toggle_mobile_menu(self) -> None:
        self.set_state(is_mobile_menu_open=not self._state.is_mobile_menu_open)
