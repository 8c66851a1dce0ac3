from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

CATEGORIES = ("buttons", "messages", "errors", "labels", "titles", "placeholders")

SortBy = Literal["key", "category", "updatedAt"]
SortOrder = Literal["asc", "desc"]

# language code -> completion percentage in [0, 100]
TranslationStats = Dict[str, float]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Translation(BaseModel):
    value: str
    updated_at: datetime = Field(default_factory=utcnow)
    updated_by: str


class TranslationKey(BaseModel):
    id: str
    key: str
    category: str
    description: Optional[str] = None
    translations: Dict[str, Translation] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def value_for(self, language: str) -> str:
        translation = self.translations.get(language)
        return translation.value if translation else ""


class TranslationKeyCreate(BaseModel):
    key: str = Field(min_length=1)
    category: str = Field(min_length=1)
    description: Optional[str] = None


class TranslationPatch(BaseModel):
    value: str
    updated_by: str
    updated_at: Optional[datetime] = None


class TranslationKeyUpdate(BaseModel):
    key: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    translations: Optional[Dict[str, TranslationPatch]] = None


class TranslationFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    search: Optional[str] = None
    category: Optional[str] = None
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=24, gt=0)
    sort_by: Optional[SortBy] = None
    sort_order: Optional[SortOrder] = None


class TranslationKeyPage(BaseModel):
    items: List[TranslationKey] = Field(default_factory=list)
    total: int = 0

    def without(self, key_id: str) -> "TranslationKeyPage":
        items = [item for item in self.items if item.id != key_id]
        if len(items) == len(self.items):
            return self
        return TranslationKeyPage(items=items, total=max(self.total - 1, 0))


def merge_translation(
    translations: Dict[str, Translation],
    language: str,
    value: str,
    updated_by: str,
) -> Dict[str, TranslationPatch]:
    """Return the full translations mapping with only ``language`` replaced.

    Every other language is carried over untouched, including its
    ``updated_at`` and ``updated_by``, because the service replaces the whole
    ``translations`` field on PATCH.
    """
    merged = {
        lang: TranslationPatch(
            value=existing.value,
            updated_by=existing.updated_by,
            updated_at=existing.updated_at,
        )
        for lang, existing in translations.items()
    }
    merged[language] = TranslationPatch(value=value, updated_by=updated_by)
    return merged
