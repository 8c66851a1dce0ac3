"""In-memory Localization Management API for development and tests.

Serves the same routes as the production service so the console can be run
and tested without a database behind it.
"""

import logging
import uuid
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from .models import Translation, TranslationKey, TranslationKeyCreate, TranslationPatch, utcnow

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    "key": lambda item: item.key,
    "category": lambda item: item.category,
    "updatedAt": lambda item: item.updated_at,
}


class TranslationKeyPatch(BaseModel):
    key: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    translations: Optional[Dict[str, TranslationPatch]] = None


class BulkTranslationUpdate(BaseModel):
    translations: Dict[str, Dict[str, str]]  # {key_id: {language_code: value}}
    updated_by: str


class ListResult(BaseModel):
    items: List[TranslationKey] = Field(default_factory=list)
    total: int = 0


class InMemoryTranslationRepository:
    def __init__(self):
        # dicts keep insertion order, which is the default listing order
        self._keys: Dict[str, TranslationKey] = {}

    def _find_by_key(self, key: str) -> Optional[TranslationKey]:
        return next((item for item in self._keys.values() if item.key == key), None)

    async def get_translation_key(self, key_id: str) -> Optional[TranslationKey]:
        return self._keys.get(key_id)

    async def list_translation_keys(
        self,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ) -> ListResult:
        items = list(self._keys.values())
        if category:
            items = [item for item in items if item.category == category]
        if search:
            needle = search.lower()
            items = [
                item
                for item in items
                if needle in item.key.lower() or needle in (item.description or "").lower()
            ]
        if sort_by in SORT_FIELDS:
            # sorted() is stable, ties keep insertion order
            items = sorted(items, key=SORT_FIELDS[sort_by], reverse=sort_order == "desc")
        return ListResult(items=items[offset:offset + limit], total=len(items))

    async def create_translation_key(self, key: TranslationKeyCreate) -> TranslationKey:
        if self._find_by_key(key.key) is not None:
            raise HTTPException(status_code=409, detail=f"Translation key '{key.key}' already exists")
        now = utcnow()
        created = TranslationKey(
            id=str(uuid.uuid4()),
            key=key.key,
            category=key.category,
            description=key.description,
            translations={},
            created_at=now,
            updated_at=now,
        )
        self._keys[created.id] = created
        logger.info("Created translation key %s (%s)", created.key, created.id)
        return created

    async def update_translation_key(self, key_id: str, update: TranslationKeyPatch) -> Optional[TranslationKey]:
        current = self._keys.get(key_id)
        if current is None:
            return None
        data = update.model_dump(exclude_unset=True)
        if "key" in data and data["key"] != current.key and self._find_by_key(data["key"]) is not None:
            raise HTTPException(status_code=409, detail=f"Translation key '{data['key']}' already exists")
        now = utcnow()
        if update.translations is not None:
            # PATCH replaces the whole translations field
            data["translations"] = {
                lang: Translation(
                    value=patch.value,
                    updated_by=patch.updated_by,
                    updated_at=patch.updated_at or now,
                )
                for lang, patch in update.translations.items()
            }
        updated = current.model_copy(update={**data, "updated_at": now})
        self._keys[key_id] = updated
        return updated

    async def delete_translation_key(self, key_id: str) -> bool:
        return self._keys.pop(key_id, None) is not None

    async def bulk_update_translations(self, updates: Dict[str, Dict[str, str]], updated_by: str) -> bool:
        successful_updates = 0
        now = utcnow()
        for key_id, translations_to_add in updates.items():
            current = self._keys.get(key_id)
            if current is None:
                logger.warning("Translation key %s not found for bulk update", key_id)
                continue
            translations = dict(current.translations)
            for lang, value in translations_to_add.items():
                translations[lang] = Translation(value=str(value), updated_at=now, updated_by=updated_by)
            self._keys[key_id] = current.model_copy(update={"translations": translations, "updated_at": now})
            successful_updates += 1
        return successful_updates > 0

    async def get_translation_completion_stats(self) -> Dict[str, float]:
        keys = list(self._keys.values())
        all_languages = set()
        for item in keys:
            all_languages.update(item.translations.keys())
        if not keys or not all_languages:
            return {}
        stats = {lang: 0 for lang in all_languages}
        for item in keys:
            for lang, translation in item.translations.items():
                if translation.value:
                    stats[lang] += 1
        return {lang: (count / len(keys)) * 100 for lang, count in stats.items()}


def create_app(repository: Optional[InMemoryTranslationRepository] = None) -> FastAPI:
    repository = repository or InMemoryTranslationRepository()
    app = FastAPI(title="Localization Management API (in-memory)")
    app.state.repository = repository

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/translation-keys/stats/completion", response_model=Dict[str, float])
    async def get_translation_completion_stats():
        return await repository.get_translation_completion_stats()

    @app.get("/translation-keys/{key_id}", response_model=TranslationKey)
    async def get_translation_key(key_id: str):
        key = await repository.get_translation_key(key_id)
        if not key:
            raise HTTPException(status_code=404, detail="Translation key not found")
        return key

    @app.get("/translation-keys", response_model=List[TranslationKey])
    async def list_translation_keys(
        response: Response,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = Query(default=100, gt=0, le=100),
        offset: int = Query(default=0, ge=0),
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
    ):
        result = await repository.list_translation_keys(category, search, limit, offset, sort_by, sort_order)
        response.headers["X-Total-Count"] = str(result.total)
        return result.items

    @app.post("/translation-keys", response_model=TranslationKey, status_code=201)
    async def create_translation_key(key: TranslationKeyCreate):
        return await repository.create_translation_key(key)

    @app.patch("/translation-keys/{key_id}", response_model=TranslationKey)
    async def update_translation_key(key_id: str, update: TranslationKeyPatch):
        key = await repository.update_translation_key(key_id, update)
        if not key:
            raise HTTPException(status_code=404, detail="Translation key not found")
        return key

    @app.delete("/translation-keys/{key_id}", status_code=204)
    async def delete_translation_key(key_id: str):
        success = await repository.delete_translation_key(key_id)
        if not success:
            raise HTTPException(status_code=404, detail="Translation key not found")

    @app.post("/translation-keys/bulk-update", status_code=200)
    async def bulk_update_translations(update: BulkTranslationUpdate):
        success = await repository.bulk_update_translations(update.translations, update.updated_by)
        if not success:
            raise HTTPException(status_code=400, detail="Failed to update translations")
        return {"message": "Translations updated successfully"}

    return app
