from .editor import EditorMode, TranslationEditor
from .manager import HeaderStats, KeyRow, Pagination, TranslationKeyManager
from .modals import AddKeyModal, DeleteKeyModal

__all__ = [
    "AddKeyModal",
    "DeleteKeyModal",
    "EditorMode",
    "HeaderStats",
    "KeyRow",
    "Pagination",
    "TranslationEditor",
    "TranslationKeyManager",
]
