"""Administrative console for translation keys backed by the Localization Management API."""

__version__ = "0.1.0"
