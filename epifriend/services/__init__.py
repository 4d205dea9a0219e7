"""
Core services for the application.

This package contains the storage-backed stores, the notification queue,
the medicine catalog, translations and the PDF report.
"""

from .episode_store import EpisodeStore
from .i18n import Translator
from .medication_store import MedicationStore
from .medicine_catalog import MedicineCatalog
from .report import ReportGenerator
from .settings_store import SettingsStore
from .storage import JsonFileStorage, KeyValueStorage, MemoryStorage, Result
from .toast import ToastNotifier

__all__ = [
    "EpisodeStore",
    "JsonFileStorage",
    "KeyValueStorage",
    "MedicationStore",
    "MedicineCatalog",
    "MemoryStorage",
    "ReportGenerator",
    "Result",
    "SettingsStore",
    "ToastNotifier",
    "Translator",
]
