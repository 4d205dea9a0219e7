"""User settings: profile, emergency contacts, medical info and preferences."""

from collections.abc import Mapping
from typing import Any

import structlog

from epifriend.domain.models import Settings, StoredModel, validate_leniently
from epifriend.services.storage import SETTINGS_KEY, KeyValueStorage, load_json, persists, save_json

logger = structlog.get_logger(__name__)


class SettingsStore:
    """
    Single settings record persisted as one JSON object.

    Stored data is merged over the defaults on load, so fields introduced
    after the data was written are always present.
    """

    def __init__(self, storage: KeyValueStorage, key_prefix: str = "epifriend_") -> None:
        self.storage = storage
        self.key = f"{key_prefix}{SETTINGS_KEY}"
        self.logger = logger.bind(component="settings_store")
        self.settings: Settings = self._load()

    def _load(self) -> Settings:
        result = load_json(self.storage, self.key)
        if result.is_err():
            self.logger.error("settings_load_failed", key=self.key, error=str(result.unwrap_err()))
            return Settings()

        stored = result.unwrap()
        if stored is None:
            return Settings()
        if not isinstance(stored, dict):
            error = f"expected a JSON object, got {type(stored).__name__}"
            self.logger.error("settings_load_failed", key=self.key, error=error)
            return Settings()
        settings, dropped = validate_leniently(Settings, stored)
        if dropped:
            self.logger.warning("settings_sections_reset", key=self.key, sections=dropped)
        return settings

    def save(self) -> None:
        result = save_json(self.storage, self.key, self.settings.to_storage())
        if result.is_err():
            self.logger.error("settings_save_failed", key=self.key, error=str(result.unwrap_err()))

    def _merge(self, section: str, partial: Mapping[str, Any]) -> StoredModel:
        current: StoredModel = getattr(self.settings, section)
        model = type(current)
        merged, dropped = validate_leniently(model, partial, base=current.model_dump())
        if dropped:
            self.logger.warning("settings_fields_dropped", section=section, fields=dropped)
        setattr(self.settings, section, merged)
        self.logger.info("settings_updated", section=section, fields=sorted(partial))
        return merged

    @persists
    def update_profile(self, profile: Mapping[str, Any]) -> StoredModel:
        return self._merge("profile", profile)

    @persists
    def update_emergency(self, emergency: Mapping[str, Any]) -> StoredModel:
        return self._merge("emergency", emergency)

    @persists
    def update_medical(self, medical: Mapping[str, Any]) -> StoredModel:
        return self._merge("medical", medical)

    @persists
    def update_preferences(self, preferences: Mapping[str, Any]) -> StoredModel:
        return self._merge("preferences", preferences)

    @persists
    def add_allergy(self, allergy: str) -> bool:
        """Append an allergy unless it is blank or already listed."""
        allergy = (allergy or "").strip()
        allergies = self.settings.medical.allergies
        if not allergy or allergy in allergies:
            return False
        allergies.append(allergy)
        return True

    @persists
    def remove_allergy(self, index: int) -> bool:
        """Remove the allergy at `index`. Out-of-range indexes are ignored."""
        allergies = self.settings.medical.allergies
        if not 0 <= index < len(allergies):
            self.logger.warning("allergy_index_out_of_range", index=index, count=len(allergies))
            return False
        del allergies[index]
        return True
