"""Episode log: newest first, persisted as one JSON array."""

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

import structlog

from epifriend.domain.models import Episode, new_id, utc_now, validate_leniently
from epifriend.services.storage import EPISODES_KEY, KeyValueStorage, load_rows, persists, save_json

logger = structlog.get_logger(__name__)


class EpisodeStore:
    """
    Ordered log of recorded episodes.

    The list is kept in insertion order with the newest entry at index 0.
    Every mutation is written through to storage immediately. Stored rows
    that cannot be read are kept aside and written back after the others.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key_prefix: str = "epifriend_",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.storage = storage
        self.key = f"{key_prefix}{EPISODES_KEY}"
        self.clock = clock
        self.logger = logger.bind(component="episode_store")
        self._episodes, self._unreadable = load_rows(storage, self.key, Episode, self.logger)

    def save(self) -> None:
        rows = [e.to_storage() for e in self._episodes] + self._unreadable
        result = save_json(self.storage, self.key, rows)
        if result.is_err():
            self.logger.error("episodes_save_failed", key=self.key, error=str(result.unwrap_err()))

    @property
    def episodes(self) -> tuple[Episode, ...]:
        return tuple(self._episodes)

    def get(self, episode_id: str) -> Episode | None:
        return next((e for e in self._episodes if e.id == episode_id), None)

    @persists
    def add(self, episode: Mapping[str, Any]) -> Episode:
        """Record a new episode. A caller-supplied timestamp is kept for back-dated entries."""
        fields = {k: v for k, v in Episode.by_field_name(episode).items() if k != "id"}
        base = {"timestamp": self.clock(), "id": new_id()}
        record, dropped = validate_leniently(Episode, fields, base=base)
        if dropped:
            self.logger.warning("episode_fields_dropped", fields=dropped)
        self._episodes.insert(0, record)
        self.logger.info("episode_added", episode_id=record.id, type=record.type)
        return record

    @persists
    def update(self, episode_id: str, fields: Mapping[str, Any]) -> Episode | None:
        """Merge `fields` into the episode. The id never changes; unknown ids are ignored."""
        for index, current in enumerate(self._episodes):
            if current.id == episode_id:
                updates = {k: v for k, v in Episode.by_field_name(fields).items() if k != "id"}
                updated, dropped = validate_leniently(Episode, updates, base=current.model_dump())
                if dropped:
                    self.logger.warning("episode_fields_dropped", episode_id=episode_id, fields=dropped)
                self._episodes[index] = updated
                self.logger.info("episode_updated", episode_id=episode_id, fields=sorted(fields))
                return updated
        return None

    def recent(self, limit: int = 5) -> tuple[Episode, ...]:
        return tuple(self._episodes[: max(limit, 0)])
