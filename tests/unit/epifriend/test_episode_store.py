"""
Tests for the episode log.

Testing philosophy:
- Newest-first ordering and unique ids hold for any sequence of adds
- Updates touch only the given fields
- Broken storage never reaches the caller
"""

import json
from datetime import UTC, datetime

from hypothesis import given
from hypothesis import strategies as st

from epifriend.services.episode_store import EpisodeStore
from epifriend.services.storage import MemoryStorage

EPISODE_TYPES = st.sampled_from(["general", "tonic_clonic", "absence", "focal"])


class TestAdd:
    def test_add_then_recent_returns_the_episode(self, storage: MemoryStorage) -> None:
        store = EpisodeStore(storage)

        store.add({"type": "general"})
        recent = store.recent(1)

        assert len(recent) == 1
        assert recent[0].type == "general"
        assert isinstance(recent[0].timestamp, datetime)
        assert recent[0].timestamp.tzinfo is not None
        # Round-trips as an ISO instant
        assert datetime.fromisoformat(recent[0].to_storage()["timestamp"]) == recent[0].timestamp

    def test_add_assigns_id_and_clock_timestamp(self, storage: MemoryStorage, clock) -> None:
        store = EpisodeStore(storage, clock=clock)

        episode = store.add({"type": "absence", "id": "caller-chosen"})

        assert episode.id != "caller-chosen"
        assert episode.timestamp == datetime(2024, 1, 1, 9, 30, tzinfo=UTC)

    def test_add_keeps_backdated_timestamp(self, storage: MemoryStorage) -> None:
        store = EpisodeStore(storage)

        episode = store.add({"timestamp": "2023-12-24T18:00:00Z"})

        assert episode.timestamp == datetime(2023, 12, 24, 18, 0, tzinfo=UTC)

    def test_add_persists_full_list_with_camel_case_keys(self, storage: MemoryStorage) -> None:
        store = EpisodeStore(storage)
        store.add({"type": "focal", "warning_symptoms": ["aura"], "someone_witnessed": True})

        stored = json.loads(storage.data["epifriend_episodes"])

        assert len(stored) == 1
        assert stored[0]["warningSymptoms"] == ["aura"]
        assert stored[0]["someoneWitnessed"] is True

    @given(types=st.lists(EPISODE_TYPES, max_size=20))
    def test_newest_first_and_unique_ids(self, types: list[str]) -> None:
        store = EpisodeStore(MemoryStorage())
        added = [store.add({"type": t}) for t in types]

        assert [e.id for e in store.episodes] == [e.id for e in reversed(added)]
        assert len({e.id for e in store.episodes}) == len(types)


class TestUpdate:
    def test_update_changes_only_given_fields(self, storage: MemoryStorage) -> None:
        store = EpisodeStore(storage)
        original = store.add({"type": "focal", "severity": "mild", "notes": "after dinner"})

        updated = store.update(original.id, {"severity": "severe"})

        assert updated is not None
        assert updated.severity == "severe"
        assert updated.model_dump(exclude={"severity"}) == original.model_dump(exclude={"severity"})
        assert store.get(original.id) == updated

    def test_update_accepts_stored_key_names(self, storage: MemoryStorage) -> None:
        store = EpisodeStore(storage)
        episode = store.add({"type": "focal"})

        updated = store.update(episode.id, {"wentToHospital": True})

        assert updated is not None
        assert updated.went_to_hospital is True

    def test_update_never_changes_id(self, storage: MemoryStorage) -> None:
        store = EpisodeStore(storage)
        episode = store.add({})

        updated = store.update(episode.id, {"id": "other"})

        assert updated is not None
        assert updated.id == episode.id

    def test_update_unknown_id_is_noop(self, storage: MemoryStorage) -> None:
        store = EpisodeStore(storage)
        store.add({"type": "general"})
        before = store.episodes

        assert store.update("missing", {"type": "absence"}) is None
        assert store.episodes == before


class TestRecent:
    def test_recent_defaults_to_five(self, storage: MemoryStorage) -> None:
        store = EpisodeStore(storage)
        for i in range(7):
            store.add({"notes": str(i)})

        assert [e.notes for e in store.recent()] == ["6", "5", "4", "3", "2"]

    def test_recent_is_read_only_view(self, storage: MemoryStorage) -> None:
        store = EpisodeStore(storage)
        store.add({})

        assert isinstance(store.recent(), tuple)


class TestPersistence:
    def test_reload_from_storage(self, storage: MemoryStorage) -> None:
        first = EpisodeStore(storage)
        episode = first.add({"type": "tonic_clonic", "custom_field": "kept"})

        second = EpisodeStore(storage)

        assert second.episodes == first.episodes
        assert second.get(episode.id).model_extra == {"custom_field": "kept"}

    def test_malformed_json_degrades_to_empty(self) -> None:
        store = EpisodeStore(MemoryStorage({"epifriend_episodes": "{oops"}))
        assert store.episodes == ()

    def test_wrong_shape_degrades_to_empty(self) -> None:
        store = EpisodeStore(MemoryStorage({"epifriend_episodes": '{"a": 1}'}))
        assert store.episodes == ()

    def test_unreadable_rows_survive_the_next_save(self) -> None:
        good = {"id": "e1", "timestamp": "2024-01-01T08:00:00Z", "type": "focal"}
        bad = {"id": "e2", "timestamp": "not-a-date", "type": "absence"}
        storage = MemoryStorage({"epifriend_episodes": json.dumps([good, bad, 42])})
        store = EpisodeStore(storage)

        assert [e.id for e in store.episodes] == ["e1"]

        added = store.add({"type": "general"})
        stored = json.loads(storage.data["epifriend_episodes"])

        assert [row["id"] for row in stored[:2]] == [added.id, "e1"]
        assert stored[2:] == [bad, 42]

    def test_write_failure_is_not_raised(self) -> None:
        class ReadOnlyStorage(MemoryStorage):
            def set(self, key: str, value: str) -> None:
                raise OSError("read-only")

        store = EpisodeStore(ReadOnlyStorage())
        episode = store.add({"type": "general"})

        assert store.recent(1) == (episode,)

    def test_custom_key_prefix(self, storage: MemoryStorage) -> None:
        EpisodeStore(storage, key_prefix="test_").add({})
        assert "test_episodes" in storage.data


class TestLooseInput:
    def test_numeric_duration_and_severity_are_stored_as_text(self, storage: MemoryStorage) -> None:
        episode = EpisodeStore(storage).add({"type": "general", "duration": 5, "severity": 3})

        assert episode.duration == "5"
        assert episode.severity == "3"
        assert json.loads(storage.data["epifriend_episodes"])[0]["duration"] == "5"

    def test_missing_and_scalar_values_are_normalised(self, storage: MemoryStorage) -> None:
        episode = EpisodeStore(storage).add(
            {
                "type": None,
                "triggers": "stress",
                "warningSymptoms": None,
                "someoneWitnessed": None,
                "notes": None,
            }
        )

        assert episode.type == "general"
        assert episode.triggers == ["stress"]
        assert episode.warning_symptoms == []
        assert episode.someone_witnessed is False
        assert episode.notes == ""

    def test_unusable_values_fall_back_to_defaults(self, storage: MemoryStorage, clock) -> None:
        store = EpisodeStore(storage, clock=clock)

        episode = store.add({"type": "focal", "timestamp": "yesterday", "triggers": 5})

        assert episode.type == "focal"
        assert episode.timestamp == datetime(2024, 1, 1, 9, 30, tzinfo=UTC)
        assert episode.triggers == []
        assert store.episodes == (episode,)

    def test_update_keeps_current_value_for_unusable_field(self, storage: MemoryStorage) -> None:
        store = EpisodeStore(storage)
        episode = store.add({"timestamp": "2024-02-01T12:00:00Z", "severity": "mild"})

        updated = store.update(episode.id, {"timestamp": "soon", "severity": 2})

        assert updated is not None
        assert updated.timestamp == episode.timestamp
        assert updated.severity == "2"
