"""
Tests for the medication schedule and missed-dose log.

Covers:
- Versioned edits (one flat snapshot per update)
- Stopping and the active subset
- Missed-dose bookkeeping keyed on (medication, dose index, day)
- Persistence under two separate keys
"""

import json
from datetime import UTC, date, datetime

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from epifriend.domain.models import Medication
from epifriend.services.medication_store import MedicationStore
from epifriend.services.storage import MemoryStorage

DAY = date(2024, 1, 1)


@pytest.fixture
def store(storage: MemoryStorage, clock) -> MedicationStore:
    return MedicationStore(storage, clock=clock)


class TestAdd:
    def test_add_sets_schedule_fields(self, store: MedicationStore) -> None:
        med = store.add(
            {
                "name": "Levetiracetam",
                "dosage": "500 mg",
                "frequency": 2,
                "times": ["08:00", "20:00"],
                "end_date": "2020-01-01T00:00:00Z",
                "history": [{"name": "bogus"}],
            }
        )

        assert med.start_date == datetime(2024, 1, 1, 9, 30, tzinfo=UTC)
        assert med.end_date is None
        assert med.history == []
        assert med.is_active
        assert store.medications == (med,)

    def test_add_keeps_insertion_order(self, store: MedicationStore) -> None:
        first = store.add({"name": "A"})
        second = store.add({"name": "B"})

        assert [m.id for m in store.medications] == [first.id, second.id]

    def test_numbers_in_text_fields_are_kept_as_text(self, store: MedicationStore) -> None:
        med = store.add({"name": "Valproate", "dosage": 500})

        assert med.dosage == "500"

    def test_unusable_values_fall_back_to_defaults(self, store: MedicationStore) -> None:
        med = store.add({"name": "Valproate", "frequency": 0, "times": "08:00"})

        assert med.frequency == 1
        assert med.times == []
        assert store.medications == (med,)

    def test_missing_name_is_rejected(self, store: MedicationStore) -> None:
        with pytest.raises(ValidationError):
            store.add({"dosage": "50 mg"})
        assert store.medications == ()


class TestUpdate:
    def test_update_archives_previous_state(self, store: MedicationStore) -> None:
        med = store.add({"name": "Lamotrigine", "dosage": "50 mg"})

        updated = store.update(med.id, {"dosage": "100 mg"})

        assert updated is not None
        assert updated.dosage == "100 mg"
        assert updated.name == "Lamotrigine"
        assert len(updated.history) == 1
        snapshot = updated.history[0]
        assert snapshot.dosage == "50 mg"
        assert snapshot.id == med.id
        assert not hasattr(snapshot, "history")
        assert "history" not in snapshot.to_storage()
        assert "archivedAt" in snapshot.to_storage()

    def test_update_ignores_history_and_id_in_fields(self, store: MedicationStore) -> None:
        med = store.add({"name": "Clobazam"})

        updated = store.update(med.id, {"id": "x", "history": [], "frequency": 2})

        assert updated is not None
        assert updated.id == med.id
        assert len(updated.history) == 1
        assert updated.frequency == 2

    def test_update_unknown_id_is_noop(self, store: MedicationStore, storage: MemoryStorage) -> None:
        store.add({"name": "A"})
        before = store.medications

        assert store.update("missing", {"name": "B"}) is None
        assert store.medications == before

    @given(dosages=st.lists(st.sampled_from(["25 mg", "50 mg", "100 mg"]), min_size=1, max_size=8))
    def test_history_grows_by_one_per_update(self, dosages: list[str]) -> None:
        store = MedicationStore(MemoryStorage())
        med = store.add({"name": "Topiramate", "dosage": "0 mg"})

        previous = ["0 mg"]
        for count, dosage in enumerate(dosages, start=1):
            med = store.update(med.id, {"dosage": dosage})
            assert med is not None
            assert len(med.history) == count
            assert [h.dosage for h in med.history] == previous
            assert all("history" not in h.to_storage() for h in med.history)
            previous.append(dosage)

    def test_history_survives_reload(self, storage: MemoryStorage) -> None:
        store = MedicationStore(storage)
        med = store.add({"name": "Valproic acid", "dosage": "300 mg"})
        store.update(med.id, {"dosage": "500 mg"})

        reloaded = MedicationStore(storage).get(med.id)

        assert reloaded is not None
        assert reloaded.dosage == "500 mg"
        assert [h.dosage for h in reloaded.history] == ["300 mg"]


class TestStopAndActive:
    def test_stop_sets_end_date(self, store: MedicationStore) -> None:
        med = store.add({"name": "Phenytoin"})

        stopped = store.stop(med.id)

        assert stopped is not None
        assert stopped.end_date is not None
        assert store.active() == []

    def test_stop_unknown_id_is_noop(self, store: MedicationStore) -> None:
        assert store.stop("missing") is None

    @given(stopped_flags=st.lists(st.booleans(), max_size=12))
    def test_active_is_exactly_the_unstopped_subset(self, stopped_flags: list[bool]) -> None:
        store = MedicationStore(MemoryStorage())
        expected = []
        for index, stop in enumerate(stopped_flags):
            med = store.add({"name": f"med-{index}"})
            if stop:
                store.stop(med.id)
            else:
                expected.append(med.id)

        assert [m.id for m in store.active()] == expected


class TestMissedDoses:
    def test_log_then_check_then_remove(self, store: MedicationStore) -> None:
        store.log_missed("m1", 0, DAY)
        assert store.is_missed("m1", 0, DAY)

        assert store.remove_missed("m1", 0, DAY) is True
        assert not store.is_missed("m1", 0, DAY)

    def test_key_is_exact(self, store: MedicationStore) -> None:
        store.log_missed("m1", 1, DAY)

        assert not store.is_missed("m1", 0, DAY)
        assert not store.is_missed("m2", 1, DAY)
        assert not store.is_missed("m1", 1, date(2024, 1, 2))

    def test_remove_missed_drops_only_first_match(self, store: MedicationStore) -> None:
        store.log_missed("m1", 0, DAY)
        store.log_missed("m1", 0, DAY)

        store.remove_missed("m1", 0, DAY)

        assert store.is_missed("m1", 0, DAY)
        assert len(store.logs) == 1

    def test_remove_missed_without_match_is_noop(self, store: MedicationStore) -> None:
        assert store.remove_missed("m1", 0, DAY) is False

    def test_date_defaults_to_clock_day(self, store: MedicationStore) -> None:
        entry = store.log_missed("m1", 2)

        assert entry.date == DAY
        assert store.is_missed("m1", 2)
        assert store.has_any_missed_today("m1")

    def test_string_days_match_date_days(self, store: MedicationStore) -> None:
        store.log_missed("m1", 0, "2024-01-01")

        assert store.logs[0].date == DAY
        assert store.is_missed("m1", 0, "2024-01-01")
        assert store.is_missed("m1", 0, DAY)
        assert store.has_any_missed_today("m1", "2024-01-01")
        assert not store.has_any_missed_today("m1", "2024-01-02")
        assert store.remove_missed("m1", 0, "2024-01-01") is True
        assert store.logs == ()

    def test_has_any_missed_today_over_all_dose_indexes(self, store: MedicationStore) -> None:
        store.log_missed("m1", 3, DAY)

        assert store.has_any_missed_today("m1", DAY)
        assert not store.has_any_missed_today("m1", date(2024, 1, 2))
        assert not store.has_any_missed_today("m2", DAY)

    def test_logs_persist_under_their_own_key(self, store: MedicationStore, storage: MemoryStorage) -> None:
        store.log_missed("m1", 0, DAY)

        rows = json.loads(storage.data["epifriend_medication_logs"])

        assert rows[0]["medId"] == "m1"
        assert rows[0]["doseIndex"] == 0
        assert rows[0]["date"] == "2024-01-01"
        assert rows[0]["status"] == "missed"
        assert MedicationStore(storage).is_missed("m1", 0, DAY)


class TestLoading:
    def test_malformed_storage_degrades_to_empty(self) -> None:
        storage = MemoryStorage(
            {"epifriend_medications": "not json", "epifriend_medication_logs": '[{"medId": 1}]'}
        )

        store = MedicationStore(storage)

        assert store.medications == ()
        assert store.logs == ()

    def test_loads_camel_case_documents(self) -> None:
        storage = MemoryStorage(
            {
                "epifriend_medications": json.dumps(
                    [
                        {
                            "id": "m1",
                            "name": "Lacosamide",
                            "dosage": "100 mg",
                            "frequency": 2,
                            "times": ["08:00", "20:00"],
                            "startDate": "2024-01-01T08:00:00.000Z",
                            "endDate": None,
                            "history": [],
                        }
                    ]
                )
            }
        )

        med = MedicationStore(storage).get("m1")

        assert isinstance(med, Medication)
        assert med.frequency == 2
        assert med.is_active

    def test_unreadable_rows_survive_the_next_save(self, clock) -> None:
        good = {"id": "m1", "name": "Lacosamide", "startDate": "2024-01-01T08:00:00Z"}
        bad = {"id": "m2", "name": "Topiramate", "frequency": "twice"}
        bad_log = {"medId": "m1", "doseIndex": -1, "date": "2024-01-01"}
        storage = MemoryStorage(
            {
                "epifriend_medications": json.dumps([good, bad]),
                "epifriend_medication_logs": json.dumps([bad_log]),
            }
        )
        store = MedicationStore(storage, clock=clock)

        assert [m.id for m in store.medications] == ["m1"]
        assert store.logs == ()

        added = store.add({"name": "Clobazam"})
        store.log_missed("m1", 0)

        medications = json.loads(storage.data["epifriend_medications"])
        logs = json.loads(storage.data["epifriend_medication_logs"])
        assert [row["id"] for row in medications] == ["m1", added.id, "m2"]
        assert medications[2] == bad
        assert logs[0]["medId"] == "m1"
        assert logs[1:] == [bad_log]
