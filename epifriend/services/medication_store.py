"""
Medication schedule with versioned edits and missed-dose tracking.

Medications and the missed-dose log live under separate storage keys and
are written independently. A dose is considered taken unless a `missed`
row exists for its (medication, dose index, day) key.
"""

from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any

import structlog
from pydantic import TypeAdapter

from epifriend.domain.models import (
    Medication,
    MedicationLog,
    MedicationSnapshot,
    new_id,
    utc_now,
    validate_leniently,
)
from epifriend.services.storage import (
    MEDICATION_LOGS_KEY,
    MEDICATIONS_KEY,
    KeyValueStorage,
    load_rows,
    persists,
    save_json,
)

logger = structlog.get_logger(__name__)

# Days arrive as `date` objects or as "YYYY-MM-DD" strings
DayLike = date | str
_day_adapter = TypeAdapter(date)


class MedicationStore:
    """Medication records plus the log of missed doses."""

    def __init__(
        self,
        storage: KeyValueStorage,
        key_prefix: str = "epifriend_",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.storage = storage
        self.medications_key = f"{key_prefix}{MEDICATIONS_KEY}"
        self.logs_key = f"{key_prefix}{MEDICATION_LOGS_KEY}"
        self.clock = clock
        self.logger = logger.bind(component="medication_store")
        self._medications, self._unreadable_medications = load_rows(
            storage, self.medications_key, Medication, self.logger
        )
        self._logs, self._unreadable_logs = load_rows(storage, self.logs_key, MedicationLog, self.logger)

    def _save(
        self, key: str, records: list[Medication] | list[MedicationLog], unreadable: list[Any]
    ) -> None:
        result = save_json(self.storage, key, [r.to_storage() for r in records] + unreadable)
        if result.is_err():
            self.logger.error("medications_save_failed", key=key, error=str(result.unwrap_err()))

    def save(self) -> None:
        self._save(self.medications_key, self._medications, self._unreadable_medications)
        self._save(self.logs_key, self._logs, self._unreadable_logs)

    def _day(self, day: DayLike | None) -> date:
        """The given day as a `date`; None means today on the store's clock."""
        return self.clock().date() if day is None else _day_adapter.validate_python(day)

    def _index_of(self, med_id: str) -> int | None:
        return next((i for i, m in enumerate(self._medications) if m.id == med_id), None)

    @property
    def medications(self) -> tuple[Medication, ...]:
        return tuple(self._medications)

    @property
    def logs(self) -> tuple[MedicationLog, ...]:
        return tuple(self._logs)

    def get(self, med_id: str) -> Medication | None:
        index = self._index_of(med_id)
        return None if index is None else self._medications[index]

    # -- medications -------------------------------------------------------

    @persists
    def add(self, med: Mapping[str, Any]) -> Medication:
        """Put a medication on the schedule, active from now with an empty history."""
        forced = {"id": new_id(), "start_date": self.clock(), "end_date": None, "history": []}
        fields = {k: v for k, v in Medication.by_field_name(med).items() if k not in forced}
        record, dropped = validate_leniently(Medication, fields, base=forced)
        if dropped:
            self.logger.warning("medication_fields_dropped", fields=dropped)
        self._medications.append(record)
        self.logger.info("medication_added", med_id=record.id, name=record.name)
        return record

    @persists
    def update(self, med_id: str, fields: Mapping[str, Any]) -> Medication | None:
        """
        Apply `fields` to a medication, archiving its previous state first.

        The archived snapshot never carries a history of its own, and the
        history always grows by exactly one entry per call.
        """
        index = self._index_of(med_id)
        if index is None:
            return None

        current = self._medications[index]
        snapshot = MedicationSnapshot.model_validate(
            {**current.model_dump(exclude={"history"}), "archived_at": self.clock()}
        )
        updates = {k: v for k, v in Medication.by_field_name(fields).items() if k not in ("id", "history")}
        updated, dropped = validate_leniently(
            Medication, updates, base={**current.model_dump(), "history": [*current.history, snapshot]}
        )
        if dropped:
            self.logger.warning("medication_fields_dropped", med_id=med_id, fields=dropped)
        self._medications[index] = updated
        self.logger.info(
            "medication_updated", med_id=med_id, version=len(updated.history), fields=sorted(updates)
        )
        return updated

    @persists
    def stop(self, med_id: str) -> Medication | None:
        index = self._index_of(med_id)
        if index is None:
            return None

        stopped = self._medications[index].model_copy(update={"end_date": self.clock()})
        self._medications[index] = stopped
        self.logger.info("medication_stopped", med_id=med_id)
        return stopped

    def active(self) -> list[Medication]:
        return [m for m in self._medications if m.is_active]

    # -- missed doses ------------------------------------------------------

    def _matches(
        self, log: MedicationLog, med_id: str, day: date, dose_index: int | None = None
    ) -> bool:
        return (
            log.status == "missed"
            and log.med_id == med_id
            and log.date == day
            and (dose_index is None or log.dose_index == dose_index)
        )

    @persists
    def log_missed(self, med_id: str, dose_index: int, day: DayLike | None = None) -> MedicationLog:
        """Record that dose `dose_index` (0-based) of `med_id` was missed on `day`."""
        entry = MedicationLog(
            med_id=med_id,
            dose_index=dose_index,
            date=self._day(day),
            timestamp=self.clock(),
        )
        self._logs.append(entry)
        self.logger.info("dose_missed", med_id=med_id, dose_index=dose_index, date=str(entry.date))
        return entry

    def is_missed(self, med_id: str, dose_index: int, day: DayLike | None = None) -> bool:
        day = self._day(day)
        return any(self._matches(log, med_id, day, dose_index) for log in self._logs)

    @persists
    def remove_missed(self, med_id: str, dose_index: int, day: DayLike | None = None) -> bool:
        """Drop the first matching missed row, marking the dose as taken again."""
        day = self._day(day)
        for index, log in enumerate(self._logs):
            if self._matches(log, med_id, day, dose_index):
                del self._logs[index]
                self.logger.info("missed_dose_removed", med_id=med_id, dose_index=dose_index)
                return True
        return False

    def has_any_missed_today(self, med_id: str, day: DayLike | None = None) -> bool:
        day = self._day(day)
        return any(self._matches(log, med_id, day) for log in self._logs)
