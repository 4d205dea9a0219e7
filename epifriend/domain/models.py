"""
Domain models for the seizure diary and medication schedule.

Attribute names are snake_case; the persisted JSON keeps the camelCase keys
(`medId`, `doseIndex`, `startDate`, ...) through aliases, so existing data
files load unchanged.
"""

from collections.abc import Mapping
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, Literal, TypeVar
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel


def new_id() -> str:
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(UTC)


def by_field_name(model: type[BaseModel], data: Mapping[str, Any]) -> dict[str, Any]:
    """Rename aliased (camelCase) keys to attribute names; other keys pass through."""
    aliases = {f.alias: name for name, f in model.model_fields.items() if f.alias}
    return {aliases.get(key, key): value for key, value in data.items()}


ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_leniently(
    model: type[ModelT], data: Mapping[str, Any], base: Mapping[str, Any] | None = None
) -> tuple[ModelT, list[str]]:
    """
    Validate `{**base, **data}`, dropping keys of `data` that do not validate.

    A dropped key falls back to its value in `base`, or to the field default.
    Returns the instance and the names of the dropped keys. Errors that no key
    of `data` can be blamed for (a missing required field) still raise.
    """
    aliases = {f.alias: name for name, f in model.model_fields.items() if f.alias}
    remaining = by_field_name(model, data)
    dropped: list[str] = []
    while True:
        try:
            return model.model_validate({**(base or {}), **remaining}), dropped
        except ValidationError as e:
            blamed = {aliases.get(err["loc"][0], err["loc"][0]) for err in e.errors() if err["loc"]}
            bad = sorted(key for key in remaining if key in blamed)
            if not bad:
                raise
            dropped += bad
            remaining = {k: v for k, v in remaining.items() if k not in bad}


class StoredModel(BaseModel):
    """Base for everything written to durable storage."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True)

    def to_storage(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def by_field_name(cls, data: Mapping[str, Any]) -> dict[str, Any]:
        return by_field_name(cls, data)


class Episode(StoredModel):
    """A recorded seizure or other health event."""

    # Unknown keys from older or newer app versions are kept as-is
    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=new_id)
    timestamp: datetime = Field(default_factory=utc_now)
    type: str = "general"
    severity: str | None = None
    duration: str | None = None
    warning_symptoms: list[str] = Field(default_factory=list)
    during_symptoms: list[str] = Field(default_factory=list)
    after_symptoms: list[str] = Field(default_factory=list)
    triggers: list[str] = Field(default_factory=list)
    someone_witnessed: bool = False
    emergency_called: bool = False
    went_to_hospital: bool = False
    notes: str = ""

    @field_validator("severity", "duration", mode="before")
    @classmethod
    def _number_as_text(cls, value: Any) -> Any:
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("warning_symptoms", "during_symptoms", "after_symptoms", "triggers", mode="before")
    @classmethod
    def _as_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("someone_witnessed", "emergency_called", "went_to_hospital", mode="before")
    @classmethod
    def _none_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("type", "notes", mode="before")
    @classmethod
    def _none_is_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    @property
    def symptoms(self) -> list[str]:
        return [*self.warning_symptoms, *self.during_symptoms, *self.after_symptoms]


class MedicationFields(StoredModel):
    id: str = Field(default_factory=new_id)
    name: str
    dosage: str = ""
    frequency: int = Field(default=1, ge=1, description="Doses per day")
    times: list[str] = Field(default_factory=list)
    start_date: datetime = Field(default_factory=utc_now)
    end_date: datetime | None = None


class MedicationSnapshot(MedicationFields):
    """Prior state of a medication, archived when it was edited."""

    archived_at: datetime = Field(default_factory=utc_now)


class Medication(MedicationFields):
    """A medication on the schedule. `end_date` unset means still active."""

    history: list[MedicationSnapshot] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.end_date is None


class MedicationLog(StoredModel):
    """A dose that was not taken. No row for a dose means taken or unlogged."""

    id: str = Field(default_factory=new_id)
    med_id: str
    dose_index: int = Field(ge=0)
    date: date
    status: Literal["missed"] = "missed"
    timestamp: datetime = Field(default_factory=utc_now)


class SettingsSection(StoredModel):
    # Keys written by other app versions survive a load and save
    model_config = ConfigDict(extra="allow")


class Profile(SettingsSection):
    name: str = ""
    date_of_birth: str = ""


class EmergencyContacts(SettingsSection):
    contact_name: str = ""
    contact_phone: str = ""
    contact_relation: str = ""
    doctor_name: str = ""
    doctor_phone: str = ""
    neurologist_name: str = ""
    neurologist_phone: str = ""


class MedicalInfo(SettingsSection):
    allergies: list[str] = Field(default_factory=list)
    notes: str = ""


class Preferences(SettingsSection):
    language: str = "nl"


class Settings(SettingsSection):
    """User settings. Every sub-object has defaults so partial data backfills."""

    profile: Profile = Field(default_factory=Profile)
    emergency: EmergencyContacts = Field(default_factory=EmergencyContacts)
    medical: MedicalInfo = Field(default_factory=MedicalInfo)
    preferences: Preferences = Field(default_factory=Preferences)


class ToastType(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Toast(BaseModel):
    id: int
    type: ToastType = ToastType.SUCCESS
    message: str = ""
    visible: bool = True


class Medicine(BaseModel):
    """Entry of the bundled medicine reference list."""

    name: str
    dosages: list[str] = Field(default_factory=list)
    category: str = ""


class EpisodeDetailLevel(str, Enum):
    BASIC = "basic"
    FULL = "full"


class DateRange(BaseModel):
    """Calendar-day bounds, both inclusive. A missing bound is unbounded."""

    model_config = ConfigDict(populate_by_name=True)

    from_: date | None = Field(default=None, validation_alias=AliasChoices("from", "from_"))
    to: date | None = None

    def contains(self, day: date) -> bool:
        if self.from_ is not None and day < self.from_:
            return False
        if self.to is not None and day > self.to:
            return False
        return True


class ReportOptions(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    include_episodes: bool = True
    include_missed_meds: bool = True
    episode_detail_level: EpisodeDetailLevel = EpisodeDetailLevel.FULL
    include_patient_info: bool = True
    date_range: DateRange | None = None


class ReportResult(BaseModel):
    success: bool
    file_name: str
    path: str | None = None
