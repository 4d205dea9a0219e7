"""
Wires storage, stores and the report together from an `AppConfig`.

Every front end (the CLI, tests, a future UI) goes through `EpiFriendApp`
so the stores share one storage backend and one notification queue.
"""

from collections.abc import Callable
from datetime import datetime

import structlog

from epifriend.config import AppConfig, get_config
from epifriend.domain.models import utc_now
from epifriend.services import (
    EpisodeStore,
    JsonFileStorage,
    KeyValueStorage,
    MedicationStore,
    MedicineCatalog,
    ReportGenerator,
    SettingsStore,
    ToastNotifier,
    Translator,
)
from epifriend.services.toast import Scheduler, timer_scheduler

logger = structlog.get_logger(__name__)


class EpiFriendApp:
    """All stores over a single storage backend."""

    def __init__(
        self,
        config: AppConfig | None = None,
        storage: KeyValueStorage | None = None,
        clock: Callable[[], datetime] = utc_now,
        scheduler: Scheduler = timer_scheduler,
    ) -> None:
        self.config = config or get_config()
        self.storage = storage or JsonFileStorage(self.config.storage.data_dir)
        prefix = self.config.storage.key_prefix

        self.episodes = EpisodeStore(self.storage, key_prefix=prefix, clock=clock)
        self.medications = MedicationStore(self.storage, key_prefix=prefix, clock=clock)
        self.settings = SettingsStore(self.storage, key_prefix=prefix)
        self.toasts = ToastNotifier(self.config.toast.default_duration_ms, scheduler=scheduler)
        self.medicines = MedicineCatalog()
        self.translator = Translator(self.config.report.locale)
        self.reports = ReportGenerator(
            self.episodes,
            self.medications,
            self.settings,
            self.translator,
            output_dir=self.config.report.output_dir,
            file_prefix=self.config.report.file_prefix,
            clock=clock,
        )

        logger.info(
            "app_initialized",
            environment=self.config.environment,
            episodes=len(self.episodes.episodes),
            medications=len(self.medications.medications),
        )
