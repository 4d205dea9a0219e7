"""Bundled medicine reference list used to suggest names when adding a medication."""

import json
from importlib import resources

from epifriend.domain.models import Medicine


def load_bundled_medicines() -> list[Medicine]:
    raw = resources.files("epifriend.data").joinpath("medicines.json").read_text(encoding="utf-8")
    return [Medicine.model_validate(item) for item in json.loads(raw)]


class MedicineCatalog:
    def __init__(self, medicines: list[Medicine] | None = None) -> None:
        self.medicines = medicines if medicines is not None else load_bundled_medicines()

    def search(self, query: str | None) -> list[Medicine]:
        """Case-insensitive substring match on the name. An empty query returns everything."""
        if not query:
            return list(self.medicines)
        needle = query.lower()
        return [m for m in self.medicines if needle in m.name.lower()]
