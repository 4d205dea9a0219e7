"""Message catalogs for the report and the CLI, one JSON file per locale."""

import json
from datetime import date, datetime
from functools import lru_cache
from importlib import resources
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

DEFAULT_LOCALE = "nl"
SUPPORTED_LOCALES = ("nl", "en")


@lru_cache
def load_catalog(locale: str) -> dict[str, Any]:
    path = resources.files("epifriend.data.locales").joinpath(f"{locale}.json")
    return json.loads(path.read_text(encoding="utf-8"))


class Translator:
    """
    Dotted-key lookup with `{param}` interpolation.

    A missing key translates to the key itself so gaps show up in the output
    instead of failing the caller.
    """

    def __init__(self, locale: str = DEFAULT_LOCALE) -> None:
        if locale not in SUPPORTED_LOCALES:
            logger.warning("unsupported_locale", locale=locale, fallback=DEFAULT_LOCALE)
            locale = DEFAULT_LOCALE
        self.locale = locale
        self.catalog = load_catalog(locale)

    def _lookup(self, key: str) -> Any:
        node: Any = self.catalog
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def t(self, key: str, **params: Any) -> str:
        template = self._lookup(key)
        if not isinstance(template, str):
            return key
        try:
            return template.format(**params)
        except (KeyError, IndexError):
            return template

    __call__ = t

    def format_date(self, value: date) -> str:
        return value.strftime(self.t("formats.date"))

    def format_time(self, value: datetime) -> str:
        return value.strftime(self.t("formats.time"))

    def format_datetime(self, value: datetime) -> str:
        return value.strftime(self.t("formats.datetime"))
