"""
Durable key-value storage for the stores.

Key patterns:
- Protocol-based storage backends (in-memory for tests, JSON files on disk)
- Generic Result type so read/write failures are values, not exceptions
- Save-after-write decorator: every mutator is followed by a full snapshot write
"""

import json
import logging
import os
import tempfile
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

import structlog
from pydantic import BaseModel, ValidationError


def _processors(renderer: Any) -> list[Any]:
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


# Configure structured logging once for the whole package
structlog.configure(
    processors=_processors(structlog.processors.JSONRenderer()),
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

EPISODES_KEY = "episodes"
MEDICATIONS_KEY = "medications"
MEDICATION_LOGS_KEY = "medication_logs"
SETTINGS_KEY = "settings"

ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)


class Result(Generic[ValueT, ErrorT]):
    """
    Explicit error handling without exceptions for expected failures.

    Storage is allowed to fail (missing file, unreadable JSON, full disk);
    callers decide what the safe fallback is.
    """

    _UNSET: Any = object()

    def __init__(self, value: Any = _UNSET, error: ErrorT | None = None) -> None:
        if value is not Result._UNSET and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is Result._UNSET and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = None if value is Result._UNSET else value
        self._error: ErrorT | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error:
            raise self._error
        return self._value  # type: ignore

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


class KeyValueStorage(Protocol):
    """
    Flat string key-value sink, one JSON document per key.

    Implementations may raise on I/O problems; `load_json`/`save_json`
    turn those into Results.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStorage:
    """Dict-backed storage, lives as long as the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.write_count = 0

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value
        self.write_count += 1


class JsonFileStorage:
    """One `<key>.json` file per key inside a data directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)
        self.logger = logger.bind(component="json_file_storage", directory=str(self.directory))

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        # Write to a sibling temp file first so a crash never leaves half a document
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self.logger.debug("storage_key_written", key=key, size=len(value))


def load_json(storage: KeyValueStorage, key: str) -> Result[Any, Exception]:
    """Read and decode one key. A missing key is Ok(None)."""
    try:
        raw = storage.get(key)
        if raw is None:
            return Result.ok(None)
        return Result.ok(json.loads(raw))
    except (OSError, ValueError) as e:
        return Result.err(e)


def save_json(storage: KeyValueStorage, key: str, value: Any) -> Result[None, Exception]:
    try:
        storage.set(key, json.dumps(value, ensure_ascii=False))
        return Result.ok(None)
    except (OSError, TypeError, ValueError) as e:
        return Result.err(e)


ModelT = TypeVar("ModelT", bound=BaseModel)


def load_rows(
    storage: KeyValueStorage, key: str, model: type[ModelT], log: Any = logger
) -> tuple[list[ModelT], list[Any]]:
    """
    Load a JSON array, validating each row on its own.

    Returns `(valid, rejected)`. Rejected rows are kept as raw values so the
    caller can write them back unchanged; one bad row never costs the others.
    An unreadable or non-array document degrades to two empty lists.
    """
    result = load_json(storage, key)
    if result.is_err():
        log.error("storage_load_failed", key=key, error=str(result.unwrap_err()))
        return [], []

    raw = result.unwrap()
    if raw is None:
        return [], []
    if not isinstance(raw, list):
        error = f"expected a JSON array, got {type(raw).__name__}"
        log.error("storage_load_failed", key=key, error=error)
        return [], []

    valid: list[ModelT] = []
    rejected: list[Any] = []
    for position, row in enumerate(raw):
        try:
            valid.append(model.model_validate(row))
        except ValidationError as e:
            rejected.append(row)
            log.warning("storage_row_rejected", key=key, position=position, error=str(e))
    return valid, rejected


F = TypeVar("F", bound=Callable[..., Any])


def persists(method: F) -> F:
    """
    Run the store's `save()` right after the wrapped mutator returns.

    There is no batching: a burst of mutations causes one full write each.
    """

    @wraps(method)
    def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
        result = method(self, *args, **kwargs)
        self.save()
        return result

    return wrapper  # type: ignore[return-value]


def configure_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Apply the configured level and renderer (JSON for machines, console for people)."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))
    renderer = structlog.dev.ConsoleRenderer() if fmt == "console" else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=_processors(renderer),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
