"""Storage handles for bookr's JSON documents (config and ledger)."""

import copy
import json
import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class Storage(Protocol):
    def read(self, strict: bool = False) -> dict | None:
        """Return the stored document, or None when absent or unreadable.

        With strict=True, parse errors propagate instead of yielding None.
        """

    def write(self, data: dict) -> bool:
        """Persist the document; return False when it could not be written."""


class JsonFileStorage:
    """A single JSON document on disk, replaced atomically on write."""

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def read(self, strict: bool = False) -> dict | None:
        if not self.path.exists():
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError:
            if strict:
                raise
            logger.debug("Ignoring unparseable %s", self.path)
            return None
        except OSError as e:
            logger.debug("Cannot read %s: %s", self.path, e)
            return None
        return data if isinstance(data, dict) else None

    def write(self, data: dict) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            logger.debug("Cannot write %s: %s", self.path, e)
            return False
        return True

    def __repr__(self) -> str:
        return f"JsonFileStorage({str(self.path)!r})"


class MemoryStorage:
    """In-memory storage, used by tests and dry runs."""

    def __init__(self, data: dict | None = None, readable: bool = True, writable: bool = True):
        self.data = copy.deepcopy(data) if data is not None else None
        self.readable = readable
        self.writable = writable
        self.writes = 0

    def read(self, strict: bool = False) -> dict | None:
        if not self.readable or self.data is None:
            return None
        return copy.deepcopy(self.data)

    def write(self, data: dict) -> bool:
        if not self.writable:
            return False
        self.data = copy.deepcopy(data)
        self.writes += 1
        return True
