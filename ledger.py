"""Local ledger of worklogs created by bookr, used to speed up and guard undo.

The ledger is a convenience layer: every operation degrades to an empty or
no-op result when the storage cannot be read or written, so the remote
workflow is never blocked by it.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable

from models import LedgerEntry
from storage import JsonFileStorage, Storage

logger = logging.getLogger(__name__)

DEFAULT_CAP = 100
DEFAULT_RETENTION_DAYS = 30


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    return parsed if parsed.tzinfo else parsed.astimezone()


class Ledger:
    """Persisted, most-recent-first list of LedgerEntry plus a last-worklog pointer."""

    def __init__(
        self,
        storage: Storage,
        cap: int = DEFAULT_CAP,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        clock: Callable[[], datetime] = _now,
    ):
        self.storage = storage
        self.cap = cap
        self.retention_days = retention_days
        self.clock = clock

    @classmethod
    def at(cls, path, **kwargs) -> "Ledger":
        return cls(JsonFileStorage(path), **kwargs)

    # -- storage -----------------------------------------------------------

    def _load(self) -> dict:
        data = self.storage.read() or {}
        raw = data.get("worklogs")
        entries = []
        for item in raw if isinstance(raw, list) else []:
            try:
                entries.append(LedgerEntry.from_dict(item))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug("Dropping malformed ledger entry %r: %s", item, e)
        last = data.get("lastWorklogId")
        return {
            "worklogs": entries,
            "lastWorklogId": str(last) if last else None,
            "lastCleanup": data.get("lastCleanup") or "",
        }

    def _save(self, data: dict) -> bool:
        ok = self.storage.write(
            {
                "worklogs": [e.to_dict() for e in data["worklogs"]],
                "lastWorklogId": data["lastWorklogId"],
                "lastCleanup": data["lastCleanup"],
            }
        )
        if not ok:
            logger.debug("Ledger not saved (storage unavailable)")
        return ok

    # -- operations --------------------------------------------------------

    def record(self, entry: LedgerEntry) -> None:
        data = self._load()
        worklogs = [e for e in data["worklogs"] if not (e.ids & entry.ids)]
        worklogs.insert(0, entry)
        data["worklogs"] = worklogs[: self.cap]
        data["lastWorklogId"] = entry.id
        self._save(data)

    def entries(self) -> list[LedgerEntry]:
        return self._load()["worklogs"]

    def find_by_id(self, worklog_id: str) -> LedgerEntry | None:
        worklog_id = str(worklog_id)
        for e in self.entries():
            if worklog_id in e.ids:
                return e
        return None

    def find_last(self) -> LedgerEntry | None:
        data = self._load()
        last = data["lastWorklogId"]
        if not last:
            return None
        for e in data["worklogs"]:
            if e.id == last:
                return e
        # Pointer outlived its entry
        data["lastWorklogId"] = None
        self._save(data)
        return None

    def remove(self, worklog_id: str) -> bool:
        worklog_id = str(worklog_id)
        data = self._load()
        removed = [e for e in data["worklogs"] if worklog_id in e.ids]
        if not removed:
            return False
        data["worklogs"] = [e for e in data["worklogs"] if worklog_id not in e.ids]
        if data["lastWorklogId"] in {i for e in removed for i in e.ids}:
            data["lastWorklogId"] = None
        return self._save(data)

    def prune_older_than(self, days: int | None = None) -> int:
        """Drop entries created more than `days` ago; returns how many went."""
        days = self.retention_days if days is None else days
        data = self._load()
        now = self.clock()
        cutoff = now - timedelta(days=days)

        kept = []
        for e in data["worklogs"]:
            created = _parse(e.created_at)
            # Entries without a usable timestamp are kept
            if created is None or created >= cutoff:
                kept.append(e)
        removed = len(data["worklogs"]) - len(kept)

        data["lastCleanup"] = now.isoformat()
        if removed:
            data["worklogs"] = kept
            if data["lastWorklogId"] and not any(e.id == data["lastWorklogId"] for e in kept):
                data["lastWorklogId"] = None
            logger.info("Pruned %d ledger entries older than %d days", removed, days)
        if not self._save(data):
            return 0
        return removed

    def maybe_prune(self, interval_hours: int = 24) -> int:
        """Run the age sweep if the last one is older than `interval_hours`."""
        last = _parse(self._load()["lastCleanup"])
        if last and self.clock() - last < timedelta(hours=interval_hours):
            return 0
        return self.prune_older_than()

    def recent(self, days: int, today: date | None = None) -> list[LedgerEntry]:
        """Entries whose worklog started within the last `days` days."""
        today = today or datetime.now().astimezone().date()
        return self.between(today - timedelta(days=days), today)

    def between(self, date_from: date, date_to: date) -> list[LedgerEntry]:
        """Entries whose worklog started on a local date in [date_from, date_to]."""
        out = []
        for e in self.entries():
            started = _parse(e.started)
            if started and date_from <= started.astimezone().date() <= date_to:
                out.append(e)
        return out
