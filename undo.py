"""Locate, confirm and delete a worklog, keeping the local ledger in step."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from clients import ApiError
from ledger import Ledger
from models import UnifiedWorklogView, WorklogRecord
from timeparse import seconds_to_display

logger = logging.getLogger(__name__)

WIDE_WINDOW_DAYS = 7
LAST = "last"


class UndoStatus(str, Enum):
    DELETED = "deleted"
    ALREADY_GONE = "already_gone"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"
    FAILED = "failed"
    NOTHING = "nothing"


@dataclass
class UndoResult:
    status: UndoStatus
    record: WorklogRecord | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (UndoStatus.DELETED, UndoStatus.ALREADY_GONE)


def describe(record: WorklogRecord) -> list[str]:
    """Detail lines shown before a destructive action."""
    issue = record.issue_key or f"(unknown issue #{record.issue_id})"
    summary = f" - {record.issue_summary}" if record.issue_summary else ""
    ids = record.id + (f" (also {record.secondary_id})" if record.secondary_id else "")
    lines = [
        f"    ID:      {ids} [{record.provenance.value}]",
        f"    Issue:   {issue}{summary}",
        f"    Time:    {seconds_to_display(record.time_spent_seconds)}",
    ]
    if record.comment:
        lines.append(f"    Comment: {record.comment}")
    lines.append(f"    Date:    {record.started.astimezone():%Y-%m-%d %H:%M}")
    return lines


class UndoOrchestrator:
    """Undo a worklog by ID, by the ledger's last pointer, or by selection.

    Args:
        ledger: Local ledger (fast path and cleanup target)
        load_view: (days_back, newest_first) -> UnifiedWorklogView over
            today and the `days_back` previous days
        delete: Deletes a record remotely; raises ApiError on failure
        confirm: Asks the user to confirm deleting a record
        choose: Lets the user pick from records; None means cancel
        out: Line printer
    """

    def __init__(
        self,
        ledger: Ledger,
        load_view: Callable[[int, bool], UnifiedWorklogView],
        delete: Callable[[WorklogRecord], None],
        confirm: Callable[[WorklogRecord], bool],
        choose: Callable[[list[WorklogRecord]], WorklogRecord | None],
        out: Callable[[str], None] = print,
    ):
        self.ledger = ledger
        self.load_view = load_view
        self.delete = delete
        self.confirm = confirm
        self.choose = choose
        self.out = out

    def undo(self, worklog_id: str | None = None, pick: bool = False) -> UndoResult:
        try:
            if worklog_id == LAST or (worklog_id is None and not pick):
                entry = self.ledger.find_last()
                if entry is not None:
                    worklog_id = entry.id
                elif worklog_id == LAST:
                    return UndoResult(
                        UndoStatus.NOTHING,
                        message="No last worklog recorded. Run `bookr undo --pick` to choose one.",
                    )

            if worklog_id is None:
                candidates = self._candidates()
                if not candidates:
                    return UndoResult(
                        UndoStatus.NOTHING,
                        message=f"No worklogs found today or in the last {WIDE_WINDOW_DAYS} days.",
                    )
                record = self.choose(candidates)
                if record is None:
                    return UndoResult(UndoStatus.CANCELLED, message="Nothing selected. No changes made.")
            else:
                record = self.locate(str(worklog_id))
                if record is None:
                    return UndoResult(
                        UndoStatus.NOT_FOUND,
                        message=(
                            f"Worklog {worklog_id} not found in the ledger, today or the last "
                            f"{WIDE_WINDOW_DAYS} days. Check the ID, or run `bookr undo --pick`."
                        ),
                    )
        except ApiError as e:
            return UndoResult(
                UndoStatus.FAILED,
                message=f"{e} Check your connection and credentials, then try again.",
            )

        return self._confirm_and_delete(record)

    def locate(self, worklog_id: str) -> WorklogRecord | None:
        """Find full context for an ID: ledger, then today, then the wide window."""
        entry = self.ledger.find_by_id(worklog_id)
        if entry is not None:
            logger.debug("Worklog %s found in ledger", worklog_id)
            return entry.to_record()

        for days in (0, WIDE_WINDOW_DAYS):
            record = self.load_view(days, True).find(worklog_id)
            if record is not None:
                logger.debug("Worklog %s found in %d-day window", worklog_id, days)
                return record
        return None

    def _candidates(self) -> list[WorklogRecord]:
        """Today's worklogs newest first, or the wide window's when today is empty."""
        view = self.load_view(0, True)
        if not len(view):
            self.out(f"[*] No worklogs today, looking back {WIDE_WINDOW_DAYS} days...")
            view = self.load_view(WIDE_WINDOW_DAYS, True)
        return view.records

    def _confirm_and_delete(self, record: WorklogRecord) -> UndoResult:
        self.out("[*] About to delete the following worklog:")
        for line in describe(record):
            self.out(line)

        if not self.confirm(record):
            return UndoResult(UndoStatus.CANCELLED, record, "Cancelled. No changes made.")

        try:
            self.delete(record)
        except ApiError as e:
            if e.is_not_found:
                self._forget(record)
                return UndoResult(
                    UndoStatus.ALREADY_GONE,
                    record,
                    f"Worklog {record.id} was already deleted remotely; removed it from the local ledger.",
                )
            return UndoResult(
                UndoStatus.FAILED,
                record,
                f"{e} Nothing was changed; check your permissions and retry `bookr undo {record.id}`.",
            )

        self._forget(record)
        return UndoResult(
            UndoStatus.DELETED,
            record,
            f"Removed {seconds_to_display(record.time_spent_seconds)} from {record.issue_key or record.issue_id}.",
        )

    def _forget(self, record: WorklogRecord) -> None:
        for worklog_id in record.ids:
            if self.ledger.remove(worklog_id):
                logger.debug("Removed %s from ledger", worklog_id)
