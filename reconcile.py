"""Merge, deduplicate and group worklogs into one view."""

import logging
from dataclasses import replace
from datetime import date, tzinfo
from typing import Iterable, Mapping

from models import DayGroup, IssueRef, LedgerEntry, Provenance, UnifiedWorklogView, WorklogRecord

logger = logging.getLogger(__name__)


def local_date(record: WorklogRecord, tz: tzinfo | None = None) -> date:
    """Calendar date of the record's start in the display zone (not UTC)."""
    return record.started.astimezone(tz).date()


def _dedupe(records: Iterable[WorklogRecord]) -> list[WorklogRecord]:
    """Collapse records that share a Tempo or Jira ID.

    Tempo-identified records are claimed first so their ID stays canonical;
    a Jira-identified duplicate only contributes its ID as secondary reference.
    """
    ordered = sorted(enumerate(records), key=lambda p: p[1].provenance != Provenance.TEMPO)
    by_id: dict[str, WorklogRecord] = {}
    kept: list[tuple[int, WorklogRecord]] = []

    for position, rec in ordered:
        existing = next((by_id[i] for i in rec.ids if i in by_id), None)
        if existing is None:
            rec = replace(rec)
            kept.append((position, rec))
            for i in rec.ids:
                by_id[i] = rec
            continue

        logger.debug("Merging duplicate worklog %s into %s", rec.id, existing.id)
        for i in rec.ids - existing.ids:
            if existing.secondary_id is None:
                existing.secondary_id = i
            by_id[i] = existing
        if not existing.comment and rec.comment:
            existing.comment = rec.comment
        if not existing.issue_key and rec.issue_key:
            existing.issue_key = rec.issue_key

    # Restore input order (stable within a day)
    return [rec for _, rec in sorted(kept, key=lambda p: p[0])]


def reconcile(
    records: Iterable[WorklogRecord],
    enrichment: Mapping[str, IssueRef],
    ledger_entries: Iterable[LedgerEntry] = (),
    tz: tzinfo | None = None,
    newest_first: bool = False,
) -> UnifiedWorklogView:
    """Build a UnifiedWorklogView.

    Args:
        records: Normalized worklogs from the remote source
        enrichment: Issue ID -> IssueRef; missing IDs render as unknown issues
        ledger_entries: Local ledger entries for the same window, used as a
            fallback source of issue context; never counted on their own
        tz: Zone used for day grouping; defaults to the local zone
        newest_first: Order for interactive selection instead of reports
    """
    merged = _dedupe(records)
    ledger = list(ledger_entries)
    matched_ledger: set[str] = set()

    for rec in merged:
        ref = enrichment.get(rec.issue_id)
        if ref is not None:
            rec.issue_key = ref.key
            rec.issue_summary = ref.summary

        entry = next((e for e in ledger if e.ids & rec.ids), None)
        if entry is None:
            continue
        matched_ledger.add(entry.id)
        if not rec.issue_key:
            rec.issue_key = entry.issue_key
            rec.issue_summary = rec.issue_summary or entry.issue_summary
        if not rec.comment:
            rec.comment = entry.comment

    groups: dict[date, DayGroup] = {}
    for rec in merged:
        day = local_date(rec, tz)
        groups.setdefault(day, DayGroup(day=day)).records.append(rec)

    days = sorted(groups.values(), key=lambda g: g.day, reverse=newest_first)
    if newest_first:
        for g in days:
            g.records.sort(key=lambda r: r.started, reverse=True)

    unmatched = [e.id for e in ledger if e.id not in matched_ledger]
    if unmatched:
        logger.debug("Ledger entries without remote counterpart: %s", unmatched)
    return UnifiedWorklogView(days=days, unmatched_ledger_ids=unmatched)
