"""Fetch worklogs from Tempo and normalize them into WorklogRecords."""

import logging
from datetime import date, datetime, time, tzinfo

from models import Provenance, WorklogRecord
from timeparse import parse_to_seconds
from utils import extract_comment_text, parse_api_datetime

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000


def iso(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def normalize_envelope(payload) -> tuple[list[dict], dict | None]:
    """Split a Tempo response into (records, metadata).

    Tempo answers either with a bare list or with {"results": [...], "metadata": {...}}.
    Metadata is None for the bare-list shape.
    """
    if isinstance(payload, list):
        return [r for r in payload if isinstance(r, dict)], None
    if isinstance(payload, dict) and isinstance(payload.get("results"), list):
        meta = payload.get("metadata")
        return [r for r in payload["results"] if isinstance(r, dict)], meta if isinstance(meta, dict) else {}
    logger.debug("Unexpected worklog payload shape: %r", type(payload).__name__)
    return [], None


def _started(raw: dict, tz: tzinfo | None) -> datetime | None:
    if raw.get("started"):
        parsed = parse_api_datetime(str(raw["started"]))
        if parsed:
            return parsed
    start_date = raw.get("startDate")
    if not start_date:
        return None
    try:
        day = date.fromisoformat(str(start_date)[:10])
    except ValueError:
        return None
    start_time = time(0, 0)
    if raw.get("startTime"):
        try:
            start_time = time.fromisoformat(str(raw["startTime"]))
        except ValueError:
            logger.debug("Bad startTime %r, using midnight", raw["startTime"])
    naive = datetime.combine(day, start_time)
    # Tempo start dates/times are wall-clock values in the user's zone
    return naive.replace(tzinfo=tz) if tz else naive.astimezone()


def _seconds(raw: dict) -> int:
    value = raw.get("timeSpentSeconds")
    if isinstance(value, (int, float)):
        return max(int(value), 0)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    if isinstance(raw.get("timeSpent"), str):
        return parse_to_seconds(raw["timeSpent"])
    return 0


def normalize_record(raw: dict, tz: tzinfo | None = None) -> WorklogRecord | None:
    """Normalize one Tempo or Jira worklog. Returns None if it has no ID or date."""
    tempo_id = raw.get("tempoWorklogId")
    jira_id = raw.get("jiraWorklogId") or raw.get("id")
    tempo_id = str(tempo_id) if tempo_id not in (None, "") else None
    jira_id = str(jira_id) if jira_id not in (None, "") else None

    if tempo_id:
        primary, provenance = tempo_id, Provenance.TEMPO
        secondary = jira_id if jira_id and jira_id != tempo_id else None
    elif jira_id:
        primary, provenance, secondary = jira_id, Provenance.JIRA, None
    else:
        logger.debug("Skipping worklog without ID: %r", raw)
        return None

    started = _started(raw, tz)
    if started is None:
        logger.debug("Skipping worklog %s without start date", primary)
        return None

    issue = raw.get("issue") or {}
    issue_id = issue.get("id") or raw.get("issueId") or ""
    comment = raw.get("description")
    if comment is None:
        comment = raw.get("comment")

    return WorklogRecord(
        id=primary,
        secondary_id=secondary,
        time_spent_seconds=_seconds(raw),
        started=started,
        issue_id=str(issue_id),
        issue_key=issue.get("key") or "",
        comment=extract_comment_text(comment),
        provenance=provenance,
    )


def fetch_for_user(
    tempo,
    account_id: str,
    date_from: date,
    date_to: date,
    page_size: int = PAGE_SIZE,
    tz: tzinfo | None = None,
) -> list[WorklogRecord]:
    """Fetch all worklogs of a user for [date_from, date_to], following pagination."""
    records: list[WorklogRecord] = []
    seen: set[str] = set()
    offset = 0
    page = 0

    while True:
        payload = tempo.get_worklogs_page(account_id, iso(date_from), iso(date_to), offset, page_size)
        raw_records, meta = normalize_envelope(payload)
        page += 1

        new = 0
        for raw in raw_records:
            rec = normalize_record(raw, tz)
            if rec is None or rec.id in seen:
                continue
            seen.add(rec.id)
            records.append(rec)
            new += 1
        logger.debug("Worklog page %d: %d raw, %d new", page, len(raw_records), new)

        # Bare list: no pagination info
        if meta is None:
            break
        if not raw_records or new == 0:
            break
        offset += len(raw_records)

        if meta.get("isLast") is True:
            break
        total = meta.get("total")
        if total is not None:
            if offset >= int(total):
                break
        elif not meta.get("next"):
            break

    return records
