"""Command orchestration: fetch, enrich and reconcile views; create and delete worklogs."""

import asyncio
import logging
from datetime import date, datetime, timezone, tzinfo

from clients import ApiError, JiraClient, TempoClient
from enrichment import enrich, jira_lookup
from ledger import Ledger
from models import Issue, LedgerEntry, Provenance, UnifiedWorklogView, WorklogRecord
from reconcile import reconcile
from worklogs import fetch_for_user

logger = logging.getLogger(__name__)


async def load_view(
    jira: JiraClient,
    tempo: TempoClient | None,
    account_id: str,
    date_from: date,
    date_to: date,
    ledger: Ledger | None = None,
    newest_first: bool = False,
    tz: tzinfo | None = None,
) -> UnifiedWorklogView:
    """Fetch the user's worklogs for [date_from, date_to] and build a view.

    A fetch failure raises ApiError before anything is rendered. Enrichment
    failures only leave issues unresolved.
    """
    if tempo is None:
        raise ApiError("Tempo: Missing TEMPO_API_TOKEN. Run `bookr init` to add one.", operation="fetch worklogs")

    logger.debug("Fetching worklogs %s..%s", date_from, date_to)
    records = await asyncio.to_thread(fetch_for_user, tempo, account_id, date_from, date_to, tz=tz)

    logger.debug("Enriching %d worklogs", len(records))
    refs = await enrich((r.issue_id for r in records), jira_lookup(jira))

    entries = ledger.between(date_from, date_to) if ledger is not None else []
    return reconcile(records, refs, entries, tz=tz, newest_first=newest_first)


def create_worklog(
    jira: JiraClient,
    tempo: TempoClient | None,
    issue: Issue,
    seconds: int,
    started: datetime,
    comment: str = "",
    ledger: Ledger | None = None,
    author: dict | None = None,
) -> LedgerEntry:
    """Create a worklog (Tempo when configured, else Jira) and record it locally.

    Args:
        author: Jira user payload (accountId, displayName), fetched if omitted

    Returns:
        The LedgerEntry describing the created worklog.
    """
    if started.tzinfo is None:
        started = started.astimezone()

    if tempo is not None:
        author = author or jira.get_myself()
        data = tempo.create_worklog(issue.id, author.get("accountId", ""), seconds, started, comment)
        tempo_id = data.get("tempoWorklogId")
        jira_id = data.get("jiraWorklogId")
        if tempo_id is None:
            raise ApiError("Tempo: Worklog created but no ID returned.", operation="create worklog")
        worklog_id, provenance = str(tempo_id), Provenance.TEMPO
        secondary = str(jira_id) if jira_id else None
    else:
        data = jira.add_worklog(issue.key, seconds, started, comment) or {}
        if not data.get("id"):
            raise ApiError("Jira: Worklog created but no ID returned.", operation="add worklog")
        worklog_id, provenance = str(data["id"]), Provenance.JIRA
        secondary = None
        author = author or data.get("author") or {}

    entry = LedgerEntry(
        id=worklog_id,
        secondary_id=secondary,
        issue_key=issue.key,
        issue_id=issue.id,
        issue_summary=issue.summary,
        time_spent_seconds=int(seconds),
        started=started.isoformat(),
        created_at=datetime.now(timezone.utc).isoformat(),
        provenance=provenance,
        comment=comment,
        author_display_name=(author or {}).get("displayName", ""),
    )
    if ledger is not None:
        ledger.record(entry)
    logger.info("Created %s worklog %s on %s", provenance.value, worklog_id, issue.key)
    return entry


def delete_record(jira: JiraClient, tempo: TempoClient | None, record: WorklogRecord) -> None:
    """Delete a worklog through the API it was created with."""
    if record.provenance == Provenance.TEMPO:
        if tempo is None:
            raise ApiError(
                "Tempo: This worklog was created via Tempo but no TEMPO_API_TOKEN is configured.",
                operation="delete worklog",
            )
        tempo.delete_worklog(record.id)
        return

    issue = record.issue_key or record.issue_id
    if not issue:
        raise ApiError(f"Jira: Worklog {record.id} has no issue reference.", operation="delete worklog")
    jira.delete_worklog(issue, record.id)
