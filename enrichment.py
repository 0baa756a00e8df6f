"""Resolve issue IDs to key/summary with bounded concurrency."""

import asyncio
import logging
from typing import Callable, Iterable

from models import IssueRef

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5


async def enrich(
    issue_ids: Iterable[str],
    lookup: Callable[[str], IssueRef],
    concurrency: int = DEFAULT_CONCURRENCY,
) -> dict[str, IssueRef]:
    """Look up each unique issue ID once, at most `concurrency` at a time.

    Args:
        issue_ids: Issue IDs, duplicates and empty values allowed
        lookup: Blocking callable returning an IssueRef for an ID
        concurrency: Number of workers sharing the work cursor

    Returns:
        Mapping ID -> IssueRef. IDs whose lookup failed are absent.
    """
    unique = list(dict.fromkeys(str(i) for i in issue_ids if i))
    results: dict[str, IssueRef] = {}
    if not unique:
        return results

    cursor = iter(unique)

    async def worker(n: int) -> None:
        # next() on a shared iterator is safe: workers only switch at await
        for issue_id in cursor:
            try:
                results[issue_id] = await asyncio.to_thread(lookup, issue_id)
            except Exception as e:
                logger.debug("Worker %d: lookup of issue %s failed: %s", n, issue_id, e)

    workers = min(max(concurrency, 1), len(unique))
    await asyncio.gather(*(worker(n) for n in range(workers)))
    logger.debug("Enriched %d/%d issues", len(results), len(unique))
    return results


def jira_lookup(jira) -> Callable[[str], IssueRef]:
    """Build a lookup function backed by JiraClient.get_issue."""

    def lookup(issue_id: str) -> IssueRef:
        issue = jira.get_issue(issue_id)
        return IssueRef(key=issue.key, summary=issue.summary)

    return lookup
