"""Determine which Jira issue a worklog belongs to."""

import logging

from clients import ApiError
from models import Issue
from patterns import Patterns

logger = logging.getLogger(__name__)


class NoIssueResolvableError(Exception):
    """Neither an explicit key nor the branch name yields an issue key."""

    def __init__(self, branch_name: str | None = None):
        self.branch_name = branch_name
        if branch_name:
            message = f"No issue key found in branch '{branch_name}'."
        else:
            message = "No issue key given and no Git branch detected."
        super().__init__(message)


class IssueLookupError(Exception):
    """The issue key was resolved but the issue could not be fetched."""

    def __init__(self, key: str, message: str, status_code: int | None = None):
        super().__init__(f"Issue {key} could not be loaded: {message}")
        self.key = key
        self.status_code = status_code


def looks_like_issue_key(text: str | None) -> bool:
    return bool(text) and bool(Patterns.ISSUE_KEY.match(text.strip()))


def extract_issue_key(branch: str | None) -> str | None:
    """Extract an issue key from a branch name.

    Examples:
        feature/PROJ-123/add-x -> PROJ-123
        bugfix/sum25-176/fix   -> SUM25-176
        TEMP-789-notes         -> TEMP-789
        main                   -> None
    """
    if not branch:
        return None
    for pattern in (Patterns.BRANCH_WITH_CATEGORY, Patterns.BRANCH_BARE_KEY):
        m = pattern.search(branch)
        if m:
            return m.group(1).upper()
    return None


def resolve_issue_key(explicit_key: str | None, branch_name: str | None) -> str:
    """An explicit argument shaped like an issue key wins; otherwise the branch decides."""
    if looks_like_issue_key(explicit_key):
        return explicit_key.strip().upper()
    if explicit_key and explicit_key.strip():
        logger.debug("Ignoring %r, not an issue key", explicit_key)
    key = extract_issue_key(branch_name)
    if key is None:
        raise NoIssueResolvableError(branch_name)
    logger.debug("Resolved %s from branch %r", key, branch_name)
    return key


def resolve(client, explicit_key: str | None, branch_name: str | None) -> Issue:
    """Resolve the key and fetch the issue once. Lookup failures are not retried."""
    key = resolve_issue_key(explicit_key, branch_name)
    try:
        return client.get_issue(key)
    except ApiError as e:
        raise IssueLookupError(key, str(e), e.status_code) from e
