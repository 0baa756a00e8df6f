"""Centralized regex patterns for issue keys, branches and durations."""

import re

BRANCH_CATEGORIES = ("feature", "bugfix", "hotfix", "release", "issue", "ticket")


class Patterns:
    """Regex patterns used throughout bookr."""

    # Jira issue key: PROJ-123, SUM25-176 (project prefix may contain digits)
    ISSUE_KEY = re.compile(r"^[A-Za-z][A-Za-z0-9]*-\d+$")

    # Branch with conventional prefix: feature/PROJ-123/add-x
    BRANCH_WITH_CATEGORY = re.compile(
        r"(?:^|/)(?:" + "|".join(BRANCH_CATEGORIES) + r")/([A-Za-z][A-Za-z0-9]*-\d+)(?:/.*)?",
        re.IGNORECASE,
    )

    # Bare key anywhere in a branch name: TEMP-789-notes
    BRANCH_BARE_KEY = re.compile(r"(?<![A-Za-z0-9])([A-Za-z][A-Za-z0-9]*-\d+)")

    # Date format: YYYY-MM-DD
    DATE_FORMAT = re.compile(r"^\d{4}-\d{2}-\d{2}$")

    # Durations: "2.5h", "2.5", "2h30m", "2h 30m", "2h", "45m"
    DECIMAL_HOURS = re.compile(r"^(\d+(?:\.\d+)?)h?$")
    HOURS_MINUTES = re.compile(r"^\d+h\s*\d+m$")
    HOURS_ONLY = re.compile(r"^\d+h$")
    MINUTES_ONLY = re.compile(r"^\d+m$")
    HOURS_PART = re.compile(r"(\d+)h")
    MINUTES_PART = re.compile(r"(\d+)m")
