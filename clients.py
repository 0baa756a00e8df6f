"""API clients for Jira and Tempo."""

import logging
from datetime import datetime

import requests

from models import Issue, Sprint
from timeparse import format_jira_datetime
from utils import Config, to_adf

logger = logging.getLogger(__name__)

TEMPO_BASE_URL = "https://api.tempo.io/4"
NOT_FOUND_STATUSES = (404, 410)


class ApiError(Exception):
    """User-friendly API error."""

    def __init__(self, message: str, status_code: int | None = None, operation: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.operation = operation

    @property
    def is_not_found(self) -> bool:
        return self.status_code in NOT_FOUND_STATUSES


def _handle_api_error(response: requests.Response, service: str) -> str:
    """Convert HTTP errors to user-friendly messages."""
    status = response.status_code

    messages = {
        400: f"{service}: Bad request. Check the values you passed!",
        401: f"{service}: Authentication failed. Check your API token!",
        403: f"{service}: Access denied. Check your permissions or API token!",
        404: f"{service}: Resource not found. Check the ID or key!",
        429: f"{service}: Too many requests. Wait a moment and try again.",
        500: f"{service}: Server error. The service may be temporarily unavailable.",
        502: f"{service}: Bad gateway. The service may be temporarily unavailable.",
        503: f"{service}: Service unavailable. Try again later.",
    }

    message = messages.get(status, f"{service}: HTTP {status} - {response.reason}")
    detail = _error_detail(response)
    return f"{message} ({detail})" if detail else message


def _error_detail(response: requests.Response) -> str:
    """Pull Jira/Tempo error messages out of an error body, if any."""
    try:
        body = response.json()
    except ValueError:
        return ""
    if not isinstance(body, dict):
        return ""
    parts = list(body.get("errorMessages") or [])
    errors = body.get("errors")
    if isinstance(errors, dict):
        parts.extend(f"{k}: {v}" for k, v in errors.items())
    elif isinstance(errors, list):
        parts.extend(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
    if body.get("message"):
        parts.append(str(body["message"]))
    return "; ".join(parts)


class _BaseClient:
    service = ""
    host = ""

    def __init__(self, timeout: float | None = None):
        # No timeout by default; a hung call hangs the command
        self.timeout = timeout

    def _auth(self):
        return None

    def _auth_headers(self) -> dict:
        return {}

    def _request(self, method: str, url: str, operation: str, **kwargs):
        headers = {"Accept": "application/json", **self._auth_headers()}
        headers.update(kwargs.pop("headers", {}))
        logger.debug("%s %s (%s)", method, url, operation)
        try:
            r = requests.request(
                method,
                url,
                headers=headers,
                auth=self._auth(),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.ConnectionError:
            raise ApiError(
                f"{self.service}: Cannot connect to {self.host}. Check your network!",
                operation=operation,
            )
        except requests.exceptions.Timeout:
            raise ApiError(
                f"{self.service}: Connection timed out. The server may be slow.",
                operation=operation,
            )
        except requests.exceptions.RequestException as e:
            raise ApiError(f"{self.service}: {e}", operation=operation)

        if not r.ok:
            raise ApiError(_handle_api_error(r, self.service), r.status_code, operation)
        if r.status_code == 204 or not r.content:
            return None
        try:
            return r.json()
        except ValueError:
            raise ApiError(
                f"{self.service}: Unexpected response (not JSON) from {operation}.",
                r.status_code,
                operation,
            )


class JiraClient(_BaseClient):
    """Client for Jira REST API."""

    service = "Jira"

    def __init__(self, config: Config, timeout: float | None = None):
        super().__init__(timeout)
        self.base_url = config.base_url.rstrip("/")
        self.email = config.email
        self.token = config.api_token
        self.host = self.base_url

    def _auth(self):
        return (self.email, self.token)

    def get_myself(self) -> dict:
        """Get the current user (accountId, displayName, emailAddress)."""
        return self._request("GET", f"{self.base_url}/rest/api/3/myself", "get current user")

    def get_issue(self, key_or_id: str) -> Issue:
        """Fetch issue details (key, summary, status, project)."""
        data = self._request(
            "GET",
            f"{self.base_url}/rest/api/3/issue/{key_or_id}",
            f"get issue {key_or_id}",
            params={"fields": "summary,status,project"},
        )
        return Issue.from_api(data or {})

    def search_issues(self, jql: str, max_results: int = 10) -> list[Issue]:
        data = self._request(
            "POST",
            f"{self.base_url}/rest/api/3/search/jql",
            "search issues",
            json={"jql": jql, "maxResults": max_results, "fields": ["summary", "status", "project"]},
        )
        return [Issue.from_api(i) for i in (data or {}).get("issues", [])]

    def get_my_recent_issues(self, max_results: int = 5) -> list[Issue]:
        return self.search_issues("assignee = currentUser() ORDER BY updated DESC", max_results)

    def add_worklog(self, issue_key: str, seconds: int, started: datetime, comment: str = "") -> dict:
        """Create a worklog via Jira's native endpoint."""
        body = {"timeSpentSeconds": int(seconds), "started": format_jira_datetime(started)}
        if comment:
            body["comment"] = to_adf(comment)
        return self._request(
            "POST",
            f"{self.base_url}/rest/api/3/issue/{issue_key}/worklog",
            f"add worklog to {issue_key}",
            json=body,
        )

    def delete_worklog(self, issue_key: str, worklog_id: str) -> None:
        self._request(
            "DELETE",
            f"{self.base_url}/rest/api/3/issue/{issue_key}/worklog/{worklog_id}",
            f"delete Jira worklog {worklog_id}",
        )

    def get_boards(self) -> list[dict]:
        data = self._request("GET", f"{self.base_url}/rest/agile/1.0/board", "get boards")
        return (data or {}).get("values", [])

    def get_active_sprint(self, board_id: int | None = None) -> Sprint:
        """Active sprint of the given board, or of the first board."""
        if board_id is None:
            boards = self.get_boards()
            if not boards:
                raise ApiError("Jira: No boards found.", operation="get active sprint")
            board_id = boards[0]["id"]
        data = self._request(
            "GET",
            f"{self.base_url}/rest/agile/1.0/board/{board_id}/sprint",
            "get active sprint",
            params={"state": "active"},
        )
        values = (data or {}).get("values", [])
        if not values:
            raise ApiError("Jira: No active sprint found.", operation="get active sprint")
        return Sprint.from_api(values[0])

    def get_sprints_for_board(self, board_id: int) -> list[Sprint]:
        """All sprints (active, future, closed) of a board."""
        sprints: list[Sprint] = []
        start_at = 0
        while True:
            data = self._request(
                "GET",
                f"{self.base_url}/rest/agile/1.0/board/{board_id}/sprint",
                "get sprints",
                params={"state": "active,future,closed", "maxResults": 100, "startAt": start_at},
            ) or {}
            values = data.get("values", [])
            sprints.extend(Sprint.from_api(v) for v in values)

            # Handle pagination
            if data.get("isLast", True) or not values:
                break
            if data.get("total") is not None and len(sprints) >= data["total"]:
                break
            start_at += len(values)
        return sprints


class TempoClient(_BaseClient):
    """Client for Tempo REST API."""

    service = "Tempo"
    host = "api.tempo.io"

    def __init__(self, config: Config, base_url: str = TEMPO_BASE_URL, timeout: float | None = None):
        super().__init__(timeout)
        if not config.tempo_api_token:
            raise ApiError("Tempo: Missing TEMPO_API_TOKEN. Run `bookr init`.")
        self.token = config.tempo_api_token
        self.base_url = base_url.rstrip("/")

    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}

    def get_worklogs_page(
        self, account_id: str, date_from: str, date_to: str, offset: int = 0, limit: int = 1000
    ):
        """Fetch one page of worklogs for a user; returns the raw payload."""
        return self._request(
            "GET",
            f"{self.base_url}/worklogs/user/{account_id}",
            "fetch worklogs",
            params={"from": date_from, "to": date_to, "offset": offset, "limit": limit},
        )

    def create_worklog(
        self,
        issue_id: str,
        account_id: str,
        seconds: int,
        started: datetime,
        description: str = "",
    ) -> dict:
        body = {
            "issueId": int(issue_id),
            "authorAccountId": account_id,
            "timeSpentSeconds": int(seconds),
            "startDate": started.strftime("%Y-%m-%d"),
            "startTime": started.strftime("%H:%M:%S"),
            "description": description,
        }
        return self._request("POST", f"{self.base_url}/worklogs", "create worklog", json=body) or {}

    def delete_worklog(self, worklog_id: str) -> None:
        self._request("DELETE", f"{self.base_url}/worklogs/{worklog_id}", f"delete worklog {worklog_id}")

    def get_workload_scheme(self, account_id: str) -> dict:
        return self._request(
            "GET",
            f"{self.base_url}/workload-schemes/users/{account_id}",
            "get workload scheme",
        ) or {}
