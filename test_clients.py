"""Tests for the Jira and Tempo API clients (HTTP mocked via monkeypatch)."""

import json
from datetime import datetime, timedelta, timezone

import pytest
import requests

import clients
from clients import ApiError, JiraClient, TempoClient
from utils import Config

CONFIG = Config(
    base_url="https://example.atlassian.net",
    email="dev@example.com",
    api_token="jira-token",
    tempo_api_token="tempo-token",
)


class FakeResponse:
    def __init__(self, status=200, body=None, reason="OK"):
        self.status_code = status
        self.reason = reason
        self._body = body
        self.content = b"" if body is None else json.dumps(body).encode()

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


@pytest.fixture
def http(monkeypatch):
    """Queue of responses served by requests.request; records each call."""

    class Http:
        responses = []
        calls = []

        def request(self, method, url, **kwargs):
            self.calls.append((method, url, kwargs))
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response

    fake = Http()
    fake.responses = []
    fake.calls = []
    monkeypatch.setattr(clients.requests, "request", fake.request)
    return fake


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

class TestErrors:

    @pytest.mark.parametrize("status, not_found", [(404, True), (410, True), (401, False), (500, False)])
    def test_status_carried(self, http, status, not_found):
        http.responses.append(FakeResponse(status, {"errorMessages": ["nope"]}, reason="X"))
        with pytest.raises(ApiError) as exc:
            TempoClient(CONFIG).delete_worklog("1")
        assert exc.value.status_code == status
        assert exc.value.is_not_found is not_found
        assert "nope" in str(exc.value)

    def test_auth_message(self, http):
        http.responses.append(FakeResponse(401, None, reason="Unauthorized"))
        with pytest.raises(ApiError, match="Authentication failed"):
            JiraClient(CONFIG).get_myself()

    def test_unknown_status_uses_reason(self, http):
        http.responses.append(FakeResponse(418, None, reason="I'm a teapot"))
        with pytest.raises(ApiError, match="HTTP 418"):
            JiraClient(CONFIG).get_myself()

    def test_connection_error(self, http):
        http.responses.append(requests.exceptions.ConnectionError("down"))
        with pytest.raises(ApiError, match="Cannot connect") as exc:
            JiraClient(CONFIG).get_myself()
        assert exc.value.status_code is None

    def test_timeout(self, http):
        http.responses.append(requests.exceptions.Timeout("slow"))
        with pytest.raises(ApiError, match="timed out"):
            JiraClient(CONFIG).get_myself()

    def test_non_json_body(self, http):
        response = FakeResponse(200, None)
        response.content = b"<html>"
        http.responses.append(response)
        with pytest.raises(ApiError, match="not JSON"):
            JiraClient(CONFIG).get_myself()

    def test_tempo_requires_token(self):
        with pytest.raises(ApiError, match="TEMPO_API_TOKEN"):
            TempoClient(Config("https://x", "a@b", "t"))


# ---------------------------------------------------------------------------
# Jira
# ---------------------------------------------------------------------------

class TestJiraClient:

    def test_get_issue(self, http):
        http.responses.append(
            FakeResponse(
                200,
                {
                    "id": "10001",
                    "key": "PROJ-1",
                    "fields": {
                        "summary": "Do it",
                        "status": {"name": "In Progress"},
                        "project": {"key": "PROJ", "name": "Project"},
                    },
                },
            )
        )
        issue = JiraClient(CONFIG).get_issue("PROJ-1")
        assert (issue.id, issue.key, issue.summary, issue.status, issue.project_name) == (
            "10001",
            "PROJ-1",
            "Do it",
            "In Progress",
            "Project",
        )
        method, url, kwargs = http.calls[0]
        assert method == "GET"
        assert url == "https://example.atlassian.net/rest/api/3/issue/PROJ-1"
        assert kwargs["auth"] == ("dev@example.com", "jira-token")

    def test_add_worklog_sends_adf_comment(self, http):
        http.responses.append(FakeResponse(201, {"id": "555"}))
        started = datetime(2024, 1, 15, 9, 30, tzinfo=timezone(timedelta(hours=1)))
        JiraClient(CONFIG).add_worklog("PROJ-1", 5400, started, "Fixed bug")
        body = http.calls[0][2]["json"]
        assert body["timeSpentSeconds"] == 5400
        assert body["started"] == "2024-01-15T09:30:00.000+0100"
        assert body["comment"]["content"][0]["content"][0]["text"] == "Fixed bug"

    def test_recent_issues_search(self, http):
        http.responses.append(
            FakeResponse(200, {"issues": [{"id": "1", "key": "PROJ-1", "fields": {"summary": "A"}}]})
        )
        issues = JiraClient(CONFIG).get_my_recent_issues(max_results=3)
        assert [i.key for i in issues] == ["PROJ-1"]
        method, url, kwargs = http.calls[0]
        assert (method, url) == ("POST", "https://example.atlassian.net/rest/api/3/search/jql")
        assert kwargs["json"]["maxResults"] == 3
        assert "currentUser()" in kwargs["json"]["jql"]

    def test_delete_worklog_no_content(self, http):
        http.responses.append(FakeResponse(204))
        assert JiraClient(CONFIG).delete_worklog("PROJ-1", "555") is None
        assert http.calls[0][0] == "DELETE"
        assert http.calls[0][1].endswith("/rest/api/3/issue/PROJ-1/worklog/555")

    def test_active_sprint_uses_first_board(self, http):
        http.responses.append(FakeResponse(200, {"values": [{"id": 7, "name": "Board"}]}))
        http.responses.append(
            FakeResponse(200, {"values": [{"id": 3, "name": "Sprint 3", "state": "active", "startDate": "s"}]})
        )
        sprint = JiraClient(CONFIG).get_active_sprint()
        assert (sprint.id, sprint.name, sprint.start_date) == (3, "Sprint 3", "s")
        assert "/board/7/sprint" in http.calls[1][1]

    def test_no_active_sprint(self, http):
        http.responses.append(FakeResponse(200, {"values": []}))
        with pytest.raises(ApiError, match="No active sprint"):
            JiraClient(CONFIG).get_active_sprint(board_id=7)

    def test_sprints_paginated(self, http):
        http.responses.append(FakeResponse(200, {"values": [{"id": 1}, {"id": 2}], "isLast": False}))
        http.responses.append(FakeResponse(200, {"values": [{"id": 3}], "isLast": True}))
        sprints = JiraClient(CONFIG).get_sprints_for_board(7)
        assert [s.id for s in sprints] == [1, 2, 3]
        assert http.calls[1][2]["params"]["startAt"] == 2


# ---------------------------------------------------------------------------
# Tempo
# ---------------------------------------------------------------------------

class TestTempoClient:

    def test_bearer_auth_and_params(self, http):
        http.responses.append(FakeResponse(200, {"results": [], "metadata": {"count": 0}}))
        TempoClient(CONFIG).get_worklogs_page("acc-1", "2024-01-01", "2024-01-31", offset=50, limit=50)
        method, url, kwargs = http.calls[0]
        assert url == "https://api.tempo.io/4/worklogs/user/acc-1"
        assert kwargs["headers"]["Authorization"] == "Bearer tempo-token"
        assert kwargs["auth"] is None
        assert kwargs["params"] == {"from": "2024-01-01", "to": "2024-01-31", "offset": 50, "limit": 50}

    def test_create_worklog_body(self, http):
        http.responses.append(FakeResponse(200, {"tempoWorklogId": 1001, "jiraWorklogId": 2001}))
        started = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
        data = TempoClient(CONFIG).create_worklog("10001", "acc-1", 3600, started, "Review")
        assert data["tempoWorklogId"] == 1001
        body = http.calls[0][2]["json"]
        assert body == {
            "issueId": 10001,
            "authorAccountId": "acc-1",
            "timeSpentSeconds": 3600,
            "startDate": "2024-01-15",
            "startTime": "09:30:00",
            "description": "Review",
        }
