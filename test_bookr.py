"""Tests for the bookr command line (argument dispatch and command flows)."""

import json

import pytest

import bookr
from clients import ApiError
from models import Issue


class FakeJira:
    def get_myself(self):
        return {"accountId": "acc-1", "displayName": "Dev One"}

    def get_issue(self, key_or_id):
        if key_or_id == "PROJ-9":
            raise ApiError("Jira: Resource not found.", 404)
        return Issue(id="10001", key=key_or_id, summary="Branch work", status="Open", project_name="Project")


class FakeTempo:
    def __init__(self):
        self.deleted = []

    def create_worklog(self, issue_id, account_id, seconds, started, description=""):
        return {"tempoWorklogId": 1001, "jiraWorklogId": 2001}

    def delete_worklog(self, worklog_id):
        self.deleted.append(worklog_id)

    def get_worklogs_page(self, account_id, date_from, date_to, offset=0, limit=1000):
        return []


@pytest.fixture
def cli(monkeypatch, tmp_path):
    tempo = FakeTempo()
    monkeypatch.setattr(bookr, "_clients", lambda require_tempo: (FakeJira(), tempo))
    monkeypatch.setattr(bookr.gitbranch, "current_branch", lambda repo=".": "feature/PROJ-7/add-x")
    monkeypatch.setattr(bookr.gitbranch, "is_repository", lambda repo=".": True)
    monkeypatch.setattr(bookr, "ledger_path", lambda: tmp_path / "worklogs.json")
    return tempo


# ---------------------------------------------------------------------------
# Argument dispatch
# ---------------------------------------------------------------------------

class TestDispatch:

    @pytest.mark.parametrize(
        "argv, expected",
        [
            (["2h"], ["log", "2h"]),
            (["PROJ-1", "2h", "-m", "x"], ["log", "PROJ-1", "2h", "-m", "x"]),
            (["-d", "2024-01-15", "4h"], ["log", "-d", "2024-01-15", "4h"]),
            (["-m", "today", "2h"], ["log", "-m", "today", "2h"]),
            (["--message", "undo", "PROJ-1", "1h"], ["log", "--message", "undo", "PROJ-1", "1h"]),
            (["-d", "2024-01-15", "-m", "init", "4h"], ["log", "-d", "2024-01-15", "-m", "init", "4h"]),
            (["today"], ["today"]),
            (["--verbose", "today"], ["--verbose", "today"]),
            (["undo", "last"], ["undo", "last"]),
            (["--version"], ["--version"]),
            ([], []),
        ],
    )
    def test_default_command(self, argv, expected):
        assert bookr._with_default_command(argv) == expected

    def test_parse_log(self):
        args = bookr.build_parser().parse_args(["log", "PROJ-1", "2h", "-m", "msg", "-y"])
        assert (args.ticket, args.time, args.message, args.yes) == ("PROJ-1", "2h", "msg", True)

    def test_parse_undo(self):
        args = bookr.build_parser().parse_args(["undo", "--pick"])
        assert args.id is None and args.pick

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            bookr.main(["--version"])
        assert exc.value.code == 0
        assert bookr.__version__ in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Command flows
# ---------------------------------------------------------------------------

class TestLogAndUndo:

    def test_invalid_time_exits_non_zero(self, cli, capsys):
        assert bookr.main(["PROJ-1", "soon"]) == 2
        assert "Invalid time format" in capsys.readouterr().err

    def test_ticket_without_time(self, cli, capsys):
        assert bookr.main(["PROJ-1"]) == 2

    def test_log_from_branch_then_undo(self, cli, tmp_path, capsys):
        assert bookr.main(["2h", "-y", "-m", "Pairing"]) == 0
        out = capsys.readouterr().out
        assert "PROJ-7" in out
        assert "[+] Logged 2h" in out

        document = json.loads((tmp_path / "worklogs.json").read_text())
        assert document["lastWorklogId"] == "1001"
        assert document["worklogs"][0]["comment"] == "Pairing"

        assert bookr.main(["undo", "-y"]) == 0
        assert cli.deleted == ["1001"]
        assert "[+] Removed 2h from PROJ-7" in capsys.readouterr().out
        assert json.loads((tmp_path / "worklogs.json").read_text())["worklogs"] == []

    def test_undo_unknown_id_is_not_fatal(self, cli, capsys):
        assert bookr.main(["undo", "424242", "-y"]) == 0
        assert cli.deleted == []
        captured = capsys.readouterr()
        assert "[!]" in captured.err
        assert "not found" in captured.err
        assert "[!]" not in captured.out

    def test_message_that_looks_like_a_command(self, cli, capsys):
        assert bookr.main(["-m", "today", "2h", "-y"]) == 0
        assert "[+] Logged 2h on PROJ-7" in capsys.readouterr().out

    def test_non_key_ticket_uses_branch(self, cli, capsys):
        assert bookr.main(["foo", "1h", "-y"]) == 0
        assert "[+] Logged 1h on PROJ-7" in capsys.readouterr().out

    def test_issue_lookup_failure_goes_to_stderr(self, cli, capsys):
        assert bookr.main(["PROJ-9", "2h", "-y"]) == 0
        captured = capsys.readouterr()
        assert "[!] Issue PROJ-9 could not be loaded" in captured.err
        assert "Check the key" in captured.err
        assert "PROJ-9" not in captured.out
