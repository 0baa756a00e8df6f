"""Data models for bookr worklogs, issues and the local ledger."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from utils import parse_api_datetime


class Provenance(str, Enum):
    """Which system a worklog ID originates from."""

    TEMPO = "tempo"
    JIRA = "jira"


@dataclass(frozen=True)
class Issue:
    """A Jira issue, fetched once per command run."""

    id: str
    key: str
    summary: str
    status: str = ""
    project_key: str = ""
    project_name: str = ""

    @classmethod
    def from_api(cls, data: dict) -> "Issue":
        fields = data.get("fields") or {}
        project = fields.get("project") or {}
        status = fields.get("status") or {}
        return cls(
            id=str(data.get("id") or ""),
            key=data.get("key") or "",
            summary=fields.get("summary") or "",
            status=status.get("name") or "",
            project_key=project.get("key") or "",
            project_name=project.get("name") or "",
        )


@dataclass(frozen=True)
class IssueRef:
    """Display data for an issue resolved from its numeric ID."""

    key: str
    summary: str


@dataclass
class WorklogRecord:
    """One logged time entry, normalized regardless of origin."""

    id: str  # Tempo ID when present, else Jira ID
    time_spent_seconds: int
    started: datetime  # always timezone-aware
    issue_id: str
    provenance: Provenance
    secondary_id: str | None = None
    issue_key: str = ""
    issue_summary: str = ""
    comment: str = ""

    def __post_init__(self):
        self.time_spent_seconds = max(int(self.time_spent_seconds or 0), 0)

    @property
    def ids(self) -> set[str]:
        return {i for i in (self.id, self.secondary_id) if i}

    def matches(self, worklog_id: str) -> bool:
        return str(worklog_id) in self.ids


@dataclass
class LedgerEntry:
    """A worklog bookr created itself, persisted locally for undo."""

    id: str
    issue_key: str
    issue_id: str
    issue_summary: str
    time_spent_seconds: int
    started: str  # ISO-8601
    created_at: str  # ISO-8601, when bookr wrote it
    provenance: Provenance = Provenance.TEMPO
    secondary_id: str | None = None
    comment: str = ""
    author_display_name: str = ""

    @property
    def ids(self) -> set[str]:
        return {i for i in (self.id, self.secondary_id) if i}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "secondaryId": self.secondary_id,
            "issueKey": self.issue_key,
            "issueId": self.issue_id,
            "issueSummary": self.issue_summary,
            "timeSpentSeconds": self.time_spent_seconds,
            "started": self.started,
            "createdAt": self.created_at,
            "provenance": self.provenance.value,
            "comment": self.comment,
            "author": {"displayName": self.author_display_name},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LedgerEntry":
        author = data.get("author") or {}
        try:
            provenance = Provenance(data.get("provenance") or Provenance.TEMPO.value)
        except ValueError:
            provenance = Provenance.TEMPO
        return cls(
            id=str(data["id"]),
            secondary_id=str(data["secondaryId"]) if data.get("secondaryId") else None,
            issue_key=data.get("issueKey") or "",
            issue_id=str(data.get("issueId") or ""),
            issue_summary=data.get("issueSummary") or "",
            time_spent_seconds=max(int(data.get("timeSpentSeconds") or 0), 0),
            started=data.get("started") or "",
            created_at=data.get("createdAt") or "",
            provenance=provenance,
            comment=data.get("comment") or "",
            author_display_name=author.get("displayName") or "",
        )

    def to_record(self) -> WorklogRecord:
        """View this entry as a WorklogRecord (for display and deletion)."""
        # Unreadable timestamps (older ledger files) fall back to now
        started = parse_api_datetime(self.started) or datetime.now().astimezone()
        return WorklogRecord(
            id=self.id,
            secondary_id=self.secondary_id,
            time_spent_seconds=self.time_spent_seconds,
            started=started,
            issue_id=self.issue_id,
            issue_key=self.issue_key,
            issue_summary=self.issue_summary,
            comment=self.comment,
            provenance=self.provenance,
        )


@dataclass
class DayGroup:
    """Worklogs sharing a local calendar date."""

    day: date
    records: list[WorklogRecord] = field(default_factory=list)

    @property
    def total_seconds(self) -> int:
        return sum(r.time_spent_seconds for r in self.records)


@dataclass
class UnifiedWorklogView:
    """Deduplicated, date-grouped worklogs for one command run. Never persisted."""

    days: list[DayGroup] = field(default_factory=list)
    unmatched_ledger_ids: list[str] = field(default_factory=list)

    @property
    def records(self) -> list[WorklogRecord]:
        return [r for d in self.days for r in d.records]

    @property
    def total_seconds(self) -> int:
        return sum(d.total_seconds for d in self.days)

    @property
    def unique_issue_count(self) -> int:
        # Unknown issues still count, distinguished by their numeric ID
        return len({r.issue_key or f"#{r.issue_id}" for r in self.records})

    def find(self, worklog_id: str) -> WorklogRecord | None:
        for r in self.records:
            if r.matches(worklog_id):
                return r
        return None

    def __len__(self) -> int:
        return sum(len(d.records) for d in self.days)


@dataclass
class Sprint:
    """A Jira agile sprint."""

    id: int
    name: str
    state: str = ""
    start_date: str | None = None
    end_date: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "Sprint":
        return cls(
            id=int(data.get("id") or 0),
            name=data.get("name") or "",
            state=data.get("state") or "",
            start_date=data.get("startDate"),
            end_date=data.get("endDate"),
        )
