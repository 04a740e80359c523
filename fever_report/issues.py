"""
Shared fever-report issue taxonomy.

Every data-quality finding is an Issue with a kind from a closed set, so the
CLI, the dashboard and the weekly job can branch on the kind instead of on
message text.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable


class IssueKind(str, Enum):
    DATA_ABSENT = "data_absent"
    READ_FAILURE = "read_failure"
    NAMING_VIOLATION = "naming_violation"
    DATE_INVALID = "date_invalid"
    DUPLICATE_DATE = "duplicate_date"
    OUT_OF_WEEK_DATE = "out_of_week_date"
    MISSING_WEEKDAY = "missing_weekday"
    UPSTREAM_FETCH_FAILURE = "upstream_fetch_failure"


ISSUE_SEVERITY = {
    IssueKind.DATA_ABSENT: "warning",
    IssueKind.READ_FAILURE: "warning",
    IssueKind.NAMING_VIOLATION: "info",
    IssueKind.DATE_INVALID: "warning",
    IssueKind.DUPLICATE_DATE: "warning",
    IssueKind.OUT_OF_WEEK_DATE: "warning",
    IssueKind.MISSING_WEEKDAY: "warning",
    IssueKind.UPSTREAM_FETCH_FAILURE: "critical",
}

ISSUE_HEADINGS = {
    IssueKind.DATA_ABSENT: "No valid age data found",
    IssueKind.READ_FAILURE: "Files that could not be read",
    IssueKind.NAMING_VIOLATION: "File names not following YYYY-MM-DD_<suffix>.xlsx",
    IssueKind.DATE_INVALID: "File names with an invalid calendar date",
    IssueKind.DUPLICATE_DATE: "Duplicate dates",
    IssueKind.OUT_OF_WEEK_DATE: "Dates outside the reporting week",
    IssueKind.MISSING_WEEKDAY: "Missing weekdays",
    IssueKind.UPSTREAM_FETCH_FAILURE: "Report store unreachable",
}


@dataclass(frozen=True)
class Issue:
    kind: IssueKind
    message: str
    subjects: tuple[str, ...] = ()

    @property
    def severity(self) -> str:
        return ISSUE_SEVERITY[self.kind]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.kind.value,
            "severity": self.severity,
            "message": self.message,
            "subjects": list(self.subjects),
        }


def build_issue(kind: IssueKind, subjects: Iterable[str], *, label: str = "") -> Issue:
    """One summary issue for a category, listing its subjects comma-joined."""
    subjects = tuple(subjects)
    heading = ISSUE_HEADINGS[kind]
    if label:
        heading = f"[{label}] {heading}"
    return Issue(kind=kind, message=f"{heading}: {', '.join(subjects)}", subjects=subjects)
