"""
Upload file-name checks for daily exports.

Daily exports are named YYYY-MM-DD_<suffix>.xlsx (or .xls), where the suffix
tells the visit export (총환자수) from the fever export (발열환자수).
analyze_files() classifies a batch of parsed uploads of one kind and
summarises naming, date, duplicate, week and read problems as one warning
per category. Problems are advisory: every file's ages still count.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from fever_report.issues import Issue, IssueKind, build_issue
from fever_report.weeks import analyze_week_dates, parse_calendar_date

NAME_OK = "none"
NAME_PATTERN = "pattern"
NAME_DATE = "date"


class DatasetKind(str, Enum):
    VISIT = "visit"
    FEVER = "fever"

    @property
    def suffix(self) -> str:
        return DEFAULT_SUFFIXES[self]

    @property
    def label(self) -> str:
        return "visits" if self is DatasetKind.VISIT else "fevers"


DEFAULT_SUFFIXES = {
    DatasetKind.VISIT: "총환자수",
    DatasetKind.FEVER: "발열환자수",
}


@dataclass(frozen=True)
class ParsedFile:
    name: str
    ages: tuple[int, ...] = ()
    read_error: str | None = None
    source_label: str = ""


@dataclass(frozen=True)
class UploadedFileRecord:
    name: str
    extracted_date: str | None
    name_issue: str
    ages: tuple[int, ...]
    read_error: str | None
    source_label: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "extracted_date": self.extracted_date,
            "name_issue": self.name_issue,
            "age_count": len(self.ages),
            "read_error": self.read_error,
            "source_label": self.source_label,
        }


@dataclass(frozen=True)
class FileAnalysis:
    kind: DatasetKind
    validated_files: tuple[UploadedFileRecord, ...]
    issues: tuple[Issue, ...] = field(default_factory=tuple)

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues]

    @property
    def ages(self) -> list[int]:
        ages: list[int] = []
        for record in self.validated_files:
            ages.extend(record.ages)
        return ages

    @property
    def dates(self) -> list[str]:
        return [record.extracted_date for record in self.validated_files if record.extracted_date]


def file_name_pattern(suffix: str) -> re.Pattern:
    return re.compile(
        rf"^(\d{{4}})-(\d{{2}})-(\d{{2}})_{re.escape(suffix)}\.(xlsx|xls)$",
        re.IGNORECASE,
    )


def inspect_file_name(name: str, suffix: str) -> tuple[str, str | None]:
    """Return (name_issue, extracted_date) for one file name."""
    match = file_name_pattern(suffix).match(name.strip())
    if not match:
        return NAME_PATTERN, None
    date_text = f"{match.group(1)}-{match.group(2)}-{match.group(3)}"
    if parse_calendar_date(date_text) is None:
        return NAME_DATE, None
    return NAME_OK, date_text


def expected_file_name(date_text: str, suffix: str, extension: str = ".xlsx") -> str:
    return f"{date_text}_{suffix}{extension}"


def analyze_files(
    files: Sequence[ParsedFile],
    kind: DatasetKind,
    *,
    suffix: str | None = None,
) -> FileAnalysis:
    suffix = suffix or kind.suffix
    records: list[UploadedFileRecord] = []
    for item in files:
        name_issue, extracted_date = inspect_file_name(item.name, suffix)
        records.append(
            UploadedFileRecord(
                name=item.name,
                extracted_date=extracted_date,
                name_issue=name_issue,
                ages=tuple(item.ages),
                read_error=item.read_error,
                source_label=item.source_label,
            )
        )

    issues: list[Issue] = []
    label = kind.label

    pattern_names = [record.name for record in records if record.name_issue == NAME_PATTERN]
    if pattern_names:
        issues.append(build_issue(IssueKind.NAMING_VIOLATION, pattern_names, label=label))

    date_names = [record.name for record in records if record.name_issue == NAME_DATE]
    if date_names:
        issues.append(build_issue(IssueKind.DATE_INVALID, date_names, label=label))

    date_counts = Counter(record.extracted_date for record in records if record.extracted_date)
    duplicates = sorted(date_text for date_text, count in date_counts.items() if count > 1)
    if duplicates:
        issues.append(
            build_issue(
                IssueKind.DUPLICATE_DATE,
                [f"{date_text} ({date_counts[date_text]} files)" for date_text in duplicates],
                label=label,
            )
        )

    week = analyze_week_dates(date_counts.keys())
    if week and week.out_of_range:
        issues.append(build_issue(IssueKind.OUT_OF_WEEK_DATE, week.out_of_range, label=label))
    if week and week.missing_days:
        issues.append(build_issue(IssueKind.MISSING_WEEKDAY, week.missing_days, label=label))

    unreadable = [record.name for record in records if record.read_error]
    if unreadable:
        issues.append(build_issue(IssueKind.READ_FAILURE, unreadable, label=label))

    return FileAnalysis(kind=kind, validated_files=tuple(records), issues=tuple(issues))
