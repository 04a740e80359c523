"""
Scheduled weekly aggregation.

One run covers the Monday-Saturday week before the current one. For each
day and each dataset kind the job asks the file source for the exact daily
file name; an absent file marks the day missing, an unreadable file counts
as zero ages, and so does one whose bytes cannot be fetched. All are
recoverable. Only a store failure ends the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from fever_report.ages import find_ages_in_document
from fever_report.bands import build_counts, combine_counts, overall_ratio
from fever_report.config import Settings
from fever_report.filenames import DatasetKind, expected_file_name
from fever_report.issues import Issue, IssueKind, build_issue
from fever_report.loader import WorkbookReadError, read_document_bytes
from fever_report.store import RowStore, WeeklyReport, upsert_weekly_report
from fever_report.weeks import civil_timestamp, civil_today, previous_week_window


class FileSource:
    """Where daily exports are looked up by exact file name."""

    def fetch(self, name: str) -> bytes | None:
        raise NotImplementedError


class DirectoryFileSource(FileSource):
    def __init__(self, folder: "str | Path") -> None:
        self.folder = Path(folder)

    def fetch(self, name: str) -> bytes | None:
        path = self.folder / name
        if not path.is_file():
            return None
        return path.read_bytes()


@dataclass(frozen=True)
class JobResult:
    report: WeeklyReport
    replaced: bool
    files_found: tuple[str, ...] = ()
    read_failures: tuple[str, ...] = ()
    issues: tuple[Issue, ...] = field(default_factory=tuple)


def run_weekly_job(
    source: FileSource,
    store: RowStore,
    *,
    today: date | None = None,
    settings: Settings | None = None,
) -> JobResult:
    settings = settings or Settings()
    today = today or civil_today(settings.utc_offset_hours)
    window = previous_week_window(today)

    ages: dict[DatasetKind, list[int]] = {DatasetKind.VISIT: [], DatasetKind.FEVER: []}
    missing_days: list[str] = []
    files_found: list[str] = []
    read_failures: list[str] = []
    empty_files: list[str] = []

    for day in window.expected_strings():
        for kind in (DatasetKind.VISIT, DatasetKind.FEVER):
            name = expected_file_name(day, settings.suffix_for(kind), settings.file_extension)
            try:
                raw = source.fetch(name)
            except OSError:
                read_failures.append(name)
                continue
            if raw is None:
                if day not in missing_days:
                    missing_days.append(day)
                continue
            files_found.append(name)
            try:
                document = read_document_bytes(raw, Path(name).suffix)
            except (WorkbookReadError, ImportError):
                read_failures.append(name)
                continue
            scan = find_ages_in_document(document, settings.column_index)
            if not scan.found:
                empty_files.append(name)
            ages[kind].extend(scan.ages)

    groups = combine_counts(
        build_counts(ages[DatasetKind.VISIT]),
        build_counts(ages[DatasetKind.FEVER]),
    )
    total_visit = len(ages[DatasetKind.VISIT])
    total_fever = len(ages[DatasetKind.FEVER])
    report = WeeklyReport(
        week_start=window.week_start.isoformat(),
        week_end=window.week_end.isoformat(),
        total_visit=total_visit,
        total_fever=total_fever,
        overall_ratio=overall_ratio(total_visit, total_fever),
        groups=groups,
        missing_days=tuple(missing_days),
        created_at=civil_timestamp(settings.utc_offset_hours),
    )
    replaced = upsert_weekly_report(store, report)

    issues = []
    if missing_days:
        issues.append(build_issue(IssueKind.MISSING_WEEKDAY, missing_days))
    if read_failures:
        issues.append(build_issue(IssueKind.READ_FAILURE, read_failures))
    if empty_files:
        issues.append(build_issue(IssueKind.DATA_ABSENT, empty_files))

    return JobResult(
        report=report,
        replaced=replaced,
        files_found=tuple(files_found),
        read_failures=tuple(read_failures),
        issues=tuple(issues),
    )
