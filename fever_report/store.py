"""
Weekly report rows and the row stores that hold them.

A row store is a plain table: row 0 is the header, every other row one
weekly report. Upserts key on week_start. Reading goes through
parse_reports(), which tolerates legacy and hand-edited rows.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Sequence

from fever_report.bands import CombinedReportNode, overall_ratio
from fever_report.issues import ISSUE_HEADINGS, IssueKind

REPORT_COLUMNS = (
    "week_start",
    "week_end",
    "total_visit",
    "total_fever",
    "overall_ratio",
    "groups_json",
    "missing_days",
    "created_at",
)


class StoreError(RuntimeError):
    """The report store could not be reached, read or written."""


@dataclass(frozen=True)
class WeeklyReport:
    week_start: str
    week_end: str
    total_visit: int
    total_fever: int
    overall_ratio: float
    groups: tuple[CombinedReportNode, ...] = ()
    missing_days: tuple[str, ...] = ()
    created_at: str = ""

    def to_row(self) -> list[Any]:
        return [
            self.week_start,
            self.week_end,
            self.total_visit,
            self.total_fever,
            round(self.overall_ratio, 2),
            json.dumps([group.to_dict() for group in self.groups], ensure_ascii=False),
            json.dumps(list(self.missing_days), ensure_ascii=False),
            self.created_at,
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "weekStart": self.week_start,
            "weekEnd": self.week_end,
            "totalVisit": self.total_visit,
            "totalFever": self.total_fever,
            "overallRatio": self.overall_ratio,
            "groups": [group.to_dict() for group in self.groups],
            "missingDays": list(self.missing_days),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "WeeklyReport":
        total_visit = _number(payload.get("totalVisit"))
        total_fever = _number(payload.get("totalFever"))
        ratio = _finite_or_none(payload.get("overallRatio"))
        return cls(
            week_start=_text(payload.get("weekStart")),
            week_end=_text(payload.get("weekEnd")),
            total_visit=int(total_visit),
            total_fever=int(total_fever),
            overall_ratio=ratio if ratio is not None else overall_ratio(total_visit, total_fever),
            groups=parse_groups(payload.get("groups")),
            missing_days=tuple(parse_missing_days(payload.get("missingDays"))),
            created_at=_text(payload.get("createdAt")),
        )


class RowStore:
    """Row-oriented table. Row 0 is the header row."""

    def read_rows(self) -> list[list[Any]]:
        raise NotImplementedError

    def write_row(self, index: int, values: Sequence[Any]) -> None:
        raise NotImplementedError

    def append_row(self, values: Sequence[Any]) -> None:
        raise NotImplementedError


@dataclass
class MemoryRowStore(RowStore):
    rows: list[list[Any]] = field(default_factory=list)

    def read_rows(self) -> list[list[Any]]:
        return [list(row) for row in self.rows]

    def write_row(self, index: int, values: Sequence[Any]) -> None:
        self.rows[index] = list(values)

    def append_row(self, values: Sequence[Any]) -> None:
        self.rows.append(list(values))


class WorkbookRowStore(RowStore):
    """A sheet inside a local .xlsx workbook, created on first write."""

    def __init__(self, path: "str | Path", sheet_name: str = "weekly_reports") -> None:
        self.path = Path(path)
        self.sheet_name = sheet_name

    def _open(self):
        from openpyxl import Workbook, load_workbook

        if not self.path.exists():
            workbook = Workbook()
            workbook.active.title = self.sheet_name
            return workbook
        try:
            workbook = load_workbook(self.path)
        except Exception as exc:
            raise StoreError(f"Could not open report store {self.path}: {exc}") from exc
        if self.sheet_name not in workbook.sheetnames:
            workbook.create_sheet(self.sheet_name)
        return workbook

    def _save(self, workbook) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            workbook.save(self.path)
        except OSError as exc:
            raise StoreError(f"Could not write report store {self.path}: {exc}") from exc

    def read_rows(self) -> list[list[Any]]:
        if not self.path.exists():
            return []
        workbook = self._open()
        sheet = workbook[self.sheet_name]
        rows = [list(row) for row in sheet.iter_rows(values_only=True)]
        while rows and all(value in (None, "") for value in rows[-1]):
            rows.pop()
        return rows

    def write_row(self, index: int, values: Sequence[Any]) -> None:
        workbook = self._open()
        sheet = workbook[self.sheet_name]
        for col_idx, value in enumerate(values, start=1):
            sheet.cell(row=index + 1, column=col_idx, value=value)
        self._save(workbook)

    def append_row(self, values: Sequence[Any]) -> None:
        workbook = self._open()
        sheet = workbook[self.sheet_name]
        if sheet.max_row == 1 and all(cell.value is None for cell in sheet[1]):
            for col_idx, value in enumerate(values, start=1):
                sheet.cell(row=1, column=col_idx, value=value)
        else:
            sheet.append(list(values))
        self._save(workbook)


def upsert_weekly_report(store: RowStore, report: WeeklyReport) -> bool:
    """Replace the row for report.week_start, or append one. True when replaced."""
    rows = store.read_rows()
    if not rows:
        store.append_row(list(REPORT_COLUMNS))
        rows = [list(REPORT_COLUMNS)]

    header = [_text(value) for value in rows[0]]
    key_index = header.index("week_start") if "week_start" in header else 0
    values = _row_for_header(report, header)
    for index, row in enumerate(rows[1:], start=1):
        if len(row) > key_index and _text(row[key_index]) == report.week_start:
            store.write_row(index, values)
            return True
    store.append_row(values)
    return False


def _row_for_header(report: WeeklyReport, header: Sequence[str]) -> list[Any]:
    """report.to_row() reordered to match the sheet's own header."""
    if "week_start" not in header:
        return report.to_row()
    by_column = dict(zip(REPORT_COLUMNS, report.to_row()))
    return [by_column.get(column, "") for column in header]


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def _number(value: Any) -> float:
    number = _finite_or_none(value)
    return number if number is not None else 0


def _finite_or_none(value: Any) -> float | None:
    if value is None or isinstance(value, bool) or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_missing_days(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    text = str(value).strip()
    if not text:
        return []
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            return []
        return [str(item) for item in parsed] if isinstance(parsed, list) else []
    return [item.strip() for item in text.split(",") if item.strip()]


def parse_groups(value: Any) -> tuple[CombinedReportNode, ...]:
    if isinstance(value, str) and value.strip():
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return ()
    if not isinstance(value, list):
        return ()
    return tuple(CombinedReportNode.from_dict(item) for item in value if isinstance(item, dict))


def parse_reports(values: Sequence[Sequence[Any]]) -> list[WeeklyReport]:
    """Header-indexed rows -> reports, newest week first, rows without a week dropped."""
    if not values:
        return []
    header_index = {_text(header): index for index, header in enumerate(values[0])}

    def cell(row: Sequence[Any], key: str) -> Any:
        index = header_index.get(key)
        if index is None or index >= len(row):
            return ""
        return row[index]

    reports = []
    for row in values[1:]:
        total_visit = _number(cell(row, "total_visit"))
        total_fever = _number(cell(row, "total_fever"))
        ratio = _finite_or_none(cell(row, "overall_ratio"))
        reports.append(
            WeeklyReport(
                week_start=_text(cell(row, "week_start")),
                week_end=_text(cell(row, "week_end")),
                total_visit=int(total_visit),
                total_fever=int(total_fever),
                overall_ratio=ratio if ratio is not None else overall_ratio(total_visit, total_fever),
                groups=parse_groups(cell(row, "groups_json")),
                missing_days=tuple(parse_missing_days(cell(row, "missing_days"))),
                created_at=_text(cell(row, "created_at")),
            )
        )
    reports = [report for report in reports if report.week_start]
    reports.sort(key=lambda report: report.week_start, reverse=True)
    return reports


def query_reports(store: RowStore) -> dict[str, Any]:
    """{"weeks": [...]} newest first, or {"error": message}. Never raises."""
    try:
        values = store.read_rows()
    except Exception as exc:
        return {"error": f"{ISSUE_HEADINGS[IssueKind.UPSTREAM_FETCH_FAILURE]}: {exc}"}
    return {"weeks": [report.to_dict() for report in parse_reports(values)]}


def select_report(weeks: Sequence[WeeklyReport], week_start: str | None = None) -> WeeklyReport | None:
    if not weeks:
        return None
    for report in weeks:
        if week_start and report.week_start == week_start:
            return report
    return weeks[0]
