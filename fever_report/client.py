"""
Reports endpoint client and the dashboard's report state.

fetch_reports() never raises: transport problems and non-2xx answers come
back as one human-readable error string. ReportsView applies a fetch result
only while it is still open and no newer load has started, so a late
answer cannot overwrite state the caller has already torn down.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Callable

import requests

from fever_report.store import WeeklyReport, select_report

LOAD_FAILED_MESSAGE = "Could not load report data."
DEFAULT_TIMEOUT = 30


@dataclass(frozen=True)
class ReportsResult:
    weeks: tuple[WeeklyReport, ...] = ()
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


def fetch_reports(
    endpoint: str,
    session: requests.Session | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> ReportsResult:
    http = session or requests
    try:
        response = http.get(endpoint, timeout=timeout, headers={"Accept": "application/json"})
    except requests.RequestException as exc:
        return ReportsResult(error=f"{LOAD_FAILED_MESSAGE} ({exc})")

    if not response.ok:
        return ReportsResult(error=f"{LOAD_FAILED_MESSAGE} (HTTP {response.status_code})")

    try:
        payload = response.json()
    except ValueError:
        return ReportsResult(error=f"{LOAD_FAILED_MESSAGE} (response was not JSON)")

    if not isinstance(payload, dict):
        return ReportsResult(error=f"{LOAD_FAILED_MESSAGE} (unexpected response shape)")
    if payload.get("error"):
        return ReportsResult(error=str(payload["error"]))

    weeks = payload.get("weeks")
    if not isinstance(weeks, list):
        weeks = []
    reports = [WeeklyReport.from_dict(item) for item in weeks if isinstance(item, dict)]
    reports = [report for report in reports if report.week_start]
    reports.sort(key=lambda report: report.week_start, reverse=True)
    return ReportsResult(weeks=tuple(reports))


@dataclass
class ReportsView:
    weeks: tuple[WeeklyReport, ...] = ()
    selected_week: str = ""
    error: str = ""
    loading: bool = False
    closed: bool = False
    _generation: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def begin(self) -> int:
        with self._lock:
            self._generation += 1
            self.loading = True
            self.error = ""
            return self._generation

    def apply(self, generation: int, result: ReportsResult) -> bool:
        """Apply a result from load number `generation`; False when it was discarded."""
        with self._lock:
            if self.closed or generation != self._generation:
                return False
            self.loading = False
            if result.error:
                self.error = result.error
                self.weeks = ()
                return True
            self.weeks = result.weeks
            if not self.selected_week and result.weeks:
                self.selected_week = result.weeks[0].week_start
            return True

    def load(self, fetcher: Callable[[], ReportsResult]) -> bool:
        generation = self.begin()
        return self.apply(generation, fetcher())

    def close(self) -> None:
        with self._lock:
            self.closed = True
            self.loading = False

    @property
    def selected(self) -> WeeklyReport | None:
        return select_report(self.weeks, self.selected_week)
