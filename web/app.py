#!/usr/bin/env python3
from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import pandas as pd
import streamlit as st

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from fever_report.bands import CombinedReportNode, chart_rows, format_percent, report_rows
from fever_report.client import ReportsResult, ReportsView, fetch_reports
from fever_report.config import Settings, load_settings
from fever_report.store import WeeklyReport, WorkbookRowStore, query_reports
from fever_report.upload import analyze_upload

WEEKLY_MODE = "Weekly reports"
UPLOAD_MODE = "Upload files"


def ensure_state() -> None:
    st.session_state.setdefault("mode", WEEKLY_MODE)
    st.session_state.setdefault("reports_view", None)


def format_week_label(week_start: str, week_end: str) -> str:
    return f"{week_start} ~ {week_end}"


def band_table(groups) -> pd.DataFrame:
    rows = report_rows(groups)
    frame = pd.DataFrame(rows, columns=["level", "label", "total_count", "fever_count", "ratio"])
    frame["label"] = [("    " if level else "") + label for level, label in zip(frame["level"], frame["label"])]
    return frame.drop(columns=["level"]).rename(
        columns={
            "label": "Band",
            "total_count": "Total",
            "fever_count": "Fever",
            "ratio": "Fever ratio",
        }
    )


def chart_frame(groups) -> pd.DataFrame:
    rows = chart_rows(groups)
    frame = pd.DataFrame(rows, columns=["label", "ratio", "fever_count", "total_count"])
    return frame.set_index("label")


def load_reports(settings: Settings, store_path: str) -> ReportsResult:
    if settings.reports_endpoint:
        return fetch_reports(settings.reports_endpoint)
    path = Path(store_path)
    if not path.exists():
        return ReportsResult(error=f"Report store not found: {path}")
    payload = query_reports(WorkbookRowStore(path, settings.report_sheet))
    if "error" in payload:
        return ReportsResult(error=payload["error"])
    return ReportsResult(weeks=tuple(WeeklyReport.from_dict(item) for item in payload["weeks"]))


def reports_view(settings: Settings, store_path: str) -> ReportsView:
    view: Optional[ReportsView] = st.session_state.get("reports_view")
    if view is None or view.closed:
        view = ReportsView()
        with st.spinner("Loading reports..."):
            view.load(lambda: load_reports(settings, store_path))
        st.session_state["reports_view"] = view
    return view


def render_summary(total_visit: int, total_fever: int, ratio: float) -> None:
    metrics = st.columns(3)
    metrics[0].metric("Total visits", f"{total_visit:,}")
    metrics[1].metric("Total fevers", f"{total_fever:,}")
    metrics[2].metric("Overall fever ratio", format_percent(ratio))


def render_groups(groups) -> None:
    if not groups or not any(group.total_count or group.fever_count for group in groups):
        st.info("The table fills in once report data is available.")
        return
    st.dataframe(band_table(groups), hide_index=True, width="stretch")
    st.bar_chart(chart_frame(groups)[["ratio"]], y_label="Fever ratio (%)")
    flagged = [group.label for group in groups if group.fever_exceeds_total]
    if flagged:
        st.warning("More fevers than visits in: " + ", ".join(flagged) + ". Check the source files.")


def render_weekly(settings: Settings, store_path: str) -> None:
    view = reports_view(settings, store_path)
    if st.button("Reload"):
        view.close()
        st.session_state["reports_view"] = None
        st.rerun()

    if view.error:
        st.error(view.error)
        return
    if not view.weeks:
        st.info("No weekly reports stored yet.")
        return

    options = [report.week_start for report in view.weeks]
    labels = {report.week_start: format_week_label(report.week_start, report.week_end) for report in view.weeks}
    index = options.index(view.selected_week) if view.selected_week in options else 0
    view.selected_week = st.selectbox("Report week", options, index=index, format_func=labels.get)
    report = view.selected
    st.caption(f"{len(view.weeks)} reports stored" + (f" · last aggregated {report.created_at}" if report.created_at else ""))
    if report.missing_days:
        st.warning("No files for these days, counted as 0: " + ", ".join(report.missing_days))
    render_summary(report.total_visit, report.total_fever, report.overall_ratio)
    render_groups(report.groups)


def render_upload(settings: Settings) -> None:
    left, right = st.columns(2)
    visit_uploads = left.file_uploader(
        f"Visit files (YYYY-MM-DD_{settings.visit_suffix}.xlsx)",
        type=["xlsx", "xls"],
        accept_multiple_files=True,
    )
    fever_uploads = right.file_uploader(
        f"Fever files (YYYY-MM-DD_{settings.fever_suffix}.xlsx)",
        type=["xlsx", "xls"],
        accept_multiple_files=True,
    )
    if not visit_uploads and not fever_uploads:
        st.info("Upload mode analyzes files right away; weekly reports are aggregated separately.")
        return

    payload = analyze_upload(
        [(item.name, item.getvalue()) for item in visit_uploads or []],
        [(item.name, item.getvalue()) for item in fever_uploads or []],
        settings,
    )
    for kind, records in payload["files"].items():
        for record in records:
            if record["read_error"]:
                st.error(f"{record['name']}: {record['read_error']}")
            else:
                st.caption(f"{kind}: {record['name']} · {record['age_count']} ages · {record['source_label']}")
    for warning in payload["warnings"]:
        st.warning(warning)

    groups = tuple(CombinedReportNode.from_dict(item) for item in payload["groups"])
    render_summary(payload["total_visit"], payload["total_fever"], payload["overall_ratio"])
    render_groups(groups)


def main() -> None:
    st.set_page_config(page_title="fever-report", page_icon="🌡️", layout="wide")
    ensure_state()
    settings = load_settings()

    st.title("Visits and fevers by age band")
    st.caption("Weekly totals aggregate Monday-Saturday daily exports; upload mode is for a quick check.")
    store_path = st.sidebar.text_input("Report store", value="weekly_reports.xlsx")
    mode = st.radio("Data source", [WEEKLY_MODE, UPLOAD_MODE], horizontal=True, key="mode")

    if mode == WEEKLY_MODE:
        render_weekly(settings, store_path)
    else:
        render_upload(settings)


if __name__ == "__main__":
    main()
