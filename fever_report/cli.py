from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import date
from pathlib import Path
from typing import Any

from fever_report import __version__ as TOOL_VERSION
from fever_report.bands import CombinedReportNode, format_percent, report_rows
from fever_report.client import fetch_reports
from fever_report.config import DEFAULT_CONFIG_NAME, ConfigError, Settings, load_settings, starter_config
from fever_report.contracts import build_contract, build_run_summary
from fever_report.job import DirectoryFileSource, run_weekly_job
from fever_report.loader import WorkbookReadError
from fever_report.store import (
    StoreError,
    WeeklyReport,
    WorkbookRowStore,
    parse_reports,
    select_report,
)
from fever_report.upload import analyze_upload, read_upload_paths
from fever_report.weeks import analyze_week_dates, parse_calendar_date

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_DATA_WARNINGS = 3
EXIT_UPSTREAM_FAILED = 6

TODAY_ENV = "FEVER_REPORT_TODAY"


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class FeverReportArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_text(path: Path, payload: str) -> None:
    ensure_parent(path)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def classify_backend_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, StoreError):
        return EXIT_UPSTREAM_FAILED
    if isinstance(exc, (ImportError, WorkbookReadError)):
        return EXIT_PARSE_FAILED
    if isinstance(exc, (FileNotFoundError, ConfigError)):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, ValueError):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def settings_from_args(args: argparse.Namespace) -> Settings:
    return load_settings(getattr(args, "config", None))


def resolve_today(raw: str | None) -> date | None:
    raw = raw or os.environ.get(TODAY_ENV)
    if not raw:
        return None
    parsed = parse_calendar_date(raw)
    if parsed is None:
        raise CliError(f"Invalid date '{raw}'. Expected YYYY-MM-DD.", EXIT_COMMAND_ERROR)
    return parsed


def render_band_table(groups: list[CombinedReportNode] | tuple[CombinedReportNode, ...]) -> list[str]:
    lines = [f"{'Band':<14}{'Total':>8}{'Fever':>8}{'Ratio':>9}"]
    for row in report_rows(groups):
        label = ("  " if row["level"] else "") + row["label"]
        lines.append(f"{label:<14}{row['total_count']:>8}{row['fever_count']:>8}{row['ratio']:>9}")
    return lines


def render_weekly_report_text(report: WeeklyReport) -> str:
    lines = [
        "fever-report weekly",
        f"Week: {report.week_start} ~ {report.week_end}",
        f"Total visits: {report.total_visit}",
        f"Total fevers: {report.total_fever}",
        f"Overall ratio: {format_percent(report.overall_ratio)}",
    ]
    if report.created_at:
        lines.append(f"Aggregated at: {report.created_at}")
    if report.missing_days:
        lines.append(f"Missing days (counted as 0): {', '.join(report.missing_days)}")
    lines.append("")
    lines.extend(render_band_table(report.groups))
    return "\n".join(lines) + "\n"


def render_upload_text(payload: dict[str, Any]) -> str:
    lines = [
        "fever-report upload",
        f"Total visits: {payload['total_visit']}",
        f"Total fevers: {payload['total_fever']}",
        f"Overall ratio: {format_percent(payload['overall_ratio'])}",
    ]
    week = payload.get("week")
    if week:
        lines.append(f"Week: {week['week_start']} ~ {week['week_end']}")
    for kind, records in payload["files"].items():
        for record in records:
            status = record["read_error"] or f"{record['age_count']} ages from {record['source_label']}"
            lines.append(f"[{kind}] {record['name']}: {status}")
    lines.append("")
    lines.extend(render_band_table([CombinedReportNode.from_dict(group) for group in payload["groups"]]))
    if payload["warnings"]:
        lines.append("")
        lines.append("Warnings:")
        lines.extend(f"- {warning}" for warning in payload["warnings"])
    return "\n".join(lines) + "\n"


def build_parser() -> argparse.ArgumentParser:
    parser = FeverReportArgumentParser(prog="fever-report", description="Age-band fever ratio reports from daily Excel exports.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Analyze uploaded visit and fever files right away.")
    upload.add_argument("--visit", nargs="*", default=[], help="Visit export files (YYYY-MM-DD_총환자수.xlsx)")
    upload.add_argument("--fever", nargs="*", default=[], help="Fever export files (YYYY-MM-DD_발열환자수.xlsx)")
    upload.add_argument("--output", help="Write the JSON report to this path")
    upload.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    upload.add_argument("--config", help="JSON settings file")
    upload.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    aggregate = subparsers.add_parser("aggregate", help="Aggregate last week's daily files into the report store.")
    aggregate.add_argument("--source", required=True, help="Folder holding the daily exports")
    aggregate.add_argument("--store", required=True, help="Report store workbook (.xlsx)")
    aggregate.add_argument("--today", help=f"Run as if today were this date (YYYY-MM-DD); also {TODAY_ENV}")
    aggregate.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    aggregate.add_argument("--config", help="JSON settings file")
    aggregate.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    aggregate.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    reports = subparsers.add_parser("reports", help="Show a stored weekly report.")
    source = reports.add_mutually_exclusive_group()
    source.add_argument("--store", help="Report store workbook (.xlsx)")
    source.add_argument("--url", help="Reports endpoint returning {\"weeks\": [...]}; defaults to the reports_endpoint setting")
    reports.add_argument("--week", help="Week start (YYYY-MM-DD); defaults to the most recent week")
    reports.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    reports.add_argument("--config", help="JSON settings file")
    reports.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")

    week = subparsers.add_parser("week", help="Check which Monday-Saturday week a set of dates belongs to.")
    week.add_argument("dates", nargs="+", help="Dates (YYYY-MM-DD)")
    week.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default=DEFAULT_CONFIG_NAME, help="Config output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def run_upload(args: argparse.Namespace) -> int:
    if not args.visit and not args.fever:
        raise CliError("Give at least one --visit or --fever file.", EXIT_COMMAND_ERROR)
    try:
        settings = settings_from_args(args)
        visit_uploads = read_upload_paths(args.visit)
        fever_uploads = read_upload_paths(args.fever)
        payload = analyze_upload(visit_uploads, fever_uploads, settings)
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)

    if args.output:
        payload["run_summary"]["output"] = args.output
        write_json(Path(args.output), payload)
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(render_upload_text(payload).rstrip(), quiet=args.quiet)
        if args.output:
            emit_human(f"Report written: {args.output}", quiet=args.quiet)
    return EXIT_DATA_WARNINGS if payload["warnings"] else EXIT_SUCCESS


def run_aggregate(args: argparse.Namespace) -> int:
    source_dir = Path(args.source)
    if not source_dir.is_dir():
        eprint(f"Source folder not found: {source_dir}")
        return EXIT_COMMAND_ERROR
    try:
        settings = settings_from_args(args)
        today = resolve_today(args.today)
        store = WorkbookRowStore(args.store, settings.report_sheet)
        result = run_weekly_job(DirectoryFileSource(source_dir), store, today=today, settings=settings)
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)

    warnings = [issue.message for issue in result.issues]
    contract = build_contract("fever_report.weekly")
    payload = {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "report": result.report.to_dict(),
        "replaced": result.replaced,
        "files_found": list(result.files_found),
        "issues": [issue.to_dict() for issue in result.issues],
        "run_summary": build_run_summary(
            command="aggregate",
            inputs=[str(source_dir)],
            output=str(args.store),
            status="warnings" if warnings else "ok",
            warnings=warnings,
            metrics={
                "files_found": len(result.files_found),
                "read_failures": len(result.read_failures),
                "missing_days": len(result.report.missing_days),
                "total_visit": result.report.total_visit,
                "total_fever": result.report.total_fever,
            },
        ),
    }
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        emit_human(render_weekly_report_text(result.report).rstrip(), quiet=args.quiet)
        if args.verbose:
            for name in result.files_found:
                emit_human(f"Read: {name}", quiet=args.quiet)
        for warning in warnings:
            emit_human(f"Warning: {warning}", quiet=args.quiet)
        action = "Replaced" if result.replaced else "Appended"
        emit_human(f"{action} week {result.report.week_start} in {args.store}", quiet=args.quiet)
    return EXIT_DATA_WARNINGS if warnings else EXIT_SUCCESS


def run_reports(args: argparse.Namespace) -> int:
    try:
        settings = settings_from_args(args)
    except ConfigError as exc:
        eprint(str(exc))
        return EXIT_COMMAND_ERROR

    endpoint = args.url or (settings.reports_endpoint if not args.store else "")
    if not endpoint and not args.store:
        eprint("Give --store or --url, or set reports_endpoint in the config.")
        return EXIT_COMMAND_ERROR

    if endpoint:
        result = fetch_reports(endpoint)
        if result.error:
            eprint(result.error)
            return EXIT_UPSTREAM_FAILED
        weeks = list(result.weeks)
    else:
        store_path = Path(args.store)
        if not store_path.exists():
            eprint(f"Report store not found: {store_path}")
            return EXIT_COMMAND_ERROR
        try:
            weeks = parse_reports(WorkbookRowStore(store_path, settings.report_sheet).read_rows())
        except StoreError as exc:
            eprint(str(exc))
            return EXIT_UPSTREAM_FAILED

    if args.json and not args.week:
        maybe_emit_json_stdout({"weeks": [report.to_dict() for report in weeks]}, True)
        return EXIT_SUCCESS

    report = select_report(weeks, args.week)
    if report is None:
        emit_human("No weekly reports stored yet.", quiet=args.quiet)
        return EXIT_SUCCESS
    if args.week and report.week_start != args.week:
        emit_human(f"No report for week {args.week}; showing {report.week_start}.", quiet=args.quiet)
    if args.json:
        maybe_emit_json_stdout(report.to_dict(), True)
    else:
        print(render_weekly_report_text(report).rstrip())
    return EXIT_SUCCESS


def run_week(args: argparse.Namespace) -> int:
    check = analyze_week_dates(args.dates)
    if check is None:
        eprint("None of the given dates is a valid YYYY-MM-DD calendar date.")
        return EXIT_PARSE_FAILED
    contract = build_contract("fever_report.week_check")
    payload = {"contract": contract, **check.to_dict()}
    if args.json:
        maybe_emit_json_stdout(payload, True)
    else:
        lines = [f"Week: {check.week_start} ~ {check.week_end}"]
        if check.missing_days:
            lines.append(f"Missing days: {', '.join(check.missing_days)}")
        if check.out_of_range:
            lines.append(f"Outside this week: {', '.join(check.out_of_range)}")
        print("\n".join(lines))
    return EXIT_DATA_WARNINGS if check.missing_days or check.out_of_range else EXIT_SUCCESS


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_text(config_path, starter_config())
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "upload":
            return run_upload(args)
        if args.command == "aggregate":
            return run_aggregate(args)
        if args.command == "reports":
            return run_reports(args)
        if args.command == "week":
            return run_week(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
