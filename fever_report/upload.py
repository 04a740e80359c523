"""
Interactive upload path.

A batch of visit and fever files is read concurrently, one independent
ParsedFile per upload, and only once every file is back does classification
start: the band counts need the complete age list of each kind.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Sequence

from fever_report import __version__ as TOOL_VERSION
from fever_report.ages import column_label, find_ages_in_document
from fever_report.bands import build_counts, combine_counts, overall_ratio
from fever_report.config import Settings
from fever_report.contracts import build_contract, build_run_summary
from fever_report.filenames import DatasetKind, ParsedFile, analyze_files
from fever_report.issues import Issue
from fever_report.loader import WorkbookReadError, read_document_bytes
from fever_report.weeks import analyze_week_dates

READ_FAILED_MESSAGE = "Could not read the Excel file."


def no_ages_message(column_index: int) -> str:
    return f"No numeric ages between 0 and 120 found in {column_label(column_index)}."


def parse_upload(name: str, raw: bytes, column_index: int) -> ParsedFile:
    """Read one upload into its ages; failures stay attached to the file."""
    try:
        document = read_document_bytes(raw, Path(name).suffix)
    except (WorkbookReadError, ImportError) as exc:
        return ParsedFile(name=name, read_error=f"{READ_FAILED_MESSAGE} ({exc})")

    scan = find_ages_in_document(document, column_index)
    if not scan.found:
        return ParsedFile(name=name, read_error=no_ages_message(column_index))
    return ParsedFile(name=name, ages=scan.ages, source_label=scan.source_label)


def load_upload_batch(uploads: Sequence[tuple[str, bytes]], settings: Settings) -> list[ParsedFile]:
    if not uploads:
        return []
    workers = min(settings.max_workers, len(uploads))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [
            pool.submit(parse_upload, name, raw, settings.column_index)
            for name, raw in uploads
        ]
        return [future.result() for future in futures]


def read_upload_paths(paths: Sequence["str | Path"]) -> list[tuple[str, bytes]]:
    uploads = []
    for path in paths:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        uploads.append((path.name, path.read_bytes()))
    return uploads


def build_upload_report(
    visit_files: Sequence[ParsedFile],
    fever_files: Sequence[ParsedFile],
    settings: Settings,
) -> dict[str, Any]:
    visit = analyze_files(visit_files, DatasetKind.VISIT, suffix=settings.visit_suffix)
    fever = analyze_files(fever_files, DatasetKind.FEVER, suffix=settings.fever_suffix)

    visit_ages = visit.ages
    fever_ages = fever.ages
    groups = combine_counts(build_counts(visit_ages), build_counts(fever_ages))
    total_visit = len(visit_ages)
    total_fever = len(fever_ages)
    ratio = overall_ratio(total_visit, total_fever)

    issues: list[Issue] = [*visit.issues, *fever.issues]
    warnings = [issue.message for issue in issues]
    week = analyze_week_dates(visit.dates + fever.dates)

    contract = build_contract("fever_report.upload")
    return {
        "contract": contract,
        "schema_version": contract["version"],
        "tool_version": TOOL_VERSION,
        "week": week.to_dict() if week else None,
        "total_visit": total_visit,
        "total_fever": total_fever,
        "overall_ratio": ratio,
        "groups": [group.to_dict() for group in groups],
        "files": {
            DatasetKind.VISIT.value: [record.to_dict() for record in visit.validated_files],
            DatasetKind.FEVER.value: [record.to_dict() for record in fever.validated_files],
        },
        "issues": [issue.to_dict() for issue in issues],
        "warnings": warnings,
        "run_summary": build_run_summary(
            command="upload",
            inputs=[item.name for item in [*visit_files, *fever_files]],
            status="warnings" if warnings else "ok",
            warnings=warnings,
            metrics={
                "visit_files": len(visit_files),
                "fever_files": len(fever_files),
                "total_visit": total_visit,
                "total_fever": total_fever,
                "overall_ratio": ratio,
                "issues_found": len(issues),
            },
        ),
    }


def analyze_upload(
    visit_uploads: Sequence[tuple[str, bytes]],
    fever_uploads: Sequence[tuple[str, bytes]],
    settings: Settings,
) -> dict[str, Any]:
    visit_files = load_upload_batch(visit_uploads, settings)
    fever_files = load_upload_batch(fever_uploads, settings)
    return build_upload_report(visit_files, fever_files, settings)
