#!/usr/bin/env python3
"""
loader.py — workbook reader for fever-report

Supports: .xlsx .xlsm .xls

Public API:
    document = read_document(path)
    document = read_document_bytes(raw, ".xlsx")

A document is an ordered dict of sheet name -> list of row tuples, with
empty cells as None. Nothing here interprets the cells; age extraction
lives in ages.py.
"""

from __future__ import annotations

import io
import math
from pathlib import Path
from typing import Any

OPENPYXL_FORMATS = {".xlsx", ".xlsm"}
LEGACY_FORMATS = {".xls"}
ALL_FORMATS = OPENPYXL_FORMATS | LEGACY_FORMATS

Document = dict[str, list[tuple[Any, ...]]]


class WorkbookReadError(ValueError):
    """The workbook bytes could not be opened or parsed."""


def _clean_cell(value: Any) -> Any:
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def _read_openpyxl(raw: bytes) -> Document:
    from openpyxl import load_workbook

    try:
        workbook = load_workbook(io.BytesIO(raw), read_only=True, data_only=True)
    except Exception as exc:
        raise WorkbookReadError(f"Could not read workbook: {exc}") from exc

    document: Document = {}
    try:
        for sheet in workbook.worksheets:
            document[sheet.title] = [tuple(row) for row in sheet.iter_rows(values_only=True)]
    except Exception as exc:
        raise WorkbookReadError(f"Could not read workbook: {exc}") from exc
    finally:
        workbook.close()
    return document


def _read_legacy(raw: bytes) -> Document:
    # .xls requires xlrd; give a clear error if missing.
    try:
        import xlrd  # noqa: F401
    except ImportError:
        raise ImportError(".xls files require xlrd — run: pip install xlrd")

    import pandas as pd

    try:
        frames = pd.read_excel(io.BytesIO(raw), sheet_name=None, header=None, engine="xlrd")
    except Exception as exc:
        raise WorkbookReadError(f"Could not read workbook: {exc}") from exc

    document: Document = {}
    for sheet_name, frame in frames.items():
        document[str(sheet_name)] = [
            tuple(_clean_cell(value) for value in row)
            for row in frame.itertuples(index=False, name=None)
        ]
    return document


def read_document_bytes(raw: bytes, suffix: str) -> Document:
    suffix = suffix.lower()
    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise WorkbookReadError(f"Unsupported format '{suffix or '[missing extension]'}'. Supported: {supported}")
    if suffix in LEGACY_FORMATS:
        return _read_legacy(raw)
    return _read_openpyxl(raw)


def read_document(path: "str | Path") -> Document:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return read_document_bytes(path.read_bytes(), path.suffix)
