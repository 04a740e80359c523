"""
Age extraction from spreadsheet cells.

normalize_age() turns one raw cell into an integer age (or None), and
find_ages_in_document() scans every sheet of a workbook for the column that
holds the most valid ages.
"""

from __future__ import annotations

import math
import numbers
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

MIN_AGE = 0
MAX_AGE = 120
DEFAULT_COLUMN_INDEX = 3

NUMBER_RE = re.compile(r"(\d+(\.\d+)?)")


def normalize_age(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        if not math.isfinite(value):
            return None
        return math.floor(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        match = NUMBER_RE.search(text)
        if not match:
            return None
        number = float(match.group(1))
        if not math.isfinite(number):
            return None
        return math.floor(number)
    return None


def is_valid_age(age: int | None) -> bool:
    return age is not None and MIN_AGE <= age <= MAX_AGE


def column_letter(index: int) -> str:
    """Zero-based column index to a spreadsheet letter (3 -> "D")."""
    letters = ""
    index += 1
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def column_label(index: int) -> str:
    return f"{column_letter(index)}열"


@dataclass(frozen=True)
class SheetCandidate:
    sheet_name: str
    count: int


@dataclass(frozen=True)
class AgeScan:
    ages: tuple[int, ...] = ()
    sheet_name: str = ""
    count: int = 0
    column_index: int = DEFAULT_COLUMN_INDEX
    candidates: tuple[SheetCandidate, ...] = field(default_factory=tuple)

    @property
    def found(self) -> bool:
        return self.count > 0

    @property
    def source_label(self) -> str:
        if not self.sheet_name:
            return ""
        return f"{self.sheet_name} / {column_label(self.column_index)}"


def ages_in_rows(rows: Sequence[Sequence[Any] | None], column_index: int = DEFAULT_COLUMN_INDEX) -> list[int]:
    ages: list[int] = []
    for row in rows:
        if not row or len(row) <= column_index:
            continue
        age = normalize_age(row[column_index])
        if is_valid_age(age):
            ages.append(age)
    return ages


def find_ages_in_document(
    document: Mapping[str, Sequence[Sequence[Any] | None]],
    column_index: int = DEFAULT_COLUMN_INDEX,
) -> AgeScan:
    """
    Pick the sheet whose target column yields the most valid ages.

    Ties keep the sheet that comes first in the document. A document with no
    valid ages at all returns an empty scan (count 0, no sheet name) that
    still lists every candidate that was looked at.
    """
    candidates: list[SheetCandidate] = []
    best_ages: list[int] = []
    best_sheet = ""
    for sheet_name, rows in document.items():
        ages = ages_in_rows(rows or [], column_index)
        candidates.append(SheetCandidate(sheet_name=sheet_name, count=len(ages)))
        if len(ages) > len(best_ages):
            best_ages = ages
            best_sheet = sheet_name
    return AgeScan(
        ages=tuple(best_ages),
        sheet_name=best_sheet,
        count=len(best_ages),
        column_index=column_index,
        candidates=tuple(candidates),
    )
