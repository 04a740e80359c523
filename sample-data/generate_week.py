#!/usr/bin/env python3
"""
Generates a week of daily exports in sample-data/week/ for trying out
fever-report.

Run from the repo root:
    python sample-data/generate_week.py
    fever-report aggregate --source sample-data/week --store sample-data/weekly_reports.xlsx --today 2024-03-11

Files written (week of Monday 2024-03-04):
  2024-03-04_총환자수.xlsx ... 2024-03-08_총환자수.xlsx   (visits, Mon-Fri)
  2024-03-04_발열환자수.xlsx ... 2024-03-08_발열환자수.xlsx (fevers, Mon-Fri)

Problems baked in:
    - Saturday 2024-03-09 has no files, so it shows up as a missing day
    - Ages in column D mix ints, floats ("7.9") and text ("45세")
    - A blank row and a header row that never parse as ages
    - Thursday's visit file keeps the ages on a second sheet; the first
      sheet is a cover page with no ages in column D
"""

import random
from datetime import date, timedelta
from pathlib import Path

import openpyxl

OUTPUT = Path(__file__).parent / "week"
WEEK_START = date(2024, 3, 4)
HEADERS = ["no", "visit_time", "name", "age", "temp"]

random.seed(20240304)


def random_age() -> object:
    age = random.choice([0, 3, 5, 9, 11, 15, 17, 24, 38, 45, 52, 61, 70, 83])
    style = random.random()
    if style < 0.15:
        return f"{age}세"
    if style < 0.25:
        return age + 0.9
    return age


def write_export(path: Path, rows: int, cover_sheet: bool = False) -> None:
    wb = openpyxl.Workbook()
    ws = wb.active
    if cover_sheet:
        ws.title = "Cover"
        ws.append(["Daily export"])
        ws.append(["Generated by the clinic system"])
        ws = wb.create_sheet("Patients")
    else:
        ws.title = "Patients"

    ws.append(HEADERS)
    for index in range(1, rows + 1):
        if index == 4:
            ws.append([None, None, None, None, None])
            continue
        ws.append([index, f"{8 + index % 10:02d}:15", f"P{index:03d}", random_age(), 36.5])
    wb.save(path)


OUTPUT.mkdir(parents=True, exist_ok=True)
for offset in range(5):
    day = (WEEK_START + timedelta(days=offset)).isoformat()
    write_export(OUTPUT / f"{day}_총환자수.xlsx", rows=40, cover_sheet=offset == 3)
    write_export(OUTPUT / f"{day}_발열환자수.xlsx", rows=8)
    print(f"Created: {day}")
