import io
import tempfile
import unittest
from pathlib import Path

from openpyxl import Workbook

from fever_report.config import Settings
from fever_report.upload import (
    READ_FAILED_MESSAGE,
    analyze_upload,
    load_upload_batch,
    parse_upload,
    read_upload_paths,
)


def export_bytes(ages, *, extra_sheets=None) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Patients"
    ws.append(["no", "time", "name", "age"])
    for index, age in enumerate(ages, start=1):
        ws.append([index, "09:00", f"P{index}", age])
    for title, rows in (extra_sheets or {}).items():
        extra = wb.create_sheet(title)
        for row in rows:
            extra.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class ParseUploadTests(unittest.TestCase):
    def test_ages_and_source_label(self):
        parsed = parse_upload("2024-06-10_총환자수.xlsx", export_bytes([3, "45세", 7.9, "n/a", 200]), 3)
        self.assertIsNone(parsed.read_error)
        self.assertEqual(parsed.ages, (3, 45, 7))
        self.assertEqual(parsed.source_label, "Patients / D열")

    def test_best_sheet_is_used(self):
        raw = export_bytes([1], extra_sheets={"Full": [[None, None, None, age] for age in (20, 30, 40)]})
        parsed = parse_upload("2024-06-10_총환자수.xlsx", raw, 3)
        self.assertEqual(parsed.ages, (20, 30, 40))
        self.assertEqual(parsed.source_label, "Full / D열")

    def test_unreadable_file_keeps_error(self):
        parsed = parse_upload("2024-06-10_총환자수.xlsx", b"garbage", 3)
        self.assertEqual(parsed.ages, ())
        self.assertTrue(parsed.read_error.startswith(READ_FAILED_MESSAGE))

    def test_file_without_ages_is_a_read_error(self):
        parsed = parse_upload("2024-06-10_총환자수.xlsx", export_bytes(["unknown"]), 3)
        self.assertEqual(parsed.ages, ())
        self.assertIn("D열", parsed.read_error)


class UploadBatchTests(unittest.TestCase):
    def test_batch_keeps_input_order(self):
        uploads = [(f"2024-06-{day}_총환자수.xlsx", export_bytes([day])) for day in range(10, 16)]
        parsed = load_upload_batch(uploads, Settings(max_workers=3))
        self.assertEqual([item.name for item in parsed], [name for name, _ in uploads])
        self.assertEqual([item.ages for item in parsed], [(day,) for day in range(10, 16)])

    def test_one_bad_file_does_not_stop_the_batch(self):
        uploads = [
            ("2024-06-10_총환자수.xlsx", export_bytes([30])),
            ("2024-06-11_총환자수.xlsx", b"broken"),
            ("2024-06-12_총환자수.xlsx", export_bytes([31])),
        ]
        parsed = load_upload_batch(uploads, Settings())
        self.assertEqual([bool(item.read_error) for item in parsed], [False, True, False])

    def test_empty_batch(self):
        self.assertEqual(load_upload_batch([], Settings()), [])


class AnalyzeUploadTests(unittest.TestCase):
    def test_report_totals_and_groups(self):
        visits = [("2024-06-12_총환자수.xlsx", export_bytes([0, 3, 10, 20, 70]))]
        fevers = [("2024-06-12_발열환자수.xlsx", export_bytes([3, 70]))]
        payload = analyze_upload(visits, fevers, Settings())

        self.assertEqual(payload["contract"]["name"], "fever_report.upload")
        self.assertEqual(payload["schema_version"], payload["contract"]["version"])
        self.assertEqual(payload["total_visit"], 5)
        self.assertEqual(payload["total_fever"], 2)
        self.assertAlmostEqual(payload["overall_ratio"], 40.0)
        groups = {group["id"]: group for group in payload["groups"]}
        self.assertEqual((groups["0-6"]["totalCount"], groups["0-6"]["feverCount"]), (2, 1))
        self.assertEqual((groups["65+"]["totalCount"], groups["65+"]["feverCount"]), (1, 1))
        self.assertEqual(payload["week"]["week_start"], "2024-06-10")
        self.assertEqual(payload["run_summary"]["command"], "upload")
        self.assertEqual(payload["run_summary"]["status"], "warnings")

    def test_duplicates_are_summed_and_warned(self):
        visits = [
            ("2024-06-12_총환자수.xlsx", export_bytes([20, 21])),
            ("2024-06-12_총환자수.XLSX", export_bytes([22])),
        ]
        payload = analyze_upload(visits, [], Settings())
        self.assertEqual(payload["total_visit"], 3)
        self.assertTrue(any("Duplicate dates" in warning for warning in payload["warnings"]))
        self.assertIn("duplicate_date", [issue["id"] for issue in payload["issues"]])

    def test_visits_only_gives_zero_fevers(self):
        payload = analyze_upload([("2024-06-12_총환자수.xlsx", export_bytes([5, 6]))], [], Settings())
        self.assertEqual(payload["total_fever"], 0)
        self.assertTrue(all(group["feverCount"] == 0 for group in payload["groups"]))
        self.assertEqual(payload["files"]["fever"], [])

    def test_read_upload_paths(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "2024-06-12_총환자수.xlsx"
            path.write_bytes(export_bytes([1]))
            uploads = read_upload_paths([path])
            self.assertEqual(uploads[0][0], "2024-06-12_총환자수.xlsx")
            with self.assertRaises(FileNotFoundError):
                read_upload_paths([Path(tmpdir) / "missing.xlsx"])


if __name__ == "__main__":
    unittest.main()
