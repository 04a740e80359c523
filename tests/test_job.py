import io
import tempfile
import unittest
from datetime import date
from pathlib import Path

from openpyxl import Workbook

from fever_report.config import Settings
from fever_report.issues import IssueKind
from fever_report.job import DirectoryFileSource, FileSource, run_weekly_job
from fever_report.store import MemoryRowStore, RowStore, StoreError, parse_reports

TODAY = date(2024, 6, 19)


def export_bytes(ages) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(["no", "time", "name", "age"])
    for age in ages:
        ws.append([1, "09:00", "P", age])
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class DictSource(FileSource):
    def __init__(self, files):
        self.files = files
        self.requested = []

    def fetch(self, name):
        self.requested.append(name)
        return self.files.get(name)


class ReadOnlyStore(RowStore):
    def read_rows(self):
        return []

    def append_row(self, values):
        raise StoreError("store is read-only")


class WeeklyJobTests(unittest.TestCase):
    def test_full_week_is_aggregated_and_stored(self):
        files = {}
        for day in range(10, 16):
            files[f"2024-06-{day}_총환자수.xlsx"] = export_bytes([0, 3, 10, 20, 70])
            files[f"2024-06-{day}_발열환자수.xlsx"] = export_bytes([3, 70])
        source = DictSource(files)
        store = MemoryRowStore()

        result = run_weekly_job(source, store, today=TODAY)

        self.assertEqual(len(source.requested), 12)
        self.assertEqual(result.report.week_start, "2024-06-10")
        self.assertEqual(result.report.week_end, "2024-06-15")
        self.assertEqual(result.report.total_visit, 30)
        self.assertEqual(result.report.total_fever, 12)
        self.assertAlmostEqual(result.report.overall_ratio, 40.0)
        self.assertEqual(result.report.missing_days, ())
        self.assertEqual(result.issues, ())
        self.assertFalse(result.replaced)
        self.assertRegex(result.report.created_at, r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}$")

        (stored,) = parse_reports(store.read_rows())
        groups = {group.band_id: group for group in stored.groups}
        self.assertEqual((groups["0-6"].total_count, groups["0-6"].fever_count), (12, 6))

    def test_missing_files_are_counted_as_missing_days(self):
        files = {
            "2024-06-10_총환자수.xlsx": export_bytes([30]),
            "2024-06-10_발열환자수.xlsx": export_bytes([30]),
            "2024-06-11_총환자수.xlsx": export_bytes([31]),
        }
        result = run_weekly_job(DictSource(files), MemoryRowStore(), today=TODAY)
        self.assertEqual(
            list(result.report.missing_days),
            ["2024-06-11", "2024-06-12", "2024-06-13", "2024-06-14", "2024-06-15"],
        )
        self.assertEqual(result.report.total_visit, 2)
        self.assertEqual(result.report.total_fever, 1)
        self.assertEqual([issue.kind for issue in result.issues], [IssueKind.MISSING_WEEKDAY])

    def test_unreadable_and_empty_files_are_isolated(self):
        files = {
            "2024-06-10_총환자수.xlsx": b"broken",
            "2024-06-11_총환자수.xlsx": export_bytes(["none"]),
            "2024-06-12_총환자수.xlsx": export_bytes([45]),
        }
        result = run_weekly_job(DictSource(files), MemoryRowStore(), today=TODAY)
        self.assertEqual(result.report.total_visit, 1)
        self.assertEqual(result.read_failures, ("2024-06-10_총환자수.xlsx",))
        self.assertEqual(
            [issue.kind for issue in result.issues],
            [IssueKind.MISSING_WEEKDAY, IssueKind.READ_FAILURE, IssueKind.DATA_ABSENT],
        )

    def test_fetch_error_is_a_read_failure_not_a_crash(self):
        class DeniedSource(DictSource):
            def fetch(self, name):
                if name == "2024-06-12_총환자수.xlsx":
                    raise PermissionError("denied")
                return super().fetch(name)

        files = {
            "2024-06-11_총환자수.xlsx": export_bytes([30]),
            "2024-06-12_총환자수.xlsx": export_bytes([31]),
        }
        store = MemoryRowStore()
        result = run_weekly_job(DeniedSource(files), store, today=TODAY)

        self.assertEqual(result.report.total_visit, 1)
        self.assertEqual(result.read_failures, ("2024-06-12_총환자수.xlsx",))
        self.assertIn(IssueKind.READ_FAILURE, [issue.kind for issue in result.issues])
        (stored,) = parse_reports(store.read_rows())
        self.assertEqual((stored.week_start, stored.total_visit), ("2024-06-10", 1))

    def test_rerun_replaces_the_week(self):
        store = MemoryRowStore()
        files = {"2024-06-10_총환자수.xlsx": export_bytes([5])}
        run_weekly_job(DictSource(files), store, today=TODAY)
        files["2024-06-11_총환자수.xlsx"] = export_bytes([6])
        result = run_weekly_job(DictSource(files), store, today=TODAY)
        self.assertTrue(result.replaced)
        self.assertEqual(len(store.rows), 2)
        self.assertEqual(parse_reports(store.read_rows())[0].total_visit, 2)

    def test_no_files_still_writes_an_empty_week(self):
        store = MemoryRowStore()
        result = run_weekly_job(DictSource({}), store, today=date(2024, 6, 17))
        self.assertEqual(len(result.report.missing_days), 6)
        self.assertEqual(result.report.overall_ratio, 0.0)
        self.assertEqual(len(store.rows), 2)

    def test_store_failure_propagates(self):
        with self.assertRaises(StoreError):
            run_weekly_job(DictSource({}), ReadOnlyStore(), today=TODAY)

    def test_settings_change_names_and_column(self):
        settings = Settings(visit_suffix="visits", fever_suffix="fevers", column_index=0)
        wb = Workbook()
        wb.active.append([42])
        buffer = io.BytesIO()
        wb.save(buffer)
        files = {"2024-06-10_visits.xlsx": buffer.getvalue()}
        result = run_weekly_job(DictSource(files), MemoryRowStore(), today=TODAY, settings=settings)
        self.assertEqual(result.report.total_visit, 1)

    def test_directory_source(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            folder = Path(tmpdir)
            (folder / "2024-06-10_총환자수.xlsx").write_bytes(export_bytes([8, 9]))
            source = DirectoryFileSource(folder)
            self.assertIsNone(source.fetch("2024-06-11_총환자수.xlsx"))
            result = run_weekly_job(source, MemoryRowStore(), today=TODAY)
            self.assertEqual(result.report.total_visit, 2)
            self.assertEqual(result.files_found, ("2024-06-10_총환자수.xlsx",))


if __name__ == "__main__":
    unittest.main()
