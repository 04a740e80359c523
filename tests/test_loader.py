import io
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from openpyxl import Workbook

from fever_report.loader import WorkbookReadError, read_document, read_document_bytes


def workbook_bytes(sheets: dict) -> bytes:
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class LoaderTests(unittest.TestCase):
    def test_xlsx_keeps_sheet_order_and_empty_cells(self):
        raw = workbook_bytes(
            {
                "Cover": [["Daily export"]],
                "Patients": [["no", "time", "name", "age"], [1, None, "A", 34]],
            }
        )
        document = read_document_bytes(raw, ".xlsx")
        self.assertEqual(list(document), ["Cover", "Patients"])
        self.assertEqual(document["Patients"][1], (1, None, "A", 34))

    def test_suffix_is_case_insensitive(self):
        raw = workbook_bytes({"S": [[1, 2, 3, 4]]})
        self.assertIn("S", read_document_bytes(raw, ".XLSX"))

    def test_corrupt_xlsx_raises_read_error(self):
        with self.assertRaisesRegex(WorkbookReadError, "Could not read workbook"):
            read_document_bytes(b"this is not a zip file", ".xlsx")

    def test_unsupported_suffix_is_rejected(self):
        with self.assertRaisesRegex(WorkbookReadError, "Unsupported format '.csv'"):
            read_document_bytes(b"a,b\n", ".csv")
        with self.assertRaisesRegex(WorkbookReadError, r"\[missing extension\]"):
            read_document_bytes(b"", "")

    def test_missing_xlrd_raises_clear_importerror(self):
        original_import = __import__

        def fake_import(name, globals=None, locals=None, fromlist=(), level=0):
            if name == "xlrd":
                raise ImportError("simulated missing xlrd")
            return original_import(name, globals, locals, fromlist, level)

        with mock.patch("builtins.__import__", side_effect=fake_import):
            with self.assertRaisesRegex(ImportError, r"\.xls files require xlrd"):
                read_document_bytes(b"not-a-real-xls", ".xls")

    def test_read_document_from_path(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "2024-06-10_총환자수.xlsx"
            path.write_bytes(workbook_bytes({"Patients": [[1, None, None, 7]]}))
            document = read_document(path)
            self.assertEqual(document["Patients"], [(1, None, None, 7)])

    def test_missing_path_raises(self):
        with self.assertRaises(FileNotFoundError):
            read_document("/nonexistent/2024-06-10_총환자수.xlsx")


if __name__ == "__main__":
    unittest.main()
