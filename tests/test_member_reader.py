import datetime

import pytest
from openpyxl import Workbook

from society_reports.data_parser.member_reader import collect_columns, read_member_records
from society_reports.exceptions import DataValidationError

from conftest import workbook_bytes


def _roster() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(["CODE_NO", "NAME", "BILL_DATE", "TOTAL", None])
    ws.append([1, "  Asha Rao ", datetime.datetime(2025, 1, 2), 1500.5, "stray"])
    ws.append([None, None, None, None])
    ws.append([2, "Ravi", None, 0])
    return workbook_bytes(wb)


def test_reads_xlsx_roster():
    records = read_member_records(_roster(), filename="members.xlsx")

    assert len(records) == 2
    assert records[0] == {"CODE_NO": 1, "NAME": "Asha Rao", "BILL_DATE": "2025-01-02", "TOTAL": 1500.5}
    assert records[1]["BILL_DATE"] == ""
    assert collect_columns(records) == ["BILL_DATE", "CODE_NO", "NAME", "TOTAL"]


def test_reads_csv_roster(tmp_path):
    path = tmp_path / "members.csv"
    path.write_text("CODE_NO,NAME,TOTAL\n1,Asha,\"1,500\"\n,,\n2,Ravi,200\n", encoding="utf-8")

    records = read_member_records(path)

    assert records == [
        {"CODE_NO": "1", "NAME": "Asha", "TOTAL": "1,500"},
        {"CODE_NO": "2", "NAME": "Ravi", "TOTAL": "200"},
    ]


def test_header_only_file_is_empty():
    wb = Workbook()
    wb.active.append(["CODE_NO", "NAME"])
    with pytest.raises(DataValidationError, match="no valid data"):
        read_member_records(workbook_bytes(wb), filename="members.xlsx")


def test_unsupported_extension():
    with pytest.raises(DataValidationError):
        read_member_records(b"abc", filename="members.xls")


def test_missing_file(tmp_path):
    with pytest.raises(DataValidationError):
        read_member_records(tmp_path / "absent.xlsx")
