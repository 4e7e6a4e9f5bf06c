import io
import sys
from pathlib import Path

import pytest
from openpyxl import Workbook

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def workbook_bytes(workbook: Workbook) -> bytes:
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def build_table_template() -> Workbook:
    """
    1  ${SOCIETY_NAME}             (merged A1:E1)
    2  Maintenance Bill Register
    3  <blank>
    4  Code No | Name | Flat No | Amount | Bill Date
    5  ${CODE_NO} | ${NAME} | ${FLAT_NO} | ${TOTAL} | ${BILL_DATE}
    6  Total | | | =SUM(D5:D5)
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Bills"
    ws["A1"] = "${SOCIETY_NAME}"
    ws.merge_cells("A1:E1")
    ws["A2"] = "Maintenance Bill Register"
    for col, header in enumerate(["Code No", "Name", "Flat No", "Amount", "Bill Date"], start=1):
        ws.cell(row=4, column=col, value=header)
    for col, field_name in enumerate(["CODE_NO", "NAME", "FLAT_NO", "TOTAL", "BILL_DATE"], start=1):
        ws.cell(row=5, column=col, value=f"${{{field_name}}}")
    ws["A6"] = "Total"
    ws["D6"] = "=SUM(D5:D5)"
    ws.column_dimensions["B"].width = 30
    return wb


def build_form_template(rows: int = 12) -> Workbook:
    """One placeholder per row, no header keywords: classifies FORM."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Member"
    ws["A1"] = "Flat"
    ws["B1"] = "${FLAT_NO}"
    ws["A2"] = "Owner"
    ws["B2"] = "${NAME}"
    for row in range(3, rows + 1):
        ws.cell(row=row, column=1, value=f"Item {row}")
        ws.cell(row=row, column=2, value=f"${{F{row}}}")
    ws.merge_cells("C1:D1")
    return wb


def build_receipt_template(with_total: bool = True) -> Workbook:
    """Receipt register with a three-row installment block (rows 5-7)."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Receipts"
    ws["A1"] = "${SOCIETY_NAME}"
    ws["A2"] = "Receipt Register ${BILL_MONTH_FROM} - ${BILL_MONTH_TO}"
    headers = ["Rec No", "Code No", "Name", "Cheque No", "Date", "Bank", "Amount"]
    for col, header in enumerate(headers, start=1):
        ws.cell(row=4, column=col, value=header)
    fields = ["REC_NO", "CODE_NO", "NAME", "CHEQUE_NO", "CHEQUE_DT", "BANK", "REC_AMT"]
    for row in (5, 6, 7):
        for col, field_name in enumerate(fields, start=1):
            ws.cell(row=row, column=col, value=f"${{{field_name}}}")
    if with_total:
        ws["A8"] = "Total"
        ws["G8"] = "${REC_AMT}"
    return wb


def build_receipt_file(rows, headers=("Code No", "Cheque No", "Chq.Date", "Name of Bank", "Receipt Amount"),
                       title="Receipts Q1") -> bytes:
    wb = Workbook()
    ws = wb.active
    if title:
        ws.append([title])
    ws.append(list(headers))
    for row in rows:
        ws.append(list(row))
    return workbook_bytes(wb)


@pytest.fixture
def table_template() -> Workbook:
    return build_table_template()


@pytest.fixture
def form_template() -> Workbook:
    return build_form_template()


@pytest.fixture
def receipt_template() -> Workbook:
    return build_receipt_template()


@pytest.fixture
def bill_records():
    return [
        {"CODE_NO": 10, "NAME": "Asha Rao", "FLAT_NO": "A-10", "TOTAL": 1234567.5, "BILL_DATE": 45671},
        {"CODE_NO": 2, "NAME": "Vikram Shah", "FLAT_NO": "A-2", "TOTAL": "1,500", "BILL_DATE": "2025-01-14"},
        {"CODE_NO": 1, "NAME": "Meera Iyer", "FLAT_NO": "A-1", "TOTAL": 100, "BILL_DATE": ""},
    ]
