"""End-to-end report generation for every strategy."""

import datetime
import io

import pytest
from openpyxl import load_workbook

from society_reports.template_engine.generate_report import (
    build_output_filename,
    find_unresolved_placeholders,
    generate_report,
)
from society_reports.template_engine.models import GenerationRequest
from society_reports.template_engine.strategies import record_sheet_name, sort_bill_records

from conftest import build_form_template, build_receipt_template, build_table_template, workbook_bytes

COERCED_SUM = '=SUMPRODUCT(IFERROR(VALUE(SUBSTITUTE({col}{first}:{col}{last},",","")),0))'


def _open(result):
    assert result.success, result.error
    return load_workbook(io.BytesIO(result.content))


def _form_records(count):
    return [dict({"FLAT_NO": f"B-{i}", "NAME": f"Member {i}"}, **{f"F{r}": f"v{i}.{r}" for r in range(3, 13)})
            for i in range(1, count + 1)]


# --- TABLE ---

def test_table_report_one_row_per_record(bill_records):
    request = {"data": bill_records, "societyName": "Green Park CHS", "reportKind": "general"}
    result = generate_report(workbook_bytes(build_table_template()), request, template_filename="bills.xlsx")

    wb = _open(result)
    assert result.template_type == "TABLE"
    assert result.strategy == "table"
    assert result.worksheet_count == 1
    ws = wb["Report"]

    assert ws["A1"].value == "Green Park CHS"
    assert ws["A2"].value == "Maintenance Bill Register"
    assert ws["A4"].value == "Code No"
    assert [ws.cell(row=r, column=2).value for r in (5, 6, 7)] == ["Asha Rao", "Vikram Shah", "Meera Iyer"]
    assert ws["D5"].value == "12,34,567.5"
    assert ws["E5"].value == "14/1/2025"
    assert ws["E6"].value == "14/1/2025"
    assert ws["A8"].value == "Total"
    assert "A1:E1" in {str(r) for r in ws.merged_cells.ranges}
    assert ws.column_dimensions["B"].width == 30
    assert find_unresolved_placeholders(wb) == {}


def test_no_placeholder_leaks_when_fields_missing():
    request = {"data": [{"NAME": "Only Name"}], "societyName": "Green Park"}
    result = generate_report(build_table_template(), request)

    wb = _open(result)
    assert find_unresolved_placeholders(wb) == {}
    assert "TOTAL" in result.missing_fields
    assert any("Template fields not found in data" in w for w in result.warnings)


# --- FORM ---

def test_form_auto_small_set_one_sheet_per_record():
    result = generate_report(build_form_template(), {"data": _form_records(2), "mode": "auto"})

    wb = _open(result)
    assert result.template_type == "FORM"
    assert result.strategy == "form_multi"
    assert wb.sheetnames == ["Flat_B-1", "Flat_B-2"]
    assert wb["Flat_B-2"]["B2"].value == "Member 2"
    assert "C1:D1" in {str(r) for r in wb["Flat_B-1"].merged_cells.ranges}
    assert "MultiSheet" in result.filename


def test_form_auto_large_set_stacks_blocks_with_page_breaks():
    result = generate_report(build_form_template(), {"data": _form_records(7), "mode": "auto"})

    wb = _open(result)
    assert result.strategy == "form_single"
    ws = wb["Report"]
    # 12-row blocks separated by a 2-row gap
    assert ws["B1"].value == "B-1"
    assert ws["B15"].value == "B-2"
    assert ws["B2"].value == "Member 1"
    assert ws["B16"].value == "Member 2"
    assert len(ws.row_breaks.brk) == 6
    assert "C15:D15" in {str(r) for r in ws.merged_cells.ranges}
    assert "SingleSheet" in result.filename


def test_form_explicit_single_sheet_mode():
    result = generate_report(build_form_template(), {"data": _form_records(2), "mode": "single_sheet"})
    assert result.strategy == "form_single"
    assert result.worksheet_count == 1


def test_single_record_mode_keeps_first_record():
    result = generate_report(build_form_template(), {"data": _form_records(4), "singleRecordMode": True})
    wb = _open(result)
    assert result.record_count == 1
    assert wb.sheetnames == ["Flat_B-1"]


def test_template_type_override():
    result = generate_report(build_form_template(), {"data": _form_records(2), "templateType": "TABLE"})
    assert result.success
    assert result.strategy == "table"
    assert any("overridden" in reason for reason in result.analysis.rationale)


def test_member_report_uses_member_prefix():
    records = [{"CODE_NO": 7, "NAME": "Asha"}, {"CODE_NO": 8, "NAME": "Ravi"}]
    result = generate_report(build_form_template(), {"data": records, "reportKind": "member", "mode": "multiple_sheets"})
    wb = _open(result)
    assert wb.sheetnames == ["Member_Code_7", "Member_Code_8"]
    assert "MemberDetail_MultiSheet" in result.filename


# --- registers ---

def test_bill_register_sorted_with_totals(bill_records):
    request = {
        "data": bill_records,
        "reportKind": "bill",
        "societyName": "Green Park CHS",
        "headerMergeRange": "A:E",
        "selectedTotalFields": ["TOTAL"],
    }
    result = generate_report(build_table_template(), request)

    wb = _open(result)
    ws = wb["Bill Register"]
    assert result.strategy == "bill_register"
    assert result.header_merge_range == "A:E"
    assert result.total_amount == pytest.approx(1234567.5 + 1500 + 100)

    merges = {str(r) for r in ws.merged_cells.ranges}
    assert {"A1:E1", "A2:E2"} <= merges
    assert ws["A1"].value == "Green Park CHS"
    assert ws["A3"].value == "Code No"
    assert [ws.cell(row=r, column=1).value for r in (4, 5, 6)] == ["1", "2", "10"]
    assert ws["A7"].value == "Total"
    assert ws["A7"].font.bold is True
    assert ws["D7"].value == COERCED_SUM.format(col="D", first=4, last=6)


def test_bill_register_without_selected_totals_has_no_total_row(bill_records):
    result = generate_report(build_table_template(), {"data": bill_records, "reportKind": "bill"})
    ws = _open(result)["Bill Register"]
    assert ws["A7"].value is None
    assert ws.max_row == 6


def test_bill_register_invalid_merge_range_uses_default(bill_records):
    result = generate_report(build_table_template(), {"data": bill_records, "reportKind": "bill", "headerMergeRange": "Z:A"})
    ws = _open(result)["Bill Register"]
    assert result.header_merge_range == "A:J"
    assert "A1:J1" in {str(r) for r in ws.merged_cells.ranges}


def test_bill_multiple_sheets_mode(bill_records):
    result = generate_report(build_table_template(), {"data": bill_records, "reportKind": "bill", "mode": "multi"})
    wb = _open(result)
    assert result.strategy == "form_multi"
    assert wb.sheetnames == ["Bill_Flat_A-1", "Bill_Flat_A-2", "Bill_Flat_A-10"]


def test_total_fields_without_total_row_warns(bill_records):
    template = build_table_template()
    template.active["A6"] = None
    template.active["D6"] = None
    result = generate_report(template, {"data": bill_records, "reportKind": "bill", "selectedTotalFields": ["TOTAL"]})
    assert result.success
    assert any("no total row" in w for w in result.warnings)


def test_receipt_register_splits_installments():
    records = [
        {"REC_NO": "13", "CODE_NO": 10, "NAME": "Asha",
         "CHEQUE_NO1": "111", "CHEQUE_DT1": "14/01/2025", "BANK1": "HDFC", "REC_AMT1": 500,
         "CHEQUE_NO2": "222", "CHEQUE_DT2": "03/02/2025", "BANK2": "SBI", "REC_AMT2": 1500,
         "CHEQUE_NO3": "", "CHEQUE_DT3": "", "BANK3": "", "REC_AMT3": 0},
        {"REC_NO": "", "CODE_NO": 11, "NAME": "Ravi", "REC_AMT1": 0, "REC_AMT2": "", "REC_AMT3": 0},
    ]
    request = {
        "data": records,
        "reportKind": "receipt",
        "societyName": "Green Park CHS",
        "societyDetails": {"billMonthFrom": "Jan", "billMonthTo": "Mar"},
        "selectedTotalFields": ["REC_AMT"],
    }
    result = generate_report(build_receipt_template(), request)

    wb = _open(result)
    ws = wb["Receipt Register"]
    assert result.record_count == 1
    assert result.total_amount == pytest.approx(2000)
    assert ws["A2"].value == "Receipt Register Jan - Mar"
    assert {"A1:H1", "A2:H2"} <= {str(r) for r in ws.merged_cells.ranges}
    assert ws["B3"].value == "Code No"

    # month 1 keeps the member columns, months 2-3 blank them
    assert [ws.cell(row=r, column=2).value for r in (4, 5, 6)] == ["10", None, None]
    assert [ws.cell(row=r, column=4).value for r in (4, 5, 6)] == ["111", "222", None]
    assert ws["E4"].value == "14/1/2025"
    assert [ws.cell(row=r, column=7).value for r in (4, 5, 6)] == ["500", "1,500", None]
    assert ws["G7"].value == COERCED_SUM.format(col="G", first=4, last=6)


def test_receipt_register_without_payments_fails():
    records = [{"CODE_NO": 1, "REC_AMT": 0, "REC_AMT1": "", "REC_AMT2": None}]
    result = generate_report(build_receipt_template(), {"data": records, "reportKind": "receipt"})
    assert result.success is False
    assert "No receipt data found" in result.error


# --- validation ---

def test_empty_data_is_rejected():
    result = generate_report(build_table_template(), {"data": []})
    assert result.success is False
    assert result.error == "No data provided for Excel generation"


def test_missing_template_is_rejected():
    result = generate_report(None, {"data": [{"NAME": "x"}]})
    assert result.success is False
    assert "upload a template" in result.error


def test_legacy_xls_is_rejected():
    result = generate_report(b"not really", {"data": [{"NAME": "x"}]}, template_filename="old.xls")
    assert result.success is False
    assert ".xls" in result.error


def test_invalid_request_is_reported():
    result = generate_report(build_table_template(), {"data": [{"NAME": "x"}], "reportKind": "invoice"})
    assert result.success is False
    assert result.error.startswith("Invalid generation request")


def test_request_accepts_snake_case_names():
    request = GenerationRequest(data=[{"NAME": "x"}], report_kind="member", single_record_mode=True)
    assert request.report_kind == "member"
    assert request.mode == "auto"


# --- helpers ---

def test_output_filename():
    on = datetime.date(2025, 1, 14)
    assert build_output_filename("Green Park C.H.S.", "bill", False, on) == "Green_Park_C_H_S__BillRegister_SingleSheet_2025-01-14.xlsx"
    assert build_output_filename("", "general", True, on) == "Society_Report_MultiSheet_2025-01-14.xlsx"


def test_record_sheet_name_fallbacks():
    assert record_sheet_name({"FLAT_NO": "A-1", "CODE_NO": 3}, 1) == "Flat_A-1"
    assert record_sheet_name({"CODE_NO": 3}, 1, "Bill_") == "Bill_Code_3"
    assert record_sheet_name({"NAME": "Asha Rao & Sons"}, 1) == "Asha Rao  Sons"
    assert record_sheet_name({}, 4) == "Record_4"


def test_bill_sort_is_natural():
    records = [{"CODE_NO": "A-10"}, {"CODE_NO": "A-2"}, {"FLAT_NO": "A-3"}, {"CODE_NO": ""}]
    ordered = [r.get("CODE_NO") or r.get("FLAT_NO") for r in sort_bill_records(records)]
    assert ordered == ["A-2", "A-3", "A-10", None]


def test_unresolved_placeholder_audit_lists_cells():
    from openpyxl import Workbook

    wb = Workbook()
    wb.active.title = "Report"
    wb.active["B2"] = "Due ${DUE_DATE}"
    wb.active["C3"] = "=SUM(D1:D2)"
    assert find_unresolved_placeholders(wb) == {"Report": ["B2"]}


def _charges_template(period_row: bool = False):
    """
    1  ${SOCIETY_NAME}
    2  Maintenance Bill Register
    3  <blank>
    4  Code No | Name | Maintenance | Water
    5  From ${BILL_MONTH_FROM} | To ${BILL_MONTH_TO}        (period_row only)
    .  ${CODE_NO} | ${NAME} | ${MAINT_CHG} | ${WATER_CHG}
    .  Total | | ${MAINT_CHG} | ${WATER_CHG}
    """
    from openpyxl import Workbook

    wb = Workbook()
    ws = wb.active
    ws["A1"] = "${SOCIETY_NAME}"
    ws["A2"] = "Maintenance Bill Register"
    for col, header in enumerate(["Code No", "Name", "Maintenance", "Water"], start=1):
        ws.cell(row=4, column=col, value=header)
    data_row = 5
    if period_row:
        ws["A5"] = "From ${BILL_MONTH_FROM}"
        ws["B5"] = "To ${BILL_MONTH_TO}"
        data_row = 6
    for col, field_name in enumerate(["CODE_NO", "NAME", "MAINT_CHG", "WATER_CHG"], start=1):
        ws.cell(row=data_row, column=col, value=f"${{{field_name}}}")
    ws.cell(row=data_row + 1, column=1, value="Total")
    ws.cell(row=data_row + 1, column=3, value="${MAINT_CHG}")
    ws.cell(row=data_row + 1, column=4, value="${WATER_CHG}")
    return wb


CHARGE_RECORDS = [
    {"CODE_NO": 1, "NAME": "Asha", "MAINT_CHG": 1000, "WATER_CHG": 200},
    {"CODE_NO": 2, "NAME": "Ravi", "MAINT_CHG": 1500, "WATER_CHG": 250},
]


def test_total_row_sums_selected_fields_and_clears_the_rest():
    request = {"data": CHARGE_RECORDS, "reportKind": "bill", "selectedTotalFields": ["MAINT_CHG"]}
    result = generate_report(_charges_template(), request)

    ws = _open(result)["Bill Register"]
    assert ws["A3"].value == "Code No"
    assert [ws.cell(row=r, column=3).value for r in (4, 5)] == ["1,000", "1,500"]
    assert ws["A6"].value == "Total"
    assert ws["C6"].value == COERCED_SUM.format(col="C", first=4, last=5)
    assert ws["D6"].value is None


def test_bill_register_fills_period_row_above_records():
    request = {
        "data": CHARGE_RECORDS,
        "reportKind": "bill",
        "societyName": "Green Park",
        "societyDetails": {"billMonthFrom": "Jan", "billMonthTo": "Mar"},
    }
    result = generate_report(_charges_template(period_row=True), request)

    wb = _open(result)
    ws = wb["Bill Register"]
    assert ws["A3"].value == "Code No"
    assert ws["A4"].value == "From Jan"
    assert ws["B4"].value == "To Mar"
    assert [ws.cell(row=r, column=1).value for r in (5, 6)] == ["1", "2"]
    assert find_unresolved_placeholders(wb) == {}
