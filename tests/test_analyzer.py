"""Template structure analysis and TABLE/FORM classification."""

from openpyxl import Workbook

from society_reports.template_engine.analyzer import FORM, TABLE, TemplateAnalyzer, analyze_template

from conftest import build_form_template, build_receipt_template, build_table_template


def _sheet_with_rows(rows):
    wb = Workbook()
    ws = wb.active
    for row_num, values in rows.items():
        for col, value in enumerate(values, start=1):
            ws.cell(row=row_num, column=col, value=value)
    return wb


def test_table_template_landmarks():
    structure = analyze_template(build_table_template())
    assert structure.template_type == TABLE
    assert structure.header_end_row == 2
    assert structure.data_start_row == 5
    assert structure.data_template_row == 5
    assert structure.total_row == 6
    assert structure.receipt_flavor == "single"
    assert structure.variables == ["BILL_DATE", "CODE_NO", "FLAT_NO", "NAME", "SOCIETY_NAME", "TOTAL"]
    assert structure.rationale


def test_header_keyword_with_two_placeholder_rows_is_table():
    wb = _sheet_with_rows({
        1: ["Society Report"],
        3: ["Name", "Amount"],
        4: ["${NAME}", "${TOTAL}"],
        5: ["${NAME2}", "${TOTAL2}"],
    })
    assert TemplateAnalyzer(wb.active).analyze().template_type == TABLE


def test_twelve_placeholder_rows_without_keywords_is_form():
    structure = analyze_template(build_form_template(rows=12))
    assert structure.template_type == FORM
    assert structure.placeholder_row_count == 12


def test_ambiguous_structure_defaults_to_form():
    rows = {row: [f"Line {row}", f"${{F{row}}}"] for row in range(1, 6)}
    structure = TemplateAnalyzer(_sheet_with_rows(rows).active).analyze()
    assert structure.template_type == FORM
    assert structure.header_keyword_row is None
    assert any("defaulting to FORM" in reason for reason in structure.rationale)


def test_placeholder_text_does_not_count_as_header_keyword():
    # ${NAME} mentions "name" but only literal text counts
    wb = _sheet_with_rows({1: ["${NAME}", "${FLAT_NO}"]})
    assert TemplateAnalyzer(wb.active).row_has_header_keyword(1) is False


def test_header_end_defaults_when_no_blank_row():
    wb = _sheet_with_rows({row: [f"Title {row}"] for row in range(1, 8)})
    assert TemplateAnalyzer(wb.active).find_header_end_row() == 3


def test_template_without_placeholders_warns():
    wb = _sheet_with_rows({1: ["Title"], 3: ["Plain text only"]})
    structure = TemplateAnalyzer(wb.active).analyze()
    assert structure.data_start_row == 3
    assert structure.warnings


def test_multi_row_receipt_block_detected():
    structure = analyze_template(build_receipt_template())
    assert structure.receipt_flavor == "multi"
    assert structure.record_block_rows == [5, 6, 7]
    assert structure.total_row == 8


def test_single_row_receipt_template():
    wb = _sheet_with_rows({
        1: ["${SOCIETY_NAME}"],
        3: ["Code No", "Amount", "Bank"],
        4: ["${CODE_NO}", "${REC_AMT}", "${BANK}"],
        6: ["Total", "=SUM(B4:B4)"],
    })
    structure = TemplateAnalyzer(wb.active).analyze()
    assert structure.receipt_flavor == "single"
    assert structure.record_block_rows == [4]
    assert structure.total_row == 6


def test_total_row_must_be_below_template_row():
    wb = _sheet_with_rows({
        1: ["Total Collection Report"],
        3: ["Code No", "Name"],
        4: ["${CODE_NO}", "${NAME}", "${TOTAL}"],
    })
    assert TemplateAnalyzer(wb.active).analyze().total_row is None


def test_variables_collected_from_every_sheet():
    wb = build_table_template()
    extra = wb.create_sheet("Notes")
    extra["A1"] = "${NOTICE_TEXT}"
    structure = analyze_template(wb)
    assert "NOTICE_TEXT" in structure.variables
