# template_engine/strategies.py
"""
Generation strategies.

A strategy is a small immutable value describing HOW records are laid out:

    TableStrategy            fixed headers, one data row per record
    FormMultiStrategy        whole template, one sheet per record
    FormSingleStrategy       whole template per record, stacked on one sheet
    BillRegisterStrategy     title block + column headers + data rows + totals
    ReceiptRegisterStrategy  as the bill register, 1 or 3 rows per record

`ReportRenderer` executes any of them with one replicator/resolver pair.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from openpyxl import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from .analyzer import TABLE, TemplateStructure
from .builders import RegisterHeaderBuilder, TotalRowBuilder, WorkbookBuilder
from .replicator import RowReplicator, add_page_break
from .resolver import VariableResolver

logger = logging.getLogger(__name__)

SINGLE_SHEET = "single_sheet"
MULTIPLE_SHEETS = "multiple_sheets"
AUTO = "auto"
MODES = (SINGLE_SHEET, MULTIPLE_SHEETS, AUTO)

RECEIPT_MONTHS = 3
FORM_BLOCK_GAP = 2


@dataclass(frozen=True)
class TableStrategy:
    sheet_title: str = "Report"
    kind: str = field(default="table", init=False)


@dataclass(frozen=True)
class FormMultiStrategy:
    sheet_prefix: str = ""
    kind: str = field(default="form_multi", init=False)


@dataclass(frozen=True)
class FormSingleStrategy:
    sheet_title: str = "Report"
    gap_rows: int = FORM_BLOCK_GAP
    kind: str = field(default="form_single", init=False)


@dataclass(frozen=True)
class BillRegisterStrategy:
    merge_range: Tuple[str, str] = ("A", "J")
    total_fields: Tuple[str, ...] = ()
    sheet_title: str = "Bill Register"
    kind: str = field(default="bill_register", init=False)


@dataclass(frozen=True)
class ReceiptRegisterStrategy:
    merge_range: Tuple[str, str] = ("A", "H")
    flavor: str = "single"
    total_fields: Tuple[str, ...] = ()
    sheet_title: str = "Receipt Register"
    kind: str = field(default="receipt_register", init=False)


Strategy = Union[TableStrategy, FormMultiStrategy, FormSingleStrategy, BillRegisterStrategy, ReceiptRegisterStrategy]

MULTI_SHEET_STRATEGIES = (FormMultiStrategy,)


def resolve_form_mode(mode: str, record_count: int, threshold: int) -> str:
    """auto -> multiple_sheets for small record sets, single_sheet otherwise."""
    if mode == AUTO:
        return MULTIPLE_SHEETS if record_count <= threshold else SINGLE_SHEET
    return mode


def select_general_strategy(template_type: str, mode: str, record_count: int, threshold: int,
                            sheet_prefix: str = "", sheet_title: str = "Report") -> Strategy:
    """Strategy for general/member reports, driven by the template type."""
    if template_type == TABLE:
        return TableStrategy(sheet_title=sheet_title)

    if resolve_form_mode(mode, record_count, threshold) == MULTIPLE_SHEETS:
        return FormMultiStrategy(sheet_prefix=sheet_prefix)
    return FormSingleStrategy(sheet_title=sheet_title)


# --- record helpers ---

def _present(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def record_sheet_name(record: Mapping[str, Any], index: int, prefix: str = "") -> str:
    """FLAT_NO, then CODE_NO, then the sanitized NAME, then the 1-based index."""
    if _present(record.get("FLAT_NO")):
        return f"{prefix}Flat_{record['FLAT_NO']}"
    if _present(record.get("CODE_NO")):
        return f"{prefix}Code_{record['CODE_NO']}"
    if _present(record.get("NAME")):
        safe_name = re.sub(r"[^\w\s]", "", str(record["NAME"]))[:20].strip()
        if safe_name:
            return f"{prefix}{safe_name}"
    return f"{prefix}Record_{index}"


def natural_key(value: Any) -> Tuple:
    """Sort key treating digit runs as numbers: 'A-2' < 'A-10'."""
    if not _present(value):
        return (1, [])
    parts = re.split(r"(\d+)", str(value).strip())
    return (0, [int(part) if part.isdigit() else part.lower() for part in parts])


def sort_bill_records(records: Sequence[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    """Order by CODE_NO (FLAT_NO when a record has no code); stable for ties."""
    def key(record):
        code = record.get("CODE_NO")
        return natural_key(code if _present(code) else record.get("FLAT_NO"))
    return sorted(records, key=key)


def receipt_amount_fields() -> List[str]:
    return ["REC_AMT"] + [f"REC_AMT{n}" for n in range(1, RECEIPT_MONTHS + 1)]


def month_record(record: Mapping[str, Any], month: int) -> Dict[str, Any]:
    """View of a reconciled record for installment `month` (1..3)."""
    view = dict(record)
    cheque_date = record.get(f"CHEQUE_DT{month}") or ""
    amount = record.get(f"REC_AMT{month}") or ""

    view["CHEQUE_NO"] = record.get(f"CHEQUE_NO{month}") or ""
    view["CHEQUE_DT"] = cheque_date
    view["CHQ_DATE"] = cheque_date
    view["BANK"] = record.get(f"BANK{month}") or ""
    view["REC_AMT"] = amount
    view["RECEIPT_AMOUNT"] = amount

    if month > 1:
        view["CODE_NO"] = ""
        view["FLAT_NO"] = ""
        view["NAME"] = ""
    return view


@dataclass
class RenderOutcome:
    workbook: Workbook
    strategy: Strategy
    sheet_names: List[str]
    warnings: List[str] = field(default_factory=list)
    details: Dict[str, Any] = field(default_factory=dict)


class ReportRenderer:
    """
    Executes a strategy for one generation call.

    Holds only per-call state: the template worksheet, its analyzed structure
    and the resolver built from this request's society variables.
    """

    def __init__(self, template_ws: Worksheet, structure: TemplateStructure, resolver: VariableResolver):
        self.template_ws = template_ws
        self.structure = structure
        self.replicator = RowReplicator(template_ws, resolver)
        self.builder = WorkbookBuilder()
        self.warnings: List[str] = []
        self.details: Dict[str, Any] = {}

    @property
    def template_rows(self) -> int:
        return self.template_ws.max_row or 0

    def render(self, strategy: Strategy, records: Sequence[Mapping[str, Any]]) -> RenderOutcome:
        workbook = self.builder.build()
        logger.info(f"Rendering {len(records)} record(s) with strategy '{strategy.kind}'")

        if isinstance(strategy, TableStrategy):
            self._render_table(strategy, records)
        elif isinstance(strategy, FormMultiStrategy):
            self._render_form_multi(strategy, records)
        elif isinstance(strategy, FormSingleStrategy):
            self._render_form_single(strategy, records)
        elif isinstance(strategy, BillRegisterStrategy):
            self._render_register(strategy, records, merged_row_limit=None, row_views=lambda r: [r],
                                  data_rows=[self.structure.data_template_row])
        elif isinstance(strategy, ReceiptRegisterStrategy):
            if strategy.flavor == "multi":
                data_rows = list(self.structure.record_block_rows)
                row_views = lambda r: [month_record(r, month) for month in range(1, RECEIPT_MONTHS + 1)]
            else:
                data_rows = [self.structure.data_start_row]
                row_views = lambda r: [r]
            self._render_register(strategy, records, merged_row_limit=2, row_views=row_views, data_rows=data_rows)
        else:
            raise ValueError(f"Unknown generation strategy: {strategy!r}")

        return RenderOutcome(
            workbook=workbook,
            strategy=strategy,
            sheet_names=list(workbook.sheetnames),
            warnings=self.warnings,
            details=self.details,
        )

    # --- TABLE ---

    def _render_table(self, strategy: TableStrategy, records: Sequence[Mapping[str, Any]]):
        ws = self.builder.add_sheet(strategy.sheet_title)
        self.replicator.copy_sheet_setup(ws)

        template_row = self.structure.data_template_row
        first_record = records[0]
        out_row = 1

        out_row += self.replicator.copy_rows(1, template_row - 1, ws, out_row, first_record)
        data_first_row = out_row
        for record in records:
            self.replicator.copy_row(template_row, ws, out_row, record)
            out_row += 1
        self.replicator.copy_rows(template_row + 1, self.template_rows, ws, out_row, first_record)

        # Merges above the data row stay put, merges below shift with the added rows
        self.replicator.copy_merges(ws, row_offset=0, min_row=1, max_row=template_row - 1)
        self.replicator.copy_merges(ws, row_offset=len(records) - 1, min_row=template_row + 1)

        self.details["data_rows"] = [data_first_row, data_first_row + len(records) - 1]

    # --- FORM ---

    def _render_form_multi(self, strategy: FormMultiStrategy, records: Sequence[Mapping[str, Any]]):
        for index, record in enumerate(records, start=1):
            ws = self.builder.add_sheet(record_sheet_name(record, index, strategy.sheet_prefix))
            self.replicator.copy_sheet_setup(ws)
            self.replicator.copy_rows(1, self.template_rows, ws, 1, record)
            self.replicator.copy_merges(ws)
            logger.debug(f"Record {index}/{len(records)} -> sheet '{ws.title}'")

    def _render_form_single(self, strategy: FormSingleStrategy, records: Sequence[Mapping[str, Any]]):
        ws = self.builder.add_sheet(strategy.sheet_title)
        self.replicator.copy_sheet_setup(ws)

        block_rows = self.template_rows
        block_starts = []
        out_row = 1
        for index, record in enumerate(records):
            block_starts.append(out_row)
            self.replicator.copy_rows(1, block_rows, ws, out_row, record)
            self.replicator.copy_merges(ws, row_offset=out_row - 1)
            last_row = out_row + block_rows - 1

            if index < len(records) - 1:
                add_page_break(ws, last_row)
                out_row = last_row + 1 + strategy.gap_rows

        self.details["block_starts"] = block_starts

    # --- registers ---

    def _render_register(self, strategy, records, merged_row_limit, row_views, data_rows: List[int]):
        ws = self.builder.add_sheet(strategy.sheet_title)
        self.replicator.copy_sheet_setup(ws)
        structure = self.structure

        header = RegisterHeaderBuilder(
            replicator=self.replicator,
            worksheet=ws,
            header_end_row=structure.header_end_row,
            merge_range=strategy.merge_range,
            merged_row_limit=merged_row_limit,
        ).build(start_row=1)
        out_row = 1 + header["rows_written"]

        # An empty record leaves only society variables to fill these rows
        column_header_row = structure.data_start_row - 1
        if column_header_row > structure.header_end_row:
            self.replicator.copy_row(column_header_row, ws, out_row, {})
            out_row += 1

        # placeholder rows above the per-record row (e.g. "From ${BILL_MONTH_FROM}")
        for source_row in range(structure.data_start_row, data_rows[0]):
            self.replicator.copy_row(source_row, ws, out_row, {})
            out_row += 1

        data_first_row = out_row
        for record in records:
            for position, view in enumerate(row_views(record)):
                source_row = data_rows[min(position, len(data_rows) - 1)]
                self.replicator.copy_row(source_row, ws, out_row, view)
                out_row += 1
        data_last_row = out_row - 1
        self.details["data_rows"] = [data_first_row, data_last_row]

        if strategy.total_fields and structure.total_row is not None:
            total = TotalRowBuilder(
                replicator=self.replicator,
                worksheet=ws,
                template_total_row=structure.total_row,
                selected_fields=list(strategy.total_fields),
            ).build(dest_row=out_row, data_first_row=data_first_row, data_last_row=data_last_row)
            self.details["total_row"] = total
        elif strategy.total_fields:
            self.warnings.append("Total fields were selected but the template has no total row; totals skipped")
