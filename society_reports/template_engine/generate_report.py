# template_engine/generate_report.py
import io
import logging
import re
import datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from openpyxl import Workbook
from pydantic import ValidationError

from society_reports.exceptions import DataValidationError, ReportError
from society_reports.system_config import sys_config
from society_reports.utils.snitch import snitch

from .analyzer import analyze_template
from .cell_values import read_cell_value, text_of
from .loader import load_template
from .models import REPORT_KIND_NAMES, GenerationRequest, GenerationResult, TemplateAnalysis
from .resolver import PLACEHOLDER_PATTERN, VariableResolver, build_society_variables, check_template_fields
from .strategies import (
    MULTI_SHEET_STRATEGIES,
    MULTIPLE_SHEETS,
    BillRegisterStrategy,
    FormMultiStrategy,
    ReceiptRegisterStrategy,
    ReportRenderer,
    Strategy,
    receipt_amount_fields,
    select_general_strategy,
    sort_bill_records,
)
from .utils.generation_session import GenerationSession
from .utils.math_utils import is_positive_amount, safe_float_convert
from .utils.merge_utils import parse_merge_range

logger = logging.getLogger(__name__)

NO_RECEIPT_DATA_MESSAGE = "No receipt data found. Please ensure records have receipt amounts greater than 0."


def build_output_filename(society_name: Optional[str], report_kind: str, multi_sheet: bool,
                          on_date: Optional[datetime.date] = None) -> str:
    """{Society}_{Kind}_{SingleSheet|MultiSheet}_{YYYY-MM-DD}.xlsx"""
    safe_name = re.sub(r'[^a-zA-Z0-9]', '_', (society_name or '').strip()) or 'Society'
    kind_name = REPORT_KIND_NAMES.get(report_kind, 'Report')
    layout = 'MultiSheet' if multi_sheet else 'SingleSheet'
    on_date = on_date or datetime.date.today()
    return f"{safe_name}_{kind_name}_{layout}_{on_date.isoformat()}.xlsx"


def find_unresolved_placeholders(workbook: Workbook) -> Dict[str, List[str]]:
    """Cells still containing ${...} after generation, as {sheet: [coordinates]}."""
    leftovers: Dict[str, List[str]] = {}
    for worksheet in workbook.worksheets:
        for row in worksheet.iter_rows():
            for cell in row:
                if cell.value is None:
                    continue
                if PLACEHOLDER_PATTERN.search(text_of(read_cell_value(cell.value))):
                    leftovers.setdefault(worksheet.title, []).append(cell.coordinate)
    return leftovers


def filter_receipt_records(records: Sequence[Mapping[str, Any]]) -> List[Mapping[str, Any]]:
    """Records with at least one positive receipt amount."""
    fields = receipt_amount_fields()
    return [r for r in records if any(is_positive_amount(r.get(f)) for f in fields)]


def compute_total_amount(report_kind: str, records: Sequence[Mapping[str, Any]]) -> Optional[float]:
    if report_kind == 'bill':
        return round(sum(safe_float_convert(r.get('TOTAL')) for r in records), 2)
    if report_kind == 'receipt':
        fields = receipt_amount_fields()
        return round(sum(safe_float_convert(r.get(f)) for r in records for f in fields), 2)
    return None


def select_strategy(request: GenerationRequest, template_type: str, receipt_flavor: str,
                    record_count: int) -> Strategy:
    """Map report kind, template type and mode onto a layout strategy."""
    threshold = sys_config.auto_multi_sheet_threshold
    total_fields = tuple(request.selected_total_fields)

    if request.report_kind == 'bill':
        if request.mode == MULTIPLE_SHEETS:
            return FormMultiStrategy(sheet_prefix="Bill_")
        merge_range = parse_merge_range(request.header_merge_range, default=sys_config.bill_header_merge_range)
        return BillRegisterStrategy(merge_range=merge_range, total_fields=total_fields)

    if request.report_kind == 'receipt':
        merge_range = parse_merge_range(request.header_merge_range, default=sys_config.receipt_header_merge_range)
        return ReceiptRegisterStrategy(merge_range=merge_range, flavor=receipt_flavor, total_fields=total_fields)

    if request.report_kind == 'member':
        return select_general_strategy(template_type, request.mode, record_count, threshold,
                                       sheet_prefix="Member_", sheet_title="Member Detail")

    return select_general_strategy(template_type, request.mode, record_count, threshold)


def _coerce_request(request: Union[GenerationRequest, Mapping[str, Any]]) -> GenerationRequest:
    if isinstance(request, GenerationRequest):
        return request
    try:
        return GenerationRequest.model_validate(dict(request))
    except ValidationError as e:
        raise DataValidationError(f"Invalid generation request: {e.errors()[0].get('msg', e)}") from e


def _data_fields(records: Sequence[Mapping[str, Any]]) -> List[str]:
    fields = set()
    for record in records:
        fields.update(record.keys())
    return sorted(fields)


def _generate(template: Any, request: GenerationRequest, template_filename: Optional[str]) -> GenerationResult:
    records: List[Mapping[str, Any]] = list(request.data)
    if not records:
        raise DataValidationError("No data provided for Excel generation")

    template_wb = load_template(template, template_filename)
    structure = analyze_template(template_wb)

    template_type = structure.template_type
    if request.template_type and request.template_type != template_type:
        structure.rationale.append(f"Template type overridden by caller: {template_type} -> {request.template_type}")
        template_type = request.template_type
        structure.template_type = template_type

    if request.single_record_mode:
        records = records[:1]

    if request.report_kind == 'bill':
        records = sort_bill_records(records)
    elif request.report_kind == 'receipt':
        records = filter_receipt_records(records)
        if not records:
            raise DataValidationError(NO_RECEIPT_DATA_MESSAGE)

    society_vars = build_society_variables(request.society_name, request.society_details.as_variables_source())
    field_check = check_template_fields(structure.variables, _data_fields(records), society_vars)

    strategy = select_strategy(request, template_type, structure.receipt_flavor, len(records))

    with GenerationSession(request.report_kind, len(records)) as session:
        session.extend_warnings(structure.warnings)
        if field_check['missing']:
            session.warn(f"Template fields not found in data: {', '.join(field_check['missing'])}")

        renderer = ReportRenderer(template_wb.worksheets[0], structure, VariableResolver(society_vars))
        outcome = renderer.render(strategy, records)
        session.extend_warnings(outcome.warnings)
        for sheet_name in outcome.sheet_names:
            session.log_sheet(sheet_name)

        for sheet_name, coordinates in find_unresolved_placeholders(outcome.workbook).items():
            session.warn(
                f"Sheet '{sheet_name}' still contains unresolved placeholders in {len(coordinates)} cell(s): "
                f"{', '.join(coordinates[:10])}"
            )

        buffer = io.BytesIO()
        outcome.workbook.save(buffer)
        content = buffer.getvalue()

    merge_range = getattr(strategy, 'merge_range', None)
    return GenerationResult(
        success=True,
        filename=build_output_filename(request.society_name, request.report_kind,
                                       isinstance(strategy, MULTI_SHEET_STRATEGIES)),
        report_kind=request.report_kind,
        record_count=len(records),
        worksheet_count=len(outcome.sheet_names),
        template_type=template_type,
        strategy=strategy.kind,
        total_amount=compute_total_amount(request.report_kind, records),
        header_merge_range=f"{merge_range[0]}:{merge_range[1]}" if merge_range else None,
        missing_fields=field_check['missing'],
        warnings=list(session.warnings),
        analysis=TemplateAnalysis.from_structure(structure),
        content=content,
    )


@snitch
def generate_report(template: Any, request: Union[GenerationRequest, Mapping[str, Any]],
                    template_filename: Optional[str] = None) -> GenerationResult:
    """
    Generate a society report workbook from a template and a record set.

    Args:
        template: Template as a path, bytes, binary file object or loaded Workbook.
        request: GenerationRequest (or its camelCase dict form).
        template_filename: Upload name, used for extension checks when template is bytes.

    Returns:
        GenerationResult. Failures never raise; they come back as success=False
        with the error message.
    """
    try:
        request = _coerce_request(request)
        result = _generate(template, request, template_filename)
        logger.info(
            f"Generated '{result.filename}': {result.record_count} record(s), "
            f"{result.worksheet_count} sheet(s), strategy={result.strategy}"
        )
        return result
    except ReportError as e:
        logger.warning(f"Report generation rejected: {e}")
        return GenerationResult(success=False, error=str(e))
    except Exception as e:
        logger.error(f"Report generation failed: {e}", exc_info=True)
        return GenerationResult(success=False, error=str(e))


def save_report(result: GenerationResult, output_dir: Optional[Path] = None) -> Path:
    """Write a successful result's workbook under output_dir (default: configured OUTPUT_DIR)."""
    if not result.success or result.content is None:
        raise ReportError(result.error or "Nothing to save: generation did not succeed")
    target_dir = Path(output_dir) if output_dir else sys_config.output_dir
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / result.filename
    path.write_bytes(result.content)
    logger.info(f"Report saved to {path}")
    return path
