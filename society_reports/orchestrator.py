# society_reports/orchestrator.py
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from society_reports.data_parser.member_reader import collect_columns, read_member_records
from society_reports.receipt_processor.models import ReconciliationResult
from society_reports.receipt_processor.reconciler import reconcile
from society_reports.system_config import sys_config
from society_reports.template_engine.analyzer import analyze_template
from society_reports.template_engine.generate_report import generate_report, save_report
from society_reports.template_engine.loader import load_template
from society_reports.template_engine.models import GenerationRequest, GenerationResult, TemplateAnalysis
from society_reports.template_engine.resolver import check_template_fields
from society_reports.utils.snitch import start_trace

logger = logging.getLogger(__name__)


class Orchestrator:
    """
    Service entry point for the API and scripts.
    Each call starts its own trace and builds its own engine state.
    """

    def __init__(self, output_dir: Optional[Path] = None):
        self.output_dir = Path(output_dir) if output_dir else sys_config.output_dir

    def analyze_template(self, template: Any, filename: Optional[str] = None,
                         data_fields: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Structure, variables and (when data_fields is given) the field check of a template.

        Raises:
            TemplateValidationError: the template cannot be loaded.
        """
        start_trace()
        structure = analyze_template(load_template(template, filename))
        analysis = TemplateAnalysis.from_structure(structure).model_dump(by_alias=True)
        if data_fields is not None:
            analysis["fieldCheck"] = check_template_fields(structure.variables, data_fields)
        return analysis

    def generate_report(self, template: Any, request: Union[GenerationRequest, Mapping[str, Any]],
                        template_filename: Optional[str] = None,
                        save: bool = False) -> Tuple[GenerationResult, Optional[Path]]:
        """Generate a report; with save=True a successful workbook is also written to output_dir."""
        start_trace()
        result = generate_report(template, request, template_filename=template_filename)
        saved_path = None
        if save and result.success:
            saved_path = save_report(result, self.output_dir)
        return result, saved_path

    def reconcile_receipts(self, receipt_file: Any, records: List[Dict[str, Any]],
                           filename: Optional[str] = None) -> ReconciliationResult:
        start_trace()
        return reconcile(receipt_file, records, filename=filename)

    def parse_records(self, source: Any, filename: Optional[str] = None) -> Dict[str, Any]:
        """
        Raises:
            DataValidationError: unsupported or empty file.
        """
        start_trace()
        records = read_member_records(source, filename)
        return {"records": records, "columns": collect_columns(records), "count": len(records)}
