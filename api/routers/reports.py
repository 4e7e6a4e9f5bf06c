import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from society_reports.exceptions import ReportError
from society_reports.orchestrator import Orchestrator
from society_reports.template_engine.models import GenerationRequest

router = APIRouter(prefix="/api", tags=["reports"])
logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

orchestrator = Orchestrator()


def _parse_json_field(raw: Optional[str], field_name: str) -> Any:
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"'{field_name}' is not valid JSON: {e}") from e


# --- Endpoints ---

@router.post("/templates/analyze")
async def analyze_template(file: UploadFile = File(...), data_fields: Optional[str] = Form(None, alias="dataFields")):
    """
    Classify an uploaded template and list its variables.
    With dataFields (JSON list of column names) the response also has a fieldCheck.
    """
    try:
        fields = _parse_json_field(data_fields, "dataFields")
        content = await file.read()
        return orchestrator.analyze_template(content, filename=file.filename, data_fields=fields)
    except (ReportError, ValueError) as e:
        logger.warning(f"Template analysis rejected: {e}")
        return JSONResponse(status_code=400, content={"error": str(e), "step": "Template Analysis"})
    except Exception as e:
        logger.error(f"Template analysis failed: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e), "step": "Template Analysis"})


@router.post("/reports/generate")
async def generate_report(template: UploadFile = File(...), request: str = Form(...)):
    """
    Generate a report workbook.

    `request` is the JSON generation request (data, reportKind, mode, societyName, ...).
    Success returns the .xlsx as an attachment with the result summary in the
    X-Generation-Result header; failure returns the result as JSON.
    """
    try:
        generation_request = GenerationRequest.model_validate_json(request)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"success": False, "error": f"Invalid generation request: {e.errors()[0].get('msg')}"})

    try:
        content = await template.read()
        result, _ = orchestrator.generate_report(content, generation_request, template_filename=template.filename)
    except Exception as e:
        logger.error(f"Report generation failed: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e), "step": "Report Generation"})

    summary = result.model_dump(by_alias=True, mode="json")
    if not result.success:
        return JSONResponse(status_code=400, content=summary)

    return Response(
        content=result.content,
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Generation-Result": json.dumps(summary, ensure_ascii=True),
        },
    )


@router.post("/records/parse")
async def parse_records(file: UploadFile = File(...)):
    """Member roster (.xlsx or .csv) to records."""
    try:
        content = await file.read()
        return orchestrator.parse_records(content, filename=file.filename)
    except ReportError as e:
        return JSONResponse(status_code=400, content={"error": str(e), "step": "Record Import"})
    except Exception as e:
        logger.error(f"Record import failed: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e), "step": "Record Import"})
