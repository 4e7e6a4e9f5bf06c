import json
import logging

from fastapi import APIRouter, File, Form, UploadFile
from fastapi.responses import JSONResponse

from society_reports.orchestrator import Orchestrator

router = APIRouter(prefix="/api/receipts", tags=["receipts"])
logger = logging.getLogger(__name__)

orchestrator = Orchestrator()


@router.post("/reconcile")
async def reconcile_receipts(file: UploadFile = File(...), records: str = Form(...)):
    """
    Merge a receipt file into the current records (JSON list) and regenerate REC_NO.
    The processing summary is returned on success and on failure.
    """
    try:
        current_records = json.loads(records)
    except json.JSONDecodeError as e:
        return JSONResponse(status_code=400, content={"success": False, "error": f"'records' is not valid JSON: {e}"})
    if not isinstance(current_records, list) or not all(isinstance(r, dict) for r in current_records):
        return JSONResponse(status_code=400, content={"success": False, "error": "'records' must be a JSON list of objects"})

    try:
        content = await file.read()
        result = orchestrator.reconcile_receipts(content, current_records, filename=file.filename)
    except Exception as e:
        logger.error(f"Receipt reconciliation failed: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e), "step": "Receipt Reconciliation"})

    body = result.model_dump(by_alias=True, mode="json")
    return JSONResponse(status_code=200 if result.success else 400, content=body)
