from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ReconciliationSummary(BaseModel):
    total_records_in_file: int = Field(0, alias='totalRecordsInFile')
    processed_code_nos: int = Field(0, alias='processedCodeNos')
    updated_records: int = Field(0, alias='updatedRecords')
    skipped_records: int = Field(0, alias='skippedRecords')
    updated_columns: List[str] = Field(default_factory=list, alias='updatedColumns')
    rec_no_generated: int = Field(0, alias='recNoGenerated')
    rec_no_cleared: int = Field(0, alias='recNoCleared')
    old_max_rec_no: int = Field(0, alias='oldMaxRecNo')
    new_max_rec_no: int = Field(0, alias='newMaxRecNo')
    code_no_inherited: int = Field(0, alias='codeNoInherited')
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class ReconciliationResult(BaseModel):
    success: bool
    updated_records: List[Dict[str, Any]] = Field(default_factory=list, alias='updatedRecords')
    summary: ReconciliationSummary = Field(default_factory=ReconciliationSummary)
    error: Optional[str] = None

    class Config:
        populate_by_name = True
