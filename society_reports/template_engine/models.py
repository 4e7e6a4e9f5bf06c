from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

ReportKind = Literal['general', 'member', 'bill', 'receipt']
GenerationMode = Literal['single_sheet', 'multiple_sheets', 'auto']

# Short forms accepted from older clients
_MODE_ALIASES = {
    'single': 'single_sheet',
    'multi': 'multiple_sheets',
    'multiple': 'multiple_sheets',
}

REPORT_KIND_NAMES = {
    'general': 'Report',
    'member': 'MemberDetail',
    'bill': 'BillRegister',
    'receipt': 'ReceiptRegister',
}


class SocietyDetails(BaseModel):
    reg_no: Optional[str] = Field(None, alias='regNo')
    address: Optional[str] = None
    bill_month_from: Optional[str] = Field(None, alias='billMonthFrom')
    bill_month_to: Optional[str] = Field(None, alias='billMonthTo')
    bill_year: Optional[Union[int, str]] = Field(None, alias='billYear')

    class Config:
        populate_by_name = True

    def as_variables_source(self) -> Dict[str, Any]:
        """Supplied values only, keyed by their request (camelCase) names."""
        return self.model_dump(by_alias=True, exclude_none=True)


class GenerationRequest(BaseModel):
    data: List[Dict[str, Any]] = Field(default_factory=list)
    report_kind: ReportKind = Field('general', alias='reportKind')
    mode: GenerationMode = 'auto'
    single_record_mode: bool = Field(False, alias='singleRecordMode')
    society_name: Optional[str] = Field(None, alias='societyName')
    society_details: SocietyDetails = Field(default_factory=SocietyDetails, alias='societyDetails')
    header_merge_range: Optional[str] = Field(None, alias='headerMergeRange')
    selected_total_fields: List[str] = Field(default_factory=list, alias='selectedTotalFields')
    template_type: Optional[Literal['TABLE', 'FORM']] = Field(None, alias='templateType')

    class Config:
        populate_by_name = True

    @field_validator('mode', mode='before')
    @classmethod
    def _normalize_mode(cls, value):
        if isinstance(value, str):
            return _MODE_ALIASES.get(value.strip().lower(), value.strip().lower())
        return value

    @field_validator('template_type', mode='before')
    @classmethod
    def _normalize_template_type(cls, value):
        if isinstance(value, str):
            return value.strip().upper() or None
        return value


class TemplateAnalysis(BaseModel):
    """JSON view of the analyzed template structure."""
    template_type: str = Field(alias='templateType')
    header_end_row: int = Field(alias='headerEndRow')
    data_start_row: int = Field(alias='dataStartRow')
    data_template_row: int = Field(alias='dataTemplateRow')
    total_row: Optional[int] = Field(None, alias='totalRow')
    receipt_flavor: str = Field('single', alias='receiptFlavor')
    record_block_rows: List[int] = Field(default_factory=list, alias='recordBlockRows')
    header_keyword_row: Optional[int] = Field(None, alias='headerKeywordRow')
    placeholder_row_count: int = Field(0, alias='placeholderRowCount')
    variables: List[str] = Field(default_factory=list)
    rationale: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    @classmethod
    def from_structure(cls, structure) -> "TemplateAnalysis":
        return cls(
            template_type=structure.template_type,
            header_end_row=structure.header_end_row,
            data_start_row=structure.data_start_row,
            data_template_row=structure.data_template_row,
            total_row=structure.total_row,
            receipt_flavor=structure.receipt_flavor,
            record_block_rows=list(structure.record_block_rows),
            header_keyword_row=structure.header_keyword_row,
            placeholder_row_count=structure.placeholder_row_count,
            variables=list(structure.variables),
            rationale=list(structure.rationale),
            warnings=list(structure.warnings),
        )


class GenerationResult(BaseModel):
    success: bool
    filename: Optional[str] = None
    report_kind: Optional[str] = Field(None, alias='reportKind')
    record_count: int = Field(0, alias='recordCount')
    worksheet_count: int = Field(0, alias='worksheetCount')
    template_type: Optional[str] = Field(None, alias='templateType')
    strategy: Optional[str] = None
    total_amount: Optional[float] = Field(None, alias='totalAmount')
    header_merge_range: Optional[str] = Field(None, alias='headerMergeRange')
    missing_fields: List[str] = Field(default_factory=list, alias='missingFields')
    warnings: List[str] = Field(default_factory=list)
    analysis: Optional[TemplateAnalysis] = None
    error: Optional[str] = None
    # Workbook bytes; never part of the JSON body
    content: Optional[bytes] = Field(None, exclude=True)

    class Config:
        populate_by_name = True
