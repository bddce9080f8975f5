"""Pydantic schemas for the reporting module."""

from typing import Optional, List, Dict, Any, Union
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SortDirection(str, Enum):
    """Sort directions accepted in a report definition."""

    ASC = "ASC"
    DESC = "DESC"


# ===== REPORT DEFINITION SCHEMAS =====


class ReportDefinition(BaseModel):
    """User authored report configuration.

    The condition lists are positionally aligned: ``condition_fields[i]``,
    ``condition_ops[i]`` and ``condition_values[i]`` form one condition tuple.
    """

    title: str = ""
    generated_report_title: Optional[str] = None
    description: Optional[str] = None
    report_type: str = "invoices"

    report_fields: List[str] = []
    report_headers: List[Optional[str]] = []

    condition_fields: List[Optional[str]] = []
    condition_ops: List[Optional[str]] = []
    condition_values: List[Optional[str]] = []

    sort_by: List[str] = []
    sort_dir: List[Optional[str]] = []

    numeric_sort: List[str] = []
    clear_columns: List[str] = []
    add_in_rows: List[str] = []
    add_cols: List[str] = []

    paginate_by: Optional[str] = None
    page_header: str = "$name"
    report_params: Dict[str, str] = {}

    model_config = ConfigDict(from_attributes=True)


class ReportBase(ReportDefinition):
    """Base schema for persisted report definitions."""

    model_config = ConfigDict(from_attributes=True, extra="forbid")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Report title cannot be empty")
        if len(v.strip()) > 128:
            raise ValueError("Report title cannot exceed 128 characters")
        return v.strip()


class ReportCreate(ReportBase):
    """Create schema for report definitions."""

    @field_validator("report_fields")
    @classmethod
    def validate_report_fields(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("At least one report field must be selected")
        return v


class ReportUpdate(BaseModel):
    """Update schema - allows partial updates."""

    title: Optional[str] = None
    generated_report_title: Optional[str] = None
    description: Optional[str] = None
    report_fields: Optional[List[str]] = None
    report_headers: Optional[List[Optional[str]]] = None
    condition_fields: Optional[List[Optional[str]]] = None
    condition_ops: Optional[List[Optional[str]]] = None
    condition_values: Optional[List[Optional[str]]] = None
    sort_by: Optional[List[str]] = None
    sort_dir: Optional[List[Optional[str]]] = None
    numeric_sort: Optional[List[str]] = None
    clear_columns: Optional[List[str]] = None
    add_in_rows: Optional[List[str]] = None
    add_cols: Optional[List[str]] = None
    paginate_by: Optional[str] = None
    page_header: Optional[str] = None
    report_params: Optional[Dict[str, str]] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            if not v.strip():
                raise ValueError("Report title cannot be empty")
            return v.strip()
        return v


class ReportRead(ReportBase):
    """Read schema for report definitions."""

    id: int
    report_id: Optional[int] = None
    created_date: datetime
    updated_date: datetime


class GeneratedReportSummary(BaseModel):
    """A generated report and the formats stored for it."""

    id: int
    report_id: int
    title: str
    created_date: datetime
    files: Dict[str, str] = {}


class GenerateReportRequest(BaseModel):
    """Request schema for generating a stored report from a definition."""

    title: Optional[str] = None
    parameters: Dict[str, str] = {}

    model_config = ConfigDict(extra="forbid")


# ===== COMPILED QUERY SCHEMAS =====


class CompiledCondition(BaseModel):
    """One validated filter predicate, ready for the data source to bind."""

    field: str
    key: str
    operator: str
    value: Union[None, str, List[str]] = None

    model_config = ConfigDict(frozen=True)


class CompiledSort(BaseModel):
    """One sort key of a compiled report query."""

    field: str
    key: str
    direction: SortDirection = SortDirection.ASC
    numeric: bool = False

    model_config = ConfigDict(frozen=True)

    def expression(self) -> str:
        """Render as ``key DIR``, with ``+0`` appended to numeric keys."""
        key = f"{self.key}+0" if self.numeric else self.key
        return f"{key} {self.direction.value}"


# ===== RESULT SCHEMAS =====


class ReportRow(BaseModel):
    """A fetched row: raw ``data`` values and the ``display`` values renderers show."""

    data: Dict[str, Any]
    display: Dict[str, Any]


class ReportPage(BaseModel):
    """Rows sharing one pagination value (or all rows when unpaginated)."""

    name: Optional[str] = None
    header: Optional[str] = None
    rows: List[ReportRow] = []
    totals: Dict[str, Any] = {}


class ReportResult(BaseModel):
    """Ordered columns (key -> header) and paged rows for one generation run."""

    columns: Dict[str, str]
    pages: List[ReportPage] = []
    total_keys: List[str] = []

    @property
    def rows(self) -> List[ReportRow]:
        return [row for page in self.pages for row in page.rows]

    @property
    def row_count(self) -> int:
        return sum(len(page.rows) for page in self.pages)

    def display_matrix(self) -> List[List[Any]]:
        """Body rows as lists of display values in column order."""
        keys = list(self.columns)
        return [[row.display.get(key) for key in keys] for row in self.rows]


class GeneratedArtifact(BaseModel):
    """One rendered output, carrying either content or a stored location."""

    format: str
    content: Union[None, str, bytes] = None
    filename: Optional[str] = None
    is_placeholder: bool = False
    row_count: Optional[int] = None

    model_config = ConfigDict(frozen=True)


class GenerationOutcome(BaseModel):
    """Per-format result of a batch generation."""

    format: str
    success: bool
    artifact: Optional[GeneratedArtifact] = None
    error: Optional[str] = None
    duration_ms: Optional[float] = None


class GenerateReportResponse(BaseModel):
    """The generated report snapshot and how each format went."""

    report: GeneratedReportSummary
    outcomes: List[GenerationOutcome]


class GenerationLogRead(BaseModel):
    """Read schema for report generation logs."""

    id: int
    report_id: int
    format: str
    executed_by: Optional[str] = None
    execution_time_ms: Optional[float] = None
    row_count: Optional[int] = None
    success: bool
    error_message: Optional[str] = None
    executed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReportPreview(BaseModel):
    """Compiled query and display rows, used by the preview endpoint."""

    headers: Dict[str, str]
    conditions: List[CompiledCondition]
    sort: List[str]
    pages: List[ReportPage]
    row_count: int


class ReportTypeInfo(BaseModel):
    """A registered report type and its reportable fields."""

    name: str
    label: str
    fields: Dict[str, str] = Field(default_factory=dict)
