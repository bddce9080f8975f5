# advanced_reports/reporting/models.py - Report definitions, generated reports and generation logs

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, Float
from sqlalchemy.orm import relationship
from datetime import datetime
from advanced_reports.core.database import Base

# definition attributes stored as JSON lists/dicts
JSON_FIELDS = (
    "report_fields",
    "report_headers",
    "condition_fields",
    "condition_ops",
    "condition_values",
    "sort_by",
    "sort_dir",
    "numeric_sort",
    "clear_columns",
    "add_in_rows",
    "add_cols",
    "report_params",
)

# format -> column holding the stored file location
FILE_COLUMNS = {
    "html": "html_file",
    "csv": "csv_file",
    "pdf": "pdf_file",
    "xlsx": "xlsx_file",
}


class AdvancedReport(Base):
    """A report definition.

    Templates have no ``report_id``; a generated report is a snapshot of its template
    (``report_id`` points back at it) plus the files generated from it.
    """

    __tablename__ = "advanced_reports"

    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(Integer, ForeignKey("advanced_reports.id"), nullable=True, index=True)
    title = Column(String(128), nullable=False, index=True)
    generated_report_title = Column(String(128), nullable=True)
    description = Column(Text, nullable=True)
    report_type = Column(String, nullable=False, default="invoices")

    report_fields = Column(JSON, nullable=False, default=list)
    report_headers = Column(JSON, nullable=False, default=list)
    condition_fields = Column(JSON, nullable=False, default=list)
    condition_ops = Column(JSON, nullable=False, default=list)
    condition_values = Column(JSON, nullable=False, default=list)
    sort_by = Column(JSON, nullable=False, default=list)
    sort_dir = Column(JSON, nullable=False, default=list)
    numeric_sort = Column(JSON, nullable=False, default=list)
    clear_columns = Column(JSON, nullable=False, default=list)
    add_in_rows = Column(JSON, nullable=False, default=list)
    add_cols = Column(JSON, nullable=False, default=list)
    paginate_by = Column(String, nullable=True)
    page_header = Column(String, nullable=False, default="$name")
    report_params = Column(JSON, nullable=False, default=dict)

    html_file = Column(String, nullable=True)
    csv_file = Column(String, nullable=True)
    pdf_file = Column(String, nullable=True)
    xlsx_file = Column(String, nullable=True)

    created_by = Column(String, nullable=False, default="system")
    created_date = Column(DateTime, default=datetime.now)
    updated_date = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    is_active = Column(Boolean, default=True)

    # Relationships
    template = relationship("AdvancedReport", remote_side=[id], back_populates="generated_reports")
    generated_reports = relationship("AdvancedReport", back_populates="template")
    generation_logs = relationship("ReportGenerationLog", back_populates="report", cascade="all, delete-orphan")

    def stored_files(self) -> dict:
        """Format -> stored location for every generated file."""
        files = {}
        for format, column in FILE_COLUMNS.items():
            location = getattr(self, column)
            if location:
                files[format] = location
        return files


class ReportGenerationLog(Base):
    """Log of per-format report generation with timing."""

    __tablename__ = "report_generation_logs"

    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(Integer, ForeignKey("advanced_reports.id"), nullable=False)
    format = Column(String, nullable=False)
    executed_by = Column(String, nullable=True)
    execution_time_ms = Column(Float, nullable=True)
    row_count = Column(Integer, nullable=True)
    success = Column(Boolean, nullable=False)
    error_message = Column(String, nullable=True)
    executed_at = Column(DateTime, default=datetime.now)

    # Relationship
    report = relationship("AdvancedReport", back_populates="generation_logs")
