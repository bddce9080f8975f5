"""Data Access Objects for the reporting module."""

from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Dict, List, Optional
from datetime import datetime
from advanced_reports.reporting.models import AdvancedReport, ReportGenerationLog, FILE_COLUMNS, JSON_FIELDS
from advanced_reports.reporting.schemas import ReportCreate, ReportUpdate


class ReportDAO:
    """DAO for report definitions and the reports generated from them."""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def get_all(self) -> List[AdvancedReport]:
        """Get all active report templates."""
        stmt = (
            select(AdvancedReport)
            .where(AdvancedReport.is_active == True)  # noqa: E712
            .where(AdvancedReport.report_id.is_(None))
            .order_by(AdvancedReport.created_date.desc(), AdvancedReport.id.desc())
        )
        result = self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_by_id(self, report_id: int) -> Optional[AdvancedReport]:
        """Get an active report (template or generated) by ID."""
        stmt = select(AdvancedReport).where(AdvancedReport.id == report_id).where(AdvancedReport.is_active == True)  # noqa: E712
        result = self.db.execute(stmt)
        return result.scalars().first()

    async def create(self, report_data: ReportCreate, created_by: str = "system") -> AdvancedReport:
        """Create a new report template."""
        report = AdvancedReport(created_by=created_by, **report_data.model_dump())
        self.db.add(report)
        self.db.commit()
        self.db.refresh(report)
        return report

    async def update(self, report_id: int, report_data: ReportUpdate) -> Optional[AdvancedReport]:
        """Update the fields set on ``report_data``."""
        report = await self.get_by_id(report_id)
        if not report:
            return None

        for field, value in report_data.model_dump(exclude_unset=True).items():
            if value is None and field in JSON_FIELDS:
                continue
            setattr(report, field, value)

        report.updated_date = datetime.now()
        self.db.commit()
        self.db.refresh(report)
        return report

    async def delete(self, report_id: int) -> bool:
        """Soft delete a report by ID."""
        report = await self.get_by_id(report_id)
        if report:
            report.is_active = False
            self.db.commit()
            return True
        return False

    # ===== GENERATED REPORT METHODS =====

    async def duplicate(self, template: AdvancedReport, title: str, created_by: str = "system") -> AdvancedReport:
        """Snapshot a template into a new generated report pointing back at it."""
        values = {field: getattr(template, field) for field in JSON_FIELDS}
        generated = AdvancedReport(
            report_id=template.id,
            title=title,
            generated_report_title=template.generated_report_title,
            description=template.description,
            report_type=template.report_type,
            paginate_by=template.paginate_by,
            page_header=template.page_header,
            created_by=created_by,
            **values,
        )
        self.db.add(generated)
        self.db.commit()
        self.db.refresh(generated)
        return generated

    async def get_generated(self, template_id: int) -> List[AdvancedReport]:
        """Generated reports of a template, most recent first."""
        stmt = (
            select(AdvancedReport)
            .where(AdvancedReport.report_id == template_id)
            .where(AdvancedReport.is_active == True)  # noqa: E712
            .order_by(AdvancedReport.created_date.desc(), AdvancedReport.id.desc())
        )
        result = self.db.execute(stmt)
        return list(result.scalars().all())

    async def save_files(self, report: AdvancedReport, files: Dict[str, str]) -> AdvancedReport:
        """Record stored file locations; formats without a file column are ignored."""
        for format, location in files.items():
            column = FILE_COLUMNS.get(format)
            if column:
                setattr(report, column, location)
        self.db.commit()
        self.db.refresh(report)
        return report

    # ===== GENERATION LOG METHODS =====

    async def create_generation_log(self, generation_log: ReportGenerationLog) -> ReportGenerationLog:
        """Create a new generation log entry."""
        self.db.add(generation_log)
        self.db.commit()
        self.db.refresh(generation_log)
        return generation_log

    async def get_generation_logs(self, report_id: int, limit: int = 50) -> List[ReportGenerationLog]:
        """Get generation logs for a report, ordered by most recent first."""
        stmt = (
            select(ReportGenerationLog)
            .where(ReportGenerationLog.report_id == report_id)
            .order_by(ReportGenerationLog.executed_at.desc(), ReportGenerationLog.id.desc())
            .limit(limit)
        )
        result = self.db.execute(stmt)
        return list(result.scalars().all())
