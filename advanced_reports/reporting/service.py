# advanced_reports/reporting/service.py - Report definition CRUD, preview and generation

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional
from fastapi import HTTPException
from sqlalchemy.orm import Session

from advanced_reports.core.config import ReportSettings, USERNAME, get_settings
from advanced_reports.reporting.assembler import ReportAssembler
from advanced_reports.reporting.dao import ReportDAO
from advanced_reports.reporting.exceptions import ReportError, ReportTypeError
from advanced_reports.reporting.models import AdvancedReport, ReportGenerationLog
from advanced_reports.reporting.renderers import RendererRegistry, default_renderers
from advanced_reports.reporting.report_types import available_report_types, get_report_type
from advanced_reports.reporting.schemas import (
    GeneratedArtifact,
    GeneratedReportSummary,
    GenerateReportRequest,
    GenerateReportResponse,
    GenerationLogRead,
    ReportCreate,
    ReportDefinition,
    ReportPreview,
    ReportRead,
    ReportTypeInfo,
    ReportUpdate,
)
from advanced_reports.reporting.sorting import sort_clause
from advanced_reports.reporting.storage import ArtifactStore

logger = logging.getLogger(__name__)


class ReportService:
    """Report definitions service: CRUD, preview, rendering and generation."""

    def __init__(
        self,
        report_dao: ReportDAO,
        dw_session: Optional[Session],
        settings: Optional[ReportSettings] = None,
        renderers: Optional[RendererRegistry] = None,
        store: Optional[ArtifactStore] = None,
    ):
        self.report_dao = report_dao
        self.dw_session = dw_session
        self.settings = settings or get_settings()
        self.renderers = renderers or default_renderers()
        self.store = store or ArtifactStore(self.settings.storage_dir)

    # ===== CORE CRUD OPERATIONS =====

    async def get_all(self) -> List[ReportRead]:
        """Get all report templates."""
        reports = await self.report_dao.get_all()
        return [ReportRead.model_validate(report) for report in reports]

    async def get_by_id(self, report_id: int) -> Optional[ReportRead]:
        """Get a report by ID."""
        report = await self.report_dao.get_by_id(report_id)
        return ReportRead.model_validate(report) if report else None

    async def create(self, report_data: ReportCreate) -> ReportRead:
        """Create a new report template after checking its report type."""
        self._check_report_fields(report_data.report_type, report_data.report_fields)
        report = await self.report_dao.create(report_data, created_by=USERNAME)
        logger.info("Created report %s '%s'", report.id, report.title)
        return ReportRead.model_validate(report)

    async def update(self, report_id: int, report_data: ReportUpdate) -> Optional[ReportRead]:
        """Update an existing report."""
        existing = await self.report_dao.get_by_id(report_id)
        if not existing:
            return None
        if report_data.report_fields is not None:
            self._check_report_fields(existing.report_type, report_data.report_fields)
        report = await self.report_dao.update(report_id, report_data)
        return ReportRead.model_validate(report) if report else None

    async def delete(self, report_id: int) -> bool:
        """Soft delete a report."""
        return await self.report_dao.delete(report_id)

    # ===== REPORT TYPES =====

    def get_report_types(self) -> List[ReportTypeInfo]:
        """All registered report types with their reportable fields."""
        return [
            ReportTypeInfo(name=name, label=report_type.report_name(), fields=report_type.reportable_fields())
            for name, report_type in available_report_types().items()
        ]

    def get_report_type_fields(self, name: str) -> Dict[str, str]:
        """Reportable fields (name -> label) of a report type."""
        try:
            return get_report_type(name).reportable_fields()
        except ReportTypeError as e:
            raise HTTPException(status_code=404, detail=str(e))

    def _check_report_type(self, name: str) -> None:
        try:
            get_report_type(name)
        except ReportTypeError as e:
            raise HTTPException(status_code=400, detail=str(e))

    def _check_report_fields(self, report_type_name: str, fields: List[str]) -> None:
        """400 unless the report type exists and can report on every selected field."""
        self._check_report_type(report_type_name)
        reportable = get_report_type(report_type_name).reportable_fields()
        unknown = [field for field in fields if field not in reportable]
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown report fields: {', '.join(unknown)}")

    # ===== PREVIEW AND RENDERING =====

    def definition_from(self, report: AdvancedReport) -> ReportDefinition:
        return ReportDefinition.model_validate(report)

    def assembler_for(self, definition: ReportDefinition) -> ReportAssembler:
        """Assembler over the data warehouse for the definition's report type."""
        try:
            report_type = get_report_type(definition.report_type)
        except ReportTypeError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return ReportAssembler(
            report_type,
            report_type.data_objects(self.dw_session),
            renderers=self.renderers,
            store=self.store,
            settings=self.settings,
        )

    async def _get_report_or_404(self, report_id: int) -> AdvancedReport:
        report = await self.report_dao.get_by_id(report_id)
        if not report:
            raise HTTPException(status_code=404, detail="Report not found")
        return report

    async def preview(self, report_id: int, parameters: Optional[Mapping[str, str]] = None) -> ReportPreview:
        """Compiled query and shaped rows for a report, without rendering."""
        report = await self._get_report_or_404(report_id)
        definition = self.definition_from(report)
        assembler = self.assembler_for(definition)
        try:
            compiled = assembler.compile(definition, parameters)
            result = assembler.build_result(definition, parameters)
        except ReportError as e:
            logger.error("Preview of report %s failed: %s", report_id, e)
            raise HTTPException(status_code=500, detail=f"Error previewing report: {str(e)}")
        return ReportPreview(
            headers=result.columns,
            conditions=compiled.conditions,
            sort=[sort_clause(compiled.sort)] if compiled.sort else [],
            pages=result.pages,
            row_count=result.row_count,
        )

    async def render(
        self, report_id: int, format: str, parameters: Optional[Mapping[str, str]] = None
    ) -> GeneratedArtifact:
        """Render a report in one format without storing it."""
        report = await self._get_report_or_404(report_id)
        definition = self.definition_from(report)
        assembler = self.assembler_for(definition)
        try:
            return assembler.create_report(definition, format, store=False, parameters=parameters)
        except ReportError as e:
            logger.error("Rendering report %s as %s failed: %s", report_id, format, e)
            raise HTTPException(status_code=500, detail=f"Error rendering report: {str(e)}")

    # ===== GENERATION =====

    async def prepare_and_generate(
        self, report_id: int, request: Optional[GenerateReportRequest] = None
    ) -> GenerateReportResponse:
        """Snapshot a template into a generated report and generate every enabled format.

        Each format is attempted independently and gets its own generation log entry.
        """
        request = request or GenerateReportRequest()
        template = await self._get_report_or_404(report_id)
        if template.report_id is not None:
            raise HTTPException(status_code=400, detail="Generated reports cannot be generated again")

        title = request.title or template.generated_report_title or template.title
        generated = await self.report_dao.duplicate(template, title, created_by=USERNAME)
        definition = self.definition_from(generated)
        assembler = self.assembler_for(definition)

        try:
            folder = self.store.report_folder(template.id, generated.id)
        except ReportError as e:
            raise HTTPException(status_code=500, detail=str(e))

        outcomes = assembler.generate_all(definition, persist=True, parameters=request.parameters, folder=folder)

        files = {}
        for outcome in outcomes:
            artifact = outcome.artifact
            if outcome.success and artifact is not None and artifact.filename:
                files[outcome.format] = artifact.filename
            await self.report_dao.create_generation_log(
                ReportGenerationLog(
                    report_id=generated.id,
                    format=outcome.format,
                    executed_by=USERNAME,
                    execution_time_ms=outcome.duration_ms,
                    row_count=artifact.row_count if artifact is not None else None,
                    success=outcome.success and not (artifact is not None and artifact.is_placeholder),
                    error_message=outcome.error or (artifact.content if artifact is not None and artifact.is_placeholder else None),
                )
            )

        generated = await self.report_dao.save_files(generated, files)
        failed = [outcome.format for outcome in outcomes if not outcome.success]
        if failed:
            logger.warning("Report %s generated with failures in: %s", generated.id, ", ".join(failed))
        else:
            logger.info("Report %s generated from template %s", generated.id, template.id)

        return GenerateReportResponse(report=self._build_summary(generated), outcomes=outcomes)

    async def get_generated_reports(self, report_id: int) -> List[GeneratedReportSummary]:
        """Generated reports of a template."""
        await self._get_report_or_404(report_id)
        reports = await self.report_dao.get_generated(report_id)
        return [self._build_summary(report) for report in reports]

    async def get_generation_logs(self, report_id: int, limit: int = 50) -> List[GenerationLogRead]:
        await self._get_report_or_404(report_id)
        logs = await self.report_dao.get_generation_logs(report_id, limit)
        return [GenerationLogRead.model_validate(log) for log in logs]

    async def get_file(self, report_id: int, format: str) -> Path:
        """Location of a stored file of a generated report."""
        report = await self._get_report_or_404(report_id)
        location = report.stored_files().get(format.lower())
        if not location:
            raise HTTPException(status_code=404, detail=f"No {format} file stored for report {report_id}")
        path = Path(location)
        if not path.is_file():
            logger.error("Stored file %s for report %s is missing", location, report_id)
            raise HTTPException(status_code=404, detail=f"Stored {format} file for report {report_id} is missing")
        return path

    def _build_summary(self, report: AdvancedReport) -> GeneratedReportSummary:
        return GeneratedReportSummary(
            id=report.id,
            report_id=report.report_id,
            title=report.title,
            created_date=report.created_date,
            files=report.stored_files(),
        )
